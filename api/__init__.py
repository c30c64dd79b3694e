from __future__ import annotations

from fastapi import FastAPI

from .syncAPI import router as sync_router, run_sync, sync_running
from .searchAPI import router as search_router
from .browseAPI import router as browse_router

__all__ = [
    "sync_router",
    "search_router",
    "browse_router",
    "run_sync",
    "sync_running",
    "register",
]


def register(app: FastAPI) -> None:
    app.include_router(sync_router)
    app.include_router(search_router)
    app.include_router(browse_router)
