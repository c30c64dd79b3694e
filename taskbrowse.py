# taskbrowse.py
# TaskBrowse - cached search and /browse/KEY-123 redirects in front of Productive.io
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Callable

import requests
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from _logging import log as BASE_LOG
from api import register as register_api, run_sync, sync_running
from services.scheduling import SyncScheduler
from tb_platform.blob_store import BlobStore, FileBlobStore
from tb_platform.config_base import config_path, load_config, state_dir
from ui_frontend import register_favicons, register_ui_root

__all__ = ["create_app", "main"]

_LOG = BASE_LOG.child("TASKBROWSE")


def _scheduler_for(app: FastAPI) -> SyncScheduler:
    st = app.state

    def _run() -> dict[str, Any]:
        return run_sync(st.load_config, st.store, session=st.session)

    return SyncScheduler(
        st.load_config,
        run_sync_fn=_run,
        is_sync_running_fn=sync_running,
        log_fn=BASE_LOG.child("SCHED"),
    )


def create_app(
    *,
    load_config_fn: Callable[[], dict[str, Any]] = load_config,
    store: BlobStore | None = None,
    session: requests.Session | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        sched = app.state.scheduler
        if sched is not None:
            sched.start()
            _LOG.info("scheduler started")
        try:
            yield
        finally:
            if sched is not None:
                sched.stop()

    app = FastAPI(title="TaskBrowse", lifespan=_lifespan)
    app.state.load_config = load_config_fn
    app.state.store = store if store is not None else FileBlobStore(state_dir(load_config_fn()))
    app.state.session = session
    app.state.scheduler = None
    if start_scheduler:
        app.state.scheduler = _scheduler_for(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    register_favicons(app)
    register_ui_root(app)
    register_api(app)
    return app


def main(host: str = "0.0.0.0", port: int = 8787) -> None:
    cfg = load_config()
    rt = cfg.get("runtime") or {}
    debug = bool(rt.get("debug"))
    debug_http = bool(rt.get("debug_http"))
    if debug:
        BASE_LOG.set_level("debug")
    if rt.get("log_json"):
        BASE_LOG.enable_json(str(rt["log_json"]))

    print("\nTaskBrowse running:")
    print(f"  Local:   http://127.0.0.1:{port}")
    print(f"  Bind:    {host}:{port}")
    print(f"  Config:  {config_path()} (JSON)")
    print(f"  State:   {state_dir(cfg)}\n")

    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
        access_log=debug_http,
    )


if __name__ == "__main__":
    main()
