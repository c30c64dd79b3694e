# api/syncAPI.py
# TaskBrowse - manual sync trigger (plain JSON or SSE progress stream) and sync status
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import json
import queue
import threading
from collections.abc import Iterator
from typing import Any, Callable

import requests
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from _logging import log as BASE_LOG
from tb_platform.blob_store import BlobStore
from tb_platform.errors import TaskBrowseError
from tb_platform.orchestrator import Orchestrator
from tb_platform.orchestrator.facade import sync_running
from services.tasks import overview

__all__ = ["router", "run_sync", "sync_running"]

router = APIRouter(tags=["synchronization"])

_LOG = BASE_LOG.child("API")


class SyncResult(BaseModel):
    ok: bool = True
    success: bool = True
    message: str = "Database updated successfully"
    taskCount: int
    activeCount: int
    deletedCount: int
    assignedCount: int
    projectCount: int
    changedCount: int
    newCount: int
    updatedCount: int
    prefixes: dict[str, str]
    lastUpdated: str


def run_sync(
    load_config: Callable[[], dict[str, Any]],
    store: BlobStore,
    *,
    progress: Callable[[str], None] | None = None,
    cancel: threading.Event | None = None,
    session: requests.Session | None = None,
) -> dict[str, Any]:
    orc = Orchestrator(load_config(), store, session=session)
    return orc.run(progress=progress, cancel=cancel)


def _run_from_request(request: Request, **kw: Any) -> dict[str, Any]:
    st = request.app.state
    summary = run_sync(st.load_config, st.store, session=getattr(st, "session", None), **kw)
    sched = getattr(st, "scheduler", None)
    if sched is not None:
        sched.record(True, summary=summary)
    return summary


def _record_failure(request: Request, e: Exception) -> None:
    sched = getattr(request.app.state, "scheduler", None)
    if sched is not None:
        sched.record(False, error=str(e))


def _sse(event: str, data: Any) -> str:
    body = data if isinstance(data, str) else json.dumps(data, separators=(",", ":"), default=str)
    return f"event: {event}\ndata: {body}\n\n"


def _stream(request: Request) -> Iterator[str]:
    q: queue.Queue[tuple[str, Any]] = queue.Queue()
    cancel = threading.Event()

    def work() -> None:
        try:
            summary = _run_from_request(request, progress=lambda line: q.put(("progress", line)), cancel=cancel)
            q.put(("done", SyncResult(**summary).model_dump()))
        except TaskBrowseError as e:
            _record_failure(request, e)
            _LOG.error(f"manual sync failed: {e}")
            q.put(("error", {"success": False, "error": str(e), "status": e.status_code}))
        except Exception as e:
            # thread boundary: surface anything unexpected to the stream instead of hanging it
            _record_failure(request, e)
            _LOG.error(f"manual sync crashed: {e!r}")
            q.put(("error", {"success": False, "error": str(e), "status": 500}))

    threading.Thread(target=work, name="ManualSync", daemon=True).start()
    try:
        while True:
            event, data = q.get()
            yield _sse(event, data)
            if event in ("done", "error"):
                return
    finally:
        # client went away (or we finished); stop between pages
        cancel.set()


@router.api_route("/update", methods=["GET", "POST"])
def api_update(request: Request, stream: bool = Query(False)) -> Any:
    if stream:
        return StreamingResponse(
            _stream(request),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-store", "X-Accel-Buffering": "no"},
        )
    try:
        summary = _run_from_request(request)
    except TaskBrowseError as e:
        _record_failure(request, e)
        _LOG.error(f"manual sync failed: {e}")
        return JSONResponse({"ok": False, "success": False, "error": str(e)}, status_code=e.status_code)
    return JSONResponse(SyncResult(**summary).model_dump())


@router.get("/api/sync/status")
def api_sync_status(request: Request) -> JSONResponse:
    st = request.app.state
    sched = getattr(st, "scheduler", None)
    return JSONResponse(
        {
            "ok": True,
            "running": sync_running(),
            "scheduler": sched.status() if sched is not None else None,
            **overview(st.store),
        }
    )
