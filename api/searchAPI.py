# api/searchAPI.py
# TaskBrowse - search, prefixes and filter options over the cached snapshot
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from tb_platform.errors import NotInitializedError
from services.tasks import get_filters, get_prefixes, search

router = APIRouter(prefix="/api", tags=["search"])


def _ok(payload: dict[str, Any], *, status_code: int = 200) -> JSONResponse:
    payload.setdefault("ok", True)
    return JSONResponse(payload, status_code=status_code)


def _err(msg: str, *, status_code: int = 400, extra: dict[str, Any] | None = None) -> JSONResponse:
    payload: dict[str, Any] = {"ok": False, "error": msg}
    if extra:
        payload.update(extra)
    return JSONResponse(payload, status_code=status_code)


@router.get("/search")
def api_search(
    request: Request,
    q: str = Query("", description="Ticket key (PRIM-242), number or free text"),
    project: str | None = Query(None, description="Project id or prefix"),
    status: str | None = Query(None),
    assignee: str | None = Query(None, description="Person id, 'me' or 'unassigned'"),
    due: str | None = Query(None, description="overdue | today | week | none | any"),
    changed: bool = Query(False, description="Only tasks new/updated in the last sync"),
    deleted: bool = Query(True, description="Include tasks no longer returned upstream"),
) -> JSONResponse:
    try:
        res = search(
            request.app.state.store,
            q,
            project=project,
            status=status,
            assignee=assignee,
            due=due,
            changed=changed,
            include_deleted=deleted,
        )
    except NotInitializedError as e:
        return _err(str(e), status_code=e.status_code, extra={"tasks": [], "total": 0})
    except ValueError as e:
        return _err(str(e), status_code=400)
    return _ok(res)


@router.get("/prefixes")
def api_prefixes(request: Request) -> JSONResponse:
    return _ok(get_prefixes(request.app.state.store))


@router.get("/filters")
def api_filters(request: Request) -> JSONResponse:
    return _ok(get_filters(request.app.state.store))
