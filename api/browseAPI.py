# api/browseAPI.py
# TaskBrowse - Jira-style /browse/PRIM-242 redirects into Productive
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import re

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from _logging import log as BASE_LOG
from tb_platform.errors import NotFoundError, NotInitializedError
from services.tasks import resolve_ticket

router = APIRouter(prefix="/browse", tags=["browse"])

_LOG = BASE_LOG.child("API")
_TICKET_RE = re.compile(r"^([A-Za-z]+\d*)-(\d+)$")


@router.get("/{ticket}")
def api_browse(request: Request, ticket: str) -> Response:
    m = _TICKET_RE.match(ticket or "")
    if not m:
        return PlainTextResponse("Invalid ticket format. Use: /browse/PRIM-242", status_code=400)

    prefix, number = m.group(1), m.group(2)
    try:
        task = resolve_ticket(request.app.state.store, prefix, number)
    except (NotInitializedError, NotFoundError) as e:
        _LOG.debug(f"browse {ticket}: {e}")
        return PlainTextResponse(str(e), status_code=e.status_code)
    return RedirectResponse(str(task.get("url") or ""), status_code=302)
