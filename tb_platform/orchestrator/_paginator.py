# tb_platform/orchestrator/_paginator.py
# fetch-all-pages over /tasks and raw -> task record mapping.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from _logging import log as BASE_LOG
from ..errors import SyncCancelled
from ..productive import ProductiveClient

__all__ = [
    "SideTables",
    "fetch_all_pages",
    "to_task",
    "task_url",
    "TASK_INCLUDE",
]

TASK_INCLUDE = "assignee,project,workflow_status"

_LOG = BASE_LOG.child("PRODUCTIVE")

EmitFn = Callable[..., None]


@dataclass
class SideTables:
    """Included entities seen so far, shared across pages and filter dimensions."""

    people: dict[str, str] = field(default_factory=dict)
    projects: dict[str, dict[str, str]] = field(default_factory=dict)
    statuses: dict[str, str] = field(default_factory=dict)

    def fold(self, included: Any) -> None:
        if not isinstance(included, list):
            return
        for item in included:
            if not isinstance(item, Mapping):
                continue
            iid = item.get("id")
            if iid is None:
                continue
            iid = str(iid)
            attrs = item.get("attributes") or {}
            kind = item.get("type")
            if kind == "people":
                self.people[iid] = str(attrs.get("name") or attrs.get("email") or "Unknown")
            elif kind == "projects":
                self.projects[iid] = {"id": iid, "name": str(attrs.get("name") or "")}
            elif kind == "workflow_statuses":
                self.statuses[iid] = str(attrs.get("name") or "")


def _rel_id(raw: Mapping[str, Any], name: str) -> str | None:
    rel = (raw.get("relationships") or {}).get(name) or {}
    data = rel.get("data") if isinstance(rel, Mapping) else None
    if isinstance(data, Mapping) and data.get("id") is not None:
        return str(data["id"])
    return None


def _as_number(v: Any) -> Any:
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return v
    s = str(v if v is not None else "").strip()
    return int(s) if s.isdigit() else v


def task_url(app_base: str, org_id: str, org_slug: str, task_id: str) -> str:
    return f"{str(app_base).rstrip('/')}/{org_id}-{org_slug}/tasks/task/{task_id}"


def to_task(
    raw: Mapping[str, Any],
    tables: SideTables,
    *,
    app_base: str,
    org_id: str,
    org_slug: str,
) -> dict[str, Any]:
    attrs = raw.get("attributes") or {}
    tid = str(raw.get("id"))
    assignee_id = _rel_id(raw, "assignee")
    project_id = _rel_id(raw, "project")
    status_id = _rel_id(raw, "workflow_status")

    project = tables.projects.get(project_id or "") or {}
    status = (tables.statuses.get(status_id or "") or attrs.get("workflow_status_name") or "Unknown")

    return {
        "id": tid,
        "ticketNumber": _as_number(attrs.get("number")),
        "title": str(attrs.get("title") or ""),
        "projectId": project_id,
        "project": project.get("name") or "No Project",
        "status": str(status),
        "assigneeId": assignee_id,
        "assignee": tables.people.get(assignee_id or "") or "Unassigned",
        "dueDate": attrs.get("due_date"),
        "createdAt": attrs.get("created_at"),
        "updatedAt": attrs.get("updated_at"),
        "url": task_url(app_base, org_id, org_slug, tid),
        "deleted": False,
    }


def fetch_all_pages(
    client: ProductiveClient,
    filter_param: str,
    filter_value: str,
    tables: SideTables,
    *,
    page_size: int = 200,
    max_pages: int = 25,
    emit: EmitFn | None = None,
    cancel: threading.Event | None = None,
) -> list[dict[str, Any]]:
    """Walk /tasks for one filter dimension, newest first.

    Stops when the response carries no next link or after ``max_pages``.
    Included people/projects/statuses are folded into ``tables``. Any
    non-2xx response raises ``UpstreamError`` and nothing is returned.
    """
    out: list[dict[str, Any]] = []
    page = 1
    has_more = True
    phase = f"{filter_param}={filter_value}"

    while has_more and page <= max_pages:
        if cancel is not None and cancel.is_set():
            raise SyncCancelled(f"sync cancelled before page {page} of {phase}")

        params = {
            "page[number]": page,
            "page[size]": page_size,
            "include": TASK_INCLUDE,
            f"filter[{filter_param}]": filter_value,
            "sort": "-id",
        }
        _LOG.debug(f"fetching {phase} page {page}")
        data = client.get("tasks", params)

        tables.fold(data.get("included"))
        rows = data.get("data") or []
        if isinstance(rows, list):
            out.extend(r for r in rows if isinstance(r, Mapping) and r.get("id") is not None)

        has_more = bool((data.get("links") or {}).get("next"))
        if emit is not None:
            emit("sync:page", phase=phase, page=page, hasMore=has_more, recordsSoFar=len(out))
        page += 1

    if has_more:
        _LOG.warn(f"stopping {phase} at safety cap: max_pages={max_pages} ({len(out)} records)")
    return out
