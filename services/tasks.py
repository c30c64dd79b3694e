# services/tasks.py
# TaskBrowse - read path over the persisted snapshot (search, filters, ticket lookup)
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

from datetime import date
from typing import Any

from tb_platform.blob_store import BlobStore
from tb_platform.errors import NotFoundError, NotInitializedError
from tb_platform.orchestrator import SnapshotStore

from .search import filter_tasks, search_tasks

__all__ = ["search", "get_filters", "get_prefixes", "resolve_ticket", "overview"]


def _snapshots(store: BlobStore) -> SnapshotStore:
    return SnapshotStore(store)


def search(
    store: BlobStore,
    query: str | None = "",
    *,
    project: str | None = None,
    status: str | None = None,
    assignee: str | None = None,
    due: str | None = None,
    changed: bool = False,
    include_deleted: bool = True,
    today: date | None = None,
) -> dict[str, Any]:
    snaps = _snapshots(store)
    if not snaps.is_initialized():
        raise NotInitializedError()

    tasks = snaps.load_tasks()
    results = search_tasks(tasks, snaps.load_prefix_index(), query)
    results = filter_tasks(
        results,
        project=project,
        status=status,
        assignee=assignee,
        due=due,
        changed_ids=snaps.load_changed_ids() if changed else None,
        include_deleted=include_deleted,
        current_person_id=snaps.current_person_id(),
        today=today,
    )
    return {
        "query": query or "",
        "tasks": results,
        "count": len(results),
        "total": len(tasks),
        "lastUpdated": snaps.last_updated(),
    }


def get_filters(store: BlobStore) -> dict[str, Any]:
    # empty lists before the first sync; the page renders without options
    snaps = _snapshots(store)
    changes = snaps.load_change_ids()
    return {
        "projects": snaps.load_projects(),
        "statuses": snaps.load_statuses(),
        "assignees": snaps.load_assignees(),
        "currentPersonId": snaps.current_person_id(),
        "changedTaskIds": snaps.load_changed_ids(),
        "newTaskIds": changes.new,
        "updatedTaskIds": changes.updated,
    }


def get_prefixes(store: BlobStore) -> dict[str, Any]:
    snaps = _snapshots(store)
    return {"prefixMap": snaps.load_prefix_map(), "prefixIndex": snaps.load_prefix_index()}


def resolve_ticket(store: BlobStore, prefix: str, number: int | str) -> dict[str, Any]:
    """Find the task behind PREFIX-NUMBER.

    Raises NotInitializedError before the first sync and NotFoundError for an
    unknown prefix (listing the known ones) or an unknown ticket number.
    """
    snaps = _snapshots(store)
    if not snaps.is_initialized():
        raise NotInitializedError()

    pre = str(prefix or "").upper()
    index = snaps.load_prefix_index()
    pid = index.get(pre)
    if not pid:
        raise NotFoundError(
            f"Unknown project prefix: {pre}. Available prefixes: {', '.join(sorted(index))}",
            known_prefixes=index.keys(),
        )

    for t in snaps.load_tasks():
        if str(t.get("projectId")) == pid and str(t.get("ticketNumber")) == str(number):
            return t
    raise NotFoundError(f"Ticket {pre}-{number} not found in project.", known_prefixes=index.keys())


def overview(store: BlobStore) -> dict[str, Any]:
    snaps = _snapshots(store)
    return {
        "taskCount": snaps.task_count(),
        "assignedCount": snaps.assigned_count(),
        "lastUpdated": snaps.last_updated(),
    }
