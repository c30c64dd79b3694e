# tb_platform/orchestrator/_planner.py
# ordering, key stamping and change detection over the merged task set.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ._tombstones import is_tombstone
from ._types import ChangeSet, Task

FALLBACK_PREFIX = "UNKN"


def id_sort_key(task: Mapping[str, Any]) -> tuple[int, int, str]:
    # numeric ids first by value; anything odd sorts after them
    raw = str(task.get("id") or "")
    if raw.isdigit():
        return (1, int(raw), raw)
    return (0, 0, raw)


def sort_by_id_desc(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=id_sort_key, reverse=True)


def stamp_keys(tasks: Iterable[Task], prefix_map: Mapping[str, str]) -> list[Task]:
    """Set ``projectPrefix`` and ``ticketKey`` in place."""
    out: list[Task] = []
    for t in tasks:
        prefix = prefix_map.get(str(t.get("projectId") or "")) or t.get("projectPrefix") or FALLBACK_PREFIX
        t["projectPrefix"] = prefix
        t["ticketKey"] = f"{prefix}-{t.get('ticketNumber')}"
        out.append(t)
    return out


def detect_changes(tasks: Iterable[Mapping[str, Any]], prior: Iterable[Mapping[str, Any]]) -> ChangeSet:
    prev: dict[str, Any] = {}
    for p in prior:
        if isinstance(p, Mapping) and p.get("id") is not None:
            prev[str(p["id"])] = p.get("updatedAt")

    cs = ChangeSet()
    for t in tasks:
        if is_tombstone(t):
            continue
        tid = str(t.get("id"))
        if tid not in prev:
            cs.new.append(tid)
        elif prev[tid] != t.get("updatedAt"):
            cs.updated.append(tid)
    return cs
