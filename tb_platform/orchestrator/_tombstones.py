# tb_platform/orchestrator/_tombstones.py
# tombstone (deleted task) carry-forward for the orchestrator.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ._types import Task

UNKNOWN_STATUS = "Unknown"


def is_tombstone(task: Mapping[str, Any]) -> bool:
    return bool(task.get("deleted") or task.get("_deleted"))


def tombstone(task: Mapping[str, Any]) -> Task:
    out = dict(task)
    out.pop("_deleted", None)
    if not is_tombstone(task):
        out["status"] = UNKNOWN_STATUS
    out["deleted"] = True
    return out


def carry_forward(fresh: Mapping[str, Task], prior: Iterable[Mapping[str, Any]]) -> dict[str, Task]:
    """Merge prior tasks that vanished upstream into ``fresh`` as tombstones.

    Tasks are never dropped: anything in ``prior`` whose id is missing from
    ``fresh`` comes back with ``deleted=True`` and ``status="Unknown"``. A task
    that was already a tombstone keeps its fields as-is.
    """
    merged: dict[str, Task] = dict(fresh)
    for old in prior:
        if not isinstance(old, Mapping) or old.get("id") is None:
            continue
        tid = str(old["id"])
        if tid in merged:
            continue
        merged[tid] = tombstone(old)
    return merged


def count_tombstones(tasks: Iterable[Mapping[str, Any]]) -> int:
    return sum(1 for t in tasks if is_tombstone(t))
