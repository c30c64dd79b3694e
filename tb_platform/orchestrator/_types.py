# tb_platform/orchestrator/_types.py
# types for the orchestrator.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

Task = dict[str, Any]


@dataclass
class ChangeSet:
    new: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)

    @property
    def changed(self) -> list[str]:
        return self.new + self.updated


@dataclass
class SyncSummary:
    task_count: int
    active_count: int
    deleted_count: int
    assigned_count: int
    project_count: int
    changes: ChangeSet
    prefixes: dict[str, str]
    last_updated: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "taskCount": self.task_count,
            "activeCount": self.active_count,
            "deletedCount": self.deleted_count,
            "assignedCount": self.assigned_count,
            "projectCount": self.project_count,
            "changedCount": len(self.changes.changed),
            "newCount": len(self.changes.new),
            "updatedCount": len(self.changes.updated),
            "prefixes": dict(self.prefixes),
            "lastUpdated": self.last_updated,
        }
