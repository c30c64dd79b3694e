# tb_platform/orchestrator/_state_store.py
# snapshot persistence over a blob store for the orchestrator.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import json
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from ..blob_store import BlobStore
from ._types import ChangeSet, Task

K_TASKS = "all_tasks"
K_PREFIX_MAP = "prefix_map"
K_PREFIX_INDEX = "prefix_index"
K_LAST_UPDATED = "last_updated"
K_TASK_COUNT = "task_count"
K_ASSIGNED_COUNT = "assigned_count"
K_STATUSES = "filter_statuses"
K_ASSIGNEES = "filter_assignees"
K_PROJECTS = "filter_projects"
K_PERSON_ID = "current_person_id"
K_NEW_IDS = "new_task_ids"
K_UPDATED_IDS = "updated_task_ids"
K_CHANGED_IDS = "changed_task_ids"
K_LOCK = "sync_lock"

# write order: tasks first, counters and timestamp last
SNAPSHOT_KEYS = (
    K_TASKS,
    K_PREFIX_MAP,
    K_PREFIX_INDEX,
    K_STATUSES,
    K_ASSIGNEES,
    K_PROJECTS,
    K_NEW_IDS,
    K_UPDATED_IDS,
    K_CHANGED_IDS,
    K_PERSON_ID,
    K_TASK_COUNT,
    K_ASSIGNED_COUNT,
    K_LAST_UPDATED,
)


def _dumps(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


@dataclass
class SnapshotStore:
    blobs: BlobStore

    def _read(self, key: str, default: Any) -> Any:
        raw = self.blobs.get(key)
        if not raw:
            return default
        try:
            data = json.loads(raw)
        except ValueError:
            return default
        return data if isinstance(data, type(default)) else default

    def _read_int(self, key: str) -> int:
        raw = (self.blobs.get(key) or "").strip()
        return int(raw) if raw.isdigit() else 0

    # readers
    def is_initialized(self) -> bool:
        return bool(self.blobs.get(K_TASKS))

    def load_tasks(self) -> list[Task]:
        out: list[Task] = []
        for t in self._read(K_TASKS, []):
            if not isinstance(t, dict) or t.get("id") is None:
                continue
            t = dict(t)
            t["id"] = str(t["id"])
            if "_deleted" in t:
                legacy = bool(t.pop("_deleted"))
                t["deleted"] = bool(t.get("deleted")) or legacy
            t["deleted"] = bool(t.get("deleted", False))
            out.append(t)
        return out

    def load_prefix_map(self) -> dict[str, str]:
        return {str(k): str(v) for k, v in self._read(K_PREFIX_MAP, {}).items() if v}

    def load_prefix_index(self) -> dict[str, str]:
        return {str(k).upper(): str(v) for k, v in self._read(K_PREFIX_INDEX, {}).items() if v}

    def load_projects(self) -> list[dict[str, Any]]:
        return [p for p in self._read(K_PROJECTS, []) if isinstance(p, dict) and p.get("id") is not None]

    def load_known_projects(self) -> dict[str, dict[str, str]]:
        return {str(p["id"]): {"id": str(p["id"]), "name": str(p.get("name") or "")} for p in self.load_projects()}

    def load_statuses(self) -> list[str]:
        return [str(s) for s in self._read(K_STATUSES, [])]

    def load_assignees(self) -> list[dict[str, Any]]:
        return [a for a in self._read(K_ASSIGNEES, []) if isinstance(a, dict)]

    def load_change_ids(self) -> ChangeSet:
        return ChangeSet(
            new=[str(x) for x in self._read(K_NEW_IDS, [])],
            updated=[str(x) for x in self._read(K_UPDATED_IDS, [])],
        )

    def load_changed_ids(self) -> list[str]:
        return [str(x) for x in self._read(K_CHANGED_IDS, [])]

    def last_updated(self) -> str | None:
        return self.blobs.get(K_LAST_UPDATED) or None

    def task_count(self) -> int:
        return self._read_int(K_TASK_COUNT)

    def assigned_count(self) -> int:
        return self._read_int(K_ASSIGNED_COUNT)

    def current_person_id(self) -> str | None:
        return (self.blobs.get(K_PERSON_ID) or "").strip() or None

    # writer
    def save_snapshot(
        self,
        *,
        tasks: list[Task],
        prefix_map: Mapping[str, str],
        prefix_index: Mapping[str, str],
        statuses: Iterable[str],
        assignees: list[dict[str, Any]],
        projects: list[dict[str, Any]],
        changes: ChangeSet,
        person_id: str,
        assigned_count: int,
        last_updated: str,
    ) -> list[str]:
        """Independent per-key writes; a crash part way leaves older blobs in place."""
        values = {
            K_TASKS: _dumps(tasks),
            K_PREFIX_MAP: _dumps(dict(prefix_map)),
            K_PREFIX_INDEX: _dumps(dict(prefix_index)),
            K_STATUSES: _dumps(sorted(set(statuses))),
            K_ASSIGNEES: _dumps(assignees),
            K_PROJECTS: _dumps(projects),
            K_NEW_IDS: _dumps(changes.new),
            K_UPDATED_IDS: _dumps(changes.updated),
            K_CHANGED_IDS: _dumps(changes.changed),
            K_PERSON_ID: str(person_id),
            K_TASK_COUNT: str(len(tasks)),
            K_ASSIGNED_COUNT: str(int(assigned_count)),
            K_LAST_UPDATED: last_updated,
        }
        for key in SNAPSHOT_KEYS:
            self.blobs.put(key, values[key])
        return list(SNAPSHOT_KEYS)

    # single-flight lock
    def lock_age(self, now: float | None = None) -> float | None:
        raw = (self.blobs.get(K_LOCK) or "").strip()
        try:
            ts = float(raw)
        except ValueError:
            return None
        return max(0.0, (now if now is not None else time.time()) - ts)

    def take_lock(self, now: float | None = None) -> None:
        self.blobs.put(K_LOCK, f"{now if now is not None else time.time():.3f}")

    def release_lock(self) -> None:
        self.blobs.delete(K_LOCK)
