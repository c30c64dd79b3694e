# tb_platform/orchestrator/facade.py
# orchestrator facade: one full sync pass from Productive into the snapshot.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import datetime as dt
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import requests

from _logging import log as BASE_LOG
from ..blob_store import BlobStore
from ..errors import ConfigError, SyncCancelled, SyncInProgress
from ..identity import Identity, resolve_identity
from ..productive import ProductiveClient, client_from_config
from ._logging import Emitter
from ._paginator import SideTables, fetch_all_pages, to_task
from ._planner import detect_changes, sort_by_id_desc, stamp_keys
from ._prefixes import build_prefixes
from ._state_store import SnapshotStore
from ._tombstones import carry_forward, count_tombstones, is_tombstone
from ._types import SyncSummary, Task

__all__ = ["Orchestrator", "sync_running", "DEFAULT_FILTERS"]

DEFAULT_FILTERS = ("subscriber_id", "assignee_id")

_LOG = BASE_LOG.child("SYNC")

# one sync per process; the sync_lock blob covers other processes
_RUN_LOCK = threading.Lock()


def sync_running() -> bool:
    return _RUN_LOCK.locked()


def _utc_now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _by_name(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return sorted(rows, key=lambda r: (str(r.get("name") or "").casefold(), str(r.get("id") or "")))


@dataclass
class Orchestrator:
    config: Mapping[str, Any]
    store: BlobStore
    on_progress: Callable[[str], None] | None = None
    client: ProductiveClient | None = None
    session: requests.Session | None = None

    snapshots: SnapshotStore = field(init=False)
    emitter: Emitter = field(init=False)
    debug: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self.cfg: dict[str, Any] = dict(self.config or {})
        self.scfg: dict[str, Any] = dict(self.cfg.get("sync") or {})
        rt = dict(self.cfg.get("runtime") or {})
        self.debug = bool(rt.get("debug", False))

        self.snapshots = SnapshotStore(self.store)
        self.emitter = Emitter(self.on_progress)
        self.emit = self.emitter.emit
        self.dbg = lambda *a, **k: self.emitter.dbg(self.debug, *a, **k)

    # Main run
    def run(
        self,
        *,
        progress: Callable[[str], None] | None = None,
        cancel: threading.Event | None = None,
    ) -> dict[str, Any]:
        prev_cb = self.emitter.cb
        if progress is not None:
            self.emitter.cb = progress
        try:
            if not bool(self.scfg.get("single_flight", True)):
                return self._run_once(cancel).as_dict()
            return self._run_guarded(cancel).as_dict()
        finally:
            self.emitter.cb = prev_cb

    def _run_guarded(self, cancel: threading.Event | None) -> SyncSummary:
        if not _RUN_LOCK.acquire(blocking=False):
            raise SyncInProgress()
        try:
            ttl = float(self.scfg.get("lock_ttl_sec") or 900)
            age = self.snapshots.lock_age()
            if age is not None and age < ttl:
                raise SyncInProgress(f"Sync already running (lock held for {int(age)}s)")
            if age is not None:
                _LOG.warn(f"taking over stale sync lock ({int(age)}s old)")
            self.snapshots.take_lock()
            try:
                return self._run_once(cancel)
            finally:
                self.snapshots.release_lock()
        finally:
            _RUN_LOCK.release()

    def _client(self) -> ProductiveClient:
        if self.client is None:
            self.client = client_from_config(self.cfg, self.session)
        return self.client

    def _filters(self) -> list[str]:
        return [str(f) for f in (self.scfg.get("filters") or DEFAULT_FILTERS)]

    def _fetch(self, client: ProductiveClient, ident: Identity, tables: SideTables, cancel: threading.Event | None) -> dict[str, Any]:
        raw_by_id: dict[str, Any] = {}
        for dim in self._filters():
            rows = fetch_all_pages(
                client,
                str(dim),
                ident.person_id,
                tables,
                page_size=int(self.scfg.get("page_size") or 200),
                max_pages=int(self.scfg.get("max_pages") or 25),
                emit=self.emit,
                cancel=cancel,
            )
            before = len(raw_by_id)
            for r in rows:
                raw_by_id.setdefault(str(r["id"]), r)
            self.dbg("fetch.dimension", dim=dim, rows=len(rows), added=len(raw_by_id) - before)
        return raw_by_id

    def _projects(self, tasks: list[Task], tables: SideTables) -> list[dict[str, str]]:
        # known (persisted) < referenced by tasks < seen this pass
        projects = self.snapshots.load_known_projects()
        for t in tasks:
            pid = t.get("projectId")
            if pid and str(pid) not in projects and t.get("project") not in (None, "", "No Project"):
                projects[str(pid)] = {"id": str(pid), "name": str(t["project"])}
        projects.update(tables.projects)
        return list(projects.values())

    def _run_once(self, cancel: threading.Event | None) -> SyncSummary:
        pcfg = dict(self.cfg.get("productive") or {})
        if not str(pcfg.get("api_token") or "").strip():
            raise ConfigError("PRODUCTIVE_API_TOKEN not configured")

        mode = str(self.scfg.get("prefix_mode") or "ledger")
        self.emit("sync:start", filters=self._filters(), prefixMode=mode)
        _LOG.info("sync started", extra={"mode": mode})

        client = self._client()
        ident = resolve_identity(self.cfg, client, self.store)
        self.emit("sync:identity", orgId=ident.org_id, orgSlug=ident.org_slug, personId=ident.person_id)

        prior = self.snapshots.load_tasks()
        tables = SideTables()
        raw_by_id = self._fetch(client, ident, tables, cancel)

        app_base = str(pcfg.get("app_base") or "https://app.productive.io")
        fresh = {
            tid: to_task(raw, tables, app_base=app_base, org_id=ident.org_id, org_slug=ident.org_slug)
            for tid, raw in raw_by_id.items()
        }
        merged = carry_forward(fresh, prior)
        tasks = sort_by_id_desc(merged.values())
        tombs = count_tombstones(tasks)
        self.emit("sync:merge", fetched=len(fresh), tombstoned=tombs, total=len(tasks))

        prefix_map, prefix_index = build_prefixes(
            mode,
            self._projects(tasks, tables),
            ledger=self.snapshots.load_prefix_map(),
            min_length=int(self.scfg.get("prefix_min_length") or 4),
        )
        stamp_keys(tasks, prefix_map)
        changes = detect_changes(tasks, prior)

        if cancel is not None and cancel.is_set():
            raise SyncCancelled("sync cancelled before persist")

        projects = self._projects(tasks, tables)
        filter_projects = _by_name(
            [{"id": p["id"], "name": p["name"], "prefix": prefix_map.get(p["id"], "UNKN")} for p in projects]
        )
        assignees = _by_name([{"id": pid, "name": name} for pid, name in tables.people.items()])
        assigned = sum(1 for t in tasks if t.get("assigneeId") == ident.person_id and not is_tombstone(t))
        last_updated = _utc_now_iso()

        written = self.snapshots.save_snapshot(
            tasks=tasks,
            prefix_map=prefix_map,
            prefix_index=prefix_index,
            statuses=(str(t.get("status") or "Unknown") for t in tasks),
            assignees=assignees,
            projects=filter_projects,
            changes=changes,
            person_id=ident.person_id,
            assigned_count=assigned,
            last_updated=last_updated,
        )
        self.emit("sync:persist", keys=len(written))

        summary = SyncSummary(
            task_count=len(tasks),
            active_count=len(tasks) - tombs,
            deleted_count=tombs,
            assigned_count=assigned,
            project_count=len(prefix_map),
            changes=changes,
            prefixes=prefix_map,
            last_updated=last_updated,
        )
        self.emit("sync:done", **summary.as_dict())
        _LOG.success(
            f"sync done: {summary.task_count} tasks ({summary.active_count} active, {tombs} deleted)",
            extra={"new": len(changes.new), "updated": len(changes.updated)},
        )
        return summary
