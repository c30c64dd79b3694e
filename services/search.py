# services/search.py
# TaskBrowse - ticket query parsing, search and list filters
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, timedelta
from typing import Any

from tb_platform.orchestrator._planner import sort_by_id_desc
from tb_platform.orchestrator._tombstones import is_tombstone

__all__ = ["parse_search_query", "search_tasks", "filter_tasks", "DUE_FILTERS"]

_SEP = re.compile(r"[-_\s]+")
# "prim 242" / "proj1 12" need the separator once the prefix carries digits
_KEY_RE = re.compile(r"^(?:([a-z]+\d*)\s+|([a-z]+))(\d+)$")
_FUZZY_FIELDS = ("ticketKey", "title", "status", "assignee", "project")

DUE_FILTERS = ("overdue", "today", "week", "none", "any")

Task = dict[str, Any]


def normalize_query(q: str | None) -> str:
    return _SEP.sub(" ", str(q or "").strip().lower()).strip()


def parse_search_query(q: str | None) -> dict[str, Any]:
    """'PRIM-242' / 'prim 242' -> {prefix, number}; '242' -> {number}; else {text}."""
    norm = normalize_query(q)
    if not norm:
        return {"text": ""}
    m = _KEY_RE.match(norm)
    if m:
        return {"prefix": (m.group(1) or m.group(2)).upper(), "number": int(m.group(3))}
    if norm.isdigit():
        return {"number": int(norm)}
    return {"text": norm}


def _same_number(task: Mapping[str, Any], number: int) -> bool:
    return str(task.get("ticketNumber")) == str(number)


def _fuzzy_hit(task: Mapping[str, Any], q: str) -> bool:
    if q in str(task.get("ticketNumber") if task.get("ticketNumber") is not None else ""):
        return True
    nq = normalize_query(q)
    if nq and nq in normalize_query(task.get("ticketKey")):
        return True
    return any(q in str(task.get(f) or "").lower() for f in _FUZZY_FIELDS)


def search_tasks(tasks: Sequence[Task], prefix_index: Mapping[str, str], query: str | None) -> list[Task]:
    if not str(query or "").strip():
        return sort_by_id_desc(tasks)

    parsed = parse_search_query(query)

    if "prefix" in parsed:
        pid = prefix_index.get(parsed["prefix"])
        if pid:
            hits = [t for t in tasks if str(t.get("projectId")) == str(pid) and _same_number(t, parsed["number"])]
            if hits:
                return hits
    elif "number" in parsed:
        hits = [t for t in tasks if _same_number(t, parsed["number"])]
        if hits:
            return hits

    q = parsed.get("text") or str(query).strip().lower()
    return sort_by_id_desc(t for t in tasks if _fuzzy_hit(t, q))


def _due(task: Mapping[str, Any]) -> date | None:
    raw = str(task.get("dueDate") or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def _due_matches(d: date | None, mode: str, today: date) -> bool:
    if mode == "none":
        return d is None
    if d is None:
        return False
    if mode == "overdue":
        return d < today
    if mode == "today":
        return d == today
    if mode == "week":
        return today <= d <= today + timedelta(days=6)
    return True


def filter_tasks(
    tasks: Iterable[Task],
    *,
    project: str | None = None,
    status: str | None = None,
    assignee: str | None = None,
    due: str | None = None,
    changed_ids: Iterable[str] | None = None,
    include_deleted: bool = True,
    current_person_id: str | None = None,
    today: date | None = None,
) -> list[Task]:
    """Apply list filters; every argument left as None is a no-op. Input order is kept."""
    due_mode = (due or "").strip().lower() or None
    if due_mode is not None and due_mode not in DUE_FILTERS:
        raise ValueError(f"unknown due filter: {due!r}")
    today = today or date.today()

    proj = (project or "").strip() or None
    stat = (status or "").strip().lower() or None
    who = (assignee or "").strip() or None
    if who and who.lower() == "me":
        who = current_person_id or "\0"
    changed = {str(x) for x in changed_ids} if changed_ids is not None else None

    out: list[Task] = []
    for t in tasks:
        if not include_deleted and is_tombstone(t):
            continue
        if proj and str(t.get("projectId")) != proj and str(t.get("projectPrefix") or "").upper() != proj.upper():
            continue
        if stat and str(t.get("status") or "").lower() != stat:
            continue
        if who:
            if who.lower() == "unassigned":
                if t.get("assigneeId"):
                    continue
            elif str(t.get("assigneeId")) != who:
                continue
        if due_mode and not _due_matches(_due(t), due_mode, today):
            continue
        if changed is not None and str(t.get("id")) not in changed:
            continue
        out.append(t)
    return out
