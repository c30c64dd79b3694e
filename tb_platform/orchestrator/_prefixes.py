# tb_platform/orchestrator/_prefixes.py
# short project prefixes (PRIM in PRIM-242) for the orchestrator.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Mapping
from typing import Any, AbstractSet

__all__ = [
    "generate_prefix",
    "generate_all_prefixes",
    "extend_prefix_ledger",
    "build_prefixes",
    "sort_projects",
    "PREFIX_MODES",
]

PREFIX_MODES = ("ledger", "recompute")

_NON_ALPHA = re.compile(r"[^A-Za-z]+")

PrefixMaps = tuple[dict[str, str], dict[str, str]]


def _alpha(name: Any) -> str:
    return _NON_ALPHA.sub("", str(name or "")).upper()


def generate_prefix(name: str, existing: AbstractSet[str], min_length: int = 4) -> str:
    alpha = _alpha(name)
    n = max(1, int(min_length))

    if not alpha:
        i = len(existing) + 1
        while f"PROJ{i}" in existing:
            i += 1
        return f"PROJ{i}"

    for size in range(n, len(alpha) + 1):
        cand = alpha[:size]
        if cand not in existing:
            return cand

    # every truncation taken (or name shorter than min_length)
    base = alpha[:n]
    i = 2
    while f"{base}{i}" in existing:
        i += 1
    return f"{base}{i}"


def _name_key(p: Mapping[str, Any]) -> tuple[str, str, str]:
    name = str(p.get("name") or "")
    folded = unicodedata.normalize("NFKD", name).casefold()
    return (folded, name, str(p.get("id") or ""))


def sort_projects(projects: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return sorted((p for p in projects if p.get("id") is not None), key=_name_key)


def generate_all_prefixes(projects: Iterable[Mapping[str, Any]], min_length: int = 4) -> PrefixMaps:
    """Assign prefixes to the whole project set from scratch.

    Projects are ordered by name first, so the result depends on the set of
    names only. A newly added project that sorts earlier can still shift the
    prefixes of later projects whose short truncations it takes.
    """
    prefix_map: dict[str, str] = {}
    prefix_index: dict[str, str] = {}
    taken: set[str] = set()

    for p in sort_projects(projects):
        pid = str(p["id"])
        if pid in prefix_map:
            continue
        prefix = generate_prefix(str(p.get("name") or ""), taken, min_length)
        prefix_map[pid] = prefix
        prefix_index[prefix] = pid
        taken.add(prefix)

    return prefix_map, prefix_index


def extend_prefix_ledger(
    ledger: Mapping[str, str] | None,
    projects: Iterable[Mapping[str, Any]],
    min_length: int = 4,
) -> PrefixMaps:
    """Append-only assignment: known projects keep their prefix forever,
    unseen projects get one computed against what is already taken."""
    prefix_map: dict[str, str] = {}
    prefix_index: dict[str, str] = {}

    for pid, prefix in (ledger or {}).items():
        pid_s, pre = str(pid), str(prefix or "").strip().upper()
        if not pre or pre in prefix_index:
            continue
        prefix_map[pid_s] = pre
        prefix_index[pre] = pid_s

    taken = set(prefix_index)
    for p in sort_projects(projects):
        pid = str(p["id"])
        if pid in prefix_map:
            continue
        prefix = generate_prefix(str(p.get("name") or ""), taken, min_length)
        prefix_map[pid] = prefix
        prefix_index[prefix] = pid
        taken.add(prefix)

    return prefix_map, prefix_index


def build_prefixes(
    mode: str,
    projects: Iterable[Mapping[str, Any]],
    *,
    ledger: Mapping[str, str] | None = None,
    min_length: int = 4,
) -> PrefixMaps:
    m = str(mode or "ledger").strip().lower()
    if m == "recompute":
        return generate_all_prefixes(projects, min_length)
    if m != "ledger":
        raise ValueError(f"unknown prefix mode: {mode!r}")
    return extend_prefix_ledger(ledger, projects, min_length)
