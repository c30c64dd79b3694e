# tb_platform/config_base.py
# TaskBrowse - configuration base (paths, defaults, load/save)
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import copy
import json
import os
import secrets
import threading
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config and state files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in a container that mounts /config)
      3) Project root (one level up from this package)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- Upstream (Productive.io) -------------------------------------------
    "productive": {
        "api_token": "",                                # X-Auth-Token (required). Env: PRODUCTIVE_API_TOKEN
        "org_id": "",                                   # Organization id. Empty = detect via API and cache
        "org_slug": "",                                 # Organization slug used in task deep links
        "person_id": "",                                # Current user's person id. Empty = detect via API and cache
        "api_base": "https://api.productive.io/api/v2", # REST base
        "app_base": "https://app.productive.io",        # Web app base for task links
        "timeout": 15.0,                                # HTTP timeout (seconds)
    },

    # --- Sync ----------------------------------------------------------------
    "sync": {
        "page_size": 200,                               # Tasks per page
        "max_pages": 25,                                # Safety cap per filter dimension (25 x 200 = 5000 tasks)
        "filters": ["subscriber_id", "assignee_id"],    # Filter dimensions fetched with the person id
        "prefix_min_length": 4,                         # Shortest project prefix (PRIM-242)
        "prefix_mode": "ledger",                        # "ledger" = assign once, keep forever; "recompute" = rebuild from all names every sync
        "single_flight": True,                          # Refuse a sync while another one holds the lock
        "lock_ttl_sec": 900,                            # Stale lock age after which a new sync may proceed
    },

    # --- Scheduling ----------------------------------------------------------
    "scheduling": {
        "enabled": True,                                # Master toggle for periodic syncs
        "mode": "hourly",                               # "hourly" | "every_n_hours" | "daily_time" | "disabled"
        "every_n_hours": 1,                             # When mode=every_n_hours
        "daily_time": "03:30",                          # When mode=daily_time (HH:MM, 24h)
        "timezone": "",                                 # Optional IANA zone for hourly/daily alignment
        "jitter_seconds": 0,                            # Random delay added to each slot
    },

    # --- Runtime / Diagnostics ----------------------------------------------
    "runtime": {
        "debug": False,                                 # Extra verbose logging (debug level)
        "debug_http": False,                            # uvicorn access log
        "state_dir": "",                                # Optional override for the blob store dir (defaults to CONFIG/state)
        "display_timezone": "Australia/Sydney",         # Zone for "last updated" on the search page
        "log_json": "",                                 # Optional path for JSON-lines log output
    },
}

# Env vars that override config values on load (never persisted)
ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "PRODUCTIVE_API_TOKEN": ("productive", "api_token"),
    "PRODUCTIVE_ORG_ID": ("productive", "org_id"),
    "PRODUCTIVE_ORG_SLUG": ("productive", "org_slug"),
    "PRODUCTIVE_PERSON_ID": ("productive", "person_id"),
}


# ------------------------------------------------------------
# Helpers: paths, IO, merging
# ------------------------------------------------------------
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"

def config_path() -> Path:
    return _cfg_file()


def state_dir(cfg: Dict[str, Any] | None = None) -> Path:
    rt = ((cfg or {}).get("runtime") or {})
    override = str(rt.get("state_dir") or "").strip()
    return Path(override) if override else CONFIG_BASE() / "state"


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)  # type: ignore[assignment]
        else:
            out[k] = v
    return out


def _apply_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        val = (os.getenv(env_name) or "").strip()
        if val:
            cfg.setdefault(section, {})[key] = val
    return cfg


def _normalize_sync(cfg: Dict[str, Any]) -> None:
    s = cfg.get("sync")
    if not isinstance(s, dict):
        cfg["sync"] = copy.deepcopy(DEFAULT_CFG["sync"])
        return
    try:
        s["page_size"] = max(1, int(s.get("page_size") or 200))
    except (TypeError, ValueError):
        s["page_size"] = 200
    try:
        s["max_pages"] = max(1, int(s.get("max_pages") or 25))
    except (TypeError, ValueError):
        s["max_pages"] = 25
    try:
        s["prefix_min_length"] = max(1, int(s.get("prefix_min_length") or 4))
    except (TypeError, ValueError):
        s["prefix_min_length"] = 4
    mode = str(s.get("prefix_mode") or "ledger").strip().lower()
    s["prefix_mode"] = mode if mode in ("ledger", "recompute") else "ledger"
    filters = s.get("filters")
    if isinstance(filters, str):
        filters = [filters]
    if not isinstance(filters, list) or not filters:
        filters = list(DEFAULT_CFG["sync"]["filters"])
    s["filters"] = [str(f).strip() for f in filters if str(f).strip()]


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Read config.json, merge over defaults, then apply env overrides.
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except (OSError, ValueError):
            user_cfg = {}

    cfg = _deep_merge(DEFAULT_CFG, user_cfg if isinstance(user_cfg, dict) else {})
    _normalize_sync(cfg)
    return _apply_env(cfg)


def save_config(cfg: Dict[str, Any]) -> None:
    """
    Write to config.json. Values coming from env overrides are written as-is
    only if they were already part of the file.
    """
    data = copy.deepcopy(dict(cfg or {}))
    p = _cfg_file()
    on_disk: Dict[str, Any] = {}
    if p.exists():
        try:
            on_disk = _read_json(p)
        except (OSError, ValueError):
            on_disk = {}
    for env_name, (section, key) in ENV_OVERRIDES.items():
        if not (os.getenv(env_name) or "").strip():
            continue
        prev = ((on_disk.get(section) or {}) if isinstance(on_disk.get(section), dict) else {}).get(key, "")
        if isinstance(data.get(section), dict):
            data[section][key] = prev
    _write_json_atomic(p, data)
