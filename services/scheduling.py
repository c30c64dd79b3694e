# services/scheduling.py
# TaskBrowse - background scheduler that triggers periodic syncs
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import random
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tb_platform.errors import SyncInProgress

DEFAULT_SCHEDULING: dict[str, Any] = {
    "enabled": True,
    "mode": "hourly",
    "every_n_hours": 1,
    "daily_time": "03:30",
    "timezone": "",
    "jitter_seconds": 0,
}

MODES = ("hourly", "every_n_hours", "daily_time", "disabled")
_FAR_FUTURE = timedelta(days=365 * 100)


def _now_ts() -> int:
    return int(time.time())


def _now_local_naive() -> datetime:
    return datetime.now()


def _tz_from_cfg(sch: dict[str, Any]) -> ZoneInfo | None:
    name = (sch.get("timezone") or "").strip()
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def _apply_jitter(dt_local: datetime, sch: dict[str, Any]) -> datetime:
    try:
        js = int(sch.get("jitter_seconds") or 0)
    except (TypeError, ValueError):
        js = 0
    if js <= 0:
        return dt_local
    return dt_local + timedelta(seconds=random.randint(0, js))


def _parse_hhmm(val: str) -> tuple[int, int] | None:
    try:
        hh, mm = map(int, (val or "").strip().split(":"))
    except ValueError:
        return None
    if 0 <= hh <= 23 and 0 <= mm <= 59:
        return hh, mm
    return None


def _to_local_naive(dt_tzaware: datetime) -> datetime:
    return dt_tzaware.astimezone().replace(tzinfo=None)


def merge_defaults(s: dict[str, Any] | None) -> dict[str, Any]:
    out = dict(DEFAULT_SCHEDULING)
    if isinstance(s, dict):
        for k, v in s.items():
            if v is not None:
                out[k] = v
    mode = str(out.get("mode") or "disabled").lower()
    out["mode"] = mode if mode in MODES else "disabled"
    return out


def compute_next_run(now: datetime, sch: dict[str, Any]) -> datetime:
    """Next slot as a naive local datetime. Disabled schedules return a far-future time."""
    mode = (sch.get("mode") or "disabled").lower()
    if not sch.get("enabled") or mode == "disabled":
        return now + _FAR_FUTURE

    tz = _tz_from_cfg(sch)

    if mode == "hourly":
        if tz is not None:
            now_tz = datetime.now(tz)
            nxt_tz = now_tz.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
            return _apply_jitter(_to_local_naive(nxt_tz), sch)
        base = now.replace(minute=0, second=0, microsecond=0)
        return _apply_jitter(base + timedelta(hours=1), sch)

    if mode == "every_n_hours":
        try:
            n = max(1, int(sch.get("every_n_hours") or 1))
        except (TypeError, ValueError):
            n = 1
        anchor = now.replace(second=0, microsecond=0)
        return _apply_jitter(anchor + timedelta(hours=n), sch)

    if mode == "daily_time":
        hh, mm = _parse_hhmm((sch.get("daily_time") or "").strip()) or (3, 30)
        if tz is not None:
            base_tz = datetime.now(tz)
            today = base_tz.replace(hour=hh, minute=mm, second=0, microsecond=0)
            nxt_tz = today if today > base_tz else today + timedelta(days=1)
            return _apply_jitter(_to_local_naive(nxt_tz), sch)
        today = now.replace(hour=hh, minute=mm, second=0, microsecond=0)
        nxt = today if today > now else today + timedelta(days=1)
        return _apply_jitter(nxt, sch)

    return now + _FAR_FUTURE


class SyncScheduler:
    def __init__(
        self,
        load_config: Callable[[], dict[str, Any]],
        run_sync_fn: Callable[[], Any],
        is_sync_running_fn: Callable[[], bool] | None = None,
        log_fn: Callable[..., Any] | None = None,
    ) -> None:
        self.load_config_cb = load_config
        self.run_sync_fn = run_sync_fn
        self.is_sync_running_fn = is_sync_running_fn or (lambda: False)
        self.log_fn = log_fn

        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._poke = threading.Event()
        self._lock = threading.Lock()

        self._status: dict[str, Any] = {
            "running": False,
            "last_tick": 0,
            "last_run_ok": None,
            "last_run_at": 0,
            "next_run_at": 0,
            "next_run_iso": "",
            "last_error": "",
            "last_summary": None,
            "effective_mode": "",
        }
        self._next_ts: int = 0
        self._cfg_key: str = ""
        self._last_logged_next: int = 0

    def _log(self, msg: str, *, level: str = "INFO") -> None:
        if self.log_fn:
            self.log_fn(msg, level=level)

    def _get_sched_cfg(self) -> dict[str, Any]:
        cfg = self.load_config_cb() or {}
        return merge_defaults(cfg.get("scheduling") or {})

    @staticmethod
    def _effective(sch: dict[str, Any]) -> dict[str, Any]:
        if sch.get("enabled") and sch.get("mode") != "disabled":
            return {"enabled": True, "mode": sch["mode"]}
        return {"enabled": False, "mode": "disabled"}

    def status(self) -> dict[str, Any]:
        with self._lock:
            st = dict(self._status)
        cfg = self._get_sched_cfg()
        st["config"] = cfg
        st["effective"] = self._effective(cfg)
        return st

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._poke.clear()
        self._thread = threading.Thread(target=self._loop, name="SyncScheduler", daemon=True)
        self._thread.start()
        self._log("scheduler thread started")

    def stop(self) -> None:
        self._stop.set()
        self._poke.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=3.0)
        self._log("scheduler thread stopped")

    def refresh(self) -> None:
        self._poke.set()
        if not self._thread or not self._thread.is_alive():
            self.start()

    def record(self, ok: bool, *, error: str = "", summary: dict[str, Any] | None = None) -> None:
        with self._lock:
            self._status["last_run_ok"] = ok
            self._status["last_run_at"] = _now_ts()
            self._status["last_error"] = error
            if summary is not None:
                self._status["last_summary"] = summary

    def trigger(self) -> bool:
        """Run one scheduled sync now. Errors are recorded; the next slot is the retry."""
        if self.is_sync_running_fn():
            self._log("trigger skipped: sync already running")
            return False
        try:
            summary = self.run_sync_fn()
        except SyncInProgress as e:
            self._log(f"trigger skipped: {e}")
            return False
        except Exception as e:
            self.record(False, error=str(e))
            self._log(f"scheduled sync failed: {e}", level="ERROR")
            return False
        self.record(True, summary=summary if isinstance(summary, dict) else None)
        self._log("scheduled sync ok", level="SUCCESS")
        return True

    def _update_next(self, nxt: datetime | None, *, effective_mode: str) -> None:
        with self._lock:
            self._status["effective_mode"] = effective_mode
            if nxt is None:
                self._status["next_run_at"] = 0
                self._status["next_run_iso"] = ""
                return
            ts = int(nxt.timestamp())
            self._status["next_run_at"] = ts
            self._status["next_run_iso"] = datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

        if abs(ts - self._last_logged_next) >= 60:
            self._last_logged_next = ts
            self._log(f"next run scheduled at {self._status['next_run_iso']}")

    def _loop(self) -> None:
        with self._lock:
            self._status["running"] = True
        try:
            while not self._stop.is_set():
                with self._lock:
                    self._status["last_tick"] = _now_ts()

                sch = self._get_sched_cfg()
                eff = self._effective(sch)
                if not eff["enabled"]:
                    self._update_next(None, effective_mode="disabled")
                    self._next_ts, self._cfg_key = 0, ""
                    self._sleep_or_poke(1.0)
                    continue

                key = "|".join(str(sch.get(k) or "") for k in ("mode", "every_n_hours", "daily_time", "timezone", "jitter_seconds"))
                if self._next_ts <= 0 or key != self._cfg_key:
                    self._next_ts = int(compute_next_run(_now_local_naive(), sch).timestamp())
                    self._cfg_key = key
                nxt = datetime.fromtimestamp(self._next_ts)
                self._update_next(nxt, effective_mode=eff["mode"])

                if _now_ts() >= self._next_ts:
                    if self.is_sync_running_fn():
                        self._log("sync is busy; delaying scheduled run")
                        self._sleep_or_poke(2.0)
                        continue
                    self.trigger()
                    self._next_ts = int(compute_next_run(_now_local_naive(), sch).timestamp())
                    self._sleep_or_poke(0.5)
                    continue

                remaining = max(0.0, self._next_ts - time.time())
                self._sleep_or_poke(min(30.0, remaining if remaining > 0 else 0.5))
        finally:
            with self._lock:
                self._status["running"] = False

    def _sleep_or_poke(self, seconds: float) -> None:
        if seconds <= 0:
            return
        self._poke.wait(timeout=seconds)
        self._poke.clear()
