# _logging.py
# TaskBrowse - structured logger with colored console output and optional JSON file output.
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations
import datetime, json, os, sys, threading, time
from typing import Any, Optional, TextIO, Mapping, Dict

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# display tag -> (severity, color)
TAGS: Dict[str, tuple[str, str]] = {
    "DEBUG": ("debug", YELLOW),
    "INFO": ("info", BLUE),
    "WARN": ("warn", YELLOW),
    "ERROR": ("error", RED),
    "SUCCESS": ("info", GREEN),
}

# ── runtime debug gate (config runtime.debug or TB_DEBUG, cached briefly) ──
_DEBUG_CACHE: Dict[str, Any] = {"ts": 0.0, "val": False}

def _debug_enabled() -> bool:
    if (os.getenv("TB_DEBUG") or "").strip().lower() in ("1", "true", "yes", "on"):
        return True
    now = time.time()
    if (now - _DEBUG_CACHE["ts"]) > 5.0:
        try:
            from tb_platform.config_base import load_config
            rt = (load_config().get("runtime") or {})
            _DEBUG_CACHE["val"] = bool(rt.get("debug"))
        except (ImportError, OSError, ValueError):
            _DEBUG_CACHE["val"] = False
        _DEBUG_CACHE["ts"] = now
    return bool(_DEBUG_CACHE["val"])


class _Sink:
    """Output state shared by a logger and every child bound from it."""

    def __init__(self, stream: TextIO, level: str, use_color: bool, show_time: bool):
        self.stream = stream
        self.level_no = LEVELS.get(level, 20)
        self.use_color = use_color and not os.getenv("NO_COLOR")
        self.show_time = show_time
        self.json_stream: Optional[TextIO] = None
        self.lock = threading.Lock()

    def write(self, line: str, record: Optional[Dict[str, Any]]) -> None:
        with self.lock:
            self.stream.write(line + "\n")
            self.stream.flush()
            if self.json_stream is not None and record is not None:
                self.json_stream.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
                self.json_stream.flush()


class Logger:
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        use_color: bool = True,
        show_time: bool = True,
        *,
        _sink: Optional[_Sink] = None,
        _context: Optional[Dict[str, Any]] = None,
    ):
        self._sink = _sink or _Sink(stream, level, use_color, show_time)
        self._context: Dict[str, Any] = dict(_context or {})

    # Configuration (applies to the whole family of bound loggers)
    def set_level(self, level: str) -> None:
        self._sink.level_no = LEVELS.get(level, self._sink.level_no)

    def enable_json(self, file_path: str) -> None:
        old = self._sink.json_stream
        self._sink.json_stream = open(file_path, "a", encoding="utf-8")
        if old is not None:
            old.close()

    @property
    def level_name(self) -> str:
        return next((k for k, v in LEVELS.items() if v == self._sink.level_no), "info")

    # Context
    def bind(self, **ctx: Any) -> "Logger":
        return Logger(_sink=self._sink, _context={**self._context, **ctx})

    def child(self, name: str) -> "Logger":
        return self.bind(module=name)

    # "[ts] [MODULE] LEVEL message k=v"
    def _line(self, tag: str, msg: str, extra: Optional[Mapping[str, Any]]) -> str:
        sink = self._sink
        color = TAGS.get(tag, ("info", ""))[1] if sink.use_color else ""
        parts = []
        if sink.show_time:
            ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            parts.append(f"{DIM}[{ts}]{RESET}" if color else f"[{ts}]")
        if self._context.get("module"):
            parts.append(f"[{self._context['module']}]")
        parts.append(f"{color}{tag}{RESET}" if color else tag)
        parts.append(msg)
        parts.extend(f"{k}={v}" for k, v in (extra or {}).items() if v is not None)
        return " ".join(p for p in parts if p)

    def _emit(self, tag: str, parts: tuple[Any, ...], extra: Optional[Mapping[str, Any]]) -> None:
        severity = TAGS[tag][0]
        sev_no = LEVELS[severity]
        if self._sink.level_no > sev_no and not (severity == "debug" and _debug_enabled()):
            return
        msg = " ".join(str(p) for p in parts)
        record = None
        if self._sink.json_stream is not None:
            record = {
                "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
                "level": tag,
                "msg": msg,
                "ctx": self._context,
            }
            if extra:
                record["extra"] = dict(extra)
        self._sink.write(self._line(tag, msg, extra), record)

    def debug(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("DEBUG", parts, extra)

    def info(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("INFO", parts, extra)

    def warn(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("WARN", parts, extra)

    def error(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("ERROR", parts, extra)

    def success(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("SUCCESS", parts, extra)

    # logger("text", level="WARN") for callers that take a plain log_fn
    def __call__(
        self,
        message: str,
        *,
        level: str = "INFO",
        module: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        target = self.bind(module=module) if module else self
        tag = (level or "INFO").upper()
        tag = "WARN" if tag == "WARNING" else tag
        target._emit(tag if tag in TAGS else "INFO", (message,), extra)

# default instance
log = Logger()

__all__ = ["Logger", "log", "LEVELS", "TAGS", "RESET", "DIM", "RED", "GREEN", "YELLOW", "BLUE"]
