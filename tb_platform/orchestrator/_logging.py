# tb_platform/orchestrator/_logging.py
# progress emitter for the orchestrator (JSON lines to an optional callback).
from __future__ import annotations

import json
from typing import Any, Callable

from _logging import log as BASE_LOG

_LOG = BASE_LOG.child("SYNC")


class Emitter:
    def __init__(self, cb: Callable[[str], None] | None):
        self.cb = cb

    def emit(self, event: str, **data: Any) -> None:
        if not self.cb:
            return
        payload = {"event": event}
        payload.update(data)
        try:
            self.cb(json.dumps(payload, separators=(",", ":"), default=str))
        except Exception as e:
            # a broken listener (closed stream) must not abort the sync
            _LOG.warn(f"progress callback failed on {event}: {e}")

    def info(self, line: str) -> None:
        if not self.cb:
            return
        try:
            self.cb(line)
        except Exception as e:
            _LOG.warn(f"progress callback failed: {e}")

    def dbg(self, *args: Any, **fields: Any) -> None:
        if not args:
            return
        if isinstance(args[0], bool):
            enabled = args[0]
            msg = str(args[1]) if len(args) > 1 else ""
            extras = args[2:]
        else:
            enabled = True
            msg = str(args[0])
            extras = args[1:]

        if not enabled:
            return

        if extras:
            msg = " ".join([msg] + [str(x) for x in extras])

        if fields:
            self.emit("debug", msg=msg, **fields)
        else:
            self.info(f"[DEBUG] {msg}")
