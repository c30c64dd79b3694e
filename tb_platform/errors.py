# tb_platform/errors.py
# TaskBrowse - error taxonomy shared by the sync engine and the HTTP shell
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    "TaskBrowseError",
    "ConfigError",
    "UpstreamError",
    "NotFoundError",
    "NotInitializedError",
    "SyncCancelled",
    "SyncInProgress",
]


class TaskBrowseError(Exception):
    status_code: int = 500


class ConfigError(TaskBrowseError):
    """Missing credentials or unusable configuration. Not retried."""

    status_code = 500


class UpstreamError(TaskBrowseError):
    """Non-2xx (or unreachable) upstream API response; aborts the sync pass."""

    status_code = 502

    def __init__(self, status: int, body: str = "", url: str = "") -> None:
        self.status = int(status or 0)
        self.body = body or ""
        self.url = url or ""
        super().__init__(f"API error {self.status}: {self.body}" if self.status else f"API unreachable: {self.body}")


class NotFoundError(TaskBrowseError):
    status_code = 404

    def __init__(self, message: str, known_prefixes: Iterable[str] = ()) -> None:
        self.known_prefixes = sorted({str(p) for p in known_prefixes})
        super().__init__(message)


class NotInitializedError(TaskBrowseError):
    status_code = 503

    def __init__(self, message: str = "Database not initialized. Please trigger /update first.") -> None:
        super().__init__(message)


class SyncCancelled(TaskBrowseError):
    status_code = 499


class SyncInProgress(TaskBrowseError):
    status_code = 409

    def __init__(self, message: str = "Sync already running") -> None:
        super().__init__(message)
