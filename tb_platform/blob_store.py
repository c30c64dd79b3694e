# tb_platform/blob_store.py
# TaskBrowse - named blob store (the key-value surface the sync engine persists into)
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import os
import re
import secrets
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

__all__ = ["BlobStore", "FileBlobStore", "MemoryBlobStore"]

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class BlobStore(Protocol):
    """Single-key atomic get/put of string blobs. No cross-key transactions."""

    def get(self, key: str) -> str | None: ...
    def put(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


def _check_key(key: str) -> str:
    k = str(key or "")
    if not _KEY_RE.match(k):
        raise ValueError(f"invalid blob key: {key!r}")
    return k


@dataclass
class FileBlobStore:
    base_path: Path

    def __post_init__(self) -> None:
        self.base_path = Path(self.base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.base_path / f"{_check_key(key)}.blob"

    def get(self, key: str) -> str | None:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            return p.read_text("utf-8")
        except OSError:
            return None

    def put(self, key: str, value: str) -> None:
        p = self._path(key)
        suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
        tmp = p.with_name(p.name + suffix)
        try:
            tmp.write_text(str(value), "utf-8")
            tmp.replace(p)
        finally:
            tmp.unlink(missing_ok=True)

    def delete(self, key: str) -> None:
        p = self._path(key)
        try:
            p.unlink()
        except FileNotFoundError:
            pass

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self.base_path.glob("*.blob"))


@dataclass
class MemoryBlobStore:
    data: dict[str, str] = field(default_factory=dict)
    writes: list[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self.data.get(_check_key(key))

    def put(self, key: str, value: str) -> None:
        with self._lock:
            k = _check_key(key)
            self.data[k] = str(value)
            self.writes.append(k)

    def delete(self, key: str) -> None:
        with self._lock:
            self.data.pop(_check_key(key), None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self.data)
