# services/__init__.py
from __future__ import annotations

from . import scheduling, search, tasks

__all__ = ["scheduling", "search", "tasks"]
