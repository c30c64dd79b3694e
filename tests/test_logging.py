# TaskBrowse test scripts
from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

import _logging
from _logging import Logger


@pytest.fixture()
def quiet_debug(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TB_DEBUG", raising=False)
    monkeypatch.setitem(_logging._DEBUG_CACHE, "ts", float("inf"))
    monkeypatch.setitem(_logging._DEBUG_CACHE, "val", False)


def test_children_follow_parent_level(quiet_debug: None) -> None:
    out = io.StringIO()
    base = Logger(stream=out, use_color=False, show_time=False)
    sync = base.child("SYNC")

    sync.debug("hidden")
    base.set_level("debug")
    sync.debug("page 2", extra={"rows": 200, "skip": None})
    base.set_level("error")
    sync.warn("hidden too")

    assert out.getvalue().splitlines() == ["[SYNC] DEBUG page 2 rows=200"]


def test_json_sink_is_shared_and_callable_adapter_maps_levels(tmp_path: Path, quiet_debug: None) -> None:
    out = io.StringIO()
    base = Logger(stream=out, use_color=False, show_time=False)
    sched = base.child("SCHED")
    base.enable_json(str(tmp_path / "log.jsonl"))

    sched("next run in 5m", level="warning")
    base.success("sync done")

    assert out.getvalue().splitlines() == ["[SCHED] WARN next run in 5m", "SUCCESS sync done"]
    rows = [json.loads(line) for line in (tmp_path / "log.jsonl").read_text("utf-8").splitlines()]
    assert [(r["level"], r["ctx"].get("module")) for r in rows] == [("WARN", "SCHED"), ("SUCCESS", None)]
