# TaskBrowse test scripts
from __future__ import annotations

import copy
import json
import sys
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

API = "https://api.example.test/api/v2"
APP = "https://app.example.test"


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    for name in ("PRODUCTIVE_API_TOKEN", "PRODUCTIVE_ORG_ID", "PRODUCTIVE_ORG_SLUG", "PRODUCTIVE_PERSON_ID"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture()
def store():
    from tb_platform.blob_store import MemoryBlobStore

    return MemoryBlobStore()


@pytest.fixture()
def cfg() -> dict[str, Any]:
    from tb_platform.config_base import DEFAULT_CFG

    c = copy.deepcopy(DEFAULT_CFG)
    c["productive"].update(
        {
            "api_token": "tok",
            "org_id": "42",
            "org_slug": "acme",
            "person_id": "7",
            "api_base": API,
            "app_base": APP,
            "timeout": 5,
        }
    )
    return c


def raw_task(
    tid: str,
    number: int,
    *,
    title: str = "",
    project: str | None = "100",
    assignee: str | None = "7",
    status: str | None = "1",
    updated_at: str = "2026-01-01T00:00:00Z",
    due: str | None = None,
) -> dict[str, Any]:
    rels: dict[str, Any] = {
        "project": {"data": {"type": "projects", "id": project} if project else None},
        "assignee": {"data": {"type": "people", "id": assignee} if assignee else None},
        "workflow_status": {"data": {"type": "workflow_statuses", "id": status} if status else None},
    }
    return {
        "id": tid,
        "type": "tasks",
        "attributes": {
            "number": str(number),
            "title": title or f"Task {tid}",
            "due_date": due,
            "created_at": "2025-12-01T00:00:00Z",
            "updated_at": updated_at,
        },
        "relationships": rels,
    }


def included(
    projects: dict[str, str] | None = None,
    people: dict[str, str] | None = None,
    statuses: dict[str, str] | None = None,
) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for pid, name in (projects or {}).items():
        out.append({"id": pid, "type": "projects", "attributes": {"name": name}})
    for pid, name in (people or {}).items():
        out.append({"id": pid, "type": "people", "attributes": {"name": name}})
    for sid, name in (statuses or {}).items():
        out.append({"id": sid, "type": "workflow_statuses", "attributes": {"name": name}})
    return out


class TasksApi:
    """responses callback serving /tasks pages per filter dimension."""

    def __init__(self, pages: dict[str, list[dict[str, Any]]]) -> None:
        # pages["subscriber_id"] = [page1_body, page2_body, ...]
        self.pages = pages
        self.calls: list[dict[str, str]] = []

    def __call__(self, request: Any) -> tuple[int, dict[str, str], str]:
        qs = {k: v[0] for k, v in parse_qs(urlparse(request.url).query).items()}
        self.calls.append(qs)
        dim = next((k[len("filter["):-1] for k in qs if k.startswith("filter[")), "")
        idx = int(qs.get("page[number]", "1")) - 1
        bodies = self.pages.get(dim) or []
        body = bodies[idx] if idx < len(bodies) else {"data": [], "included": [], "links": {}}
        return 200, {}, json.dumps(body)


def page(tasks: list[dict[str, Any]], inc: list[dict[str, Any]] | None = None, *, more: bool = False) -> dict[str, Any]:
    return {"data": tasks, "included": inc or [], "links": {"next": f"{API}/tasks?next" if more else None}}
