# TaskBrowse test scripts
from __future__ import annotations

import json

import pytest
import responses
from fastapi.testclient import TestClient

from conftest import API, TasksApi, included, page, raw_task
from tb_platform.orchestrator import ChangeSet, SnapshotStore
from taskbrowse import create_app


def _seed(store) -> None:
    tasks = [
        {
            "id": "12",
            "ticketNumber": 242,
            "title": "Fix login redirect",
            "projectId": "100",
            "project": "Prim Support",
            "projectPrefix": "PRIM",
            "ticketKey": "PRIM-242",
            "status": "Open",
            "assigneeId": "7",
            "assignee": "Alice",
            "url": "https://app.example.test/42-acme/tasks/task/12",
            "deleted": False,
        },
        {
            "id": "11",
            "ticketNumber": 3,
            "title": "Landing page copy",
            "projectId": "200",
            "project": "Website",
            "projectPrefix": "WEBS",
            "ticketKey": "WEBS-3",
            "status": "Done",
            "assigneeId": None,
            "assignee": "Unassigned",
            "url": "https://app.example.test/42-acme/tasks/task/11",
            "_deleted": True,
        },
    ]
    SnapshotStore(store).save_snapshot(
        tasks=tasks,
        prefix_map={"100": "PRIM", "200": "WEBS"},
        prefix_index={"PRIM": "100", "WEBS": "200"},
        statuses=["Open", "Done"],
        assignees=[{"id": "7", "name": "Alice"}],
        projects=[{"id": "100", "name": "Prim Support", "prefix": "PRIM"}, {"id": "200", "name": "Website", "prefix": "WEBS"}],
        changes=ChangeSet(new=["12"], updated=[]),
        person_id="7",
        assigned_count=1,
        last_updated="2026-03-10T00:00:00.000Z",
    )


@pytest.fixture()
def client(cfg, store) -> TestClient:
    app = create_app(load_config_fn=lambda: cfg, store=store, start_scheduler=False)
    return TestClient(app)


def test_reads_before_first_sync_are_503(client: TestClient) -> None:
    r = client.get("/api/search", params={"q": "PRIM-1"})
    assert r.status_code == 503
    assert r.json()["tasks"] == []
    assert r.json()["total"] == 0

    r2 = client.get("/browse/PRIM-1", follow_redirects=False)
    assert r2.status_code == 503
    assert "Please trigger /update first" in r2.text

    r3 = client.get("/api/filters")
    assert r3.status_code == 200
    assert r3.json()["projects"] == []


def test_search_endpoint(client: TestClient, store) -> None:
    _seed(store)
    r = client.get("/api/search", params={"q": "prim 242"})
    assert r.status_code == 200
    data = r.json()
    assert [t["id"] for t in data["tasks"]] == ["12"]
    assert data["count"] == 1
    assert data["total"] == 2
    assert data["lastUpdated"] == "2026-03-10T00:00:00.000Z"

    r2 = client.get("/api/search", params={"deleted": "false"})
    assert [t["id"] for t in r2.json()["tasks"]] == ["12"]

    r3 = client.get("/api/search", params={"changed": "1"})
    assert [t["id"] for t in r3.json()["tasks"]] == ["12"]

    r4 = client.get("/api/search", params={"assignee": "unassigned"})
    assert [t["id"] for t in r4.json()["tasks"]] == ["11"]
    assert r4.json()["tasks"][0]["deleted"] is True

    assert client.get("/api/search", params={"due": "someday"}).status_code == 400


def test_browse_redirects_and_errors(client: TestClient, store) -> None:
    _seed(store)
    r = client.get("/browse/prim-242", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == "https://app.example.test/42-acme/tasks/task/12"

    r2 = client.get("/browse/NOPE-1", follow_redirects=False)
    assert r2.status_code == 404
    assert r2.text == "Unknown project prefix: NOPE. Available prefixes: PRIM, WEBS"

    r3 = client.get("/browse/PRIM-999", follow_redirects=False)
    assert r3.status_code == 404
    assert r3.text == "Ticket PRIM-999 not found in project."

    r4 = client.get("/browse/PRIM242", follow_redirects=False)
    assert r4.status_code == 400


def test_filters_and_prefixes(client: TestClient, store) -> None:
    _seed(store)
    f = client.get("/api/filters").json()
    assert [p["prefix"] for p in f["projects"]] == ["PRIM", "WEBS"]
    assert f["statuses"] == ["Done", "Open"]
    assert f["currentPersonId"] == "7"
    assert f["changedTaskIds"] == ["12"]
    assert f["newTaskIds"] == ["12"]

    p = client.get("/api/prefixes").json()
    assert p["prefixIndex"] == {"PRIM": "100", "WEBS": "200"}


def test_index_page_shows_stats(client: TestClient, store) -> None:
    _seed(store)
    r = client.get("/")
    assert r.status_code == 200
    assert "2 tasks (1 assigned)" in r.text
    assert "10/03/2026" in r.text


def test_cors_headers_and_preflight(client: TestClient) -> None:
    r = client.options(
        "/api/search",
        headers={"Origin": "https://elsewhere.test", "Access-Control-Request-Method": "GET"},
    )
    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"

    r2 = client.get("/api/prefixes", headers={"Origin": "https://elsewhere.test"})
    assert r2.headers["access-control-allow-origin"] == "*"


def test_update_runs_sync(client: TestClient, store) -> None:
    api = TasksApi({"subscriber_id": [page([raw_task("1", 9)], included(projects={"100": "Prim Support"}))]})
    with responses.RequestsMock() as rsps:
        rsps.add_callback(responses.GET, f"{API}/tasks", callback=api)
        r = client.post("/update")

    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["taskCount"] == 1
    assert data["newCount"] == 1
    assert client.get("/browse/PRIM-9", follow_redirects=False).status_code == 302


def test_update_reports_upstream_failure(client: TestClient, store) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{API}/tasks", body="unauthorized", status=401)
        r = client.get("/update")

    assert r.status_code == 502
    assert r.json()["success"] is False
    assert "API error 401" in r.json()["error"]
    assert "all_tasks" not in store.data


def test_update_stream_emits_progress_then_done(client: TestClient) -> None:
    api = TasksApi({"assignee_id": [page([raw_task("1", 9)])]})
    with responses.RequestsMock() as rsps:
        rsps.add_callback(responses.GET, f"{API}/tasks", callback=api)
        r = client.get("/update", params={"stream": "1"})

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    blocks = [b for b in r.text.split("\n\n") if b.strip()]
    events = [b.split("\n")[0].removeprefix("event: ") for b in blocks]
    assert events[0] == "progress"
    assert events[-1] == "done"
    done = json.loads(blocks[-1].split("\n")[1].removeprefix("data: "))
    assert done["taskCount"] == 1
    pages = [json.loads(b.split("\n")[1].removeprefix("data: ")) for b in blocks if b.startswith("event: progress")]
    assert any(p["event"] == "sync:page" for p in pages)


def test_update_stream_ends_with_error_event(client: TestClient) -> None:
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{API}/tasks", body="boom", status=500)
        r = client.get("/update", params={"stream": "1"})

    last = [b for b in r.text.split("\n\n") if b.strip()][-1]
    assert last.startswith("event: error")
    assert json.loads(last.split("\n")[1].removeprefix("data: "))["success"] is False


def test_sync_status(client: TestClient) -> None:
    data = client.get("/api/sync/status").json()
    assert data["running"] is False
    assert data["scheduler"] is None
    assert data["taskCount"] == 0
    assert data["lastUpdated"] is None


def test_browse_accepts_digit_suffixed_prefix(client: TestClient, store) -> None:
    task = {
        "id": "30",
        "ticketNumber": 12,
        "title": "Budget sheet",
        "projectId": "9",
        "project": "2024",
        "projectPrefix": "PROJ1",
        "ticketKey": "PROJ1-12",
        "status": "Open",
        "assigneeId": "7",
        "assignee": "Alice",
        "url": "https://app.example.test/42-acme/tasks/task/30",
        "deleted": False,
    }
    SnapshotStore(store).save_snapshot(
        tasks=[task],
        prefix_map={"9": "PROJ1"},
        prefix_index={"PROJ1": "9"},
        statuses=["Open"],
        assignees=[{"id": "7", "name": "Alice"}],
        projects=[{"id": "9", "name": "2024", "prefix": "PROJ1"}],
        changes=ChangeSet(),
        person_id="7",
        assigned_count=1,
        last_updated="2026-03-10T00:00:00.000Z",
    )
    r = client.get("/browse/proj1-12", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["location"] == task["url"]
    assert [t["id"] for t in client.get("/api/search", params={"q": "PROJ1-12"}).json()["tasks"]] == ["30"]


def test_api_exports_public_names_and_scheduler_uses_sync_guard(cfg, store) -> None:
    import api
    from tb_platform.orchestrator.facade import sync_running

    assert not [name for name in api.__all__ if name.startswith("_")]
    assert api.sync_running is sync_running

    app = create_app(load_config_fn=lambda: cfg, store=store, start_scheduler=True)
    assert app.state.scheduler.is_sync_running_fn is sync_running
    assert app.state.scheduler.is_sync_running_fn() is False
