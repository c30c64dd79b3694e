# TaskBrowse test scripts
from __future__ import annotations

from pathlib import Path

import pytest

from tb_platform.blob_store import FileBlobStore, MemoryBlobStore
from tb_platform.orchestrator import SnapshotStore


def test_file_blob_store_roundtrip_and_delete(tmp_path: Path) -> None:
    s = FileBlobStore(tmp_path / "state")
    assert s.get("all_tasks") is None

    s.put("all_tasks", "[]")
    s.put("last_updated", "2026-01-01T00:00:00.000Z")
    assert s.get("all_tasks") == "[]"
    assert s.keys() == ["all_tasks", "last_updated"]
    assert not list((tmp_path / "state").glob("*.tmp"))

    s.delete("all_tasks")
    s.delete("all_tasks")
    assert s.get("all_tasks") is None


@pytest.mark.parametrize("key", ["", "../etc/passwd", "a/b", "with space"])
def test_blob_keys_are_validated(key: str) -> None:
    with pytest.raises(ValueError):
        MemoryBlobStore().put(key, "x")


def test_snapshot_readers_tolerate_missing_and_corrupt_blobs() -> None:
    store = MemoryBlobStore()
    snaps = SnapshotStore(store)
    assert snaps.is_initialized() is False
    assert snaps.load_tasks() == []
    assert snaps.task_count() == 0

    store.put("all_tasks", "{not json")
    store.put("prefix_index", '["wrong", "type"]')
    store.put("task_count", "many")
    assert snaps.load_tasks() == []
    assert snaps.load_prefix_index() == {}
    assert snaps.task_count() == 0


def test_snapshot_reader_normalizes_legacy_deleted_flag() -> None:
    store = MemoryBlobStore({"all_tasks": '[{"id": 5, "_deleted": true}, {"id": "6"}, {"title": "no id"}]'})
    tasks = SnapshotStore(store).load_tasks()
    assert tasks == [{"id": "5", "deleted": True}, {"id": "6", "deleted": False}]


def test_failed_put_keeps_previous_blob_and_leaves_no_temp_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    s = FileBlobStore(tmp_path / "state")
    s.put("all_tasks", '[{"id": "1"}]')

    def half_write(self: Path, data: str, encoding: str | None = None) -> int:
        with open(self, "w", encoding=encoding) as f:
            f.write(data[:3])
        raise OSError("disk full")

    monkeypatch.setattr(Path, "write_text", half_write)
    with pytest.raises(OSError):
        s.put("all_tasks", '[{"id": "2"}]')
    monkeypatch.undo()

    assert s.get("all_tasks") == '[{"id": "1"}]'
    assert not list((tmp_path / "state").glob("*.tmp"))


def test_temp_names_are_unique_per_write(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    s = FileBlobStore(tmp_path / "state")
    seen: list[str] = []
    real_replace = Path.replace

    def spy(self: Path, target):
        seen.append(self.name)
        return real_replace(self, target)

    monkeypatch.setattr(Path, "replace", spy)
    s.put("all_tasks", "[]")
    s.put("all_tasks", "[]")

    assert len(seen) == 2 and seen[0] != seen[1]
    assert all(name.startswith("all_tasks.blob.") and name.endswith(".tmp") for name in seen)
