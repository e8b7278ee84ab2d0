from __future__ import annotations

from pathlib import Path

import pytest

from memory_anchor.errors import StorageCorrupt
from memory_anchor.storage.store import JsonFileStore, MemoryStore


def test_json_file_store_round_trip(tmp_path: Path):
    store = JsonFileStore(tmp_path / "nested" / "registry")
    assert store.get("memoryanchor_faces") is None
    store.put("memoryanchor_faces", '{"a": "Sarah 👩‍🦰"}')
    assert store.get("memoryanchor_faces") == '{"a": "Sarah 👩‍🦰"}'
    # no temp files left behind
    assert sorted(p.name for p in (tmp_path / "nested" / "registry").iterdir()) == ["memoryanchor_faces.json"]


def test_json_file_store_overwrites(tmp_path: Path):
    store = JsonFileStore(tmp_path)
    store.put("k", "one")
    store.put("k", "two")
    assert JsonFileStore(tmp_path).get("k") == "two"


@pytest.mark.parametrize("key", ["../escape", "a/b", ""])
def test_json_file_store_rejects_unsafe_keys(tmp_path: Path, key: str):
    with pytest.raises(ValueError):
        JsonFileStore(tmp_path).put(key, "x")


def test_failed_write_keeps_previous_value(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    store = JsonFileStore(tmp_path)
    store.put("k", "old")

    import memory_anchor.storage.store as store_module

    def _boom(src, dst):
        raise OSError("replace failed")

    monkeypatch.setattr(store_module.os, "replace", _boom)
    with pytest.raises(OSError):
        store.put("k", "new")
    monkeypatch.undo()

    assert store.get("k") == "old"
    assert [p.name for p in tmp_path.iterdir()] == ["k.json"]


def test_json_file_store_non_utf8_is_corrupt(tmp_path: Path):
    (tmp_path / "k.json").write_bytes(b"\xff\xfe\x00garbage")
    with pytest.raises(StorageCorrupt):
        JsonFileStore(tmp_path).get("k")


def test_memory_store():
    store = MemoryStore({"k": "v"})
    assert store.get("k") == "v"
    assert store.get("missing") is None
    store.put("k", "w")
    assert store.get("k") == "w"
