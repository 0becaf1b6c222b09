"""Tests for the file-backed store."""

import json
import os
import sys

import pytest
from pathlib import Path
from kvfile.core.errors import DecodeError, EncodeError, StoreIOError
from kvfile.core.types import SyncPolicy
from kvfile.store.file import FileStore


# ━━━ Opening ━━━


def test_open_nonexistent_path_is_empty(store_path: Path):
    store = FileStore.open_or_create(store_path)
    assert len(store) == 0
    assert list(store) == []


def test_open_nonexistent_path_creates_no_file(store_path: Path):
    FileStore.open_or_create(store_path)
    assert not store_path.exists()


def test_open_existing_snapshot(store_path: Path):
    store_path.write_text('{"a": "1", "b": "2"}', encoding="utf-8")
    store = FileStore.open_or_create(store_path)
    assert store.get("a") == "1"
    assert store.get("b") == "2"


def test_open_corrupt_file_raises_decode_error(store_path: Path):
    store_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(DecodeError):
        FileStore.open_or_create(store_path)


def test_open_empty_file_raises_decode_error(store_path: Path):
    store_path.write_bytes(b"")
    with pytest.raises(DecodeError):
        FileStore.open_or_create(store_path)


def test_open_wrong_shape_raises_decode_error(store_path: Path):
    store_path.write_text('{"key": 42}', encoding="utf-8")
    with pytest.raises(DecodeError):
        FileStore.open_or_create(store_path)


def test_open_directory_raises_io_error(tmp_path: Path):
    with pytest.raises(StoreIOError):
        FileStore.open_or_create(tmp_path)


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX ENOTDIR")
def test_open_path_under_a_file_raises_io_error(tmp_path: Path):
    not_a_dir = tmp_path / "not_a_directory"
    not_a_dir.write_text("")
    with pytest.raises(StoreIOError):
        FileStore.open_or_create(not_a_dir / "store.kv")


# ━━━ Get / Set ━━━


def test_set_and_get(store: FileStore):
    store.set("foo", "bar")
    assert store.get("foo") == "bar"


def test_get_missing_returns_none(store: FileStore):
    assert store.get("bogus") is None


def test_set_overwrites(store: FileStore):
    store.set("foo", "old")
    store.set("foo", "new")
    assert store.get("foo") == "new"
    assert len(store) == 1


def test_set_persists(store: FileStore, store_path: Path):
    store.set("k1", "v1")
    reopened = FileStore.open_or_create(store_path)
    assert reopened.get("k1") == "v1"


def test_set_writes_json_object(store: FileStore, store_path: Path):
    store.set("key1", "value1")
    assert json.loads(store_path.read_text(encoding="utf-8")) == {"key1": "value1"}


def test_set_rejects_non_string(store: FileStore, store_path: Path):
    with pytest.raises(TypeError):
        store.set("count", 3)  # type: ignore[arg-type]
    assert "count" not in store
    assert not store_path.exists()


def test_set_unencodable_value_raises_encode_error(store: FileStore, store_path: Path):
    with pytest.raises(EncodeError):
        store.set("k", "\udcff")
    assert not store_path.exists()


def test_failed_set_keeps_value_in_memory(tmp_path: Path):
    store = FileStore.open_or_create(tmp_path / "missing" / "data.kv")
    with pytest.raises(StoreIOError):
        store.set("k", "v")
    assert store.get("k") == "v"


def test_concrete_scenario(store: FileStore, store_path: Path):
    store.set("key1", "value1")
    assert json.loads(store_path.read_bytes()) == {"key1": "value1"}
    assert store.get("key1") == "value1"

    store.set("key2", "value2")
    assert list(store) == [("key1", "value1"), ("key2", "value2")]


# ━━━ Remove ━━━


def test_remove_returns_previous_value(store: FileStore, store_path: Path):
    store.set("k", "v")
    assert store.remove("k") == "v"
    assert "k" not in store
    assert json.loads(store_path.read_text(encoding="utf-8")) == {}


def test_remove_missing_returns_none(store: FileStore, store_path: Path):
    assert store.remove("nope") is None
    assert not store_path.exists()


# ━━━ Sync Policy ━━━


def test_manual_policy_defers_writes(store_path: Path):
    store = FileStore.open_or_create(store_path, sync_policy=SyncPolicy.MANUAL)
    store.set("a", "1")
    store.set("b", "2")
    assert not store_path.exists()

    store.sync()
    assert FileStore.open_or_create(store_path).data == {"a": "1", "b": "2"}


def test_manual_policy_remove_does_not_write(store_path: Path):
    store_path.write_text('{"a": "1"}', encoding="utf-8")
    store = FileStore.open_or_create(store_path, sync_policy=SyncPolicy.MANUAL)
    store.remove("a")
    assert json.loads(store_path.read_text(encoding="utf-8")) == {"a": "1"}


def test_policy_accepts_string_value(store_path: Path):
    store = FileStore.open_or_create(store_path, sync_policy="manual")
    assert store.sync_policy is SyncPolicy.MANUAL


def test_direct_data_access_needs_explicit_sync(store: FileStore, store_path: Path):
    store.data["k"] = "v"
    assert store.get("k") == "v"
    assert not store_path.exists()

    store.sync()
    assert FileStore.open_or_create(store_path).get("k") == "v"


# ━━━ Sync ━━━


def test_round_trip(store_path: Path):
    data = {
        "plain": "value",
        "": "empty key",
        "quotes \"and\" \\slashes": "line\nbreak\ttab",
        "unicode ключ": "值 🎉",
    }
    FileStore(store_path, dict(data)).sync()
    assert FileStore.open_or_create(store_path).data == data


def test_sync_is_idempotent(store: FileStore, store_path: Path):
    store.set("b", "2")
    store.set("a", "1")
    first = store_path.read_bytes()
    store.sync()
    store.sync()
    assert store_path.read_bytes() == first


def test_sync_empty_store_writes_empty_object(store: FileStore, store_path: Path):
    store.sync()
    assert store_path.read_bytes() == b"{}"


def test_sync_with_non_string_data_raises(store: FileStore, store_path: Path):
    store.data["n"] = 1  # type: ignore[assignment]
    with pytest.raises(EncodeError):
        store.sync()
    assert not store_path.exists()


def test_sync_non_atomic(store_path: Path):
    store = FileStore.open_or_create(store_path, atomic=False)
    store.set("k", "v")
    assert json.loads(store_path.read_text(encoding="utf-8")) == {"k": "v"}


def test_sync_with_indent(store_path: Path):
    store = FileStore.open_or_create(store_path, indent=2)
    store.set("k", "v")
    assert store_path.read_text(encoding="utf-8") == '{\n  "k": "v"\n}'


def test_failed_atomic_sync_keeps_previous_snapshot(
    store: FileStore, store_path: Path, monkeypatch
):
    store.set("k", "old")
    before = store_path.read_bytes()

    def broken_replace(src, dst):
        raise OSError("disk on fire")

    monkeypatch.setattr(os, "replace", broken_replace)

    with pytest.raises(StoreIOError):
        store.set("k", "new")

    assert store_path.read_bytes() == before
    assert sorted(p.name for p in store_path.parent.iterdir()) == ["data.kv", "home"]
    assert store.get("k") == "new"


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges")
def test_sync_through_symlink_keeps_link(tmp_path: Path):
    real = tmp_path / "real.kv"
    real.write_text('{"k": "old"}', encoding="utf-8")
    link = tmp_path / "link.kv"
    link.symlink_to(real)

    store = FileStore.open_or_create(link)
    store.set("k", "new")

    assert link.is_symlink()
    assert json.loads(real.read_text(encoding="utf-8")) == {"k": "new"}


def test_sync_into_directory_path_raises(tmp_path: Path):
    target = tmp_path / "dir.kv"
    target.mkdir()
    store = FileStore(target, {"k": "v"})
    with pytest.raises(StoreIOError):
        store.sync()


# ━━━ Iteration ━━━


def test_iteration_is_sorted_and_restartable(store: FileStore):
    for key in ("b", "c", "a"):
        store.set(key, key.upper())
    expected = [("a", "A"), ("b", "B"), ("c", "C")]
    assert list(store) == expected
    assert list(store.items()) == expected


def test_iteration_order_survives_round_trip(store: FileStore, store_path: Path):
    for key in ("zeta", "alpha", "mid"):
        store.set(key, "x")
    assert list(FileStore.open_or_create(store_path)) == list(store)


def test_contains_and_len(store: FileStore):
    store.set("k", "v")
    assert "k" in store
    assert "other" not in store
    assert len(store) == 1


def test_path_and_repr(store: FileStore, store_path: Path):
    assert store.path == store_path
    assert "data.kv" in repr(store)
    assert "always" in repr(store)
