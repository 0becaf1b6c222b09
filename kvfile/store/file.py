"""
File-backed key-value store.

The whole dataset lives in a dict; the file at ``path`` is a snapshot of
that dict as of the last sync. No file handle is held between calls.

There is no locking. Two stores opened on the same path race, and the
last sync() wins.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from collections.abc import Iterator
from pathlib import Path

from kvfile.core.errors import StoreIOError
from kvfile.core.types import SyncPolicy
from kvfile.store import codec

logger = logging.getLogger(__name__)


class FileStore:
    """
    A string key-value store associated with a snapshot file.

    Usage:
        store = FileStore.open_or_create("data.kv")
        store.set("key1", "value1")        # persisted immediately
        store.get("key1")                  # "value1"

        for key, value in store:           # sorted by key
            print(f"{key}: {value}")

    With ``SyncPolicy.ALWAYS`` (the default) set() and remove() write the
    snapshot after every change. With ``SyncPolicy.MANUAL`` they only touch
    memory and the caller decides when to sync():

        store = FileStore.open_or_create("data.kv", sync_policy=SyncPolicy.MANUAL)
        for i in range(1000):
            store.set(f"k{i}", str(i))
        store.sync()

    Warning:
        ``store.data`` is the live dict. Changes made through it are never
        synced automatically, whatever the policy. Until sync() is called
        the file on disk does not reflect them.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        data: dict[str, str] | None = None,
        *,
        sync_policy: SyncPolicy = SyncPolicy.ALWAYS,
        atomic: bool = True,
        indent: int | None = None,
    ) -> None:
        self._path = Path(path).expanduser()
        self._data: dict[str, str] = data if data is not None else {}
        self._sync_policy = SyncPolicy(sync_policy)
        self._atomic = atomic
        self._indent = indent

    @classmethod
    def open_or_create(
        cls,
        path: str | os.PathLike[str],
        *,
        sync_policy: SyncPolicy = SyncPolicy.ALWAYS,
        atomic: bool = True,
        indent: int | None = None,
    ) -> FileStore:
        """
        Open the snapshot at ``path``, or start empty if there is none.

        A missing file is not created here; it appears on the first sync().

        Raises:
            DecodeError: The file exists but is not a valid snapshot
            StoreIOError: The file exists but could not be read
        """
        store = cls(path, sync_policy=sync_policy, atomic=atomic, indent=indent)
        try:
            raw = store._path.read_bytes()
        except FileNotFoundError:
            logger.debug(f"No snapshot at {store._path}, starting empty")
            return store
        except OSError as e:
            raise StoreIOError(
                f"Failed to read {store._path}: {e}",
                details={"path": str(store._path)},
            ) from e

        store._data = codec.decode(raw)
        logger.debug(f"Loaded {len(store._data)} keys from {store._path}")
        return store

    # ━━━ Properties ━━━

    @property
    def path(self) -> Path:
        """Location of the snapshot file."""
        return self._path

    @property
    def data(self) -> dict[str, str]:
        """
        The live in-memory mapping.

        Mutating it bypasses the sync policy: call sync() afterwards or the
        changes are lost when the store goes out of scope.
        """
        return self._data

    @property
    def sync_policy(self) -> SyncPolicy:
        return self._sync_policy

    # ━━━ Accessors ━━━

    def get(self, key: str) -> str | None:
        """Get a value by key. Returns None if not found."""
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        """
        Set ``key`` to ``value``, overwriting any existing value.

        Under ``SyncPolicy.ALWAYS`` the snapshot is rewritten before
        returning. If that write fails the new value stays in memory and
        the error propagates, so the caller can retry with sync().

        Raises:
            TypeError: If key or value is not a str
            StoreIOError: The snapshot could not be written
        """
        if not isinstance(key, str) or not isinstance(value, str):
            raise TypeError(
                f"key and value must be str, got {type(key).__name__} "
                f"and {type(value).__name__}"
            )
        self._data[key] = value
        if self._sync_policy is SyncPolicy.ALWAYS:
            self.sync()

    def remove(self, key: str) -> str | None:
        """Remove a key. Returns its previous value, or None if absent."""
        value = self._data.pop(key, None)
        if value is not None and self._sync_policy is SyncPolicy.ALWAYS:
            self.sync()
        return value

    # ━━━ Persistence ━━━

    def sync(self) -> None:
        """
        Write the whole mapping to ``path``, replacing what was there.

        Atomic mode writes a temporary sibling file and renames it over
        ``path``, so a failed sync leaves the previous snapshot intact.
        A symlinked ``path`` is resolved first, so the link survives and its
        target is replaced. On POSIX the directory is fsynced after the
        rename. Non-atomic mode truncates and writes ``path`` directly.

        Raises:
            EncodeError: The mapping holds non-string data
            StoreIOError: The snapshot could not be written
        """
        payload = codec.encode(self._data, indent=self._indent)
        existed = self._path.is_file()
        try:
            if self._atomic:
                self._write_atomic(payload)
            else:
                with open(self._path, "wb") as f:
                    f.write(payload)
        except OSError as e:
            raise StoreIOError(
                f"Failed to write {self._path}: {e}",
                details={"path": str(self._path)},
            ) from e

        if not existed:
            logger.info(f"Created snapshot {self._path}")
        logger.debug(f"Synced {len(self._data)} keys to {self._path}")

    def _write_atomic(self, payload: bytes) -> None:
        # Replace the file a symlinked path points at, not the link itself
        target = self._path.resolve()
        tmp_path = target.with_name(f".{target.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            with open(tmp_path, "xb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            if target.is_file():
                shutil.copymode(target, tmp_path)
            os.replace(tmp_path, target)
        except OSError:
            if tmp_path.exists():
                logger.warning(f"Sync of {self._path} failed, removing {tmp_path.name}")
                tmp_path.unlink()
            raise
        _fsync_dir(target.parent)

    # ━━━ Iteration ━━━

    def items(self) -> Iterator[tuple[str, str]]:
        """
        Yield (key, value) pairs in ascending key order.

        The snapshot is written with sorted keys too, so the order is the
        same before and after a round-trip through the file.
        """
        yield from sorted(self._data.items())

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return self.items()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return (
            f"FileStore(path={str(self._path)!r}, keys={len(self._data)}, "
            f"sync_policy={self._sync_policy.value})"
        )


def _fsync_dir(directory: Path) -> None:
    """Flush a rename to disk. Directories cannot be opened on Windows."""
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)
