"""Shared test fixtures for kvfile."""

import logging

import pytest
from pathlib import Path
from kvfile.core.config import ENV_MAPPING, KVConfig
from kvfile.store.file import FileStore


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's ~/.kvfile and KVFILE_* variables out of tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setattr(Path, "home", lambda: home)
    # expanduser() reads these rather than Path.home()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for name in ENV_MAPPING:
        monkeypatch.delenv(name, raising=False)

    yield

    # CLI runs install handlers bound to the runner's streams
    logger = logging.getLogger("kvfile")
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


@pytest.fixture
def config():
    """Create a default config without loading from disk."""
    return KVConfig()


@pytest.fixture
def store_path(tmp_path):
    """Path to a snapshot file that does not exist yet."""
    return tmp_path / "data.kv"


@pytest.fixture
def store(store_path):
    """Create an empty store backed by a fresh path."""
    return FileStore.open_or_create(store_path)
