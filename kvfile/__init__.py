"""
kvfile — a persistent key-value store of strings.

Public API:
    from kvfile import FileStore, SyncPolicy
"""

__version__ = "0.1.0"

# Core
from kvfile.core.config import KVConfig
from kvfile.core.errors import (
    CodecError,
    ConfigError,
    DecodeError,
    EncodeError,
    KVError,
    StorageError,
    StoreIOError,
)
from kvfile.core.types import SyncPolicy

# Store
from kvfile.store.file import FileStore

__all__ = [
    # Core
    "KVConfig",
    "SyncPolicy",
    "KVError",
    "ConfigError",
    "StorageError",
    "StoreIOError",
    "CodecError",
    "DecodeError",
    "EncodeError",
    # Store
    "FileStore",
]
