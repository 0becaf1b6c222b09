"""
kvfile exception hierarchy.

Every error in the system inherits from KVError.
Each subsystem has its own error class for targeted catching.

Usage:
    try:
        store = FileStore.open_or_create("store.kv")
    except DecodeError as e:
        # The file exists but is not a valid snapshot
    except KVError as e:
        # Handle any kvfile error
"""


class KVError(Exception):
    """Base exception for all kvfile errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ━━━ Configuration ━━━


class ConfigError(KVError):
    """Configuration is invalid, missing, or malformed."""

    pass


# ━━━ Storage ━━━


class StorageError(KVError):
    """Store failure — file access or snapshot contents."""

    pass


class StoreIOError(StorageError):
    """The snapshot file could not be read or written."""

    pass


class CodecError(StorageError):
    """Snapshot serialization failure."""

    pass


class DecodeError(CodecError):
    """File exists but its contents are not a valid snapshot."""

    pass


class EncodeError(CodecError):
    """The mapping holds data that cannot be written as a snapshot."""

    pass
