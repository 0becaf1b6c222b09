"""
Snapshot codec — the whole mapping as one UTF-8 JSON object.

    {"key1": "value1", "key2": "value2"}

Keys are written in sorted order so encoding the same mapping twice
gives byte-identical output.
"""

from __future__ import annotations

import json
from collections.abc import Mapping

from kvfile.core.errors import DecodeError, EncodeError

ENCODING = "utf-8"


def encode(data: Mapping[str, str], indent: int | None = None) -> bytes:
    """
    Serialize a mapping of strings to snapshot bytes.

    Args:
        data: Mapping of str keys to str values
        indent: Pretty-print indentation, or None for compact output

    Raises:
        EncodeError: If any key or value is not a str, or is not
            representable in UTF-8
    """
    for key, value in data.items():
        if not isinstance(key, str):
            raise EncodeError(
                f"Snapshot keys must be str, got {type(key).__name__}: {key!r}",
                details={"key": repr(key)},
            )
        if not isinstance(value, str):
            raise EncodeError(
                f"Value for key '{key}' must be str, got {type(value).__name__}",
                details={"key": key},
            )

    text = json.dumps(
        dict(data),
        sort_keys=True,
        ensure_ascii=False,
        indent=indent or None,
    )
    try:
        return text.encode(ENCODING)
    except UnicodeEncodeError as e:
        # Lone surrogates, e.g. undecodable argv bytes under surrogateescape
        raise EncodeError(
            f"Snapshot cannot be encoded as {ENCODING}: {e.reason} "
            f"(character {e.object[e.start]!r})",
            details={"position": e.start},
        ) from e


def decode(raw: bytes) -> dict[str, str]:
    """
    Parse snapshot bytes back into a dict.

    Raises:
        DecodeError: On invalid UTF-8, invalid JSON, a top-level value
            that is not an object, or any non-string value
    """
    try:
        parsed = json.loads(raw.decode(ENCODING))
    except UnicodeDecodeError as e:
        raise DecodeError(f"Snapshot is not valid {ENCODING}: {e}") from e
    except json.JSONDecodeError as e:
        raise DecodeError(
            f"Snapshot is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            details={"line": e.lineno, "column": e.colno},
        ) from e

    if not isinstance(parsed, dict):
        raise DecodeError(
            f"Snapshot must be a JSON object, got {type(parsed).__name__}"
        )

    for key, value in parsed.items():
        if not isinstance(value, str):
            raise DecodeError(
                f"Value for key '{key}' must be a string, got {type(value).__name__}",
                details={"key": key},
            )

    return parsed
