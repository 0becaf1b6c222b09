"""
kvfile shared types.
"""

from __future__ import annotations

from enum import Enum


class SyncPolicy(str, Enum):
    """When mutating accessors write the snapshot back to disk."""

    ALWAYS = "always"  # every set/remove persists immediately
    MANUAL = "manual"  # mutations stay in memory until sync()
