"""
kvfile Configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code, e.g. CLI flags)
2. Environment variables (KVFILE_*)
3. Project config (./kvfile.toml)
4. User config (~/.kvfile/config.toml)
5. Defaults (hardcoded)

Environment variable mapping:
    KVFILE_STORE_PATH → store.path
    KVFILE_STORE_SYNC → store.sync
    KVFILE_STORE_ATOMIC → store.atomic
    KVFILE_STORE_INDENT → store.indent
    KVFILE_LOG_LEVEL → logging.level
    KVFILE_LOG_DIR → logging.dir

Only the CLI reads configuration. FileStore takes its settings as
explicit arguments.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from kvfile.core.errors import ConfigError
from kvfile.core.types import SyncPolicy

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class StoreConfig(BaseModel):
    """Snapshot file configuration."""

    path: str = "store.kv"
    sync: SyncPolicy = SyncPolicy.ALWAYS
    atomic: bool = True
    indent: int = Field(default=0, ge=0)  # 0 = compact


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    dir: str = ""  # empty = console only

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level '{value}'")
        return level


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class KVConfig(BaseModel):
    """Root configuration for kvfile."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> KVConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        toml_files = [
            user_path or Path.home() / USER_CONFIG,
            project_path or Path.cwd() / PROJECT_CONFIG,
        ]
        layers = [_load_toml(p) for p in toml_files if p.exists()]
        layers.append(_load_from_env())
        layers.append(overrides or {})

        merged: dict[str, Any] = {}
        for layer in layers:
            _deep_merge(merged, layer)
        _substitute_env_vars(merged)

        try:
            return KVConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def get_store_path(self) -> Path:
        """Get the resolved snapshot path."""
        return Path(self.store.path).expanduser()

    def get_log_dir(self) -> Path | None:
        """Get the log directory, or None when file logging is off."""
        if not self.logging.dir:
            return None
        return Path(self.logging.dir).expanduser()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Sources
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

USER_CONFIG = Path(".kvfile") / "config.toml"
PROJECT_CONFIG = "kvfile.toml"

# Variable → (section, field). Values stay raw strings; pydantic coerces
# "false" or "2" for typed fields.
ENV_MAPPING: dict[str, tuple[str, str]] = {
    "KVFILE_STORE_PATH": ("store", "path"),
    "KVFILE_STORE_SYNC": ("store", "sync"),
    "KVFILE_STORE_ATOMIC": ("store", "atomic"),
    "KVFILE_STORE_INDENT": ("store", "indent"),
    "KVFILE_LOG_LEVEL": ("logging", "level"),
    "KVFILE_LOG_DIR": ("logging", "dir"),
}

_ENV_REF = re.compile(r"\$\{([^}]+)\}")


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}", details={"path": str(path)}) from e


def _load_from_env() -> dict[str, Any]:
    result: dict[str, Any] = {}
    for env_var, (section, key) in ENV_MAPPING.items():
        if env_var in os.environ:
            result.setdefault(section, {})[key] = os.environ[env_var]
    return result


def _deep_merge(base: dict, override: dict) -> None:
    """Merge override into base in place; nested tables merge key by key."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            base[key] = value


def _substitute_env_vars(data: dict) -> None:
    """Expand ${VAR} references in string values; unset variables expand to ""."""
    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
