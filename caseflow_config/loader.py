"""
Settings Loader (``caseflow_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``caseflow_config.schema`` dataclasses.  Runtime callers go through
``caseflow_config.get_active_settings()``, not this module.

Invariants enforced
-------------------
* Every parse error raises ``ConfigurationError`` naming the offending
  key; unknown keys are rejected, never ignored.
* Every parsed object is a frozen dataclass from ``schema.py``.

Failure modes
-------------
* Missing file       -> ``ConfigurationError``.
* Malformed YAML     -> ``ConfigurationError`` (chained from ``yaml.YAMLError``).
* Wrong value types  -> ``ConfigurationError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from caseflow_config.schema import (
    CaseflowSettings,
    DatabaseSettings,
    LoggingSettings,
    WorkflowSettings,
)
from caseflow_kernel.exceptions import ConfigurationError

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML file and return its top-level mapping.

    Raises:
        ConfigurationError: the file is missing, unreadable, not valid
            YAML, or its top level is not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(f"Settings file not found: {path}") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed settings file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping")
    return data


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping")
    unknown = set(raw) - allowed
    if unknown:
        raise ConfigurationError(
            f"Unknown key(s) in '{name}': {', '.join(sorted(unknown))}"
        )
    return raw


def _int(section: str, key: str, value: Any, minimum: int = 0) -> int:
    # bool is an int subclass; "true" is never a pool size.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{section}.{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{section}.{key} must be >= {minimum}, got {value}")
    return value


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    raw = _section(
        data,
        "database",
        {"url", "echo", "pool_size", "max_overflow", "pool_timeout", "pool_recycle"},
    )
    url = parse_database_url(raw.get("url"))
    echo = raw.get("echo", False)
    if not isinstance(echo, bool):
        raise ConfigurationError(f"database.echo must be a boolean, got {echo!r}")

    defaults = DatabaseSettings(url=url)
    return DatabaseSettings(
        url=url,
        echo=echo,
        pool_size=_int("database", "pool_size", raw.get("pool_size", defaults.pool_size), 1),
        max_overflow=_int("database", "max_overflow", raw.get("max_overflow", defaults.max_overflow)),
        pool_timeout=_int("database", "pool_timeout", raw.get("pool_timeout", defaults.pool_timeout)),
        pool_recycle=_int("database", "pool_recycle", raw.get("pool_recycle", defaults.pool_recycle)),
    )


def parse_database_url(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigurationError("database.url is required")
    try:
        make_url(value)
    except ArgumentError as exc:
        raise ConfigurationError(f"database.url is not a valid URL: {exc}") from exc
    return value


def parse_log_level(value: Any) -> str:
    level = str(value).upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(f"logging.level must be one of {sorted(_LOG_LEVELS)}, got {value!r}")
    return level


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    raw = _section(data, "logging", {"level"})
    return LoggingSettings(level=parse_log_level(raw.get("level", "INFO")))


def parse_workflow(data: dict[str, Any]) -> WorkflowSettings:
    raw = _section(data, "workflow", {"max_note_length"})
    return WorkflowSettings(
        max_note_length=_int(
            "workflow", "max_note_length",
            raw.get("max_note_length", WorkflowSettings().max_note_length), 1,
        ),
    )


def parse_settings(data: dict[str, Any], source: str | None = None) -> CaseflowSettings:
    """
    Parse a settings mapping.

    Raises:
        ConfigurationError: unknown sections or keys, missing database.url,
            or values of the wrong type.
    """
    unknown = set(data) - {"database", "logging", "workflow"}
    if unknown:
        raise ConfigurationError(f"Unknown settings section(s): {', '.join(sorted(unknown))}")

    return CaseflowSettings(
        database=parse_database(data),
        logging=parse_logging(data),
        workflow=parse_workflow(data),
        source=source,
    )

