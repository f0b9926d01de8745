"""
CaseflowSettings schema.

Typed, frozen view of a settings file.  YAML is parsed into these types by
the loader; nothing else in the repo reads the file.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class WorkflowSettings:
    max_note_length: int = 2000


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CaseflowSettings:
    """Complete runtime settings."""

    database: DatabaseSettings
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    workflow: WorkflowSettings = field(default_factory=WorkflowSettings)
    source: str | None = None  # path the settings were loaded from
