"""
caseflow_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    ``CASEFLOW_*`` environment variables directly.

Architecture position:
    Configuration -- sits above ``caseflow_kernel``.  The kernel MUST NEVER
    import from ``caseflow_config``; ``caseflow_config.bridges`` turns
    settings into kernel objects.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Environment overrides are applied after the file is parsed and are
      validated the same way.

Failure modes:
    - ``ConfigurationError`` -- missing or malformed file, unknown keys,
      wrong value types, or an invalid override.

Audit relevance:
    Every successful call emits a ``caseflow_settings_loaded`` log entry
    naming the source file, database dialect and log level.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Mapping

from sqlalchemy.engine import make_url

from caseflow_config.loader import (
    load_yaml_file,
    parse_database_url,
    parse_log_level,
    parse_settings,
)
from caseflow_config.schema import (
    CaseflowSettings,
    DatabaseSettings,
    LoggingSettings,
    WorkflowSettings,
)

_logger = logging.getLogger("caseflow_kernel.config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "sets" / "default.yaml"

ENV_DATABASE_URL = "CASEFLOW_DATABASE_URL"
ENV_LOG_LEVEL = "CASEFLOW_LOG_LEVEL"


def get_active_settings(
    config_path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> CaseflowSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_path: Settings file.  Defaults to caseflow_config/sets/default.yaml.
        env: Environment mapping for overrides.  Defaults to ``os.environ``.

    Returns:
        Frozen CaseflowSettings.

    Raises:
        ConfigurationError: if the file or an override is invalid.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_SETTINGS_FILE
    environ = os.environ if env is None else env

    settings = parse_settings(load_yaml_file(path), source=str(path))

    url = environ.get(ENV_DATABASE_URL)
    if url:
        settings = replace(
            settings,
            database=replace(settings.database, url=parse_database_url(url)),
        )
    level = environ.get(ENV_LOG_LEVEL)
    if level:
        settings = replace(
            settings, logging=LoggingSettings(level=parse_log_level(level))
        )

    _logger.info(
        "caseflow_settings_loaded",
        extra={
            "source": settings.source,
            "dialect": make_url(settings.database.url).get_backend_name(),
            "log_level": settings.logging.level,
            "max_note_length": settings.workflow.max_note_length,
        },
    )
    return settings


__all__ = [
    "CaseflowSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "WorkflowSettings",
    "get_active_settings",
]
