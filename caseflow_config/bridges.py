"""
Settings -> Kernel Bridges.

Functions that turn CaseflowSettings into kernel objects.  These live in
caseflow_config because the kernel must NEVER import caseflow_config.

Usage:
    from caseflow_config import get_active_settings
    from caseflow_config.bridges import build_workflow_engine, init_runtime

    settings = get_active_settings()
    init_runtime(settings)
    with session_scope() as session:
        engine = build_workflow_engine(session, settings, auto_commit=False)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from caseflow_config.schema import CaseflowSettings
from caseflow_kernel.db.engine import init_engine_from_url
from caseflow_kernel.db.immutability import register_immutability_listeners
from caseflow_kernel.domain.actors import ActorDirectory
from caseflow_kernel.domain.clock import Clock
from caseflow_kernel.logging_config import configure_logging
from caseflow_kernel.services.workflow_engine import WorkflowEngine


def init_database(settings: CaseflowSettings) -> Engine:
    """Initialise the kernel engine from the database section."""
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )


def init_runtime(settings: CaseflowSettings) -> Engine:
    """Configure logging, the database engine and immutability listeners.

    Logging is configured first so the engine's own startup line honours
    the configured level.
    """
    configure_logging(level=settings.logging.level)
    engine = init_database(settings)
    register_immutability_listeners()
    return engine


def build_workflow_engine(
    session: Session,
    settings: CaseflowSettings,
    clock: Clock | None = None,
    *,
    actor_directory: ActorDirectory | None = None,
    auto_commit: bool = True,
) -> WorkflowEngine:
    """A WorkflowEngine honouring the workflow section of ``settings``."""
    return WorkflowEngine(
        session,
        clock,
        actor_directory=actor_directory,
        max_note_length=settings.workflow.max_note_length,
        auto_commit=auto_commit,
    )
