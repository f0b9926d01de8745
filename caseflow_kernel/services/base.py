"""
BaseService -- abstract base for kernel collaborator services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    flush-only services (CaseRepository, AuditLogService).  They receive a
    SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: collaborator services flush within the caller's
    transaction and never commit or rollback themselves.  WorkflowEngine
    owns commit/rollback so a status change and its audit entry land
    together or not at all.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from caseflow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for flush-only kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide reporting queries -- those belong in
          ``caseflow_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Initialize the service.

        Preconditions:
            - ``session`` is a valid, open SQLAlchemy session.
        """
        self.session = session
