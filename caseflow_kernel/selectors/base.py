"""
Module: caseflow_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the query side of the kernel: case listings, status counts and
    refinement reporting, without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/base.py,
    models/ and domain/ value types.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(),
      session.delete(), session.commit() or session.flush().
    - DTO return convention: selectors return frozen dataclasses, never
      ORM instances.
    - Session ownership: the caller owns the session and its transaction.

Audit relevance:
    Refinement figures are derived from case_audit_log at read time; there
    is no stored monthly rollup.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from caseflow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Guarantees:
        - No commit, flush, add, or delete operations are performed.
    """

    def __init__(self, session: Session):
        self.session = session
