"""
Data transfer objects for the case workflow.

Frozen snapshots handed out by services and selectors.  ORM rows never
leave the kernel; callers only ever see these.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from caseflow_kernel.domain.statuses import CaseStatus, is_terminal


class AuditAction(str, Enum):
    """Kinds of entries in the case audit log."""

    CASE_CREATED = "case_created"
    STATUS_CHANGED = "status_changed"
    ACTORS_ASSIGNED = "actors_assigned"


@dataclass(frozen=True)
class CaseRecord:
    """Snapshot of a case as of the last read or write."""

    id: UUID
    status: CaseStatus
    owner_id: UUID
    designer_assignee_id: UUID | None
    reviewer_assignee_id: UUID | None
    refinement_count: int
    audit_seq: int
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)


@dataclass(frozen=True)
class AuditEntryRecord:
    """One immutable line of a case's history."""

    id: UUID
    case_id: UUID
    seq: int
    action: AuditAction
    from_status: CaseStatus | None
    to_status: CaseStatus
    performed_by: UUID
    note: str | None
    occurred_at: datetime

    @property
    def is_creation(self) -> bool:
        return self.from_status is None

    @property
    def is_status_change(self) -> bool:
        return self.action is AuditAction.STATUS_CHANGED
