"""
Module: caseflow_kernel.models.case
Responsibility: ORM persistence for the case aggregate root and its
    assignment history.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - status is one of CaseStatus (DB check constraint).
    - refinement_count >= 0 and audit_seq >= 0 (DB check constraints).
    - owner_id is write-once (ORM listener, see db/immutability.py).
    - CaseAssignmentModel rows are append-only (ORM listener).

Failure modes:
    - IntegrityError on check-constraint violations.
    - ImmutabilityViolationError on owner_id change or assignment mutation.

Audit relevance:
    ``cases.status`` is a cached projection of the last audit entry's
    ``to_status``; ``case_audit_log`` is the source of truth for history.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from caseflow_kernel.db.base import Base, UUIDString
from caseflow_kernel.domain.dtos import CaseRecord
from caseflow_kernel.domain.statuses import CaseStatus

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in CaseStatus)


class CaseModel(Base):
    """
    Persistent case row.

    Contract:
        Only the workflow engine changes ``status`` and ``refinement_count``,
        always through a compare-and-swap UPDATE in CaseRepository.
    """

    __tablename__ = "cases"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_cases_valid_status",
        ),
        CheckConstraint("refinement_count >= 0", name="ck_cases_refinement_nonneg"),
        CheckConstraint("audit_seq >= 0", name="ck_cases_audit_seq_nonneg"),
        Index("idx_cases_owner", "owner_id"),
        Index("idx_cases_status", "status"),
        Index("idx_cases_designer", "designer_assignee_id"),
        Index("idx_cases_reviewer", "reviewer_assignee_id"),
    )

    status: Mapped[str] = mapped_column(String(50), nullable=False)
    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    designer_assignee_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    reviewer_assignee_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), nullable=True,
    )
    refinement_count: Mapped[int] = mapped_column(nullable=False, default=0)

    # Number of audit entries written for this case; allocates the next seq.
    audit_seq: Mapped[int] = mapped_column(nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Case {self.id} {self.status}>"

    def to_record(self) -> CaseRecord:
        return CaseRecord(
            id=self.id,
            status=CaseStatus(self.status),
            owner_id=self.owner_id,
            designer_assignee_id=self.designer_assignee_id,
            reviewer_assignee_id=self.reviewer_assignee_id,
            refinement_count=self.refinement_count,
            audit_seq=self.audit_seq,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class CaseAssignmentModel(Base):
    """
    One administrator assignment of designer and reviewer to a case.

    Contract:
        Append-only; the current assignment lives on the case row, this
        table keeps every assignment ever made.
    """

    __tablename__ = "case_assignments"

    __table_args__ = (
        Index("idx_case_assignments_case", "case_id", "assigned_at"),
    )

    case_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("cases.id"), nullable=False,
    )
    designer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reviewer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    assigned_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<CaseAssignment case={self.case_id} designer={self.designer_id}>"
