"""
Module: caseflow_kernel.models.case_audit
Responsibility: ORM persistence for the append-only case audit log.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value types only.

Invariants enforced:
    - Audit entries are append-only; no UPDATE or DELETE (ORM listeners).
    - (case_id, seq) is unique: one entry per sequence slot per case.
    - from_status is NULL only for the case_created entry.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - IntegrityError on a duplicate (case_id, seq).

Audit relevance:
    This IS the case history.  Replaying ``to_status`` ordered by ``seq``
    reconstructs ``cases.status`` exactly; when the two disagree the log
    wins (see services/history_verifier.py).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from caseflow_kernel.db.base import Base, UUIDString
from caseflow_kernel.domain.dtos import AuditAction, AuditEntryRecord
from caseflow_kernel.domain.statuses import CaseStatus


class CaseAuditEntryModel(Base):
    """
    A single immutable line of case history.

    Guarantees:
        - seq is 1-based and gap-free per case (allocated from cases.audit_seq).
        - occurred_at comes from the engine's injected Clock.
    """

    __tablename__ = "case_audit_log"

    __table_args__ = (
        UniqueConstraint("case_id", "seq", name="uq_case_audit_log_case_seq"),
        Index("idx_case_audit_case", "case_id"),
        Index("idx_case_audit_occurred", "occurred_at"),
        Index("idx_case_audit_to_status", "to_status", "occurred_at"),
    )

    case_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("cases.id"), nullable=False,
    )
    seq: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    performed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<CaseAuditEntry {self.case_id}#{self.seq} "
            f"{self.from_status}->{self.to_status}>"
        )

    def to_record(self) -> AuditEntryRecord:
        return AuditEntryRecord(
            id=self.id,
            case_id=self.case_id,
            seq=self.seq,
            action=AuditAction(self.action),
            from_status=CaseStatus(self.from_status) if self.from_status else None,
            to_status=CaseStatus(self.to_status),
            performed_by=self.performed_by,
            note=self.note,
            occurred_at=self.occurred_at,
        )
