"""
AuditLogService -- append-only writer and reader of case history.

Responsibility:
    Appends entries to ``case_audit_log`` and returns a case's history in
    sequence order.  There is deliberately no update or delete method.

Architecture position:
    Kernel > Services -- flush-only collaborator of WorkflowEngine.

Invariants enforced:
    - Append-only: ORM listeners in db/immutability.py block UPDATE and
      DELETE on audit rows.
    - One entry per (case_id, seq); the unique constraint rejects a
      second writer that somehow obtained the same seq.

Failure modes:
    - CaseNotFoundError from get_history when the case does not exist.
    - IntegrityError on duplicate (case_id, seq).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from caseflow_kernel.domain.dtos import AuditAction, AuditEntryRecord
from caseflow_kernel.domain.statuses import CaseStatus
from caseflow_kernel.exceptions import CaseNotFoundError
from caseflow_kernel.logging_config import get_logger
from caseflow_kernel.models.case import CaseModel
from caseflow_kernel.models.case_audit import CaseAuditEntryModel
from caseflow_kernel.services.base import BaseService

logger = get_logger("services.audit_log")


class AuditLogService(BaseService[CaseAuditEntryModel]):
    """
    Writer/reader for the case audit trail.

    Non-goals:
        - Does NOT allocate sequence numbers; the caller passes the
          ``audit_seq`` returned by the CaseRepository write it just made.
    """

    def append(
        self,
        case_id: UUID,
        seq: int,
        action: AuditAction,
        from_status: CaseStatus | None,
        to_status: CaseStatus,
        performed_by: UUID,
        note: str | None,
        occurred_at: datetime,
    ) -> AuditEntryRecord:
        entry = CaseAuditEntryModel(
            case_id=case_id,
            seq=seq,
            action=action.value,
            from_status=from_status.value if from_status is not None else None,
            to_status=to_status.value,
            performed_by=performed_by,
            note=note,
            occurred_at=occurred_at,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "audit_entry_appended",
            extra={
                "seq": seq,
                "action": action.value,
                "from_status": entry.from_status,
                "to_status": entry.to_status,
            },
        )
        return entry.to_record()

    def get_history(self, case_id: UUID) -> list[AuditEntryRecord]:
        """Entries for ``case_id``, oldest first.

        Raises:
            CaseNotFoundError: if the case does not exist.
        """
        if self.session.get(CaseModel, case_id) is None:
            raise CaseNotFoundError(str(case_id))

        rows = self.session.execute(
            select(CaseAuditEntryModel)
            .where(CaseAuditEntryModel.case_id == case_id)
            .order_by(CaseAuditEntryModel.seq)
        ).scalars().all()
        return [row.to_record() for row in rows]
