"""
CaseRepository -- load and compare-and-swap update of case rows.

Responsibility:
    The only code that writes ``cases`` rows.  Status, refinement count,
    assignees and audit sequence change exclusively through conditional
    UPDATE statements guarded by the status and audit sequence the caller
    read.

Architecture position:
    Kernel > Services -- flush-only collaborator of WorkflowEngine.

Invariants enforced:
    - Optimistic concurrency: ``UPDATE ... WHERE id = :id AND status = :expected
      AND audit_seq = :seq``.  ``audit_seq`` is the row version: a concurrent
      reassignment leaves the status alone but still bumps it.  Zero rows
      matched means another writer got there first.
    - refinement_delta is 0 or 1; the counter never decreases through
      ``apply_transition``.
    - Every successful write bumps ``audit_seq`` by exactly one; the caller
      uses the new value as the seq of the audit entry it appends.

Failure modes:
    - CaseNotFoundError: no row for the id.
    - TransitionConflictError: the row exists but its status or audit
      sequence is no longer the expected one.
    - WorkflowValidationError: refinement_delta outside {0, 1}.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select, update

from caseflow_kernel.domain.dtos import CaseRecord
from caseflow_kernel.domain.statuses import INITIAL_STATUS, CaseStatus
from caseflow_kernel.exceptions import (
    CaseNotFoundError,
    TransitionConflictError,
    WorkflowValidationError,
)
from caseflow_kernel.logging_config import get_logger
from caseflow_kernel.models.case import CaseAssignmentModel, CaseModel
from caseflow_kernel.services.base import BaseService

logger = get_logger("services.case_repository")


class CaseRepository(BaseService[CaseModel]):
    """Case row access for the workflow engine."""

    def create(self, owner_id: UUID, now: datetime) -> CaseRecord:
        """Insert a new case in the initial status.

        ``audit_seq`` starts at 1: the creation entry takes seq 1.
        """
        model = CaseModel(
            id=uuid4(),
            status=INITIAL_STATUS.value,
            owner_id=owner_id,
            designer_assignee_id=None,
            reviewer_assignee_id=None,
            refinement_count=0,
            audit_seq=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(model)
        self.session.flush()
        return model.to_record()

    def get_by_id(self, case_id: UUID) -> CaseRecord:
        """Load the current state of a case.

        Raises:
            CaseNotFoundError: if the case does not exist.
        """
        model = self.session.get(CaseModel, case_id, populate_existing=True)
        if model is None:
            raise CaseNotFoundError(str(case_id))
        return model.to_record()

    def apply_transition(
        self,
        case_id: UUID,
        expected_current_status: CaseStatus,
        new_status: CaseStatus,
        refinement_delta: int,
        now: datetime,
        expected_seq: int | None = None,
    ) -> CaseRecord:
        """Compare-and-swap the status.

        With ``expected_seq`` the swap also requires the row version the
        caller read, so any intervening write (including a reassignment)
        makes it fail.

        Raises:
            WorkflowValidationError: refinement_delta is not 0 or 1.
            CaseNotFoundError: the case vanished.
            TransitionConflictError: status or audit_seq changed since it
                was read.
        """
        if refinement_delta not in (0, 1):
            raise WorkflowValidationError(
                f"refinement_delta must be 0 or 1, got {refinement_delta}",
                case_id=str(case_id),
            )

        result = self.session.execute(
            update(CaseModel)
            .where(*self._swap_filter(case_id, expected_current_status, expected_seq))
            .values(
                status=new_status.value,
                refinement_count=CaseModel.refinement_count + refinement_delta,
                audit_seq=CaseModel.audit_seq + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self._raise_swap_failure(case_id, expected_current_status, expected_seq)

        return self.get_by_id(case_id)

    def apply_assignment(
        self,
        case_id: UUID,
        expected_current_status: CaseStatus,
        designer_id: UUID,
        reviewer_id: UUID,
        now: datetime,
        expected_seq: int | None = None,
    ) -> CaseRecord:
        """Compare-and-swap the assignee columns; status is unchanged."""
        result = self.session.execute(
            update(CaseModel)
            .where(*self._swap_filter(case_id, expected_current_status, expected_seq))
            .values(
                designer_assignee_id=designer_id,
                reviewer_assignee_id=reviewer_id,
                audit_seq=CaseModel.audit_seq + 1,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self._raise_swap_failure(case_id, expected_current_status, expected_seq)

        return self.get_by_id(case_id)

    def record_assignment(
        self,
        case_id: UUID,
        designer_id: UUID,
        reviewer_id: UUID,
        assigned_by: UUID,
        now: datetime,
    ) -> None:
        """Append a row to the assignment history."""
        self.session.add(
            CaseAssignmentModel(
                case_id=case_id,
                designer_id=designer_id,
                reviewer_id=reviewer_id,
                assigned_by=assigned_by,
                assigned_at=now,
            )
        )
        self.session.flush()

    def overwrite_projection(
        self,
        case_id: UUID,
        status: CaseStatus,
        refinement_count: int,
        now: datetime,
    ) -> CaseRecord:
        """Replace the cached status and refinement count.

        Used only by HistoryVerifier.reconcile, where the audit log wins.
        """
        result = self.session.execute(
            update(CaseModel)
            .where(CaseModel.id == case_id)
            .values(
                status=status.value,
                refinement_count=refinement_count,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise CaseNotFoundError(str(case_id))
        return self.get_by_id(case_id)

    @staticmethod
    def _swap_filter(
        case_id: UUID, expected: CaseStatus, expected_seq: int | None
    ) -> list:
        clauses = [CaseModel.id == case_id, CaseModel.status == expected.value]
        if expected_seq is not None:
            clauses.append(CaseModel.audit_seq == expected_seq)
        return clauses

    def _raise_swap_failure(
        self, case_id: UUID, expected: CaseStatus, expected_seq: int | None
    ) -> None:
        row = self.session.execute(
            select(CaseModel.status, CaseModel.audit_seq).where(CaseModel.id == case_id)
        ).one_or_none()
        if row is None:
            raise CaseNotFoundError(str(case_id))
        actual, actual_seq = row
        logger.warning(
            "transition_conflict",
            extra={
                "case_id": str(case_id),
                "expected_status": expected.value,
                "actual_status": actual,
                "expected_seq": expected_seq,
                "actual_seq": actual_seq,
            },
        )
        raise TransitionConflictError(
            str(case_id), expected.value, actual,
            expected_seq=expected_seq, actual_seq=actual_seq,
        )
