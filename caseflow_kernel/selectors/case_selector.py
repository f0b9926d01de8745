"""
Module: caseflow_kernel.selectors.case_selector
Responsibility: Case listings for owners, assignees and operators.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Returns CaseRecord DTOs only.
    - Listings are newest first (created_at descending, id as tiebreak).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from caseflow_kernel.domain.dtos import CaseRecord
from caseflow_kernel.domain.statuses import REJECTED_STATUSES, CaseStatus, parse_status
from caseflow_kernel.models.case import CaseModel
from caseflow_kernel.selectors.base import BaseSelector


class CaseSelector(BaseSelector[CaseModel]):
    """Filters and lists cases."""

    def list_cases(
        self,
        owner_id: UUID | None = None,
        designer_id: UUID | None = None,
        reviewer_id: UUID | None = None,
        status: CaseStatus | str | None = None,
    ) -> list[CaseRecord]:
        """
        Cases matching every given filter, newest first.

        Omitted filters match everything.  ``status`` accepts the enum or
        its string value.

        Raises:
            InvalidStatusValueError: unknown status value.
        """
        stmt = select(CaseModel)
        if owner_id is not None:
            stmt = stmt.where(CaseModel.owner_id == owner_id)
        if designer_id is not None:
            stmt = stmt.where(CaseModel.designer_assignee_id == designer_id)
        if reviewer_id is not None:
            stmt = stmt.where(CaseModel.reviewer_assignee_id == reviewer_id)
        if status is not None:
            stmt = stmt.where(CaseModel.status == parse_status(status).value)

        stmt = stmt.order_by(CaseModel.created_at.desc(), CaseModel.id.desc())
        stmt = stmt.execution_options(populate_existing=True)
        return [m.to_record() for m in self.session.execute(stmt).scalars()]

    def find_stalled_rejections(self) -> list[CaseRecord]:
        """Cases resting in a rejected status, oldest update first.

        A compound rejection whose rework hop never ran leaves the case
        here; these are the candidates for ``WorkflowEngine.resume_rework``.
        """
        stmt = (
            select(CaseModel)
            .where(CaseModel.status.in_([s.value for s in REJECTED_STATUSES]))
            .order_by(CaseModel.updated_at, CaseModel.id)
            .execution_options(populate_existing=True)
        )
        return [m.to_record() for m in self.session.execute(stmt).scalars()]
