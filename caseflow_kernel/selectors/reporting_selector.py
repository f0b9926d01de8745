"""
Module: caseflow_kernel.selectors.reporting_selector
Responsibility: Refinement counts, status bucket counts and the case-owner
    dashboard aggregates.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - A refinement is a ``status_changed`` audit entry whose to_status is a
      rejected status.  Counts are always derived from the audit log, so
      total_refinements(case) equals the case's cached refinement_count.
    - Period windows are half-open: start <= occurred_at < end.
    - "This month" is the calendar month of ``now`` in UTC, computed at
      read time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping
from uuid import UUID

from sqlalchemy import func, select

from caseflow_kernel.domain.dtos import AuditAction
from caseflow_kernel.domain.statuses import (
    REJECTED_STATUSES,
    STATUS_BUCKETS,
    CaseStatus,
    StatusBucket,
)
from caseflow_kernel.exceptions import CaseNotFoundError
from caseflow_kernel.models.case import CaseModel
from caseflow_kernel.models.case_audit import CaseAuditEntryModel
from caseflow_kernel.selectors.base import BaseSelector

_REJECTED_VALUES = [s.value for s in REJECTED_STATUSES]


@dataclass(frozen=True)
class StatusBucketCounts:
    """Case counts per reporting bucket."""

    pending_payment: int = 0
    in_design_review: int = 0
    in_qc_review: int = 0
    approval_required: int = 0
    completed: int = 0
    cancelled: int = 0

    @classmethod
    def from_status_counts(
        cls, counts: Mapping[CaseStatus, int]
    ) -> StatusBucketCounts:
        totals = {bucket: 0 for bucket in StatusBucket}
        for status, n in counts.items():
            totals[STATUS_BUCKETS[status]] += n
        return cls(**{bucket.value: n for bucket, n in totals.items()})

    @property
    def total(self) -> int:
        return (
            self.pending_payment
            + self.in_design_review
            + self.in_qc_review
            + self.approval_required
            + self.completed
            + self.cancelled
        )


@dataclass(frozen=True)
class OwnerDashboard:
    """Aggregates shown to a case owner."""

    owner_id: UUID
    total_cases: int
    cases_this_month: int
    total_refinements: int
    refinements_this_month: int
    cases_by_status: StatusBucketCounts


def month_window(now: datetime) -> tuple[datetime, datetime]:
    """[first instant of now's month, first instant of the next month) in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class ReportingSelector(BaseSelector[CaseAuditEntryModel]):
    """Read-side aggregates over cases and their audit history."""

    def total_refinements(self, case_id: UUID) -> int:
        self._require_case(case_id)
        return self._count_refinements(CaseAuditEntryModel.case_id == case_id)

    def refinements_in_period(
        self, case_id: UUID, start: datetime, end: datetime
    ) -> int:
        """Refinements of one case with start <= occurred_at < end."""
        self._require_case(case_id)
        return self._count_refinements(
            CaseAuditEntryModel.case_id == case_id,
            CaseAuditEntryModel.occurred_at >= start,
            CaseAuditEntryModel.occurred_at < end,
        )

    def refinements_this_month(self, owner_id: UUID, now: datetime) -> int:
        """Refinements across all of an owner's cases in now's month."""
        start, end = month_window(now)
        return self._count_refinements(
            CaseModel.owner_id == owner_id,
            CaseAuditEntryModel.occurred_at >= start,
            CaseAuditEntryModel.occurred_at < end,
        )

    def status_counts(self, owner_id: UUID | None = None) -> StatusBucketCounts:
        stmt = select(CaseModel.status, func.count()).group_by(CaseModel.status)
        if owner_id is not None:
            stmt = stmt.where(CaseModel.owner_id == owner_id)
        counts = {
            CaseStatus(status): n for status, n in self.session.execute(stmt).all()
        }
        return StatusBucketCounts.from_status_counts(counts)

    def owner_dashboard(self, owner_id: UUID, now: datetime) -> OwnerDashboard:
        start, end = month_window(now)

        total_cases = self.session.execute(
            select(func.count())
            .select_from(CaseModel)
            .where(CaseModel.owner_id == owner_id)
        ).scalar_one()
        cases_this_month = self.session.execute(
            select(func.count())
            .select_from(CaseModel)
            .where(
                CaseModel.owner_id == owner_id,
                CaseModel.created_at >= start,
                CaseModel.created_at < end,
            )
        ).scalar_one()

        return OwnerDashboard(
            owner_id=owner_id,
            total_cases=total_cases,
            cases_this_month=cases_this_month,
            total_refinements=self._count_refinements(CaseModel.owner_id == owner_id),
            refinements_this_month=self.refinements_this_month(owner_id, now),
            cases_by_status=self.status_counts(owner_id),
        )

    def _count_refinements(self, *criteria) -> int:
        stmt = (
            select(func.count())
            .select_from(CaseAuditEntryModel)
            .join(CaseModel, CaseModel.id == CaseAuditEntryModel.case_id)
            .where(
                CaseAuditEntryModel.action == AuditAction.STATUS_CHANGED.value,
                CaseAuditEntryModel.to_status.in_(_REJECTED_VALUES),
                *criteria,
            )
        )
        return self.session.execute(stmt).scalar_one()

    def _require_case(self, case_id: UUID) -> None:
        found = self.session.execute(
            select(CaseModel.id).where(CaseModel.id == case_id)
        ).scalar_one_or_none()
        if found is None:
            raise CaseNotFoundError(str(case_id))
