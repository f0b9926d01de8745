"""
HistoryVerifier -- replay the audit log and compare it with the case row.

Responsibility:
    ``cases.status`` and ``cases.refinement_count`` are cached projections
    of ``case_audit_log``.  This service recomputes both from the log,
    reports any break in the status chain, and on request overwrites the
    cached values with the replayed ones.

Architecture position:
    Kernel > Services -- flush-only; the caller owns the transaction.

Invariants enforced:
    - The log wins: reconcile never edits an audit entry, only the case row.
    - A log with a chain break is never used to overwrite the case row.

Failure modes:
    - CaseNotFoundError: no such case.
    - AuditChainBrokenError from reconcile when the log itself is broken.

Audit relevance:
    Every overwrite is logged as ``history_projection_reconciled`` with the
    before and after values.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from caseflow_kernel.domain.clock import Clock, SystemClock
from caseflow_kernel.domain.dtos import AuditAction, AuditEntryRecord, CaseRecord
from caseflow_kernel.domain.statuses import (
    INITIAL_STATUS,
    REJECTED_STATUSES,
    CaseStatus,
)
from caseflow_kernel.domain.transition_table import (
    DEFAULT_TRANSITION_TABLE,
    TransitionTable,
)
from caseflow_kernel.exceptions import AuditChainBrokenError
from caseflow_kernel.logging_config import get_logger
from caseflow_kernel.services.audit_log import AuditLogService
from caseflow_kernel.services.base import BaseService
from caseflow_kernel.services.case_repository import CaseRepository

logger = get_logger("services.history_verifier")


@dataclass(frozen=True)
class ChainBreak:
    """One defect found while replaying a case's history."""

    seq: int
    reason: str


@dataclass(frozen=True)
class ReplayReport:
    """Outcome of replaying one case's audit log."""

    case_id: UUID
    entry_count: int
    replayed_status: CaseStatus | None
    replayed_refinements: int
    cached_status: CaseStatus
    cached_refinements: int
    chain_breaks: tuple[ChainBreak, ...]

    @property
    def chain_intact(self) -> bool:
        return not self.chain_breaks

    @property
    def projection_matches(self) -> bool:
        return (
            self.replayed_status == self.cached_status
            and self.replayed_refinements == self.cached_refinements
        )

    @property
    def is_consistent(self) -> bool:
        return self.chain_intact and self.projection_matches


def replay(
    entries: list[AuditEntryRecord],
    table: TransitionTable = DEFAULT_TRANSITION_TABLE,
) -> tuple[CaseStatus | None, int, list[ChainBreak]]:
    """Fold ordered entries into (status, refinements, breaks). Pure."""
    breaks: list[ChainBreak] = []
    status: CaseStatus | None = None
    refinements = 0
    expected_seq = 1

    for index, entry in enumerate(entries):
        if entry.seq != expected_seq:
            breaks.append(ChainBreak(entry.seq, f"expected seq {expected_seq}"))
        expected_seq = entry.seq + 1

        if index == 0:
            if entry.action is not AuditAction.CASE_CREATED or not entry.is_creation:
                breaks.append(ChainBreak(entry.seq, "first entry is not a creation entry"))
            elif entry.to_status is not INITIAL_STATUS:
                breaks.append(ChainBreak(entry.seq, f"case created in {entry.to_status.value}"))
        elif entry.action is AuditAction.CASE_CREATED:
            breaks.append(ChainBreak(entry.seq, "repeated creation entry"))
        elif entry.from_status != status:
            breaks.append(
                ChainBreak(
                    entry.seq,
                    f"from_status {_value(entry.from_status)} does not follow "
                    f"{_value(status)}",
                )
            )
        elif entry.action is AuditAction.ACTORS_ASSIGNED:
            if entry.to_status != entry.from_status:
                breaks.append(ChainBreak(entry.seq, "assignment changed status"))
        elif table.get(entry.from_status, entry.to_status) is None:
            breaks.append(
                ChainBreak(
                    entry.seq,
                    f"illegal transition {entry.from_status.value} -> "
                    f"{entry.to_status.value}",
                )
            )

        if entry.is_status_change and entry.to_status in REJECTED_STATUSES:
            refinements += 1
        status = entry.to_status

    return status, refinements, breaks


def _value(status: CaseStatus | None) -> str:
    return "none" if status is None else status.value


class HistoryVerifier(BaseService):
    """Replays case history and repairs drifted projections."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        transition_table: TransitionTable | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._table = transition_table or DEFAULT_TRANSITION_TABLE
        self._cases = CaseRepository(session)
        self._audit = AuditLogService(session)

    def verify(self, case_id: UUID) -> ReplayReport:
        case = self._cases.get_by_id(case_id)
        entries = self._audit.get_history(case_id)
        status, refinements, breaks = replay(entries, self._table)

        if not entries:
            breaks.append(ChainBreak(0, "case has no audit entries"))
        elif entries[-1].seq != case.audit_seq:
            breaks.append(
                ChainBreak(
                    entries[-1].seq,
                    f"last entry seq {entries[-1].seq} does not match "
                    f"audit_seq {case.audit_seq}",
                )
            )

        report = ReplayReport(
            case_id=case.id,
            entry_count=len(entries),
            replayed_status=status,
            replayed_refinements=refinements,
            cached_status=case.status,
            cached_refinements=case.refinement_count,
            chain_breaks=tuple(breaks),
        )
        if not report.is_consistent:
            logger.warning(
                "history_inconsistent",
                extra={
                    "case_id": str(case.id),
                    "chain_breaks": len(report.chain_breaks),
                    "replayed_status": _value(status),
                    "cached_status": case.status.value,
                },
            )
        return report

    def reconcile(self, case_id: UUID) -> CaseRecord:
        """Overwrite the cached projection with the replayed one.

        Returns the (possibly unchanged) case.

        Raises:
            AuditChainBrokenError: the log has a chain break.
        """
        report = self.verify(case_id)
        if not report.chain_intact:
            first = report.chain_breaks[0]
            raise AuditChainBrokenError(str(case_id), first.seq, first.reason)

        if report.projection_matches:
            return self._cases.get_by_id(case_id)

        updated = self._cases.overwrite_projection(
            case_id,
            report.replayed_status,
            report.replayed_refinements,
            self._clock.now(),
        )
        logger.warning(
            "history_projection_reconciled",
            extra={
                "case_id": str(case_id),
                "status_before": report.cached_status.value,
                "status_after": updated.status.value,
                "refinements_before": report.cached_refinements,
                "refinements_after": updated.refinement_count,
            },
        )
        return updated
