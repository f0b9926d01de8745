"""
Case status vocabulary (``caseflow_kernel.domain.statuses``).

Responsibility
--------------
The closed enumeration of case statuses and the derived status sets the
workflow engine and reporting rely on: terminal statuses, rejected
statuses, the rework target of each rejection, and the reporting buckets.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every derived set is a frozenset and every derived lookup a read-only
  mapping, built at import time.
* ``STATUS_BUCKETS`` partitions ``CaseStatus``: each status lands in
  exactly one reporting bucket.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from caseflow_kernel.exceptions import InvalidStatusValueError


class CaseStatus(str, Enum):
    """Case lifecycle states.

    Typical progression: pending_intake -> pending_approval -> in_design ->
    pending_review -> pending_client_review -> approved, with rejection
    loops back to in_design.  ``opened`` and ``assigned`` are legacy
    pass-through statuses kept for older records.
    """

    PENDING_INTAKE = "pending_intake"
    PENDING_APPROVAL = "pending_approval"
    OPENED = "opened"
    ASSIGNED = "assigned"
    IN_DESIGN = "in_design"
    PENDING_REVIEW = "pending_review"
    REVIEW_REJECTED = "review_rejected"
    PENDING_CLIENT_REVIEW = "pending_client_review"
    CLIENT_REJECTED = "client_rejected"
    APPROVED = "approved"
    CANCELLED = "cancelled"


INITIAL_STATUS: CaseStatus = CaseStatus.PENDING_INTAKE

TERMINAL_STATUSES: frozenset[CaseStatus] = frozenset({
    CaseStatus.APPROVED,
    CaseStatus.CANCELLED,
})

# Landing on one of these increments the refinement counter.
REJECTED_STATUSES: frozenset[CaseStatus] = frozenset({
    CaseStatus.REVIEW_REJECTED,
    CaseStatus.CLIENT_REJECTED,
})

# Second hop of a compound rejection.
REWORK_TARGETS: Mapping[CaseStatus, CaseStatus] = MappingProxyType({
    CaseStatus.REVIEW_REJECTED: CaseStatus.IN_DESIGN,
    CaseStatus.CLIENT_REJECTED: CaseStatus.IN_DESIGN,
})

# First hop of a compound rejection, keyed by the status being rejected.
REJECTION_TARGETS: Mapping[CaseStatus, CaseStatus] = MappingProxyType({
    CaseStatus.PENDING_REVIEW: CaseStatus.REVIEW_REJECTED,
    CaseStatus.PENDING_CLIENT_REVIEW: CaseStatus.CLIENT_REJECTED,
})


class StatusBucket(str, Enum):
    """Reporting buckets used by dashboard aggregates."""

    PENDING_PAYMENT = "pending_payment"
    IN_DESIGN_REVIEW = "in_design_review"
    IN_QC_REVIEW = "in_qc_review"
    APPROVAL_REQUIRED = "approval_required"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


STATUS_BUCKETS: Mapping[CaseStatus, StatusBucket] = MappingProxyType({
    CaseStatus.PENDING_INTAKE: StatusBucket.PENDING_PAYMENT,
    CaseStatus.PENDING_APPROVAL: StatusBucket.PENDING_PAYMENT,
    CaseStatus.OPENED: StatusBucket.IN_DESIGN_REVIEW,
    CaseStatus.ASSIGNED: StatusBucket.IN_DESIGN_REVIEW,
    CaseStatus.IN_DESIGN: StatusBucket.IN_DESIGN_REVIEW,
    CaseStatus.REVIEW_REJECTED: StatusBucket.IN_DESIGN_REVIEW,
    CaseStatus.CLIENT_REJECTED: StatusBucket.IN_DESIGN_REVIEW,
    CaseStatus.PENDING_REVIEW: StatusBucket.IN_QC_REVIEW,
    CaseStatus.PENDING_CLIENT_REVIEW: StatusBucket.APPROVAL_REQUIRED,
    CaseStatus.APPROVED: StatusBucket.COMPLETED,
    CaseStatus.CANCELLED: StatusBucket.CANCELLED,
})


def parse_status(value: CaseStatus | str) -> CaseStatus:
    """Coerce a status or its string value into ``CaseStatus``.

    Raises:
        InvalidStatusValueError: if ``value`` is not a known status.
    """
    if isinstance(value, CaseStatus):
        return value
    try:
        return CaseStatus(value)
    except ValueError:
        raise InvalidStatusValueError(str(value)) from None


def is_terminal(status: CaseStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_rejected(status: CaseStatus) -> bool:
    return status in REJECTED_STATUSES
