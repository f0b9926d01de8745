"""
Pure domain layer.

Statuses, actors, the transition table and DTOs, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from caseflow_kernel.domain.actors import (
    Actor,
    ActorDirectory,
    ActorRole,
    ActorSubRole,
    Capability,
    StaticActorDirectory,
    parse_role,
    parse_sub_role,
)
from caseflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from caseflow_kernel.domain.dtos import AuditAction, AuditEntryRecord, CaseRecord
from caseflow_kernel.domain.statuses import (
    INITIAL_STATUS,
    REJECTED_STATUSES,
    REJECTION_TARGETS,
    REWORK_TARGETS,
    STATUS_BUCKETS,
    TERMINAL_STATUSES,
    CaseStatus,
    StatusBucket,
    parse_status,
)
from caseflow_kernel.domain.transition_table import (
    CASE_TRANSITION_RULES,
    DEFAULT_TRANSITION_TABLE,
    Guard,
    TransitionRule,
    TransitionTable,
    is_authorized,
)

__all__ = [
    # Actors
    "Actor",
    "ActorDirectory",
    "ActorRole",
    "ActorSubRole",
    "Capability",
    "StaticActorDirectory",
    "parse_role",
    "parse_sub_role",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # DTOs
    "AuditAction",
    "AuditEntryRecord",
    "CaseRecord",
    # Statuses
    "CaseStatus",
    "StatusBucket",
    "INITIAL_STATUS",
    "REJECTED_STATUSES",
    "REJECTION_TARGETS",
    "REWORK_TARGETS",
    "STATUS_BUCKETS",
    "TERMINAL_STATUSES",
    "parse_status",
    # Transition table
    "CASE_TRANSITION_RULES",
    "DEFAULT_TRANSITION_TABLE",
    "Guard",
    "TransitionRule",
    "TransitionTable",
    "is_authorized",
]
