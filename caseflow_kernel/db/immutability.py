"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The case audit log is the source of truth for history: ``cases.status`` is
only a cached projection of it.  If an audit row could be edited or removed,
the replay guarantee (log reconstructs status) would be meaningless.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable            | Why
---------------------|---------------------------|----------------------------------
CaseAuditEntryModel  | ALWAYS (from creation)    | Audit trail is the history
CaseAssignmentModel  | ALWAYS (from creation)    | Assignment history for traceability
CaseModel.owner_id   | ALWAYS (from creation)    | Ownership gates owner transitions

Status, refinement_count and audit_seq are written with Core UPDATE
statements by CaseRepository; they never pass through these listeners.

===============================================================================
USAGE
===============================================================================

    from caseflow_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

    # In tests that need to simulate tampering:
    unregister_immutability_listeners()
    ... tamper ...
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect

from caseflow_kernel.exceptions import ImmutabilityViolationError
from caseflow_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_audit_entry_update(mapper, connection, target):
    _block(
        "CaseAuditEntry", target.id, "UPDATE",
        "Audit entries are immutable and cannot be modified",
    )


def _check_audit_entry_delete(mapper, connection, target):
    _block(
        "CaseAuditEntry", target.id, "DELETE",
        "Audit entries cannot be deleted",
    )


def _check_assignment_update(mapper, connection, target):
    _block(
        "CaseAssignment", target.id, "UPDATE",
        "Assignment records are immutable and cannot be modified",
    )


def _check_assignment_delete(mapper, connection, target):
    _block(
        "CaseAssignment", target.id, "DELETE",
        "Assignment records cannot be deleted",
    )


def _check_case_owner_immutability(mapper, connection, target):
    """owner_id is write-once."""
    history = inspect(target).attrs.owner_id.history
    if history.has_changes() and history.deleted and history.deleted[0] is not None:
        _block(
            "Case", target.id, "UPDATE",
            "Case owner cannot be changed after creation",
        )


_LISTENERS = (
    ("CaseAuditEntryModel", "before_update", _check_audit_entry_update),
    ("CaseAuditEntryModel", "before_delete", _check_audit_entry_delete),
    ("CaseAssignmentModel", "before_update", _check_assignment_update),
    ("CaseAssignmentModel", "before_delete", _check_assignment_delete),
    ("CaseModel", "before_update", _check_case_owner_immutability),
)


def _models() -> dict:
    from caseflow_kernel.models.case import CaseAssignmentModel, CaseModel
    from caseflow_kernel.models.case_audit import CaseAuditEntryModel

    return {
        "CaseAuditEntryModel": CaseAuditEntryModel,
        "CaseAssignmentModel": CaseAssignmentModel,
        "CaseModel": CaseModel,
    }


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners (idempotent).

    Call this after models are importable but before any database
    operations begin.
    """
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        target = models[model_name]
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    models = _models()
    for model_name, event_name, fn in _LISTENERS:
        target = models[model_name]
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
