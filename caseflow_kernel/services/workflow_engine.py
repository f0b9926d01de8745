"""
WorkflowEngine -- the only entry point that changes case status.

Responsibility:
    Validates a requested status change against the transition table and
    the case's own data, then applies it and records it in the audit log
    as one atomic unit.  Also creates cases, records actor assignments and
    answers "what may this actor do next" queries.

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    Delegates row writes to CaseRepository and history writes to
    AuditLogService; both only flush.

Transition flow:
    transition(case_id, requested_status, actor_id, actor_role, ...)
      1. Validate inputs (status / role / sub-role values, note text)
      2. Load the case                          -> CaseNotFoundError
      3. Look up the (from, to) rule            -> InvalidTransitionError
      4. Resolve the actor (with a directory)   -> ActorNotFoundError,
         role / capability check                -> TransitionForbiddenError
      5. Per-case eligibility (owner, assignee) -> TransitionForbiddenError
      6. Guard evaluation                       -> GuardFailedError
      7. Compare-and-swap on (status, audit_seq)
         + audit append                         -> TransitionConflictError
      8. Commit (auto_commit) or rollback

Invariants enforced:
    - Status changes only along rules in the transition table.
    - refinement_count grows by exactly one when the target is a rejected
      status, and never otherwise.
    - Every change writes exactly one audit entry whose from_status is the
      pre-update status; the case row and the entry commit together.
    - Same-case races are detected, not retried.

Failure modes:
    - Any CaseflowKernelError is logged as ``workflow_transition_rejected``
      and re-raised after rollback.
    - Unexpected exceptions are logged as ``workflow_transition_failed``
      and re-raised after rollback.

Audit relevance:
    Every call is logged with correlation_id, case_id and actor_id.  The
    two hops of ``reject_for_rework`` share one correlation_id.
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from caseflow_kernel.domain.actors import (
    Actor,
    ActorDirectory,
    ActorRole,
    ActorSubRole,
    Capability,
)
from caseflow_kernel.domain.clock import Clock, SystemClock
from caseflow_kernel.domain.dtos import AuditAction, AuditEntryRecord, CaseRecord
from caseflow_kernel.domain.statuses import (
    INITIAL_STATUS,
    REJECTED_STATUSES,
    REJECTION_TARGETS,
    REWORK_TARGETS,
    CaseStatus,
    parse_status,
)
from caseflow_kernel.domain.transition_table import (
    ACTORS_ASSIGNED,
    DEFAULT_TRANSITION_TABLE,
    TransitionRule,
    TransitionTable,
    exercised_capabilities,
)
from caseflow_kernel.exceptions import (
    ActorNotFoundError,
    CaseflowKernelError,
    GuardFailedError,
    InvalidTransitionError,
    TransitionConfigurationError,
    TransitionForbiddenError,
    WorkflowValidationError,
)
from caseflow_kernel.logging_config import LogContext, elapsed_ms, get_logger
from caseflow_kernel.services.audit_log import AuditLogService
from caseflow_kernel.services.case_repository import CaseRepository
from caseflow_kernel.utils.ids import as_uuid

logger = get_logger("services.workflow_engine")

T = TypeVar("T")

DEFAULT_MAX_NOTE_LENGTH = 2000


def _actors_assigned(case: CaseRecord) -> str | None:
    if case.designer_assignee_id is None and case.reviewer_assignee_id is None:
        return "no designer or reviewer assigned"
    if case.designer_assignee_id is None:
        return "no designer assigned"
    if case.reviewer_assignee_id is None:
        return "no reviewer assigned"
    return None


# Guard name -> check returning a failure reason, or None when satisfied.
_GUARD_CHECKS: dict[str, Callable[[CaseRecord], str | None]] = {
    ACTORS_ASSIGNED.name: _actors_assigned,
}


def _str_or_none(value: object) -> str | None:
    return None if value is None else str(value)


class WorkflowEngine:
    """
    Validates and applies case status transitions.

    Contract:
        Each public mutating method is one atomic unit: on success the
        session is committed (when ``auto_commit=True``); on failure it is
        rolled back and the error re-raised.  Callers composing several
        operations in one transaction pass ``auto_commit=False`` and own
        commit/rollback themselves.

    Guarantees:
        - ``available_transitions`` and ``get_history`` never write.
        - ``reject_for_rework`` commits its two hops separately; a failure
          on the second hop leaves the case resting in the rejected status,
          recoverable with ``resume_rework``.

    Non-goals:
        - Does NOT retry on TransitionConflictError.
        - Does NOT notify actors or schedule work.
        - Does NOT stop one person holding both assignments on a case.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        transition_table: TransitionTable | None = None,
        actor_directory: ActorDirectory | None = None,
        max_note_length: int = DEFAULT_MAX_NOTE_LENGTH,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._table = transition_table or DEFAULT_TRANSITION_TABLE
        self._directory = actor_directory
        self._max_note_length = max_note_length
        self._auto_commit = auto_commit
        self._cases = CaseRepository(session)
        self._audit = AuditLogService(session)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def transition(
        self,
        case_id: UUID | str,
        requested_status: CaseStatus | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str,
        actor_sub_role: ActorSubRole | str | None = None,
        note: str | None = None,
    ) -> CaseRecord:
        """
        Move a case to ``requested_status`` on behalf of an actor.

        Preconditions:
            - ``actor_sub_role`` is only meaningful for employees; it is
              ignored for other roles.

        Postconditions:
            - The case row and one ``status_changed`` audit entry are
              persisted together, or neither is.

        Raises:
            ValidationError subclasses: malformed ids, status, role,
                sub-role, overlong or unstorable note, or a failed guard.
            CaseNotFoundError: no such case.
            InvalidTransitionError: no rule for (current, requested).
            ActorNotFoundError: (with a directory) the actor is unknown.
            TransitionForbiddenError: actor may not perform the rule, or
                (with a directory) the claimed role or sub-role is not the
                one on record.
            TransitionConflictError: the case row changed concurrently.
        """

        def work() -> CaseRecord:
            target = parse_status(requested_status)
            actor = self._actor(actor_id, actor_role, actor_sub_role)
            case_uuid = as_uuid(case_id, "case_id")
            self._validate_note(note, case_uuid)
            return self._apply(case_uuid, target, actor, note)

        requested = getattr(requested_status, "value", requested_status)
        return self._run(
            "transition", case_id, actor_id, work,
            requested_status=_str_or_none(requested),
        )

    def reject_for_rework(
        self,
        case_id: UUID | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str,
        actor_sub_role: ActorSubRole | str | None = None,
        note: str | None = None,
    ) -> CaseRecord:
        """
        Reject the current work and send the case back to design.

        Two transitions, each its own atomic unit:
        ``pending_review -> review_rejected -> in_design`` or
        ``pending_client_review -> client_rejected -> in_design``.  The note
        is attached to the rejection; the rework hop carries none.

        Raises:
            InvalidTransitionError: the current status cannot be rejected.
            Anything ``transition`` raises, for either hop.
        """
        correlation_id = LogContext.get("correlation_id") or str(uuid4())
        with LogContext.bind(correlation_id=correlation_id):
            case_uuid = as_uuid(case_id, "case_id")
            current = self._cases.get_by_id(case_uuid)
            rejected = REJECTION_TARGETS.get(current.status)
            if rejected is None:
                logger.warning(
                    "workflow_transition_rejected",
                    extra={
                        "operation": "reject_for_rework",
                        "error_code": InvalidTransitionError.code,
                        "current_status": current.status.value,
                    },
                )
                raise InvalidTransitionError(
                    str(case_uuid), current.status.value, "rejection"
                )

            self.transition(
                case_uuid, rejected, actor_id, actor_role, actor_sub_role, note
            )
            return self.transition(
                case_uuid, REWORK_TARGETS[rejected],
                actor_id, actor_role, actor_sub_role, None,
            )

    def resume_rework(
        self,
        case_id: UUID | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str,
        actor_sub_role: ActorSubRole | str | None = None,
    ) -> CaseRecord:
        """
        Finish a compound rejection whose second hop never happened.

        Idempotent: a case not resting in a rejected status is returned
        unchanged.
        """
        case_uuid = as_uuid(case_id, "case_id")
        current = self._cases.get_by_id(case_uuid)
        target = REWORK_TARGETS.get(current.status)
        if target is None:
            logger.info(
                "rework_resume_skipped",
                extra={
                    "case_id": str(case_uuid),
                    "current_status": current.status.value,
                },
            )
            return current
        return self.transition(
            case_uuid, target, actor_id, actor_role, actor_sub_role, None
        )

    def available_transitions(
        self,
        case_id: UUID | str,
        actor_id: UUID | str,
        actor_role: ActorRole | str,
        actor_sub_role: ActorSubRole | str | None = None,
    ) -> list[CaseStatus]:
        """Statuses this actor could move the case to right now.

        Applies the same role, capability, eligibility and guard checks as
        ``transition``.  Read-only.
        """
        actor = self._actor(actor_id, actor_role, actor_sub_role)
        case = self._cases.get_by_id(as_uuid(case_id, "case_id"))
        if self._identity_mismatch(actor) is not None:
            return []
        return [
            rule.to_status
            for rule in self._table.rules_for(case.status)
            if self._table.is_authorized(rule, actor.role, actor.sub_role)
            and self._ineligibility(case, rule, actor) is None
            and self._guard_failure(case, rule) is None
        ]

    # ------------------------------------------------------------------
    # Case lifecycle outside the transition table
    # ------------------------------------------------------------------

    def create_case(
        self,
        owner_id: UUID | str,
        note: str | None = "Case created",
    ) -> CaseRecord:
        """Open a new case in ``pending_intake`` with its creation entry."""

        def work() -> CaseRecord:
            owner_uuid = as_uuid(owner_id, "owner_id")
            self._validate_note(note, None)
            now = self._clock.now()
            case = self._cases.create(owner_uuid, now)
            self._audit.append(
                case.id,
                seq=case.audit_seq,
                action=AuditAction.CASE_CREATED,
                from_status=None,
                to_status=INITIAL_STATUS,
                performed_by=owner_uuid,
                note=note,
                occurred_at=now,
            )
            logger.info("case_created", extra={"new_case_id": str(case.id)})
            return case

        return self._run("create_case", None, owner_id, work)

    def assign_actors(
        self,
        case_id: UUID | str,
        designer_actor_id: UUID | str,
        reviewer_actor_id: UUID | str,
        performed_by_admin_id: UUID | str,
        note: str | None = None,
    ) -> CaseRecord:
        """
        Record the designer and reviewer for a case.

        Not a table transition: the status is unchanged and an
        ``actors_assigned`` entry is written with ``from == to``.

        Raises:
            InvalidTransitionError: the case is approved or cancelled.
            ActorNotFoundError: (with a directory) an actor is unknown.
            TransitionForbiddenError: (with a directory) the performer is
                not an administrator.
            WorkflowValidationError: (with a directory) the designer lacks
                the design capability or the reviewer lacks review.
        """

        def work() -> CaseRecord:
            case_uuid = as_uuid(case_id, "case_id")
            self._validate_note(note, case_uuid)
            return self._assign(
                self._cases.get_by_id(case_uuid),
                as_uuid(designer_actor_id, "designer_actor_id"),
                as_uuid(reviewer_actor_id, "reviewer_actor_id"),
                as_uuid(performed_by_admin_id, "performed_by_admin_id"),
                note,
            )

        return self._run("assign_actors", case_id, performed_by_admin_id, work)

    def approve_and_assign(
        self,
        case_id: UUID | str,
        designer_actor_id: UUID | str,
        reviewer_actor_id: UUID | str,
        admin_id: UUID | str,
        note: str | None = None,
    ) -> CaseRecord:
        """
        Approve payment and release the case to design in one unit.

        Writes ``actors_assigned`` then ``pending_approval -> in_design``.

        Raises:
            InvalidTransitionError: the case is not pending approval.
            Anything ``assign_actors`` or ``transition`` raises.
        """

        def work() -> CaseRecord:
            case_uuid = as_uuid(case_id, "case_id")
            admin_uuid = as_uuid(admin_id, "admin_id")
            self._validate_note(note, case_uuid)
            case = self._cases.get_by_id(case_uuid)
            if case.status is not CaseStatus.PENDING_APPROVAL:
                raise InvalidTransitionError(
                    str(case_uuid), case.status.value, CaseStatus.IN_DESIGN.value
                )
            self._assign(
                case,
                as_uuid(designer_actor_id, "designer_actor_id"),
                as_uuid(reviewer_actor_id, "reviewer_actor_id"),
                admin_uuid,
                note,
            )
            admin = Actor(admin_uuid, ActorRole.ADMINISTRATOR)
            return self._apply(case_uuid, CaseStatus.IN_DESIGN, admin, note)

        return self._run("approve_and_assign", case_id, admin_id, work)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_case(self, case_id: UUID | str) -> CaseRecord:
        return self._cases.get_by_id(as_uuid(case_id, "case_id"))

    def get_history(self, case_id: UUID | str) -> list[AuditEntryRecord]:
        return self._audit.get_history(as_uuid(case_id, "case_id"))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        case_id: object,
        actor_id: object,
        work: Callable[[], T],
        **fields: object,
    ) -> T:
        correlation_id = LogContext.get("correlation_id") or str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            case_id=_str_or_none(case_id),
            actor_id=_str_or_none(actor_id),
        ):
            logger.info(
                "workflow_transition_started",
                extra={"operation": operation, **fields},
            )
            t0 = time.monotonic()

            try:
                result = work()
                if self._auto_commit:
                    self._session.commit()
            except CaseflowKernelError as exc:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    "workflow_transition_rejected",
                    extra={
                        "operation": operation,
                        "error_code": exc.code,
                        "error_message": str(exc),
                        "duration_ms": elapsed_ms(t0),
                    },
                )
                raise
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "workflow_transition_failed",
                    extra={
                        "operation": operation,
                        "duration_ms": elapsed_ms(t0),
                    },
                    exc_info=True,
                )
                raise

            logger.info(
                "workflow_transition_completed",
                extra={
                    "operation": operation,
                    "duration_ms": elapsed_ms(t0),
                    **fields,
                },
            )
            return result

    def _apply(
        self,
        case_id: UUID,
        target: CaseStatus,
        actor: Actor,
        note: str | None,
    ) -> CaseRecord:
        case = self._cases.get_by_id(case_id)
        source = case.status

        # Rule lookup precedes every actor check.
        rule = self._table.get(source, target)
        if rule is None:
            raise InvalidTransitionError(str(case_id), source.value, target.value)

        reason = self._identity_mismatch(actor)
        if reason is not None:
            raise TransitionForbiddenError(
                str(case_id), source.value, target.value, str(actor.actor_id), reason,
            )

        if not self._table.is_authorized(rule, actor.role, actor.sub_role):
            raise TransitionForbiddenError(
                str(case_id), source.value, target.value, str(actor.actor_id),
                f"role {actor.role.value} with sub-role {actor.sub_role.value} "
                f"is not permitted",
            )

        reason = self._ineligibility(case, rule, actor)
        if reason is not None:
            raise TransitionForbiddenError(
                str(case_id), source.value, target.value, str(actor.actor_id), reason,
            )

        reason = self._guard_failure(case, rule)
        if reason is not None:
            raise GuardFailedError(
                str(case_id), source.value, target.value, rule.guard.name, reason,
            )

        refinement_delta = 1 if target in REJECTED_STATUSES else 0
        now = self._clock.now()
        updated = self._cases.apply_transition(
            case_id, source, target, refinement_delta, now,
            expected_seq=case.audit_seq,
        )
        self._audit.append(
            case_id,
            seq=updated.audit_seq,
            action=AuditAction.STATUS_CHANGED,
            from_status=source,
            to_status=target,
            performed_by=actor.actor_id,
            note=note,
            occurred_at=now,
        )
        logger.info(
            "case_status_changed",
            extra={
                "from_status": source.value,
                "to_status": target.value,
                "refinement_count": updated.refinement_count,
            },
        )
        return updated

    def _assign(
        self,
        case: CaseRecord,
        designer_id: UUID,
        reviewer_id: UUID,
        admin_id: UUID,
        note: str | None,
    ) -> CaseRecord:
        if case.is_terminal:
            raise InvalidTransitionError(
                str(case.id), case.status.value, case.status.value
            )
        self._check_assignment_actors(case, designer_id, reviewer_id, admin_id)

        now = self._clock.now()
        updated = self._cases.apply_assignment(
            case.id, case.status, designer_id, reviewer_id, now,
            expected_seq=case.audit_seq,
        )
        self._cases.record_assignment(
            case.id, designer_id, reviewer_id, admin_id, now,
        )
        self._audit.append(
            case.id,
            seq=updated.audit_seq,
            action=AuditAction.ACTORS_ASSIGNED,
            from_status=case.status,
            to_status=case.status,
            performed_by=admin_id,
            note=note,
            occurred_at=now,
        )
        logger.info(
            "case_actors_assigned",
            extra={
                "designer_id": str(designer_id),
                "reviewer_id": str(reviewer_id),
            },
        )
        return updated

    def _check_assignment_actors(
        self,
        case: CaseRecord,
        designer_id: UUID,
        reviewer_id: UUID,
        admin_id: UUID,
    ) -> None:
        if self._directory is None:
            return

        admin = self._lookup(admin_id)
        if admin.role is not ActorRole.ADMINISTRATOR:
            raise TransitionForbiddenError(
                str(case.id), case.status.value, case.status.value, str(admin_id),
                "only administrators may assign actors",
            )

        designer = self._lookup(designer_id)
        if not designer.can(Capability.DESIGN):
            raise WorkflowValidationError(
                f"actor {designer_id} cannot design", case_id=str(case.id),
            )
        reviewer = self._lookup(reviewer_id)
        if not reviewer.can(Capability.REVIEW):
            raise WorkflowValidationError(
                f"actor {reviewer_id} cannot review", case_id=str(case.id),
            )

    def _identity_mismatch(self, actor: Actor) -> str | None:
        """Why the claimed identity disagrees with the directory, or None.

        Without a directory every claim is taken as given.

        Raises:
            ActorNotFoundError: the directory does not know the actor.
        """
        if self._directory is None:
            return None
        known = self._lookup(actor.actor_id)
        if (known.role, known.sub_role) != (actor.role, actor.sub_role):
            return (
                f"claimed {actor.role.value}/{actor.sub_role.value} but directory "
                f"has {known.role.value}/{known.sub_role.value}"
            )
        return None

    def _lookup(self, actor_id: UUID) -> Actor:
        actor = self._directory.get_actor(actor_id)
        if actor is None:
            raise ActorNotFoundError(str(actor_id))
        return actor

    @staticmethod
    def _ineligibility(
        case: CaseRecord, rule: TransitionRule, actor: Actor
    ) -> str | None:
        """Why this actor may not fire ``rule`` on this case, or None."""
        if actor.role is ActorRole.ADMINISTRATOR:
            return None
        if actor.role is ActorRole.CASE_OWNER:
            if case.owner_id != actor.actor_id:
                return "actor is not the case owner"
            return None

        exercised = exercised_capabilities(rule, actor.sub_role)
        if Capability.DESIGN in exercised and case.designer_assignee_id == actor.actor_id:
            return None
        if Capability.REVIEW in exercised and case.reviewer_assignee_id == actor.actor_id:
            return None
        held = ", ".join(sorted(c.value for c in exercised))
        return f"actor is not assigned to the case for {held}"

    @staticmethod
    def _guard_failure(case: CaseRecord, rule: TransitionRule) -> str | None:
        if rule.guard is None:
            return None
        check = _GUARD_CHECKS.get(rule.guard.name)
        if check is None:
            raise TransitionConfigurationError(
                rule.from_status.value, rule.to_status.value,
                f"unknown guard {rule.guard.name!r}",
            )
        return check(case)

    @staticmethod
    def _actor(
        actor_id: UUID | str,
        actor_role: ActorRole | str,
        actor_sub_role: ActorSubRole | str | None,
    ) -> Actor:
        return Actor(as_uuid(actor_id, "actor_id"), actor_role, actor_sub_role)

    def _validate_note(self, note: str | None, case_id: UUID | None) -> None:
        if note is None:
            return
        if len(note) > self._max_note_length:
            raise WorkflowValidationError(
                f"note exceeds {self._max_note_length} characters",
                case_id=_str_or_none(case_id),
            )
        if "\x00" in note:
            raise WorkflowValidationError(
                "note contains a NUL character", case_id=_str_or_none(case_id),
            )
        try:
            note.encode("utf-8")
        except UnicodeEncodeError:
            raise WorkflowValidationError(
                "note is not valid UTF-8 text", case_id=_str_or_none(case_id),
            ) from None
