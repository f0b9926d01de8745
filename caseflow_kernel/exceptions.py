"""
Typed Exception Hierarchy for the Case Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the workflow engine must tell apart three very different answers:

  - "you can never do this"        (InvalidTransitionError, TransitionForbiddenError)
  - "re-read and try again"        (TransitionConflictError)
  - "that case/actor doesn't exist" (CaseNotFoundError, ActorNotFoundError)

Parsing message strings for that is fragile.  Every error therefore has:
  1. Its own class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured attributes (case_id, from_status, to_status, ...)

Example - WRONG way to handle errors:
    try:
        engine.transition(...)
    except Exception as e:
        if "not allowed" in str(e):      # FRAGILE
            ...

Example - RIGHT way:
    try:
        engine.transition(...)
    except TransitionConflictError as e:
        retry_from_fresh_read(e.case_id)
    except WorkflowError as e:
        api_response(code=e.code, status=e.to_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CaseflowKernelError (base)
    |
    +-- NotFoundError
    |   +-- CaseNotFoundError
    |   +-- ActorNotFoundError
    |
    +-- WorkflowError
    |   +-- InvalidTransitionError
    |   +-- TransitionForbiddenError
    |
    +-- ConcurrencyError
    |   +-- TransitionConflictError
    |
    +-- ValidationError
    |   +-- InvalidStatusValueError
    |   +-- InvalidActorError
    |   +-- WorkflowValidationError
    |   +-- GuardFailedError
    |
    +-- ConfigurationError
    |   +-- TransitionConfigurationError
    |       +-- DuplicateTransitionRuleError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                           | When Raised
----------------|--------------------------------|--------------------------------------
Not found       | CASE_NOT_FOUND                 | Case ID doesn't exist
                | ACTOR_NOT_FOUND                | Referenced actor unknown to directory
----------------|--------------------------------|--------------------------------------
Workflow        | INVALID_TRANSITION             | No rule for (from, to)
                | TRANSITION_FORBIDDEN           | Rule exists, actor doesn't satisfy it
----------------|--------------------------------|--------------------------------------
Concurrency     | TRANSITION_CONFLICT            | Status changed under the caller
----------------|--------------------------------|--------------------------------------
Validation      | INVALID_STATUS_VALUE           | Unknown status string
                | INVALID_ACTOR                  | Unknown role / sub-role value
                | WORKFLOW_VALIDATION_ERROR      | Malformed request (note too long, ...)
                | GUARD_FAILED                   | Transition guard not satisfied
----------------|--------------------------------|--------------------------------------
Configuration   | TRANSITION_CONFIGURATION_ERROR | Malformed transition rule
                | DUPLICATE_TRANSITION_RULE      | Two rules share a (from, to) pair
----------------|--------------------------------|--------------------------------------
Audit           | AUDIT_CHAIN_BROKEN             | History replay found a discontinuity
----------------|--------------------------------|--------------------------------------
Immutability    | IMMUTABILITY_VIOLATION         | UPDATE/DELETE of an audit row

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CONFLICTS ARE THE CALLER'S RETRY:

    while True:
        try:
            return engine.transition(case_id, target, ...)
        except TransitionConflictError:
            continue  # re-read happens inside the next call

2. USE STRUCTURED DATA:

    except InvalidTransitionError as e:
        return {"error": e.code, "from": e.from_status, "to": e.to_status}

===============================================================================
"""


class CaseflowKernelError(Exception):
    """
    Base exception for all case workflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CASEFLOW_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(CaseflowKernelError):
    """Base exception for missing cases or actors."""

    code: str = "NOT_FOUND"


class CaseNotFoundError(NotFoundError):
    """Case with given ID was not found."""

    code: str = "CASE_NOT_FOUND"

    def __init__(self, case_id: str):
        self.case_id = case_id
        super().__init__(f"Case not found: {case_id}")


class ActorNotFoundError(NotFoundError):
    """Referenced actor is unknown to the actor directory."""

    code: str = "ACTOR_NOT_FOUND"

    def __init__(self, actor_id: str):
        self.actor_id = actor_id
        super().__init__(f"Actor not found: {actor_id}")


# Workflow exceptions


class WorkflowError(CaseflowKernelError):
    """Base exception for rejected workflow requests."""

    code: str = "WORKFLOW_ERROR"


class InvalidTransitionError(WorkflowError):
    """No transition rule exists for the requested (from, to) pair."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, case_id: str, from_status: str, to_status: str):
        self.case_id = case_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition for case {case_id}: "
            f"{from_status} -> {to_status}"
        )


class TransitionForbiddenError(WorkflowError):
    """
    A rule exists for the pair but the actor does not satisfy it.

    Raised for role/sub-role mismatches and for per-case eligibility
    failures (not the owner, not the assigned designer/reviewer).
    """

    code: str = "TRANSITION_FORBIDDEN"

    def __init__(
        self,
        case_id: str,
        from_status: str,
        to_status: str,
        actor_id: str,
        reason: str,
    ):
        self.case_id = case_id
        self.from_status = from_status
        self.to_status = to_status
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(
            f"Actor {actor_id} may not move case {case_id} "
            f"from {from_status} to {to_status}: {reason}"
        )


# Concurrency exceptions


class ConcurrencyError(CaseflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class TransitionConflictError(ConcurrencyError):
    """
    Optimistic concurrency loss: the case row changed between read and write.

    Either the status moved, or the status is unchanged but another write
    (such as a reassignment) bumped the audit sequence.  The engine never
    retries; the caller re-reads and decides.
    """

    code: str = "TRANSITION_CONFLICT"

    def __init__(
        self,
        case_id: str,
        expected_status: str,
        actual_status: str | None,
        expected_seq: int | None = None,
        actual_seq: int | None = None,
    ):
        self.case_id = case_id
        self.expected_status = expected_status
        self.actual_status = actual_status
        self.expected_seq = expected_seq
        self.actual_seq = actual_seq
        message = (
            f"Conflict on case {case_id}: expected status {expected_status}, "
            f"found {actual_status}"
        )
        if expected_seq is not None and expected_status == actual_status:
            message += f" (audit_seq {actual_seq}, expected {expected_seq})"
        super().__init__(message)


# Validation exceptions


class ValidationError(CaseflowKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidStatusValueError(ValidationError):
    """Status value is not a member of CaseStatus."""

    code: str = "INVALID_STATUS_VALUE"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown case status: {value!r}")


class InvalidActorError(ValidationError):
    """Actor role or sub-role value is not recognised."""

    code: str = "INVALID_ACTOR"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"Unknown actor {field}: {value!r}")


class WorkflowValidationError(ValidationError):
    """Request is structurally invalid for the workflow."""

    code: str = "WORKFLOW_VALIDATION_ERROR"

    def __init__(self, reason: str, case_id: str | None = None):
        self.reason = reason
        self.case_id = case_id
        if case_id is not None:
            super().__init__(f"Invalid request for case {case_id}: {reason}")
        else:
            super().__init__(f"Invalid request: {reason}")


class GuardFailedError(ValidationError):
    """A transition guard is not satisfied by the case's current data."""

    code: str = "GUARD_FAILED"

    def __init__(
        self,
        case_id: str,
        from_status: str,
        to_status: str,
        guard_name: str,
        reason: str,
    ):
        self.case_id = case_id
        self.from_status = from_status
        self.to_status = to_status
        self.guard_name = guard_name
        self.reason = reason
        super().__init__(
            f"Guard '{guard_name}' blocked {from_status} -> {to_status} "
            f"on case {case_id}: {reason}"
        )


# Configuration exceptions


class ConfigurationError(CaseflowKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class TransitionConfigurationError(ConfigurationError):
    """A transition rule is malformed."""

    code: str = "TRANSITION_CONFIGURATION_ERROR"

    def __init__(self, from_status: str, to_status: str, reason: str):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        super().__init__(
            f"Invalid transition rule {from_status} -> {to_status}: {reason}"
        )


class DuplicateTransitionRuleError(TransitionConfigurationError):
    """Two rules share the same (from, to) pair."""

    code: str = "DUPLICATE_TRANSITION_RULE"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            from_status,
            to_status,
            "more than one rule declared for this pair",
        )


# Audit exceptions


class AuditError(CaseflowKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Replaying the audit log found a break in the status chain."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, case_id: str, seq: int, reason: str):
        self.case_id = case_id
        self.seq = seq
        self.reason = reason
        super().__init__(
            f"Audit history of case {case_id} broken at entry {seq}: {reason}"
        )


# Immutability exceptions


class ImmutabilityError(CaseflowKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
