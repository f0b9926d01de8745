"""
Case transition table (``caseflow_kernel.domain.transition_table``).

Responsibility
--------------
Declares, for every legal ``(from_status, to_status)`` pair, which actor
roles -- and for employees, which capabilities -- may perform it.  This is
data, not logic: the workflow engine consults the compiled table and
applies per-case checks on top.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports from
``db/``, ``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* Each rule is uniquely keyed by ``(from_status, to_status)``; a second rule
  for the same pair is a configuration error, never silently shadowed.
* Terminal statuses have no outgoing rules.
* No rule maps a status onto itself.
* The compiled table is immutable once built (``MappingProxyType``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from caseflow_kernel.domain.actors import ActorRole, ActorSubRole, Capability
from caseflow_kernel.domain.statuses import TERMINAL_STATUSES, CaseStatus
from caseflow_kernel.exceptions import (
    DuplicateTransitionRuleError,
    TransitionConfigurationError,
)


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- the workflow engine does.
    """

    name: str
    description: str


ACTORS_ASSIGNED = Guard(
    name="actors_assigned",
    description="A designer and a reviewer must be assigned to the case",
)


@dataclass(frozen=True)
class TransitionRule:
    """A legal status change and who may perform it.

    ``allowed_capabilities`` applies to employees only; an empty set means
    any employee capability is accepted.
    """

    from_status: CaseStatus
    to_status: CaseStatus
    allowed_roles: frozenset[ActorRole]
    allowed_capabilities: frozenset[Capability] = field(default_factory=frozenset)
    guard: Guard | None = None
    description: str = ""

    @property
    def key(self) -> tuple[CaseStatus, CaseStatus]:
        return (self.from_status, self.to_status)


def _rule(
    from_status: CaseStatus,
    to_status: CaseStatus,
    roles: Iterable[ActorRole],
    capabilities: Iterable[Capability] = (),
    guard: Guard | None = None,
    description: str = "",
) -> TransitionRule:
    return TransitionRule(
        from_status=from_status,
        to_status=to_status,
        allowed_roles=frozenset(roles),
        allowed_capabilities=frozenset(capabilities),
        guard=guard,
        description=description,
    )


_OWNER = ActorRole.CASE_OWNER
_ADMIN = ActorRole.ADMINISTRATOR
_EMPLOYEE = ActorRole.EMPLOYEE

CASE_TRANSITION_RULES: tuple[TransitionRule, ...] = (
    # Intake and payment
    _rule(CaseStatus.PENDING_INTAKE, CaseStatus.PENDING_APPROVAL, [_OWNER],
          description="Owner submits the case with payment proof"),
    _rule(CaseStatus.PENDING_INTAKE, CaseStatus.OPENED, [_ADMIN],
          description="Legacy: payment captured, case opened"),
    _rule(CaseStatus.PENDING_APPROVAL, CaseStatus.IN_DESIGN, [_ADMIN],
          guard=ACTORS_ASSIGNED,
          description="Admin approves payment and releases to design"),
    _rule(CaseStatus.OPENED, CaseStatus.ASSIGNED, [_ADMIN],
          guard=ACTORS_ASSIGNED,
          description="Legacy: admin confirms the assignment"),
    # Design
    _rule(CaseStatus.ASSIGNED, CaseStatus.IN_DESIGN, [_EMPLOYEE],
          [Capability.DESIGN], description="Legacy: designer starts work"),
    _rule(CaseStatus.IN_DESIGN, CaseStatus.PENDING_REVIEW, [_EMPLOYEE],
          [Capability.DESIGN], description="Designer submits for review"),
    # Quality review
    _rule(CaseStatus.PENDING_REVIEW, CaseStatus.REVIEW_REJECTED, [_EMPLOYEE],
          [Capability.REVIEW], description="Reviewer sends work back"),
    _rule(CaseStatus.PENDING_REVIEW, CaseStatus.PENDING_CLIENT_REVIEW, [_EMPLOYEE],
          [Capability.REVIEW], description="Reviewer passes work to the client"),
    _rule(CaseStatus.REVIEW_REJECTED, CaseStatus.IN_DESIGN, [_EMPLOYEE],
          [Capability.DESIGN, Capability.REVIEW],
          description="Rejected work returns to design"),
    # Client sign-off
    _rule(CaseStatus.PENDING_CLIENT_REVIEW, CaseStatus.CLIENT_REJECTED, [_OWNER],
          description="Owner requests changes"),
    _rule(CaseStatus.PENDING_CLIENT_REVIEW, CaseStatus.APPROVED, [_OWNER],
          description="Owner signs off"),
    _rule(CaseStatus.CLIENT_REJECTED, CaseStatus.IN_DESIGN, [_OWNER, _EMPLOYEE],
          [Capability.DESIGN], description="Client-rejected work returns to design"),
    # Cancellation
    _rule(CaseStatus.PENDING_INTAKE, CaseStatus.CANCELLED, [_OWNER, _ADMIN]),
    _rule(CaseStatus.PENDING_APPROVAL, CaseStatus.CANCELLED, [_OWNER, _ADMIN]),
    _rule(CaseStatus.OPENED, CaseStatus.CANCELLED, [_ADMIN]),
    _rule(CaseStatus.ASSIGNED, CaseStatus.CANCELLED, [_ADMIN]),
    _rule(CaseStatus.IN_DESIGN, CaseStatus.CANCELLED, [_ADMIN]),
    _rule(CaseStatus.PENDING_REVIEW, CaseStatus.CANCELLED, [_ADMIN]),
    _rule(CaseStatus.PENDING_CLIENT_REVIEW, CaseStatus.CANCELLED, [_ADMIN]),
)


def is_authorized(
    rule: TransitionRule,
    actor_role: ActorRole,
    actor_sub_role: ActorSubRole = ActorSubRole.NONE,
) -> bool:
    """Does the role / sub-role satisfy the rule, ignoring the specific case?

    Employees must hold at least one of the rule's capabilities; ``both``
    satisfies any single capability.
    """
    if actor_role not in rule.allowed_roles:
        return False
    if actor_role is ActorRole.EMPLOYEE:
        return bool(exercised_capabilities(rule, actor_sub_role))
    return True


def exercised_capabilities(
    rule: TransitionRule,
    actor_sub_role: ActorSubRole,
) -> frozenset[Capability]:
    """Capabilities an employee would be exercising by firing ``rule``."""
    held = actor_sub_role.capabilities
    if not rule.allowed_capabilities:
        return held
    return held & rule.allowed_capabilities


class TransitionTable:
    """Immutable lookup of transition rules keyed by ``(from, to)``.

    Contract:
        Built once via ``from_rules``; no runtime mutation.
    Guarantees:
        ``rules_for`` preserves declaration order.
    """

    def __init__(
        self,
        rules: Mapping[tuple[CaseStatus, CaseStatus], TransitionRule],
        by_source: Mapping[CaseStatus, tuple[TransitionRule, ...]],
    ) -> None:
        self._rules = rules
        self._by_source = by_source

    @classmethod
    def from_rules(cls, rules: Iterable[TransitionRule]) -> TransitionTable:
        """Compile a rule list.

        Raises:
            DuplicateTransitionRuleError: two rules share a pair.
            TransitionConfigurationError: self-loop, terminal source, or
                a rule with no allowed role.
        """
        keyed: dict[tuple[CaseStatus, CaseStatus], TransitionRule] = {}
        by_source: dict[CaseStatus, list[TransitionRule]] = {}
        for rule in rules:
            src, dst = rule.from_status.value, rule.to_status.value
            if rule.key in keyed:
                raise DuplicateTransitionRuleError(src, dst)
            if rule.from_status is rule.to_status:
                raise TransitionConfigurationError(src, dst, "self-transition")
            if rule.from_status in TERMINAL_STATUSES:
                raise TransitionConfigurationError(
                    src, dst, "terminal status cannot have outgoing rules"
                )
            if not rule.allowed_roles:
                raise TransitionConfigurationError(src, dst, "no allowed roles")
            keyed[rule.key] = rule
            by_source.setdefault(rule.from_status, []).append(rule)

        return cls(
            MappingProxyType(keyed),
            MappingProxyType({k: tuple(v) for k, v in by_source.items()}),
        )

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules.values())

    def get(
        self, from_status: CaseStatus, to_status: CaseStatus
    ) -> TransitionRule | None:
        return self._rules.get((from_status, to_status))

    def rules_for(self, from_status: CaseStatus) -> tuple[TransitionRule, ...]:
        return self._by_source.get(from_status, ())

    def targets_from(self, from_status: CaseStatus) -> tuple[CaseStatus, ...]:
        return tuple(r.to_status for r in self.rules_for(from_status))

    def is_authorized(
        self,
        rule: TransitionRule,
        actor_role: ActorRole,
        actor_sub_role: ActorSubRole = ActorSubRole.NONE,
    ) -> bool:
        return is_authorized(rule, actor_role, actor_sub_role)


DEFAULT_TRANSITION_TABLE: TransitionTable = TransitionTable.from_rules(
    CASE_TRANSITION_RULES
)
