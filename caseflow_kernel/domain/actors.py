"""
Actor identity types (``caseflow_kernel.domain.actors``).

Responsibility
--------------
Roles, capability sub-roles and the actor value object that the
transition table is matched against.  Also declares the pluggable
``ActorDirectory`` interface through which the engine resolves actors it
is handed by id (user management lives outside the kernel).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Sub-role is a closed variant: none | designer | reviewer | both.
  ``both`` carries every capability, ``none`` carries none.
* Non-employee actors never carry a capability.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol
from uuid import UUID

from caseflow_kernel.exceptions import InvalidActorError


class ActorRole(str, Enum):
    """Actor classes recognised by the workflow."""

    CASE_OWNER = "case_owner"
    ADMINISTRATOR = "administrator"
    EMPLOYEE = "employee"


class Capability(str, Enum):
    """Work an employee is able to perform on a case."""

    DESIGN = "design"
    REVIEW = "review"


class ActorSubRole(str, Enum):
    """Capability sub-type of an employee."""

    NONE = "none"
    DESIGNER = "designer"
    REVIEWER = "reviewer"
    BOTH = "both"

    @property
    def capabilities(self) -> frozenset[Capability]:
        return _SUB_ROLE_CAPABILITIES[self]


_SUB_ROLE_CAPABILITIES: dict[ActorSubRole, frozenset[Capability]] = {
    ActorSubRole.NONE: frozenset(),
    ActorSubRole.DESIGNER: frozenset({Capability.DESIGN}),
    ActorSubRole.REVIEWER: frozenset({Capability.REVIEW}),
    ActorSubRole.BOTH: frozenset({Capability.DESIGN, Capability.REVIEW}),
}


def parse_role(value: ActorRole | str) -> ActorRole:
    if isinstance(value, ActorRole):
        return value
    try:
        return ActorRole(value)
    except ValueError:
        raise InvalidActorError("role", str(value)) from None


def parse_sub_role(value: ActorSubRole | str | None) -> ActorSubRole:
    """Coerce a sub-role; ``None`` means no capability."""
    if value is None:
        return ActorSubRole.NONE
    if isinstance(value, ActorSubRole):
        return value
    try:
        return ActorSubRole(value)
    except ValueError:
        raise InvalidActorError("sub_role", str(value)) from None


@dataclass(frozen=True)
class Actor:
    """An identified actor performing a workflow request.

    Contract: frozen.  ``sub_role`` is meaningful only for employees; it is
    normalised to ``NONE`` for every other role.
    """

    actor_id: UUID
    role: ActorRole
    sub_role: ActorSubRole = ActorSubRole.NONE

    def __post_init__(self) -> None:
        object.__setattr__(self, "role", parse_role(self.role))
        sub_role = parse_sub_role(self.sub_role)
        if self.role is not ActorRole.EMPLOYEE:
            sub_role = ActorSubRole.NONE
        object.__setattr__(self, "sub_role", sub_role)

    @property
    def capabilities(self) -> frozenset[Capability]:
        return self.sub_role.capabilities

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities


class ActorDirectory(Protocol):
    """Pluggable interface for resolving actors by id."""

    def get_actor(self, actor_id: UUID) -> Actor | None:
        """Return the actor, or None when unknown."""
        ...


class StaticActorDirectory:
    """In-memory ``ActorDirectory`` backed by a fixed set of actors."""

    def __init__(self, actors: Iterable[Actor] = ()) -> None:
        self._actors: dict[UUID, Actor] = {a.actor_id: a for a in actors}

    def add(self, actor: Actor) -> None:
        self._actors[actor.actor_id] = actor

    def get_actor(self, actor_id: UUID) -> Actor | None:
        return self._actors.get(actor_id)
