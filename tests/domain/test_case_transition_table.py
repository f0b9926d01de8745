"""
Tests for the case transition table (``caseflow_kernel.domain.transition_table``).

Covers rule lookup, role/capability authorization, table compilation
errors, and the structural properties of the shipped rule set.
"""

import pytest

from caseflow_kernel.domain.actors import ActorRole, ActorSubRole, Capability
from caseflow_kernel.domain.statuses import (
    REJECTED_STATUSES,
    REWORK_TARGETS,
    TERMINAL_STATUSES,
    CaseStatus,
)
from caseflow_kernel.domain.transition_table import (
    ACTORS_ASSIGNED,
    CASE_TRANSITION_RULES,
    DEFAULT_TRANSITION_TABLE,
    TransitionRule,
    TransitionTable,
    exercised_capabilities,
    is_authorized,
)
from caseflow_kernel.exceptions import (
    ConfigurationError,
    DuplicateTransitionRuleError,
    TransitionConfigurationError,
)

S = CaseStatus


def _rule(src, dst, roles, caps=()):
    return TransitionRule(
        from_status=src,
        to_status=dst,
        allowed_roles=frozenset(roles),
        allowed_capabilities=frozenset(caps),
    )


# =========================================================================
# Shipped rule set
# =========================================================================


class TestShippedRules:
    """Structural properties of CASE_TRANSITION_RULES."""

    def test_every_rule_is_in_the_default_table(self):
        assert len(DEFAULT_TRANSITION_TABLE) == len(CASE_TRANSITION_RULES)
        for rule in CASE_TRANSITION_RULES:
            assert DEFAULT_TRANSITION_TABLE.get(rule.from_status, rule.to_status) is rule

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_have_no_outgoing_rules(self, status):
        assert DEFAULT_TRANSITION_TABLE.rules_for(status) == ()
        assert DEFAULT_TRANSITION_TABLE.targets_from(status) == ()

    def test_every_rejected_status_leads_back_to_its_rework_target(self):
        for rejected in REJECTED_STATUSES:
            assert DEFAULT_TRANSITION_TABLE.get(rejected, REWORK_TARGETS[rejected]) is not None

    def test_owner_cannot_skip_from_intake_to_design(self):
        assert DEFAULT_TRANSITION_TABLE.get(S.PENDING_INTAKE, S.IN_DESIGN) is None

    def test_payment_approval_is_guarded_by_assignment(self):
        rule = DEFAULT_TRANSITION_TABLE.get(S.PENDING_APPROVAL, S.IN_DESIGN)
        assert rule.guard is ACTORS_ASSIGNED
        assert rule.allowed_roles == frozenset({ActorRole.ADMINISTRATOR})

    def test_rules_for_preserves_declaration_order(self):
        declared = [r.to_status for r in CASE_TRANSITION_RULES if r.from_status is S.PENDING_INTAKE]
        assert list(DEFAULT_TRANSITION_TABLE.targets_from(S.PENDING_INTAKE)) == declared

    def test_only_administrators_cancel_work_in_progress(self):
        for src in (S.IN_DESIGN, S.PENDING_REVIEW, S.PENDING_CLIENT_REVIEW):
            rule = DEFAULT_TRANSITION_TABLE.get(src, S.CANCELLED)
            assert rule.allowed_roles == frozenset({ActorRole.ADMINISTRATOR})

    def test_cancelling_a_rejected_case_is_not_a_rule(self):
        assert DEFAULT_TRANSITION_TABLE.get(S.REVIEW_REJECTED, S.CANCELLED) is None
        assert DEFAULT_TRANSITION_TABLE.get(S.CLIENT_REJECTED, S.CANCELLED) is None


# =========================================================================
# Authorization
# =========================================================================


class TestIsAuthorized:
    """Role and capability matching, ignoring the specific case."""

    def test_role_must_be_allowed(self):
        rule = DEFAULT_TRANSITION_TABLE.get(S.PENDING_INTAKE, S.PENDING_APPROVAL)
        assert is_authorized(rule, ActorRole.CASE_OWNER)
        assert not is_authorized(rule, ActorRole.ADMINISTRATOR)
        assert not is_authorized(rule, ActorRole.EMPLOYEE, ActorSubRole.BOTH)

    def test_employee_needs_matching_capability(self):
        rule = DEFAULT_TRANSITION_TABLE.get(S.IN_DESIGN, S.PENDING_REVIEW)
        assert is_authorized(rule, ActorRole.EMPLOYEE, ActorSubRole.DESIGNER)
        assert not is_authorized(rule, ActorRole.EMPLOYEE, ActorSubRole.REVIEWER)

    def test_both_satisfies_any_single_capability(self):
        design = DEFAULT_TRANSITION_TABLE.get(S.IN_DESIGN, S.PENDING_REVIEW)
        review = DEFAULT_TRANSITION_TABLE.get(S.PENDING_REVIEW, S.REVIEW_REJECTED)
        assert is_authorized(design, ActorRole.EMPLOYEE, ActorSubRole.BOTH)
        assert is_authorized(review, ActorRole.EMPLOYEE, ActorSubRole.BOTH)

    def test_employee_without_capability_satisfies_nothing(self):
        for rule in CASE_TRANSITION_RULES:
            assert not is_authorized(rule, ActorRole.EMPLOYEE, ActorSubRole.NONE)

    def test_either_capability_satisfies_review_rejected_rework(self):
        rule = DEFAULT_TRANSITION_TABLE.get(S.REVIEW_REJECTED, S.IN_DESIGN)
        assert is_authorized(rule, ActorRole.EMPLOYEE, ActorSubRole.DESIGNER)
        assert is_authorized(rule, ActorRole.EMPLOYEE, ActorSubRole.REVIEWER)

    def test_table_method_delegates(self):
        rule = DEFAULT_TRANSITION_TABLE.get(S.PENDING_REVIEW, S.PENDING_CLIENT_REVIEW)
        assert DEFAULT_TRANSITION_TABLE.is_authorized(
            rule, ActorRole.EMPLOYEE, ActorSubRole.REVIEWER
        )


class TestExercisedCapabilities:

    def test_intersection_with_rule(self):
        rule = DEFAULT_TRANSITION_TABLE.get(S.IN_DESIGN, S.PENDING_REVIEW)
        assert exercised_capabilities(rule, ActorSubRole.BOTH) == {Capability.DESIGN}

    def test_unrestricted_rule_exercises_everything_held(self):
        rule = _rule(S.IN_DESIGN, S.PENDING_REVIEW, [ActorRole.EMPLOYEE])
        assert exercised_capabilities(rule, ActorSubRole.BOTH) == {
            Capability.DESIGN, Capability.REVIEW,
        }


# =========================================================================
# Compilation
# =========================================================================


class TestTableCompilation:
    """TransitionTable.from_rules rejects malformed rule sets."""

    def test_duplicate_pair_rejected(self):
        rules = [
            _rule(S.PENDING_INTAKE, S.CANCELLED, [ActorRole.CASE_OWNER]),
            _rule(S.PENDING_INTAKE, S.CANCELLED, [ActorRole.ADMINISTRATOR]),
        ]
        with pytest.raises(DuplicateTransitionRuleError) as exc_info:
            TransitionTable.from_rules(rules)
        assert exc_info.value.from_status == "pending_intake"
        assert exc_info.value.to_status == "cancelled"
        assert isinstance(exc_info.value, ConfigurationError)

    def test_self_transition_rejected(self):
        with pytest.raises(TransitionConfigurationError, match="self-transition"):
            TransitionTable.from_rules(
                [_rule(S.IN_DESIGN, S.IN_DESIGN, [ActorRole.ADMINISTRATOR])]
            )

    def test_terminal_source_rejected(self):
        with pytest.raises(TransitionConfigurationError, match="terminal"):
            TransitionTable.from_rules(
                [_rule(S.APPROVED, S.IN_DESIGN, [ActorRole.ADMINISTRATOR])]
            )

    def test_rule_without_roles_rejected(self):
        with pytest.raises(TransitionConfigurationError, match="no allowed roles"):
            TransitionTable.from_rules([_rule(S.IN_DESIGN, S.PENDING_REVIEW, [])])

    def test_compiled_table_is_read_only(self):
        table = TransitionTable.from_rules(
            [_rule(S.IN_DESIGN, S.PENDING_REVIEW, [ActorRole.EMPLOYEE])]
        )
        with pytest.raises(TypeError):
            table._rules[(S.IN_DESIGN, S.CANCELLED)] = None

    def test_unknown_pair_returns_none(self):
        assert DEFAULT_TRANSITION_TABLE.get(S.APPROVED, S.IN_DESIGN) is None
