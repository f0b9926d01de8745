"""
Tests for CaseRepository compare-and-swap writes.
"""

from uuid import uuid4

import pytest

from caseflow_kernel.domain.statuses import CaseStatus
from caseflow_kernel.exceptions import (
    CaseNotFoundError,
    TransitionConflictError,
    WorkflowValidationError,
)
from caseflow_kernel.services.case_repository import CaseRepository

S = CaseStatus


@pytest.fixture
def repo(session):
    return CaseRepository(session)


@pytest.fixture
def new_case(repo, owner, clock):
    return repo.create(owner.actor_id, clock.now())


class TestCreate:

    def test_defaults(self, new_case, owner):
        assert new_case.status is S.PENDING_INTAKE
        assert new_case.owner_id == owner.actor_id
        assert new_case.refinement_count == 0
        assert new_case.audit_seq == 1

    def test_get_missing(self, repo):
        with pytest.raises(CaseNotFoundError):
            repo.get_by_id(uuid4())


class TestApplyTransition:

    def test_swap_bumps_seq(self, repo, new_case, clock):
        clock.advance()
        updated = repo.apply_transition(
            new_case.id, S.PENDING_INTAKE, S.PENDING_APPROVAL, 0, clock.now(),
        )
        assert updated.status is S.PENDING_APPROVAL
        assert updated.audit_seq == 2
        assert updated.refinement_count == 0
        assert updated.updated_at == clock.now()
        assert updated.created_at == new_case.created_at

    def test_delta_one_increments(self, repo, new_case, clock):
        updated = repo.apply_transition(
            new_case.id, S.PENDING_INTAKE, S.PENDING_APPROVAL, 1, clock.now(),
        )
        assert updated.refinement_count == 1

    @pytest.mark.parametrize("delta", [-1, 2])
    def test_other_deltas_rejected(self, repo, new_case, clock, delta):
        with pytest.raises(WorkflowValidationError):
            repo.apply_transition(
                new_case.id, S.PENDING_INTAKE, S.PENDING_APPROVAL, delta, clock.now(),
            )
        assert repo.get_by_id(new_case.id).status is S.PENDING_INTAKE

    def test_stale_expected_status_conflicts(self, repo, new_case, clock, captured_logs):
        repo.apply_transition(new_case.id, S.PENDING_INTAKE, S.PENDING_APPROVAL, 0, clock.now())

        with pytest.raises(TransitionConflictError) as exc_info:
            repo.apply_transition(new_case.id, S.PENDING_INTAKE, S.OPENED, 0, clock.now())

        assert exc_info.value.expected_status == "pending_intake"
        assert exc_info.value.actual_status == "pending_approval"
        assert repo.get_by_id(new_case.id).audit_seq == 2
        assert any(r["message"] == "transition_conflict" for r in captured_logs())

    def test_stale_seq_conflicts_even_with_same_status(
        self, repo, new_case, clock, designer, reviewer
    ):
        repo.apply_assignment(
            new_case.id, S.PENDING_INTAKE, designer.actor_id, reviewer.actor_id, clock.now(),
            expected_seq=new_case.audit_seq,
        )

        with pytest.raises(TransitionConflictError) as exc_info:
            repo.apply_transition(
                new_case.id, S.PENDING_INTAKE, S.PENDING_APPROVAL, 0, clock.now(),
                expected_seq=new_case.audit_seq,
            )

        assert exc_info.value.actual_status == "pending_intake"
        assert (exc_info.value.expected_seq, exc_info.value.actual_seq) == (1, 2)
        assert "audit_seq 2" in str(exc_info.value)
        assert repo.get_by_id(new_case.id).status is S.PENDING_INTAKE

    def test_matching_seq_swaps(self, repo, new_case, clock):
        updated = repo.apply_transition(
            new_case.id, S.PENDING_INTAKE, S.PENDING_APPROVAL, 0, clock.now(),
            expected_seq=new_case.audit_seq,
        )
        assert updated.audit_seq == new_case.audit_seq + 1

    def test_missing_case_is_not_a_conflict(self, repo, clock):
        with pytest.raises(CaseNotFoundError):
            repo.apply_transition(uuid4(), S.PENDING_INTAKE, S.OPENED, 0, clock.now())


class TestAssignmentAndProjection:

    def test_apply_assignment_keeps_status(self, repo, new_case, clock, designer, reviewer):
        updated = repo.apply_assignment(
            new_case.id, S.PENDING_INTAKE, designer.actor_id, reviewer.actor_id, clock.now(),
        )
        assert updated.status is S.PENDING_INTAKE
        assert updated.designer_assignee_id == designer.actor_id
        assert updated.audit_seq == 2

    def test_apply_assignment_conflicts_on_stale_status(
        self, repo, new_case, clock, designer, reviewer
    ):
        with pytest.raises(TransitionConflictError):
            repo.apply_assignment(
                new_case.id, S.OPENED, designer.actor_id, reviewer.actor_id, clock.now(),
            )

    def test_overwrite_projection_leaves_seq(self, repo, new_case, clock):
        updated = repo.overwrite_projection(new_case.id, S.OPENED, 3, clock.now())
        assert updated.status is S.OPENED
        assert updated.refinement_count == 3
        assert updated.audit_seq == new_case.audit_seq

    def test_overwrite_projection_missing_case(self, repo, clock):
        with pytest.raises(CaseNotFoundError):
            repo.overwrite_projection(uuid4(), S.OPENED, 0, clock.now())
