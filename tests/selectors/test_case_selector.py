"""
Tests for CaseSelector listing and stalled-rejection lookup.
"""

import pytest

from caseflow_kernel.domain.statuses import CaseStatus
from caseflow_kernel.exceptions import InvalidStatusValueError
from caseflow_kernel.selectors.case_selector import CaseSelector

S = CaseStatus


@pytest.fixture
def selector(session):
    return CaseSelector(session)


class TestListCases:

    def test_newest_first(self, selector, workflow, clock, owner):
        first = workflow.create_case(owner.actor_id)
        clock.advance(60)
        second = workflow.create_case(owner.actor_id)

        assert [c.id for c in selector.list_cases(owner_id=owner.actor_id)] == [
            second.id, first.id,
        ]

    def test_filters_combine(self, selector, workflow, clock, case_in_status, owner, other_owner, designer):
        assigned = case_in_status(S.IN_DESIGN)
        clock.advance()
        case_in_status(S.PENDING_INTAKE)
        workflow.create_case(other_owner.actor_id)

        assert len(selector.list_cases()) == 3
        assert len(selector.list_cases(owner_id=owner.actor_id)) == 2
        assert [c.id for c in selector.list_cases(designer_id=designer.actor_id)] == [assigned.id]
        assert [c.id for c in selector.list_cases(owner_id=owner.actor_id, status="in_design")] == [
            assigned.id,
        ]
        assert selector.list_cases(owner_id=other_owner.actor_id, status=S.IN_DESIGN) == []

    def test_reviewer_filter(self, selector, case_in_status, reviewer):
        case = case_in_status(S.PENDING_REVIEW)
        assert [c.id for c in selector.list_cases(reviewer_id=reviewer.actor_id)] == [case.id]

    def test_unknown_status(self, selector):
        with pytest.raises(InvalidStatusValueError):
            selector.list_cases(status="archived")


class TestStalledRejections:

    def test_only_rejected_statuses_oldest_first(self, selector, clock, case_in_status):
        client = case_in_status(S.CLIENT_REJECTED)
        clock.advance(60)
        review = case_in_status(S.REVIEW_REJECTED)
        case_in_status(S.IN_DESIGN)

        assert [c.id for c in selector.find_stalled_rejections()] == [client.id, review.id]

    def test_completed_rejections_are_not_stalled(self, selector, workflow, case_in_status, reviewer):
        case = case_in_status(S.PENDING_REVIEW)
        workflow.reject_for_rework(case.id, reviewer.actor_id, reviewer.role, reviewer.sub_role)
        assert selector.find_stalled_rejections() == []
