"""
ORM immutability of audit and assignment history.

Audit entries and assignment rows may be inserted but never updated or
deleted through the ORM; a case's owner is write-once.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from caseflow_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from caseflow_kernel.domain.statuses import CaseStatus
from caseflow_kernel.exceptions import ImmutabilityViolationError
from caseflow_kernel.models.case import CaseAssignmentModel, CaseModel
from caseflow_kernel.models.case_audit import CaseAuditEntryModel


def _first_entry(session, case_id):
    return session.execute(
        select(CaseAuditEntryModel)
        .where(CaseAuditEntryModel.case_id == case_id)
        .order_by(CaseAuditEntryModel.seq)
    ).scalars().first()


class TestAuditEntryImmutability:

    def test_update_blocked(self, session, workflow, owner):
        case = workflow.create_case(owner.actor_id)
        entry = _first_entry(session, case.id)
        entry.note = "rewritten"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "CaseAuditEntry"
        session.rollback()

    def test_delete_blocked(self, session, workflow, owner):
        case = workflow.create_case(owner.actor_id)
        session.delete(_first_entry(session, case.id))

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
        assert len(workflow.get_history(case.id)) == 1

    def test_block_is_logged(self, session, workflow, owner, captured_logs):
        case = workflow.create_case(owner.actor_id)
        _first_entry(session, case.id).to_status = CaseStatus.APPROVED.value

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["operation"] == "UPDATE"


class TestAssignmentImmutability:

    def test_assignment_rows_are_append_only(
        self, session, workflow, owner, admin, designer, reviewer
    ):
        case = workflow.create_case(owner.actor_id)
        workflow.assign_actors(case.id, designer.actor_id, reviewer.actor_id, admin.actor_id)
        row = session.execute(
            select(CaseAssignmentModel).where(CaseAssignmentModel.case_id == case.id)
        ).scalar_one()

        row.reviewer_id = uuid4()
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestCaseOwnerImmutability:

    def test_owner_change_blocked(self, session, workflow, owner):
        case = workflow.create_case(owner.actor_id)
        model = session.get(CaseModel, case.id)
        model.owner_id = uuid4()

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Case"
        session.rollback()

    def test_engine_updates_are_not_blocked(self, case_in_status):
        assert case_in_status(CaseStatus.APPROVED).status is CaseStatus.APPROVED


class TestListenerRegistration:

    def test_unregister_allows_tampering(self, session, workflow, owner):
        case = workflow.create_case(owner.actor_id)
        unregister_immutability_listeners()
        try:
            _first_entry(session, case.id).note = "tampered"
            session.commit()
        finally:
            register_immutability_listeners()

        assert workflow.get_history(case.id)[0].note == "tampered"

    def test_register_is_idempotent(self, session, workflow, owner):
        register_immutability_listeners()
        register_immutability_listeners()
        case = workflow.create_case(owner.actor_id)
        _first_entry(session, case.id).note = "again"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()
