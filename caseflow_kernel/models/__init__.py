"""ORM models for the case workflow kernel."""

from caseflow_kernel.models.case import CaseAssignmentModel, CaseModel
from caseflow_kernel.models.case_audit import CaseAuditEntryModel

__all__ = [
    "CaseAssignmentModel",
    "CaseAuditEntryModel",
    "CaseModel",
]
