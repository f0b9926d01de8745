"""Services for the case workflow kernel (write side)."""

from caseflow_kernel.services.audit_log import AuditLogService
from caseflow_kernel.services.case_repository import CaseRepository
from caseflow_kernel.services.history_verifier import (
    ChainBreak,
    HistoryVerifier,
    ReplayReport,
)
from caseflow_kernel.services.workflow_engine import WorkflowEngine

__all__ = [
    "AuditLogService",
    "CaseRepository",
    "ChainBreak",
    "HistoryVerifier",
    "ReplayReport",
    "WorkflowEngine",
]
