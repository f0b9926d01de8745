"""Selectors for the case workflow kernel (read side)."""

from caseflow_kernel.selectors.case_selector import CaseSelector
from caseflow_kernel.selectors.reporting_selector import (
    OwnerDashboard,
    ReportingSelector,
    StatusBucketCounts,
    month_window,
)

__all__ = [
    "CaseSelector",
    "OwnerDashboard",
    "ReportingSelector",
    "StatusBucketCounts",
    "month_window",
]
