"""Utility modules for the case workflow kernel."""

from caseflow_kernel.utils.ids import as_uuid

__all__ = [
    "as_uuid",
]
