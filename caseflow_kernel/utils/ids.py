"""
Identifier coercion.

Case and actor ids arrive from the transport layer as strings or UUIDs;
everything inside the kernel works with ``uuid.UUID``.
"""

from uuid import UUID

from caseflow_kernel.exceptions import WorkflowValidationError


def as_uuid(value: UUID | str, field: str = "id") -> UUID:
    """
    Coerce ``value`` into a UUID.

    Raises:
        WorkflowValidationError: if ``value`` is not a UUID or UUID string.

    Example:
        >>> as_uuid("550e8400-e29b-41d4-a716-446655440000", "case_id")
        UUID('550e8400-e29b-41d4-a716-446655440000')
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise WorkflowValidationError(f"{field} is not a valid UUID: {value!r}") from None
