"""
Structured JSON logging for the case workflow kernel.

Every record under the ``caseflow_kernel`` logger is written as one JSON
object:

    {"ts": "2024-01-01T12:00:00+00:00", "level": "INFO",
     "logger": "caseflow_kernel.services.workflow_engine",
     "message": "case_status_changed",
     "correlation_id": "6f1c...", "case_id": "0b2e...", "actor_id": "91aa...",
     "from_status": "pending_review", "to_status": "review_rejected"}

The envelope comes first, then the fields bound in ``LogContext`` for the
current request, then the record's ``extra`` fields.  Records logged with
``exc_info`` carry the exception type and message; kernel errors add their
``code`` and structured attributes as ``exc_<name>`` keys.

Usage:
    logger = get_logger("services.workflow_engine")

    with LogContext.bind(correlation_id=cid, case_id=str(case_id)):
        t0 = time.monotonic()
        ...
        logger.info("case_status_changed", extra={"duration_ms": elapsed_ms(t0)})
"""

__all__ = [
    "CONTEXT_FIELDS",
    "LOGGER_NAMESPACE",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "elapsed_ms",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

from caseflow_kernel.exceptions import CaseflowKernelError

LOGGER_NAMESPACE = "caseflow_kernel"

# Request-scoped fields a caller may bind.
CONTEXT_FIELDS = ("correlation_id", "case_id", "actor_id", "request_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})

_context: ContextVar[Mapping[str, str]] = ContextVar(
    "caseflow_log_context", default=_EMPTY
)


# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


class LogContext:
    """
    Request-scoped log fields, isolated per thread and per asyncio task.

    Backed by a single ContextVar holding a read-only mapping.  Updates
    replace the mapping, so ``bind`` restores exactly what it found.
    """

    @staticmethod
    def _merged(fields: dict[str, str | None]) -> Mapping[str, str]:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(
                f"Unknown log context field(s): {', '.join(sorted(unknown))}"
            )
        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields.  None values leave the current value alone."""
        _context.set(cls._merged(fields))

    @classmethod
    def get(cls, name: str) -> str | None:
        return _context.get().get(name)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block."""
        token = _context.set(cls._merged(fields))
        try:
            yield cls
        finally:
            _context.reset(token)


def elapsed_ms(started: float) -> float:
    """Milliseconds since a ``time.monotonic()`` reading."""
    return round((time.monotonic() - started) * 1000, 2)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, CaseflowKernelError):
        fields["exc_code"] = exc.code
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())

        # Context wins over a same-named extra field.
        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Logger factory and setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``caseflow_kernel`` namespace."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_setup_lock = threading.Lock()
_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """
    Install one JSON handler on the ``caseflow_kernel`` logger.

    Idempotent: once a handler is installed, later calls return it and
    change nothing.  Call ``reset_logging`` first to reconfigure.
    """
    global _installed
    with _setup_lock:
        if _installed is not None:
            return _installed

        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.setLevel(level)
        kernel_logger.propagate = False
        kernel_logger.addHandler(target)
        _installed = target
        return target


def reset_logging() -> None:
    """Drop all handlers on the kernel logger. FOR TESTING ONLY."""
    global _installed
    with _setup_lock:
        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.handlers.clear()
        kernel_logger.setLevel(logging.WARNING)
        _installed = None
