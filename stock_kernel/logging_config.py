"""
Structured JSON logging for the stock kernel.

Every record under the ``stock_kernel`` logger becomes one JSON line::

    {"ts": "...", "level": "INFO", "logger": "stock_kernel.services.batch_ledger",
     "message": "batch_added", "operation": "receive", "batch_id": "..."}

Request-scoped fields (who, which product, which document) live in
``LogContext`` and are merged into every line written while they are bound.
Values passed through ``extra=`` are merged after them; UUIDs, dates and
Decimals are rendered as strings.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import IO, Any
from uuid import UUID

LOGGER_NAMESPACE = "stock_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "product_id",
    "reference_id",
    "operation",
)

_context: ContextVar[Mapping[str, str]] = ContextVar("stock_log_context", default={})


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    @staticmethod
    def _accepted(fields: Mapping[str, Any]) -> dict[str, str]:
        return {
            name: str(value)
            for name, value in fields.items()
            if name in CONTEXT_FIELDS and value is not None
        }

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Overwrite the given fields; ``None`` leaves a field untouched."""
        _context.set({**_context.get(), **cls._accepted(fields)})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Bind fields for the duration of a ``with`` block, then restore."""
        token = _context.set({**_context.get(), **cls._accepted(fields)})
        try:
            yield cls
        finally:
            _context.reset(token)


_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name != "code":
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
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RESERVED_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger named ``stock_kernel.<name>``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_setup_lock = threading.Lock()


def _installed_handler(logger: logging.Logger) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, "_stock_kernel_structured", False):
            return handler
    return None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: IO[str] | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``stock_kernel`` logger.

    Only the first call has an effect until ``reset_logging`` runs, so the
    call made at engine creation keeps whatever the application set up.
    """
    root = logging.getLogger(LOGGER_NAMESPACE)
    with _setup_lock:
        if _installed_handler(root) is not None:
            return
        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        target._stock_kernel_structured = True  # type: ignore[attr-defined]
        root.addHandler(target)
        root.setLevel(level)
        root.propagate = False


def reset_logging() -> None:
    """Remove the handler installed by ``configure_logging``. Tests only."""
    root = logging.getLogger(LOGGER_NAMESPACE)
    with _setup_lock:
        installed = _installed_handler(root)
        if installed is not None:
            root.removeHandler(installed)
        root.setLevel(logging.WARNING)
