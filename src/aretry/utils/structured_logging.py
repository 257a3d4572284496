r"""JSON log records for retry sessions.

Every session reports its terminal outcome through ``log_structured``,
attaching the fields ``session_id``, ``session_state``, ``attempts`` and
``strategy`` to the record. ``StructuredFormatter`` renders such records
as one JSON object per line so they can be indexed by a log pipeline.

A correlation ID (for example the ID of the request or batch that owns
the retried job) can be bound to the current context. It is added to
every record formatted while it is bound. The session waiter threads do
not inherit it: bind it in the thread that runs the job.

Example:
    ```python
    import logging
    from aretry import RetrySession
    from aretry.utils.structured_logging import StructuredFormatter, correlation_scope

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter(static_fields={"service": "billing"}))
    logging.getLogger("aretry").addHandler(handler)
    logging.getLogger("aretry").setLevel(logging.INFO)

    with correlation_scope("invoice-2024-118"):
        RetrySession(job, max_attempts=3).run_sync()
    ```
"""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "clear_correlation_id",
    "correlation_scope",
    "get_correlation_id",
    "log_structured",
    "set_correlation_id",
]

import contextlib
import contextvars
import json
import logging
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "aretry_correlation_id", default=None
)

# Attributes every LogRecord has; anything else came through ``extra``
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def get_correlation_id() -> str | None:
    """Return the correlation ID bound to the current context, if any.

    Example:
        ```pycon
        >>> from aretry.utils.structured_logging import correlation_scope, get_correlation_id
        >>> with correlation_scope("batch-7"):
        ...     get_correlation_id()
        ...
        'batch-7'
        >>> get_correlation_id() is None
        True

        ```
    """
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> contextvars.Token:
    """Bind a correlation ID to the current context.

    Args:
        correlation_id: The ID, or None to unbind.

    Returns:
        A token restoring the previous binding.
    """
    return _correlation_id.set(correlation_id)


def clear_correlation_id() -> None:
    set_correlation_id(None)


@contextlib.contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind a correlation ID for the duration of a ``with`` block.

    The previous binding is restored on exit, so scopes nest.

    Args:
        correlation_id: The ID to bind.

    Yields:
        The bound ID.
    """
    token = set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)


def _utc_timestamp(record: logging.LogRecord) -> str:
    # e.g. 2024-05-01T12:30:45.123Z
    seconds = time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
    return f"{seconds}.{int(record.msecs):03d}Z"


class StructuredFormatter(logging.Formatter):
    """Render log records as single-line JSON objects.

    Each object holds ``timestamp`` (UTC, millisecond precision),
    ``level``, ``logger``, ``message``, the source location
    (``module``, ``function``, ``line``) and ``thread``. It also holds
    the static fields given at construction, the bound correlation ID,
    the formatted exception if any, and the record's ``extra`` fields,
    which win over everything else. Values that JSON cannot encode are
    rendered with ``str``.

    Args:
        static_fields: Fields added to every record, e.g. a service name.

    Example:
        ```pycon
        >>> import json
        >>> import logging
        >>> from aretry.utils.structured_logging import StructuredFormatter
        >>> record = logging.LogRecord(
        ...     "aretry.session", logging.WARNING, __file__, 10, "retry %s", ("failed",), None
        ... )
        >>> record.attempts = 3
        >>> payload = json.loads(StructuredFormatter(static_fields={"env": "test"}).format(record))
        >>> payload["message"], payload["attempts"], payload["env"]
        ('retry failed', 3, 'test')

        ```
    """

    def __init__(self, static_fields: Mapping[str, Any] | None = None) -> None:
        super().__init__()
        self._static_fields = dict(static_fields or {})

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
            **self._static_fields,
        }
        correlation_id = get_correlation_id()
        if correlation_id is not None:
            payload["correlation_id"] = correlation_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        payload.update(
            (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
        )
        return json.dumps(payload, default=str)


def log_structured(logger: logging.Logger, level: int, message: str, **fields: Any) -> None:
    """Emit ``message`` with ``fields`` attached to the record.

    Args:
        logger: The logger to emit on.
        level: The logging level.
        message: The human readable message.
        **fields: The machine readable fields, which must not clash
            with the standard ``LogRecord`` attributes.
    """
    logger.log(level, message, extra=fields)
