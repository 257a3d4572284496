r"""Error payloads and exceptions raised by the retry engine.

The error taxonomy is:

- ``JobError``: the failure payload a job reports through its callback,
  optionally carrying the underlying exception as root cause.
- ``RetryError``: base class for the terminal outcomes of a blocking run,
  specialized as ``RetryFailedError`` (budget exhausted),
  ``RetryAbortedError`` (job declared a fatal failure) and
  ``RetryCancelledError`` (caller cancelled the run).
- ``StrategyConfigError`` and ``UnknownStrategyError``: raised
  synchronously while building a strategy.
"""

from __future__ import annotations

__all__ = [
    "JobError",
    "JobException",
    "RetryAbortedError",
    "RetryCancelledError",
    "RetryError",
    "RetryFailedError",
    "StrategyConfigError",
    "UnknownStrategyError",
]

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from aretry.session import RetrySession


@dataclass(frozen=True)
class JobError:
    """Failure payload reported by a job.

    A job error is an application-level error value, an underlying
    exception, or both.

    Attributes:
        error: Optional application error value (any type).
        cause: Optional exception that caused the failure.

    Example:
        ```pycon
        >>> from aretry.exceptions import JobError
        >>> err = JobError(error="quota exceeded")
        >>> err.error
        'quota exceeded'
        >>> err.root_cause is None
        True
        >>> exc = ConnectionError("reset by peer")
        >>> JobError.from_exception(exc).root_cause is exc
        True

        ```
    """

    error: Any = None
    cause: BaseException | None = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> JobError:
        """Create a job error whose payload and cause are both ``exc``.

        Args:
            exc: The exception raised by the job.

        Returns:
            The job error wrapping the exception.
        """
        return cls(error=exc, cause=exc)

    @property
    def root_cause(self) -> BaseException | None:
        """The underlying exception, or None if the error is purely
        an application value."""
        return self.cause

    def __str__(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.cause is not None:
            return f"{type(self.cause).__name__}: {self.cause}"
        return "unknown job error"


class JobException(Exception):
    """Exception a job may raise to report an error payload.

    ``SafeRetryJob`` turns it into a ``JobError`` whose ``error`` is the
    payload and whose ``cause`` is the exception itself.

    Args:
        message: A descriptive error message.
        error: Optional application error value.

    Example:
        ```pycon
        >>> from aretry.exceptions import JobException
        >>> exc = JobException("upload rejected", error={"code": 413})
        >>> exc.error
        {'code': 413}

        ```
    """

    def __init__(self, message: str = "", error: Any = None) -> None:
        super().__init__(message)
        self.error = error


class RetryError(Exception):
    """Base class for the terminal failures of a retry run.

    Args:
        message: A descriptive error message.
        error: The last job error, if any.
        session: The session that produced the failure.

    Attributes:
        error: The last job error, if any.
        session: The session that produced the failure.
    """

    def __init__(
        self,
        message: str,
        error: JobError | None = None,
        session: RetrySession | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.session = session
        if error is not None and error.root_cause is not None:
            self.__cause__ = error.root_cause

    @property
    def root_cause(self) -> BaseException | None:
        """The root cause exception carried by the last job error."""
        if self.error is None:
            return None
        return self.error.root_cause


class RetryFailedError(RetryError):
    """Raised when the retry budget is exhausted without a success.

    Example:
        ```pycon
        >>> from aretry.exceptions import JobError, RetryFailedError
        >>> raise RetryFailedError("failed after 3 attempts", JobError(error="boom"))
        Traceback (most recent call last):
            ...
        aretry.exceptions.RetryFailedError: failed after 3 attempts

        ```
    """


class RetryAbortedError(RetryError):
    """Raised when the job declared a fatal, non-retryable failure."""


class RetryCancelledError(RetryError):
    """Raised when the caller cancelled the run before a success.

    A cancelled run carries no job error: the outcome of the attempt in
    flight at cancellation time is discarded.
    """


class StrategyConfigError(ValueError):
    """Raised when a strategy is built with invalid parameters.

    Example:
        ```pycon
        >>> from aretry.strategy import BackoffRetryStrategy
        >>> BackoffRetryStrategy(multiplier=0.5)
        Traceback (most recent call last):
            ...
        aretry.exceptions.StrategyConfigError: multiplier must be >= 1, got 0.5

        ```
    """


class UnknownStrategyError(ValueError):
    """Raised when a strategy document names an unregistered
    strategy."""

    def __init__(self, name: Any) -> None:
        super().__init__(f"Unknown strategy type: {name!r}")
        self.name = name
