r"""Job contract and ready-made job implementations.

A job is the unit of work driven by a ``RetrySession``. The session
calls ``run`` once per attempt and the job reports the outcome through
the callback it receives, either before ``run`` returns (synchronous
job) or later from another thread (asynchronous job).
"""

from __future__ import annotations

__all__ = ["CallableJob", "RetryJob", "SafeRetryJob"]

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from aretry.exceptions import JobError, JobException

if TYPE_CHECKING:
    from collections.abc import Callable

    from aretry.callbacks import RetryCallback
    from aretry.session import RetrySession

logger: logging.Logger = logging.getLogger(__name__)


class RetryJob(ABC):
    """Abstract base class for retryable jobs."""

    @abstractmethod
    def run(self, callback: RetryCallback) -> None:
        """Run one attempt of the job.

        The job must eventually call ``callback.on_success`` or
        ``callback.on_fail`` exactly once for this attempt.

        Args:
            callback: The channel to report the outcome.
        """

    def on_retry(self, session: RetrySession) -> None:  # noqa: B027
        """Called before each retry, after the wait was computed.

        The job may read or adjust ``session.waiting_until``. The default
        implementation does nothing.

        Args:
            session: The session about to retry the job.
        """


def _error_from_exception(exc: Exception) -> JobError:
    if isinstance(exc, JobException) and exc.error is not None:
        return JobError(error=exc.error, cause=exc)
    return JobError.from_exception(exc)


class SafeRetryJob(RetryJob):
    """Job base class turning exceptions into fatal failures.

    Subclasses implement ``run_safe``. Any exception it raises is
    reported as an aborting failure. A ``JobException`` contributes its
    ``error`` payload to the reported ``JobError``.

    Example:
        ```pycon
        >>> from aretry import RetrySession, SafeRetryJob
        >>> from aretry.exceptions import RetryAbortedError
        >>> class Divide(SafeRetryJob):
        ...     def run_safe(self, callback):
        ...         callback.on_success(1 / 0)
        ...
        >>> try:
        ...     RetrySession(Divide(), max_attempts=3).run_sync()
        ... except RetryAbortedError as exc:
        ...     print(type(exc.root_cause).__name__)
        ...
        ZeroDivisionError

        ```
    """

    def run(self, callback: RetryCallback) -> None:
        try:
            self.run_safe(callback)
        except Exception as exc:
            logger.debug(f"{type(self).__name__} raised {type(exc).__name__}: {exc}")
            callback.on_fail(_error_from_exception(exc), abort=True)

    @abstractmethod
    def run_safe(self, callback: RetryCallback) -> None:
        """Run one attempt of the job, exceptions allowed.

        Args:
            callback: The channel to report the outcome.
        """


class CallableJob(RetryJob):
    """Job running a plain function synchronously.

    The return value of the function is reported as success. Exceptions
    matching ``retry_on`` are reported as retryable failures, exceptions
    matching ``abort_on`` or not matching ``retry_on`` as fatal ones.

    Args:
        func: The function to run on each attempt.
        *args: Positional arguments passed to ``func``.
        retry_on: Exception types that are worth retrying.
        abort_on: Exception types that are never retried, checked before
            ``retry_on``.
        **kwargs: Keyword arguments passed to ``func``.

    Example:
        ```pycon
        >>> from aretry import CallableJob, RetrySession
        >>> calls = []
        >>> def flaky():
        ...     calls.append(1)
        ...     if len(calls) < 3:
        ...         raise ConnectionError("try again")
        ...     return "ok"
        ...
        >>> RetrySession(CallableJob(flaky, retry_on=(ConnectionError,)), max_attempts=5).run_sync()
        'ok'
        >>> len(calls)
        3

        ```
    """

    def __init__(
        self,
        func: Callable[..., Any],
        *args: Any,
        retry_on: tuple[type[Exception], ...] = (Exception,),
        abort_on: tuple[type[Exception], ...] = (),
        **kwargs: Any,
    ) -> None:
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self.retry_on = retry_on
        self.abort_on = abort_on

    def run(self, callback: RetryCallback) -> None:
        try:
            result = self.func(*self.args, **self.kwargs)
        except Exception as exc:
            abort = isinstance(exc, self.abort_on) or not isinstance(exc, self.retry_on)
            logger.debug(
                f"{getattr(self.func, '__name__', self.func)!s} raised "
                f"{type(exc).__name__} ({'fatal' if abort else 'retryable'}): {exc}"
            )
            callback.on_fail(_error_from_exception(exc), abort=abort)
        else:
            callback.on_success(result)

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(func={self.func!r})"
