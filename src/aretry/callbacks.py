r"""Signaling protocol between jobs, retry sessions and observers.

The protocol has three parts:

- ``RetryCallback``: the channel a job uses to report the outcome of an
  attempt. ``RetrySession`` implements it.
- ``RetryListener``: observers notified of the terminal outcome of a
  non-blocking run.
- ``RetryFuture``: the handle returned by ``RetrySession.run_async`` to
  inspect, cancel or fast-forward a running session.

Example:
    ```pycon
    >>> from aretry import CallableJob, RetryListener, RetrySession
    >>> class PrintListener(RetryListener):
    ...     def on_success(self, result, session):
    ...         print(f"done after {session.attempts} failures: {result}")
    ...     def on_fail(self, error, session):
    ...         print(f"gave up: {error}")
    ...
    >>> session = RetrySession(CallableJob(lambda: 42), listeners=[PrintListener()])
    >>> future = session.run_async()
    done after 0 failures: 42
    >>> future.result(timeout=1.0)
    42

    ```
"""

from __future__ import annotations

__all__ = ["RetryCallback", "RetryFuture", "RetryListener"]

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from aretry.exceptions import JobError
    from aretry.session import RetrySession, SessionState


class RetryCallback(ABC):
    """Channel through which a job reports the outcome of an attempt.

    A job must call exactly one of the two methods per attempt, from any
    thread.
    """

    @abstractmethod
    def on_success(self, result: Any) -> None:
        """Report a successful attempt.

        Args:
            result: The result of the job.
        """

    @abstractmethod
    def on_fail(self, error: JobError | None, abort: bool = False) -> None:
        """Report a failed attempt.

        Args:
            error: The failure payload.
            abort: If True, the failure is fatal and the job is not
                retried regardless of the strategy.
        """


class RetryListener(ABC):
    """Observer of the terminal outcome of a non-blocking run.

    Exactly one of the methods is called once per run. A cancelled run
    reports ``on_fail`` with ``error=None``.
    """

    @abstractmethod
    def on_success(self, result: Any, session: RetrySession) -> None:
        """Called when the run succeeded.

        Args:
            result: The result of the job.
            session: The session that ran the job.
        """

    @abstractmethod
    def on_fail(self, error: JobError | None, session: RetrySession) -> None:
        """Called when the run failed, was aborted, or was cancelled.

        Args:
            error: The last job error, None for a cancelled run.
            session: The session that ran the job. Its ``state`` tells
                the kind of failure.
        """


class RetryFuture:
    """Handle on a non-blocking retry run.

    The future is a view on the session state: it stays valid (and
    reflects the latest run) for as long as the session exists.

    Args:
        session: The session running the job.
    """

    def __init__(self, session: RetrySession) -> None:
        self._session = session

    @property
    def session(self) -> RetrySession:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    def is_running(self) -> bool:
        """Indicate whether the run is in progress (running an attempt or
        waiting before the next one)."""
        return self._session.is_running()

    def is_done(self) -> bool:
        """Indicate whether the run reached a terminal state."""
        return not self._session.is_running()

    def cancel(self) -> None:
        """Stop future attempts.

        An attempt already in flight is not interrupted, its outcome is
        discarded once reported.
        """
        self._session.cancel()

    def run_now(self) -> None:
        """Skip the pending backoff wait so the next attempt starts
        immediately."""
        self._session.run_now()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the run reaches a terminal state.

        Args:
            timeout: Maximum number of seconds to wait, None to wait
                forever.

        Returns:
            True if the run is done, False if the timeout expired.
        """
        return self._session.wait_done(timeout)

    def result(self, timeout: float | None = None) -> Any:
        """Return the result of the run, blocking until it is done.

        Args:
            timeout: Maximum number of seconds to wait, None to wait
                forever.

        Returns:
            The job result.

        Raises:
            TimeoutError: If the run is not done within ``timeout``.
            RetryFailedError: If the retry budget was exhausted.
            RetryAbortedError: If the job declared a fatal failure.
            RetryCancelledError: If the run was cancelled.
        """
        if not self.wait(timeout):
            msg = f"retry run not done after {timeout}s"
            raise TimeoutError(msg)
        return self._session.outcome()

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(state={self.state.value})"
