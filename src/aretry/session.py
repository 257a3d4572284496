r"""Retry session driving a job through its attempts.

A ``RetrySession`` owns one strategy and one job for one logical retry
run. It can drive the job in two ways:

- ``run_sync``: blocks the calling thread until the run ends, then
  returns the job result or raises ``RetryFailedError``,
  ``RetryAbortedError`` or ``RetryCancelledError``.
- ``run_async``: starts the first attempt and returns a ``RetryFuture``
  at once. Later attempts are started from the job's callback, directly
  when no wait is needed or from the session's waiter thread otherwise.
  Listeners are notified of the terminal outcome.

The session moves through the states of ``SessionState``::

    IDLE -> RUNNING -> SUCCEEDED
                    -> WAITING -> RUNNING -> ...
                    -> FAILED | ABORTED | CANCELLED

All mutable state is guarded by a single condition variable, which
also wakes the waits on cancel, run-now, deadline changes and attempt
outcomes.

Example:
    ```pycon
    >>> from aretry import BackoffRetryStrategy, CallableJob, RetrySession
    >>> from aretry.exceptions import RetryFailedError
    >>> def always_down():
    ...     raise ConnectionError("service down")
    ...
    >>> session = RetrySession(
    ...     CallableJob(always_down),
    ...     BackoffRetryStrategy(initial_interval_millis=1, max_interval_millis=2, max_attempts=3),
    ... )
    >>> try:
    ...     session.run_sync()
    ... except RetryFailedError as exc:
    ...     print(exc)
    ...
    retry failed after 3 failed attempts: service down
    >>> session.state
    <SessionState.FAILED: 'failed'>

    ```
"""

from __future__ import annotations

__all__ = ["SessionState", "RetrySession"]

import itertools
import logging
import threading
import time
from enum import Enum
from typing import TYPE_CHECKING, Any

from aretry.callbacks import RetryCallback, RetryFuture
from aretry.config import FIELD_SESSION_STRATEGY, FIELD_SESSION_STRATEGY_CONF, STOP
from aretry.exceptions import (
    JobError,
    RetryAbortedError,
    RetryCancelledError,
    RetryFailedError,
    StrategyConfigError,
)
from aretry.strategy.factory import get_strategy_by_name
from aretry.strategy.simple import SimpleRetryStrategy
from aretry.utils.structured_logging import log_structured

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from aretry.callbacks import RetryListener
    from aretry.job import RetryJob
    from aretry.strategy.base import BaseRetryStrategy

logger: logging.Logger = logging.getLogger(__name__)

_session_ids = itertools.count(1)


class SessionState(Enum):
    """Retry session states.

    Attributes:
        IDLE: No run started since the last reset.
        RUNNING: An attempt is in flight.
        WAITING: Waiting before the next attempt.
        SUCCEEDED: The job reported a success.
        FAILED: The strategy budget is exhausted.
        ABORTED: The job reported a fatal failure.
        CANCELLED: The caller cancelled the run.
    """

    IDLE = "idle"
    RUNNING = "running"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    def can_transition_to(self, new_state: SessionState) -> bool:
        """Indicate whether the state machine allows moving to
        ``new_state``.

        Example:
            ```pycon
            >>> from aretry.session import SessionState
            >>> SessionState.WAITING.can_transition_to(SessionState.RUNNING)
            True
            >>> SessionState.SUCCEEDED.can_transition_to(SessionState.RUNNING)
            False

            ```
        """
        return new_state in _TRANSITIONS[self]


_TERMINAL_STATES = frozenset(
    {
        SessionState.SUCCEEDED,
        SessionState.FAILED,
        SessionState.ABORTED,
        SessionState.CANCELLED,
    }
)

_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset(
        {SessionState.RUNNING, SessionState.FAILED, SessionState.CANCELLED}
    ),
    SessionState.RUNNING: frozenset(
        {
            SessionState.WAITING,
            SessionState.SUCCEEDED,
            SessionState.FAILED,
            SessionState.ABORTED,
            SessionState.CANCELLED,
        }
    ),
    SessionState.WAITING: frozenset(
        {
            SessionState.RUNNING,
            SessionState.FAILED,
            SessionState.ABORTED,
            SessionState.CANCELLED,
        }
    ),
    SessionState.SUCCEEDED: frozenset(),
    SessionState.FAILED: frozenset(),
    SessionState.ABORTED: frozenset(),
    SessionState.CANCELLED: frozenset(),
}


class RetrySession(RetryCallback):
    r"""Orchestrator driving one job with one retry strategy.

    A session should be used for one job, and its strategy must not be
    shared with another session. Each attempt reports to its own
    callback, so a late outcome of an earlier attempt is dropped instead
    of being taken for the current one. Outcomes reported to the session
    itself apply to the current attempt.

    Args:
        job: The job to run. It can also be given to ``run_sync`` or
            ``run_async``.
        strategy: The retry strategy. Defaults to a single attempt.
        max_attempts: Shortcut for ``SimpleRetryStrategy(max_attempts)``.
            Cannot be combined with ``strategy``.
        listeners: Observers of the terminal outcome of non-blocking runs.
        name: Name used in log records. Defaults to a generated name.

    Raises:
        ValueError: If both ``strategy`` and ``max_attempts`` are given.

    Example:
        ```pycon
        >>> from aretry import CallableJob, RetrySession
        >>> session = RetrySession(CallableJob(lambda: "ok"), max_attempts=3)
        >>> session.run_sync()
        'ok'
        >>> session.attempts
        0

        ```
    """

    def __init__(
        self,
        job: RetryJob | None = None,
        strategy: BaseRetryStrategy | None = None,
        *,
        max_attempts: int | None = None,
        listeners: Iterable[RetryListener] | None = None,
        name: str | None = None,
    ) -> None:
        if strategy is not None and max_attempts is not None:
            msg = "strategy and max_attempts cannot be used together"
            raise ValueError(msg)
        if strategy is None:
            strategy = SimpleRetryStrategy(1 if max_attempts is None else max_attempts)

        self.name = name or f"retry-session-{next(_session_ids)}"
        self._job = job
        self._strategy = strategy
        self._listeners: list[RetryListener] = list(listeners or [])

        # State tracking (protected by the condition)
        self._cond = threading.Condition()
        self._state = SessionState.IDLE
        self._blocking = False
        self._cancel = False
        self._abort = False
        self._signalized = False
        self._waiting_until = 0.0
        self._last_was_success = False
        self._last_result: Any = None
        self._last_error: JobError | None = None
        self._attempts = 0
        self._attempt_seq = 0
        self._starting = False
        self._launching = False
        self._relaunch = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], job: RetryJob | None = None) -> RetrySession:
        """Create a session from a persisted document.

        Args:
            data: The document, ``{"strategy": name, "strategyConf": {...}}``.
                A document without ``strategy`` gives the default
                single-attempt strategy.
            job: Optional job to run.

        Returns:
            The session.

        Raises:
            UnknownStrategyError: If the strategy name is not registered.
            StrategyConfigError: If the strategy configuration is invalid.

        Example:
            ```pycon
            >>> from aretry import RetrySession
            >>> session = RetrySession.from_dict({"strategy": "simple", "strategyConf": {"maxAttempts": 7}})
            >>> session.strategy
            SimpleRetryStrategy(max_attempts=7)
            >>> session.to_dict()
            {'strategy': 'simple', 'strategyConf': {'maxAttempts': 7}}

            ```
        """
        if FIELD_SESSION_STRATEGY not in data:
            return cls(job)
        config = data.get(FIELD_SESSION_STRATEGY_CONF)
        if config is not None and not isinstance(config, dict):
            msg = (
                f"field {FIELD_SESSION_STRATEGY_CONF!r} must be a mapping, "
                f"got {type(config).__name__}"
            )
            raise StrategyConfigError(msg)
        return cls(job, get_strategy_by_name(data[FIELD_SESSION_STRATEGY], config))

    def to_dict(self) -> dict[str, Any]:
        """Serialize the session retry configuration."""
        return {
            FIELD_SESSION_STRATEGY: self._strategy.name,
            FIELD_SESSION_STRATEGY_CONF: self._strategy.to_dict(),
        }

    @property
    def job(self) -> RetryJob | None:
        return self._job

    @job.setter
    def job(self, job: RetryJob) -> None:
        with self._cond:
            if self._is_running():
                msg = "cannot replace the job of a running session"
                raise RuntimeError(msg)
            self._job = job

    @property
    def strategy(self) -> BaseRetryStrategy:
        return self._strategy

    @property
    def state(self) -> SessionState:
        with self._cond:
            return self._state

    @property
    def attempts(self) -> int:
        """Number of failed attempts in the current run."""
        with self._cond:
            return self._attempts

    @property
    def last_result(self) -> Any:
        with self._cond:
            return self._last_result

    @property
    def last_error(self) -> JobError | None:
        with self._cond:
            return self._last_error

    @property
    def waiting_until(self) -> float:
        """Deadline of the pending wait, in ``time.monotonic()`` seconds.

        0.0 means no wait is pending. A job may move the deadline from its
        ``on_retry`` hook.
        """
        with self._cond:
            return self._waiting_until

    @waiting_until.setter
    def waiting_until(self, deadline: float) -> None:
        with self._cond:
            self._waiting_until = deadline
            self._cond.notify_all()

    def is_running(self) -> bool:
        with self._cond:
            return self._is_running()

    def is_cancelled(self) -> bool:
        with self._cond:
            return self._cancel

    def is_aborted(self) -> bool:
        with self._cond:
            return self._abort

    def add_listener(self, listener: RetryListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RetryListener) -> None:
        self._listeners.remove(listener)

    def reset(self) -> None:
        """Reset the session and its strategy for a new run.

        Raises:
            RuntimeError: If a run is in progress.
        """
        with self._cond:
            self._reset(starting=False)

    def _reset(self, starting: bool) -> None:
        # Must be called with the condition held
        if self._is_running():
            msg = f"cannot reset {self.name} while it is {self._state.value}"
            raise RuntimeError(msg)
        self._starting = starting
        self._state = SessionState.IDLE
        self._cancel = False
        self._abort = False
        self._signalized = False
        self._waiting_until = 0.0
        self._last_was_success = False
        self._last_result = None
        self._last_error = None
        self._attempts = 0
        self._relaunch = False
        self._strategy.reset()

    def cancel(self) -> None:
        """Stop future attempts of the current run.

        An attempt in flight is not interrupted, its outcome is discarded.
        A run that is starting is cancelled before its first attempt.
        Calling ``cancel`` on a session that is not running does nothing.
        """
        with self._cond:
            if not (self._is_running() or self._starting):
                logger.debug(f"{self.name}: cancel ignored ({self._state.value})")
                return
            logger.debug(f"{self.name}: cancel requested")
            self._cancel = True
            self._cond.notify_all()

    def run_now(self) -> None:
        """Clear the pending wait so the next attempt starts at once."""
        with self._cond:
            self._waiting_until = 0.0
            self._cond.notify_all()

    def wait_done(self, timeout: float | None = None) -> bool:
        """Block until the session is not running.

        Args:
            timeout: Maximum number of seconds to wait, None to wait
                forever.

        Returns:
            True if the session is not running, False on timeout.
        """
        with self._cond:
            return self._cond.wait_for(lambda: not self._is_running(), timeout)

    def outcome(self) -> Any:
        """Return the result of the finished run or raise its failure.

        Returns:
            The job result if the run succeeded.

        Raises:
            RetryFailedError: If the retry budget was exhausted.
            RetryAbortedError: If the job declared a fatal failure.
            RetryCancelledError: If the run was cancelled.
            RuntimeError: If no run finished.
        """
        with self._cond:
            state = self._state
            result = self._last_result
            error = self._last_error
            attempts = self._attempts
        if state is SessionState.SUCCEEDED:
            return result
        if state is SessionState.ABORTED:
            msg = f"retry aborted after {attempts} failed attempts: {error}"
            raise RetryAbortedError(msg, error, self)
        if state is SessionState.CANCELLED:
            msg = f"retry cancelled after {attempts} failed attempts"
            raise RetryCancelledError(msg, session=self)
        if state is SessionState.FAILED:
            msg = f"retry failed after {attempts} failed attempts"
            if error is not None:
                msg = f"{msg}: {error}"
            raise RetryFailedError(msg, error, self)
        msg = f"{self.name} has no finished run ({state.value})"
        raise RuntimeError(msg)

    def run_sync(self, job: RetryJob | None = None) -> Any:
        """Run the job until it succeeds, blocking the calling thread.

        Args:
            job: Optional job replacing the session job.

        Returns:
            The result reported by the job.

        Raises:
            RetryFailedError: If the strategy budget is exhausted.
            RetryAbortedError: If the job declared a fatal failure.
            RetryCancelledError: If the run was cancelled.
        """
        self._prepare(job, blocking=True)
        first = True
        while True:
            with self._cond:
                if (
                    self._cancel
                    or self._abort
                    or self._state.is_terminal
                    or not self._strategy.should_continue()
                ):
                    break
                if not first:
                    wait_millis = self._strategy.get_wait_millis()
                    if wait_millis == STOP:
                        break
                    self._set_deadline(wait_millis)

            if not first:
                self._notify_retry()
                self._wait_for_deadline()
            first = False

            with self._cond:
                if self._cancel or self._abort:
                    break
            self._launch()
            self._wait_for_signal()

            with self._cond:
                if self._last_was_success:
                    break

        self._finish_blocking()
        return self.outcome()

    def run_async(self, job: RetryJob | None = None) -> RetryFuture:
        """Start the job and return immediately.

        The first attempt starts in the calling thread. If the job is
        synchronous, retries that need no wait also run before this method
        returns.

        Args:
            job: Optional job replacing the session job.

        Returns:
            The future bound to this session.
        """
        self._prepare(job, blocking=False)
        self._launch()
        return RetryFuture(self)

    def on_success(self, result: Any) -> None:
        self._report_success(None, result)

    def on_fail(self, error: JobError | None, abort: bool = False) -> None:
        self._report_fail(None, error, abort)

    def _report_success(self, seq: int | None, result: Any) -> None:
        with self._cond:
            if not self._accept_signal("success", seq):
                return
            self._signalized = True
            self._strategy.on_success()
            if self._cancel:
                logger.debug(f"{self.name}: success discarded, run was cancelled")
                terminal = SessionState.CANCELLED
            else:
                self._last_was_success = True
                self._last_result = result
                self._last_error = None
                terminal = SessionState.SUCCEEDED
            self._transition(terminal)
            self._cond.notify_all()
        self._on_terminal(terminal)

    def _report_fail(self, seq: int | None, error: JobError | None, abort: bool) -> None:
        schedule = False
        terminal: SessionState | None = None
        with self._cond:
            if not self._accept_signal("failure", seq):
                return
            self._signalized = True
            self._last_was_success = False
            self._last_result = None
            self._last_error = error
            self._attempts += 1
            self._strategy.on_fail()
            logger.debug(
                f"{self.name}: attempt failed ({self._attempts} so far, abort={abort}): {error}"
            )

            if abort:
                self._abort = True
                terminal = SessionState.ABORTED
            elif self._cancel:
                terminal = SessionState.CANCELLED
            elif not self._strategy.should_continue():
                terminal = SessionState.FAILED
            elif self._blocking:
                # The blocking loop computes the wait and starts the next attempt
                self._transition(SessionState.WAITING)
            else:
                wait_millis = self._strategy.get_wait_millis()
                if wait_millis == STOP:
                    terminal = SessionState.FAILED
                else:
                    self._set_deadline(wait_millis)
                    self._transition(SessionState.WAITING)
                    schedule = True

            if terminal is not None:
                self._transition(terminal)
            self._cond.notify_all()

        if terminal is not None:
            self._on_terminal(terminal)
        elif schedule:
            self._notify_retry()
            self._schedule_next()

    def _prepare(self, job: RetryJob | None, blocking: bool) -> None:
        if job is not None:
            self.job = job
        if self._job is None:
            msg = f"{self.name} has no job to run"
            raise ValueError(msg)
        with self._cond:
            self._reset(starting=True)
            self._blocking = blocking
        logger.debug(
            f"{self.name}: starting {'blocking' if blocking else 'non-blocking'} run "
            f"with {self._strategy!r}"
        )

    def _is_running(self) -> bool:
        return self._state in (SessionState.RUNNING, SessionState.WAITING)

    def _transition(self, new_state: SessionState) -> None:
        # Must be called with the condition held
        if not self._state.can_transition_to(new_state):
            msg = f"{self.name}: illegal transition {self._state.value} -> {new_state.value}"
            raise RuntimeError(msg)
        logger.debug(f"{self.name}: {self._state.value} -> {new_state.value}")
        self._state = new_state
        self._starting = False

    def _accept_signal(self, kind: str, seq: int | None) -> bool:
        # Must be called with the condition held. A None seq is the current attempt
        if seq is not None and seq != self._attempt_seq:
            logger.debug(f"{self.name}: discarding {kind} of earlier attempt {seq}")
            return False
        if self._state is not SessionState.RUNNING or self._signalized:
            if self._cancel:
                logger.debug(f"{self.name}: discarding {kind} reported after cancel")
                return False
            logger.warning(
                f"{self.name}: ignoring {kind} reported while {self._state.value} "
                f"(an attempt may report only one outcome)"
            )
            return False
        return True

    def _set_deadline(self, wait_millis: float) -> None:
        self._waiting_until = time.monotonic() + wait_millis / 1000.0 if wait_millis > 0 else 0.0
        if wait_millis > 0:
            logger.debug(f"{self.name}: waiting {wait_millis}ms before the next attempt")

    def _wait_for_deadline(self) -> None:
        with self._cond:
            while not (self._cancel or self._abort):
                if self._waiting_until <= 0:
                    return
                remaining = self._waiting_until - time.monotonic()
                if remaining <= 0:
                    return
                self._cond.wait(remaining)

    def _wait_for_signal(self) -> None:
        with self._cond:
            self._cond.wait_for(
                lambda: self._signalized or self._cancel or self._abort or self._state.is_terminal
            )

    def _launch(self) -> None:
        # Attempts requested while one is being started in this call chain
        # are run by the outer loop instead of recursing.
        with self._cond:
            if self._launching:
                self._relaunch = True
                return
            self._launching = True
        done = False
        try:
            while not done:
                self._run_attempt()
                with self._cond:
                    if self._relaunch:
                        self._relaunch = False
                    else:
                        self._launching = False
                        done = True
        finally:
            if not done:
                with self._cond:
                    self._launching = False

    def _run_attempt(self) -> None:
        with self._cond:
            if self._state.is_terminal:
                return
            if self._cancel:
                self._transition(SessionState.CANCELLED)
                self._cond.notify_all()
                cancelled = True
            else:
                cancelled = False
                self._signalized = False
                self._waiting_until = 0.0
                self._attempt_seq += 1
                seq = self._attempt_seq
                self._transition(SessionState.RUNNING)
        if cancelled:
            self._on_terminal(SessionState.CANCELLED)
            return

        job = self._job
        logger.debug(f"{self.name}: running attempt {seq} of {job!r}")
        try:
            job.run(_AttemptCallback(self, seq))
        except Exception as exc:
            with self._cond:
                unreported = seq == self._attempt_seq and not self._signalized
            if not unreported:
                logger.warning(f"{self.name}: {job!r} raised after reporting its outcome: {exc}")
                return
            logger.warning(f"{self.name}: {job!r} raised {type(exc).__name__}, aborting: {exc}")
            self._report_fail(seq, JobError.from_exception(exc), abort=True)

    def _notify_retry(self) -> None:
        try:
            self._job.on_retry(self)
        except Exception as exc:
            logger.warning(f"{self.name}: on_retry of {self._job!r} raised, aborting: {exc}")
            with self._cond:
                if self._state.is_terminal:
                    return
                self._abort = True
                self._last_error = JobError.from_exception(exc)
                self._transition(SessionState.ABORTED)
                self._cond.notify_all()
            self._on_terminal(SessionState.ABORTED)

    def _schedule_next(self) -> None:
        with self._cond:
            if self._state is not SessionState.WAITING:
                return
            immediate = self._waiting_until <= 0 or self._cancel
        if immediate:
            self._launch()
            return
        threading.Thread(
            target=self._wait_then_launch, name=f"{self.name}-waiter", daemon=True
        ).start()

    def _wait_then_launch(self) -> None:
        self._wait_for_deadline()
        with self._cond:
            if self._state is not SessionState.WAITING:
                return
        self._launch()

    def _finish_blocking(self) -> None:
        with self._cond:
            if self._state.is_terminal:
                return
            if self._abort:
                terminal = SessionState.ABORTED
            elif self._cancel:
                terminal = SessionState.CANCELLED
            elif self._last_was_success:
                terminal = SessionState.SUCCEEDED
            else:
                terminal = SessionState.FAILED
            self._transition(terminal)
            self._cond.notify_all()
        self._on_terminal(terminal)

    def _on_terminal(self, state: SessionState) -> None:
        with self._cond:
            attempts = self._attempts
            error = self._last_error
            result = self._last_result
            blocking = self._blocking
        log_structured(
            logger,
            logging.INFO if state is SessionState.SUCCEEDED else logging.WARNING,
            f"{self.name}: retry {state.value} after {attempts} failed attempts",
            session_id=self.name,
            session_state=state.value,
            attempts=attempts,
            strategy=self._strategy.name,
        )
        if blocking:
            return
        for listener in list(self._listeners):
            try:
                if state is SessionState.SUCCEEDED:
                    listener.on_success(result, self)
                elif state is SessionState.CANCELLED:
                    listener.on_fail(None, self)
                else:
                    listener.on_fail(error, self)
            except Exception as exc:  # noqa: BLE001
                logger.warning(f"{self.name}: error in retry listener {listener!r}: {exc}")

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(name={self.name!r}, state={self.state.value}, "
            f"strategy={self._strategy!r})"
        )


class _AttemptCallback(RetryCallback):
    """Callback handed to the job for one attempt of a session."""

    def __init__(self, session: RetrySession, seq: int) -> None:
        self._session = session
        self._seq = seq

    def on_success(self, result: Any) -> None:
        self._session._report_success(self._seq, result)  # noqa: SLF001

    def on_fail(self, error: JobError | None, abort: bool = False) -> None:
        self._session._report_fail(self._seq, error, abort)  # noqa: SLF001

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(session={self._session.name!r}, seq={self._seq})"
