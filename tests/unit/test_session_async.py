r"""Unit tests for non-blocking runs of RetrySession."""

from __future__ import annotations

import logging
import threading
import time

import pytest

from aretry import (
    BackoffRetryStrategy,
    JobError,
    RetryAbortedError,
    RetryCancelledError,
    RetryFailedError,
    RetryFuture,
    RetryListener,
    RetrySession,
    SessionState,
    SimpleRetryStrategy,
)
from tests.helpers import (
    RecordingListener,
    ScriptedJob,
    ThreadedJob,
    abort,
    fail,
    raises,
    success,
)


def slow_backoff() -> BackoffRetryStrategy:
    """Backoff strategy whose first wait is 10 seconds."""
    return BackoffRetryStrategy(
        initial_interval_millis=10_000, randomization_factor=0.0, max_interval_millis=10_000
    )


##############################################
#     Tests for run_async outcomes           #
##############################################


def test_run_async_success(listener: RecordingListener) -> None:
    session = RetrySession(ScriptedJob(success(42)), listeners=[listener])
    future = session.run_async()
    assert isinstance(future, RetryFuture)
    assert future.session is session
    assert future.result(timeout=5.0) == 42
    assert listener.successes == [42]
    assert listener.failures == []
    assert future.is_done()
    assert future.state == SessionState.SUCCEEDED


def test_run_async_budget_exhausted(listener: RecordingListener) -> None:
    job = ScriptedJob(fail("boom"))
    session = RetrySession(job, max_attempts=3, listeners=[listener])
    future = session.run_async()
    with pytest.raises(RetryFailedError, match=r"retry failed after 3 failed attempts: boom"):
        future.result(timeout=5.0)
    assert job.runs == 3
    assert listener.failures == [JobError(error="boom")]
    assert listener.successes == []


def test_run_async_abort(listener: RecordingListener) -> None:
    job = ScriptedJob(fail(), abort("denied"))
    session = RetrySession(job, max_attempts=10, listeners=[listener])
    future = session.run_async()
    with pytest.raises(RetryAbortedError, match=r"denied"):
        future.result(timeout=5.0)
    assert job.runs == 2
    assert listener.failures == [JobError(error="denied")]
    assert session.is_aborted()


def test_run_async_job_exception_aborts(listener: RecordingListener) -> None:
    exc = KeyError("missing")
    session = RetrySession(ScriptedJob(raises(exc)), max_attempts=3, listeners=[listener])
    future = session.run_async()
    with pytest.raises(RetryAbortedError) as exc_info:
        future.result(timeout=5.0)
    assert exc_info.value.root_cause is exc
    assert listener.failures[0].root_cause is exc


def test_run_async_zero_wait_retries_do_not_recurse(listener: RecordingListener) -> None:
    """Test that many synchronous zero-wait retries run without growing
    the stack."""
    job = ScriptedJob(fail())
    session = RetrySession(job, SimpleRetryStrategy(3000), listeners=[listener])
    future = session.run_async()
    assert future.is_done()
    assert job.runs == 3000
    assert session.attempts == 3000
    assert listener.calls == 1
    assert session.state == SessionState.FAILED


def test_run_async_threaded_job(listener: RecordingListener) -> None:
    job = ThreadedJob(fail(), fail(), success("done"), delay=0.01)
    session = RetrySession(job, max_attempts=5, listeners=[listener])
    future = session.run_async()
    assert future.result(timeout=5.0) == "done"
    assert listener.done.wait(5.0)
    assert listener.successes == ["done"]
    assert session.attempts == 2


def test_run_async_returns_before_outcome() -> None:
    release = threading.Event()
    session = RetrySession(ThreadedJob(success(1), release=release))
    future = session.run_async()
    assert future.is_running()
    assert not future.is_done()
    assert future.state == SessionState.RUNNING
    release.set()
    assert future.result(timeout=5.0) == 1


def test_run_async_backoff_retry_fires(listener: RecordingListener) -> None:
    """Test that the waiter thread starts the next attempt on expiry."""
    job = ScriptedJob(fail(), success("second"))
    strategy = BackoffRetryStrategy(
        initial_interval_millis=200, randomization_factor=0.0, max_interval_millis=200
    )
    session = RetrySession(job, strategy, listeners=[listener])
    future = session.run_async()
    assert future.state == SessionState.WAITING
    assert session.waiting_until > 0
    assert future.result(timeout=5.0) == "second"
    assert listener.done.wait(5.0)
    assert listener.successes == ["second"]


##############################################
#     Tests for cancel and run_now           #
##############################################


def test_cancel_during_wait(listener: RecordingListener) -> None:
    """Test that cancelling a pending wait prevents any new attempt."""
    job = ScriptedJob(fail(), success("never"))
    session = RetrySession(job, slow_backoff(), listeners=[listener])
    future = session.run_async()
    assert future.state == SessionState.WAITING

    start = time.monotonic()
    future.cancel()
    with pytest.raises(RetryCancelledError, match=r"retry cancelled after 1 failed attempts"):
        future.result(timeout=5.0)
    assert time.monotonic() - start < 5.0
    assert job.runs == 1
    assert listener.done.wait(5.0)
    assert listener.successes == []
    assert listener.failures == [None]
    assert session.state == SessionState.CANCELLED


def test_cancel_during_attempt_discards_success(listener: RecordingListener) -> None:
    release = threading.Event()
    job = ThreadedJob(success("late"), release=release)
    session = RetrySession(job, max_attempts=3, listeners=[listener])
    future = session.run_async()
    future.cancel()
    assert future.is_running()
    release.set()
    with pytest.raises(RetryCancelledError):
        future.result(timeout=5.0)
    assert listener.done.wait(5.0)
    assert listener.successes == []
    assert listener.failures == [None]
    assert session.last_result is None


def test_cancel_during_attempt_stops_retries(listener: RecordingListener) -> None:
    release = threading.Event()
    job = ThreadedJob(fail(), release=release)
    session = RetrySession(job, max_attempts=5, listeners=[listener])
    future = session.run_async()
    future.cancel()
    release.set()
    with pytest.raises(RetryCancelledError):
        future.result(timeout=5.0)
    assert job.runs == 1
    assert listener.done.wait(5.0)
    assert listener.failures == [None]


def test_cancel_after_done_is_noop(listener: RecordingListener) -> None:
    session = RetrySession(ScriptedJob(success("ok")), listeners=[listener])
    future = session.run_async()
    future.cancel()
    assert future.result(timeout=1.0) == "ok"
    assert not session.is_cancelled()
    assert listener.calls == 1


def test_run_now_skips_wait(listener: RecordingListener) -> None:
    job = ScriptedJob(fail(), success("now"))
    session = RetrySession(job, slow_backoff(), listeners=[listener])
    future = session.run_async()
    assert future.state == SessionState.WAITING

    start = time.monotonic()
    future.run_now()
    assert future.result(timeout=5.0) == "now"
    assert time.monotonic() - start < 5.0
    assert job.runs == 2
    assert listener.done.wait(5.0)
    assert listener.successes == ["now"]


def test_on_retry_can_move_deadline() -> None:
    class ImpatientJob(ScriptedJob):
        def on_retry(self, session: RetrySession) -> None:
            super().on_retry(session)
            session.waiting_until = time.monotonic() + 0.01

    job = ImpatientJob(fail(), success("quick"))
    session = RetrySession(job, slow_backoff())
    assert session.run_async().result(timeout=5.0) == "quick"
    assert len(job.retries) == 1


##############################################
#     Tests for listeners                    #
##############################################


def test_listener_exception_is_logged(
    listener: RecordingListener, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a failing listener neither breaks the run nor the other
    listeners."""

    class BrokenListener(RetryListener):
        def on_success(self, result: object, session: RetrySession) -> None:  # noqa: ARG002
            msg = "listener bug"
            raise RuntimeError(msg)

        def on_fail(self, error: object, session: RetrySession) -> None:  # noqa: ARG002
            msg = "listener bug"
            raise RuntimeError(msg)

    session = RetrySession(ScriptedJob(success(3)), listeners=[BrokenListener(), listener])
    with caplog.at_level(logging.WARNING, logger="aretry"):
        future = session.run_async()
    assert future.result(timeout=1.0) == 3
    assert listener.successes == [3]
    assert any("error in retry listener" in record.getMessage() for record in caplog.records)


def test_add_and_remove_listener() -> None:
    first = RecordingListener()
    second = RecordingListener()
    session = RetrySession(ScriptedJob(success("x")))
    session.add_listener(first)
    session.add_listener(second)
    session.remove_listener(first)
    session.run_async().result(timeout=1.0)
    assert first.calls == 0
    assert second.successes == ["x"]


def test_listener_called_once_per_run(listener: RecordingListener) -> None:
    job = ScriptedJob(fail(), fail(), fail())
    session = RetrySession(job, max_attempts=3, listeners=[listener])
    session.run_async().wait(5.0)
    session.run_async().wait(5.0)
    assert listener.calls == 2


##############################################
#     Tests for RetryFuture                  #
##############################################


def test_future_result_timeout() -> None:
    release = threading.Event()
    session = RetrySession(ThreadedJob(success(), release=release))
    future = session.run_async()
    try:
        with pytest.raises(TimeoutError, match=r"retry run not done after 0.05s"):
            future.result(timeout=0.05)
        assert not future.wait(timeout=0.01)
    finally:
        release.set()
    assert future.wait(timeout=5.0)


def test_future_repr() -> None:
    future = RetrySession(ScriptedJob(success())).run_async()
    assert repr(future) == "RetryFuture(state=succeeded)"


def test_waiter_thread_is_named() -> None:
    session = RetrySession(ScriptedJob(fail(), success()), slow_backoff(), name="upload")
    future = session.run_async()
    try:
        names = [thread.name for thread in threading.enumerate()]
        assert "upload-waiter" in names
    finally:
        future.run_now()
        future.wait(5.0)
