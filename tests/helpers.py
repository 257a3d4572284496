r"""Shared test jobs and listeners for retry session tests.

This module contains scripted jobs whose outcomes are set in advance,
so the session tests can describe a run as a list of outcomes.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from aretry import JobError, RetryJob, RetryListener

if TYPE_CHECKING:
    from aretry import RetryCallback, RetrySession


@dataclass
class Outcome:
    """Outcome a scripted job reports for one attempt.

    Attributes:
        kind: One of "success", "fail", "abort" or "raise".
        value: The result for "success", the error payload for "fail"
            and "abort", the exception for "raise".
    """

    kind: str
    value: Any = None


def success(value: Any = None) -> Outcome:
    return Outcome("success", value)


def fail(error: Any = "transient") -> Outcome:
    return Outcome("fail", error)


def abort(error: Any = "fatal") -> Outcome:
    return Outcome("abort", error)


def raises(exc: Exception) -> Outcome:
    return Outcome("raise", exc)


def report(callback: RetryCallback, outcome: Outcome) -> None:
    if outcome.kind == "success":
        callback.on_success(outcome.value)
    elif outcome.kind == "fail":
        callback.on_fail(JobError(error=outcome.value))
    elif outcome.kind == "abort":
        callback.on_fail(JobError(error=outcome.value), abort=True)
    elif outcome.kind == "raise":
        raise outcome.value


class ScriptedJob(RetryJob):
    """Job reporting scripted outcomes synchronously, from ``run``.

    The last outcome is repeated once the script is exhausted.
    """

    def __init__(self, *outcomes: Outcome) -> None:
        self.outcomes = list(outcomes)
        self.runs = 0
        self.retries: list[float] = []

    def next_outcome(self) -> Outcome:
        index = min(self.runs, len(self.outcomes) - 1)
        self.runs += 1
        return self.outcomes[index]

    def run(self, callback: RetryCallback) -> None:
        report(callback, self.next_outcome())

    def on_retry(self, session: RetrySession) -> None:
        self.retries.append(session.waiting_until)


class ThreadedJob(ScriptedJob):
    """Job reporting scripted outcomes from a separate thread.

    Each attempt waits for ``delay`` seconds (or for ``release`` to be
    set, when given) before reporting.
    """

    def __init__(
        self, *outcomes: Outcome, delay: float = 0.0, release: threading.Event | None = None
    ) -> None:
        super().__init__(*outcomes)
        self.delay = delay
        self.release = release
        self.started = threading.Event()

    def run(self, callback: RetryCallback) -> None:
        outcome = self.next_outcome()
        self.started.set()

        def worker() -> None:
            if self.release is not None:
                self.release.wait(5.0)
            elif self.delay > 0:
                threading.Event().wait(self.delay)
            report(callback, outcome)

        threading.Thread(target=worker, daemon=True).start()


class DeferredJob(RetryJob):
    """Job keeping the callback of every attempt without reporting.

    The test reports each outcome itself, through ``callbacks``.
    """

    def __init__(self) -> None:
        self.callbacks: list[RetryCallback] = []

    def run(self, callback: RetryCallback) -> None:
        self.callbacks.append(callback)


@dataclass
class RecordingListener(RetryListener):
    """Listener recording every notification it receives."""

    successes: list[Any] = field(default_factory=list)
    failures: list[JobError | None] = field(default_factory=list)
    done: threading.Event = field(default_factory=threading.Event)

    def on_success(self, result: Any, session: RetrySession) -> None:  # noqa: ARG002
        self.successes.append(result)
        self.done.set()

    def on_fail(self, error: JobError | None, session: RetrySession) -> None:  # noqa: ARG002
        self.failures.append(error)
        self.done.set()

    @property
    def calls(self) -> int:
        return len(self.successes) + len(self.failures)
