r"""aretry - Retry orchestration for jobs that may fail transiently.

This package drives a unit of work (a "job") through repeated attempts
until it succeeds, reports a fatal error, is cancelled by its owner, or
exhausts a configurable budget of attempts and/or elapsed time.

Key Features:
    - Fixed attempt count and randomized exponential backoff strategies
    - Blocking runs returning the result or raising a typed failure
    - Non-blocking runs with a future (cancel, skip the backoff wait)
      and listeners notified of the terminal outcome
    - Jobs reporting outcomes synchronously or from their own threads
    - Strategy configuration documents with a name-based factory
    - Ready-made jobs for plain functions and httpx requests

Example:
    ```pycon
    >>> from aretry import BackoffRetryStrategy, CallableJob, RetrySession
    >>> attempts = []
    >>> def fetch():
    ...     attempts.append(1)
    ...     if len(attempts) == 1:
    ...         raise TimeoutError("slow backend")
    ...     return {"status": "ok"}
    ...
    >>> strategy = BackoffRetryStrategy(initial_interval_millis=10, max_interval_millis=50)
    >>> RetrySession(CallableJob(fetch), strategy).run_sync()
    {'status': 'ok'}

    ```
"""

from __future__ import annotations

__all__ = [
    "BackoffRetryStrategy",
    "BaseRetryStrategy",
    "CallableJob",
    "JobError",
    "JobException",
    "RetryAbortedError",
    "RetryCallback",
    "RetryCancelledError",
    "RetryError",
    "RetryFailedError",
    "RetryFuture",
    "RetryJob",
    "RetryListener",
    "RetrySession",
    "SafeRetryJob",
    "SessionState",
    "SimpleRetryStrategy",
    "StrategyConfigError",
    "UnknownStrategyError",
    "__version__",
    "get_strategy_by_name",
    "strategy_from_dict",
    "strategy_to_dict",
]

from importlib.metadata import PackageNotFoundError, version

from aretry.callbacks import RetryCallback, RetryFuture, RetryListener
from aretry.exceptions import (
    JobError,
    JobException,
    RetryAbortedError,
    RetryCancelledError,
    RetryError,
    RetryFailedError,
    StrategyConfigError,
    UnknownStrategyError,
)
from aretry.job import CallableJob, RetryJob, SafeRetryJob
from aretry.session import RetrySession, SessionState
from aretry.strategy import (
    BackoffRetryStrategy,
    BaseRetryStrategy,
    SimpleRetryStrategy,
    get_strategy_by_name,
    strategy_from_dict,
    strategy_to_dict,
)

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
