r"""Retryable HTTP request job built on httpx.

``HttpRequestJob`` issues one request per attempt and classifies the
outcome the way HTTP clients usually do: success below 400, retryable
failure for transient statuses and transport errors, fatal failure for
any other error status.

Example:
    ```pycon
    >>> import httpx
    >>> from aretry import BackoffRetryStrategy, RetrySession
    >>> from aretry.http_job import HttpRequestJob
    >>> with httpx.Client() as client:  # doctest: +SKIP
    ...     job = HttpRequestJob(client, "GET", "https://api.example.com/data")
    ...     session = RetrySession(job, BackoffRetryStrategy(max_attempts=5))
    ...     response = session.run_sync()
    ...

    ```
"""

from __future__ import annotations

__all__ = ["HttpRequestJob", "HttpStatusError"]

import logging
from typing import TYPE_CHECKING, Any

import httpx

from aretry.config import RETRY_STATUS_CODES
from aretry.exceptions import JobError
from aretry.job import RetryJob

if TYPE_CHECKING:
    from aretry.callbacks import RetryCallback
    from aretry.session import RetrySession

logger: logging.Logger = logging.getLogger(__name__)


class HttpStatusError(Exception):
    """Error payload reported for an HTTP error response.

    Args:
        method: The HTTP method.
        url: The requested URL.
        response: The error response.

    Attributes:
        status_code: The HTTP status code of the response.
        response: The error response.
    """

    def __init__(self, method: str, url: str, response: httpx.Response) -> None:
        super().__init__(f"{method} request to {url} failed with status {response.status_code}")
        self.method = method
        self.url = url
        self.response = response
        self.status_code = response.status_code


class HttpRequestJob(RetryJob):
    """Job issuing one HTTP request per attempt.

    Args:
        client: The httpx client used to send the requests.
        method: The HTTP method (e.g. "GET", "POST").
        url: The URL to request.
        status_forcelist: Status codes reported as retryable failures.
        **kwargs: Extra keyword arguments passed to ``client.request``.

    Attributes:
        last_response: The response of the latest attempt, if any.
    """

    def __init__(
        self,
        client: httpx.Client,
        method: str,
        url: str,
        status_forcelist: tuple[int, ...] = RETRY_STATUS_CODES,
        **kwargs: Any,
    ) -> None:
        self.client = client
        self.method = method.upper()
        self.url = url
        self.status_forcelist = status_forcelist
        self.kwargs = kwargs
        self.last_response: httpx.Response | None = None

    def run(self, callback: RetryCallback) -> None:
        try:
            response = self.client.request(self.method, self.url, **self.kwargs)
        except httpx.TimeoutException as exc:
            logger.debug(f"{self.method} request to {self.url} timed out: {exc}")
            callback.on_fail(JobError.from_exception(exc))
            return
        except httpx.RequestError as exc:
            logger.debug(
                f"{self.method} request to {self.url} encountered {type(exc).__name__}: {exc}"
            )
            callback.on_fail(JobError.from_exception(exc))
            return

        self.last_response = response
        if response.status_code < 400:
            callback.on_success(response)
            return

        error = HttpStatusError(self.method, self.url, response)
        retryable = response.status_code in self.status_forcelist
        logger.debug(
            f"{self.method} request to {self.url} failed with "
            f"{'retryable' if retryable else 'non-retryable'} status {response.status_code}"
        )
        callback.on_fail(JobError(error=error, cause=error), abort=not retryable)

    def on_retry(self, session: RetrySession) -> None:
        logger.debug(
            f"Retrying {self.method} request to {self.url} "
            f"({session.attempts} failed attempts so far)"
        )
