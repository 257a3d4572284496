from __future__ import annotations

from unittest.mock import Mock

import httpx
import pytest

from aretry import (
    BackoffRetryStrategy,
    RetryAbortedError,
    RetryCallback,
    RetryFailedError,
    RetrySession,
)
from aretry.http_job import HttpRequestJob, HttpStatusError

TEST_URL = "https://api.example.com/data"


@pytest.fixture
def callback() -> Mock:
    return Mock(spec=RetryCallback)


def make_response(status_code: int) -> httpx.Response:
    return httpx.Response(status_code, request=httpx.Request("GET", TEST_URL))


def fast_backoff(max_attempts: int) -> BackoffRetryStrategy:
    return BackoffRetryStrategy(
        initial_interval_millis=1, max_interval_millis=2, max_attempts=max_attempts
    )


##############################################
#     Tests for HttpRequestJob.run           #
##############################################


@pytest.mark.parametrize("status_code", [200, 201, 204, 304])
def test_http_job_success(mock_client: Mock, callback: Mock, status_code: int) -> None:
    response = make_response(status_code)
    mock_client.request.return_value = response
    job = HttpRequestJob(mock_client, "get", TEST_URL, params={"page": 1})
    job.run(callback)
    mock_client.request.assert_called_once_with("GET", TEST_URL, params={"page": 1})
    callback.on_success.assert_called_once_with(response)
    assert job.last_response is response


@pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
def test_http_job_retryable_status(mock_client: Mock, callback: Mock, status_code: int) -> None:
    mock_client.request.return_value = make_response(status_code)
    HttpRequestJob(mock_client, "POST", TEST_URL).run(callback)
    error = callback.on_fail.call_args.args[0]
    assert callback.on_fail.call_args.kwargs == {"abort": False}
    assert isinstance(error.error, HttpStatusError)
    assert error.error.status_code == status_code
    assert error.root_cause is error.error


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 422])
def test_http_job_fatal_status(mock_client: Mock, callback: Mock, status_code: int) -> None:
    mock_client.request.return_value = make_response(status_code)
    HttpRequestJob(mock_client, "DELETE", TEST_URL).run(callback)
    assert callback.on_fail.call_args.kwargs == {"abort": True}
    assert str(callback.on_fail.call_args.args[0]) == (
        f"DELETE request to {TEST_URL} failed with status {status_code}"
    )


def test_http_job_custom_status_forcelist(mock_client: Mock, callback: Mock) -> None:
    mock_client.request.return_value = make_response(404)
    HttpRequestJob(mock_client, "GET", TEST_URL, status_forcelist=(404,)).run(callback)
    assert callback.on_fail.call_args.kwargs == {"abort": False}


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ConnectTimeout("connect timeout"),
        httpx.ReadTimeout("read timeout"),
        httpx.ConnectError("connection refused"),
        httpx.RemoteProtocolError("protocol error"),
    ],
)
def test_http_job_transport_errors_are_retryable(
    mock_client: Mock, callback: Mock, exc: httpx.HTTPError
) -> None:
    mock_client.request.side_effect = exc
    job = HttpRequestJob(mock_client, "GET", TEST_URL)
    job.run(callback)
    error = callback.on_fail.call_args.args[0]
    assert error.root_cause is exc
    assert callback.on_fail.call_args.kwargs == {}
    assert job.last_response is None


##############################################
#     Tests for HttpRequestJob in sessions   #
##############################################


def test_http_job_retries_until_success(mock_client: Mock) -> None:
    ok = make_response(200)
    mock_client.request.side_effect = [make_response(503), httpx.ReadTimeout("slow"), ok]
    session = RetrySession(HttpRequestJob(mock_client, "GET", TEST_URL), fast_backoff(5))
    assert session.run_sync() is ok
    assert mock_client.request.call_count == 3
    assert session.attempts == 2


def test_http_job_budget_exhausted(mock_client: Mock) -> None:
    mock_client.request.return_value = make_response(503)
    session = RetrySession(HttpRequestJob(mock_client, "GET", TEST_URL), fast_backoff(3))
    with pytest.raises(RetryFailedError, match=r"failed with status 503") as exc_info:
        session.run_sync()
    assert mock_client.request.call_count == 3
    assert isinstance(exc_info.value.root_cause, HttpStatusError)


def test_http_job_fatal_status_aborts(mock_client: Mock) -> None:
    mock_client.request.return_value = make_response(404)
    session = RetrySession(HttpRequestJob(mock_client, "GET", TEST_URL), fast_backoff(5))
    with pytest.raises(RetryAbortedError, match=r"failed with status 404"):
        session.run_sync()
    assert mock_client.request.call_count == 1


def test_http_job_async_run(mock_client: Mock) -> None:
    ok = make_response(200)
    mock_client.request.side_effect = [httpx.ConnectError("refused"), ok]
    session = RetrySession(HttpRequestJob(mock_client, "GET", TEST_URL), fast_backoff(3))
    assert session.run_async().result(timeout=5.0) is ok


def test_http_status_error() -> None:
    error = HttpStatusError("PUT", TEST_URL, make_response(502))
    assert error.method == "PUT"
    assert error.url == TEST_URL
    assert error.status_code == 502
    assert error.response.status_code == 502
