from __future__ import annotations

import pytest

from aretry import (
    JobError,
    JobException,
    RetryAbortedError,
    RetryCancelledError,
    RetryError,
    RetryFailedError,
    StrategyConfigError,
    UnknownStrategyError,
)

##############################################
#     Tests for JobError                     #
##############################################


def test_job_error_value_only() -> None:
    error = JobError(error="quota exceeded")
    assert error.error == "quota exceeded"
    assert error.cause is None
    assert error.root_cause is None
    assert str(error) == "quota exceeded"


def test_job_error_from_exception() -> None:
    exc = ConnectionError("reset by peer")
    error = JobError.from_exception(exc)
    assert error.error is exc
    assert error.root_cause is exc
    assert str(error) == "reset by peer"


def test_job_error_cause_only() -> None:
    assert str(JobError(cause=TimeoutError("slow"))) == "TimeoutError: slow"


def test_job_error_empty() -> None:
    assert str(JobError()) == "unknown job error"


def test_job_error_is_frozen() -> None:
    error = JobError(error="x")
    with pytest.raises(AttributeError):
        error.error = "y"


def test_job_exception_payload() -> None:
    exc = JobException("upload rejected", error={"code": 413})
    assert str(exc) == "upload rejected"
    assert exc.error == {"code": 413}


def test_job_exception_default_payload() -> None:
    assert JobException().error is None


##############################################
#     Tests for RetryError hierarchy         #
##############################################


@pytest.mark.parametrize("cls", [RetryFailedError, RetryAbortedError, RetryCancelledError])
def test_retry_error_subclasses(cls: type[RetryError]) -> None:
    exc = cls("message")
    assert isinstance(exc, RetryError)
    assert exc.error is None
    assert exc.session is None
    assert exc.root_cause is None


def test_retry_error_chains_root_cause() -> None:
    cause = ConnectionError("refused")
    exc = RetryFailedError("retry failed", JobError.from_exception(cause))
    assert exc.root_cause is cause
    assert exc.__cause__ is cause


def test_retry_error_without_cause_is_not_chained() -> None:
    exc = RetryAbortedError("retry aborted", JobError(error="bad input"))
    assert exc.root_cause is None
    assert exc.__cause__ is None


def test_retry_error_can_be_raised() -> None:
    with pytest.raises(RetryError, match=r"retry failed after 3 failed attempts"):
        raise RetryFailedError("retry failed after 3 failed attempts")


##############################################
#     Tests for configuration errors         #
##############################################


def test_strategy_config_error_is_value_error() -> None:
    assert issubclass(StrategyConfigError, ValueError)


def test_unknown_strategy_error() -> None:
    exc = UnknownStrategyError("linear")
    assert isinstance(exc, ValueError)
    assert exc.name == "linear"
    assert str(exc) == "Unknown strategy type: 'linear'"
