from __future__ import annotations

import random
from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import httpx
import pytest

from tests.helpers import RecordingListener

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture
def mock_monotonic() -> Generator[Mock, None, None]:
    """Patch the clock of the backoff strategy.

    The clock starts at 1000.0 seconds. Tests move it forward by setting
    ``mock_monotonic.return_value``.
    """
    with patch("aretry.strategy.backoff.time.monotonic", return_value=1000.0) as mock:
        yield mock


@pytest.fixture
def seeded_random() -> Generator[None, None, None]:
    """Seed the module level random generator used for jitter."""
    state = random.getstate()
    random.seed(42)
    yield
    random.setstate(state)


@pytest.fixture
def mock_client() -> httpx.Client:
    """Create a mock httpx.Client for testing."""
    return Mock(spec=httpx.Client)


@pytest.fixture
def listener() -> RecordingListener:
    """Create a listener recording the terminal outcome of a run."""
    return RecordingListener()
