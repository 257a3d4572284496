r"""Abstract base class for retry strategies."""

from __future__ import annotations

__all__ = ["BaseRetryStrategy"]

from abc import ABC, abstractmethod
from typing import Any


class BaseRetryStrategy(ABC):
    """Abstract base class for retry strategies.

    A retry strategy is a pure decision object. The session notifies it
    of each attempt outcome and asks it whether another attempt should be
    made and how long to wait before making it. A strategy instance holds
    runtime counters, so it must not be shared between sessions: use
    ``copy()`` to get a fresh instance with the same configuration.
    """

    name: str = ""

    @abstractmethod
    def on_fail(self) -> None:
        """Record a failed attempt."""

    @abstractmethod
    def on_success(self) -> None:
        """Record a successful attempt."""

    @abstractmethod
    def reset(self) -> None:
        """Reset the runtime counters to their initial values."""

    @abstractmethod
    def should_continue(self) -> bool:
        """Indicate whether another attempt may be made.

        Returns:
            True if the retry budget is not exhausted.
        """

    @abstractmethod
    def get_wait_millis(self) -> float:
        """Return the wait before the next attempt without changing
        state.

        Returns:
            The wait in milliseconds, ``NO_WAIT`` (0) to run at once, or
            ``STOP`` (-1) if no further attempt should be made.
        """

    @abstractmethod
    def copy(self) -> BaseRetryStrategy:
        """Return a new strategy with the same configuration and reset
        runtime counters."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Serialize the strategy configuration to a plain document.

        Returns:
            The configuration fields (runtime counters are not included).
        """
