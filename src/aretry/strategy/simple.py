r"""Fixed attempt count retry strategy."""

from __future__ import annotations

__all__ = ["SimpleRetryStrategy"]

from typing import TYPE_CHECKING, Any

from aretry.config import FIELD_MAX_ATTEMPTS, NO_WAIT, UNLIMITED_ATTEMPTS
from aretry.strategy.base import BaseRetryStrategy
from aretry.utils.numbers import get_as_int
from aretry.utils.validation import validate_max_attempts

if TYPE_CHECKING:
    from collections.abc import Mapping


class SimpleRetryStrategy(BaseRetryStrategy):
    """Retry strategy allowing a fixed number of attempts with no wait.

    Args:
        max_attempts: Maximum number of attempts. A negative value
            (conventionally -1) means unlimited.

    Example:
        ```pycon
        >>> from aretry.strategy import SimpleRetryStrategy
        >>> strategy = SimpleRetryStrategy(max_attempts=2)
        >>> strategy.should_continue()
        True
        >>> strategy.on_fail()
        >>> strategy.on_fail()
        >>> strategy.should_continue()
        False
        >>> strategy.get_wait_millis()
        0
        >>> strategy.to_dict()
        {'maxAttempts': 2}

        ```
    """

    name = "simple"

    def __init__(self, max_attempts: int = UNLIMITED_ATTEMPTS) -> None:
        validate_max_attempts(max_attempts)
        self.max_attempts = max_attempts
        self.attempts = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> SimpleRetryStrategy:
        """Build a strategy from its configuration document.

        Args:
            data: The configuration document. A missing document or a
                missing ``maxAttempts`` field means unlimited attempts.

        Returns:
            The strategy.
        """
        if data is None or FIELD_MAX_ATTEMPTS not in data:
            return cls()
        return cls(max_attempts=get_as_int(data, FIELD_MAX_ATTEMPTS, 10))

    def on_fail(self) -> None:
        self.attempts += 1

    def on_success(self) -> None:
        pass

    def reset(self) -> None:
        self.attempts = 0

    def should_continue(self) -> bool:
        return self.max_attempts < 0 or self.attempts < self.max_attempts

    def get_wait_millis(self) -> int:
        return NO_WAIT

    def copy(self) -> SimpleRetryStrategy:
        return SimpleRetryStrategy(max_attempts=self.max_attempts)

    def to_dict(self) -> dict[str, Any]:
        return {FIELD_MAX_ATTEMPTS: self.max_attempts}

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(max_attempts={self.max_attempts})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SimpleRetryStrategy):
            return NotImplemented
        return self.max_attempts == other.max_attempts

    def __hash__(self) -> int:
        return hash((self.name, self.max_attempts))
