r"""Randomized exponential backoff retry strategy."""

from __future__ import annotations

__all__ = ["BackoffRetryStrategy", "get_random_value_from_interval"]

import logging
import math
import random
import time
from typing import TYPE_CHECKING, Any

from aretry.config import (
    DEFAULT_INITIAL_INTERVAL_MILLIS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_ELAPSED_TIME_MILLIS,
    DEFAULT_MAX_INTERVAL_MILLIS,
    DEFAULT_MULTIPLIER,
    DEFAULT_RANDOMIZATION_FACTOR,
    FIELD_INITIAL_INTERVAL_MILLIS,
    FIELD_MAX_ATTEMPTS,
    FIELD_MAX_ELAPSED_TIME_MILLIS,
    FIELD_MAX_INTERVAL_MILLIS,
    FIELD_MULTIPLIER,
    FIELD_RANDOMIZATION_FACTOR,
    STOP,
)
from aretry.strategy.base import BaseRetryStrategy
from aretry.utils.numbers import get_as_float, get_as_int
from aretry.utils.validation import validate_backoff_params

if TYPE_CHECKING:
    from collections.abc import Mapping

logger: logging.Logger = logging.getLogger(__name__)


def get_random_value_from_interval(
    randomization_factor: float, random_value: float, current_interval_millis: float
) -> float:
    """Pick a whole number of milliseconds around the current interval.

    The value is drawn from ``[current - delta, current + delta]`` with
    ``delta = randomization_factor * current``, using
    ``min + random_value * (max - min + 1)``. The ``+ 1`` gives the upper
    bound the same chance as the others once truncated, e.g. 1, 2 and 3
    each get a third of ``[1, 3]``. The result is clamped into the
    interval. An interval holding no whole number, e.g. ``[1687.5, 1687.5]``
    with a zero factor, gives the current interval itself.

    Args:
        randomization_factor: The jitter factor in ``[0, 1)``.
        random_value: A uniform random value in ``[0, 1)``.
        current_interval_millis: The current backoff interval.

    Returns:
        The randomized interval in milliseconds.

    Example:
        ```pycon
        >>> from aretry.strategy.backoff import get_random_value_from_interval
        >>> get_random_value_from_interval(0.5, 0.0, 1000)
        500
        >>> get_random_value_from_interval(0.5, 0.5, 1000)
        1000
        >>> get_random_value_from_interval(0.5, 0.9999, 1000)
        1500
        >>> get_random_value_from_interval(0.0, 0.5, 1687.5)
        1687.5

        ```
    """
    delta = randomization_factor * current_interval_millis
    min_interval = current_interval_millis - delta
    max_interval = current_interval_millis + delta
    lower, upper = math.ceil(min_interval), math.floor(max_interval)
    if lower > upper:
        return current_interval_millis
    value = int(min_interval + random_value * (max_interval - min_interval + 1))
    return max(min(value, upper), lower)


class BackoffRetryStrategy(BaseRetryStrategy):
    r"""Exponential backoff strategy with randomized intervals.

    The wait before the next attempt is the current interval randomized
    by ``+/- randomization_factor``. Every failure multiplies the current
    interval by ``multiplier`` up to ``max_interval_millis``. Once more
    than ``max_elapsed_time_millis`` elapsed since the last ``reset()``,
    or once ``max_attempts`` failures were recorded (if non-negative), the
    strategy stops.

    With the default values the sequence looks like this:

    ```
    attempt#  interval (ms)  randomized interval (ms)
    1          500.0         [250.0, 750.0]
    2          750.0         [375.0, 1125.0]
    3         1125.0         [562.5, 1687.5]
    4         1687.5         [843.75, 2531.25]
    5         2531.25        [1265.625, 3796.875]
    ...
    ```

    Args:
        initial_interval_millis: Initial interval. Must be > 0.
        randomization_factor: Jitter factor, in ``[0, 1)``.
        multiplier: Growth factor applied on each failure. Must be >= 1.
        max_interval_millis: Interval cap. Must be >= initial_interval_millis.
        max_elapsed_time_millis: Time budget since the last reset. Must be > 0.
        max_attempts: Attempt limit, -1 for unlimited.

    Raises:
        StrategyConfigError: If any parameter is invalid.

    Example:
        ```pycon
        >>> from aretry.strategy import BackoffRetryStrategy
        >>> strategy = BackoffRetryStrategy(
        ...     initial_interval_millis=100, multiplier=2.0, max_interval_millis=300
        ... )
        >>> strategy.current_interval_millis
        100.0
        >>> strategy.on_fail()
        >>> strategy.current_interval_millis
        200.0
        >>> strategy.on_fail()
        >>> strategy.current_interval_millis
        300.0
        >>> strategy.to_dict()
        {'maxIntMillis': 300, 'mult': 2.0, 'initialMillis': 100}

        ```
    """

    name = "backoff"

    def __init__(
        self,
        initial_interval_millis: int = DEFAULT_INITIAL_INTERVAL_MILLIS,
        randomization_factor: float = DEFAULT_RANDOMIZATION_FACTOR,
        multiplier: float = DEFAULT_MULTIPLIER,
        max_interval_millis: int = DEFAULT_MAX_INTERVAL_MILLIS,
        max_elapsed_time_millis: int = DEFAULT_MAX_ELAPSED_TIME_MILLIS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        validate_backoff_params(
            initial_interval_millis=initial_interval_millis,
            randomization_factor=randomization_factor,
            multiplier=multiplier,
            max_interval_millis=max_interval_millis,
            max_elapsed_time_millis=max_elapsed_time_millis,
            max_attempts=max_attempts,
        )
        self._initial_interval_millis = initial_interval_millis
        self._randomization_factor = randomization_factor
        self._multiplier = multiplier
        self._max_interval_millis = max_interval_millis
        self._max_elapsed_time_millis = max_elapsed_time_millis
        self._max_attempts = max_attempts

        self._current_interval_millis = float(initial_interval_millis)
        self._current_attempts = 0
        self._start_time = time.monotonic()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> BackoffRetryStrategy:
        """Build a strategy from its configuration document.

        Missing fields take their default values.

        Args:
            data: The configuration document, or None for all defaults.

        Returns:
            The strategy.

        Raises:
            StrategyConfigError: If a field cannot be parsed or the
                resulting configuration is invalid.

        Example:
            ```pycon
            >>> from aretry.strategy import BackoffRetryStrategy
            >>> strategy = BackoffRetryStrategy.from_dict({"initialMillis": "250", "mult": 2})
            >>> strategy.initial_interval_millis, strategy.multiplier
            (250, 2.0)

            ```
        """
        kwargs: dict[str, Any] = {}
        data = data or {}
        if FIELD_MAX_ATTEMPTS in data:
            kwargs["max_attempts"] = get_as_int(data, FIELD_MAX_ATTEMPTS, 10)
        if FIELD_MAX_ELAPSED_TIME_MILLIS in data:
            kwargs["max_elapsed_time_millis"] = get_as_int(data, FIELD_MAX_ELAPSED_TIME_MILLIS, 10)
        if FIELD_MAX_INTERVAL_MILLIS in data:
            kwargs["max_interval_millis"] = get_as_int(data, FIELD_MAX_INTERVAL_MILLIS, 10)
        if FIELD_INITIAL_INTERVAL_MILLIS in data:
            kwargs["initial_interval_millis"] = get_as_int(data, FIELD_INITIAL_INTERVAL_MILLIS, 10)
        if FIELD_RANDOMIZATION_FACTOR in data:
            kwargs["randomization_factor"] = get_as_float(data, FIELD_RANDOMIZATION_FACTOR)
        if FIELD_MULTIPLIER in data:
            kwargs["multiplier"] = get_as_float(data, FIELD_MULTIPLIER)
        return cls(**kwargs)

    @property
    def initial_interval_millis(self) -> int:
        return self._initial_interval_millis

    @property
    def randomization_factor(self) -> float:
        return self._randomization_factor

    @property
    def multiplier(self) -> float:
        return self._multiplier

    @property
    def max_interval_millis(self) -> int:
        return self._max_interval_millis

    @property
    def max_elapsed_time_millis(self) -> int:
        return self._max_elapsed_time_millis

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def current_interval_millis(self) -> float:
        """The interval the next wait is randomized around."""
        return self._current_interval_millis

    @property
    def current_attempts(self) -> int:
        """Number of failures recorded since the last reset."""
        return self._current_attempts

    @property
    def elapsed_time_millis(self) -> float:
        """Milliseconds elapsed since the strategy was created or last
        reset."""
        return (time.monotonic() - self._start_time) * 1000.0

    def next_backoff_millis(self, increment: bool = True) -> float:
        """Compute the randomized wait before the next attempt.

        Args:
            increment: If True, advance the current interval afterwards.

        Returns:
            The wait in milliseconds, or ``STOP`` if the elapsed time
            budget is spent.
        """
        if self.elapsed_time_millis > self._max_elapsed_time_millis:
            return STOP
        randomized_interval = get_random_value_from_interval(
            self._randomization_factor, random.random(), self._current_interval_millis  # noqa: S311
        )
        if increment:
            self._increment_current_interval()
        return randomized_interval

    def _increment_current_interval(self) -> None:
        # Snap to the cap instead of multiplying past it
        if self._current_interval_millis >= self._max_interval_millis / self._multiplier:
            self._current_interval_millis = float(self._max_interval_millis)
        else:
            self._current_interval_millis *= self._multiplier

    def on_fail(self) -> None:
        self._current_attempts += 1
        self._increment_current_interval()
        logger.debug(
            f"Backoff recorded failure {self._current_attempts}, "
            f"interval now {self._current_interval_millis:.1f}ms"
        )

    def on_success(self) -> None:
        pass

    def reset(self) -> None:
        self._current_interval_millis = float(self._initial_interval_millis)
        self._current_attempts = 0
        self._start_time = time.monotonic()

    def should_continue(self) -> bool:
        if self.elapsed_time_millis > self._max_elapsed_time_millis:
            return False
        return not (0 <= self._max_attempts <= self._current_attempts)

    def get_wait_millis(self) -> float:
        return self.next_backoff_millis(increment=False)

    def copy(self) -> BackoffRetryStrategy:
        return BackoffRetryStrategy(
            initial_interval_millis=self._initial_interval_millis,
            randomization_factor=self._randomization_factor,
            multiplier=self._multiplier,
            max_interval_millis=self._max_interval_millis,
            max_elapsed_time_millis=self._max_elapsed_time_millis,
            max_attempts=self._max_attempts,
        )

    def to_dict(self) -> dict[str, Any]:
        # Only fields that differ from the defaults are written
        data: dict[str, Any] = {}
        if self._max_attempts != DEFAULT_MAX_ATTEMPTS:
            data[FIELD_MAX_ATTEMPTS] = self._max_attempts
        if self._max_elapsed_time_millis != DEFAULT_MAX_ELAPSED_TIME_MILLIS:
            data[FIELD_MAX_ELAPSED_TIME_MILLIS] = self._max_elapsed_time_millis
        if self._max_interval_millis != DEFAULT_MAX_INTERVAL_MILLIS:
            data[FIELD_MAX_INTERVAL_MILLIS] = self._max_interval_millis
        if self._multiplier != DEFAULT_MULTIPLIER:
            data[FIELD_MULTIPLIER] = self._multiplier
        if self._randomization_factor != DEFAULT_RANDOMIZATION_FACTOR:
            data[FIELD_RANDOMIZATION_FACTOR] = self._randomization_factor
        if self._initial_interval_millis != DEFAULT_INITIAL_INTERVAL_MILLIS:
            data[FIELD_INITIAL_INTERVAL_MILLIS] = self._initial_interval_millis
        return data

    def _config(self) -> tuple[Any, ...]:
        return (
            self._initial_interval_millis,
            self._randomization_factor,
            self._multiplier,
            self._max_interval_millis,
            self._max_elapsed_time_millis,
            self._max_attempts,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}("
            f"initial_interval_millis={self._initial_interval_millis}, "
            f"randomization_factor={self._randomization_factor}, "
            f"multiplier={self._multiplier}, "
            f"max_interval_millis={self._max_interval_millis}, "
            f"max_elapsed_time_millis={self._max_elapsed_time_millis}, "
            f"max_attempts={self._max_attempts})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BackoffRetryStrategy):
            return NotImplemented
        return self._config() == other._config()

    def __hash__(self) -> int:
        return hash((self.name, *self._config()))
