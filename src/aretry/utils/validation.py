r"""Parameter validation utilities for retry strategies.

This module provides validation functions for strategy parameters to
ensure they meet the required constraints before a strategy is built.
Validation errors are raised synchronously at construction time and are
never retried.
"""

from __future__ import annotations

__all__ = ["validate_backoff_params", "validate_max_attempts"]

import math

from aretry.exceptions import StrategyConfigError


def validate_max_attempts(max_attempts: int) -> None:
    """Validate the attempt limit of a strategy.

    Args:
        max_attempts: Maximum number of attempts. Any negative value means
            unlimited, 0 means the job is never run.

    Raises:
        StrategyConfigError: If max_attempts is not an integer.

    Example:
        ```pycon
        >>> from aretry.utils.validation import validate_max_attempts
        >>> validate_max_attempts(3)
        >>> validate_max_attempts(-1)
        >>> validate_max_attempts(1.5)  # doctest: +SKIP

        ```
    """
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
        msg = f"max_attempts must be an integer, got {max_attempts!r}"
        raise StrategyConfigError(msg)


def validate_backoff_params(
    initial_interval_millis: float,
    randomization_factor: float,
    multiplier: float,
    max_interval_millis: float,
    max_elapsed_time_millis: float,
    max_attempts: int,
) -> None:
    """Validate backoff strategy parameters.

    Args:
        initial_interval_millis: Initial retry interval. Must be > 0.
        randomization_factor: Jitter factor. Must be in ``[0, 1)``.
        multiplier: Interval growth factor. Must be >= 1.
        max_interval_millis: Interval cap. Must be >= initial_interval_millis.
        max_elapsed_time_millis: Elapsed time budget. Must be > 0.
        max_attempts: Attempt limit, negative for unlimited.

    Raises:
        StrategyConfigError: If any parameter is not finite or violates
            its constraint.

    Example:
        ```pycon
        >>> from aretry.utils.validation import validate_backoff_params
        >>> validate_backoff_params(500, 0.5, 1.5, 60000, 900000, -1)
        >>> validate_backoff_params(0, 0.5, 1.5, 60000, 900000, -1)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        StrategyConfigError: initial_interval_millis must be > 0, got 0

        ```
    """
    for name, value in (
        ("initial_interval_millis", initial_interval_millis),
        ("randomization_factor", randomization_factor),
        ("multiplier", multiplier),
        ("max_interval_millis", max_interval_millis),
        ("max_elapsed_time_millis", max_elapsed_time_millis),
    ):
        # NaN passes every comparison below
        if not math.isfinite(value):
            msg = f"{name} must be a finite number, got {value}"
            raise StrategyConfigError(msg)
    if initial_interval_millis <= 0:
        msg = f"initial_interval_millis must be > 0, got {initial_interval_millis}"
        raise StrategyConfigError(msg)
    if not 0 <= randomization_factor < 1:
        msg = f"randomization_factor must be in [0, 1), got {randomization_factor}"
        raise StrategyConfigError(msg)
    if multiplier < 1:
        msg = f"multiplier must be >= 1, got {multiplier}"
        raise StrategyConfigError(msg)
    if max_interval_millis < initial_interval_millis:
        msg = (
            f"max_interval_millis must be >= initial_interval_millis "
            f"({initial_interval_millis}), got {max_interval_millis}"
        )
        raise StrategyConfigError(msg)
    if max_elapsed_time_millis <= 0:
        msg = f"max_elapsed_time_millis must be > 0, got {max_elapsed_time_millis}"
        raise StrategyConfigError(msg)
    validate_max_attempts(max_attempts)
