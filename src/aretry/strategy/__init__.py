r"""Retry strategies deciding continuation and wait time between
attempts.

This package provides the fixed attempt count strategy, the randomized
exponential backoff strategy, and the factory that builds them from
configuration documents.
"""

from __future__ import annotations

__all__ = [
    "BackoffRetryStrategy",
    "BaseRetryStrategy",
    "SimpleRetryStrategy",
    "get_strategy_by_name",
    "strategy_from_dict",
    "strategy_from_json",
    "strategy_to_dict",
    "strategy_to_json",
]

from aretry.strategy.backoff import BackoffRetryStrategy
from aretry.strategy.base import BaseRetryStrategy
from aretry.strategy.factory import (
    get_strategy_by_name,
    strategy_from_dict,
    strategy_from_json,
    strategy_to_dict,
    strategy_to_json,
)
from aretry.strategy.simple import SimpleRetryStrategy
