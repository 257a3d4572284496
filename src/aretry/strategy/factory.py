r"""Strategy registry and (de)serialization of strategy documents.

A strategy document is a plain mapping ``{"name": ..., "data": {...}}``
where ``name`` selects the strategy variant and ``data`` holds its
configuration fields.
"""

from __future__ import annotations

__all__ = [
    "STRATEGIES",
    "get_strategy_by_name",
    "strategy_from_dict",
    "strategy_from_json",
    "strategy_to_dict",
    "strategy_to_json",
]

import json
from typing import TYPE_CHECKING, Any

from aretry.config import FIELD_STRATEGY_DATA, FIELD_STRATEGY_NAME
from aretry.exceptions import StrategyConfigError, UnknownStrategyError
from aretry.strategy.backoff import BackoffRetryStrategy
from aretry.strategy.simple import SimpleRetryStrategy

if TYPE_CHECKING:
    from collections.abc import Mapping

    from aretry.strategy.base import BaseRetryStrategy

# The closed set of strategy variants, keyed by document name
STRATEGIES: Mapping[str, type[BackoffRetryStrategy] | type[SimpleRetryStrategy]] = {
    BackoffRetryStrategy.name: BackoffRetryStrategy,
    SimpleRetryStrategy.name: SimpleRetryStrategy,
}


def get_strategy_by_name(
    name: str, config: Mapping[str, Any] | None = None
) -> BaseRetryStrategy:
    """Build a strategy from its name and configuration document.

    Args:
        name: The strategy name, ``"simple"`` or ``"backoff"``.
        config: Optional configuration fields. Missing fields take their
            defaults.

    Returns:
        The strategy.

    Raises:
        UnknownStrategyError: If the name is not registered.
        StrategyConfigError: If the configuration is invalid.

    Example:
        ```pycon
        >>> from aretry.strategy import get_strategy_by_name
        >>> get_strategy_by_name("simple", {"maxAttempts": 3})
        SimpleRetryStrategy(max_attempts=3)
        >>> get_strategy_by_name("linear")
        Traceback (most recent call last):
            ...
        aretry.exceptions.UnknownStrategyError: Unknown strategy type: 'linear'

        ```
    """
    if not isinstance(name, str) or name not in STRATEGIES:
        raise UnknownStrategyError(name)
    return STRATEGIES[name].from_dict(config)


def strategy_from_dict(data: Mapping[str, Any]) -> BaseRetryStrategy | None:
    """Build a strategy from a factory document.

    Args:
        data: The document, ``{"name": ..., "data": {...}}``.

    Returns:
        The strategy, or None if the document has no ``name`` field.

    Raises:
        UnknownStrategyError: If the name is not registered.
        StrategyConfigError: If the configuration is invalid.

    Example:
        ```pycon
        >>> from aretry.strategy import strategy_from_dict
        >>> strategy_from_dict({"name": "backoff", "data": {"maxAttempts": "5"}}).max_attempts
        5
        >>> strategy_from_dict({}) is None
        True

        ```
    """
    if FIELD_STRATEGY_NAME not in data:
        return None
    config = data.get(FIELD_STRATEGY_DATA)
    if config is not None and not isinstance(config, dict):
        msg = f"field {FIELD_STRATEGY_DATA!r} must be a mapping, got {type(config).__name__}"
        raise StrategyConfigError(msg)
    return get_strategy_by_name(data[FIELD_STRATEGY_NAME], config)


def strategy_to_dict(strategy: BaseRetryStrategy) -> dict[str, Any]:
    """Serialize a strategy to a factory document.

    Args:
        strategy: The strategy to serialize.

    Returns:
        The document, ``{"name": ..., "data": {...}}``.

    Example:
        ```pycon
        >>> from aretry.strategy import SimpleRetryStrategy, strategy_to_dict
        >>> strategy_to_dict(SimpleRetryStrategy(max_attempts=4))
        {'name': 'simple', 'data': {'maxAttempts': 4}}

        ```
    """
    return {FIELD_STRATEGY_NAME: strategy.name, FIELD_STRATEGY_DATA: strategy.to_dict()}


def strategy_to_json(strategy: BaseRetryStrategy) -> str:
    """Serialize a strategy to a JSON factory document."""
    return json.dumps(strategy_to_dict(strategy))


def strategy_from_json(text: str) -> BaseRetryStrategy | None:
    """Build a strategy from a JSON factory document.

    Raises:
        StrategyConfigError: If the text is not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"invalid strategy document: {exc}"
        raise StrategyConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"strategy document must be a JSON object, got {type(data).__name__}"
        raise StrategyConfigError(msg)
    return strategy_from_dict(data)
