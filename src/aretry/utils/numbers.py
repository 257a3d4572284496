r"""Numeric field coercion for strategy configuration documents.

Strategy documents may encode numbers either natively or as strings
(for example when they travel through systems that stringify every
value). These helpers accept both encodings.
"""

from __future__ import annotations

__all__ = ["get_as_float", "get_as_int"]

from typing import TYPE_CHECKING, Any

from aretry.exceptions import StrategyConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping


def _missing_or_invalid(key: str, value: Any) -> StrategyConfigError:
    return StrategyConfigError(f"field {key!r} is not a valid number: {value!r}")


def get_as_int(data: Mapping[str, Any], key: str, radix: int = 10) -> int:
    """Read an integer field from a configuration document.

    Strings are parsed with ``int(value, radix)``. Native numbers are
    truncated towards zero.

    Args:
        data: The configuration document.
        key: The field name.
        radix: The base used to parse string values.

    Returns:
        The integer value.

    Raises:
        StrategyConfigError: If the field is missing or cannot be parsed.

    Example:
        ```pycon
        >>> from aretry.utils.numbers import get_as_int
        >>> get_as_int({"maxAttempts": 5}, "maxAttempts")
        5
        >>> get_as_int({"maxAttempts": "-1"}, "maxAttempts")
        -1
        >>> get_as_int({"initialMillis": "ff"}, "initialMillis", radix=16)
        255
        >>> get_as_int({"initialMillis": 750.9}, "initialMillis")
        750

        ```
    """
    if key not in data:
        raise _missing_or_invalid(key, None)
    value = data[key]
    if isinstance(value, str):
        try:
            return int(value.strip(), radix)
        except ValueError as exc:
            raise _missing_or_invalid(key, value) from exc
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _missing_or_invalid(key, value)
    try:
        return int(value)
    except (OverflowError, ValueError) as exc:
        raise _missing_or_invalid(key, value) from exc


def get_as_float(data: Mapping[str, Any], key: str) -> float:
    """Read a floating-point field from a configuration document.

    Args:
        data: The configuration document.
        key: The field name.

    Returns:
        The float value.

    Raises:
        StrategyConfigError: If the field is missing or cannot be parsed.

    Example:
        ```pycon
        >>> from aretry.utils.numbers import get_as_float
        >>> get_as_float({"mult": 2}, "mult")
        2.0
        >>> get_as_float({"randFact": "0.25"}, "randFact")
        0.25

        ```
    """
    if key not in data:
        raise _missing_or_invalid(key, None)
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise _missing_or_invalid(key, value)
    try:
        return float(value)
    except ValueError as exc:
        raise _missing_or_invalid(key, value) from exc
