r"""Utility functions for strategy configuration and logging.

This package provides helpers for coercing numeric fields of strategy
documents, validating strategy parameters, and emitting structured log
records.
"""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "get_as_float",
    "get_as_int",
    "log_structured",
    "validate_backoff_params",
    "validate_max_attempts",
]

from aretry.utils.numbers import get_as_float, get_as_int
from aretry.utils.structured_logging import StructuredFormatter, log_structured
from aretry.utils.validation import validate_backoff_params, validate_max_attempts
