r"""Default values and document field names for retry strategies.

This module gathers the constants shared by the strategies, the
strategy factory, and the retry session.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_INITIAL_INTERVAL_MILLIS",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_ELAPSED_TIME_MILLIS",
    "DEFAULT_MAX_INTERVAL_MILLIS",
    "DEFAULT_MULTIPLIER",
    "DEFAULT_RANDOMIZATION_FACTOR",
    "FIELD_INITIAL_INTERVAL_MILLIS",
    "FIELD_MAX_ATTEMPTS",
    "FIELD_MAX_ELAPSED_TIME_MILLIS",
    "FIELD_MAX_INTERVAL_MILLIS",
    "FIELD_MULTIPLIER",
    "FIELD_RANDOMIZATION_FACTOR",
    "FIELD_SESSION_STRATEGY",
    "FIELD_SESSION_STRATEGY_CONF",
    "FIELD_STRATEGY_DATA",
    "FIELD_STRATEGY_NAME",
    "NO_WAIT",
    "RETRY_STATUS_CODES",
    "STOP",
    "UNLIMITED_ATTEMPTS",
]

# Sentinel wait values (milliseconds)
# STOP: the strategy refuses to wait any longer, the run must end
# NO_WAIT: the next attempt may start immediately
STOP = -1
NO_WAIT = 0

# Any negative max_attempts means "no attempt limit"
UNLIMITED_ATTEMPTS = -1

# Backoff defaults
# With these values the waits are roughly 0.5s, 0.75s, 1.1s, 1.7s, ...
# (+/- 50% jitter), capped at 60s, for at most 15 minutes in total.
DEFAULT_INITIAL_INTERVAL_MILLIS = 500
DEFAULT_RANDOMIZATION_FACTOR = 0.5
DEFAULT_MULTIPLIER = 1.5
DEFAULT_MAX_INTERVAL_MILLIS = 60_000
DEFAULT_MAX_ELAPSED_TIME_MILLIS = 900_000
DEFAULT_MAX_ATTEMPTS = UNLIMITED_ATTEMPTS

# Strategy configuration document fields
FIELD_MAX_ATTEMPTS = "maxAttempts"
FIELD_INITIAL_INTERVAL_MILLIS = "initialMillis"
FIELD_RANDOMIZATION_FACTOR = "randFact"
FIELD_MULTIPLIER = "mult"
FIELD_MAX_INTERVAL_MILLIS = "maxIntMillis"
FIELD_MAX_ELAPSED_TIME_MILLIS = "maxElapsedMillis"

# Factory document: {"name": ..., "data": {...}}
FIELD_STRATEGY_NAME = "name"
FIELD_STRATEGY_DATA = "data"

# Session document: {"strategy": ..., "strategyConf": {...}}
FIELD_SESSION_STRATEGY = "strategy"
FIELD_SESSION_STRATEGY_CONF = "strategyConf"

# HTTP status codes that HttpRequestJob reports as retryable failures
# 429: Too Many Requests - Rate limiting
# 500: Internal Server Error - Temporary server issue
# 502: Bad Gateway - Upstream server error
# 503: Service Unavailable - Server overloaded or down
# 504: Gateway Timeout - Upstream server timeout
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)
