"""
Retry delay calculation for status polling.

Explicit retry intervals are used first; beyond them the last interval grows
exponentially, capped at MAX_RETRY_DELAY_MS. Uniform jitter is added to every
delay to avoid synchronized retry storms.
"""

import random

from ..models.session import PollingConfig

MAX_RETRY_DELAY_MS = 120000  # 2 minutes


def base_delay(attempt: int, config: PollingConfig) -> float:
    """
    Calculate the un-jittered delay for a retry attempt.

    Args:
        attempt: Zero-based retry attempt number
        config: Polling configuration snapshot

    Returns:
        Base delay in milliseconds

    Raises:
        ValueError: If attempt is negative
    """
    if attempt < 0:
        raise ValueError(f"attempt must be non-negative, got {attempt}")

    intervals = config.retry_intervals_ms
    if attempt < len(intervals):
        return float(intervals[attempt])

    exponent = attempt - len(intervals) + 1
    try:
        grown = intervals[-1] * config.backoff_multiplier**exponent
    except OverflowError:
        grown = MAX_RETRY_DELAY_MS
    return float(min(grown, MAX_RETRY_DELAY_MS))


def compute_delay(
    attempt: int, config: PollingConfig, rng: random.Random | None = None
) -> int:
    """
    Calculate the delay before the next retry, including jitter.

    Args:
        attempt: Zero-based retry attempt number
        config: Polling configuration snapshot
        rng: Optional random source (defaults to the module-level generator)

    Returns:
        Delay in milliseconds, within [base, base + jitter_max_ms]

    Example:
        >>> cfg = PollingConfig(retry_intervals_ms=(2000, 5000), jitter_max_ms=0)
        >>> compute_delay(0, cfg)
        2000
        >>> compute_delay(3, cfg.with_overrides(backoff_multiplier=2.0))
        20000
    """
    base = base_delay(attempt, config)
    jitter = (rng or random).uniform(0, config.jitter_max_ms)
    return round(base + jitter)
