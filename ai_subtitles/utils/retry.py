"""Backoff delay calculations shared by the retry policy."""
from __future__ import annotations

import random
from typing import Optional, Sequence

# Never retry faster than this, whatever the schedule or jitter says.
MIN_RETRY_DELAY = 0.1


def calculate_delay(
    attempt: int,
    delays: Sequence[float],
    max_delay: float,
    multiplier: float = 2.0,
    default_base_delay: float = 1.0,
) -> float:
    """Calculate the un-jittered delay before retry number ``attempt``.

    Attempts inside the configured schedule use the scheduled value. Past the
    end of the schedule the last entry keeps growing exponentially until it
    reaches ``max_delay``.

    Args:
        attempt: Retry number (0-based, 0 is the first retry)
        delays: Configured per-attempt delays in seconds
        max_delay: Upper bound for extrapolated delays in seconds
        multiplier: Exponential growth factor past the schedule
        default_base_delay: Base used when the schedule is empty

    Returns:
        Delay in seconds before jitter is applied
    """
    if attempt < 0:
        raise ValueError("attempt must be non-negative")

    if attempt < len(delays):
        return float(delays[attempt])

    if delays:
        last_index = len(delays) - 1
        base = float(delays[last_index])
    else:
        last_index = -1
        base = default_base_delay

    backoff = base * (multiplier ** (attempt - last_index))
    if max_delay > 0:
        backoff = min(backoff, max_delay)
    return backoff


def apply_jitter(
    delay: float,
    jitter_percent: float,
    rng: Optional[random.Random] = None,
    floor: float = MIN_RETRY_DELAY,
) -> float:
    """Perturb ``delay`` by a uniform ±``jitter_percent`` and clamp to ``floor``.

    Args:
        delay: Base delay in seconds
        jitter_percent: Maximum relative perturbation, in percent
        rng: Random source (module-level ``random`` when omitted)
        floor: Minimum returned delay in seconds

    Returns:
        Jittered delay in seconds, rounded to milliseconds
    """
    source = rng or random
    jitter_amount = delay * (jitter_percent / 100.0)
    jittered = delay + source.uniform(-1.0, 1.0) * jitter_amount
    return max(floor, round(jittered, 3))
