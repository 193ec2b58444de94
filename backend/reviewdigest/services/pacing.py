"""Randomized polite delays between page loads."""

import random


def polite_delay_ms(
    base_ms: int = 1200,
    jitter_ms: int = 300,
    min_ms: int = 500,
    rng: random.Random | None = None,
) -> int:
    """Pick a delay of ``base_ms`` ± ``jitter_ms``, never below ``min_ms``."""
    rng = rng or random
    jitter = rng.uniform(-jitter_ms, jitter_ms)
    return max(min_ms, round(base_ms + jitter))
