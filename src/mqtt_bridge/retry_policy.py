"""Reconnect backoff for the broker connection."""

from __future__ import annotations

import random


class ReconnectPolicy:
    """Exponential backoff with jitter, reset after a stable connection.

    Delay for attempt ``n`` (0-indexed) is ``min_delay * 2**n`` capped at
    ``max_delay``, plus a random jitter of up to ``jitter_factor`` of that.
    """

    def __init__(
        self,
        min_delay_seconds: float = 1.0,
        max_delay_seconds: float = 60.0,
        stable_after_seconds: float = 30.0,
        jitter_factor: float = 0.1,
    ):
        """Initialize reconnect policy.

        Args:
            min_delay_seconds: Delay before the first retry
            max_delay_seconds: Upper bound for the delay before jitter
            stable_after_seconds: Connection lifetime after which the backoff starts over
            jitter_factor: Jitter as fraction of delay (0.1 = 10%)
        """
        self.min_delay_seconds = min_delay_seconds
        self.max_delay_seconds = max(max_delay_seconds, min_delay_seconds)
        self.stable_after_seconds = stable_after_seconds
        self.jitter_factor = jitter_factor

    def get_delay(self, attempt: int) -> float:
        # Cap the exponent, 2**attempt overflows floats for long outages
        delay = self.min_delay_seconds * (2 ** min(attempt, 32))
        delay = min(delay, self.max_delay_seconds)
        jitter = random.uniform(0, delay * self.jitter_factor)
        return delay + jitter

    def should_reset(self, connected_for_seconds: float) -> bool:
        """True when a connection lasted long enough to reset the backoff."""
        return connected_for_seconds >= self.stable_after_seconds

    def __repr__(self) -> str:
        return (
            f"ReconnectPolicy(min_delay={self.min_delay_seconds}s, "
            f"max_delay={self.max_delay_seconds}s, "
            f"stable_after={self.stable_after_seconds}s, "
            f"jitter_factor={self.jitter_factor})"
        )
