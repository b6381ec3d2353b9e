"""Reconnect delay schedule for the socket channel."""

from __future__ import annotations

import random


class Backoff:
    """Exponential backoff with jitter, capped at *maximum*.

    Successive delays never decrease until :meth:`reset` is called: each
    jittered value is clamped to at least the previous delay. There is no
    attempt limit.
    """

    def __init__(
        self,
        initial: float,
        maximum: float,
        *,
        factor: float = 2.0,
        jitter: float = 0.25,
        rng: random.Random | None = None,
    ) -> None:
        if initial <= 0 or maximum < initial:
            raise ValueError("expected 0 < initial <= maximum")
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self.jitter = jitter
        self._rng = rng or random.Random()
        self.attempts = 0
        self._last = 0.0

    def next_delay(self) -> float:
        # Exponent bounded so indefinite retrying cannot overflow the float.
        base = min(self.maximum, self.initial * self.factor ** min(self.attempts, 64))
        delay = base + base * self.jitter * self._rng.random()
        delay = min(self.maximum, max(self._last, delay))
        self.attempts += 1
        self._last = delay
        return delay

    def reset(self) -> None:
        self.attempts = 0
        self._last = 0.0
