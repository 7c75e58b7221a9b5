"""
Network rate sampler: turns cumulative byte counters into KB/s rates.
"""
from __future__ import annotations

import time
from typing import Callable

from utils import get_logger

logger = get_logger(__name__)

CounterSource = Callable[[], tuple[int, int]]


class NetworkRateSampler:
    """Differentiates (bytes_in, bytes_out) between calls.

    The first sample after construction or reset() only records a baseline and
    reports (0.0, 0.0). A non-positive elapsed time keeps the previous rates.
    Counter wrap or adapter reset shows up as a negative delta and is clamped to 0.
    """

    def __init__(self, counter_source: CounterSource, clock: Callable[[], float] = time.monotonic) -> None:
        self._source = counter_source
        self._clock = clock
        self._prev: tuple[int, int] | None = None
        self._prev_time = 0.0
        self._down_kbps = 0.0
        self._up_kbps = 0.0

    @property
    def down_kbps(self) -> float:
        return self._down_kbps

    @property
    def up_kbps(self) -> float:
        return self._up_kbps

    @property
    def primed(self) -> bool:
        return self._prev is not None

    def prime(self) -> None:
        self._prev = self._source()
        self._prev_time = self._clock()

    def reset(self) -> None:
        self._prev = None
        self._prev_time = 0.0
        self._down_kbps = 0.0
        self._up_kbps = 0.0

    def sample(self) -> tuple[float, float]:
        """(down_kbps, up_kbps) since the previous sample."""
        current = self._source()
        now = self._clock()
        if self._prev is None:
            self._prev = current
            self._prev_time = now
            return 0.0, 0.0

        elapsed = now - self._prev_time
        if elapsed <= 0:
            return self._down_kbps, self._up_kbps

        d_in = current[0] - self._prev[0]
        d_out = current[1] - self._prev[1]
        if d_in < 0 or d_out < 0:
            logger.debug("network counters went backwards (%s -> %s)", self._prev, current)
        self._down_kbps = max(0, d_in) / elapsed / 1024.0
        self._up_kbps = max(0, d_out) / elapsed / 1024.0
        self._prev = current
        self._prev_time = now
        return self._down_kbps, self._up_kbps
