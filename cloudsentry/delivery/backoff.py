"""
Exponential backoff policy used between batch retries.

Intervals grow by ``multiplier`` from ``initial_interval`` up to
``max_interval`` and are randomized by +/- ``randomization_factor`` to
avoid retry storms. The policy stops once the next sleep would take the
elapsed time past ``max_elapsed_time``.
"""

from __future__ import annotations

import random
import time
from typing import Callable, Optional

DEFAULT_INITIAL_INTERVAL = 0.5
DEFAULT_MULTIPLIER = 1.5
DEFAULT_RANDOMIZATION_FACTOR = 0.5
DEFAULT_MAX_INTERVAL = 60.0


class ExponentialBackoff:
    """
    Randomized exponential backoff bounded by total elapsed time.

    Parameters
    ----------
    max_elapsed_time : float, optional
        Seconds after ``reset()`` beyond which no more retries are
        allowed. ``None`` means no bound.
    initial_interval : float, default=0.5
        First interval in seconds.
    multiplier : float, default=1.5
        Growth factor applied after every interval.
    randomization_factor : float, default=0.5
        Relative jitter; 0 makes intervals deterministic.
    max_interval : float, default=60.0
        Cap on a single interval before jitter.
    clock : callable, default=time.monotonic
        Source of the current time in seconds.
    rng : callable, default=random.random
        Returns a float in [0, 1).

    Examples
    --------
    >>> backoff = ExponentialBackoff(max_elapsed_time=10, randomization_factor=0)
    >>> backoff.reset()
    >>> backoff.next_interval()
    0.5
    >>> backoff.next_interval()
    0.75
    """

    def __init__(
        self,
        max_elapsed_time: Optional[float] = None,
        initial_interval: float = DEFAULT_INITIAL_INTERVAL,
        multiplier: float = DEFAULT_MULTIPLIER,
        randomization_factor: float = DEFAULT_RANDOMIZATION_FACTOR,
        max_interval: float = DEFAULT_MAX_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ) -> None:
        if initial_interval <= 0 or multiplier < 1:
            raise ValueError("initial_interval must be > 0 and multiplier >= 1")
        if not 0 <= randomization_factor <= 1:
            raise ValueError("randomization_factor must be between 0 and 1")

        self.max_elapsed_time = max_elapsed_time
        self.initial_interval = initial_interval
        self.multiplier = multiplier
        self.randomization_factor = randomization_factor
        self.max_interval = max_interval
        self._clock = clock
        self._rng = rng

        self._current_interval = initial_interval
        self._start = clock()

    def reset(self) -> None:
        """Restart the interval sequence and the elapsed-time clock."""
        self._current_interval = self.initial_interval
        self._start = self._clock()

    @property
    def elapsed(self) -> float:
        """Seconds since the last ``reset()``."""
        return self._clock() - self._start

    def next_interval(self) -> Optional[float]:
        """
        Get the next sleep interval.

        Returns
        -------
        float or None
            Seconds to wait before the next attempt, or ``None`` when the
            elapsed-time budget does not allow another attempt.
        """
        delta = self.randomization_factor * self._current_interval
        interval = self._current_interval - delta + self._rng() * 2 * delta
        self._current_interval = min(
            self._current_interval * self.multiplier, self.max_interval
        )

        if self.max_elapsed_time is not None:
            if self.elapsed + interval > self.max_elapsed_time:
                return None
        return interval

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"ExponentialBackoff(max_elapsed_time={self.max_elapsed_time}, "
            f"initial_interval={self.initial_interval}, "
            f"multiplier={self.multiplier})"
        )
