"""
Exponential backoff policy.

Produces successive wait intervals for retried requests. Each interval is the
previous one times ``multiplier``, randomized by +/- ``randomization_factor``,
until the time elapsed since the policy was created exceeds
``max_elapsed_time_millis``; from then on ``STOP`` is returned.

With the defaults (initial 100 ms, multiplier 2.0, randomization 0.1) the
intervals are roughly::

    attempt  interval (ms)   randomized range (ms)
    1        100             [90, 110]
    2        200             [180, 220]
    3        400             [360, 440]
    ...
"""

import random
import time
from typing import Callable, Optional, Union

STOP = -1

DEFAULT_MAX_INTERVAL_MILLIS = 60000


class ExponentialBackOff:
    """
    Single-use backoff state for one sequence of retried requests.

    Build a new instance (or call ``reset``) for every independent retrieval.
    """

    def __init__(
        self,
        initial_interval_millis: int = 100,
        max_elapsed_time_millis: int = 10000,
        multiplier: float = 2.0,
        randomization_factor: float = 0.1,
        max_interval_millis: int = DEFAULT_MAX_INTERVAL_MILLIS,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            initial_interval_millis: First interval before randomization
            max_elapsed_time_millis: Give up once this much time has passed
            multiplier: Growth factor between intervals
            randomization_factor: Fraction each interval is perturbed by
            max_interval_millis: Cap on the un-randomized interval
            clock: Monotonic clock returning seconds
            rng: Random source for the perturbation
        """
        if initial_interval_millis <= 0:
            raise ValueError("initial_interval_millis must be positive")
        if not 0 <= randomization_factor < 1:
            raise ValueError("randomization_factor must be in [0, 1)")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if max_interval_millis < initial_interval_millis:
            raise ValueError("max_interval_millis must be >= initial_interval_millis")

        self.initial_interval_millis = initial_interval_millis
        self.max_elapsed_time_millis = max_elapsed_time_millis
        self.multiplier = multiplier
        self.randomization_factor = randomization_factor
        self.max_interval_millis = max_interval_millis
        self._clock = clock
        self._rng = rng or random.Random()
        self.reset()

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.monotonic,
                      rng: Optional[random.Random] = None) -> "ExponentialBackOff":
        """Build a policy from resolved ``VaultSettings``."""
        return cls(
            initial_interval_millis=settings.backoff_initial_millis,
            max_elapsed_time_millis=settings.backoff_max_elapsed_millis,
            multiplier=settings.backoff_multiplier,
            randomization_factor=settings.backoff_randomization_factor,
            max_interval_millis=max(DEFAULT_MAX_INTERVAL_MILLIS, settings.backoff_initial_millis),
            clock=clock,
            rng=rng,
        )

    def reset(self) -> None:
        """Restart the elapsed-time clock and the interval sequence."""
        self.current_interval_millis = float(self.initial_interval_millis)
        self._start_time = self._clock()

    @property
    def elapsed_time_millis(self) -> float:
        return (self._clock() - self._start_time) * 1000.0

    def next_back_off_millis(self) -> Union[float, int]:
        """
        Return the next wait in milliseconds, or ``STOP`` to give up.
        """
        if self.elapsed_time_millis > self.max_elapsed_time_millis:
            return STOP

        interval = self._randomize(self.current_interval_millis)

        if self.current_interval_millis >= self.max_interval_millis / self.multiplier:
            self.current_interval_millis = float(self.max_interval_millis)
        else:
            self.current_interval_millis *= self.multiplier

        return interval

    def _randomize(self, interval: float) -> float:
        if self.randomization_factor == 0:
            return interval
        delta = self.randomization_factor * interval
        return self._rng.uniform(interval - delta, interval + delta)
