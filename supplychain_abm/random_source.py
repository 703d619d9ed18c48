"""Deterministic random stream shared by every stochastic component."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np


class RandomSource:
    """Seeded uniform stream with a running draw counter.

    All engine randomness flows through one instance so that a seed plus the
    same sequence of external commands reproduces a run exactly.
    """

    def __init__(self, seed: int):
        if int(seed) < 0:
            raise ValueError(f"Seed must be a non-negative integer, got {seed!r}.")
        self.seed = int(seed)
        self._generator = np.random.Generator(np.random.PCG64(self.seed))
        self.draws = 0

    def random(self) -> float:
        """One uniform draw on [0, 1)."""
        self.draws += 1
        return float(self._generator.random())

    def uniform(self, low: float, high: float) -> float:
        return low + (high - low) * self.random()

    def uniform_range(self, bounds: Sequence[float]) -> float:
        low, high = bounds
        return self.uniform(float(low), float(high))

    def integer_range(self, bounds: Sequence[float]) -> int:
        """Uniform draw over ``bounds`` rounded to the nearest integer."""
        return int(round(self.uniform_range(bounds)))

    def index(self, n: int) -> int:
        """Uniform index into a sequence of length ``n`` (``n`` > 0)."""
        return min(n - 1, int(self.random() * n))

    def centered(self, width: float) -> float:
        """Multiplicative factor ``1 + (u - 0.5) * width``."""
        return 1.0 + (self.random() - 0.5) * width

    def random_array(self, size: int) -> np.ndarray:
        """Vector of ``size`` uniform draws consumed in order."""
        self.draws += int(size)
        return self._generator.random(int(size))

    def state(self) -> Tuple[int, int]:
        return self.seed, self.draws
