"""Process-wide random number source shared by the model code."""

from __future__ import annotations

import numpy as np

_generator = np.random.Generator(np.random.MT19937())


def seed(s: int = 0) -> None:
    """Reseed the shared generator; a seed of 0 draws fresh entropy."""
    global _generator
    _generator = np.random.Generator(np.random.MT19937(None if s == 0 else s))


def generator() -> np.random.Generator:
    """Return the shared generator."""
    return _generator


def randn(mean: float = 0.0, stddev: float = 1.0, size=None):
    """Draw from a normal distribution: a float, or a float32 array of ``size``."""
    if size is None:
        return float(_generator.normal(mean, stddev))
    return _generator.normal(mean, stddev, size).astype(np.float32)


def uniform(low: float = 0.0, high: float = 1.0) -> float:
    """Draw a float uniformly from ``[low, high)``."""
    return float(_generator.uniform(low, high))


def randint(low: int, high: int) -> int:
    """Draw an integer uniformly from ``[low, high]``, both ends included."""
    if low > high:
        raise ValueError(f"empty range: {low} > {high}")
    return int(_generator.integers(low, high, endpoint=True))


def shuffled_indices(n: int) -> list[int]:
    """Return the indices ``0 .. n-1`` in a random order."""
    if n < 0:
        raise ValueError("n must not be negative")
    return [int(i) for i in _generator.permutation(n)]