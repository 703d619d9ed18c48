"""Numeric helpers for the supply chain ABM."""

from __future__ import annotations

import math
from typing import Any

import numpy as np


def safe_mean(data: Any) -> float:
    """Compute the mean, returning 0.0 for empty collections."""
    arr = np.asarray(data, dtype=float)
    if arr.size == 0:
        return 0.0
    with np.errstate(invalid="ignore"):
        return float(arr.mean())


def safe_variance(data: Any) -> float:
    """Population variance, returning 0.0 for empty collections."""
    arr = np.asarray(data, dtype=float)
    if arr.size == 0:
        return 0.0
    with np.errstate(invalid="ignore"):
        return float(arr.var())


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, falling back to ``default`` for zero or non-finite results."""
    if denominator == 0 or not math.isfinite(denominator):
        return default
    value = numerator / denominator
    if not math.isfinite(value):
        return default
    return float(value)


def finite_or_zero(value: Any) -> float:
    """Coerce ``value`` to a finite, non-negative float (0.0 otherwise)."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0.0:
        return 0.0
    return number
