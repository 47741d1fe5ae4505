"""Integrality checks and most-fractional branching."""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

import numpy as np

from ..schemas import IntegerSpec


def fractional_part(x: float) -> float:
    """``x - floor(x)``, always in [0, 1) (so ``fractional_part(-0.4) == 0.6``)."""
    frac = x - math.floor(x)
    return frac if frac < 1.0 else 0.0


def fractional_deviation(solution: Sequence[float], indices: Iterable[int]) -> np.ndarray:
    """Distance ``|v - round(v)|`` of each listed coordinate to its nearest integer."""
    values = np.asarray(solution, dtype=float)[list(indices)]
    return np.abs(values - np.round(values))


def is_integer_feasible(solution: Sequence[float], integer_spec: IntegerSpec, tolerance: float = 1e-6) -> bool:
    values = np.asarray(solution, dtype=float)
    indices = integer_spec.integer_indices()
    if indices and np.any(fractional_deviation(values, indices) > tolerance):
        return False
    for idx in integer_spec.binary:
        if round(values[idx]) not in (0, 1):
            return False
    return True


def select_branching_variable(
    solution: Sequence[float], integer_spec: IntegerSpec, tolerance: float = 1e-6
) -> Optional[int]:
    indices = integer_spec.integer_indices()
    if not indices:
        return None
    gaps = fractional_deviation(solution, indices)
    best = int(np.argmax(gaps))
    if gaps[best] <= tolerance:
        return None
    return indices[best]
