from __future__ import annotations

import math
from typing import Any

import numpy as np
from numpy.typing import NDArray


# Fitness of an agent that has not been evaluated in the generation in flight.
UNEVALUATED: float = float("nan")


class ConfigurationError(ValueError):
    """Raised when an optimizer, space or encoding is constructed with invalid values."""


class UnevaluatedFitnessError(ValueError):
    """Raised when an unevaluated fitness is reported or compared."""


def is_unevaluated(fitness: float) -> bool:
    """Check if a fitness value is the unevaluated sentinel.

    Args:
        fitness: Fitness value.

    Returns:
        True if the value is NaN.
    """
    return math.isnan(fitness)


def check_fitness(fitness: float) -> float:
    """Validate a fitness value reported by the caller.

    Args:
        fitness: Reported fitness.

    Returns:
        The fitness as a Python float.

    Raises:
        UnevaluatedFitnessError: If the value is NaN.
    """
    value = float(fitness)
    if math.isnan(value):
        msg = "Reported fitness must not be NaN (the unevaluated sentinel)"
        raise UnevaluatedFitnessError(msg)
    return value


def compare_fitness(a: float, b: float) -> int:
    """Three-way comparison of two evaluated fitness values.

    Args:
        a: First fitness.
        b: Second fitness.

    Returns:
        1 if a > b, -1 if a < b, 0 if equal.

    Raises:
        UnevaluatedFitnessError: If either value is NaN.
    """
    if math.isnan(a) or math.isnan(b):
        msg = f"Cannot compare unevaluated fitness values ({a}, {b})"
        raise UnevaluatedFitnessError(msg)
    if a > b:
        return 1
    if a < b:
        return -1
    return 0


def ensure_numpy(arr: Any) -> NDArray:
    """Convert array-like to a float64 numpy array.

    Args:
        arr: Input array-like object.

    Returns:
        NumPy ndarray.
    """
    return np.asarray(arr, dtype=np.float64)


def stack_arrays(arrays: list[Any], axis: int = 0) -> NDArray:
    """Stack arrays, returning an empty array for an empty list.

    Args:
        arrays: List of arrays to stack.
        axis: Axis along which to stack.

    Returns:
        Stacked array.
    """
    if not arrays:
        return np.array([])
    return np.stack([ensure_numpy(a) for a in arrays], axis=axis)
