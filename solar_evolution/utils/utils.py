from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy import stats as scipy_stats

from .common import ConfigurationError

Numeric = int | float

_RNG: np.random.Generator | None = None

# Upper bound of rejection sampling before giving up on a local-search draw.
_MAX_REJECTION_DRAWS = 10_000


def set_random_seed(seed: int | None) -> None:
    """Set the global random seed for reproducibility.

    Args:
        seed: Random seed value.
    """
    global _RNG  # noqa: PLW0603
    _RNG = np.random.default_rng(seed)


def get_rng() -> np.random.Generator:
    """Get the global random number generator.

    Returns:
         random generator instance.
    """
    global _RNG  # noqa: PLW0603
    if _RNG is None:
        _RNG = np.random.default_rng()
    return _RNG


def make_rng(seed: int | None = None) -> np.random.Generator:
    """Create a generator for one optimizer run.

    Falls back to the global generator when no seed is given, so that
    ``set_random_seed`` still controls unseeded optimizers.
    """
    if seed is None:
        return get_rng()
    return np.random.default_rng(seed)


def validate_probability(value: float, name: str = "probability") -> None:
    """Validate that a value is a valid probability in [0, 1].

    Args:
        value: Value to validate.
        name: Parameter name for error messages.

    Raises:
        ConfigurationError: If value is not in [0, 1].
    """
    if not 0.0 <= value <= 1.0:
        msg = f"{name} must be in [0, 1], got {value}"
        raise ConfigurationError(msg)


def validate_positive(value: float, name: str = "value") -> None:
    """Validate that a value is positive (> 0).

    Args:
        value: Value to validate.
        name: Parameter name for error messages.

    Raises:
        ConfigurationError: If value is not positive.
    """
    if value <= 0:
        msg = f"{name} must be positive, got {value}"
        raise ConfigurationError(msg)


def validate_non_negative(value: float, name: str = "value") -> None:
    """Validate that a value is non-negative (>= 0).

    Raises:
        ConfigurationError: If value is negative.
    """
    if value < 0:
        msg = f"{name} must be non-negative, got {value}"
        raise ConfigurationError(msg)


def validate_positive_int(value: Any, name: str = "value") -> None:
    """Validate that a value is a positive integer.

    Args:
        value: Value to validate.
        name: Parameter name for error messages.

    Raises:
        ConfigurationError: If value is not a positive integer.
    """
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        msg = f"{name} must be a positive integer, got {value}"
        raise ConfigurationError(msg)


def clamp(
    value: Numeric | NDArray,
    min_val: Numeric,
    max_val: Numeric,
) -> Numeric | NDArray:
    """Clamp a value to be within [min_val, max_val].

    Args:
        value: The value to clamp (scalar or array).
        min_val: Minimum boundary.
        max_val: Maximum boundary.

    Returns:
        The clamped value

    Examples:
        >>> clamp(1.5, 0.0, 1.0)
        1.0
        >>> clamp(np.array([1.5, -0.5, 0.5]), 0.0, 1.0)
        array([1. , 0. , 0.5])
    """
    if min_val > max_val:
        msg = f"min_val ({min_val}) must be <= max_val ({max_val})"
        raise ValueError(msg)

    result = np.clip(value, min_val, max_val)
    if np.ndim(result) == 0:
        return float(result)
    return result


def gaussian_around(
    center: NDArray,
    radius: float,
    rng: np.random.Generator,
) -> NDArray:
    """Sample a point near ``center`` with every coordinate inside [0, 1).

    Each coordinate is ``center + N(0, 1) * radius``, redrawn until it lands
    in the unit interval.

    Args:
        center: Coordinates to scatter around.
        radius: Standard deviation of the Gaussian offset.
        rng: Random generator.

    Returns:
        New coordinate vector.

    Raises:
        RuntimeError: If a coordinate cannot be placed after many draws.
    """
    center = np.asarray(center, dtype=np.float64)
    result = np.empty_like(center)
    for k, c in enumerate(center):
        for _ in range(_MAX_REJECTION_DRAWS):
            g = c + rng.standard_normal() * radius
            if 0.0 <= g < 1.0:
                result[k] = g
                break
        else:
            msg = f"Could not sample coordinate {k} within [0, 1) around {c} (radius={radius})"
            raise RuntimeError(msg)
    return result


def within_relative_spread(vectors: NDArray, threshold: float) -> bool:
    """Check whether every vector sits close to the per-dimension average.

    A coordinate is close when ``|x / avg - 1| <= threshold``; for an average
    of exactly zero the absolute value ``|x|`` is used instead.

    Args:
        vectors: Array of shape (n_vectors, n_dims).
        threshold: Largest accepted relative deviation.

    Returns:
        True if all coordinates of all vectors are close.
    """
    vectors = np.asarray(vectors, dtype=np.float64)
    avg = vectors.mean(axis=0)
    safe = np.where(avg == 0.0, 1.0, avg)
    deviation = np.where(avg == 0.0, np.abs(vectors), np.abs(vectors / safe - 1.0))
    return bool(np.all(deviation <= threshold))


def euclidean_distance(a: NDArray, b: NDArray) -> float:
    """Compute Euclidean distance between two vectors."""
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


def rank_array(x: NDArray, method: str = "average") -> NDArray:
    """Compute ranks of array elements.

    Args:
        x: Input array.
        method: Ranking method ('average', 'min', 'max', 'dense', 'ordinal').

    Returns:
        Array of ranks (1-based).
    """
    return scipy_stats.rankdata(x, method=method)
