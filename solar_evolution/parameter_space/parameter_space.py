from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..utils.common import ConfigurationError, ensure_numpy
from ..utils.utils import clamp

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class Dimension(ABC):
    """One searched parameter, mapped onto the unit interval.

    Agents carry coordinates in [0, 1); a dimension turns such a coordinate
    into a value in the caller's units and back.
    """

    def __init__(self, name: str, minimum: float, maximum: float) -> None:
        """Initialize a dimension.

        Args:
            name: Label used in history tables and logs.
            minimum: Value decoded from coordinate 0.
            maximum: Value decoded from coordinate 1.

        Raises:
            ConfigurationError: If the name is empty, a bound is not finite,
                or ``minimum >= maximum``.
        """
        if not name or not name.strip():
            msg = "Dimension name cannot be empty"
            raise ConfigurationError(msg)

        if not (math.isfinite(minimum) and math.isfinite(maximum)):
            msg = f"Bounds of '{name}' must be finite, got [{minimum}, {maximum}]"
            raise ConfigurationError(msg)

        if minimum >= maximum:
            msg = f"Minimum ({minimum}) of '{name}' must be less than maximum ({maximum})"
            raise ConfigurationError(msg)

        self.name = name.strip()
        self.minimum = float(minimum)
        self.maximum = float(maximum)

    @property
    def range_size(self) -> float:
        """The width of the decoded range."""
        return self.maximum - self.minimum

    @abstractmethod
    def decode(self, coordinate: float) -> float:
        """Map a unit-interval coordinate to a parameter value."""

    def encode(self, value: float) -> float:
        """Map a parameter value back to a coordinate clamped to [0, 1]."""
        return float(clamp((float(value) - self.minimum) / self.range_size, 0.0, 1.0))

    @abstractmethod
    def __repr__(self) -> str:
        pass

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return (self.name, self.minimum, self.maximum) == (other.name, other.minimum, other.maximum)  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.name, self.minimum, self.maximum))


class ContinuousDimension(Dimension):
    """Real-valued dimension, decoded affinely.

    Coordinates outside the unit interval (PSO particles may leave it) are
    decoded by extrapolation, not clamped.
    """

    def decode(self, coordinate: float) -> float:
        return self.minimum + float(coordinate) * self.range_size

    def __repr__(self) -> str:
        return f"ContinuousDimension('{self.name}', {self.minimum}, {self.maximum})"


class IntegerDimension(Dimension):
    """Integer-valued dimension.

    Decoding floors the affine value, so every integer in
    ``[minimum, maximum)`` owns an equal share of the unit interval and
    ``maximum`` itself is reached only at coordinate 1.
    """

    def __init__(self, name: str, minimum: int, maximum: int) -> None:
        if int(minimum) != minimum or int(maximum) != maximum:
            msg = f"Integer dimension '{name}' needs integer bounds, got [{minimum}, {maximum}]"
            raise ConfigurationError(msg)
        super().__init__(name, int(minimum), int(maximum))

    def decode(self, coordinate: float) -> float:
        return float(math.floor(self.minimum + float(coordinate) * self.range_size))

    def __repr__(self) -> str:
        return f"IntegerDimension('{self.name}', {int(self.minimum)}, {int(self.maximum)})"


class ParameterSpace:
    """Ordered collection of dimensions searched together.

    Example:
        >>> space = ParameterSpace([
        ...     ContinuousDimension("Tilt", -1.5, 1.5),
        ...     IntegerDimension("Rows", 1, 6),
        ... ])
        >>> space.decode_vector([0.5, 0.99])
        array([0., 5.])
    """

    def __init__(self, dimensions: Sequence[Dimension]) -> None:
        """Initialize the space.

        Args:
            dimensions: Dimensions in gene order.

        Raises:
            ConfigurationError: If no dimensions are given or names repeat.
        """
        if len(dimensions) == 0:
            msg = "A parameter space needs at least one dimension"
            raise ConfigurationError(msg)

        names = [d.name for d in dimensions]
        if len(set(names)) != len(names):
            msg = f"Dimension names must be unique, got {names}"
            raise ConfigurationError(msg)

        self._dimensions = list(dimensions)

    @classmethod
    def from_bounds(
        cls,
        minima: Sequence[float],
        maxima: Sequence[float],
        names: Sequence[str] | None = None,
        discretization: Sequence[bool] | None = None,
    ) -> ParameterSpace:
        """Build a space from parallel bound lists.

        Args:
            minima: Lower bound per dimension.
            maxima: Upper bound per dimension.
            names: Optional labels; defaults to ``Variable1..N``.
            discretization: Optional per-dimension integer flags.

        Returns:
            The parameter space.

        Raises:
            ConfigurationError: If the lists differ in length or any bound
                pair is invalid.
        """
        n = len(minima)
        if len(maxima) != n:
            msg = f"Got {n} minima but {len(maxima)} maxima"
            raise ConfigurationError(msg)
        if names is None:
            names = [f"Variable{i + 1}" for i in range(n)]
        if discretization is None:
            discretization = [False] * n
        if len(names) != n or len(discretization) != n:
            msg = "names and discretization must match the number of bounds"
            raise ConfigurationError(msg)

        dimensions: list[Dimension] = []
        for name, lo, hi, is_integer in zip(names, minima, maxima, discretization):
            if is_integer:
                dimensions.append(IntegerDimension(name, lo, hi))
            else:
                dimensions.append(ContinuousDimension(name, lo, hi))
        return cls(dimensions)

    @property
    def n_dims(self) -> int:
        return len(self._dimensions)

    @property
    def names(self) -> list[str]:
        return [d.name for d in self._dimensions]

    @property
    def minima(self) -> NDArray:
        return np.array([d.minimum for d in self._dimensions])

    @property
    def maxima(self) -> NDArray:
        return np.array([d.maximum for d in self._dimensions])

    def decode(self, dimension: int, coordinate: float) -> float:
        """Decode one coordinate of the given dimension."""
        return self._dimensions[dimension].decode(coordinate)

    def encode(self, dimension: int, value: float) -> float:
        """Encode one value of the given dimension into [0, 1]."""
        return self._dimensions[dimension].encode(value)

    def decode_vector(self, vector: Sequence[float] | NDArray) -> NDArray:
        """Decode a whole coordinate vector.

        Raises:
            ConfigurationError: If the vector length differs from ``n_dims``.
        """
        vector = ensure_numpy(vector)
        self._check_length(vector)
        return np.array([d.decode(g) for d, g in zip(self._dimensions, vector)])

    def encode_vector(self, values: Sequence[float] | NDArray) -> NDArray:
        """Encode a whole parameter vector into the unit hypercube."""
        values = ensure_numpy(values)
        self._check_length(values)
        return np.array([d.encode(v) for d, v in zip(self._dimensions, values)])

    def _check_length(self, vector: NDArray) -> None:
        if vector.shape != (self.n_dims,):
            msg = f"Expected a vector of length {self.n_dims}, got shape {vector.shape}"
            raise ConfigurationError(msg)

    def __len__(self) -> int:
        return len(self._dimensions)

    def __iter__(self) -> Iterator[Dimension]:
        return iter(self._dimensions)

    def __getitem__(self, index: int) -> Dimension:
        return self._dimensions[index]

    def __repr__(self) -> str:
        return f"ParameterSpace({self._dimensions!r})"
