"""Problem encodings for the solar design optimizers.

An encoding owns the parameter space of one design problem. It turns an
agent's normalized vector into domain parameters and turns the current
design into the vector of the first agent. Two problems are provided:

- ``TiltAngleEncoding``: one tilt angle per solar panel.
- ``ArrayLayoutEncoding``: tilt angle, inter-row spacing and rows per rack of
  a whole solar panel array.

``VectorEncoding`` wraps a bare ``ParameterSpace`` for problems that need no
domain types.

Example:
    >>> encoding = TiltAngleEncoding(panel_count=2)
    >>> encoding.decode(0, [0.5, 1.0])
    (0.0, 1.5707963267948966)
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from .parameter_space.parameter_space import ContinuousDimension, IntegerDimension, ParameterSpace
from .utils.common import ConfigurationError
from .utils.utils import validate_positive, validate_positive_int

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

HALF_PI = math.pi / 2
DAYS_PER_YEAR = 365


class ObjectiveFunctionType(Enum):
    """What the caller's simulation reports as fitness."""

    DAILY_TOTAL_OUTPUT = "daily_total_output"
    YEARLY_TOTAL_OUTPUT = "yearly_total_output"
    DAILY_AVERAGE_OUTPUT = "daily_average_output"
    YEARLY_AVERAGE_OUTPUT = "yearly_average_output"
    DAILY_PROFIT = "daily_profit"
    YEARLY_PROFIT = "yearly_profit"

    @classmethod
    def from_string(cls, value: str) -> ObjectiveFunctionType:
        """Create from string value."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            msg = f"Unknown ObjectiveFunctionType '{value}'"
            raise ConfigurationError(msg) from None

    @property
    def unit(self) -> str:
        if self in (ObjectiveFunctionType.DAILY_PROFIT, ObjectiveFunctionType.YEARLY_PROFIT):
            return "dollars"
        return "kWh"

    @property
    def is_daily(self) -> bool:
        return self.value.startswith("daily")


@dataclass(frozen=True)
class Economics:
    """Prices used to turn energy into profit.

    Attributes:
        electricity_selling_price: Dollars per kWh.
        operational_cost_per_unit: Dollars per panel per day.
    """

    electricity_selling_price: float = 0.25
    operational_cost_per_unit: float = 0.15


def compute_objective(
    objective_type: ObjectiveFunctionType,
    totals: Sequence[float],
    panel_count: int,
    economics: Economics | None = None,
) -> float:
    """Aggregate simulated output into the objective value of one agent.

    Args:
        objective_type: Which objective the run maximizes.
        totals: Total output per simulated period, in kWh: hourly totals of
            one day for daily objectives, one sampled day per month for
            yearly objectives (scaled by ``12 / 365``).
        panel_count: Number of panels of the evaluated design.
        economics: Prices for profit objectives.

    Returns:
        The fitness to report.
    """
    economics = economics or Economics()
    total = float(np.sum(totals))
    if not objective_type.is_daily:
        total *= 12 / DAYS_PER_YEAR

    if objective_type in (ObjectiveFunctionType.DAILY_AVERAGE_OUTPUT, ObjectiveFunctionType.YEARLY_AVERAGE_OUTPUT):
        if panel_count:
            total /= panel_count
    elif objective_type == ObjectiveFunctionType.DAILY_PROFIT:
        total *= economics.electricity_selling_price
        total -= panel_count * economics.operational_cost_per_unit
    elif objective_type == ObjectiveFunctionType.YEARLY_PROFIT:
        total *= economics.electricity_selling_price
        total -= panel_count * economics.operational_cost_per_unit * DAYS_PER_YEAR
    return total


class RowAxis(Enum):
    """Direction the rows of an array run along."""

    ZONAL = "zonal"  # east-west rows, spaced along y
    MERIDIONAL = "meridional"  # north-south rows, spaced along x


class Orientation(Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"


@dataclass(frozen=True)
class PvModuleSize:
    """Physical size of one PV module, in meters."""

    length: float = 1.65
    width: float = 0.99


@dataclass(frozen=True)
class PanelSample:
    """Geometry of one existing solar panel rack used to seed a layout search.

    Attributes:
        tilt_angle: Tilt in radians.
        cx: Center x, relative to the foundation (fraction of its length).
        cy: Center y, relative to the foundation (fraction of its width).
        ly: Depth of the rack in meters.
        orientation: How modules are mounted on the rack.
    """

    tilt_angle: float
    cx: float = 0.0
    cy: float = 0.0
    ly: float = 1.0
    orientation: Orientation = Orientation.LANDSCAPE


@dataclass(frozen=True)
class ArrayLayout:
    """Decoded parameters of a solar panel array.

    Attributes:
        tilt_angle: Tilt in radians.
        inter_row_spacing: Distance between rows in meters.
        rows_per_rack: Module rows stacked on one rack.
    """

    tilt_angle: float
    inter_row_spacing: float
    rows_per_rack: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@runtime_checkable
class ProblemEncoding(Protocol):
    """Protocol for problem encodings injected into the optimizer."""

    @property
    def space(self) -> ParameterSpace: ...

    @property
    def dimension_count(self) -> int: ...

    def decode(self, index: int, vector: NDArray) -> Any:
        """Decode the vector of agent ``index`` (-1 for the fittest)."""
        ...

    def seed_first_agent(self, existing_design: Any) -> NDArray | None:
        """Vector reproducing the existing design, or None if it cannot be derived."""
        ...

    def describe(self, vector: NDArray, fitness: float) -> str:
        """One-line human-readable rendering for log messages."""
        ...


class VectorEncoding:
    """Encoding of a plain parameter space, decoding to numpy vectors.

    The existing design, if given, is a vector of parameter values.
    """

    def __init__(self, space: ParameterSpace, unit: str = "") -> None:
        self._space = space
        self.unit = unit

    @classmethod
    def from_bounds(
        cls,
        minima: Sequence[float],
        maxima: Sequence[float],
        names: Sequence[str] | None = None,
        discretization: Sequence[bool] | None = None,
    ) -> VectorEncoding:
        return cls(ParameterSpace.from_bounds(minima, maxima, names, discretization))

    @property
    def space(self) -> ParameterSpace:
        return self._space

    @property
    def dimension_count(self) -> int:
        return self._space.n_dims

    def decode(self, index: int, vector: NDArray) -> NDArray:
        return self._space.decode_vector(vector)

    def seed_first_agent(self, existing_design: Sequence[float] | None) -> NDArray | None:
        if existing_design is None:
            return None
        return self._space.encode_vector(existing_design)

    def describe(self, vector: NDArray, fitness: float) -> str:
        values = ", ".join(f"{v:.3f}" for v in self.decode(-1, vector))
        return f"F({values}) = {fitness:.5f} {self.unit}".rstrip()


class TiltAngleEncoding:
    """One gene per solar panel: its tilt angle.

    The existing design is the sequence of current tilt angles (radians).
    """

    def __init__(
        self,
        panel_count: int,
        min_tilt: float = -HALF_PI,
        max_tilt: float = HALF_PI,
        labels: Sequence[str | None] | None = None,
        objective_type: ObjectiveFunctionType = ObjectiveFunctionType.DAILY_TOTAL_OUTPUT,
    ) -> None:
        """Initialize the encoding.

        Args:
            panel_count: Number of panels, one dimension each.
            min_tilt: Lowest tilt angle in radians.
            max_tilt: Highest tilt angle in radians.
            labels: Optional panel labels used as dimension names.
            objective_type: Objective reported by the caller, for log units.

        Raises:
            ConfigurationError: If ``panel_count`` is not positive or the
                tilt range is empty.
        """
        validate_positive_int(panel_count, "panel_count")
        if labels is not None and len(labels) != panel_count:
            msg = f"Got {len(labels)} labels for {panel_count} panels"
            raise ConfigurationError(msg)
        names = [
            (labels[i] if labels is not None and labels[i] else f"Tilt Angle {i + 1}")
            for i in range(panel_count)
        ]
        self._space = ParameterSpace([ContinuousDimension(name, min_tilt, max_tilt) for name in names])
        self.objective_type = objective_type

    @property
    def space(self) -> ParameterSpace:
        return self._space

    @property
    def dimension_count(self) -> int:
        return self._space.n_dims

    def decode(self, index: int, vector: NDArray) -> tuple[float, ...]:
        return tuple(float(v) for v in self._space.decode_vector(vector))

    def seed_first_agent(self, existing_design: Sequence[float] | None) -> NDArray | None:
        if existing_design is None or len(existing_design) == 0:
            return None
        if len(existing_design) != self.dimension_count:
            msg = f"Existing design has {len(existing_design)} tilt angles, expected {self.dimension_count}"
            raise ConfigurationError(msg)
        return self._space.encode_vector(existing_design)

    def describe(self, vector: NDArray, fitness: float) -> str:
        angles = ", ".join(f"{math.degrees(a):.3f}°" for a in self.decode(-1, vector))
        return f"F({angles}) = {fitness:.5f} {self.objective_type.unit}"


class ArrayLayoutEncoding:
    """Three genes describing a whole solar panel array.

    Genes are tilt angle, inter-row spacing and rows per rack; the last is
    an integer dimension. The existing design is a sequence of at least two
    ``PanelSample`` racks.
    """

    def __init__(
        self,
        min_tilt: float = -HALF_PI,
        max_tilt: float = HALF_PI,
        min_inter_row_spacing: float = 2.0,
        max_inter_row_spacing: float = 10.0,
        min_rows_per_rack: int = 1,
        max_rows_per_rack: int = 6,
        row_axis: RowAxis = RowAxis.ZONAL,
        module: PvModuleSize | None = None,
        foundation_lx: float = 1.0,
        foundation_ly: float = 1.0,
        objective_type: ObjectiveFunctionType = ObjectiveFunctionType.DAILY_TOTAL_OUTPUT,
    ) -> None:
        """Initialize the encoding.

        Args:
            min_tilt: Lowest tilt angle in radians.
            max_tilt: Highest tilt angle in radians.
            min_inter_row_spacing: Smallest row spacing in meters.
            max_inter_row_spacing: Largest row spacing in meters.
            min_rows_per_rack: Fewest module rows on a rack.
            max_rows_per_rack: Most module rows on a rack.
            row_axis: Direction the rows run along.
            module: PV module size used to infer rows per rack.
            foundation_lx: Foundation length in meters (x).
            foundation_ly: Foundation width in meters (y).
            objective_type: Objective reported by the caller, for log units.

        Raises:
            ConfigurationError: If any range is empty or a size is not positive.
        """
        if isinstance(row_axis, str):
            row_axis = RowAxis(row_axis)
        validate_positive(foundation_lx, "foundation_lx")
        validate_positive(foundation_ly, "foundation_ly")
        self._space = ParameterSpace(
            [
                ContinuousDimension("Tilt Angle", min_tilt, max_tilt),
                ContinuousDimension("Inter-Row Spacing", min_inter_row_spacing, max_inter_row_spacing),
                IntegerDimension("Rack Width", min_rows_per_rack, max_rows_per_rack),
            ]
        )
        self.row_axis = row_axis
        self.module = module or PvModuleSize()
        self.foundation_lx = float(foundation_lx)
        self.foundation_ly = float(foundation_ly)
        self.objective_type = objective_type

    @property
    def space(self) -> ParameterSpace:
        return self._space

    @property
    def dimension_count(self) -> int:
        return 3

    def decode(self, index: int, vector: NDArray) -> ArrayLayout:
        tilt, spacing, rows = self._space.decode_vector(vector)
        return ArrayLayout(tilt_angle=float(tilt), inter_row_spacing=float(spacing), rows_per_rack=int(rows))

    def seed_first_agent(self, existing_design: Sequence[PanelSample] | None) -> NDArray | None:
        """Derive the genes of the current array from its first two racks.

        Returns None when fewer than two racks exist, since the spacing
        cannot be measured from a single rack.
        """
        if existing_design is None or len(existing_design) < 2:
            logger.debug("Fewer than two racks in the existing design, first agent is not seeded")
            return None
        first, second = existing_design[0], existing_design[1]
        if self.row_axis == RowAxis.MERIDIONAL:
            spacing = abs(first.cx - second.cx) * self.foundation_lx
        else:
            spacing = abs(first.cy - second.cy) * self.foundation_ly
        module_depth = self.module.length if first.orientation == Orientation.PORTRAIT else self.module.width
        rows_per_rack = max(1, round(first.ly / module_depth))
        return np.array(
            [
                self._space.encode(0, first.tilt_angle),
                self._space.encode(1, spacing),
                self._space.encode(2, rows_per_rack),
            ]
        )

    def describe(self, vector: NDArray, fitness: float) -> str:
        layout = self.decode(-1, vector)
        return (
            f"F({math.degrees(layout.tilt_angle):.3f}°, {layout.inter_row_spacing:.3f}m, "
            f"{layout.rows_per_rack}) = {fitness:.5f} {self.objective_type.unit}"
        )

