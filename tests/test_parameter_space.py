from __future__ import annotations

import numpy as np
import pytest

from solar_evolution.parameter_space.parameter_space import (
    ContinuousDimension,
    IntegerDimension,
    ParameterSpace,
)
from solar_evolution.utils.common import ConfigurationError


def test_continuous_decode_endpoints_and_affinity() -> None:
    dim = ContinuousDimension("x", -2.0, 6.0)

    assert dim.decode(0.0) == -2.0
    assert dim.decode(1.0) == 6.0
    for g in np.linspace(0.0, 0.99, 12):
        assert dim.decode(g) == pytest.approx(-2.0 + 8.0 * g)


def test_continuous_decode_extrapolates_outside_unit_interval() -> None:
    dim = ContinuousDimension("x", 10.0, 20.0)

    assert dim.decode(1.5) == pytest.approx(25.0)
    assert dim.decode(-0.5) == pytest.approx(5.0)


def test_integer_decode_floors() -> None:
    dim = IntegerDimension("rows", 1, 6)

    assert dim.decode(0.0) == 1
    assert dim.decode(0.25) == 2
    assert dim.decode(0.999) == 5
    assert dim.decode(1.0) == 6


def test_encode_is_clamped_and_inverts_decode() -> None:
    dim = ContinuousDimension("spacing", 0.0, 10.0)

    assert dim.encode(2.5) == pytest.approx(0.25)
    assert dim.encode(15.0) == 1.0
    assert dim.encode(-3.0) == 0.0
    assert dim.decode(dim.encode(7.0)) == pytest.approx(7.0)


def test_integer_maximum_round_trips() -> None:
    dim = IntegerDimension("rows", 1, 6)

    assert dim.decode(dim.encode(6)) == 6
    assert dim.decode(dim.encode(1)) == 1


@pytest.mark.parametrize(("lo", "hi"), [(1.0, 1.0), (2.0, 1.0)])
def test_empty_range_is_rejected(lo: float, hi: float) -> None:
    with pytest.raises(ConfigurationError):
        ContinuousDimension("x", lo, hi)
    with pytest.raises(ConfigurationError):
        ParameterSpace.from_bounds([0.0, lo], [1.0, hi])


def test_integer_dimension_needs_integer_bounds() -> None:
    with pytest.raises(ConfigurationError):
        IntegerDimension("rows", 1.5, 6)


def test_space_decodes_mixed_vector() -> None:
    space = ParameterSpace.from_bounds([0.0, 1.0], [10.0, 6.0], discretization=[False, True])

    assert space.names == ["Variable1", "Variable2"]
    np.testing.assert_allclose(space.decode_vector([0.5, 0.5]), [5.0, 3.0])
    np.testing.assert_allclose(space.encode_vector([5.0, 3.0]), [0.5, 0.4])


def test_space_rejects_wrong_vector_length() -> None:
    space = ParameterSpace.from_bounds([0.0], [1.0])

    with pytest.raises(ConfigurationError):
        space.decode_vector([0.1, 0.2])


def test_space_rejects_duplicate_names_and_empty() -> None:
    with pytest.raises(ConfigurationError):
        ParameterSpace([ContinuousDimension("a", 0, 1), ContinuousDimension("a", 0, 2)])
    with pytest.raises(ConfigurationError):
        ParameterSpace([])
