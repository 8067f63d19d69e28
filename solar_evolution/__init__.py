"""Stepwise GA and PSO optimizers for solar panel design parameters."""

from .optimization_config import (
    EvolutionConfig,
    EvolutionMethod,
    GASettings,
    PSOSettings,
    SearchMethod,
    SelectionMethod,
)
from .optimizer import EvolutionaryOptimizer, EvolutionSchedule, run_evolution
from .parameter_space.parameter_space import ContinuousDimension, IntegerDimension, ParameterSpace
from .problems import (
    ArrayLayout,
    ArrayLayoutEncoding,
    ObjectiveFunctionType,
    TiltAngleEncoding,
    VectorEncoding,
)
from .results import EvolutionResult, history_table
from .utils.common import ConfigurationError, UnevaluatedFitnessError

__version__ = "0.1.0"

__all__ = [
    "ArrayLayout",
    "ArrayLayoutEncoding",
    "ConfigurationError",
    "ContinuousDimension",
    "EvolutionConfig",
    "EvolutionMethod",
    "EvolutionResult",
    "EvolutionSchedule",
    "EvolutionaryOptimizer",
    "GASettings",
    "IntegerDimension",
    "ObjectiveFunctionType",
    "PSOSettings",
    "ParameterSpace",
    "SearchMethod",
    "SelectionMethod",
    "TiltAngleEncoding",
    "UnevaluatedFitnessError",
    "VectorEncoding",
    "history_table",
    "run_evolution",
]
