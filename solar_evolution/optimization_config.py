"""Optimization Configuration Module.

Settings for the stepwise GA and PSO optimizers:
- Genetic Algorithm behavior (selection, crossover, mutation, convergence)
- Particle Swarm Optimization behavior (inertia, velocity, coefficients)
- Which of the two strategies a run uses

Example:
    >>> from solar_evolution.optimization_config import (
    ...     EvolutionConfig, EvolutionMethod, GASettings, SelectionMethod,
    ... )
    >>>
    >>> config = EvolutionConfig(
    ...     method=EvolutionMethod.GENETIC_ALGORITHM,
    ...     ga=GASettings(
    ...         population_size=20,
    ...         maximum_generations=5,
    ...         selection_method=SelectionMethod.TOURNAMENT,
    ...     ),
    ... )
    >>> config.size
    20
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .utils.common import ConfigurationError
from .utils.utils import (
    validate_non_negative,
    validate_positive,
    validate_positive_int,
    validate_probability,
)


def _lookup(enum_cls: type[Enum], mapping: dict[str, Any], value: str) -> Any:
    key = value.strip().lower()
    if key not in mapping:
        msg = f"Unknown {enum_cls.__name__} '{value}', expected one of {sorted(mapping)}"
        raise ConfigurationError(msg)
    return mapping[key]


class SelectionMethod(Enum):
    """Parent selection strategies for the Genetic Algorithm."""

    ROULETTE_WHEEL = "roulette_wheel"
    TOURNAMENT = "tournament"
    RANK = "rank"

    @classmethod
    def from_string(cls, value: str) -> SelectionMethod:
        """Create from string value."""
        mapping = {
            "roulette_wheel": cls.ROULETTE_WHEEL,
            "roulette": cls.ROULETTE_WHEEL,
            "tournament": cls.TOURNAMENT,
            "rank": cls.RANK,
        }
        return _lookup(cls, mapping, value)


class SearchMethod(Enum):
    """How the first generation is spread over the search space."""

    GLOBAL_SEARCH_UNIFORM_SELECTION = "global"
    LOCAL_SEARCH_RANDOM_OPTIMIZATION = "local"

    @classmethod
    def from_string(cls, value: str) -> SearchMethod:
        """Create from string value."""
        mapping = {
            "global": cls.GLOBAL_SEARCH_UNIFORM_SELECTION,
            "global_search_uniform_selection": cls.GLOBAL_SEARCH_UNIFORM_SELECTION,
            "local": cls.LOCAL_SEARCH_RANDOM_OPTIMIZATION,
            "local_search_random_optimization": cls.LOCAL_SEARCH_RANDOM_OPTIMIZATION,
        }
        return _lookup(cls, mapping, value)


class EvolutionMethod(Enum):
    """Which population strategy drives a run."""

    GENETIC_ALGORITHM = "ga"
    PARTICLE_SWARM_OPTIMIZATION = "pso"

    @classmethod
    def from_string(cls, value: str) -> EvolutionMethod:
        """Create from string value."""
        mapping = {
            "ga": cls.GENETIC_ALGORITHM,
            "genetic_algorithm": cls.GENETIC_ALGORITHM,
            "pso": cls.PARTICLE_SWARM_OPTIMIZATION,
            "particle_swarm_optimization": cls.PARTICLE_SWARM_OPTIMIZATION,
        }
        return _lookup(cls, mapping, value)


def _validate_common(
    convergence_threshold: float,
    local_search_radius: float,
    random_seed: int | None,
) -> None:
    validate_non_negative(convergence_threshold, "convergence_threshold")
    validate_positive(local_search_radius, "local_search_radius")
    if random_seed is not None and (isinstance(random_seed, bool) or not isinstance(random_seed, int)):
        msg = f"random_seed must be an integer or None, got {random_seed!r}"
        raise ConfigurationError(msg)


@dataclass
class GASettings:
    """Genetic Algorithm configuration.

    Attributes:
        population_size: Number of individuals, fixed for the whole run.
        maximum_generations: Number of generations before the caller stops.
        selection_method: How parents are drawn from the survivors.
        convergence_threshold: Relative gene spread below which the top
            survivors count as converged.
        search_method: Uniform initialization or scatter around the seed.
        local_search_radius: Standard deviation of the local-search scatter.
        selection_rate: Fraction of the population surviving each generation.
        crossover_rate: Per-gene probability of swapping the blend between
            the two children of a couple.
        mutation_rate: Per-gene probability of a uniform redraw.
        sharing_radius: Niche radius for fitness sharing (not used by
            selection).
        random_seed: Seed of the run's generator (None = global generator).
    """

    population_size: int = 20
    maximum_generations: int = 5
    selection_method: SelectionMethod = SelectionMethod.ROULETTE_WHEEL
    convergence_threshold: float = 0.01
    search_method: SearchMethod = SearchMethod.GLOBAL_SEARCH_UNIFORM_SELECTION
    local_search_radius: float = 0.1

    # Evolution operators
    selection_rate: float = 0.5
    crossover_rate: float = 0.5
    mutation_rate: float = 0.1
    sharing_radius: float = 0.1

    random_seed: int | None = None

    def __post_init__(self) -> None:
        """Validate settings."""
        if isinstance(self.selection_method, str):
            self.selection_method = SelectionMethod.from_string(self.selection_method)
        if isinstance(self.search_method, str):
            self.search_method = SearchMethod.from_string(self.search_method)

        validate_positive_int(self.population_size, "population_size")
        validate_positive_int(self.maximum_generations, "maximum_generations")
        validate_probability(self.selection_rate, "selection_rate")
        validate_probability(self.crossover_rate, "crossover_rate")
        validate_probability(self.mutation_rate, "mutation_rate")
        validate_positive(self.sharing_radius, "sharing_radius")
        _validate_common(self.convergence_threshold, self.local_search_radius, self.random_seed)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "population_size": self.population_size,
            "maximum_generations": self.maximum_generations,
            "selection_method": self.selection_method.value,
            "convergence_threshold": self.convergence_threshold,
            "search_method": self.search_method.value,
            "local_search_radius": self.local_search_radius,
            "selection_rate": self.selection_rate,
            "crossover_rate": self.crossover_rate,
            "mutation_rate": self.mutation_rate,
            "sharing_radius": self.sharing_radius,
            "random_seed": self.random_seed,
        }


@dataclass
class PSOSettings:
    """Particle Swarm Optimization configuration.

    Attributes:
        swarm_size: Number of particles, fixed for the whole run.
        maximum_steps: Number of steps before the caller stops.
        vmax: Scale of the initial Gaussian velocities.
        inertia: Weight of the previous velocity (w).
        cognitive_coefficient: Personal best attraction (c1).
        social_coefficient: Global best attraction (c2).
        convergence_threshold: Relative position spread below which the top
            particles count as converged.
        search_method: Uniform initialization or scatter around the seed.
        local_search_radius: Standard deviation of the local-search scatter.
        random_seed: Seed of the run's generator (None = global generator).
    """

    swarm_size: int = 20
    maximum_steps: int = 5
    vmax: float = 0.01
    inertia: float = 0.8
    cognitive_coefficient: float = 0.1
    social_coefficient: float = 0.1
    convergence_threshold: float = 0.01
    search_method: SearchMethod = SearchMethod.GLOBAL_SEARCH_UNIFORM_SELECTION
    local_search_radius: float = 0.1
    random_seed: int | None = None

    def __post_init__(self) -> None:
        """Validate settings."""
        if isinstance(self.search_method, str):
            self.search_method = SearchMethod.from_string(self.search_method)

        validate_positive_int(self.swarm_size, "swarm_size")
        validate_positive_int(self.maximum_steps, "maximum_steps")
        validate_non_negative(self.vmax, "vmax")
        validate_non_negative(self.inertia, "inertia")
        validate_non_negative(self.cognitive_coefficient, "cognitive_coefficient")
        validate_non_negative(self.social_coefficient, "social_coefficient")
        _validate_common(self.convergence_threshold, self.local_search_radius, self.random_seed)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "swarm_size": self.swarm_size,
            "maximum_steps": self.maximum_steps,
            "vmax": self.vmax,
            "inertia": self.inertia,
            "cognitive_coefficient": self.cognitive_coefficient,
            "social_coefficient": self.social_coefficient,
            "convergence_threshold": self.convergence_threshold,
            "search_method": self.search_method.value,
            "local_search_radius": self.local_search_radius,
            "random_seed": self.random_seed,
        }


@dataclass
class EvolutionConfig:
    """Run configuration: the strategy plus both strategies' settings.

    Only the settings of the selected ``method`` are used by a run; the other
    block is kept so that a host can switch strategies without losing edits.

    Attributes:
        method: GA or PSO.
        ga: Genetic Algorithm settings.
        pso: Particle Swarm Optimization settings.
        verbose: Log generation summaries at INFO level.
    """

    method: EvolutionMethod = EvolutionMethod.GENETIC_ALGORITHM
    ga: GASettings = field(default_factory=GASettings)
    pso: PSOSettings = field(default_factory=PSOSettings)
    verbose: bool = True

    def __post_init__(self) -> None:
        """Convert nested dicts and enum strings."""
        if isinstance(self.method, str):
            self.method = EvolutionMethod.from_string(self.method)
        if isinstance(self.ga, dict):
            self.ga = GASettings(**self.ga)
        if isinstance(self.pso, dict):
            self.pso = PSOSettings(**self.pso)

    @property
    def is_genetic(self) -> bool:
        return self.method == EvolutionMethod.GENETIC_ALGORITHM

    @property
    def size(self) -> int:
        """Population or swarm size of the selected strategy."""
        return self.ga.population_size if self.is_genetic else self.pso.swarm_size

    @property
    def maximum_generations(self) -> int:
        """Maximum generations (GA) or steps (PSO) of the selected strategy."""
        return self.ga.maximum_generations if self.is_genetic else self.pso.maximum_steps

    @property
    def convergence_threshold(self) -> float:
        return self.ga.convergence_threshold if self.is_genetic else self.pso.convergence_threshold

    @property
    def search_method(self) -> SearchMethod:
        return self.ga.search_method if self.is_genetic else self.pso.search_method

    @property
    def local_search_radius(self) -> float:
        return self.ga.local_search_radius if self.is_genetic else self.pso.local_search_radius

    @property
    def random_seed(self) -> int | None:
        return self.ga.random_seed if self.is_genetic else self.pso.random_seed

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "method": self.method.value,
            "ga": self.ga.to_dict(),
            "pso": self.pso.to_dict(),
            "verbose": self.verbose,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvolutionConfig:
        """Create configuration from dictionary."""
        data = dict(data)
        if "ga" in data and isinstance(data["ga"], dict):
            data["ga"] = GASettings(**data["ga"])
        if "pso" in data and isinstance(data["pso"], dict):
            data["pso"] = PSOSettings(**data["pso"])
        return cls(**data)

    def copy(self) -> EvolutionConfig:
        """Create a deep copy of configuration."""
        return EvolutionConfig.from_dict(self.to_dict())

    def with_updates(self, **kwargs: Any) -> EvolutionConfig:
        """Create copy with updated values.

        Args:
            **kwargs: Values to update.

        Returns:
            New EvolutionConfig with updates.
        """
        data = self.to_dict()
        data.update(kwargs)
        return EvolutionConfig.from_dict(data)
