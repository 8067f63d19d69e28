from __future__ import annotations

import pytest

from solar_evolution.optimization_config import (
    EvolutionConfig,
    EvolutionMethod,
    GASettings,
    PSOSettings,
    SearchMethod,
    SelectionMethod,
)
from solar_evolution.utils.common import ConfigurationError


def test_ga_defaults() -> None:
    settings = GASettings()

    assert settings.selection_rate == 0.5
    assert settings.crossover_rate == 0.5
    assert settings.mutation_rate == 0.1
    assert settings.selection_method == SelectionMethod.ROULETTE_WHEEL
    assert settings.search_method == SearchMethod.GLOBAL_SEARCH_UNIFORM_SELECTION


def test_pso_defaults() -> None:
    settings = PSOSettings()

    assert settings.vmax == 0.01
    assert settings.inertia == 0.8
    assert settings.cognitive_coefficient == 0.1
    assert settings.social_coefficient == 0.1


def test_enum_strings_are_coerced() -> None:
    settings = GASettings(selection_method="tournament", search_method="local")

    assert settings.selection_method == SelectionMethod.TOURNAMENT
    assert settings.search_method == SearchMethod.LOCAL_SEARCH_RANDOM_OPTIMIZATION
    assert EvolutionConfig(method="pso").method == EvolutionMethod.PARTICLE_SWARM_OPTIMIZATION


@pytest.mark.parametrize(
    "kwargs",
    [
        {"population_size": 0},
        {"population_size": -3},
        {"maximum_generations": 0},
        {"crossover_rate": 1.5},
        {"mutation_rate": -0.1},
        {"selection_rate": 2.0},
        {"convergence_threshold": -0.01},
        {"local_search_radius": 0.0},
        {"selection_method": "lottery"},
        {"random_seed": 1.5},
    ],
)
def test_invalid_ga_settings(kwargs: dict) -> None:
    with pytest.raises(ConfigurationError):
        GASettings(**kwargs)


@pytest.mark.parametrize(
    "kwargs",
    [{"swarm_size": 0}, {"maximum_steps": -1}, {"vmax": -0.1}, {"inertia": -1.0}],
)
def test_invalid_pso_settings(kwargs: dict) -> None:
    with pytest.raises(ConfigurationError):
        PSOSettings(**kwargs)


def test_configuration_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        GASettings(population_size=0)


def test_size_follows_selected_method() -> None:
    config = EvolutionConfig(ga=GASettings(population_size=12, maximum_generations=3))

    assert config.size == 12
    assert config.maximum_generations == 3

    pso = config.with_updates(method="pso", pso={"swarm_size": 7, "maximum_steps": 9})
    assert pso.method == EvolutionMethod.PARTICLE_SWARM_OPTIMIZATION
    assert pso.size == 7
    assert pso.maximum_generations == 9
    assert config.method == EvolutionMethod.GENETIC_ALGORITHM


def test_dict_round_trip() -> None:
    config = EvolutionConfig(
        method=EvolutionMethod.PARTICLE_SWARM_OPTIMIZATION,
        ga=GASettings(selection_method=SelectionMethod.RANK, random_seed=3),
        pso=PSOSettings(inertia=0.5),
        verbose=False,
    )

    assert EvolutionConfig.from_dict(config.to_dict()) == config
    assert config.copy() == config
