from __future__ import annotations

import numpy as np
import pytest

from solar_evolution.optimization_config import PSOSettings, SearchMethod
from solar_evolution.particle_swarm import ParticleSwarmStrategy, Swarm
from solar_evolution.utils.common import UnevaluatedFitnessError


def _swarm(size: int = 4, dims: int = 2, vmax: float = 0.01, **kwargs) -> Swarm:
    return Swarm.create(size, dims, vmax, rng=np.random.default_rng(1), **kwargs)


def test_create_initial_state() -> None:
    swarm = _swarm(size=5, dims=3)

    assert swarm.positions.shape == (5, 3)
    assert np.all((swarm.positions >= 0.0) & (swarm.positions < 1.0))
    np.testing.assert_array_equal(swarm.personal_best_positions, swarm.positions)
    assert np.all(np.isneginf(swarm.personal_best_fitness))
    assert np.all(np.isnan(swarm.fitness))
    assert swarm.global_best_fitness == -np.inf


def test_zero_vmax_gives_resting_particles() -> None:
    swarm = _swarm(vmax=0.0)

    assert np.all(swarm.velocities == 0.0)


def test_mismatched_shapes_are_rejected() -> None:
    with pytest.raises(ValueError):
        Swarm(
            positions=np.zeros((3, 2)),
            velocities=np.zeros((3, 1)),
            personal_best_positions=np.zeros((3, 2)),
            personal_best_fitness=np.zeros(3),
            fitness=np.zeros(3),
            global_best_position=np.zeros(2),
        )


def test_get_particle_checks_index() -> None:
    swarm = _swarm()

    assert swarm.get_particle(0).personal_best_fitness == -np.inf
    with pytest.raises(IndexError):
        swarm.get_particle(4)


def test_personal_best_only_improves() -> None:
    swarm = _swarm()
    start = swarm.positions[0].copy()

    assert swarm.set_fitness(0, 1.0)
    swarm.positions[0] = [2.0, 2.0]
    assert not swarm.set_fitness(0, 0.5)
    assert swarm.personal_best_fitness[0] == 1.0
    np.testing.assert_array_equal(swarm.personal_best_positions[0], start)

    assert swarm.set_fitness(0, 3.0)
    np.testing.assert_array_equal(swarm.personal_best_positions[0], [2.0, 2.0])


def test_set_fitness_rejects_nan() -> None:
    with pytest.raises(UnevaluatedFitnessError):
        _swarm().set_fitness(0, float("nan"))


def test_global_best_only_improves() -> None:
    swarm = _swarm()
    for i, f in enumerate([1.0, 4.0, 2.0, 3.0]):
        swarm.set_fitness(i, f)
    swarm.sort()

    np.testing.assert_array_equal(swarm.fitness, [4.0, 3.0, 2.0, 1.0])
    assert swarm.update_global_best()
    best_position = swarm.global_best_position.copy()

    swarm.reset_fitness()
    for i in range(4):
        swarm.set_fitness(i, 0.0)
    swarm.sort()

    assert not swarm.update_global_best()
    assert swarm.global_best_fitness == 4.0
    np.testing.assert_array_equal(swarm.global_best_position, best_position)


def test_sort_requires_every_fitness() -> None:
    swarm = _swarm()
    swarm.set_fitness(0, 1.0)

    with pytest.raises(UnevaluatedFitnessError):
        swarm.sort()


def test_move_does_not_clamp_positions() -> None:
    swarm = _swarm(size=3, vmax=0.0, inertia=1.0, cognitive_coefficient=0.0, social_coefficient=0.0)
    swarm.positions[:] = 0.99
    swarm.velocities[:] = 0.5

    swarm.move()

    np.testing.assert_allclose(swarm.positions, 1.49)


def test_move_pulls_towards_global_best() -> None:
    swarm = _swarm(size=6, vmax=0.0, inertia=0.0, cognitive_coefficient=0.0, social_coefficient=1.0)
    swarm.global_best_position = np.array([0.5, 0.5])
    before = np.abs(swarm.positions - 0.5)

    swarm.move()

    assert np.all(np.abs(swarm.positions - 0.5) <= before + 1e-12)


def test_nominal_convergence() -> None:
    swarm = _swarm(size=4)
    swarm.positions[:] = 0.5
    assert swarm.is_nominally_converged(0.0, top=2)

    swarm.positions = np.array([[0.1, 0.1], [0.9, 0.9], [0.5, 0.5], [0.3, 0.3]])
    assert not swarm.is_nominally_converged(0.01, top=2)
    assert swarm.is_nominally_converged(0.01, top=5)

    with pytest.raises(ValueError):
        swarm.is_nominally_converged(0.01, top=0)


def test_seed_local_scatters_around_the_design() -> None:
    swarm = _swarm(size=10)

    swarm.seed(np.array([0.5, 0.5]), SearchMethod.LOCAL_SEARCH_RANDOM_OPTIMIZATION, 0.05)

    np.testing.assert_array_equal(swarm.positions[0], [0.5, 0.5])
    assert np.all((swarm.positions >= 0.0) & (swarm.positions < 1.0))
    np.testing.assert_array_equal(swarm.personal_best_positions, swarm.positions)


def _strategy(size: int = 4, **settings) -> ParticleSwarmStrategy:
    return ParticleSwarmStrategy(PSOSettings(swarm_size=size, **settings), 2, np.random.default_rng(2))


def test_strategy_ignores_constraints() -> None:
    strategy = _strategy(convergence_threshold=0.0)
    for i in range(4):
        strategy.record(i, float(i))

    outcome = strategy.end_generation(lambda vector: True)

    assert not outcome.rolled_back
    assert outcome.fittest.fitness == 3.0
    assert np.all(np.isnan(strategy.swarm.fitness))


def test_fittest_includes_particles_in_flight() -> None:
    strategy = _strategy(convergence_threshold=0.0)
    assert strategy.fittest() is None

    for i in range(4):
        strategy.record(i, float(i))
    strategy.end_generation(lambda vector: False)
    assert strategy.fittest().fitness == 3.0

    strategy.record(0, 10.0)
    assert strategy.fittest().fitness == 10.0


def test_convergence_stops_the_swarm() -> None:
    strategy = _strategy()
    strategy.swarm.positions[:] = 0.5
    for i in range(4):
        strategy.record(i, 1.0)

    outcome = strategy.end_generation(lambda vector: False)

    assert outcome.converged
    np.testing.assert_array_equal(strategy.swarm.positions, np.full((4, 2), 0.5))


@pytest.mark.parametrize(("size", "top"), [(4, 2), (8, 2), (10, 3), (12, 3), (13, 4)])
def test_convergence_checks_a_quarter_of_the_swarm_rounded_up(size: int, top: int) -> None:
    assert _strategy(size=size).convergence_top == top
