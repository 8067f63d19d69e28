from __future__ import annotations

import numpy as np
import pytest

from solar_evolution.genetic_algorithm import (
    GeneticStrategy,
    Individual,
    Population,
    RankSelection,
    RouletteWheelSelection,
    TournamentSelection,
    create_selection_strategy,
)
from solar_evolution.optimization_config import GASettings, SearchMethod, SelectionMethod
from solar_evolution.utils.common import ConfigurationError, UnevaluatedFitnessError


def _evaluated_population(size: int = 10, dims: int = 2, seed: int = 0) -> Population:
    population = Population(size, dims, rng=np.random.default_rng(seed))
    for i in range(size):
        population.set_fitness(i, float(i))
    return population


def test_initial_genes_are_uniform_and_unevaluated() -> None:
    population = Population(8, 3, rng=np.random.default_rng(1))
    genes = population.genes_matrix()

    assert genes.shape == (8, 3)
    assert np.all((genes >= 0.0) & (genes < 1.0))
    assert not any(ind.is_evaluated for ind in population.individuals)


def test_seed_global_places_only_first_born() -> None:
    population = Population(5, 2, rng=np.random.default_rng(2))
    others = population.genes_matrix()[1:].copy()

    population.seed(np.array([0.25, 0.75]), SearchMethod.GLOBAL_SEARCH_UNIFORM_SELECTION, 0.1)

    np.testing.assert_array_equal(population[0].genes, [0.25, 0.75])
    np.testing.assert_array_equal(population.genes_matrix()[1:], others)


def test_seed_local_scatters_inside_unit_interval() -> None:
    population = Population(20, 2, rng=np.random.default_rng(3))

    population.seed(np.array([0.02, 0.98]), SearchMethod.LOCAL_SEARCH_RANDOM_OPTIMIZATION, 0.05)

    genes = population.genes_matrix()
    np.testing.assert_array_equal(genes[0], [0.02, 0.98])
    assert np.all((genes >= 0.0) & (genes < 1.0))
    assert np.all(np.abs(genes[1:] - genes[0]) < 0.5)


def test_set_fitness_rejects_nan_and_bad_index() -> None:
    population = Population(4, 1, rng=np.random.default_rng(0))

    with pytest.raises(UnevaluatedFitnessError):
        population.set_fitness(0, float("nan"))
    with pytest.raises(IndexError):
        population.set_fitness(4, 1.0)


def test_sort_requires_every_fitness() -> None:
    population = Population(4, 1, rng=np.random.default_rng(0))
    population.set_fitness(0, 1.0)

    with pytest.raises(UnevaluatedFitnessError):
        population.sort()


def test_compare_unevaluated_raises() -> None:
    with pytest.raises(UnevaluatedFitnessError):
        Individual(np.array([0.1])).compare(Individual(np.array([0.2]), fitness=1.0))


def test_evolve_keeps_survivors_and_blends_children() -> None:
    population = _evaluated_population(size=10)
    top = [population[i].genes.copy() for i in range(9, 4, -1)]

    population.evolve(selection_rate=0.5, crossover_rate=0.5)

    for k in range(5):
        np.testing.assert_array_equal(population[k].genes, top[k])
        assert population[k].fitness == 9 - k

    lo = np.min(top, axis=0) - 1e-12
    hi = np.max(top, axis=0) + 1e-12
    for child in population.individuals[5:]:
        assert not child.is_evaluated
        assert np.all(child.genes >= lo)
        assert np.all(child.genes <= hi)


@pytest.mark.parametrize("size", [6, 7])
def test_crossover_fills_every_slot(size: int) -> None:
    population = _evaluated_population(size=size)

    population.evolve(selection_rate=0.5, crossover_rate=1.0)

    assert population.size == size
    n_survivors = len(population.survivors)
    assert all(ind.is_evaluated for ind in population.individuals[:n_survivors])
    assert not any(ind.is_evaluated for ind in population.individuals[n_survivors:])


def test_single_survivor_leaves_population_unchanged() -> None:
    population = _evaluated_population(size=10)
    population.sort()
    before = population.genes_matrix()

    population.evolve(selection_rate=0.1, crossover_rate=0.5)

    np.testing.assert_array_equal(population.genes_matrix(), before)


def test_mutate_never_touches_the_top_individual() -> None:
    population = _evaluated_population(size=6, dims=3)
    before = population.genes_matrix()

    mutated = population.mutate(1.0)

    after = population.genes_matrix()
    assert mutated == 5 * 3
    np.testing.assert_array_equal(after[0], before[0])
    assert np.all(after[1:] != before[1:])


def test_mutate_with_zero_rate_is_a_no_op() -> None:
    population = _evaluated_population(size=6)
    before = population.genes_matrix()

    assert population.mutate(0.0) == 0
    np.testing.assert_array_equal(population.genes_matrix(), before)


def test_nominal_convergence() -> None:
    population = Population(4, 2, rng=np.random.default_rng(0))
    for i, ind in enumerate(population.individuals):
        ind.genes = np.array([0.5, 0.5])
        ind.fitness = float(i)
    population.select_survivors(0.5)
    assert population.is_nominally_converged(0.0)

    population[0].genes = np.array([0.2, 0.2])
    population[1].genes = np.array([0.8, 0.8])
    assert not population.is_nominally_converged(0.01)


def test_fewer_than_two_survivors_counts_as_converged() -> None:
    population = _evaluated_population(size=10)
    population.select_survivors(0.1)

    assert len(population.survivors) == 1
    assert population.is_nominally_converged(0.0)


def test_niche_count() -> None:
    population = Population(5, 2, rng=np.random.default_rng(0))
    for ind in population.individuals:
        ind.genes = np.array([0.5, 0.5])
    assert population.niche_count(population[0], 0.1) == pytest.approx(5.0)

    for ind in population.individuals[1:]:
        ind.genes = np.array([0.0, 0.0])
    population[0].genes = np.array([1.0, 1.0])
    assert population.niche_count(population[0], 0.1) == pytest.approx(1.0)


def _survivors(*fitness: float) -> list[Individual]:
    return [Individual(np.array([0.1 * (i + 1)]), fitness=f) for i, f in enumerate(fitness)]


@pytest.mark.parametrize("strategy", [RouletteWheelSelection(), TournamentSelection(), RankSelection()])
def test_parents_are_distinct(strategy) -> None:
    rng = np.random.default_rng(5)
    survivors = _survivors(3.0, 2.0, 1.0)

    for _ in range(50):
        parents = strategy.select_parents(survivors, 0.5, rng)
        assert parents.dad is not parents.mom


def test_roulette_with_flat_wheel_still_selects_two() -> None:
    rng = np.random.default_rng(6)
    survivors = _survivors(1.0, 1.0, 1.0)

    for _ in range(20):
        parents = RouletteWheelSelection().select_parents(survivors, 1.0, rng)
        assert parents.dad is not parents.mom


def test_roulette_favours_fitter_survivors() -> None:
    rng = np.random.default_rng(7)
    survivors = _survivors(10.0, 1.0)

    dads = [RouletteWheelSelection().select_parents(survivors, 0.0, rng).dad for _ in range(200)]

    assert sum(dad is survivors[0] for dad in dads) > 150


def test_binary_tournament_between_two_survivors() -> None:
    rng = np.random.default_rng(8)
    survivors = _survivors(2.0, 1.0)

    parents = TournamentSelection().select_parents(survivors, 0.0, rng)

    assert parents.dad is survivors[0]
    assert parents.mom is survivors[1]


def test_create_selection_strategy() -> None:
    assert isinstance(create_selection_strategy("rank"), RankSelection)
    assert isinstance(create_selection_strategy(SelectionMethod.TOURNAMENT), TournamentSelection)
    assert isinstance(create_selection_strategy("roulette_wheel"), RouletteWheelSelection)
    with pytest.raises(ConfigurationError):
        create_selection_strategy("lottery")


def _evaluated_strategy(size: int = 6, **settings) -> GeneticStrategy:
    strategy = GeneticStrategy(GASettings(population_size=size, **settings), 2, np.random.default_rng(9))
    for i in range(size):
        strategy.record(i, float(i))
    return strategy


def test_violating_generation_is_rolled_back() -> None:
    strategy = _evaluated_strategy()
    before = strategy.population.genes_matrix()

    outcome = strategy.end_generation(lambda genes: True)

    assert outcome.rolled_back
    assert not outcome.converged
    np.testing.assert_array_equal(strategy.population.genes_matrix(), before)
    assert not any(ind.is_evaluated for ind in strategy.population.individuals)


def test_end_generation_reports_the_fittest() -> None:
    strategy = _evaluated_strategy()
    best_genes = strategy.vector(5)

    outcome = strategy.end_generation(lambda genes: False)

    assert not outcome.rolled_back
    assert outcome.fittest.fitness == 5.0
    np.testing.assert_array_equal(outcome.fittest.vector, best_genes)
    np.testing.assert_array_equal(strategy.vector(0), best_genes)
    assert strategy.fittest() is None
