from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .optimization_config import GASettings, SearchMethod, SelectionMethod
from .results import AgentRecord, GenerationOutcome
from .utils.common import (
    UNEVALUATED,
    UnevaluatedFitnessError,
    check_fitness,
    compare_fitness,
    is_unevaluated,
)
from .utils.utils import euclidean_distance, gaussian_around, rank_array, within_relative_spread

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)


@dataclass
class Individual:
    """One candidate of the Genetic Algorithm.

    Attributes:
        genes: Coordinates in [0, 1), one per dimension.
        fitness: Reported fitness, NaN until evaluated in the current generation.
    """

    genes: NDArray[np.float64]
    fitness: float = field(default=UNEVALUATED)

    def __post_init__(self) -> None:
        self.genes = np.array(self.genes, dtype=np.float64, copy=True)

    @property
    def chromosome_length(self) -> int:
        return len(self.genes)

    @property
    def is_evaluated(self) -> bool:
        return not is_unevaluated(self.fitness)

    def compare(self, other: Individual) -> int:
        """Compare fitness with another individual.

        Raises:
            UnevaluatedFitnessError: If either individual is unevaluated.
        """
        return compare_fitness(self.fitness, other.fitness)

    def distance(self, other: Individual) -> float:
        return euclidean_distance(self.genes, other.genes)

    def to_record(self) -> AgentRecord:
        return AgentRecord(vector=self.genes, fitness=self.fitness)


@dataclass
class Parents:
    dad: Individual
    mom: Individual


class SelectionStrategy(ABC):
    """Draws a pair of distinct parents from the survivors of a generation.

    Survivors are sorted by descending fitness and there are at least two.
    """

    @abstractmethod
    def select_parents(
        self,
        survivors: Sequence[Individual],
        lowest_fitness: float,
        rng: np.random.Generator,
    ) -> Parents:
        """Select a dad and a mom.

        Args:
            survivors: Fittest individuals, best first.
            lowest_fitness: Fitness of the best individual that did not survive.
            rng: Random generator.

        Returns:
            The selected parents.
        """

    @staticmethod
    def _pick_by_weight(weights: NDArray, rng: np.random.Generator, exclude: int | None = None) -> int:
        weights = np.asarray(weights, dtype=np.float64).copy()
        if exclude is not None:
            weights[exclude] = 0.0
        total = weights.sum()
        if total <= 0.0:
            candidates = [i for i in range(len(weights)) if i != exclude]
            return int(rng.choice(candidates))
        return int(rng.choice(len(weights), p=weights / total))


class RouletteWheelSelection(SelectionStrategy):
    """Fitness-proportionate selection.

    Each survivor's slice of the wheel is its fitness minus the fitness of
    the best non-survivor, so selection works for negative fitness values.
    A wheel with no area falls back to a uniform draw.
    """

    def select_parents(
        self,
        survivors: Sequence[Individual],
        lowest_fitness: float,
        rng: np.random.Generator,
    ) -> Parents:
        weights = np.array([max(s.fitness - lowest_fitness, 0.0) for s in survivors])
        d = self._pick_by_weight(weights, rng)
        m = self._pick_by_weight(weights, rng, exclude=d)
        return Parents(survivors[d], survivors[m])

    def __repr__(self) -> str:
        return "RouletteWheelSelection()"


class TournamentSelection(SelectionStrategy):
    """Binary tournament: the fitter of two distinct random survivors wins.

    The mom's tournament is held among the survivors other than the dad.
    """

    def _tournament(self, pool: list[int], survivors: Sequence[Individual], rng: np.random.Generator) -> int:
        if len(pool) == 1:
            return pool[0]
        i, j = rng.choice(pool, size=2, replace=False)
        return int(i) if survivors[i].compare(survivors[j]) > 0 else int(j)

    def select_parents(
        self,
        survivors: Sequence[Individual],
        lowest_fitness: float,
        rng: np.random.Generator,
    ) -> Parents:
        pool = list(range(len(survivors)))
        d = self._tournament(pool, survivors, rng)
        m = self._tournament([i for i in pool if i != d], survivors, rng)
        return Parents(survivors[d], survivors[m])

    def __repr__(self) -> str:
        return "TournamentSelection()"


class RankSelection(SelectionStrategy):
    """Linear ranking: selection probability proportional to fitness rank.

    Ties share the average rank, computed with ``scipy.stats.rankdata``.
    """

    def select_parents(
        self,
        survivors: Sequence[Individual],
        lowest_fitness: float,
        rng: np.random.Generator,
    ) -> Parents:
        ranks = rank_array(np.array([s.fitness for s in survivors]))
        d = self._pick_by_weight(ranks, rng)
        m = self._pick_by_weight(ranks, rng, exclude=d)
        return Parents(survivors[d], survivors[m])

    def __repr__(self) -> str:
        return "RankSelection()"


def create_selection_strategy(method: SelectionMethod | str) -> SelectionStrategy:
    """Create a selection strategy.

    Args:
        method: Selection method or its string name.

    Returns:
        SelectionStrategy instance.
    """
    if isinstance(method, str):
        method = SelectionMethod.from_string(method)

    if method == SelectionMethod.TOURNAMENT:
        return TournamentSelection()
    if method == SelectionMethod.RANK:
        return RankSelection()
    return RouletteWheelSelection()


class Population:
    """Fixed-size population of a real-valued Genetic Algorithm.

    Holds the individuals of the generation in flight plus one checkpoint of
    the genes of the previous generation, used to roll back an evolved
    generation that violates a constraint.
    """

    def __init__(
        self,
        population_size: int,
        chromosome_length: int,
        selection_method: SelectionMethod | str = SelectionMethod.ROULETTE_WHEEL,
        rng: np.random.Generator | None = None,
    ) -> None:
        """Initialize a population with uniformly drawn genes.

        Args:
            population_size: Number of individuals.
            chromosome_length: Genes per individual.
            selection_method: Parent selection strategy.
            rng: Random generator (a fresh one when omitted).
        """
        self.rng = rng if rng is not None else np.random.default_rng()
        self.selection = create_selection_strategy(selection_method)
        self.individuals = [
            Individual(self.rng.random(chromosome_length)) for _ in range(population_size)
        ]
        self.saved_generation = [ind.genes.copy() for ind in self.individuals]
        self.survivors: list[Individual] = []

    @property
    def size(self) -> int:
        return len(self.individuals)

    @property
    def chromosome_length(self) -> int:
        return self.individuals[0].chromosome_length

    def __len__(self) -> int:
        return len(self.individuals)

    def __getitem__(self, index: int) -> Individual:
        return self.individuals[index]

    def seed(
        self,
        first_born: NDArray | None,
        search_method: SearchMethod,
        local_search_radius: float,
    ) -> None:
        """Place the first-born on the caller's design and, for local search,
        scatter everyone else around it."""
        if first_born is None:
            if search_method == SearchMethod.LOCAL_SEARCH_RANDOM_OPTIMIZATION:
                logger.warning("Local search requested without a seed design, using uniform genes")
            return
        first_born = np.asarray(first_born, dtype=np.float64)
        self.individuals[0].genes = first_born.copy()
        if search_method == SearchMethod.LOCAL_SEARCH_RANDOM_OPTIMIZATION:
            for ind in self.individuals[1:]:
                ind.genes = gaussian_around(first_born, local_search_radius, self.rng)

    def set_fitness(self, index: int, fitness: float) -> None:
        if not 0 <= index < self.size:
            msg = f"Individual index {index} out of range for population of {self.size}"
            raise IndexError(msg)
        self.individuals[index].fitness = check_fitness(fitness)

    def reset_fitness(self) -> None:
        """Mark every individual as not yet evaluated."""
        for ind in self.individuals:
            ind.fitness = UNEVALUATED

    def sort(self) -> None:
        """Sort individuals by descending fitness.

        Raises:
            UnevaluatedFitnessError: If any individual is unevaluated.
        """
        missing = [i for i, ind in enumerate(self.individuals) if not ind.is_evaluated]
        if missing:
            msg = f"Cannot rank a population with unevaluated individuals {missing}"
            raise UnevaluatedFitnessError(msg)
        self.individuals.sort(key=lambda ind: ind.fitness, reverse=True)

    def get_fittest(self) -> Individual | None:
        """Return the fittest evaluated individual, or None if none is evaluated."""
        best: Individual | None = None
        for ind in self.individuals:
            if not ind.is_evaluated:
                continue
            if best is None or ind.fitness > best.fitness:
                best = ind
        return best

    def save_genes(self) -> None:
        self.saved_generation = [ind.genes.copy() for ind in self.individuals]

    def restore_genes(self) -> None:
        for ind, genes in zip(self.individuals, self.saved_generation):
            ind.genes = genes.copy()

    def evolve(self, selection_rate: float, crossover_rate: float) -> None:
        """Produce the next generation in place by selection and crossover."""
        self.select_survivors(selection_rate)
        self.crossover(crossover_rate)

    def select_survivors(self, selection_rate: float) -> None:
        """Keep the fittest ``floor(selection_rate * size)`` individuals."""
        self.sort()
        count = math.floor(selection_rate * self.size)
        self.survivors = self.individuals[:count]

    def crossover(self, crossover_rate: float) -> None:
        """Refill the non-surviving slots with children of the survivors.

        Each couple has two children blended with a random ``beta``; with
        probability ``crossover_rate`` per gene the blend is swapped between
        them. Fewer than two survivors leaves the population unchanged.
        """
        n_survivors = len(self.survivors)
        if n_survivors <= 1 or n_survivors >= self.size:
            return

        lowest_fitness = self.individuals[n_survivors].fitness
        child_index = n_survivors
        while child_index < self.size:
            parents = self.selection.select_parents(self.survivors, lowest_fitness, self.rng)
            dad, mom = parents.dad.genes, parents.mom.genes
            beta = self.rng.random()
            swap = self.rng.random(len(dad)) < crossover_rate
            a = beta * dad + (1.0 - beta) * mom
            b = beta * mom + (1.0 - beta) * dad
            child1 = np.where(swap, a, b)
            child2 = np.where(swap, b, a)
            self.individuals[child_index] = Individual(child1)
            if child_index + 1 < self.size:
                self.individuals[child_index + 1] = Individual(child2)
            child_index += 2

    def mutate(self, mutation_rate: float) -> int:
        """Redraw each gene uniformly with probability ``mutation_rate``.

        The top-ranked individual is never mutated.

        Returns:
            Number of mutated genes.
        """
        if mutation_rate <= 0.0:
            return 0
        mutated = 0
        for ind in self.individuals[1:]:
            mask = self.rng.random(ind.chromosome_length) < mutation_rate
            n = int(mask.sum())
            if n:
                ind.genes[mask] = self.rng.random(n)
                mutated += n
        return mutated

    def is_nominally_converged(self, threshold: float) -> bool:
        """Check whether the top half of the survivors agree on every gene.

        Uses the fittest ``max(2, survivors // 2)`` survivors; fewer than two
        survivors counts as converged.
        """
        n_survivors = len(self.survivors)
        if n_survivors < 2:
            return True
        top = max(2, n_survivors // 2)
        genes = np.array([s.genes for s in self.survivors[:top]])
        return within_relative_spread(genes, threshold)

    def niche_count(self, selected: Individual, sigma: float) -> float:
        """Fitness-sharing niche count of ``selected`` with kernel ``1 - r / sigma``."""
        count = 0.0
        for ind in self.individuals:
            r = selected.distance(ind)
            if r < sigma:
                count += 1.0 - r / sigma
        return count

    def genes_matrix(self) -> NDArray[np.float64]:
        return np.array([ind.genes for ind in self.individuals])

    def __repr__(self) -> str:
        return f"Population(size={self.size}, chromosome_length={self.chromosome_length}, selection={self.selection!r})"


class GeneticStrategy:
    """Genetic Algorithm behind the optimizer's step contract."""

    def __init__(self, settings: GASettings, dimension_count: int, rng: np.random.Generator) -> None:
        self.settings = settings
        self.population = Population(
            settings.population_size,
            dimension_count,
            settings.selection_method,
            rng=rng,
        )

    @property
    def size(self) -> int:
        return self.population.size

    def seed(self, first_agent: NDArray | None) -> None:
        self.population.seed(first_agent, self.settings.search_method, self.settings.local_search_radius)

    def vector(self, index: int) -> NDArray[np.float64]:
        return self.population[index].genes.copy()

    def record(self, index: int, fitness: float) -> AgentRecord:
        self.population.set_fitness(index, fitness)
        return self.population[index].to_record()

    def fittest(self) -> AgentRecord | None:
        best = self.population.get_fittest()
        return None if best is None else best.to_record()

    def end_generation(self, violates: Callable[[NDArray], bool]) -> GenerationOutcome:
        """Evolve the fully evaluated generation into the next one.

        Args:
            violates: Returns True when a gene vector breaks a constraint.
        """
        population = self.population
        population.save_genes()
        population.evolve(self.settings.selection_rate, self.settings.crossover_rate)
        outcome = GenerationOutcome(fittest=population[0].to_record())

        if any(violates(ind.genes) for ind in population.individuals):
            population.restore_genes()
            outcome.rolled_back = True
        elif population.is_nominally_converged(self.settings.convergence_threshold):
            outcome.converged = True
        elif self.settings.search_method == SearchMethod.GLOBAL_SEARCH_UNIFORM_SELECTION:
            population.mutate(self.settings.mutation_rate)

        population.reset_fitness()
        return outcome

    def reset_fitness(self) -> None:
        self.population.reset_fitness()
