"""Stepwise population optimizer.

The optimizer never computes fitness itself. A caller translates one agent
into design parameters, runs its own (possibly multi-frame) simulation and
reports the fitness back; the optimizer advances one evaluation at a time.
Both strategies, Genetic Algorithm and Particle Swarm Optimization, share
this contract and are selected by ``EvolutionConfig.method``.

Example:
    >>> from solar_evolution.optimizer import EvolutionaryOptimizer, run_evolution
    >>> from solar_evolution.problems import VectorEncoding
    >>>
    >>> optimizer = EvolutionaryOptimizer(VectorEncoding.from_bounds([0.0], [1.0]))
    >>> schedule = run_evolution(optimizer, lambda x: -(x[0] - 0.7) ** 2)
    >>> best = optimizer.apply_fittest()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Protocol

import numpy as np
from numpy.typing import NDArray

from .genetic_algorithm import GeneticStrategy
from .optimization_config import EvolutionConfig, EvolutionMethod
from .particle_swarm import ParticleSwarmStrategy
from .problems import VectorEncoding
from .utils.common import ConfigurationError, check_fitness
from .utils.utils import make_rng

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .parameter_space.parameter_space import ParameterSpace
    from .problems import ProblemEncoding
    from .results import AgentRecord, GenerationOutcome

logger = logging.getLogger(__name__)


class EvolutionStrategy(Protocol):
    """Protocol for the population mechanics behind the optimizer."""

    @property
    def size(self) -> int: ...

    def seed(self, first_agent: NDArray | None) -> None: ...

    def vector(self, index: int) -> NDArray[np.float64]: ...

    def record(self, index: int, fitness: float) -> AgentRecord: ...

    def fittest(self) -> AgentRecord | None: ...

    def end_generation(self, violates: Callable[[NDArray], bool]) -> GenerationOutcome: ...

    def reset_fitness(self) -> None: ...


def create_strategy(
    config: EvolutionConfig,
    dimension_count: int,
    rng: np.random.Generator,
) -> EvolutionStrategy:
    """Create the strategy selected by ``config.method``.

    Args:
        config: Run configuration.
        dimension_count: Dimensions of the search space.
        rng: Random generator owned by the run.

    Returns:
        GeneticStrategy or ParticleSwarmStrategy instance.
    """
    if config.method == EvolutionMethod.PARTICLE_SWARM_OPTIMIZATION:
        return ParticleSwarmStrategy(config.pso, dimension_count, rng)
    return GeneticStrategy(config.ga, dimension_count, rng)


@dataclass(frozen=True)
class EvolutionSchedule:
    """Caller-owned scheduling state of a run.

    Attributes:
        evaluation_index: Evaluations completed so far; the next agent to
            evaluate is ``evaluation_index % size``.
        running: False once the run has terminated.
        paused: True while the caller holds the run.
    """

    evaluation_index: int = 0
    running: bool = True
    paused: bool = False

    def agent_index(self, size: int) -> int:
        return self.evaluation_index % size

    def pause(self) -> EvolutionSchedule:
        return replace(self, paused=True)

    def resume(self) -> EvolutionSchedule:
        return replace(self, paused=False)


class EvolutionaryOptimizer:
    """Generic optimizer engine parameterized by a problem encoding.

    History is kept in two series of length ``maximum_generations + 1``:
    ``fittest_of_generations`` (index 0 is the first agent ever evaluated,
    index ``g + 1`` the fittest of generation ``g``) and
    ``population_of_generations`` (every agent of generation ``g`` as it was
    evaluated).

    Example:
        >>> optimizer = EvolutionaryOptimizer(encoding, config, existing_design)
        >>> optimizer.start_evolving()
        >>> params = optimizer.translate(0)
        >>> converged = optimizer.record_fitness(0, simulate(params))
    """

    def __init__(
        self,
        encoding: ProblemEncoding,
        config: EvolutionConfig | None = None,
        existing_design: Any = None,
        constraints: Sequence[Callable[[Any], bool]] = (),
    ) -> None:
        """Initialize optimizer.

        Args:
            encoding: Problem encoding owning the parameter space.
            config: Run configuration.
            existing_design: Current design used to seed the first agent.
            constraints: Predicates over decoded parameters, True when
                satisfied. Only the Genetic Algorithm consults them.

        Raises:
            ConfigurationError: If the encoding's dimensionality is invalid.
        """
        self.encoding = encoding
        self.config = config or EvolutionConfig()
        self.constraints = list(constraints)

        dimension_count = encoding.dimension_count
        if dimension_count <= 0:
            msg = f"dimension_count must be positive, got {dimension_count}"
            raise ConfigurationError(msg)
        if encoding.space.n_dims != dimension_count:
            msg = f"Encoding declares {dimension_count} dimensions but its space has {encoding.space.n_dims}"
            raise ConfigurationError(msg)

        self.rng = make_rng(self.config.random_seed)
        self.strategy = create_strategy(self.config, dimension_count, self.rng)
        self.strategy.seed(encoding.seed_first_agent(existing_design))

        self._started = False
        self._reset_state()

        if self.config.verbose:
            logger.info(
                "Created %s optimizer: size=%d, dimensions=%d, maximum=%d",
                self.config.method.name,
                self.size,
                dimension_count,
                self.config.maximum_generations,
            )

    @classmethod
    def from_bounds(
        cls,
        minima: Sequence[float],
        maxima: Sequence[float],
        config: EvolutionConfig | None = None,
        existing_design: Sequence[float] | None = None,
        discretization: Sequence[bool] | None = None,
    ) -> EvolutionaryOptimizer:
        """Create an optimizer over plain bounds, decoding to numpy vectors."""
        encoding = VectorEncoding.from_bounds(minima, maxima, discretization=discretization)
        return cls(encoding, config, existing_design)

    @property
    def size(self) -> int:
        return self.strategy.size

    @property
    def space(self) -> ParameterSpace:
        return self.encoding.space

    def _reset_state(self) -> None:
        maximum = self.config.maximum_generations
        self.evaluation_count = 0
        self.observed_generation = 0
        self.converged = False
        self.fittest_of_generations: list[AgentRecord | None] = [None] * (maximum + 1)
        self.population_of_generations: list[list[AgentRecord | None] | None] = [None] * (maximum + 1)

    def start_evolving(self) -> None:
        """Reset counters, history, the converged flag and any fitness in flight.

        The population or swarm itself is kept.
        """
        self._reset_state()
        self.strategy.reset_fitness()
        self._started = True

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.size:
            msg = f"Agent index {index} out of range for size {self.size}"
            raise IndexError(msg)

    def translate(self, index: int) -> Any:
        """Decode the parameters of agent ``index`` without changing any state."""
        self._check_index(index)
        return self.encoding.decode(index, self.strategy.vector(index))

    def translate_best(self) -> Any:
        """Decode the best-known agent, or None if nothing was evaluated."""
        best = self.best_record()
        if best is None:
            return None
        return self.encoding.decode(-1, best.vector)

    def best_record(self) -> AgentRecord | None:
        """Best agent among the history and the generation in flight of this run."""
        if self.evaluation_count == 0:
            return None
        candidates = [r for r in self.fittest_of_generations if r is not None and r.is_evaluated]
        current = self.strategy.fittest()
        if current is not None:
            candidates.append(current)
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.fitness)

    def _violates(self, vector: NDArray) -> bool:
        if not self.constraints:
            return False
        params = self.encoding.decode(-1, vector)
        return any(not constraint(params) for constraint in self.constraints)

    def record_fitness(self, index: int, fitness: float) -> bool:
        """Store the fitness of agent ``index`` and advance the run.

        When the last agent of a generation (or step) reports, the strategy
        evolves the population (or moves the swarm) and the fittest agent is
        appended to the history.

        Args:
            index: Agent that was evaluated.
            fitness: Its fitness, higher is better.

        Returns:
            Whether the run has converged. Once converged the call changes
            nothing, but its arguments are still validated.

        Raises:
            RuntimeError: If ``start_evolving`` was not called.
            IndexError: If ``index`` is out of range.
            UnevaluatedFitnessError: If ``fitness`` is NaN, or the generation
                ends with unevaluated agents.
        """
        if not self._started:
            msg = "start_evolving() must be called before recording fitness"
            raise RuntimeError(msg)
        self._check_index(index)
        check_fitness(fitness)
        if self.converged:
            return True

        size = self.size
        record = self.strategy.record(index, fitness)

        if self.evaluation_count == 0:
            self.fittest_of_generations[0] = record

        generation = self.evaluation_count // size
        if generation < len(self.population_of_generations):
            snapshot = self.population_of_generations[generation]
            if snapshot is None:
                snapshot = [None] * size
                self.population_of_generations[generation] = snapshot
            snapshot[index] = record

        logger.debug(
            "Generation %d, agent %d: %s",
            generation + 1,
            index,
            self.encoding.describe(record.vector, record.fitness),
        )

        if self.evaluation_count % size == size - 1:
            outcome = self.strategy.end_generation(self._violates)
            if generation + 1 < len(self.fittest_of_generations):
                self.fittest_of_generations[generation + 1] = outcome.fittest
            if self.config.verbose:
                if outcome.fittest is not None:
                    logger.info(
                        "Generation %d fittest: %s",
                        generation + 1,
                        self.encoding.describe(outcome.fittest.vector, outcome.fittest.fitness),
                    )
                if outcome.rolled_back:
                    logger.info("Generation %d violated a constraint, restored previous genes", generation + 1)
            if outcome.converged:
                self.converged = True
                if self.config.verbose:
                    logger.info("Converged at generation %d", generation + 1)

        self.evaluation_count += 1
        return self.converged

    def should_terminate(self) -> bool:
        """True once the observed generation counter reaches the maximum."""
        return self.observed_generation >= self.config.maximum_generations

    def apply_fittest(self) -> NDArray[np.float64] | None:
        """Expose the winning normalized vector.

        Returns:
            Copy of the best vector, or None if no agent was evaluated.
        """
        best = self.best_record()
        if best is None:
            logger.debug("No agent evaluated yet, nothing to apply")
            return None
        if self.config.verbose:
            logger.info("Fittest: %s", self.encoding.describe(best.vector, best.fitness))
        return best.vector.copy()

    def step(self, schedule: EvolutionSchedule, fitness: float) -> EvolutionSchedule:
        """Report the fitness of the agent at the schedule's cursor.

        Args:
            schedule: Scheduling state before the evaluation.
            fitness: Fitness of agent ``schedule.agent_index(size)``.

        Returns:
            Scheduling state after the evaluation; ``running`` is False once
            the run converged or reached the maximum, in which case
            ``apply_fittest`` has been called.

        Raises:
            RuntimeError: If the schedule is not running or is paused.
        """
        if not schedule.running or schedule.paused:
            msg = f"Cannot step a schedule that is not running: {schedule}"
            raise RuntimeError(msg)

        converged = self.record_fitness(schedule.agent_index(self.size), fitness)
        next_index = schedule.evaluation_index + 1
        self.observed_generation = next_index // self.size

        if converged or self.should_terminate():
            self.apply_fittest()
            return replace(schedule, evaluation_index=next_index, running=False)
        return replace(schedule, evaluation_index=next_index)

    def __repr__(self) -> str:
        return (
            f"EvolutionaryOptimizer(method={self.config.method.name}, size={self.size}, "
            f"evaluations={self.evaluation_count}, converged={self.converged})"
        )


def run_evolution(
    optimizer: EvolutionaryOptimizer,
    evaluate: Callable[[Any], float],
    schedule: EvolutionSchedule | None = None,
    max_evaluations: int | None = None,
) -> EvolutionSchedule:
    """Drive the step protocol synchronously.

    Translates the agent at the cursor, evaluates it and steps, until the run
    terminates. Without a schedule a new run is started.

    Args:
        optimizer: Optimizer to drive.
        evaluate: Fitness of decoded parameters.
        schedule: Schedule to resume; a paused schedule is resumed.
        max_evaluations: Pause after this many evaluations.

    Returns:
        The final schedule, paused if ``max_evaluations`` ran out first.
    """
    if schedule is None:
        optimizer.start_evolving()
        schedule = EvolutionSchedule()
    elif schedule.paused:
        schedule = schedule.resume()

    done = 0
    while schedule.running:
        if max_evaluations is not None and done >= max_evaluations:
            return schedule.pause()
        params = optimizer.translate(schedule.agent_index(optimizer.size))
        schedule = optimizer.step(schedule, evaluate(params))
        done += 1
    return schedule
