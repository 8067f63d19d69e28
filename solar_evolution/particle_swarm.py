from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from .optimization_config import PSOSettings, SearchMethod
from .results import AgentRecord, GenerationOutcome
from .utils.common import UNEVALUATED, UnevaluatedFitnessError, check_fitness
from .utils.utils import gaussian_around, within_relative_spread

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass
class Particle:
    """Read-only view of one particle of a swarm.

    Attributes:
        position: Current coordinates (may leave [0, 1) after a move).
        velocity: Current velocity.
        personal_best_position: Best coordinates this particle has visited.
        personal_best_fitness: Fitness at the personal best (-inf before any).
        fitness: Fitness of the current position, NaN until evaluated.
    """

    position: NDArray[np.float64]
    velocity: NDArray[np.float64]
    personal_best_position: NDArray[np.float64]
    personal_best_fitness: float
    fitness: float = UNEVALUATED


@dataclass
class Swarm:
    """Swarm of a Particle Swarm Optimization, stored as contiguous arrays.

    Attributes:
        positions: Float array of shape (swarm_size, n_dims).
        velocities: Float array of shape (swarm_size, n_dims).
        personal_best_positions: Float array of shape (swarm_size, n_dims).
        personal_best_fitness: Float array of shape (swarm_size,).
        fitness: Float array of shape (swarm_size,), NaN until evaluated.
        global_best_position: Best position of the swarm so far.
        global_best_fitness: Fitness at the global best (-inf before any).
        inertia: Weight of the previous velocity (w).
        cognitive_coefficient: Personal best attraction (c1).
        social_coefficient: Global best attraction (c2).
    """

    positions: NDArray[np.float64]
    velocities: NDArray[np.float64]
    personal_best_positions: NDArray[np.float64]
    personal_best_fitness: NDArray[np.float64]
    fitness: NDArray[np.float64]
    global_best_position: NDArray[np.float64]
    global_best_fitness: float = -math.inf
    inertia: float = 0.8
    cognitive_coefficient: float = 0.1
    social_coefficient: float = 0.1
    rng: np.random.Generator = field(default_factory=np.random.default_rng, repr=False)

    def __post_init__(self) -> None:
        """Validate array shapes."""
        if self.positions.ndim != 2:
            msg = f"positions must be 2D, got {self.positions.ndim}D"
            raise ValueError(msg)

        shape = self.positions.shape
        if self.velocities.shape != shape:
            msg = f"velocities shape {self.velocities.shape} must match positions {shape}"
            raise ValueError(msg)

        if self.personal_best_positions.shape != shape:
            msg = "personal_best_positions shape must match positions"
            raise ValueError(msg)

        if len(self.personal_best_fitness) != shape[0] or len(self.fitness) != shape[0]:
            msg = "fitness arrays must match swarm_size"
            raise ValueError(msg)

    @classmethod
    def create(
        cls,
        swarm_size: int,
        n_dims: int,
        vmax: float,
        inertia: float = 0.8,
        cognitive_coefficient: float = 0.1,
        social_coefficient: float = 0.1,
        rng: np.random.Generator | None = None,
    ) -> Swarm:
        """Create a swarm with uniform positions and Gaussian velocities.

        Args:
            swarm_size: Number of particles.
            n_dims: Dimensions of the search space.
            vmax: Scale of the initial velocities.
            inertia: Inertia weight.
            cognitive_coefficient: Cognitive coefficient.
            social_coefficient: Social coefficient.
            rng: Random generator (a fresh one when omitted).

        Returns:
            The new swarm.
        """
        rng = rng if rng is not None else np.random.default_rng()
        positions = rng.random((swarm_size, n_dims))
        velocities = rng.standard_normal((swarm_size, n_dims)) * vmax
        return cls(
            positions=positions,
            velocities=velocities,
            personal_best_positions=positions.copy(),
            personal_best_fitness=np.full(swarm_size, -np.inf),
            fitness=np.full(swarm_size, UNEVALUATED),
            global_best_position=positions[0].copy(),
            inertia=inertia,
            cognitive_coefficient=cognitive_coefficient,
            social_coefficient=social_coefficient,
            rng=rng,
        )

    @property
    def swarm_size(self) -> int:
        return int(self.positions.shape[0])

    @property
    def n_dims(self) -> int:
        return int(self.positions.shape[1])

    def __len__(self) -> int:
        return self.swarm_size

    def get_particle(self, index: int) -> Particle:
        """Return a copy of one particle's state."""
        self._check_index(index)
        return Particle(
            position=self.positions[index].copy(),
            velocity=self.velocities[index].copy(),
            personal_best_position=self.personal_best_positions[index].copy(),
            personal_best_fitness=float(self.personal_best_fitness[index]),
            fitness=float(self.fitness[index]),
        )

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.swarm_size:
            msg = f"Particle index {index} out of range for swarm of {self.swarm_size}"
            raise IndexError(msg)

    def seed(
        self,
        first_particle: NDArray | None,
        search_method: SearchMethod,
        local_search_radius: float,
    ) -> None:
        """Place particle 0 on the caller's design; for local search scatter
        the other particles around it."""
        if first_particle is None:
            if search_method == SearchMethod.LOCAL_SEARCH_RANDOM_OPTIMIZATION:
                logger.warning("Local search requested without a seed design, using uniform positions")
            return
        first_particle = np.asarray(first_particle, dtype=np.float64)
        self.positions[0] = first_particle
        if search_method == SearchMethod.LOCAL_SEARCH_RANDOM_OPTIMIZATION:
            for i in range(1, self.swarm_size):
                self.positions[i] = gaussian_around(first_particle, local_search_radius, self.rng)
        self.personal_best_positions = self.positions.copy()

    def set_fitness(self, index: int, fitness: float) -> bool:
        """Record a particle's fitness and update its personal best.

        Returns:
            True if the personal best improved.
        """
        self._check_index(index)
        value = check_fitness(fitness)
        self.fitness[index] = value
        if value > self.personal_best_fitness[index]:
            self.personal_best_fitness[index] = value
            self.personal_best_positions[index] = self.positions[index].copy()
            return True
        return False

    def sort(self) -> None:
        """Reorder particles by descending current fitness.

        Raises:
            UnevaluatedFitnessError: If any particle is unevaluated.
        """
        missing = np.flatnonzero(np.isnan(self.fitness))
        if missing.size:
            msg = f"Cannot rank a swarm with unevaluated particles {missing.tolist()}"
            raise UnevaluatedFitnessError(msg)
        order = np.argsort(-self.fitness, kind="stable")
        self.positions = self.positions[order]
        self.velocities = self.velocities[order]
        self.personal_best_positions = self.personal_best_positions[order]
        self.personal_best_fitness = self.personal_best_fitness[order]
        self.fitness = self.fitness[order]

    def update_global_best(self) -> bool:
        """Adopt the top particle as global best if it beats the current one.

        Must follow ``sort``.

        Returns:
            True if global best was improved.
        """
        if self.fitness[0] > self.global_best_fitness:
            self.global_best_fitness = float(self.fitness[0])
            self.global_best_position = self.positions[0].copy()
            return True
        return False

    def is_nominally_converged(self, threshold: float, top: int) -> bool:
        """Check whether the ``top`` leading particles agree on every coordinate.

        A swarm smaller than ``top`` counts as converged.
        """
        if top <= 0:
            msg = f"top must be positive, got {top}"
            raise ValueError(msg)
        if self.swarm_size < top:
            return True
        return within_relative_spread(self.positions[:top], threshold)

    def move(self) -> None:
        """Advance every particle one velocity step (in-place).

        Standard PSO update:
            v = w * v + c1 * r1 * (pbest - x) + c2 * r2 * (gbest - x)
            x = x + v

        Positions are not clamped to the unit interval.
        """
        r1 = self.rng.random(self.positions.shape)
        r2 = self.rng.random(self.positions.shape)
        cognitive = self.cognitive_coefficient * r1 * (self.personal_best_positions - self.positions)
        social = self.social_coefficient * r2 * (self.global_best_position - self.positions)
        self.velocities = self.inertia * self.velocities + cognitive + social
        self.positions = self.positions + self.velocities

    def reset_fitness(self) -> None:
        self.fitness = np.full(self.swarm_size, UNEVALUATED)

    def __repr__(self) -> str:
        return (
            f"Swarm(size={self.swarm_size}, dims={self.n_dims}, "
            f"best_fitness={self.global_best_fitness:.4f})"
        )


class ParticleSwarmStrategy:
    """Particle Swarm Optimization behind the optimizer's step contract.

    Constraints are accepted for interface parity but never consulted.
    """

    def __init__(self, settings: PSOSettings, dimension_count: int, rng: np.random.Generator) -> None:
        self.settings = settings
        self.swarm = Swarm.create(
            settings.swarm_size,
            dimension_count,
            settings.vmax,
            inertia=settings.inertia,
            cognitive_coefficient=settings.cognitive_coefficient,
            social_coefficient=settings.social_coefficient,
            rng=rng,
        )

    @property
    def size(self) -> int:
        return self.swarm.swarm_size

    @property
    def convergence_top(self) -> int:
        """Leading particles checked for convergence: a quarter of the swarm, rounded up, at least two."""
        return max(2, math.ceil(self.settings.swarm_size / 4))

    def seed(self, first_agent: NDArray | None) -> None:
        self.swarm.seed(first_agent, self.settings.search_method, self.settings.local_search_radius)

    def vector(self, index: int) -> NDArray[np.float64]:
        self.swarm._check_index(index)
        return self.swarm.positions[index].copy()

    def record(self, index: int, fitness: float) -> AgentRecord:
        self.swarm.set_fitness(index, fitness)
        return AgentRecord(vector=self.swarm.positions[index], fitness=float(self.swarm.fitness[index]))

    def fittest(self) -> AgentRecord | None:
        """Best of the global best and the particles evaluated in the step in flight."""
        swarm = self.swarm
        candidates: list[AgentRecord] = []
        if swarm.global_best_fitness > -math.inf:
            candidates.append(AgentRecord(vector=swarm.global_best_position, fitness=swarm.global_best_fitness))
        evaluated = np.flatnonzero(~np.isnan(swarm.fitness))
        if evaluated.size:
            best = int(evaluated[np.argmax(swarm.fitness[evaluated])])
            candidates.append(AgentRecord(vector=swarm.positions[best], fitness=float(swarm.fitness[best])))
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.fitness)

    def end_generation(self, violates: Callable[[NDArray], bool]) -> GenerationOutcome:
        """Rank the evaluated step, update the global best and move the swarm."""
        swarm = self.swarm
        swarm.sort()
        swarm.update_global_best()
        outcome = GenerationOutcome(
            fittest=AgentRecord(vector=swarm.global_best_position, fitness=swarm.global_best_fitness),
        )
        if swarm.is_nominally_converged(self.settings.convergence_threshold, self.convergence_top):
            outcome.converged = True
        else:
            swarm.move()
        swarm.reset_fitness()
        return outcome

    def reset_fitness(self) -> None:
        self.swarm.reset_fitness()
