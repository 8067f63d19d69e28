from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.distance import pdist

from .utils.common import ensure_numpy, is_unevaluated, stack_arrays

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .optimizer import EvolutionaryOptimizer


logger = logging.getLogger(__name__)


@dataclass
class AgentRecord:
    """Snapshot of one agent: its normalized vector and the fitness it scored.

    Attributes:
        vector: Coordinates in the unit hypercube (PSO may leave it).
        fitness: Reported fitness, NaN if the agent was not evaluated.
    """

    vector: NDArray[np.float64]
    fitness: float = float("nan")

    def __post_init__(self) -> None:
        self.vector = np.array(self.vector, dtype=np.float64, copy=True)

    @property
    def is_evaluated(self) -> bool:
        return not is_unevaluated(self.fitness)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"vector": self.vector.tolist(), "fitness": self.fitness}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentRecord:
        """Create from dictionary."""
        return cls(vector=np.asarray(data["vector"], dtype=np.float64), fitness=float(data["fitness"]))


@dataclass
class GenerationOutcome:
    """What happened when the last agent of a generation or step reported.

    Attributes:
        fittest: Best agent to record in the history.
        converged: Whether the run reached nominal convergence.
        rolled_back: Whether the evolved generation was discarded.
    """

    fittest: AgentRecord | None
    converged: bool = False
    rolled_back: bool = False


@dataclass
class GenerationStats:
    """Statistics for a single generation or step.

    Attributes:
        generation: Generation (GA) or step (PSO) number.
        best_fitness: Best fitness in generation.
        mean_fitness: Mean fitness of population.
        std_fitness: Standard deviation of fitness.
        median_fitness: Median fitness.
        min_fitness: Minimum fitness.
        diversity: Mean pairwise distance between agents.
        n_evaluated: Number of agents evaluated.
    """

    generation: int
    best_fitness: float
    mean_fitness: float
    std_fitness: float
    median_fitness: float
    min_fitness: float
    diversity: float = 0.0
    n_evaluated: int = 0

    @classmethod
    def from_records(cls, generation: int, records: Sequence[AgentRecord | None]) -> GenerationStats:
        """Summarize the evaluated agents of one generation."""
        evaluated = [r for r in records if r is not None and r.is_evaluated]
        if not evaluated:
            return cls(
                generation=generation,
                best_fitness=float("nan"),
                mean_fitness=float("nan"),
                std_fitness=float("nan"),
                median_fitness=float("nan"),
                min_fitness=float("nan"),
            )
        fitness = np.array([r.fitness for r in evaluated])
        return cls(
            generation=generation,
            best_fitness=float(np.max(fitness)),
            mean_fitness=float(np.mean(fitness)),
            std_fitness=float(np.std(fitness)),
            median_fitness=float(np.median(fitness)),
            min_fitness=float(np.min(fitness)),
            diversity=compute_diversity(stack_arrays([r.vector for r in evaluated])),
            n_evaluated=len(evaluated),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "generation": self.generation,
            "best_fitness": self.best_fitness,
            "mean_fitness": self.mean_fitness,
            "std_fitness": self.std_fitness,
            "median_fitness": self.median_fitness,
            "min_fitness": self.min_fitness,
            "diversity": self.diversity,
            "n_evaluated": self.n_evaluated,
        }


@dataclass
class EvolutionResult:
    """Summary of a finished (or interrupted) run.

    Attributes:
        best_vector: Winning normalized vector, None if nothing was evaluated.
        best_parameters: Decoded parameters of the winner.
        best_fitness: Fitness of the winner.
        n_generations: Generations or steps completed.
        n_evaluations: Fitness values recorded.
        converged: Whether nominal convergence was reached.
        fittest_history: Best agent per generation/step (index 0 = baseline).
        generation_history: Statistics per completed generation/step.
    """

    best_vector: NDArray[np.float64] | None
    best_parameters: Any
    best_fitness: float
    n_generations: int
    n_evaluations: int
    converged: bool
    fittest_history: list[AgentRecord | None] = field(default_factory=list)
    generation_history: list[GenerationStats] = field(default_factory=list)

    @classmethod
    def from_optimizer(cls, optimizer: EvolutionaryOptimizer) -> EvolutionResult:
        """Collect the result of a run from the optimizer's history."""
        best = optimizer.best_record()
        size = optimizer.config.size
        completed = min(optimizer.evaluation_count // size, optimizer.config.maximum_generations)
        generation_history = [
            GenerationStats.from_records(g, records)
            for g, records in enumerate(optimizer.population_of_generations[:completed])
            if records is not None
        ]
        return cls(
            best_vector=None if best is None else best.vector.copy(),
            best_parameters=None if best is None else optimizer.encoding.decode(-1, best.vector),
            best_fitness=float("nan") if best is None else best.fitness,
            n_generations=completed,
            n_evaluations=optimizer.evaluation_count,
            converged=optimizer.converged,
            fittest_history=list(optimizer.fittest_of_generations),
            generation_history=generation_history,
        )

    def get_fitness_improvement(self) -> float:
        """Get best fitness improvement from the baseline to the last recorded generation."""
        recorded = [r for r in self.fittest_history if r is not None]
        if len(recorded) < 2:
            return 0.0
        return recorded[-1].fitness - recorded[0].fitness

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        params = self.best_parameters
        if hasattr(params, "to_dict"):
            params = params.to_dict()
        elif isinstance(params, np.ndarray):
            params = params.tolist()
        elif isinstance(params, tuple):
            params = list(params)
        return {
            "best_vector": None if self.best_vector is None else self.best_vector.tolist(),
            "best_parameters": params,
            "best_fitness": self.best_fitness,
            "n_generations": self.n_generations,
            "n_evaluations": self.n_evaluations,
            "converged": self.converged,
            "fittest_history": [None if r is None else r.to_dict() for r in self.fittest_history],
            "generation_history": [g.to_dict() for g in self.generation_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvolutionResult:
        """Create from dictionary. Decoded parameters come back as plain data."""
        best_vector = data.get("best_vector")
        return cls(
            best_vector=None if best_vector is None else np.asarray(best_vector, dtype=np.float64),
            best_parameters=data.get("best_parameters"),
            best_fitness=float(data["best_fitness"]),
            n_generations=int(data["n_generations"]),
            n_evaluations=int(data["n_evaluations"]),
            converged=bool(data["converged"]),
            fittest_history=[
                None if r is None else AgentRecord.from_dict(r) for r in data.get("fittest_history", [])
            ],
            generation_history=[GenerationStats(**g) for g in data.get("generation_history", [])],
        )

    def to_json(self, filepath: str | Path | None = None, indent: int = 2) -> str:
        """Serialize to JSON, optionally writing it to ``filepath``."""
        text = json.dumps(self.to_dict(), indent=indent)
        if filepath is not None:
            Path(filepath).write_text(text)
        return text


def history_table(
    optimizer: EvolutionaryOptimizer,
    labels: Sequence[str] | None = None,
) -> list[dict[str, float]]:
    """Build the rows of the fitness-vs-generation and spread charts.

    Row ``i`` holds ``Step``, the fittest vector of history entry ``i`` under
    one column per label, its ``Objective``, and for ``i > 0`` every
    coordinate of every agent of generation ``i - 1`` as
    ``Individual1..N``. Entries with no record yet are skipped.

    Args:
        optimizer: Optimizer whose history is tabulated.
        labels: Column names per dimension; defaults to the space's names.

    Returns:
        One dict per recorded history entry.
    """
    if labels is None:
        labels = optimizer.space.names

    rows: list[dict[str, float]] = []
    for index, fittest in enumerate(optimizer.fittest_of_generations):
        if fittest is None:
            continue
        row: dict[str, float] = {"Step": index}
        for k, value in enumerate(fittest.vector):
            label = labels[k] if k < len(labels) else f"Var{k + 1}"
            row[label] = float(value)
        row["Objective"] = fittest.fitness
        if index > 0:
            snapshot = optimizer.population_of_generations[index - 1]
            if snapshot is not None:
                counter = 0
                for record in snapshot:
                    if record is None:
                        continue
                    for value in record.vector:
                        counter += 1
                        row[f"Individual{counter}"] = float(value)
        rows.append(row)
    return rows


def compute_diversity(vectors: NDArray[np.float64]) -> float:
    """Compute population diversity as the mean pairwise Euclidean distance."""
    vectors = ensure_numpy(vectors)
    if vectors.ndim != 2 or vectors.shape[0] < 2:
        return 0.0
    return float(np.mean(pdist(vectors, metric="euclidean")))
