"""
Hybrid genetic algorithm over strategy genes.

Each individual's genes are expanded by the analytical optimizer into a
plan, converted into a Strategy with timed actions, simulated, and scored
by the objective function. Evolution uses elitism, crossover between
elite parents, and bounded mutation.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from pydantic import BaseModel, Field, model_validator

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.simulation import SimulationResult, run_simulation
from factorysim.models.state import SimulationState, create_historical_state
from factorysim.models.strategy import Strategy, StrategyOverrides
from factorysim.optimizer.analytical import AnalyticalOptimizer, DemandForecast
from factorysim.optimizer.cancellation import CancellationToken
from factorysim.optimizer.converter import plan_to_strategy
from factorysim.optimizer.genes import (
    StrategyGenes,
    calculate_diversity,
    crossover_genes,
    mutate_genes,
    random_genes,
)
from factorysim.optimizer.objective import ObjectiveBreakdown, evaluate_objective

logger = logging.getLogger(__name__)

# Generations compared when checking for convergence
CONVERGENCE_WINDOW = 5

ProgressCallback = Callable[[int, float, float], None]


class GeneticConfig(BaseModel):
    """Genetic algorithm settings."""

    population_size: int = Field(default=100, ge=2)
    generations: int = Field(default=500, ge=1)
    mutation_rate: float = Field(default=0.05, ge=0.0, le=1.0)
    elite_count: int = Field(default=20, ge=1)
    crossover_rate: float = Field(default=0.7, ge=0.0, le=1.0)
    convergence_threshold: Optional[float] = Field(
        default=None,
        ge=0.0,
        description="Stop when best fitness improves less than this fraction over 5 generations",
    )
    end_day: Optional[int] = Field(default=None, description="Last simulated day (defaults to shutdown)")
    random_seed: Optional[int] = None

    @model_validator(mode="after")
    def check_elite(self) -> "GeneticConfig":
        if self.elite_count > self.population_size:
            raise ValueError("elite_count cannot exceed population_size")
        return self


@dataclass
class Individual:
    genes: StrategyGenes
    generation: int
    fitness: float = -math.inf
    strategy: Optional[Strategy] = None
    breakdown: Optional[ObjectiveBreakdown] = None


@dataclass
class PopulationStats:
    generation: int
    best: float
    average: float
    worst: float
    diversity: float
    valid: int


@dataclass
class GeneticResult:
    best_genes: StrategyGenes
    best_strategy: Optional[Strategy]
    best_fitness: float
    generation: int
    population_stats: list[PopulationStats] = field(default_factory=list)
    convergence_history: list[float] = field(default_factory=list)
    final_simulation: Optional[SimulationResult] = None
    best_breakdown: Optional[ObjectiveBreakdown] = None
    cancelled: bool = False
    converged: bool = False


class GeneticAlgorithm:
    """Evolves StrategyGenes against full simulation runs.

    Usage:
        ga = GeneticAlgorithm(GeneticConfig(population_size=20, generations=10))
        result = ga.run()
    """

    def __init__(
        self,
        settings: Optional[GeneticConfig] = None,
        config: Optional[FactoryConfig] = None,
        initial_state: Optional[SimulationState] = None,
        base_strategy: Optional[Strategy] = None,
        overrides: Optional[StrategyOverrides] = None,
        forecast: Optional[DemandForecast] = None,
    ):
        """Initialize the optimizer.

        Args:
            settings: Search settings (defaults if None)
            config: Simulation configuration
            initial_state: Starting state (historical snapshot if None)
            base_strategy: Strategy supplying fields the plan does not set
            overrides: Fixed fields applied to every candidate
            forecast: Demand forecast for the analytical models
        """
        self.settings = settings or GeneticConfig()
        self.config = config or get_default_config()
        self.initial_state = initial_state or create_historical_state(self.config)
        self.overrides = overrides
        self.base_strategy = (base_strategy or Strategy()).with_overrides(overrides)
        self.forecast = forecast or DemandForecast()
        self.analytical = AnalyticalOptimizer(self.config, self.base_strategy)
        self._rng = random.Random(self.settings.random_seed)
        self._best_result: Optional[SimulationResult] = None
        self._best_score = -math.inf

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def build_strategy(self, genes: StrategyGenes) -> Strategy:
        """Expand genes into a complete strategy."""
        plan = self.analytical.generate_strategy(
            self.forecast,
            genes,
            start_day=self.initial_state.current_day + 1,
            current_experts=self.initial_state.workforce.experts,
        )
        strategy = plan_to_strategy(plan, self.initial_state, self.base_strategy)
        if self.overrides is not None:
            strategy = strategy.with_overrides(self.overrides)
        return strategy

    def evaluate(self, individual: Individual) -> float:
        """Simulate and score one individual; failures score -inf."""
        try:
            strategy = self.build_strategy(individual.genes)
            result = run_simulation(
                strategy,
                end_day=self.settings.end_day,
                initial_state=self.initial_state,
                random_seed=self.settings.random_seed,
                config=self.config,
            )
            breakdown = evaluate_objective(result, self.config)
        except Exception as e:
            logger.warning("Evaluation failed for generation %d individual: %s", individual.generation, e)
            individual.fitness = -math.inf
            individual.strategy = None
            individual.breakdown = None
            return individual.fitness

        individual.strategy = strategy
        individual.breakdown = breakdown
        individual.fitness = breakdown.score
        if breakdown.score > self._best_score:
            self._best_score = breakdown.score
            self._best_result = result
        return individual.fitness

    # -------------------------------------------------------------------------
    # Evolution
    # -------------------------------------------------------------------------

    def initial_population(self, seeds: Optional[list[StrategyGenes]] = None) -> list[Individual]:
        """Seeded genes first, then random genes up to the population size."""
        population = [Individual(genes=g, generation=0) for g in (seeds or [])][: self.settings.population_size]
        while len(population) < self.settings.population_size:
            population.append(Individual(genes=random_genes(self._rng), generation=0))
        return population

    def next_generation(self, ranked: list[Individual], generation: int) -> list[Individual]:
        """Elites carried over unchanged; children bred from elite parents."""
        settings = self.settings
        elites = ranked[: settings.elite_count]
        offspring = [Individual(genes=e.genes.model_copy(), generation=generation) for e in elites]

        while len(offspring) < settings.population_size:
            parent1 = self._rng.choice(elites)
            parent2 = self._rng.choice(elites)
            if self._rng.random() < settings.crossover_rate:
                child = crossover_genes(parent1.genes, parent2.genes, self._rng)
            else:
                child = parent1.genes.model_copy()
            child = mutate_genes(child, settings.mutation_rate, self._rng)
            offspring.append(Individual(genes=child, generation=generation))
        return offspring

    def _stats(self, ranked: list[Individual], generation: int) -> PopulationStats:
        finite = [i.fitness for i in ranked if math.isfinite(i.fitness)]
        return PopulationStats(
            generation=generation,
            best=ranked[0].fitness,
            average=sum(finite) / len(finite) if finite else -math.inf,
            worst=ranked[-1].fitness,
            diversity=calculate_diversity([i.genes for i in ranked]),
            valid=len(finite),
        )

    def _has_converged(self, history: list[float]) -> bool:
        threshold = self.settings.convergence_threshold
        if threshold is None or len(history) < CONVERGENCE_WINDOW:
            return False
        first, last = history[-CONVERGENCE_WINDOW], history[-1]
        if not (math.isfinite(first) and math.isfinite(last)) or first == 0:
            return False
        return (last - first) / abs(first) < threshold

    def run(
        self,
        seeds: Optional[list[StrategyGenes]] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> GeneticResult:
        """Run the evolution loop.

        Args:
            seeds: Gene sets placed in the first generation
            on_progress: Called with (generation, best fitness, average fitness)
            cancellation_token: Checked before each generation

        Returns:
            GeneticResult with the best individual ever found
        """
        settings = self.settings
        logger.info(
            "Starting genetic search: population=%d generations=%d mutation=%.3f",
            settings.population_size, settings.generations, settings.mutation_rate,
        )
        self._best_result = None
        self._best_score = -math.inf
        population = self.initial_population(seeds)
        best: Optional[Individual] = None
        stats: list[PopulationStats] = []
        history: list[float] = []
        cancelled = False
        converged = False
        generation = 0

        for generation in range(settings.generations):
            if cancellation_token is not None and cancellation_token.cancelled:
                logger.info("Genetic search cancelled before generation %d", generation)
                cancelled = True
                break

            for individual in population:
                self.evaluate(individual)
            ranked = sorted(population, key=lambda i: i.fitness, reverse=True)

            gen_stats = self._stats(ranked, generation)
            stats.append(gen_stats)
            history.append(gen_stats.best)
            logger.info(
                "Generation %d: best=%.2f avg=%.2f valid=%d/%d diversity=%.3f",
                generation, gen_stats.best, gen_stats.average, gen_stats.valid,
                len(ranked), gen_stats.diversity,
            )
            if on_progress is not None:
                on_progress(generation, gen_stats.best, gen_stats.average)

            if best is None or ranked[0].fitness > best.fitness:
                best = ranked[0]
                logger.info("New best fitness %.2f in generation %d", best.fitness, generation)

            if self._has_converged(history):
                converged = True
                logger.info("Converged after %d generations", generation + 1)
                break

            if generation < settings.generations - 1:
                population = self.next_generation(ranked, generation + 1)

        if best is None:
            # Cancelled before anything was evaluated
            best = population[0]

        return GeneticResult(
            best_genes=best.genes,
            best_strategy=best.strategy,
            best_fitness=best.fitness,
            generation=best.generation,
            population_stats=stats,
            convergence_history=history,
            final_simulation=self._best_result,
            best_breakdown=best.breakdown,
            cancelled=cancelled,
            converged=converged,
        )
