"""
Repeated genetic searches with independent seeds.

A single genetic run is sensitive to its random initial population.
MultiRunOptimizer repeats the search, keeps the best run, and reports the
spread of best fitness across runs.
"""

import logging
import math
import statistics
from dataclasses import dataclass, field
from typing import Callable, Optional

from pydantic import BaseModel, Field

from factorysim.config.schema import FactoryConfig
from factorysim.models.state import SimulationState
from factorysim.models.strategy import Strategy, StrategyOverrides
from factorysim.optimizer.analytical import DemandForecast
from factorysim.optimizer.cancellation import CancellationToken
from factorysim.optimizer.genetic import GeneticAlgorithm, GeneticConfig, GeneticResult

logger = logging.getLogger(__name__)

RunCallback = Callable[[int, int, GeneticResult], None]


class MultiRunError(RuntimeError):
    """Raised when no run produced a usable strategy."""

    pass


class MultiRunConfig(BaseModel):
    num_runs: int = Field(default=5, ge=1, description="Independent genetic runs")
    genetic: GeneticConfig = Field(default_factory=GeneticConfig)


@dataclass
class MultiRunStats:
    mean: float
    std_dev: float
    min: float
    max: float
    improvement: float


def calculate_run_stats(fitnesses: list[float]) -> MultiRunStats:
    """Spread of best fitness across runs.

    Improvement is the best run's percentage gain over the mean, reported
    only when the mean is positive (0 otherwise).
    """
    mean = statistics.fmean(fitnesses)
    best = max(fitnesses)
    improvement = (best - mean) / abs(mean) * 100 if mean > 0 else 0.0
    return MultiRunStats(
        mean=mean,
        std_dev=statistics.pstdev(fitnesses),
        min=min(fitnesses),
        max=best,
        improvement=improvement,
    )


@dataclass
class MultiRunResult:
    best_strategy: Strategy
    best_fitness: float
    best_run_index: int
    stats: MultiRunStats
    runs: list[GeneticResult] = field(default_factory=list)
    cancelled: bool = False


class MultiRunOptimizer:
    """Runs the genetic algorithm several times and keeps the best result."""

    def __init__(
        self,
        settings: Optional[MultiRunConfig] = None,
        config: Optional[FactoryConfig] = None,
        initial_state: Optional[SimulationState] = None,
        base_strategy: Optional[Strategy] = None,
        overrides: Optional[StrategyOverrides] = None,
        forecast: Optional[DemandForecast] = None,
    ):
        self.settings = settings or MultiRunConfig()
        self.config = config
        self.initial_state = initial_state
        self.base_strategy = base_strategy
        self.overrides = overrides
        self.forecast = forecast

    def run_seed(self, run_index: int) -> Optional[int]:
        """Seed for one run: offset from the configured seed, unseeded if none."""
        base = self.settings.genetic.random_seed
        return None if base is None else base + run_index

    def run(
        self,
        num_runs: Optional[int] = None,
        on_run_complete: Optional[RunCallback] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> MultiRunResult:
        """Run independent genetic searches.

        Args:
            num_runs: Number of runs (settings.num_runs if None)
            on_run_complete: Called with (run index, total runs, run result)
            cancellation_token: Passed to every run and checked between runs

        Returns:
            MultiRunResult for the best run

        Raises:
            MultiRunError: If no run found a strategy with finite fitness
        """
        total = num_runs or self.settings.num_runs
        runs: list[GeneticResult] = []
        best_index = -1
        best_fitness = -math.inf
        cancelled = False

        for run_index in range(total):
            if cancellation_token is not None and cancellation_token.cancelled:
                cancelled = True
                break

            logger.info("Multi-run %d/%d starting", run_index + 1, total)
            settings = self.settings.genetic.model_copy(update={"random_seed": self.run_seed(run_index)})
            ga = GeneticAlgorithm(
                settings,
                config=self.config,
                initial_state=self.initial_state,
                base_strategy=self.base_strategy,
                overrides=self.overrides,
                forecast=self.forecast,
            )
            result = ga.run(cancellation_token=cancellation_token)
            runs.append(result)
            logger.info("Multi-run %d/%d finished: fitness %.2f", run_index + 1, total, result.best_fitness)

            if result.best_strategy is not None and result.best_fitness > best_fitness:
                best_fitness = result.best_fitness
                best_index = run_index
                logger.info("New best fitness %.2f from run %d", best_fitness, run_index + 1)

            if on_run_complete is not None:
                on_run_complete(run_index, total, result)
            if result.cancelled:
                cancelled = True
                break

        if best_index < 0 or not math.isfinite(best_fitness):
            raise MultiRunError("No valid strategy found across all runs")

        finite = [r.best_fitness for r in runs if math.isfinite(r.best_fitness)]
        stats = calculate_run_stats(finite)
        logger.info(
            "Multi-run complete: best %.2f (run %d) mean %.2f std %.2f improvement %.1f%%",
            best_fitness, best_index + 1, stats.mean, stats.std_dev, stats.improvement,
        )
        return MultiRunResult(
            best_strategy=runs[best_index].best_strategy,
            best_fitness=best_fitness,
            best_run_index=best_index,
            stats=stats,
            runs=runs,
            cancelled=cancelled,
        )


def compare_configs(
    configs: dict[str, MultiRunConfig],
    config: Optional[FactoryConfig] = None,
    initial_state: Optional[SimulationState] = None,
    base_strategy: Optional[Strategy] = None,
    overrides: Optional[StrategyOverrides] = None,
) -> dict[str, MultiRunResult]:
    """Run every named search configuration against the same scenario.

    Returns:
        Mapping of configuration name to its multi-run result
    """
    results: dict[str, MultiRunResult] = {}
    for name, settings in configs.items():
        logger.info("Comparing configuration %r", name)
        optimizer = MultiRunOptimizer(settings, config, initial_state, base_strategy, overrides)
        results[name] = optimizer.run()

    for name, result in results.items():
        logger.info(
            "%s: best %.2f mean %.2f +/- %.2f improvement %.1f%%",
            name, result.best_fitness, result.stats.mean, result.stats.std_dev, result.stats.improvement,
        )
    return results
