"""
Tests for the genetic algorithm and multi-run search.

Tests cover:
- Configuration validation
- A small end-to-end evolution
- Seeded populations, cancellation and failed evaluations
- Multi-run statistics and best-run selection
"""

import logging
import math

import pytest
from pydantic import ValidationError

from factorysim.optimizer.cancellation import CancellationToken
from factorysim.optimizer.genes import DEFAULT_GENES
from factorysim.optimizer.genetic import GeneticAlgorithm, GeneticConfig, Individual
from factorysim.optimizer.multi_run import (
    MultiRunConfig,
    MultiRunError,
    MultiRunOptimizer,
    calculate_run_stats,
    compare_configs,
)


def _tiny(**kwargs) -> GeneticConfig:
    values = dict(population_size=4, generations=2, elite_count=1, end_day=70, random_seed=1)
    values.update(kwargs)
    return GeneticConfig(**values)


class TestGeneticConfig:
    def test_elite_cannot_exceed_population(self):
        with pytest.raises(ValidationError):
            GeneticConfig(population_size=4, elite_count=5)


class TestGeneticAlgorithm:
    """Tests for GeneticAlgorithm."""

    def test_small_run(self, default_config, historical_state):
        """A short search returns a simulated best strategy."""
        progress = []
        ga = GeneticAlgorithm(_tiny(), default_config, historical_state)

        result = ga.run(on_progress=lambda gen, best, avg: progress.append(gen))

        assert result.best_strategy is not None
        assert math.isfinite(result.best_fitness)
        assert len(result.population_stats) == 2
        assert progress == [0, 1]
        assert result.convergence_history[1] >= result.convergence_history[0]
        assert result.final_simulation is not None
        assert not result.cancelled

    def test_seeded_population(self, default_config, historical_state):
        """Seed genes open the first generation."""
        ga = GeneticAlgorithm(_tiny(), default_config, historical_state)
        population = ga.initial_population([DEFAULT_GENES])

        assert len(population) == 4
        assert population[0].genes == DEFAULT_GENES

    def test_cancelled_before_start(self, default_config, historical_state):
        """A pre-cancelled search evaluates nothing."""
        token = CancellationToken()
        token.cancel()

        result = GeneticAlgorithm(_tiny(), default_config, historical_state).run(cancellation_token=token)

        assert result.cancelled
        assert result.population_stats == []
        assert result.best_fitness == -math.inf

    def test_failed_evaluation_scores_negative_infinity(self, default_config, historical_state, caplog):
        """A failing candidate scores -inf and logs a warning."""
        ga = GeneticAlgorithm(_tiny(), default_config, historical_state)

        def broken(genes):
            raise RuntimeError("boom")

        ga.build_strategy = broken
        individual = Individual(genes=DEFAULT_GENES, generation=0)
        with caplog.at_level(logging.WARNING, logger="factorysim.optimizer.genetic"):
            fitness = ga.evaluate(individual)

        assert fitness == -math.inf
        assert individual.strategy is None
        assert "boom" in caplog.text

    def test_convergence_check(self, default_config, historical_state):
        """A flat best-fitness window counts as converged."""
        ga = GeneticAlgorithm(_tiny(convergence_threshold=0.01), default_config, historical_state)

        assert ga._has_converged([100.0] * 5)
        assert not ga._has_converged([100.0] * 4)
        assert not ga._has_converged([100.0, 100.0, 100.0, 100.0, 200.0])


class TestMultiRun:
    """Tests for MultiRunOptimizer."""

    def test_run_stats(self):
        stats = calculate_run_stats([100.0, 200.0, 300.0])

        assert stats.mean == pytest.approx(200.0)
        assert stats.improvement == pytest.approx(50.0)
        assert stats.std_dev == pytest.approx(81.6497, rel=1e-4)
        assert (stats.min, stats.max) == (100.0, 300.0)

    def test_no_improvement_for_negative_mean(self):
        assert calculate_run_stats([-100.0, -50.0]).improvement == 0.0

    def test_run_seeds(self):
        optimizer = MultiRunOptimizer(MultiRunConfig(genetic=GeneticConfig(random_seed=10)))
        assert [optimizer.run_seed(i) for i in range(3)] == [10, 11, 12]
        assert MultiRunOptimizer().run_seed(2) is None

    def test_keeps_best_run(self, default_config, historical_state):
        """The best run's strategy is returned and every run reported."""
        settings = MultiRunConfig(num_runs=2, genetic=_tiny(population_size=2, generations=1, end_day=65))
        completed = []

        result = MultiRunOptimizer(settings, default_config, historical_state).run(
            on_run_complete=lambda index, total, run: completed.append(index)
        )

        assert completed == [0, 1]
        assert len(result.runs) == 2
        assert result.best_fitness == max(r.best_fitness for r in result.runs)
        assert result.best_strategy is result.runs[result.best_run_index].best_strategy

    def test_cancelled_raises(self, default_config, historical_state):
        """Without any finished run there is no strategy to return."""
        token = CancellationToken()
        token.cancel()
        optimizer = MultiRunOptimizer(MultiRunConfig(num_runs=2, genetic=_tiny()), default_config, historical_state)

        with pytest.raises(MultiRunError):
            optimizer.run(cancellation_token=token)

    def test_compare_configs(self, default_config, historical_state):
        settings = MultiRunConfig(num_runs=1, genetic=_tiny(population_size=2, generations=1, end_day=60))
        results = compare_configs({"a": settings, "b": settings}, default_config, historical_state)

        assert set(results) == {"a", "b"}
