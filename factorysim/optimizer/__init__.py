"""
Strategy search for the factory simulation.

This module contains:
- Closed-form analytical baseline and gene-driven plans
- Policy parameters expanded into day-by-day action schedules
- Objective function scoring a finished run
- Genetic, Bayesian-style and multi-run searches
"""

from factorysim.optimizer.analytical import (
    AnalyticalOptimizer,
    AnalyticalPlan,
    DemandForecast,
)
from factorysim.optimizer.bayesian import (
    BayesianCheckpoint,
    BayesianConfig,
    BayesianOptimizer,
    BayesianResult,
    ValidationSummary,
)
from factorysim.optimizer.cancellation import CancellationToken
from factorysim.optimizer.converter import plan_to_actions, plan_to_strategy
from factorysim.optimizer.genes import (
    DEFAULT_GENES,
    GENE_RANGES,
    StrategyGenes,
    calculate_diversity,
    crossover_genes,
    mutate_genes,
    random_genes,
)
from factorysim.optimizer.genetic import (
    GeneticAlgorithm,
    GeneticConfig,
    GeneticResult,
    PopulationStats,
)
from factorysim.optimizer.multi_run import (
    MultiRunConfig,
    MultiRunError,
    MultiRunOptimizer,
    MultiRunResult,
    MultiRunStats,
    compare_configs,
)
from factorysim.optimizer.objective import (
    ObjectiveBreakdown,
    ObjectiveFunction,
    evaluate_objective,
)
from factorysim.optimizer.policy_engine import (
    PARAMETER_SPACE,
    PolicyEngine,
    PolicyParameters,
    WeeklyPolicyParameters,
    default_policy,
    random_policy,
)

__all__ = [
    # Analytical
    "AnalyticalOptimizer",
    "AnalyticalPlan",
    "DemandForecast",
    "plan_to_actions",
    "plan_to_strategy",
    # Genes
    "DEFAULT_GENES",
    "GENE_RANGES",
    "StrategyGenes",
    "calculate_diversity",
    "crossover_genes",
    "mutate_genes",
    "random_genes",
    # Policies
    "PARAMETER_SPACE",
    "PolicyEngine",
    "PolicyParameters",
    "WeeklyPolicyParameters",
    "default_policy",
    "random_policy",
    # Objective
    "ObjectiveBreakdown",
    "ObjectiveFunction",
    "evaluate_objective",
    # Search
    "CancellationToken",
    "GeneticAlgorithm",
    "GeneticConfig",
    "GeneticResult",
    "PopulationStats",
    "BayesianCheckpoint",
    "BayesianConfig",
    "BayesianOptimizer",
    "BayesianResult",
    "ValidationSummary",
    "MultiRunConfig",
    "MultiRunError",
    "MultiRunOptimizer",
    "MultiRunResult",
    "MultiRunStats",
    "compare_configs",
]
