"""
Sample-efficient search over PolicyParameters.

This module handles:
- A random exploration phase over PARAMETER_SPACE
- A guided phase mixing local perturbation of top policies (65%),
  uniform crossover of top policies (25%) and fresh random samples (10%)
- Adaptive perturbation intensity when progress stalls
- Warm start from previously good policies
- Validation of a policy across many demand seeds

Every candidate is expanded by the PolicyEngine into a full strategy,
simulated, and scored by the objective function. A failed evaluation
scores -inf and the search carries on.
"""

import logging
import math
import random
import statistics
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.simulation import SimulationResult, run_simulation
from factorysim.models.state import SimulationState, create_historical_state
from factorysim.models.strategy import Strategy
from factorysim.optimizer.cancellation import CancellationToken
from factorysim.optimizer.objective import evaluate_objective
from factorysim.optimizer.policy_engine import (
    PARAMETER_SPACE,
    WEEKS_PER_YEAR,
    PolicyEngine,
    PolicyParameters,
    WeeklyPolicyParameters,
    clamp_policy,
    default_policy,
    random_policy,
)

logger = logging.getLogger(__name__)

Policy = Union[PolicyParameters, WeeklyPolicyParameters]

# Guided phase proposal mix (remainder is random sampling)
LOCAL_SEARCH_SHARE = 0.65
CROSSOVER_SHARE = 0.25

MAX_WARM_START = 10
MIN_RANDOM_WITH_WARM_START = 10
PARAMETER_MUTATION_PROBABILITY = 0.4
BASE_INTENSITY = 0.15
STALLED_INTENSITY = 0.25
STALL_ITERATIONS = 50
NEGATIVE_STALL_ITERATIONS = 20

ProgressCallback = Callable[[int, int, str, float], None]


class BayesianConfig(BaseModel):
    """Bayesian-style search settings."""

    total_iterations: int = Field(default=150, ge=1)
    random_exploration: int = Field(default=30, ge=0)
    checkpoint_interval: int = Field(default=10, ge=1)
    use_weekly_policies: bool = Field(default=False, description="Search one parameter set per week")
    end_day: Optional[int] = Field(default=None, description="Last simulated day (defaults to shutdown)")
    random_seed: Optional[int] = None


class BayesianCheckpoint(BaseModel):
    """Search progress written at checkpoint intervals."""

    model_config = ConfigDict(ser_json_inf_nan="constants")

    iteration: int
    total_iterations: int
    best_fitness: float
    best_net_worth: float
    best_policy: Optional[Policy] = None
    convergence_history: list[float] = Field(default_factory=list)


CheckpointCallback = Callable[[BayesianCheckpoint], None]


@dataclass
class PolicyEvaluation:
    """One evaluated candidate."""

    policy: Policy
    fitness: float
    net_worth: float
    iteration: int
    phase: str


@dataclass
class BayesianResult:
    best_policy: Optional[Policy]
    best_strategy: Optional[Strategy]
    best_net_worth: float
    best_fitness: float
    best_iteration: int
    convergence_history: list[float] = field(default_factory=list)
    action_summary: dict[str, int] = field(default_factory=dict)
    evaluations: int = 0
    final_simulation: Optional[SimulationResult] = None
    cancelled: bool = False


@dataclass
class ValidationSummary:
    """Net worth spread of one policy across demand seeds."""

    mean: float
    std: float
    min: float
    max: float
    results: list[float] = field(default_factory=list)


class BayesianOptimizer:
    """Random exploration followed by guided search around the best policies.

    Usage:
        optimizer = BayesianOptimizer(BayesianConfig(total_iterations=60))
        result = optimizer.run()
        summary = optimizer.validate(result.best_policy, runs=30)
    """

    def __init__(
        self,
        settings: Optional[BayesianConfig] = None,
        config: Optional[FactoryConfig] = None,
        initial_state: Optional[SimulationState] = None,
        base_strategy: Optional[Strategy] = None,
    ):
        """Initialize the optimizer.

        Args:
            settings: Search settings (defaults if None)
            config: Simulation configuration
            initial_state: Starting state (historical snapshot if None)
            base_strategy: Strategy supplying fields the policy does not set
        """
        self.settings = settings or BayesianConfig()
        self.config = config or get_default_config()
        self.initial_state = initial_state or create_historical_state(self.config)
        self.base_strategy = base_strategy or Strategy()
        self._rng = random.Random(self.settings.random_seed)
        self._evaluations: list[PolicyEvaluation] = []
        self._best: Optional[PolicyEvaluation] = None
        self._best_result: Optional[SimulationResult] = None
        self._best_strategy: Optional[Strategy] = None
        self._since_improvement = 0

    # -------------------------------------------------------------------------
    # Candidate generation
    # -------------------------------------------------------------------------

    def random_candidate(self) -> Policy:
        if self.settings.use_weekly_policies:
            return WeeklyPolicyParameters(
                weeks={week: random_policy(self._rng) for week in range(1, WEEKS_PER_YEAR + 1)}
            )
        return random_policy(self._rng)

    def _as_search_type(self, policy: Policy) -> Policy:
        """Repeat a single policy every week when searching weekly, and vice versa."""
        if self.settings.use_weekly_policies and isinstance(policy, PolicyParameters):
            return WeeklyPolicyParameters(
                weeks={week: policy.model_copy() for week in range(1, WEEKS_PER_YEAR + 1)}
            )
        if not self.settings.use_weekly_policies and isinstance(policy, WeeklyPolicyParameters):
            return policy.weeks.get(1, default_policy())
        return policy

    def _mutate_parameters(self, params: PolicyParameters, intensity: float) -> PolicyParameters:
        values = params.model_dump()
        for name, bounds in PARAMETER_SPACE.items():
            if self._rng.random() < PARAMETER_MUTATION_PROBABILITY:
                noise = self._rng.gauss(0.0, 1.0) * intensity * (bounds.high - bounds.low)
                values[name] = values[name] + noise
        return clamp_policy(values)

    def _crossover_parameters(self, first: PolicyParameters, second: PolicyParameters) -> PolicyParameters:
        a, b = first.model_dump(), second.model_dump()
        return PolicyParameters(**{name: a[name] if self._rng.random() < 0.5 else b[name] for name in a})

    def mutate(self, policy: Policy, intensity: float) -> Policy:
        """Gaussian perturbation of each parameter with 40% probability."""
        if isinstance(policy, WeeklyPolicyParameters):
            return WeeklyPolicyParameters(
                weeks={week: self._mutate_parameters(p, intensity) for week, p in policy.weeks.items()}
            )
        return self._mutate_parameters(policy, intensity)

    def crossover(self, first: Policy, second: Policy) -> Policy:
        """Uniform crossover; each parameter comes from either parent."""
        if isinstance(first, WeeklyPolicyParameters) and isinstance(second, WeeklyPolicyParameters):
            weeks = {}
            for week, params in first.weeks.items():
                other = second.weeks.get(week, params)
                weeks[week] = self._crossover_parameters(params, other)
            return WeeklyPolicyParameters(weeks=weeks)
        if isinstance(first, PolicyParameters) and isinstance(second, PolicyParameters):
            return self._crossover_parameters(first, second)
        return first.model_copy(deep=True)

    @property
    def intensity(self) -> float:
        if self._since_improvement >= STALL_ITERATIONS:
            return STALLED_INTENSITY
        return BASE_INTENSITY

    def top_evaluations(self, count: int) -> list[PolicyEvaluation]:
        return sorted(self._evaluations, key=lambda e: e.fitness, reverse=True)[:count]

    def _needs_forced_exploration(self) -> bool:
        """True when the best ten are all losing money and progress has stalled."""
        top = self.top_evaluations(10)
        return (
            bool(top)
            and all(e.net_worth < 0 for e in top)
            and self._since_improvement >= NEGATIVE_STALL_ITERATIONS
        )

    def guided_candidate(self) -> Policy:
        """Propose the next policy from the evaluations so far."""
        top = self.top_evaluations(5)
        if not top or self._needs_forced_exploration():
            return self.random_candidate()

        roll = self._rng.random()
        if roll < LOCAL_SEARCH_SHARE:
            parent = self._rng.choice(top[:3])
            return self.mutate(parent.policy, self.intensity)
        if roll < LOCAL_SEARCH_SHARE + CROSSOVER_SHARE and len(top) >= 2:
            first, second = self._rng.sample(top, 2)
            return self.crossover(first.policy, second.policy)
        return self.random_candidate()

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _simulate(self, policy: Policy, random_seed: Optional[int]) -> tuple[Strategy, SimulationResult]:
        strategy = PolicyEngine(policy, self.config).to_strategy(self.initial_state, self.base_strategy)
        result = run_simulation(
            strategy,
            end_day=self.settings.end_day,
            initial_state=self.initial_state,
            random_seed=random_seed,
            config=self.config,
        )
        return strategy, result

    def evaluate(self, policy: Policy, iteration: int = 0, phase: str = "random") -> PolicyEvaluation:
        """Simulate and score one policy; failures score -inf."""
        try:
            strategy, result = self._simulate(policy, self.settings.random_seed)
            breakdown = evaluate_objective(result, self.config)
        except Exception as e:
            logger.warning("Evaluation failed at iteration %d (%s): %s", iteration, phase, e)
            evaluation = PolicyEvaluation(policy, -math.inf, -math.inf, iteration, phase)
            self._record(evaluation)
            return evaluation

        evaluation = PolicyEvaluation(policy, breakdown.score, breakdown.net_worth, iteration, phase)
        if self._record(evaluation):
            self._best_result = result
            self._best_strategy = strategy
        return evaluation

    def _record(self, evaluation: PolicyEvaluation) -> bool:
        """Store an evaluation; returns True when it is a new best."""
        self._evaluations.append(evaluation)
        if self._best is None or evaluation.fitness > self._best.fitness:
            improved = self._best is not None or math.isfinite(evaluation.fitness)
            self._best = evaluation
            self._since_improvement = 0
            if improved:
                logger.info(
                    "New best fitness %.2f (net worth %.2f) at iteration %d [%s]",
                    evaluation.fitness, evaluation.net_worth, evaluation.iteration, evaluation.phase,
                )
            return True
        self._since_improvement += 1
        return False

    def _checkpoint(self, iteration: int, history: list[float]) -> BayesianCheckpoint:
        best = self._best
        return BayesianCheckpoint(
            iteration=iteration,
            total_iterations=self.settings.total_iterations,
            best_fitness=best.fitness if best else -math.inf,
            best_net_worth=best.net_worth if best else -math.inf,
            best_policy=best.policy if best else None,
            convergence_history=list(history),
        )

    # -------------------------------------------------------------------------
    # Search loop
    # -------------------------------------------------------------------------

    def run(
        self,
        warm_start: Optional[list[Policy]] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_checkpoint: Optional[CheckpointCallback] = None,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> BayesianResult:
        """Run the search.

        Args:
            warm_start: Previously good policies evaluated first (at most 10)
            on_progress: Called with (iteration, total, phase, best fitness)
            on_checkpoint: Called with a BayesianCheckpoint every
                checkpoint_interval iterations
            cancellation_token: Checked before each iteration

        Returns:
            BayesianResult with the best policy found
        """
        settings = self.settings
        total = settings.total_iterations
        self._evaluations = []
        self._best = None
        self._best_result = None
        self._best_strategy = None
        self._since_improvement = 0

        seeds = [self._as_search_type(p) for p in (warm_start or [])][:MAX_WARM_START]
        random_phase = settings.random_exploration
        if seeds:
            random_phase = max(MIN_RANDOM_WITH_WARM_START, random_phase // 3)
        logger.info(
            "Starting policy search: iterations=%d random=%d warm_start=%d weekly=%s",
            total, random_phase, len(seeds), settings.use_weekly_policies,
        )

        history: list[float] = []
        cancelled = False

        for iteration in range(1, total + 1):
            if cancellation_token is not None and cancellation_token.cancelled:
                logger.info("Policy search cancelled before iteration %d", iteration)
                cancelled = True
                break

            if iteration <= len(seeds):
                phase, candidate = "warm_start", seeds[iteration - 1]
            elif iteration <= len(seeds) + random_phase:
                phase, candidate = "random", self.random_candidate()
            else:
                phase, candidate = "guided", self.guided_candidate()

            self.evaluate(candidate, iteration, phase)
            best_fitness = self._best.fitness if self._best else -math.inf
            history.append(best_fitness)

            if on_progress is not None:
                on_progress(iteration, total, phase, best_fitness)
            if on_checkpoint is not None and iteration % settings.checkpoint_interval == 0:
                on_checkpoint(self._checkpoint(iteration, history))

        best = self._best
        strategy = self._best_strategy
        if best is not None:
            logger.info(
                "Policy search finished: %d evaluations, best fitness %.2f at iteration %d",
                len(self._evaluations), best.fitness, best.iteration,
            )
        return BayesianResult(
            best_policy=best.policy if best else None,
            best_strategy=strategy,
            best_net_worth=best.net_worth if best else -math.inf,
            best_fitness=best.fitness if best else -math.inf,
            best_iteration=best.iteration if best else 0,
            convergence_history=history,
            action_summary=strategy.action_counts() if strategy else {},
            evaluations=len(self._evaluations),
            final_simulation=self._best_result,
            cancelled=cancelled,
        )

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, policy: Optional[Policy] = None, runs: int = 30) -> ValidationSummary:
        """Re-run one policy across ``runs`` demand seeds.

        Args:
            policy: Policy to validate (best found if None)
            runs: Number of simulations

        Raises:
            ValueError: If there is no policy to validate or runs < 1
        """
        if policy is None:
            if self._best is None:
                raise ValueError("No policy to validate; run the search first or pass a policy")
            policy = self._best.policy
        if runs < 1:
            raise ValueError("runs must be at least 1")

        base_seed = self.settings.random_seed or 0
        results = []
        for run_index in range(runs):
            _, result = self._simulate(policy, base_seed + run_index)
            results.append(result.state.net_worth)

        summary = ValidationSummary(
            mean=statistics.fmean(results),
            std=statistics.pstdev(results),
            min=min(results),
            max=max(results),
            results=results,
        )
        logger.info(
            "Validated policy over %d runs: mean %.2f std %.2f range [%.2f, %.2f]",
            runs, summary.mean, summary.std, summary.min, summary.max,
        )
        return summary
