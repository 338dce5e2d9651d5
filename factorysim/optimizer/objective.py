"""
Objective function scoring a finished simulation run.

score = net worth
        + revenue_weight * total revenue
        + service_level_weight * service level
        - terminal asset penalty
        - violation penalties

Violations (zero MCE machines, bankruptcy, custom queue overflow, late
deliveries, stockout days) carry penalties large enough to make such
runs uncompetitive rather than forbidding them outright.
"""

from dataclasses import dataclass, field
from typing import Optional

from factorysim.config import defaults as d
from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.simulation import SimulationResult
from factorysim.models.state import SimulationState


@dataclass
class ViolationPenalties:
    zero_machines: float = 0.0
    bankruptcy: float = 0.0
    custom_queue_overflow: float = 0.0
    late_deliveries: float = 0.0
    stockout_days: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.zero_machines
            + self.bankruptcy
            + self.custom_queue_overflow
            + self.late_deliveries
            + self.stockout_days
        )


@dataclass
class ObjectiveBreakdown:
    """Score with each of its components."""

    score: float
    net_worth: float
    total_revenue: float
    service_level: float
    terminal_assets: float
    asset_penalty: float
    violations: ViolationPenalties = field(default_factory=ViolationPenalties)


def terminal_asset_value(state: SimulationState, config: FactoryConfig) -> float:
    """Book value of materials, WIP, finished goods and machines still held."""
    raw = state.raw_material_inventory * config.materials.unit_cost
    wip = (
        state.standard_wip.total_units() * d.STANDARD_WIP_BOOK_VALUE
        + state.custom_wip_count * d.CUSTOM_WIP_BOOK_VALUE
    )
    finished = (
        state.finished_goods.standard * d.STANDARD_FINISHED_BOOK_VALUE
        + state.finished_goods.custom * d.CUSTOM_FINISHED_BOOK_VALUE
    )
    machines = sum(
        count * config.machines.sell_prices[machine_type]
        for machine_type, count in state.machines.as_dict().items()
    )
    return raw + wip + finished + machines


def evaluate_violations(state: SimulationState, config: FactoryConfig) -> ViolationPenalties:
    obj = config.objective
    max_wip = config.production.custom_max_wip
    overflow_days = sum(1 for wip in state.history.custom_wip if wip > max_wip)
    return ViolationPenalties(
        zero_machines=obj.zero_machine_penalty if state.machines.mce < 1 else 0.0,
        bankruptcy=obj.bankruptcy_penalty if state.cash < obj.bankruptcy_cash_threshold else 0.0,
        custom_queue_overflow=overflow_days * obj.queue_overflow_penalty,
        late_deliveries=state.late_custom_deliveries * obj.late_delivery_penalty,
        stockout_days=state.stockout_days * obj.stockout_day_penalty,
    )


def evaluate_objective(
    result: SimulationResult,
    config: Optional[FactoryConfig] = None,
) -> ObjectiveBreakdown:
    """Score a simulation result.

    Args:
        result: Finished simulation
        config: Configuration with objective weights (uses defaults if None)

    Returns:
        ObjectiveBreakdown whose ``score`` is the fitness
    """
    config = config or get_default_config()
    obj = config.objective
    state = result.state

    assets = terminal_asset_value(state, config)
    days_to_shutdown = max(0, config.calendar.end_day - state.current_day)
    asset_penalty = assets * obj.terminal_asset_penalty_rate if days_to_shutdown < obj.terminal_asset_window_days else 0.0

    violations = evaluate_violations(state, config)
    service_level = result.metrics.service_level

    score = (
        state.net_worth
        + obj.revenue_weight * state.total_revenue
        + obj.service_level_weight * service_level
        - asset_penalty
        - violations.total
    )
    return ObjectiveBreakdown(
        score=score,
        net_worth=state.net_worth,
        total_revenue=state.total_revenue,
        service_level=service_level,
        terminal_assets=assets,
        asset_penalty=asset_penalty,
        violations=violations,
    )


class ObjectiveFunction:
    """Callable wrapper binding a configuration."""

    def __init__(self, config: Optional[FactoryConfig] = None):
        self.config = config or get_default_config()

    def __call__(self, result: SimulationResult) -> float:
        return evaluate_objective(result, self.config).score

    def breakdown(self, result: SimulationResult) -> ObjectiveBreakdown:
        return evaluate_objective(result, self.config)
