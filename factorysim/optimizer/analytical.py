"""
Analytical optimizer: closed-form operations research models.

This module handles:
- A complete baseline Strategy built from EOQ, ROP and EPQ, without search
- Gene-tuned plans combining:
  - EOQ plus reorder point for raw material
  - Newsvendor capacity planning for machine counts
  - Lead-time-aware rookie hiring schedule
  - Revenue-maximizing standard price on a linear demand curve
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.formulas import (
    FormulaError,
    calculate_eoq,
    calculate_epq,
    calculate_rop,
    z_score,
)
from factorysim.models.strategy import Strategy
from factorysim.optimizer.genes import DEFAULT_GENES, StrategyGenes

logger = logging.getLogger(__name__)

__all__ = [
    "AnalyticalOptimizer",
    "AnalyticalPlan",
    "CapacityPlan",
    "DemandForecast",
    "FormulaError",
    "InventoryPolicy",
    "PricingPolicy",
    "WorkforcePlan",
    "calculate_eoq",
    "calculate_epq",
    "calculate_rop",
    "inverse_normal",
    "z_score",
]

# Newsvendor economics per unit
REVENUE_PER_UNIT = 800.0
VARIABLE_COST_PER_UNIT = 200.0

# Coefficient of variation assumed for material demand
DEMAND_CV = 0.2
SAFETY_Z = 1.96

HIRING_INTERVAL_DAYS = 30
MIN_STANDARD_PRICE = 200.0

# Phase multipliers on mean demand: growth, then higher stable
PHASE2_DEMAND_FACTOR = 1.17
PHASE3_DEMAND_FACTOR = 1.33


def inverse_normal(p: float) -> float:
    """Stepped approximation of the standard normal quantile for p >= 0.5."""
    table = (
        (0.95, 1.96),
        (0.90, 1.28),
        (0.85, 1.04),
        (0.80, 0.84),
        (0.75, 0.67),
        (0.70, 0.52),
        (0.65, 0.39),
        (0.60, 0.25),
        (0.55, 0.13),
    )
    for level, z in table:
        if p >= level:
            return z
    return 0.0


# =============================================================================
# Plan components
# =============================================================================


@dataclass
class DemandForecast:
    """Expected product demand in units per day."""

    mean: float = 50.0
    std: float = 10.0


@dataclass
class InventoryPolicy:
    order_quantity: int
    reorder_point: int
    safety_stock: int


@dataclass
class CapacityPlan:
    target_machines: dict[str, int]
    utilization_target: float


@dataclass
class HiringStep:
    day: int
    rookies: int


@dataclass
class WorkforcePlan:
    hiring_schedule: list[HiringStep] = field(default_factory=list)
    target_workforce: int = 0

    @property
    def total_hires(self) -> int:
        return sum(step.rookies for step in self.hiring_schedule)


@dataclass
class PricingPolicy:
    standard_price: float
    custom_base_price: float


@dataclass
class AnalyticalPlan:
    """Gene-tuned plan, ready to be converted into timed actions."""

    inventory: InventoryPolicy
    capacity: CapacityPlan
    workforce: WorkforcePlan
    pricing: PricingPolicy
    genes: StrategyGenes
    start_day: int


# =============================================================================
# Optimizer
# =============================================================================


class AnalyticalOptimizer:
    """Builds strategies from closed-form models."""

    def __init__(self, config: Optional[FactoryConfig] = None, base_strategy: Optional[Strategy] = None):
        """Initialize the optimizer.

        Args:
            config: Simulation configuration (uses defaults if None)
            base_strategy: Strategy supplying market and debt fields
        """
        self.config = config or get_default_config()
        self.base_strategy = base_strategy or Strategy()

    # Closed-form formulas, exposed for callers working with an optimizer instance
    calculate_eoq = staticmethod(calculate_eoq)
    calculate_rop = staticmethod(calculate_rop)
    calculate_epq = staticmethod(calculate_epq)
    z_score = staticmethod(z_score)

    def generate_baseline(self) -> Strategy:
        """Complete baseline strategy from EOQ/ROP/EPQ at the historical demand level.

        Uses 45 units/day of material demand (sigma 11.25), 15 units/day of
        standard demand against 30 units/day of MCE throughput.

        Raises:
            FormulaError: If the configuration makes a formula undefined
        """
        materials = self.config.materials
        production = self.config.production
        daily_material = 45.0
        standard_daily = 15.0
        mce_rate = float(production.mce_units_per_machine)

        eoq = calculate_eoq(daily_material * 365, materials.order_fee, materials.holding_cost_per_unit)
        rop = calculate_rop(
            daily_material,
            materials.lead_time_days,
            self.config.policy.service_level,
            daily_material * 0.25,
        )
        epq = calculate_epq(
            standard_daily * 365,
            production.standard_order_fee,
            materials.per_standard_unit * materials.holding_cost_per_unit,
            mce_rate,
            standard_daily,
        )
        logger.debug("Baseline EOQ=%.1f ROP=%.1f EPQ=%.1f", eoq, rop, epq)

        return self.base_strategy.model_copy(
            deep=True,
            update={
                "order_quantity": max(1, round(eoq)),
                "reorder_point": max(0, round(rop)),
                "standard_batch_size": max(1, round(epq)),
                "mce_allocation_custom": 0.30,
                "timed_actions": [],
            },
        )

    def generate_strategy(
        self,
        forecast: DemandForecast,
        genes: StrategyGenes = DEFAULT_GENES,
        start_day: Optional[int] = None,
        current_experts: int = 1,
    ) -> AnalyticalPlan:
        """Expand ``genes`` into a complete analytical plan.

        Args:
            forecast: Expected product demand per day
            genes: Tuning knobs for each model
            start_day: First day the plan applies (defaults to the start day)
            current_experts: Experts on staff when the plan starts

        Returns:
            AnalyticalPlan
        """
        if start_day is None:
            start_day = self.config.calendar.start_day

        inventory = self.optimize_inventory(forecast.mean, genes.safety_stock_multiplier)
        capacity = self.optimize_capacity(forecast.mean, forecast.std, genes.target_capacity_multiplier)
        workforce = self.optimize_workforce(
            forecast, genes.workforce_aggressiveness, start_day, current_experts
        )
        daily_capacity = capacity.target_machines["MCE"] * self.config.production.mce_units_per_machine
        pricing = PricingPolicy(
            standard_price=self.optimize_pricing(
                daily_capacity,
                self.base_strategy.standard_demand_intercept,
                self.base_strategy.standard_demand_slope,
                genes.price_aggressiveness,
            ),
            custom_base_price=self.base_strategy.custom_base_price * genes.custom_price_multiplier,
        )
        return AnalyticalPlan(
            inventory=inventory,
            capacity=capacity,
            workforce=workforce,
            pricing=pricing,
            genes=genes,
            start_day=start_day,
        )

    # -------------------------------------------------------------------------
    # Models
    # -------------------------------------------------------------------------

    def optimize_inventory(self, daily_demand: float, safety_multiplier: float) -> InventoryPolicy:
        """EOQ order quantity plus a lead-time reorder point with safety stock."""
        materials = self.config.materials
        material_demand = daily_demand * materials.per_standard_unit
        lead_time = materials.lead_time_days

        eoq = calculate_eoq(material_demand * 365, materials.order_fee, materials.holding_cost_per_unit)
        safety_stock = SAFETY_Z * material_demand * DEMAND_CV * math.sqrt(lead_time) * safety_multiplier
        rop = material_demand * lead_time + safety_stock
        return InventoryPolicy(
            order_quantity=max(1, round(eoq)),
            reorder_point=round(rop),
            safety_stock=round(safety_stock),
        )

    def optimize_capacity(self, mean: float, std: float, multiplier: float) -> CapacityPlan:
        """Newsvendor capacity: mean + z(critical ratio) * std, scaled by ``multiplier``."""
        critical_ratio = (REVENUE_PER_UNIT - VARIABLE_COST_PER_UNIT) / REVENUE_PER_UNIT
        optimal = mean + inverse_normal(critical_ratio) * std
        target = optimal * multiplier

        per_machine = self.config.production.mce_units_per_machine
        mce = max(1, math.ceil(target / per_machine))
        machines = {
            "MCE": mce,
            "WMA": max(1, math.ceil(mce * 1.2)),
            "PUC": max(1, math.ceil(mce * 1.0)),
        }
        return CapacityPlan(target_machines=machines, utilization_target=optimal / (mce * per_machine))

    def forecast_capacity_need(self, forecast: DemandForecast, day: int) -> float:
        """Units/day needed on ``day`` given the demand phase."""
        calendar = self.config.calendar
        if day <= calendar.phase1_end_day:
            return forecast.mean
        if day <= calendar.phase2_end_day:
            return forecast.mean * PHASE2_DEMAND_FACTOR
        return forecast.mean * PHASE3_DEMAND_FACTOR

    def optimize_workforce(
        self,
        forecast: DemandForecast,
        aggressiveness: float,
        start_day: int,
        current_experts: int,
    ) -> WorkforcePlan:
        """Hire rookies ahead of need, accounting for the training lag.

        Hiring is checked every 30 days; no hire is planned whose trainees
        would finish too close to shutdown to pay back.
        """
        calendar = self.config.calendar
        training = self.config.workforce.rookie_training_days
        productivity = self.config.workforce.expert_productivity
        plan = WorkforcePlan()

        day = start_day
        while day < 365:
            ready_day = day + training + 15
            if ready_day > calendar.end_day - 30:
                break
            required = self.forecast_capacity_need(forecast, ready_day) * aggressiveness / productivity
            gap = required - (current_experts + plan.total_hires)
            if gap > 0:
                plan.hiring_schedule.append(HiringStep(day=day, rookies=math.ceil(gap)))
            day += HIRING_INTERVAL_DAYS

        plan.target_workforce = current_experts + plan.total_hires
        return plan

    @staticmethod
    def optimize_pricing(
        capacity: float,
        demand_intercept: float,
        demand_slope: float,
        aggressiveness: float,
    ) -> float:
        """Revenue-maximizing price for Q = a + b*P, capped by capacity.

        Raises:
            FormulaError: If the demand curve is not downward sloping
        """
        if demand_slope >= 0:
            raise FormulaError("Demand slope must be negative")
        price = -demand_intercept / (2 * demand_slope)
        if demand_intercept + demand_slope * price > capacity:
            price = (capacity - demand_intercept) / demand_slope
        return max(MIN_STANDARD_PRICE, price * aggressiveness)
