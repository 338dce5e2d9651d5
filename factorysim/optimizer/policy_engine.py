"""
Policy engine: expand fifteen policy parameters into a day-by-day schedule.

This module handles:
- PolicyParameters and their search bounds (PARAMETER_SPACE)
- State-conditional multipliers keyed on cash, inventory and debt levels
- Optional week-by-week parameters
- A forward day walk over a lightweight projection of the state that emits
  ORDER_MATERIALS, ADJUST_BATCH_SIZE, ADJUST_MCE_ALLOCATION, HIRE_ROOKIE,
  TAKE_LOAN, PAY_DEBT and ADJUST_PRICE actions

The projection is a deep copy of the starting state and is never the
authoritative state: only the simulation engine decides what actually
happens.
"""

import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.models.state import SimulationState, TrainingRookie
from factorysim.models.strategy import (
    AdjustBatchSizeAction,
    AdjustMceAllocationAction,
    AdjustPriceAction,
    HireRookieAction,
    OrderMaterialsAction,
    PayDebtAction,
    Strategy,
    StrategyActionType,
    TakeLoanAction,
)

WEEKS_PER_YEAR = 52
MIN_DAYS_BETWEEN_ORDERS = 5
MAX_HIRES_PER_DAY = 5
MAX_DEBT_FOR_LOANS = 200000.0
MIN_REPAYMENT = 1000.0

# Custom WIP pressure levels for allocation adjustment
CUSTOM_WIP_EMERGENCY = 300
CUSTOM_WIP_WARNING = 250
STARVED_FINISHED_STANDARD = 50
STARVED_STANDARD_WIP = 100


# =============================================================================
# Parameters
# =============================================================================


class PolicyParameters(BaseModel):
    """Fifteen tunable policies governing daily decisions."""

    # Inventory
    reorder_point: int = 400
    order_quantity: int = 500
    safety_stock: int = 200

    # Production allocation
    mce_custom_allocation: float = 0.55

    # Batch production
    standard_batch_size: int = 80
    batch_interval: int = 8

    # Workforce
    target_experts: int = 12
    hire_threshold: float = 0.8
    max_overtime_hours: float = 2.0
    overtime_threshold: float = 0.85

    # Finance
    cash_reserve_target: int = 25000
    loan_amount: int = 30000
    repay_threshold: int = 90000

    # Pricing
    standard_price_multiplier: float = 1.0
    custom_base_price: float = 110.0


class WeeklyPolicyParameters(BaseModel):
    """One PolicyParameters set per week of the simulated year (weeks 1-52)."""

    weeks: dict[int, PolicyParameters] = Field(default_factory=dict)


@dataclass(frozen=True)
class ParameterBounds:
    low: float
    high: float
    integer: bool = False


PARAMETER_SPACE: dict[str, ParameterBounds] = {
    "reorder_point": ParameterBounds(200, 600, integer=True),
    "order_quantity": ParameterBounds(300, 800, integer=True),
    "safety_stock": ParameterBounds(100, 300, integer=True),
    "mce_custom_allocation": ParameterBounds(0.4, 0.7),
    "standard_batch_size": ParameterBounds(50, 120, integer=True),
    "batch_interval": ParameterBounds(6, 12, integer=True),
    "target_experts": ParameterBounds(1, 50, integer=True),
    "hire_threshold": ParameterBounds(0.3, 1.0),
    "max_overtime_hours": ParameterBounds(0.0, 4.0),
    "overtime_threshold": ParameterBounds(0.5, 1.0),
    "cash_reserve_target": ParameterBounds(15000, 35000, integer=True),
    "loan_amount": ParameterBounds(20000, 50000, integer=True),
    "repay_threshold": ParameterBounds(70000, 120000, integer=True),
    "standard_price_multiplier": ParameterBounds(0.9, 1.1),
    "custom_base_price": ParameterBounds(105.0, 115.0),
}


def default_policy() -> PolicyParameters:
    """Baseline policy from historical operations."""
    return PolicyParameters()


def random_policy(rng: Optional[random.Random] = None) -> PolicyParameters:
    """Draw every parameter uniformly within PARAMETER_SPACE."""
    rng = rng or random.Random()
    values: dict[str, float] = {}
    for name, bounds in PARAMETER_SPACE.items():
        if bounds.integer:
            values[name] = rng.randint(int(bounds.low), int(bounds.high))
        else:
            values[name] = rng.uniform(bounds.low, bounds.high)
    return PolicyParameters(**values)


def clamp_policy(values: dict[str, float]) -> PolicyParameters:
    """Clamp (and round integer) values into PARAMETER_SPACE."""
    clamped: dict[str, float] = {}
    for name, bounds in PARAMETER_SPACE.items():
        value = max(bounds.low, min(bounds.high, values[name]))
        clamped[name] = int(round(value)) if bounds.integer else value
    return PolicyParameters(**clamped)


# =============================================================================
# State-conditional multipliers
# =============================================================================


class LevelState(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# (LOW below, HIGH at or above)
CASH_THRESHOLDS = (80000.0, 200000.0)
INVENTORY_THRESHOLDS = (200, 500)
DEBT_THRESHOLDS = (50000.0, 150000.0)

CASH_MULTIPLIERS = {LevelState.LOW: 0.7, LevelState.MEDIUM: 1.0, LevelState.HIGH: 1.2}
INVENTORY_MULTIPLIERS = {LevelState.LOW: 1.3, LevelState.MEDIUM: 1.0, LevelState.HIGH: 0.7}
DEBT_MULTIPLIERS = {LevelState.LOW: 1.1, LevelState.MEDIUM: 1.0, LevelState.HIGH: 0.8}


def classify_level(value: float, thresholds: tuple[float, float]) -> LevelState:
    low, high = thresholds
    if value < low:
        return LevelState.LOW
    if value >= high:
        return LevelState.HIGH
    return LevelState.MEDIUM


# =============================================================================
# Engine
# =============================================================================


class PolicyEngine:
    """Turns policy parameters into a concrete timed-action schedule.

    Usage:
        engine = PolicyEngine(default_policy())
        strategy = engine.to_strategy(create_historical_state())
    """

    def __init__(
        self,
        params: Union[PolicyParameters, WeeklyPolicyParameters],
        config: Optional[FactoryConfig] = None,
    ):
        self.config = config or get_default_config()
        self.params = params
        self._last_order_day = 0
        self._last_batch_day = 0

    @property
    def is_weekly(self) -> bool:
        return isinstance(self.params, WeeklyPolicyParameters)

    def week_number(self, day: int) -> int:
        """Week of the simulated year; the final partial week reuses week 52."""
        week = (day - self.config.calendar.start_day) // 7 + 1
        return min(week, WEEKS_PER_YEAR)

    def base_parameters(self, day: int) -> PolicyParameters:
        """Parameters in force on ``day`` before state multipliers.

        Raises:
            KeyError: If a weekly policy has no entry for the day's week
        """
        if isinstance(self.params, WeeklyPolicyParameters):
            week = self.week_number(day)
            if week not in self.params.weeks:
                raise KeyError(f"No policy parameters defined for week {week}")
            return self.params.weeks[week]
        return self.params

    def representative_parameters(self) -> PolicyParameters:
        """Parameters used for the strategy's static fields (week 1 when weekly)."""
        return self.base_parameters(self.config.calendar.start_day)

    def effective_parameters(self, day: int, state: SimulationState) -> PolicyParameters:
        """Apply cash, inventory and debt multipliers to the day's parameters."""
        base = self.base_parameters(day)
        cash = CASH_MULTIPLIERS[classify_level(state.cash, CASH_THRESHOLDS)]
        inventory = INVENTORY_MULTIPLIERS[classify_level(state.raw_material_inventory, INVENTORY_THRESHOLDS)]
        debt = DEBT_MULTIPLIERS[classify_level(state.debt, DEBT_THRESHOLDS)]

        return base.model_copy(update={
            "reorder_point": round(base.reorder_point * inventory),
            "order_quantity": round(base.order_quantity * inventory * cash),
            "safety_stock": round(base.safety_stock * inventory),
            "mce_custom_allocation": max(0.2, min(0.8, base.mce_custom_allocation * cash)),
            "standard_batch_size": round(base.standard_batch_size * debt),
            "target_experts": round(base.target_experts * cash),
            "max_overtime_hours": base.max_overtime_hours * cash * debt,
            "cash_reserve_target": round(base.cash_reserve_target * debt),
            # Borrow more when debt is low
            "loan_amount": round(base.loan_amount / debt),
            "repay_threshold": round(base.repay_threshold * debt),
        })

    # -------------------------------------------------------------------------
    # Day walk
    # -------------------------------------------------------------------------

    def generate_actions(self, initial_state: SimulationState) -> list[StrategyActionType]:
        """All actions from the start day through the end day, sorted by day."""
        calendar = self.config.calendar
        self._last_order_day = 0
        self._last_batch_day = 0
        projection = initial_state.clone()

        actions: list[StrategyActionType] = []
        for day in range(calendar.start_day, calendar.end_day + 1):
            daily = self.daily_actions(projection, day)
            actions.extend(daily)
            self._update_projection(projection, daily, day)
        return sorted(actions, key=lambda a: a.day)

    def daily_actions(self, state: SimulationState, day: int) -> list[StrategyActionType]:
        """Actions the policy takes on ``day`` given the projected ``state``."""
        params = self.effective_parameters(day, state)
        actions: list[StrategyActionType] = []

        # Inventory
        if (
            state.raw_material_inventory <= params.reorder_point
            and day - self._last_order_day >= MIN_DAYS_BETWEEN_ORDERS
            and params.order_quantity > 0
        ):
            actions.append(OrderMaterialsAction(day=day, quantity=params.order_quantity))
            self._last_order_day = day

        # Batch size
        if day - self._last_batch_day >= params.batch_interval and params.standard_batch_size > 0:
            actions.append(AdjustBatchSizeAction(day=day, new_size=params.standard_batch_size))
            self._last_batch_day = day

        # MCE allocation responds to WIP pressure
        actions.append(AdjustMceAllocationAction(day=day, new_allocation=self.adjusted_allocation(state, params)))

        # Workforce
        future_experts = state.workforce.experts + len(state.workforce.rookies_in_training)
        if future_experts < params.target_experts * params.hire_threshold:
            hires = math.ceil(params.target_experts - future_experts)
            if 0 < hires <= MAX_HIRES_PER_DAY:
                actions.append(HireRookieAction(day=day, count=hires))

        # Finance
        if state.cash < params.cash_reserve_target and state.debt < MAX_DEBT_FOR_LOANS and params.loan_amount > 0:
            actions.append(TakeLoanAction(day=day, amount=params.loan_amount))
        if state.cash > params.repay_threshold and state.debt > 0:
            repay = min(state.cash - params.cash_reserve_target, state.debt)
            if repay > MIN_REPAYMENT:
                actions.append(PayDebtAction(day=day, amount=math.floor(repay)))

        # Standard price is set once; custom price follows delivery performance
        if day == self.config.calendar.start_day:
            price = round(self.config.market.standard_market_price * params.standard_price_multiplier)
            actions.append(AdjustPriceAction(day=day, product_type="standard", new_price=price))

        return actions

    @staticmethod
    def adjusted_allocation(state: SimulationState, params: PolicyParameters) -> float:
        """Custom MCE share after WIP-pressure adjustments, clamped to [0.3, 0.8]."""
        allocation = params.mce_custom_allocation
        custom_wip = state.custom_wip_count
        if custom_wip > CUSTOM_WIP_EMERGENCY:
            allocation += 0.05
        elif custom_wip > CUSTOM_WIP_WARNING:
            allocation += 0.03
        if (
            state.finished_goods.standard < STARVED_FINISHED_STANDARD
            and state.standard_wip.total_units() < STARVED_STANDARD_WIP
        ):
            allocation -= 0.10
        return max(0.3, min(0.8, allocation))

    def _update_projection(self, state: SimulationState, actions: list[StrategyActionType], day: int) -> None:
        """Rough effect of the day's actions, enough to drive the next day's policy."""
        materials = self.config.materials
        for action in actions:
            if isinstance(action, TakeLoanAction):
                state.cash += action.amount
                state.debt += action.amount
            elif isinstance(action, PayDebtAction):
                state.cash -= action.amount
                state.debt -= action.amount
            elif isinstance(action, HireRookieAction):
                state.workforce.rookies += action.count
                state.workforce.rookies_in_training.extend(
                    TrainingRookie(hire_day=day, days_remaining=self.config.workforce.rookie_training_days)
                    for _ in range(action.count)
                )
            elif isinstance(action, OrderMaterialsAction):
                state.cash -= action.quantity * materials.unit_cost + materials.order_fee

        state.current_day = day
        still_training = []
        for rookie in state.workforce.rookies_in_training:
            rookie.days_remaining -= 1
            if rookie.days_remaining <= 0:
                state.workforce.experts += 1
                state.workforce.rookies -= 1
            else:
                still_training.append(rookie)
        state.workforce.rookies_in_training = still_training

    # -------------------------------------------------------------------------
    # Strategy construction
    # -------------------------------------------------------------------------

    def to_strategy(self, initial_state: SimulationState, base: Optional[Strategy] = None) -> Strategy:
        """Full Strategy: representative static fields plus the generated schedule."""
        base = base or Strategy()
        params = self.representative_parameters()
        return base.model_copy(
            deep=True,
            update={
                "reorder_point": params.reorder_point,
                "order_quantity": params.order_quantity,
                "standard_batch_size": params.standard_batch_size,
                "mce_allocation_custom": params.mce_custom_allocation,
                "standard_price": float(round(self.config.market.standard_market_price
                                              * params.standard_price_multiplier)),
                "custom_base_price": params.custom_base_price,
                "daily_overtime_hours": params.max_overtime_hours,
                "auto_debt_paydown": True,
                "min_cash_reserve_days": float(round(params.cash_reserve_target / 5000)),
                "emergency_loan_buffer": float(params.cash_reserve_target),
                "timed_actions": self.generate_actions(initial_state),
            },
        )
