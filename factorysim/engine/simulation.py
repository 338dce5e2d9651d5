"""
Main simulation engine.

This module orchestrates all the component modules to process one
simulated day, always in this order:
1. Execute timed actions scheduled for the day, then fired rule actions
2. Receive arriving raw material orders
3. Advance rookie training
4. Pay wages (automatic salary loan on shortfall)
5. Charge and earn interest
6. Recalculate dynamic policies (when enabled)
7. Reorder raw material at the reorder point
8. Allocate MCE capacity and run the standard line
9. Draw custom demand and run the custom line
10. Price custom orders from recent delivery performance
11. Sell all finished goods
12. Apply overtime quit risk
13. Run automated debt management
14. Record history

The engine never modifies the caller's Strategy or initial state: it
works on deep copies, so one engine instance can be rerun safely.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional, get_args

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.demand import DemandModule
from factorysim.engine.finance import DebtManagementResult, DebtManager, FinanceModule
from factorysim.engine.inventory import InventoryModule
from factorysim.engine.policy import DynamicPolicyCalculator, PolicyChange
from factorysim.engine.pricing import PricingModule, SalesResult, calculate_custom_price
from factorysim.engine.production import ProductionModule, ProductionResult
from factorysim.engine.rules import RulesEngine
from factorysim.engine.workforce import QuitResult, WorkforceModule
from factorysim.models.state import SimulationState, create_historical_state
from factorysim.models.strategy import (
    AdjustBatchSizeAction,
    AdjustMceAllocationAction,
    AdjustPriceAction,
    BuyMachineAction,
    HireExpertAction,
    HireRookieAction,
    OrderMaterialsAction,
    PayDebtAction,
    SellMachineAction,
    SetOrderQuantityAction,
    SetReorderPointAction,
    StopMaterialOrdersAction,
    Strategy,
    StrategyActionType,
    TakeLoanAction,
)

if TYPE_CHECKING:
    from factorysim.optimizer.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class StrategyError(ValueError):
    """Raised when a strategy cannot be executed."""

    pass


# Handler method per action model; checked for completeness at import time.
ACTION_HANDLERS: dict[type, str] = {
    OrderMaterialsAction: "_handle_order_materials",
    StopMaterialOrdersAction: "_handle_stop_material_orders",
    AdjustBatchSizeAction: "_handle_adjust_batch_size",
    AdjustMceAllocationAction: "_handle_adjust_mce_allocation",
    HireRookieAction: "_handle_hire_rookie",
    HireExpertAction: "_handle_hire_expert",
    TakeLoanAction: "_handle_take_loan",
    PayDebtAction: "_handle_pay_debt",
    BuyMachineAction: "_handle_buy_machine",
    SellMachineAction: "_handle_sell_machine",
    AdjustPriceAction: "_handle_adjust_price",
    SetReorderPointAction: "_handle_set_reorder_point",
    SetOrderQuantityAction: "_handle_set_order_quantity",
}

_unhandled = set(get_args(StrategyActionType)) - set(ACTION_HANDLERS)
if _unhandled:
    raise StrategyError(f"No handler for action types: {sorted(t.__name__ for t in _unhandled)}")


@dataclass
class DayResult:
    """Everything that happened on one simulated day."""

    day: int
    actions_executed: int
    production: ProductionResult
    sales: SalesResult
    debt_management: DebtManagementResult
    quits: QuitResult
    policy_changes: list[PolicyChange] = field(default_factory=list)


@dataclass
class SimulationMetrics:
    """Summary metrics extracted from a finished run."""

    final_day: int
    final_cash: float
    final_debt: float
    net_worth: float
    total_revenue: float
    total_interest_paid: float
    total_commission_paid: float
    service_level: float
    average_delivery_time: float
    custom_deliveries: int
    late_deliveries: int
    rejected_custom_orders: int
    stockout_days: int
    peak_custom_wip: int
    standard_units_completed: int
    custom_orders_completed: int
    machines: dict[str, int] = field(default_factory=dict)


@dataclass
class SimulationResult:
    """Final state plus summary metrics of one run."""

    state: SimulationState
    metrics: SimulationMetrics
    policy_changes: tuple[PolicyChange, ...] = ()
    cancelled: bool = False


def compute_metrics(state: SimulationState) -> SimulationMetrics:
    """Summarize a (finished) simulation state."""
    history = state.history
    delivered = state.custom_deliveries
    if delivered > 0:
        service_level = max(0.0, 1.0 - state.late_custom_deliveries / delivered)
    else:
        service_level = 1.0

    weighted = sum(t * n for t, n in zip(history.custom_delivery_time, history.custom_production))
    produced = sum(history.custom_production)
    average_delivery = weighted / produced if produced else 0.0

    return SimulationMetrics(
        final_day=state.current_day,
        final_cash=state.cash,
        final_debt=state.debt,
        net_worth=state.net_worth,
        total_revenue=state.total_revenue,
        total_interest_paid=state.total_interest_paid,
        total_commission_paid=state.total_commission_paid,
        service_level=service_level,
        average_delivery_time=average_delivery,
        custom_deliveries=delivered,
        late_deliveries=state.late_custom_deliveries,
        rejected_custom_orders=state.rejected_custom_orders,
        stockout_days=state.stockout_days,
        peak_custom_wip=max(history.custom_wip, default=state.custom_wip_count),
        standard_units_completed=state.standard_units_completed,
        custom_orders_completed=state.custom_orders_completed,
        machines=state.machines.as_dict(),
    )


class SimulationEngine:
    """Runs a strategy day by day against a simulation state.

    Usage:
        engine = SimulationEngine(strategy, random_seed=42)
        result = engine.run(create_historical_state(), end_day=415)
        result.metrics.net_worth
    """

    def __init__(
        self,
        strategy: Strategy,
        config: Optional[FactoryConfig] = None,
        random_seed: Optional[int] = None,
        rules_engine: Optional[RulesEngine] = None,
        dynamic_policies: bool = False,
    ):
        """Initialize the simulation engine.

        Args:
            strategy: Strategy to execute (copied, never modified)
            config: Simulation configuration (uses defaults if None)
            random_seed: Random seed for demand and quit draws
            rules_engine: Optional reactive rules evaluated each day
            dynamic_policies: Recompute EOQ/ROP/EPQ as conditions change
        """
        self.config = config or get_default_config()
        if random_seed is None:
            random_seed = self.config.simulation.random_seed
        self._random_seed = random_seed
        self._base_strategy = strategy.model_copy(deep=True)
        self.strategy = self._base_strategy.model_copy(deep=True)

        self.finance = FinanceModule(self.config)
        self.debt_manager = DebtManager(self.config, self.finance)
        self.inventory = InventoryModule(self.config, self.finance)
        self.workforce = WorkforceModule(self.config, random_seed=random_seed)
        self.demand = DemandModule(self.config, random_seed=random_seed)
        self.production = ProductionModule(self.config, self.inventory, self.finance, self.workforce)
        self.pricing = PricingModule(self.config)
        self.rules_engine = rules_engine
        self.policy_calculator = DynamicPolicyCalculator(self.config) if dynamic_policies else None

        self._handlers: dict[type, Callable[[SimulationState, StrategyActionType], None]] = {
            action_type: getattr(self, name) for action_type, name in ACTION_HANDLERS.items()
        }

    def set_random_seed(self, seed: Optional[int]) -> None:
        """Set random seed for reproducible simulations."""
        self._random_seed = seed
        self.workforce.set_random_seed(seed)
        self.demand.set_random_seed(seed)

    def reset(self) -> None:
        """Restore the original strategy, random streams, and rule history."""
        self.strategy = self._base_strategy.model_copy(deep=True)
        self.set_random_seed(self._random_seed)
        if self.rules_engine is not None:
            self.rules_engine.reset()
        if self.policy_calculator is not None:
            self.policy_calculator.clear_history()

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def execute_action(self, state: SimulationState, action: StrategyActionType) -> None:
        """Dispatch one action to its handler.

        Raises:
            StrategyError: If the action type has no handler
        """
        handler = self._handlers.get(type(action))
        if handler is None:
            raise StrategyError(f"Unsupported action type: {type(action).__name__}")
        handler(state, action)

    def _handle_order_materials(self, state: SimulationState, action: OrderMaterialsAction) -> None:
        state.material_orders_stopped = False
        self.inventory.order_raw_materials(state, action.quantity)

    def _handle_stop_material_orders(self, state: SimulationState, action: StopMaterialOrdersAction) -> None:
        state.material_orders_stopped = True

    def _handle_adjust_batch_size(self, state: SimulationState, action: AdjustBatchSizeAction) -> None:
        self.strategy.standard_batch_size = action.new_size

    def _handle_adjust_mce_allocation(self, state: SimulationState, action: AdjustMceAllocationAction) -> None:
        self.strategy.mce_allocation_custom = action.new_allocation

    def _handle_hire_rookie(self, state: SimulationState, action: HireRookieAction) -> None:
        self.workforce.hire_rookies(state, action.count)

    def _handle_hire_expert(self, state: SimulationState, action: HireExpertAction) -> None:
        self.workforce.hire_experts(state, action.count)

    def _handle_take_loan(self, state: SimulationState, action: TakeLoanAction) -> None:
        self.finance.take_loan(state, action.amount, self.config.finance.normal_loan_commission)

    def _handle_pay_debt(self, state: SimulationState, action: PayDebtAction) -> None:
        self.finance.pay_debt(state, action.amount)

    def _handle_buy_machine(self, state: SimulationState, action: BuyMachineAction) -> None:
        cost = self.config.machines.buy_prices[action.machine_type] * action.count
        if state.cash < cost:
            logger.debug(
                "Day %d: cannot afford %d %s (%.2f)",
                state.current_day, action.count, action.machine_type, cost,
            )
            return
        state.cash -= cost
        state.machines.set(action.machine_type, state.machines.get(action.machine_type) + action.count)

    def _handle_sell_machine(self, state: SimulationState, action: SellMachineAction) -> None:
        owned = state.machines.get(action.machine_type)
        if action.count > owned:
            logger.debug(
                "Day %d: cannot sell %d %s (own %d)",
                state.current_day, action.count, action.machine_type, owned,
            )
            return
        state.cash += self.config.machines.sell_prices[action.machine_type] * action.count
        state.machines.set(action.machine_type, owned - action.count)

    def _handle_adjust_price(self, state: SimulationState, action: AdjustPriceAction) -> None:
        if action.product_type == "standard":
            self.strategy.standard_price = action.new_price
        else:
            self.strategy.custom_base_price = action.new_price

    def _handle_set_reorder_point(self, state: SimulationState, action: SetReorderPointAction) -> None:
        self.strategy.reorder_point = action.new_reorder_point

    def _handle_set_order_quantity(self, state: SimulationState, action: SetOrderQuantityAction) -> None:
        self.strategy.order_quantity = action.new_order_quantity

    # -------------------------------------------------------------------------
    # Daily processing
    # -------------------------------------------------------------------------

    def process_day(self, state: SimulationState) -> DayResult:
        """Advance ``state`` by one day in place.

        Args:
            state: State to advance (its current_day is incremented first)

        Returns:
            DayResult for the processed day
        """
        state.current_day += 1
        day = state.current_day
        strategy = self.strategy

        # 1. Scheduled actions, then reactive rules
        actions = strategy.actions_for_day(day)
        for action in actions:
            self.execute_action(state, action)
        fired = self.rules_engine.evaluate(state, day) if self.rules_engine is not None else []
        for action in fired:
            self.execute_action(state, action)

        # 2. Arriving raw material
        self.inventory.process_arriving_orders(state)

        # 3. Rookie training
        self.workforce.process_training(state)

        # 4. Wages
        wages = self.workforce.daily_salary_cost(state.workforce, strategy.daily_overtime_hours)
        self.finance.process_payment(state, wages, is_wage=True)

        # 5. Interest
        self.finance.apply_daily_interest(state)

        # 6. Dynamic policies
        policy_changes: list[PolicyChange] = []
        if self.policy_calculator is not None:
            policy_changes = self.policy_calculator.recalculate_policies(state, strategy)

        # 7. Automatic reorder
        self.inventory.check_and_reorder(state, strategy)

        # 8-9. Production on both lines
        arrivals = self.demand.generate_custom_orders(day, strategy)
        production = self.production.process_day(state, strategy, arrivals)
        if production.stockout:
            state.stockout_days += 1

        # 10. Custom pricing from recent delivery performance
        custom_price = calculate_custom_price(
            strategy.custom_base_price,
            strategy.custom_penalty_per_day,
            self.pricing.average_delivery_time(state),
            strategy.custom_target_delivery_days,
        )

        # 11. Sales
        sales = self.pricing.process_sales(state, strategy.standard_price, custom_price)

        # 12. Quit risk
        quits = self.workforce.apply_quit_risk(
            state,
            strategy.daily_overtime_hours,
            strategy.overtime_trigger_days,
            strategy.daily_quit_probability,
        )

        # 13. Debt management
        debt_result = self.debt_manager.automated_debt_management(state, strategy)

        # 14. History
        state.history.record(
            days=day,
            cash=state.cash,
            debt=state.debt,
            net_worth=state.net_worth,
            raw_material=state.raw_material_inventory,
            custom_wip=state.custom_wip_count,
            standard_wip=state.standard_wip.total_units(),
            standard_production=production.standard.completed,
            custom_production=production.custom.completed,
            custom_delivery_time=production.custom.average_delivery_time,
            standard_price=strategy.standard_price,
            custom_price=custom_price,
            revenue=sales.revenue,
            experts=state.workforce.experts,
            rookies=state.workforce.rookies,
            mce_allocation=strategy.mce_allocation_custom,
            arcp_capacity=production.arcp_capacity,
        )

        return DayResult(
            day=day,
            actions_executed=len(actions) + len(fired),
            production=production,
            sales=sales,
            debt_management=debt_result,
            quits=quits,
            policy_changes=policy_changes,
        )

    def run(
        self,
        initial_state: SimulationState,
        end_day: Optional[int] = None,
        cancellation_token: Optional["CancellationToken"] = None,
    ) -> SimulationResult:
        """Simulate from a copy of ``initial_state`` through ``end_day``.

        Args:
            initial_state: Starting state (not modified)
            end_day: Last day to simulate (defaults to the configured shutdown day)
            cancellation_token: Checked before every day; stops the run early

        Returns:
            SimulationResult with the final state and summary metrics
        """
        if end_day is None:
            end_day = self.config.calendar.end_day
        self.reset()
        state = initial_state.clone()
        cancelled = False

        while state.current_day < end_day:
            if cancellation_token is not None and cancellation_token.cancelled:
                cancelled = True
                break
            self.process_day(state)

        changes = self.policy_calculator.change_log if self.policy_calculator is not None else ()
        return SimulationResult(
            state=state,
            metrics=compute_metrics(state),
            policy_changes=changes,
            cancelled=cancelled,
        )


def run_simulation(
    strategy: Strategy,
    end_day: Optional[int] = None,
    initial_state: Optional[SimulationState] = None,
    random_seed: Optional[int] = None,
    config: Optional[FactoryConfig] = None,
    **engine_options,
) -> SimulationResult:
    """Convenience function to run a complete simulation.

    Args:
        strategy: Strategy to execute
        end_day: Last day to simulate (defaults to the shutdown day)
        initial_state: Starting state (defaults to the historical snapshot)
        random_seed: Random seed for reproducibility
        config: Simulation configuration
        **engine_options: Extra SimulationEngine arguments
            (rules_engine, dynamic_policies)

    Returns:
        SimulationResult
    """
    config = config or get_default_config()
    if initial_state is None:
        initial_state = create_historical_state(config)
    engine = SimulationEngine(strategy, config=config, random_seed=random_seed, **engine_options)
    return engine.run(initial_state, end_day=end_day)
