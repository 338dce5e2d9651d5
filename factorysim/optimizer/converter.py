"""
Convert an analytical plan into a Strategy with timed actions.

The policy fields (order quantity, reorder point, prices, allocation,
debt settings) are set directly; machine purchases, sales and rookie
hiring become day-stamped actions.
"""

from typing import Optional

from factorysim.config.schema import MACHINE_TYPES
from factorysim.models.state import SimulationState
from factorysim.models.strategy import (
    AdjustPriceAction,
    BuyMachineAction,
    HireRookieAction,
    SellMachineAction,
    SetOrderQuantityAction,
    SetReorderPointAction,
    Strategy,
    StrategyActionType,
)
from factorysim.optimizer.analytical import AnalyticalPlan

# No investment or hiring this close to shutdown
LAST_INVESTMENT_DAY = 380
PURCHASE_INTERVAL_DAYS = 30


def plan_to_actions(plan: AnalyticalPlan, initial_state: SimulationState) -> list[StrategyActionType]:
    """Timed actions implementing ``plan`` from ``initial_state``, sorted by day."""
    start = plan.start_day
    actions: list[StrategyActionType] = [
        SetOrderQuantityAction(day=start, new_order_quantity=plan.inventory.order_quantity),
        SetReorderPointAction(day=start, new_reorder_point=max(0, plan.inventory.reorder_point)),
    ]

    # Buy one machine per month per type to spread the cash outlay
    for machine_type in MACHINE_TYPES:
        delta = plan.capacity.target_machines[machine_type] - initial_state.machines.get(machine_type)
        if delta > 0:
            for i in range(delta):
                day = start + i * PURCHASE_INTERVAL_DAYS
                if day < LAST_INVESTMENT_DAY:
                    actions.append(BuyMachineAction(day=day, machine_type=machine_type, count=1))
        elif delta < 0:
            actions.append(SellMachineAction(day=start + PURCHASE_INTERVAL_DAYS, machine_type=machine_type,
                                             count=-delta))

    for step in plan.workforce.hiring_schedule:
        if step.rookies > 0 and step.day < LAST_INVESTMENT_DAY:
            actions.append(HireRookieAction(day=step.day, count=step.rookies))

    actions.append(AdjustPriceAction(day=start, product_type="standard", new_price=plan.pricing.standard_price))

    # Stable sort keeps same-day actions in insertion order
    return sorted(actions, key=lambda a: a.day)


def plan_to_strategy(
    plan: AnalyticalPlan,
    initial_state: SimulationState,
    base: Optional[Strategy] = None,
) -> Strategy:
    """Build the full Strategy for ``plan``.

    Args:
        plan: Analytical plan (genes included)
        initial_state: State the plan starts from
        base: Strategy providing fields the plan does not set

    Returns:
        New Strategy
    """
    base = base or Strategy()
    return base.model_copy(
        deep=True,
        update={
            "order_quantity": plan.inventory.order_quantity,
            "reorder_point": max(0, plan.inventory.reorder_point),
            "standard_price": plan.pricing.standard_price,
            "custom_base_price": plan.pricing.custom_base_price,
            "mce_allocation_custom": plan.genes.mce_allocation_custom,
            "debt_paydown_aggressiveness": plan.genes.debt_paydown_aggressiveness,
            "min_cash_reserve_days": float(plan.genes.min_cash_reserve_days),
            "timed_actions": plan_to_actions(plan, initial_state),
        },
    )


def find_duplicate_policy_actions(actions: list[StrategyActionType]) -> Optional[int]:
    """First day carrying two policy-setting actions of the same type, if any."""
    seen: set[tuple[int, str]] = set()
    policy_types = {"SET_ORDER_QUANTITY", "SET_REORDER_POINT", "ADJUST_BATCH_SIZE"}
    for action in actions:
        if action.type not in policy_types:
            continue
        key = (action.day, action.type)
        if key in seen:
            return action.day
        seen.add(key)
    return None
