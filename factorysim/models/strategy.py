"""
Strategy model: static policy fields plus a day-stamped action schedule.

A Strategy is treated as immutable by the simulation engine, which works
on its own deep copy. Optional overrides are resolved once, at
construction time, through ``Strategy.with_overrides``.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

MachineType = Literal["MCE", "WMA", "PUC"]
ProductType = Literal["standard", "custom"]


# =============================================================================
# Timed actions
# =============================================================================


class _Action(BaseModel):
    day: int = Field(ge=0, description="Day on which the action executes")


class OrderMaterialsAction(_Action):
    type: Literal["ORDER_MATERIALS"] = "ORDER_MATERIALS"
    quantity: int = Field(gt=0)


class StopMaterialOrdersAction(_Action):
    type: Literal["STOP_MATERIAL_ORDERS"] = "STOP_MATERIAL_ORDERS"


class AdjustBatchSizeAction(_Action):
    type: Literal["ADJUST_BATCH_SIZE"] = "ADJUST_BATCH_SIZE"
    new_size: int = Field(gt=0)


class AdjustMceAllocationAction(_Action):
    type: Literal["ADJUST_MCE_ALLOCATION"] = "ADJUST_MCE_ALLOCATION"
    new_allocation: float = Field(ge=0.0, le=1.0)


class HireRookieAction(_Action):
    type: Literal["HIRE_ROOKIE"] = "HIRE_ROOKIE"
    count: int = Field(gt=0)


class HireExpertAction(_Action):
    type: Literal["HIRE_EXPERT"] = "HIRE_EXPERT"
    count: int = Field(gt=0)


class TakeLoanAction(_Action):
    type: Literal["TAKE_LOAN"] = "TAKE_LOAN"
    amount: float = Field(gt=0.0)


class PayDebtAction(_Action):
    type: Literal["PAY_DEBT"] = "PAY_DEBT"
    amount: float = Field(gt=0.0)


class BuyMachineAction(_Action):
    type: Literal["BUY_MACHINE"] = "BUY_MACHINE"
    machine_type: MachineType
    count: int = Field(default=1, gt=0)


class SellMachineAction(_Action):
    type: Literal["SELL_MACHINE"] = "SELL_MACHINE"
    machine_type: MachineType
    count: int = Field(default=1, gt=0)


class AdjustPriceAction(_Action):
    type: Literal["ADJUST_PRICE"] = "ADJUST_PRICE"
    product_type: ProductType
    new_price: float = Field(gt=0.0)


class SetReorderPointAction(_Action):
    type: Literal["SET_REORDER_POINT"] = "SET_REORDER_POINT"
    new_reorder_point: int = Field(ge=0)


class SetOrderQuantityAction(_Action):
    type: Literal["SET_ORDER_QUANTITY"] = "SET_ORDER_QUANTITY"
    new_order_quantity: int = Field(gt=0)


StrategyActionType = Union[
    OrderMaterialsAction,
    StopMaterialOrdersAction,
    AdjustBatchSizeAction,
    AdjustMceAllocationAction,
    HireRookieAction,
    HireExpertAction,
    TakeLoanAction,
    PayDebtAction,
    BuyMachineAction,
    SellMachineAction,
    AdjustPriceAction,
    SetReorderPointAction,
    SetOrderQuantityAction,
]

StrategyAction = Annotated[StrategyActionType, Field(discriminator="type")]

_action_adapter: TypeAdapter = TypeAdapter(StrategyAction)


def parse_action(data: dict[str, Any]) -> StrategyActionType:
    """Build the matching action model from a plain dict.

    Raises:
        pydantic.ValidationError: If ``type`` is unknown or fields are invalid
    """
    return _action_adapter.validate_python(data)


# =============================================================================
# Strategy
# =============================================================================


class StrategyOverrides(BaseModel):
    """Optional replacements for Strategy fields.

    Unset fields leave the base strategy untouched.
    """

    reorder_point: Optional[int] = Field(default=None, ge=0)
    order_quantity: Optional[int] = Field(default=None, gt=0)
    standard_batch_size: Optional[int] = Field(default=None, gt=0)
    mce_allocation_custom: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    standard_price: Optional[float] = Field(default=None, gt=0.0)
    daily_overtime_hours: Optional[float] = Field(default=None, ge=0.0)
    custom_base_price: Optional[float] = Field(default=None, gt=0.0)
    custom_penalty_per_day: Optional[float] = Field(default=None, ge=0.0)
    custom_target_delivery_days: Optional[float] = Field(default=None, ge=0.0)
    custom_demand_mean1: Optional[float] = Field(default=None, ge=0.0)
    custom_demand_std_dev1: Optional[float] = Field(default=None, ge=0.0)
    custom_demand_mean2: Optional[float] = Field(default=None, ge=0.0)
    custom_demand_std_dev2: Optional[float] = Field(default=None, ge=0.0)
    standard_demand_intercept: Optional[float] = None
    standard_demand_slope: Optional[float] = None
    overtime_trigger_days: Optional[int] = Field(default=None, ge=0)
    daily_quit_probability: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    auto_debt_paydown: Optional[bool] = None
    min_cash_reserve_days: Optional[float] = Field(default=None, ge=0.0)
    debt_paydown_aggressiveness: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    preemptive_wage_loan_days: Optional[int] = Field(default=None, ge=0)
    max_debt_threshold: Optional[float] = Field(default=None, ge=0.0)
    emergency_loan_buffer: Optional[float] = Field(default=None, ge=0.0)
    max_debt_to_asset_ratio: Optional[float] = Field(default=None, ge=0.0)
    min_interest_coverage: Optional[float] = Field(default=None, gt=0.0)
    max_debt_to_revenue_ratio: Optional[float] = Field(default=None, ge=0.0)


class Strategy(BaseModel):
    """Full policy for one simulation run."""

    # Inventory and production policy
    reorder_point: int = Field(default=400, ge=0, description="Raw material reorder point")
    order_quantity: int = Field(default=500, gt=0, description="Raw material order quantity")
    standard_batch_size: int = Field(default=80, gt=0, description="Units per standard batch release")
    mce_allocation_custom: float = Field(
        default=0.55,
        ge=0.0,
        le=1.0,
        description="Fraction of MCE capacity given to the custom line",
    )
    daily_overtime_hours: float = Field(default=0.0, ge=0.0, le=8.0)

    # Pricing
    standard_price: float = Field(default=225.0, gt=0.0)
    custom_base_price: float = Field(default=110.0, gt=0.0)
    custom_penalty_per_day: float = Field(default=0.27, ge=0.0)
    custom_target_delivery_days: float = Field(default=5.0, ge=0.0)

    # Demand model (market conditions)
    custom_demand_mean1: float = Field(default=25.0, ge=0.0, description="Phase 1 custom orders/day")
    custom_demand_std_dev1: float = Field(default=5.0, ge=0.0)
    custom_demand_mean2: float = Field(default=32.5, ge=0.0, description="Post-phase-1 custom orders/day")
    custom_demand_std_dev2: float = Field(default=6.5, ge=0.0)
    standard_demand_intercept: float = Field(default=1500.0)
    standard_demand_slope: float = Field(default=-5.0)

    # Quit risk
    overtime_trigger_days: int = Field(default=5, ge=0)
    daily_quit_probability: float = Field(default=0.10, ge=0.0, le=1.0)

    # Debt management
    auto_debt_paydown: bool = True
    min_cash_reserve_days: float = Field(default=5.0, ge=0.0)
    debt_paydown_aggressiveness: float = Field(default=0.8, ge=0.0, le=1.0)
    preemptive_wage_loan_days: int = Field(default=4, ge=0)
    max_debt_threshold: float = Field(default=200000.0, ge=0.0)
    emergency_loan_buffer: float = Field(default=25000.0, ge=0.0)
    max_debt_to_asset_ratio: float = Field(default=0.70, ge=0.0)
    min_interest_coverage: float = Field(default=3.0, gt=0.0)
    max_debt_to_revenue_ratio: float = Field(default=2.0, ge=0.0)

    timed_actions: list[StrategyAction] = Field(default_factory=list)

    def with_overrides(self, overrides: Optional[StrategyOverrides]) -> "Strategy":
        """Return a new Strategy with every set override applied.

        Args:
            overrides: Field replacements (None leaves the strategy as is)

        Returns:
            New validated Strategy
        """
        if overrides is None:
            return self.model_copy(deep=True)
        data = self.model_dump()
        data.update(overrides.model_dump(exclude_none=True))
        return Strategy.model_validate(data)

    def actions_for_day(self, day: int) -> list[StrategyActionType]:
        """Actions stamped with ``day``, in schedule order."""
        return [a for a in self.timed_actions if a.day == day]

    def action_counts(self) -> dict[str, int]:
        """Number of scheduled actions per action type."""
        counts: dict[str, int] = {}
        for action in self.timed_actions:
            counts[action.type] = counts.get(action.type, 0) + 1
        return counts
