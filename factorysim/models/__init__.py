"""
Data models for the factory simulation.

This module contains Pydantic models for:
- Simulation state (WIP, workforce, machines, finances, history)
- Strategy (policy fields and the timed action schedule)
"""

from factorysim.models.state import (
    CUSTOM_ROUTE,
    CustomOrder,
    FinishedGoods,
    History,
    Machines,
    PendingOrder,
    SimulationState,
    StandardBatch,
    StandardLineWIP,
    Station,
    TrainingRookie,
    Workforce,
    create_business_case_state,
    create_historical_state,
    next_station,
)
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
    StrategyAction,
    StrategyActionType,
    StrategyOverrides,
    TakeLoanAction,
    parse_action,
)

__all__ = [
    # State
    "CUSTOM_ROUTE",
    "CustomOrder",
    "FinishedGoods",
    "History",
    "Machines",
    "PendingOrder",
    "SimulationState",
    "StandardBatch",
    "StandardLineWIP",
    "Station",
    "TrainingRookie",
    "Workforce",
    "create_business_case_state",
    "create_historical_state",
    "next_station",
    # Strategy
    "AdjustBatchSizeAction",
    "AdjustMceAllocationAction",
    "AdjustPriceAction",
    "BuyMachineAction",
    "HireExpertAction",
    "HireRookieAction",
    "OrderMaterialsAction",
    "PayDebtAction",
    "SellMachineAction",
    "SetOrderQuantityAction",
    "SetReorderPointAction",
    "StopMaterialOrdersAction",
    "Strategy",
    "StrategyAction",
    "StrategyActionType",
    "StrategyOverrides",
    "TakeLoanAction",
    "parse_action",
]
