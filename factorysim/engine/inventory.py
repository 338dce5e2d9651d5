"""
Raw material inventory for the factory simulation.

This module handles:
- Placing raw material orders (paid at order time, delivered after the lead time)
- Receiving orders that have arrived
- Automatic reordering at the reorder point
- Consumption capped at available stock, with shortfall reporting
"""

import logging
from dataclasses import dataclass
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.finance import FinanceModule
from factorysim.models.state import PendingOrder, SimulationState
from factorysim.models.strategy import Strategy

logger = logging.getLogger(__name__)


@dataclass
class ConsumptionResult:
    """Result of a raw material consumption request."""

    requested: int
    consumed: int
    remaining: int
    shortfall: int

    @property
    def short(self) -> bool:
        return self.shortfall > 0


class InventoryModule:
    """Manages raw material orders, receipts, and consumption."""

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        finance: Optional[FinanceModule] = None,
    ):
        """Initialize inventory module.

        Args:
            config: Simulation configuration (uses defaults if None)
            finance: Finance module used to pay for orders
        """
        self.config = config or get_default_config()
        self.finance = finance or FinanceModule(self.config)

    def order_cost(self, quantity: int) -> float:
        """Total cost of an order of ``quantity`` units including the fixed fee."""
        materials = self.config.materials
        return quantity * materials.unit_cost + materials.order_fee

    def order_raw_materials(self, state: SimulationState, quantity: int) -> PendingOrder:
        """Place an order; payment goes through the borrowing payment path.

        Args:
            state: State to update
            quantity: Units to order

        Returns:
            The pending order
        """
        cost = self.order_cost(quantity)
        self.finance.process_payment(state, cost)
        order = PendingOrder(
            order_day=state.current_day,
            quantity=quantity,
            arrival_day=state.current_day + self.config.materials.lead_time_days,
            cost=cost,
        )
        state.pending_orders.append(order)
        logger.debug(
            "Day %d: ordered %d raw material units (arrives day %d)",
            state.current_day,
            quantity,
            order.arrival_day,
        )
        return order

    def process_arriving_orders(self, state: SimulationState) -> int:
        """Receive every pending order due on or before the current day.

        Returns:
            Units received
        """
        arrived = [o for o in state.pending_orders if o.arrival_day <= state.current_day]
        if not arrived:
            return 0
        received = sum(o.quantity for o in arrived)
        state.pending_orders = [o for o in state.pending_orders if o.arrival_day > state.current_day]
        state.raw_material_inventory += received
        return received

    def check_and_reorder(
        self,
        state: SimulationState,
        strategy: Strategy,
    ) -> Optional[PendingOrder]:
        """Place one full-quantity order if at or below the reorder point.

        The order is skipped (never partially placed) when cash does not
        cover its cost, or when automatic ordering has been stopped.

        Returns:
            The placed order, or None
        """
        if state.material_orders_stopped:
            return None
        if state.raw_material_inventory > strategy.reorder_point:
            return None
        if state.cash < self.order_cost(strategy.order_quantity):
            state.rejected_material_orders += 1
            return None
        return self.order_raw_materials(state, strategy.order_quantity)

    def consume(self, state: SimulationState, quantity: int) -> ConsumptionResult:
        """Consume up to ``quantity`` units; never drives inventory negative."""
        quantity = max(0, quantity)
        consumed = min(quantity, state.raw_material_inventory)
        state.raw_material_inventory -= consumed
        state.raw_material_consumed += consumed
        return ConsumptionResult(
            requested=quantity,
            consumed=consumed,
            remaining=state.raw_material_inventory,
            shortfall=quantity - consumed,
        )
