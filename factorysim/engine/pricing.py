"""
Pricing and sales.

Custom price decays linearly with delivery time beyond the target and is
floored at half the base price. All finished goods sell on the day they
are finished; finished goods are never carried over.
"""

from dataclasses import dataclass
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.models.state import SimulationState


def calculate_custom_price(
    base_price: float,
    penalty_per_day: float,
    avg_delivery_time: float,
    target_days: float,
) -> float:
    """Delivery-time-dependent custom price.

    price = max(0.5 * base, base - penalty * max(0, avg_delivery - target))
    """
    lateness = max(0.0, avg_delivery_time - target_days)
    return max(0.5 * base_price, base_price - penalty_per_day * lateness)


@dataclass
class SalesResult:
    """Units sold and revenue for one day."""

    standard_units: int
    custom_units: int
    standard_price: float
    custom_price: float

    @property
    def revenue(self) -> float:
        return self.standard_units * self.standard_price + self.custom_units * self.custom_price


class PricingModule:
    """Computes daily prices and books same-day sales."""

    def __init__(self, config: Optional[FactoryConfig] = None):
        self.config = config or get_default_config()

    def average_delivery_time(self, state: SimulationState) -> float:
        """Mean of recent daily delivery times, ignoring days without deliveries."""
        recent = [t for t in state.history.custom_delivery_time if t > 0]
        recent = recent[-self.config.market.pricing_lookback_days:]
        if not recent:
            return 0.0
        return sum(recent) / len(recent)

    def process_sales(
        self,
        state: SimulationState,
        standard_price: float,
        custom_price: float,
    ) -> SalesResult:
        """Sell every finished unit at today's prices and zero finished goods."""
        result = SalesResult(
            standard_units=state.finished_goods.standard,
            custom_units=state.finished_goods.custom,
            standard_price=standard_price,
            custom_price=custom_price,
        )
        state.cash += result.revenue
        state.total_revenue += result.revenue
        state.finished_goods.standard = 0
        state.finished_goods.custom = 0
        return result
