"""
Demand generation and estimation.

This module handles:
- Stochastic daily custom order arrivals (seeded)
- Demand phase classification
- Deterministic average-demand estimates used by policy formulas
- The linear standard-product demand curve

Demand phases:
    1: stable low custom demand
    2: ramp from phase-1 to phase-2 levels
    3: stable high custom demand
    4: runoff, decaying linearly toward shutdown
"""

import random
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.models.strategy import Strategy


class DemandModule:
    """Generates custom order arrivals and demand estimates."""

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        random_seed: Optional[int] = None,
    ):
        """Initialize demand module.

        Args:
            config: Simulation configuration (uses defaults if None)
            random_seed: Random seed for reproducible demand
        """
        self.config = config or get_default_config()
        self._rng = random.Random(random_seed)

    def set_random_seed(self, seed: Optional[int]) -> None:
        """Set random seed for reproducible demand draws."""
        self._rng = random.Random(seed)

    def demand_phase(self, day: int) -> int:
        """Demand phase (1-4) for ``day``."""
        cal = self.config.calendar
        if day <= cal.phase1_end_day:
            return 1
        if day <= cal.phase2_end_day:
            return 2
        if day <= cal.phase3_end_day:
            return 3
        return 4

    def custom_demand_parameters(self, day: int, strategy: Strategy) -> tuple[float, float]:
        """Mean and standard deviation of daily custom orders on ``day``."""
        if day <= self.config.calendar.phase1_end_day:
            return strategy.custom_demand_mean1, strategy.custom_demand_std_dev1
        return strategy.custom_demand_mean2, strategy.custom_demand_std_dev2

    def generate_custom_orders(self, day: int, strategy: Strategy) -> int:
        """Draw the number of custom orders arriving on ``day``."""
        mean, std_dev = self.custom_demand_parameters(day, strategy)
        if std_dev <= 0:
            return max(0, round(mean))
        return max(0, round(self._rng.gauss(mean, std_dev)))

    def standard_demand(self, price: float, strategy: Strategy) -> float:
        """Daily standard units demanded at ``price`` (linear curve, floored at 0)."""
        return max(0.0, strategy.standard_demand_intercept + strategy.standard_demand_slope * price)

    def _phase_blend(self, day: int, phase1: float, phase2: float) -> float:
        cal = self.config.calendar
        phase = self.demand_phase(day)
        if phase == 1:
            return phase1
        if phase == 2:
            span = cal.phase2_end_day - cal.phase1_end_day
            progress = (day - cal.phase1_end_day) / span if span > 0 else 1.0
            return phase1 + (phase2 - phase1) * progress
        if phase == 3:
            return phase2
        runoff = max(0.0, 1.0 - (day - cal.phase3_end_day) / cal.runoff_days)
        return phase2 * runoff

    def estimate_custom_demand(self, day: int, strategy: Strategy) -> float:
        """Expected custom orders per day, smoothed across phase transitions."""
        return self._phase_blend(day, strategy.custom_demand_mean1, strategy.custom_demand_mean2)

    def estimate_average_demand(self, day: int, strategy: Strategy) -> float:
        """Expected total units per day (custom plus standard at current price)."""
        return self.estimate_custom_demand(day, strategy) + self.standard_demand(
            strategy.standard_price, strategy
        )

    def estimate_demand_std(self, day: int, strategy: Strategy) -> float:
        """Standard deviation of daily custom demand, smoothed like the mean."""
        return self._phase_blend(day, strategy.custom_demand_std_dev1, strategy.custom_demand_std_dev2)
