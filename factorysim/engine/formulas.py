"""
Closed-form operations research formulas.

Misconfigured inputs (non-positive holding cost, production rate not
above demand rate) raise FormulaError immediately: they describe an
invalid scenario rather than a runtime condition to recover from.
"""

import math

# One-sided z-scores for common service levels
Z_SCORES: dict[float, float] = {
    0.50: 0.0,
    0.80: 0.84,
    0.85: 1.04,
    0.90: 1.28,
    0.95: 1.65,
    0.97: 1.88,
    0.99: 2.33,
    0.995: 2.58,
    0.999: 3.09,
}


class FormulaError(ValueError):
    """Raised when a formula is called with an invalid configuration."""

    pass


def z_score(service_level: float) -> float:
    """z-score of the tabulated service level closest to ``service_level``."""
    closest = min(Z_SCORES, key=lambda level: abs(level - service_level))
    return Z_SCORES[closest]


def calculate_eoq(annual_demand: float, ordering_cost: float, holding_cost_per_unit: float) -> float:
    """Economic order quantity: sqrt(2 * D * K / h).

    Raises:
        FormulaError: If holding cost is not positive or demand is negative
    """
    if holding_cost_per_unit <= 0:
        raise FormulaError("Holding cost must be positive")
    if annual_demand < 0 or ordering_cost < 0:
        raise FormulaError("Demand and ordering cost must be non-negative")
    return math.sqrt(2 * annual_demand * ordering_cost / holding_cost_per_unit)


def calculate_rop(
    avg_daily_demand: float,
    lead_time_days: float,
    service_level: float,
    demand_std_dev: float,
) -> float:
    """Reorder point: d * L + z * sqrt(L) * sigma."""
    if lead_time_days < 0:
        raise FormulaError("Lead time must be non-negative")
    safety_stock = z_score(service_level) * math.sqrt(lead_time_days) * demand_std_dev
    return avg_daily_demand * lead_time_days + safety_stock


def calculate_epq(
    annual_demand: float,
    setup_cost: float,
    holding_cost: float,
    production_rate: float,
    demand_rate: float,
) -> float:
    """Economic production quantity: sqrt(2 * D * S / (h * (1 - d / p))).

    Raises:
        FormulaError: If holding cost is not positive or p <= d
    """
    if holding_cost <= 0:
        raise FormulaError("Holding cost must be positive")
    if production_rate <= demand_rate:
        raise FormulaError(
            f"Production rate ({production_rate}) must exceed demand rate ({demand_rate})"
        )
    return math.sqrt(2 * annual_demand * setup_cost / (holding_cost * (1 - demand_rate / production_rate)))
