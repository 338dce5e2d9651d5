"""
Strategy genes: eight bounded knobs that tune the analytical plan.

The genetic algorithm evolves these instead of day-level actions; the
analytical optimizer expands a gene set into a full strategy.
"""

import math
import random
from typing import Optional

from pydantic import BaseModel

GENE_RANGES: dict[str, tuple[float, float]] = {
    "safety_stock_multiplier": (0.8, 1.5),
    "target_capacity_multiplier": (1.0, 1.5),
    "workforce_aggressiveness": (0.8, 1.2),
    "price_aggressiveness": (0.9, 1.1),
    "custom_price_multiplier": (0.95, 1.05),
    "mce_allocation_custom": (0.3, 0.7),
    "debt_paydown_aggressiveness": (0.5, 1.0),
    "min_cash_reserve_days": (5, 15),
}

INTEGER_GENES = frozenset({"min_cash_reserve_days"})


class StrategyGenes(BaseModel):
    """High-level parameters tuning inventory, capacity, workforce, pricing and debt."""

    # Inventory: how conservative the safety stock is
    safety_stock_multiplier: float = 1.2
    # Capacity: buffer beyond expected demand
    target_capacity_multiplier: float = 1.2
    # Workforce: how far ahead of demand to hire
    workforce_aggressiveness: float = 1.0
    # Pricing: multipliers on the analytical prices
    price_aggressiveness: float = 1.0
    custom_price_multiplier: float = 1.0
    # Production mix
    mce_allocation_custom: float = 0.5
    # Debt management
    debt_paydown_aggressiveness: float = 0.8
    min_cash_reserve_days: int = 7


DEFAULT_GENES = StrategyGenes()


def random_genes(rng: Optional[random.Random] = None) -> StrategyGenes:
    """Draw a gene set uniformly from GENE_RANGES."""
    rng = rng or random.Random()
    values: dict[str, float] = {}
    for name, (low, high) in GENE_RANGES.items():
        if name in INTEGER_GENES:
            values[name] = rng.randint(int(low), int(high))
        else:
            values[name] = rng.uniform(low, high)
    return StrategyGenes(**values)


def clamp_genes(genes: StrategyGenes) -> StrategyGenes:
    """Return a copy with every gene clamped to its range."""
    values = genes.model_dump()
    for name, (low, high) in GENE_RANGES.items():
        values[name] = max(low, min(high, values[name]))
    return StrategyGenes(**values)


def validate_genes(genes: StrategyGenes) -> bool:
    """True when every gene lies within its range."""
    values = genes.model_dump()
    return all(low <= values[name] <= high for name, (low, high) in GENE_RANGES.items())


def mutate_genes(
    genes: StrategyGenes,
    rate: float,
    rng: Optional[random.Random] = None,
) -> StrategyGenes:
    """Mutate each gene with probability ``rate``.

    Float genes move by up to +/-10% of their value; integer genes by up
    to +/-3. Results are clamped to range.
    """
    rng = rng or random.Random()
    values = genes.model_dump()
    for name in GENE_RANGES:
        if rng.random() >= rate:
            continue
        if name in INTEGER_GENES:
            values[name] = values[name] + rng.randint(-3, 3)
        else:
            values[name] = values[name] + values[name] * 0.1 * rng.uniform(-1.0, 1.0)
    return clamp_genes(StrategyGenes(**values))


def crossover_genes(
    parent1: StrategyGenes,
    parent2: StrategyGenes,
    rng: Optional[random.Random] = None,
) -> StrategyGenes:
    """Uniform crossover: each gene comes from either parent with equal odds."""
    rng = rng or random.Random()
    first = parent1.model_dump()
    second = parent2.model_dump()
    return StrategyGenes(**{name: first[name] if rng.random() < 0.5 else second[name] for name in GENE_RANGES})


def _normalized_distance(a: StrategyGenes, b: StrategyGenes) -> float:
    first = a.model_dump()
    second = b.model_dump()
    total = 0.0
    for name, (low, high) in GENE_RANGES.items():
        span = high - low
        total += ((first[name] - low) / span - (second[name] - low) / span) ** 2
    return math.sqrt(total)


def calculate_diversity(population: list[StrategyGenes]) -> float:
    """Mean pairwise Euclidean distance of range-normalized genes.

    Returns 0.0 for populations smaller than two.
    """
    if len(population) < 2:
        return 0.0
    distances = [
        _normalized_distance(population[i], population[j])
        for i in range(len(population))
        for j in range(i + 1, len(population))
    ]
    return sum(distances) / len(distances)
