"""
Tests for strategy genes.

Tests cover:
- Random generation within range
- Clamping and validation
- Mutation and crossover
- Population diversity
"""

import random

from factorysim.optimizer.genes import (
    DEFAULT_GENES,
    GENE_RANGES,
    StrategyGenes,
    calculate_diversity,
    clamp_genes,
    crossover_genes,
    mutate_genes,
    random_genes,
    validate_genes,
)


class TestGenes:
    """Tests for gene operations."""

    def test_defaults_in_range(self):
        assert validate_genes(DEFAULT_GENES)

    def test_random_genes_in_range(self):
        """Random genes always respect their ranges."""
        rng = random.Random(0)
        for _ in range(50):
            assert validate_genes(random_genes(rng))

    def test_random_genes_seeded(self):
        assert random_genes(random.Random(3)) == random_genes(random.Random(3))

    def test_clamp(self):
        """Out-of-range genes are pulled back to the nearest bound."""
        genes = StrategyGenes(mce_allocation_custom=2.0, min_cash_reserve_days=0)
        clamped = clamp_genes(genes)

        assert not validate_genes(genes)
        assert clamped.mce_allocation_custom == GENE_RANGES["mce_allocation_custom"][1]
        assert clamped.min_cash_reserve_days == 5
        assert validate_genes(clamped)

    def test_mutation_rate_zero(self):
        """A zero rate leaves genes unchanged."""
        assert mutate_genes(DEFAULT_GENES, 0.0, random.Random(1)) == DEFAULT_GENES

    def test_mutation_stays_in_range(self):
        """Mutation never leaves the valid range."""
        rng = random.Random(2)
        genes = DEFAULT_GENES
        for _ in range(100):
            genes = mutate_genes(genes, 1.0, rng)
            assert validate_genes(genes)

    def test_crossover_takes_parent_values(self):
        """Each child gene comes from one of the parents."""
        first = random_genes(random.Random(1))
        second = random_genes(random.Random(2))
        child = crossover_genes(first, second, random.Random(3)).model_dump()

        for name in GENE_RANGES:
            assert child[name] in (first.model_dump()[name], second.model_dump()[name])


class TestDiversity:
    """Tests for population diversity."""

    def test_small_population(self):
        assert calculate_diversity([DEFAULT_GENES]) == 0.0

    def test_identical_population(self):
        assert calculate_diversity([DEFAULT_GENES, DEFAULT_GENES]) == 0.0

    def test_diverse_population(self):
        rng = random.Random(5)
        assert calculate_diversity([random_genes(rng) for _ in range(5)]) > 0.0
