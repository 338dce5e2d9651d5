"""Tests for the closed-form inventory and production formulas."""

import math

import pytest

from factorysim.engine.formulas import (
    FormulaError,
    calculate_eoq,
    calculate_epq,
    calculate_rop,
    z_score,
)


class TestEoq:
    """Tests for the economic order quantity."""

    def test_known_value(self):
        """EOQ matches sqrt(2DK/h)."""
        assert calculate_eoq(3650, 1000, 10) == pytest.approx(854.4, abs=0.1)

    def test_zero_demand(self):
        """No demand means no order."""
        assert calculate_eoq(0, 1000, 10) == 0.0

    @pytest.mark.parametrize("holding", [0.0, -1.0])
    def test_non_positive_holding_cost(self, holding):
        """Holding cost must be positive."""
        with pytest.raises(FormulaError):
            calculate_eoq(3650, 1000, holding)

    def test_formula_error_is_value_error(self):
        """FormulaError can be caught as ValueError."""
        with pytest.raises(ValueError):
            calculate_eoq(-1, 1000, 10)


class TestRopAndEpq:
    """Tests for reorder point and production quantity."""

    def test_rop_includes_safety_stock(self):
        """ROP is lead-time demand plus z * sqrt(L) * sigma."""
        assert calculate_rop(10, 4, 0.95, 5) == pytest.approx(40 + 1.65 * 2 * 5)

    def test_rop_negative_lead_time(self):
        with pytest.raises(FormulaError):
            calculate_rop(10, -1, 0.95, 5)

    def test_epq(self):
        """EPQ widens EOQ by the production-rate factor."""
        expected = math.sqrt(2 * 1000 * 100 / (2 * (1 - 10 / 40)))
        assert calculate_epq(1000, 100, 2, 40, 10) == pytest.approx(expected)

    def test_epq_requires_production_above_demand(self):
        """Production rate at or below demand is an invalid scenario."""
        with pytest.raises(FormulaError):
            calculate_epq(1000, 100, 2, 10, 10)

    def test_z_score_nearest_level(self):
        assert z_score(0.95) == 1.65
        assert z_score(0.94) == 1.65
        assert z_score(0.5) == 0.0
