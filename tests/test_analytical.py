"""
Tests for the analytical optimizer and plan conversion.

Tests cover:
- Baseline strategy from EOQ/ROP/EPQ
- Inventory, capacity, workforce and pricing models
- Plan to strategy conversion
"""

import pytest

from factorysim.engine.formulas import FormulaError
from factorysim.optimizer.analytical import (
    AnalyticalOptimizer,
    DemandForecast,
    inverse_normal,
)
from factorysim.optimizer.converter import (
    LAST_INVESTMENT_DAY,
    find_duplicate_policy_actions,
    plan_to_actions,
    plan_to_strategy,
)
from factorysim.models.strategy import SetOrderQuantityAction
from factorysim.optimizer.genes import StrategyGenes


@pytest.fixture
def optimizer(default_config):
    return AnalyticalOptimizer(default_config)


class TestBaseline:
    """Tests for the analytical baseline."""

    def test_baseline_values(self, optimizer):
        """Baseline order quantity is the EOQ at 45 units/day."""
        strategy = optimizer.generate_baseline()

        assert strategy.order_quantity == round(optimizer.calculate_eoq(45 * 365, 1000.0, 10.0))
        assert strategy.mce_allocation_custom == 0.30
        assert strategy.timed_actions == []
        assert strategy.standard_batch_size > 0

    def test_baseline_invalid_holding_cost(self, default_config):
        """A zero holding cost cannot produce a baseline."""
        config = default_config.merge({"materials": {"holding_rate": 0.0}})
        with pytest.raises(FormulaError):
            AnalyticalOptimizer(config).generate_baseline()


class TestModels:
    """Tests for the individual closed-form models."""

    def test_inverse_normal(self):
        assert inverse_normal(0.75) == 0.67
        assert inverse_normal(0.99) == 1.96
        assert inverse_normal(0.3) == 0.0

    def test_inventory_policy(self, optimizer):
        """Reorder point covers lead-time demand plus safety stock."""
        policy = optimizer.optimize_inventory(50.0, 1.0)

        assert policy.reorder_point == pytest.approx(100 * 4 + policy.safety_stock, abs=1)
        assert policy.order_quantity > 0

    def test_capacity_plan(self, optimizer):
        """Newsvendor target sets MCE count; WMA and PUC follow it."""
        plan = optimizer.optimize_capacity(50.0, 10.0, 1.2)

        # 50 + 0.67 * 10 = 56.7, * 1.2 = 68.04 -> 3 MCE
        assert plan.target_machines == {"MCE": 3, "WMA": 4, "PUC": 3}

    def test_workforce_plan_hires_ahead(self, optimizer):
        """High demand produces a hiring schedule before shutdown."""
        plan = optimizer.optimize_workforce(DemandForecast(mean=50.0), 1.0, 51, current_experts=1)

        assert plan.hiring_schedule
        assert plan.target_workforce == 1 + plan.total_hires
        assert all(step.day < 365 for step in plan.hiring_schedule)

    def test_pricing_unconstrained(self, optimizer):
        """The revenue-maximizing price of 150 is raised to the price floor."""
        assert optimizer.optimize_pricing(10000.0, 1500.0, -5.0, 1.0) == pytest.approx(200.0)

    def test_pricing_aggressiveness(self, optimizer):
        assert optimizer.optimize_pricing(10000.0, 3000.0, -5.0, 1.1) == pytest.approx(330.0)

    def test_pricing_capacity_bound(self, optimizer):
        """With little capacity the price rises until demand fits."""
        assert optimizer.optimize_pricing(100.0, 1500.0, -5.0, 1.0) == pytest.approx(280.0)

    def test_pricing_requires_negative_slope(self, optimizer):
        with pytest.raises(FormulaError):
            optimizer.optimize_pricing(100.0, 1500.0, 0.0, 1.0)


class TestConverter:
    """Tests for plan to strategy conversion."""

    def test_plan_to_strategy(self, optimizer, historical_state):
        """Plan values land on the strategy and machine purchases are scheduled."""
        plan = optimizer.generate_strategy(DemandForecast(mean=50.0, std=10.0), StrategyGenes())
        strategy = plan_to_strategy(plan, historical_state)

        assert strategy.order_quantity == plan.inventory.order_quantity
        assert strategy.mce_allocation_custom == plan.genes.mce_allocation_custom
        days = [a.day for a in strategy.timed_actions]
        assert days == sorted(days)
        assert all(
            a.day < LAST_INVESTMENT_DAY
            for a in strategy.timed_actions
            if a.type in ("BUY_MACHINE", "HIRE_ROOKIE")
        )

    def test_machine_purchases_spread(self, optimizer, historical_state):
        """Extra machines are bought one per interval."""
        plan = optimizer.generate_strategy(DemandForecast(mean=50.0, std=10.0))
        buys = [a for a in plan_to_actions(plan, historical_state) if a.type == "BUY_MACHINE"]
        mce_days = [a.day for a in buys if a.machine_type == "MCE"]

        assert len(mce_days) == plan.capacity.target_machines["MCE"] - historical_state.machines.mce
        assert mce_days == sorted(set(mce_days))

    def test_no_duplicate_policy_actions(self, optimizer, historical_state):
        plan = optimizer.generate_strategy(DemandForecast())
        assert find_duplicate_policy_actions(plan_to_actions(plan, historical_state)) is None

    def test_duplicate_policy_actions_detected(self):
        actions = [
            SetOrderQuantityAction(day=60, new_order_quantity=100),
            SetOrderQuantityAction(day=60, new_order_quantity=200),
        ]
        assert find_duplicate_policy_actions(actions) == 60
