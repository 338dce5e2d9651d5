"""
Tests for dynamic policies and bottleneck analysis.

Tests cover:
- Initial EOQ/ROP/EPQ calculation and its audit entries
- Change detection between snapshots
- Delta-gated recalculation
- Bottleneck identification
"""

import math

import pytest

from factorysim.engine.policy import (
    ChangeType,
    DynamicPolicyCalculator,
    PolicyChangeTrigger,
)
from factorysim.models.strategy import Strategy


@pytest.fixture
def calculator(default_config):
    return DynamicPolicyCalculator(default_config)


class TestInitialPolicies:
    """Tests for the starting policy calculation."""

    def test_initial_policies_logged(self, calculator, historical_state):
        """Each starting policy gets an INITIAL_CALCULATION entry."""
        strategy = Strategy()
        policies = calculator.calculate_initial_policies(historical_state, strategy)

        assert set(policies) == {"order_quantity", "reorder_point", "standard_batch_size"}
        assert all(value >= 0 for value in policies.values())
        assert len(calculator.change_log) == 3
        assert {c.trigger for c in calculator.change_log} == {PolicyChangeTrigger.INITIAL_CALCULATION}

    def test_strategy_untouched(self, calculator, historical_state):
        """The initial calculation does not modify the strategy."""
        strategy = Strategy()
        calculator.calculate_initial_policies(historical_state, strategy)
        assert strategy == Strategy()

    def test_change_log_is_read_only(self, calculator, historical_state):
        """The exposed log is an immutable tuple."""
        calculator.calculate_initial_policies(historical_state, Strategy())
        assert isinstance(calculator.change_log, tuple)

    def test_clear_history(self, calculator, historical_state):
        calculator.calculate_initial_policies(historical_state, Strategy())
        calculator.clear_history()
        assert calculator.change_log == ()


class TestRecalculation:
    """Tests for incremental recalculation."""

    def test_first_call_only_snapshots(self, calculator, historical_state):
        """Without a previous snapshot nothing is recalculated."""
        assert calculator.recalculate_policies(historical_state, Strategy()) == []

    def test_unchanged_inputs_do_nothing(self, calculator, historical_state):
        """Identical inputs produce no changes."""
        strategy = Strategy()
        calculator.recalculate_policies(historical_state, strategy)
        assert calculator.recalculate_policies(historical_state, strategy) == []

    def test_machine_purchase_detected(self, calculator, historical_state):
        """Buying a machine is a production rate change."""
        strategy = Strategy()
        before = calculator.capture_snapshot(historical_state, strategy)
        historical_state.machines.mce += 1
        after = calculator.capture_snapshot(historical_state, strategy)

        changes = calculator.detect_changes(before, after)
        assert changes == [ChangeType.PRODUCTION_RATE]
        assert calculator.infer_trigger(changes, before, after) == PolicyChangeTrigger.MACHINE_PURCHASED

    def test_phase_change_detected(self, calculator, historical_state):
        """Crossing a phase boundary is a demand phase change."""
        strategy = Strategy()
        historical_state.current_day = 172
        before = calculator.capture_snapshot(historical_state, strategy)
        historical_state.current_day = 173
        after = calculator.capture_snapshot(historical_state, strategy)

        assert ChangeType.DEMAND_PHASE in calculator.detect_changes(before, after)

    def test_applied_changes_update_strategy(self, calculator, historical_state):
        """Applied changes are logged with old and new values."""
        strategy = Strategy(order_quantity=1, reorder_point=0, standard_batch_size=1)
        calculator.recalculate_policies(historical_state, strategy)
        historical_state.current_day = 250

        applied = calculator.recalculate_policies(historical_state, strategy)

        assert applied
        for change in applied:
            assert getattr(strategy, change.policy_name) == change.new_value
            assert change.inputs

    def test_logged_value_is_the_stored_value(self, calculator, historical_state, monkeypatch):
        """Degenerate formula results are floored before they are logged and stored."""
        monkeypatch.setattr(calculator, "optimal_order_quantity", lambda snapshot: 0)
        monkeypatch.setattr(calculator, "optimal_reorder_point", lambda snapshot, demand_std: -25)
        strategy = Strategy(order_quantity=500, reorder_point=400)
        calculator.recalculate_policies(historical_state, strategy)
        historical_state.current_day = 250

        applied = {c.policy_name: c for c in calculator.recalculate_policies(historical_state, strategy)}

        assert applied["order_quantity"].new_value == 1
        assert strategy.order_quantity == 1
        assert applied["reorder_point"].new_value == 0
        assert strategy.reorder_point == 0


class TestBottleneck:
    """Tests for bottleneck identification."""

    def test_labor_bound_plant(self, calculator, historical_state):
        """One expert makes ARCP the smallest station."""
        analysis = calculator.identify_bottleneck(historical_state, Strategy())

        assert analysis.bottleneck == "ARCP"
        assert analysis.capacity == pytest.approx(3.0)
        assert analysis.constrained

    def test_idempotent(self, calculator, historical_state):
        """Repeated calls on an unchanged state agree."""
        strategy = Strategy()
        assert calculator.identify_bottleneck(historical_state, strategy) == calculator.identify_bottleneck(
            historical_state, strategy
        )

    def test_zero_capacity_station(self, calculator, historical_state):
        """A station with no machines has infinite utilization."""
        historical_state.machines.puc = 0
        analysis = calculator.identify_bottleneck(historical_state, Strategy())

        assert analysis.bottleneck == "PUC"
        assert math.isinf(analysis.utilization)
