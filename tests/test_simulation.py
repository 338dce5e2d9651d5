"""
Tests for the simulation engine.

Tests cover:
- Action handler coverage
- Timed action execution
- Reproducibility with a fixed seed
- Daily invariants (cash, inventory, custom WIP ceiling)
- Material and order conservation
- Cancellation
- Rules and dynamic policies wired into a run
"""

from typing import get_args

import pytest

from factorysim.engine.rules import ConditionType, Rule, RuleCondition, RulesEngine
from factorysim.engine.simulation import (
    ACTION_HANDLERS,
    SimulationEngine,
    compute_metrics,
    run_simulation,
)
from factorysim.models.strategy import (
    AdjustBatchSizeAction,
    BuyMachineAction,
    HireRookieAction,
    SellMachineAction,
    StopMaterialOrdersAction,
    Strategy,
    StrategyActionType,
    TakeLoanAction,
)
from factorysim.optimizer.cancellation import CancellationToken

# Short horizon keeps full-engine tests fast
SHORT_END_DAY = 80


class TestActionHandlers:
    """Tests for action dispatch."""

    def test_every_action_type_has_a_handler(self):
        """Each action model maps to an engine method."""
        assert set(get_args(StrategyActionType)) == set(ACTION_HANDLERS)
        for name in ACTION_HANDLERS.values():
            assert callable(getattr(SimulationEngine, name))

    def test_buy_machine(self, historical_state):
        """Affordable purchases add machines and spend cash."""
        engine = SimulationEngine(Strategy())
        state = historical_state.clone()
        engine.execute_action(state, BuyMachineAction(day=51, machine_type="MCE"))

        assert state.machines.mce == 2
        assert state.cash == pytest.approx(383919.70 - 20000.0)

    def test_buy_machine_unaffordable(self, empty_state):
        """Purchases without cash are skipped."""
        engine = SimulationEngine(Strategy())
        engine.execute_action(empty_state, BuyMachineAction(day=51, machine_type="WMA"))
        assert empty_state.machines.wma == 1

    def test_sell_more_than_owned(self, empty_state):
        """Selling machines that are not owned does nothing."""
        engine = SimulationEngine(Strategy())
        engine.execute_action(empty_state, SellMachineAction(day=51, machine_type="PUC", count=2))

        assert empty_state.machines.puc == 1
        assert empty_state.cash == 0.0

    def test_take_loan(self, empty_state):
        engine = SimulationEngine(Strategy())
        engine.execute_action(empty_state, TakeLoanAction(day=51, amount=10000.0))

        assert empty_state.cash == pytest.approx(10000.0)
        assert empty_state.debt == pytest.approx(10200.0)


class TestSimulationRun:
    """Tests for complete runs."""

    def test_reproducible_with_seed(self, historical_state):
        """The same seed produces the same trajectory."""
        first = run_simulation(Strategy(), SHORT_END_DAY, historical_state, random_seed=5)
        second = run_simulation(Strategy(), SHORT_END_DAY, historical_state, random_seed=5)

        assert first.state.history.cash == second.state.history.cash
        assert first.metrics == second.metrics

    def test_runs_to_end_day(self, historical_state):
        """A run stops on the requested day with one history entry per day."""
        result = run_simulation(Strategy(), SHORT_END_DAY, historical_state, random_seed=1)

        assert result.state.current_day == SHORT_END_DAY
        assert result.state.history.days == list(range(51, SHORT_END_DAY + 1))
        assert not result.cancelled

    def test_inputs_not_modified(self, historical_state):
        """Neither the strategy nor the initial state is changed."""
        strategy = Strategy(timed_actions=[AdjustBatchSizeAction(day=55, new_size=10)])
        snapshot = historical_state.clone()

        run_simulation(strategy, SHORT_END_DAY, historical_state, random_seed=1)

        assert strategy.standard_batch_size == 80
        assert historical_state == snapshot

    def test_daily_invariants(self, business_case_state):
        """Cash and inventory stay non-negative and WIP stays under the ceiling."""
        result = run_simulation(Strategy(), SHORT_END_DAY, business_case_state, random_seed=3)
        history = result.state.history

        assert all(cash >= -1e-6 for cash in history.cash)
        assert all(units >= 0 for units in history.raw_material)
        assert all(wip <= 360 for wip in history.custom_wip)

    def test_material_conservation(self, historical_state):
        """With ordering stopped, inventory only moves into consumption."""
        strategy = Strategy(timed_actions=[StopMaterialOrdersAction(day=51)])
        start = historical_state.raw_material_inventory + historical_state.raw_material_consumed

        result = run_simulation(strategy, SHORT_END_DAY, historical_state, random_seed=2)
        final = result.state

        assert final.raw_material_inventory + final.raw_material_consumed == start
        assert final.pending_orders == []

    def test_custom_order_conservation(self, historical_state):
        """Every admitted order is either still in process or completed."""
        engine = SimulationEngine(Strategy(), random_seed=4)
        state = historical_state.clone()
        initial = state.custom_wip_count
        admitted = 0

        while state.current_day < SHORT_END_DAY:
            admitted += engine.process_day(state).production.custom.admitted

        assert initial + admitted == state.custom_wip_count + state.custom_orders_completed

    @pytest.mark.parametrize("starting_state", ["historical_state", "business_case_state"])
    def test_completed_units_bounded_by_material(self, request, starting_state):
        """Finished output never uses more material than was consumed over a full year."""
        initial = request.getfixturevalue(starting_state)

        final = run_simulation(Strategy(), initial_state=initial, random_seed=5).state

        assert final.current_day == 415
        assert final.standard_units_completed * 2 + final.custom_orders_completed <= final.raw_material_consumed

    def test_cancellation(self, historical_state):
        """A cancelled token stops the run before the next day."""
        token = CancellationToken()
        token.cancel()

        result = SimulationEngine(Strategy()).run(historical_state, SHORT_END_DAY, token)

        assert result.cancelled
        assert result.state.current_day == historical_state.current_day
        assert len(result.state.history) == 0

    def test_rerun_same_engine(self, historical_state):
        """Running one engine twice gives identical results."""
        engine = SimulationEngine(Strategy(), random_seed=9)
        first = engine.run(historical_state, SHORT_END_DAY)
        second = engine.run(historical_state, SHORT_END_DAY)

        assert first.metrics == second.metrics

    def test_rules_and_dynamic_policies(self, historical_state):
        """Fired rule actions run alongside dynamic policy updates."""
        rules = RulesEngine([
            Rule(
                id="hire-once",
                conditions=[RuleCondition(type=ConditionType.DAY_RANGE, min_day=60, max_day=60)],
                action=HireRookieAction(day=0, count=1),
            )
        ])
        result = run_simulation(
            Strategy(),
            SHORT_END_DAY,
            historical_state,
            random_seed=1,
            rules_engine=rules,
            dynamic_policies=True,
        )
        workforce = result.state.workforce

        assert workforce.experts + workforce.rookies == 2
        assert isinstance(result.policy_changes, tuple)


class TestComputeMetrics:
    """Tests for summary metrics."""

    def test_no_deliveries(self, empty_state):
        """Without deliveries the service level is perfect."""
        metrics = compute_metrics(empty_state)

        assert metrics.service_level == 1.0
        assert metrics.average_delivery_time == 0.0
        assert metrics.machines == {"MCE": 1, "WMA": 1, "PUC": 1}

    def test_service_level(self, empty_state):
        empty_state.custom_deliveries = 10
        empty_state.late_custom_deliveries = 2
        assert compute_metrics(empty_state).service_level == pytest.approx(0.8)
