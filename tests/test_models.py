"""
Tests for the state and strategy models.

Tests cover:
- Custom order routing and station queries
- State cloning without aliasing
- Initial state factories
- History recording
- Strategy actions, parsing and overrides
"""

import pytest
from pydantic import ValidationError

from factorysim.models.state import (
    CUSTOM_ROUTE,
    SimulationState,
    StandardBatch,
    Station,
    create_business_case_state,
    create_historical_state,
    next_station,
)
from factorysim.models.strategy import (
    BuyMachineAction,
    HireRookieAction,
    OrderMaterialsAction,
    Strategy,
    StrategyOverrides,
    parse_action,
)


class TestCustomRoute:
    """Tests for the custom order route."""

    def test_route_order(self):
        """Orders move WAITING -> MCE -> WMA x2 -> PUC -> ARCP -> COMPLETE."""
        assert CUSTOM_ROUTE[0] == Station.WAITING
        assert CUSTOM_ROUTE[-1] == Station.COMPLETE
        assert next_station(Station.MCE) == Station.WMA_PASS1
        assert next_station(Station.WMA_PASS1) == Station.WMA_PASS2
        assert next_station(Station.ARCP) == Station.COMPLETE

    def test_complete_is_final(self):
        """COMPLETE has no successor."""
        with pytest.raises(ValueError):
            next_station(Station.COMPLETE)

    def test_orders_at_oldest_first(self, empty_state):
        """Station queries return the oldest arrivals first."""
        empty_state.add_custom_order(40)
        empty_state.add_custom_order(30)
        empty_state.add_custom_order(35, Station.MCE)

        waiting = empty_state.orders_at(Station.WAITING)
        assert [o.arrival_day for o in waiting] == [30, 40]
        assert empty_state.custom_wip_count == 3

    def test_order_ids_increment(self, empty_state):
        """Each new order gets the next id."""
        first = empty_state.add_custom_order(10)
        second = empty_state.add_custom_order(10)
        assert second.order_id == first.order_id + 1


class TestSimulationState:
    """Tests for SimulationState behavior."""

    def test_net_worth(self):
        """Net worth is cash minus debt."""
        state = SimulationState(cash=1000.0, debt=250.0)
        assert state.net_worth == 750.0

    def test_clone_is_independent(self, historical_state):
        """Mutating a clone leaves the original untouched."""
        clone = historical_state.clone()
        clone.cash = 0.0
        clone.custom_wip[0].station = Station.ARCP
        clone.standard_wip.station1.append(StandardBatch(units=5))
        clone.history.record(days=51)

        assert historical_state.cash == pytest.approx(383919.70)
        assert historical_state.custom_wip[0].station == Station.WAITING
        assert len(historical_state.standard_wip.station1) == 1
        assert len(historical_state.history) == 0

    def test_negative_inventory_rejected(self):
        """Raw material inventory cannot be negative."""
        with pytest.raises(ValidationError):
            SimulationState(raw_material_inventory=-1)

    def test_history_record_unknown_metric(self, empty_state):
        """Recording an unknown series raises KeyError."""
        with pytest.raises(KeyError):
            empty_state.history.record(bogus=1)

    def test_machines_accessors(self, empty_state):
        """Machine counts are addressable by type name."""
        empty_state.machines.set("WMA", 3)
        assert empty_state.machines.get("WMA") == 3
        assert empty_state.machines.as_dict() == {"MCE": 1, "WMA": 3, "PUC": 1}


class TestInitialStates:
    """Tests for the initial state factories."""

    def test_historical_state(self, historical_state, default_config):
        """Historical snapshot sits just before the first simulated day."""
        assert historical_state.current_day == default_config.calendar.start_day - 1
        assert historical_state.custom_wip_count == 300
        assert historical_state.standard_wip.total_units() == 414
        assert historical_state.machines.as_dict() == {"MCE": 1, "WMA": 2, "PUC": 2}
        assert historical_state.raw_material_inventory == 164

    def test_historical_consumption_matches_embedded(self, historical_state, default_config):
        """Material already built into WIP counts as consumed."""
        assert historical_state.raw_material_consumed == historical_state.embedded_material(default_config)

    def test_business_case_seeded(self, default_config):
        """The same seed places orders identically."""
        first = create_business_case_state(seed=3, config=default_config)
        second = create_business_case_state(seed=3, config=default_config)

        assert first.debt == 70000.0
        assert first.custom_wip_count == 295
        assert [o.station for o in first.custom_wip] == [o.station for o in second.custom_wip]
        assert all(o.station != Station.COMPLETE for o in first.custom_wip)


class TestStrategy:
    """Tests for Strategy and timed actions."""

    def test_defaults(self, baseline_strategy):
        """Default strategy has no scheduled actions."""
        assert baseline_strategy.timed_actions == []
        assert baseline_strategy.mce_allocation_custom == 0.55

    def test_parse_action(self):
        """Plain dicts are parsed into the matching action model."""
        action = parse_action({"type": "BUY_MACHINE", "day": 60, "machine_type": "WMA"})
        assert isinstance(action, BuyMachineAction)
        assert action.count == 1

    def test_parse_unknown_action(self):
        """Unknown action kinds are rejected."""
        with pytest.raises(ValidationError):
            parse_action({"type": "LAUNCH_ROCKET", "day": 60})

    def test_invalid_action_field(self):
        """Action fields are validated."""
        with pytest.raises(ValidationError):
            OrderMaterialsAction(day=60, quantity=0)

    def test_json_roundtrip_keeps_action_types(self):
        """Serialized timed actions come back as the same models."""
        strategy = Strategy(timed_actions=[
            OrderMaterialsAction(day=55, quantity=400),
            HireRookieAction(day=60, count=2),
        ])
        restored = Strategy.model_validate_json(strategy.model_dump_json())

        assert isinstance(restored.timed_actions[0], OrderMaterialsAction)
        assert isinstance(restored.timed_actions[1], HireRookieAction)

    def test_actions_for_day_and_counts(self):
        """Actions are grouped by day and counted by type."""
        strategy = Strategy(timed_actions=[
            HireRookieAction(day=60, count=1),
            OrderMaterialsAction(day=60, quantity=100),
            HireRookieAction(day=70, count=1),
        ])

        assert [a.type for a in strategy.actions_for_day(60)] == ["HIRE_ROOKIE", "ORDER_MATERIALS"]
        assert strategy.action_counts() == {"HIRE_ROOKIE": 2, "ORDER_MATERIALS": 1}

    def test_with_overrides(self, baseline_strategy):
        """Set overrides replace fields; unset ones leave them alone."""
        result = baseline_strategy.with_overrides(StrategyOverrides(reorder_point=123))

        assert result.reorder_point == 123
        assert result.order_quantity == baseline_strategy.order_quantity
        assert baseline_strategy.reorder_point == 400

    def test_with_none_overrides_copies(self, baseline_strategy):
        """No overrides returns an equal, independent copy."""
        result = baseline_strategy.with_overrides(None)
        assert result == baseline_strategy
        assert result is not baseline_strategy
