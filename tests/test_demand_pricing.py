"""
Tests for demand generation, pricing and sales.

Tests cover:
- Demand phase boundaries
- Seeded custom order draws
- Standard demand curve
- Custom price decay and floor
- Same-day sales
"""

import pytest

from factorysim.engine.demand import DemandModule
from factorysim.engine.pricing import PricingModule, calculate_custom_price
from factorysim.models.strategy import Strategy


class TestDemandModule:
    """Tests for DemandModule."""

    @pytest.mark.parametrize(
        "day,phase",
        [(51, 1), (172, 1), (173, 2), (218, 2), (219, 3), (400, 3), (401, 4)],
    )
    def test_demand_phase(self, default_config, day, phase):
        """Phase boundaries are inclusive of each phase's last day."""
        assert DemandModule(default_config).demand_phase(day) == phase

    def test_seeded_draws_repeat(self, default_config):
        """The same seed draws the same arrivals."""
        strategy = Strategy()
        first = DemandModule(default_config, random_seed=11)
        second = DemandModule(default_config, random_seed=11)

        draws = [first.generate_custom_orders(day, strategy) for day in range(51, 101)]
        assert draws == [second.generate_custom_orders(day, strategy) for day in range(51, 101)]
        assert all(n >= 0 for n in draws)

    def test_zero_std_dev_is_deterministic(self, default_config):
        """Without variance the draw is the rounded mean."""
        strategy = Strategy(custom_demand_std_dev1=0.0)
        assert DemandModule(default_config).generate_custom_orders(60, strategy) == 25

    def test_second_phase_parameters(self, default_config):
        """After phase 1 the second demand parameters apply."""
        module = DemandModule(default_config)
        assert module.custom_demand_parameters(200, Strategy()) == (32.5, 6.5)

    def test_standard_demand_curve(self, default_config):
        """Standard demand is linear in price and floored at zero."""
        module = DemandModule(default_config)
        strategy = Strategy()

        assert module.standard_demand(225.0, strategy) == pytest.approx(375.0)
        assert module.standard_demand(400.0, strategy) == 0.0

    def test_estimate_ramps_between_phases(self, default_config):
        """Phase 2 estimates sit between the phase 1 and phase 3 means."""
        module = DemandModule(default_config)
        strategy = Strategy()

        assert module.estimate_custom_demand(100, strategy) == pytest.approx(25.0)
        assert 25.0 < module.estimate_custom_demand(195, strategy) < 32.5
        assert module.estimate_custom_demand(300, strategy) == pytest.approx(32.5)
        assert module.estimate_custom_demand(500, strategy) == 0.0


class TestPricing:
    """Tests for custom pricing and sales."""

    def test_on_time_price(self):
        """Deliveries at or under target get the base price."""
        assert calculate_custom_price(110.0, 0.27, 5.0, 5.0) == pytest.approx(110.0)

    def test_late_price_decays(self):
        """Each day beyond target lowers the price by the penalty."""
        assert calculate_custom_price(110.0, 0.27, 15.0, 5.0) == pytest.approx(107.3)

    def test_price_floor(self):
        """Price never drops below half the base."""
        assert calculate_custom_price(110.0, 100.0, 20.0, 5.0) == pytest.approx(55.0)

    def test_average_delivery_ignores_idle_days(self, default_config, empty_state):
        """Days without deliveries do not pull the average down."""
        empty_state.history.custom_delivery_time = [4.0, 0.0, 8.0]
        assert PricingModule(default_config).average_delivery_time(empty_state) == pytest.approx(6.0)

    def test_sales_clear_finished_goods(self, default_config, empty_state):
        """All finished goods sell the day they are finished."""
        empty_state.finished_goods.standard = 10
        empty_state.finished_goods.custom = 2

        result = PricingModule(default_config).process_sales(empty_state, 225.0, 110.0)

        assert result.revenue == pytest.approx(2470.0)
        assert empty_state.cash == pytest.approx(2470.0)
        assert empty_state.finished_goods.standard == 0
        assert empty_state.finished_goods.custom == 0
