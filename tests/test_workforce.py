"""
Tests for ARCP workforce management.

Tests cover:
- Hiring and rookie training
- ARCP capacity with rookies and overtime
- Daily salary cost
- Quit risk after sustained overtime
"""

import pytest

from factorysim.engine.workforce import WorkforceModule
from factorysim.models.state import Workforce


@pytest.fixture
def workforce(default_config):
    return WorkforceModule(default_config, random_seed=1)


class TestHiringAndTraining:
    """Tests for hiring and training."""

    def test_hire_rookies(self, workforce, empty_state):
        """Rookies join the payroll and start training."""
        workforce.hire_rookies(empty_state, 2)

        assert empty_state.workforce.rookies == 2
        assert len(empty_state.workforce.rookies_in_training) == 2
        assert empty_state.workforce.rookies_in_training[0].days_remaining == 15

    def test_rookies_promoted_after_training(self, workforce, empty_state):
        """Rookies become experts when training ends."""
        workforce.hire_rookies(empty_state, 2)

        for _ in range(14):
            assert workforce.process_training(empty_state).promoted == 0
        result = workforce.process_training(empty_state)

        assert result.promoted == 2
        assert empty_state.workforce.experts == 3
        assert empty_state.workforce.rookies == 0

    def test_hire_experts(self, workforce, empty_state):
        """Experts are productive immediately."""
        workforce.hire_experts(empty_state, 2)
        assert empty_state.workforce.experts == 3


class TestCapacityAndCost:
    """Tests for capacity and salary cost."""

    @pytest.mark.parametrize(
        "experts,rookies,overtime,expected",
        [
            (1, 0, 0.0, 3),
            (1, 1, 0.0, 4),
            (1, 0, 4.0, 4),
            (2, 0, 4.0, 9),
            (0, 0, 8.0, 0),
        ],
    )
    def test_arcp_capacity(self, workforce, experts, rookies, overtime, expected):
        """Capacity scales with expert equivalents and hours worked."""
        assert workforce.arcp_capacity(experts, rookies, overtime) == expected

    def test_daily_salary_cost(self, workforce):
        """Overtime is paid at the multiplier on the hourly rate."""
        team = Workforce(experts=1, rookies=1)

        assert workforce.daily_salary_cost(team) == pytest.approx(235.0)
        assert workforce.daily_salary_cost(team, 2.0) == pytest.approx(235.0 + 2 * 1.5 * 235.0 / 8)


class TestQuitRisk:
    """Tests for overtime attrition."""

    def test_no_overtime_resets_streak(self, workforce, empty_state):
        """A day without overtime resets the streak."""
        empty_state.consecutive_overtime_days = 9
        result = workforce.apply_quit_risk(empty_state, 0.0, trigger_days=5, quit_probability=1.0)

        assert result.total == 0
        assert empty_state.consecutive_overtime_days == 0

    def test_below_trigger_no_quits(self, workforce, empty_state):
        """No one quits before the streak reaches the trigger."""
        result = workforce.apply_quit_risk(empty_state, 2.0, trigger_days=5, quit_probability=1.0)

        assert result.total == 0
        assert empty_state.consecutive_overtime_days == 1

    def test_certain_quit(self, workforce, empty_state):
        """With probability one every worker quits past the trigger."""
        workforce.hire_rookies(empty_state, 2)
        result = workforce.apply_quit_risk(empty_state, 2.0, trigger_days=1, quit_probability=1.0)

        assert result.experts_quit == 1
        assert result.rookies_quit == 2
        assert empty_state.workforce.rookies_in_training == []
