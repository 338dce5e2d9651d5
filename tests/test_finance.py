"""
Tests for cash, debt and automatic borrowing.

Tests cover:
- Loans with commission added to debt
- Payments that borrow the shortfall
- Debt repayment caps
- Daily interest
- Automated debt management
- Ratio ceilings on automatic loans and preemptive wage loans
"""

import pytest

from factorysim.engine.finance import DebtManager, FinanceModule
from factorysim.models.state import SimulationState
from factorysim.models.strategy import Strategy


@pytest.fixture
def finance(default_config):
    return FinanceModule(default_config)


class TestLoans:
    """Tests for loans and repayment."""

    def test_take_loan_adds_commission_to_debt(self, finance, empty_state):
        """Cash rises by the loan, debt by loan plus commission."""
        commission = finance.take_loan(empty_state, 1000.0)

        assert commission == pytest.approx(20.0)
        assert empty_state.cash == pytest.approx(1000.0)
        assert empty_state.debt == pytest.approx(1020.0)
        assert empty_state.total_commission_paid == pytest.approx(20.0)

    def test_non_positive_loan_ignored(self, finance, empty_state):
        """Zero or negative loans change nothing."""
        assert finance.take_loan(empty_state, 0.0) == 0.0
        assert empty_state.debt == 0.0

    def test_pay_debt_capped_by_debt(self, finance):
        """Repayment never exceeds outstanding debt."""
        state = SimulationState(cash=5000.0, debt=300.0)
        paid = finance.pay_debt(state, 1000.0)

        assert paid == pytest.approx(300.0)
        assert state.debt == 0.0
        assert state.cash == pytest.approx(4700.0)

    def test_pay_debt_capped_by_cash(self, finance):
        """Repayment never exceeds available cash."""
        state = SimulationState(cash=200.0, debt=1000.0)
        paid = finance.pay_debt(state, 1000.0)

        assert paid == pytest.approx(200.0)
        assert state.cash == 0.0
        assert state.debt == pytest.approx(800.0)


class TestProcessPayment:
    """Tests for payments with automatic borrowing."""

    def test_paid_from_cash(self, finance):
        """Payments within cash never borrow."""
        state = SimulationState(cash=1000.0)
        result = finance.process_payment(state, 400.0)

        assert not result.borrowed
        assert state.cash == pytest.approx(600.0)
        assert state.debt == 0.0

    def test_wage_shortfall_uses_salary_commission(self, finance):
        """A wage shortfall borrows at 5% and leaves cash at zero."""
        state = SimulationState(cash=100.0, debt=0.0)
        result = finance.process_payment(state, 1000.0, is_wage=True)

        assert 0.0 <= state.cash <= 0.01
        assert result.loan_amount == pytest.approx(900.0)
        assert state.debt == pytest.approx(945.0)

    def test_operating_shortfall_uses_normal_commission(self, finance):
        """Non-wage shortfalls borrow at 2%."""
        state = SimulationState(cash=100.0, debt=0.0)
        finance.process_payment(state, 1000.0)

        assert state.cash == 0.0
        assert state.debt == pytest.approx(918.0)

    def test_negative_cash_never_results(self, finance):
        """Cash is never negative after a payment."""
        state = SimulationState(cash=0.0)
        for amount in (10.0, 250.0, 99999.0):
            finance.process_payment(state, amount)
            assert state.cash >= 0.0


class TestInterest:
    """Tests for daily interest."""

    def test_interest_charged_and_earned(self, finance):
        """Debt interest is paid first, then cash earns interest."""
        state = SimulationState(cash=10000.0, debt=1000.0)
        result = finance.apply_daily_interest(state)

        assert result.interest_charged == pytest.approx(1.0)
        assert result.interest_earned == pytest.approx(9999.0 * 0.0005)
        assert state.total_interest_paid == pytest.approx(1.0)

    def test_interest_borrows_when_cash_empty(self, finance):
        """Interest with no cash is itself borrowed."""
        state = SimulationState(cash=0.0, debt=1000.0)
        result = finance.apply_daily_interest(state)

        assert result.interest_earned == 0.0
        assert state.debt == pytest.approx(1000.0 + 1.0 * 1.02)


class TestDebtManager:
    """Tests for automated debt management."""

    def test_threshold_breach_is_flagged_only(self, default_config):
        """Debt above the threshold is counted but not acted on."""
        manager = DebtManager(default_config)
        state = SimulationState(current_day=50, cash=0.0, debt=500.0)
        strategy = Strategy(max_debt_threshold=100.0, auto_debt_paydown=False)

        result = manager.automated_debt_management(state, strategy)

        assert result.emergency_measures_triggered
        assert state.debt_threshold_breach_days == 1
        assert state.debt == 500.0

    def test_excess_cash_pays_down_debt(self, default_config):
        """Cash above the reserve pays off debt when no wage loan is due."""
        manager = DebtManager(default_config)
        state = SimulationState(current_day=50, cash=100000.0, debt=5000.0)

        result = manager.automated_debt_management(state, Strategy())

        assert result.preemptive_loan_taken == 0.0
        assert result.debt_paid_down == pytest.approx(5000.0)
        assert state.debt == 0.0

    def test_min_cash_reserve(self, default_config):
        """Reserve covers salaries plus a week-amortized material order."""
        manager = DebtManager(default_config)
        state = SimulationState()
        reserve = manager.calculate_min_cash_reserve(state, Strategy())

        assert reserve == pytest.approx((150.0 + 26000.0 / 7) * 5.0)

    def test_no_ratio_loan_without_revenue(self, default_config):
        """Without revenue history the capped loan is zero."""
        manager = DebtManager(default_config)
        state = SimulationState(cash=0.0)

        assert manager.calculate_ratio_capped_loan(state, Strategy(), 10000.0, 0.02) == 0.0

    def test_ratio_capped_loan_respects_needed(self, default_config):
        """With ample revenue the loan is limited by what is needed."""
        manager = DebtManager(default_config)
        state = SimulationState(cash=50000.0)
        state.history.revenue = [20000.0] * 30

        loan = manager.calculate_ratio_capped_loan(state, Strategy(), 1000.0, 0.02)
        assert loan == pytest.approx(1000.0)

    def test_ratio_capped_loan_asset_ceiling(self, default_config):
        """Debt after borrowing stays within 70% of assets (machines at salvage)."""
        manager = DebtManager(default_config)
        state = SimulationState(cash=0.0)
        state.history.revenue = [1000.0] * 30

        loan = manager.calculate_ratio_capped_loan(state, Strategy(), 1_000_000.0, 0.02)

        # 0.7 * 21500 / (1.02 - 0.7)
        assert loan == pytest.approx(47031.25)
        assert loan * 1.02 == pytest.approx(0.7 * (21500.0 + loan))

    def test_ratio_capped_loan_revenue_ceiling(self, default_config):
        """Debt stays within the allowed multiple of annualized revenue."""
        manager = DebtManager(default_config)
        state = SimulationState(cash=0.0)
        state.history.revenue = [1000.0] * 30
        strategy = Strategy(max_debt_to_revenue_ratio=0.1)

        loan = manager.calculate_ratio_capped_loan(state, strategy, 1_000_000.0, 0.02)

        assert loan == pytest.approx(0.1 * 365000.0 / 1.02)

    def test_ratio_capped_loan_interest_coverage_ceiling(self, default_config):
        """Daily interest stays covered three times by average daily revenue."""
        manager = DebtManager(default_config)
        state = SimulationState(cash=1_000_000.0)
        state.history.revenue = [1000.0] * 30

        loan = manager.calculate_ratio_capped_loan(state, Strategy(), 1_000_000.0, 0.02)

        assert loan == pytest.approx(1000.0 / (3.0 * 0.001) / 1.02)
        assert loan * 1.02 * 0.001 * 3.0 == pytest.approx(1000.0)

    def test_existing_debt_reduces_ceiling(self, default_config):
        manager = DebtManager(default_config)
        state = SimulationState(cash=0.0, debt=5000.0)
        state.history.revenue = [1000.0] * 30

        loan = manager.calculate_ratio_capped_loan(state, Strategy(), 1_000_000.0, 0.02)

        assert loan == pytest.approx((0.7 * 21500.0 - 5000.0) / 0.32)


class TestPreemptiveWageLoan:
    """Tests for borrowing ahead of payroll."""

    def test_loan_taken_before_payroll(self, default_config):
        """Close to payday with short cash, a loan tops cash up to payroll plus buffer."""
        manager = DebtManager(default_config)
        state = SimulationState(current_day=54, cash=10000.0)
        state.history.revenue = [20000.0] * 30

        result = manager.automated_debt_management(state, Strategy())

        # one expert: 7 * 150 payroll + 25000 buffer
        assert result.preemptive_loan_taken == pytest.approx(16050.0)
        assert result.debt_paid_down == 0.0
        assert state.cash == pytest.approx(26050.0)
        assert state.debt == pytest.approx(16050.0 * 1.02)

    def test_no_loan_far_from_payroll(self, default_config):
        manager = DebtManager(default_config)
        state = SimulationState(current_day=50, cash=10000.0)
        state.history.revenue = [20000.0] * 30

        assert manager.prevent_wage_advance(state, Strategy()) == 0.0
        assert state.debt == 0.0

    def test_no_loan_when_cash_covers_payroll(self, default_config):
        manager = DebtManager(default_config)
        state = SimulationState(current_day=54, cash=30000.0)
        state.history.revenue = [20000.0] * 30

        assert manager.prevent_wage_advance(state, Strategy()) == 0.0
