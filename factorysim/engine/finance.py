"""
Cash, debt, and automatic borrowing.

This module handles:
- Loans and debt repayment
- Payments that borrow automatically instead of letting cash go negative
- Daily interest on debt and cash
- Automated debt management (preemptive wage loans, ratio-capped
  borrowing, excess-cash paydown, debt threshold monitoring)

Commission is added to the debt, not deducted from the cash received:
a loan of L at commission c raises cash by L and debt by L * (1 + c).
"""

import logging
from dataclasses import dataclass
from typing import Optional

from factorysim.config.schema import MACHINE_TYPES, FactoryConfig, get_default_config
from factorysim.models.state import SimulationState
from factorysim.models.strategy import Strategy

logger = logging.getLogger(__name__)

REVENUE_LOOKBACK_DAYS = 30


@dataclass
class PaymentResult:
    """Outcome of a single payment."""

    amount: float
    paid_from_cash: float
    loan_amount: float = 0.0
    commission: float = 0.0

    @property
    def borrowed(self) -> bool:
        return self.loan_amount > 0


@dataclass
class InterestResult:
    """Interest charged and earned for one day."""

    interest_charged: float
    interest_earned: float


@dataclass
class DebtManagementResult:
    """What automated debt management did on one day."""

    preemptive_loan_taken: float = 0.0
    debt_paid_down: float = 0.0
    emergency_measures_triggered: bool = False
    min_cash_reserve: float = 0.0


class FinanceModule:
    """Applies payments, loans, and interest to a simulation state."""

    def __init__(self, config: Optional[FactoryConfig] = None):
        """Initialize finance module.

        Args:
            config: Simulation configuration (uses defaults if None)
        """
        self.config = config or get_default_config()

    def take_loan(
        self,
        state: SimulationState,
        amount: float,
        commission_rate: Optional[float] = None,
    ) -> float:
        """Borrow ``amount``; cash rises by the amount, debt by amount plus commission.

        Args:
            state: State to update
            amount: Cash to receive
            commission_rate: Commission rate (defaults to the normal rate)

        Returns:
            Commission added to the debt
        """
        if amount <= 0:
            return 0.0
        if commission_rate is None:
            commission_rate = self.config.finance.normal_loan_commission
        commission = amount * commission_rate
        state.cash += amount
        state.debt += amount + commission
        state.total_commission_paid += commission
        return commission

    def pay_debt(self, state: SimulationState, amount: float) -> float:
        """Repay up to ``amount`` of debt from cash.

        Repayment is capped by both the outstanding debt and available cash.

        Returns:
            Amount actually repaid
        """
        payment = min(amount, state.debt, max(0.0, state.cash))
        if payment <= 0:
            return 0.0
        state.cash -= payment
        state.debt -= payment
        if state.debt < 1e-9:
            state.debt = 0.0
        return payment

    def process_payment(
        self,
        state: SimulationState,
        amount: float,
        is_wage: bool = False,
    ) -> PaymentResult:
        """Pay ``amount`` from cash, borrowing any shortfall.

        Wage shortfalls borrow at the salary commission, everything else at
        the normal commission. Cash is exactly zero after a borrowed payment.

        Args:
            state: State to update
            amount: Amount due
            is_wage: Whether the payment is payroll

        Returns:
            PaymentResult describing any automatic loan
        """
        if amount <= 0:
            return PaymentResult(amount=0.0, paid_from_cash=0.0)

        if state.cash >= amount:
            state.cash -= amount
            return PaymentResult(amount=amount, paid_from_cash=amount)

        available = max(0.0, state.cash)
        shortfall = amount - available
        rate = (
            self.config.finance.salary_loan_commission
            if is_wage
            else self.config.finance.normal_loan_commission
        )
        commission = self.take_loan(state, shortfall, rate)
        state.cash = 0.0
        logger.debug(
            "Day %d: automatic %s loan of %.2f (commission %.2f)",
            state.current_day,
            "wage" if is_wage else "operating",
            shortfall,
            commission,
        )
        return PaymentResult(
            amount=amount,
            paid_from_cash=available,
            loan_amount=shortfall,
            commission=commission,
        )

    def apply_daily_interest(self, state: SimulationState) -> InterestResult:
        """Charge interest on debt and pay interest on positive cash."""
        charged = state.debt * self.config.finance.daily_debt_interest_rate
        if charged > 0:
            self.process_payment(state, charged)
            state.total_interest_paid += charged

        earned = 0.0
        if state.cash > 0:
            earned = state.cash * self.config.finance.daily_cash_interest_rate
            state.cash += earned

        return InterestResult(interest_charged=charged, interest_earned=earned)


class DebtManager:
    """Automated debt management run once per simulated day.

    The preemptive wage loan is limited by three ratio ceilings, all of
    which must hold after borrowing:
        - debt / assets <= max_debt_to_asset_ratio
        - debt / annualized revenue <= max_debt_to_revenue_ratio
        - daily interest <= average daily revenue / min_interest_coverage
    """

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        finance: Optional[FinanceModule] = None,
    ):
        self.config = config or get_default_config()
        self.finance = finance or FinanceModule(self.config)

    def daily_salaries(self, state: SimulationState) -> float:
        wf = self.config.workforce
        return (
            state.workforce.experts * wf.expert_salary_per_day
            + state.workforce.rookies * wf.rookie_salary_per_day
        )

    def daily_overtime(self, state: SimulationState, overtime_hours: float) -> float:
        wf = self.config.workforce
        return (
            self.daily_salaries(state)
            * (overtime_hours / wf.regular_hours_per_day)
            * wf.overtime_multiplier
        )

    def calculate_min_cash_reserve(self, state: SimulationState, strategy: Strategy) -> float:
        """Amortized daily operating expense times the configured reserve days.

        Daily expense = salaries + overtime + one material order spread
        over a week.
        """
        materials = self.config.materials
        order_cost = materials.order_fee + strategy.order_quantity * materials.unit_cost
        daily_expense = (
            self.daily_salaries(state)
            + self.daily_overtime(state, strategy.daily_overtime_hours)
            + order_cost / 7
        )
        return daily_expense * strategy.min_cash_reserve_days

    def asset_value(self, state: SimulationState) -> float:
        """Cash plus salvage value of machines plus raw material at cost."""
        machines = sum(
            state.machines.get(m) * self.config.machines.sell_prices[m]
            for m in MACHINE_TYPES
        )
        return state.cash + machines + state.raw_material_inventory * self.config.materials.unit_cost

    def trailing_revenue(self, state: SimulationState) -> tuple[float, int]:
        """Revenue over the lookback window and the number of days it covers."""
        window = state.history.revenue[-REVENUE_LOOKBACK_DAYS:]
        return sum(window), len(window)

    def calculate_ratio_capped_loan(
        self,
        state: SimulationState,
        strategy: Strategy,
        needed: float,
        commission_rate: float,
    ) -> float:
        """Largest loan up to ``needed`` that keeps all three ratios in bounds.

        Returns:
            Loan amount (0 when any ceiling is already reached)
        """
        if needed <= 0:
            return 0.0
        growth = 1.0 + commission_rate

        # debt + L*g <= r * (assets + L)
        ratio = strategy.max_debt_to_asset_ratio
        if growth > ratio:
            asset_cap = (ratio * self.asset_value(state) - state.debt) / (growth - ratio)
        else:
            asset_cap = needed

        revenue, days = self.trailing_revenue(state)
        if days == 0 or revenue <= 0:
            return 0.0

        annual_revenue = revenue * 365 / days
        revenue_cap = (strategy.max_debt_to_revenue_ratio * annual_revenue - state.debt) / growth

        rate = self.config.finance.daily_debt_interest_rate
        if rate > 0:
            avg_daily_revenue = revenue / days
            max_debt = avg_daily_revenue / (strategy.min_interest_coverage * rate)
            coverage_cap = (max_debt - state.debt) / growth
        else:
            coverage_cap = needed

        return max(0.0, min(needed, asset_cap, revenue_cap, coverage_cap))

    def prevent_wage_advance(self, state: SimulationState, strategy: Strategy) -> float:
        """Take a normal-commission loan ahead of payroll if cash will run short.

        Returns:
            Loan amount taken (0 if none)
        """
        days_until_payroll = 7 - state.current_day % 7
        if days_until_payroll > strategy.preemptive_wage_loan_days:
            return 0.0

        weekly_payroll = 7 * (
            self.daily_salaries(state)
            + self.daily_overtime(state, strategy.daily_overtime_hours)
        )
        required = weekly_payroll + strategy.emergency_loan_buffer
        if state.cash >= required:
            return 0.0

        rate = self.config.finance.normal_loan_commission
        loan = self.calculate_ratio_capped_loan(state, strategy, required - state.cash, rate)
        if loan <= 0:
            return 0.0

        self.finance.take_loan(state, loan, rate)
        logger.debug("Day %d: preemptive wage loan of %.2f", state.current_day, loan)
        return loan

    def execute_debt_paydown(self, state: SimulationState, strategy: Strategy) -> float:
        """Apply a fraction of cash above the minimum reserve to debt.

        Returns:
            Amount repaid
        """
        if state.debt <= 0:
            return 0.0
        excess = state.cash - self.calculate_min_cash_reserve(state, strategy)
        if excess <= 0:
            return 0.0
        amount = min(strategy.debt_paydown_aggressiveness * excess, state.debt)
        return self.finance.pay_debt(state, amount)

    def automated_debt_management(
        self,
        state: SimulationState,
        strategy: Strategy,
    ) -> DebtManagementResult:
        """Run the daily debt management sequence.

        Debt above ``max_debt_threshold`` is flagged and counted but no
        corrective action is taken.
        """
        result = DebtManagementResult()

        if strategy.auto_debt_paydown:
            result.min_cash_reserve = self.calculate_min_cash_reserve(state, strategy)
            result.preemptive_loan_taken = self.prevent_wage_advance(state, strategy)
            if result.preemptive_loan_taken == 0:
                result.debt_paid_down = self.execute_debt_paydown(state, strategy)

        if state.debt > strategy.max_debt_threshold:
            result.emergency_measures_triggered = True
            state.debt_threshold_breach_days += 1
            log = logger.warning if state.debt_threshold_breach_days == 1 else logger.debug
            log(
                "Day %d: debt %.2f exceeds threshold %.2f",
                state.current_day,
                state.debt,
                strategy.max_debt_threshold,
            )

        return result
