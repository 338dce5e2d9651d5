"""
Business rule audit for finished simulation runs.

Checks a completed run's history against hard operating constraints:
customer service, raw material availability, workforce utilization,
financial health and order acceptance. Strategies with any CRITICAL
violation are considered invalid.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.models.state import SimulationState

MAX_CUSTOM_DELIVERY_DAYS = 7
MIN_CUSTOM_SERVICE_LEVEL = 0.90
CUSTOM_TARGET_DELIVERY_DAYS = 5
MAX_CONSECUTIVE_STOCKOUT_DAYS = 2
MAX_STOCKOUT_DAYS_PER_100 = 5.0
MIN_PRODUCTION_UTILIZATION = 0.50
MIN_CASH_THRESHOLD = -50000.0
MAX_REJECTIONS_PER_100_DAYS = 10.0
MIN_CUSTOM_PRODUCTION_RATIO = 0.15


class Severity(str, Enum):
    """How serious a violation is."""

    CRITICAL = "CRITICAL"
    MAJOR = "MAJOR"
    WARNING = "WARNING"


@dataclass
class BusinessRuleViolation:
    """A single business rule violation."""

    rule: str
    severity: Severity
    message: str
    day: int
    value: float
    threshold: float

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.rule}: {self.message}"


@dataclass
class BusinessRulesResult:
    """Result of auditing a finished run."""

    violations: list[BusinessRuleViolation] = field(default_factory=list)

    def _count(self, severity: Severity) -> int:
        return sum(1 for v in self.violations if v.severity == severity)

    @property
    def critical_count(self) -> int:
        return self._count(Severity.CRITICAL)

    @property
    def major_count(self) -> int:
        return self._count(Severity.MAJOR)

    @property
    def warning_count(self) -> int:
        return self._count(Severity.WARNING)

    @property
    def valid(self) -> bool:
        """True when no CRITICAL violation was found."""
        return self.critical_count == 0

    def merge(self, other: "BusinessRulesResult") -> None:
        """Merge another result into this one."""
        self.violations.extend(other.violations)


def validate_business_rules(
    state: SimulationState,
    config: Optional[FactoryConfig] = None,
) -> BusinessRulesResult:
    """Audit a finished simulation state.

    Args:
        state: Final state of a run (its history is inspected)
        config: Configuration used for the run

    Returns:
        BusinessRulesResult with every violation found
    """
    config = config or get_default_config()
    result = BusinessRulesResult()

    result.merge(_check_custom_delivery_time(state))
    result.merge(_check_custom_service_level(state))
    result.merge(_check_inventory_stockouts(state))
    result.merge(_check_production_utilization(state, config))
    result.merge(_check_financial_health(state))
    result.merge(_check_order_acceptance(state, config))

    return result


def _check_custom_delivery_time(state: SimulationState) -> BusinessRulesResult:
    """Every day's average custom delivery must be within the maximum."""
    result = BusinessRulesResult()
    history = state.history
    for day, value in zip(history.days, history.custom_delivery_time):
        if value > MAX_CUSTOM_DELIVERY_DAYS:
            result.violations.append(BusinessRuleViolation(
                rule="MAX_CUSTOM_DELIVERY_DAYS",
                severity=Severity.CRITICAL,
                message=f"Custom delivery time of {value:.1f} days exceeds {MAX_CUSTOM_DELIVERY_DAYS} days",
                day=day,
                value=value,
                threshold=MAX_CUSTOM_DELIVERY_DAYS,
            ))
    return result


def _check_custom_service_level(state: SimulationState) -> BusinessRulesResult:
    """Share of delivery days meeting the target must reach the minimum."""
    result = BusinessRulesResult()
    delivery_days = [t for t in state.history.custom_delivery_time if t > 0]
    if not delivery_days:
        return result

    target = CUSTOM_TARGET_DELIVERY_DAYS
    on_time = sum(1 for t in delivery_days if t <= target)
    service_level = on_time / len(delivery_days)
    if service_level < MIN_CUSTOM_SERVICE_LEVEL:
        result.violations.append(BusinessRuleViolation(
            rule="MIN_CUSTOM_SERVICE_LEVEL",
            severity=Severity.CRITICAL,
            message=(
                f"Custom service level of {service_level:.1%} is below {MIN_CUSTOM_SERVICE_LEVEL:.0%} "
                f"({on_time}/{len(delivery_days)} days on target)"
            ),
            day=state.current_day,
            value=service_level,
            threshold=MIN_CUSTOM_SERVICE_LEVEL,
        ))
    return result


def _check_inventory_stockouts(state: SimulationState) -> BusinessRulesResult:
    """Limit both stockout streaks and overall stockout frequency."""
    result = BusinessRulesResult()
    levels = state.history.raw_material
    if not levels:
        return result

    streak = 0
    longest = 0
    for value in levels:
        streak = streak + 1 if value == 0 else 0
        longest = max(longest, streak)

    if longest > MAX_CONSECUTIVE_STOCKOUT_DAYS:
        result.violations.append(BusinessRuleViolation(
            rule="MAX_CONSECUTIVE_STOCKOUT_DAYS",
            severity=Severity.MAJOR,
            message=f"{longest} consecutive days without raw material",
            day=state.current_day,
            value=longest,
            threshold=MAX_CONSECUTIVE_STOCKOUT_DAYS,
        ))

    per_100 = sum(1 for v in levels if v == 0) / len(levels) * 100
    if per_100 > MAX_STOCKOUT_DAYS_PER_100:
        result.violations.append(BusinessRuleViolation(
            rule="MAX_STOCKOUT_DAYS",
            severity=Severity.MAJOR,
            message=f"{per_100:.1f} stockout days per 100 days",
            day=state.current_day,
            value=per_100,
            threshold=MAX_STOCKOUT_DAYS_PER_100,
        ))
    return result


def _check_production_utilization(state: SimulationState, config: FactoryConfig) -> BusinessRulesResult:
    """Average standard output per unit of nominal ARCP capacity."""
    result = BusinessRulesResult()
    history = state.history
    wf = config.workforce

    ratios = []
    for produced, experts, rookies in zip(history.standard_production, history.experts, history.rookies):
        capacity = (experts + rookies * wf.rookie_productivity_factor) * wf.expert_productivity
        if capacity > 0:
            ratios.append(produced / capacity)
    if not ratios:
        return result

    utilization = sum(ratios) / len(ratios)
    if utilization < MIN_PRODUCTION_UTILIZATION:
        result.violations.append(BusinessRuleViolation(
            rule="MIN_PRODUCTION_UTILIZATION",
            severity=Severity.MAJOR,
            message=f"Average workforce utilization of {utilization:.1%} is below {MIN_PRODUCTION_UTILIZATION:.0%}",
            day=state.current_day,
            value=utilization,
            threshold=MIN_PRODUCTION_UTILIZATION,
        ))
    return result


def _check_financial_health(state: SimulationState) -> BusinessRulesResult:
    result = BusinessRulesResult()
    if not state.history.cash:
        return result
    min_cash = min(state.history.cash)
    if min_cash < MIN_CASH_THRESHOLD:
        result.violations.append(BusinessRuleViolation(
            rule="MIN_CASH_THRESHOLD",
            severity=Severity.CRITICAL,
            message=f"Minimum cash of ${min_cash:,.2f} is below ${MIN_CASH_THRESHOLD:,.2f}",
            day=state.current_day,
            value=min_cash,
            threshold=MIN_CASH_THRESHOLD,
        ))
    return result


def _check_order_acceptance(state: SimulationState, config: FactoryConfig) -> BusinessRulesResult:
    """Rejected material orders per 100 days and the custom share of output."""
    result = BusinessRulesResult()
    elapsed = state.current_day - config.calendar.start_day + 1
    if elapsed > 0:
        per_100 = state.rejected_material_orders / elapsed * 100
        if per_100 > MAX_REJECTIONS_PER_100_DAYS:
            result.violations.append(BusinessRuleViolation(
                rule="MAX_ORDERS_REJECTED_PER_100_DAYS",
                severity=Severity.MAJOR,
                message=f"{per_100:.1f} material orders rejected per 100 days",
                day=state.current_day,
                value=per_100,
                threshold=MAX_REJECTIONS_PER_100_DAYS,
            ))

    total_standard = sum(state.history.standard_production)
    total_custom = sum(state.history.custom_production)
    total = total_standard + total_custom
    if total > 0:
        ratio = total_custom / total
        if ratio < MIN_CUSTOM_PRODUCTION_RATIO:
            result.violations.append(BusinessRuleViolation(
                rule="MIN_CUSTOM_PRODUCTION_RATIO",
                severity=Severity.MAJOR,
                message=f"Custom production is only {ratio:.1%} of output",
                day=state.current_day,
                value=ratio,
                threshold=MIN_CUSTOM_PRODUCTION_RATIO,
            ))
    return result


def format_violations(result: BusinessRulesResult) -> str:
    """Render a result as plain text grouped by severity."""
    if result.valid and not result.violations:
        return "All business rules passed"

    lines = [
        f"Critical: {result.critical_count} | Major: {result.major_count} | Warning: {result.warning_count}"
    ]
    for severity in Severity:
        group = [v for v in result.violations if v.severity == severity]
        if group:
            lines.append(f"{severity.value}:")
            lines.extend(f"  - {v.rule}: {v.message}" for v in group)
    return "\n".join(lines)
