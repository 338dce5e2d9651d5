"""
Declarative condition -> action rules.

A rule fires when all of its conditions hold (AND). Every satisfied rule
fires on the same day; priority only controls evaluation order, and
therefore the order of the returned actions. Cooldown and maximum
trigger count are tracked per rule.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from factorysim.models.state import SimulationState
from factorysim.models.strategy import (
    BuyMachineAction,
    HireRookieAction,
    OrderMaterialsAction,
    StrategyAction,
    StrategyActionType,
    TakeLoanAction,
)

logger = logging.getLogger(__name__)


class ConditionType(str, Enum):
    """State measurements a rule condition can test."""

    CASH_BELOW = "CASH_BELOW"
    CASH_ABOVE = "CASH_ABOVE"
    INVENTORY_BELOW = "INVENTORY_BELOW"
    INVENTORY_ABOVE = "INVENTORY_ABOVE"
    BACKLOG_ABOVE = "BACKLOG_ABOVE"
    BACKLOG_BELOW = "BACKLOG_BELOW"
    DAY_RANGE = "DAY_RANGE"
    DEBT_ABOVE = "DEBT_ABOVE"
    NET_WORTH_BELOW = "NET_WORTH_BELOW"


class RuleCondition(BaseModel):
    """A single threshold test."""

    type: ConditionType
    threshold: float = 0.0
    min_day: Optional[int] = None
    max_day: Optional[int] = None

    def evaluate(self, state: SimulationState, day: int) -> bool:
        """Whether the condition holds for ``state`` on ``day``."""
        t = self.threshold
        if self.type == ConditionType.CASH_BELOW:
            return state.cash < t
        if self.type == ConditionType.CASH_ABOVE:
            return state.cash > t
        if self.type == ConditionType.INVENTORY_BELOW:
            return state.raw_material_inventory < t
        if self.type == ConditionType.INVENTORY_ABOVE:
            return state.raw_material_inventory > t
        if self.type == ConditionType.BACKLOG_ABOVE:
            return state.custom_wip_count > t
        if self.type == ConditionType.BACKLOG_BELOW:
            return state.custom_wip_count < t
        if self.type == ConditionType.DAY_RANGE:
            low = self.min_day if self.min_day is not None else 0
            high = self.max_day if self.max_day is not None else math.inf
            return low <= day <= high
        if self.type == ConditionType.DEBT_ABOVE:
            return state.debt > t
        if self.type == ConditionType.NET_WORTH_BELOW:
            return state.net_worth < t
        return False


class Rule(BaseModel):
    """Conditions (all must hold) plus a template action."""

    id: str
    name: str = ""
    conditions: list[RuleCondition] = Field(default_factory=list)
    action: StrategyAction
    cooldown_days: int = Field(default=0, ge=0, description="Minimum days between firings")
    max_triggers: Optional[int] = Field(default=None, ge=1, description="None = unlimited")
    priority: int = Field(default=0, description="Higher is evaluated first")


@dataclass
class RuleExecutionState:
    """Firing history of one rule."""

    rule_id: str
    last_triggered_day: Optional[int] = None
    trigger_count: int = 0


class RulesEngine:
    """Evaluates rules against the state once per day."""

    def __init__(self, rules: Optional[list[Rule]] = None):
        self._rules: list[Rule] = []
        self._execution: dict[str, RuleExecutionState] = {}
        for rule in rules or []:
            self.add_rule(rule)

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    def add_rule(self, rule: Rule) -> None:
        """Add a rule, keeping evaluation order by descending priority."""
        if rule.id in self._execution:
            raise ValueError(f"Duplicate rule id: {rule.id}")
        self._rules.append(rule)
        # Stable sort keeps insertion order among equal priorities
        self._rules.sort(key=lambda r: -r.priority)
        self._execution[rule.id] = RuleExecutionState(rule_id=rule.id)

    def remove_rule(self, rule_id: str) -> None:
        self._rules = [r for r in self._rules if r.id != rule_id]
        self._execution.pop(rule_id, None)

    def _can_fire(self, rule: Rule, day: int) -> bool:
        execution = self._execution[rule.id]
        if rule.max_triggers is not None and execution.trigger_count >= rule.max_triggers:
            return False
        if (
            rule.cooldown_days
            and execution.last_triggered_day is not None
            and day - execution.last_triggered_day < rule.cooldown_days
        ):
            return False
        return True

    def evaluate(self, state: SimulationState, day: Optional[int] = None) -> list[StrategyActionType]:
        """Fire every eligible rule whose conditions all hold.

        Args:
            state: Current state
            day: Day to evaluate for (defaults to the state's current day)

        Returns:
            Copies of the fired rules' actions, stamped with ``day``
        """
        if day is None:
            day = state.current_day
        fired: list[StrategyActionType] = []
        for rule in self._rules:
            if not self._can_fire(rule, day):
                continue
            if all(c.evaluate(state, day) for c in rule.conditions):
                fired.append(rule.action.model_copy(update={"day": day}, deep=True))
                execution = self._execution[rule.id]
                execution.last_triggered_day = day
                execution.trigger_count += 1
                logger.debug("Day %d: rule %s fired", day, rule.id)
        return fired

    def execution_stats(self) -> list[RuleExecutionState]:
        return [
            RuleExecutionState(e.rule_id, e.last_triggered_day, e.trigger_count)
            for e in self._execution.values()
        ]

    def reset(self) -> None:
        """Clear all firing history."""
        for execution in self._execution.values():
            execution.last_triggered_day = None
            execution.trigger_count = 0


EXAMPLE_RULES: list[Rule] = [
    Rule(
        id="emergency-materials",
        name="Emergency material order",
        conditions=[
            RuleCondition(type=ConditionType.INVENTORY_BELOW, threshold=100),
            RuleCondition(type=ConditionType.CASH_ABOVE, threshold=50000),
        ],
        action=OrderMaterialsAction(day=0, quantity=500),
        cooldown_days=5,
        priority=100,
    ),
    Rule(
        id="take-loan-when-cash-low",
        name="Emergency loan",
        conditions=[
            RuleCondition(type=ConditionType.CASH_BELOW, threshold=30000),
            RuleCondition(type=ConditionType.DEBT_ABOVE, threshold=0),
        ],
        action=TakeLoanAction(day=0, amount=50000),
        max_triggers=2,
        cooldown_days=40,
        priority=90,
    ),
    Rule(
        id="hire-when-backlog-high",
        name="Hire a rookie when the custom backlog is high",
        conditions=[
            RuleCondition(type=ConditionType.BACKLOG_ABOVE, threshold=75),
            RuleCondition(type=ConditionType.CASH_ABOVE, threshold=100000),
        ],
        action=HireRookieAction(day=0, count=1),
        max_triggers=3,
        cooldown_days=20,
        priority=75,
    ),
    Rule(
        id="expand-capacity",
        name="Buy an MCE when profitable and backlogged",
        conditions=[
            RuleCondition(type=ConditionType.CASH_ABOVE, threshold=200000),
            RuleCondition(type=ConditionType.BACKLOG_ABOVE, threshold=50),
            RuleCondition(type=ConditionType.DAY_RANGE, min_day=100, max_day=300),
        ],
        action=BuyMachineAction(day=0, machine_type="MCE", count=1),
        max_triggers=2,
        cooldown_days=30,
        priority=50,
    ),
]
