"""
ARCP workforce management.

This module handles:
- Hiring rookies (trained for a fixed number of days) and experts
- Daily rookie training and promotion to expert
- Daily salary and overtime cost
- ARCP labor capacity
- Quit risk after sustained overtime

Capacity model:
    capacity = floor((experts * p + rookies * p * f) * (regular + overtime) / regular)
where p is expert productivity and f the rookie productivity factor.
"""

import math
import random
from dataclasses import dataclass
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.models.state import SimulationState, TrainingRookie, Workforce


@dataclass
class TrainingResult:
    """Result of one day of rookie training."""

    promoted: int
    still_training: int


@dataclass
class QuitResult:
    """Employees lost to overtime fatigue on one day."""

    experts_quit: int = 0
    rookies_quit: int = 0

    @property
    def total(self) -> int:
        return self.experts_quit + self.rookies_quit


class WorkforceModule:
    """Manages hiring, training, wages, and attrition of ARCP workers."""

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        random_seed: Optional[int] = None,
    ):
        """Initialize workforce module.

        Args:
            config: Simulation configuration (uses defaults if None)
            random_seed: Random seed for quit draws
        """
        self.config = config or get_default_config()
        self._rng = random.Random(random_seed)

    def set_random_seed(self, seed: Optional[int]) -> None:
        """Set random seed for reproducible quit draws."""
        self._rng = random.Random(seed)

    def hire_rookies(self, state: SimulationState, count: int) -> None:
        """Hire ``count`` rookies; each trains before becoming an expert."""
        training_days = self.config.workforce.rookie_training_days
        for _ in range(count):
            state.workforce.rookies += 1
            state.workforce.rookies_in_training.append(
                TrainingRookie(hire_day=state.current_day, days_remaining=training_days)
            )

    def hire_experts(self, state: SimulationState, count: int) -> None:
        """Hire ``count`` experts, productive immediately."""
        state.workforce.experts += count

    def process_training(self, state: SimulationState) -> TrainingResult:
        """Advance training by one day and promote rookies who finish."""
        remaining: list[TrainingRookie] = []
        promoted = 0
        for rookie in state.workforce.rookies_in_training:
            days_left = rookie.days_remaining - 1
            if days_left <= 0:
                promoted += 1
            else:
                remaining.append(TrainingRookie(hire_day=rookie.hire_day, days_remaining=days_left))

        promoted = min(promoted, state.workforce.rookies)
        state.workforce.rookies_in_training = remaining
        state.workforce.rookies -= promoted
        state.workforce.experts += promoted
        return TrainingResult(promoted=promoted, still_training=len(remaining))

    def daily_salary_cost(self, workforce: Workforce, overtime_hours: float = 0.0) -> float:
        """Regular pay plus overtime pay for one day."""
        wf = self.config.workforce
        base = workforce.experts * wf.expert_salary_per_day + workforce.rookies * wf.rookie_salary_per_day
        overtime = overtime_hours * wf.overtime_multiplier * (base / wf.regular_hours_per_day)
        return base + overtime

    def effective_workers(self, experts: int, rookies: int) -> float:
        """Expert-equivalent headcount."""
        return experts + rookies * self.config.workforce.rookie_productivity_factor

    def arcp_capacity(self, experts: int, rookies: int, overtime_hours: float = 0.0) -> int:
        """Daily ARCP units the workforce can finish.

        Args:
            experts: Expert headcount
            rookies: Rookie headcount
            overtime_hours: Overtime hours per worker per day

        Returns:
            Whole units of ARCP capacity
        """
        wf = self.config.workforce
        per_regular_day = self.effective_workers(experts, rookies) * wf.expert_productivity
        hours_factor = (wf.regular_hours_per_day + overtime_hours) / wf.regular_hours_per_day
        # Guard against 2.9999999 style float drift before flooring
        return int(math.floor(per_regular_day * hours_factor + 1e-9))

    def apply_quit_risk(
        self,
        state: SimulationState,
        overtime_hours: float,
        trigger_days: int,
        quit_probability: float,
    ) -> QuitResult:
        """Track consecutive overtime days and draw quits once past the trigger.

        Each employee quits independently with ``quit_probability`` on every
        day the overtime streak is at or beyond ``trigger_days``.
        """
        if overtime_hours <= 0:
            state.consecutive_overtime_days = 0
            return QuitResult()

        state.consecutive_overtime_days += 1
        if state.consecutive_overtime_days < trigger_days or quit_probability <= 0:
            return QuitResult()

        wf = state.workforce
        experts_quit = sum(1 for _ in range(wf.experts) if self._rng.random() < quit_probability)
        rookies_quit = sum(1 for _ in range(wf.rookies) if self._rng.random() < quit_probability)

        wf.experts -= experts_quit
        wf.rookies -= rookies_quit
        if rookies_quit:
            # Drop the most recently hired trainees first
            wf.rookies_in_training = wf.rookies_in_training[: max(0, len(wf.rookies_in_training) - rookies_quit)]

        return QuitResult(experts_quit=experts_quit, rookies_quit=rookies_quit)
