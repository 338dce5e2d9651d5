"""
Dynamic inventory and batch-size policies.

This module handles:
- Snapshotting the inputs of the EOQ/ROP/EPQ formulas each day
- Classifying what changed since the previous snapshot
- Recomputing only the policies affected by the change
- Applying a new value only when it moves by more than a minimum delta
- Bottleneck analysis across the four stations
- An append-only audit log of every applied change

Which formulas a change re-runs:
    DEMAND, DEMAND_PHASE                       -> EOQ, ROP, EPQ
    PRODUCTION_RATE, WORKFORCE                 -> EPQ
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.demand import DemandModule
from factorysim.engine.formulas import calculate_eoq, calculate_epq, calculate_rop
from factorysim.engine.workforce import WorkforceModule
from factorysim.models.state import SimulationState
from factorysim.models.strategy import Strategy

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Kinds of formula-input change."""

    PRODUCTION_RATE = "PRODUCTION_RATE"
    WORKFORCE = "WORKFORCE"
    DEMAND = "DEMAND"
    DEMAND_PHASE = "DEMAND_PHASE"


class PolicyChangeTrigger(str, Enum):
    """Business event recorded as the cause of a recalculation."""

    MACHINE_PURCHASED = "MACHINE_PURCHASED"
    MACHINE_SOLD = "MACHINE_SOLD"
    EMPLOYEE_HIRED = "EMPLOYEE_HIRED"
    EMPLOYEE_QUIT = "EMPLOYEE_QUIT"
    DEMAND_PHASE_CHANGE = "DEMAND_PHASE_CHANGE"
    INITIAL_CALCULATION = "INITIAL_CALCULATION"
    MANUAL_RECALC = "MANUAL_RECALC"


@dataclass(frozen=True)
class InputSnapshot:
    """Formula inputs captured on one day."""

    mce_capacity: int
    wma_machines: int
    puc_machines: int
    arcp_capacity: float
    experts: int
    rookies: int
    avg_daily_demand: float
    demand_phase: int


@dataclass(frozen=True)
class PolicyChange:
    """One audit log entry."""

    day: int
    policy_name: str
    old_value: float
    new_value: float
    reason: str
    trigger: PolicyChangeTrigger
    formula_inputs: tuple[tuple[str, float], ...]

    @property
    def inputs(self) -> dict[str, float]:
        return dict(self.formula_inputs)


@dataclass
class StationCapacity:
    """Capacity and load of a single station."""

    station: str
    capacity: float
    utilization: float


@dataclass
class BottleneckAnalysis:
    """Result of a bottleneck scan."""

    bottleneck: str
    capacity: float
    demand: float
    utilization: float
    constrained: bool
    stations: list[StationCapacity]


class DynamicPolicyCalculator:
    """Recomputes EOQ, ROP, and EPQ when their inputs change.

    Usage:
        calculator = DynamicPolicyCalculator()
        changes = calculator.recalculate_policies(state, strategy)
        # strategy.order_quantity etc. are updated in place
        calculator.change_log  # immutable audit trail
    """

    def __init__(self, config: Optional[FactoryConfig] = None):
        self.config = config or get_default_config()
        self.demand = DemandModule(self.config)
        self.workforce = WorkforceModule(self.config)
        self._previous: Optional[InputSnapshot] = None
        self._log: list[PolicyChange] = []

    @property
    def change_log(self) -> tuple[PolicyChange, ...]:
        return tuple(self._log)

    def clear_history(self) -> None:
        """Forget the audit log and the previous snapshot."""
        self._log = []
        self._previous = None

    # -------------------------------------------------------------------------
    # Snapshots and change detection
    # -------------------------------------------------------------------------

    def _arcp_capacity(self, state: SimulationState, strategy: Strategy) -> float:
        wf = self.config.workforce
        base = self.workforce.effective_workers(state.workforce.experts, state.workforce.rookies)
        base *= wf.expert_productivity
        if strategy.daily_overtime_hours > 0:
            base *= 1 + strategy.daily_overtime_hours / wf.regular_hours_per_day
        return base

    def capture_snapshot(self, state: SimulationState, strategy: Strategy) -> InputSnapshot:
        day = state.current_day
        return InputSnapshot(
            mce_capacity=state.machines.mce * self.config.production.mce_units_per_machine,
            wma_machines=state.machines.wma,
            puc_machines=state.machines.puc,
            arcp_capacity=self._arcp_capacity(state, strategy),
            experts=state.workforce.experts,
            rookies=state.workforce.rookies,
            avg_daily_demand=self.demand.estimate_average_demand(day, strategy),
            demand_phase=self.demand.demand_phase(day),
        )

    def detect_changes(self, previous: InputSnapshot, current: InputSnapshot) -> list[ChangeType]:
        """Classify differences between two snapshots."""
        changes: list[ChangeType] = []
        if (
            previous.mce_capacity != current.mce_capacity
            or previous.wma_machines != current.wma_machines
            or previous.puc_machines != current.puc_machines
        ):
            changes.append(ChangeType.PRODUCTION_RATE)
        if (
            previous.experts != current.experts
            or previous.rookies != current.rookies
            or previous.arcp_capacity != current.arcp_capacity
        ):
            changes.append(ChangeType.WORKFORCE)
        if previous.demand_phase != current.demand_phase:
            changes.append(ChangeType.DEMAND_PHASE)
        threshold = self.config.policy.demand_change_threshold
        if previous.avg_daily_demand > 0:
            relative = abs(current.avg_daily_demand - previous.avg_daily_demand) / previous.avg_daily_demand
            if relative > threshold:
                changes.append(ChangeType.DEMAND)
        elif current.avg_daily_demand > 0:
            changes.append(ChangeType.DEMAND)
        return changes

    @staticmethod
    def infer_trigger(
        changes: list[ChangeType],
        previous: InputSnapshot,
        current: InputSnapshot,
    ) -> PolicyChangeTrigger:
        """Name the business event behind a set of changes."""
        if ChangeType.PRODUCTION_RATE in changes:
            before = previous.mce_capacity + previous.wma_machines + previous.puc_machines
            after = current.mce_capacity + current.wma_machines + current.puc_machines
            return PolicyChangeTrigger.MACHINE_PURCHASED if after > before else PolicyChangeTrigger.MACHINE_SOLD
        if ChangeType.WORKFORCE in changes:
            before = previous.experts + previous.rookies
            after = current.experts + current.rookies
            return PolicyChangeTrigger.EMPLOYEE_QUIT if after < before else PolicyChangeTrigger.EMPLOYEE_HIRED
        if ChangeType.DEMAND_PHASE in changes:
            return PolicyChangeTrigger.DEMAND_PHASE_CHANGE
        return PolicyChangeTrigger.MANUAL_RECALC

    # -------------------------------------------------------------------------
    # Formulas
    # -------------------------------------------------------------------------

    def eoq_inputs(self, snapshot: InputSnapshot) -> dict[str, float]:
        materials = self.config.materials
        return {
            "annual_demand": snapshot.avg_daily_demand * materials.per_standard_unit * 365,
            "ordering_cost": materials.order_fee,
            "holding_cost": materials.holding_cost_per_unit,
        }

    def rop_inputs(self, snapshot: InputSnapshot, demand_std: float) -> dict[str, float]:
        materials = self.config.materials
        return {
            "avg_daily_demand": snapshot.avg_daily_demand * materials.per_standard_unit,
            "lead_time_days": materials.lead_time_days,
            "service_level": self.config.policy.service_level,
            "demand_std_dev": demand_std * materials.per_standard_unit,
        }

    def epq_inputs(self, state: SimulationState, strategy: Strategy, snapshot: InputSnapshot) -> dict[str, float]:
        materials = self.config.materials
        bottleneck = self.identify_bottleneck(state, strategy)
        return {
            "annual_demand": snapshot.avg_daily_demand * 365,
            "setup_cost": self.config.production.standard_order_fee,
            "holding_cost": materials.per_standard_unit * materials.holding_cost_per_unit,
            "production_rate": bottleneck.capacity,
            "demand_rate": snapshot.avg_daily_demand,
        }

    def optimal_order_quantity(self, snapshot: InputSnapshot) -> int:
        i = self.eoq_inputs(snapshot)
        return round(calculate_eoq(i["annual_demand"], i["ordering_cost"], i["holding_cost"]))

    def optimal_reorder_point(self, snapshot: InputSnapshot, demand_std: float) -> int:
        i = self.rop_inputs(snapshot, demand_std)
        return round(
            calculate_rop(i["avg_daily_demand"], i["lead_time_days"], i["service_level"], i["demand_std_dev"])
        )

    def optimal_batch_size(self, inputs: dict[str, float]) -> int:
        """EPQ, or the whole daily production rate when it cannot outpace demand."""
        p = inputs["production_rate"]
        d = inputs["demand_rate"]
        if p <= d:
            return max(1, int(math.floor(p)))
        return max(
            1,
            round(calculate_epq(inputs["annual_demand"], inputs["setup_cost"], inputs["holding_cost"], p, d)),
        )

    # -------------------------------------------------------------------------
    # Recalculation
    # -------------------------------------------------------------------------

    def _record(
        self,
        day: int,
        name: str,
        old: float,
        new: float,
        reason: str,
        trigger: PolicyChangeTrigger,
        inputs: dict[str, float],
    ) -> PolicyChange:
        change = PolicyChange(
            day=day,
            policy_name=name,
            old_value=old,
            new_value=new,
            reason=reason,
            trigger=trigger,
            formula_inputs=tuple(sorted(inputs.items())),
        )
        self._log.append(change)
        logger.debug("Day %d: %s %s -> %s (%s)", day, name, old, new, trigger.value)
        return change

    def calculate_initial_policies(self, state: SimulationState, strategy: Strategy) -> dict[str, int]:
        """Compute starting EOQ/ROP/EPQ, log them, and remember the snapshot.

        The strategy is not modified.
        """
        snapshot = self.capture_snapshot(state, strategy)
        demand_std = self.demand.estimate_demand_std(state.current_day, strategy)
        epq_inputs = self.epq_inputs(state, strategy, snapshot)
        policies = {
            "order_quantity": self.optimal_order_quantity(snapshot),
            "reorder_point": self.optimal_reorder_point(snapshot, demand_std),
            "standard_batch_size": self.optimal_batch_size(epq_inputs),
        }
        trigger = PolicyChangeTrigger.INITIAL_CALCULATION
        day = state.current_day
        self._record(day, "order_quantity", 0, policies["order_quantity"], "EOQ formula", trigger,
                     self.eoq_inputs(snapshot))
        self._record(day, "reorder_point", 0, policies["reorder_point"], "ROP with safety stock", trigger,
                     self.rop_inputs(snapshot, demand_std))
        self._record(day, "standard_batch_size", 0, policies["standard_batch_size"], "EPQ formula", trigger,
                     epq_inputs)
        self._previous = snapshot
        return policies

    def recalculate_policies(
        self,
        state: SimulationState,
        strategy: Strategy,
        trigger: Optional[PolicyChangeTrigger] = None,
    ) -> list[PolicyChange]:
        """Update the strategy's EOQ/ROP/EPQ fields if their inputs changed.

        The first call only records the snapshot.

        Args:
            state: Current state
            strategy: Working strategy, updated in place
            trigger: Event to record (inferred from the changes if None)

        Returns:
            Changes applied on this call
        """
        current = self.capture_snapshot(state, strategy)
        if self._previous is None:
            self._previous = current
            return []

        changes = self.detect_changes(self._previous, current)
        if not changes:
            return []

        if trigger is None:
            trigger = self.infer_trigger(changes, self._previous, current)

        policy = self.config.policy
        day = state.current_day
        applied: list[PolicyChange] = []
        demand_changed = ChangeType.DEMAND in changes or ChangeType.DEMAND_PHASE in changes

        if demand_changed:
            new_eoq = max(1, self.optimal_order_quantity(current))
            if abs(new_eoq - strategy.order_quantity) > policy.eoq_min_delta:
                applied.append(self._record(
                    day, "order_quantity", strategy.order_quantity, new_eoq,
                    "EOQ recalculation after demand change", trigger, self.eoq_inputs(current),
                ))
                strategy.order_quantity = new_eoq

            demand_std = self.demand.estimate_demand_std(day, strategy)
            new_rop = max(0, self.optimal_reorder_point(current, demand_std))
            if abs(new_rop - strategy.reorder_point) > policy.rop_min_delta:
                applied.append(self._record(
                    day, "reorder_point", strategy.reorder_point, new_rop,
                    "ROP recalculation after demand change", trigger, self.rop_inputs(current, demand_std),
                ))
                strategy.reorder_point = new_rop

        epq_inputs = self.epq_inputs(state, strategy, current)
        new_epq = self.optimal_batch_size(epq_inputs)
        if abs(new_epq - strategy.standard_batch_size) > policy.epq_min_delta:
            applied.append(self._record(
                day, "standard_batch_size", strategy.standard_batch_size, new_epq,
                "EPQ recalculation after capacity or demand change", trigger, epq_inputs,
            ))
            strategy.standard_batch_size = new_epq

        self._previous = current
        return applied

    # -------------------------------------------------------------------------
    # Bottleneck analysis
    # -------------------------------------------------------------------------

    def identify_bottleneck(self, state: SimulationState, strategy: Strategy) -> BottleneckAnalysis:
        """Find the station with the smallest daily capacity.

        Pure function of the state and strategy: repeated calls on an
        unchanged state return equal results.
        """
        prod = self.config.production
        demand = self.demand.estimate_average_demand(state.current_day, strategy)
        capacities = [
            ("MCE", float(state.machines.mce * prod.mce_units_per_machine)),
            ("ARCP", self._arcp_capacity(state, strategy)),
            ("WMA", float(state.machines.wma * prod.wma_orders_per_machine)),
            ("PUC", float(state.machines.puc * prod.puc_orders_per_machine)),
        ]

        def utilization(capacity: float) -> float:
            if capacity > 0:
                return demand / capacity
            return math.inf if demand > 0 else 0.0

        stations = [StationCapacity(name, cap, utilization(cap)) for name, cap in capacities]
        limiting = min(stations, key=lambda s: s.capacity)
        return BottleneckAnalysis(
            bottleneck=limiting.station,
            capacity=limiting.capacity,
            demand=demand,
            utilization=limiting.utilization,
            constrained=limiting.utilization > self.config.policy.bottleneck_utilization_flag,
            stations=stations,
        )
