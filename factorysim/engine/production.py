"""
Production flow for the standard and custom lines.

This module handles:
- Splitting MCE capacity between the two lines
- Standard line batch release and stage-by-stage advancement
- Custom order admission control and station-by-station advancement
- Sharing ARCP labor between the lines (standard first, custom gets the rest)

Both lines are processed downstream first, so a unit or order moves at
most one stage per day. Shortages of material, machine capacity, or labor
cap what is processed; they never raise.

Standard line:
    pre_station1 -> station1 (MCE) -> station2 (WMA) -> station3 (PUC)
    -> ARCP queue -> finished goods

Custom line:
    WAITING -> MCE -> WMA_PASS1 -> WMA_PASS2 -> PUC -> ARCP -> COMPLETE
"""

import math
from dataclasses import dataclass, field
from typing import Optional

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.engine.finance import FinanceModule
from factorysim.engine.inventory import InventoryModule
from factorysim.engine.workforce import WorkforceModule
from factorysim.models.state import (
    CustomOrder,
    SimulationState,
    StandardBatch,
    Station,
    next_station,
)
from factorysim.models.strategy import Strategy


@dataclass
class MceAllocation:
    """Daily MCE capacity split between the lines."""

    total: int
    custom: int
    standard: int


def allocate_mce_capacity(total_capacity: int, custom_fraction: float) -> MceAllocation:
    """Split MCE capacity: custom gets the floored share, standard the remainder.

    With very small capacity the custom share can floor to zero
    (e.g. 1 unit at 0.30 gives custom 0, standard 1).

    Args:
        total_capacity: Units the MCE station can process today
        custom_fraction: Fraction allocated to the custom line (0-1)

    Returns:
        MceAllocation with custom + standard == total
    """
    total = max(0, int(total_capacity))
    fraction = min(1.0, max(0.0, custom_fraction))
    custom = min(total, int(math.floor(total * fraction + 1e-9)))
    return MceAllocation(total=total, custom=custom, standard=total - custom)


@dataclass
class StandardLineResult:
    """Standard line activity for one day."""

    released: int = 0
    started_mce: int = 0
    completed: int = 0
    labor_used: int = 0
    material_short: bool = False


@dataclass
class CustomLineResult:
    """Custom line activity for one day."""

    arrivals: int = 0
    admitted: int = 0
    rejected: int = 0
    started_mce: int = 0
    completed: int = 0
    labor_used: int = 0
    late: int = 0
    material_short: bool = False
    delivery_times: list[int] = field(default_factory=list)

    @property
    def average_delivery_time(self) -> float:
        if not self.delivery_times:
            return 0.0
        return sum(self.delivery_times) / len(self.delivery_times)


@dataclass
class ProductionResult:
    """Complete production outcome for one day."""

    allocation: MceAllocation
    arcp_capacity: int
    standard: StandardLineResult
    custom: CustomLineResult

    @property
    def stockout(self) -> bool:
        return self.standard.material_short or self.custom.material_short


class ProductionModule:
    """Advances both production lines by one day."""

    def __init__(
        self,
        config: Optional[FactoryConfig] = None,
        inventory: Optional[InventoryModule] = None,
        finance: Optional[FinanceModule] = None,
        workforce: Optional[WorkforceModule] = None,
    ):
        """Initialize production module.

        Args:
            config: Simulation configuration (uses defaults if None)
            inventory: Inventory module for material consumption
            finance: Finance module for batch release fees
            workforce: Workforce module for ARCP capacity
        """
        self.config = config or get_default_config()
        self.finance = finance or FinanceModule(self.config)
        self.inventory = inventory or InventoryModule(self.config, self.finance)
        self.workforce = workforce or WorkforceModule(self.config)

    # -------------------------------------------------------------------------
    # Capacities
    # -------------------------------------------------------------------------

    def mce_capacity(self, state: SimulationState) -> int:
        return state.machines.mce * self.config.production.mce_units_per_machine

    def wma_capacity(self, state: SimulationState) -> int:
        return state.machines.wma * self.config.production.wma_orders_per_machine

    def puc_capacity(self, state: SimulationState) -> int:
        return state.machines.puc * self.config.production.puc_orders_per_machine

    # -------------------------------------------------------------------------
    # Daily entry point
    # -------------------------------------------------------------------------

    def process_day(
        self,
        state: SimulationState,
        strategy: Strategy,
        custom_arrivals: int,
    ) -> ProductionResult:
        """Run both lines for the current day.

        Args:
            state: State to update
            strategy: Active strategy (allocation, batch size, overtime)
            custom_arrivals: New custom orders arriving today

        Returns:
            ProductionResult with per-line details
        """
        allocation = allocate_mce_capacity(self.mce_capacity(state), strategy.mce_allocation_custom)
        labor = self.workforce.arcp_capacity(
            state.workforce.experts,
            state.workforce.rookies,
            strategy.daily_overtime_hours,
        )

        standard = self.process_standard_line(state, strategy, allocation.standard, labor)
        custom = self.process_custom_line(
            state,
            custom_arrivals,
            allocation.custom,
            labor - standard.labor_used,
        )
        return ProductionResult(
            allocation=allocation,
            arcp_capacity=labor,
            standard=standard,
            custom=custom,
        )

    # -------------------------------------------------------------------------
    # Standard line
    # -------------------------------------------------------------------------

    @staticmethod
    def _pop_finished(batches: list[StandardBatch]) -> list[StandardBatch]:
        """Count down dwell time; remove and return batches whose dwell is over."""
        finished: list[StandardBatch] = []
        kept: list[StandardBatch] = []
        for batch in batches:
            batch.days_remaining = max(0, batch.days_remaining - 1)
            if batch.days_remaining == 0:
                finished.append(batch)
            else:
                kept.append(batch)
        batches[:] = kept
        return finished

    def process_standard_line(
        self,
        state: SimulationState,
        strategy: Strategy,
        mce_capacity: int,
        labor_capacity: int,
    ) -> StandardLineResult:
        """Advance the standard line by one day.

        Args:
            state: State to update
            strategy: Active strategy (batch size)
            mce_capacity: MCE units allocated to the standard line today
            labor_capacity: Total ARCP capacity today (standard has priority)

        Returns:
            StandardLineResult
        """
        prod = self.config.production
        wip = state.standard_wip
        result = StandardLineResult()

        # 1. ARCP: standard takes labor first
        completed = min(wip.arcp_queue, max(0, labor_capacity))
        wip.arcp_queue -= completed
        state.finished_goods.standard += completed
        state.standard_units_completed += completed
        result.completed = completed
        result.labor_used = completed

        # 2. PUC -> ARCP queue
        for batch in self._pop_finished(wip.station3):
            wip.arcp_queue += batch.units

        # 3. WMA -> PUC
        for batch in self._pop_finished(wip.station2):
            batch.days_remaining = prod.standard_puc_dwell_days
            wip.station3.append(batch)

        # 4. MCE -> WMA
        for batch in self._pop_finished(wip.station1):
            batch.days_remaining = prod.standard_wma_dwell_days
            wip.station2.append(batch)

        # 5. Release a new batch when the MCE queue cannot fill today's capacity
        if mce_capacity > 0 and wip.pre_station1_units < mce_capacity:
            released, short = self._release_batch(state, strategy.standard_batch_size)
            result.released = released
            result.material_short = short

        # 6. Feed MCE from the release queue, oldest first
        remaining = mce_capacity
        started = 0
        while remaining > 0 and wip.pre_station1:
            head = wip.pre_station1[0]
            take = min(head.units, remaining)
            head.units -= take
            if head.units == 0:
                wip.pre_station1.pop(0)
            wip.station1.append(
                StandardBatch(
                    units=take,
                    days_remaining=prod.standard_mce_dwell_days,
                    start_day=head.start_day,
                )
            )
            remaining -= take
            started += take
        result.started_mce = started

        return result

    def _release_batch(self, state: SimulationState, batch_size: int) -> tuple[int, bool]:
        """Release up to ``batch_size`` units, consuming material and paying the setup fee.

        Returns:
            Tuple of (units released, whether material ran short)
        """
        per_unit = self.config.materials.per_standard_unit
        if per_unit > 0:
            affordable = min(batch_size, state.raw_material_inventory // per_unit)
        else:
            affordable = batch_size
        short = affordable < batch_size

        if affordable <= 0:
            return 0, short

        self.inventory.consume(state, affordable * per_unit)
        self.finance.process_payment(state, self.config.production.standard_order_fee)
        state.standard_wip.pre_station1.append(
            StandardBatch(units=affordable, days_remaining=0, start_day=state.current_day)
        )
        return affordable, short

    # -------------------------------------------------------------------------
    # Custom line
    # -------------------------------------------------------------------------

    def _ready(self, state: SimulationState, station: Station) -> list[CustomOrder]:
        dwell = self.config.production.custom_station_dwell_days
        return [o for o in state.orders_at(station) if o.days_at_station >= dwell]

    @staticmethod
    def _advance(orders: list[CustomOrder], limit: int) -> int:
        moved = 0
        for order in orders[: max(0, limit)]:
            order.station = next_station(order.station)
            order.days_at_station = 0
            moved += 1
        return moved

    def admit_custom_orders(self, state: SimulationState, arrivals: int) -> tuple[int, int]:
        """Admit arrivals while WIP is below the ceiling; reject the rest.

        Returns:
            Tuple of (admitted, rejected)
        """
        space = max(0, self.config.production.custom_max_wip - state.custom_wip_count)
        admitted = min(max(0, arrivals), space)
        rejected = max(0, arrivals) - admitted
        for _ in range(admitted):
            state.add_custom_order(state.current_day)
        state.rejected_custom_orders += rejected
        return admitted, rejected

    def process_custom_line(
        self,
        state: SimulationState,
        arrivals: int,
        mce_capacity: int,
        labor_capacity: int,
    ) -> CustomLineResult:
        """Advance the custom line by one day.

        Args:
            state: State to update
            arrivals: New custom orders arriving today
            mce_capacity: MCE orders allocated to the custom line today
            labor_capacity: ARCP capacity left after the standard line

        Returns:
            CustomLineResult
        """
        prod = self.config.production
        result = CustomLineResult(arrivals=arrivals)

        # 1. Admission control
        result.admitted, result.rejected = self.admit_custom_orders(state, arrivals)

        # 2. ARCP -> COMPLETE with leftover labor
        finishing = self._ready(state, Station.ARCP)[: max(0, labor_capacity)]
        if finishing:
            done_ids = {o.order_id for o in finishing}
            for order in finishing:
                delivery = state.current_day - order.arrival_day
                result.delivery_times.append(delivery)
                if delivery > prod.late_delivery_threshold_days:
                    result.late += 1
            state.custom_wip = [o for o in state.custom_wip if o.order_id not in done_ids]
        result.completed = len(finishing)
        result.labor_used = len(finishing)
        state.finished_goods.custom += result.completed
        state.custom_orders_completed += result.completed
        state.custom_deliveries += result.completed
        state.late_custom_deliveries += result.late

        # 3. PUC -> ARCP (queue, no machine gate)
        ready = self._ready(state, Station.PUC)
        self._advance(ready, len(ready))

        # 4. WMA second pass -> PUC
        self._advance(self._ready(state, Station.WMA_PASS2), self.puc_capacity(state))

        # 5. Both WMA passes share WMA capacity, second pass first
        wma_left = self.wma_capacity(state)
        wma_left -= self._advance(self._ready(state, Station.WMA_PASS1), wma_left)
        self._advance(self._ready(state, Station.MCE), wma_left)

        # 6. WAITING -> MCE, limited by MCE share and material (1 unit per order)
        waiting = state.orders_at(Station.WAITING)
        wanted = min(len(waiting), max(0, mce_capacity))
        per_order = self.config.materials.per_custom_order
        if per_order > 0:
            startable = min(wanted, state.raw_material_inventory // per_order)
        else:
            startable = wanted
        result.material_short = startable < wanted
        if startable > 0:
            self.inventory.consume(state, startable * per_order)
            self._advance(waiting, startable)
        result.started_mce = startable

        # 7. Age every order by one day
        for order in state.custom_wip:
            order.days_at_station += 1
            if order.station != Station.WAITING:
                order.days_in_production += 1

        return result
