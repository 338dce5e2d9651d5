"""
Simulation state model.

The state is owned by exactly one simulation run. The engine mutates it
in place once per simulated day and appends one value per metric to its
history. Anything that needs an independent copy (projections, parallel
evaluations) must go through ``SimulationState.clone``.
"""

import random
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from factorysim.config.schema import MACHINE_TYPES, FactoryConfig, get_default_config


class Station(str, Enum):
    """Stations a custom order passes through, in route order."""

    WAITING = "WAITING"
    MCE = "MCE"
    WMA_PASS1 = "WMA_PASS1"
    WMA_PASS2 = "WMA_PASS2"
    PUC = "PUC"
    ARCP = "ARCP"
    COMPLETE = "COMPLETE"


CUSTOM_ROUTE: tuple[Station, ...] = (
    Station.WAITING,
    Station.MCE,
    Station.WMA_PASS1,
    Station.WMA_PASS2,
    Station.PUC,
    Station.ARCP,
    Station.COMPLETE,
)


def next_station(station: Station) -> Station:
    """Return the station that follows ``station`` on the custom route."""
    index = CUSTOM_ROUTE.index(station)
    if index == len(CUSTOM_ROUTE) - 1:
        raise ValueError("COMPLETE is the final station")
    return CUSTOM_ROUTE[index + 1]


class StandardBatch(BaseModel):
    """A group of standard units moving through the line together."""

    units: int = Field(ge=0)
    days_remaining: int = Field(default=0, ge=0, description="Dwell days left at the current stage")
    start_day: int = Field(default=0, description="Day the batch was released")


class StandardLineWIP(BaseModel):
    """Standard-line WIP split across ordered pipeline stages."""

    pre_station1: list[StandardBatch] = Field(default_factory=list, description="Released, waiting for MCE")
    station1: list[StandardBatch] = Field(default_factory=list, description="MCE")
    station2: list[StandardBatch] = Field(default_factory=list, description="WMA (multi-day dwell)")
    station3: list[StandardBatch] = Field(default_factory=list, description="PUC")
    arcp_queue: int = Field(default=0, ge=0, description="Units waiting for ARCP labor")

    @staticmethod
    def _units(batches: list[StandardBatch]) -> int:
        return sum(b.units for b in batches)

    @property
    def pre_station1_units(self) -> int:
        return self._units(self.pre_station1)

    def total_units(self) -> int:
        """Units anywhere on the standard line (not yet finished)."""
        return (
            self._units(self.pre_station1)
            + self._units(self.station1)
            + self._units(self.station2)
            + self._units(self.station3)
            + self.arcp_queue
        )


class CustomOrder(BaseModel):
    """A single custom order and its position on the route."""

    order_id: int
    arrival_day: int
    station: Station = Station.WAITING
    days_at_station: int = Field(default=0, ge=0)
    days_in_production: int = Field(default=0, ge=0)


class TrainingRookie(BaseModel):
    """A rookie still in training."""

    hire_day: int
    days_remaining: int = Field(ge=0)


class Workforce(BaseModel):
    """ARCP workforce.

    ``rookies`` counts every rookie on payroll; ``rookies_in_training``
    tracks the remaining training time of each of them.
    """

    experts: int = Field(default=1, ge=0)
    rookies: int = Field(default=0, ge=0)
    rookies_in_training: list[TrainingRookie] = Field(default_factory=list)


class Machines(BaseModel):
    """Machine counts per station type."""

    mce: int = Field(default=1, ge=0)
    wma: int = Field(default=1, ge=0)
    puc: int = Field(default=1, ge=0)

    def get(self, machine_type: str) -> int:
        """Return the count for ``machine_type`` (MCE, WMA or PUC)."""
        return getattr(self, machine_type.lower())

    def set(self, machine_type: str, count: int) -> None:
        """Set the count for ``machine_type``."""
        setattr(self, machine_type.lower(), count)

    def as_dict(self) -> dict[str, int]:
        return {m: self.get(m) for m in MACHINE_TYPES}


class PendingOrder(BaseModel):
    """A raw material order in transit."""

    order_day: int
    quantity: int = Field(ge=0)
    arrival_day: int
    cost: float = Field(ge=0.0)


class FinishedGoods(BaseModel):
    """Finished units awaiting same-day sale."""

    standard: int = Field(default=0, ge=0)
    custom: int = Field(default=0, ge=0)


class History(BaseModel):
    """Append-only per-metric time series, one entry per simulated day."""

    days: list[int] = Field(default_factory=list)
    cash: list[float] = Field(default_factory=list)
    debt: list[float] = Field(default_factory=list)
    net_worth: list[float] = Field(default_factory=list)
    raw_material: list[int] = Field(default_factory=list)
    custom_wip: list[int] = Field(default_factory=list)
    standard_wip: list[int] = Field(default_factory=list)
    standard_production: list[int] = Field(default_factory=list)
    custom_production: list[int] = Field(default_factory=list)
    custom_delivery_time: list[float] = Field(default_factory=list)
    standard_price: list[float] = Field(default_factory=list)
    custom_price: list[float] = Field(default_factory=list)
    revenue: list[float] = Field(default_factory=list)
    experts: list[int] = Field(default_factory=list)
    rookies: list[int] = Field(default_factory=list)
    mce_allocation: list[float] = Field(default_factory=list)
    arcp_capacity: list[int] = Field(default_factory=list)

    def record(self, **metrics: float) -> None:
        """Append one value to each named series.

        Raises:
            KeyError: If a metric name is not a history series
        """
        for name, value in metrics.items():
            if name not in History.model_fields:
                raise KeyError(f"Unknown history metric: {name}")
            getattr(self, name).append(value)

    def __len__(self) -> int:
        return len(self.days)


class SimulationState(BaseModel):
    """Complete mutable state of one simulation run."""

    current_day: int = Field(default=50)
    cash: float = 0.0
    debt: float = 0.0
    raw_material_inventory: int = Field(default=0, ge=0)

    standard_wip: StandardLineWIP = Field(default_factory=StandardLineWIP)
    custom_wip: list[CustomOrder] = Field(default_factory=list)
    finished_goods: FinishedGoods = Field(default_factory=FinishedGoods)
    workforce: Workforce = Field(default_factory=Workforce)
    machines: Machines = Field(default_factory=Machines)
    pending_orders: list[PendingOrder] = Field(default_factory=list)

    material_orders_stopped: bool = False
    consecutive_overtime_days: int = 0
    next_custom_order_id: int = 1

    # Cumulative counters
    rejected_custom_orders: int = 0
    rejected_material_orders: int = 0
    stockout_days: int = 0
    custom_deliveries: int = 0
    late_custom_deliveries: int = 0
    total_revenue: float = 0.0
    total_interest_paid: float = 0.0
    total_commission_paid: float = 0.0
    raw_material_consumed: int = 0
    standard_units_completed: int = 0
    custom_orders_completed: int = 0
    debt_threshold_breach_days: int = 0

    history: History = Field(default_factory=History)

    def clone(self) -> "SimulationState":
        """Return an independent deep copy of this state."""
        return self.model_copy(deep=True)

    @property
    def net_worth(self) -> float:
        return self.cash - self.debt

    @property
    def custom_wip_count(self) -> int:
        return len(self.custom_wip)

    def orders_at(self, station: Station) -> list[CustomOrder]:
        """Custom orders currently at ``station``, oldest arrival first."""
        return sorted(
            (o for o in self.custom_wip if o.station == station),
            key=lambda o: (o.arrival_day, o.order_id),
        )

    def embedded_material(self, config: Optional[FactoryConfig] = None) -> int:
        """Raw material already built into current WIP and finished goods."""
        config = config or get_default_config()
        standard_units = self.standard_wip.total_units() + self.finished_goods.standard
        started_custom = sum(1 for o in self.custom_wip if o.station != Station.WAITING)
        return (
            standard_units * config.materials.per_standard_unit
            + (started_custom + self.finished_goods.custom) * config.materials.per_custom_order
        )

    def add_custom_order(self, arrival_day: int, station: Station = Station.WAITING,
                         days_at_station: int = 0, days_in_production: int = 0) -> CustomOrder:
        """Append a new custom order with the next free id."""
        order = CustomOrder(
            order_id=self.next_custom_order_id,
            arrival_day=arrival_day,
            station=station,
            days_at_station=days_at_station,
            days_in_production=days_in_production,
        )
        self.next_custom_order_id += 1
        self.custom_wip.append(order)
        return order


# =============================================================================
# Initial state factories
# =============================================================================


def create_historical_state(config: Optional[FactoryConfig] = None) -> SimulationState:
    """Create the day-50 snapshot of the plant as observed in the case data.

    Args:
        config: Simulation configuration (uses defaults if None)

    Returns:
        A fresh SimulationState positioned just before the first simulated day
    """
    config = config or get_default_config()
    start = config.calendar.start_day - 1

    state = SimulationState(
        current_day=start,
        cash=383919.70,
        debt=0.0,
        raw_material_inventory=164,
        workforce=Workforce(experts=1, rookies=0),
        machines=Machines(mce=1, wma=2, puc=2),
    )

    standard_total = 414
    third = standard_total // 3
    state.standard_wip = StandardLineWIP(
        station1=[StandardBatch(units=third, days_remaining=0, start_day=start)],
        station2=[StandardBatch(units=third, days_remaining=2, start_day=start - 2)],
        station3=[StandardBatch(units=standard_total - 2 * third, days_remaining=0, start_day=start - 3)],
    )

    for i in range(264):
        age = i // 30
        state.add_custom_order(start - age, Station.WAITING, days_at_station=age)
    for _ in range(12):
        state.add_custom_order(start - 2, Station.WMA_PASS1, days_at_station=1, days_in_production=2)
    for _ in range(12):
        state.add_custom_order(start - 3, Station.WMA_PASS2, days_at_station=1, days_in_production=3)
    for _ in range(12):
        state.add_custom_order(start - 4, Station.PUC, days_at_station=1, days_in_production=4)

    state.raw_material_consumed = state.embedded_material(config)
    return state


def create_business_case_state(
    seed: Optional[int] = None,
    config: Optional[FactoryConfig] = None,
) -> SimulationState:
    """Create the indebted starting position used by the business case.

    Custom orders are spread randomly across stations, so the seed makes
    the starting state reproducible.

    Args:
        seed: Random seed for order placement
        config: Simulation configuration (uses defaults if None)

    Returns:
        A fresh SimulationState positioned just before the first simulated day
    """
    config = config or get_default_config()
    rng = random.Random(seed)
    start = config.calendar.start_day - 1

    state = SimulationState(
        current_day=start,
        cash=8206.12,
        debt=70000.0,
        raw_material_inventory=0,
        workforce=Workforce(experts=1, rookies=0),
        machines=Machines(mce=1, wma=1, puc=1),
    )
    state.standard_wip = StandardLineWIP(
        station1=[StandardBatch(units=40, days_remaining=0, start_day=start)],
        station2=[StandardBatch(units=40, days_remaining=2, start_day=start - 2)],
        station3=[StandardBatch(units=40, days_remaining=0, start_day=start - 3)],
    )

    placeable = CUSTOM_ROUTE[:-1]
    for _ in range(295):
        station = rng.choice(placeable)
        depth = CUSTOM_ROUTE.index(station)
        state.add_custom_order(
            start - depth,
            station,
            days_at_station=1,
            days_in_production=depth,
        )

    state.raw_material_consumed = state.embedded_material(config)
    return state
