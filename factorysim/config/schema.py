"""
Configuration schema for the factory simulation.

Provides Pydantic models for configuration validation and type safety.
Every default mirrors a constant in ``factorysim.config.defaults``.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from factorysim.config import defaults as d

MACHINE_TYPES = ("MCE", "WMA", "PUC")


class CalendarConfig(BaseModel):
    """Simulation calendar and demand phase boundaries."""

    start_day: int = Field(
        default=d.SIMULATION_START_DAY,
        ge=0,
        description="First simulated day",
    )
    end_day: int = Field(
        default=d.SIMULATION_END_DAY,
        ge=1,
        description="Shutdown day (last simulated day)",
    )
    phase1_end_day: int = Field(
        default=d.PHASE1_END_DAY,
        ge=0,
        description="Last day of demand phase 1 (stable low demand)",
    )
    phase2_end_day: int = Field(
        default=d.PHASE2_END_DAY,
        ge=0,
        description="Last day of demand phase 2 (ramp up)",
    )
    phase3_end_day: int = Field(
        default=d.PHASE3_END_DAY,
        ge=0,
        description="Last day of demand phase 3 (stable high demand)",
    )
    runoff_days: int = Field(
        default=d.RUNOFF_DAYS,
        ge=1,
        description="Days over which phase 4 demand decays to zero",
    )


class WorkforceConfig(BaseModel):
    """Salaries, training, and ARCP labor productivity."""

    rookie_salary_per_day: float = Field(default=d.ROOKIE_SALARY_PER_DAY, ge=0.0)
    expert_salary_per_day: float = Field(default=d.EXPERT_SALARY_PER_DAY, ge=0.0)
    overtime_multiplier: float = Field(
        default=d.OVERTIME_MULTIPLIER,
        ge=1.0,
        description="Pay multiplier applied to overtime hours",
    )
    regular_hours_per_day: float = Field(default=d.REGULAR_HOURS_PER_DAY, gt=0.0)
    rookie_training_days: int = Field(
        default=d.ROOKIE_TRAINING_DAYS,
        ge=0,
        description="Days before a hired rookie is promoted to expert",
    )
    expert_productivity: float = Field(
        default=d.ARCP_EXPERT_PRODUCTIVITY,
        ge=0.0,
        description="ARCP units per expert per regular day",
    )
    rookie_productivity_factor: float = Field(
        default=d.ROOKIE_PRODUCTIVITY_FACTOR,
        ge=0.0,
        le=1.0,
        description="Rookie productivity as a fraction of an expert",
    )


class FinanceConfig(BaseModel):
    """Interest rates and loan commissions."""

    daily_debt_interest_rate: float = Field(default=d.DAILY_DEBT_INTEREST_RATE, ge=0.0)
    daily_cash_interest_rate: float = Field(default=d.DAILY_CASH_INTEREST_RATE, ge=0.0)
    normal_loan_commission: float = Field(
        default=d.NORMAL_LOAN_COMMISSION,
        ge=0.0,
        description="Commission on planned and non-wage automatic loans",
    )
    salary_loan_commission: float = Field(
        default=d.SALARY_LOAN_COMMISSION,
        ge=0.0,
        description="Commission on loans forced by unpaid wages",
    )


class MaterialsConfig(BaseModel):
    """Raw material purchasing and consumption."""

    unit_cost: float = Field(default=d.RAW_MATERIAL_UNIT_COST, ge=0.0)
    order_fee: float = Field(default=d.RAW_MATERIAL_ORDER_FEE, ge=0.0)
    lead_time_days: int = Field(default=d.RAW_MATERIAL_LEAD_TIME, ge=0)
    holding_rate: float = Field(
        default=d.RAW_MATERIAL_HOLDING_RATE,
        ge=0.0,
        description="Annual holding cost as a fraction of unit cost",
    )
    per_standard_unit: int = Field(default=d.STANDARD_RAW_MATERIAL_PER_UNIT, ge=0)
    per_custom_order: int = Field(default=d.CUSTOM_RAW_MATERIAL_PER_UNIT, ge=0)

    @property
    def holding_cost_per_unit(self) -> float:
        """Annual holding cost of one raw material unit."""
        return self.unit_cost * self.holding_rate


class ProductionConfig(BaseModel):
    """Station capacities, dwell times, and the custom admission limit."""

    mce_units_per_machine: int = Field(default=d.MCE_UNITS_PER_MACHINE_PER_DAY, ge=0)
    wma_orders_per_machine: int = Field(default=d.WMA_ORDERS_PER_MACHINE_PER_DAY, ge=0)
    puc_orders_per_machine: int = Field(default=d.PUC_ORDERS_PER_MACHINE_PER_DAY, ge=0)
    standard_order_fee: float = Field(
        default=d.STANDARD_PRODUCTION_ORDER_FEE,
        ge=0.0,
        description="Setup fee charged each time a standard batch is released",
    )
    standard_mce_dwell_days: int = Field(default=d.STANDARD_MCE_DWELL_DAYS, ge=1)
    standard_wma_dwell_days: int = Field(default=d.STANDARD_WMA_DWELL_DAYS, ge=1)
    standard_puc_dwell_days: int = Field(default=d.STANDARD_PUC_DWELL_DAYS, ge=1)
    custom_max_wip: int = Field(
        default=d.CUSTOM_MAX_WIP,
        ge=1,
        description="Hard admission ceiling for custom orders in process",
    )
    custom_station_dwell_days: int = Field(default=d.CUSTOM_STATION_DWELL_DAYS, ge=0)
    late_delivery_threshold_days: int = Field(default=d.LATE_DELIVERY_THRESHOLD_DAYS, ge=0)


class MachinesConfig(BaseModel):
    """Machine purchase and salvage prices."""

    buy_prices: dict[str, float] = Field(default_factory=lambda: dict(d.MACHINE_BUY_PRICES))
    sell_prices: dict[str, float] = Field(default_factory=lambda: dict(d.MACHINE_SELL_PRICES))

    @field_validator("buy_prices", "sell_prices")
    @classmethod
    def validate_machine_types(cls, v: dict[str, float]) -> dict[str, float]:
        """Ensure every machine type has a price."""
        missing = [m for m in MACHINE_TYPES if m not in v]
        if missing:
            raise ValueError(f"Missing machine prices for: {', '.join(missing)}")
        return v


class MarketConfig(BaseModel):
    """Market reference prices."""

    standard_market_price: float = Field(default=d.STANDARD_MARKET_PRICE, gt=0.0)
    pricing_lookback_days: int = Field(
        default=d.PRICING_LOOKBACK_DAYS,
        ge=1,
        description="Trailing days used for the average custom delivery time",
    )


class PolicyCalculatorConfig(BaseModel):
    """Dynamic EOQ/ROP/EPQ recalculation thresholds."""

    eoq_min_delta: float = Field(default=d.EOQ_MIN_DELTA, ge=0.0)
    rop_min_delta: float = Field(default=d.ROP_MIN_DELTA, ge=0.0)
    epq_min_delta: float = Field(default=d.EPQ_MIN_DELTA, ge=0.0)
    demand_change_threshold: float = Field(
        default=d.DEMAND_CHANGE_THRESHOLD,
        ge=0.0,
        description="Relative demand change that counts as a DEMAND change",
    )
    service_level: float = Field(default=0.95, gt=0.0, lt=1.0)
    bottleneck_utilization_flag: float = Field(default=d.BOTTLENECK_UTILIZATION_FLAG, gt=0.0)


class ObjectiveConfig(BaseModel):
    """Weights of the scalar objective."""

    revenue_weight: float = Field(default=d.REVENUE_WEIGHT, ge=0.0)
    service_level_weight: float = Field(default=d.SERVICE_LEVEL_WEIGHT, ge=0.0)
    zero_machine_penalty: float = Field(default=d.ZERO_MACHINE_PENALTY, ge=0.0)
    bankruptcy_penalty: float = Field(default=d.BANKRUPTCY_PENALTY, ge=0.0)
    bankruptcy_cash_threshold: float = Field(default=d.BANKRUPTCY_CASH_THRESHOLD)
    queue_overflow_penalty: float = Field(default=d.QUEUE_OVERFLOW_PENALTY, ge=0.0)
    late_delivery_penalty: float = Field(default=d.LATE_DELIVERY_PENALTY, ge=0.0)
    stockout_day_penalty: float = Field(default=d.STOCKOUT_DAY_PENALTY, ge=0.0)
    terminal_asset_window_days: int = Field(default=d.TERMINAL_ASSET_WINDOW_DAYS, ge=0)
    terminal_asset_penalty_rate: float = Field(
        default=d.TERMINAL_ASSET_PENALTY_RATE,
        ge=0.0,
        le=1.0,
        description="Fraction of unliquidated asset book value subtracted near shutdown",
    )


class SimulationConfig(BaseModel):
    """Core simulation parameters."""

    random_seed: int | None = Field(
        default=None,
        description="Random seed for reproducible demand draws (None = random)",
    )


class FactoryConfig(BaseModel):
    """Complete factory simulation configuration.

    This is the top-level configuration object that contains all
    simulation parameters.
    """

    calendar: CalendarConfig = Field(default_factory=CalendarConfig)
    workforce: WorkforceConfig = Field(default_factory=WorkforceConfig)
    finance: FinanceConfig = Field(default_factory=FinanceConfig)
    materials: MaterialsConfig = Field(default_factory=MaterialsConfig)
    production: ProductionConfig = Field(default_factory=ProductionConfig)
    machines: MachinesConfig = Field(default_factory=MachinesConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    policy: PolicyCalculatorConfig = Field(default_factory=PolicyCalculatorConfig)
    objective: ObjectiveConfig = Field(default_factory=ObjectiveConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FactoryConfig":
        """Create configuration from a dictionary.

        Args:
            data: Configuration dictionary (can be partial)

        Returns:
            FactoryConfig with defaults for any missing values
        """
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str | Path) -> "FactoryConfig":
        """Load configuration from a JSON or YAML file.

        Args:
            path: Path to configuration file (.json or .yaml/.yml)

        Returns:
            Parsed configuration

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is not supported
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix == ".json":
            import json

            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        elif suffix in (".yaml", ".yml"):
            import yaml

            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        else:
            raise ValueError(
                f"Unsupported config file format: {suffix}. "
                "Use .json or .yaml/.yml"
            )

        return cls.from_dict(data or {})

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a dictionary."""
        return self.model_dump()

    def to_file(self, path: str | Path) -> None:
        """Save configuration to a JSON or YAML file.

        Args:
            path: Path to save configuration to

        Raises:
            ValueError: If file format is not supported
        """
        path = Path(path)
        suffix = path.suffix.lower()
        data = self.to_dict()

        if suffix == ".json":
            import json

            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        elif suffix in (".yaml", ".yml"):
            import yaml

            with open(path, "w", encoding="utf-8") as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            raise ValueError(
                f"Unsupported config file format: {suffix}. "
                "Use .json or .yaml/.yml"
            )

    def merge(self, overrides: dict[str, Any]) -> "FactoryConfig":
        """Create a new config with overrides applied.

        Args:
            overrides: Dictionary of values to override

        Returns:
            New FactoryConfig with overrides merged in
        """
        base = self.to_dict()
        _deep_merge(base, overrides)
        return FactoryConfig.from_dict(base)


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> None:
    """Deep merge overrides into base dict (in place).

    Args:
        base: Base dictionary to merge into
        overrides: Values to merge in
    """
    for key, value in overrides.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def get_default_config() -> FactoryConfig:
    """Get the default configuration.

    Returns:
        FactoryConfig with all default values
    """
    return FactoryConfig()
