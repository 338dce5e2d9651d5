"""
Default parameter values for the factory simulation.

Values come from the Medica-style factory case the simulator reproduces:
a two-line plant (standard and custom products) sharing one upstream
machine station (MCE) and one downstream labor station (ARCP).

The pydantic schema in ``factorysim.config.schema`` uses these values as
its field defaults, so formula code and tests can import them directly.
"""

# =============================================================================
# CALENDAR
# =============================================================================

SIMULATION_START_DAY = 51
SIMULATION_END_DAY = 415

# Demand phase boundaries (last day of each phase)
PHASE1_END_DAY = 172
PHASE2_END_DAY = 218
PHASE3_END_DAY = 400
RUNOFF_DAYS = 100  # Phase 4 demand decays linearly to zero over this window

# =============================================================================
# WORKFORCE
# =============================================================================

ROOKIE_SALARY_PER_DAY = 85.0
EXPERT_SALARY_PER_DAY = 150.0
OVERTIME_MULTIPLIER = 1.5
REGULAR_HOURS_PER_DAY = 8.0
ROOKIE_TRAINING_DAYS = 15

# ARCP is the labor-bound final station
ARCP_EXPERT_PRODUCTIVITY = 3.0  # units per expert per day
ROOKIE_PRODUCTIVITY_FACTOR = 0.4  # rookies work at 40% of an expert

# =============================================================================
# FINANCE
# =============================================================================

DAILY_DEBT_INTEREST_RATE = 0.001
DAILY_CASH_INTEREST_RATE = 0.0005
NORMAL_LOAN_COMMISSION = 0.02
SALARY_LOAN_COMMISSION = 0.05

# =============================================================================
# RAW MATERIALS
# =============================================================================

RAW_MATERIAL_UNIT_COST = 50.0
RAW_MATERIAL_ORDER_FEE = 1000.0
RAW_MATERIAL_LEAD_TIME = 4
RAW_MATERIAL_HOLDING_RATE = 0.20  # annual holding cost as fraction of unit cost

STANDARD_RAW_MATERIAL_PER_UNIT = 2
CUSTOM_RAW_MATERIAL_PER_UNIT = 1

# =============================================================================
# PRODUCTION
# =============================================================================

MCE_UNITS_PER_MACHINE_PER_DAY = 30
WMA_ORDERS_PER_MACHINE_PER_DAY = 6
PUC_ORDERS_PER_MACHINE_PER_DAY = 6

STANDARD_PRODUCTION_ORDER_FEE = 100.0
STANDARD_MCE_DWELL_DAYS = 1
STANDARD_WMA_DWELL_DAYS = 4
STANDARD_PUC_DWELL_DAYS = 1

CUSTOM_MAX_WIP = 360
CUSTOM_STATION_DWELL_DAYS = 1
LATE_DELIVERY_THRESHOLD_DAYS = 7

# =============================================================================
# MACHINES
# =============================================================================

MACHINE_BUY_PRICES: dict[str, float] = {
    "MCE": 20000.0,
    "WMA": 15000.0,
    "PUC": 12000.0,
}

MACHINE_SELL_PRICES: dict[str, float] = {
    "MCE": 10000.0,
    "WMA": 7500.0,
    "PUC": 4000.0,
}

# =============================================================================
# MARKET
# =============================================================================

STANDARD_MARKET_PRICE = 225.0
PRICING_LOOKBACK_DAYS = 10

# =============================================================================
# DYNAMIC POLICY THRESHOLDS
# =============================================================================

EOQ_MIN_DELTA = 50
ROP_MIN_DELTA = 20
EPQ_MIN_DELTA = 5
DEMAND_CHANGE_THRESHOLD = 0.10
BOTTLENECK_UTILIZATION_FLAG = 0.90

# =============================================================================
# OBJECTIVE WEIGHTS
# =============================================================================

REVENUE_WEIGHT = 0.01
SERVICE_LEVEL_WEIGHT = 50000.0
ZERO_MACHINE_PENALTY = 1_000_000.0
BANKRUPTCY_PENALTY = 500_000.0
BANKRUPTCY_CASH_THRESHOLD = -50000.0
QUEUE_OVERFLOW_PENALTY = 100_000.0
LATE_DELIVERY_PENALTY = 10_000.0
STOCKOUT_DAY_PENALTY = 1000.0
TERMINAL_ASSET_WINDOW_DAYS = 30
TERMINAL_ASSET_PENALTY_RATE = 0.5

# Book values used by the terminal asset penalty
STANDARD_WIP_BOOK_VALUE = 100.0
CUSTOM_WIP_BOOK_VALUE = 50.0
STANDARD_FINISHED_BOOK_VALUE = 200.0
CUSTOM_FINISHED_BOOK_VALUE = 400.0
