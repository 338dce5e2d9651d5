"""
Factory simulation engine.

This module contains the core simulation logic:
- Raw material ordering, arrival and consumption
- Production flow on the standard and custom lines
- Cash, interest, automatic borrowing and debt management
- Workforce hiring, training, salaries and quit risk
- Demand generation and custom pricing
- Dynamic EOQ/ROP/EPQ policies and reactive rules
- Main simulation loop and business rule audit
"""

from factorysim.engine.demand import DemandModule
from factorysim.engine.finance import (
    DebtManagementResult,
    DebtManager,
    FinanceModule,
    InterestResult,
    PaymentResult,
)
from factorysim.engine.formulas import (
    FormulaError,
    calculate_eoq,
    calculate_epq,
    calculate_rop,
    z_score,
)
from factorysim.engine.inventory import ConsumptionResult, InventoryModule
from factorysim.engine.policy import (
    BottleneckAnalysis,
    ChangeType,
    DynamicPolicyCalculator,
    PolicyChange,
    PolicyChangeTrigger,
)
from factorysim.engine.pricing import PricingModule, SalesResult, calculate_custom_price
from factorysim.engine.production import (
    CustomLineResult,
    MceAllocation,
    ProductionModule,
    ProductionResult,
    StandardLineResult,
    allocate_mce_capacity,
)
from factorysim.engine.rules import (
    EXAMPLE_RULES,
    ConditionType,
    Rule,
    RuleCondition,
    RulesEngine,
)
from factorysim.engine.validation import (
    BusinessRulesResult,
    BusinessRuleViolation,
    Severity,
    validate_business_rules,
)
from factorysim.engine.workforce import QuitResult, TrainingResult, WorkforceModule

__all__ = [
    # Demand
    "DemandModule",
    # Finance
    "FinanceModule",
    "DebtManager",
    "PaymentResult",
    "InterestResult",
    "DebtManagementResult",
    # Formulas
    "FormulaError",
    "calculate_eoq",
    "calculate_rop",
    "calculate_epq",
    "z_score",
    # Inventory
    "InventoryModule",
    "ConsumptionResult",
    # Policy
    "DynamicPolicyCalculator",
    "PolicyChange",
    "PolicyChangeTrigger",
    "ChangeType",
    "BottleneckAnalysis",
    # Pricing
    "PricingModule",
    "SalesResult",
    "calculate_custom_price",
    # Production
    "ProductionModule",
    "ProductionResult",
    "StandardLineResult",
    "CustomLineResult",
    "MceAllocation",
    "allocate_mce_capacity",
    # Rules
    "RulesEngine",
    "Rule",
    "RuleCondition",
    "ConditionType",
    "EXAMPLE_RULES",
    # Validation
    "validate_business_rules",
    "BusinessRulesResult",
    "BusinessRuleViolation",
    "Severity",
    # Workforce
    "WorkforceModule",
    "TrainingResult",
    "QuitResult",
    # Simulation
    "SimulationEngine",
    "SimulationResult",
    "SimulationMetrics",
    "DayResult",
    "StrategyError",
    "compute_metrics",
    "run_simulation",
]

from factorysim.engine.simulation import (
    DayResult,
    SimulationEngine,
    SimulationMetrics,
    SimulationResult,
    StrategyError,
    compute_metrics,
    run_simulation,
)
