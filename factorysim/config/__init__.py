"""
Configuration management for the factory simulation.

This module provides:
- Default simulation constants
- Configuration schema and validation
- Support for custom configuration files (JSON/YAML)
"""

from factorysim.config.schema import (
    MACHINE_TYPES,
    CalendarConfig,
    FactoryConfig,
    FinanceConfig,
    MachinesConfig,
    MarketConfig,
    MaterialsConfig,
    ObjectiveConfig,
    PolicyCalculatorConfig,
    ProductionConfig,
    SimulationConfig,
    WorkforceConfig,
    get_default_config,
)

__all__ = [
    # Constants
    "MACHINE_TYPES",
    # Pydantic config classes
    "CalendarConfig",
    "FactoryConfig",
    "FinanceConfig",
    "MachinesConfig",
    "MarketConfig",
    "MaterialsConfig",
    "ObjectiveConfig",
    "PolicyCalculatorConfig",
    "ProductionConfig",
    "SimulationConfig",
    "WorkforceConfig",
    # Functions
    "get_default_config",
]
