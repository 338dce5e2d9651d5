"""
Pytest configuration and fixtures for factorysim tests.
"""

import tempfile
from pathlib import Path

import pytest

from factorysim.config.schema import FactoryConfig, get_default_config
from factorysim.models.state import (
    SimulationState,
    create_business_case_state,
    create_historical_state,
)
from factorysim.models.strategy import Strategy


@pytest.fixture
def default_config() -> FactoryConfig:
    """Return the default configuration."""
    return get_default_config()

@pytest.fixture
def historical_state(default_config: FactoryConfig) -> SimulationState:
    """Return the day-50 historical snapshot."""
    return create_historical_state(default_config)

@pytest.fixture
def business_case_state(default_config: FactoryConfig) -> SimulationState:
    """Return the seeded, indebted business-case starting state."""
    return create_business_case_state(seed=7, config=default_config)

@pytest.fixture
def baseline_strategy() -> Strategy:
    """Return the default strategy."""
    return Strategy()

@pytest.fixture
def empty_state() -> SimulationState:
    """Return a bare state with no WIP, cash or debt at day 50."""
    return SimulationState(current_day=50)

@pytest.fixture
def tmp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
