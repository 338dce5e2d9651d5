"""Tests for configuration system."""

import json

import pytest
from pydantic import ValidationError

from factorysim.config import defaults as d
from factorysim.config.schema import FactoryConfig, get_default_config


class TestFactoryConfig:
    """Tests for FactoryConfig class."""

    def test_default_values(self) -> None:
        """Defaults mirror the module-level constants."""
        config = FactoryConfig()

        assert config.calendar.start_day == 51
        assert config.calendar.end_day == 415
        assert config.workforce.rookie_salary_per_day == 85.0
        assert config.workforce.expert_salary_per_day == 150.0
        assert config.finance.normal_loan_commission == 0.02
        assert config.finance.salary_loan_commission == 0.05
        assert config.materials.lead_time_days == 4
        assert config.production.custom_max_wip == 360
        assert config.machines.buy_prices["MCE"] == 20000.0
        assert config.machines.sell_prices["PUC"] == 4000.0
        assert config.market.standard_market_price == d.STANDARD_MARKET_PRICE

    def test_holding_cost_per_unit(self) -> None:
        """Annual holding cost is unit cost times holding rate."""
        config = FactoryConfig()
        assert config.materials.holding_cost_per_unit == pytest.approx(10.0)

    def test_from_dict_partial(self) -> None:
        """Partial dictionaries keep defaults for missing values."""
        config = FactoryConfig.from_dict({"materials": {"lead_time_days": 6}})

        assert config.materials.lead_time_days == 6
        assert config.materials.unit_cost == 50.0
        assert config.production.mce_units_per_machine == 30

    def test_merge_deep(self) -> None:
        """Merge replaces only the named nested values."""
        config = get_default_config().merge({"objective": {"stockout_day_penalty": 5.0}})

        assert config.objective.stockout_day_penalty == 5.0
        assert config.objective.zero_machine_penalty == 1_000_000.0

    def test_missing_machine_price_rejected(self) -> None:
        """Every machine type needs a price."""
        with pytest.raises(ValidationError):
            FactoryConfig.from_dict({"machines": {"buy_prices": {"MCE": 1.0}}})

    def test_negative_rate_rejected(self) -> None:
        """Rates are validated as non-negative."""
        with pytest.raises(ValidationError):
            FactoryConfig.from_dict({"finance": {"daily_debt_interest_rate": -0.1}})


class TestConfigFiles:
    """Tests for loading and saving configuration files."""

    def test_json_roundtrip(self, tmp_dir) -> None:
        """Configuration written to JSON loads back equal."""
        path = tmp_dir / "config.json"
        config = get_default_config().merge({"calendar": {"end_day": 300}})
        config.to_file(path)

        assert json.loads(path.read_text())["calendar"]["end_day"] == 300
        assert FactoryConfig.from_file(path) == config

    def test_yaml_file(self, tmp_dir) -> None:
        """YAML configuration files are supported."""
        path = tmp_dir / "config.yaml"
        path.write_text("production:\n  custom_max_wip: 200\n")

        config = FactoryConfig.from_file(path)
        assert config.production.custom_max_wip == 200

    def test_missing_file(self, tmp_dir) -> None:
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            FactoryConfig.from_file(tmp_dir / "nope.json")

    def test_unsupported_suffix(self, tmp_dir) -> None:
        """Unknown file formats are rejected."""
        path = tmp_dir / "config.toml"
        path.write_text("")
        with pytest.raises(ValueError):
            FactoryConfig.from_file(path)
