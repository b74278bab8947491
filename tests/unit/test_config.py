"""
Configuration Tests
-------------------
YAML loading, defaults and validation.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from autocfo.core.config import ConfigManager, NetworkConfig, TokenConfig, TreasuryConfig, config_manager
from autocfo.core.exceptions import ConfigurationError

CONFIG_YAML = """
network:
  name: sepolia
  chain_id: 11155111
  rpc_url: https://rpc.example.org

tokens:
  - symbol: RWA
    address: "0x0000000000000000000000000000000000000003"
    decimals: 18

contracts:
  - name: ARC_VAULT
    address: "0x0000000000000000000000000000000000000001"
  - name: SWAP_ROUTER
    address: "0x0000000000000000000000000000000000000002"

treasury:
  payment_day: 1
  min_reserve: "25000.50"

logging:
  level: DEBUG
  format: json
"""


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "config.yaml").write_text(CONFIG_YAML)
    return tmp_path


class TestTreasuryConfig:
    """TreasuryConfig defaults and validators."""

    def test_defaults(self):
        config = TreasuryConfig()
        assert config.payment_day == 25
        assert config.min_reserve == Decimal("10000")
        assert config.rebalance_threshold_fraction == Decimal("0.1")
        assert config.status_log_capacity == 50

    def test_frozen(self):
        config = TreasuryConfig()
        with pytest.raises(PydanticValidationError):
            config.min_reserve = Decimal("1")

    @pytest.mark.parametrize("field,value", [
        ("payment_day", 0),
        ("payment_day", 32),
        ("min_reserve", Decimal("-1")),
        ("rebalance_threshold_fraction", Decimal("1.5")),
        ("max_slippage_bps", 0),
        ("status_log_capacity", 0),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(PydanticValidationError):
            TreasuryConfig(**{field: value})


class TestConfigManager:
    """ConfigManager file loading."""

    def test_loads_yaml(self, config_dir):
        manager = ConfigManager(config_dir)

        assert manager.treasury.payment_day == 1
        assert manager.treasury.min_reserve == Decimal("25000.50")
        assert manager.settings.network.rpc_url == "https://rpc.example.org"
        assert manager.settings.log_level == "DEBUG"
        assert manager.settings.log_format == "json"

    def test_yaml_tokens_override_defaults(self, config_dir):
        manager = ConfigManager(config_dir)

        assert manager.get_token("RWA").ref == "0x0000000000000000000000000000000000000003"
        # USDC falls back to the built-in default without an address
        assert manager.get_token("USDC").ref == "USDC"

    def test_missing_explicit_file_fails(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigManager(tmp_path / "nowhere")

    def test_unknown_token_fails(self):
        with pytest.raises(ConfigurationError, match="Token INVALID not found"):
            config_manager.get_token("INVALID")

    def test_unknown_contract_fails(self, config_dir):
        with pytest.raises(ConfigurationError, match="Contract NOPE not found"):
            ConfigManager(config_dir).get_contract("NOPE")

    def test_onchain_validation_requires_token_addresses(self, config_dir):
        """USDC has no address in this file, so on-chain use is refused."""
        with pytest.raises(ConfigurationError, match="USDC has no address"):
            ConfigManager(config_dir).validate_onchain_configuration()

    def test_onchain_validation_passes(self, config_dir):
        text = (config_dir / "config.yaml").read_text()
        text = text.replace(
            "contracts:",
            '  - symbol: USDC\n    address: "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"\n    decimals: 6\n\ncontracts:',
        )
        (config_dir / "config.yaml").write_text(text)

        assert ConfigManager(config_dir).validate_onchain_configuration() is True

    def test_bad_yaml_values_raise_configuration_error(self, tmp_path):
        (tmp_path / "config.yaml").write_text("treasury:\n  payment_day: 40\n")
        with pytest.raises(ConfigurationError, match="Failed to load configuration"):
            ConfigManager(tmp_path)


class TestTokenConfig:
    """TokenConfig validation."""

    def test_decimals_bounded(self):
        with pytest.raises(PydanticValidationError):
            TokenConfig(symbol="BAD", decimals=31)


class TestNetworkConfig:
    """NetworkConfig explorer links."""

    def test_block_explorer_key_accepted(self):
        network = NetworkConfig.model_validate({"block_explorer": "https://sepolia.etherscan.io/"})
        assert network.tx_link("0xabc") == "https://sepolia.etherscan.io/tx/0xabc"

    def test_no_explorer_returns_hash(self):
        assert NetworkConfig().tx_link("0xabc") == "0xabc"

    def test_gas_limit_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            NetworkConfig(max_gas_limit=0)
