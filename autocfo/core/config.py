"""
Treasury Configuration
----------------------
Settings come from two places: ``AUTOCFO_*`` environment variables (or a
``.env`` file) for process concerns, and ``config/config.yaml`` for the
network, tokens, contracts and treasury policy. Both are read once at import
and exposed as ``config_manager`` and ``settings``.
"""

import os
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

import yaml
from loguru import logger
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

DEFAULT_CONFIG_DIR = Path("config")
CONFIG_DIR_ENV = "AUTOCFO_CONFIG_DIR"

# Contracts the on-chain gateway talks to
REQUIRED_CONTRACTS = ("ARC_VAULT", "SWAP_ROUTER")


class TokenConfig(BaseModel):
    symbol: str
    address: str = ""
    decimals: int = Field(ge=0, le=30)

    @property
    def ref(self) -> str:
        """Identifier passed to the gateway: the address when known, else the symbol."""
        return self.address or self.symbol


class ContractConfig(BaseModel):
    name: str
    address: str


class NetworkConfig(BaseModel):
    name: str = "sepolia"
    chain_id: int = 11155111
    rpc_url: str = ""
    explorer_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("explorer_url", "block_explorer")
    )
    max_gas_limit: int = Field(default=500000, gt=0)
    gas_price_gwei: Optional[int] = None

    def tx_link(self, tx_hash: str) -> str:
        """Explorer URL for a transaction, or the bare hash without an explorer."""
        if not self.explorer_url:
            return tx_hash
        return f"{self.explorer_url.rstrip('/')}/tx/{tx_hash}"


class TreasuryConfig(BaseModel):
    """Treasury policy thresholds. Immutable once loaded."""
    model_config = ConfigDict(frozen=True)

    payment_day: int = Field(default=25, ge=1, le=31)
    min_reserve: Decimal = Field(default=Decimal("10000"), ge=0)
    # Proportional trigger, reported alongside decisions
    rebalance_threshold_fraction: Decimal = Field(default=Decimal("0.1"), ge=0, le=1)
    status_log_capacity: int = Field(default=50, ge=1)

    yield_token: str = "RWA"
    reserve_token: str = "USDC"
    yield_source: str = "arc"

    max_slippage_bps: int = Field(default=50, ge=1, le=1000)
    swap_deadline_minutes: int = Field(default=20, ge=1)


DEFAULT_TOKENS = {
    "RWA": TokenConfig(symbol="RWA", decimals=18),
    "USDC": TokenConfig(symbol="USDC", decimals=6),
}


class CoreSettings(BaseSettings):
    """Process-level settings from ``AUTOCFO_*`` variables, overlaid by config.yaml."""
    model_config = SettingsConfigDict(
        env_prefix="AUTOCFO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "human"
    log_file: Optional[str] = None

    network: Optional[NetworkConfig] = None
    treasury: TreasuryConfig = TreasuryConfig()

    # Signing key for the on-chain gateway
    private_key: Optional[str] = None


class ConfigManager:
    """Reads config.yaml and answers token, contract and policy lookups."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self._explicit = config_path is not None
        self.config_path = Path(config_path or os.environ.get(CONFIG_DIR_ENV, DEFAULT_CONFIG_DIR))
        self.settings = CoreSettings()
        self._tokens: dict[str, TokenConfig] = dict(DEFAULT_TOKENS)
        self._contracts: dict[str, ContractConfig] = {}

        config_file = self.config_path / "config.yaml"
        if config_file.exists():
            self._load(config_file)
        elif self._explicit:
            raise ConfigurationError(
                f"Configuration file not found: {config_file}",
                {"config_dir": str(self.config_path)},
            )
        else:
            logger.debug("No configuration file at {}, using defaults", config_file)

    def _load(self, config_file: Path) -> None:
        try:
            data: dict[str, Any] = yaml.safe_load(config_file.read_text()) or {}

            self._tokens.update({t.symbol: t for t in map(TokenConfig.model_validate, data.get("tokens", []))})
            self._contracts.update(
                {c.name: c for c in map(ContractConfig.model_validate, data.get("contracts", []))}
            )
            if "network" in data:
                self.settings.network = NetworkConfig.model_validate(data["network"])
            if "treasury" in data:
                self.settings.treasury = TreasuryConfig.model_validate(data["treasury"])

            logging_data = data.get("logging", {})
            self.settings.log_level = logging_data.get("level", self.settings.log_level)
            self.settings.log_format = logging_data.get("format", self.settings.log_format)
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}", {"file": str(config_file)})

        logger.debug("Configuration loaded from {}", config_file)

    @property
    def treasury(self) -> TreasuryConfig:
        return self.settings.treasury

    @staticmethod
    def _lookup(registry: dict, kind: str, key: str) -> Any:
        try:
            return registry[key]
        except KeyError:
            raise ConfigurationError(f"{kind} {key} not found in configuration") from None

    def get_token(self, symbol: str) -> TokenConfig:
        return self._lookup(self._tokens, "Token", symbol)

    def get_contract(self, name: str) -> ContractConfig:
        return self._lookup(self._contracts, "Contract", name)

    def get_all_tokens(self) -> dict[str, TokenConfig]:
        return dict(self._tokens)

    def validate_onchain_configuration(self) -> bool:
        """Check that token addresses, both contracts and an RPC URL are configured.

        Raises:
            ConfigurationError: Listing every missing item
        """
        treasury = self.settings.treasury
        missing = []
        for symbol in (treasury.yield_token, treasury.reserve_token):
            token = self._tokens.get(symbol)
            if token is None or not token.address:
                missing.append(f"Token {symbol} has no address")
        missing.extend(f"Contract {name} missing" for name in REQUIRED_CONTRACTS if name not in self._contracts)
        if not self.settings.network or not self.settings.network.rpc_url:
            missing.append("Network RPC URL missing")

        if missing:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(missing)}")
        return True


config_manager = ConfigManager()
settings = config_manager.settings
