"""Core modules for AutoCFO."""

from .config import ConfigManager, TreasuryConfig, config_manager, settings
from .exceptions import (
    AutoCFOError,
    ConfigurationError,
    GatewayError,
    InsufficientFundsError,
    NetworkError,
    ReentrancyRejected,
    SwapExecutionError,
    TransferError,
    ValidationError,
    YieldSourceError,
)

__all__ = [
    "settings",
    "config_manager",
    "ConfigManager",
    "TreasuryConfig",
    "AutoCFOError",
    "ConfigurationError",
    "GatewayError",
    "InsufficientFundsError",
    "NetworkError",
    "ReentrancyRejected",
    "SwapExecutionError",
    "TransferError",
    "ValidationError",
    "YieldSourceError",
]
