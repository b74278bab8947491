"""
Core Exception Classes
---------------------
Application-specific exceptions for the treasury agent.
"""

from typing import Any


class AutoCFOError(Exception):
    """Base exception for all AutoCFO errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(AutoCFOError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(AutoCFOError):
    """Raised when data validation fails."""
    pass


class GatewayError(AutoCFOError):
    """Raised when an external gateway call fails (transport, revert, timeout)."""
    pass


class NetworkError(GatewayError):
    """Raised when network/RPC operations fail."""
    pass


class YieldSourceError(GatewayError):
    """Raised when the yield rate cannot be read from the vault."""
    pass


class SwapExecutionError(GatewayError):
    """Raised when a quote or swap fails during rebalancing."""

    def __init__(self, message: str, tx_hash: str | None = None, details: dict[str, Any] | None = None):
        details = dict(details or {})
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(message, details)
        self.tx_hash = tx_hash


class TransferError(GatewayError):
    """Raised when a reserve transfer fails."""
    pass


class InsufficientFundsError(AutoCFOError):
    """Raised when the reserve cannot cover a payment."""
    pass


class ReentrancyRejected(AutoCFOError):
    """Raised when an operation is attempted while a cycle is running."""
    pass
