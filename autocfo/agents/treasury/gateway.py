"""
External Gateway
----------------
The narrow set of external operations the treasury agent depends on, and a
simulated implementation for demos and dry runs.

Gateway calls only return values. The agent applies every balance change
itself once a call has returned.
"""

import random
from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from loguru import logger
from pydantic import BaseModel, field_validator

from autocfo.core.config import TokenConfig
from autocfo.core.exceptions import GatewayError


class SwapQuote(BaseModel):
    """Quote for converting the yield asset into the reserve token.

    Amounts are integers in each token's base units.
    """
    amount_in: int
    amount_out: int
    token_in: str
    token_out: str
    slippage: Decimal = Decimal("0")  # percent

    @field_validator("amount_in", "amount_out")
    @classmethod
    def validate_amount(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Quote amounts cannot be negative")
        return v


class YieldInfo(BaseModel):
    """Result of a yield refresh."""
    rate: Decimal  # annualised percent
    source: str = "arc"
    last_updated: datetime


@runtime_checkable
class ExternalGateway(Protocol):
    """Operations the agent delegates to the outside world."""

    def get_yield_rate(self) -> Decimal:
        """Current annualised yield in percent. Raises YieldSourceError."""
        ...

    def get_swap_quote(self, amount_in: int, token_in: str, token_out: str) -> SwapQuote:
        ...

    def execute_swap(self, quote: SwapQuote) -> str:
        """Execute a quoted swap and return its transaction id."""
        ...

    def transfer(self, to_address: str, amount: Decimal) -> str:
        """Send ``amount`` reserve units and return the transaction id."""
        ...

    def resolve_name(self, name: str) -> Optional[str]:
        """Address for a name, or None when the name does not resolve."""
        ...


def random_tx_hash(rng: random.Random) -> str:
    return "0x" + "".join(rng.choice("0123456789abcdef") for _ in range(64))


class SimulatedGateway:
    """
    In-memory gateway mirroring a mocked vault, DEX and ENS.

    - Yield rate is fixed, or drawn between 5.5% and 8.0% when unset.
    - Every rate lookup accrues one day of that rate onto the vault token's
      price, the same way the ledger compounds the position.
    - Quotes sell the vault token at ``asset_price * exchange_rate`` across
      token decimals and report 0.5% slippage without applying it.
    - Names resolve from ``name_book``; raw 0x addresses pass through.
    """

    def __init__(
        self,
        yield_rate: Optional[Decimal] = None,
        name_book: Optional[dict[str, str]] = None,
        token_decimals: Optional[dict[str, int]] = None,
        exchange_rate: Decimal = Decimal("1"),
        seed: Optional[int] = None,
        yield_token: str = "RWA",
        asset_price: Decimal = Decimal("1"),
    ):
        self.yield_rate = Decimal(str(yield_rate)) if yield_rate is not None else None
        self.name_book = {k.lower(): v for k, v in (name_book or {}).items()}
        self.token_decimals = token_decimals or {"RWA": 18, "USDC": 6}
        self.exchange_rate = Decimal(str(exchange_rate))
        self.yield_token = yield_token
        self.asset_price = Decimal(str(asset_price))
        self._rng = random.Random(seed)

        self.swaps: list[SwapQuote] = []
        self.transfers: list[tuple[str, Decimal]] = []

    @classmethod
    def for_tokens(
        cls, tokens: dict[str, TokenConfig], yield_symbol: str = "RWA", **kwargs
    ) -> "SimulatedGateway":
        """Build with decimals keyed the way the agent refers to tokens."""
        return cls(
            token_decimals={t.ref: t.decimals for t in tokens.values()},
            yield_token=tokens[yield_symbol].ref,
            **kwargs,
        )

    def get_yield_rate(self) -> Decimal:
        if self.yield_rate is not None:
            rate = self.yield_rate
        else:
            rate = Decimal(str(round(5.5 + self._rng.random() * 2.5, 2)))
            logger.debug("Simulated vault rate: {}%", rate)
        self.asset_price *= Decimal("1") + rate / Decimal("100") / Decimal("365")
        return rate

    def _decimals(self, token: str) -> int:
        if token not in self.token_decimals:
            raise GatewayError(f"Unknown token {token}")
        return self.token_decimals[token]

    def get_swap_quote(self, amount_in: int, token_in: str, token_out: str) -> SwapQuote:
        scale = Decimal(10) ** (self._decimals(token_out) - self._decimals(token_in))
        price = self.exchange_rate
        if token_in == self.yield_token:
            price *= self.asset_price
        amount_out = int(Decimal(amount_in) * price * scale)
        return SwapQuote(
            amount_in=amount_in,
            amount_out=amount_out,
            token_in=token_in,
            token_out=token_out,
            slippage=Decimal("0.5"),
        )

    def execute_swap(self, quote: SwapQuote) -> str:
        self.swaps.append(quote)
        return random_tx_hash(self._rng)

    def transfer(self, to_address: str, amount: Decimal) -> str:
        self.transfers.append((to_address, amount))
        return random_tx_hash(self._rng)

    def resolve_name(self, name: str) -> Optional[str]:
        if name.startswith("0x") and len(name) == 42:
            return name
        return self.name_book.get(name.lower())


__all__ = [
    "ExternalGateway",
    "SimulatedGateway",
    "SwapQuote",
    "YieldInfo",
]
