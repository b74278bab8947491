"""
Treasury Ledger
---------------
Balances of the yield-asset position and the USDC reserve, with the total
kept in step on every mutation.
"""

import copy
import threading
from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal, getcontext
from typing import Any

from loguru import logger

from autocfo.core.exceptions import InsufficientFundsError, ValidationError

getcontext().prec = 40

# Smallest stable unit (USDC has 6 decimals)
USD_QUANTUM = Decimal("0.000001")
ZERO = Decimal("0")
DAYS_PER_YEAR = Decimal("365")


def to_decimal(value: Any) -> Decimal:
    """Coerce a str/int/Decimal (or float, via its repr) to Decimal."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except Exception as e:
        raise ValidationError(f"Not a decimal amount: {value!r}") from e


def quantize_usd(value: Decimal) -> Decimal:
    return value.quantize(USD_QUANTUM, rounding=ROUND_HALF_EVEN)


@dataclass
class YieldPosition:
    """Holding in the yield-bearing vault."""
    amount: Decimal  # asset-native tokens
    value: Decimal  # valuation in USDC
    rate: Decimal  # annualised yield, percent

    @property
    def price(self) -> Decimal:
        """USDC value per asset token; par when the position is empty."""
        if self.amount <= 0 or self.value <= 0:
            return Decimal("1")
        return self.value / self.amount


@dataclass
class ReservePosition:
    """USDC reserve. Amount and value are pegged 1:1."""
    amount: Decimal
    value: Decimal


@dataclass
class TreasuryState:
    """Treasury balances. ``total`` always equals yield value + reserve value."""
    yield_asset: YieldPosition
    reserve: ReservePosition
    total: Decimal = field(init=False, default=ZERO)

    def __post_init__(self) -> None:
        for name, amount in (
            ("yield_asset.amount", self.yield_asset.amount),
            ("yield_asset.value", self.yield_asset.value),
            ("reserve.amount", self.reserve.amount),
            ("reserve.value", self.reserve.value),
        ):
            if amount < 0:
                raise ValidationError(f"{name} cannot be negative", {"value": amount})
        self.recompute_total()

    def recompute_total(self) -> None:
        self.total = self.yield_asset.value + self.reserve.value

    @classmethod
    def default(cls) -> "TreasuryState":
        """Demo treasury: 600k in the RWA vault at 6.5%, 400k USDC."""
        return cls.from_dict({
            "rwa": {"amount": "600000", "value": "600000", "apy": "6.5"},
            "usdc": {"amount": "400000", "value": "400000"},
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TreasuryState":
        """Build from a mapping of string amounts.

        Accepts ``yield_asset``/``reserve`` keys (or ``rwa``/``usdc``), and
        ``rate`` (or ``apy``). A given ``total`` is ignored and recomputed.
        """
        yield_data = data.get("yield_asset", data.get("rwa", {}))
        reserve_data = data.get("reserve", data.get("usdc", {}))
        reserve_value = to_decimal(reserve_data.get("value", reserve_data.get("amount", "0")))
        return cls(
            yield_asset=YieldPosition(
                amount=to_decimal(yield_data.get("amount", "0")),
                value=to_decimal(yield_data.get("value", "0")),
                rate=to_decimal(yield_data.get("rate", yield_data.get("apy", "0"))),
            ),
            reserve=ReservePosition(amount=reserve_value, value=reserve_value),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": str(self.total),
            "yield_asset": {
                "amount": str(self.yield_asset.amount),
                "value": str(self.yield_asset.value),
                "rate": str(self.yield_asset.rate),
            },
            "reserve": {
                "amount": str(self.reserve.amount),
                "value": str(self.reserve.value),
            },
        }


class TreasuryLedger:
    """
    Sole owner of a TreasuryState.

    All mutations run under a lock and recompute the total before releasing
    it. Readers get deep copies.
    """

    def __init__(self, state: TreasuryState | None = None):
        self._state = copy.deepcopy(state) if state else TreasuryState.default()
        self._lock = threading.Lock()

    def snapshot(self) -> TreasuryState:
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def reserve_value(self) -> Decimal:
        with self._lock:
            return self._state.reserve.value

    @property
    def total(self) -> Decimal:
        with self._lock:
            return self._state.total

    def apply_yield(self, rate: Decimal) -> Decimal:
        """Record the latest rate and compound the position by one day.

        Returns the new yield-asset value.
        """
        rate = to_decimal(rate)
        if not rate.is_finite():
            raise ValidationError(f"Yield rate must be finite, got {rate}")
        with self._lock:
            position = self._state.yield_asset
            growth = Decimal("1") + rate / Decimal("100") / DAYS_PER_YEAR
            position.rate = rate
            position.value = quantize_usd(position.value * growth)
            self._state.recompute_total()
            return position.value

    def apply_swap(self, value_out: Decimal, asset_out: Decimal, reserve_in: Decimal) -> None:
        """Move ``value_out`` of yield asset into ``reserve_in`` USDC."""
        with self._lock:
            position = self._state.yield_asset
            if value_out > position.value:
                raise InsufficientFundsError(
                    "Yield asset value too low for swap",
                    {"required": value_out, "available": position.value},
                )
            position.value -= value_out
            position.amount = max(ZERO, position.amount - asset_out)
            self._state.reserve.value += reserve_in
            self._state.reserve.amount = self._state.reserve.value
            self._state.recompute_total()
            logger.debug(
                "Ledger swap: -{} yield value, +{} reserve (total {})",
                value_out, reserve_in, self._state.total
            )

    def apply_transfer(self, amount: Decimal) -> None:
        """Debit a payout from the reserve."""
        with self._lock:
            reserve = self._state.reserve
            if reserve.value < amount:
                raise InsufficientFundsError(
                    "Insufficient reserve for transfer",
                    {"required": amount, "available": reserve.value},
                )
            reserve.value -= amount
            reserve.amount = reserve.value
            self._state.recompute_total()
