"""
Rebalance Policy
----------------
Pure decision logic: whether to convert yield asset into reserve, and how much.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Union

from autocfo.core.config import TreasuryConfig
from autocfo.core.exceptions import ValidationError
from .ledger import ZERO, TreasuryState


class DecisionReason(str, Enum):
    BELOW_MINIMUM = "below_minimum"
    SUFFICIENT = "sufficient"
    INSUFFICIENT_YIELD_ASSET = "insufficient_yield_asset"


@dataclass(frozen=True)
class RebalanceAction:
    """Convert exactly ``amount`` USDC worth of yield asset into reserve."""
    amount: Decimal  # stable units
    asset_amount: Decimal  # yield-asset tokens at the position's price
    threshold_value: Decimal
    reason: DecisionReason = DecisionReason.BELOW_MINIMUM


@dataclass(frozen=True)
class NoAction:
    """No conversion this time; ``shortfall`` is set when waiting for yield."""
    reason: DecisionReason
    threshold_value: Decimal
    shortfall: Decimal = ZERO


Decision = Union[RebalanceAction, NoAction]


class RebalancePolicy:
    """
    Minimum-reserve rebalancing.

    The absolute floor (``min_reserve``) is checked first and alone decides
    the action. The proportional trigger (``total * rebalance_threshold_fraction``)
    is computed and carried on the decision for reporting only.
    """

    def decide(self, state: TreasuryState, config: TreasuryConfig) -> Decision:
        reserve_value = state.reserve.value
        yield_value = state.yield_asset.value
        if reserve_value < 0 or yield_value < 0:
            raise ValidationError(
                "Treasury balances cannot be negative",
                {"reserve": reserve_value, "yield_asset": yield_value},
            )

        threshold_value = state.total * config.rebalance_threshold_fraction

        if reserve_value >= config.min_reserve:
            return NoAction(reason=DecisionReason.SUFFICIENT, threshold_value=threshold_value)

        needed = config.min_reserve - reserve_value
        if yield_value < needed:
            return NoAction(
                reason=DecisionReason.INSUFFICIENT_YIELD_ASSET,
                threshold_value=threshold_value,
                shortfall=needed,
            )

        return RebalanceAction(
            amount=needed,
            asset_amount=needed / state.yield_asset.price,
            threshold_value=threshold_value,
        )
