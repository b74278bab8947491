"""
Yield Asset Swapper
-------------------
Converts yield asset into reserve through the gateway's quote + swap calls
and books the result on the ledger.
"""

from decimal import ROUND_DOWN, ROUND_UP, Decimal

from loguru import logger

from autocfo.core.config import TokenConfig
from autocfo.core.exceptions import SwapExecutionError
from .gateway import ExternalGateway, SwapQuote
from .ledger import TreasuryLedger, quantize_usd
from .policy import RebalanceAction


def to_base_units(amount: Decimal, decimals: int, rounding: str = ROUND_DOWN) -> int:
    """Token amount to integer base units, rounding down unless told otherwise."""
    return int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=rounding))


def from_base_units(amount: int, decimals: int) -> Decimal:
    return Decimal(amount) / (Decimal(10) ** decimals)


class YieldAssetSwapper:
    """
    Executes a RebalanceAction.

    The reserve always receives at least ``action.amount``. The ledger is
    only touched after both the quote and the swap calls have returned; any
    failure leaves it as it was.
    """

    def __init__(self, token_in: TokenConfig, token_out: TokenConfig):
        self.token_in = token_in
        self.token_out = token_out

    def quote(self, action: RebalanceAction, gateway: ExternalGateway) -> SwapQuote:
        """Quote a swap delivering at least ``action.amount`` of reserve.

        The first quote sells ``action.asset_amount``. When the market pays
        less than the ledger's price for it, the input is scaled up once.

        Raises:
            SwapExecutionError: Input rounds to zero, or no quote covers the amount
        """
        amount_in = to_base_units(action.asset_amount, self.token_in.decimals)
        if amount_in <= 0:
            raise SwapExecutionError(
                "Swap amount rounds to zero",
                details={"amount": action.amount, "token": self.token_in.symbol},
            )
        required_out = to_base_units(action.amount, self.token_out.decimals, ROUND_UP)

        quote = gateway.get_swap_quote(amount_in, self.token_in.ref, self.token_out.ref)
        if quote.amount_out >= required_out:
            return quote
        if quote.amount_out <= 0:
            raise SwapExecutionError("Swap quote returned no output", details={"amount_in": amount_in})

        scaled_in = -(-amount_in * required_out // quote.amount_out)
        logger.warning(
            "Quote short of {} {}; re-quoting with {} base units of {}",
            action.amount, self.token_out.symbol, scaled_in, self.token_in.symbol
        )
        quote = gateway.get_swap_quote(scaled_in, self.token_in.ref, self.token_out.ref)
        if quote.amount_out < required_out:
            raise SwapExecutionError(
                "Swap quote does not cover the reserve shortfall",
                details={
                    "required": action.amount,
                    "quoted": from_base_units(quote.amount_out, self.token_out.decimals),
                },
            )
        return quote

    def _debits(self, action: RebalanceAction, quote: SwapQuote) -> tuple[Decimal, Decimal]:
        """Yield value and asset tokens the quote consumes."""
        tokens_in = from_base_units(quote.amount_in, self.token_in.decimals)
        if tokens_in <= action.asset_amount:
            return action.amount, action.asset_amount
        return quantize_usd(action.amount * tokens_in / action.asset_amount), tokens_in

    def swap(self, action: RebalanceAction, ledger: TreasuryLedger, gateway: ExternalGateway) -> str:
        """Swap yield asset for at least ``action.amount`` USDC of reserve.

        Returns:
            Swap transaction id

        Raises:
            SwapExecutionError: If quoting or executing the swap fails
        """
        try:
            quote = self.quote(action, gateway)
            logger.debug(
                "Swap quote: {} {} -> {} {} ({}% slippage)",
                quote.amount_in, self.token_in.symbol,
                quote.amount_out, self.token_out.symbol,
                quote.slippage
            )
            value_out, asset_out = self._debits(action, quote)
            available = ledger.snapshot().yield_asset.value
            if value_out > available:
                raise SwapExecutionError(
                    "Yield asset value too low for quoted swap",
                    details={"required": value_out, "available": available},
                )
            tx_hash = gateway.execute_swap(quote)
        except SwapExecutionError:
            raise
        except Exception as e:
            raise SwapExecutionError(f"Swap failed: {e}") from e

        if not tx_hash:
            raise SwapExecutionError("Swap returned no transaction id")

        reserve_in = from_base_units(quote.amount_out, self.token_out.decimals)
        ledger.apply_swap(value_out, asset_out, reserve_in)

        logger.info(
            "Swapped {} USDC worth of {} into {} {} (tx: {})",
            value_out, self.token_in.symbol, reserve_in, self.token_out.symbol, tx_hash
        )
        return tx_hash
