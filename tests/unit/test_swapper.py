"""
Yield Asset Swapper Tests
-------------------------
Quote/execute flow and ledger booking.
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from autocfo.agents.treasury import (
    RebalanceAction,
    SimulatedGateway,
    SwapQuote,
    TreasuryLedger,
    YieldAssetSwapper,
)
from autocfo.agents.treasury.swapper import from_base_units, to_base_units
from autocfo.core.exceptions import SwapExecutionError


def action(amount: str, asset_amount: str | None = None) -> RebalanceAction:
    return RebalanceAction(
        amount=Decimal(amount),
        asset_amount=Decimal(asset_amount or amount),
        threshold_value=Decimal("0"),
    )


@pytest.fixture
def swapper(tokens):
    return YieldAssetSwapper(tokens["RWA"], tokens["USDC"])


class TestBaseUnits:
    """Conversion between token amounts and integer base units."""

    def test_to_base_units_rounds_down(self):
        assert to_base_units(Decimal("1.0000009"), 6) == 1000000
        assert to_base_units(Decimal("5000"), 18) == 5000 * 10**18

    def test_from_base_units(self):
        assert from_base_units(5000 * 10**6, 6) == Decimal("5000")


class TestYieldAssetSwapper:
    """YieldAssetSwapper.swap."""

    def test_swap_tops_reserve_to_minimum(self, swapper, make_state):
        """Reserve 5000 under a 10000 floor ends at exactly 10000."""
        ledger = TreasuryLedger(make_state(yield_value="100000", reserve="5000"))
        gateway = SimulatedGateway()

        tx_hash = swapper.swap(action("5000"), ledger, gateway)

        assert tx_hash.startswith("0x") and len(tx_hash) == 66
        state = ledger.snapshot()
        assert state.reserve.value == Decimal("10000")
        assert state.yield_asset.value == Decimal("95000")
        assert state.total == Decimal("105000")

        quote = gateway.swaps[0]
        assert quote.amount_in == 5000 * 10**18
        assert quote.amount_out == 5000 * 10**6

    def test_quote_failure_leaves_ledger_untouched(self, swapper, make_state):
        ledger = TreasuryLedger(make_state(yield_value="100000", reserve="5000"))
        gateway = Mock()
        gateway.get_swap_quote.side_effect = ConnectionError("router down")

        with pytest.raises(SwapExecutionError, match="router down"):
            swapper.swap(action("5000"), ledger, gateway)

        gateway.execute_swap.assert_not_called()
        assert ledger.reserve_value == Decimal("5000")

    def test_execute_failure_leaves_ledger_untouched(self, swapper, make_state):
        ledger = TreasuryLedger(make_state(yield_value="100000", reserve="5000"))
        before = ledger.snapshot()
        gateway = Mock()
        gateway.get_swap_quote.return_value = SwapQuote(
            amount_in=5000 * 10**18, amount_out=5000 * 10**6, token_in="RWA", token_out="USDC"
        )
        gateway.execute_swap.side_effect = SwapExecutionError("reverted")

        with pytest.raises(SwapExecutionError):
            swapper.swap(action("5000"), ledger, gateway)

        assert ledger.snapshot() == before

    def test_missing_tx_id_is_a_failure(self, swapper, make_state):
        ledger = TreasuryLedger(make_state(yield_value="100000", reserve="5000"))
        gateway = Mock()
        gateway.get_swap_quote.return_value = SwapQuote(
            amount_in=5000 * 10**18, amount_out=5000 * 10**6, token_in="RWA", token_out="USDC"
        )
        gateway.execute_swap.return_value = ""

        with pytest.raises(SwapExecutionError, match="no transaction id"):
            swapper.swap(action("5000"), ledger, gateway)
        assert ledger.reserve_value == Decimal("5000")

    def test_dust_amount_rejected(self, swapper, make_state):
        ledger = TreasuryLedger(make_state())
        with pytest.raises(SwapExecutionError, match="rounds to zero"):
            swapper.swap(action("0.000001", "0.0000000000000000001"), ledger, SimulatedGateway())

    def test_discounted_quote_is_scaled_to_cover_shortfall(self, swapper, make_state):
        """A market paying 0.99 per token still fills the reserve to the floor."""
        ledger = TreasuryLedger(make_state(yield_value="100000", reserve="5000"))
        gateway = SimulatedGateway(exchange_rate=Decimal("0.99"))

        swapper.swap(action("5000"), ledger, gateway)

        state = ledger.snapshot()
        assert state.reserve.value == Decimal("10000")
        assert state.yield_asset.value == Decimal("94949.494949")
        assert state.total == state.yield_asset.value + state.reserve.value
        assert len(gateway.swaps) == 1
        assert gateway.swaps[0].amount_in > 5000 * 10**18

    def test_ledger_price_above_market_price(self, swapper, make_state):
        """Tokens marked at 2 USDC but sold at 1 USDC: twice the tokens leave the vault."""
        ledger = TreasuryLedger(make_state(yield_value="100000", yield_amount="50000", reserve="5000"))

        swapper.swap(action("5000", "2500"), ledger, SimulatedGateway())

        state = ledger.snapshot()
        assert state.reserve.value == Decimal("10000")
        assert state.yield_asset.amount == Decimal("45000")
        assert state.yield_asset.value == Decimal("90000")

    def test_uncoverable_quote_rejected_before_execution(self, swapper, make_state):
        ledger = TreasuryLedger(make_state(yield_value="100000", reserve="5000"))
        before = ledger.snapshot()
        gateway = Mock()
        gateway.get_swap_quote.return_value = SwapQuote(
            amount_in=5000 * 10**18, amount_out=4000 * 10**6, token_in="RWA", token_out="USDC"
        )

        with pytest.raises(SwapExecutionError, match="does not cover"):
            swapper.swap(action("5000"), ledger, gateway)

        assert gateway.get_swap_quote.call_count == 2
        gateway.execute_swap.assert_not_called()
        assert ledger.snapshot() == before

    def test_scaled_swap_limited_by_position_value(self, swapper, make_state):
        ledger = TreasuryLedger(make_state(yield_value="5000", reserve="5000"))
        gateway = SimulatedGateway(exchange_rate=Decimal("0.5"))

        with pytest.raises(SwapExecutionError, match="too low"):
            swapper.swap(action("5000"), ledger, gateway)

        assert gateway.swaps == []
        assert ledger.reserve_value == Decimal("5000")
