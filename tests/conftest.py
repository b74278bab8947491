"""Shared fixtures for treasury agent tests."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from autocfo.agents.treasury import (
    PayrollEntry,
    SimulatedGateway,
    TreasuryAgent,
    TreasuryState,
)
from autocfo.core.config import DEFAULT_TOKENS, TreasuryConfig

PAYMENT_DAY = date(2026, 10, 25)
ORDINARY_DAY = date(2026, 10, 18)

NAMES = {
    "alice.eth": "0x" + "a1" * 20,
    "bob.eth": "0x" + "b0" * 20,
    "charlie.eth": "0x" + "c4" * 20,
}


def _state(yield_value="600000", reserve="400000", yield_amount=None, rate="6.5") -> TreasuryState:
    return TreasuryState.from_dict({
        "yield_asset": {
            "amount": yield_amount if yield_amount is not None else yield_value,
            "value": yield_value,
            "rate": rate,
        },
        "reserve": {"amount": reserve, "value": reserve},
    })


def _entry(entry_id: str, recipient: str, amount: str) -> PayrollEntry:
    return PayrollEntry(
        id=entry_id,
        recipient=recipient,
        amount=Decimal(amount),
        due_date=datetime(2026, 10, 25),
    )


@pytest.fixture
def make_state():
    """Factory for treasury states from string amounts."""
    return _state


@pytest.fixture
def make_entry():
    return _entry


@pytest.fixture
def tokens():
    """Tokens without addresses, so gateway ids are the symbols."""
    return dict(DEFAULT_TOKENS)


@pytest.fixture
def treasury_config():
    return TreasuryConfig()


@pytest.fixture
def gateway():
    return SimulatedGateway(yield_rate=Decimal("0"), name_book=NAMES, seed=7)


@pytest.fixture
def payroll_entries():
    return [
        _entry("1", "alice.eth", "5000"),
        _entry("2", "bob.eth", "3000"),
        _entry("3", "charlie.eth", "2000"),
    ]


@pytest.fixture
def make_agent(gateway, tokens, treasury_config):
    """Factory for agents with a fixed clock and address-free tokens."""

    def _make(state=None, today=ORDINARY_DAY, gw=None, config=None):
        return TreasuryAgent(
            gateway=gw or gateway,
            config=config or treasury_config,
            initial_state=state,
            clock=lambda: today,
            tokens=tokens,
        )

    return _make
