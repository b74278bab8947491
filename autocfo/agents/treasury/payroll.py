"""
Payroll Batch Execution
-----------------------
Resolves recipients and pays them from the reserve, one entry at a time.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from autocfo.core.config import TreasuryConfig
from autocfo.core.exceptions import TransferError
from autocfo.core.metrics import record_payment
from .gateway import ExternalGateway
from .ledger import USD_QUANTUM, TreasuryLedger
from .status_log import Severity, StatusLog

ACTION = "executePayroll"

RESOLUTION_FAILED = "resolution failed"
INSUFFICIENT_BALANCE = "insufficient balance"


class PayrollStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PayrollEntry(BaseModel):
    """A scheduled payout. Owned by the caller; the agent never mutates it."""
    id: str
    recipient: str  # ENS name or raw address
    amount: Decimal  # USDC
    due_date: datetime
    status: PayrollStatus = PayrollStatus.PENDING
    resolved_address: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Payroll amount must be positive")
        if v.quantize(USD_QUANTUM) != v:
            raise ValueError(f"Payroll amount has more precision than the reserve token: {v}")
        return v

    @field_validator("recipient")
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Recipient cannot be empty")
        return v


@dataclass(frozen=True)
class PaymentFailure:
    recipient: str
    reason: str
    entry_id: Optional[str] = None


@dataclass(frozen=True)
class PaymentReceipt:
    entry_id: str
    recipient: str
    address: str
    amount: Decimal
    tx_hash: str


@dataclass
class PayrollResult:
    """Outcome of a batch: every input entry lands in exactly one list."""
    successful: list[str] = field(default_factory=list)  # transaction ids
    failed: list[PaymentFailure] = field(default_factory=list)
    receipts: list[PaymentReceipt] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.successful) + len(self.failed)


class PayrollBatchExecutor:
    """
    Sequential payroll executor.

    Entries are processed in input order with no parallelism, since each
    transfer draws on the same reserve and must see the previous debits.
    A failing entry is recorded and the batch moves on.
    """

    def __init__(self, status_log: StatusLog, agent_id: str | None = None):
        self.status_log = status_log
        self.agent_id = agent_id or "treasury"

    def execute_batch(
        self,
        entries: list[PayrollEntry],
        ledger: TreasuryLedger,
        gateway: ExternalGateway,
        config: TreasuryConfig,
    ) -> PayrollResult:
        result = PayrollResult()
        unit = config.reserve_token

        for entry in entries:
            try:
                self._pay(entry, ledger, gateway, unit, result)
            except Exception as e:
                reason = str(e) or type(e).__name__
                result.failed.append(PaymentFailure(entry.recipient, reason, entry.id))
                self.status_log.add(f"Failed to pay {entry.recipient}: {reason}", Severity.ERROR, ACTION)
                record_payment(self.agent_id, success=False)

        self.status_log.add(
            f"Payroll execution complete! {len(result.successful)} successful, {len(result.failed)} failed.",
            Severity.SUCCESS if result.successful else Severity.ERROR,
            ACTION,
        )
        return result

    def _pay(
        self,
        entry: PayrollEntry,
        ledger: TreasuryLedger,
        gateway: ExternalGateway,
        unit: str,
        result: PayrollResult,
    ) -> None:
        self.status_log.add(f"Resolving recipient: {entry.recipient}...", Severity.INFO, ACTION)
        address = gateway.resolve_name(entry.recipient)
        if not address:
            result.failed.append(PaymentFailure(entry.recipient, RESOLUTION_FAILED, entry.id))
            self.status_log.add(f"Failed to resolve: {entry.recipient}", Severity.ERROR, ACTION)
            record_payment(self.agent_id, success=False)
            return

        self.status_log.add(f"Resolved {entry.recipient} -> {address[:10]}...", Severity.SUCCESS, ACTION)

        available = ledger.reserve_value
        if available < entry.amount:
            result.failed.append(PaymentFailure(entry.recipient, INSUFFICIENT_BALANCE, entry.id))
            self.status_log.add(
                f"Insufficient {unit} for {entry.recipient}. Need {entry.amount}, have {available}",
                Severity.ERROR,
                ACTION,
            )
            record_payment(self.agent_id, success=False)
            return

        self.status_log.add(f"Transferring {entry.amount} {unit} to {entry.recipient}...", Severity.INFO, ACTION)
        tx_hash = gateway.transfer(address, entry.amount)
        if not tx_hash:
            raise TransferError(f"Transfer to {entry.recipient} returned no transaction id")

        ledger.apply_transfer(entry.amount)
        self.status_log.add(f"Payroll sent to {entry.recipient}! TX: {tx_hash[:10]}...", Severity.SUCCESS, ACTION)
        record_payment(self.agent_id, success=True)

        # Recorded last; any earlier failure books the entry as failed
        result.receipts.append(PaymentReceipt(entry.id, entry.recipient, address, entry.amount, tx_hash))
        result.successful.append(tx_hash)


def apply_payroll_result(entries: list[PayrollEntry], result: PayrollResult) -> list[PayrollEntry]:
    """Return copies of ``entries`` with the batch outcome applied.

    Paid entries become completed with their resolved address; failed ones
    become failed. Entries not in the batch are returned unchanged.
    """
    paid = {r.entry_id: r for r in result.receipts}
    failed = {f.entry_id for f in result.failed if f.entry_id is not None}

    updated = []
    for entry in entries:
        if entry.id in paid:
            updated.append(entry.model_copy(update={
                "status": PayrollStatus.COMPLETED,
                "resolved_address": paid[entry.id].address,
            }))
        elif entry.id in failed:
            updated.append(entry.model_copy(update={"status": PayrollStatus.FAILED}))
        else:
            updated.append(entry.model_copy())
    return updated
