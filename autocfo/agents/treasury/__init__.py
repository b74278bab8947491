"""
Treasury Agent Module
---------------------
Yield refresh, minimum-reserve rebalancing and payroll execution composed
into one guarded agent cycle.
"""

from .agent import CycleOutcome, CyclePhase, CycleReport, TreasuryAgent
from .gateway import ExternalGateway, SimulatedGateway, SwapQuote, YieldInfo
from .ledger import ReservePosition, TreasuryLedger, TreasuryState, YieldPosition
from .payroll import (
    PaymentFailure,
    PaymentReceipt,
    PayrollBatchExecutor,
    PayrollEntry,
    PayrollResult,
    PayrollStatus,
    apply_payroll_result,
)
from .policy import DecisionReason, NoAction, RebalanceAction, RebalancePolicy
from .status_log import Severity, StatusEntry, StatusLog
from .swapper import YieldAssetSwapper

__all__ = [
    # Main agent
    "TreasuryAgent",
    "CycleOutcome",
    "CyclePhase",
    "CycleReport",

    # Components
    "TreasuryLedger",
    "RebalancePolicy",
    "YieldAssetSwapper",
    "PayrollBatchExecutor",
    "StatusLog",

    # Gateway
    "ExternalGateway",
    "SimulatedGateway",
    "SwapQuote",
    "YieldInfo",

    # Data structures
    "TreasuryState",
    "YieldPosition",
    "ReservePosition",
    "RebalanceAction",
    "NoAction",
    "DecisionReason",
    "PayrollEntry",
    "PayrollStatus",
    "PayrollResult",
    "PaymentFailure",
    "PaymentReceipt",
    "StatusEntry",
    "Severity",
    "apply_payroll_result",
]
