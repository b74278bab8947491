"""
Treasury Agent - Autonomous Treasury Manager
--------------------------------------------
Composition-based agent that combines the ledger, rebalance policy, swapper
and payroll executor into one externally triggered cycle.
"""

import contextlib
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, Iterator

from autocfo.core.config import TokenConfig, TreasuryConfig, config_manager, settings
from autocfo.core.exceptions import ReentrancyRejected, YieldSourceError
from autocfo.core.logging import log, log_context, with_trace_id
from autocfo.core.metrics import record_cycle, record_error, record_swap, update_treasury_value
from .gateway import ExternalGateway, YieldInfo
from .ledger import TreasuryLedger, TreasuryState, to_decimal
from .payroll import PayrollBatchExecutor, PayrollEntry, PayrollResult, PayrollStatus
from .policy import DecisionReason, NoAction, RebalancePolicy
from .status_log import Severity, StatusEntry, StatusLog
from .swapper import YieldAssetSwapper


class CyclePhase(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CycleOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class CycleReport:
    """What one run_cycle call did."""
    outcome: CycleOutcome
    started_at: datetime
    finished_at: datetime | None = None
    yield_info: YieldInfo | None = None
    rebalance_tx: str | None = None
    payroll: PayrollResult | None = None
    error: str | None = None


class TreasuryAgent:
    """
    Autonomous treasury agent.

    Each cycle refreshes the vault yield, tops the reserve up to the minimum
    and, on payment day, pays pending payroll. At most one cycle runs at a
    time; the manual operations (check_yield, rebalance, execute_payroll)
    share the same guard.

    Errors inside a cycle are reported through the status log only. The
    manual operations re-raise them.
    """

    def __init__(
        self,
        gateway: ExternalGateway,
        config: TreasuryConfig | None = None,
        initial_state: TreasuryState | None = None,
        clock: Callable[[], date] = date.today,
        tokens: dict[str, TokenConfig] | None = None,
        policy: RebalancePolicy | None = None,
        name: str = "autocfo",
    ):
        """Initialize treasury agent.

        Args:
            gateway: External vault/DEX/ENS/transfer operations
            config: Treasury thresholds; defaults to settings.treasury
            initial_state: Starting balances; defaults to the demo treasury
            clock: Returns today's date, used for the payment-day check
            tokens: Token configurations by symbol; defaults to config_manager
            policy: Rebalance policy
            name: Prefix for the agent id
        """
        self.config = config or settings.treasury
        self.gateway = gateway
        self.agent_id = f"{name}_{int(time.time())}"
        self._clock = clock

        tokens = tokens or config_manager.get_all_tokens()
        self.yield_token = tokens[self.config.yield_token]
        self.reserve_token = tokens[self.config.reserve_token]

        self.ledger = TreasuryLedger(initial_state)
        self.status_log = StatusLog(self.config.status_log_capacity)
        self.policy = policy or RebalancePolicy()
        self.swapper = YieldAssetSwapper(self.yield_token, self.reserve_token)
        self.payroll_executor = PayrollBatchExecutor(self.status_log, self.agent_id)

        self._phase = CyclePhase.IDLE
        self._phase_lock = threading.Lock()
        self.last_outcome: CycleOutcome | None = None
        self.cycle_count = 0

        log.info(
            "Treasury agent initialized: {} (payment day: {}, min reserve: {} {})",
            self.agent_id,
            self.config.payment_day,
            self.config.min_reserve,
            self.reserve_token.symbol
        )

    @property
    def phase(self) -> CyclePhase:
        with self._phase_lock:
            return self._phase

    def get_status_log(self) -> list[StatusEntry]:
        return self.status_log.entries()

    def get_treasury_state(self) -> TreasuryState:
        return self.ledger.snapshot()

    def is_payment_day(self, day: date | None = None) -> bool:
        day = day or self._clock()
        return day.day == self.config.payment_day

    def _try_enter(self) -> bool:
        with self._phase_lock:
            if self._phase == CyclePhase.RUNNING:
                return False
            self._phase = CyclePhase.RUNNING
            return True

    def _leave(self) -> None:
        with self._phase_lock:
            self._phase = CyclePhase.IDLE

    @contextlib.contextmanager
    def _guarded(self, action: str) -> Iterator[None]:
        if not self._try_enter():
            self.status_log.add(
                f"Agent cycle already running. Skipping {action}.", Severity.WARNING, action
            )
            raise ReentrancyRejected(f"Cannot run {action} while a cycle is running")
        try:
            yield
        finally:
            self._leave()

    def check_yield(self) -> YieldInfo:
        """Refresh the vault rate and compound the position by one day.

        Compounding is applied once per call, not per elapsed day; callers
        should invoke it at most once per day.

        Raises:
            YieldSourceError: If the rate lookup fails (state untouched)
            ReentrancyRejected: If a cycle is running
        """
        with self._guarded("checkYields"):
            return self._check_yield()

    def rebalance(self) -> str | None:
        """Top the reserve up to the minimum. Returns the swap tx, if any.

        Raises:
            SwapExecutionError: If the swap fails (state untouched)
            ReentrancyRejected: If a cycle is running
        """
        with self._guarded("rebalance"):
            return self._rebalance()

    def execute_payroll(self, entries: list[PayrollEntry]) -> PayrollResult:
        """Pay ``entries`` if today is payment day.

        Raises:
            ReentrancyRejected: If a cycle is running
        """
        with self._guarded("executePayroll"):
            return self._execute_payroll(entries, self._clock())

    @with_trace_id
    def run_cycle(self, entries: list[PayrollEntry]) -> CycleReport:
        """Run one cycle: yield refresh, rebalance, payroll on payment day.

        Never raises for operational failures; the outcome is on the
        returned report and in the status log.
        """
        report = CycleReport(outcome=CycleOutcome.FAILED, started_at=datetime.now())

        if not self._try_enter():
            self.status_log.add("Agent cycle already running. Skipping.", Severity.WARNING, "runCycle")
            record_cycle(self.agent_id, CycleOutcome.REJECTED.value, 0.0)
            report.outcome = CycleOutcome.REJECTED
            report.finished_at = datetime.now()
            return report

        self.cycle_count += 1
        start = time.time()
        try:
            with log_context(agent_id=self.agent_id, cycle=self.cycle_count):
                final = self._run_phases(report, entries)
        finally:
            self._leave()

        self.last_outcome = CycleOutcome(final.value)
        report.outcome = self.last_outcome
        report.finished_at = datetime.now()
        record_cycle(self.agent_id, report.outcome.value, time.time() - start)
        update_treasury_value(self.agent_id, float(self.ledger.total))
        return report

    def _run_phases(self, report: CycleReport, entries: list[PayrollEntry]) -> CyclePhase:
        try:
            self.status_log.add("Starting agent cycle...", Severity.INFO, "runCycle")

            report.yield_info = self._check_yield()

            try:
                report.rebalance_tx = self._rebalance()
            except Exception as e:
                log.warning("Rebalance failed, continuing cycle: {}", e)

            today = self._clock()
            if self.is_payment_day(today):
                pending = [e for e in entries if e.status == PayrollStatus.PENDING]
                if pending:
                    report.payroll = self._execute_payroll(pending, today)

            self.status_log.add("Agent cycle completed successfully!", Severity.SUCCESS, "runCycle")
            return CyclePhase.COMPLETED

        except Exception as e:
            report.error = str(e)
            self.status_log.add(f"Agent cycle failed: {e}", Severity.ERROR, "runCycle")
            record_error(self.agent_id, type(e).__name__)
            return CyclePhase.FAILED

    def run_autonomous(
        self,
        entries_source: Callable[[], list[PayrollEntry]],
        duration_hours: float = 24,
        interval_seconds: int = 3600,
        max_cycles: int | None = None,
        on_report: Callable[[CycleReport], None] | None = None,
    ) -> list[CycleReport]:
        """Run cycles on a fixed interval.

        Args:
            entries_source: Returns the current payroll entries for each cycle
            duration_hours: How long to run
            interval_seconds: Seconds between cycles
            max_cycles: Stop after this many cycles, if set
            on_report: Called with each cycle report before the next cycle
        """
        end_time = time.time() + duration_hours * 3600
        reports: list[CycleReport] = []

        log.info(
            "Starting autonomous treasury management for {} hours (interval: {}s)",
            duration_hours,
            interval_seconds
        )

        try:
            while time.time() < end_time:
                report = self.run_cycle(entries_source())
                reports.append(report)
                if on_report:
                    on_report(report)

                if max_cycles is not None and len(reports) >= max_cycles:
                    break

                time.sleep(interval_seconds)

        except KeyboardInterrupt:
            log.info("Autonomous treasury management stopped by user")

        log.info("Autonomous treasury management finished after {} cycles", len(reports))
        return reports

    def _check_yield(self) -> YieldInfo:
        action = "checkYields"
        self.status_log.add("Checking yields from Arc RWA vault...", Severity.INFO, action)

        try:
            rate = to_decimal(self.gateway.get_yield_rate())
            if not rate.is_finite():
                raise YieldSourceError(f"Vault returned a non-finite rate: {rate}")
        except Exception as e:
            self.status_log.add(f"Failed to check yields: {e}", Severity.ERROR, action)
            record_error(self.agent_id, "yield_source")
            if isinstance(e, YieldSourceError):
                raise
            raise YieldSourceError(f"Yield lookup failed: {e}") from e

        new_value = self.ledger.apply_yield(rate)
        self.status_log.add(
            f"Arc vault APY: {rate}% | {self.yield_token.symbol} value updated to {new_value}",
            Severity.SUCCESS,
            action,
        )
        return YieldInfo(rate=rate, source=self.config.yield_source, last_updated=datetime.now())

    def _rebalance(self) -> str | None:
        action = "rebalance"
        self.status_log.add("Checking if rebalancing is needed...", Severity.INFO, action)

        try:
            decision = self.policy.decide(self.ledger.snapshot(), self.config)

            if isinstance(decision, NoAction):
                if decision.reason == DecisionReason.INSUFFICIENT_YIELD_ASSET:
                    self.status_log.add(
                        f"Insufficient {self.yield_token.symbol} balance for rebalancing "
                        f"(short {decision.shortfall}). Need to wait for yields.",
                        Severity.WARNING,
                        action,
                    )
                else:
                    self.status_log.add(
                        f"{self.reserve_token.symbol} balance sufficient. No rebalancing needed.",
                        Severity.INFO,
                        action,
                    )
                return None

            self.status_log.add(
                f"{self.reserve_token.symbol} balance below minimum. Swapping "
                f"{decision.amount} {self.reserve_token.symbol} worth of {self.yield_token.symbol}...",
                Severity.WARNING,
                action,
            )
            tx_hash = self.swapper.swap(decision, self.ledger, self.gateway)

        except Exception as e:
            self.status_log.add(f"Rebalancing failed: {e}", Severity.ERROR, action)
            record_error(self.agent_id, "rebalance")
            raise

        record_swap(self.agent_id, float(decision.amount))
        self.status_log.add(
            f"Rebalancing complete! Swapped {self.yield_token.symbol} -> "
            f"{self.reserve_token.symbol}. TX: {tx_hash[:10]}...",
            Severity.SUCCESS,
            action,
        )
        return tx_hash

    def _execute_payroll(self, entries: list[PayrollEntry], today: date) -> PayrollResult:
        action = "executePayroll"
        self.status_log.add(
            f"Starting payroll execution for {len(entries)} recipients...", Severity.INFO, action
        )

        if not self.is_payment_day(today):
            self.status_log.add(
                f"Not payment day (day {self.config.payment_day}). Skipping execution.",
                Severity.INFO,
                action,
            )
            return PayrollResult()

        try:
            self._rebalance()
        except Exception as e:
            log.warning("Pre-payroll rebalance failed, paying from current reserve: {}", e)

        return self.payroll_executor.execute_batch(entries, self.ledger, self.gateway, self.config)

