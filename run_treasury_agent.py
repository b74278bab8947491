#!/usr/bin/env python3
"""
Treasury Agent Runner
---------------------
Runs the AutoCFO treasury agent against the simulated or on-chain gateway.
"""

import argparse
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Dict, List

import yaml
from loguru import logger

from autocfo.agents.treasury import (
    CycleReport,
    PayrollEntry,
    SimulatedGateway,
    TreasuryAgent,
    TreasuryState,
    apply_payroll_result,
)
from autocfo.core.config import config_manager, settings
from autocfo.core.logging import configure_logging
from autocfo.core.metrics import get_metrics_collector

# Upper bound when running a fixed number of cycles
UNBOUNDED_HOURS = 24 * 365

DEMO_PAYROLL = [
    {"id": "1", "recipient": "alice.eth", "amount": "5000", "due_in_days": 5},
    {"id": "2", "recipient": "bob.eth", "amount": "3000", "due_in_days": 7},
    {"id": "3", "recipient": "charlie.eth", "amount": "2000", "due_in_days": 10},
]


class TreasuryRunner:
    """Builds an agent from a payroll YAML file and runs cycles."""

    def __init__(self, payroll_path: str | None, today: date | None = None):
        self.payroll_path = Path(payroll_path) if payroll_path else None
        self.data = self._load_payroll_file()
        self.today = today
        self.entries = self._build_entries()

    def _load_payroll_file(self) -> Dict:
        if not self.payroll_path:
            return {"payroll": DEMO_PAYROLL}

        with open(self.payroll_path) as f:
            data = yaml.safe_load(f) or {}

        logger.info("Loaded payroll file: {}", self.payroll_path.name)
        return data

    def _build_entries(self) -> List[PayrollEntry]:
        now = datetime.now()
        entries = []
        for item in self.data.get("payroll", []):
            entries.append(PayrollEntry(
                id=str(item["id"]),
                recipient=item["recipient"],
                amount=str(item["amount"]),
                due_date=item.get("due_date") or now + timedelta(days=item.get("due_in_days", 0)),
            ))
        return entries

    def create_gateway(self, kind: str):
        if kind == "onchain":
            from autocfo.blockchain.client import ChainClient
            from autocfo.blockchain.gateway import OnChainGateway

            return OnChainGateway.from_config(ChainClient())

        names = self.data.get("names") or {
            item["recipient"]: f"0x{int(item['id']):040x}" for item in DEMO_PAYROLL
        }
        return SimulatedGateway.for_tokens(
            config_manager.get_all_tokens(),
            yield_symbol=settings.treasury.yield_token,
            yield_rate=self.data.get("yield_rate"),
            name_book=names,
        )

    def create_agent(self, gateway_kind: str) -> TreasuryAgent:
        initial = self.data.get("treasury")
        clock = (lambda: self.today) if self.today else date.today
        agent = TreasuryAgent(
            gateway=self.create_gateway(gateway_kind),
            config=settings.treasury,
            initial_state=TreasuryState.from_dict(initial) if initial else None,
            clock=clock,
        )
        logger.success("Created treasury agent: {}", agent.agent_id)
        return agent

    def _record(self, report: CycleReport) -> None:
        if report.payroll:
            self.entries = apply_payroll_result(self.entries, report.payroll)
        logger.info("Cycle finished: {}", report.outcome.value)

    def run(
        self,
        gateway_kind: str,
        cycles: int | None,
        interval: int,
        hours: float | None = None,
    ) -> TreasuryAgent:
        agent = self.create_agent(gateway_kind)
        agent.run_autonomous(
            lambda: self.entries,
            duration_hours=hours if hours is not None else UNBOUNDED_HOURS,
            interval_seconds=interval,
            max_cycles=cycles,
            on_report=self._record,
        )
        return agent


def print_report(agent: TreasuryAgent) -> None:
    state = agent.get_treasury_state()
    print("\nStatus log:")
    for entry in agent.get_status_log():
        print(f"  {entry.timestamp:%H:%M:%S} [{entry.severity.value:<7}] {entry.message}")

    print("\nTreasury:")
    print(f"  Yield asset: {state.yield_asset.value} ({state.yield_asset.rate}% APY)")
    print(f"  Reserve:     {state.reserve.value}")
    print(f"  Total:       {state.total}")

    counters = get_metrics_collector().get_all_metrics()["counters"]
    print("\nCounters:")
    for key, counter in sorted(counters.items()):
        print(f"  {key}: {counter['value']}")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run the AutoCFO treasury agent")
    parser.add_argument("--payroll", help="Path to payroll YAML (defaults to a demo payroll)")
    parser.add_argument("--gateway", choices=["simulated", "onchain"], default="simulated")
    parser.add_argument("--cycles", type=int, default=1, help="Number of cycles to run")
    parser.add_argument("--hours", type=float, help="Run for this many hours instead of a cycle count")
    parser.add_argument("--interval", type=int, default=0, help="Seconds between cycles")
    parser.add_argument("--today", help="Override today's date (YYYY-MM-DD)")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    parser.add_argument("--log-format", default=settings.log_format, choices=["human", "json"])

    args = parser.parse_args()

    configure_logging(level=args.log_level, format=args.log_format, log_file=settings.log_file)

    today = date.fromisoformat(args.today) if args.today else None
    runner = TreasuryRunner(args.payroll, today=today)
    cycles = None if args.hours is not None else args.cycles
    agent = runner.run(args.gateway, cycles, args.interval, hours=args.hours)
    print_report(agent)


if __name__ == "__main__":
    main()
