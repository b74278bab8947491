"""Status log bound and ordering."""

import pytest

from autocfo.agents.treasury import Severity, StatusLog


class TestStatusLog:
    """FIFO ring of status entries."""

    def test_bounded_to_capacity(self):
        """Sixty appends keep the fifty most recent."""
        status_log = StatusLog(capacity=50)
        for i in range(60):
            status_log.add(f"message {i}")

        entries = status_log.entries()
        assert len(entries) == 50
        assert entries[0].message == "message 10"
        assert entries[-1].message == "message 59"

    def test_entries_returns_copy(self):
        status_log = StatusLog()
        status_log.add("first")
        entries = status_log.entries()
        entries.clear()
        assert len(status_log) == 1

    def test_severity_and_action_recorded(self):
        status_log = StatusLog()
        entry = status_log.add("Swap failed", Severity.ERROR, "rebalance")

        assert entry.severity == Severity.ERROR
        assert entry.action == "rebalance"
        assert entry.timestamp is not None

    def test_count_by_severity(self):
        status_log = StatusLog()
        status_log.add("a", Severity.INFO)
        status_log.add("b", Severity.WARNING)
        status_log.add("c", Severity.WARNING)

        assert status_log.count() == 3
        assert status_log.count(Severity.WARNING) == 2
        assert status_log.count(Severity.ERROR) == 0

    def test_severity_accepts_plain_strings(self):
        entry = StatusLog().add("done", "success")
        assert entry.severity is Severity.SUCCESS

    def test_zero_capacity_rejected(self):
        with pytest.raises(ValueError):
            StatusLog(capacity=0)
