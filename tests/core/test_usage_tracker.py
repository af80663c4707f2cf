"""Tests for the LLM cost ledger."""

import threading
from datetime import date

import pytest

from llmtestkit.core.testkit_core.llm.usage_tracker import CostLedger


class TestCostLedger:
    """Test recording and aggregation."""

    def test_in_memory_ledger(self):
        """Test a ledger without a data directory."""
        ledger = CostLedger()
        ledger.record("openai", "gpt-4", input_tokens=100, output_tokens=50, cost=0.0045)
        ledger.record("mock", "mock-playwright", input_tokens=10, output_tokens=5, estimated=True)

        stats = ledger.get_stats()
        assert stats["request_count"] == 2
        assert stats["total_tokens"] == 165
        assert stats["total_cost"] == pytest.approx(0.0045)
        assert stats["estimated_requests"] == 1
        assert stats["cost_by_provider"] == {"openai": pytest.approx(0.0045), "mock": 0.0}
        assert ledger.ledger_file is None

    def test_entries_persist(self, tmp_path):
        """Test that entries survive a reload."""
        ledger = CostLedger(tmp_path)
        entry = ledger.record("gemini", "gemini-pro", input_tokens=7, output_tokens=3, cost=0.01)
        assert entry.total_tokens == 10

        reloaded = CostLedger(tmp_path)
        assert len(reloaded.entries()) == 1
        assert reloaded.entries()[0].provider == "gemini"
        assert reloaded.total_cost() == pytest.approx(0.01)

    def test_corrupt_lines_skipped(self, tmp_path):
        """Test that a corrupt line does not lose the rest of the ledger."""
        ledger = CostLedger(tmp_path)
        ledger.record("openai", "gpt-4", cost=0.5)
        with open(ledger.ledger_file, "a") as f:
            f.write("{garbage\n")
        ledger.record("openai", "gpt-4", cost=0.25)

        reloaded = CostLedger(tmp_path)
        assert len(reloaded.entries()) == 2
        assert reloaded.total_cost() == pytest.approx(0.75)

    def test_day_stats(self):
        """Test per-day aggregation."""
        ledger = CostLedger()
        ledger.record("openai", "gpt-4", input_tokens=4, output_tokens=6, cost=0.2)

        today = ledger.get_day_stats()
        assert today.request_count == 1
        assert today.input_tokens == 4
        assert today.output_tokens == 6

        assert ledger.get_day_stats(date(2000, 1, 1)).request_count == 0

    def test_empty_stats(self):
        """Test averages on an empty ledger."""
        stats = CostLedger().get_stats()
        assert stats["request_count"] == 0
        assert stats["avg_cost_per_request"] == 0.0

    def test_reset(self, tmp_path):
        """Test that reset clears memory and file."""
        ledger = CostLedger(tmp_path)
        ledger.record("openai", "gpt-4", cost=1.0)
        ledger.reset()

        assert ledger.entries() == []
        assert CostLedger(tmp_path).entries() == []

    def test_concurrent_appends(self, tmp_path):
        """Test that appends from many threads are all persisted intact."""
        ledger = CostLedger(tmp_path)
        start = threading.Barrier(8)

        def worker(n):
            start.wait()
            for _ in range(200):
                ledger.record(f"provider-{n}", "gpt-4", input_tokens=3, output_tokens=1, cost=0.25)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        reloaded = CostLedger(tmp_path)
        stats = reloaded.get_stats()
        assert stats["request_count"] == 1600
        assert stats["total_cost"] == 400.0
        assert stats["total_tokens"] == 6400
        assert stats["cost_by_provider"] == {f"provider-{n}": 50.0 for n in range(8)}
        assert len(ledger.entries()) == 1600
