"""
Tests for token accounting and batch progress.

Tests cover:
- Cost estimation
- TokenMetrics accumulation, reset and thread safety
- BatchProgress derived values and copies
"""

import threading

import pytest

from models.usage import Usage
from pipeline.metrics import (
    MODEL_PRICING,
    BatchProgress,
    TokenMetrics,
    UnitOutcome,
    estimate_cost,
)


class TestEstimateCost:
    """Tests for cost estimation."""

    def test_known_model(self):
        usage = Usage(input_tokens=1_000_000, output_tokens=1_000_000)
        assert estimate_cost("gpt-4.1", usage) == pytest.approx(10.0)

    def test_unknown_model_uses_default(self):
        usage = Usage(input_tokens=1_000_000)
        assert estimate_cost("modelo-desconhecido", usage) == pytest.approx(
            MODEL_PRICING["default"]["input"]
        )

    def test_cache_tokens_priced(self):
        usage = Usage(cache_read_tokens=1_000_000, cache_write_tokens=1_000_000)
        # 3.00 * 0.1 + 3.00 * 1.25
        assert estimate_cost("claude-sonnet-4-5", usage) == pytest.approx(4.05)


class TestTokenMetrics:
    """Tests for session-wide token totals."""

    def test_accumulates(self):
        metrics = TokenMetrics()
        metrics.add(Usage(input_tokens=100, output_tokens=20, cache_read_tokens=5), "gpt-4.1")
        metrics.add(Usage(input_tokens=50, output_tokens=10, cache_write_tokens=7))

        assert metrics.input_tokens == 150
        assert metrics.output_tokens == 30
        assert metrics.cache_read_tokens == 5
        assert metrics.cache_write_tokens == 7
        assert metrics.total_tokens == 180
        assert metrics.request_count == 2
        assert metrics.cost_usd > 0

    def test_reset(self):
        metrics = TokenMetrics()
        metrics.add(Usage(input_tokens=10), "gpt-4.1")
        metrics.reset()
        assert metrics.snapshot() == {
            "input_tokens": 0,
            "output_tokens": 0,
            "cache_read_tokens": 0,
            "cache_write_tokens": 0,
            "request_count": 0,
            "total_tokens": 0,
            "cost_usd": 0.0,
        }

    def test_concurrent_adds(self):
        """Increments from many threads are not lost."""
        metrics = TokenMetrics()

        def worker():
            for _ in range(1000):
                metrics.add(Usage(input_tokens=1, output_tokens=2))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert metrics.input_tokens == 8000
        assert metrics.output_tokens == 16000
        assert metrics.request_count == 8000

    def test_summary(self):
        metrics = TokenMetrics()
        metrics.add(Usage(input_tokens=1234, output_tokens=56))
        assert "1 requests" in metrics.summary()
        assert "1,234 in" in metrics.summary()


class TestBatchProgress:
    """Tests for progress counters."""

    def test_derived_values(self):
        progress = BatchProgress(total=4, success=2, error=1)
        assert progress.processed == 3
        assert progress.remaining == 1
        assert not progress.is_complete
        assert progress.percent == 75.0

    def test_copy_is_independent(self):
        progress = BatchProgress(total=2)
        snapshot = progress.copy()
        progress.success += 1
        assert snapshot.success == 0

    def test_to_dict(self):
        data = BatchProgress(total=1, success=1, finished_at=0.0, started_at=0.0).to_dict()
        assert data["processed"] == 1
        assert data["duration_s"] == 0.0

    def test_outcome_to_dict(self):
        outcome = UnitOutcome(unit_key="k", success=False, error="boom")
        assert outcome.to_dict()["error"] == "boom"
        assert outcome.to_dict()["analysis_id"] is None
