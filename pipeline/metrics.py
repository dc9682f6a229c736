"""
Metrics tracking for batch analysis runs.

This module provides:
- Session-wide token accounting across every provider call (TokenMetrics)
- Batch progress counters published by the executor (BatchProgress)
- Per-unit outcomes for reporting (UnitOutcome)
- Cost estimation based on model pricing
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any

from models.usage import Usage


# =============================================================================
# Model Pricing Configuration (USD per 1M tokens)
# =============================================================================

MODEL_PRICING: dict[str, dict[str, float]] = {
    # Anthropic
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-sonnet-4-5": {"input": 3.00, "output": 15.00},
    "claude-opus-4-5": {"input": 5.00, "output": 25.00},
    "claude-haiku-4-5": {"input": 1.00, "output": 5.00},
    # Google
    "gemini-2.5-pro": {"input": 1.25, "output": 10.00},
    "gemini-2.5-flash": {"input": 0.30, "output": 2.50},
    "gemini-3-flash-preview": {"input": 0.50, "output": 3.00},
    # OpenAI
    "gpt-5.2": {"input": 1.75, "output": 14.00},
    "gpt-5.2-chat-latest": {"input": 1.75, "output": 14.00},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    # xAI
    "grok-4-1-fast-reasoning": {"input": 0.20, "output": 0.50},
    "grok-4-1-fast-non-reasoning": {"input": 0.20, "output": 0.50},
    # Default fallback (conservative estimate)
    "default": {"input": 3.00, "output": 15.00},
}

# Cached reads are billed at a tenth of the input price, cache writes at 1.25x
CACHE_READ_FACTOR = 0.1
CACHE_WRITE_FACTOR = 1.25


def estimate_cost(model: str, usage: Usage) -> float:
    """
    Estimate cost in USD for one call.

    Uses known pricing for supported models, falls back to conservative
    estimates for unknown models.

    Examples:
        >>> round(estimate_cost("gpt-4.1", Usage(input_tokens=1000, output_tokens=500)), 6)
        0.006
    """
    pricing = MODEL_PRICING.get(model, MODEL_PRICING["default"])

    input_cost = (usage.input_tokens / 1_000_000) * pricing["input"]
    output_cost = (usage.output_tokens / 1_000_000) * pricing["output"]
    cache_cost = (
        (usage.cache_read_tokens / 1_000_000) * pricing["input"] * CACHE_READ_FACTOR
        + (usage.cache_write_tokens / 1_000_000) * pricing["input"] * CACHE_WRITE_FACTOR
    )

    return input_cost + output_cost + cache_cost


# =============================================================================
# Token Metrics (session-wide)
# =============================================================================


class TokenMetrics:
    """
    Running token totals for a whole session.

    One instance is owned by the caller and shared with every provider
    adapter; each successful call merges its usage in. Updates are guarded by
    a lock so concurrent units cannot lose increments. Totals only go back to
    zero through an explicit reset().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._input_tokens = 0
        self._output_tokens = 0
        self._cache_read_tokens = 0
        self._cache_write_tokens = 0
        self._request_count = 0
        self._cost_usd = 0.0

    def add(self, usage: Usage, model: str | None = None) -> None:
        """Merge the usage of one successful call."""
        cost = estimate_cost(model, usage) if model else 0.0
        with self._lock:
            self._input_tokens += usage.input_tokens
            self._output_tokens += usage.output_tokens
            self._cache_read_tokens += usage.cache_read_tokens
            self._cache_write_tokens += usage.cache_write_tokens
            self._request_count += 1
            self._cost_usd += cost

    def reset(self) -> None:
        """Zero all counters (explicit user action)."""
        with self._lock:
            self._input_tokens = 0
            self._output_tokens = 0
            self._cache_read_tokens = 0
            self._cache_write_tokens = 0
            self._request_count = 0
            self._cost_usd = 0.0

    @property
    def input_tokens(self) -> int:
        return self._input_tokens

    @property
    def output_tokens(self) -> int:
        return self._output_tokens

    @property
    def cache_read_tokens(self) -> int:
        return self._cache_read_tokens

    @property
    def cache_write_tokens(self) -> int:
        return self._cache_write_tokens

    @property
    def request_count(self) -> int:
        return self._request_count

    @property
    def total_tokens(self) -> int:
        return self._input_tokens + self._output_tokens

    @property
    def cost_usd(self) -> float:
        return self._cost_usd

    def snapshot(self) -> dict[str, Any]:
        """Consistent copy of all counters."""
        with self._lock:
            return {
                "input_tokens": self._input_tokens,
                "output_tokens": self._output_tokens,
                "cache_read_tokens": self._cache_read_tokens,
                "cache_write_tokens": self._cache_write_tokens,
                "request_count": self._request_count,
                "total_tokens": self._input_tokens + self._output_tokens,
                "cost_usd": self._cost_usd,
            }

    def summary(self) -> str:
        """One-line summary for console output."""
        snap = self.snapshot()
        return (
            f"{snap['request_count']} requests, "
            f"{snap['input_tokens']:,} in / {snap['output_tokens']:,} out tokens "
            f"(cache read {snap['cache_read_tokens']:,}, "
            f"cache write {snap['cache_write_tokens']:,}), "
            f"~${snap['cost_usd']:.4f}"
        )

    def __repr__(self) -> str:
        return f"TokenMetrics({self.summary()})"


# =============================================================================
# Batch Progress
# =============================================================================


@dataclass
class BatchProgress:
    """
    Aggregate progress of one batch run.

    Owned by the batch executor; callers receive copies. Counters only grow
    during a run and `processed` always equals `success + error`.

    Attributes:
        total: Number of work units in the run.
        success: Units that finished successfully.
        error: Units that failed.
        cancelled: True when the run stopped early on a cancel request.
        started_at: Unix timestamp of the start of the run.
        finished_at: Unix timestamp of the end of the run (None while running).
    """

    total: int = 0
    success: int = 0
    error: int = 0
    cancelled: bool = False
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None

    @property
    def processed(self) -> int:
        return self.success + self.error

    @property
    def remaining(self) -> int:
        return self.total - self.processed

    @property
    def is_complete(self) -> bool:
        return self.processed >= self.total

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return (self.processed / self.total) * 100

    @property
    def duration_s(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at

    def copy(self) -> BatchProgress:
        return BatchProgress(
            total=self.total,
            success=self.success,
            error=self.error,
            cancelled=self.cancelled,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total": self.total,
            "processed": self.processed,
            "success": self.success,
            "error": self.error,
            "cancelled": self.cancelled,
            "duration_s": self.duration_s,
        }

    def __repr__(self) -> str:
        status = "cancelled" if self.cancelled else (
            "completed" if self.finished_at else "in_progress"
        )
        return (
            f"BatchProgress({status}, {self.processed}/{self.total}, "
            f"success={self.success}, error={self.error})"
        )


@dataclass
class UnitOutcome:
    """Result of running the pipeline on one work unit."""

    unit_key: str
    success: bool
    analysis_id: str | None = None
    error: str | None = None
    latency_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "unit_key": self.unit_key,
            "success": self.success,
            "analysis_id": self.analysis_id,
            "error": self.error,
            "latency_ms": self.latency_ms,
        }
