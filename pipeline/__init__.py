"""
Pipeline infrastructure for the prepauta batch analyzer.

Uploaded documents become WorkItems, the grouper pairs filings with their
responses into WorkUnits, and the BatchExecutor drives each unit through
the AnalysisPipeline with bounded concurrency.

Modules:
    config: AnalyzerConfig and AISettings
    grouping: Case-number extraction and unit grouping
    resilient_caller: Provider routing with retry and backoff
    batch_executor: Chunked concurrent batch runner
    analysis_pipeline: Extract, prompt, call, parse and persist one unit
    metrics: Token usage, cost estimates and batch progress

Example:
    >>> from pipeline import AnalysisPipeline, BatchExecutor, ResilientCaller
    >>> from pipeline import group_work_items
    >>>
    >>> units = group_work_items(items)
    >>> async with ResilientCaller(AISettings.from_env()) as caller:
    ...     pipeline = AnalysisPipeline(DocumentTextExtractor(), caller, store)
    ...     progress = await BatchExecutor(concurrency_limit=3).run(units, pipeline)
    >>> print(f"{progress.success}/{progress.total} analysed")
"""

from pipeline.analysis_pipeline import (
    AnalysisPipeline,
    CompletedAnalysis,
    PipelineOptions,
)
from pipeline.batch_executor import BatchExecutor
from pipeline.config import (
    AISettings,
    AnalyzerConfig,
    ProviderName,
    clamp_concurrency,
)
from pipeline.grouping import (
    detect_role,
    extract_group_key,
    group_work_items,
)
from pipeline.metrics import (
    MODEL_PRICING,
    BatchProgress,
    TokenMetrics,
    UnitOutcome,
    estimate_cost,
)
from pipeline.resilient_caller import (
    PROVIDER_CLIENTS,
    CancelToken,
    ResilientCaller,
)

__all__ = [
    # Configuration
    "AISettings",
    "AnalyzerConfig",
    "ProviderName",
    "clamp_concurrency",
    # Grouping
    "detect_role",
    "extract_group_key",
    "group_work_items",
    # Calls
    "PROVIDER_CLIENTS",
    "CancelToken",
    "ResilientCaller",
    # Batch
    "AnalysisPipeline",
    "BatchExecutor",
    "CompletedAnalysis",
    "PipelineOptions",
    # Metrics
    "MODEL_PRICING",
    "BatchProgress",
    "TokenMetrics",
    "UnitOutcome",
    "estimate_cost",
]
