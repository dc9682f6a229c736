#!/usr/bin/env python3
"""
Prepauta Batch Analyzer - CLI Entry Point

Analyses a batch of labour-lawsuit documents: files sharing a case number
are grouped (filing plus responses), each group is sent to the configured
LLM provider with bounded concurrency, and every result is saved to the
analyses API (or kept in memory with --dry-run).

Usage:
    uv run python main.py ./pauta/
    uv run python main.py a.pdf b.pdf --provider gemini --concurrency 5
    uv run python main.py ./pauta/ --dry-run --output results.json

Environment:
    ANTHROPIC_API_KEY / GEMINI_API_KEY / OPENAI_API_KEY / XAI_API_KEY:
        Key for the selected provider
    ANALISADOR_API_URL: LLM API relay base URL
    ANALISADOR_PERSISTENCE_URL, ANALISADOR_PERSISTENCE_TOKEN:
        Analyses API location and bearer token
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from clients.analyses_client import (
    AnalysesClient,
    AnalysisStore,
    InMemoryAnalysisStore,
    is_valid_hearing_date,
)
from extraction.text_extractor import MAX_FILE_SIZE, DocumentTextExtractor
from models.batch import WorkItem
from models.errors import AnalyzerError
from pipeline.analysis_pipeline import AnalysisPipeline, PipelineOptions
from pipeline.batch_executor import BatchExecutor
from pipeline.config import AISettings, AnalyzerConfig, ProviderName
from pipeline.grouping import group_work_items
from pipeline.metrics import BatchProgress, TokenMetrics
from pipeline.resilient_caller import ResilientCaller

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".pdf", ".txt")


def collect_files(paths: list[str]) -> list[Path]:
    """
    Expand files and directories into the list of documents to analyse.

    Unsupported types, files over the size limit and repeated file names
    are skipped with a warning.
    """
    candidates: list[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            candidates.extend(sorted(p for p in path.rglob("*") if p.is_file()))
        elif path.is_file():
            candidates.append(path)
        else:
            logger.warning(f"Not found: {path}")

    files: list[Path] = []
    seen_names: set[str] = set()
    for path in candidates:
        if path.suffix.lower() not in SUPPORTED_SUFFIXES:
            logger.debug(f"Skipping unsupported file: {path.name}")
            continue
        if path.name in seen_names:
            logger.warning(f"Skipping duplicate file name: {path.name}")
            continue
        if path.stat().st_size > MAX_FILE_SIZE:
            logger.warning(f"Skipping {path.name}: larger than {MAX_FILE_SIZE // (1024 * 1024)}MB")
            continue
        seen_names.add(path.name)
        files.append(path)
    return files


def print_progress(progress: BatchProgress) -> None:
    print(
        f"[{progress.processed}/{progress.total}] "
        f"{progress.success} ok, {progress.error} failed ({progress.percent:.0f}%)"
    )


def hearing_date(value: str) -> str:
    """argparse type for --data-pauta."""
    if not is_valid_hearing_date(value):
        raise argparse.ArgumentTypeError(f"expected a date as YYYY-MM-DD, got {value!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prepauta Batch Analyzer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    uv run python main.py ./pauta/
    uv run python main.py ./pauta/ --provider openai --model gpt-5.2
    uv run python main.py ./pauta/ --dry-run --output results.json
        """,
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="PDF/TXT files or directories containing them",
    )
    parser.add_argument(
        "--provider", "-p",
        choices=[p.value for p in ProviderName],
        help="LLM provider (default: ANALISADOR_PROVIDER or claude)",
    )
    parser.add_argument(
        "--model", "-m",
        type=str,
        help="Model id for the selected provider",
    )
    parser.add_argument(
        "--concurrency", "-c",
        type=int,
        help="Units analysed at once, 1-10 (default: 3)",
    )
    parser.add_argument(
        "--no-stream",
        action="store_true",
        help="Use the non-streaming endpoints",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Keep results in memory instead of saving them",
    )
    parser.add_argument(
        "--data-pauta",
        type=hearing_date,
        help="Hearing date (YYYY-MM-DD) stored with every analysis",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write progress, outcomes and results as JSON to this file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def build_store(config: AnalyzerConfig, dry_run: bool) -> AnalysisStore:
    if dry_run:
        return InMemoryAnalysisStore()
    if not config.persistence_url or not config.persistence_token:
        raise AnalyzerError(
            "ANALISADOR_PERSISTENCE_URL and ANALISADOR_PERSISTENCE_TOKEN must be set "
            "(or use --dry-run)"
        )
    return AnalysesClient(config.persistence_url, config.persistence_token)


async def write_output(
    path: Path,
    executor: BatchExecutor,
    progress: BatchProgress,
    metrics: TokenMetrics,
    store: AnalysisStore,
) -> None:
    results = {}
    for outcome in executor.outcomes:
        if outcome.analysis_id:
            saved = await store.get(outcome.analysis_id)
            if saved is not None:
                results[outcome.analysis_id] = saved.resultado.to_dict()

    payload = {
        "progress": progress.to_dict(),
        "outcomes": [o.to_dict() for o in executor.outcomes],
        "tokens": metrics.snapshot(),
        "results": results,
    }
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"Results written to {path}")


async def run_batch(args: argparse.Namespace) -> int:
    """Run one batch; returns the process exit code."""
    config = AnalyzerConfig.from_env()
    if args.concurrency is not None:
        config = replace(config, concurrency_limit=args.concurrency)

    settings = AISettings.from_env()
    if args.provider or args.model:
        settings = settings.with_provider(args.provider or settings.provider, args.model)
    if args.no_stream:
        settings.use_streaming = False

    logger.debug(f"{config!r}")
    logger.info(f"{settings!r}")

    files = collect_files(args.paths)
    if not files:
        print("No PDF or TXT files to analyse.")
        return 0

    items = [WorkItem.from_path(path) for path in files]
    units = group_work_items(items)
    print(f"{len(files)} files grouped into {len(units)} lawsuits")

    # Fail fast on a missing key instead of failing every unit
    settings.api_key_for(settings.provider)

    store = build_store(config, args.dry_run)
    metrics = TokenMetrics()
    executor = BatchExecutor(config.concurrency_limit, on_progress=print_progress)

    try:
        async with ResilientCaller(settings, metrics=metrics, config=config) as caller:
            pipeline = AnalysisPipeline(
                DocumentTextExtractor(min_text_length=config.min_text_length),
                caller,
                store,
                PipelineOptions(
                    max_parse_retries=config.max_parse_retries,
                    parse_retry_delay=config.parse_retry_delay,
                    data_pauta=args.data_pauta,
                ),
            )
            progress = await executor.run(units, pipeline)

        print(f"\nDone: {progress.success} analysed, {progress.error} failed "
              f"in {progress.duration_s:.1f}s")
        print(f"Tokens: {metrics.summary()}")
        for item in items:
            if item.error:
                print(f"  {item.label}: {item.error}")

        if args.output:
            await write_output(Path(args.output), executor, progress, metrics, store)
    finally:
        if isinstance(store, AnalysesClient):
            await store.close()

    return 0 if progress.success > 0 or progress.total == 0 else 1


async def main() -> int:
    """Main entry point."""
    args = build_parser().parse_args()

    # Set logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)

    # Load environment variables
    load_dotenv()

    try:
        return await run_batch(args)
    except AnalyzerError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
