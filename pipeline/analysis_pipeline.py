"""
Per-unit analysis: extract, prompt, call, parse, persist.

AnalysisPipeline is the callable the batch executor runs for each work
unit. Every failure it hits propagates as an exception so the executor can
record it against the unit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from clients.analyses_client import AnalysisMetadata, AnalysisStore
from clients.base_provider import Message
from extraction.prompts import SYSTEM_PROMPT, build_analysis_prompt
from extraction.result_parser import parse_analysis_result
from extraction.text_extractor import TextExtractor
from models.analysis import AnalysisResult
from models.batch import WorkItem, WorkUnit
from models.errors import ParseError, PersistenceError
from pipeline.resilient_caller import CancelToken, ResilientCaller, SleepFn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOptions:
    """
    Attributes:
        max_parse_retries: Extra calls made when the output cannot be parsed.
        parse_retry_delay: Pause before each extra call, in seconds.
        stream: Force streaming on or off; None follows the AI settings.
        data_pauta: Hearing date stored with every analysis of the batch.
    """

    max_parse_retries: int = 2
    parse_retry_delay: float = 2.0
    stream: bool | None = None
    data_pauta: str | None = None


@dataclass(frozen=True)
class CompletedAnalysis:
    """A persisted analysis and the id the store assigned to it."""

    analysis_id: str
    result: AnalysisResult


class AnalysisPipeline:
    """
    Analyse one lawsuit from its documents.

    The filing goes into the prompt first, then amendments and responses in
    upload order. A unit made only of responses is sent with no filing.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        caller: ResilientCaller,
        store: AnalysisStore,
        options: PipelineOptions | None = None,
        sleep: SleepFn = asyncio.sleep,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self.extractor = extractor
        self.caller = caller
        self.store = store
        self.options = options or PipelineOptions()
        self.cancel_token = cancel_token
        self._sleep = sleep

    async def __call__(self, unit: WorkUnit) -> CompletedAnalysis:
        if unit.is_degenerate:
            filing: WorkItem | None = None
            amendments: tuple[WorkItem, ...] = ()
            responses = (unit.primary, *unit.secondaries)
        else:
            filing = unit.primary
            amendments = unit.extras
            responses = unit.secondaries

        peticao = await self.extractor.extract(filing.source) if filing else ""
        emendas = [await self.extractor.extract(item.source) for item in amendments]
        contestacoes = [await self.extractor.extract(item.source) for item in responses]

        prompt = build_analysis_prompt(peticao, emendas, contestacoes)
        result = await self.analyse(prompt, unit.key)

        metadata = AnalysisMetadata(
            nome_arquivo_peticao=filing.label if filing else None,
            nomes_arquivos_emendas=tuple(item.label for item in amendments),
            nomes_arquivos_contestacoes=tuple(item.label for item in responses),
            data_pauta=self.options.data_pauta,
        )
        analysis_id = await self.store.save(result, metadata)
        if not analysis_id:
            raise PersistenceError("Failed to save analysis: no id returned")

        return CompletedAnalysis(analysis_id=analysis_id, result=result)

    async def analyse(self, prompt: str, label: str = "") -> AnalysisResult:
        """
        Call the model and parse its answer, calling again on unparseable output.

        Raises:
            ParseError: The output was unparseable on every attempt.
            BatchCancelledError: The cancel token was set before a retry.
        """
        attempts = self.options.max_parse_retries + 1
        for attempt in range(attempts):
            raw = await self.caller.call(
                [Message.user(prompt)],
                stream=self.options.stream,
                system_prompt=SYSTEM_PROMPT,
            )
            try:
                return parse_analysis_result(raw)
            except ParseError as e:
                if attempt >= attempts - 1:
                    logger.error(f"Unit {label}: unparseable output after {attempts} attempts")
                    raise
                logger.warning(
                    f"Unit {label}: unparseable output ({e}), "
                    f"retrying in {self.options.parse_retry_delay}s"
                )
                if self.cancel_token is not None:
                    self.cancel_token.raise_if_cancelled()
                await self._sleep(self.options.parse_retry_delay)

        raise ParseError("No analysis attempts made")
