"""
Persistence for finished analyses.

Two interchangeable stores implement the AnalysisStore protocol:

- AnalysesClient: async client for the `/api/analyses` REST resource
- InMemoryAnalysisStore: process-local store for dry runs and tests

Both raise PersistenceError on failure; the orchestration core only calls
them and surfaces their errors.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from models.analysis import AnalysisResult
from models.errors import PersistenceError

logger = logging.getLogger(__name__)

HEARING_OUTCOMES = (
    "acordo",
    "sentenca",
    "sentenca_marcada",
    "audiencia_encerramento",
    "adiamento",
    "redesignada_notificacao",
    "cancelada",
    "desistencia",
    "arquivamento",
    "instrucao_encerrada",
    "aguardando_pericia",
    "suspenso",
)

UPDATABLE_FIELDS = frozenset(
    {
        "dataPauta",
        "horarioAudiencia",
        "resultadoAudiencia",
        "pendencias",
        "observacoes",
        "sintese",
    }
)

MAX_BATCH_IDS = 1000

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


# =============================================================================
# Data classes
# =============================================================================


@dataclass(frozen=True)
class AnalysisMetadata:
    """File names and hearing data saved alongside a result."""

    nome_arquivo_peticao: str | None = None
    nomes_arquivos_emendas: tuple[str, ...] = ()
    nomes_arquivos_contestacoes: tuple[str, ...] = ()
    data_pauta: str | None = None
    horario_audiencia: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "nomeArquivoPeticao": self.nome_arquivo_peticao,
            "nomesArquivosEmendas": list(self.nomes_arquivos_emendas),
            "nomesArquivosContestacoes": list(self.nomes_arquivos_contestacoes),
        }
        if self.data_pauta:
            data["dataPauta"] = self.data_pauta
        if self.horario_audiencia:
            data["horarioAudiencia"] = self.horario_audiencia
        return data


@dataclass(frozen=True)
class ListFilters:
    """Filters for listing saved analyses."""

    search: str | None = None
    resultado: str | None = None
    data_pauta: str | None = None

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.search:
            params["search"] = self.search
        if self.resultado:
            params["resultado"] = self.resultado
        if self.data_pauta:
            params["dataPauta"] = self.data_pauta
        return params


@dataclass
class SavedAnalysis:
    """An analysis as stored by the persistence backend."""

    id: str
    resultado: AnalysisResult
    numero_processo: str | None = None
    reclamante: str | None = None
    reclamadas: list[str] = field(default_factory=list)
    nome_arquivo_peticao: str | None = None
    nomes_arquivos_emendas: list[str] = field(default_factory=list)
    nomes_arquivos_contestacoes: list[str] = field(default_factory=list)
    data_pauta: str | None = None
    horario_audiencia: str | None = None
    resultado_audiencia: str | None = None
    pendencias: list[str] = field(default_factory=list)
    observacoes: str | None = None
    sintese: str | None = None
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SavedAnalysis:
        """Build from the REST API's camelCase JSON."""
        contestacoes = data.get("nomesArquivosContestacoes")
        if contestacoes is None:
            # Older records stored a single response file name
            legacy = data.get("nomeArquivoContestacao")
            contestacoes = [legacy] if legacy else []

        return cls(
            id=str(data["id"]),
            resultado=AnalysisResult.model_validate(data.get("resultado") or {}),
            numero_processo=data.get("numeroProcesso"),
            reclamante=data.get("reclamante"),
            reclamadas=list(data.get("reclamadas") or []),
            nome_arquivo_peticao=data.get("nomeArquivoPeticao"),
            nomes_arquivos_emendas=list(data.get("nomesArquivosEmendas") or []),
            nomes_arquivos_contestacoes=list(contestacoes),
            data_pauta=data.get("dataPauta"),
            horario_audiencia=data.get("horarioAudiencia"),
            resultado_audiencia=data.get("resultadoAudiencia"),
            pendencias=list(data.get("pendencias") or []),
            observacoes=data.get("observacoes"),
            sintese=data.get("sintese"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )

    @classmethod
    def create(
        cls,
        analysis_id: str,
        result: AnalysisResult,
        metadata: AnalysisMetadata,
    ) -> SavedAnalysis:
        """Build the local view of a freshly saved analysis."""
        now = datetime.now(timezone.utc).isoformat()
        return cls(
            id=analysis_id,
            resultado=result,
            numero_processo=resolve_case_number(metadata.nome_arquivo_peticao, result),
            reclamante=result.first_claimant,
            reclamadas=list(result.identificacao.reclamadas),
            nome_arquivo_peticao=metadata.nome_arquivo_peticao,
            nomes_arquivos_emendas=list(metadata.nomes_arquivos_emendas),
            nomes_arquivos_contestacoes=list(metadata.nomes_arquivos_contestacoes),
            data_pauta=metadata.data_pauta,
            horario_audiencia=metadata.horario_audiencia,
            created_at=now,
            updated_at=now,
        )


def resolve_case_number(file_name: str | None, result: AnalysisResult) -> str | None:
    """
    Pick the case number to store.

    The number in the file name is authoritative; the model's reading is used
    only when the file name has none and the model did not answer with a
    "not informed" placeholder.
    """
    # Local import: the pipeline package imports this module.
    from pipeline.grouping import extract_group_key

    from_file = extract_group_key(file_name) if file_name else None
    if from_file:
        return from_file

    from_model = result.identificacao.numero_processo
    if not from_model:
        return None
    lower = from_model.lower()
    if "não informado" in lower or "nao informado" in lower:
        return None
    return from_model


def _matches(analysis: SavedAnalysis, filters: ListFilters) -> bool:
    if filters.resultado and analysis.resultado_audiencia != filters.resultado:
        return False
    if filters.data_pauta and analysis.data_pauta != filters.data_pauta:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = " ".join(
            filter(
                None,
                [
                    analysis.numero_processo,
                    analysis.reclamante,
                    *analysis.reclamadas,
                    analysis.nome_arquivo_peticao,
                ],
            )
        ).lower()
        if needle not in haystack:
            return False
    return True


# =============================================================================
# Store protocol
# =============================================================================


class AnalysisStore(Protocol):
    """Durable store for finished analyses."""

    async def save(self, result: AnalysisResult, metadata: AnalysisMetadata) -> str: ...

    async def get(self, analysis_id: str) -> SavedAnalysis | None: ...

    async def update(self, analysis_id: str, fields: dict[str, Any]) -> None: ...

    async def replace(
        self, analysis_id: str, result: AnalysisResult, metadata: AnalysisMetadata
    ) -> None: ...

    async def delete(self, analysis_id: str) -> None: ...

    async def list(self, filters: ListFilters | None = None) -> list[SavedAnalysis]: ...

    async def update_data_pauta_batch(
        self, ids: Sequence[str], data_pauta: str | None
    ) -> int: ...

    async def delete_batch(self, ids: Sequence[str]) -> int: ...


def is_valid_hearing_date(value: str) -> bool:
    """True for a real calendar date written as YYYY-MM-DD."""
    if not _ISO_DATE.fullmatch(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _check_hearing_date(value: Any) -> None:
    if value is not None and not (isinstance(value, str) and is_valid_hearing_date(value)):
        raise PersistenceError(f"dataPauta must be YYYY-MM-DD or null: {value!r}")


def _check_update_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise PersistenceError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
    outcome = fields.get("resultadoAudiencia")
    if outcome is not None and outcome not in HEARING_OUTCOMES:
        raise PersistenceError(f"Invalid hearing outcome: {outcome}")
    _check_hearing_date(fields.get("dataPauta"))


def _check_batch_ids(ids: Sequence[str]) -> list[str]:
    """Validate a batch id list; duplicates are collapsed, order kept."""
    if isinstance(ids, str) or not ids:
        raise PersistenceError("Batch operations need a non-empty list of ids")
    if len(ids) > MAX_BATCH_IDS:
        raise PersistenceError(f"At most {MAX_BATCH_IDS} analyses per batch operation")
    return list(dict.fromkeys(ids))


# =============================================================================
# REST client
# =============================================================================


class AnalysesClient:
    """
    Async client for the analyses REST API.

    Every request carries the caller's bearer token; the server performs its
    own validation and the client turns non-success answers into
    PersistenceError with the server's message.

    Example:
        async with AnalysesClient("https://example.org", token) as store:
            analysis_id = await store.save(result, metadata)
            await store.update(analysis_id, {"dataPauta": "2025-03-10"})
    """

    RESOURCE = "/api/analyses"
    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> AnalysesClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str = "",
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{self.RESOURCE}{path}",
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as e:
            raise PersistenceError(f"Analyses API unreachable: {e}") from e
        return response

    @staticmethod
    def _error_message(response: httpx.Response, fallback: str) -> str:
        try:
            data = response.json()
        except ValueError:
            return f"{fallback} (HTTP {response.status_code})"
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"{fallback} (HTTP {response.status_code})"

    @staticmethod
    def _json_object(response: httpx.Response, what: str) -> dict[str, Any]:
        """Decode a success body that must be a JSON object."""
        try:
            data = response.json()
        except ValueError as e:
            raise PersistenceError(f"Analyses API returned invalid JSON for {what}") from e
        if not isinstance(data, dict):
            raise PersistenceError(
                f"Analyses API returned {type(data).__name__} instead of an object for {what}"
            )
        return data

    async def save(self, result: AnalysisResult, metadata: AnalysisMetadata) -> str:
        """Create an analysis and return its id."""
        body = {"resultado": result.to_dict(), **metadata.to_dict()}
        response = await self._request("POST", json=body)
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to create analysis"))

        analysis_id = self._json_object(response, "create").get("id")
        if not analysis_id:
            raise PersistenceError("Analyses API returned no id")
        logger.info(f"Saved analysis {analysis_id}")
        return str(analysis_id)

    async def get(self, analysis_id: str) -> SavedAnalysis | None:
        response = await self._request("GET", f"/{analysis_id}")
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to fetch analysis"))
        try:
            return SavedAnalysis.from_api(self._json_object(response, analysis_id))
        except (KeyError, ValidationError) as e:
            raise PersistenceError(f"Malformed analysis {analysis_id}: {e}") from e

    async def update(self, analysis_id: str, fields: dict[str, Any]) -> None:
        """Partially update hearing data (date, time, outcome, pending items)."""
        _check_update_fields(fields)
        response = await self._request("PUT", f"/{analysis_id}", json=fields)
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to update analysis"))

    async def replace(
        self, analysis_id: str, result: AnalysisResult, metadata: AnalysisMetadata
    ) -> None:
        """Replace the stored result, e.g. after a re-analysis with new responses."""
        body = {"resultado": result.to_dict(), **metadata.to_dict()}
        response = await self._request("PUT", f"/{analysis_id}/replace", json=body)
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to replace analysis"))

    async def delete(self, analysis_id: str) -> None:
        response = await self._request("DELETE", f"/{analysis_id}")
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to delete analysis"))

    async def list(self, filters: ListFilters | None = None) -> list[SavedAnalysis]:
        params = filters.to_params() if filters else None
        response = await self._request("GET", params=params or None)
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to list analyses"))

        items = self._json_object(response, "list").get("analyses") or []
        if not isinstance(items, list):
            raise PersistenceError("Analyses API returned a malformed analysis list")

        analyses: list[SavedAnalysis] = []
        for item in items:
            if not isinstance(item, dict):
                logger.warning(f"Skipping malformed analysis entry: {item!r}")
                continue
            try:
                analyses.append(SavedAnalysis.from_api(item))
            except (KeyError, ValidationError) as e:
                logger.warning(f"Skipping malformed analysis {item.get('id')}: {e}")
        return analyses

    async def update_data_pauta_batch(self, ids: Sequence[str], data_pauta: str | None) -> int:
        """
        Set (or clear, with None) the hearing date of many analyses at once.

        Returns:
            Number of analyses the server updated.
        """
        unique = _check_batch_ids(ids)
        _check_hearing_date(data_pauta)
        response = await self._request(
            "PUT", "/batch/data-pauta", json={"ids": unique, "dataPauta": data_pauta}
        )
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to update analyses"))
        count = self._batch_count(response, "updatedCount")
        logger.info(f"Hearing date {data_pauta} set on {count} analyses")
        return count

    async def delete_batch(self, ids: Sequence[str]) -> int:
        """Remove many analyses at once; returns how many the server removed."""
        unique = _check_batch_ids(ids)
        response = await self._request("DELETE", "/batch", json={"ids": unique})
        if not response.is_success:
            raise PersistenceError(self._error_message(response, "Failed to delete analyses"))
        count = self._batch_count(response, "deletedCount")
        logger.info(f"Deleted {count} analyses")
        return count

    def _batch_count(self, response: httpx.Response, key: str) -> int:
        count = self._json_object(response, key).get(key)
        if not isinstance(count, int) or isinstance(count, bool):
            raise PersistenceError(f"Analyses API returned no {key}")
        return count

    def __repr__(self) -> str:
        return f"AnalysesClient(base_url={self.base_url!r})"


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryAnalysisStore:
    """Process-local AnalysisStore for dry runs and tests."""

    def __init__(self) -> None:
        self._analyses: dict[str, SavedAnalysis] = {}

    def __len__(self) -> int:
        return len(self._analyses)

    async def save(self, result: AnalysisResult, metadata: AnalysisMetadata) -> str:
        analysis_id = uuid.uuid4().hex
        self._analyses[analysis_id] = SavedAnalysis.create(analysis_id, result, metadata)
        return analysis_id

    async def get(self, analysis_id: str) -> SavedAnalysis | None:
        return self._analyses.get(analysis_id)

    def _require(self, analysis_id: str) -> SavedAnalysis:
        analysis = self._analyses.get(analysis_id)
        if analysis is None:
            raise PersistenceError(f"Analysis not found: {analysis_id}")
        return analysis

    async def update(self, analysis_id: str, fields: dict[str, Any]) -> None:
        _check_update_fields(fields)
        analysis = self._require(analysis_id)
        renamed = {
            "data_pauta": fields.get("dataPauta", analysis.data_pauta),
            "horario_audiencia": fields.get("horarioAudiencia", analysis.horario_audiencia),
            "resultado_audiencia": fields.get("resultadoAudiencia", analysis.resultado_audiencia),
            "pendencias": list(fields.get("pendencias", analysis.pendencias)),
            "observacoes": fields.get("observacoes", analysis.observacoes),
            "sintese": fields.get("sintese", analysis.sintese),
        }
        self._analyses[analysis_id] = replace(
            analysis, updated_at=datetime.now(timezone.utc).isoformat(), **renamed
        )

    async def replace(
        self, analysis_id: str, result: AnalysisResult, metadata: AnalysisMetadata
    ) -> None:
        current = self._require(analysis_id)
        fresh = SavedAnalysis.create(analysis_id, result, metadata)
        self._analyses[analysis_id] = replace(
            fresh,
            data_pauta=current.data_pauta,
            horario_audiencia=current.horario_audiencia,
            resultado_audiencia=current.resultado_audiencia,
            pendencias=current.pendencias,
            created_at=current.created_at,
        )

    async def delete(self, analysis_id: str) -> None:
        self._require(analysis_id)
        del self._analyses[analysis_id]

    async def list(self, filters: ListFilters | None = None) -> list[SavedAnalysis]:
        filters = filters or ListFilters()
        return [a for a in self._analyses.values() if _matches(a, filters)]

    async def update_data_pauta_batch(self, ids: Sequence[str], data_pauta: str | None) -> int:
        unique = _check_batch_ids(ids)
        _check_hearing_date(data_pauta)
        now = datetime.now(timezone.utc).isoformat()
        count = 0
        for analysis_id in unique:
            analysis = self._analyses.get(analysis_id)
            if analysis is None:
                continue
            self._analyses[analysis_id] = replace(analysis, data_pauta=data_pauta, updated_at=now)
            count += 1
        return count

    async def delete_batch(self, ids: Sequence[str]) -> int:
        unique = _check_batch_ids(ids)
        removed = [self._analyses.pop(a, None) for a in unique]
        return sum(1 for analysis in removed if analysis is not None)
