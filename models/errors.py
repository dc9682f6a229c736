"""
Exception hierarchy for the batch analysis pipeline.

Every failure a single work unit can hit is one of these types, so the batch
executor can isolate it and attach a short, human-readable message to the
unit's documents.
"""

from __future__ import annotations

# Statuses worth another attempt: rate limits, gateway errors, overload
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 529})


class AnalyzerError(Exception):
    """Base class for all analyzer errors."""


class ConfigError(AnalyzerError):
    """Invalid or missing configuration (unknown provider, missing key)."""


class ExtractionError(AnalyzerError):
    """Text could not be extracted from a source document."""


class ProviderError(AnalyzerError):
    """Base class for failures reported by an LLM provider."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderHTTPError(ProviderError):
    """
    Non-success HTTP response from a provider endpoint.

    Attributes:
        status_code: HTTP status returned by the backend.
        message: Backend-provided error message (or "HTTP <status>").
        provider: Provider identifier that raised the error.
    """

    def __init__(self, status_code: int, message: str, provider: str = "") -> None:
        super().__init__(message, provider)
        self.status_code = status_code
        self.message = message

    @property
    def is_transient(self) -> bool:
        return self.status_code in TRANSIENT_STATUS_CODES

    def __repr__(self) -> str:
        return (
            f"ProviderHTTPError(provider={self.provider!r}, "
            f"status_code={self.status_code}, message={self.message!r})"
        )


class ProviderStreamError(ProviderError):
    """An `error` frame was received mid-stream. Never retried."""


class ParseError(AnalyzerError):
    """Model output could not be turned into an AnalysisResult."""


class PersistenceError(AnalyzerError):
    """The persistence collaborator rejected or failed an operation."""


class BatchCancelledError(AnalyzerError):
    """The batch was cancelled before this operation could start."""
