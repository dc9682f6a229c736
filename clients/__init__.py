"""API clients: LLM provider adapters and the analyses store."""

from clients.analyses_client import (
    AnalysesClient,
    AnalysisMetadata,
    AnalysisStore,
    InMemoryAnalysisStore,
    ListFilters,
    SavedAnalysis,
)
from clients.base_provider import (
    BaseProviderClient,
    CallOptions,
    Message,
    ProviderRequest,
    ProviderResponse,
    TextPart,
)
from clients.claude_client import ClaudeClient
from clients.gemini_client import GeminiClient
from clients.grok_client import GrokClient
from clients.openai_client import OpenAIClient

__all__ = [
    "AnalysesClient",
    "AnalysisMetadata",
    "AnalysisStore",
    "InMemoryAnalysisStore",
    "ListFilters",
    "SavedAnalysis",
    "BaseProviderClient",
    "CallOptions",
    "Message",
    "ProviderRequest",
    "ProviderResponse",
    "TextPart",
    "ClaudeClient",
    "GeminiClient",
    "GrokClient",
    "OpenAIClient",
]
