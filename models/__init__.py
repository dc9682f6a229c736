"""Models package for the prepauta batch analyzer."""

from models.analysis import (
    AnalysisResult,
    Alerta,
    Identificacao,
    Pedido,
    TabelaPedido,
    build_summary_table,
)
from models.batch import (
    DocumentRole,
    ItemStatus,
    WorkItem,
    WorkUnit,
)
from models.errors import (
    AnalyzerError,
    BatchCancelledError,
    ConfigError,
    ExtractionError,
    ParseError,
    PersistenceError,
    ProviderError,
    ProviderHTTPError,
    ProviderStreamError,
)
from models.usage import Usage

__all__ = [
    # Analysis result
    "AnalysisResult",
    "Alerta",
    "Identificacao",
    "Pedido",
    "TabelaPedido",
    "build_summary_table",
    # Batch
    "DocumentRole",
    "ItemStatus",
    "WorkItem",
    "WorkUnit",
    # Errors
    "AnalyzerError",
    "BatchCancelledError",
    "ConfigError",
    "ExtractionError",
    "ParseError",
    "PersistenceError",
    "ProviderError",
    "ProviderHTTPError",
    "ProviderStreamError",
    # Usage
    "Usage",
]
