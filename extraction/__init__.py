"""Extraction package: document text, prompts and model-output parsing."""

from extraction.config_loader import (
    AnalyzerFileConfig,
    ProviderSettings,
    get_config,
    load_config,
    reload_config,
)
from extraction.prompts import (
    SYSTEM_PROMPT,
    build_analysis_prompt,
)
from extraction.result_parser import (
    extract_json_candidate,
    parse_analysis_result,
)
from extraction.text_extractor import (
    DocumentTextExtractor,
    TextExtractor,
)

__all__ = [
    # Config
    "AnalyzerFileConfig",
    "ProviderSettings",
    "get_config",
    "load_config",
    "reload_config",
    # Prompts
    "SYSTEM_PROMPT",
    "build_analysis_prompt",
    # Parsing
    "extract_json_candidate",
    "parse_analysis_result",
    # Text extraction
    "DocumentTextExtractor",
    "TextExtractor",
]
