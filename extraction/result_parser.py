"""
Turn raw model output into a validated AnalysisResult.

Parsing runs in two explicit stages:

1. extract_json_candidate(): isolate the JSON object in the text, looking
   inside a fenced code block first, then taking the outermost `{...}` span.
2. parse_analysis_result(): validate the candidate strictly; when that
   fails, decode it leniently and drop every optional field whose value has
   the wrong type so it falls back to its default.

`identificacao` is the only required section. Without it the output is
rejected with ParseError.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from models.analysis import AnalysisResult
from models.errors import ParseError

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)

# Each repair pass removes at least one offending value
MAX_REPAIR_PASSES = 50


def extract_json_candidate(raw: str) -> str:
    """
    Isolate the JSON object inside a model response.

    >>> extract_json_candidate('Here it is:\\n```json\\n{"a": 1}\\n```')
    '{"a": 1}'
    >>> extract_json_candidate('Result: {"a": {"b": 2}} done')
    '{"a": {"b": 2}}'
    """
    text = raw or ""
    fenced = _CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text.strip()
    return text[start : end + 1]


def parse_analysis_result(raw: str) -> AnalysisResult:
    """
    Parse and validate a model response.

    The comparison table is always rebuilt from the claims, whatever the
    model sent for it.

    Raises:
        ParseError: No JSON object could be decoded, or `identificacao`
            is missing or malformed.
    """
    if not raw or not raw.strip():
        raise ParseError("Empty model response")

    candidate = extract_json_candidate(raw)
    try:
        result = AnalysisResult.model_validate_json(candidate)
    except ValidationError as e:
        logger.debug(f"Strict validation failed with {e.error_count()} errors, repairing")
        result = _parse_lenient(candidate)

    return result.with_summary_table()


# =============================================================================
# Lenient path
# =============================================================================


def _parse_lenient(candidate: str) -> AnalysisResult:
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ParseError(f"Model response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object, got {type(data).__name__}")
    if not isinstance(data.get("identificacao"), dict):
        raise ParseError("Model response has no 'identificacao' section")

    dropped: list[str] = []
    for _ in range(MAX_REPAIR_PASSES):
        try:
            result = AnalysisResult.model_validate(data)
        except ValidationError as e:
            dropped.extend(_drop_invalid(data, e))
            continue

        if dropped:
            logger.warning(f"Dropped {len(dropped)} invalid fields: {', '.join(dropped)}")
        return result

    raise ParseError("Model response could not be repaired")


def _child_key(node: Any, step: str | int) -> str | int | None:
    """Find `step` in a container, accepting snake_case for camelCase locations."""
    if isinstance(node, dict) and isinstance(step, str):
        for key in (step, to_snake(step)):
            if key in node:
                return key
    elif isinstance(node, list) and isinstance(step, int) and 0 <= step < len(node):
        return step
    return None


def _locate(data: dict[str, Any], loc: tuple[str | int, ...]) -> tuple[Any, str | int | None]:
    """Walk an error location and return the deepest reachable (parent, key)."""
    parent: Any = None
    key: str | int | None = None
    node: Any = data
    for step in loc:
        child = _child_key(node, step)
        if child is None:
            break
        parent, key, node = node, child, node[child]
    return parent, key


def _drop_invalid(data: dict[str, Any], error: ValidationError) -> list[str]:
    """
    Remove every value a validation error points at.

    Dict entries are deleted so the field takes its default; list elements
    are removed so the valid ones survive.

    Raises:
        ParseError: An error points at `identificacao` itself or at nothing
            removable.
    """
    dict_targets: list[tuple[dict[str, Any], str]] = []
    list_targets: dict[int, tuple[list[Any], set[int]]] = {}
    paths: list[str] = []

    for item in error.errors():
        loc = tuple(item["loc"])
        parent, key = _locate(data, loc)
        if parent is None or key is None or (parent is data and key == "identificacao"):
            raise ParseError(f"Invalid 'identificacao' section: {item['msg']}")

        path = ".".join(str(step) for step in loc)
        if isinstance(parent, list):
            entry = list_targets.setdefault(id(parent), (parent, set()))
            entry[1].add(key)
        elif not any(p is parent and k == key for p, k in dict_targets):
            dict_targets.append((parent, key))
        paths.append(path)

    for parent, key in dict_targets:
        parent.pop(key, None)
    for items, indices in list_targets.values():
        for index in sorted(indices, reverse=True):
            del items[index]

    return paths
