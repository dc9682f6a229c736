"""
Group uploaded documents into work units by case number.

Case numbers follow the CNJ format used by Brazilian courts
(NNNNNNN-DD.AAAA.J.TR.OOOO) and are usually embedded in the file name,
often between square brackets. Documents whose names mention a defence
(contestação, defesa, resposta) are treated as responses; everything else is
treated as an initial filing.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from models.batch import DocumentRole, WorkItem, WorkUnit

_CNJ = r"\d{7}-\d{2}\.\d{4}\.\d\.\d{2}\.\d{4}"

BRACKETED_CASE_NUMBER = re.compile(rf"\[({_CNJ})\]")
CASE_NUMBER = re.compile(rf"({_CNJ})")
LONG_DIGIT_RUN = re.compile(r"(\d{15,20})")

SECONDARY_MARKERS = ("contestacao", "contestação", "defesa", "resposta")

_EXTENSION = re.compile(r"\.[^/.]+$")


def extract_group_key(label: str) -> str | None:
    """
    Extract the case number from a document label.

    Tries, in order, a bracketed CNJ number, an unbracketed CNJ number and a
    15-20 digit run. Returns None when nothing matches.

    Examples:
        >>> extract_group_key("[0000272-52.2025.5.08.0201] inicial.pdf")
        '0000272-52.2025.5.08.0201'
        >>> extract_group_key("contestacao 00002725220255080201.pdf")
        '00002725220255080201'
        >>> extract_group_key("notes.pdf") is None
        True
    """
    name = _EXTENSION.sub("", label)
    for pattern in (BRACKETED_CASE_NUMBER, CASE_NUMBER, LONG_DIGIT_RUN):
        match = pattern.search(name)
        if match:
            return match.group(1)
    return None


def detect_role(label: str) -> DocumentRole:
    """Classify a document as filing (PRIMARY) or response (SECONDARY)."""
    lower = label.lower()
    if any(marker in lower for marker in SECONDARY_MARKERS):
        return DocumentRole.SECONDARY
    return DocumentRole.PRIMARY


def group_work_items(items: Iterable[WorkItem]) -> list[WorkUnit]:
    """
    Match loose documents into work units.

    - Items sharing a case number are placed in one unit, split by role. The
      first filing is the unit's primary; further filings with the same number
      travel with it as extras (amendments).
    - A case number with only responses promotes the first response to
      primary of a degenerate unit.
    - Items without a case number become singleton units.

    The function is pure: it keeps no state between calls, and every input
    item appears in exactly one output unit. Units are ordered by the first
    appearance of their case number (or item) in the input.

    Args:
        items: Current set of uploaded documents.

    Returns:
        List of WorkUnits partitioning the input.
    """
    # key -> (primaries, secondaries); dict preserves first-appearance order
    by_key: dict[str, tuple[list[WorkItem], list[WorkItem]]] = {}
    # Ungrouped items stand for themselves, groups for their key
    order: list[WorkItem | str] = []

    for item in items:
        if item.group_key is None:
            order.append(item)
            continue

        if item.group_key not in by_key:
            by_key[item.group_key] = ([], [])
            order.append(item.group_key)

        primaries, secondaries = by_key[item.group_key]
        if item.role is DocumentRole.PRIMARY:
            primaries.append(item)
        else:
            secondaries.append(item)

    units: list[WorkUnit] = []
    for entry in order:
        if isinstance(entry, WorkItem):
            units.append(WorkUnit(key=entry.id, primary=entry))
            continue

        primaries, secondaries = by_key[entry]
        if primaries:
            units.append(
                WorkUnit(
                    key=entry,
                    primary=primaries[0],
                    secondaries=tuple(secondaries),
                    extras=tuple(primaries[1:]),
                )
            )
        else:
            units.append(
                WorkUnit(
                    key=entry,
                    primary=secondaries[0],
                    secondaries=tuple(secondaries[1:]),
                )
            )

    return units


def ungrouped_items(items: Iterable[WorkItem]) -> list[WorkItem]:
    """Return items for which no case number could be found."""
    return [item for item in items if item.group_key is None]
