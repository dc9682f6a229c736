"""
Data models for batch processing of uploaded legal documents.

A WorkItem is one uploaded file (a filing or a response). A WorkUnit groups
the items that belong to the same lawsuit and is the unit of work the batch
executor schedules.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

DocumentSource = Union[Path, bytes]


class DocumentRole(str, Enum):
    """Role of a document inside a work unit."""

    PRIMARY = "primary"  # initial filing (petição inicial)
    SECONDARY = "secondary"  # response (contestação)


class ItemStatus(str, Enum):
    """Lifecycle status of a WorkItem."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemStatus.SUCCESS, ItemStatus.ERROR)


@dataclass
class WorkItem:
    """
    One uploaded document.

    Attributes:
        label: Display name, usually the file name. Role and group key are
            parsed from it.
        source: Raw binary handle: a filesystem path or the file bytes.
        role: PRIMARY for the initial filing, SECONDARY for a response.
        group_key: Case number shared by documents of the same lawsuit.
        status: Lifecycle status, mutated only by the batch executor.
        error: Failure message when status is ERROR.
        id: Unique identifier.
    """

    label: str
    source: DocumentSource
    role: DocumentRole = DocumentRole.PRIMARY
    group_key: str | None = None
    status: ItemStatus = ItemStatus.PENDING
    error: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @classmethod
    def from_label(cls, label: str, source: DocumentSource) -> WorkItem:
        """Create a WorkItem, detecting role and case number from the label."""
        # Local import: grouping depends on this module.
        from pipeline.grouping import detect_role, extract_group_key

        return cls(
            label=label,
            source=source,
            role=detect_role(label),
            group_key=extract_group_key(label),
        )

    @classmethod
    def from_path(cls, path: Path) -> WorkItem:
        """Create a WorkItem from a file on disk."""
        return cls.from_label(path.name, path)

    def mark_processing(self) -> None:
        self.status = ItemStatus.PROCESSING
        self.error = None

    def mark_success(self) -> None:
        self.status = ItemStatus.SUCCESS
        self.error = None

    def mark_error(self, message: str) -> None:
        self.status = ItemStatus.ERROR
        self.error = message

    def reset(self) -> None:
        """Return the item to PENDING so it can be re-run in a new batch."""
        self.status = ItemStatus.PENDING
        self.error = None


@dataclass(frozen=True)
class WorkUnit:
    """
    One logical analysis job: a primary document plus its responses.

    Derived fresh by the grouper from the current set of WorkItems; never
    persisted.

    Attributes:
        key: Case number, or the primary item's id for ungrouped items.
        primary: The filing (or a promoted response for degenerate units).
        secondaries: Responses sharing the same case number.
        extras: Additional filings sharing the case number (amendments).
    """

    key: str
    primary: WorkItem
    secondaries: tuple[WorkItem, ...] = ()
    extras: tuple[WorkItem, ...] = ()

    @property
    def items(self) -> list[WorkItem]:
        """All items composing this unit, primary first."""
        return [self.primary, *self.extras, *self.secondaries]

    @property
    def is_degenerate(self) -> bool:
        """True when the primary is a response promoted for lack of a filing."""
        return self.primary.role is DocumentRole.SECONDARY

    @property
    def is_terminal(self) -> bool:
        return all(item.status.is_terminal for item in self.items)

    def __repr__(self) -> str:
        return (
            f"WorkUnit(key={self.key!r}, primary={self.primary.label!r}, "
            f"secondaries={len(self.secondaries)}, extras={len(self.extras)})"
        )
