"""In-memory data model for the memory subsystem.

Includes:
- MemoryNote: a stored unit of content plus derived metadata and links
- ContentAnalysis: structured analyzer output
- MetadataState: two-phase enrichment marker (pending → ready)
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

DEFAULT_CONTEXT = "General"
DEFAULT_CATEGORY = "Uncategorized"
TIMESTAMP_FORMAT = "%Y%m%d%H%M"

# Fields the content analyzer may fill in
ANALYZED_FIELDS = ("keywords", "context", "tags")

_IMMUTABLE_FIELDS = frozenset({"id", "content"})


def current_timestamp() -> str:
    """Wall-clock time in the compact sortable YYYYMMDDHHMM format."""
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class MetadataState(StrEnum):
    pending = "pending"
    ready = "ready"


@dataclass(frozen=True)
class ContentAnalysis:
    """Keywords, one-sentence context and tags derived from content."""

    keywords: list[str] = field(default_factory=list)
    context: str = DEFAULT_CONTEXT
    tags: list[str] = field(default_factory=list)

    @classmethod
    def fallback(cls) -> ContentAnalysis:
        """Degraded-but-valid result used when analysis fails."""
        return cls()


@dataclass(eq=False)
class MemoryNote:
    """A single memory: immutable identity and content, mutable metadata.

    `links` holds ids of related notes. Positions are derived by the store
    on demand and never persisted here.
    """

    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    keywords: list[str] = field(default_factory=list)
    context: str = DEFAULT_CONTEXT
    tags: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    timestamp: str = field(default_factory=current_timestamp)
    last_accessed: str = ""
    importance_score: float = 1.0
    retrieval_count: int = 0
    evolution_history: list[Any] = field(default_factory=list)
    category: str = DEFAULT_CATEGORY
    metadata_state: MetadataState = MetadataState.ready
    unanalyzed_fields: frozenset[str] = field(default_factory=frozenset, repr=False)

    def __post_init__(self) -> None:
        if not self.last_accessed:
            self.last_accessed = self.timestamp

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _IMMUTABLE_FIELDS and name in self.__dict__:
            raise AttributeError(f"MemoryNote.{name} is immutable")
        super().__setattr__(name, value)

    @classmethod
    def create(
        cls,
        content: str,
        *,
        timestamp: str | None = None,
        keywords: list[str] | None = None,
        context: str | list[str] | None = None,
        tags: list[str] | None = None,
        **extra: Any,
    ) -> MemoryNote:
        """Build a note from caller input.

        Any of keywords/context/tags left as None is recorded as unanalyzed
        and the note starts in the pending state until enriched.
        """
        if isinstance(context, list):
            context = " ".join(context)

        supplied = {"keywords": keywords, "context": context, "tags": tags}
        unanalyzed = frozenset(name for name, value in supplied.items() if value is None)

        kwargs: dict[str, Any] = {
            name: list(value) if isinstance(value, list) else value
            for name, value in supplied.items()
            if value is not None
        }
        if timestamp:
            kwargs["timestamp"] = timestamp
        kwargs.update(extra)

        return cls(
            content=content,
            metadata_state=MetadataState.pending if unanalyzed else MetadataState.ready,
            unanalyzed_fields=unanalyzed,
            **kwargs,
        )

    @property
    def is_ready(self) -> bool:
        return self.metadata_state is MetadataState.ready

    def apply_analysis(self, analysis: ContentAnalysis) -> None:
        """Fill only unanalyzed fields, then mark the note ready."""
        if "keywords" in self.unanalyzed_fields:
            self.keywords = list(analysis.keywords)
        if "context" in self.unanalyzed_fields:
            self.context = analysis.context
        if "tags" in self.unanalyzed_fields:
            self.tags = list(analysis.tags)
        self.unanalyzed_fields = frozenset()
        self.metadata_state = MetadataState.ready

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("unanalyzed_fields")
        data["metadata_state"] = str(self.metadata_state)
        return data
