"""Lexical retriever: token-overlap scoring over an append-only corpus.

Stand-in for an embedding index. The Retriever base keeps the store's
contract independent of the scoring backend so a vector implementation can
replace LexicalRetriever without touching MemoryStore.
"""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Self

if TYPE_CHECKING:
    from src.memory.models import MemoryNote

_TOKEN_SPLIT = re.compile(r"[^\w]+")


def tokenize(text: str) -> list[str]:
    """Case-folded tokens with whitespace and punctuation removed."""
    return [token for token in _TOKEN_SPLIT.split(text.casefold()) if token]


def overlap_score(query_tokens: set[str], doc_tokens: set[str]) -> float:
    """|q ∩ d| / sqrt(|q| * |d|) over token sets; 0.0 when either side is empty."""
    if not query_tokens or not doc_tokens:
        return 0.0
    common = len(query_tokens & doc_tokens)
    return common / math.sqrt(len(query_tokens) * len(doc_tokens))


def index_document(note: MemoryNote) -> str:
    """Searchable text for a note when it is first committed."""
    return f"{note.content} , {note.context} keywords: {', '.join(note.keywords)}"


def consolidation_document(note: MemoryNote) -> str:
    """Searchable text for a note when the corpus is rebuilt from the store."""
    return f"{note.content} , {note.context} {' '.join(note.keywords)} {' '.join(note.tags)}"


class Retriever(ABC):
    """Positional document index used by the memory store.

    Implementations take the model name as their first constructor argument;
    consolidation rebuilds through `type(old).from_notes(notes, old.model_name)`.
    """

    model_name: str

    @abstractmethod
    def add_documents(self, documents: Sequence[str]) -> None:
        """Append documents; each gets the next sequential position."""
        ...

    @abstractmethod
    def search(self, query: str, k: int = 5) -> list[int]:
        """Return up to k corpus positions, best match first."""
        ...

    @abstractmethod
    def __len__(self) -> int: ...

    @classmethod
    def from_notes(cls, notes: Iterable[MemoryNote], model_name: str) -> Self:
        """Build a fresh retriever whose positions follow the given note order."""
        retriever = cls(model_name)
        retriever.add_documents([consolidation_document(note) for note in notes])
        return retriever


class LexicalRetriever(Retriever):
    """Token-overlap retriever.

    Duplicate documents are kept and get their own positions; the text index
    points at the latest position for a given text.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2") -> None:
        self.model_name = model_name
        self._corpus: list[str] = []
        self._doc_tokens: list[set[str]] = []
        self._document_ids: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._corpus)

    @property
    def documents(self) -> tuple[str, ...]:
        return tuple(self._corpus)

    def position_of(self, document: str) -> int | None:
        return self._document_ids.get(document)

    def add_documents(self, documents: Sequence[str]) -> None:
        if not documents:
            return
        start = len(self._corpus)
        for offset, doc in enumerate(documents):
            self._corpus.append(doc)
            self._doc_tokens.append(set(tokenize(doc)))
            self._document_ids[doc] = start + offset

    def scores(self, query: str) -> list[float]:
        """Overlap score of the query against every document, in corpus order."""
        query_tokens = set(tokenize(query))
        return [overlap_score(query_tokens, doc_tokens) for doc_tokens in self._doc_tokens]

    def search(self, query: str, k: int = 5) -> list[int]:
        if k < 0:
            raise ValueError(f"k must be non-negative (got {k})")
        if not self._corpus or k == 0:
            return []

        scores = self.scores(query)
        # sorted() is stable: equal scores keep corpus order
        ranked = sorted(range(len(scores)), key=lambda i: scores[i], reverse=True)
        return ranked[:k]
