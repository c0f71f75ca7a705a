"""Memory store: owns every MemoryNote and drives the add → evolve → index cycle.

All mutations and snapshot reads go through one asyncio.Lock per store.
Neighbor positions are resolved to note ids while the lock is held, so a
decision can never be applied against a shifted enumeration.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from src.config.settings import MemorySettings
from src.infra.errors import MemoryStoreError
from src.memory.analyzer import ContentAnalyzer
from src.memory.evolution import EvolutionEngine
from src.memory.formatter import render_neighborhood, render_raw_transcript
from src.memory.models import MemoryNote
from src.memory.retriever import LexicalRetriever, Retriever, index_document

if TYPE_CHECKING:
    from src.agent.model_client import CompletionClient

logger = structlog.get_logger()


class MemoryStore:
    """Agentic memory store.

    Flow per note: build (pending) → enrich → find neighbors → evolution
    decision → apply → commit → index → [consolidate every N evolutions].
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        settings: MemorySettings | None = None,
        *,
        retriever: Retriever | None = None,
        analyzer: ContentAnalyzer | None = None,
        evolution_engine: EvolutionEngine | None = None,
    ) -> None:
        self._settings = settings or MemorySettings()
        self._memories: dict[str, MemoryNote] = {}
        self._retriever = retriever or LexicalRetriever(self._settings.embedding_model)
        self._analyzer = analyzer or ContentAnalyzer(
            completion_client, temperature=self._settings.analysis_temperature
        )
        self._evolution = evolution_engine or EvolutionEngine(
            completion_client, temperature=self._settings.evolution_temperature
        )
        self._evo_cnt = 0
        self._lock = asyncio.Lock()

    # ── Read-side helpers ──

    def __len__(self) -> int:
        return len(self._memories)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._memories

    @property
    def notes(self) -> list[MemoryNote]:
        """Notes in authoritative (insertion) order."""
        return list(self._memories.values())

    @property
    def retriever(self) -> Retriever:
        return self._retriever

    @property
    def evolution_count(self) -> int:
        return self._evo_cnt

    def read(self, note_id: str) -> MemoryNote | None:
        return self._memories.get(note_id)

    def position_of(self, note_id: str) -> int | None:
        for position, existing_id in enumerate(self._memories):
            if existing_id == note_id:
                return position
        return None

    def link_positions(self, note_id: str) -> list[int]:
        """Positional view of a note's links in the current enumeration."""
        note = self._memories.get(note_id)
        if note is None:
            raise MemoryStoreError(f"Unknown memory id '{note_id}'", code="NOT_FOUND")
        positions = {existing_id: i for i, existing_id in enumerate(self._memories)}
        return [positions[link] for link in note.links if link in positions]

    # ── Write path ──

    async def add_note(
        self,
        content: str,
        timestamp: str | None = None,
        **overrides: Any,
    ) -> str:
        """Create, enrich, evolve, store and index a note. Returns its id.

        overrides (keywords, context, tags, category, ...) take precedence
        over analyzer output.
        """
        async with self._lock:
            note = MemoryNote.create(content, timestamp=timestamp, **overrides)
            if note.id in self._memories:
                raise MemoryStoreError(f"Memory id '{note.id}' already exists", code="DUPLICATE_ID")

            await self._analyzer.enrich(note)
            should_evolve, note = await self._process_memory(note)

            self._memories[note.id] = note
            self._retriever.add_documents([index_document(note)])

            if should_evolve:
                self._evo_cnt += 1
                if self._evo_cnt % self._settings.evo_threshold == 0:
                    self._consolidate()

            logger.info(
                "memory_added",
                note_id=note.id,
                evolved=should_evolve,
                links=len(note.links),
                store_size=len(self._memories),
            )
            return note.id

    async def _process_memory(self, note: MemoryNote) -> tuple[bool, MemoryNote]:
        """Run the evolution protocol for an uncommitted note."""
        neighbors_text, positions = self._find_related(note.content, self._settings.neighbor_k)

        # position → id snapshot; stays valid because the lock is held until commit
        snapshot_ids = list(self._memories)
        neighbors = [self._memories[snapshot_ids[p]] for p in positions]

        decision = await self._evolution.decide(note, neighbors_text, len(positions))
        self._evolution.apply(decision, note, neighbors, snapshot_ids)
        return decision.should_evolve, note

    async def consolidate_memories(self) -> None:
        """Rebuild the retriever from current note metadata."""
        async with self._lock:
            self._consolidate()

    def _consolidate(self) -> None:
        retriever = type(self._retriever).from_notes(
            self._memories.values(), self._retriever.model_name
        )
        self._retriever = retriever
        logger.info(
            "consolidation_complete",
            documents=len(retriever),
            evolution_count=self._evo_cnt,
        )

    # ── Query path ──

    async def find_related_memories(self, query: str, k: int = 5) -> tuple[str, list[int]]:
        """Indexed transcript and positions of the top-k matches."""
        async with self._lock:
            return self._find_related(query, k)

    def _find_related(self, query: str, k: int) -> tuple[str, list[int]]:
        if not self._memories:
            return "", []
        positions = self._retriever.search(query, k)
        notes = list(self._memories.values())
        return render_neighborhood([(p, notes[p]) for p in positions]), positions

    async def find_related_memories_raw(self, query: str, k: int = 5) -> str:
        """Transcript of the top-k matches plus their linked memories."""
        async with self._lock:
            if not self._memories:
                return ""
            positions = self._retriever.search(query, k)
            notes = list(self._memories.values())
            hits = [notes[p] for p in positions]
            transcript = render_raw_transcript(hits, self._memories.get, k)

        logger.debug("memory_query", query=query[:50], k=k, hits=len(hits))
        return transcript
