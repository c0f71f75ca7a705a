"""Evolution engine: LLM-driven relinking and retagging of memories.

One decision per incoming note: pending → decided(should_evolve).
Decisions are validated in full before anything is mutated; any failure
degrades to "do not evolve" and leaves every note untouched.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from src.infra.errors import EvolutionDecisionFailure
from src.memory.schemas import EVOLUTION_FORMAT, EvolutionPayload, parse_payload

if TYPE_CHECKING:
    from src.agent.model_client import CompletionClient
    from src.memory.models import MemoryNote

logger = structlog.get_logger()

ACTION_STRENGTHEN = "strengthen"
ACTION_UPDATE_NEIGHBOR = "update_neighbor"

EVOLUTION_PROMPT = """You are an AI memory evolution agent responsible for managing and evolving a knowledge base.
Analyze the new memory note according to keywords and context, also with their several nearest neighbors memory.
Make decisions about its evolution.

The new memory context:
{context}
content: {content}
keywords: {keywords}

The nearest neighbors memories:
{nearest_neighbors_memories}

Based on this information, determine:
1. Should this memory be evolved? Consider its relationships with other memories.
2. What specific actions should be taken (strengthen, update_neighbor)?
   2.1 If choose to strengthen the connection, which memory should it be connected to? Use the memory index of the neighbors above. Can you give the updated tags of this memory?
   2.2 If choose to update_neighbor, you can update the context and tags of these memories based on the understanding of these memories. If the context and the tags are not updated, the new context and tags should be the same as the original ones. Generate the new context and tags in the sequential order of the input neighbors.
Tags should be determined by the content of these characteristic of these memories, which can be used to retrieve them later and categorize them.
Note that the length of new_tags_neighborhood must equal the number of input neighbors, and the length of new_context_neighborhood must equal the number of input neighbors.
The number of neighbors is {neighbor_number}.
Return your decision in JSON format with the following structure:
{{
    "should_evolve": true or false,
    "actions": ["strengthen", "update_neighbor"],
    "suggested_connections": [memory_index_1, memory_index_2],
    "tags_to_update": ["tag_1", "tag_n"],
    "new_context_neighborhood": ["new context", "new context"],
    "new_tags_neighborhood": [["tag_1", "tag_n"], ["tag_1", "tag_n"]]
}}"""


@dataclass(frozen=True)
class EvolutionDecision:
    """Validated evolution decision for one incoming note.

    suggested_connections are positions in the store enumeration the
    neighbor transcript was rendered from.
    """

    should_evolve: bool
    actions: list[str] = field(default_factory=list)
    suggested_connections: list[float] = field(default_factory=list)
    tags_to_update: list[str] = field(default_factory=list)
    new_context_neighborhood: list[str] = field(default_factory=list)
    new_tags_neighborhood: list[list[str]] = field(default_factory=list)

    @classmethod
    def no_evolution(cls) -> EvolutionDecision:
        return cls(should_evolve=False)


class EvolutionEngine:
    """Decide and apply evolution for new notes against their neighbors.

    The engine never looks notes up by position itself: the caller passes the
    neighbor notes and the position → id snapshot the prompt was built from.
    """

    def __init__(self, completion_client: CompletionClient, *, temperature: float = 0.7) -> None:
        self._client = completion_client
        self._temperature = temperature

    def build_prompt(self, note: MemoryNote, neighbors_text: str, neighbor_count: int) -> str:
        return EVOLUTION_PROMPT.format(
            context=note.context,
            content=note.content,
            keywords=json.dumps(note.keywords, ensure_ascii=False),
            nearest_neighbors_memories=neighbors_text,
            neighbor_number=neighbor_count,
        )

    async def decide(
        self,
        note: MemoryNote,
        neighbors_text: str,
        neighbor_count: int,
    ) -> EvolutionDecision:
        """Ask the backend for a decision. Never raises."""
        try:
            decision = await self._decide(note, neighbors_text, neighbor_count)
        except EvolutionDecisionFailure as e:
            logger.warning("evolution_decision_failed", note_id=note.id, code=e.code, error=str(e))
            return EvolutionDecision.no_evolution()

        logger.info(
            "evolution_decided",
            note_id=note.id,
            should_evolve=decision.should_evolve,
            actions=decision.actions,
            neighbors=neighbor_count,
        )
        return decision

    async def _decide(
        self,
        note: MemoryNote,
        neighbors_text: str,
        neighbor_count: int,
    ) -> EvolutionDecision:
        prompt = self.build_prompt(note, neighbors_text, neighbor_count)
        try:
            raw = await self._client.complete(prompt, EVOLUTION_FORMAT, self._temperature)
        except Exception as e:
            raise EvolutionDecisionFailure(f"completion unavailable: {e}") from e

        try:
            payload = parse_payload(raw, EvolutionPayload)
        except ValidationError as e:
            raise EvolutionDecisionFailure(f"malformed decision: {e.error_count()} errors") from e
        except TypeError as e:
            raise EvolutionDecisionFailure(f"malformed decision: {e}") from e

        return EvolutionDecision(
            should_evolve=payload.should_evolve,
            actions=payload.actions,
            suggested_connections=payload.suggested_connections,
            tags_to_update=payload.tags_to_update,
            new_context_neighborhood=payload.new_context_neighborhood,
            new_tags_neighborhood=payload.new_tags_neighborhood,
        )

    def apply(
        self,
        decision: EvolutionDecision,
        note: MemoryNote,
        neighbors: Sequence[MemoryNote],
        snapshot_ids: Sequence[str],
    ) -> None:
        """Apply actions in the order the decision lists them.

        Args:
            decision: validated decision for `note`.
            note: the incoming (not yet stored) note.
            neighbors: neighbor notes in the order they appeared in the prompt.
            snapshot_ids: note ids by store position at decision time.
        """
        if not decision.should_evolve:
            return

        for action in decision.actions:
            if action == ACTION_STRENGTHEN:
                self._strengthen(decision, note, snapshot_ids)
            elif action == ACTION_UPDATE_NEIGHBOR:
                self._update_neighbors(decision, neighbors)
            else:
                logger.info("evolution_action_ignored", note_id=note.id, action=action)

    @staticmethod
    def _strengthen(
        decision: EvolutionDecision,
        note: MemoryNote,
        snapshot_ids: Sequence[str],
    ) -> None:
        for position in decision.suggested_connections:
            # positions arrive as JSON numbers; only whole in-range values link
            if not (float(position).is_integer() and 0 <= position < len(snapshot_ids)):
                logger.warning(
                    "evolution_connection_out_of_range",
                    note_id=note.id,
                    position=position,
                    store_size=len(snapshot_ids),
                )
                continue
            note.links.append(snapshot_ids[int(position)])
        note.tags = list(decision.tags_to_update)

    @staticmethod
    def _update_neighbors(decision: EvolutionDecision, neighbors: Sequence[MemoryNote]) -> None:
        new_tags = decision.new_tags_neighborhood
        new_contexts = decision.new_context_neighborhood
        for i in range(min(len(neighbors), len(new_tags))):
            neighbor = neighbors[i]
            neighbor.tags = list(new_tags[i])
            if i < len(new_contexts):
                neighbor.context = new_contexts[i]
