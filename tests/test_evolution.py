"""Tests for EvolutionEngine.

Covers: decision parsing, prompt rendering, degradation to no-evolution on
failed or non-text replies, strengthen (id links, out-of-range and
non-integral positions, tag replacement),
update_neighbor (length mismatch, context kept), unknown actions.
"""

from __future__ import annotations

import pytest

from src.memory.evolution import EvolutionDecision, EvolutionEngine
from src.memory.models import MemoryNote
from tests.scripted_client import ScriptedCompletionClient, evolution_reply


def _note(content: str, **fields) -> MemoryNote:
    fields.setdefault("keywords", [])
    fields.setdefault("context", "General")
    fields.setdefault("tags", [])
    return MemoryNote.create(content, **fields)


class TestDecide:
    @pytest.mark.asyncio
    async def test_parses_decision(self, completion_client: ScriptedCompletionClient) -> None:
        completion_client.queue_evolution(
            evolution_reply(
                should_evolve=True,
                actions=["strengthen"],
                suggested_connections=[0],
                tags_to_update=["x"],
            )
        )
        engine = EvolutionEngine(completion_client)

        decision = await engine.decide(_note("b"), "", 0)

        assert decision == EvolutionDecision(
            should_evolve=True,
            actions=["strengthen"],
            suggested_connections=[0],
            tags_to_update=["x"],
        )

    @pytest.mark.asyncio
    async def test_prompt_contents(self, completion_client: ScriptedCompletionClient) -> None:
        engine = EvolutionEngine(completion_client, temperature=0.3)
        note = _note("cats are mammals", keywords=["cats"], context="Zoology")

        await engine.decide(note, "memory index:0\t talk start time:x\n", 1)

        (call,) = completion_client.calls_for("memory_evolution")
        prompt = call["prompt"]
        assert "Zoology" in prompt
        assert "content: cats are mammals" in prompt
        assert 'keywords: ["cats"]' in prompt
        assert "memory index:0" in prompt
        assert "The number of neighbors is 1." in prompt
        assert call["temperature"] == 0.3

    @pytest.mark.asyncio
    async def test_backend_failure_means_no_evolution(
        self, completion_client: ScriptedCompletionClient
    ) -> None:
        completion_client.queue_evolution(RuntimeError("boom"))
        engine = EvolutionEngine(completion_client)

        decision = await engine.decide(_note("b"), "", 0)

        assert decision == EvolutionDecision.no_evolution()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reply",
        [
            "{not json",
            '{"should_evolve": true}',
            evolution_reply(suggested_connections=["first"]),
            evolution_reply(new_tags_neighborhood=["flat", "list"]),
        ],
    )
    async def test_malformed_decision_means_no_evolution(
        self, completion_client: ScriptedCompletionClient, reply: str
    ) -> None:
        completion_client.queue_evolution(reply)
        engine = EvolutionEngine(completion_client)

        decision = await engine.decide(_note("b"), "", 0)

        assert decision.should_evolve is False
        assert decision.actions == []

    @pytest.mark.asyncio
    async def test_none_reply_means_no_evolution(
        self, completion_client: ScriptedCompletionClient
    ) -> None:
        completion_client.queue_evolution(None)
        engine = EvolutionEngine(completion_client)

        decision = await engine.decide(_note("b"), "", 0)

        assert decision == EvolutionDecision.no_evolution()

    @pytest.mark.asyncio
    async def test_fractional_position_keeps_decision(
        self, completion_client: ScriptedCompletionClient
    ) -> None:
        completion_client.queue_evolution(
            evolution_reply(
                should_evolve=True,
                actions=["strengthen", "update_neighbor"],
                suggested_connections=[1.5, 0],
                tags_to_update=["x"],
                new_tags_neighborhood=[["y"]],
            )
        )
        engine = EvolutionEngine(completion_client)
        a = _note("a", tags=["a"])
        b = _note("b")

        decision = await engine.decide(b, "", 1)
        engine.apply(decision, b, [a], [a.id])

        assert decision.should_evolve is True
        assert b.links == [a.id]
        assert b.tags == ["x"]
        assert a.tags == ["y"]


class TestApplyStrengthen:
    def test_links_by_id_and_replaces_tags(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a", tags=["old"])
        b = _note("b", tags=["mine"])
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["strengthen"],
            suggested_connections=[0],
            tags_to_update=["x"],
        )

        engine.apply(decision, b, [a], [a.id])

        assert b.links == [a.id]
        assert b.tags == ["x"]
        assert a.tags == ["old"]
        assert a.links == []

    def test_out_of_range_positions_dropped(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a")
        b = _note("b")
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["strengthen"],
            suggested_connections=[3, 0, -1],
            tags_to_update=["x"],
        )

        engine.apply(decision, b, [a], [a.id])

        assert b.links == [a.id]

    def test_non_integral_positions_dropped(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a")
        c = _note("c")
        b = _note("b")
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["strengthen"],
            suggested_connections=[1.5, 0.0, 1.0],
            tags_to_update=["x"],
        )

        engine.apply(decision, b, [a, c], [a.id, c.id])

        assert b.links == [a.id, c.id]
        assert b.tags == ["x"]

    def test_empty_tags_to_update_clears_tags(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        b = _note("b", tags=["mine"])
        decision = EvolutionDecision(should_evolve=True, actions=["strengthen"])

        engine.apply(decision, b, [], [])

        assert b.tags == []

    def test_should_evolve_false_ignores_actions(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a")
        b = _note("b", tags=["mine"])
        decision = EvolutionDecision(
            should_evolve=False,
            actions=["strengthen"],
            suggested_connections=[0],
            tags_to_update=["x"],
        )

        engine.apply(decision, b, [a], [a.id])

        assert b.links == []
        assert b.tags == ["mine"]


class TestApplyUpdateNeighbor:
    def test_updates_tags_and_context(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a", context="A ctx", tags=["a"])
        c = _note("c", context="C ctx", tags=["c"])
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["update_neighbor"],
            new_context_neighborhood=["A new", "C new"],
            new_tags_neighborhood=[["y"], ["z"]],
        )

        engine.apply(decision, _note("b"), [a, c], [a.id, c.id])

        assert (a.tags, a.context) == (["y"], "A new")
        assert (c.tags, c.context) == (["z"], "C new")

    def test_missing_context_keeps_original(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a", context="A ctx", tags=["a"])
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["update_neighbor"],
            new_tags_neighborhood=[["y"]],
        )

        engine.apply(decision, _note("b"), [a], [a.id])

        assert a.tags == ["y"]
        assert a.context == "A ctx"

    def test_fewer_tag_lists_than_neighbors(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a", tags=["a"])
        c = _note("c", tags=["c"])
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["update_neighbor"],
            new_context_neighborhood=["A new", "C new"],
            new_tags_neighborhood=[["y"]],
        )

        engine.apply(decision, _note("b"), [a, c], [a.id, c.id])

        assert a.tags == ["y"]
        assert c.tags == ["c"]
        assert c.context == "General"

    def test_more_tag_lists_than_neighbors(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a", tags=["a"])
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["update_neighbor"],
            new_tags_neighborhood=[["y"], ["z"], ["w"]],
        )

        engine.apply(decision, _note("b"), [a], [a.id])

        assert a.tags == ["y"]


class TestApplyOrdering:
    def test_both_actions_in_listed_order(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a", tags=["a"])
        b = _note("b")
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["update_neighbor", "strengthen"],
            suggested_connections=[0],
            tags_to_update=["x"],
            new_tags_neighborhood=[["y"]],
        )

        engine.apply(decision, b, [a], [a.id])

        assert a.tags == ["y"]
        assert b.tags == ["x"]
        assert b.links == [a.id]

    def test_unknown_action_ignored(self) -> None:
        engine = EvolutionEngine(ScriptedCompletionClient())
        a = _note("a", tags=["a"])
        b = _note("b", tags=["mine"])
        decision = EvolutionDecision(
            should_evolve=True,
            actions=["merge", "delete"],
            suggested_connections=[0],
            tags_to_update=["x"],
        )

        engine.apply(decision, b, [a], [a.id])

        assert b.tags == ["mine"]
        assert b.links == []
        assert a.tags == ["a"]
