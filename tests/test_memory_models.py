"""Tests for MemoryNote and ContentAnalysis."""

from __future__ import annotations

import re

import pytest

from src.memory.models import (
    DEFAULT_CATEGORY,
    DEFAULT_CONTEXT,
    ContentAnalysis,
    MemoryNote,
    MetadataState,
)


class TestMemoryNoteDefaults:
    def test_defaults(self) -> None:
        note = MemoryNote(content="hello")
        assert note.keywords == []
        assert note.context == DEFAULT_CONTEXT
        assert note.tags == []
        assert note.links == []
        assert note.importance_score == 1.0
        assert note.retrieval_count == 0
        assert note.evolution_history == []
        assert note.category == DEFAULT_CATEGORY

    def test_timestamp_format(self) -> None:
        note = MemoryNote(content="hello")
        assert re.fullmatch(r"\d{12}", note.timestamp)
        assert note.last_accessed == note.timestamp

    def test_unique_ids(self) -> None:
        assert MemoryNote(content="a").id != MemoryNote(content="a").id

    def test_list_defaults_not_shared(self) -> None:
        a = MemoryNote(content="a")
        b = MemoryNote(content="b")
        a.tags.append("x")
        assert b.tags == []


class TestMemoryNoteImmutability:
    def test_id_immutable(self) -> None:
        note = MemoryNote(content="hello")
        with pytest.raises(AttributeError, match="immutable"):
            note.id = "other"

    def test_content_immutable(self) -> None:
        note = MemoryNote(content="hello")
        with pytest.raises(AttributeError, match="immutable"):
            note.content = "changed"

    def test_metadata_mutable(self) -> None:
        note = MemoryNote(content="hello")
        note.tags = ["x"]
        note.context = "New context"
        assert note.tags == ["x"]
        assert note.context == "New context"


class TestMemoryNoteCreate:
    def test_pending_when_metadata_missing(self) -> None:
        note = MemoryNote.create("hello", keywords=["k"])
        assert note.metadata_state is MetadataState.pending
        assert not note.is_ready
        assert note.unanalyzed_fields == frozenset({"context", "tags"})

    def test_ready_when_all_supplied(self) -> None:
        note = MemoryNote.create("hello", keywords=[], context="Ctx", tags=[])
        assert note.is_ready
        assert note.unanalyzed_fields == frozenset()

    def test_timestamp_override(self) -> None:
        note = MemoryNote.create("hello", timestamp="202501011200")
        assert note.timestamp == "202501011200"
        assert note.last_accessed == "202501011200"

    def test_context_list_joined(self) -> None:
        note = MemoryNote.create("hello", context=["machine", "learning"])
        assert note.context == "machine learning"

    def test_extra_fields_passed_through(self) -> None:
        note = MemoryNote.create("hello", category="Science", retrieval_count=3)
        assert note.category == "Science"
        assert note.retrieval_count == 3

    def test_supplied_lists_copied(self) -> None:
        tags = ["a"]
        note = MemoryNote.create("hello", tags=tags)
        tags.append("b")
        assert note.tags == ["a"]


class TestApplyAnalysis:
    def test_fills_only_unanalyzed(self) -> None:
        note = MemoryNote.create("hello", keywords=["mine"])
        note.apply_analysis(
            ContentAnalysis(keywords=["theirs"], context="Their context", tags=["t"])
        )

        assert note.keywords == ["mine"]
        assert note.context == "Their context"
        assert note.tags == ["t"]
        assert note.is_ready

    def test_fallback_analysis(self) -> None:
        fallback = ContentAnalysis.fallback()
        assert fallback.keywords == []
        assert fallback.context == "General"
        assert fallback.tags == []


class TestToDict:
    def test_round_trip_fields(self) -> None:
        note = MemoryNote.create("hello", keywords=["k"], context="C", tags=["t"])
        data = note.to_dict()

        assert data["id"] == note.id
        assert data["content"] == "hello"
        assert data["metadata_state"] == "ready"
        assert "unanalyzed_fields" not in data
