"""Shared pytest fixtures for memory tests."""

from __future__ import annotations

import pytest

from src.config.settings import MemorySettings
from src.memory.store import MemoryStore
from tests.scripted_client import ScriptedCompletionClient


@pytest.fixture()
def completion_client() -> ScriptedCompletionClient:
    return ScriptedCompletionClient()


@pytest.fixture()
def memory_settings() -> MemorySettings:
    return MemorySettings(
        embedding_model="all-MiniLM-L6-v2",
        evo_threshold=100,
        neighbor_k=5,
        analysis_temperature=0.7,
        evolution_temperature=0.7,
    )


@pytest.fixture()
def memory_store(
    completion_client: ScriptedCompletionClient,
    memory_settings: MemorySettings,
) -> MemoryStore:
    return MemoryStore(completion_client, memory_settings)
