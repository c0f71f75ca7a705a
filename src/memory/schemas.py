"""Structured-output schemas and payload models for memory LLM calls.

Each schema is sent to the completion backend; the matching pydantic model
validates what comes back before any state is touched.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

from src.agent.model_client import json_schema_format

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "keywords": {"type": "array", "items": {"type": "string"}},
        "context": {"type": "string"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["keywords", "context", "tags"],
    "additionalProperties": False,
}

EVOLUTION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "should_evolve": {"type": "boolean"},
        "actions": {"type": "array", "items": {"type": "string"}},
        "suggested_connections": {"type": "array", "items": {"type": "number"}},
        "new_context_neighborhood": {"type": "array", "items": {"type": "string"}},
        "tags_to_update": {"type": "array", "items": {"type": "string"}},
        "new_tags_neighborhood": {
            "type": "array",
            "items": {"type": "array", "items": {"type": "string"}},
        },
    },
    "required": [
        "should_evolve",
        "actions",
        "suggested_connections",
        "tags_to_update",
        "new_context_neighborhood",
        "new_tags_neighborhood",
    ],
    "additionalProperties": False,
}

ANALYSIS_FORMAT = json_schema_format("memory_analysis", ANALYSIS_SCHEMA)
EVOLUTION_FORMAT = json_schema_format("memory_evolution", EVOLUTION_SCHEMA)

M = TypeVar("M", bound=BaseModel)


class AnalysisPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    keywords: list[str]
    context: str
    tags: list[str]


class EvolutionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    should_evolve: bool
    actions: list[str]
    suggested_connections: list[float]
    tags_to_update: list[str]
    new_context_neighborhood: list[str]
    new_tags_neighborhood: list[list[str]]


def extract_json_object(raw: str) -> str:
    """Trim fences or chatter around the first {...} span of a model reply."""
    trimmed = raw.strip()
    if trimmed.startswith("{"):
        return trimmed
    start = trimmed.find("{")
    end = trimmed.rfind("}")
    if start != -1 and end > start:
        return trimmed[start : end + 1]
    return trimmed


def parse_payload(raw: object, model: type[M]) -> M:
    """Validate a model reply against a payload model.

    Raises pydantic.ValidationError on invalid JSON or schema mismatch, and
    TypeError when the reply is not text at all.
    """
    if not isinstance(raw, str):
        raise TypeError(f"expected str reply, got {type(raw).__name__}")
    return model.model_validate_json(extract_json_object(raw))
