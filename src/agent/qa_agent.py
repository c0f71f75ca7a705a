"""Question-answering agent over a MemoryStore.

Flow: question → LLM keywords → raw memory neighborhood → category prompt
→ LLM answer. Every completion is JSON-constrained; unparseable replies
fall back to the raw text.
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from src.agent.model_client import json_schema_format
from src.infra.errors import AgentError

if TYPE_CHECKING:
    from src.agent.model_client import CompletionClient
    from src.memory.store import MemoryStore

logger = structlog.get_logger()

NOT_MENTIONED = "Not mentioned in the conversation"
VALID_CATEGORIES = frozenset({1, 2, 3, 4, 5})
DEFAULT_TEMPERATURE = 0.7


def _string_field_format(name: str) -> dict:
    return json_schema_format(
        "response",
        {
            "type": "object",
            "properties": {name: {"type": "string"}},
            "required": [name],
            "additionalProperties": False,
        },
    )


KEYWORDS_FORMAT = _string_field_format("keywords")
RELEVANT_PARTS_FORMAT = _string_field_format("relevant_parts")
ANSWER_FORMAT = _string_field_format("answer")

_KEYWORDS_PROMPT = """Given the following question, generate several keywords, using 'cosmos' as the separator.

Question: {question}

Format your response as a JSON object with a "keywords" field containing the selected text.

Example response format:
{{"keywords": "keyword1, keyword2, keyword3"}}"""

_RELEVANT_PARTS_PROMPT = """Given the following conversation memories and a question, select the most relevant parts of the conversation that would help answer the question. Include the date/time if available.

Conversation memories:
{memories}

Question: {question}

Return only the relevant parts of the conversation that would help answer this specific question. Format your response as a JSON object with a "relevant_parts" field containing the selected text.
If no parts are relevant, do not do any things just return the input.

Example response format:
{{"relevant_parts": "2024-01-01: Speaker A said something relevant..."}}"""

_ADVERSARIAL_PROMPT = """Based on the context: {context}, answer the following question. {question}

Select the correct answer: {option_a} or {option_b}  Short answer:"""

_TEMPORAL_PROMPT = """Based on the context: {context}, answer the following question. Use DATE of CONVERSATION to answer with an approximate date.
Please generate the shortest possible answer, using words from the conversation where possible, and avoid using any subjects.

Question: {question} Short answer:"""

_SHORT_PHRASE_PROMPT = """Based on the context: {context}, write an answer in the form of a short phrase for the following question. Answer with exact words from the context whenever possible.

Question: {question} Short answer:"""


@dataclass(frozen=True)
class AnswerResult:
    """Answer plus the prompt and raw memory context it was produced from."""

    answer: str
    prompt: str
    raw_context: str


def _field_or_raw(raw: str, name: str) -> str:
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return raw
    if isinstance(parsed, dict) and isinstance(parsed.get(name), str):
        return parsed[name]
    return raw


class MemoryQAAgent:
    """Answer questions about a conversation from its stored memories."""

    def __init__(
        self,
        memory_store: MemoryStore,
        completion_client: CompletionClient,
        *,
        retrieve_k: int = 10,
        temperature_c5: float = 0.5,
        rng: random.Random | None = None,
    ) -> None:
        self._memory = memory_store
        self._client = completion_client
        self._retrieve_k = retrieve_k
        self._temperature_c5 = temperature_c5
        self._rng = rng or random.Random()

    async def add_memory(self, content: str, timestamp: str | None = None) -> str:
        return await self._memory.add_note(content, timestamp)

    async def retrieve_memory(self, query: str, k: int | None = None) -> str:
        return await self._memory.find_related_memories_raw(query, k or self._retrieve_k)

    async def generate_query_keywords(self, question: str) -> str:
        raw = await self._client.complete(
            _KEYWORDS_PROMPT.format(question=question), KEYWORDS_FORMAT, DEFAULT_TEMPERATURE
        )
        return _field_or_raw(raw, "keywords").strip()

    async def select_relevant_parts(self, memories_text: str, query: str) -> str:
        raw = await self._client.complete(
            _RELEVANT_PARTS_PROMPT.format(memories=memories_text, question=query),
            RELEVANT_PARTS_FORMAT,
            DEFAULT_TEMPERATURE,
        )
        return _field_or_raw(raw, "relevant_parts")

    def build_prompt(
        self,
        question: str,
        category: int,
        context: str,
        reference_answer: str,
    ) -> tuple[str, float]:
        """Category-specific prompt and sampling temperature.

        Categories: 2 temporal, 5 adversarial; 1, 3 and 4 get the short-phrase prompt.
        """
        if category not in VALID_CATEGORIES:
            raise AgentError(f"Invalid question category: {category}", code="INVALID_CATEGORY")

        if category == 5:
            options = [NOT_MENTIONED, reference_answer]
            if self._rng.random() >= 0.5:
                options.reverse()
            prompt = _ADVERSARIAL_PROMPT.format(
                context=context,
                question=question,
                option_a=options[0],
                option_b=options[1],
            )
            return prompt, self._temperature_c5

        if category == 2:
            return _TEMPORAL_PROMPT.format(context=context, question=question), DEFAULT_TEMPERATURE

        return _SHORT_PHRASE_PROMPT.format(context=context, question=question), DEFAULT_TEMPERATURE

    async def answer_question(
        self,
        question: str,
        category: int,
        reference_answer: str = "",
    ) -> AnswerResult:
        if category not in VALID_CATEGORIES:
            raise AgentError(f"Invalid question category: {category}", code="INVALID_CATEGORY")

        keywords = await self.generate_query_keywords(question)
        raw_context = await self.retrieve_memory(keywords)
        prompt, temperature = self.build_prompt(question, category, raw_context, reference_answer)

        raw = await self._client.complete(prompt, ANSWER_FORMAT, temperature)
        answer = _field_or_raw(raw, "answer")

        logger.info(
            "question_answered",
            category=category,
            keywords=keywords[:50],
            context_chars=len(raw_context),
        )
        return AnswerResult(answer=answer, prompt=prompt, raw_context=raw_context)
