"""Content analyzer: derive keywords, context and tags from raw memory text.

Best-effort. Any backend or parsing failure degrades to the fallback
analysis so note creation is never blocked.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from src.infra.errors import AnalysisFailure
from src.memory.models import ContentAnalysis, MemoryNote
from src.memory.schemas import ANALYSIS_FORMAT, AnalysisPayload, parse_payload

if TYPE_CHECKING:
    from src.agent.model_client import CompletionClient

logger = structlog.get_logger()

ANALYSIS_PROMPT = """Generate a structured analysis of the following content by:
1. Identifying the most salient keywords (focus on nouns, verbs, and key concepts)
2. Extracting core themes and contextual elements
3. Creating relevant categorical tags

Format the response as a JSON object:
{{
    "keywords": [
        // several specific, distinct keywords that capture key concepts and terminology
        // Order from most to least important
        // Don't include keywords that are the name of the speaker or time
        // At least three keywords, but don't be too redundant.
    ],
    "context":
        // one sentence summarizing:
        // - Main topic/domain
        // - Key arguments/points
        // - Intended audience/purpose
    ,
    "tags": [
        // several broad categories/themes for classification
        // Include domain, format, and type tags
        // At least three tags, but don't be too redundant.
    ]
}}

Content for analysis:
{content}"""


class ContentAnalyzer:
    """Turn memory content into keywords, a one-sentence context and tags."""

    def __init__(self, completion_client: CompletionClient, *, temperature: float = 0.7) -> None:
        self._client = completion_client
        self._temperature = temperature

    async def analyze(self, content: str) -> ContentAnalysis:
        """Analyze content. Never raises; failures return ContentAnalysis.fallback()."""
        try:
            return await self._analyze(content)
        except AnalysisFailure as e:
            logger.warning("analysis_failed", code=e.code, error=str(e), content=content[:50])
            return ContentAnalysis.fallback()

    async def _analyze(self, content: str) -> ContentAnalysis:
        prompt = ANALYSIS_PROMPT.format(content=content)
        try:
            raw = await self._client.complete(prompt, ANALYSIS_FORMAT, self._temperature)
        except Exception as e:
            raise AnalysisFailure(f"completion unavailable: {e}") from e

        try:
            payload = parse_payload(raw, AnalysisPayload)
        except ValidationError as e:
            raise AnalysisFailure(f"malformed analysis: {e.error_count()} errors") from e
        except TypeError as e:
            raise AnalysisFailure(f"malformed analysis: {e}") from e

        return ContentAnalysis(
            keywords=payload.keywords,
            context=payload.context,
            tags=payload.tags,
        )

    async def enrich(self, note: MemoryNote) -> MemoryNote:
        """Second phase of note construction: fill missing metadata, mark ready.

        Skips the backend entirely when the caller supplied keywords, context
        and tags. Caller-supplied fields are never overwritten.
        """
        if note.is_ready:
            return note

        analysis = await self.analyze(note.content)
        note.apply_analysis(analysis)
        logger.debug(
            "note_enriched",
            note_id=note.id,
            keywords=len(note.keywords),
            tags=len(note.tags),
        )
        return note
