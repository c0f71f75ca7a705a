"""Transcript rendering for retrieved memories.

Two shapes:
- indexed lines (with memory index) fed into the evolution prompt
- raw lines for downstream consumers such as the QA agent
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.memory.models import MemoryNote


def format_indexed_line(position: int, note: MemoryNote) -> str:
    return (
        f"memory index:{position}"
        f"\t talk start time:{note.timestamp}"
        f"\t memory content: {note.content}"
        f"\t memory context: {note.context}"
        f"\t memory keywords: {json.dumps(note.keywords, ensure_ascii=False)}"
        f"\t memory tags: {json.dumps(note.tags, ensure_ascii=False)}\n"
    )


def format_raw_line(note: MemoryNote) -> str:
    return (
        f"talk start time:{note.timestamp}"
        f"\tmemory content: {note.content}"
        f"\tmemory context: {note.context}"
        f"\tmemory keywords: {json.dumps(note.keywords, ensure_ascii=False)}"
        f"\tmemory tags: {json.dumps(note.tags, ensure_ascii=False)}\n"
    )


def render_neighborhood(hits: Sequence[tuple[int, MemoryNote]]) -> str:
    """Render (position, note) pairs as indexed transcript lines."""
    return "".join(format_indexed_line(position, note) for position, note in hits)


def render_raw_transcript(
    hits: Sequence[MemoryNote],
    resolve_link: Callable[[str], MemoryNote | None],
    k: int,
) -> str:
    """Render hits plus their direct links.

    One link counter is shared by all hits. After each emitted link line the
    counter is checked: at k the current hit's remaining links are skipped,
    otherwise it is incremented. Later hits are still rendered and still emit
    their first link line.
    """
    lines: list[str] = []
    emitted_links = 0
    for note in hits:
        lines.append(format_raw_line(note))
        for link_id in note.links:
            neighbor = resolve_link(link_id)
            if neighbor is None:
                continue
            lines.append(format_raw_line(neighbor))
            if emitted_links >= k:
                break
            emitted_links += 1
    return "".join(lines)
