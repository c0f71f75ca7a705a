"""Minimal end-to-end run of the memory store against a configured backend.

Adds three notes, then prints the raw neighborhood for a query.

Usage:
    python scripts/simple_example.py [--provider openai|ollama] [--model NAME]
    python scripts/simple_example.py --provider ollama --model llama3 --k 2
"""

from __future__ import annotations

import argparse
import asyncio
import sys

import structlog

from src.agent.provider_registry import build_provider_registry
from src.config.settings import get_settings
from src.infra.logging import setup_logging
from src.memory.store import MemoryStore

logger = structlog.get_logger()

EXAMPLE_NOTES = [
    ("Neural networks are composed of layers of neurons that process information.", "202503301200"),
    ("Data preprocessing involves cleaning and transforming raw data for model training.", "202503301201"),
    ("Convolutional neural networks (CNNs) are particularly effective for image processing tasks.", "202503301202"),
]
DEFAULT_QUERY = "How do neural networks process images?"


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.provider:
        settings.provider.active = args.provider
    if args.model:
        settings.openai.model = args.model
        settings.ollama.model = args.model
    if args.evo_threshold:
        settings.memory.evo_threshold = args.evo_threshold

    try:
        registry = build_provider_registry(settings)
    except RuntimeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    provider = registry.get()
    store = MemoryStore(provider.client, settings.memory)
    logger.info("example_started", provider=provider.name, model=provider.model)

    for content, timestamp in EXAMPLE_NOTES:
        note_id = await store.add_note(content, timestamp)
        note = store.read(note_id)
        print(f"added {note_id}: tags={note.tags} links={store.link_positions(note_id)}")

    transcript = await store.find_related_memories_raw(args.query, args.k)
    print(f"\nQuery: {args.query}\nRelated memories:\n{transcript}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Agentic memory example")
    parser.add_argument("--provider", choices=["openai", "ollama"], default=None)
    parser.add_argument("--model", default=None, help="Override the provider's default model")
    parser.add_argument("--evo-threshold", type=int, default=None)
    parser.add_argument("--k", type=int, default=2, help="Neighborhood size for the query")
    parser.add_argument("--query", default=DEFAULT_QUERY)
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    args = parser.parse_args()

    setup_logging(json_output=args.json_logs)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
