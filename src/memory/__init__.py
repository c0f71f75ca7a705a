"""Memory module: note model, lexical retrieval, analysis, evolution and storage."""

from src.memory.analyzer import ContentAnalyzer
from src.memory.evolution import EvolutionDecision, EvolutionEngine
from src.memory.models import ContentAnalysis, MemoryNote, MetadataState
from src.memory.retriever import LexicalRetriever, Retriever
from src.memory.store import MemoryStore

__all__ = [
    "ContentAnalysis",
    "ContentAnalyzer",
    "EvolutionDecision",
    "EvolutionEngine",
    "LexicalRetriever",
    "MemoryNote",
    "MemoryStore",
    "MetadataState",
    "Retriever",
]
