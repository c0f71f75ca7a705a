"""Custom exception hierarchy for the agentic memory system.

All application-specific exceptions inherit from AMemError,
which carries an error code for structured log correlation.
"""

from __future__ import annotations


class AMemError(Exception):
    """Base exception for all agentic memory errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class LLMError(AMemError):
    """Errors from completion backends (timeouts, rate limits, failures)."""

    def __init__(self, message: str, *, code: str = "LLM_ERROR") -> None:
        super().__init__(message, code=code)


class MemoryStoreError(AMemError):
    """Errors in the memory subsystem."""

    def __init__(self, message: str, *, code: str = "MEMORY_ERROR") -> None:
        super().__init__(message, code=code)


class AnalysisFailure(MemoryStoreError):
    """Content analyzer could not produce structured metadata.

    Never surfaced to callers: recovered with sentinel defaults.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="ANALYSIS_FAILED")


class EvolutionDecisionFailure(MemoryStoreError):
    """Evolution decision JSON was unavailable or malformed.

    Never surfaced to callers: recovered as should_evolve=False.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="EVOLUTION_DECISION_FAILED")


class AgentError(AMemError):
    """Errors in the question-answering agent."""

    def __init__(self, message: str, *, code: str = "AGENT_ERROR") -> None:
        super().__init__(message, code=code)
