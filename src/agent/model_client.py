"""Completion clients: prompt + JSON schema in, JSON text out.

The memory core only depends on CompletionClient.complete(). Backends are
injected at construction; there is no module-level client.
"""

from __future__ import annotations

import asyncio
import json
import random
from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

import httpx
import structlog
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from src.infra.errors import LLMError

logger = structlog.get_logger()

T = TypeVar("T")

_RETRYABLE = (APIConnectionError, APITimeoutError, RateLimitError)

JSON_SYSTEM_PROMPT = "You must respond with a JSON object."


def json_schema_format(name: str, schema: dict[str, Any]) -> dict[str, Any]:
    """Wrap a JSON schema in the OpenAI structured-output descriptor."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": name,
            "schema": schema,
            "strict": True,
        },
    }


def _empty_value(prop: dict[str, Any]) -> Any:
    kind = prop.get("type")
    if kind == "array":
        return []
    if kind == "string":
        return ""
    if kind == "object":
        return {}
    if kind in ("number", "integer"):
        return 0
    if kind == "boolean":
        return False
    return None


def empty_response(response_format: dict[str, Any]) -> dict[str, Any]:
    """Build a schema-shaped empty object for a structured-output descriptor."""
    json_schema = response_format.get("json_schema")
    if not json_schema:
        return {}
    properties = json_schema.get("schema", {}).get("properties", {})
    return {name: _empty_value(prop) for name, prop in properties.items()}


class CompletionClient(ABC):
    """Abstract completion capability shared by every backend."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        response_format: dict[str, Any],
        temperature: float = 0.7,
    ) -> str:
        """Return model text that should parse as JSON matching response_format."""
        ...


class OpenAICompletionClient(CompletionClient):
    """Completion client using the OpenAI SDK.

    Works with OpenAI and any OpenAI-compatible endpoint via base_url.
    Includes exponential backoff retry for transient errors.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        *,
        model: str = "gpt-4o-mini",
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_tokens: int = 1000,
    ) -> None:
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self.model = model
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_tokens = max_tokens

    async def _retry_call(
        self,
        coro_factory: Callable[[], Coroutine[Any, Any, T]],
        *,
        context: str = "",
    ) -> T:
        """Execute an async call with exponential backoff retry.

        Retries on: APIConnectionError, APITimeoutError, RateLimitError.
        Non-retryable API errors are wrapped in LLMError.
        """
        for attempt in range(self._max_retries + 1):
            try:
                return await coro_factory()
            except _RETRYABLE as e:
                if attempt == self._max_retries:
                    raise LLMError(
                        f"LLM call failed after {self._max_retries + 1} attempts: {e}"
                    ) from e
                delay = self._base_delay * (2**attempt) + random.uniform(0, 0.5)
                logger.warning(
                    "llm_retry",
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    delay=round(delay, 2),
                    error=str(e),
                    context=context,
                )
                await asyncio.sleep(delay)
            except APIStatusError as e:
                raise LLMError(
                    f"LLM API error: {e.status_code} {e.message}"
                ) from e
        # Unreachable, but satisfies type checker
        raise LLMError("Retry loop exhausted")  # pragma: no cover

    async def complete(
        self,
        prompt: str,
        response_format: dict[str, Any],
        temperature: float = 0.7,
    ) -> str:
        messages = [
            {"role": "system", "content": JSON_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        logger.debug("completion_request", model=self.model, prompt_chars=len(prompt))
        response = await self._retry_call(
            lambda: self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format=response_format,
                temperature=temperature,
                max_tokens=self._max_tokens,
            ),
            context="complete",
        )
        if not response.choices:
            raise LLMError("Empty choices from provider (complete)")
        content = response.choices[0].message.content or ""
        logger.debug("completion_response", chars=len(content))
        return content


class OllamaCompletionClient(CompletionClient):
    """Completion client for a local Ollama daemon.

    Never raises: transport or payload failures degrade to a schema-shaped
    empty JSON object so callers always receive parseable text.
    """

    def __init__(
        self,
        model: str = "llama2",
        host: str = "http://localhost:11434",
        *,
        timeout: float = 120.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self._url = f"{host.rstrip('/')}/api/chat"
        self._timeout = timeout
        self._http = http_client

    async def complete(
        self,
        prompt: str,
        response_format: dict[str, Any],
        temperature: float = 0.7,
    ) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": JSON_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": {"temperature": temperature},
        }
        json_schema = response_format.get("json_schema")
        payload["format"] = json_schema["schema"] if json_schema else "json"

        try:
            if self._http is not None:
                response = await self._http.post(self._url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=payload)
            response.raise_for_status()
            content = response.json()["message"]["content"]
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.warning("ollama_completion_failed", model=self.model, error=str(e))
            return json.dumps(empty_response(response_format))

        if not isinstance(content, str):
            logger.warning(
                "ollama_completion_failed",
                model=self.model,
                error=f"non-text content: {type(content).__name__}",
            )
            return json.dumps(empty_response(response_format))
        return content
