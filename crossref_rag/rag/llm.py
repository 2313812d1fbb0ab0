from __future__ import annotations

"""Text completion providers used by the source synthesizers."""

from dataclasses import dataclass
import logging
from typing import Any, Protocol

import httpx


class CompletionFailure(RuntimeError):
    """Raised when a completion request fails or returns no text."""
    pass


logger = logging.getLogger(__name__)


_SYSTEM_PROMPT = (
    "You are a retrieval assistant answering from several document collections. "
    "Answer only from the context in the user message. "
    "Name the sources that support each part of your answer. "
    "If the context is insufficient, say so plainly."
)


class Completion(Protocol):
    """Opaque prompt-to-text capability."""

    async def complete(self, prompt: str) -> str:
        raise NotImplementedError


def _require_text(content: object, provider: str) -> str:
    if not isinstance(content, str):
        raise CompletionFailure(f"Invalid {provider} response")
    text = content.strip()
    if not text:
        raise CompletionFailure(f"Empty {provider} response")
    return text


def _json_object(response: httpx.Response, provider: str) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise CompletionFailure(f"Non-JSON {provider} response") from exc
    if not isinstance(data, dict):
        raise CompletionFailure(f"Invalid {provider} response")
    return data


def _message_content(message: object) -> object:
    if not isinstance(message, dict):
        return None
    return message.get("content")


@dataclass(frozen=True)
class OllamaCompletion:
    """Completion backed by the Ollama chat API."""
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float
    system_prompt: str = _SYSTEM_PROMPT
    transport: httpx.AsyncBaseTransport | None = None

    async def complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()
                data = _json_object(response, "ollama")
        except httpx.HTTPError as exc:
            raise CompletionFailure(str(exc)) from exc
        return _require_text(_message_content(data.get("message")), "ollama")


@dataclass(frozen=True)
class OpenAICompletion:
    """Completion backed by OpenAI-compatible chat completions."""
    api_key: str
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float
    system_prompt: str = _SYSTEM_PROMPT
    transport: httpx.AsyncBaseTransport | None = None

    async def complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                data = _json_object(response, "openai")
        except httpx.HTTPError as exc:
            raise CompletionFailure(str(exc)) from exc
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise CompletionFailure("Invalid openai response")
        return _require_text(_message_content(choices[0].get("message")), "openai")


def build_completion(
    provider: str,
    *,
    api_key_openai: str | None,
    openai_base_url: str,
    openai_model: str | None,
    ollama_base_url: str,
    ollama_model: str,
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> OllamaCompletion | OpenAICompletion:
    """Factory for completion providers."""
    normalized = provider.strip().lower()
    if normalized == "openai":
        if not api_key_openai:
            raise CompletionFailure("OPENAI_API_KEY is required for OpenAI provider")
        if not openai_model:
            raise CompletionFailure("OPENAI_CHAT_MODEL is required for OpenAI provider")
        return OpenAICompletion(
            api_key=api_key_openai,
            base_url=openai_base_url.rstrip("/"),
            model=openai_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
    if normalized not in {"", "ollama"}:
        logger.warning("unknown_llm_provider", extra={"provider": normalized})
    return OllamaCompletion(
        base_url=ollama_base_url.rstrip("/"),
        model=ollama_model,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )
