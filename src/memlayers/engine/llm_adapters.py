"""Concrete LLM adapters and factory helpers."""

from __future__ import annotations

import asyncio
import json
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from memlayers.config import LLMConfig
from memlayers.engine.providers import ConfigurationError
from memlayers.engine.providers import LLMAdapter
from memlayers.engine.providers import ProviderUnavailable


def post_json(url: str, payload: dict, *, api_key: str, timeout_seconds: float) -> dict:
    """POST *payload* as JSON with bearer auth and return the decoded body.

    Blocking; callers run it through ``asyncio.to_thread``.
    """
    request = Request(
        url=url,
        data=json.dumps(payload).encode("utf-8"),
        headers={
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        },
        method="POST",
    )
    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            raw = response.read().decode("utf-8")
    except HTTPError as exc:
        detail = exc.read().decode("utf-8", errors="replace")
        raise ProviderUnavailable(f"provider HTTP {exc.code}: {detail[:200]}") from exc
    except URLError as exc:
        raise ProviderUnavailable(f"provider network error: {exc.reason}") from exc
    except OSError as exc:
        raise ProviderUnavailable(f"provider IO error: {exc}") from exc

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise ProviderUnavailable("provider returned a non-JSON envelope") from exc
    if not isinstance(data, dict):
        raise ProviderUnavailable("provider envelope must be a JSON object")
    return data


class NoopLLMAdapter(LLMAdapter):
    """Deterministic adapter that never extracts anything."""

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        timeout_seconds: float = 30.0,
    ) -> str:
        del prompt, system, temperature, max_tokens, timeout_seconds
        return '{"items":[]}'


class OpenAICompatibleLLMAdapter(LLMAdapter):
    """OpenAI-compatible chat-completions adapter (OpenAI, OpenRouter, ...)."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: str = "https://openrouter.ai/api/v1",
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 4096,
        timeout_seconds: float = 30.0,
    ) -> str:
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})
        data = await asyncio.to_thread(
            post_json,
            f"{self._base_url}/chat/completions",
            {
                "model": self._model,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
            api_key=self._api_key,
            timeout_seconds=timeout_seconds,
        )
        return _message_content(data)


def _message_content(data: dict) -> str:
    """``choices[0].message.content``; absent or null content reads as empty."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    if content is None:
        return ""
    if not isinstance(content, str):
        raise ProviderUnavailable("provider response content must be a string")
    return content


def build_llm_adapter(config: LLMConfig) -> LLMAdapter:
    """Create a concrete adapter from ``LLMConfig``."""

    provider = config.provider.strip().lower()
    if provider == "openai":
        if not config.api_key:
            raise ConfigurationError(
                "llm_config.api_key is required when provider='openai'"
            )
        return OpenAICompatibleLLMAdapter(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
        )
    if provider == "noop":
        return NoopLLMAdapter()
    raise ConfigurationError(
        f"Unsupported llm_config.provider '{config.provider}'. "
        "Supported providers: openai, noop."
    )
