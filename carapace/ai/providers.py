"""HTTP completion providers (Anthropic, OpenAI, Ollama) and the provider factory."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from typing import Any

import httpx

from carapace.ai.mock import MockProvider
from carapace.ai.provider import AIProvider, CompletionRequest, CompletionResponse, ProviderError
from carapace.log import get_logger

PROVIDER_NAMES = ("anthropic", "openai", "ollama", "mock")

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0
DEFAULT_TIMEOUT = 120.0

ANTHROPIC_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_URL = "https://api.openai.com"
OLLAMA_URL = "http://localhost:11434"


class HTTPProvider:
    """Shared POST-with-retry logic; 429 and 5xx responses are retried with backoff."""

    name = "http"
    default_model = ""
    default_base_url = ""

    def __init__(
        self,
        *,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.model = model or self.default_model
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.transport = transport
        self.logger = logger or get_logger("ai")

    def headers(self) -> dict[str, str]:
        return {"content-type": "application/json"}

    async def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            for attempt in range(self.max_retries + 1):
                try:
                    response = await client.post(path, json=payload, headers=self.headers())
                except httpx.TransportError as exc:
                    problem = f"{type(exc).__name__}: {exc}"
                else:
                    status = response.status_code
                    if status < 400:
                        return self._decode(response)
                    problem = f"{self.name} API error {status}: {response.text[:200]}"
                    if status != 429 and status < 500:
                        raise ProviderError(problem)

                if attempt == self.max_retries:
                    raise ProviderError(f"{problem} (after {self.max_retries} retries)")
                delay = self.retry_base_delay * (2**attempt)
                self.logger.debug("%s request failed (%s); retrying in %.1fs", self.name, problem, delay)
                await asyncio.sleep(delay)
        raise ProviderError(f"{self.name} request was not attempted")

    def _decode(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} returned a non-JSON body: {response.text[:200]}") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name} returned {type(data).__name__}, expected a JSON object")
        return data


class AnthropicProvider(HTTPProvider):
    name = "anthropic"
    default_model = "claude-sonnet-4-20250514"
    default_base_url = ANTHROPIC_URL

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    def headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        system = request.system or next(
            (message.content for message in request.messages if message.role == "system"),
            None,
        )
        payload: dict[str, Any] = {
            "model": request.model or self.model,
            "max_tokens": request.max_tokens,
            "messages": [
                {"role": message.role, "content": message.content}
                for message in request.messages
                if message.role != "system"
            ],
        }
        if system:
            payload["system"] = system
        data = await self.post_json("/v1/messages", payload)
        text = "".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        return CompletionResponse(text=text)


class OpenAIProvider(HTTPProvider):
    name = "openai"
    default_model = "gpt-4o"
    default_base_url = OPENAI_URL

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    def headers(self) -> dict[str, str]:
        return {
            "content-type": "application/json",
            "authorization": f"Bearer {self.api_key}",
        }

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        data = await self.post_json("/v1/chat/completions", _chat_payload(request, self.model))
        return CompletionResponse(text=_first_choice_text(data))


class OllamaProvider(HTTPProvider):
    """Local Ollama server through its OpenAI-compatible endpoint."""

    name = "ollama"
    default_model = "llama3"
    default_base_url = OLLAMA_URL

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        payload = _chat_payload(request, self.model)
        payload["stream"] = False
        data = await self.post_json("/v1/chat/completions", payload)
        return CompletionResponse(text=_first_choice_text(data))


def create_provider(
    name: str,
    *,
    api_key: str | None = None,
    model: str | None = None,
    base_url: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> AIProvider:
    """Build a provider by name; hosted providers require an API key."""
    normalized = name.strip().lower()
    if normalized == "anthropic":
        if not api_key:
            raise ValueError("An API key is required for the anthropic provider (ANTHROPIC_API_KEY).")
        return AnthropicProvider(api_key, model=model, base_url=base_url, timeout=timeout)
    if normalized == "openai":
        if not api_key:
            raise ValueError("An API key is required for the openai provider (OPENAI_API_KEY).")
        return OpenAIProvider(api_key, model=model, base_url=base_url, timeout=timeout)
    if normalized == "ollama":
        return OllamaProvider(model=model, base_url=base_url, timeout=timeout)
    if normalized == "mock":
        return MockProvider()
    raise ValueError(f"Unknown AI provider '{name}'. Expected one of: {', '.join(PROVIDER_NAMES)}.")


def provider_from_env(
    env: Mapping[str, str] | None = None,
    *,
    name: str | None = None,
    model: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> AIProvider | None:
    """Resolve a provider from environment variables.

    ``name`` (or ``CARAPACE_AI_PROVIDER``) picks the backend explicitly;
    otherwise the first of ANTHROPIC_API_KEY, OPENAI_API_KEY, OLLAMA_HOST
    that is set decides. Returns None when nothing is configured.
    """
    environ = os.environ if env is None else env
    chosen = name or environ.get("CARAPACE_AI_PROVIDER")
    if not chosen:
        if environ.get("ANTHROPIC_API_KEY"):
            chosen = "anthropic"
        elif environ.get("OPENAI_API_KEY"):
            chosen = "openai"
        elif environ.get("OLLAMA_HOST"):
            chosen = "ollama"
        else:
            return None

    keys = {"anthropic": "ANTHROPIC_API_KEY", "openai": "OPENAI_API_KEY"}
    api_key = environ.get(keys.get(chosen.lower(), ""), "") or None
    base_url = _ollama_url(environ.get("OLLAMA_HOST")) if chosen.lower() == "ollama" else None
    return create_provider(chosen, api_key=api_key, model=model, base_url=base_url, timeout=timeout)


def _ollama_url(host: str | None) -> str | None:
    if not host:
        return None
    return host if host.startswith(("http://", "https://")) else f"http://{host}"


def _chat_payload(request: CompletionRequest, default_model: str) -> dict[str, Any]:
    messages = [{"role": message.role, "content": message.content} for message in request.messages]
    if request.system and not any(message.role == "system" for message in request.messages):
        messages.insert(0, {"role": "system", "content": request.system})
    return {
        "model": request.model or default_model,
        "max_tokens": request.max_tokens,
        "messages": messages,
    }


def _first_choice_text(data: dict[str, Any]) -> str:
    choices = data.get("choices") or []
    if not choices:
        return ""
    return (choices[0].get("message") or {}).get("content") or ""
