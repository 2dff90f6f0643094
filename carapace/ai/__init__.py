"""AI review: provider backends, prompt assembly and response decoding."""

from __future__ import annotations

from carapace.ai.client import AIClient, DecodeResult, decode_findings
from carapace.ai.mock import MockProvider, MockResponse
from carapace.ai.prompts import build_full_file_prompt, build_system_prompt
from carapace.ai.provider import (
    AIMessage,
    AIProvider,
    CompletionRequest,
    CompletionResponse,
    ProviderError,
)
from carapace.ai.providers import (
    AnthropicProvider,
    OllamaProvider,
    OpenAIProvider,
    create_provider,
    provider_from_env,
)

__all__ = [
    "AIClient",
    "AIMessage",
    "AIProvider",
    "AnthropicProvider",
    "CompletionRequest",
    "CompletionResponse",
    "DecodeResult",
    "MockProvider",
    "MockResponse",
    "OllamaProvider",
    "OpenAIProvider",
    "ProviderError",
    "build_full_file_prompt",
    "build_system_prompt",
    "create_provider",
    "decode_findings",
    "provider_from_env",
]
