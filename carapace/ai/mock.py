"""Offline provider returning canned completions, for tests and dry runs."""

from __future__ import annotations

import json
from dataclasses import dataclass

from carapace.ai.provider import CompletionRequest, CompletionResponse, ProviderError

DEFAULT_RESPONSE = json.dumps({"findings": [], "summary": "No issues found (mock provider)."})


@dataclass(frozen=True, slots=True)
class MockResponse:
    """Canned reply; ``match`` selects it by substring of the user message."""

    text: str
    match: str | None = None


class MockProvider:
    name = "mock"

    def __init__(
        self,
        responses: list[MockResponse] | None = None,
        *,
        fail_on: str | None = None,
    ) -> None:
        self.responses = list(responses or [])
        self.fail_on = fail_on
        self.calls: list[CompletionRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.calls.append(request)
        user_text = request.user_text
        if self.fail_on is not None and self.fail_on in user_text:
            raise ProviderError(f"mock failure for request containing {self.fail_on!r}")
        for response in self.responses:
            if response.match is None or response.match in user_text:
                return CompletionResponse(text=response.text)
        return CompletionResponse(text=DEFAULT_RESPONSE)
