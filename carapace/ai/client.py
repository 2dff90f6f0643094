"""Send diff chunks or source files to a provider and decode the findings it returns."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from carapace.ai.provider import AIMessage, AIProvider, CompletionRequest
from carapace.classifier import FileClassification
from carapace.findings import AIReviewResponse, Finding
from carapace.log import get_logger

MAX_RESPONSE_TOKENS = 8192

FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(slots=True)
class DecodeResult:
    """Outcome of decoding a completion.

    ``salvaged`` is set when strict validation failed and only the
    individually valid findings were kept. ``error`` describes why strict
    decoding failed, if it did.
    """

    findings: list[Finding] = field(default_factory=list)
    summary: str = ""
    error: str | None = None
    salvaged: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def decode_findings(text: str) -> DecodeResult:
    """Decode a model reply: strict schema first, then per-finding salvage.

    Tolerates markdown fences and prose around the JSON object. Never raises.
    """
    raw = text.strip()
    if not raw:
        return DecodeResult()

    payload = _load_json(raw)
    if payload is None:
        return DecodeResult(error="no JSON object found in response")

    try:
        response = AIReviewResponse.model_validate(payload)
    except ValidationError as exc:
        return _salvage(payload, f"schema validation failed: {exc.error_count()} error(s)")
    return DecodeResult(findings=list(response.findings), summary=response.summary)


def describe_classifications(classifications: Sequence[FileClassification]) -> str:
    lines: list[str] = []
    for item in classifications:
        chain = f" ({item.chain})" if item.chain else ""
        contract = " [smart contract]" if item.is_smart_contract else ""
        lines.append(f"- {item.path}: {item.language}{chain}{contract}")
    return "\n".join(lines)


class AIClient:
    """Thin wrapper over an :class:`AIProvider` for diff and whole-file review.

    Provider errors propagate; the caller decides how a failed chunk is
    isolated from the rest of the run.
    """

    def __init__(
        self,
        provider: AIProvider,
        *,
        max_tokens: int = MAX_RESPONSE_TOKENS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.provider = provider
        self.max_tokens = max_tokens
        self.logger = logger or get_logger("ai")

    async def analyze_code(
        self,
        system_prompt: str,
        diff: str,
        classifications: Sequence[FileClassification] = (),
    ) -> list[Finding]:
        user_message = (
            "## Files in this diff\n\n"
            f"{describe_classifications(classifications)}\n\n"
            "## Diff\n\n"
            f"```diff\n{diff}\n```\n\n"
            "Review the above diff according to the system instructions "
            "and return your findings as JSON."
        )
        return await self._review(system_prompt, user_message)

    async def analyze_file(
        self,
        system_prompt: str,
        file_path: str,
        content: str,
        classifications: Sequence[FileClassification] = (),
    ) -> list[Finding]:
        """Review whole source text; ``file_path`` may name several files packed into ``content``."""
        user_message = (
            f"## File: {file_path}\n\n"
            f"{describe_classifications(classifications)}\n\n"
            f"```\n{content}\n```\n\n"
            "Review this source according to the system instructions "
            "and return your findings as JSON."
        )
        return await self._review(system_prompt, user_message)

    async def _review(self, system_prompt: str, user_message: str) -> list[Finding]:
        request = CompletionRequest(
            messages=[
                AIMessage(role="system", content=system_prompt),
                AIMessage(role="user", content=user_message),
            ],
            max_tokens=self.max_tokens,
        )
        response = await self.provider.complete(request)
        result = decode_findings(response.text)
        if result.error is not None:
            self.logger.warning(
                "%s response: %s (%d findings kept)",
                self.provider.name,
                result.error,
                len(result.findings),
            )
        return result.findings


def _load_json(raw: str) -> Any | None:
    fenced = FENCE_RE.search(raw)
    candidate = fenced.group(1).strip() if fenced else raw
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass
    match = OBJECT_RE.search(raw)
    if match is None:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        return None


def _salvage(payload: Any, error: str) -> DecodeResult:
    if not isinstance(payload, dict) or not isinstance(payload.get("findings"), list):
        return DecodeResult(error=error)
    kept: list[Finding] = []
    for item in payload["findings"]:
        try:
            kept.append(Finding.model_validate(item))
        except ValidationError:
            continue
    summary = payload.get("summary")
    return DecodeResult(
        findings=kept,
        summary=summary if isinstance(summary, str) else "",
        error=error,
        salvaged=True,
    )
