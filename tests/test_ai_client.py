"""Tests for decoding AI replies and the review client."""

from __future__ import annotations

import json
import logging

import pytest

from carapace.ai import AIClient, MockProvider, MockResponse
from carapace.ai.client import decode_findings
from carapace.classifier import classify_file

FINDING = {
    "severity": "high",
    "category": "security",
    "title": "SQL built from request input",
    "description": "The query concatenates user input.",
    "filePath": "src/db.js",
    "startLine": 12,
    "endLine": 12,
    "ruleId": "cp-sec-sql-injection",
}


def _reply(*findings: dict, summary: str = "One issue.") -> str:
    return json.dumps({"findings": list(findings), "summary": summary})


def test_decode_plain_json() -> None:
    result = decode_findings(_reply(FINDING))
    assert result.ok
    assert not result.salvaged
    assert result.summary == "One issue."
    finding = result.findings[0]
    assert (finding.file_path, finding.start_line, finding.rule_id) == ("src/db.js", 12, "cp-sec-sql-injection")
    assert finding.confidence == "high"


def test_decode_fenced_json_with_prose() -> None:
    text = f"Here is my review:\n\n```json\n{_reply(FINDING)}\n```\nLet me know if you need more."
    result = decode_findings(text)
    assert result.ok
    assert len(result.findings) == 1


def test_decode_object_embedded_in_prose() -> None:
    result = decode_findings(f"Sure. {_reply()} That is all.")
    assert result.ok
    assert result.findings == []


def test_decode_missing_summary_defaults_to_empty() -> None:
    result = decode_findings(json.dumps({"findings": [FINDING]}))
    assert result.ok
    assert result.summary == ""


def test_decode_salvages_valid_findings() -> None:
    broken = dict(FINDING, severity="catastrophic")
    result = decode_findings(_reply(FINDING, broken))
    assert result.salvaged
    assert result.error is not None and "schema validation failed" in result.error
    assert [item.rule_id for item in result.findings] == ["cp-sec-sql-injection"]
    assert result.summary == "One issue."


@pytest.mark.parametrize("text", ["I could not review this diff.", "{not json", "[1, 2, 3]"])
def test_decode_unusable_reply(text: str) -> None:
    result = decode_findings(text)
    assert not result.ok
    assert result.findings == []


def test_decode_empty_reply_is_clean() -> None:
    result = decode_findings("   ")
    assert result.ok
    assert result.findings == []


@pytest.mark.asyncio
async def test_client_sends_diff_and_file_context() -> None:
    provider = MockProvider([MockResponse(_reply(FINDING))])
    client = AIClient(provider)

    findings = await client.analyze_code(
        "You are a reviewer.",
        "--- a/src/db.js\n+++ b/src/db.js",
        [classify_file("src/db.js")],
    )

    assert [item.rule_id for item in findings] == ["cp-sec-sql-injection"]
    request = provider.calls[0]
    assert [message.role for message in request.messages] == ["system", "user"]
    assert request.messages[0].content == "You are a reviewer."
    assert "```diff\n--- a/src/db.js" in request.user_text
    assert "- src/db.js:" in request.user_text


@pytest.mark.asyncio
async def test_client_logs_malformed_reply(caplog: pytest.LogCaptureFixture) -> None:
    client = AIClient(MockProvider([MockResponse("no json here")]))
    with caplog.at_level(logging.WARNING, logger="carapace"):
        findings = await client.analyze_code("prompt", "diff")
    assert findings == []
    assert "no JSON object found" in caplog.text


@pytest.mark.asyncio
async def test_mock_provider_matches_by_substring() -> None:
    provider = MockProvider(
        [
            MockResponse(_reply(FINDING), match="src/db.js"),
            MockResponse(_reply(summary="fallback")),
        ]
    )
    client = AIClient(provider)
    assert len(await client.analyze_code("p", "+++ b/src/db.js")) == 1
    assert await client.analyze_code("p", "+++ b/src/other.js") == []
    assert provider.call_count == 2
