"""Tests for the diff review orchestrator."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import pytest

from carapace.ai import AIClient, CompletionRequest, CompletionResponse, MockProvider, MockResponse
from carapace.analyzer import (
    CLEAN_SUMMARY,
    EMPTY_DIFF_SUMMARY,
    AnalyzeParams,
    ReviewResult,
    analyze,
    build_summary,
    review_chunks,
)
from carapace.chunking import split_into_chunks
from carapace.classifier import classify_file
from carapace.diff_parser import parse_unified_diff
from tests.helpers_findings import make_finding

FIXTURE_DIR = Path(__file__).parent / "fixtures" / "diffs"
VULNERABLE = (FIXTURE_DIR / "vulnerable.diff").read_text(encoding="utf-8")

HANDLER_JS = "\n".join(
    [
        'const express = require("express");',
        "",
        "function handle(req, res) {",
        "  const result = eval(req.query.expr);",
        "  res.send(String(result));",
        "}",
    ]
)
VAULT_SOL = "\n".join(
    [
        "pragma solidity ^0.8.0;",
        "",
        "contract Vault {",
        "    address owner;",
        "    function withdraw() public {",
        "        require(tx.origin == owner);",
        "    }",
        "}",
    ]
)

AI_FINDING = {
    "severity": "high",
    "category": "security",
    "title": "Unvalidated expression input",
    "description": "Request input reaches an evaluator.",
    "filePath": "src/handler.js",
    "startLine": 4,
    "endLine": 4,
    "ruleId": "ai-unvalidated-input",
}


def _reply(*findings: dict) -> str:
    return json.dumps({"findings": list(findings), "summary": "reviewed"})


def _checkout(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "contracts").mkdir()
    (tmp_path / "src" / "handler.js").write_text(HANDLER_JS, encoding="utf-8")
    (tmp_path / "contracts" / "Vault.sol").write_text(VAULT_SOL, encoding="utf-8")
    return tmp_path


def _large_file_diff(path: str, lines: int = 150) -> str:
    body = "".join(f"+const value{index} = computeSomething({index}, 'padding text');\n" for index in range(lines))
    return f"--- /dev/null\n+++ b/{path}\n@@ -0,0 +1,{lines} @@\n{body}"


class SlowProvider:
    name = "slow"

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        await asyncio.sleep(5)
        return CompletionResponse(text=_reply())


class CrashingProvider:
    name = "crashing"

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        raise RuntimeError("backend exploded")


class TrackingProvider:
    name = "tracking"

    def __init__(self) -> None:
        self.in_flight = 0
        self.peak = 0

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return CompletionResponse(text=_reply())


@pytest.mark.asyncio
async def test_empty_diff() -> None:
    result = await analyze(AnalyzeParams(diff="", static_only=True))
    assert result.findings == []
    assert result.summary == EMPTY_DIFF_SUMMARY
    assert result.score is not None and result.score.score == 100


@pytest.mark.asyncio
async def test_ai_mode_requires_provider() -> None:
    with pytest.raises(ValueError, match="no AI provider"):
        await analyze(AnalyzeParams(diff=VULNERABLE))


@pytest.mark.asyncio
async def test_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError, match="ai_concurrency"):
        await analyze(AnalyzeParams(diff=VULNERABLE, provider=MockProvider(), ai_concurrency=0))


@pytest.mark.asyncio
async def test_static_only_without_checkout_is_clean() -> None:
    result = await analyze(AnalyzeParams(diff=VULNERABLE, static_only=True))
    assert result.findings == []
    assert result.summary == CLEAN_SUMMARY
    assert result.file_count == 2
    assert result.tools_ran == []


@pytest.mark.asyncio
async def test_static_only_with_checkout(tmp_path: Path) -> None:
    result = await analyze(
        AnalyzeParams(diff=VULNERABLE, static_only=True, repo_path=_checkout(tmp_path), tools=())
    )
    located = {(item.rule_id, item.file_path, item.start_line) for item in result.findings}
    assert ("cp-sec-eval", "src/handler.js", 4) in located
    assert ("cp-sol-tx-origin", "contracts/Vault.sol", 6) in located
    assert result.tools_ran == ["pattern-scanner"]
    assert result.summary.endswith("Static analysis: pattern-scanner.")
    assert result.score is not None and result.score.score < 100
    eval_finding = next(item for item in result.findings if item.rule_id == "cp-sec-eval")
    assert eval_finding.cwe_ids


@pytest.mark.asyncio
async def test_filters_apply_to_review(tmp_path: Path) -> None:
    repo = _checkout(tmp_path)
    ignored = await analyze(
        AnalyzeParams(diff=VULNERABLE, static_only=True, repo_path=repo, tools=(), ignore=("contracts/",))
    )
    assert all(item.file_path != "contracts/Vault.sol" for item in ignored.findings)

    severe = await analyze(
        AnalyzeParams(diff=VULNERABLE, static_only=True, repo_path=repo, tools=(), severity_threshold="high")
    )
    assert severe.findings
    assert {item.severity for item in severe.findings} <= {"critical", "high"}


@pytest.mark.asyncio
async def test_ai_findings_are_merged(tmp_path: Path) -> None:
    provider = MockProvider([MockResponse(_reply(AI_FINDING))])
    result = await analyze(
        AnalyzeParams(diff=VULNERABLE, provider=provider, repo_path=_checkout(tmp_path), tools=())
    )
    assert provider.call_count == 1
    assert "ai-unvalidated-input" in {item.rule_id for item in result.findings}
    assert "cp-sec-eval" in {item.rule_id for item in result.findings}

    system_prompt = provider.calls[0].messages[0].content
    assert "solidity" in system_prompt
    assert "cp-sec-eval" in system_prompt


@pytest.mark.asyncio
async def test_failed_chunk_does_not_abort_review(caplog: pytest.LogCaptureFixture) -> None:
    diff = _large_file_diff("src/ok.js") + _large_file_diff("src/broken.js")
    finding = dict(AI_FINDING, filePath="src/ok.js", startLine=3, endLine=3)
    provider = MockProvider([MockResponse(_reply(finding))], fail_on="src/broken.js")

    with caplog.at_level(logging.WARNING, logger="carapace"):
        result = await analyze(AnalyzeParams(diff=diff, provider=provider, max_chunk_tokens=1))

    assert provider.call_count == 2
    assert [(item.file_path, item.start_line) for item in result.findings] == [("src/ok.js", 3)]
    assert list(result.errors) == ["ai-chunk-2"]
    assert "ai-chunk-2" in caplog.text


@pytest.mark.asyncio
async def test_unexpected_provider_error_is_isolated(tmp_path: Path) -> None:
    result = await analyze(
        AnalyzeParams(diff=VULNERABLE, provider=CrashingProvider(), repo_path=_checkout(tmp_path), tools=())
    )
    assert result.errors == {"ai-chunk-1": "RuntimeError: backend exploded"}
    assert "cp-sec-eval" in {item.rule_id for item in result.findings}


@pytest.mark.asyncio
async def test_timed_out_chunks_are_reported(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="carapace"):
        result = await analyze(AnalyzeParams(diff=VULNERABLE, provider=SlowProvider(), ai_timeout=0.05))
    assert result.findings == []
    assert result.errors == {"ai-chunk-1": "timed out after 0.05s"}
    assert "every AI chunk failed" in caplog.text


@pytest.mark.asyncio
async def test_review_chunks_bounds_concurrency() -> None:
    files = parse_unified_diff("".join(_large_file_diff(f"src/f{index}.js") for index in range(5)))
    chunks = split_into_chunks(files, 1000)
    assert len(chunks) == 5

    provider = TrackingProvider()
    sources = await review_chunks(
        AIClient(provider),
        "prompt",
        chunks,
        [classify_file(item.path) for item in files],
        concurrency=2,
    )
    assert [source.name for source in sources] == [f"ai-chunk-{index}" for index in range(1, 6)]
    assert provider.peak == 2


def test_build_summary() -> None:
    findings = [
        make_finding(severity="critical"),
        make_finding(severity="high", start_line=2),
        make_finding(severity="low", start_line=3),
        make_finding(severity="info", start_line=4),
    ]
    assert build_summary(findings, 2) == "Found 4 issues, 1 critical, 1 high, 2 low/info across 2 files."
    assert build_summary(findings[:1], 1, ["pattern-scanner", "semgrep"]) == (
        "Found 1 issue, 1 critical across 1 file. Static analysis: pattern-scanner, semgrep."
    )
    assert build_summary([], 3) == CLEAN_SUMMARY


def test_review_result_to_dict_uses_wire_names() -> None:
    payload = ReviewResult(findings=[make_finding()], summary="s", file_count=1).to_dict()
    assert payload["findings"][0]["filePath"] == "src/app.py"
    assert payload["score"] is None
    assert payload["file_count"] == 1
