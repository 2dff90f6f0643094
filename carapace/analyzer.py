"""Diff review orchestrator: static analysis, chunked AI review, merge and score."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from carapace.ai.client import AIClient
from carapace.ai.prompts import build_system_prompt
from carapace.ai.provider import AIProvider, ProviderError
from carapace.chunking import (
    DEFAULT_MAX_CHUNK_TOKENS,
    DiffChunk,
    effective_chunk_budget,
    split_into_chunks,
)
from carapace.classifier import FileClassification, classify_file
from carapace.config import filter_findings
from carapace.diff_parser import (
    FileDiff,
    extract_changed_line_ranges,
    parse_unified_diff,
    reconstruct_new_content,
)
from carapace.findings import Finding
from carapace.log import get_logger
from carapace.merge import FindingSource, merge_sources
from carapace.rules import describe_rules, select_rules
from carapace.scoring import ScoringConfig, SecurityScore, compute_score
from carapace.static.external import DEFAULT_TOOL_TIMEOUT, DEFAULT_TOOLS, ToolRunner
from carapace.static.runner import (
    StaticAnalysisOptions,
    StaticAnalysisResult,
    format_static_findings_for_ai,
    run_static_analysis,
)

DEFAULT_AI_CONCURRENCY = 3
DEFAULT_AI_TIMEOUT = 120.0

EMPTY_DIFF_SUMMARY = "No files found in the diff."
CLEAN_SUMMARY = "No issues found. The code changes look good."


@dataclass(slots=True)
class AnalyzeParams:
    """Inputs for one diff review run."""

    diff: str
    rulesets: tuple[str, ...] = ()
    target_chains: tuple[str, ...] = ()
    provider: AIProvider | None = None
    static_only: bool = False
    repo_path: Path | None = None
    max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS
    ai_concurrency: int = DEFAULT_AI_CONCURRENCY
    ai_timeout: float = DEFAULT_AI_TIMEOUT
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT
    disabled_rules: tuple[str, ...] = ()
    ignore: tuple[str, ...] = ()
    severity_threshold: str = "info"
    tools: Sequence[ToolRunner] = DEFAULT_TOOLS
    scoring: ScoringConfig | None = None


@dataclass(slots=True)
class ReviewResult:
    """What callers receive from a review or a full scan."""

    findings: list[Finding] = field(default_factory=list)
    summary: str = ""
    score: SecurityScore | None = None
    file_count: int = 0
    tools_ran: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "findings": [finding.to_wire() for finding in self.findings],
            "summary": self.summary,
            "score": self.score.to_dict() if self.score is not None else None,
            "file_count": self.file_count,
            "tools_ran": list(self.tools_ran),
            "errors": dict(self.errors),
        }


async def analyze(params: AnalyzeParams, logger: logging.Logger | None = None) -> ReviewResult:
    """Review a unified diff.

    Static analysis runs only when ``repo_path`` points at the checked-out
    change. Without ``static_only`` a provider is mandatory; a chunk whose AI
    call fails or times out is logged and contributes nothing.
    """
    log = logger or get_logger("analyzer")
    if not params.static_only and params.provider is None:
        raise ValueError("AI review requested but no AI provider is configured; use static-only mode.")
    if params.ai_concurrency < 1:
        raise ValueError("ai_concurrency must be >= 1")

    files = parse_unified_diff(params.diff)
    if not files:
        return ReviewResult(summary=EMPTY_DIFF_SUMMARY, score=compute_score([], config=params.scoring))

    classifications = classify_files(files)
    chains = sorted({item.chain for item in classifications if item.chain} | set(params.target_chains))
    file_count = len(files)
    log.info("reviewing %d file(s); chains: %s", file_count, ", ".join(chains) or "none")

    static_result = StaticAnalysisResult()
    if params.repo_path is not None:
        changed_files = [item.path for item in files if not item.is_deleted_file]
        static_result = await run_static_analysis(
            StaticAnalysisOptions(
                repo_path=params.repo_path,
                changed_files=changed_files,
                changed_ranges=extract_changed_line_ranges(files),
                timeout_seconds=params.tool_timeout,
                disabled_rules=params.disabled_rules,
                tools=params.tools,
            ),
            logger=log,
        )
    sources = [FindingSource(name="static", findings=static_result.findings)]

    if not params.static_only and params.provider is not None:
        rules = select_rules(
            chains=chains,
            rulesets=params.rulesets,
            disabled_rule_ids=params.disabled_rules,
        )
        system_prompt = build_system_prompt(
            classifications,
            describe_rules(rules),
            format_static_findings_for_ai(static_result.findings),
        )
        budget = effective_chunk_budget(params.max_chunk_tokens, system_prompt)
        chunks = split_into_chunks(files, budget)
        log.info("sending %d chunk(s) to %s (budget %d tokens)", len(chunks), params.provider.name, budget)
        client = AIClient(params.provider, logger=log)
        sources.extend(
            await review_chunks(
                client,
                system_prompt,
                chunks,
                classifications,
                concurrency=params.ai_concurrency,
                timeout=params.ai_timeout,
                logger=log,
            )
        )

    findings = filter_findings(
        merge_sources(sources, logger=log),
        ignore=params.ignore,
        disabled=params.disabled_rules,
        severity_threshold=params.severity_threshold,
    )
    errors = dict(static_result.errors)
    errors.update({source.name: source.error for source in sources if source.error is not None})
    return ReviewResult(
        findings=findings,
        summary=build_summary(findings, file_count, static_result.tools_ran),
        score=compute_score(findings, file_count, config=params.scoring),
        file_count=file_count,
        tools_ran=list(static_result.tools_ran),
        errors=errors,
    )


def classify_files(files: Sequence[FileDiff]) -> list[FileClassification]:
    return [classify_file(item.path, reconstruct_new_content(item)) for item in files]


async def review_chunks(
    client: AIClient,
    system_prompt: str,
    chunks: Sequence[DiffChunk],
    classifications: Sequence[FileClassification],
    *,
    concurrency: int = DEFAULT_AI_CONCURRENCY,
    timeout: float = DEFAULT_AI_TIMEOUT,
    logger: logging.Logger | None = None,
) -> list[FindingSource]:
    """Send chunks in batches of ``concurrency``; each chunk is one source."""
    log = logger or get_logger("analyzer")
    by_path = {item.path: item for item in classifications}
    sources: list[FindingSource] = []
    for offset in range(0, len(chunks), concurrency):
        batch = chunks[offset : offset + concurrency]
        results = await asyncio.gather(
            *(
                guarded_review(
                    f"ai-chunk-{offset + index + 1}",
                    client.analyze_code(
                        system_prompt,
                        chunk.to_diff_text(),
                        [by_path[path] for path in chunk.paths if path in by_path],
                    ),
                    chunk.paths,
                    timeout=timeout,
                    log=log,
                )
                for index, chunk in enumerate(batch)
            )
        )
        sources.extend(results)
    failed = sum(1 for source in sources if source.failed)
    if sources and failed == len(sources):
        log.warning("every AI chunk failed; returning static findings only")
    return sources


def build_summary(findings: Sequence[Finding], file_count: int, tools_ran: Sequence[str] = ()) -> str:
    if not findings:
        return CLEAN_SUMMARY

    counts = {severity: 0 for severity in ("critical", "high", "medium")}
    low_or_info = 0
    for finding in findings:
        if finding.severity in counts:
            counts[finding.severity] += 1
        else:
            low_or_info += 1

    parts = [f"Found {len(findings)} issue{_plural(len(findings))}"]
    parts.extend(f"{count} {severity}" for severity, count in counts.items() if count)
    if low_or_info:
        parts.append(f"{low_or_info} low/info")
    summary = f"{', '.join(parts)} across {file_count} file{_plural(file_count)}."
    if tools_ran:
        summary += f" Static analysis: {', '.join(tools_ran)}."
    return summary


async def guarded_review(
    name: str,
    review: Awaitable[list[Finding]],
    paths: Sequence[str],
    *,
    timeout: float,
    log: logging.Logger,
) -> FindingSource:
    """Await one AI call as a named source; any failure becomes the source's error."""
    try:
        findings = await asyncio.wait_for(review, timeout)
    except asyncio.TimeoutError:
        message = f"timed out after {timeout:g}s"
    except ProviderError as exc:
        message = str(exc)
    except Exception as exc:
        message = f"{type(exc).__name__}: {exc}"
    else:
        log.debug("%s (%s): %d findings", name, ", ".join(paths), len(findings))
        return FindingSource(name=name, findings=findings)
    log.warning("%s failed (%s): %s", name, ", ".join(paths), message)
    return FindingSource(name=name, error=message)


def _plural(count: int) -> str:
    return "" if count == 1 else "s"
