"""Run the in-process scanner and every available external tool for one change set."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from carapace.findings import Finding
from carapace.log import get_logger
from carapace.merge import dedupe_findings
from carapace.static.base import LineRange
from carapace.static.external import (
    DEFAULT_TOOL_TIMEOUT,
    DEFAULT_TOOLS,
    ToolError,
    ToolOptions,
    ToolRunner,
)
from carapace.static.scanner import Scanner, default_scanner

SCANNER_NAME = "pattern-scanner"


@dataclass(slots=True)
class StaticAnalysisOptions:
    repo_path: Path
    changed_files: list[str]
    changed_ranges: dict[str, list[LineRange]] | None = None
    timeout_seconds: float = DEFAULT_TOOL_TIMEOUT
    disabled_rules: tuple[str, ...] = ()
    tools: Sequence[ToolRunner] = DEFAULT_TOOLS


@dataclass(slots=True)
class StaticAnalysisResult:
    findings: list[Finding] = field(default_factory=list)
    tools_ran: list[str] = field(default_factory=list)
    tools_skipped: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


def scan_changed_files(
    scanner: Scanner,
    repo_path: Path,
    changed_files: Sequence[str],
    changed_ranges: dict[str, list[LineRange]] | None,
) -> list[Finding]:
    """Scan each changed file that still exists on disk."""
    findings: list[Finding] = []
    for rel_path in changed_files:
        target = repo_path / rel_path
        if not target.is_file():
            continue
        content = target.read_text(encoding="utf-8", errors="replace")
        ranges = None if changed_ranges is None else changed_ranges.get(rel_path, [])
        findings.extend(scanner.scan(rel_path, content, ranges))
    return findings


async def run_static_analysis(
    options: StaticAnalysisOptions,
    logger: logging.Logger | None = None,
) -> StaticAnalysisResult:
    """Always run the built-in scanner, then external tools concurrently.

    A tool that fails or times out is recorded in ``errors`` and contributes
    nothing; the run itself never fails because of it.
    """
    log = logger or get_logger("static")
    result = StaticAnalysisResult()

    scanner = default_scanner(options.disabled_rules, logger=log)
    collected = scan_changed_files(
        scanner, options.repo_path, options.changed_files, options.changed_ranges
    )
    result.tools_ran.append(SCANNER_NAME)
    log.info("%s: %d findings", SCANNER_NAME, len(collected))

    tool_options = ToolOptions(
        repo_path=options.repo_path,
        changed_files=list(options.changed_files),
        changed_ranges=options.changed_ranges,
        timeout_seconds=options.timeout_seconds,
    )
    runnable: list[ToolRunner] = []
    for tool in options.tools:
        if tool.is_available() and tool.is_relevant(options.changed_files):
            runnable.append(tool)
        else:
            result.tools_skipped.append(tool.name)

    outcomes = await asyncio.gather(*(_run_tool(tool, tool_options, log) for tool in runnable))
    for tool, (findings, error) in zip(runnable, outcomes):
        if error is not None:
            result.errors[tool.name] = error
            continue
        result.tools_ran.append(tool.name)
        collected.extend(findings)

    result.findings = dedupe_findings(collected)
    return result


def format_static_findings_for_ai(findings: Sequence[Finding]) -> str:
    """Describe already-detected issues so the model does not repeat them."""
    if not findings:
        return ""
    lines = [
        "## Static Analysis Results",
        "",
        "The following issues were already detected by static analysis tools.",
        "Do NOT duplicate these findings. Focus on issues that need reasoning:",
        "business logic errors, cross-function or cross-file problems, and",
        "architecture-level concerns.",
        "",
    ]
    for finding in findings:
        lines.append(
            f"- **{finding.severity.upper()}** {finding.file_path}:{finding.start_line} "
            f"[{finding.rule_id}] {finding.title}: {finding.description[:200]}"
        )
    lines.append("")
    return "\n".join(lines)


async def _run_tool(
    tool: ToolRunner,
    options: ToolOptions,
    log: logging.Logger,
) -> tuple[list[Finding], str | None]:
    started = time.monotonic()
    try:
        findings = await asyncio.wait_for(tool.run(options), options.timeout_seconds)
    except asyncio.TimeoutError:
        message = f"timed out after {options.timeout_seconds:g}s"
        log.warning("%s failed: %s", tool.name, message)
        return [], message
    except (ToolError, OSError, ValueError) as exc:
        log.warning("%s failed: %s", tool.name, exc)
        return [], str(exc)
    except Exception as exc:
        message = f"{type(exc).__name__}: {exc}"
        log.warning("%s failed on an unexpected report: %s", tool.name, message)
        return [], message
    log.info("%s completed in %.1fs: %d findings", tool.name, time.monotonic() - started, len(findings))
    return findings, None
