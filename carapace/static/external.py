"""Adapters for third-party static analysis CLIs (semgrep, gitleaks, slither)."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from carapace.findings import Confidence, Finding, Severity
from carapace.log import get_logger
from carapace.static.base import LineRange, in_ranges

DEFAULT_TOOL_TIMEOUT = 120.0

_CONFIDENCE_LEVELS: dict[str, Confidence] = {"high": "high", "medium": "medium", "low": "low"}


class ToolError(RuntimeError):
    """External tool could not be run or its output could not be read."""


@dataclass(slots=True)
class ToolOptions:
    repo_path: Path
    changed_files: list[str]
    # None means every line of a changed file counts.
    changed_ranges: dict[str, list[LineRange]] | None = None
    timeout_seconds: float = DEFAULT_TOOL_TIMEOUT

    def ranges_for(self, path: str) -> list[LineRange] | None:
        if self.changed_ranges is None:
            return None
        return self.changed_ranges.get(path, [])


@runtime_checkable
class ToolRunner(Protocol):
    name: str

    def is_available(self) -> bool: ...

    def is_relevant(self, paths: Sequence[str]) -> bool: ...

    async def run(self, options: ToolOptions) -> list[Finding]: ...


async def run_command(
    argv: Sequence[str],
    *,
    cwd: Path,
    timeout: float,
    logger: logging.Logger | None = None,
) -> str:
    """Run a command and return stdout.

    Non-zero exits are tolerated while stdout carries a report; these tools
    exit 1 when they find something.
    """
    log = logger or get_logger("static")
    log.debug("running %s in %s", " ".join(argv), cwd)
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise ToolError(f"{argv[0]} is not installed") from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise ToolError(f"{argv[0]} timed out after {timeout:g}s") from exc

    text = stdout.decode("utf-8", errors="replace")
    if process.returncode != 0 and not text.strip():
        detail = stderr.decode("utf-8", errors="replace").strip()[:500]
        raise ToolError(f"{argv[0]} exited with code {process.returncode}: {detail}")
    return text


def load_json_report(tool: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ToolError(f"{tool} produced invalid JSON: {exc}") from exc


def relative_path(repo_path: Path, path: str) -> str:
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = repo_path / candidate
    try:
        return Path(os.path.relpath(candidate, repo_path)).as_posix()
    except ValueError:
        return Path(path).as_posix()


class SemgrepRunner:
    """Polyglot rules from the ``p/security-audit`` registry pack."""

    name = "semgrep"
    SEVERITY_MAP: dict[str, Severity] = {"ERROR": "high", "WARNING": "medium", "INFO": "low"}

    def is_available(self) -> bool:
        return shutil.which("semgrep") is not None

    def is_relevant(self, paths: Sequence[str]) -> bool:
        return bool(paths)

    async def run(self, options: ToolOptions) -> list[Finding]:
        if not options.changed_files:
            return []
        argv = [
            "semgrep",
            "--config",
            "p/security-audit",
            "--json",
            "--no-git-ignore",
            "--timeout",
            "30",
            *options.changed_files,
        ]
        raw = await run_command(argv, cwd=options.repo_path, timeout=options.timeout_seconds)
        return self.parse(load_json_report(self.name, raw), options)

    def parse(self, report: Any, options: ToolOptions) -> list[Finding]:
        if not isinstance(report, dict):
            return []
        findings: list[Finding] = []
        for match in report.get("results", []):
            path = relative_path(options.repo_path, match.get("path", ""))
            start = int(match.get("start", {}).get("line", 0))
            if not in_ranges(start, options.ranges_for(path)):
                continue
            extra = match.get("extra", {})
            metadata = extra.get("metadata", {}) or {}
            check_id = str(match.get("check_id", "unknown"))
            findings.append(
                Finding(
                    severity=self.SEVERITY_MAP.get(str(extra.get("severity", "")).upper(), "medium"),
                    category=str(metadata.get("category", "security")),
                    title=f"[Semgrep] {check_id.rsplit('.', 1)[-1]}",
                    description=str(extra.get("message", "")),
                    file_path=path,
                    start_line=start,
                    end_line=int(match.get("end", {}).get("line", start)),
                    code_snippet=str(extra.get("lines", "")),
                    suggestion=str(extra.get("fix", "")),
                    rule_id=f"semgrep-{check_id}",
                    confidence=_confidence(metadata.get("confidence")),
                )
            )
        return findings


class GitleaksRunner:
    """Secret detection over the working tree."""

    name = "gitleaks"

    def is_available(self) -> bool:
        return shutil.which("gitleaks") is not None

    def is_relevant(self, paths: Sequence[str]) -> bool:
        return bool(paths)

    async def run(self, options: ToolOptions) -> list[Finding]:
        if not options.changed_files:
            return []
        argv = [
            "gitleaks",
            "detect",
            "--no-git",
            "--no-banner",
            "--source",
            str(options.repo_path),
            "--report-format",
            "json",
            "--report-path",
            "/dev/stdout",
        ]
        raw = await run_command(argv, cwd=options.repo_path, timeout=options.timeout_seconds)
        if not raw.strip():
            return []
        return self.parse(load_json_report(self.name, raw), options)

    def parse(self, report: Any, options: ToolOptions) -> list[Finding]:
        if not isinstance(report, list):
            return []
        changed = set(options.changed_files)
        findings: list[Finding] = []
        for leak in report:
            path = relative_path(options.repo_path, leak.get("File", ""))
            if path not in changed:
                continue
            start = int(leak.get("StartLine", 0))
            end = int(leak.get("EndLine", start))
            ranges = options.ranges_for(path)
            if ranges is not None and not any(lo <= end and start <= hi for lo, hi in ranges):
                continue
            description = str(leak.get("Description", "secret"))
            findings.append(
                Finding(
                    severity="critical",
                    category="security",
                    title=f"[Gitleaks] {description}",
                    description=(
                        f"Hardcoded secret detected: {description}. "
                        f"Match: {mask_secret(str(leak.get('Secret', '')))}. "
                        "Remove it and rotate the credential."
                    ),
                    file_path=path,
                    start_line=start,
                    end_line=end,
                    code_snippet=mask_secret(str(leak.get("Match", ""))),
                    suggestion="Load the secret from the environment or a secret manager.",
                    rule_id=f"gitleaks-{leak.get('RuleID', 'secret')}",
                    confidence="high",
                )
            )
        return findings


class SlitherRunner:
    """Solidity detectors; only runs when contracts changed."""

    name = "slither"
    IMPACT_MAP: dict[str, Severity] = {
        "High": "critical",
        "Medium": "high",
        "Low": "medium",
        "Informational": "info",
        "Optimization": "info",
    }
    RULE_MAP = {
        "reentrancy-eth": "sol-reentrancy",
        "reentrancy-no-eth": "sol-reentrancy",
        "reentrancy-benign": "sol-reentrancy",
        "tx-origin": "cp-sol-tx-origin",
        "suicidal": "sol-access-control",
        "arbitrary-send-eth": "sol-access-control",
        "unprotected-upgrade": "sol-access-control",
        "controlled-delegatecall": "cp-sol-delegatecall",
        "unchecked-transfer": "sol-unchecked-return",
        "unchecked-lowlevel": "sol-unchecked-return",
        "unchecked-send": "sol-unchecked-return",
    }

    def is_available(self) -> bool:
        return shutil.which("slither") is not None

    def is_relevant(self, paths: Sequence[str]) -> bool:
        return any(path.endswith(".sol") for path in paths)

    async def run(self, options: ToolOptions) -> list[Finding]:
        if not self.is_relevant(options.changed_files):
            return []
        argv = [
            "slither",
            ".",
            "--json",
            "-",
            "--exclude-informational",
            "--exclude-optimization",
            "--exclude-low",
        ]
        raw = await run_command(argv, cwd=options.repo_path, timeout=options.timeout_seconds)
        return self.parse(load_json_report(self.name, raw), options)

    def parse(self, report: Any, options: ToolOptions) -> list[Finding]:
        if not isinstance(report, dict):
            return []
        detectors = (report.get("results") or {}).get("detectors") or []
        sol_files = {path for path in options.changed_files if path.endswith(".sol")}
        findings: list[Finding] = []
        for detector in detectors:
            element = self._relevant_element(detector, sol_files, options)
            if element is None:
                continue
            mapping = element["source_mapping"]
            lines = mapping["lines"]
            check = str(detector.get("check", "unknown"))
            findings.append(
                Finding(
                    severity=self.IMPACT_MAP.get(str(detector.get("impact")), "medium"),
                    category="security",
                    title=f"[Slither] {check.replace('-', ' ')}",
                    description=str(detector.get("description", "")).strip(),
                    file_path=mapping["filename_relative"],
                    start_line=min(lines),
                    end_line=max(lines),
                    rule_id=self.RULE_MAP.get(check, f"slither-{check}"),
                    confidence=_confidence(detector.get("confidence")),
                )
            )
        return findings

    def _relevant_element(
        self, detector: dict[str, Any], sol_files: set[str], options: ToolOptions
    ) -> dict[str, Any] | None:
        for element in detector.get("elements", []):
            mapping = element.get("source_mapping") or {}
            path = mapping.get("filename_relative")
            lines = mapping.get("lines") or []
            if path not in sol_files or not lines:
                continue
            ranges = options.ranges_for(path)
            if any(in_ranges(line, ranges) for line in lines):
                return element
        return None


DEFAULT_TOOLS: tuple[ToolRunner, ...] = (SemgrepRunner(), GitleaksRunner(), SlitherRunner())


def mask_secret(secret: str) -> str:
    if len(secret) <= 8:
        return "***"
    return f"{secret[:4]}{'*' * (len(secret) - 8)}{secret[-4:]}"


def _confidence(value: Any) -> Confidence:
    return _CONFIDENCE_LEVELS.get(str(value or "").lower(), "medium")
