"""Whole-codebase scan: discover source files, run static analysis and optional AI review."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from carapace.ai.client import AIClient
from carapace.ai.prompts import build_full_file_prompt
from carapace.ai.provider import AIProvider
from carapace.analyzer import ReviewResult, guarded_review
from carapace.chunking import effective_chunk_budget, estimate_tokens
from carapace.classifier import FileClassification, classify_file
from carapace.config import AppConfig, filter_by_config, matches_ignore
from carapace.findings import Finding
from carapace.git import GitError, is_git_repository, list_tracked_files
from carapace.log import get_logger
from carapace.merge import FindingSource, merge_sources
from carapace.rules import describe_rules, select_rules
from carapace.scoring import compute_score
from carapace.static.base import CONFIG_EXTENSIONS, SOURCE_EXTENSIONS, extension_of
from carapace.static.external import DEFAULT_TOOLS, ToolRunner
from carapace.static.runner import (
    StaticAnalysisOptions,
    StaticAnalysisResult,
    format_static_findings_for_ai,
    run_static_analysis,
)

SCANNABLE_EXTENSIONS = SOURCE_EXTENSIONS | CONFIG_EXTENSIONS
SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        "coverage",
        "__pycache__",
        "vendor",
        ".next",
        "target",
        ".cache",
        ".turbo",
        ".output",
        "out",
        ".venv",
        "venv",
        "env",
        ".carapace-backup",
    }
)
PRIORITY_DIRS = ("src", "lib", "app", "packages", "contracts")

MAX_FILES = 500
MAX_FILE_CHARS = 500_000
BINARY_SNIFF_BYTES = 8192

NO_FILES_SUMMARY = "No source files found to scan."


def discover_files(
    root: Path,
    *,
    ignore: Sequence[str] = (),
    max_files: int = MAX_FILES,
    logger: logging.Logger | None = None,
) -> list[str]:
    """Return repo-relative paths of scannable text files under ``root``.

    Git repositories use ``git ls-files`` so .gitignore is honoured; other
    directories are walked, skipping vendored and build output. When more than
    ``max_files`` qualify, files under common source directories come first.
    """
    log = logger or get_logger("full_scan")
    candidates: list[str]
    if is_git_repository(root):
        try:
            candidates = list_tracked_files(root)
        except GitError as exc:
            log.warning("git ls-files failed, walking the directory instead: %s", exc)
            candidates = _walk(root)
    else:
        candidates = _walk(root)

    discovered = [
        rel_path
        for rel_path in candidates
        if extension_of(rel_path) in SCANNABLE_EXTENSIONS
        and not any(part in SKIP_DIRS for part in rel_path.split("/")[:-1])
        and not matches_ignore(rel_path, ignore)
        and _is_scannable_text(root / rel_path)
    ]
    if len(discovered) > max_files:
        log.info("found %d files, keeping %d", len(discovered), max_files)
        priority = [path for path in discovered if path.split("/", 1)[0] in PRIORITY_DIRS]
        rest = [path for path in discovered if path.split("/", 1)[0] not in PRIORITY_DIRS]
        discovered = (priority + rest)[:max_files]
    return discovered


@dataclass(frozen=True, slots=True)
class SourceFile:
    path: str
    content: str
    classification: FileClassification


@dataclass(slots=True)
class FileChunk:
    """Whole files packed together for one AI call."""

    files: list[SourceFile] = field(default_factory=list)
    estimated_tokens: int = 0

    @property
    def paths(self) -> list[str]:
        return [item.path for item in self.files]

    def to_prompt_text(self) -> str:
        if len(self.files) == 1:
            return self.files[0].content
        return "\n\n".join(f"### {item.path}\n```\n{item.content}\n```" for item in self.files)


def chunk_files(files: Sequence[SourceFile], max_tokens: int) -> list[FileChunk]:
    """Greedily pack whole files; a file over budget is sent alone, never split."""
    chunks: list[FileChunk] = []
    current = FileChunk()
    for item in files:
        tokens = estimate_tokens(item.content)
        if tokens > max_tokens:
            if current.files:
                chunks.append(current)
                current = FileChunk()
            chunks.append(FileChunk(files=[item], estimated_tokens=tokens))
            continue
        if current.files and current.estimated_tokens + tokens > max_tokens:
            chunks.append(current)
            current = FileChunk()
        current.files.append(item)
        current.estimated_tokens += tokens
    if current.files:
        chunks.append(current)
    return chunks


async def review_files(
    client: AIClient,
    system_prompt: str,
    chunks: Sequence[FileChunk],
    *,
    concurrency: int,
    timeout: float,
    logger: logging.Logger | None = None,
) -> list[FindingSource]:
    """Send file chunks in batches of ``concurrency``; each chunk is one source."""
    log = logger or get_logger("full_scan")
    sources: list[FindingSource] = []
    for offset in range(0, len(chunks), concurrency):
        batch = chunks[offset : offset + concurrency]
        sources.extend(
            await asyncio.gather(
                *(
                    guarded_review(
                        f"ai-file-{offset + index + 1}",
                        client.analyze_file(
                            system_prompt,
                            ", ".join(chunk.paths),
                            chunk.to_prompt_text(),
                            [item.classification for item in chunk.files],
                        ),
                        chunk.paths,
                        timeout=timeout,
                        log=log,
                    )
                    for index, chunk in enumerate(batch)
                )
            )
        )
    if sources and all(source.failed for source in sources):
        log.warning("every AI file chunk failed; returning static findings only")
    return sources


async def full_scan(
    root: Path,
    config: AppConfig | None = None,
    *,
    provider: AIProvider | None = None,
    tools: Sequence[ToolRunner] = DEFAULT_TOOLS,
    max_files: int = MAX_FILES,
    logger: logging.Logger | None = None,
) -> ReviewResult:
    """Scan every discovered file with no changed-range filter, then merge and score.

    With a ``provider`` the complete files are also sent for AI review, packed
    into chunks by the configured token budget. Without one the scan is static.
    """
    log = logger or get_logger("full_scan")
    active = config or AppConfig()
    root = root.resolve()

    files = discover_files(root, ignore=active.ignore, max_files=max_files, logger=log)
    if not files:
        return ReviewResult(summary=NO_FILES_SUMMARY, score=compute_score([], 0, config=active.scoring))
    log.info("scanning %d file(s) under %s", len(files), root)

    static_result = await run_static_analysis(
        StaticAnalysisOptions(
            repo_path=root,
            changed_files=files,
            changed_ranges=None,
            disabled_rules=tuple(active.disable),
            tools=tools,
        ),
        logger=log,
    )
    sources = [FindingSource(name="static", findings=static_result.findings)]
    if provider is not None:
        sources.extend(await _review_with_ai(root, files, provider, active, static_result, log))

    findings = filter_by_config(merge_sources(sources, logger=log), active)
    errors = dict(static_result.errors)
    errors.update({source.name: source.error for source in sources if source.error is not None})
    return ReviewResult(
        findings=findings,
        summary=build_scan_summary(len(files), findings, static_result.tools_ran),
        score=compute_score(findings, len(files), config=active.scoring),
        file_count=len(files),
        tools_ran=list(static_result.tools_ran),
        errors=errors,
    )


def build_scan_summary(file_count: int, findings: Sequence[Finding], tools_ran: Sequence[str] = ()) -> str:
    noun = "file" if file_count == 1 else "files"
    if not findings:
        return f"Scanned {file_count} {noun}. No issues found."
    counts: dict[str, int] = {}
    for finding in findings:
        bucket = "low/info" if finding.severity in {"low", "info"} else finding.severity
        counts[bucket] = counts.get(bucket, 0) + 1
    parts = [f"Scanned {file_count} {noun}. Found {len(findings)} issue{'' if len(findings) == 1 else 's'}"]
    parts.extend(
        f"{counts[bucket]} {bucket}" for bucket in ("critical", "high", "medium", "low/info") if bucket in counts
    )
    summary = f"{', '.join(parts)}."
    if tools_ran:
        summary += f" Static analysis: {', '.join(tools_ran)}."
    return summary


async def _review_with_ai(
    root: Path,
    files: Sequence[str],
    provider: AIProvider,
    config: AppConfig,
    static_result: StaticAnalysisResult,
    log: logging.Logger,
) -> list[FindingSource]:
    sources: list[SourceFile] = []
    for rel_path in files:
        try:
            content = (root / rel_path).read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            log.warning("not sending %s for AI review: %s", rel_path, exc)
            continue
        sources.append(SourceFile(rel_path, content, classify_file(rel_path, content)))

    classifications = [item.classification for item in sources]
    chains = sorted({item.chain for item in classifications if item.chain})
    rules = select_rules(chains=chains, rulesets=config.rulesets, disabled_rule_ids=config.disable)
    system_prompt = build_full_file_prompt(
        classifications,
        describe_rules(rules),
        format_static_findings_for_ai(static_result.findings),
    )
    budget = effective_chunk_budget(config.ai.max_chunk_tokens, system_prompt)
    chunks = chunk_files(sources, budget)
    log.info("sending %d file(s) in %d chunk(s) to %s", len(sources), len(chunks), provider.name)
    return await review_files(
        AIClient(provider, logger=log),
        system_prompt,
        chunks,
        concurrency=config.ai.concurrency,
        timeout=config.ai.timeout_seconds,
        logger=log,
    )


def _walk(root: Path) -> list[str]:
    found: list[str] = []
    for current, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIP_DIRS and not name.startswith("."))
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            found.append((Path(current) / filename).relative_to(root).as_posix())
    return found


def _is_scannable_text(path: Path) -> bool:
    try:
        data = path.read_bytes()
    except OSError:
        return False
    if not data or b"\0" in data[:BINARY_SNIFF_BYTES]:
        return False
    return len(data.decode("utf-8", errors="replace")) <= MAX_FILE_CHARS
