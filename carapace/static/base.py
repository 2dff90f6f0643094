"""Shared scanner primitives: file-kind checks, snippets and fix fragments."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

LineRange = tuple[int, int]

JS_TS = (".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs")
TS_ONLY = (".ts", ".tsx")
PY = (".py",)
GO = (".go",)
SOL = (".sol",)
JAVA = (".java",)
ALL = ("*",)

SOURCE_EXTENSIONS = frozenset(JS_TS + PY + GO + SOL + JAVA + (".rs", ".rb", ".php"))
CONFIG_EXTENSIONS = frozenset({".json", ".yaml", ".yml", ".toml"})

TEST_FILE_RE = re.compile(
    r"(?:\.test\.|\.spec\.|__tests__/|/test/|/tests/|^tests?/|\.stories\."
    r"|(?:^|/)test_[^/]*\.py$|_test\.py$)"
)
DOCS_FILE_RE = re.compile(r"(?:README|docs/|examples/|\.md$|\.mdx$|CHANGELOG|LICENSE)", re.IGNORECASE)
COMMENT_LINE_RE = re.compile(r"^(?://|#|/?\*|<!--)")
IMPORT_LINE_RE = re.compile(
    r"^(?:import\s|(?:const|let|var)\s+\w+\s*=\s*require\s*\(|from\s|using\s)"
)


@dataclass(frozen=True, slots=True)
class AstIssue:
    """Structural issue found by a syntax-tree walk, before it becomes a Finding."""

    rule_id: str
    start_line: int
    end_line: int
    message: str
    replacement: str | None = None


def extension_of(path: str) -> str:
    return PurePosixPath(path).suffix.lower()


def applies_to(path: str, languages: Sequence[str]) -> bool:
    return "*" in languages or extension_of(path) in languages


def is_test_file(path: str) -> bool:
    return TEST_FILE_RE.search(path) is not None


def is_docs_file(path: str) -> bool:
    return DOCS_FILE_RE.search(path) is not None


def is_config_file(path: str) -> bool:
    return extension_of(path) in CONFIG_EXTENSIONS


def is_comment_line(line: str) -> bool:
    return COMMENT_LINE_RE.match(line.strip()) is not None


def is_import_line(line: str) -> bool:
    return IMPORT_LINE_RE.match(line.strip()) is not None


def in_ranges(line: int, ranges: Sequence[LineRange] | None) -> bool:
    """True when ``line`` falls in any inclusive range; no ranges means full scan."""
    if ranges is None:
        return True
    return any(start <= line <= end for start, end in ranges)


def extract_snippet(lines: Sequence[str], index: int, before: int = 1, after: int = 1) -> str:
    """Return the line at zero-based ``index`` with surrounding context."""
    start = max(0, index - before)
    end = min(len(lines) - 1, index + after)
    return "\n".join(lines[start : end + 1])


def build_fix_diff(original: str, replacement: str | None) -> str:
    """Build a one-line fix fragment; ``None`` replacement deletes the line."""
    if replacement is None:
        return f"-{original}"
    if replacement == original:
        return ""
    return f"-{original}\n+{replacement}"
