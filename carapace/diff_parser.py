"""Unified diff parser primitives."""

from __future__ import annotations

from dataclasses import dataclass, field
from re import Match, compile
from typing import Literal

HUNK_HEADER_RE = compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? "
    r"\+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@(?P<section>.*)$"
)

DEV_NULL = "/dev/null"

FileStatus = Literal["added", "modified", "deleted", "renamed"]
LineKind = Literal["context", "add", "delete"]


@dataclass(slots=True)
class Line:
    """A single line within a diff hunk."""

    kind: LineKind
    content: str
    old_lineno: int | None
    new_lineno: int | None

    @property
    def line_number(self) -> int:
        """New-file line for add/context lines, old-file line for deletions."""
        if self.kind == "delete":
            return self.old_lineno or 0
        return self.new_lineno or 0


@dataclass(slots=True)
class Hunk:
    """A diff hunk."""

    header: str
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str
    lines: list[Line] = field(default_factory=list)


@dataclass(slots=True)
class HunkHeader:
    """Parsed hunk header values."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    section: str


@dataclass(slots=True)
class FileDiff:
    """A parsed file-level diff."""

    old_path: str | None
    new_path: str | None
    hunks: list[Hunk] = field(default_factory=list)
    metadata: list[str] = field(default_factory=list)

    @property
    def path(self) -> str:
        """Best-effort canonical path for reporting."""
        if self.new_path and self.new_path != DEV_NULL:
            return self.new_path
        if self.old_path and self.old_path != DEV_NULL:
            return self.old_path
        return "<unknown>"

    @property
    def source_path(self) -> str:
        """Path the file had before the change."""
        if self.old_path and self.old_path != DEV_NULL:
            return self.old_path
        return self.path

    @property
    def status(self) -> FileStatus:
        if any(item.startswith("rename from ") for item in self.metadata):
            return "renamed"
        if self.is_new_file:
            return "added"
        if self.is_deleted_file:
            return "deleted"
        if self.old_path and self.new_path and self.old_path != self.new_path:
            return "renamed"
        return "modified"

    @property
    def is_new_file(self) -> bool:
        if any(item.startswith("new file mode") for item in self.metadata):
            return True
        return self.old_path == DEV_NULL and self.new_path not in {None, DEV_NULL}

    @property
    def is_deleted_file(self) -> bool:
        if any(item.startswith("deleted file mode") for item in self.metadata):
            return True
        return self.new_path == DEV_NULL and self.old_path not in {None, DEV_NULL}


def parse_unified_diff(diff_text: str) -> list[FileDiff]:
    """Parse unified diff text into file/hunk/line models.

    Parsing is best effort: malformed hunk headers drop that hunk and text
    that is not a diff yields an empty list. Nothing here raises.
    """
    files: list[FileDiff] = []
    current_file: FileDiff | None = None
    current_hunk: Hunk | None = None
    old_lineno = 0
    new_lineno = 0
    old_remaining = 0
    new_remaining = 0

    def flush_hunk() -> None:
        nonlocal current_hunk
        if current_file is not None and current_hunk is not None:
            current_file.hunks.append(current_hunk)
        current_hunk = None

    def flush_file() -> None:
        nonlocal current_file
        flush_hunk()
        if current_file is not None:
            files.append(current_file)
        current_file = None

    for raw_line in diff_text.splitlines():
        in_body = current_hunk is not None and (old_remaining > 0 or new_remaining > 0)

        if in_body and current_hunk is not None:
            if raw_line.startswith("+"):
                current_hunk.lines.append(
                    Line(kind="add", content=raw_line[1:], old_lineno=None, new_lineno=new_lineno)
                )
                new_lineno += 1
                new_remaining -= 1
                continue
            if raw_line.startswith("-"):
                current_hunk.lines.append(
                    Line(kind="delete", content=raw_line[1:], old_lineno=old_lineno, new_lineno=None)
                )
                old_lineno += 1
                old_remaining -= 1
                continue
            if raw_line.startswith(" ") or raw_line == "":
                current_hunk.lines.append(
                    Line(
                        kind="context",
                        content=raw_line[1:],
                        old_lineno=old_lineno,
                        new_lineno=new_lineno,
                    )
                )
                old_lineno += 1
                new_lineno += 1
                old_remaining -= 1
                new_remaining -= 1
                continue
            if raw_line.startswith("\\"):
                continue

        if raw_line.startswith("\\"):
            # "\ No newline at end of file" after the final hunk line.
            continue

        if raw_line.startswith("diff --git "):
            flush_file()
            current_file = _start_file_from_diff_header(raw_line)
            continue

        if raw_line.startswith("--- "):
            if current_file is None or current_file.hunks or current_hunk is not None:
                flush_file()
                current_file = FileDiff(old_path=None, new_path=None)
            current_file.old_path = _parse_path(raw_line[4:])
            current_file.metadata.append(raw_line)
            continue

        if raw_line.startswith("+++ "):
            if current_file is None:
                current_file = FileDiff(old_path=None, new_path=None)
            current_file.new_path = _parse_path(raw_line[4:])
            current_file.metadata.append(raw_line)
            continue

        if raw_line.startswith("@@"):
            if current_file is None:
                continue
            flush_hunk()
            parsed = _parse_hunk_header(raw_line)
            if parsed is None:
                old_remaining = new_remaining = 0
                continue
            current_hunk = Hunk(
                header=raw_line,
                old_start=parsed.old_start,
                old_count=parsed.old_count,
                new_start=parsed.new_start,
                new_count=parsed.new_count,
                section=parsed.section,
            )
            old_lineno = parsed.old_start
            new_lineno = parsed.new_start
            old_remaining = parsed.old_count
            new_remaining = parsed.new_count
            continue

        if current_file is not None and current_hunk is None and raw_line:
            current_file.metadata.append(raw_line)
            _apply_extended_header(current_file, raw_line)

    flush_file()
    return [item for item in files if item.old_path is not None or item.new_path is not None]


def serialize_file_diff(file_diff: FileDiff) -> str:
    """Render a parsed file back into unified diff text."""
    return serialize_hunks(file_diff, file_diff.hunks)


def serialize_hunks(file_diff: FileDiff, hunks: list[Hunk]) -> str:
    """Render a subset of a file's hunks with the file header repeated."""
    parts = [f"--- a/{file_diff.source_path}", f"+++ b/{file_diff.path}"]
    for hunk in hunks:
        parts.append(_hunk_header_text(hunk))
        parts.extend(_prefixed(line) for line in hunk.lines)
    return "\n".join(parts)


def added_line_ranges(file_diff: FileDiff) -> list[tuple[int, int]]:
    """Return inclusive new-file ranges covering each run of added lines."""
    ranges: list[tuple[int, int]] = []
    for hunk in file_diff.hunks:
        start: int | None = None
        end: int | None = None
        for line in hunk.lines:
            if line.kind == "add" and line.new_lineno is not None:
                if start is None:
                    start = line.new_lineno
                end = line.new_lineno
                continue
            if start is not None and end is not None:
                ranges.append((start, end))
            start = end = None
        if start is not None and end is not None:
            ranges.append((start, end))
    return ranges


def extract_changed_line_ranges(files: list[FileDiff]) -> dict[str, list[tuple[int, int]]]:
    """Map each file with additions to its added-line ranges."""
    changed: dict[str, list[tuple[int, int]]] = {}
    for file_diff in files:
        ranges = added_line_ranges(file_diff)
        if ranges:
            changed[file_diff.path] = ranges
    return changed


def reconstruct_new_content(file_diff: FileDiff) -> str:
    """Join added and context lines; enough for content-based classification."""
    lines = [
        line.content
        for hunk in file_diff.hunks
        for line in hunk.lines
        if line.kind in {"add", "context"}
    ]
    return "\n".join(lines)


def _start_file_from_diff_header(line: str) -> FileDiff:
    parts = line.split(maxsplit=3)
    old_path = _strip_ab_prefix(parts[2]) if len(parts) > 2 else None
    new_path = _strip_ab_prefix(parts[3]) if len(parts) > 3 else None
    file_diff = FileDiff(old_path=old_path, new_path=new_path)
    file_diff.metadata.append(line)
    return file_diff


def _apply_extended_header(file_diff: FileDiff, line: str) -> None:
    if line.startswith("rename from "):
        file_diff.old_path = line[len("rename from ") :].strip()
    elif line.startswith("rename to "):
        file_diff.new_path = line[len("rename to ") :].strip()


def _parse_path(value: str) -> str:
    token = value.strip().split("\t", 1)[0]
    return _strip_ab_prefix(token)


def _strip_ab_prefix(path: str) -> str:
    if path.startswith("a/") or path.startswith("b/"):
        return path[2:]
    return path


def _parse_hunk_header(header: str) -> HunkHeader | None:
    match: Match[str] | None = HUNK_HEADER_RE.match(header)
    if match is None:
        return None

    old_count = int(match.group("old_count")) if match.group("old_count") else 1
    new_count = int(match.group("new_count")) if match.group("new_count") else 1
    section = match.group("section").strip()

    return HunkHeader(
        old_start=int(match.group("old_start")),
        old_count=old_count,
        new_start=int(match.group("new_start")),
        new_count=new_count,
        section=section,
    )


def _hunk_header_text(hunk: Hunk) -> str:
    return f"@@ -{hunk.old_start},{hunk.old_count} +{hunk.new_start},{hunk.new_count} @@"


def _prefixed(line: Line) -> str:
    if line.kind == "add":
        return f"+{line.content}"
    if line.kind == "delete":
        return f"-{line.content}"
    return f" {line.content}"
