"""Apply finding fix fragments to file contents with per-file rollback."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from carapace.findings import Finding
from carapace.fixers.syntax import validate_syntax

REASON_UNPARSEABLE = "could not parse"
REASON_NO_CONTENT = "file content not available"
REASON_CONTEXT = "context mismatch"
REASON_OVERLAP = "overlaps another fix"
REASON_SYNTAX = "fix broke syntax — {detail}"


@dataclass(frozen=True, slots=True)
class DiffOp:
    start_line: int
    remove_lines: tuple[str, ...]
    insert_lines: tuple[str, ...]

    @property
    def claimed_lines(self) -> range:
        """Original lines this op touches; a pure insert claims its anchor line."""
        return range(self.start_line, self.start_line + max(len(self.remove_lines), 1))


@dataclass(slots=True)
class FileFixResult:
    file_path: str
    new_content: str
    applied_findings: list[Finding] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SkippedFix:
    finding: Finding
    reason: str


@dataclass(slots=True)
class ApplyFixesResult:
    files: list[FileFixResult] = field(default_factory=list)
    skipped: list[SkippedFix] = field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return sum(len(item.applied_findings) for item in self.files)


def parse_fix_diff(finding: Finding) -> DiffOp | None:
    """Parse ``fix_diff`` into a line operation anchored at ``start_line``.

    ``@@``, ``---`` and ``+++`` marker lines are ignored. Returns None when
    the fragment has neither removals nor insertions.
    """
    remove: list[str] = []
    insert: list[str] = []
    for line in finding.fix_diff.split("\n"):
        if line.startswith(("@@", "---", "+++")):
            continue
        if line.startswith("-"):
            remove.append(line[1:])
        elif line.startswith("+"):
            insert.append(line[1:])
    if not remove and not insert:
        return None
    return DiffOp(finding.start_line, tuple(remove), tuple(insert))


def context_matches(lines: list[str], op: DiffOp) -> bool:
    index = op.start_line - 1
    if index < 0 or index > len(lines):
        return False
    if index + len(op.remove_lines) > len(lines):
        return False
    return all(
        expected.strip() == lines[index + offset].strip()
        for offset, expected in enumerate(op.remove_lines)
    )


def apply_ops(lines: list[str], ops: Iterable[DiffOp]) -> list[str]:
    """Return a patched copy; ops apply bottom-up so pending line numbers hold."""
    patched = list(lines)
    for op in sorted(ops, key=lambda item: item.start_line, reverse=True):
        index = op.start_line - 1
        patched[index : index + len(op.remove_lines)] = op.insert_lines
    return patched


def apply_fixes(findings: Iterable[Finding], contents: Mapping[str, str]) -> ApplyFixesResult:
    """Apply every finding that carries a fix to the matching file content.

    Within a file the first accepted fix claims its lines; later overlapping
    fixes are skipped for this pass. A file whose patched text no longer
    parses is rolled back entirely and all of its fixes are reported skipped.
    """
    result = ApplyFixesResult()
    by_file: dict[str, list[Finding]] = {}
    for finding in findings:
        if finding.fix_diff.strip():
            by_file.setdefault(finding.file_path, []).append(finding)

    for file_path, file_findings in by_file.items():
        original = contents.get(file_path)
        if original is None:
            result.skipped.extend(SkippedFix(item, REASON_NO_CONTENT) for item in file_findings)
            continue

        lines = original.split("\n")
        accepted: list[tuple[DiffOp, Finding]] = []
        claimed: set[int] = set()
        for finding in file_findings:
            op = parse_fix_diff(finding)
            if op is None:
                result.skipped.append(SkippedFix(finding, REASON_UNPARSEABLE))
                continue
            if not context_matches(lines, op):
                result.skipped.append(SkippedFix(finding, REASON_CONTEXT))
                continue
            if claimed.intersection(op.claimed_lines):
                result.skipped.append(SkippedFix(finding, REASON_OVERLAP))
                continue
            claimed.update(op.claimed_lines)
            accepted.append((op, finding))

        if not accepted:
            continue

        new_content = "\n".join(apply_ops(lines, (_match_line_ending(lines, op) for op, _ in accepted)))
        error = validate_syntax(file_path, new_content)
        if error is not None:
            result.skipped.extend(
                SkippedFix(finding, REASON_SYNTAX.format(detail=error)) for _, finding in accepted
            )
            continue

        result.files.append(
            FileFixResult(
                file_path=file_path,
                new_content=new_content,
                applied_findings=[finding for _, finding in accepted],
            )
        )
    return result


def _match_line_ending(lines: list[str], op: DiffOp) -> DiffOp:
    # Lines come from splitting on "\n", so CRLF lines keep a trailing "\r".
    index = op.start_line - 1
    if index < len(lines):
        crlf = lines[index].endswith("\r")
    else:
        crlf = sum(line.endswith("\r") for line in lines) * 2 > len(lines)
    if not crlf:
        return op
    inserted = tuple(line if line.endswith("\r") else f"{line}\r" for line in op.insert_lines)
    return DiffOp(op.start_line, op.remove_lines, inserted)
