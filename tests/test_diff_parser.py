"""Tests for unified diff parsing."""

from pathlib import Path

from carapace.diff_parser import (
    added_line_ranges,
    extract_changed_line_ranges,
    parse_unified_diff,
    reconstruct_new_content,
    serialize_file_diff,
)

FIXTURE_DIR = Path(__file__).parent / "fixtures" / "diffs"


def _load_fixture(name: str) -> str:
    return (FIXTURE_DIR / name).read_text(encoding="utf-8")


def test_parse_simple_diff() -> None:
    parsed = parse_unified_diff(_load_fixture("simple.diff"))
    assert len(parsed) == 1

    file_diff = parsed[0]
    assert file_diff.path == "src/app.py"
    assert file_diff.status == "modified"
    assert len(file_diff.hunks) == 1

    hunk = file_diff.hunks[0]
    assert (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count) == (1, 3, 1, 4)
    assert [line.kind for line in hunk.lines] == ["context", "delete", "add", "add", "context"]

    deleted = hunk.lines[1]
    assert deleted.content == 'print("old")'
    assert deleted.old_lineno == 2
    assert deleted.new_lineno is None

    added = hunk.lines[2]
    assert added.content == 'print("new")'
    assert added.old_lineno is None
    assert added.new_lineno == 2
    assert hunk.lines[4].new_lineno == 4


def test_parse_new_and_deleted_files() -> None:
    parsed = parse_unified_diff(_load_fixture("new_and_deleted.diff"))
    assert len(parsed) == 2

    deleted_file = parsed[0]
    assert deleted_file.path == "tests/legacy.txt"
    assert deleted_file.status == "deleted"
    assert [line.kind for line in deleted_file.hunks[0].lines] == ["delete", "delete"]

    new_file = parsed[1]
    assert new_file.path == "docs/new.md"
    assert new_file.status == "added"
    assert [line.new_lineno for line in new_file.hunks[0].lines] == [1, 2]


def test_parse_renamed_file() -> None:
    parsed = parse_unified_diff(_load_fixture("renamed.diff"))
    assert len(parsed) == 1
    assert parsed[0].status == "renamed"
    assert parsed[0].old_path == "lib/old_name.py"
    assert parsed[0].path == "lib/new_name.py"


def test_no_newline_marker_is_consumed() -> None:
    parsed = parse_unified_diff(_load_fixture("no_newline_marker.diff"))
    assert len(parsed) == 1
    hunk = parsed[0].hunks[0]
    assert [line.kind for line in hunk.lines] == ["delete", "add"]


def test_line_numbers_continue_across_hunks() -> None:
    parsed = parse_unified_diff(_load_fixture("multi_hunk.diff"))
    first, second = parsed[0].hunks
    assert first.section == "export class Service {"

    first_new = [line.new_lineno for line in first.lines if line.new_lineno is not None]
    second_new = [line.new_lineno for line in second.lines if line.new_lineno is not None]
    assert first_new == [2, 3, 4, 5, 6]
    assert second_new == [21, 22, 23, 24]
    assert all(left < right for left, right in zip(first_new, first_new[1:]))


def test_parse_unified_without_diff_git_header() -> None:
    diff_text = "\n".join(
        [
            "--- a/foo.txt",
            "+++ b/foo.txt",
            "@@ -5 +5 @@",
            "-old",
            "+new",
        ]
    )
    parsed = parse_unified_diff(diff_text)
    assert len(parsed) == 1

    file_diff = parsed[0]
    assert file_diff.path == "foo.txt"
    hunk = file_diff.hunks[0]
    assert (hunk.old_start, hunk.old_count, hunk.new_start, hunk.new_count) == (5, 1, 5, 1)


def test_invalid_hunk_header_is_skipped() -> None:
    parsed = parse_unified_diff(
        "\n".join(["--- a/foo.txt", "+++ b/foo.txt", "@@ -x +1 @@", "-old", "+new"])
    )
    assert len(parsed) == 1
    assert parsed[0].hunks == []


def test_non_diff_input_yields_nothing() -> None:
    assert parse_unified_diff("") == []
    assert parse_unified_diff("hello\nworld\n") == []


def test_added_line_ranges_group_contiguous_additions() -> None:
    parsed = parse_unified_diff(_load_fixture("multi_hunk.diff"))
    assert added_line_ranges(parsed[0]) == [(3, 4), (22, 22)]

    changed = extract_changed_line_ranges(parse_unified_diff(_load_fixture("new_and_deleted.diff")))
    assert changed == {"docs/new.md": [(1, 2)]}


def test_serialize_round_trips_to_same_model() -> None:
    parsed = parse_unified_diff(_load_fixture("multi_hunk.diff"))
    text = serialize_file_diff(parsed[0])
    assert text.startswith("--- a/src/service.ts\n+++ b/src/service.ts\n@@ -2,4 +2,5 @@")

    reparsed = parse_unified_diff(text)
    assert [hunk.new_start for hunk in reparsed[0].hunks] == [2, 21]
    assert [line.content for line in reparsed[0].hunks[1].lines] == [
        line.content for line in parsed[0].hunks[1].lines
    ]


def test_reconstruct_new_content_keeps_added_and_context_lines() -> None:
    parsed = parse_unified_diff(_load_fixture("simple.diff"))
    assert reconstruct_new_content(parsed[0]) == 'import os\nprint("new")\nprint("extra")\nprint("done")'
