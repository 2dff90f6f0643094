"""Split parsed diffs into token-bounded chunks for AI review."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from carapace.diff_parser import FileDiff, Hunk, serialize_file_diff, serialize_hunks

DEFAULT_MAX_CHUNK_TOKENS = 12_000
MIN_CHUNK_TOKENS = 1_000
PROMPT_OVERHEAD_TOKENS = 500


@dataclass(slots=True)
class DiffChunk:
    files: list[FileDiff] = field(default_factory=list)
    estimated_tokens: int = 0

    @property
    def paths(self) -> list[str]:
        return [item.path for item in self.files]

    def to_diff_text(self) -> str:
        return "\n".join(serialize_file_diff(item) for item in self.files)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per three characters."""
    return math.ceil(len(text) / 3)


def effective_chunk_budget(max_chunk_tokens: int, system_prompt: str) -> int:
    """Budget left for diff text once the system prompt is accounted for."""
    reserved = estimate_tokens(system_prompt) + PROMPT_OVERHEAD_TOKENS
    return max(max_chunk_tokens - reserved, MIN_CHUNK_TOKENS)


def split_into_chunks(files: list[FileDiff], max_tokens: int) -> list[DiffChunk]:
    """Greedily pack whole files; a file over budget is split by hunks.

    Each hunk group repeats the file header so every chunk is a valid diff.
    A single hunk larger than the budget still gets a chunk of its own.
    """
    chunks: list[DiffChunk] = []
    current = DiffChunk()

    def flush() -> None:
        nonlocal current
        if current.files:
            chunks.append(current)
        current = DiffChunk()

    for file_diff in files:
        tokens = estimate_tokens(serialize_file_diff(file_diff))
        if current.estimated_tokens + tokens <= max_tokens:
            current.files.append(file_diff)
            current.estimated_tokens += tokens
            continue

        flush()
        if tokens <= max_tokens:
            current.files.append(file_diff)
            current.estimated_tokens = tokens
            continue

        chunks.extend(_split_file(file_diff, max_tokens))

    flush()
    return chunks


def _split_file(file_diff: FileDiff, max_tokens: int) -> list[DiffChunk]:
    header_tokens = estimate_tokens(serialize_hunks(file_diff, []))
    pieces: list[DiffChunk] = []
    batch: list[Hunk] = []
    batch_tokens = header_tokens

    for hunk in file_diff.hunks:
        hunk_tokens = estimate_tokens(serialize_hunks(file_diff, [hunk])) - header_tokens
        if batch and batch_tokens + hunk_tokens > max_tokens:
            pieces.append(_piece(file_diff, batch, batch_tokens))
            batch = []
            batch_tokens = header_tokens
        batch.append(hunk)
        batch_tokens += hunk_tokens

    if batch:
        pieces.append(_piece(file_diff, batch, batch_tokens))
    return pieces


def _piece(file_diff: FileDiff, hunks: list[Hunk], tokens: int) -> DiffChunk:
    partial = FileDiff(
        old_path=file_diff.old_path,
        new_path=file_diff.new_path,
        hunks=list(hunks),
        metadata=list(file_diff.metadata),
    )
    return DiffChunk(files=[partial], estimated_tokens=tokens)
