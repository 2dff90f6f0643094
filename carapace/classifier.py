"""Language and chain detection for changed files."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Literal

Language = Literal[
    "solidity",
    "rust",
    "typescript",
    "javascript",
    "python",
    "go",
    "java",
    "unknown",
]

EXTENSION_LANGUAGES: dict[str, Language] = {
    ".sol": "solidity",
    ".rs": "rust",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
    ".go": "go",
    ".java": "java",
}


@dataclass(frozen=True, slots=True)
class FileClassification:
    path: str
    language: Language
    chain: str | None = None
    is_smart_contract: bool = False


def classify_file(path: str, content: str | None = None) -> FileClassification:
    """Classify a file by extension.

    ``content`` is accepted so content-based detection can be layered in
    without changing callers; extension alone decides today.
    """
    _ = content
    language = EXTENSION_LANGUAGES.get(PurePosixPath(path).suffix.lower(), "unknown")
    if language == "solidity":
        return FileClassification(path=path, language=language, chain="solidity", is_smart_contract=True)
    return FileClassification(path=path, language=language)
