"""Fix application: patch, validate, back up and undo."""

from __future__ import annotations

from carapace.fixers.apply_fixes import (
    ApplyFixesResult,
    DiffOp,
    FileFixResult,
    SkippedFix,
    apply_fixes,
    parse_fix_diff,
)
from carapace.fixers.backup import BackupStore, read_sources, write_fixes
from carapace.fixers.syntax import validate_syntax

__all__ = [
    "ApplyFixesResult",
    "BackupStore",
    "DiffOp",
    "FileFixResult",
    "SkippedFix",
    "apply_fixes",
    "parse_fix_diff",
    "read_sources",
    "validate_syntax",
    "write_fixes",
]
