"""Backups of original files so written fixes can be undone."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from carapace.fixers.apply_fixes import ApplyFixesResult
from carapace.log import get_logger

BACKUP_DIRNAME = ".carapace-backup"
REASON_NOT_UTF8 = "file is not valid UTF-8"


class BackupStore:
    """Mirror of pre-fix file contents under ``<root>/.carapace-backup/``."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.directory = root / BACKUP_DIRNAME

    def exists(self) -> bool:
        return self.directory.is_dir() and any(self.directory.rglob("*"))

    def save(self, paths: Iterable[str]) -> int:
        """Copy originals of ``paths`` (relative to root) into the backup directory.

        A file already backed up keeps its first copy, so repeated runs can
        still undo back to the pre-fix state.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        saved = 0
        for rel_path in paths:
            source = self.root / rel_path
            target = self.directory / rel_path
            if not source.is_file() or target.exists():
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
            saved += 1
        return saved

    def restore(self) -> int:
        """Copy every backed-up file back into place and drop the backup directory."""
        if not self.directory.is_dir():
            return 0
        restored = 0
        for backup in sorted(self.directory.rglob("*")):
            if not backup.is_file():
                continue
            target = self.root / backup.relative_to(self.directory)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(backup, target)
            restored += 1
        shutil.rmtree(self.directory)
        return restored


def write_fixes(
    result: ApplyFixesResult,
    root: Path,
    backup: BackupStore | None = None,
    *,
    logger: logging.Logger | None = None,
) -> list[str]:
    """Back up then overwrite every patched file; returns the written paths."""
    log = logger or get_logger("fixers")
    paths = [item.file_path for item in result.files]
    if not paths:
        return []
    if backup is not None:
        backup.save(paths)
    for item in result.files:
        (root / item.file_path).write_bytes(item.new_content.encode("utf-8"))
        log.debug("wrote %d fixes to %s", len(item.applied_findings), item.file_path)
    return paths


def read_sources(
    root: Path,
    paths: Iterable[str],
    *,
    logger: logging.Logger | None = None,
) -> tuple[dict[str, str], dict[str, str]]:
    """Read files byte-exact for fixing.

    Returns ``(contents, unreadable)``; line endings are kept as-is and a file
    that is not valid UTF-8 lands in ``unreadable`` with the reason it was skipped.
    """
    log = logger or get_logger("fixers")
    contents: dict[str, str] = {}
    unreadable: dict[str, str] = {}
    for rel_path in paths:
        try:
            contents[rel_path] = (root / rel_path).read_bytes().decode("utf-8")
        except UnicodeDecodeError:
            log.warning("not fixing %s: %s", rel_path, REASON_NOT_UTF8)
            unreadable[rel_path] = REASON_NOT_UTF8
        except OSError as exc:
            log.warning("not fixing %s: %s", rel_path, exc)
            unreadable[rel_path] = f"could not read file: {exc.strerror or exc}"
    return contents, unreadable
