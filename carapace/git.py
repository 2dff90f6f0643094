"""Git subprocess helpers."""

from __future__ import annotations

from pathlib import Path
from subprocess import CalledProcessError, run


class GitError(RuntimeError):
    """Raised when git command execution fails."""


def get_working_tree_diff(repo: Path) -> str:
    """Return the diff of the working tree against HEAD, staged changes included."""
    if get_head_revision(repo) is None:
        return _run_git(repo, ["diff", "--no-color", "--cached"])
    return _run_git(repo, ["diff", "--no-color", "HEAD"])


def get_diff_between(repo: Path, base: str, head: str) -> str:
    """Return diff between two revisions."""
    return _run_git(repo, ["diff", "--no-color", f"{base}..{head}"])


def get_head_revision(repo: Path) -> str | None:
    """Return HEAD revision if present."""
    try:
        return _run_git(repo, ["rev-parse", "--verify", "HEAD"]).strip()
    except GitError:
        return None


def is_git_repository(path: Path) -> bool:
    try:
        return _run_git(path, ["rev-parse", "--is-inside-work-tree"]).strip() == "true"
    except (GitError, OSError):
        return False


def list_tracked_files(repo: Path) -> list[str]:
    """Tracked plus untracked-but-not-ignored files, relative to ``repo``."""
    output = _run_git(repo, ["ls-files", "--cached", "--others", "--exclude-standard"])
    return sorted({line.strip() for line in output.splitlines() if line.strip()})


def _run_git(repo: Path, args: list[str]) -> str:
    try:
        completed = run(
            ["git", *args],
            cwd=repo,
            check=True,
            capture_output=True,
            text=True,
        )
    except CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise GitError(stderr or f"git {' '.join(args)} failed") from exc

    return completed.stdout
