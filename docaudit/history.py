"""Revision history of project files.

``GitHistory`` reads the whole commit log once and answers "when did this
path last change" from memory; files with uncommitted changes, and files git
does not know about, use their filesystem modification time.
``FilesystemHistory`` is used when the project is not a git work tree.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import Protocol

from .exceptions import GitError
from .logging import get_logger

logger = get_logger(__name__)

GIT_TIMEOUT_SECONDS = 120


def run_git(project_root: Path, args: list[str], timeout: int = GIT_TIMEOUT_SECONDS) -> str:
    """Run a git command in the project and return its stdout.

    Raises:
        GitError: If git cannot be started, times out or exits non-zero
    """
    command = ["git", "-c", "core.quotepath=off", "-C", str(project_root), *args]
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise GitError(f"Failed to run git: {e}", command=command) from e

    if result.returncode != 0:
        raise GitError(
            f"git {args[0]} failed",
            command=command,
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result.stdout


def _lines(output: str) -> set[str]:
    return {line.strip() for line in output.splitlines() if line.strip()}


def is_git_work_tree(project_root: Path) -> bool:
    """Check whether the project lives inside a git work tree."""
    if shutil.which("git") is None:
        return False
    try:
        return run_git(project_root, ["rev-parse", "--is-inside-work-tree"]).strip() == "true"
    except GitError:
        return False


def has_commits(project_root: Path) -> bool:
    try:
        run_git(project_root, ["rev-parse", "--verify", "--quiet", "HEAD"])
    except GitError:
        return False
    return True


def latest_tag(project_root: Path) -> str | None:
    """Return the most recent tag reachable from HEAD, or None."""
    try:
        tag = run_git(project_root, ["describe", "--tags", "--abbrev=0"]).strip()
    except GitError:
        return None
    return tag or None


def uncommitted_paths(project_root: Path) -> set[str]:
    """Paths with staged, unstaged or untracked changes, relative to the project."""
    paths = _lines(run_git(project_root, ["ls-files", "--others", "--exclude-standard"]))
    if has_commits(project_root):
        paths |= _lines(run_git(project_root, ["diff", "--name-only", "--relative", "HEAD"]))
    else:
        paths |= _lines(run_git(project_root, ["ls-files"]))
    return paths


def changed_since_ref(project_root: Path, ref: str) -> set[str]:
    """Paths changed between ``ref`` and the working tree, deletions included.

    Raises:
        GitError: If ``ref`` does not name a commit
    """
    try:
        run_git(project_root, ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
    except GitError as e:
        raise GitError(f"Unknown git reference: {ref}", details=dict(e.details)) from e

    changed = _lines(run_git(project_root, ["diff", "--name-only", "--relative", ref]))
    changed |= _lines(run_git(project_root, ["ls-files", "--others", "--exclude-standard"]))
    return changed


def changed_since_time(project_root: Path, since: str) -> set[str]:
    """Paths touched by commits newer than ``since`` plus uncommitted changes.

    Args:
        project_root: Project root
        since: Anything ``git log --since`` accepts ("2 weeks ago", "2026-01-31")
    """
    changed: set[str] = set()
    if has_commits(project_root):
        changed = _lines(
            run_git(
                project_root,
                ["log", f"--since={since}", "--name-only", "--no-renames", "--relative", "--format="],
            )
        )
    return changed | uncommitted_paths(project_root)


class HistoryProvider(Protocol):
    """Source of last-modified times for project-relative paths."""

    def last_modified(self, rel_path: str) -> float | None: ...


class FilesystemHistory:
    """Last-modified times from the filesystem."""

    def __init__(self, project_root: Path) -> None:
        self.project_root = project_root

    def last_modified(self, rel_path: str) -> float | None:
        try:
            return (self.project_root / rel_path).stat().st_mtime
        except OSError:
            return None


class GitHistory:
    """Last-modified times from the git log, filesystem for uncommitted files."""

    def __init__(self, project_root: Path) -> None:
        self.project_root = project_root
        self._fallback = FilesystemHistory(project_root)
        self._commit_times: dict[str, float] | None = None
        self._dirty: set[str] = set()

    def _load(self) -> dict[str, float]:
        commit_times: dict[str, float] = {}
        if has_commits(self.project_root):
            output = run_git(
                self.project_root,
                ["log", "--format=@@%ct", "--name-only", "--no-renames", "--relative"],
            )
            timestamp: float | None = None
            for line in output.splitlines():
                line = line.strip()
                if not line:
                    continue
                if line.startswith("@@"):
                    timestamp = float(line[2:])
                    continue
                if timestamp is not None and timestamp > commit_times.get(line, 0.0):
                    commit_times[line] = timestamp

        self._dirty = uncommitted_paths(self.project_root)
        logger.debug(
            f"Loaded git history: {len(commit_times)} paths, {len(self._dirty)} uncommitted"
        )
        return commit_times

    def last_modified(self, rel_path: str) -> float | None:
        if self._commit_times is None:
            self._commit_times = self._load()
        if rel_path in self._dirty or rel_path not in self._commit_times:
            return self._fallback.last_modified(rel_path)
        return self._commit_times[rel_path]


def history_for(project_root: Path) -> HistoryProvider:
    """Pick git history when available, the filesystem otherwise."""
    if is_git_work_tree(project_root):
        logger.info("Using git history for revision times")
        return GitHistory(project_root)
    logger.info("Not a git work tree; using filesystem modification times")
    return FilesystemHistory(project_root)
