"""Shared fixtures for docaudit tests.

Provides:
- Project tree builders on tmp_path
- A fake revision history with fixed timestamps
- A throwaway git repository with controlled commit dates
"""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

# Add project root to path so the package imports without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from docaudit.config import AuditSettings
from docaudit.index import DocumentIndex
from docaudit.logging import set_scan_id
from docaudit.models import ScanScope

DAY = 86400.0
BASE_TIME = 1_704_067_200.0  # 2024-01-01T00:00:00Z

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Write ``{relative path: content}`` under ``root``."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def full_scope(index: DocumentIndex) -> ScanScope:
    return ScanScope("full", set(index.paths), set(index.paths))


class FakeHistory:
    """History provider answering from a dict of day offsets."""

    def __init__(self, days: dict[str, float] | None = None) -> None:
        self.times = {path: BASE_TIME + offset * DAY for path, offset in (days or {}).items()}

    def last_modified(self, rel_path: str) -> float | None:
        return self.times.get(rel_path)


class GitRepo:
    """Minimal git driver for tests that need real history."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.env = {
            **os.environ,
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_AUTHOR_NAME": "Docs Bot",
            "GIT_AUTHOR_EMAIL": "docs@example.com",
            "GIT_COMMITTER_NAME": "Docs Bot",
            "GIT_COMMITTER_EMAIL": "docs@example.com",
        }
        self.git("init", "-q")

    def git(self, *args: str, env: dict[str, str] | None = None) -> str:
        result = subprocess.run(
            ["git", "-c", "commit.gpgsign=false", "-c", "tag.gpgsign=false", *args],
            cwd=self.root,
            env=env or self.env,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def write(self, files: dict[str, str]) -> None:
        write_files(self.root, files)

    def commit(self, message: str, day: float) -> None:
        """Commit everything with author and committer date ``BASE_TIME + day``."""
        stamp = f"@{int(BASE_TIME + day * DAY)} +0000"
        env = {**self.env, "GIT_AUTHOR_DATE": stamp, "GIT_COMMITTER_DATE": stamp}
        self.git("add", "-A", env=env)
        self.git("commit", "-q", "-m", message, env=env)

    def tag(self, name: str) -> None:
        self.git("tag", name)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep DOCAUDIT_* variables and logging state from leaking between tests."""
    for key in list(os.environ):
        if key.startswith("DOCAUDIT_"):
            monkeypatch.delenv(key, raising=False)
    yield
    pkg_logger = logging.getLogger("docaudit")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        handler.close()
    pkg_logger.setLevel(logging.NOTSET)
    set_scan_id(None)


@pytest.fixture
def settings() -> AuditSettings:
    return AuditSettings()


@pytest.fixture
def make_project(tmp_path):
    """Build a project tree and return its root."""

    def _make(files: dict[str, str]) -> Path:
        return write_files(tmp_path, files)

    return _make


@pytest.fixture
def build_index(make_project, settings):
    """Build a project tree and index it."""

    def _build(files: dict[str, str], audit_settings: AuditSettings | None = None) -> DocumentIndex:
        root = make_project(files)
        return DocumentIndex.build(root, audit_settings or settings)

    return _build


@pytest.fixture
def git_repo(tmp_path) -> GitRepo:
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    return GitRepo(tmp_path)
