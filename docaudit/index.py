"""Document index: every Markdown document of a project, parsed once.

The index maps each project-relative document path to its parsed structure
and resolves links and source references against the project tree. It is
built over the whole project even when only part of it is audited, because
anchors, reachability and inbound links depend on documents outside the
audited subset.
"""

from __future__ import annotations

import fnmatch
import os
import posixpath
from collections.abc import Iterator
from pathlib import Path, PurePosixPath
from urllib.parse import unquote

from .config import AuditSettings, is_excluded, path_matches
from .exceptions import DocumentReadError
from .logging import get_logger
from .models import Link, ParsedDocument, SourceReference
from .parsers.markdown import parse_markdown

logger = get_logger(__name__)

# Files GitHub renders when a link points at a directory
DIRECTORY_INDEX_NAMES = ("README.md", "readme.md", "index.md")

MARKDOWN_SUFFIXES = (".md", ".markdown")


def find_project_root(start_path: Path) -> Path:
    """Find the project root by looking for .git or pyproject.toml.

    Args:
        start_path: Starting path for search

    Returns:
        Project root path; the starting directory itself when no marker is found
    """
    start = start_path.resolve()
    if start.is_file():
        start = start.parent

    current = start
    while current != current.parent:
        if (current / ".git").exists() or (current / "pyproject.toml").exists():
            return current
        current = current.parent

    return start


def _dir_excluded(rel_dir: str, name: str, patterns: list[str]) -> bool:
    for pattern in patterns:
        if "/" in pattern:
            if fnmatch.fnmatch(rel_dir, pattern.rstrip("/")):
                return True
        elif fnmatch.fnmatch(name, pattern):
            return True
    return False


def collect_documents(project_root: Path, settings: AuditSettings) -> list[str]:
    """Collect project-relative paths of all documents.

    Args:
        project_root: Project root directory
        settings: Include/exclude patterns

    Returns:
        Sorted list of POSIX paths relative to the project root
    """
    found: list[str] = []
    for dirpath, dirnames, filenames in os.walk(project_root):
        rel_dir = Path(dirpath).relative_to(project_root).as_posix()
        if rel_dir == ".":
            rel_dir = ""

        dirnames[:] = sorted(
            d
            for d in dirnames
            if not _dir_excluded(posixpath.join(rel_dir, d) if rel_dir else d, d, settings.exclude)
        )

        for filename in filenames:
            rel = posixpath.join(rel_dir, filename) if rel_dir else filename
            if not path_matches(rel, settings.include):
                continue
            if is_excluded(rel, settings.exclude):
                continue
            found.append(rel)

    return sorted(found)


class DocumentIndex:
    """Parsed documents of a project keyed by project-relative path."""

    def __init__(self, project_root: Path) -> None:
        self.project_root = project_root.resolve()
        self.documents: dict[str, ParsedDocument] = {}
        self._graph: dict[str, set[str]] | None = None
        self._inbound: dict[str, set[str]] | None = None

    @classmethod
    def build(cls, project_root: Path, settings: AuditSettings) -> DocumentIndex:
        """Index every document of the project.

        Documents that cannot be read or decoded are logged and skipped.
        """
        index = cls(project_root)
        paths = collect_documents(index.project_root, settings)
        for rel_path in paths:
            try:
                index.add_file(rel_path)
            except DocumentReadError as e:
                logger.warning(f"Skipping document: {e.message}")

        logger.info(f"Indexed {len(index)} documents under {index.project_root}")
        return index

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[ParsedDocument]:
        for path in sorted(self.documents):
            yield self.documents[path]

    def __contains__(self, path: object) -> bool:
        return path in self.documents

    def get(self, path: str) -> ParsedDocument | None:
        return self.documents.get(path)

    @property
    def paths(self) -> list[str]:
        return sorted(self.documents)

    def add_file(self, rel_path: str) -> ParsedDocument:
        """Read and index one document.

        Raises:
            DocumentReadError: If the file cannot be read as UTF-8 text
        """
        try:
            text = (self.project_root / rel_path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentReadError(rel_path, str(e)) from e
        return self.add_text(rel_path, text)

    def add_text(self, rel_path: str, text: str) -> ParsedDocument:
        """Index a document from its text."""
        document = parse_markdown(text, rel_path)
        self.documents[rel_path] = document
        self._graph = None
        self._inbound = None
        return document

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def exists(self, rel_path: str) -> bool:
        if rel_path.startswith("../") or rel_path == "..":
            return False
        return (self.project_root / rel_path).exists()

    def resolve_link(self, doc_path: str, link: Link) -> str | None:
        """Resolve an internal link to a project-relative path.

        Args:
            doc_path: Document containing the link
            link: The link

        Returns:
            Normalized POSIX path (possibly nonexistent; starting with ``../``
            when it escapes the project root), or None for external and
            same-document links
        """
        if link.is_external or not link.path:
            return None

        raw = unquote(link.path)
        if raw.startswith("/"):
            candidate = raw.lstrip("/") or "."
        else:
            candidate = posixpath.join(posixpath.dirname(doc_path), raw)
        return posixpath.normpath(candidate)

    def document_for(self, rel_path: str) -> str | None:
        """Map a link target to the indexed document it shows.

        Directories map to their README/index document.
        """
        if rel_path in self.documents:
            return rel_path
        if (self.project_root / rel_path).is_dir() or rel_path == ".":
            for name in DIRECTORY_INDEX_NAMES:
                candidate = name if rel_path == "." else f"{rel_path}/{name}"
                if candidate in self.documents:
                    return candidate
        return None

    def resolve_source_ref(self, doc_path: str, ref: SourceReference) -> str | None:
        """Resolve a source reference to an existing project file.

        Paths starting with ``./`` or ``../`` are relative to the document;
        other paths are tried against the project root first, then the
        document's directory.
        """
        raw = ref.path
        candidates: list[str] = []
        doc_dir = posixpath.dirname(doc_path)
        if raw.startswith(("./", "../")):
            candidates.append(posixpath.join(doc_dir, raw))
        else:
            candidates.append(raw.lstrip("/"))
            if doc_dir:
                candidates.append(posixpath.join(doc_dir, raw))

        for candidate in candidates:
            normalized = posixpath.normpath(candidate)
            if normalized.startswith("../") or normalized in (".", ".."):
                continue
            if (self.project_root / normalized).is_file():
                return normalized
        return None

    # ------------------------------------------------------------------
    # Link graph
    # ------------------------------------------------------------------

    def _build_graph(self) -> dict[str, set[str]]:
        graph: dict[str, set[str]] = {}
        for path, document in self.documents.items():
            edges: set[str] = set()
            for link in document.links:
                target = self.resolve_link(path, link)
                if target is None:
                    continue
                doc = self.document_for(target)
                if doc is not None and doc != path:
                    edges.add(doc)
            graph[path] = edges
        return graph

    def graph(self) -> dict[str, set[str]]:
        """Document-to-document link graph (self links excluded)."""
        if self._graph is None:
            self._graph = self._build_graph()
        return self._graph

    def outbound(self, path: str) -> set[str]:
        return set(self.graph().get(path, set()))

    def inbound(self, path: str) -> set[str]:
        if self._inbound is None:
            inbound: dict[str, set[str]] = {p: set() for p in self.documents}
            for source, targets in self.graph().items():
                for target in targets:
                    inbound.setdefault(target, set()).add(source)
            self._inbound = inbound
        return set(self._inbound.get(path, set()))


def is_markdown_path(rel_path: str) -> bool:
    return PurePosixPath(rel_path).suffix.lower() in MARKDOWN_SUFFIXES
