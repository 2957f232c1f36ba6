"""Staleness scoring.

A document is stale when a source file it references changed more recently
than the document itself (beyond the configured grace period). Referenced
sources are:
- Backticked project paths and ``file:line`` citations in the text
- Frontmatter ``source_refs`` entries
- Links to existing non-Markdown files
- Files matched by the ``source_mapping`` setting for the document
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from ..config import AuditSettings, path_matches
from ..history import HistoryProvider
from ..index import DocumentIndex, is_markdown_path
from ..logging import get_logger
from ..models import Finding, FindingKind, ParsedDocument, ScanScope, Severity

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class StaleSource:
    """A referenced source file newer than the document."""

    path: str
    line: int
    modified: float
    lag_days: float


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, UTC).isoformat()


class SourceResolver:
    """Finds the source files a document references."""

    def __init__(self, index: DocumentIndex, settings: AuditSettings) -> None:
        self.index = index
        self.settings = settings
        self._glob_cache: dict[str, list[str]] = {}

    def _glob(self, pattern: str) -> list[str]:
        if pattern not in self._glob_cache:
            root: Path = self.index.project_root
            matches = sorted(
                p.relative_to(root).as_posix()
                for p in root.glob(pattern.lstrip("/"))
                if p.is_file()
            )
            self._glob_cache[pattern] = matches
        return self._glob_cache[pattern]

    def sources(self, document: ParsedDocument) -> dict[str, int]:
        """Map each referenced source path to the line of its first mention.

        Sources that come only from ``source_mapping`` have line 0.
        """
        found: dict[str, int] = {}

        for ref in document.source_refs:
            resolved = self.index.resolve_source_ref(document.path, ref)
            if resolved is None or resolved == document.path or is_markdown_path(resolved):
                continue
            found.setdefault(resolved, ref.line)

        for link in document.links:
            target = self.index.resolve_link(document.path, link)
            if target is None or target.startswith("../") or is_markdown_path(target):
                continue
            if (self.index.project_root / target).is_file():
                found.setdefault(target, link.line)

        for doc_pattern, source_patterns in self.settings.source_mapping.items():
            if not path_matches(document.path, [doc_pattern]):
                continue
            for pattern in source_patterns:
                for source in self._glob(pattern):
                    if source != document.path:
                        found.setdefault(source, 0)

        return found


def score_document(
    document: ParsedDocument,
    sources: dict[str, int],
    history: HistoryProvider,
    staleness_days: int = 0,
) -> Finding | None:
    """Score one document against its referenced sources.

    Args:
        document: The document
        sources: Referenced source path -> line of mention
        history: Revision time provider
        staleness_days: Grace period in days

    Returns:
        A stale finding, or None when the document is current
    """
    doc_time = history.last_modified(document.path)
    if doc_time is None or not sources:
        return None

    grace = staleness_days * SECONDS_PER_DAY
    newer: list[StaleSource] = []
    for source, line in sources.items():
        source_time = history.last_modified(source)
        if source_time is None:
            continue
        if source_time - doc_time > grace:
            newer.append(
                StaleSource(
                    path=source,
                    line=line,
                    modified=source_time,
                    lag_days=(source_time - doc_time) / SECONDS_PER_DAY,
                )
            )

    if not newer:
        return None

    newer.sort(key=lambda s: (-s.lag_days, s.path))
    score = round(newer[0].lag_days, 1)
    return Finding(
        kind=FindingKind.STALE,
        severity=Severity.WARNING,
        doc_path=document.path,
        line=0,
        message=(
            f"{len(newer)} referenced source file(s) changed after this document "
            f"(up to {score:.1f} days later, newest: {newer[0].path})"
        ),
        subject="referenced-sources",
        details={
            "score_days": score,
            "document_modified": _iso(doc_time),
            "sources_checked": len(sources),
            "newer_sources": [
                {
                    "path": s.path,
                    "line": s.line,
                    "modified": _iso(s.modified),
                    "lag_days": round(s.lag_days, 2),
                }
                for s in newer
            ],
        },
    )


def check_staleness(
    index: DocumentIndex,
    scope: ScanScope,
    history: HistoryProvider,
    settings: AuditSettings,
) -> list[Finding]:
    """Score every in-scope document.

    Returns:
        Stale findings, most stale first
    """
    resolver = SourceResolver(index, settings)
    findings: list[Finding] = []

    for document in index:
        if not scope.includes(document.path):
            continue
        sources = resolver.sources(document)
        finding = score_document(document, sources, history, settings.staleness_days)
        if finding is not None:
            findings.append(finding)

    findings.sort(key=lambda f: (-f.details["score_days"], f.doc_path))
    logger.info(f"Staleness check: {len(findings)} stale documents")
    return findings
