"""Audit orchestration.

``DocAuditor`` owns the document index and revision history of one project
and runs the requested analyzers over a scan scope.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .config import AuditSettings
from .exceptions import ConfigurationError
from .history import HistoryProvider, history_for
from .index import DocumentIndex
from .logging import get_logger
from .models import AuditReport, DuplicateCluster, Finding, ScanScope
from .scan import choose_scope
from .validators import check_links, check_orphans, check_staleness, find_duplicates

logger = get_logger(__name__)

ANALYZER_LINKS = "links"
ANALYZER_DUPLICATES = "duplicates"
ANALYZER_STALE = "stale"
ANALYZER_ORPHANS = "orphans"

ANALYZERS: tuple[str, ...] = (
    ANALYZER_LINKS,
    ANALYZER_DUPLICATES,
    ANALYZER_STALE,
    ANALYZER_ORPHANS,
)


class DocAuditor:
    """Runs documentation analyzers over a project."""

    def __init__(
        self,
        project_root: Path,
        settings: AuditSettings,
        history: HistoryProvider | None = None,
    ) -> None:
        self.project_root = project_root.resolve()
        self.settings = settings
        self._history = history
        self._index: DocumentIndex | None = None

    @property
    def index(self) -> DocumentIndex:
        if self._index is None:
            self._index = DocumentIndex.build(self.project_root, self.settings)
        return self._index

    @property
    def history(self) -> HistoryProvider:
        if self._history is None:
            self._history = history_for(self.project_root)
        return self._history

    def scope(
        self,
        target: Path | None = None,
        *,
        full: bool = False,
        since_tag: str | None = None,
        since: str | None = None,
    ) -> ScanScope:
        return choose_scope(
            self.index,
            self.settings,
            target,
            full=full,
            since_tag=since_tag,
            since=since,
        )

    def run(self, scope: ScanScope, analyzers: Iterable[str] = ANALYZERS) -> AuditReport:
        """Run analyzers over a scope.

        Args:
            scope: Documents to analyze
            analyzers: Names from ``ANALYZERS``; order does not matter

        Returns:
            The audit report

        Raises:
            ConfigurationError: If an analyzer name is unknown
        """
        selected = list(dict.fromkeys(analyzers))
        unknown = [name for name in selected if name not in ANALYZERS]
        if unknown:
            raise ConfigurationError(
                f"Unknown analyzer(s): {', '.join(unknown)}",
                details={"available": list(ANALYZERS)},
            )

        findings: list[Finding] = []
        clusters: list[DuplicateCluster] = []

        if ANALYZER_LINKS in selected:
            findings.extend(check_links(self.index, scope))
        if ANALYZER_DUPLICATES in selected:
            duplicate_findings, clusters = find_duplicates(
                self.index, self.settings, self.history, scope
            )
            findings.extend(duplicate_findings)
        if ANALYZER_STALE in selected:
            findings.extend(check_staleness(self.index, scope, self.history, self.settings))
        if ANALYZER_ORPHANS in selected:
            findings.extend(check_orphans(self.index, self.settings, scope))

        report = AuditReport(
            project_root=str(self.project_root),
            scope=scope,
            documents_indexed=len(self.index),
            analyzers=[name for name in ANALYZERS if name in selected],
            findings=findings,
            clusters=clusters,
        )
        logger.info(
            f"Audit complete ({scope.mode}): {len(scope.documents)} documents in scope, "
            f"{report.error_count} errors, {report.warning_count} warnings, "
            f"{report.info_count} info"
        )
        return report


def audit(
    project_root: Path,
    settings: AuditSettings | None = None,
    target: Path | None = None,
    *,
    analyzers: Iterable[str] = ANALYZERS,
    full: bool = False,
    since_tag: str | None = None,
    since: str | None = None,
) -> AuditReport:
    """Audit a project in one call."""
    auditor = DocAuditor(project_root, settings or AuditSettings())
    scope = auditor.scope(target, full=full, since_tag=since_tag, since=since)
    return auditor.run(scope, analyzers)
