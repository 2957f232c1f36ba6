"""Orphan analysis and pruning.

Documents that cannot be reached by following links from the root documents
are deletion candidates, unless a ``protected`` pattern matches them. When
no root document exists, a document is orphaned when no other document
links to it.

Reachability is a property of the whole link graph, so incremental scans do
not narrow this analysis; only the audited path does.
"""

from __future__ import annotations

from collections import deque
from pathlib import Path

from ..config import AuditSettings, path_matches
from ..index import DocumentIndex
from ..logging import get_logger
from ..models import Finding, FindingKind, ScanScope, Severity

logger = get_logger(__name__)

MODE_UNREACHABLE = "unreachable"
MODE_NO_INBOUND = "no_inbound_links"


def find_roots(index: DocumentIndex, settings: AuditSettings) -> list[str]:
    """Configured root documents that exist in the index."""
    return [root for root in settings.root_documents if root in index]


def reachable_from(index: DocumentIndex, roots: list[str]) -> set[str]:
    """Documents reachable from ``roots`` by following links (roots included)."""
    seen: set[str] = set(roots)
    queue = deque(roots)
    while queue:
        current = queue.popleft()
        for target in index.outbound(current):
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


def check_orphans(
    index: DocumentIndex,
    settings: AuditSettings,
    scope: ScanScope | None = None,
) -> list[Finding]:
    """Report orphaned documents.

    Args:
        index: Document index of the project
        settings: Roots and protected patterns
        scope: Limits reporting to ``scope.targets`` when given

    Returns:
        One info finding per deletion candidate
    """
    roots = find_roots(index, settings)
    if roots:
        reachable = reachable_from(index, roots)
        candidates = [p for p in index.paths if p not in reachable]
        mode = MODE_UNREACHABLE
    else:
        configured = ", ".join(settings.root_documents) or "none configured"
        logger.warning(
            f"No root documents found ({configured}); reporting documents without inbound links"
        )
        candidates = [p for p in index.paths if not index.inbound(p)]
        mode = MODE_NO_INBOUND

    limit = scope.targets if scope is not None else None
    if limit is not None and not limit:
        logger.info("No documents under the audited path; no orphans reported")
        return []
    findings: list[Finding] = []
    for path in candidates:
        if limit is not None and path not in limit:
            continue
        if path_matches(path, settings.protected):
            logger.debug(f"Protected document not reported as orphan: {path}")
            continue

        inbound = sorted(index.inbound(path))
        if mode == MODE_UNREACHABLE:
            message = "Not reachable from any root document"
            if inbound:
                message += f" (linked only from unreachable documents: {', '.join(inbound)})"
        else:
            message = "No other document links here"

        findings.append(
            Finding(
                kind=FindingKind.ORPHAN,
                severity=Severity.INFO,
                doc_path=path,
                line=0,
                message=message,
                subject=mode,
                details={"mode": mode, "roots": roots, "inbound": inbound},
            )
        )

    logger.info(f"Orphan analysis ({mode}): {len(findings)} deletion candidates")
    return findings


def prune_orphans(project_root: Path, findings: list[Finding], apply: bool = False) -> list[str]:
    """Delete the documents named by orphan findings.

    Args:
        project_root: Project root
        findings: Findings; only orphan findings are considered
        apply: Actually delete; otherwise only report what would be deleted

    Returns:
        Project-relative paths deleted (or that would be deleted)
    """
    root = project_root.resolve()
    pruned: list[str] = []

    for finding in findings:
        if finding.kind != FindingKind.ORPHAN:
            continue

        target = (root / finding.doc_path).resolve()
        if not target.is_relative_to(root) or not target.is_file():
            logger.warning(f"Not pruning {finding.doc_path}: not a file inside the project")
            continue

        if apply:
            target.unlink()
            logger.info(f"Deleted orphaned document {finding.doc_path}")
        else:
            logger.info(f"Would delete orphaned document {finding.doc_path}")
        pruned.append(finding.doc_path)

    return pruned
