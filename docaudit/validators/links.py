"""Link resolution checks.

Every internal link of every in-scope document is resolved against the
filesystem. Anchors are checked against the heading slugs and explicit HTML
anchors of the target document when the target is Markdown.
"""

from __future__ import annotations

from urllib.parse import unquote

from ..index import DocumentIndex, is_markdown_path
from ..logging import get_logger
from ..models import Finding, FindingKind, Link, ParsedDocument, ScanScope, Severity
from ..parsers.markdown import parse_markdown

logger = get_logger(__name__)


class _AnchorLookup:
    """Anchors of link targets, including Markdown files outside the index."""

    def __init__(self, index: DocumentIndex) -> None:
        self.index = index
        self._extra: dict[str, ParsedDocument | None] = {}

    def document(self, rel_path: str) -> ParsedDocument | None:
        doc_path = self.index.document_for(rel_path)
        if doc_path is not None:
            return self.index.documents[doc_path]
        if not is_markdown_path(rel_path):
            return None
        if rel_path not in self._extra:
            self._extra[rel_path] = self._parse_unindexed(rel_path)
        return self._extra[rel_path]

    def _parse_unindexed(self, rel_path: str) -> ParsedDocument | None:
        try:
            text = (self.index.project_root / rel_path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Cannot check anchors in {rel_path}: {e}")
            return None
        return parse_markdown(text, rel_path)


def _anchor_exists(document: ParsedDocument, anchor: str) -> bool:
    decoded = unquote(anchor)
    return decoded in document.anchors or decoded.lower() in document.anchors


def _broken_link(doc_path: str, link: Link, resolved: str, reason: str) -> Finding:
    return Finding(
        kind=FindingKind.BROKEN_LINK,
        severity=Severity.ERROR,
        doc_path=doc_path,
        line=link.line,
        message=f"Broken link '{link.target}': {reason}",
        subject=link.target,
        details={"resolved_path": resolved, "reason": reason},
    )


def _broken_anchor(doc_path: str, link: Link, target_doc: str) -> Finding:
    return Finding(
        kind=FindingKind.BROKEN_ANCHOR,
        severity=Severity.ERROR,
        doc_path=doc_path,
        line=link.line,
        message=f"Anchor '#{link.anchor}' not found in {target_doc}",
        subject=link.target,
        details={"target_document": target_doc, "anchor": link.anchor},
    )


def check_document_links(
    index: DocumentIndex,
    document: ParsedDocument,
    lookup: _AnchorLookup | None = None,
) -> list[Finding]:
    """Check all links of one document.

    Args:
        index: Document index of the project
        document: Document whose links are checked
        lookup: Shared anchor cache (created when omitted)

    Returns:
        Broken link and broken anchor findings, in document order
    """
    lookup = lookup or _AnchorLookup(index)
    findings: list[Finding] = []

    for link in document.links:
        if link.is_external:
            continue

        if link.is_same_document:
            if link.anchor and not _anchor_exists(document, link.anchor):
                findings.append(_broken_anchor(document.path, link, document.path))
            continue

        resolved = index.resolve_link(document.path, link)
        if resolved is None:
            continue

        if resolved.startswith("../") or resolved == "..":
            findings.append(
                _broken_link(document.path, link, resolved, "target is outside the project")
            )
            continue

        if not index.exists(resolved):
            findings.append(
                _broken_link(document.path, link, resolved, f"{resolved} does not exist")
            )
            continue

        if link.anchor:
            target = lookup.document(resolved)
            if target is not None and not _anchor_exists(target, link.anchor):
                findings.append(_broken_anchor(document.path, link, target.path))

    return findings


def check_links(index: DocumentIndex, scope: ScanScope) -> list[Finding]:
    """Check links of every in-scope document.

    Args:
        index: Document index of the project
        scope: Documents to check

    Returns:
        List of findings
    """
    lookup = _AnchorLookup(index)
    findings: list[Finding] = []
    checked = 0

    for document in index:
        if not scope.includes(document.path):
            continue
        findings.extend(check_document_links(index, document, lookup))
        checked += 1

    logger.info(f"Checked links in {checked} documents: {len(findings)} problems")
    return findings
