"""Data model shared by the parsers, analyzers and reporters.

This module defines:
- Parsed document structure (headings, links, paragraphs, source references)
- Findings produced by the analyzers and their severities
- Duplicate clusters, scan scopes and the aggregated audit report
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# Any URI scheme (http:, mailto:, vscode:, ...) or a protocol-relative URL.
_EXTERNAL_PATTERN = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.-]*:|//)")


class Severity(Enum):
    """Severity of a finding."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort rank, most severe first."""
        return {"error": 0, "warning": 1, "info": 2}[self.value]


class FindingKind(Enum):
    """Kind of problem an analyzer reports."""

    BROKEN_LINK = "broken_link"
    BROKEN_ANCHOR = "broken_anchor"
    DUPLICATE = "duplicate"
    STALE = "stale"
    ORPHAN = "orphan"


@dataclass
class Heading:
    """A heading and the headings nested under it."""

    level: int
    text: str
    slug: str
    line: int
    children: list[Heading] = field(default_factory=list)


@dataclass(frozen=True)
class Link:
    """An outbound link as written in a document.

    Attributes:
        target: Raw link destination
        path: Path part of the destination (empty for ``#anchor`` links)
        anchor: Fragment without the ``#``, if any
        line: Line number in the document (1-indexed)
        text: Link text or image alt text
        is_image: True for ``![alt](src)``
        is_reference_definition: True for ``[label]: target`` definitions
    """

    target: str
    path: str
    anchor: str | None
    line: int
    text: str = ""
    is_image: bool = False
    is_reference_definition: bool = False

    @property
    def is_external(self) -> bool:
        return bool(_EXTERNAL_PATTERN.match(self.target))

    @property
    def is_same_document(self) -> bool:
        return not self.is_external and not self.path and self.anchor is not None


@dataclass(frozen=True)
class Paragraph:
    """A block of prose text starting at ``line``."""

    line: int
    text: str

    @property
    def word_count(self) -> int:
        return len(self.text.split())


@dataclass(frozen=True)
class SourceReference:
    """A mention of a project file (usually source code) inside a document."""

    path: str
    line: int


@dataclass
class ParsedDocument:
    """Parsed structure of one Markdown document."""

    path: str
    headings: list[Heading] = field(default_factory=list)
    anchors: set[str] = field(default_factory=set)
    links: list[Link] = field(default_factory=list)
    paragraphs: list[Paragraph] = field(default_factory=list)
    source_refs: list[SourceReference] = field(default_factory=list)
    frontmatter: dict[str, Any] = field(default_factory=dict)

    def iter_headings(self) -> list[Heading]:
        """Return all headings in document order."""
        flat: list[Heading] = []
        stack = list(reversed(self.headings))
        while stack:
            heading = stack.pop()
            flat.append(heading)
            stack.extend(reversed(heading.children))
        return flat


@dataclass
class Finding:
    """A problem reported by an analyzer.

    Attributes:
        kind: What kind of problem this is
        severity: How serious it is
        doc_path: Document the finding is about
        line: Line in the document (0 when the finding is about the whole file)
        message: Human-readable description
        subject: Stable identifier of what is wrong (link target, source, ...)
        details: Analyzer-specific extra data
    """

    kind: FindingKind
    severity: Severity
    doc_path: str
    line: int
    message: str
    subject: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def location(self) -> str:
        if self.line:
            return f"{self.doc_path}:{self.line}"
        return self.doc_path

    @property
    def key(self) -> tuple[str, str, str]:
        """Identity of the finding across runs (line numbers excluded)."""
        return (self.kind.value, self.doc_path, self.subject)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "doc_path": self.doc_path,
            "line": self.line,
            "message": self.message,
            "subject": self.subject,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            kind=FindingKind(data["kind"]),
            severity=Severity(data["severity"]),
            doc_path=data["doc_path"],
            line=int(data.get("line", 0)),
            message=data.get("message", ""),
            subject=data.get("subject", ""),
            details=dict(data.get("details") or {}),
        )


@dataclass(frozen=True)
class DuplicatePassage:
    """One member of a duplicate cluster."""

    doc_path: str
    line: int
    word_count: int
    excerpt: str

    @property
    def location(self) -> str:
        return f"{self.doc_path}:{self.line}"


@dataclass
class DuplicateCluster:
    """Near-identical passages found in several documents."""

    cluster_id: int
    passages: list[DuplicatePassage]
    authoritative: DuplicatePassage
    similarity: float

    @property
    def documents(self) -> set[str]:
        return {p.doc_path for p in self.passages}

    def to_dict(self) -> dict[str, Any]:
        return {
            "cluster_id": self.cluster_id,
            "similarity": round(self.similarity, 4),
            "authoritative": self.authoritative.location,
            "passages": [
                {
                    "location": p.location,
                    "word_count": p.word_count,
                    "excerpt": p.excerpt,
                }
                for p in self.passages
            ],
        }


@dataclass
class ScanScope:
    """Which documents an audit run examines.

    Attributes:
        mode: ``"full"`` or ``"incremental"``
        documents: Documents in scope
        targets: Every document under the audited path (the full-scan set)
        reference: Tag or time window an incremental scan is relative to
        changed_paths: Project paths changed since the reference
        reason: Why this scope was chosen
    """

    mode: str
    documents: set[str]
    targets: set[str] = field(default_factory=set)
    reference: str | None = None
    changed_paths: set[str] = field(default_factory=set)
    reason: str = ""

    @property
    def is_incremental(self) -> bool:
        return self.mode == "incremental"

    def includes(self, doc_path: str) -> bool:
        return doc_path in self.documents

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "reference": self.reference,
            "documents": len(self.documents),
            "targets": len(self.targets),
            "changed_paths": sorted(self.changed_paths),
            "reason": self.reason,
        }


@dataclass
class AuditReport:
    """Aggregated result of an audit run."""

    project_root: str
    scope: ScanScope
    documents_indexed: int
    analyzers: list[str]
    findings: list[Finding] = field(default_factory=list)
    clusters: list[DuplicateCluster] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def by_kind(self, kind: FindingKind) -> list[Finding]:
        return [f for f in self.findings if f.kind == kind]

    def count(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)

    @property
    def error_count(self) -> int:
        return self.count(Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return self.count(Severity.WARNING)

    @property
    def info_count(self) -> int:
        return self.count(Severity.INFO)

    def sorted_findings(self) -> list[Finding]:
        return sorted(
            self.findings,
            key=lambda f: (f.severity.rank, f.doc_path, f.line, f.kind.value, f.subject),
        )
