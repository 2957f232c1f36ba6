"""Update planning from audit findings.

Turns a report into a prioritized list of actions, one per document and
kind of work:

    high    fix broken links and anchors
    medium  consolidate duplicated passages, refresh stale documents
    low     review orphaned documents for deletion
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models import AuditReport, Finding, FindingKind, ScanScope

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"

PRIORITY_ORDER = {PRIORITY_HIGH: 0, PRIORITY_MEDIUM: 1, PRIORITY_LOW: 2}

ACTION_FIX_LINKS = "fix_links"
ACTION_CONSOLIDATE = "consolidate_duplicates"
ACTION_REFRESH = "refresh_stale"
ACTION_REVIEW_ORPHAN = "review_orphan"

ACTION_ORDER = {
    ACTION_FIX_LINKS: 0,
    ACTION_CONSOLIDATE: 1,
    ACTION_REFRESH: 2,
    ACTION_REVIEW_ORPHAN: 3,
}

_ACTION_FOR_KIND: dict[FindingKind, tuple[str, str]] = {
    FindingKind.BROKEN_LINK: (PRIORITY_HIGH, ACTION_FIX_LINKS),
    FindingKind.BROKEN_ANCHOR: (PRIORITY_HIGH, ACTION_FIX_LINKS),
    FindingKind.DUPLICATE: (PRIORITY_MEDIUM, ACTION_CONSOLIDATE),
    FindingKind.STALE: (PRIORITY_MEDIUM, ACTION_REFRESH),
    FindingKind.ORPHAN: (PRIORITY_LOW, ACTION_REVIEW_ORPHAN),
}


@dataclass
class PlanAction:
    """One planned update to a document."""

    priority: str
    action: str
    document: str
    description: str
    locations: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "priority": self.priority,
            "action": self.action,
            "document": self.document,
            "description": self.description,
            "locations": self.locations,
            "suggestions": self.suggestions,
        }


@dataclass
class UpdatePlan:
    """Prioritized documentation updates."""

    scope: ScanScope
    actions: list[PlanAction] = field(default_factory=list)

    def by_priority(self, priority: str) -> list[PlanAction]:
        return [a for a in self.actions if a.priority == priority]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope.to_dict(),
            "summary": {p: len(self.by_priority(p)) for p in PRIORITY_ORDER},
            "actions": [a.to_dict() for a in self.actions],
        }

    def to_markdown(self) -> str:
        lines = ["# Documentation Update Plan", ""]
        scope_line = f"Scope: {self.scope.mode}"
        if self.scope.reference:
            scope_line += f" since {self.scope.reference}"
        if self.scope.reason:
            scope_line += f" ({self.scope.reason})"
        lines.extend([scope_line, ""])

        if not self.actions:
            lines.append("_No updates needed._")
            return "\n".join(lines) + "\n"

        for priority in PRIORITY_ORDER:
            actions = self.by_priority(priority)
            if not actions:
                continue
            lines.extend([f"## {priority.capitalize()} priority", ""])
            for action in actions:
                lines.append(f"- [ ] **{action.description}**")
                for suggestion in action.suggestions:
                    lines.append(f"  - {suggestion}")
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"


def _describe(action: str, document: str, findings: list[Finding]) -> tuple[str, list[str]]:
    count = len(findings)
    if action == ACTION_FIX_LINKS:
        return (
            f"Fix {count} broken link(s) in {document}",
            [f"{f.location}: {f.message}" for f in findings],
        )
    if action == ACTION_CONSOLIDATE:
        return (
            f"Consolidate {count} duplicated passage(s) in {document}",
            [
                f"{f.location}: keep {f.details.get('authoritative', '?')} "
                "and link to it instead"
                for f in findings
            ],
        )
    if action == ACTION_REFRESH:
        suggestions: list[str] = []
        for finding in findings:
            for source in finding.details.get("newer_sources", []):
                suggestions.append(
                    f"Review changes in {source['path']} ({source['lag_days']} days newer)"
                )
        return f"Update {document} for changes in its referenced sources", suggestions
    return (
        f"Link {document} from a reachable document or delete it",
        [f.message for f in findings],
    )


def build_plan(report: AuditReport) -> UpdatePlan:
    """Build an update plan from an audit report."""
    grouped: dict[tuple[str, str], list[Finding]] = {}
    priorities: dict[str, str] = {}

    for finding in report.sorted_findings():
        priority, action = _ACTION_FOR_KIND[finding.kind]
        priorities[action] = priority
        grouped.setdefault((action, finding.doc_path), []).append(finding)

    actions: list[PlanAction] = []
    for (action, document), findings in grouped.items():
        description, suggestions = _describe(action, document, findings)
        actions.append(
            PlanAction(
                priority=priorities[action],
                action=action,
                document=document,
                description=description,
                locations=[f.location for f in findings],
                suggestions=suggestions,
            )
        )

    actions.sort(
        key=lambda a: (PRIORITY_ORDER[a.priority], ACTION_ORDER[a.action], a.document)
    )
    return UpdatePlan(scope=report.scope, actions=actions)
