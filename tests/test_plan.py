"""Tests for docaudit.plan."""

import pytest

from docaudit.models import AuditReport, Finding, FindingKind, ScanScope, Severity
from docaudit.plan import (
    ACTION_CONSOLIDATE,
    ACTION_FIX_LINKS,
    ACTION_REFRESH,
    ACTION_REVIEW_ORPHAN,
    PRIORITY_HIGH,
    PRIORITY_LOW,
    PRIORITY_MEDIUM,
    build_plan,
)


def _report(findings: list[Finding], scope: ScanScope | None = None) -> AuditReport:
    scope = scope or ScanScope("full", {"README.md"}, {"README.md"}, reason="full scan requested")
    return AuditReport(
        project_root="/project",
        scope=scope,
        documents_indexed=5,
        analyzers=["links", "duplicates", "stale", "orphans"],
        findings=findings,
    )


@pytest.fixture
def findings() -> list[Finding]:
    return [
        Finding(FindingKind.ORPHAN, Severity.INFO, "docs/old.md", 0, "Not reachable", "unreachable"),
        Finding(
            FindingKind.STALE,
            Severity.WARNING,
            "docs/api.md",
            0,
            "1 referenced source file(s) changed",
            "referenced-sources",
            {"newer_sources": [{"path": "src/api.py", "line": 4, "lag_days": 12.5}]},
        ),
        Finding(
            FindingKind.DUPLICATE,
            Severity.WARNING,
            "docs/copy.md",
            7,
            "Near-duplicate",
            "docs/main.md#abc",
            {"authoritative": "docs/main.md:3"},
        ),
        Finding(FindingKind.BROKEN_LINK, Severity.ERROR, "README.md", 3, "Broken link 'a.md'", "a.md"),
        Finding(FindingKind.BROKEN_ANCHOR, Severity.ERROR, "README.md", 9, "Anchor '#x'", "#x"),
    ]


class TestBuildPlan:
    """Tests for build_plan."""

    def test_priorities_and_order(self, findings):
        """Test that actions are ordered high, medium, low."""
        plan = build_plan(_report(findings))
        assert [(a.priority, a.action, a.document) for a in plan.actions] == [
            (PRIORITY_HIGH, ACTION_FIX_LINKS, "README.md"),
            (PRIORITY_MEDIUM, ACTION_CONSOLIDATE, "docs/copy.md"),
            (PRIORITY_MEDIUM, ACTION_REFRESH, "docs/api.md"),
            (PRIORITY_LOW, ACTION_REVIEW_ORPHAN, "docs/old.md"),
        ]

    def test_findings_grouped_per_document(self, findings):
        """Test that links and anchors of one document form one action."""
        action = build_plan(_report(findings)).actions[0]
        assert action.locations == ["README.md:3", "README.md:9"]
        assert action.description == "Fix 2 broken link(s) in README.md"
        assert len(action.suggestions) == 2

    def test_suggestions(self, findings):
        """Test suggestions for duplicates and stale documents."""
        plan = build_plan(_report(findings))
        consolidate = plan.by_priority(PRIORITY_MEDIUM)[0]
        refresh = plan.by_priority(PRIORITY_MEDIUM)[1]
        assert "keep docs/main.md:3" in consolidate.suggestions[0]
        assert refresh.suggestions == ["Review changes in src/api.py (12.5 days newer)"]

    def test_empty_plan(self):
        """Test a report without findings."""
        plan = build_plan(_report([]))
        assert plan.actions == []
        assert "_No updates needed._" in plan.to_markdown()
        assert plan.to_dict()["summary"] == {"high": 0, "medium": 0, "low": 0}


class TestPlanRendering:
    """Tests for plan serialization."""

    def test_markdown(self, findings):
        """Test the Markdown checklist."""
        scope = ScanScope("incremental", {"README.md"}, {"README.md"}, reference="v1.2.0")
        text = build_plan(_report(findings, scope)).to_markdown()

        assert text.startswith("# Documentation Update Plan\n")
        assert "Scope: incremental since v1.2.0" in text
        assert text.index("## High priority") < text.index("## Medium priority")
        assert text.index("## Medium priority") < text.index("## Low priority")
        assert "- [ ] **Fix 2 broken link(s) in README.md**" in text

    def test_dict(self, findings):
        """Test the JSON-ready structure."""
        data = build_plan(_report(findings)).to_dict()
        assert data["summary"] == {"high": 1, "medium": 2, "low": 1}
        assert data["scope"]["mode"] == "full"
        assert data["actions"][0]["action"] == ACTION_FIX_LINKS
