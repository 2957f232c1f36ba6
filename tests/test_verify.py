"""Tests for docaudit.verify."""

import json

import pytest

from docaudit.exceptions import BaselineError
from docaudit.models import AuditReport, Finding, FindingKind, ScanScope, Severity
from docaudit.reports import JSONReporter
from docaudit.verify import compare_reports, load_baseline


def _broken(doc: str, target: str, line: int = 1) -> Finding:
    return Finding(FindingKind.BROKEN_LINK, Severity.ERROR, doc, line, f"Broken '{target}'", target)


def _stale(doc: str) -> Finding:
    return Finding(FindingKind.STALE, Severity.WARNING, doc, 0, "stale", "referenced-sources")


class TestCompareReports:
    """Tests for compare_reports."""

    def test_unchanged_ignores_line_numbers(self):
        """Test that moved findings are not new."""
        result = compare_reports([_broken("a.md", "x.md", 3)], [_broken("a.md", "x.md", 10)])
        assert result.new == []
        assert result.resolved == []
        assert len(result.unchanged) == 1
        assert result.passed()

    def test_new_and_resolved(self):
        """Test findings that appear and disappear."""
        result = compare_reports(
            [_broken("a.md", "x.md"), _stale("b.md")],
            [_broken("a.md", "y.md"), _stale("b.md")],
        )
        assert [f.subject for f in result.new] == ["y.md"]
        assert [f.subject for f in result.resolved] == ["x.md"]
        assert not result.passed()

    def test_repeated_keys_match_as_multiset(self):
        """Test that a second identical finding counts as new."""
        baseline = [_broken("a.md", "x.md", 1)]
        current = [_broken("a.md", "x.md", 1), _broken("a.md", "x.md", 5)]
        result = compare_reports(baseline, current)
        assert len(result.unchanged) == 1
        assert len(result.new) == 1

    def test_new_warning_passes_unless_strict(self):
        """Test strict verification."""
        result = compare_reports([], [_stale("a.md")])
        assert result.passed()
        assert not result.passed(strict=True)

    def test_to_dict(self):
        """Test the JSON-ready structure."""
        data = compare_reports([_stale("a.md")], [_broken("b.md", "c.md")]).to_dict()
        assert data["passed"] is False
        assert data["summary"] == {"new": 1, "resolved": 1, "unchanged": 0}
        assert data["new"][0]["kind"] == "broken_link"


class TestLoadBaseline:
    """Tests for load_baseline."""

    def test_reads_report_written_by_json_reporter(self, tmp_path):
        """Test that JSON reports are valid baselines."""
        report = AuditReport(
            project_root="/p",
            scope=ScanScope("full", {"a.md"}, {"a.md"}),
            documents_indexed=1,
            analyzers=["links", "stale"],
            findings=[_broken("a.md", "x.md"), _stale("a.md")],
        )
        path = tmp_path / "baseline.json"
        JSONReporter().write_to_file(report, path)

        baseline = load_baseline(path)
        assert baseline.analyzers == ["links", "stale"]
        assert sorted(f.key for f in baseline.findings) == sorted(
            f.key for f in report.findings
        )

    def test_missing_file(self, tmp_path):
        """Test a baseline that does not exist."""
        with pytest.raises(BaselineError, match="Cannot read baseline"):
            load_baseline(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        """Test a baseline that is not JSON."""
        path = tmp_path / "b.json"
        path.write_text("{not json")
        with pytest.raises(BaselineError, match="not valid JSON"):
            load_baseline(path)

    def test_missing_findings(self, tmp_path):
        """Test JSON without a findings list."""
        path = tmp_path / "b.json"
        path.write_text(json.dumps({"summary": {}}))
        with pytest.raises(BaselineError, match="no findings list"):
            load_baseline(path)

    def test_malformed_finding(self, tmp_path):
        """Test findings with unknown kinds."""
        path = tmp_path / "b.json"
        path.write_text(json.dumps({"findings": [{"kind": "typo", "severity": "error", "doc_path": "a"}]}))
        with pytest.raises(BaselineError, match="malformed finding"):
            load_baseline(path)

    def test_without_metadata(self, tmp_path):
        """Test a minimal baseline."""
        path = tmp_path / "b.json"
        path.write_text(json.dumps({"findings": []}))
        baseline = load_baseline(path)
        assert baseline.findings == []
        assert baseline.analyzers == []
