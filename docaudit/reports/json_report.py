"""JSON output for CI integration and baselines."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import IO, Any

from .. import __version__
from ..models import AuditReport, FindingKind


def report_to_dict(report: AuditReport) -> dict[str, Any]:
    """Serialize an audit report."""
    return {
        "metadata": {
            "tool": "docaudit",
            "version": __version__,
            "generated_at": report.generated_at.isoformat(),
            "project_root": report.project_root,
            "analyzers": report.analyzers,
            "documents_indexed": report.documents_indexed,
            "scope": report.scope.to_dict(),
        },
        "summary": {
            "errors": report.error_count,
            "warnings": report.warning_count,
            "info": report.info_count,
            "by_kind": {kind.value: len(report.by_kind(kind)) for kind in FindingKind},
        },
        "findings": [f.to_dict() for f in report.sorted_findings()],
        "duplicate_clusters": [c.to_dict() for c in report.clusters],
    }


class JSONReporter:
    """Writes reports and other payloads as JSON."""

    def __init__(self, indent: int = 2) -> None:
        self.indent = indent

    def dumps(self, payload: dict[str, Any]) -> str:
        return json.dumps(payload, indent=self.indent, ensure_ascii=False)

    def write_report(self, report: AuditReport, stream: IO[str] | None = None) -> None:
        self.write_payload(report_to_dict(report), stream)

    def write_payload(self, payload: dict[str, Any], stream: IO[str] | None = None) -> None:
        out = stream or sys.stdout
        out.write(self.dumps(payload))
        out.write("\n")

    def write_to_file(self, payload: dict[str, Any] | AuditReport, path: Path) -> None:
        if isinstance(payload, AuditReport):
            payload = report_to_dict(payload)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps(payload) + "\n", encoding="utf-8")
