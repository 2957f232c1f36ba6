"""Verification of a run against a baseline report.

Findings are matched by ``(kind, document, subject)``; line numbers are
ignored so that edits above a finding do not make it look new. Repeated
keys are matched as a multiset.
"""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .exceptions import BaselineError
from .logging import get_logger
from .models import Finding, Severity

logger = get_logger(__name__)


@dataclass
class Baseline:
    """Findings and metadata read from a JSON report."""

    findings: list[Finding]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def analyzers(self) -> list[str]:
        return list(self.metadata.get("analyzers") or [])


@dataclass
class VerificationResult:
    """Differences between a baseline and the current findings."""

    new: list[Finding] = field(default_factory=list)
    resolved: list[Finding] = field(default_factory=list)
    unchanged: list[Finding] = field(default_factory=list)

    def passed(self, strict: bool = False) -> bool:
        """Whether the current run is acceptable.

        Args:
            strict: Fail on any new finding, not just new errors
        """
        if strict:
            return not self.new
        return not any(f.severity == Severity.ERROR for f in self.new)

    def to_dict(self, strict: bool = False) -> dict[str, Any]:
        return {
            "passed": self.passed(strict),
            "strict": strict,
            "summary": {
                "new": len(self.new),
                "resolved": len(self.resolved),
                "unchanged": len(self.unchanged),
            },
            "new": [f.to_dict() for f in self.new],
            "resolved": [f.to_dict() for f in self.resolved],
        }


def load_baseline(path: Path) -> Baseline:
    """Read a JSON report written by ``--format json``.

    Raises:
        BaselineError: If the file is missing, not JSON, or not a report
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise BaselineError(f"Cannot read baseline {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise BaselineError(f"Baseline {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("findings"), list):
        raise BaselineError(f"Baseline {path} has no findings list")

    try:
        findings = [Finding.from_dict(item) for item in data["findings"]]
    except (KeyError, TypeError, ValueError) as e:
        raise BaselineError(f"Baseline {path} holds a malformed finding: {e}") from e

    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    logger.debug(f"Loaded baseline {path}: {len(findings)} findings")
    return Baseline(findings=findings, metadata=metadata)


def compare_reports(baseline: list[Finding], current: list[Finding]) -> VerificationResult:
    """Compare current findings with baseline findings."""
    remaining: dict[tuple[str, str, str], list[Finding]] = defaultdict(list)
    for finding in baseline:
        remaining[finding.key].append(finding)

    result = VerificationResult()
    for finding in current:
        matches = remaining.get(finding.key)
        if matches:
            matches.pop(0)
            result.unchanged.append(finding)
        else:
            result.new.append(finding)

    result.resolved = [f for matches in remaining.values() for f in matches]
    logger.info(
        f"Verification: {len(result.new)} new, {len(result.resolved)} resolved, "
        f"{len(result.unchanged)} unchanged"
    )
    return result
