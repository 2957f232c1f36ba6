"""Documentation consistency auditing for code repositories.

This package audits a project's Markdown documentation:

1. Link Resolution - Broken file links and heading anchors
2. Duplicate Detection - Near-identical passages across documents (MinHash)
3. Staleness Scoring - Documents older than the source files they reference
4. Orphan Analysis - Documents unreachable from the root documents

Usage:
    python -m docaudit check .
    python -m docaudit links docs/ --format json
    python -m docaudit plan . --since-tag v1.2.0
"""

__version__ = "0.1.0"
