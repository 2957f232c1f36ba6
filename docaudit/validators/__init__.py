"""Analyzers for documentation consistency.

This package provides:
- links.py: Broken file links and heading anchors
- duplicates.py: Near-duplicate passages across documents
- staleness.py: Documents older than the sources they reference
- orphans.py: Documents unreachable from the root documents, and pruning
"""

from .duplicates import find_duplicates
from .links import check_links
from .orphans import check_orphans, prune_orphans
from .staleness import check_staleness

__all__ = [
    "check_links",
    "check_orphans",
    "check_staleness",
    "find_duplicates",
    "prune_orphans",
]
