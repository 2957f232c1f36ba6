"""Parsers extracting structure from documentation files.

This package provides:
- markdown.py: Headings, anchors, links, paragraphs and source references
"""

from .markdown import parse_markdown, slugify, split_frontmatter

__all__ = ["parse_markdown", "slugify", "split_frontmatter"]
