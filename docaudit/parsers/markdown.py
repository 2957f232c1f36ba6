"""Markdown parsing for the document index.

Extracts, for a single document:
- The heading tree and the anchors it defines (GitHub-style slugs)
- Outbound links: inline links, images, reference definitions, HTML href/src
- Prose paragraphs used for duplicate detection
- Source references: backticked project paths such as `src/app.py:42`
  and frontmatter ``source_refs`` entries

Fenced code blocks and HTML comments never contribute headings, links or
paragraphs. Inline code spans never contribute links.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import yaml

from ..logging import get_logger
from ..models import Heading, Link, Paragraph, ParsedDocument, SourceReference

if TYPE_CHECKING:
    from re import Pattern

logger = get_logger(__name__)

# ============================================================================
# Block Patterns
# ============================================================================

FENCE_PATTERN: Pattern[str] = re.compile(r"^( *)(`{3,}|~{3,})")

# Bullet or ordered list item; group 3 is the gap before the item content
LIST_ITEM_PATTERN: Pattern[str] = re.compile(r"^( *)([-+*]|\d{1,9}[.)])( {1,4})\S")

ATX_HEADING_PATTERN: Pattern[str] = re.compile(
    r"^ {0,3}(#{1,6})(?:[ \t]+(.*?))?(?:[ \t]+#+)?[ \t]*$"
)

SETEXT_UNDERLINE_PATTERN: Pattern[str] = re.compile(r"^ {0,3}(=+|-+)[ \t]*$")

FRONTMATTER_DELIMITER = "---"

# ============================================================================
# Inline Patterns
# ============================================================================

# [text](dest "title") and ![alt](src); one level of nested brackets in text
INLINE_LINK_PATTERN: Pattern[str] = re.compile(
    r"(!?)\[((?:[^\[\]]|\[[^\[\]]*\])*)\]"
    r"\(\s*(<[^>\n]*>|[^\s()]*(?:\([^\s()]*\)[^\s()]*)*)"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)

# [label]: destination "optional title"; nothing else may follow on the line
REFERENCE_DEFINITION_PATTERN: Pattern[str] = re.compile(
    r"^ {0,3}\[([^\]]+)\]:\s*(<[^>\n]*>|\S+)"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*$"
)

HTML_LINK_PATTERN: Pattern[str] = re.compile(
    r"<(?:a|img|source)\b[^>]*?\b(?:href|src)\s*=\s*[\"']([^\"']+)[\"']",
    re.IGNORECASE,
)

HTML_ANCHOR_PATTERN: Pattern[str] = re.compile(
    r"<[a-zA-Z][a-zA-Z0-9]*\b[^>]*?\b(?:id|name)\s*=\s*[\"']([^\"']+)[\"']",
    re.IGNORECASE,
)

CODE_SPAN_PATTERN: Pattern[str] = re.compile(r"(`+)(.+?)\1")

HTML_COMMENT_PATTERN: Pattern[str] = re.compile(r"<!--.*?-->")

# Backticked project path, optionally with a line or line range:
# `backend/services/file_watcher.py` or `backend/services/file_watcher.py:67-89`
SOURCE_PATH_PATTERN: Pattern[str] = re.compile(
    r"((?:\.{1,2}/)*/?[a-zA-Z0-9_.][a-zA-Z0-9_./-]*\.[a-zA-Z0-9]+)(?::(\d+)(?:-(\d+))?)?"
)

_SLUG_STRIP_LINKS = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_SLUG_STRIP_TAGS = re.compile(r"<[^>]+>")
_SLUG_DISALLOWED = re.compile(r"[^\w\- ]")


def slugify(text: str) -> str:
    """Convert heading text to a GitHub-style anchor slug."""
    text = _SLUG_STRIP_LINKS.sub(r"\1", text)
    text = _SLUG_STRIP_TAGS.sub("", text)
    slug = text.strip().lower()
    slug = _SLUG_DISALLOWED.sub("", slug)
    return slug.replace(" ", "-")


def split_frontmatter(text: str) -> tuple[dict[str, Any], int]:
    """Split YAML frontmatter from a document.

    Args:
        text: Full document text

    Returns:
        Tuple of (frontmatter mapping, number of lines it occupies). Documents
        without frontmatter, or with frontmatter that is not a YAML mapping,
        return an empty mapping; the lines are still skipped when the block
        is properly closed.
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return {}, 0

    for index in range(1, len(lines)):
        if lines[index].strip() in (FRONTMATTER_DELIMITER, "..."):
            block = "\n".join(lines[1:index])
            try:
                data = yaml.safe_load(block)
            except yaml.YAMLError as e:
                logger.debug(f"Ignoring malformed frontmatter: {e}")
                data = None
            return (data if isinstance(data, dict) else {}), index + 1

    # Unterminated: a leading horizontal rule, not frontmatter
    return {}, 0


def _split_target(raw: str) -> tuple[str, str, str | None]:
    """Split a link destination into (target, path, anchor)."""
    target = raw.strip()
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1].strip()

    path, sep, fragment = target.partition("#")
    path = path.split("?", 1)[0]
    anchor = fragment if sep and fragment else None
    return target, path, anchor


def _mask_code_spans(line: str) -> str:
    """Blank out inline code spans, keeping column positions."""
    return CODE_SPAN_PATTERN.sub(lambda m: " " * len(m.group(0)), line)


def _extract_inline_links(text: str, line_number: int) -> list[Link]:
    links: list[Link] = []
    for match in INLINE_LINK_PATTERN.finditer(text):
        bang, label, destination = match.group(1), match.group(2), match.group(3)
        target, path, anchor = _split_target(destination)
        if target:
            links.append(
                Link(
                    target=target,
                    path=path,
                    anchor=anchor,
                    line=line_number,
                    text=label,
                    is_image=bool(bang),
                )
            )
        # Badges nest an image inside the link text
        if "](" in label:
            links.extend(_extract_inline_links(label, line_number))
    return links


def _extract_links(line: str, line_number: int) -> list[Link]:
    masked = _mask_code_spans(line)

    definition = REFERENCE_DEFINITION_PATTERN.match(masked)
    if definition and not definition.group(1).startswith("^"):
        target, path, anchor = _split_target(definition.group(2))
        return [
            Link(
                target=target,
                path=path,
                anchor=anchor,
                line=line_number,
                text=definition.group(1),
                is_reference_definition=True,
            )
        ]

    links = _extract_inline_links(masked, line_number)
    for match in HTML_LINK_PATTERN.finditer(masked):
        target, path, anchor = _split_target(match.group(1))
        links.append(Link(target=target, path=path, anchor=anchor, line=line_number))
    return links


def _extract_source_refs(line: str, line_number: int) -> list[SourceReference]:
    refs: list[SourceReference] = []
    for span in CODE_SPAN_PATTERN.finditer(line):
        content = span.group(2).strip()
        match = SOURCE_PATH_PATTERN.fullmatch(content)
        if match:
            refs.append(SourceReference(path=match.group(1), line=line_number))
    return refs


def _frontmatter_source_refs(frontmatter: dict[str, Any]) -> list[SourceReference]:
    """Read ``source_refs`` entries (``path``, ``path:symbol`` or ``path:symbol:line``)."""
    entries = frontmatter.get("source_refs") or []
    if isinstance(entries, str):
        entries = [entries]
    if not isinstance(entries, list):
        return []

    refs: list[SourceReference] = []
    for entry in entries:
        if not isinstance(entry, str) or not entry.strip():
            continue
        refs.append(SourceReference(path=entry.strip().split(":", 1)[0], line=1))
    return refs


class _HeadingTreeBuilder:
    """Assembles headings into a tree and assigns unique slugs."""

    def __init__(self) -> None:
        self.roots: list[Heading] = []
        self.anchors: set[str] = set()
        self._stack: list[Heading] = []
        self._slug_counts: dict[str, int] = {}

    def add(self, level: int, text: str, line: int) -> None:
        base = slugify(text)
        count = self._slug_counts.get(base, 0)
        self._slug_counts[base] = count + 1
        slug = base if count == 0 else f"{base}-{count}"

        heading = Heading(level=level, text=text, slug=slug, line=line)
        if slug:
            self.anchors.add(slug)

        while self._stack and self._stack[-1].level >= level:
            self._stack.pop()
        if self._stack:
            self._stack[-1].children.append(heading)
        else:
            self.roots.append(heading)
        self._stack.append(heading)


def parse_markdown(text: str, path: str) -> ParsedDocument:
    """Parse a Markdown document.

    Args:
        text: Document content
        path: Project-relative path of the document

    Returns:
        Parsed document with 1-indexed line numbers of the original text
    """
    text = text.removeprefix("\ufeff")
    frontmatter, body_start = split_frontmatter(text)
    lines = text.splitlines()

    tree = _HeadingTreeBuilder()
    links: list[Link] = []
    paragraphs: list[Paragraph] = []
    source_refs = _frontmatter_source_refs(frontmatter)
    explicit_anchors: set[str] = set()

    buffer: list[str] = []
    buffer_start = 0

    def flush() -> None:
        nonlocal buffer, buffer_start
        if buffer:
            paragraphs.append(Paragraph(line=buffer_start, text=" ".join(buffer)))
        buffer = []
        buffer_start = 0

    fence: str | None = None
    in_comment = False
    # Content columns of the open list items; fences may be indented to match
    list_indents: list[int] = []
    after_blank = False

    for index in range(body_start, len(lines)):
        line_number = index + 1
        line = lines[index]

        if fence is not None:
            stripped = line.strip()
            if stripped.startswith(fence) and stripped.strip(fence[0]) == "":
                fence = None
            continue

        if in_comment:
            if "-->" not in line:
                continue
            line = line.split("-->", 1)[1]
            in_comment = False

        line = HTML_COMMENT_PATTERN.sub("", line)
        if "<!--" in line:
            line = line.split("<!--", 1)[0]
            in_comment = True

        if not line.strip():
            flush()
            after_blank = True
            continue

        indent = len(line) - len(line.lstrip(" "))
        if after_blank:
            while list_indents and indent < list_indents[-1]:
                list_indents.pop()
        after_blank = False
        base = list_indents[-1] if list_indents else 0

        fence_match = FENCE_PATTERN.match(line)
        if fence_match and (indent <= 3 or base <= indent <= base + 3):
            flush()
            fence = fence_match.group(2)
            continue

        item = LIST_ITEM_PATTERN.match(line)
        if item and indent <= base + 3:
            while list_indents and list_indents[-1] > indent:
                list_indents.pop()
            list_indents.append(len(item.group(1)) + len(item.group(2)) + len(item.group(3)))

        heading_match = ATX_HEADING_PATTERN.match(line)
        if heading_match:
            flush()
            heading_text = (heading_match.group(2) or "").strip()
            tree.add(len(heading_match.group(1)), heading_text, line_number)
            links.extend(_extract_links(heading_text, line_number))
            explicit_anchors.update(HTML_ANCHOR_PATTERN.findall(heading_text))
            continue

        underline = SETEXT_UNDERLINE_PATTERN.match(line)
        if underline and buffer:
            level = 1 if underline.group(1).startswith("=") else 2
            tree.add(level, " ".join(buffer).strip(), buffer_start)
            buffer = []
            buffer_start = 0
            continue
        if underline and underline.group(1).startswith("-"):
            # Thematic break
            continue

        links.extend(_extract_links(line, line_number))
        source_refs.extend(_extract_source_refs(line, line_number))
        explicit_anchors.update(HTML_ANCHOR_PATTERN.findall(_mask_code_spans(line)))

        if REFERENCE_DEFINITION_PATTERN.match(line):
            flush()
            continue
        if not buffer:
            buffer_start = line_number
        buffer.append(line.strip())

    flush()

    return ParsedDocument(
        path=path,
        headings=tree.roots,
        anchors=tree.anchors | explicit_anchors,
        links=links,
        paragraphs=paragraphs,
        source_refs=source_refs,
        frontmatter=frontmatter,
    )
