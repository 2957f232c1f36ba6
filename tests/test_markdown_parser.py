"""Tests for docaudit.parsers.markdown."""

import re
import string

from hypothesis import given
from hypothesis import strategies as st

from docaudit.parsers.markdown import parse_markdown, slugify, split_frontmatter


class TestSlugify:
    """Tests for GitHub-style heading slugs."""

    def test_lowercases_and_hyphenates(self):
        """Test that spaces become hyphens and letters are lowercased."""
        assert slugify("Getting Started") == "getting-started"

    def test_strips_punctuation(self):
        """Test that punctuation other than hyphens and underscores is removed."""
        assert slugify("API Reference (v2)!") == "api-reference-v2"
        assert slugify("What's new?") == "whats-new"

    def test_keeps_underscores_and_hyphens(self):
        """Test that word characters and hyphens survive."""
        assert slugify("snake_case and kebab-case") == "snake_case-and-kebab-case"

    def test_removes_code_backticks(self):
        """Test that inline code markers are dropped but their text kept."""
        assert slugify("The `run()` method") == "the-run-method"

    def test_link_text_only(self):
        """Test that links in headings contribute only their text."""
        assert slugify("See [the guide](docs/guide.md) first") == "see-the-guide-first"

    def test_consecutive_spaces_give_consecutive_hyphens(self):
        """Test that each space maps to one hyphen."""
        assert slugify("A  B") == "a--b"

    def test_unicode_letters_kept(self):
        """Test that non-ASCII letters are kept."""
        assert slugify("Café Setup") == "café-setup"

    @given(st.text(alphabet=string.ascii_letters + string.digits + " -_!?.,()'", max_size=60))
    def test_slug_alphabet(self, text):
        """Property: slugs of ASCII headings use only lowercase, digits, _ and -."""
        assert re.fullmatch(r"[a-z0-9_\-]*", slugify(text))

    @given(st.text(alphabet=string.ascii_letters + string.digits + " -_!?.,()'", max_size=60))
    def test_slugify_is_idempotent(self, text):
        """Property: slugifying a slug returns it unchanged."""
        slug = slugify(text)
        assert slugify(slug) == slug


class TestFrontmatter:
    """Tests for split_frontmatter."""

    def test_reads_mapping(self):
        """Test that a YAML mapping is parsed and its lines counted."""
        data, consumed = split_frontmatter("---\ntitle: Guide\ntags: [a]\n---\n# Guide\n")
        assert data == {"title": "Guide", "tags": ["a"]}
        assert consumed == 4

    def test_no_frontmatter(self):
        """Test documents without frontmatter."""
        assert split_frontmatter("# Title\n") == ({}, 0)

    def test_unterminated_block_is_not_frontmatter(self):
        """Test that a lone leading rule does not swallow the document."""
        assert split_frontmatter("---\n# Title\ntext\n") == ({}, 0)

    def test_non_mapping_skipped(self):
        """Test that non-mapping frontmatter is ignored but its lines skipped."""
        data, consumed = split_frontmatter("---\n- a\n- b\n---\nbody\n")
        assert data == {}
        assert consumed == 4

    def test_malformed_yaml_ignored(self):
        """Test that malformed YAML gives an empty mapping."""
        data, consumed = split_frontmatter("---\ntitle: [unclosed\n---\nbody\n")
        assert data == {}
        assert consumed == 3

    def test_line_numbers_preserved_after_frontmatter(self):
        """Test that parsed line numbers refer to the original text."""
        doc = parse_markdown("---\ntitle: x\n---\n\n# Heading\n", "a.md")
        assert doc.headings[0].line == 5
        assert doc.frontmatter == {"title": "x"}


class TestHeadings:
    """Tests for heading extraction and anchors."""

    def test_heading_tree(self):
        """Test that headings nest by level."""
        doc = parse_markdown("# Top\n## One\n### Deep\n## Two\n", "a.md")
        assert [h.text for h in doc.headings] == ["Top"]
        top = doc.headings[0]
        assert [h.text for h in top.children] == ["One", "Two"]
        assert top.children[0].children[0].slug == "deep"
        assert [h.text for h in doc.iter_headings()] == ["Top", "One", "Deep", "Two"]

    def test_duplicate_headings_get_suffixes(self):
        """Test that repeated headings get -1, -2 suffixes."""
        doc = parse_markdown("## Setup\n## Setup\n## Setup\n", "a.md")
        assert [h.slug for h in doc.headings] == ["setup", "setup-1", "setup-2"]
        assert {"setup", "setup-1", "setup-2"} <= doc.anchors

    def test_closing_hashes_removed(self):
        """Test that closing # sequences are not part of the heading text."""
        doc = parse_markdown("## Title ##\n", "a.md")
        assert doc.headings[0].text == "Title"

    def test_hashtag_is_not_heading(self):
        """Test that '#word' without a space is a paragraph."""
        doc = parse_markdown("#hashtag here\n", "a.md")
        assert doc.headings == []
        assert len(doc.paragraphs) == 1

    def test_setext_headings(self):
        """Test underlined headings."""
        doc = parse_markdown("Title\n=====\n\nSection\n-------\n", "a.md")
        assert [(h.level, h.text, h.line) for h in doc.iter_headings()] == [
            (1, "Title", 1),
            (2, "Section", 4),
        ]

    def test_leading_byte_order_mark(self):
        """Test that a BOM before the first heading is ignored."""
        doc = parse_markdown("\ufeff# Getting Started\n", "a.md")
        assert doc.headings[0].slug == "getting-started"

    def test_headings_in_fences_ignored(self):
        """Test that headings inside fenced code blocks are ignored."""
        doc = parse_markdown("# Real\n```bash\n# not a heading\n```\n~~~\n## Nope\n~~~\n", "a.md")
        assert [h.text for h in doc.iter_headings()] == ["Real"]

    def test_explicit_html_anchors(self):
        """Test that id and name attributes define anchors."""
        doc = parse_markdown('<a id="custom-anchor"></a>\n\n<a name="legacy"></a>\n', "a.md")
        assert {"custom-anchor", "legacy"} <= doc.anchors


class TestLinks:
    """Tests for link extraction."""

    def test_inline_links_with_line_numbers(self):
        """Test inline links and their lines."""
        doc = parse_markdown("Intro\n\nSee [the guide](docs/guide.md) now.\n", "README.md")
        assert len(doc.links) == 1
        link = doc.links[0]
        assert link.target == "docs/guide.md"
        assert link.path == "docs/guide.md"
        assert link.anchor is None
        assert link.line == 3
        assert link.text == "the guide"

    def test_anchor_and_query_split(self):
        """Test that fragments become anchors and queries are dropped."""
        doc = parse_markdown("[a](guide.md?plain=1#install)\n", "a.md")
        link = doc.links[0]
        assert link.path == "guide.md"
        assert link.anchor == "install"

    def test_same_document_anchor(self):
        """Test '#anchor' links."""
        link = parse_markdown("[up](#top)\n", "a.md").links[0]
        assert link.is_same_document
        assert not link.is_external

    def test_external_links(self):
        """Test that URLs with a scheme or // are external."""
        doc = parse_markdown(
            "[a](https://example.com) [b](mailto:a@example.com) [c](//cdn.example.com/x.js)\n",
            "a.md",
        )
        assert all(link.is_external for link in doc.links)
        assert len(doc.links) == 3

    def test_link_title_ignored(self):
        """Test that link titles are not part of the target."""
        link = parse_markdown('[a](docs/a.md "The A doc")\n', "a.md").links[0]
        assert link.target == "docs/a.md"

    def test_angle_bracket_destination(self):
        """Test destinations in angle brackets may contain spaces."""
        link = parse_markdown("[a](<my notes.md>)\n", "a.md").links[0]
        assert link.path == "my notes.md"

    def test_images(self):
        """Test image links."""
        link = parse_markdown("![logo](img/logo.png)\n", "a.md").links[0]
        assert link.is_image
        assert link.path == "img/logo.png"

    def test_badge_yields_both_links(self):
        """Test an image nested in a link."""
        doc = parse_markdown("[![build](badge.svg)](ci.md)\n", "a.md")
        assert [link.target for link in doc.links] == ["ci.md", "badge.svg"]

    def test_reference_definitions(self):
        """Test '[label]: target' definitions, but not footnotes."""
        doc = parse_markdown("Text [guide][g].\n\n[g]: docs/guide.md#usage\n[^1]: A footnote\n", "a.md")
        assert len(doc.links) == 1
        link = doc.links[0]
        assert link.is_reference_definition
        assert link.path == "docs/guide.md"
        assert link.anchor == "usage"

    def test_html_links(self):
        """Test href and src attributes."""
        doc = parse_markdown('<a href="docs/a.md">A</a> <img src="img/b.png">\n', "a.md")
        assert [link.target for link in doc.links] == ["docs/a.md", "img/b.png"]

    def test_code_is_not_linked(self):
        """Test that code spans and fenced blocks contribute no links."""
        doc = parse_markdown(
            "Use `[x](not-a-link.md)` syntax.\n\n```md\n[y](also-not.md)\n```\n", "a.md"
        )
        assert doc.links == []

    def test_fence_indented_under_list_item(self):
        """Test that a fence indented to a list item's content is code."""
        doc = parse_markdown(
            "1. Install:\n\n    ```bash\n    echo '[x](missing.md)'\n    ```\n\n"
            "2. Run it:\n\n   ~~~\n   # not a heading\n   ~~~\n\nSee [docs](docs.md).\n",
            "a.md",
        )
        assert [link.target for link in doc.links] == ["docs.md"]
        assert doc.headings == []
        assert [p.text for p in doc.paragraphs] == [
            "1. Install:",
            "2. Run it:",
            "See [docs](docs.md).",
        ]

    def test_nested_list_fence(self):
        """Test fences inside nested list items."""
        doc = parse_markdown(
            "- Setup\n  - Configure:\n\n      ```\n      [y](nope.md)\n      ```\n", "a.md"
        )
        assert doc.links == []

    def test_reference_definition_with_title(self):
        """Test definitions with quoted and parenthesized titles."""
        doc = parse_markdown('[a]: docs/a.md "A"\n[b]: <docs/b.md> (B)\n', "a.md")
        assert [link.target for link in doc.links] == ["docs/a.md", "docs/b.md"]
        assert all(link.is_reference_definition for link in doc.links)

    def test_label_followed_by_prose_is_not_a_definition(self):
        """Test that '[Label]: text ...' prose yields no link."""
        doc = parse_markdown("[Note]: this is important prose.\n", "a.md")
        assert doc.links == []
        assert [p.text for p in doc.paragraphs] == ["[Note]: this is important prose."]

    def test_html_comments_ignored(self):
        """Test single and multi-line comments."""
        doc = parse_markdown(
            "<!-- [a](gone.md) -->\n<!--\n[b](gone-too.md)\n-->\n[c](kept.md)\n", "a.md"
        )
        assert [link.target for link in doc.links] == ["kept.md"]

    def test_links_in_headings(self):
        """Test that links inside headings are extracted."""
        doc = parse_markdown("## See [API](api.md)\n", "a.md")
        assert doc.links[0].target == "api.md"
        assert doc.headings[0].slug == "see-api"


class TestParagraphs:
    """Tests for paragraph extraction."""

    def test_paragraphs_split_on_blank_lines(self):
        """Test that paragraphs are separated by blank lines and headings."""
        doc = parse_markdown(
            "# Title\nFirst line\ncontinues here.\n\nSecond paragraph.\n## Next\nThird.\n", "a.md"
        )
        assert [(p.line, p.text) for p in doc.paragraphs] == [
            (2, "First line continues here."),
            (5, "Second paragraph."),
            (7, "Third."),
        ]

    def test_code_blocks_excluded(self):
        """Test that fenced code is not prose."""
        doc = parse_markdown("Prose.\n\n```\ncode code code\n```\n", "a.md")
        assert [p.text for p in doc.paragraphs] == ["Prose."]

    def test_thematic_break_not_prose(self):
        """Test that a horizontal rule is not a paragraph."""
        doc = parse_markdown("One.\n\n---\n\nTwo.\n", "a.md")
        assert [p.text for p in doc.paragraphs] == ["One.", "Two."]

    def test_word_count(self):
        """Test Paragraph.word_count."""
        doc = parse_markdown("one two  three\n", "a.md")
        assert doc.paragraphs[0].word_count == 3


class TestSourceReferences:
    """Tests for source reference extraction."""

    def test_backticked_paths(self):
        """Test backticked file paths with and without line numbers."""
        doc = parse_markdown(
            "Handled in `src/app.py:42` and configured by `config/settings.yml`.\n"
            "Run `pip install docaudit` first.\n",
            "a.md",
        )
        assert [(r.path, r.line) for r in doc.source_refs] == [
            ("src/app.py", 1),
            ("config/settings.yml", 1),
        ]

    def test_line_ranges(self):
        """Test 'path:start-end' citations."""
        doc = parse_markdown("See `backend/watcher.py:67-89`.\n", "a.md")
        assert doc.source_refs[0].path == "backend/watcher.py"

    def test_relative_paths(self):
        """Test ./ and ../ prefixes are kept."""
        doc = parse_markdown("See `../src/app.py`.\n", "docs/a.md")
        assert doc.source_refs[0].path == "../src/app.py"

    def test_frontmatter_source_refs(self):
        """Test 'source_refs' entries in frontmatter."""
        doc = parse_markdown(
            "---\nsource_refs:\n  - src/app.py:create_app:12\n  - src/db.py\n---\n# Doc\n",
            "a.md",
        )
        assert [r.path for r in doc.source_refs] == ["src/app.py", "src/db.py"]

    def test_code_blocks_have_no_references(self):
        """Test that fenced code does not produce references."""
        doc = parse_markdown("```\n`src/app.py`\n```\n", "a.md")
        assert doc.source_refs == []
