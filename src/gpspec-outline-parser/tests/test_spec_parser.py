"""Tests for GPSpec document parsing."""

import pytest
from textwrap import dedent

from gpspec_outline.parser import Document, extract_references


SPEC = dedent("""\
    title:: Example

    # Parser
    - tokenize input
    - see [lexer](./lexer.py)

    ## Errors
    - report [line numbers](../docs/errors.md#lines)

    # Renderer
    - emit [html](https://example.com/html)
    """)


@pytest.fixture
def doc():
    return Document.parse("/work/spec/app.gpspec.md", SPEC)


class TestFragmentStructure:
    """Tests for heading nesting and spans."""

    def test_frontmatter_before_first_heading(self, doc):
        assert doc.frontmatter == ("title:: Example", "")

    def test_roots_in_document_order(self, doc):
        assert [f.title for f in doc.roots] == ["Parser", "Renderer"]
        assert doc.first_root.title == "Parser"

    def test_nested_heading_has_parent(self, doc):
        errors = next(f for f in doc.fragments if f.title == "Errors")
        parser = doc.first_root

        assert errors.parent_id == parser.full_id
        assert parser.child_ids == (errors.full_id,)
        assert errors.level == 2
        assert not errors.is_root

    def test_root_span_covers_children(self, doc):
        parser = doc.first_root
        # Heading on line 2, last item of Errors on line 7, exclusive end 8
        assert parser.start_pos == (2, 0)
        assert parser.end_pos == (8, 0)

    def test_end_pos_skips_trailing_blank_lines(self):
        doc = Document.parse("/w/a.gpspec.md", "# A\n- one\n- two\n\n\n# B\n")
        a = doc.first_root

        assert a.end_pos == (3, 0)

    def test_end_pos_of_last_fragment_before_final_newline(self):
        doc = Document.parse("/w/a.gpspec.md", "# A\n- one\n")
        assert doc.first_root.end_pos == (2, 0)

    def test_headings_inside_code_fence_ignored(self):
        text = "# A\n```\n# not a heading\n```\n# B"
        doc = Document.parse("/w/a.gpspec.md", text)

        assert [f.title for f in doc.fragments] == ["A", "B"]

    def test_closing_hashes_removed_from_title(self):
        doc = Document.parse("/w/a.gpspec.md", "## Title ##")
        assert doc.first_root.title == "Title"

    def test_skipped_heading_level_still_nests(self):
        doc = Document.parse("/w/a.gpspec.md", "# A\n### Deep\n## Mid")
        a, deep, mid = doc.fragments

        assert deep.parent_id == a.full_id
        assert mid.parent_id == a.full_id

    def test_document_without_headings(self):
        doc = Document.parse("/w/a.gpspec.md", "just text\n- item")

        assert doc.fragments == ()
        assert doc.first_root is None
        assert doc.frontmatter == ("just text", "- item")

    def test_span_text(self, doc):
        renderer = doc.roots[1]
        assert doc.span_text(renderer) == "# Renderer\n- emit [html](https://example.com/html)"


class TestFragmentIds:
    """Tests for hybrid fragment IDs."""

    def test_ids_unique_within_document(self, doc):
        ids = [f.full_id for f in doc.fragments]
        assert len(ids) == len(set(ids))

    def test_ids_prefixed_with_filename(self, doc):
        assert doc.first_root.full_id.startswith("/work/spec/app.gpspec.md#")

    def test_ids_stable_across_reparse(self, doc):
        again = Document.parse("/work/spec/app.gpspec.md", SPEC)
        assert [f.full_id for f in again.fragments] == [f.full_id for f in doc.fragments]

    def test_ids_stable_when_body_changes(self, doc):
        edited = SPEC.replace("- tokenize input", "- tokenize input\n- handle unicode")
        again = Document.parse("/work/spec/app.gpspec.md", edited)

        assert [f.full_id for f in again.fragments] == [f.full_id for f in doc.fragments]

    def test_repeated_headings_get_distinct_ids(self):
        doc = Document.parse("/w/a.gpspec.md", "# Notes\n# Notes")
        first, second = doc.fragments

        assert first.full_id != second.full_id

    def test_explicit_id_property(self):
        doc = Document.parse("/w/a.gpspec.md", "# A\n- id:: my-fragment\n- text")
        assert doc.first_root.full_id == "my-fragment"
        assert doc.first_root.get_property("id") == "my-fragment"

    def test_duplicate_explicit_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate fragment id"):
            Document.parse("/w/a.gpspec.md", "# A\nid:: same\n# B\nid:: same")

    def test_fragment_by_id(self, doc):
        for fragment in doc.fragments:
            assert doc.fragment_by_id[fragment.full_id] is fragment


class TestReferences:
    """Tests for Markdown link references."""

    def test_relative_links_resolved_against_document(self, doc):
        parser = doc.first_root
        assert parser.references[0] == "/work/spec/lexer.py"

    def test_root_references_include_nested_fragments(self, doc):
        parser = doc.first_root
        assert parser.references == ("/work/spec/lexer.py", "/work/docs/errors.md")

    def test_anchor_stripped_and_parent_dir_resolved(self, doc):
        errors = next(f for f in doc.fragments if f.title == "Errors")
        assert errors.references == ("/work/docs/errors.md",)

    def test_urls_ignored(self, doc):
        assert doc.roots[1].references == ()

    def test_document_references_union(self, doc):
        assert doc.references == ["/work/spec/lexer.py", "/work/docs/errors.md"]

    def test_links_in_code_fence_ignored(self):
        refs = extract_references(["```", "[x](./x.py)", "```", "[y](y.py)"], "/base")
        assert refs == ["/base/y.py"]

    def test_pure_anchor_and_mailto_ignored(self):
        refs = extract_references(["[a](#top) [m](mailto:me@example.com)"], "/base")
        assert refs == []

    def test_duplicate_links_collapsed(self):
        refs = extract_references(["[a](./a.py) and [again](a.py)"], "/base")
        assert refs == ["/base/a.py"]
