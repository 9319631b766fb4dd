"""Unit tests for FragmentStore identifier resolution."""

import pytest

from gpspec_outline import Document

from specprompt.services.exceptions import (
    AmbiguousFragmentError,
    FragmentNotFoundError,
    NoPreviousRequestError,
    StaleFragmentError,
)
from specprompt.services.fragment_store import CREATE_NEW_LABEL, FragmentStore


def first_root(store, path):
    return store.project.get_document(path).first_root


class TestReparse:
    """Test project snapshots."""

    def test_parses_every_spec_document(self, store, spec_workspace):
        names = [doc.filename for doc in store.project.root_files]

        assert names == sorted(str(spec_workspace / n) for n in ("a.gpspec.md", "b.gpspec.md", "c.gpspec.md"))
        assert len(store.project.fragment_by_full_id) == 4

    def test_reparse_unchanged_keeps_ids(self, store):
        before = set(store.project.fragment_by_full_id)
        old_project = store.project

        store.reparse()

        assert set(store.project.fragment_by_full_id) == before
        assert store.project is not old_project

    def test_old_snapshot_unchanged_after_reparse(self, store, spec_workspace):
        old_project = store.project
        (spec_workspace / "d.gpspec.md").write_text("# Delta\n")

        store.reparse()

        assert len(old_project.root_files) == 3
        assert len(store.project.root_files) == 4

    def test_open_buffer_wins_over_disk(self, store, documents, spec_workspace):
        path = spec_workspace / "a.gpspec.md"
        documents.edit(path, "# Alpha renamed\n")

        store.reparse()

        assert first_root(store, path).title == "Alpha renamed"

    def test_empty_workspace(self, tmp_path, documents):
        store = FragmentStore(tmp_path, documents)
        project = store.reparse()

        assert project.root_files == ()

    def test_invalid_root(self, tmp_path, documents):
        with pytest.raises(ValueError, match="does not exist"):
            FragmentStore(tmp_path / "missing", documents)


class TestResolveFragment:
    """Test resolve_fragment() for each identifier kind."""

    def test_spec_path_resolves_first_root(self, store, spec_workspace):
        fragment = store.resolve_fragment(str(spec_workspace / "a.gpspec.md"))

        assert fragment.title == "Alpha"
        assert fragment.is_root

    def test_pathlib_path_accepted(self, store, spec_workspace):
        fragment = store.resolve_fragment(spec_workspace / "c.gpspec.md")

        assert fragment.title == "Gamma"

    def test_fragment_id_resolves_to_root(self, store, spec_workspace):
        details = store.project.get_document(spec_workspace / "a.gpspec.md").fragments[1]
        assert details.title == "Details"

        fragment = store.resolve_fragment(details.full_id)

        assert fragment.title == "Alpha"

    def test_fragment_value_resolves_to_root(self, store, spec_workspace):
        details = store.project.get_document(spec_workspace / "a.gpspec.md").fragments[1]

        assert store.resolve_fragment(details).title == "Alpha"

    def test_single_referencing_document(self, store, spec_workspace):
        fragment = store.resolve_fragment(str(spec_workspace / "src" / "main.py"))

        assert fragment.title == "Gamma"

    def test_ambiguous_reference_lists_candidates(self, store, spec_workspace):
        with pytest.raises(AmbiguousFragmentError) as exc_info:
            store.resolve_fragment(str(spec_workspace / "src" / "util.ts"))

        options = exc_info.value.options
        assert [o.label for o in options] == ["a.gpspec.md", "b.gpspec.md", CREATE_NEW_LABEL]
        assert options[-1].value is None
        assert exc_info.value.path == str(spec_workspace / "src" / "util.ts")

    def test_ambiguous_choice_resolves_chosen_document(self, store, spec_workspace):
        with pytest.raises(AmbiguousFragmentError) as exc_info:
            store.resolve_fragment(str(spec_workspace / "src" / "util.ts"))

        beta = exc_info.value.options[1].value
        fragment = store.resolve_document(beta)

        assert fragment.title == "Beta"

    def test_none_without_previous(self, store):
        with pytest.raises(NoPreviousRequestError):
            store.resolve_fragment(None)

    def test_none_without_previous_is_not_found(self, store):
        with pytest.raises(FragmentNotFoundError):
            store.resolve_fragment(None)

    def test_none_uses_previous(self, store, spec_workspace):
        gamma = first_root(store, spec_workspace / "c.gpspec.md")

        assert store.resolve_fragment(None, previous=gamma) == gamma

    def test_unknown_path_not_found(self, store, spec_workspace):
        with pytest.raises(FragmentNotFoundError):
            store.resolve_fragment(str(spec_workspace / "src" / "unknown.rs"))

    def test_missing_spec_document_not_found(self, store, spec_workspace):
        with pytest.raises(FragmentNotFoundError):
            store.resolve_fragment(str(spec_workspace / "missing.gpspec.md"))

    def test_unknown_fragment_id_is_stale(self, store, spec_workspace):
        with pytest.raises(StaleFragmentError):
            store.resolve_fragment(f"{spec_workspace / 'a.gpspec.md'}#000000000000")

    def test_renamed_heading_makes_fragment_stale(self, store, spec_workspace):
        gamma = first_root(store, spec_workspace / "c.gpspec.md")
        (spec_workspace / "c.gpspec.md").write_text("# Gamma v2\n")
        store.reparse()

        with pytest.raises(StaleFragmentError) as exc_info:
            store.resolve_fragment(gamma)

        assert exc_info.value.full_id == gamma.full_id

    def test_removed_explicit_id_is_stale(self, store, spec_workspace):
        (spec_workspace / "c.gpspec.md").write_text("# Gamma\n- id:: pinned\n")
        store.reparse()
        assert store.resolve_fragment("pinned").title == "Gamma"

        (spec_workspace / "c.gpspec.md").write_text("# Gamma\n")
        store.reparse()

        with pytest.raises(StaleFragmentError) as exc_info:
            store.resolve_fragment("pinned")

        assert exc_info.value.full_id == "pinned"

    def test_body_edit_keeps_fragment_resolvable(self, store, spec_workspace):
        gamma = first_root(store, spec_workspace / "c.gpspec.md")
        path = spec_workspace / "c.gpspec.md"
        path.write_text(path.read_text() + "- more\n")
        store.reparse()

        refreshed = store.resolve_fragment(gamma)

        assert refreshed.full_id == gamma.full_id
        assert refreshed.end_pos == (3, 0)


class TestOnDemandParsing:
    """Test documents resolved outside the project snapshot."""

    def test_open_unreferenced_document_parsed_as_spec(self, store, documents, spec_workspace):
        notes = spec_workspace / "notes.md"
        notes.write_text("# Notes\n- remember\n")
        documents.open(notes)

        fragment = store.resolve_fragment(str(notes))

        assert fragment.title == "Notes"
        assert fragment.full_id not in store.project.fragment_by_full_id

    def test_on_demand_fragment_can_be_refreshed(self, store, documents, spec_workspace):
        notes = spec_workspace / "notes.md"
        notes.write_text("# Notes\n- remember\n")
        documents.open(notes)
        fragment = store.resolve_fragment(str(notes))

        assert store.refresh(fragment) == fragment

    def test_unopened_unreferenced_file_not_found(self, store, spec_workspace):
        notes = spec_workspace / "notes.md"
        notes.write_text("# Notes\n")

        with pytest.raises(FragmentNotFoundError):
            store.resolve_fragment(str(notes))

    def test_spec_outside_root_parsed_on_demand(self, store, tmp_path_factory):
        outside = tmp_path_factory.mktemp("elsewhere") / "x.gpspec.md"
        outside.write_text("# Outside\n")

        fragment = store.resolve_fragment(str(outside))

        assert fragment.title == "Outside"
        assert store.project.get_document(outside) is None


class TestCreateSpecFor:
    """Test creating a new specification document for a file."""

    def test_creates_linked_document(self, store, spec_workspace):
        util = spec_workspace / "src" / "util.ts"

        fragment = store.create_spec_for(util)

        spec = spec_workspace / "src" / "util.gpspec.md"
        assert spec.exists()
        assert fragment.filename == str(spec)
        assert fragment.title == "util.ts"
        assert str(util) in fragment.references
        assert store.project.get_document(spec) is not None

    def test_reuses_existing_linked_document(self, store, spec_workspace):
        spec = spec_workspace / "src" / "util.gpspec.md"
        spec.write_text("# Existing\n\n- [util.ts](./util.ts)\n")

        fragment = store.create_spec_for(spec_workspace / "src" / "util.ts")

        assert fragment.title == "Existing"
        assert spec.read_text() == "# Existing\n\n- [util.ts](./util.ts)\n"

    def test_stem_taken_by_other_file_uses_full_name(self, store, spec_workspace):
        (spec_workspace / "src" / "util.test.ts").write_text("test('x')\n")
        util_spec = spec_workspace / "src" / "util.gpspec.md"
        util_spec.write_text("# util.ts\n\n- [util.ts](./util.ts)\n")
        store.reparse()

        fragment = store.create_spec_for(spec_workspace / "src" / "util.test.ts")

        spec = spec_workspace / "src" / "util.test.ts.gpspec.md"
        assert fragment.filename == str(spec)
        assert str(spec_workspace / "src" / "util.test.ts") in fragment.references
        assert util_spec.read_text() == "# util.ts\n\n- [util.ts](./util.ts)\n"


class TestLookup:
    """Test lookup() used for navigation."""

    def test_lookup_does_not_ascend(self, store, spec_workspace):
        details = store.project.get_document(spec_workspace / "a.gpspec.md").fragments[1]

        assert store.lookup(details.full_id) == details

    def test_lookup_spec_path(self, store, spec_workspace):
        assert store.lookup(str(spec_workspace / "b.gpspec.md")).title == "Beta"

    def test_lookup_referenced_file_not_searched(self, store, spec_workspace):
        with pytest.raises(FragmentNotFoundError):
            store.lookup(str(spec_workspace / "src" / "main.py"))


class TestDocumentFor:
    """Test document_for()."""

    def test_project_document(self, store, spec_workspace):
        alpha = first_root(store, spec_workspace / "a.gpspec.md")

        document = store.document_for(alpha)

        assert isinstance(document, Document)
        assert document.span_text(alpha).startswith("# Alpha")
