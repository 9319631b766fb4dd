"""Unit tests for the PromptTemplate model."""

import pytest
from pydantic import ValidationError

from gpspec_outline import Document

from specprompt.models.template import PromptTemplate


def parse(content: str):
    return Document.parse("/w/spec/app.gpspec.md", content)


class TestPromptTemplate:
    """Test template fields and validation."""

    def test_defaults(self):
        template = PromptTemplate(id="t", title="T")

        assert template.group == "General"
        assert template.root_only is True
        assert template.system is False
        assert template.references == ()

    def test_requires_title(self):
        with pytest.raises(ValidationError):
            PromptTemplate(id="t", title="")

    def test_invalid_title_pattern(self):
        with pytest.raises(ValidationError, match="Invalid title_pattern"):
            PromptTemplate(id="t", title="T", title_pattern="(")

    def test_immutable(self):
        template = PromptTemplate(id="t", title="T")

        with pytest.raises(ValidationError):
            template.title = "Other"


class TestIsApplicable:
    """Test the applicability predicate."""

    def test_plain_template_accepts_root(self):
        doc = parse("# App\n")

        assert PromptTemplate(id="t", title="T").is_applicable(doc.first_root)

    def test_system_template_never_applicable(self):
        doc = parse("# App\n")

        assert not PromptTemplate(id="t", title="T", system=True).is_applicable(doc.first_root)

    def test_root_only_rejects_child(self):
        child = parse("# App\n## Part\n").fragments[1]

        assert not PromptTemplate(id="t", title="T").is_applicable(child)
        assert PromptTemplate(id="t", title="T", root_only=False).is_applicable(child)

    def test_title_pattern(self):
        doc = parse("# API design\n")
        template = PromptTemplate(id="t", title="T", title_pattern=r"(?i)\bapi\b")

        assert template.is_applicable(doc.first_root)
        assert not template.is_applicable(parse("# Storage\n").first_root)

    def test_reference_globs_match_basenames(self):
        doc = parse("# App\n- [main](../src/main.py)\n")
        python = PromptTemplate(id="py", title="Py", references=("*.py",))
        rust = PromptTemplate(id="rs", title="Rs", references=("*.rs",))

        assert python.is_applicable(doc.first_root)
        assert not rust.is_applicable(doc.first_root)

    def test_reference_in_nested_fragment_counts_for_root(self):
        doc = parse("# App\n## Impl\n- [lib](lib.rs)\n")
        rust = PromptTemplate(id="rs", title="Rs", references=("*.rs",))

        assert rust.is_applicable(doc.first_root)

    def test_reference_glob_requires_a_reference(self):
        doc = parse("# App\n- no links\n")

        assert not PromptTemplate(id="t", title="T", references=("*",)).is_applicable(doc.first_root)
