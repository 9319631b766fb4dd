"""GPSpec outline parser - Parse heading-structured specification documents.

This package parses GPSpec markdown documents (``*.gpspec.md``) into a
forest of addressable fragments and aggregates them into project snapshots.

Key features:
- Parse headings into nested Fragment trees with (line, column) spans
- Hybrid fragment IDs (id:: properties or heading-context hashes) that stay
  stable when fragment bodies change
- Collect file references from Markdown links
- Immutable Project snapshots with an ID registry for root ascent

Example:
    >>> from gpspec_outline import Document
    >>> doc = Document.parse("/tmp/app.gpspec.md", "# App\\n- [main](./main.py)")
    >>> doc.first_root.title
    'App'
    >>> doc.references
    ['/tmp/main.py']
"""

from gpspec_outline.parser import Document, Fragment, Position, extract_references
from gpspec_outline.project import Project, root_fragment
from gpspec_outline.workspace import (
    SPEC_SUFFIX,
    WorkspacePaths,
    is_spec_file,
    normalize_path,
    spec_path_for,
)
from gpspec_outline.context import generate_fragment_id, generate_content_hash

__version__ = "0.1.0"

__all__ = [
    "Document",
    "Fragment",
    "Position",
    "Project",
    "SPEC_SUFFIX",
    "WorkspacePaths",
    "extract_references",
    "generate_content_hash",
    "generate_fragment_id",
    "is_spec_file",
    "normalize_path",
    "root_fragment",
    "spec_path_for",
]
