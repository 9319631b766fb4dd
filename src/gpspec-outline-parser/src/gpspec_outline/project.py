"""Project snapshot: every parsed specification document of a workspace.

A Project is built in one step and never mutated. Re-parsing produces a new
Project, so a reader holding a reference never sees a half-built mapping.
"""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from gpspec_outline.parser import Document, Fragment
from gpspec_outline.workspace import WorkspacePaths, is_spec_file, normalize_path


def root_fragment(fragment: Fragment, fragments: Mapping[str, Fragment]) -> Fragment:
    """Walk parent links up to the fragment with no parent.

    Args:
        fragment: Starting fragment
        fragments: Registry used to look up parents by ID

    Returns:
        The root ancestor (the fragment itself if it is a root)

    Raises:
        ValueError: If a parent is missing from the registry or the chain loops
    """
    seen = {fragment.full_id}
    current = fragment
    while current.parent_id is not None:
        parent = fragments.get(current.parent_id)
        if parent is None:
            raise ValueError(f"Parent fragment not found: {current.parent_id}")
        if parent.full_id in seen:
            raise ValueError(f"Cyclic parent chain at fragment: {parent.full_id}")
        seen.add(parent.full_id)
        current = parent
    return current


@dataclass(frozen=True)
class Project:
    """Parsed representation of all specification documents.

    Attributes:
        root_files: Documents ordered by filename
        fragment_by_full_id: Read-only mapping of fragment ID to fragment
        root: Workspace root the project was parsed from (if any)
    """

    root_files: tuple[Document, ...] = ()
    fragment_by_full_id: Mapping[str, Fragment] = field(default_factory=lambda: MappingProxyType({}))
    root: Optional[str] = None

    @classmethod
    def from_documents(cls, documents: Iterable[Document], root: Optional[str] = None) -> "Project":
        """Build a project from parsed documents.

        Later documents with the same filename replace earlier ones.

        Args:
            documents: Parsed documents
            root: Optional workspace root

        Returns:
            New Project

        Raises:
            ValueError: If two documents declare the same fragment ID
        """
        by_filename = {doc.filename: doc for doc in documents}
        ordered = tuple(by_filename[name] for name in sorted(by_filename))

        fragments: dict[str, Fragment] = {}
        for doc in ordered:
            for fragment in doc.fragments:
                if fragment.full_id in fragments:
                    raise ValueError(
                        f"Duplicate fragment id {fragment.full_id!r} in "
                        f"{fragments[fragment.full_id].filename} and {doc.filename}"
                    )
                fragments[fragment.full_id] = fragment

        return cls(
            root_files=ordered,
            fragment_by_full_id=MappingProxyType(fragments),
            root=normalize_path(root) if root else None,
        )

    @classmethod
    def parse_workspace(cls, root: Path) -> "Project":
        """Parse every specification document below a workspace root.

        Args:
            root: Workspace directory

        Returns:
            New Project

        Raises:
            ValueError: If root is invalid or fragment IDs collide
        """
        paths = WorkspacePaths(root)
        documents = [
            Document.parse(str(path), path.read_text(encoding="utf-8"))
            for path in paths.list_spec_files()
        ]
        return cls.from_documents(documents, root=str(root))

    def get_document(self, filename: str | Path) -> Optional[Document]:
        """Get a document by filename (any spelling of the same path)."""
        filename = normalize_path(filename)
        for doc in self.root_files:
            if doc.filename == filename:
                return doc
        return None

    def document_for(self, fragment: Fragment) -> Optional[Document]:
        """Get the document owning a fragment."""
        return self.get_document(fragment.filename)

    def documents_referencing(self, filename: str | Path) -> list[Document]:
        """Get documents whose fragments link to a file.

        Args:
            filename: Referenced file path

        Returns:
            Matching documents, ordered by filename
        """
        filename = normalize_path(filename)
        return [doc for doc in self.root_files if filename in doc.references]

    def resolve_fragment(self, identifier: str | Path) -> Optional[Fragment]:
        """Resolve a fragment ID or a specification document path.

        Args:
            identifier: Fragment ID, or the path of a parsed spec document

        Returns:
            The fragment (first root fragment for a document path), or None
        """
        identifier = str(identifier)
        fragment = self.fragment_by_full_id.get(identifier)
        if fragment is not None:
            return fragment
        if is_spec_file(identifier):
            doc = self.get_document(identifier)
            if doc is not None:
                return doc.first_root
        return None

    def root_fragment(self, fragment: Fragment) -> Fragment:
        """Walk up to the root fragment using this project's registry."""
        return root_fragment(fragment, self.fragment_by_full_id)
