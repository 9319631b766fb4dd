"""Fragment store: owns the parsed project and resolves loose identifiers.

Identifiers arrive as fragment values, fragment IDs, file paths or nothing
at all ("the previous request"). Every successful resolution returns a ROOT
fragment of the current project snapshot.
"""

import os
from pathlib import Path
from typing import Optional, Union

from gpspec_outline import (
    Document,
    Fragment,
    Project,
    SPEC_SUFFIX,
    WorkspacePaths,
    is_spec_file,
    normalize_path,
    root_fragment,
    spec_path_for,
)

from specprompt.models.pick import OptionItem
from specprompt.services.document_store import DocumentStore
from specprompt.services.exceptions import (
    AmbiguousFragmentError,
    FragmentNotFoundError,
    NoPreviousRequestError,
    StaleFragmentError,
)
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)

Identifier = Union[Fragment, str, Path, None]

CREATE_NEW_LABEL = "Create new GPSpec file..."


def _looks_like_fragment_id(identifier: str) -> bool:
    """True for generated IDs ("<spec document>#<hash>")."""
    document, sep, _ = identifier.partition("#")
    return bool(sep) and is_spec_file(document)


class FragmentStore:
    """
    Holds the current Project snapshot and resolves identifiers against it.

    The snapshot is replaced wholesale by reparse(); readers holding the
    previous Project keep a consistent (if outdated) view.

    Example:
        >>> store = FragmentStore(Path("~/spec"), WorkspaceDocumentStore())
        >>> store.reparse()
        >>> fragment = store.resolve_fragment("src/util.ts")
    """

    def __init__(self, root: Path, documents: DocumentStore):
        """
        Initialize store for a workspace.

        Args:
            root: Workspace directory
            documents: Document store collaborator used for every read/write
        """
        self.paths = WorkspacePaths(Path(root).expanduser())
        self.documents = documents
        self._project = Project(root=normalize_path(self.paths.root))
        # Documents resolved outside the project snapshot
        self._on_demand: set[str] = set()
        # Every fragment ID seen in a snapshot; a vanished one is stale, not unknown
        self._seen_ids: set[str] = set()

    @property
    def project(self) -> Project:
        """Current project snapshot."""
        return self._project

    def reparse(self) -> Project:
        """
        Re-parse every specification document and swap the snapshot in.

        Spec files on disk and spec documents open in the document store are
        both included; open buffers win over disk content.

        Returns:
            The new Project

        Raises:
            ValueError: If fragment IDs collide
        """
        filenames = {normalize_path(p) for p in self.paths.list_spec_files()}
        root = normalize_path(self.paths.root)
        for doc in self.documents.list_open_documents():
            if is_spec_file(doc.path) and doc.path.startswith(root.rstrip(os.sep) + os.sep):
                filenames.add(doc.path)

        documents = [
            Document.parse(filename, self.documents.read_text(filename))
            for filename in sorted(filenames)
        ]
        project = Project.from_documents(documents, root=root)
        self._project = project
        self._seen_ids.update(project.fragment_by_full_id)

        logger.info(
            "project_parsed",
            root=root,
            documents=len(project.root_files),
            fragments=len(project.fragment_by_full_id),
        )
        return project

    def refresh(self, fragment: Fragment) -> Fragment:
        """
        Re-resolve a fragment handle against the current snapshot.

        Args:
            fragment: Handle captured earlier (possibly before a re-parse)

        Returns:
            The current fragment with the same full_id

        Raises:
            StaleFragmentError: If the ID no longer exists
        """
        current = self._project.fragment_by_full_id.get(fragment.full_id)
        if current is not None:
            return current

        if fragment.filename in self._on_demand:
            try:
                document = Document.parse(
                    fragment.filename, self.documents.read_text(fragment.filename)
                )
            except FileNotFoundError:
                raise StaleFragmentError(fragment.full_id) from None
            current = document.fragment_by_id.get(fragment.full_id)
            if current is not None:
                return current

        raise StaleFragmentError(fragment.full_id)

    def lookup(self, identifier: Union[Fragment, str, Path]) -> Fragment:
        """
        Resolve a fragment value, fragment ID or spec document path directly.

        No reference search and no root ascent; used for navigation.

        Raises:
            StaleFragmentError: If a fragment value's ID is gone
            FragmentNotFoundError: If nothing matches
        """
        if isinstance(identifier, Fragment):
            return self.refresh(identifier)
        fragment = self._project.resolve_fragment(str(identifier))
        if fragment is None:
            if self._is_stale_id(str(identifier)):
                raise StaleFragmentError(str(identifier))
            raise FragmentNotFoundError(identifier)
        return fragment

    def resolve_fragment(
        self,
        identifier: Identifier,
        previous: Optional[Fragment] = None,
    ) -> Fragment:
        """
        Resolve a loose identifier to exactly one root fragment.

        Args:
            identifier: Fragment, fragment ID, file path, or None
            previous: Target of the most recent request, used when identifier is None

        Returns:
            Root fragment

        Raises:
            NoPreviousRequestError: identifier is None and there is no previous request
            StaleFragmentError: The fragment ID is not in the current project
            AmbiguousFragmentError: Several documents reference the file
            FragmentNotFoundError: Nothing matches
        """
        if identifier is None:
            if previous is None:
                raise NoPreviousRequestError()
            identifier = previous

        if isinstance(identifier, Fragment):
            fragment = self.refresh(identifier)
        else:
            key = str(identifier)
            fragment = self._project.fragment_by_full_id.get(key)
            if fragment is None:
                if self._is_stale_id(key):
                    raise StaleFragmentError(key)
                fragment = self._resolve_path(key)

        root = self._root_of(fragment)
        logger.info("fragment_resolved", identifier=str(identifier), full_id=root.full_id)
        return root

    def resolve_document(self, document: Document) -> Fragment:
        """
        Resolve a disambiguation choice to the document's first root fragment.

        Raises:
            FragmentNotFoundError: If the document has no fragments
        """
        fragment = document.first_root
        if fragment is None:
            raise FragmentNotFoundError(document.filename, "Document has no fragments")
        return fragment

    def create_spec_for(self, path: str | Path) -> Fragment:
        """
        Create a specification document describing a file and resolve it.

        The new document sits next to the file and links to it. An existing
        document is reused only if it already links to the file. When the
        stem name belongs to another file's document (util.gpspec.md for
        util.ts versus util.test.ts) the full file name is used instead.

        Args:
            path: Referenced file

        Returns:
            First root fragment of the (new) document
        """
        target = Path(normalize_path(path))
        link = f"- [{target.name}](./{target.name})\n"
        spec_path = spec_path_for(target)
        if spec_path.exists() and not self._links_to(spec_path, target):
            spec_path = target.parent / f"{target.name}{SPEC_SUFFIX}"

        if not spec_path.exists():
            self.documents.write_text(str(spec_path), f"# {target.name}\n\n{link}")
            logger.info("spec_document_created", path=str(spec_path), reference=str(target))
        elif not self._links_to(spec_path, target):
            text = self.documents.read_text(str(spec_path))
            if text and not text.endswith("\n"):
                text += "\n"
            self.documents.write_text(str(spec_path), text + link)
            logger.info("spec_document_linked", path=str(spec_path), reference=str(target))
        self.reparse()

        document = self._project.get_document(spec_path)
        if document is None:
            # Outside the workspace root: parse it on its own
            document = self._parse_on_demand(str(spec_path))
        return self.resolve_document(document)

    def document_for(self, fragment: Fragment) -> Document:
        """
        Get the current document owning a fragment.

        Project documents come from the snapshot; documents parsed on demand
        are parsed again from their current text.

        Raises:
            FileNotFoundError: If the document no longer exists
        """
        document = self._project.get_document(fragment.filename)
        if document is None:
            document = Document.parse(fragment.filename, self.documents.read_text(fragment.filename))
        return document

    def _resolve_path(self, identifier: str) -> Fragment:
        filename = normalize_path(identifier)

        if is_spec_file(filename):
            document = self._project.get_document(filename)
            if document is None:
                try:
                    document = self._parse_on_demand(filename)
                except FileNotFoundError:
                    raise FragmentNotFoundError(identifier) from None
            if document.first_root is None:
                raise FragmentNotFoundError(identifier)
            return document.first_root

        referencing = self._project.documents_referencing(filename)
        if len(referencing) == 1:
            return self.resolve_document(referencing[0])
        if len(referencing) > 1:
            options = [
                OptionItem(label=Path(doc.filename).name, value=doc, description=doc.filename)
                for doc in referencing
            ]
            options.append(OptionItem(label=CREATE_NEW_LABEL, value=None))
            logger.info("fragment_ambiguous", path=filename, candidates=len(referencing))
            raise AmbiguousFragmentError(filename, options)

        # Not referenced anywhere: an open document can still be read as a spec
        if any(d.path == filename for d in self.documents.list_open_documents()):
            document = self._parse_on_demand(filename)
            if document.first_root is not None:
                return document.first_root

        raise FragmentNotFoundError(identifier)

    def _is_stale_id(self, key: str) -> bool:
        # Explicit "id::" values have no recognizable shape, so remember them
        return key in self._seen_ids or _looks_like_fragment_id(key)

    def _links_to(self, spec_path: Path, target: Path) -> bool:
        document = Document.parse(str(spec_path), self.documents.read_text(str(spec_path)))
        return str(target) in document.references

    def _parse_on_demand(self, filename: str) -> Document:
        document = Document.parse(filename, self.documents.read_text(filename))
        self._on_demand.add(document.filename)
        logger.info("fragment_parsed_on_demand", path=document.filename)
        return document

    def _root_of(self, fragment: Fragment) -> Fragment:
        if fragment.is_root:
            return fragment
        if fragment.full_id in self._project.fragment_by_full_id:
            return self._project.root_fragment(fragment)
        return root_fragment(fragment, self.document_for(fragment).fragment_by_id)
