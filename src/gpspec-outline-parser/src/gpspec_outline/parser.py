"""GPSpec markdown parser for heading-structured specification documents.

A specification document is Markdown whose headings split it into
fragments. Heading depth decides nesting, links in fragment bodies declare
references to other files, and an ``id::`` property pins a fragment ID.
"""

import os
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional
from urllib.parse import unquote

from gpspec_outline.context import generate_fragment_id
from gpspec_outline.workspace import normalize_path


Position = tuple[int, int]

_HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*?)[ \t]*$")
_CLOSING_HASHES_RE = re.compile(r"[ \t]+#+$")
_LINK_RE = re.compile(r"\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_ID_PROPERTY_RE = re.compile(r"^\s*id::\s*(\S.*?)\s*$")


@dataclass(frozen=True)
class Fragment:
    """Single heading-delimited region of a specification document.

    Fragments never own each other: the parent and the document are
    referenced by ID only, and looked up through a registry
    (Document.fragment_by_id or Project.fragment_by_full_id).

    Attributes:
        full_id: Globally unique ID (id:: property or heading-context hash)
        title: Heading text without the leading #'s
        level: Heading depth (1-6)
        start_pos: (line, column) of the heading line
        end_pos: Exclusive (line, column) end of the span, trailing blank lines excluded
        filename: Owning document filename
        parent_id: ID of the enclosing fragment (None for root fragments)
        child_ids: IDs of directly nested fragments, in document order
        body: Lines between the heading and the next heading
        references: Normalised filenames linked anywhere in the span (own body,
            then nested fragments)
    """

    full_id: str
    title: str
    level: int
    start_pos: Position
    end_pos: Position
    filename: str
    parent_id: Optional[str] = None
    child_ids: tuple[str, ...] = ()
    body: tuple[str, ...] = ()
    references: tuple[str, ...] = ()

    @property
    def is_root(self) -> bool:
        """True if this fragment has no parent."""
        return self.parent_id is None

    def get_property(self, key: str) -> Optional[str]:
        """Get property value by key.

        Scans body lines for 'key:: value'.

        Args:
            key: Property key to search for

        Returns:
            Property value if found, None otherwise
        """
        for line in self.body:
            stripped = line.strip().lstrip("-").strip()
            if "::" in stripped:
                name, value = stripped.split("::", 1)
                if name.strip() == key:
                    return value.strip()
        return None


@dataclass(frozen=True)
class Document:
    """Parsed specification document.

    Attributes:
        filename: Normalised absolute path (stable identifier)
        content: Source text the fragments were parsed from
        fragments: All fragments in document order
        frontmatter: Lines before the first heading
    """

    filename: str
    content: str
    fragments: tuple[Fragment, ...] = ()
    frontmatter: tuple[str, ...] = ()
    _by_id: Mapping[str, Fragment] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def parse(cls, filename: str, content: str) -> "Document":
        """Parse specification markdown into a Document.

        Args:
            filename: Path of the document (normalised before use)
            content: Markdown text

        Returns:
            Parsed Document

        Raises:
            ValueError: If two fragments share an explicit id:: property
        """
        filename = normalize_path(filename)
        lines = content.split("\n")
        frontmatter, fragments = _parse_fragments(filename, lines)

        by_id = {}
        for fragment in fragments:
            if fragment.full_id in by_id:
                raise ValueError(f"Duplicate fragment id {fragment.full_id!r} in {filename}")
            by_id[fragment.full_id] = fragment

        return cls(
            filename=filename,
            content=content,
            fragments=tuple(fragments),
            frontmatter=tuple(frontmatter),
            _by_id=MappingProxyType(by_id),
        )

    @property
    def fragment_by_id(self) -> Mapping[str, Fragment]:
        """Read-only mapping of fragment ID to fragment."""
        return self._by_id

    @property
    def roots(self) -> list[Fragment]:
        """Top-level fragments, in document order."""
        return [f for f in self.fragments if f.parent_id is None]

    @property
    def first_root(self) -> Optional[Fragment]:
        """First declared root fragment, or None for a document without headings."""
        roots = self.roots
        return roots[0] if roots else None

    @property
    def references(self) -> list[str]:
        """Filenames referenced by the root fragments, de-duplicated, in order."""
        seen: dict[str, None] = {}
        for fragment in self.roots:
            for ref in fragment.references:
                seen.setdefault(ref, None)
        return list(seen)

    def span_text(self, fragment: Fragment) -> str:
        """Get the source text covered by a fragment (heading, body and children).

        Args:
            fragment: Fragment of this document

        Returns:
            Text of lines start_pos..end_pos
        """
        lines = self.content.split("\n")
        return "\n".join(lines[fragment.start_pos[0]:fragment.end_pos[0]])


def _is_fence(line: str) -> bool:
    stripped = line.lstrip()
    return stripped.startswith("```") or stripped.startswith("~~~")


def _scan_headings(lines: list[str]) -> list[tuple[int, int, str]]:
    """Find heading lines outside fenced code blocks.

    Returns:
        List of (line_index, level, title)
    """
    headings = []
    in_code_fence = False
    for index, line in enumerate(lines):
        if _is_fence(line):
            in_code_fence = not in_code_fence
            continue
        if in_code_fence:
            continue
        match = _HEADING_RE.match(line)
        if match:
            title = _CLOSING_HASHES_RE.sub("", match.group(2)).strip()
            headings.append((index, len(match.group(1)), title))
    return headings


def extract_references(body: list[str], base_dir: str) -> list[str]:
    """Extract referenced filenames from Markdown links.

    URLs and in-page anchors are ignored; relative targets are resolved
    against base_dir. Links inside fenced code blocks are skipped.

    Args:
        body: Lines to scan
        base_dir: Directory of the owning document

    Returns:
        Normalised filenames, de-duplicated, in order of appearance
    """
    refs: dict[str, None] = {}
    in_code_fence = False
    for line in body:
        if _is_fence(line):
            in_code_fence = not in_code_fence
            continue
        if in_code_fence:
            continue
        for match in _LINK_RE.finditer(line):
            target = match.group(1)
            if target.startswith("#") or _SCHEME_RE.match(target):
                continue
            target = unquote(target.split("#", 1)[0].split("?", 1)[0])
            if not target:
                continue
            if target.startswith("/"):
                refs.setdefault(normalize_path(target), None)
            else:
                refs.setdefault(normalize_path(os.path.join(base_dir, target)), None)
    return list(refs)


def _parse_fragments(filename: str, lines: list[str]) -> tuple[list[str], list[Fragment]]:
    """Parse lines into fragments.

    Each heading opens a fragment that nests under the closest preceding
    heading of lower depth. A fragment's span ends at the next heading of the
    same or lower depth; its body ends at the next heading of any depth.

    Args:
        filename: Normalised document filename
        lines: Markdown lines

    Returns:
        Tuple of (frontmatter_lines, fragments in document order)
    """
    headings = _scan_headings(lines)
    if not headings:
        return list(lines), []

    frontmatter = lines[: headings[0][0]]
    base_dir = os.path.dirname(filename)

    # First pass: structure (parent index, span end) for every heading
    parents: list[Optional[int]] = []
    span_ends: list[int] = [len(lines)] * len(headings)
    stack: list[int] = []  # Indices into headings of the open ancestors
    for i, (line_index, level, _title) in enumerate(headings):
        while stack and headings[stack[-1]][1] >= level:
            span_ends[stack.pop()] = line_index
        parents.append(stack[-1] if stack else None)
        stack.append(i)

    # Second pass: IDs, which depend on the heading chain
    ids: list[str] = []
    occurrences: dict[tuple[tuple[int, str], ...], int] = {}
    chains: list[tuple[tuple[int, str], ...]] = []
    bodies: list[list[str]] = []
    for i, (line_index, level, title) in enumerate(headings):
        parent = parents[i]
        chain = (chains[parent] if parent is not None else ()) + ((level, title),)
        chains.append(chain)

        body_end = headings[i + 1][0] if i + 1 < len(headings) else len(lines)
        body = lines[line_index + 1:body_end]
        bodies.append(body)

        explicit_id = None
        for line in body:
            stripped = line.strip()
            if stripped.startswith("- "):
                stripped = stripped[2:]
            match = _ID_PROPERTY_RE.match(stripped)
            if match:
                explicit_id = match.group(1)
                break

        if explicit_id:
            ids.append(explicit_id)
        else:
            occurrence = occurrences.get(chain, 0)
            occurrences[chain] = occurrence + 1
            ids.append(generate_fragment_id(filename, list(chain), occurrence))

    children: dict[int, list[int]] = {}
    for i, parent in enumerate(parents):
        if parent is not None:
            children.setdefault(parent, []).append(i)

    # Span references: own body first, then nested fragments in document order.
    # Children always follow their parent, so a reverse pass sees them first.
    span_refs: list[list[str]] = [[] for _ in headings]
    for i in reversed(range(len(headings))):
        refs = dict.fromkeys(extract_references(bodies[i], base_dir))
        for child in children.get(i, []):
            refs.update(dict.fromkeys(span_refs[child]))
        span_refs[i] = list(refs)

    fragments = []
    for i, (line_index, level, title) in enumerate(headings):
        # Exclusive end, trimmed of trailing blank lines (never before the heading)
        end = span_ends[i]
        while end > line_index + 1 and not lines[end - 1].strip():
            end -= 1

        parent = parents[i]
        fragments.append(
            Fragment(
                full_id=ids[i],
                title=title,
                level=level,
                start_pos=(line_index, 0),
                end_pos=(end, 0),
                filename=filename,
                parent_id=ids[parent] if parent is not None else None,
                child_ids=tuple(ids[c] for c in children.get(i, [])),
                body=tuple(bodies[i]),
                references=tuple(span_refs[i]),
            )
        )

    return frontmatter, fragments
