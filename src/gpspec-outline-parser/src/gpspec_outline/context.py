"""Heading-context generation and hashing for hybrid fragment IDs.

Fragments without an explicit id:: property get an ID derived from their
position in the document hierarchy. The hash covers the heading chain only
(never body text), so appending lines to a fragment keeps every ID stable.
"""

import hashlib


ID_HASH_LENGTH = 12


def generate_heading_context(headings: list[tuple[int, str]], occurrence: int = 0) -> str:
    """Generate the heading-context string for a fragment.

    The context lists every heading from the root fragment down to the
    fragment itself, rendered as Markdown headings. When the same chain
    appears more than once in a document, the occurrence index is appended
    so each fragment keeps a distinct context.

    Args:
        headings: (level, title) pairs from root to the fragment itself
        occurrence: How many earlier fragments share this exact chain

    Returns:
        Context string

    Examples:
        >>> generate_heading_context([(1, "Spec"), (2, "Parser")])
        '# Spec\\n## Parser'
        >>> generate_heading_context([(1, "Notes")], occurrence=1)
        '# Notes\\n@1'
    """
    parts = [f"{'#' * level} {title}" for level, title in headings]
    if occurrence:
        parts.append(f"@{occurrence}")
    return "\n".join(parts)


def generate_content_hash(context: str, filename: str | None = None) -> str:
    """Generate MD5 hash of a context string.

    Args:
        context: Context string to hash
        filename: Optional document filename to prefix (ensures global uniqueness)

    Returns:
        MD5 hash as hexadecimal string
    """
    content_to_hash = f"{filename}::{context}" if filename else context
    return hashlib.md5(content_to_hash.encode()).hexdigest()


def generate_fragment_id(filename: str, headings: list[tuple[int, str]], occurrence: int = 0) -> str:
    """Generate the hybrid ID of a fragment without an id:: property.

    Args:
        filename: Owning document filename
        headings: (level, title) pairs from root to the fragment itself
        occurrence: Occurrence index of this heading chain in the document

    Returns:
        ID in the form "<filename>#<hash prefix>"
    """
    context = generate_heading_context(headings, occurrence)
    return f"{filename}#{generate_content_hash(context, filename)[:ID_HASH_LENGTH]}"
