"""Refinement edits: insert a user note as a list item at a fragment's end."""

from gpspec_outline import Fragment


def format_note(note: str) -> str:
    """
    Collapse a free-text note to a single list-item body.

    Raises:
        ValueError: If the note is blank
    """
    collapsed = " ".join(note.split())
    if not collapsed:
        raise ValueError("Refinement note is empty")
    return collapsed


def apply_refinement(text: str, fragment: Fragment, note: str) -> str:
    """
    Insert "- <note>" into a document at the fragment's end line.

    The fragment's end position is exclusive and excludes trailing blank
    lines, so the new item lands directly after the fragment's last line.

    Args:
        text: Current document text (the text the fragment was parsed from)
        fragment: Fragment being refined
        note: User's note

    Returns:
        New document text

    Raises:
        ValueError: If the note is blank or the end line is past the document

    Example:
        >>> apply_refinement("# A\\n- one\\n", fragment, "two")
        '# A\\n- one\\n- two\\n'
    """
    item = f"- {format_note(note)}"
    lines = text.split("\n")
    line = fragment.end_pos[0]
    if line < 0 or line > len(lines):
        raise ValueError(
            f"Fragment end line {line} is outside the document ({len(lines)} lines)"
        )
    lines.insert(line, item)
    return "\n".join(lines)
