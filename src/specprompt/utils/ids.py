"""ID generation utilities for specprompt."""

import re
import uuid


def generate_request_id() -> str:
    """
    Generate random UUID v4 for a generation request.

    Returns:
        UUID string in standard format
    """
    return str(uuid.uuid4())


def slugify(title: str) -> str:
    """
    Turn a human title into a template ID.

    Args:
        title: Free-text title (e.g., "Review My Spec!")

    Returns:
        Lowercase dash-separated slug (e.g., "review-my-spec")

    Raises:
        ValueError: If the title has no usable characters
    """
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    if not slug:
        raise ValueError(f"Cannot derive an id from title: {title!r}")
    return slug
