"""Workspace path operations for specification documents.

This module provides utilities for locating GPSpec documents inside a
workspace directory and for normalising the paths that identify them.
"""

import os
import re
from pathlib import Path


SPEC_SUFFIX = ".gpspec.md"

_SPEC_FILE_RE = re.compile(r"\.gpspec\.md$", re.IGNORECASE)

# Directories never scanned for specification documents
IGNORED_DIRS = {".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv"}


def is_spec_file(path: str | Path) -> bool:
    """Check if a path names a specification document.

    Args:
        path: File path (string or Path)

    Returns:
        True if the file name ends with .gpspec.md (case-insensitive)
    """
    return bool(_SPEC_FILE_RE.search(str(path)))


def normalize_path(path: str | Path) -> str:
    """Normalise a path into the canonical filename string.

    Expands ``~``, makes the path absolute and collapses ``..`` segments.
    Symlinks are not resolved so the result matches what editors report.

    Args:
        path: File path (string or Path)

    Returns:
        Absolute, normalised path string
    """
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


def spec_path_for(path: str | Path) -> Path:
    """Get the specification document path that would describe a file.

    Args:
        path: Referenced file (e.g., src/util.ts)

    Returns:
        Path of the sibling spec document (e.g., src/util.gpspec.md)
    """
    path = Path(path)
    stem = path.name.split(".", 1)[0] or path.name
    return path.parent / f"{stem}{SPEC_SUFFIX}"


class WorkspacePaths:
    """Utility class for workspace path operations.

    Attributes:
        root: Root path of the workspace directory
    """

    def __init__(self, root: Path):
        """Initialize with workspace root path.

        Args:
            root: Path to workspace directory

        Raises:
            ValueError: If root doesn't exist or isn't a directory
        """
        if not root.exists():
            raise ValueError(f"Workspace path does not exist: {root}")
        if not root.is_dir():
            raise ValueError(f"Workspace path is not a directory: {root}")

        self.root = root

    def templates_dir(self, name: str = ".gptools") -> Path:
        """Get the directory holding workspace prompt templates.

        Args:
            name: Directory name relative to the root (or an absolute path)

        Returns:
            Path to the templates directory (may not exist yet)
        """
        return self.root / Path(name).expanduser()

    def list_spec_files(self) -> list[Path]:
        """List all specification documents below the root.

        Hidden and vendored directories are skipped.

        Returns:
            List of document paths, sorted by path
        """
        found = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(
                d for d in dirnames if d not in IGNORED_DIRS and not d.startswith(".")
            )
            for filename in filenames:
                if is_spec_file(filename):
                    found.append(Path(dirpath) / filename)
        return sorted(found)
