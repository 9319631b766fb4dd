"""Modification-time bookkeeping for specification documents."""

from pathlib import Path


class FileMonitor:
    """
    Remember when each document was last read or written.

    The document store records a file when it reads it; atomic_write asks
    is_modified() before overwriting, so a refinement never clobbers an edit
    made by another program in the meantime.

    Example:
        >>> monitor = FileMonitor()
        >>> monitor.record(Path("app.gpspec.md"))
        >>> monitor.is_modified(Path("app.gpspec.md"))
        False
    """

    def __init__(self) -> None:
        self._mtimes: dict[Path, float] = {}

    def record(self, path: Path) -> None:
        """
        Remember the file's current modification time.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        self._mtimes[path] = path.stat().st_mtime

    # Same operation, named for the after-write / after-reload call sites
    refresh = record

    def is_tracked(self, path: Path) -> bool:
        return Path(path) in self._mtimes

    def is_modified(self, path: Path) -> bool:
        """
        True if the file changed since it was recorded, or was never recorded.

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        path = Path(path)
        mtime = path.stat().st_mtime
        return self._mtimes.get(path) != mtime

    def forget(self, path: Path) -> None:
        self._mtimes.pop(Path(path), None)
