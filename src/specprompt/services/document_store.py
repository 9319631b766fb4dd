"""Document store: open buffers over the file system.

The core never touches the disk directly. It reads, writes and saves through
a DocumentStore, so an editor integration can plug in its own buffers. The
bundled WorkspaceDocumentStore keeps in-memory buffers for "open" documents
and persists them with atomic writes.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from gpspec_outline import normalize_path

from specprompt.services.file_monitor import FileMonitor
from specprompt.services.file_operations import atomic_write
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class OpenDocument:
    """Snapshot of an open document buffer."""

    path: str
    text: str
    is_dirty: bool


class DocumentStore(Protocol):
    """Collaborator interface for reading and persisting documents."""

    def read_text(self, filename: str) -> str:
        ...

    def write_text(self, filename: str, text: str) -> None:
        ...

    async def save_all_open_documents(self) -> None:
        ...

    def list_open_documents(self) -> list[OpenDocument]:
        ...


@dataclass
class _Buffer:
    text: str
    saved_text: str

    @property
    def is_dirty(self) -> bool:
        return self.text != self.saved_text


class WorkspaceDocumentStore:
    """
    File-system document store with in-memory open buffers.

    Reading an open document returns its buffer (including unsaved edits);
    reading any other file goes to disk. Writes are atomic and refuse to
    overwrite a file that changed on disk since it was last read.

    Example:
        >>> store = WorkspaceDocumentStore()
        >>> store.open("app.gpspec.md")
        >>> store.edit("app.gpspec.md", "# App\\n- new item")
        >>> [d.is_dirty for d in store.list_open_documents()]
        [True]
    """

    def __init__(self, file_monitor: Optional[FileMonitor] = None):
        """
        Initialize store.

        Args:
            file_monitor: Monitor for concurrent modification detection
                (a fresh one is created if omitted)
        """
        self.file_monitor = file_monitor or FileMonitor()
        self._buffers: dict[str, _Buffer] = {}

    def open(self, filename: str | Path) -> OpenDocument:
        """
        Open a document into a buffer (no-op if already open).

        Args:
            filename: Path of the document

        Returns:
            Snapshot of the buffer

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        key = normalize_path(filename)
        if key not in self._buffers:
            text = self._read_disk(key)
            self._buffers[key] = _Buffer(text=text, saved_text=text)
            logger.debug("document_opened", path=key)
        return self._snapshot(key)

    def edit(self, filename: str | Path, text: str) -> OpenDocument:
        """
        Replace the text of an open buffer without saving it.

        Opens the document first if needed.

        Args:
            filename: Path of the document
            text: New buffer text

        Returns:
            Snapshot of the buffer
        """
        key = normalize_path(filename)
        if key not in self._buffers:
            self.open(key)
        self._buffers[key].text = text
        return self._snapshot(key)

    def close(self, filename: str | Path) -> None:
        """Discard a buffer (unsaved edits are lost)."""
        self._buffers.pop(normalize_path(filename), None)

    def get_open_document(self, filename: str | Path) -> Optional[OpenDocument]:
        """Get the snapshot of an open buffer, or None if not open."""
        key = normalize_path(filename)
        if key not in self._buffers:
            return None
        return self._snapshot(key)

    def read_text(self, filename: str | Path) -> str:
        """
        Read document text, preferring an open buffer.

        Raises:
            FileNotFoundError: If the document is neither open nor on disk
        """
        key = normalize_path(filename)
        if key in self._buffers:
            return self._buffers[key].text
        return self._read_disk(key)

    def write_text(self, filename: str | Path, text: str) -> None:
        """
        Persist text to disk, updating the buffer if the document is open.

        Raises:
            FileModifiedError: If the file changed on disk since it was read
        """
        key = normalize_path(filename)
        atomic_write(Path(key), text, self.file_monitor)
        if key in self._buffers:
            self._buffers[key] = _Buffer(text=text, saved_text=text)
        logger.info("document_written", path=key, size=len(text))

    async def save_all_open_documents(self) -> None:
        """Persist every dirty buffer."""
        for key, buffer in self._buffers.items():
            if buffer.is_dirty:
                atomic_write(Path(key), buffer.text, self.file_monitor)
                buffer.saved_text = buffer.text
                logger.info("document_saved", path=key)

    def list_open_documents(self) -> list[OpenDocument]:
        """Snapshots of all open buffers, in the order they were opened."""
        return [self._snapshot(key) for key in self._buffers]

    def _snapshot(self, key: str) -> OpenDocument:
        buffer = self._buffers[key]
        return OpenDocument(path=key, text=buffer.text, is_dirty=buffer.is_dirty)

    def _read_disk(self, key: str) -> str:
        path = Path(key)
        text = path.read_text(encoding="utf-8")
        self.file_monitor.record(path)
        return text
