"""Atomic, conflict-checked writes of specification documents."""

import os
from pathlib import Path
from typing import Optional

from specprompt.services.exceptions import FileModifiedError
from specprompt.services.file_monitor import FileMonitor
from specprompt.utils.logging import get_logger


logger = get_logger(__name__)


def _check_unchanged(path: Path, monitor: Optional[FileMonitor], stage: str) -> None:
    if monitor is not None and monitor.is_modified(path):
        raise FileModifiedError(str(path), f"Specification changed on disk ({stage} check)")


def atomic_write(
    path: Path,
    content: str,
    file_monitor: Optional[FileMonitor] = None
) -> None:
    """
    Replace a file's content through a temporary sibling and a rename.

    With a monitor, an existing file is checked for external changes twice:
    before the temporary file is written and again right before the rename.
    New files are created without checks. Afterwards the monitor holds the
    new modification time.

    Args:
        path: Target file path
        content: Full new content
        file_monitor: Monitor that recorded the file when it was read

    Raises:
        FileModifiedError: If the file changed since the monitor recorded it
        OSError: On file I/O errors
    """
    path = Path(path)
    monitor = file_monitor if path.exists() else None
    _check_unchanged(path, monitor, "early")

    temp_path = path.with_name(f".{path.name}.tmp.{os.getpid()}")
    try:
        temp_path.write_text(content, encoding="utf-8")
        with open(temp_path, "rb+") as f:
            os.fsync(f.fileno())

        _check_unchanged(path, monitor, "late")
        os.replace(temp_path, path)
    except FileModifiedError:
        temp_path.unlink(missing_ok=True)
        raise
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        logger.error("atomic_write_failed", path=str(path), error=str(e))
        raise

    if file_monitor is not None:
        file_monitor.refresh(path)
    logger.debug("atomic_write_success", path=str(path), size=len(content))
