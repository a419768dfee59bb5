"""
Atomic file operations for container configuration files.

A configuration file is either fully updated or left untouched: content is
written to a temporary sibling and renamed over the original.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union


def _fsync_directory(directory: Path) -> None:
    try:
        dir_fd = os.open(str(directory), os.O_RDONLY | os.O_DIRECTORY)
    except (OSError, AttributeError):
        # O_DIRECTORY not available on all platforms
        return
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


def atomic_write_text(
    path: Union[str, Path],
    content: str,
    mode: Optional[int] = None,
) -> None:
    """
    Write text content to file atomically.

    Args:
        path: Destination file path
        content: Text content to write
        mode: File permissions. Defaults to the existing file's mode,
            or 0o644 for a new file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if mode is None:
        mode = path.stat().st_mode & 0o777 if path.exists() else 0o644

    # Same directory, so the rename stays on one filesystem
    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
    )

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise

    _fsync_directory(path.parent)


def atomic_append_text(path: Union[str, Path], block: str) -> None:
    """
    Append a text block to an existing file atomically.

    A newline is inserted first when the current content does not end
    with one, so the block always starts on its own line.

    Args:
        path: File to extend (must exist)
        block: Text to append
    """
    path = Path(path)
    current = path.read_text(encoding="utf-8")
    if current and not current.endswith("\n"):
        current += "\n"
    atomic_write_text(path, current + block)


def safe_backup(path: Union[str, Path], backup_suffix: str = ".backup") -> Path:
    """
    Create a backup of a file before modifying.

    An earlier backup with the same name is overwritten.

    Args:
        path: File to backup
        backup_suffix: Suffix appended to the full file name

    Returns:
        Path to backup file
    """
    path = Path(path)
    backup_path = path.with_name(path.name + backup_suffix)

    if path.exists():
        shutil.copy2(path, backup_path)

    return backup_path
