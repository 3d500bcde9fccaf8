"""Lazy enumeration of media files beneath a library root."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from loguru import logger

from soundshelf.core.errors import ScanRootError

SUPPORTED_EXTENSIONS = frozenset(
    {
        ".mp3",
        ".flac",
        ".m4a",
        ".mp4",
        ".aac",
        ".ogg",
        ".oga",
        ".opus",
        ".wav",
        ".wma",
        ".aiff",
        ".aif",
        ".ape",
        ".wv",
        ".mpc",
    }
)


@dataclass(frozen=True)
class FileDescriptor:
    """A walked media file: its path, size in bytes and POSIX mtime."""

    path: str
    size: int
    modified_time: float


def is_media_file(name: str) -> bool:
    return Path(name).suffix.lower() in SUPPORTED_EXTENSIONS


def _check_root(root: str) -> None:
    if not os.path.exists(root):
        raise ScanRootError(root, "directory not found")
    if not os.path.isdir(root):
        raise ScanRootError(root, "not a directory")
    try:
        with os.scandir(root):
            pass
    except OSError as e:
        raise ScanRootError(root, str(e)) from e


def walk_media_files(
    root: str, skipped: Optional[List[str]] = None
) -> Iterator[FileDescriptor]:
    """Yield a FileDescriptor for every media file under ``root``.

    The walk is depth-first over an explicit stack of pending directories, so
    memory grows with tree depth and directory fan-out, never with the number
    of files. Symlinked directories are not descended into, which rules out
    cycles. Symlinked files are reported under the link's own path.

    Directories and entries that cannot be read are logged and skipped. When
    ``skipped`` is given, their paths are appended to it so the caller can
    tell a complete walk from a partial one.

    Raises:
        ScanRootError: If ``root`` is missing, not a directory or unreadable.
            Raised when the generator is first advanced.
    """
    _check_root(root)

    pending: List[str] = [root]
    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            # Unreadable subtree: skip it, keep walking
            logger.warning(f"Skipping unreadable directory {current}: {e}")
            if skipped is not None:
                skipped.append(current)
            continue

        subdirs: List[str] = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                    continue
                if not is_media_file(entry.name) or not entry.is_file():
                    continue
                st = entry.stat()
            except OSError as e:
                logger.warning(f"Skipping unreadable entry {entry.path}: {e}")
                if skipped is not None:
                    skipped.append(entry.path)
                continue
            yield FileDescriptor(
                path=entry.path, size=st.st_size, modified_time=st.st_mtime
            )

        # Reverse so directories are visited in name order
        pending.extend(reversed(subdirs))


def count_media_files(root: str) -> int:
    """Count media files under ``root`` with the same rules as the walk."""
    return sum(1 for _ in walk_media_files(root))
