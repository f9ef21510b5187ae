"""Read a single project file for preview."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from . import config
from .models import Payload

logger = logging.getLogger(__name__)


class FileReadError(Exception):
    """Base class for content-read failures."""


class FileNotFoundInProject(FileReadError):
    pass


class FileTooLarge(FileReadError):
    pass


class PathOutsideProject(FileReadError):
    pass


@dataclass
class FileContent(Payload):
    content: str
    file_path: str
    size: int


def read_project_file(
    file_path: str,
    project_root: Optional[str] = None,
    max_bytes: int = config.MAX_READ_BYTES,
) -> FileContent:
    """Return the text of *file_path*.

    Relative paths are taken from *project_root*.  When a root is given
    the path, with symlinks followed, must stay inside it.
    """
    if not file_path:
        raise FileReadError("File path is required")

    root = Path(os.path.abspath(project_root)) if project_root else None
    candidate = Path(file_path)
    if not candidate.is_absolute() and root is not None:
        candidate = root / candidate
    path = Path(os.path.normpath(os.path.abspath(candidate)))

    if root is not None:
        try:
            path.resolve().relative_to(root.resolve())
        except ValueError:
            raise PathOutsideProject(f"Path is outside the project: {file_path}") from None

    if not path.is_file():
        raise FileNotFoundInProject(f"File not found: {file_path}")

    size = path.stat().st_size
    if size > max_bytes:
        raise FileTooLarge(f"File too large to display ({size} bytes, limit {max_bytes})")

    logger.debug("Reading %s (%d bytes)", path, size)
    return FileContent(
        content=path.read_text(encoding="utf-8", errors="replace"),
        file_path=str(path),
        size=size,
    )
