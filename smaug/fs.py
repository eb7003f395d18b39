"""Filesystem helpers for staging and reconciling project trees."""
from __future__ import annotations

from pathlib import Path
import shutil


def copy_directory(source: Path, destination: Path) -> None:
    """Mirror ``source`` into ``destination``, overwriting colliding files.

    Missing parents of ``destination`` are created. The copy is not atomic:
    a failure part way through leaves a partially populated destination.
    """

    if not source.is_dir():
        if source.exists():
            raise NotADirectoryError(f"Not a directory: {source}")
        raise FileNotFoundError(f"Directory not found: {source}")
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)


def ensure_removed(path: Path) -> None:
    """Remove ``path`` and everything below it; a missing path is a no-op."""

    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
        return
    if not path.exists():
        return
    shutil.rmtree(path)
