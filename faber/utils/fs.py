"""Filesystem helpers returning tagged results instead of raising."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from faber.extensions.errors import Err, FsError, NotFoundError, Ok, Result


def _fs_error(path: Path, e: OSError) -> FsError:
    return FsError(path=str(path), message=e.strerror or str(e))


def read_text(path: Path) -> Result[str, NotFoundError | FsError]:
    """Read a UTF-8 file; a missing file is ``not_found``, other failures ``fs``."""
    try:
        return Ok(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(NotFoundError(id=str(path)))
    except UnicodeDecodeError as e:
        return Err(FsError(path=str(path), message=str(e)))
    except OSError as e:
        return Err(_fs_error(path, e))


def ensure_dir(path: Path) -> Result[None, FsError]:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Err(_fs_error(path, e))
    return Ok(None)


def write_text(path: Path, content: str) -> Result[None, FsError]:
    """Write a UTF-8 file, creating parent directories."""
    created = ensure_dir(path.parent)
    if isinstance(created, Err):
        return created
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        return Err(_fs_error(path, e))
    return Ok(None)


def write_text_atomic(path: Path, content: str) -> Result[None, FsError]:
    """Write through a temporary file in the same directory, then rename."""
    created = ensure_dir(path.parent)
    if isinstance(created, Err):
        return created

    tmp_name: str | None = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        return Err(_fs_error(path, e))
    return Ok(None)


def copy_tree(source: Path, destination: Path, ignore: tuple[str, ...] = ()) -> Result[int, FsError]:
    """Copy the contents of ``source`` into ``destination``.

    Entries named in ``ignore`` are skipped at any depth. Files present only
    in ``destination`` are left in place and not counted.

    Returns:
        Number of files copied from ``source``.
    """
    created = ensure_dir(destination)
    if isinstance(created, Err):
        return created

    copied = 0
    try:
        for item in sorted(source.rglob("*")):
            relative = item.relative_to(source)
            if any(part in ignore for part in relative.parts) or not item.is_file():
                continue
            target = destination / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, target)
            copied += 1
    except OSError as e:
        return Err(FsError(path=str(source), message=e.strerror or str(e)))
    return Ok(copied)


def remove_tree(path: Path) -> Result[None, FsError]:
    if not path.exists():
        return Ok(None)
    try:
        shutil.rmtree(path)
    except OSError as e:
        return Err(_fs_error(path, e))
    return Ok(None)


def remove_file(path: Path) -> Result[bool, FsError]:
    """Delete a file if present; ``Ok(True)`` when something was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return Ok(False)
    except OSError as e:
        return Err(_fs_error(path, e))
    return Ok(True)
