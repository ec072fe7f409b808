"""Minimal git helpers used by ``faber init``."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from faber.extensions.errors import Err, FsError, Ok, Result

logger = logging.getLogger(__name__)


def git_available() -> bool:
    return shutil.which("git") is not None


def is_git_repo(path: Path) -> bool:
    return (path / ".git").exists()


def git_init(path: Path) -> Result[None, FsError]:
    """Run ``git init`` in ``path``."""
    try:
        subprocess.run(
            ["git", "init", "--quiet"],
            cwd=path,
            check=True,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as e:
        return Err(FsError(path=str(path), message=(e.stderr or "").strip() or "git init failed"))
    except OSError as e:
        return Err(FsError(path=str(path), message=str(e)))

    logger.info("Initialized git repository in %s", path)
    return Ok(None)
