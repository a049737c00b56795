"""Wrappers for text file I/O with consistent encoding (UTF-8) and atomic replacement."""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import Any

PathLike = Path | str


def read_text(path: PathLike, errors: str = "strict", **kwargs: Any) -> str:
    """Read path as text with UTF-8 encoding. Forwards extra kwargs to Path.read_text."""
    p = path if isinstance(path, Path) else Path(path)
    return p.read_text(encoding="utf-8", errors=errors, **kwargs)


def write_text(path: PathLike, text: str, **kwargs: Any) -> None:
    """Write text to path with UTF-8 encoding. Forwards extra kwargs to Path.write_text."""
    p = path if isinstance(path, Path) else Path(path)
    p.write_text(text, encoding="utf-8", **kwargs)


def _target_mode(path: Path) -> int:
    """Permission bits of the file at *path*, or the umask default for a new file."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_temp(path: PathLike, text: str) -> Path:
    """Write *text* to a hidden temp file beside *path* and return the temp path.

    The caller finishes the write with :func:`os.replace`. Splitting the two
    steps lets several files be staged before any of them becomes visible.
    """
    p = path if isinstance(path, Path) else Path(path)
    fd, temp_path = tempfile.mkstemp(dir=p.parent, prefix=f".{p.stem}_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        # mkstemp always creates 0600; give the file the mode a plain write would.
        os.chmod(temp_path, _target_mode(p))
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise
    return Path(temp_path)


def write_atomic(path: PathLike, text: str) -> None:
    """Replace *path* with *text* all-or-nothing (temp file + rename)."""
    p = path if isinstance(path, Path) else Path(path)
    temp = write_temp(p, text)
    try:
        os.replace(temp, p)
    except BaseException:
        temp.unlink(missing_ok=True)
        raise
