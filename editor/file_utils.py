"""File helpers: safe reads, atomic writes, and project-relative paths."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def safe_read(path: str | Path) -> str | None:
    """Return the file's text with line endings untouched, or None when it does not exist."""
    try:
        return Path(path).read_bytes().decode("utf-8")
    except FileNotFoundError:
        return None


def atomic_write(path: str | Path, content: str) -> None:
    """Write content through a temp file in the same directory, then rename."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def is_within(base: str | Path, target: str | Path) -> bool:
    """Check that the resolved target stays inside the base directory."""
    try:
        Path(target).resolve().relative_to(Path(base).resolve())
        return True
    except (ValueError, OSError):
        return False


def relative_to_root(project_root: str | Path, path: str | Path) -> str:
    """Return a POSIX path relative to the project root, or the absolute path outside it."""
    resolved = Path(path).resolve()
    try:
        return resolved.relative_to(Path(project_root).resolve()).as_posix()
    except ValueError:
        return str(resolved)
