"""Small cache whose entries are invalidated by a file's modification time."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Hashable


def file_stamp(path: str | Path) -> int | None:
    """Return the file's mtime in nanoseconds, or None when it is unreadable."""
    try:
        return Path(path).stat().st_mtime_ns
    except OSError:
        return None


class MtimeCache:
    """Maps a key to ``(stamp, value)`` and checks the stamp on every lookup.

    Internal state:
        _entries: dict mapping key -> (stamp, value)
        _lock: threading.Lock guarding _entries
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, tuple[int, Any]] = {}
        self._lock = threading.Lock()

    def lookup(self, key: Hashable, stamp_path: str | Path) -> tuple[bool, Any]:
        """Return ``(hit, value)``; a changed or missing file evicts the entry."""
        stamp = file_stamp(stamp_path)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False, None
            if stamp is None or entry[0] != stamp:
                del self._entries[key]
                return False, None
            return True, entry[1]

    def store(self, key: Hashable, stamp_path: str | Path, value: Any) -> None:
        stamp = file_stamp(stamp_path)
        if stamp is None:
            return
        with self._lock:
            self._entries[key] = (stamp, value)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
