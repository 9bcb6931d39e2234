"""Per-session mutual exclusion for submissions and status changes.

A session's lock exists only while some thread holds or waits for it, so the
registry stays proportional to the sessions in flight rather than to every
session ever served.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.users = 0


class SessionLocks:
    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, session_id: str) -> _Entry:
        with self._guard:
            entry = self._entries.get(session_id)
            if entry is None:
                entry = _Entry()
                self._entries[session_id] = entry
            entry.users += 1
            return entry

    def _checkin(self, session_id: str, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[session_id]

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        entry = self._checkout(session_id)
        try:
            with entry.lock:
                yield
        finally:
            self._checkin(session_id, entry)


__all__ = ["SessionLocks"]
