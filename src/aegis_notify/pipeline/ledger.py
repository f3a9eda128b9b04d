"""In-memory record of messages already evaluated for notification."""

from __future__ import annotations

import asyncio


class DedupLedger:
    """Tracks (group, message) pairs that need no further evaluation.

    Callers hold ``lock(group_id)`` around check, evaluate and mark so that
    overlapping snapshots of one group are evaluated one after another.
    """

    def __init__(self) -> None:
        self._processed: set[tuple[str, str]] = set()
        self._locks: dict[str, asyncio.Lock] = {}
        self._closed = False

    def lock(self, group_id: str) -> asyncio.Lock:
        lock = self._locks.get(group_id)
        if lock is None:
            lock = self._locks[group_id] = asyncio.Lock()
        return lock

    def should_process(self, group_id: str, message_id: str) -> bool:
        if self._closed:
            return False
        return (group_id, message_id) not in self._processed

    def mark_processed(self, group_id: str, message_id: str) -> None:
        if self._closed:
            return
        self._processed.add((group_id, message_id))

    def close(self) -> None:
        """Release the ledger; later marks are ignored."""
        self._closed = True
        self._processed.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def count(self) -> int:
        return len(self._processed)
