"""Realtime message store Protocol and in-memory implementation."""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, Protocol, runtime_checkable

from aegis_notify.core.types import MessageSnapshot

SnapshotCallback = Callable[[list[MessageSnapshot]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class StreamingStore(Protocol):
    """Protocol for the realtime document store.

    ``on_snapshot`` receives cumulative, ordered message lists (most recent
    last) for the group every time the conversation changes.
    """

    def subscribe(
        self,
        group_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...


class _Listener:
    def __init__(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        self.on_snapshot = on_snapshot
        self.on_error = on_error


class InMemoryStreamingStore:
    """In-memory store that keeps each group's message list and pushes
    snapshots to subscribed listeners synchronously."""

    def __init__(self) -> None:
        self._messages: dict[str, list[MessageSnapshot]] = defaultdict(list)
        self._listeners: dict[str, list[_Listener]] = defaultdict(list)
        self._refused: dict[str, Exception] = {}

    def subscribe(
        self,
        group_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        if group_id in self._refused:
            raise self._refused[group_id]
        listener = _Listener(on_snapshot, on_error)
        self._listeners[group_id].append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(group_id, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def publish(self, group_id: str, message: MessageSnapshot) -> None:
        """Add or replace ``message`` and notify listeners of the new snapshot.

        A message with an id already present supersedes the earlier version
        in place.
        """
        messages = self._messages[group_id]
        for i, existing in enumerate(messages):
            if existing.id == message.id:
                messages[i] = message
                break
        else:
            messages.append(message)
        self.emit(group_id)

    def emit(self, group_id: str) -> None:
        """Re-deliver the current snapshot of ``group_id`` to its listeners."""
        snapshot = list(self._messages[group_id])
        for listener in list(self._listeners.get(group_id, [])):
            listener.on_snapshot(snapshot)

    def fail(self, group_id: str, error: Exception) -> None:
        """Deliver ``error`` to every listener of ``group_id``."""
        for listener in list(self._listeners.get(group_id, [])):
            listener.on_error(error)

    def refuse(self, group_id: str, error: Exception) -> None:
        """Make future ``subscribe`` calls for ``group_id`` raise ``error``."""
        self._refused[group_id] = error

    def listener_count(self, group_id: str | None = None) -> int:
        if group_id is not None:
            return len(self._listeners.get(group_id, []))
        return sum(len(v) for v in self._listeners.values())
