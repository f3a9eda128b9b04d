"""Pipeline telemetry events.

Every event is written to the module logger. The most recent events are
also kept in memory for inspection and, when a log directory is configured,
appended to a JSONL file (one line per event). File writes happen on a
``QueueListener`` thread so emitting never blocks the event loop.
"""

from __future__ import annotations

import json
import logging
import queue
import uuid
from collections import deque
from datetime import datetime, timezone
from enum import StrEnum
from logging.handlers import QueueListener
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from aegis_notify.core.config import TelemetryConfig

logger = logging.getLogger(__name__)


class PipelineEventType(StrEnum):
    LISTENER_ESTABLISHED = "listener_established"
    LISTENER_ERROR = "listener_error"
    LISTENER_CLOSED = "listener_closed"
    MEMBERSHIP_RESOLUTION_FAILED = "membership_resolution_failed"
    DELIVERY_SUCCEEDED = "delivery_succeeded"
    DELIVERY_FAILED = "delivery_failed"


_WARNING_EVENTS = {
    PipelineEventType.LISTENER_ERROR,
    PipelineEventType.MEMBERSHIP_RESOLUTION_FAILED,
    PipelineEventType.DELIVERY_FAILED,
}


class PipelineEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: PipelineEventType
    group_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class TelemetryLogger:
    """Records pipeline events.

    Args:
        config: TelemetryConfig instance. Defaults to TelemetryConfig() which
            reads from environment variables. With no ``log_dir`` set, events
            are only logged and kept in memory.
    """

    def __init__(self, config: TelemetryConfig | None = None) -> None:
        self._config = config or TelemetryConfig()
        self._events: deque[PipelineEvent] = deque(maxlen=self._config.max_events)
        self._log_path: Path | None = None
        self._queue: queue.SimpleQueue[logging.LogRecord] | None = None
        self._file_handler: logging.FileHandler | None = None
        self._listener: QueueListener | None = None
        if self._config.log_dir:
            log_dir = Path(self._config.log_dir)
            log_dir.mkdir(parents=True, exist_ok=True)
            self._log_path = log_dir / self._config.log_file
            self._file_handler = logging.FileHandler(self._log_path, encoding="utf-8", delay=True)
            self._file_handler.setFormatter(logging.Formatter("%(message)s"))
            self._queue = queue.SimpleQueue()
            self._listener = QueueListener(self._queue, self._file_handler)
            self._listener.start()

    def emit(
        self,
        event_type: PipelineEventType,
        group_id: str | None = None,
        **details: Any,
    ) -> PipelineEvent:
        event = PipelineEvent(event_type=event_type, group_id=group_id, details=details)
        level = logging.WARNING if event_type in _WARNING_EVENTS else logging.INFO
        logger.log(level, "%s group=%s %s", event_type.value, group_id, details)
        self._events.append(event)
        if self._queue is not None and self._listener is not None:
            self._queue.put_nowait(logging.makeLogRecord({
                "name": __name__,
                "levelno": level,
                "levelname": logging.getLevelName(level),
                "msg": event.model_dump_json(),
            }))
        return event

    def query(
        self,
        event_type: PipelineEventType | None = None,
        group_id: str | None = None,
    ) -> list[PipelineEvent]:
        """Return retained events, optionally filtered by type and group."""
        return [
            e for e in self._events
            if (event_type is None or e.event_type == event_type)
            and (group_id is None or e.group_id == group_id)
        ]

    def flush(self) -> None:
        """Block until every queued event has been written to the JSONL file."""
        if self._listener is None:
            return
        self._listener.stop()
        self._listener.start()

    def close(self) -> None:
        """Write out pending events and stop the file writer. Safe to call twice."""
        if self._listener is None:
            return
        self._listener.stop()
        self._listener = None
        if self._file_handler is not None:
            self._file_handler.close()

    def read_log(self) -> list[PipelineEvent]:
        """Load every event persisted to the JSONL file."""
        self.flush()
        if self._log_path is None or not self._log_path.exists():
            return []
        events: list[PipelineEvent] = []
        with open(self._log_path) as fh:
            for line in fh:
                stripped = line.strip()
                if stripped:
                    events.append(PipelineEvent(**json.loads(stripped)))
        return events

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    @property
    def count(self) -> int:
        """Number of events currently retained in memory."""
        return len(self._events)
