from __future__ import annotations

import uuid
from threading import Event, Lock

from app.core.exceptions import InvalidStateError


class BatchRegistry:
    """Process-local cancellation handles for running auto-assign batches."""

    def __init__(self) -> None:
        self._events: dict[str, Event] = {}
        self._lock = Lock()

    def start(self, batch_id: str | None = None) -> tuple[str, Event]:
        key = batch_id or str(uuid.uuid4())
        with self._lock:
            if key in self._events:
                raise InvalidStateError(f"Auto-assign batch {key} is already running", details={"batch_id": key})
            event = self._events[key] = Event()
        return key, event

    def cancel(self, batch_id: str) -> bool:
        with self._lock:
            event = self._events.get(batch_id)
        if event is None:
            return False
        event.set()
        return True

    def finish(self, batch_id: str) -> None:
        with self._lock:
            self._events.pop(batch_id, None)

    def running(self) -> list[str]:
        with self._lock:
            return sorted(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


batch_registry = BatchRegistry()
