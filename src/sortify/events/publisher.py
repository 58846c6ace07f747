"""
Event Publisher
===============

Turns move outcomes into outbound events. Stats on the owning watched path
are updated synchronously; delivery to subscribers happens on a single
dispatcher thread, so events from one path arrive in the order published.
"""

import threading
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from queue import Queue
from typing import Callable, List, Optional, Union

from sortify.utils.logging_config import get_logger

logger = get_logger(__name__)

FILE_ORGANIZED = "file-organized"
LOG_MESSAGE = "log-message"
MONITORING_CHANGED = "monitoring-changed"

SOURCE_MANUAL = "manual"
SOURCE_MONITORING = "monitoring"

Subscriber = Callable[[str, dict], None]

_STOP = object()


@dataclass
class FileOrganizedEvent:
    """Payload of the ``file-organized`` event."""
    file_name: str
    actual_file_name: str
    category: str
    timestamp: str
    folder_path: str
    original_path: str
    moved_to_path: str
    source: str = SOURCE_MANUAL

    @classmethod
    def from_outcome(
        cls,
        outcome,
        folder_path: Union[str, Path],
        source: str = SOURCE_MANUAL,
    ) -> "FileOrganizedEvent":
        return cls(
            file_name=outcome.file_name,
            actual_file_name=outcome.actual_file_name,
            category=outcome.category,
            timestamp=outcome.timestamp.isoformat(timespec="seconds"),
            folder_path=str(folder_path),
            original_path=str(outcome.original_path),
            moved_to_path=str(outcome.resolved_destination_path),
            source=source,
        )

    def to_dict(self) -> dict:
        return asdict(self)


class EventPublisher:
    """Best-effort, non-blocking event delivery plus stats updates.

    Subscribers are callables taking ``(event_name, payload)``. A failing
    subscriber is logged and does not affect the others.
    """

    def __init__(self, registry=None):
        """Initialize the publisher.

        Args:
            registry: Optional PathRegistry whose stats are updated on publish.
        """
        self.registry = registry
        self._subscribers: List[Subscriber] = []
        self._subscribers_lock = threading.Lock()
        self._queue: Queue = Queue()
        self._thread: Optional[threading.Thread] = None
        self._thread_lock = threading.Lock()
        self._pending = 0
        self._idle = threading.Condition()

    def subscribe(self, callback: Subscriber) -> None:
        with self._subscribers_lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._subscribers_lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the dispatcher thread (idempotent)."""
        with self._thread_lock:
            if self.is_running:
                return
            self._thread = threading.Thread(
                target=self._dispatch_loop, daemon=True, name="EventPublisher"
            )
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Deliver what is queued, then stop the dispatcher thread."""
        with self._thread_lock:
            thread = self._thread
            if thread is None:
                return
            self._queue.put(_STOP)
            self._thread = None
        thread.join(timeout=timeout)

    def _enqueue(self, name: str, payload: dict) -> None:
        with self._idle:
            self._pending += 1
        self.start()
        self._queue.put((name, payload))

    def _dispatch_loop(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            name, payload = item
            try:
                self._deliver(name, payload)
            finally:
                with self._idle:
                    self._pending -= 1
                    if self._pending == 0:
                        self._idle.notify_all()

    def _deliver(self, name: str, payload: dict) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(name, dict(payload))
            except Exception as e:
                logger.error(f"Event subscriber failed on {name}: {e}", exc_info=True)

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every queued event has been delivered.

        Returns:
            False if the timeout elapsed first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def publish(
        self,
        outcome,
        folder_path: Union[str, Path],
        path_id: Optional[str] = None,
        source: str = SOURCE_MANUAL,
    ) -> FileOrganizedEvent:
        """Record stats for a moved file and queue its ``file-organized`` event.

        Args:
            outcome: The completed move.
            folder_path: The watched root the file was organized in.
            path_id: Id of the owning WatchedPath, if registered.
            source: ``manual`` or ``monitoring``.
        """
        if self.registry is not None and path_id is not None:
            self.registry.record_organized(path_id, 1, outcome.timestamp)

        event = FileOrganizedEvent.from_outcome(outcome, folder_path, source)
        self._enqueue(FILE_ORGANIZED, event.to_dict())
        return event

    def log(self, message: str, log_type: str = "info", **fields) -> None:
        """Queue a ``log-message`` event (info, success, warning or error)."""
        payload = {
            "message": message,
            "log_type": log_type,
            "timestamp": datetime.now().isoformat(timespec="seconds"),
        }
        payload.update(fields)
        self._enqueue(LOG_MESSAGE, payload)

    def emit(self, name: str, payload: dict) -> None:
        """Queue an arbitrary named event."""
        self._enqueue(name, dict(payload))
