"""
Monitor Supervisor
==================

Owns the start/stop lifecycle of one DirectoryWatcher per watched path.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from sortify.events.publisher import EventPublisher, MONITORING_CHANGED, SOURCE_MONITORING
from sortify.monitoring.watcher import DirectoryWatcher
from sortify.registry.paths import PathRegistry, WatchedPath
from sortify.utils.exceptions import NotFound, SortifyError, WatchSetupFailed
from sortify.utils.logging_config import get_logger

logger = get_logger(__name__)

WatcherFactory = Callable[[WatchedPath, Callable[[str, WatchSetupFailed], None]], DirectoryWatcher]


class MonitorState(Enum):
    """Monitoring state of a watched path."""
    STOPPED = "stopped"
    ACTIVE = "active"


@dataclass
class MonitorSession:
    """A live watcher bound to a path id."""
    path_id: str
    watcher: DirectoryWatcher
    started_at: datetime


class MonitorSupervisor:
    """Starts and stops directory watchers, at most one per path.

    Each path has its own lock, so toggling one path never waits on another.
    """

    def __init__(
        self,
        registry: PathRegistry,
        watcher_factory: WatcherFactory,
        publisher: Optional[EventPublisher] = None,
        organizer=None,
    ):
        """Initialize the supervisor.

        Args:
            registry: Registry holding the watched paths.
            watcher_factory: Builds a watcher for a path and failure callback.
            publisher: Receives ``monitoring-changed`` and error events.
            organizer: BatchOrganizer used for ``auto_organize`` paths.
        """
        self.registry = registry
        self.watcher_factory = watcher_factory
        self.publisher = publisher
        self.organizer = organizer
        self._sessions: Dict[str, MonitorSession] = {}
        self._lock = threading.Lock()
        self._path_locks: Dict[str, threading.Lock] = {}

    def _path_lock(self, path_id: str) -> threading.Lock:
        with self._lock:
            lock = self._path_locks.get(path_id)
            if lock is None:
                lock = self._path_locks[path_id] = threading.Lock()
            return lock

    def _notify(self, path_id: str, folder_path: str, active: bool) -> None:
        if self.publisher:
            self.publisher.emit(MONITORING_CHANGED, {
                "path_id": path_id,
                "folder_path": folder_path,
                "is_monitoring": active,
            })

    def state(self, path_id: str) -> MonitorState:
        with self._lock:
            return MonitorState.ACTIVE if path_id in self._sessions else MonitorState.STOPPED

    def is_active(self, path_id: str) -> bool:
        return self.state(path_id) is MonitorState.ACTIVE

    def active_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def start(self, path_id: str) -> bool:
        """Start monitoring a path. No-op if already active.

        Returns:
            True (the path is active).

        Raises:
            NotFound: Unknown path id.
            WatchSetupFailed: The OS watch could not be established; the
                path stays stopped.
        """
        with self._path_lock(path_id):
            started = self._start_locked(path_id)
        if started is not None:
            self._after_start(started)
        return True

    def stop(self, path_id: str) -> bool:
        """Stop monitoring a path. No-op if already stopped.

        Returns:
            False (the path is stopped).
        """
        with self._path_lock(path_id):
            self._stop_locked(path_id)
        return False

    def toggle(self, path_id: str) -> bool:
        """Flip a path between stopped and active.

        The check and the transition happen under the path lock, so two
        concurrent toggles always leave the path where it began.

        Returns:
            The new state (True when active).
        """
        with self._path_lock(path_id):
            if self.is_active(path_id):
                self._stop_locked(path_id)
                return False
            started = self._start_locked(path_id)
        if started is not None:
            self._after_start(started)
        return True

    def _start_locked(self, path_id: str) -> Optional[WatchedPath]:
        """Start a watcher. Caller holds the path lock.

        Returns:
            The watched path if a watcher was started, None if already active.
        """
        if self.is_active(path_id):
            return None

        watched = self.registry.get(path_id)
        watcher = self.watcher_factory(watched, self._on_watch_failure)
        watcher.start()

        started_at = datetime.now()
        with self._lock:
            self._sessions[path_id] = MonitorSession(path_id, watcher, started_at)
            self.registry.set_monitoring(path_id, True, started_at)

        logger.info(f"Monitoring started: {watched.path}", extra={"path_id": path_id})
        self._notify(watched.id, watched.path, True)
        return watched

    def _stop_locked(self, path_id: str) -> None:
        # Session and registry flag are released together, once the watcher is down
        with self._lock:
            session = self._sessions.get(path_id)
        if session is None:
            return
        session.watcher.stop()

        with self._lock:
            del self._sessions[path_id]
            try:
                self.registry.set_monitoring(path_id, False)
            except NotFound:
                # Path removed while its watcher was stopping
                pass

        logger.info(f"Monitoring stopped: {session.watcher.root}", extra={"path_id": path_id})
        self._notify(path_id, str(session.watcher.root), False)

    def _after_start(self, watched: WatchedPath) -> None:
        if watched.auto_organize and self.organizer is not None:
            self._organize_existing(watched)

    def toggle_path(self, path: str) -> bool:
        """Toggle by filesystem path instead of id.

        Raises:
            NotFound: If the path is not registered.
        """
        watched = self.registry.find_by_path(path)
        if watched is None:
            raise NotFound(f"Path is not registered: {path}", file_path=str(path))
        return self.toggle(watched.id)

    def shutdown(self) -> None:
        """Stop every active watcher."""
        for path_id in self.active_ids():
            self.stop(path_id)
        logger.info("All monitors stopped")

    def _organize_existing(self, watched: WatchedPath) -> None:
        try:
            result = self.organizer.organize(
                watched.path, path_id=watched.id, watched_path=watched, source=SOURCE_MONITORING
            )
            logger.info(f"Auto-organized {result.moved_count} existing files in {watched.path}")
        except SortifyError as e:
            logger.warning(f"Auto-organize failed for {watched.path}: {e}")

    def _on_watch_failure(self, path_id: str, error: WatchSetupFailed) -> None:
        logger.error(f"Monitoring failed: {error}", extra={"path_id": path_id})
        if self.publisher:
            self.publisher.log(f"Monitoring stopped: {error.message}", "error", path_id=path_id)
        self.stop(path_id)
