"""
Directory Watcher
=================

Monitors one directory (non-recursively) for new files and organizes them.
Implements per-file debouncing and settling detection to handle partial
writes, and ignores events caused by the engine's own moves.
"""

import heapq
import itertools
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Callable, Dict, List, Optional, Tuple

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from sortify.actions.file_operations import MoveEngine
from sortify.actions.organizer import organize_one
from sortify.classification.classifier import CategoryClassifier, FileFilter
from sortify.config.settings import WatcherConfig
from sortify.events.publisher import EventPublisher, SOURCE_MONITORING
from sortify.utils.exceptions import SortifyError, WatchSetupFailed
from sortify.utils.logging_config import get_logger, set_correlation_id

logger = get_logger(__name__)

_STOP = object()


def _real(path) -> str:
    # Directory symlinks resolved; some backends report real paths
    return os.path.normcase(os.path.realpath(str(path)))


@dataclass(frozen=True)
class FileSnapshot:
    """Size and modification time of a file at one moment."""
    size: int
    mtime_ns: int

    @classmethod
    def take(cls, path: Path) -> Optional["FileSnapshot"]:
        """Stat a file; None if it is gone or not a regular file."""
        try:
            st = os.stat(path)
        except OSError:
            return None
        if not os.path.isfile(path):
            return None
        return cls(size=st.st_size, mtime_ns=st.st_mtime_ns)


@dataclass
class _Pending:
    path: Path
    seq: int
    first_seen: float
    deadline: float
    generation: int
    snapshot: Optional[FileSnapshot]


class DebounceScheduler:
    """Per-file quiet-interval deadlines served by one thread.

    Each pending file has its own deadline. A new event for the same file
    resets that deadline only. When a deadline passes and the file's size
    and mtime are unchanged since the last event, the file is handed to
    ``on_stable``. Files are released in deadline order, ties broken by
    detection order.
    """

    def __init__(
        self,
        on_stable: Callable[[Path], None],
        quiet_interval: float = 1.0,
        settle_timeout: float = 30.0,
        name: str = "Debounce",
    ):
        """Initialize the scheduler.

        Args:
            on_stable: Called (outside the lock) with each settled file.
            quiet_interval: Seconds a file must stay unchanged.
            settle_timeout: Files still changing after this long are dropped.
            name: Thread name.
        """
        self.on_stable = on_stable
        self.quiet_interval = quiet_interval
        self.settle_timeout = settle_timeout
        self.name = name
        self._pending: Dict[str, _Pending] = {}
        self._heap: List[Tuple[float, int, str, int]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    @staticmethod
    def _key(path) -> str:
        return os.path.normcase(os.path.abspath(str(path)))

    def _push(self, key: str, entry: _Pending) -> None:
        heapq.heappush(self._heap, (entry.deadline, entry.seq, key, entry.generation))
        self._cond.notify()

    def touch(self, path) -> None:
        """Start tracking a file, or reset its deadline if already pending."""
        path = Path(path)
        key = self._key(path)
        now = time.monotonic()
        snapshot = FileSnapshot.take(path)
        with self._cond:
            entry = self._pending.get(key)
            if entry is None:
                entry = _Pending(
                    path=path,
                    seq=next(self._seq),
                    first_seen=now,
                    deadline=now + self.quiet_interval,
                    generation=0,
                    snapshot=snapshot,
                )
                self._pending[key] = entry
                logger.debug(f"Tracking new file: {path.name}")
            else:
                entry.deadline = now + self.quiet_interval
                entry.generation += 1
                entry.snapshot = snapshot
            self._push(key, entry)

    def cancel(self, path) -> bool:
        """Stop tracking a file. Returns True if it was pending."""
        with self._cond:
            return self._pending.pop(self._key(path), None) is not None

    def is_pending(self, path) -> bool:
        with self._cond:
            return self._key(path) in self._pending

    @property
    def pending_count(self) -> int:
        with self._cond:
            return len(self._pending)

    def start(self) -> None:
        with self._cond:
            if self._running:
                return
            self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the thread and forget every pending file."""
        with self._cond:
            self._running = False
            self._pending.clear()
            self._heap.clear()
            self._cond.notify_all()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    def _pop_due(self) -> List[Tuple[str, int, Path]]:
        """Pop every due, current heap entry. Caller holds the lock."""
        due = []
        now = time.monotonic()
        while self._heap and self._heap[0][0] <= now:
            _, _, key, generation = heapq.heappop(self._heap)
            entry = self._pending.get(key)
            if entry is None or entry.generation != generation:
                continue  # stale
            due.append((key, generation, entry.path))
        return due

    def _settle(
        self,
        due: List[Tuple[str, int, Path]],
        snapshots: List[Optional[FileSnapshot]],
    ) -> List[Path]:
        """Compare fresh snapshots with the recorded ones. Caller holds the lock."""
        ready: List[Path] = []
        now = time.monotonic()
        for (key, generation, _), snapshot in zip(due, snapshots):
            entry = self._pending.get(key)
            if entry is None or entry.generation != generation:
                continue  # touched or cancelled while being checked

            if snapshot is None:
                logger.debug(f"Pending file disappeared: {entry.path.name}")
                del self._pending[key]
                continue

            if snapshot != entry.snapshot:
                if now - entry.first_seen >= self.settle_timeout:
                    logger.warning(f"File did not settle, skipping: {entry.path}")
                    del self._pending[key]
                    continue
                entry.snapshot = snapshot
                entry.deadline = now + self.quiet_interval
                entry.generation += 1
                heapq.heappush(self._heap, (entry.deadline, entry.seq, key, entry.generation))
                continue

            del self._pending[key]
            ready.append(entry.path)
        return ready

    def _run(self) -> None:
        while True:
            with self._cond:
                if not self._running:
                    return
                due = self._pop_due()
                if not due:
                    timeout = self._heap[0][0] - time.monotonic() if self._heap else None
                    self._cond.wait(timeout=timeout)
                    continue

            # Stat outside the lock so observer events are never held up
            snapshots = [FileSnapshot.take(path) for _, _, path in due]
            with self._cond:
                if not self._running:
                    return
                ready = self._settle(due, snapshots)

            for path in ready:
                try:
                    self.on_stable(path)
                except Exception as e:
                    logger.error(f"Stable-file callback failed for {path}: {e}", exc_info=True)


class DirectoryEventHandler(FileSystemEventHandler):
    """Translates watchdog events for one directory into scheduler calls.

    Only direct children of ``root`` are considered. Paths the engine wrote
    recently are ignored.
    """

    def __init__(
        self,
        root: Path,
        scheduler: DebounceScheduler,
        file_filter: FileFilter,
        is_suppressed: Callable[[str], bool] = lambda path: False,
        on_root_lost: Optional[Callable[[], None]] = None,
    ):
        super().__init__()
        self.root = _real(root)
        self.scheduler = scheduler
        self.file_filter = file_filter
        self.is_suppressed = is_suppressed
        self.on_root_lost = on_root_lost

    def _in_root(self, path: str) -> bool:
        return _real(os.path.dirname(os.path.abspath(path))) == self.root

    def _is_root(self, path: str) -> bool:
        return _real(path) == self.root

    def _track(self, path: str) -> None:
        if not self._in_root(path):
            return
        if not self.file_filter.is_eligible(path):
            return
        if self.is_suppressed(path):
            logger.debug(f"Ignoring own write: {path}")
            return
        self.scheduler.touch(path)

    def on_created(self, event) -> None:
        """Handle file creation events."""
        if event.is_directory:
            return
        logger.debug(f"File created event: {event.src_path}")
        self._track(event.src_path)

    def on_moved(self, event) -> None:
        """Handle renames: the old name stops being tracked, the new name
        is tracked if it lies in the watched directory."""
        if event.is_directory:
            return
        if self._in_root(event.src_path):
            self.scheduler.cancel(event.src_path)
        logger.debug(f"File moved event: {event.src_path} -> {event.dest_path}")
        self._track(event.dest_path)

    def on_modified(self, event) -> None:
        """Writes to a pending file push its deadline back."""
        if event.is_directory:
            return
        if self.scheduler.is_pending(event.src_path):
            self.scheduler.touch(event.src_path)

    def on_deleted(self, event) -> None:
        """Handle deletions, including removal of the watched directory."""
        if self._is_root(event.src_path):
            logger.error(f"Watched directory removed: {self.root}")
            if self.on_root_lost:
                self.on_root_lost()
            return
        if not event.is_directory and self._in_root(event.src_path):
            self.scheduler.cancel(event.src_path)


class DirectoryWatcher:
    """Watches one directory and organizes files that settle in it.

    Threads: the watchdog observer, one debounce scheduler and one worker
    consuming a bounded queue, so files from this directory are moved one at
    a time in the order they settled.
    """

    def __init__(
        self,
        path_id: str,
        root,
        classifier: CategoryClassifier,
        move_engine: MoveEngine,
        publisher: Optional[EventPublisher] = None,
        config: Optional[WatcherConfig] = None,
        file_filter: Optional[FileFilter] = None,
        move_unmatched: bool = False,
        on_failure: Optional[Callable[[str, WatchSetupFailed], None]] = None,
    ):
        """Initialize the watcher.

        Args:
            path_id: Id of the WatchedPath being monitored.
            root: Directory to watch.
            classifier: Classifier for this path.
            move_engine: Shared move engine.
            publisher: Receives one event per moved file.
            config: Watcher configuration.
            file_filter: Eligibility filter for this path.
            move_unmatched: Move fallback files too.
            on_failure: Called (on a separate thread) if the watch is lost.
        """
        self.path_id = path_id
        self.root = Path(root)
        self.classifier = classifier
        self.move_engine = move_engine
        self.publisher = publisher
        self.config = config or WatcherConfig()
        self.file_filter = file_filter or FileFilter(self.config.ignore_patterns)
        self.move_unmatched = move_unmatched
        self.on_failure = on_failure

        self._queue: Queue = Queue(maxsize=self.config.queue_size)
        self._stop_event = threading.Event()
        self._observer: Optional[Observer] = None
        self._worker: Optional[threading.Thread] = None
        self._failed = False
        self._lock = threading.Lock()

        self.scheduler = DebounceScheduler(
            self._enqueue_stable,
            quiet_interval=self.config.quiet_interval_seconds,
            settle_timeout=self.config.settle_timeout_seconds,
            name=f"Debounce-{path_id}",
        )
        self.handler = DirectoryEventHandler(
            self.root,
            self.scheduler,
            self.file_filter,
            is_suppressed=self.move_engine.was_recently_written,
            on_root_lost=self._handle_root_lost,
        )

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        observer = self._observer
        return observer is not None and observer.is_alive() and not self._stop_event.is_set()

    def start(self) -> "DirectoryWatcher":
        """Start watching.

        Returns:
            self, as the live watch handle.

        Raises:
            WatchSetupFailed: If the directory is missing or the OS refuses
                the watch (e.g. inotify limits).
        """
        with self._lock:
            if self._observer is not None:
                return self
            if not self.root.is_dir():
                raise WatchSetupFailed(
                    "Directory does not exist", path=str(self.root), path_id=self.path_id
                )

            observer = Observer()
            try:
                observer.schedule(self.handler, str(self.root), recursive=False)
                observer.start()
            except OSError as e:
                observer.unschedule_all()
                raise WatchSetupFailed(
                    f"Cannot watch directory: {e}",
                    path=str(self.root),
                    path_id=self.path_id,
                    cause=e,
                )

            self._stop_event.clear()
            self._observer = observer
            self.scheduler.start()
            self._worker = threading.Thread(
                target=self._worker_loop, daemon=True, name=f"Watcher-{self.path_id}"
            )
            self._worker.start()

        logger.info(f"Watching directory: {self.root}", extra={"path_id": self.path_id})
        return self

    def stop(self) -> None:
        """Stop watching and release the OS watch.

        A move already in progress completes; files still pending or queued
        are dropped.
        """
        with self._lock:
            observer, worker = self._observer, self._worker
            if observer is None:
                return
            self._observer = None
            self._worker = None
            self._stop_event.set()

        timeout = self.config.stop_timeout_seconds
        observer.stop()
        if observer is not threading.current_thread():
            observer.join(timeout=timeout)
        self.scheduler.stop(timeout=timeout)

        # Drop queued files and wake the worker
        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                break
        self._queue.put(_STOP)
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=timeout)

        logger.info(f"Stopped watching: {self.root}", extra={"path_id": self.path_id})

    def _enqueue_stable(self, path: Path) -> None:
        # Blocks while the queue is full; gives up once stopping
        while not self._stop_event.is_set():
            try:
                self._queue.put(path, timeout=0.5)
                return
            except Full:
                continue

    def _worker_loop(self) -> None:
        set_correlation_id(self.path_id)
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            self.process_file(item)

    def process_file(self, path: Path) -> None:
        """Classify and move one settled file, reporting errors."""
        if not path.exists():
            logger.debug(f"File no longer exists: {path}")
            return

        try:
            outcome = organize_one(
                path, self.root, self.classifier, self.move_engine, self.move_unmatched
            )
        except SortifyError as e:
            logger.warning(f"Failed to organize {path.name}: {e}", extra={"path_id": self.path_id})
            if self.publisher:
                self.publisher.log(
                    f"Failed to organize {path.name}: {e.message}",
                    "error",
                    file_name=path.name,
                    path_id=self.path_id,
                )
            return

        if outcome is None:
            if self.publisher:
                self.publisher.log(f"New file left in place (no rule matches): {path.name}", "info")
            return

        logger.info(
            f"New file categorized: {path.name} -> {outcome.category}",
            extra={"path_id": self.path_id, "category": outcome.category},
        )
        if self.publisher:
            self.publisher.publish(outcome, self.root, path_id=self.path_id, source=SOURCE_MONITORING)

    def _handle_root_lost(self) -> None:
        with self._lock:
            if self._failed:
                return
            self._failed = True
        error = WatchSetupFailed(
            "Watched directory was removed", path=str(self.root), path_id=self.path_id
        )
        if self.on_failure is None:
            threading.Thread(target=self.stop, daemon=True, name=f"Stop-{self.path_id}").start()
            return
        # Called from the observer thread, which stop() joins; report elsewhere
        threading.Thread(
            target=self.on_failure,
            args=(self.path_id, error),
            daemon=True,
            name=f"Failure-{self.path_id}",
        ).start()
