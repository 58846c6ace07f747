"""
File Operations
===============

Conflict-safe file moves shared by batch organizing, monitoring and undo.
Never overwrites: a taken name gets a ``name (N).ext`` suffix. Moves into the
same destination directory are serialized so two concurrent files never
resolve to the same generated name.
"""

import os
import shutil
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

from sortify.actions.conflict_resolver import DEFAULT_MAX_ATTEMPTS, resolve_name
from sortify.utils.exceptions import (
    FileProcessingError,
    NotFound,
    PermissionDenied,
)
from sortify.utils.logging_config import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


@dataclass
class MoveOutcome:
    """Result of one successful move.

    Attributes:
        original_path: Where the file was before the move.
        resolved_destination_path: Where it ended up (never an overwrite).
        category: Category the file was sorted into.
        timestamp: When the move completed.
    """
    original_path: Path
    resolved_destination_path: Path
    category: str
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def file_name(self) -> str:
        return self.original_path.name

    @property
    def actual_file_name(self) -> str:
        return self.resolved_destination_path.name

    @property
    def renamed(self) -> bool:
        """True if a suffix was added to avoid a collision."""
        return self.actual_file_name != self.file_name

    def to_dict(self) -> dict:
        return {
            "original_path": str(self.original_path),
            "resolved_destination_path": str(self.resolved_destination_path),
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
            "renamed": self.renamed,
        }


@dataclass
class UndoResult:
    """Result of an undo move."""
    resolved_path: Path
    renamed: bool = False

    def to_dict(self) -> dict:
        return {"resolved_path": str(self.resolved_path), "renamed": self.renamed}


class RecentWrites:
    """Short-lived set of paths written by the engine.

    Watchers consult it to ignore events caused by the engine's own moves.
    """

    def __init__(self, ttl_seconds: float = 5.0):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(path: PathLike) -> str:
        return os.path.normcase(os.path.abspath(str(path)))

    def _purge(self, now: float) -> None:
        expired = [key for key, deadline in self._entries.items() if deadline <= now]
        for key in expired:
            del self._entries[key]

    def add(self, path: PathLike) -> None:
        now = time.monotonic()
        with self._lock:
            self._purge(now)
            self._entries[self._key(path)] = now + self.ttl_seconds

    def __contains__(self, path: PathLike) -> bool:
        now = time.monotonic()
        with self._lock:
            self._purge(now)
            return self._key(path) in self._entries


class MoveEngine:
    """Conflict-safe move primitive.

    One lock per destination directory guards the collision check and the
    move itself.
    """

    def __init__(
        self,
        max_collision_attempts: int = DEFAULT_MAX_ATTEMPTS,
        self_write_ttl_seconds: float = 5.0,
    ):
        """Initialize the engine.

        Args:
            max_collision_attempts: Upper bound of the numbered-suffix search.
            self_write_ttl_seconds: How long written paths stay in
                ``recent_writes``.
        """
        self.max_collision_attempts = max_collision_attempts
        self.recent_writes = RecentWrites(self_write_ttl_seconds)
        self._dir_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, directory: Path) -> threading.Lock:
        key = os.path.normcase(os.path.abspath(str(directory)))
        with self._locks_guard:
            lock = self._dir_locks.get(key)
            if lock is None:
                lock = self._dir_locks[key] = threading.Lock()
            return lock

    @staticmethod
    def _wrap_os_error(error: OSError, path: Path, action: str) -> FileProcessingError:
        if isinstance(error, FileNotFoundError):
            return NotFound(f"{action}: file not found", file_path=str(path), cause=error)
        if isinstance(error, PermissionError):
            return PermissionDenied(f"{action}: permission denied", file_path=str(path), cause=error)
        return FileProcessingError(f"{action}: {error}", file_path=str(path), cause=error)

    def was_recently_written(self, path: PathLike) -> bool:
        return path in self.recent_writes

    def move(
        self,
        source: PathLike,
        destination_dir: PathLike,
        new_name: Optional[str] = None
    ) -> Path:
        """Move a file into a directory without overwriting anything.

        Args:
            source: Source file path.
            destination_dir: Destination directory, created if missing.
            new_name: Desired file name (defaults to the source name).

        Returns:
            Final path of the moved file.

        Raises:
            NotFound: If the source does not exist.
            PermissionDenied: If the OS refuses access.
            CollisionExhausted: If no free name is found.
            FileProcessingError: For any other OS failure.
        """
        source = Path(source)
        dest_dir = Path(destination_dir)
        filename = new_name or source.name

        if not source.exists():
            raise NotFound("Source file does not exist", file_path=str(source))
        if source.is_dir():
            raise FileProcessingError("Source is a directory", file_path=str(source))

        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise self._wrap_os_error(e, dest_dir, "Cannot create destination directory")

        # Already in place
        if source.parent.resolve() == dest_dir.resolve() and source.name == filename:
            return source

        with self._lock_for(dest_dir):
            try:
                existing = set(os.listdir(dest_dir))
            except OSError as e:
                raise self._wrap_os_error(e, dest_dir, "Cannot list destination directory")

            name = resolve_name(filename, existing, self.max_collision_attempts)
            dest_path = dest_dir / name
            # Another process may have taken the name since the listing
            while os.path.lexists(dest_path):
                existing.add(name)
                name = resolve_name(filename, existing, self.max_collision_attempts, start_after=name)
                dest_path = dest_dir / name

            try:
                shutil.move(str(source), str(dest_path))
            except OSError as e:
                raise self._wrap_os_error(e, source, "Failed to move file")

            self.recent_writes.add(dest_path)

        logger.info(f"Moved: {source.name} -> {dest_path}", extra={"file_path": str(dest_path)})
        return dest_path

    def move_to_category(self, source: PathLike, root: PathLike, category: str) -> MoveOutcome:
        """Move a file into ``root / category``.

        Returns:
            The MoveOutcome of the move.
        """
        source = Path(source)
        resolved = self.move(source, Path(root) / category)
        return MoveOutcome(
            original_path=source,
            resolved_destination_path=resolved,
            category=category,
        )

    def undo(self, source_path: PathLike, target_path: PathLike) -> UndoResult:
        """Move a file back to ``target_path`` through the same primitive.

        If the target name is taken, the file lands on a renamed variant and
        ``renamed`` is set; this is not a failure.

        Args:
            source_path: Current location of the file (where it was moved to).
            target_path: Location to restore it to (where it came from).
        """
        target = Path(target_path)
        resolved = self.move(source_path, target.parent, new_name=target.name)
        renamed = resolved.name != target.name
        if renamed:
            logger.info(f"Undo target occupied, restored as {resolved.name}")
        return UndoResult(resolved_path=resolved, renamed=renamed)
