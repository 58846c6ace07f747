"""
History Tracker
================

Tracks file movement history and provides undo functionality.
Stores history in a JSON file for persistence across sessions.
"""

import json
import threading
import uuid
from pathlib import Path
from typing import Optional, List, Dict
from dataclasses import dataclass, asdict

from sortify.actions.file_operations import MoveEngine, UndoResult
from sortify.events.publisher import FILE_ORGANIZED, SOURCE_MONITORING
from sortify.utils.exceptions import NotFound
from sortify.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class HistoryEntry:
    """Record of a single organized file.

    Attributes:
        id: Unique identifier for this entry.
        file_name: Original file name.
        actual_file_name: Name after conflict resolution.
        original_path: Where the file was before the move.
        moved_to_path: Where the file was moved to.
        category: Category the file was sorted into.
        timestamp: When the move happened (ISO 8601).
        folder_path: The watched root the file belonged to.
        source: "manual" or "monitoring".
    """

    id: str
    file_name: str
    actual_file_name: str
    original_path: str
    moved_to_path: str
    category: str
    timestamp: str
    folder_path: str
    source: str = SOURCE_MONITORING

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        """Create from dictionary, ignoring unknown keys."""
        fields = cls.__dataclass_fields__
        return cls(**{key: value for key, value in data.items() if key in fields})

    @classmethod
    def from_event(cls, payload: dict) -> "HistoryEntry":
        """Create from a ``file-organized`` event payload."""
        return cls(
            id=uuid.uuid4().hex[:12],
            file_name=payload["file_name"],
            actual_file_name=payload["actual_file_name"],
            original_path=payload["original_path"],
            moved_to_path=payload["moved_to_path"],
            category=payload["category"],
            timestamp=payload["timestamp"],
            folder_path=payload["folder_path"],
            source=payload.get("source", SOURCE_MONITORING),
        )


class HistoryTracker:
    """Tracks organized files and provides undo.

    Entries are kept newest first and bounded to ``max_entries``. The
    tracker subscribes to the EventPublisher through ``handle_event``.
    """

    MAX_HISTORY_SIZE = 500

    def __init__(
        self,
        move_engine: MoveEngine,
        history_file: Optional[Path] = None,
        max_entries: int = MAX_HISTORY_SIZE,
    ):
        """Initialize history tracker.

        Args:
            move_engine: Engine used to perform undo moves.
            history_file: Path to history JSON file; None keeps history in
                memory only.
            max_entries: Maximum entries to keep.
        """
        self.move_engine = move_engine
        self.history_file = Path(history_file) if history_file else None
        self.max_entries = max_entries
        self._history: List[HistoryEntry] = []
        self._lock = threading.RLock()
        self._load_history()

    def _load_history(self) -> None:
        """Load history from file."""
        if self.history_file is None or not self.history_file.exists():
            return
        try:
            with open(self.history_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._history = [
                HistoryEntry.from_dict(entry) for entry in data.get("entries", [])
            ][: self.max_entries]
            logger.debug(f"Loaded {len(self._history)} history entries")
        except (json.JSONDecodeError, KeyError, TypeError, OSError) as e:
            logger.warning(f"Error loading history: {e}")
            self._history = []

    def _save_history(self) -> None:
        """Save history to file."""
        if self.history_file is None:
            return
        data = {"entries": [entry.to_dict() for entry in self._history]}
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.history_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Failed to save history to {self.history_file}: {e}")

    def handle_event(self, name: str, payload: dict) -> None:
        """Publisher subscriber: record every ``file-organized`` event."""
        if name == FILE_ORGANIZED:
            self.record(HistoryEntry.from_event(payload))

    def record(self, entry: HistoryEntry) -> HistoryEntry:
        """Add an entry at the front of the history."""
        with self._lock:
            self._history.insert(0, entry)
            del self._history[self.max_entries:]
            self._save_history()
        logger.debug(f"Recorded move: {entry.file_name} -> {entry.moved_to_path}")
        return entry

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        with self._lock:
            for entry in self._history:
                if entry.id == entry_id:
                    return entry
        return None

    def remove(self, entry_id: str) -> bool:
        """Remove an entry by id."""
        with self._lock:
            for index, entry in enumerate(self._history):
                if entry.id == entry_id:
                    del self._history[index]
                    self._save_history()
                    return True
        return False

    def undo(self, entry_id: str) -> UndoResult:
        """Move an entry's file back to where it came from.

        The entry is removed from history once the move succeeds.

        Raises:
            NotFound: Unknown entry, or the organized file no longer exists.
        """
        entry = self.get(entry_id)
        if entry is None:
            raise NotFound(f"History entry not found: {entry_id}", details={"entry_id": entry_id})

        result = self.move_engine.undo(entry.moved_to_path, entry.original_path)
        self.remove(entry_id)
        logger.info(f"Undone: {entry.actual_file_name} -> {result.resolved_path}")
        return result

    def get_recent(self, count: int = 10) -> List[HistoryEntry]:
        """Get recent history entries (newest first)."""
        with self._lock:
            return list(self._history[:count])

    def get_stats(self) -> Dict:
        """Get history statistics."""
        with self._lock:
            categories: Dict[str, int] = {}
            sources: Dict[str, int] = {}
            for entry in self._history:
                categories[entry.category] = categories.get(entry.category, 0) + 1
                sources[entry.source] = sources.get(entry.source, 0) + 1
            return {
                "total_operations": len(self._history),
                "by_category": categories,
                "by_source": sources,
            }

    def clear_history(self) -> None:
        """Clear all history."""
        with self._lock:
            self._history.clear()
            self._save_history()
        logger.info("History cleared")

    def search(self, query: str) -> List[HistoryEntry]:
        """Search history by file name."""
        query_lower = query.lower()
        with self._lock:
            return [
                entry
                for entry in self._history
                if query_lower in entry.file_name.lower()
                or query_lower in entry.actual_file_name.lower()
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)
