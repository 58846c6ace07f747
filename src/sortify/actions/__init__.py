"""Actions module for file operations."""

from .file_operations import MoveEngine, MoveOutcome, UndoResult, RecentWrites
from .conflict_resolver import resolve_name, split_name
from .organizer import BatchOrganizer, OrganizeResult, FileFailure, organize_one
from .history_tracker import HistoryTracker, HistoryEntry

__all__ = [
    "MoveEngine",
    "MoveOutcome",
    "UndoResult",
    "RecentWrites",
    "resolve_name",
    "split_name",
    "BatchOrganizer",
    "OrganizeResult",
    "FileFailure",
    "organize_one",
    "HistoryTracker",
    "HistoryEntry",
]
