"""Monitoring module for filesystem watching."""

from .watcher import DirectoryWatcher, DirectoryEventHandler, DebounceScheduler, FileSnapshot
from .supervisor import MonitorSupervisor, MonitorSession, MonitorState

__all__ = [
    "DirectoryWatcher",
    "DirectoryEventHandler",
    "DebounceScheduler",
    "FileSnapshot",
    "MonitorSupervisor",
    "MonitorSession",
    "MonitorState",
]
