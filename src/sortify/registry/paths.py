"""
Watched Path Registry
=====================

Holds the configured watched paths with their flags and statistics.
Serializes to the persisted camelCase format.
"""

import os
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sortify.config.categories import normalize_extension, validate_category_name
from sortify.utils.exceptions import ConfigError, NotFound
from sortify.utils.logging_config import get_logger

logger = get_logger(__name__)


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        # Older configs stored locale-formatted strings; keep nothing
        logger.debug(f"Ignoring unparseable timestamp: {value!r}")
        return None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec="seconds") if value else None


def normalize_path(path: str) -> str:
    """Absolute, user-expanded, normalized form used for comparisons."""
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


@dataclass
class PathStats:
    """Per-path organization statistics."""
    files_organized: int = 0
    last_organized: Optional[datetime] = None
    monitoring_since: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PathStats":
        data = data or {}
        return cls(
            files_organized=int(data.get("filesOrganized", 0) or 0),
            last_organized=_parse_time(data.get("lastOrganized")),
            monitoring_since=_parse_time(data.get("monitoringSince")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filesOrganized": self.files_organized,
            "lastOrganized": _format_time(self.last_organized),
            "monitoringSince": _format_time(self.monitoring_since),
        }


@dataclass
class WatchedPath:
    """A configured root directory eligible for organize/monitor.

    Attributes:
        id: Stable identifier.
        path: Absolute directory path.
        name: Display name.
        is_monitoring: True while a watcher is live for this path.
        auto_organize: Organize existing files when monitoring starts.
        stats: Organization statistics.
        custom_categories: Per-path category overrides.
        exclude_patterns: Glob patterns of file names to leave alone.
    """
    id: str
    path: str
    name: str
    is_monitoring: bool = False
    auto_organize: bool = False
    stats: PathStats = field(default_factory=PathStats)
    custom_categories: Optional[Dict[str, List[str]]] = None
    exclude_patterns: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatchedPath":
        """Create from the persisted format.

        Monitoring is never resumed from persisted state: ``isMonitoring``
        is reset to False and ``monitoringSince`` cleared.
        """
        if not isinstance(data, dict):
            raise ConfigError("Path entry must be a mapping", config_key="paths", expected_type="dict")
        raw_path = data.get("path")
        if not raw_path or not str(raw_path).strip():
            raise ConfigError("Path entry is missing 'path'", config_key="paths")
        stats = PathStats.from_dict(data.get("stats"))
        stats.monitoring_since = None
        custom = data.get("customCategories")
        if custom:
            custom = {
                validate_category_name(name): [normalize_extension(e) for e in exts]
                for name, exts in custom.items()
            }
        path = normalize_path(raw_path)
        return cls(
            id=str(data.get("id") or uuid.uuid4().hex[:12]),
            path=path,
            name=str(data.get("name") or Path(path).name or path),
            is_monitoring=False,
            auto_organize=bool(data.get("autoOrganize", False)),
            stats=stats,
            custom_categories=custom or None,
            exclude_patterns=list(data.get("excludePatterns") or []) or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "path": self.path,
            "name": self.name,
            "isMonitoring": self.is_monitoring,
            "autoOrganize": self.auto_organize,
            "stats": self.stats.to_dict(),
        }
        if self.custom_categories:
            data["customCategories"] = {k: list(v) for k, v in self.custom_categories.items()}
        if self.exclude_patterns:
            data["excludePatterns"] = list(self.exclude_patterns)
        return data

    def snapshot(self) -> "WatchedPath":
        """Detached copy safe to hand to other threads."""
        return replace(
            self,
            stats=replace(self.stats),
            custom_categories=(
                {k: list(v) for k, v in self.custom_categories.items()}
                if self.custom_categories else None
            ),
            exclude_patterns=list(self.exclude_patterns) if self.exclude_patterns else None,
        )


class PathRegistry:
    """Thread-safe registry of watched paths keyed by id.

    All readers receive snapshots; mutation goes through registry methods.
    """

    def __init__(self, paths: Optional[List[WatchedPath]] = None):
        self._paths: Dict[str, WatchedPath] = {}
        self._lock = threading.RLock()
        for watched in paths or []:
            self._insert(watched)

    @classmethod
    def from_config(cls, entries: Optional[List[Dict[str, Any]]]) -> "PathRegistry":
        """Build from the persisted ``paths`` list."""
        return cls([WatchedPath.from_dict(entry) for entry in entries or []])

    def to_config(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [watched.to_dict() for watched in self._paths.values()]

    def _insert(self, watched: WatchedPath) -> None:
        if watched.id in self._paths:
            raise ConfigError(f"Duplicate path id: {watched.id}", config_key="paths")
        if self._find(watched.path) is not None:
            raise ConfigError(f"Path already registered: {watched.path}", config_key="paths")
        self._paths[watched.id] = watched

    def _find(self, path: str) -> Optional[WatchedPath]:
        target = normalize_path(path)
        for watched in self._paths.values():
            if watched.path == target:
                return watched
        return None

    def _require(self, path_id: str) -> WatchedPath:
        watched = self._paths.get(path_id)
        if watched is None:
            raise NotFound(f"Unknown path id: {path_id}", details={"path_id": path_id})
        return watched

    def add(self, path: str, name: Optional[str] = None, **options) -> WatchedPath:
        """Register a new watched path.

        Raises:
            ConfigError: If the path is empty or already registered.
        """
        if path is None or not str(path).strip():
            raise ConfigError("Path is required", config_key="paths")
        normalized = normalize_path(str(path).strip())
        with self._lock:
            display = (name or "").strip() or Path(normalized).name or f"Path {len(self._paths) + 1}"
            watched = WatchedPath(
                id=uuid.uuid4().hex[:12],
                path=normalized,
                name=display,
                auto_organize=bool(options.get("auto_organize", False)),
                custom_categories=options.get("custom_categories"),
                exclude_patterns=options.get("exclude_patterns"),
            )
            self._insert(watched)
            logger.info(f"Added watched path: {normalized}", extra={"path_id": watched.id})
            return watched.snapshot()

    def remove(self, path_id: str) -> WatchedPath:
        """Unregister a path. The caller stops its watcher first.

        Raises:
            NotFound: For unknown ids.
        """
        with self._lock:
            watched = self._require(path_id)
            del self._paths[path_id]
        logger.info(f"Removed watched path: {watched.path}", extra={"path_id": path_id})
        return watched

    def get(self, path_id: str) -> WatchedPath:
        with self._lock:
            return self._require(path_id).snapshot()

    def find_by_path(self, path: str) -> Optional[WatchedPath]:
        with self._lock:
            watched = self._find(path)
            return watched.snapshot() if watched else None

    def update(self, path_id: str, **changes) -> WatchedPath:
        """Update mutable attributes (name, auto_organize, custom_categories,
        exclude_patterns)."""
        allowed = {"name", "auto_organize", "custom_categories", "exclude_patterns"}
        unknown = set(changes) - allowed
        if unknown:
            raise ConfigError(f"Cannot update fields: {sorted(unknown)}", config_key="paths")
        with self._lock:
            watched = self._require(path_id)
            for key, value in changes.items():
                setattr(watched, key, value)
            return watched.snapshot()

    def all(self) -> List[WatchedPath]:
        with self._lock:
            return [watched.snapshot() for watched in self._paths.values()]

    def monitoring_paths(self) -> List[WatchedPath]:
        with self._lock:
            return [w.snapshot() for w in self._paths.values() if w.is_monitoring]

    def set_monitoring(self, path_id: str, active: bool, since: Optional[datetime] = None) -> None:
        """Flip the monitoring flag; ``monitoring_since`` follows it."""
        with self._lock:
            watched = self._require(path_id)
            watched.is_monitoring = active
            watched.stats.monitoring_since = (since or datetime.now()) if active else None

    def record_organized(self, path_id: str, count: int = 1, when: Optional[datetime] = None) -> None:
        """Increment ``files_organized`` and set ``last_organized``."""
        with self._lock:
            watched = self._paths.get(path_id)
            if watched is None:
                # Path removed while a move was in flight
                logger.debug(f"Stats update for unknown path id {path_id} dropped")
                return
            watched.stats.files_organized += count
            watched.stats.last_organized = when or datetime.now()

    def total_stats(self) -> PathStats:
        """Aggregate statistics over every path.

        ``last_organized`` is the latest across paths; ``monitoring_since``
        the earliest among paths currently monitoring.
        """
        with self._lock:
            total = PathStats()
            for watched in self._paths.values():
                total.files_organized += watched.stats.files_organized
                last = watched.stats.last_organized
                if last and (total.last_organized is None or last > total.last_organized):
                    total.last_organized = last
                since = watched.stats.monitoring_since
                if watched.is_monitoring and since:
                    if total.monitoring_since is None or since < total.monitoring_since:
                        total.monitoring_since = since
            return total

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)
