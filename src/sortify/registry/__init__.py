"""Registry of watched paths."""

from .paths import PathRegistry, PathStats, WatchedPath, normalize_path

__all__ = [
    "PathRegistry",
    "PathStats",
    "WatchedPath",
    "normalize_path",
]
