"""Utilities module for Sortify."""

from .logging_config import setup_logging, get_logger, LoggingConfig
from .exceptions import (
    ErrorCode,
    SortifyError,
    ConfigError,
    ClassificationAmbiguity,
    FileProcessingError,
    NotFound,
    PermissionDenied,
    CollisionExhausted,
    WatchSetupFailed,
)
from .notifications import DesktopNotifier, NotificationConfig

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggingConfig",
    "ErrorCode",
    "SortifyError",
    "ConfigError",
    "ClassificationAmbiguity",
    "FileProcessingError",
    "NotFound",
    "PermissionDenied",
    "CollisionExhausted",
    "WatchSetupFailed",
    "DesktopNotifier",
    "NotificationConfig",
]
