"""Outbound events for the UI layer and other consumers."""

from .publisher import (
    EventPublisher,
    FileOrganizedEvent,
    FILE_ORGANIZED,
    LOG_MESSAGE,
    MONITORING_CHANGED,
    SOURCE_MANUAL,
    SOURCE_MONITORING,
)

__all__ = [
    "EventPublisher",
    "FileOrganizedEvent",
    "FILE_ORGANIZED",
    "LOG_MESSAGE",
    "MONITORING_CHANGED",
    "SOURCE_MANUAL",
    "SOURCE_MONITORING",
]
