"""
Shared fixtures for the test suite.
"""

import threading
import time

import pytest

from sortify.actions.file_operations import MoveEngine
from sortify.classification.classifier import CategoryClassifier, FileFilter
from sortify.config.categories import CategoryRules
from sortify.events.publisher import EventPublisher, FILE_ORGANIZED
from sortify.registry.paths import PathRegistry


class EventCollector:
    """Publisher subscriber that records every event it receives."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, name, payload):
        with self._lock:
            self.events.append((name, payload))

    def of(self, name):
        with self._lock:
            return [payload for event_name, payload in self.events if event_name == name]

    @property
    def organized(self):
        return self.of(FILE_ORGANIZED)


def _wait_for(predicate, timeout=5.0, interval=0.05):
    """Poll ``predicate`` until it is truthy or the timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def wait_for():
    return _wait_for


@pytest.fixture
def rules():
    """Rules from the basic organize scenario."""
    return CategoryRules({"Images": [".jpg", ".png"], "Docs": [".pdf"]})


@pytest.fixture
def classifier(rules):
    return CategoryClassifier(rules)


@pytest.fixture
def file_filter():
    return FileFilter(["*.tmp", "*.crdownload", "*.part"])


@pytest.fixture
def move_engine():
    return MoveEngine()


@pytest.fixture
def registry():
    return PathRegistry()


@pytest.fixture
def publisher(registry):
    publisher = EventPublisher(registry)
    yield publisher
    publisher.stop()


@pytest.fixture
def collector(publisher):
    collector = EventCollector()
    publisher.subscribe(collector)
    return collector
