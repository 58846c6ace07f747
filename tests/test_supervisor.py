"""
Tests for the monitor supervisor.
"""

import threading
import time

import pytest

from sortify.actions.organizer import BatchOrganizer
from sortify.config.settings import WatcherConfig
from sortify.events.publisher import MONITORING_CHANGED
from sortify.monitoring.supervisor import MonitorState, MonitorSupervisor
from sortify.monitoring.watcher import DirectoryWatcher
from sortify.utils.exceptions import NotFound, WatchSetupFailed

QUIET = 0.2


@pytest.fixture
def supervisor(registry, classifier, move_engine, publisher):
    config = WatcherConfig.from_dict({"quiet_interval_seconds": QUIET, "stop_timeout_seconds": 2.0})
    created = []

    def factory(watched, on_failure):
        watcher = DirectoryWatcher(
            watched.id,
            watched.path,
            classifier=classifier.for_path(watched),
            move_engine=move_engine,
            publisher=publisher,
            config=config,
            on_failure=on_failure,
        )
        created.append(watcher)
        return watcher

    organizer = BatchOrganizer(classifier, move_engine, publisher=publisher)
    supervisor = MonitorSupervisor(registry, factory, publisher=publisher, organizer=organizer)
    supervisor.created = created
    yield supervisor
    supervisor.shutdown()


class SlowWatcher:
    """Stand-in watcher whose start and stop take a while."""

    def __init__(self, watched, delay=0.2, on_stop=None):
        self.root = watched.path
        self.delay = delay
        self.on_stop = on_stop
        self.is_running = False

    def start(self):
        time.sleep(self.delay)
        self.is_running = True
        return self

    def stop(self):
        if self.on_stop:
            self.on_stop()
        time.sleep(self.delay)
        self.is_running = False


class TestMonitorSupervisor:
    """Tests for MonitorSupervisor."""

    def test_toggle_on_and_off(self, tmp_path, registry, supervisor):
        watched = registry.add(str(tmp_path))

        assert supervisor.toggle(watched.id) is True
        assert supervisor.state(watched.id) is MonitorState.ACTIVE
        assert registry.get(watched.id).is_monitoring is True
        assert registry.get(watched.id).stats.monitoring_since is not None

        assert supervisor.toggle(watched.id) is False
        assert supervisor.state(watched.id) is MonitorState.STOPPED
        assert supervisor.active_ids() == []
        assert registry.get(watched.id).stats.monitoring_since is None
        assert not supervisor.created[0].is_running

    def test_repeated_toggling_leaves_no_live_watchers(self, tmp_path, registry, supervisor):
        watched = registry.add(str(tmp_path))

        for _ in range(5):
            supervisor.toggle(watched.id)
            supervisor.toggle(watched.id)

        assert supervisor.active_ids() == []
        assert all(not watcher.is_running for watcher in supervisor.created)
        live = [t for t in threading.enumerate() if t.name.endswith(watched.id) and t.is_alive()]
        assert live == []

    def test_concurrent_toggles_restore_stopped(self, tmp_path, registry):
        watched = registry.add(str(tmp_path))
        supervisor = MonitorSupervisor(registry, lambda w, on_failure: SlowWatcher(w))
        barrier = threading.Barrier(2)
        results = []

        def toggle():
            barrier.wait()
            results.append(supervisor.toggle(watched.id))

        threads = [threading.Thread(target=toggle) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert sorted(results) == [False, True]
        assert supervisor.state(watched.id) is MonitorState.STOPPED
        assert registry.get(watched.id).is_monitoring is False

    def test_registry_tracks_state_while_stopping(self, tmp_path, registry):
        watched = registry.add(str(tmp_path))
        seen = []

        def factory(w, on_failure):
            return SlowWatcher(w, delay=0.05, on_stop=lambda: seen.append(
                (supervisor.is_active(w.id), registry.get(w.id).is_monitoring)
            ))

        supervisor = MonitorSupervisor(registry, factory)
        supervisor.start(watched.id)
        supervisor.stop(watched.id)

        assert seen == [(True, True)]
        assert supervisor.is_active(watched.id) is False
        assert registry.get(watched.id).is_monitoring is False
        assert registry.get(watched.id).stats.monitoring_since is None

    def test_start_and_stop_are_idempotent(self, tmp_path, registry, supervisor):
        watched = registry.add(str(tmp_path))

        assert supervisor.start(watched.id) is True
        assert supervisor.start(watched.id) is True
        assert len(supervisor.created) == 1

        assert supervisor.stop(watched.id) is False
        assert supervisor.stop(watched.id) is False

    def test_toggle_path(self, tmp_path, registry, supervisor):
        registry.add(str(tmp_path))

        assert supervisor.toggle_path(str(tmp_path)) is True
        with pytest.raises(NotFound):
            supervisor.toggle_path(str(tmp_path / "unknown"))

    def test_unknown_id(self, supervisor):
        with pytest.raises(NotFound):
            supervisor.toggle("missing")

    def test_setup_failure_leaves_path_stopped(self, tmp_path, registry, supervisor):
        watched = registry.add(str(tmp_path / "missing"))

        with pytest.raises(WatchSetupFailed):
            supervisor.toggle(watched.id)

        assert supervisor.is_active(watched.id) is False
        assert registry.get(watched.id).is_monitoring is False

    def test_toggling_one_path_keeps_others(self, tmp_path, registry, supervisor):
        first = registry.add(str(tmp_path / "a"))
        second = registry.add(str(tmp_path / "b"))
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()

        supervisor.start(first.id)
        supervisor.start(second.id)
        supervisor.stop(first.id)

        assert supervisor.active_ids() == [second.id]
        assert supervisor.created[1].is_running

    def test_monitoring_changed_events(self, tmp_path, registry, supervisor, publisher, collector):
        watched = registry.add(str(tmp_path))
        supervisor.toggle(watched.id)
        supervisor.toggle(watched.id)
        publisher.flush(timeout=5)

        changes = collector.of(MONITORING_CHANGED)
        assert [c["is_monitoring"] for c in changes] == [True, False]
        assert changes[0]["folder_path"] == watched.path

    def test_auto_organize_on_start(self, tmp_path, registry, supervisor):
        (tmp_path / "a.jpg").write_text("x")
        watched = registry.add(str(tmp_path), auto_organize=True)

        supervisor.start(watched.id)

        assert (tmp_path / "Images" / "a.jpg").exists()

    def test_watch_failure_marks_stopped(self, tmp_path, registry, supervisor, publisher, collector, wait_for):
        watched = registry.add(str(tmp_path))
        supervisor.start(watched.id)

        supervisor.created[0]._handle_root_lost()

        assert wait_for(lambda: not supervisor.is_active(watched.id))
        assert registry.get(watched.id).is_monitoring is False
        publisher.flush(timeout=5)
        errors = [e for e in collector.of("log-message") if e["log_type"] == "error"]
        assert errors and errors[0]["path_id"] == watched.id

    def test_two_paths_concurrently(self, tmp_path, registry, supervisor, publisher, collector, wait_for):
        """All events from both paths arrive; one path's burst keeps its order."""
        p1, p2 = tmp_path / "p1", tmp_path / "p2"
        p1.mkdir()
        p2.mkdir()
        first = registry.add(str(p1))
        second = registry.add(str(p2))
        supervisor.start(first.id)
        supervisor.start(second.id)

        burst = [f"img{index}.jpg" for index in range(5)]

        def write_burst():
            for name in burst:
                (p1 / name).write_text(name)
                time.sleep(0.05)

        writer = threading.Thread(target=write_burst)
        writer.start()
        (p2 / "report.pdf").write_text("pdf")
        writer.join()

        assert wait_for(lambda: len(collector.organized) == 6, timeout=10)
        publisher.flush(timeout=5)
        from_p1 = [e["file_name"] for e in collector.organized if e["folder_path"] == str(p1)]
        from_p2 = [e["file_name"] for e in collector.organized if e["folder_path"] == str(p2)]
        assert from_p1 == burst
        assert from_p2 == ["report.pdf"]
        assert registry.get(first.id).stats.files_organized == 5
        assert registry.get(second.id).stats.files_organized == 1

    def test_shutdown_stops_everything(self, tmp_path, registry, supervisor):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        for name in ("a", "b"):
            supervisor.start(registry.add(str(tmp_path / name)).id)

        supervisor.shutdown()

        assert supervisor.active_ids() == []
        assert registry.monitoring_paths() == []
