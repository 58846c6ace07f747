"""
Unit tests for the watched path registry.
"""

from datetime import datetime, timedelta

import pytest

from sortify.registry.paths import PathRegistry, WatchedPath, normalize_path
from sortify.utils.exceptions import ConfigError, NotFound


class TestWatchedPath:
    """Tests for WatchedPath serialization."""

    def test_round_trip_camel_case(self, tmp_path):
        data = {
            "id": "abc",
            "path": str(tmp_path),
            "name": "Downloads",
            "isMonitoring": False,
            "autoOrganize": True,
            "stats": {"filesOrganized": 4, "lastOrganized": "2024-05-01T10:00:00", "monitoringSince": None},
            "customCategories": {"Scans": [".PDF"]},
            "excludePatterns": ["keep_*"],
        }

        watched = WatchedPath.from_dict(data)

        assert watched.auto_organize is True
        assert watched.stats.files_organized == 4
        assert watched.stats.last_organized == datetime(2024, 5, 1, 10, 0)
        assert watched.custom_categories == {"Scans": [".pdf"]}
        assert watched.to_dict()["stats"]["filesOrganized"] == 4
        assert watched.to_dict()["excludePatterns"] == ["keep_*"]

    def test_monitoring_not_resumed(self, tmp_path):
        watched = WatchedPath.from_dict({
            "id": "abc",
            "path": str(tmp_path),
            "name": "x",
            "isMonitoring": True,
            "stats": {"monitoringSince": "2024-05-01T10:00:00"},
        })

        assert watched.is_monitoring is False
        assert watched.stats.monitoring_since is None

    def test_missing_path_rejected(self):
        with pytest.raises(ConfigError):
            WatchedPath.from_dict({"id": "abc", "name": "x"})

    def test_unparseable_timestamp_dropped(self, tmp_path):
        watched = WatchedPath.from_dict({
            "path": str(tmp_path),
            "stats": {"lastOrganized": "5/1/2024, 10:00:00 AM"},
        })

        assert watched.stats.last_organized is None
        assert watched.id


class TestPathRegistry:
    """Tests for PathRegistry."""

    def test_add_and_get(self, registry, tmp_path):
        watched = registry.add(str(tmp_path), name="Temp")

        assert watched.path == normalize_path(str(tmp_path))
        assert watched.name == "Temp"
        assert registry.get(watched.id).path == watched.path
        assert len(registry) == 1

    def test_default_name_is_folder_name(self, registry, tmp_path):
        watched = registry.add(str(tmp_path))
        assert watched.name == tmp_path.name

    def test_rejects_empty_path(self, registry):
        with pytest.raises(ConfigError):
            registry.add("  ")

    def test_rejects_duplicate_path(self, registry, tmp_path):
        registry.add(str(tmp_path))
        with pytest.raises(ConfigError):
            registry.add(str(tmp_path) + "/")

    def test_remove(self, registry, tmp_path):
        watched = registry.add(str(tmp_path))

        registry.remove(watched.id)

        assert registry.find_by_path(str(tmp_path)) is None
        with pytest.raises(NotFound):
            registry.remove(watched.id)

    def test_snapshots_are_detached(self, registry, tmp_path):
        watched = registry.add(str(tmp_path))
        snapshot = registry.get(watched.id)
        snapshot.stats.files_organized = 99

        assert registry.get(watched.id).stats.files_organized == 0

    def test_update(self, registry, tmp_path):
        watched = registry.add(str(tmp_path))

        updated = registry.update(watched.id, name="Renamed", auto_organize=True)

        assert updated.name == "Renamed"
        assert updated.auto_organize is True
        with pytest.raises(ConfigError):
            registry.update(watched.id, path="/elsewhere")

    def test_set_monitoring(self, registry, tmp_path):
        watched = registry.add(str(tmp_path))

        registry.set_monitoring(watched.id, True)
        assert registry.get(watched.id).stats.monitoring_since is not None
        assert [w.id for w in registry.monitoring_paths()] == [watched.id]

        registry.set_monitoring(watched.id, False)
        assert registry.get(watched.id).stats.monitoring_since is None
        assert registry.monitoring_paths() == []

    def test_record_organized_unknown_id_ignored(self, registry):
        registry.record_organized("missing", 3)
        assert registry.total_stats().files_organized == 0

    def test_total_stats(self, registry, tmp_path):
        first = registry.add(str(tmp_path / "a"))
        second = registry.add(str(tmp_path / "b"))
        early = datetime(2024, 1, 1)
        late = early + timedelta(days=1)

        registry.record_organized(first.id, 2, early)
        registry.record_organized(second.id, 3, late)
        registry.set_monitoring(first.id, True, late)
        registry.set_monitoring(second.id, True, early)

        total = registry.total_stats()
        assert total.files_organized == 5
        assert total.last_organized == late
        assert total.monitoring_since == early

    def test_config_round_trip(self, registry, tmp_path):
        watched = registry.add(str(tmp_path), exclude_patterns=["*.iso"])
        registry.record_organized(watched.id, 2)
        registry.set_monitoring(watched.id, True)

        restored = PathRegistry.from_config(registry.to_config())

        loaded = restored.get(watched.id)
        assert loaded.stats.files_organized == 2
        assert loaded.exclude_patterns == ["*.iso"]
        assert loaded.is_monitoring is False
