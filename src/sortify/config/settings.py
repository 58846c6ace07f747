"""
Configuration Management System
===============================

Provides dataclass-based configuration with YAML file loading support.
JSON files are accepted too, since YAML is a superset of JSON.
All settings are validated and have sensible defaults.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Any, Dict

import yaml

from sortify.config.categories import (
    CategoryRules,
    DEFAULT_CATEGORIES,
    DEFAULT_FALLBACK_CATEGORY,
)
from sortify.utils.exceptions import ConfigError
from sortify.utils.logging_config import LoggingConfig, get_logger
from sortify.utils.notifications import NotificationConfig

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".sortify" / "config.yaml"


def _as_dict(data: Any, key: str) -> Dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Section {key!r} must be a mapping", config_key=key, expected_type="dict")
    return data


@dataclass
class WatcherConfig:
    """Filesystem watcher configuration.

    Attributes:
        ignore_patterns: Glob patterns for files never organized.
        quiet_interval_seconds: How long a file must stay unchanged
            (size and mtime) before it is classified.
        settle_timeout_seconds: Give up on files that keep changing
            for longer than this.
        queue_size: Capacity of the per-path channel between the debounce
            scheduler and the move worker.
        self_write_ttl_seconds: How long paths written by the engine are
            ignored by watchers.
        stop_timeout_seconds: Join timeout for watcher threads on stop.
    """
    ignore_patterns: List[str] = field(default_factory=lambda: [
        "*.tmp", "*.crdownload", "*.part", "*.download", "~$*", "Thumbs.db", "desktop.ini"
    ])
    quiet_interval_seconds: float = 1.0
    settle_timeout_seconds: float = 30.0
    queue_size: int = 256
    self_write_ttl_seconds: float = 5.0
    stop_timeout_seconds: float = 5.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatcherConfig":
        """Create WatcherConfig from dictionary."""
        if not data:
            return cls()
        defaults = cls()
        config = cls(
            ignore_patterns=list(data.get("ignore_patterns", defaults.ignore_patterns)),
            quiet_interval_seconds=float(data.get("quiet_interval_seconds", defaults.quiet_interval_seconds)),
            settle_timeout_seconds=float(data.get("settle_timeout_seconds", defaults.settle_timeout_seconds)),
            queue_size=int(data.get("queue_size", defaults.queue_size)),
            self_write_ttl_seconds=float(data.get("self_write_ttl_seconds", defaults.self_write_ttl_seconds)),
            stop_timeout_seconds=float(data.get("stop_timeout_seconds", defaults.stop_timeout_seconds)),
        )
        if config.quiet_interval_seconds < 0:
            raise ConfigError("quiet_interval_seconds cannot be negative",
                              config_key="watcher.quiet_interval_seconds")
        if config.queue_size < 1:
            raise ConfigError("queue_size must be at least 1", config_key="watcher.queue_size")
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ignore_patterns": list(self.ignore_patterns),
            "quiet_interval_seconds": self.quiet_interval_seconds,
            "settle_timeout_seconds": self.settle_timeout_seconds,
            "queue_size": self.queue_size,
            "self_write_ttl_seconds": self.self_write_ttl_seconds,
            "stop_timeout_seconds": self.stop_timeout_seconds,
        }


@dataclass
class OrganizationConfig:
    """File organization settings.

    Attributes:
        fallback_category: Category for files no rule matches.
        move_unmatched: Move fallback files into the fallback folder instead
            of leaving them in place.
        max_collision_attempts: Upper bound of the ``name (N).ext`` search.
    """
    fallback_category: str = DEFAULT_FALLBACK_CATEGORY
    move_unmatched: bool = False
    max_collision_attempts: int = 1000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrganizationConfig":
        """Create OrganizationConfig from dictionary."""
        if not data:
            return cls()
        defaults = cls()
        config = cls(
            fallback_category=str(data.get("fallback_category", defaults.fallback_category)),
            move_unmatched=bool(data.get("move_unmatched", defaults.move_unmatched)),
            max_collision_attempts=int(data.get("max_collision_attempts", defaults.max_collision_attempts)),
        )
        if config.max_collision_attempts < 1:
            raise ConfigError("max_collision_attempts must be at least 1",
                              config_key="organization.max_collision_attempts")
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fallback_category": self.fallback_category,
            "move_unmatched": self.move_unmatched,
            "max_collision_attempts": self.max_collision_attempts,
        }


@dataclass
class HistoryConfig:
    """Move history settings.

    Attributes:
        history_file: JSON file the history is persisted to. None keeps the
            history in memory only.
        max_entries: Number of most recent entries kept.
    """
    history_file: Optional[Path] = field(
        default_factory=lambda: Path.home() / ".sortify" / "history.json"
    )
    max_entries: int = 500

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryConfig":
        """Create HistoryConfig from dictionary."""
        if not data:
            return cls()
        defaults = cls()
        if "history_file" in data:
            raw = data["history_file"]
            history_file = Path(raw).expanduser() if raw else None
        else:
            history_file = defaults.history_file
        return cls(
            history_file=history_file,
            max_entries=int(data.get("max_entries", defaults.max_entries)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "history_file": str(self.history_file) if self.history_file else None,
            "max_entries": self.max_entries,
        }


@dataclass
class Config:
    """Main configuration container.

    Aggregates all configuration sections, the category rules and the raw
    watched-path list, and provides loading from YAML/JSON.
    """
    categories: Dict[str, List[str]] = field(
        default_factory=lambda: {name: list(exts) for name, exts in DEFAULT_CATEGORIES.items()}
    )
    paths: List[Dict[str, Any]] = field(default_factory=list)
    watcher: WatcherConfig = field(default_factory=WatcherConfig)
    organization: OrganizationConfig = field(default_factory=OrganizationConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    version: str = "1.0"

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Config":
        """Load configuration from a YAML or JSON file.

        Args:
            config_path: Path to the configuration file. If None, uses
                DEFAULT_CONFIG_PATH.

        Returns:
            Config instance with loaded settings.

        Raises:
            ConfigError: If the file is not valid YAML/JSON or the rules
                are malformed.
            ClassificationAmbiguity: If an extension is in two categories.
        """
        config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

        if not config_path.exists():
            logger.warning(f"Config file not found at {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Failed to parse config file: {e}")
            raise ConfigError(f"Failed to parse config file {config_path}", cause=e)
        except OSError as e:
            logger.error(f"Failed to read config file: {e}")
            raise ConfigError(f"Failed to read config file {config_path}", cause=e)

        if not isinstance(data, dict):
            raise ConfigError("Config file must contain a mapping", expected_type="dict")

        config = cls.from_dict(data)
        logger.info(f"Loaded configuration from {config_path}")
        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary, validating the category rules."""
        organization = OrganizationConfig.from_dict(_as_dict(data.get("organization"), "organization"))

        categories = data.get("categories")
        if categories is None:
            categories = {name: list(exts) for name, exts in DEFAULT_CATEGORIES.items()}
        # Validates and normalizes; raises on malformed or ambiguous rules
        rules = CategoryRules.from_dict(categories, fallback_category=organization.fallback_category)

        paths = data.get("paths") or []
        if not isinstance(paths, list):
            raise ConfigError("paths must be a list", config_key="paths", expected_type="list")

        return cls(
            categories=rules.to_dict(),
            paths=[dict(p) for p in paths],
            watcher=WatcherConfig.from_dict(_as_dict(data.get("watcher"), "watcher")),
            organization=organization,
            history=HistoryConfig.from_dict(_as_dict(data.get("history"), "history")),
            notifications=NotificationConfig.from_dict(_as_dict(data.get("notifications"), "notifications")),
            logging=LoggingConfig.from_dict(_as_dict(data.get("logging"), "logging")),
            version=str(data.get("version", "1.0")),
        )

    def build_rules(self) -> CategoryRules:
        """Build validated category rules from this configuration."""
        return CategoryRules.from_dict(
            self.categories, fallback_category=self.organization.fallback_category
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "categories": {name: list(exts) for name, exts in self.categories.items()},
            "paths": [dict(p) for p in self.paths],
            "watcher": self.watcher.to_dict(),
            "organization": self.organization.to_dict(),
            "history": self.history.to_dict(),
            "notifications": self.notifications.to_dict(),
            "logging": self.logging.to_dict(),
        }

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to a YAML file (JSON when the suffix is .json).

        Args:
            config_path: Path where to save the configuration.
        """
        config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)
        data = self.to_dict()

        with open(config_path, 'w', encoding='utf-8') as f:
            if config_path.suffix.lower() == ".json":
                json.dump(data, f, indent=2, ensure_ascii=False)
            else:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

        logger.info(f"Saved configuration to {config_path}")
