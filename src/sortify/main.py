"""
Sortify - Main Application
==========================

Main entry point and orchestration for the file organizer.
Wires configuration, classification, moves, monitoring, events and history
together and exposes the command surface used by the CLI and UI layers.
"""

import signal
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from sortify.actions import BatchOrganizer, HistoryTracker, HistoryEntry, MoveEngine, OrganizeResult, UndoResult
from sortify.classification import CategoryClassifier, FileFilter
from sortify.config import Config, DEFAULT_CONFIG_PATH
from sortify.events import EventPublisher
from sortify.monitoring import DirectoryWatcher, MonitorSupervisor
from sortify.registry import PathRegistry, PathStats, WatchedPath
from sortify.utils.exceptions import ConfigError, NotFound, SortifyError, WatchSetupFailed
from sortify.utils.logging_config import setup_logging, get_logger, LoggingConfig
from sortify.utils.notifications import DesktopNotifier

logger = get_logger(__name__)

PathLike = Union[str, Path]


class SortifyApp:
    """Main orchestrator for Sortify.

    Owns every component for the lifetime of the app; ``shutdown()`` stops
    all watchers and drains pending events.
    """

    def __init__(self, config_path: Optional[Path] = None, config: Optional[Config] = None):
        """Initialize the application.

        Args:
            config_path: Path to configuration file. Changes to paths and
                categories are saved back to it.
            config: Preloaded configuration; when given, ``config_path`` is
                only used for saving.
        """
        self.config_path = Path(config_path) if config_path else None
        self.config = config if config is not None else Config.load(self.config_path)

        self._init_components()

    def _init_components(self) -> None:
        """Initialize all processing components."""
        config = self.config

        # Classification
        self.rules = config.build_rules()
        self.classifier = CategoryClassifier(self.rules)
        self.file_filter = FileFilter(config.watcher.ignore_patterns)

        # File operations
        self.move_engine = MoveEngine(
            max_collision_attempts=config.organization.max_collision_attempts,
            self_write_ttl_seconds=config.watcher.self_write_ttl_seconds,
        )

        # Watched paths and events
        self.registry = PathRegistry.from_config(config.paths)
        self.publisher = EventPublisher(self.registry)

        # History
        self.history_tracker = HistoryTracker(
            self.move_engine,
            history_file=config.history.history_file,
            max_entries=config.history.max_entries,
        )
        self.publisher.subscribe(self.history_tracker.handle_event)

        # Desktop notifications
        self.notifier = DesktopNotifier(config.notifications)
        if config.notifications.enabled:
            self.publisher.subscribe(self.notifier.handle_event)

        # Organizing and monitoring
        self.organizer = BatchOrganizer(
            self.classifier,
            self.move_engine,
            publisher=self.publisher,
            file_filter=self.file_filter,
            move_unmatched=config.organization.move_unmatched,
        )
        self.supervisor = MonitorSupervisor(
            self.registry,
            self._build_watcher,
            publisher=self.publisher,
            organizer=self.organizer,
        )

        self._saved_stats = self._stats_snapshot()
        logger.info(f"All components initialized ({len(self.registry)} watched paths)")

    def _build_watcher(self, watched: WatchedPath, on_failure) -> DirectoryWatcher:
        return DirectoryWatcher(
            watched.id,
            watched.path,
            classifier=self.classifier.for_path(watched),
            move_engine=self.move_engine,
            publisher=self.publisher,
            config=self.config.watcher,
            file_filter=self.file_filter.for_path(watched),
            move_unmatched=self.config.organization.move_unmatched,
            on_failure=on_failure,
        )

    def _stats_snapshot(self) -> List[tuple]:
        return [(w.id, w.stats.files_organized) for w in self.registry.all()]

    def _persist(self) -> None:
        if self.config_path is not None:
            self.save_config()
        self._saved_stats = self._stats_snapshot()

    # =====================
    # Organizing
    # =====================

    def organize(self, path: PathLike) -> OrganizeResult:
        """Organize the top level of a directory once.

        Stats are recorded on the matching watched path, if registered.

        Raises:
            NotFound: If the directory does not exist.
        """
        watched = self.registry.find_by_path(str(path))
        if watched is not None:
            return self.organizer.organize(watched.path, path_id=watched.id, watched_path=watched)
        return self.organizer.organize(path)

    def undo_move(self, source_path: PathLike, target_path: PathLike) -> UndoResult:
        """Move a file from ``source_path`` back to ``target_path``."""
        return self.move_engine.undo(source_path, target_path)

    # =====================
    # Monitoring
    # =====================

    def toggle_monitoring(self, path: PathLike) -> bool:
        """Toggle monitoring of a registered path.

        Returns:
            True if the path is now being monitored.
        """
        return self.supervisor.toggle_path(str(path))

    def start_monitoring(self, path: PathLike) -> WatchedPath:
        """Ensure a path is registered and monitored."""
        watched = self.registry.find_by_path(str(path)) or self.add_path(path)
        self.supervisor.start(watched.id)
        return self.registry.get(watched.id)

    # =====================
    # Watched paths
    # =====================

    def add_path(self, path: PathLike, name: Optional[str] = None, **options) -> WatchedPath:
        """Register a directory."""
        watched = self.registry.add(str(path), name=name, **options)
        self._persist()
        return watched

    def remove_path(self, path_id: str) -> WatchedPath:
        """Stop monitoring and unregister a path."""
        self.registry.get(path_id)
        self.supervisor.stop(path_id)
        watched = self.registry.remove(path_id)
        self._persist()
        return watched

    def list_paths(self) -> List[WatchedPath]:
        return self.registry.all()

    def total_stats(self) -> PathStats:
        return self.registry.total_stats()

    # =====================
    # Categories
    # =====================

    def add_category(self, name: str, extensions: List[str]) -> None:
        """Add a category, or merge extensions into an existing one."""
        self.rules.add_category(name, extensions)
        self._persist()

    def update_category(self, name: str, extensions: List[str]) -> None:
        """Replace the extensions of a category.

        Raises:
            NotFound: If the category does not exist.
        """
        if not self.rules.update_category(name, extensions):
            raise NotFound(f"Unknown category: {name}", details={"category": name})
        self._persist()

    def remove_category(self, name: str) -> None:
        """Remove a category.

        Raises:
            ConfigError: For the fallback category.
            NotFound: If the category does not exist.
        """
        if name == self.rules.fallback_category:
            raise ConfigError(f"Cannot remove fallback category {name!r}", config_key="categories")
        if not self.rules.remove_category(name):
            raise NotFound(f"Unknown category: {name}", details={"category": name})
        self._persist()

    def categories(self) -> Dict[str, List[str]]:
        return self.rules.to_dict()

    # =====================
    # History
    # =====================

    def history(self, count: int = 10) -> List[HistoryEntry]:
        """Get recent organization history (newest first)."""
        self.publisher.flush(timeout=5.0)
        return self.history_tracker.get_recent(count)

    def undo_history_entry(self, entry_id: str) -> UndoResult:
        """Undo a recorded move by history entry id."""
        return self.history_tracker.undo(entry_id)

    # =====================
    # Lifecycle
    # =====================

    def save_config(self, config_path: Optional[Path] = None) -> None:
        """Write categories and watched paths back to the config file."""
        self.config.categories = self.rules.to_dict()
        self.config.paths = self.registry.to_config()
        self.config.save(config_path or self.config_path)

    def shutdown(self) -> None:
        """Stop all watchers and deliver pending events."""
        logger.info("Stopping Sortify...")
        self.supervisor.shutdown()
        self.publisher.flush(timeout=5.0)
        self.publisher.stop()
        # Only organize stats can change without an explicit save
        if self._stats_snapshot() != self._saved_stats:
            self._persist()
        logger.info("Sortify stopped.")


def _print_result(result: OrganizeResult) -> None:
    print(f"✓ Moved {result.moved_count} files")
    for outcome in result.outcomes:
        print(f"    {outcome.file_name} → {outcome.category}/{outcome.actual_file_name}")
    if result.skipped:
        print(f"  Left in place: {len(result.skipped)}")
    for failure in result.failures:
        print(f"✗ {failure.path}: {failure.error['message']}")


def _run_watch(app: SortifyApp, paths: List[str]) -> int:
    stop_event = threading.Event()

    def signal_handler(sig, frame):
        stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    targets = paths or [w.path for w in app.list_paths()]
    if not targets:
        print("No paths to watch. Add one with 'sortify paths add PATH'.")
        return 1
    for path in targets:
        watched = app.start_monitoring(path)
        print(f"👁  Watching {watched.path}")

    print("Sortify is running. Press Ctrl+C to stop.")
    stop_event.wait()
    return 0


def build_parser():
    """Build the command-line parser."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="sortify",
        description="Sortify - Organize files into category folders by extension"
    )
    parser.add_argument(
        '--config', '-c',
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help='Path to configuration file'
    )
    parser.add_argument(
        '--log-level',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override the configured log level'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    organize = sub.add_parser('organize', help='Organize a directory once')
    organize.add_argument('path')

    watch = sub.add_parser('watch', help='Monitor directories until interrupted')
    watch.add_argument('paths', nargs='*', help='Directories (default: all registered)')

    undo = sub.add_parser('undo', help='Move a file back, or undo a history entry')
    undo.add_argument('source', help='Current file path, or a history entry id')
    undo.add_argument('target', nargs='?', help='Path to restore the file to')

    history = sub.add_parser('history', help='Show recent history')
    history.add_argument('-n', '--count', type=int, default=10)

    paths = sub.add_parser('paths', help='Manage watched paths')
    paths_sub = paths.add_subparsers(dest='action', required=True)
    paths_sub.add_parser('list')
    paths_add = paths_sub.add_parser('add')
    paths_add.add_argument('path')
    paths_add.add_argument('--name')
    paths_add.add_argument('--auto-organize', action='store_true')
    paths_remove = paths_sub.add_parser('remove')
    paths_remove.add_argument('path')

    categories = sub.add_parser('categories', help='Manage categories')
    categories_sub = categories.add_subparsers(dest='action', required=True)
    categories_sub.add_parser('list')
    categories_add = categories_sub.add_parser('add')
    categories_add.add_argument('name')
    categories_add.add_argument('extensions', nargs='*')
    categories_remove = categories_sub.add_parser('remove')
    categories_remove.add_argument('name')

    sub.add_parser('stats', help='Show organization statistics')
    return parser


def run_command(app: SortifyApp, args) -> int:
    """Execute a parsed command. Returns the exit status."""
    if args.command == 'organize':
        result = app.organize(args.path)
        app.publisher.flush(timeout=5.0)
        _print_result(result)
        return 1 if result.partial else 0

    if args.command == 'watch':
        return _run_watch(app, args.paths)

    if args.command == 'undo':
        if args.target:
            result = app.undo_move(args.source, args.target)
        else:
            result = app.undo_history_entry(args.source)
        print(f"✓ Restored to {result.resolved_path}")
        return 0

    if args.command == 'history':
        entries = app.history(args.count)
        if not entries:
            print("No history yet.")
            return 0
        print(f"\n📋 Recent History ({len(entries)} entries):\n")
        for entry in entries:
            print(f"  [{entry.timestamp[:16]}] {entry.id} {entry.file_name} ({entry.source})")
            print(f"      → {entry.moved_to_path}")
        return 0

    if args.command == 'paths':
        if args.action == 'list':
            for watched in app.list_paths():
                print(f"  {watched.id}  {watched.name}: {watched.path}"
                      f" ({watched.stats.files_organized} organized)")
        elif args.action == 'add':
            watched = app.add_path(args.path, name=args.name, auto_organize=args.auto_organize)
            print(f"✓ Added {watched.path} ({watched.id})")
        else:
            watched = app.registry.find_by_path(args.path)
            path_id = watched.id if watched else args.path
            removed = app.remove_path(path_id)
            print(f"✓ Removed {removed.path}")
        return 0

    if args.command == 'categories':
        if args.action == 'list':
            for name, extensions in app.categories().items():
                print(f"  {name}: {' '.join(extensions) or '-'}")
        elif args.action == 'add':
            app.add_category(args.name, args.extensions)
            print(f"✓ Saved category: {args.name}")
        else:
            app.remove_category(args.name)
            print(f"✓ Removed category: {args.name}")
        return 0

    if args.command == 'stats':
        stats = app.total_stats()
        history_stats = app.history_tracker.get_stats()
        print("\n📊 Organization Statistics:\n")
        print(f"  Files organized: {stats.files_organized}")
        print(f"  Last organized: {stats.last_organized or '-'}")
        print(f"  History entries: {history_stats['total_operations']}")
        print("\n  By category:")
        for cat, count in history_stats.get('by_category', {}).items():
            print(f"    {cat}: {count}")
        return 0

    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with CLI support."""
    args = build_parser().parse_args(argv)

    try:
        config = Config.load(args.config)
        logging_config = config.logging
        if args.log_level:
            logging_config = LoggingConfig.from_dict({**logging_config.to_dict(), "level": args.log_level})
        setup_logging(logging_config)

        app = SortifyApp(config_path=args.config, config=config)
        try:
            return run_command(app, args)
        finally:
            app.shutdown()
    except WatchSetupFailed as e:
        print(f"✗ Cannot watch {e.details.get('path')}: {e.message}", file=sys.stderr)
        return 1
    except SortifyError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
