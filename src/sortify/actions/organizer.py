"""
Batch Organizer
===============

One-shot classify-and-move pass over the immediate children of a directory.
Not transactional: moves made before a per-file failure stay committed.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from sortify.actions.file_operations import MoveEngine, MoveOutcome
from sortify.classification.classifier import CategoryClassifier, FileFilter
from sortify.events.publisher import EventPublisher, SOURCE_MANUAL
from sortify.utils.exceptions import NotFound, PermissionDenied, SortifyError
from sortify.utils.logging_config import get_logger, Timer

logger = get_logger(__name__)


@dataclass
class FileFailure:
    """A file that could not be organized."""
    path: str
    error: dict

    def to_dict(self) -> dict:
        return {"path": self.path, "error": self.error}


@dataclass
class OrganizeResult:
    """Aggregated result of a batch organize run.

    Attributes:
        moved_count: Number of files moved.
        outcomes: One MoveOutcome per moved file, in processing order.
        failures: Files whose move failed.
        skipped: Eligible files left in place (fallback category).
    """
    outcomes: List[MoveOutcome] = field(default_factory=list)
    failures: List[FileFailure] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def moved_count(self) -> int:
        return len(self.outcomes)

    @property
    def partial(self) -> bool:
        """True when some files failed."""
        return bool(self.failures)

    def to_dict(self) -> dict:
        return {
            "movedCount": self.moved_count,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "failures": [failure.to_dict() for failure in self.failures],
            "skipped": list(self.skipped),
        }


def organize_one(
    file_path: Path,
    root: Path,
    classifier: CategoryClassifier,
    move_engine: MoveEngine,
    move_unmatched: bool = False,
) -> Optional[MoveOutcome]:
    """Classify one file and move it into its category folder under ``root``.

    Returns:
        The outcome, or None when the file falls back and unmatched files
        are left in place.
    """
    category = classifier.classify(file_path.name)
    if classifier.is_fallback(category) and not move_unmatched:
        logger.debug(f"No rule matches, leaving in place: {file_path.name}")
        return None
    return move_engine.move_to_category(file_path, root, category)


class BatchOrganizer:
    """Organizes the top level of a directory into category subfolders."""

    def __init__(
        self,
        classifier: CategoryClassifier,
        move_engine: MoveEngine,
        publisher: Optional[EventPublisher] = None,
        file_filter: Optional[FileFilter] = None,
        move_unmatched: bool = False,
    ):
        self.classifier = classifier
        self.move_engine = move_engine
        self.publisher = publisher
        self.file_filter = file_filter or FileFilter()
        self.move_unmatched = move_unmatched

    def _list_candidates(self, root: Path) -> List[Path]:
        try:
            with os.scandir(root) as entries:
                names = sorted(
                    entry.name for entry in entries
                    if entry.is_file(follow_symlinks=False)
                )
        except FileNotFoundError as e:
            raise NotFound("Directory does not exist", file_path=str(root), cause=e)
        except PermissionError as e:
            raise PermissionDenied("Cannot list directory", file_path=str(root), cause=e)
        return [root / name for name in names]

    def organize(
        self,
        path: Union[str, Path],
        path_id: Optional[str] = None,
        watched_path=None,
        source: str = SOURCE_MANUAL,
    ) -> OrganizeResult:
        """Organize the immediate children of ``path``.

        Directories (the category subfolders among them) are never touched,
        so a second run with no new files moves nothing.

        Args:
            path: Directory to organize.
            path_id: Owning WatchedPath id, for stats.
            watched_path: Owning WatchedPath, for per-path categories and
                exclude patterns.
            source: Tag carried by the emitted events.

        Raises:
            NotFound: If ``path`` is missing or not a directory.
        """
        root = Path(path)
        if not root.is_dir():
            raise NotFound("Not a directory", file_path=str(root))

        classifier = self.classifier.for_path(watched_path) if watched_path else self.classifier
        file_filter = self.file_filter.for_path(watched_path) if watched_path else self.file_filter

        result = OrganizeResult()
        with Timer(logger, f"organize {root}"):
            for file_path in self._list_candidates(root):
                if not file_filter.is_eligible(file_path.name):
                    continue
                try:
                    outcome = organize_one(
                        file_path, root, classifier, self.move_engine, self.move_unmatched
                    )
                except SortifyError as e:
                    logger.warning(f"Failed to organize {file_path.name}: {e}")
                    result.failures.append(FileFailure(str(file_path), e.to_dict()))
                    if self.publisher:
                        self.publisher.log(
                            f"Failed to organize {file_path.name}: {e.message}",
                            "error",
                            file_name=file_path.name,
                        )
                    continue

                if outcome is None:
                    result.skipped.append(str(file_path))
                    continue

                result.outcomes.append(outcome)
                if self.publisher:
                    self.publisher.publish(outcome, root, path_id=path_id, source=source)

        logger.info(
            f"Organized {result.moved_count} files in {root}"
            f" ({len(result.failures)} failed, {len(result.skipped)} left in place)"
        )
        if self.publisher:
            self.publisher.log(
                f"Organize complete: moved {result.moved_count} files",
                "success" if not result.failures else "warning",
            )
        return result
