"""
Category Classifier
===================

Extension-based classification of file names, plus the eligibility filter
shared by batch organizing and monitoring.
"""

from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from sortify.config.categories import CategoryRules
from sortify.utils.logging_config import get_logger

logger = get_logger(__name__)


class CategoryClassifier:
    """Maps file names to categories using a CategoryRules table.

    Hidden and extensionless names always fall back.
    """

    def __init__(self, rules: CategoryRules):
        self.rules = rules

    @property
    def fallback_category(self) -> str:
        return self.rules.fallback_category

    @staticmethod
    def extension_of(filename: str) -> Optional[str]:
        """Lower-cased substring after the last dot, with the dot.

        Returns None for hidden names (``.bashrc``), names without a dot
        and names ending in a dot.
        """
        name = Path(filename).name
        if not name or name.startswith("."):
            return None
        _, dot, ext = name.rpartition(".")
        if not dot or not ext:
            return None
        return "." + ext.lower()

    def classify(self, filename: Union[str, Path]) -> str:
        """Return the category for a file name.

        Args:
            filename: A bare file name or a path; only the name is used.

        Returns:
            The owning category, or the fallback category.
        """
        ext = self.extension_of(str(filename))
        if ext is None:
            return self.fallback_category
        return self.rules.lookup(ext) or self.fallback_category

    def is_fallback(self, category: str) -> bool:
        return category == self.fallback_category

    def for_path(self, watched_path) -> "CategoryClassifier":
        """Classifier with a watched path's custom categories applied."""
        custom = getattr(watched_path, "custom_categories", None)
        if not custom:
            return self
        return CategoryClassifier(self.rules.overlay(custom))


class FileFilter:
    """Decides whether a file name is eligible for organizing.

    A name is skipped when it is hidden or matches one of the ignore or
    exclude glob patterns.
    """

    def __init__(
        self,
        ignore_patterns: Iterable[str] = (),
        exclude_patterns: Optional[Sequence[str]] = None,
    ):
        self.patterns = list(ignore_patterns) + list(exclude_patterns or [])

    def for_path(self, watched_path) -> "FileFilter":
        """Filter extended with a watched path's exclude patterns."""
        extra = getattr(watched_path, "exclude_patterns", None)
        if not extra:
            return self
        return FileFilter(self.patterns, extra)

    def is_eligible(self, filename: Union[str, Path]) -> bool:
        name = Path(filename).name
        if not name or name.startswith("."):
            return False
        if any(fnmatch(name, pattern) for pattern in self.patterns):
            logger.debug(f"Ignoring file (matches pattern): {name}")
            return False
        return True
