"""
Category Definitions
====================

Defines the category rule table: category name to a set of normalized
extensions, with validation on every mutation.
"""

import re
import threading
from typing import Dict, Iterable, List, Optional, Set

from sortify.utils.exceptions import ConfigError, ClassificationAmbiguity

EXTENSION_PATTERN = re.compile(r"^\.[A-Za-z0-9]+$")

DEFAULT_FALLBACK_CATEGORY = "Others"

DEFAULT_CATEGORIES: Dict[str, List[str]] = {
    "Images": [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".svg", ".webp", ".tiff", ".ico"],
    "Documents": [".pdf", ".doc", ".docx", ".txt", ".rtf", ".pages", ".odt", ".epub"],
    "Spreadsheets": [".xls", ".xlsx", ".csv", ".numbers", ".ods"],
    "Presentations": [".ppt", ".pptx", ".key", ".odp"],
    "Audio": [".mp3", ".wav", ".aac", ".flac", ".m4a", ".ogg", ".wma"],
    "Video": [".mp4", ".avi", ".mov", ".mkv", ".wmv", ".flv", ".webm", ".m4v"],
    "Archives": [".zip", ".rar", ".7z", ".tar", ".gz", ".bz2", ".xz"],
    "Programs": [".dmg", ".pkg", ".app", ".exe", ".deb", ".rpm"],
    "Code": [".py", ".js", ".html", ".css", ".java", ".cpp", ".c", ".php", ".rb", ".go", ".rs"],
    "Fonts": [".ttf", ".otf", ".woff", ".woff2"],
    DEFAULT_FALLBACK_CATEGORY: [],
}

# Characters that cannot appear in a folder name on common filesystems
_INVALID_NAME_CHARS = set('/\\:*?"<>|\0')


def normalize_extension(extension: str) -> str:
    """Normalize an extension to lower case with a leading dot.

    Args:
        extension: Raw extension such as "JPG", ".Jpg" or ".jpg".

    Returns:
        The normalized extension.

    Raises:
        ConfigError: If the result does not match ``^\\.[A-Za-z0-9]+$``.
    """
    if not isinstance(extension, str):
        raise ConfigError(
            f"Extension must be a string, got {type(extension).__name__}",
            expected_type="str",
        )
    ext = extension.strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    if not EXTENSION_PATTERN.match(ext):
        raise ConfigError(
            f"Invalid extension format: {extension!r}",
            details={"extension": extension},
        )
    return ext


def validate_category_name(name: str) -> str:
    """Validate a category display name (it becomes a folder name)."""
    if not isinstance(name, str) or not name.strip():
        raise ConfigError("Category name must be a non-empty string", config_key="categories")
    name = name.strip()
    if name in (".", "..") or any(ch in _INVALID_NAME_CHARS for ch in name):
        raise ConfigError(
            f"Category name cannot be used as a folder name: {name!r}",
            config_key="categories",
        )
    return name


class CategoryRules:
    """Validated mapping of category names to extension sets.

    One extension belongs to at most one category. Declaring it in a second
    category raises ClassificationAmbiguity. The fallback category always
    exists and owns no extensions.
    """

    def __init__(
        self,
        categories: Optional[Dict[str, Iterable[str]]] = None,
        fallback_category: str = DEFAULT_FALLBACK_CATEGORY,
    ):
        """Build a rule table.

        Args:
            categories: Mapping of category name to extensions. Defaults to
                DEFAULT_CATEGORIES.
            fallback_category: Category returned for unmatched files.

        Raises:
            ConfigError: On malformed names or extensions.
            ClassificationAmbiguity: If an extension appears twice.
        """
        self.fallback_category = validate_category_name(fallback_category)
        self._categories: Dict[str, Set[str]] = {}
        self._index: Dict[str, str] = {}
        self._lock = threading.RLock()

        source = DEFAULT_CATEGORIES if categories is None else categories
        for name, extensions in source.items():
            self.add_category(name, extensions)
        self._categories.setdefault(self.fallback_category, set())

    @classmethod
    def from_dict(
        cls,
        data: Optional[Dict[str, Iterable[str]]],
        fallback_category: str = DEFAULT_FALLBACK_CATEGORY,
    ) -> "CategoryRules":
        """Create rules from the persisted ``categories`` mapping."""
        if data is None:
            return cls(fallback_category=fallback_category)
        if not isinstance(data, dict):
            raise ConfigError(
                "categories must be a mapping of name to extension list",
                config_key="categories",
                expected_type="dict",
            )
        return cls(data, fallback_category=fallback_category)

    def to_dict(self) -> Dict[str, List[str]]:
        """Convert to the persisted ``categories`` mapping."""
        with self._lock:
            return {name: sorted(exts) for name, exts in self._categories.items()}

    def overlay(self, overrides: Optional[Dict[str, Iterable[str]]]) -> "CategoryRules":
        """Return new rules where ``overrides`` replace matching categories.

        Extensions claimed by an override are released from whichever global
        category owned them, so per-path overrides never trigger ambiguity
        against the global table. Ambiguity inside the overrides still raises.
        """
        if not overrides:
            return self
        normalized = {
            validate_category_name(name): {normalize_extension(e) for e in exts}
            for name, exts in overrides.items()
        }
        claimed: Dict[str, str] = {}
        for name, exts in normalized.items():
            for ext in exts:
                if ext in claimed and claimed[ext] != name:
                    raise ClassificationAmbiguity(
                        f"Extension {ext} declared in two categories",
                        extension=ext,
                        categories=[claimed[ext], name],
                    )
                claimed[ext] = name

        merged: Dict[str, Set[str]] = {}
        for name, exts in self.to_dict().items():
            if name in normalized:
                continue
            merged[name] = {e for e in exts if e not in claimed}
        merged.update(normalized)
        return CategoryRules(merged, fallback_category=self.fallback_category)

    @property
    def names(self) -> List[str]:
        """Category names in declaration order."""
        with self._lock:
            return list(self._categories)

    def extensions(self, name: str) -> Set[str]:
        """Extensions owned by a category (empty set for unknown names)."""
        with self._lock:
            return set(self._categories.get(name, set()))

    def lookup(self, extension: str) -> Optional[str]:
        """Category owning a normalized extension, or None."""
        with self._lock:
            return self._index.get(extension)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._categories

    def __len__(self) -> int:
        with self._lock:
            return len(self._categories)

    def _check_available(self, extensions: Set[str], owner: str) -> None:
        for ext in extensions:
            current = self._index.get(ext)
            if current is not None and current != owner:
                raise ClassificationAmbiguity(
                    f"Extension {ext} already belongs to category {current!r}",
                    extension=ext,
                    categories=[current, owner],
                )

    def add_category(self, name: str, extensions: Iterable[str] = ()) -> None:
        """Add a category or merge extensions into an existing one.

        Raises:
            ConfigError: Malformed name/extension, or extensions on the fallback.
            ClassificationAmbiguity: Extension already owned elsewhere.
        """
        name = validate_category_name(name)
        if isinstance(extensions, str):
            raise ConfigError(
                f"Extensions for {name!r} must be a list",
                config_key=f"categories.{name}",
                expected_type="list",
            )
        normalized = {normalize_extension(ext) for ext in extensions}
        with self._lock:
            if name == self.fallback_category and normalized:
                raise ConfigError(
                    f"Fallback category {name!r} cannot own extensions",
                    config_key=f"categories.{name}",
                )
            self._check_available(normalized, name)
            self._categories.setdefault(name, set()).update(normalized)
            for ext in normalized:
                self._index[ext] = name

    def update_category(self, name: str, extensions: Iterable[str]) -> bool:
        """Replace the extensions of an existing category.

        Returns:
            False if the category does not exist.
        """
        name = validate_category_name(name)
        normalized = {normalize_extension(ext) for ext in extensions}
        with self._lock:
            if name not in self._categories:
                return False
            if name == self.fallback_category and normalized:
                raise ConfigError(
                    f"Fallback category {name!r} cannot own extensions",
                    config_key=f"categories.{name}",
                )
            self._check_available(normalized, name)
            for ext in self._categories[name]:
                self._index.pop(ext, None)
            self._categories[name] = normalized
            for ext in normalized:
                self._index[ext] = name
            return True

    def remove_category(self, name: str) -> bool:
        """Remove a category. The fallback category cannot be removed.

        Returns:
            True if a category was removed.
        """
        with self._lock:
            if name == self.fallback_category or name not in self._categories:
                return False
            for ext in self._categories.pop(name):
                self._index.pop(ext, None)
            return True

    def add_extension(self, name: str, extension: str) -> bool:
        """Add one extension to an existing category.

        Returns:
            False if the category already owned the extension.

        Raises:
            ConfigError: Unknown or fallback category, or malformed extension.
            ClassificationAmbiguity: Extension already owned elsewhere.
        """
        ext = normalize_extension(extension)
        with self._lock:
            owned = self._categories.get(name)
            if owned is None:
                raise ConfigError(f"Unknown category: {name}", config_key=f"categories.{name}")
            if name == self.fallback_category:
                raise ConfigError(
                    f"Fallback category {name!r} cannot own extensions",
                    config_key=f"categories.{name}",
                )
            if ext in owned:
                return False
            self._check_available({ext}, name)
            owned.add(ext)
            self._index[ext] = name
            return True

    def remove_extension(self, name: str, extension: str) -> bool:
        """Remove one extension from a category.

        Returns:
            True if the extension was present and removed.
        """
        ext = normalize_extension(extension)
        with self._lock:
            owned = self._categories.get(name)
            if not owned or ext not in owned:
                return False
            owned.discard(ext)
            self._index.pop(ext, None)
            return True
