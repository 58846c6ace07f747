"""Classification module: extension rules applied to file names."""

from .classifier import CategoryClassifier, FileFilter

__all__ = [
    "CategoryClassifier",
    "FileFilter",
]
