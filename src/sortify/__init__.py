"""
Sortify
=======

Organizes files into category folders by extension.

Features:
- One-shot organizing of a directory's top level
- Per-directory monitoring with debounced, self-suppressed moves
- Conflict-safe moves with ``name (N).ext`` renaming, history and undo
"""

__version__ = "0.1.0"
