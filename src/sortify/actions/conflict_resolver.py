"""
Conflict Resolver
=================

Pure rename-on-conflict search: given a desired file name and a snapshot of
the names already present in the destination directory, pick the first free
``name (N).ext`` variant.
"""

from typing import Collection, Iterator, Optional, Tuple

from sortify.utils.exceptions import CollisionExhausted

DEFAULT_MAX_ATTEMPTS = 1000


def split_name(filename: str) -> Tuple[str, str]:
    """Split a file name into (stem, extension) at the last dot.

    Hidden names without a further dot (``.env``) have no extension.
    """
    dot = filename.rfind(".")
    if dot <= 0:
        return filename, ""
    return filename[:dot], filename[dot:]


def candidate_names(filename: str, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> Iterator[str]:
    """Yield the requested name, then ``stem (1).ext`` up to ``max_attempts``."""
    yield filename
    stem, ext = split_name(filename)
    for counter in range(1, max_attempts + 1):
        yield f"{stem} ({counter}){ext}"


def resolve_name(
    filename: str,
    existing: Collection[str],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    start_after: Optional[str] = None,
) -> str:
    """Return the first candidate name not in ``existing``.

    Args:
        filename: Desired file name.
        existing: Names already present in the destination directory.
        max_attempts: Maximum numbered variants tried.
        start_after: Skip candidates up to and including this one (used when a
            previously chosen name was taken by another process).

    Raises:
        CollisionExhausted: If every candidate is taken.
    """
    skipping = start_after is not None
    for candidate in candidate_names(filename, max_attempts):
        if skipping:
            if candidate == start_after:
                skipping = False
            continue
        if candidate not in existing:
            return candidate
    raise CollisionExhausted(
        f"No free name for {filename!r} after {max_attempts} attempts",
        file_path=filename,
        attempts=max_attempts,
    )
