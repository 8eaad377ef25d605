"""Utility functions for Inkwell.

This module contains small string and path helpers used throughout the Inkwell
codebase: slug derivation, date prefixes in filenames, title fallbacks and
taxonomy term normalization.

Key functions:
    slugify: Convert filenames or titles to URL slugs.
    titleize: Convert filenames to human-readable titles.
    split_date_prefix: Split a YYYY-MM-DD- prefix off a filename stem.
    normalize_term: Normalize a category or tag for comparison.
    is_internal_path: Check for underscore-prefixed path components.
"""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path

DATE_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.*)$")
NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]+")
WHITESPACE_RE = re.compile(r"\s+")


def split_date_prefix(stem: str) -> tuple[date | None, str]:
    """Split a YYYY-MM-DD- prefix off a filename stem.

    Args:
        stem: Filename stem (without extension).

    Returns:
        Tuple of (date or None, remaining name). A prefix that looks like a
        date but is not a valid calendar day is left in place.

    Examples:
        >>> split_date_prefix("2020-09-01-example")
        (datetime.date(2020, 9, 1), 'example')

        >>> split_date_prefix("about")
        (None, 'about')
    """
    match = DATE_PREFIX_RE.match(stem)
    if not match:
        return None, stem
    try:
        found = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None, stem
    return found, match.group(4)


def slugify(name: str) -> str:
    """Convert a name to a slug.

    Non-alphanumeric runs collapse to a single hyphen, leading and trailing
    hyphens are dropped and the result is lower-cased.

    Args:
        name: Filename stem, title or explicit slug.

    Returns:
        URL-friendly slug, or "index" when nothing usable remains.
    """
    cleaned = NON_ALNUM_RE.sub("-", name)
    cleaned = cleaned.strip("-").lower()
    return cleaned or "index"


def slug_from_filename(filename: str) -> str:
    """Derive a slug from a filename, dropping extension and date prefix.

    Examples:
        >>> slug_from_filename("2020-09-01-example.md")
        'example'
    """
    _, rest = split_date_prefix(Path(filename).stem.lstrip("_"))
    return slugify(rest)


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'

        >>> titleize("getting-started.md")
        'Getting Started'
    """
    _, base = split_date_prefix(Path(filename).stem.lstrip("_"))
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def normalize_term(term: str) -> tuple[str, str]:
    """Normalize a category or tag.

    Args:
        term: Raw term as written in front matter.

    Returns:
        Tuple of (comparison key, display form). Both are empty for blank terms.

    Examples:
        >>> normalize_term("  Swift ")
        ('swift', 'Swift')

        >>> normalize_term("Cocoa   Touch")
        ('cocoa touch', 'Cocoa Touch')
    """
    display = WHITESPACE_RE.sub(" ", term).strip()
    return display.casefold(), display


def is_internal_path(path: Path) -> bool:
    """Check if a path is internal (contains components starting with _).

    Args:
        path: Path to check.

    Returns:
        True if any path component starts with underscore.
    """
    return any(part.startswith("_") for part in path.parts)


def has_extension(path: Path, extensions: tuple[str, ...]) -> bool:
    """Check if a path ends with one of the given extensions (case-insensitive).

    Args:
        path: Path to check.
        extensions: Extensions including the dot, e.g. (".md", ".markdown").

    Returns:
        True if the file name ends with any of the extensions.
    """
    name = path.name.lower()
    return any(name.endswith(ext.lower()) for ext in extensions)
