"""Identity resolution for Inkwell documents.

Derives the slug, publish date and permalink of a document from its filename
and front matter. Only the path string is used; the filesystem is never
touched here.

Key classes:
- Identity: Resolved slug, publish date and permalink.
- IdentityResolver: Applies the site's URL convention.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Any

from .diagnostics import Diagnostic, DiagnosticCode
from .utils import slug_from_filename, slugify, split_date_prefix

PLACEHOLDER_RE = re.compile(r":([a-z_]+)")
REPEATED_SLASH_RE = re.compile(r"/{2,}")

DEFAULT_PERMALINK = "/:year/:month/:day/:slug"

# Jekyll's built-in permalink styles.
PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title",
    "none": "/:categories/:title",
}


@dataclass(frozen=True)
class Identity:
    slug: str
    publish_date: datetime
    permalink: str
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)


def expand_permalink(pattern: str, values: Mapping[str, str]) -> str:
    """Expand ``:name`` placeholders in a permalink pattern.

    Unknown placeholders are left untouched. Repeated slashes (for example from
    an empty ``:categories``) are collapsed and a leading slash is enforced.

    Examples:
        >>> expand_permalink("/:year/:slug", {"year": "2020", "slug": "example"})
        '/2020/example'
    """
    pattern = PERMALINK_STYLES.get(pattern, pattern)

    def repl(match: re.Match) -> str:
        return values.get(match.group(1), match.group(0))

    expanded = PLACEHOLDER_RE.sub(repl, pattern)
    expanded = REPEATED_SLASH_RE.sub("/", f"/{expanded}")
    return expanded


class IdentityResolver:
    """Resolves slug, publish date and permalink for a document.

    Attributes:
        permalink_pattern: Pattern or style name used when a document has no
            explicit ``permalink``.
        timezone: Site timezone applied to naive dates.
        date_tolerance: Largest accepted gap between the explicit date and the
            filename date before a DateAmbiguous warning is raised.
    """

    def __init__(
        self,
        permalink_pattern: str = DEFAULT_PERMALINK,
        site_timezone: tzinfo | None = None,
        date_tolerance: timedelta = timedelta(hours=24),
    ):
        self.permalink_pattern = permalink_pattern
        self.timezone = site_timezone or timezone.utc
        self.date_tolerance = date_tolerance

    def resolve(
        self, path: Path, front_matter: Mapping[str, Any], mtime: datetime
    ) -> Identity:
        """Resolve the identity of one document.

        Args:
            path: Source path (only its name is inspected).
            front_matter: Parsed front matter.
            mtime: Modification time of the source file, the last-resort date.

        Returns:
            Identity with any DateAmbiguous diagnostics attached.
        """
        diagnostics: list[Diagnostic] = []
        publish_date = self._resolve_date(path, front_matter, mtime, diagnostics)
        slug = self.resolve_slug(path, front_matter)
        permalink = self.resolve_permalink(slug, publish_date, front_matter)
        return Identity(slug, publish_date, permalink, tuple(diagnostics))

    def resolve_slug(self, path: Path, front_matter: Mapping[str, Any]) -> str:
        explicit = front_matter.get("slug")
        if explicit:
            return slugify(explicit)
        return slug_from_filename(path.name)

    def resolve_permalink(
        self, slug: str, publish_date: datetime, front_matter: Mapping[str, Any]
    ) -> str:
        pattern = front_matter.get("permalink") or self.permalink_pattern
        categories = "/".join(
            slugify(term) for term in front_matter.get("categories") or []
        )
        values = {
            "year": f"{publish_date.year:04d}",
            "short_year": f"{publish_date.year % 100:02d}",
            "month": f"{publish_date.month:02d}",
            "i_month": str(publish_date.month),
            "day": f"{publish_date.day:02d}",
            "i_day": str(publish_date.day),
            "y_day": f"{publish_date.timetuple().tm_yday:03d}",
            "hour": f"{publish_date.hour:02d}",
            "minute": f"{publish_date.minute:02d}",
            "second": f"{publish_date.second:02d}",
            "slug": slug,
            "title": slug,
            "categories": categories,
        }
        return expand_permalink(pattern, values)

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.timezone)
        return value.astimezone(self.timezone)

    def _resolve_date(
        self,
        path: Path,
        front_matter: Mapping[str, Any],
        mtime: datetime,
        diagnostics: list[Diagnostic],
    ) -> datetime:
        explicit = front_matter.get("date")
        name_date, _ = split_date_prefix(path.stem.lstrip("_"))
        from_name = (
            datetime(name_date.year, name_date.month, name_date.day, tzinfo=self.timezone)
            if name_date
            else None
        )

        if explicit is not None:
            resolved = self._localize(explicit)
            if from_name is not None and abs(resolved - from_name) > self.date_tolerance:
                diagnostics.append(
                    Diagnostic.warning(
                        DiagnosticCode.DATE_AMBIGUOUS,
                        f"Front matter date {resolved.isoformat()} disagrees with "
                        f"filename date {name_date.isoformat()}; using front matter",
                        path,
                    )
                )
            return resolved
        if from_name is not None:
            return from_name

        diagnostics.append(
            Diagnostic.warning(
                DiagnosticCode.DATE_AMBIGUOUS,
                "No date in front matter or filename; using file modification time",
                path,
            )
        )
        return self._localize(mtime)
