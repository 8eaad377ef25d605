"""Front matter parsing for Inkwell.

This module splits a raw content file into a YAML front matter block and a
body, and validates the typed front matter fields. It is a pure
transformation: nothing here touches the filesystem.

Key functions:
- split_front_matter: Locate the fenced block at the start of the text.
- extract_frontmatter: Decode and validate the block.
- parse_document: Decode raw bytes and run the above.
- extract_title: Title from front matter, first heading or filename.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .diagnostics import Diagnostic, DiagnosticCode
from .utils import titleize

OPEN_FENCE_RE = re.compile(r"\A---[ \t]*\r?\n")
CLOSE_FENCE_RE = re.compile(r"^(?:---|\.\.\.)[ \t]*\r?$\n?", re.MULTILINE)
DATE_VALUE_RE = re.compile(
    r"^(\d{4})-(\d{1,2})-(\d{1,2})"
    r"(?:(?:[Tt]|[ \t]+)(\d{1,2}):(\d{2})(?::(\d{2})(?:\.(\d{1,6})\d*)?)?)?"
    r"\s*(Z|z|[+-]\d{2}(?::?\d{2})?)?$"
)

EMPTY_FRONT_MATTER: Mapping[str, Any] = MappingProxyType({})


class FrontMatterLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamps as strings.

    PyYAML builds dates while loading, so an impossible date such as
    ``2020-02-30`` would fail the whole block. Dates are converted later by
    parse_date_value, one field at a time.
    """


FrontMatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


class FieldError(ValueError):
    """A typed front matter field holds a value of the wrong shape."""


@dataclass(frozen=True)
class ParsedDocument:
    """Result of parsing one content file.

    Attributes:
        front_matter: Read-only mapping of front matter keys to values.
        body: Text following the front matter block.
        diagnostics: Problems found while parsing.
    """

    front_matter: Mapping[str, Any]
    body: str
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)


def parse_date_value(value: Any) -> datetime:
    """Convert a front matter date value to a datetime.

    Accepts YAML dates and timestamps as well as strings such as
    ``2020-09-01``, ``2020-09-01 10:30`` or ``2020-09-01 10:30:00 +0200``.
    The result is naive when no offset was given.

    Raises:
        FieldError: If the value is not a recognizable date.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise FieldError(f"expected a date, got {type(value).__name__}")
    match = DATE_VALUE_RE.match(value.strip())
    if not match:
        raise FieldError(f"invalid date {value!r}")
    year, month, day, hour, minute, second, fraction, offset = match.groups()
    tzinfo = _parse_offset(offset) if offset else None
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
            int((fraction or "0").ljust(6, "0")),
            tzinfo=tzinfo,
        )
    except ValueError as exc:
        raise FieldError(f"invalid date {value!r}: {exc}") from exc


def _parse_offset(offset: str) -> timezone:
    if offset in ("Z", "z"):
        return timezone.utc
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    hours = int(digits[:2])
    minutes = int(digits[2:4] or 0)
    if hours > 23 or minutes > 59:
        raise FieldError(f"invalid UTC offset {offset!r}")
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_terms(value: Any) -> list[str]:
    """Convert a categories/tags value to an ordered list of strings.

    A plain string is split on whitespace (Jekyll convention); a sequence
    must contain scalars only. ``None`` means no terms.

    Raises:
        FieldError: If the value is a mapping or holds nested structures.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        terms: list[str] = []
        for item in value:
            if item is None:
                continue
            if isinstance(item, (dict, list, tuple)):
                raise FieldError("sequence items must be plain values")
            terms.append(str(item))
        return terms
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return [str(value)]
    raise FieldError(f"expected a list of strings, got {type(value).__name__}")


def parse_scalar(value: Any) -> str | None:
    """Convert a scalar field (layout, title, slug) to a string."""
    if value is None:
        return None
    if isinstance(value, (dict, list, tuple)):
        raise FieldError(f"expected a single value, got {type(value).__name__}")
    return str(value)


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise FieldError(f"expected true or false, got {value!r}")


# Typed fields; anything else is kept as-is.
FIELD_PARSERS: dict[str, Callable[[Any], Any]] = {
    "date": parse_date_value,
    "categories": parse_terms,
    "tags": parse_terms,
    "layout": parse_scalar,
    "title": parse_scalar,
    "slug": parse_scalar,
    "permalink": parse_scalar,
    "published": parse_flag,
}


def split_front_matter(text: str) -> tuple[str | None, str, bool]:
    """Locate the front matter block at the very start of ``text``.

    Args:
        text: Decoded file content.

    Returns:
        Tuple of (block or None, body, terminated). ``block`` is None when the
        file does not open with a fence; ``terminated`` is False when a fence
        was opened but never closed, in which case the body is the whole text.
    """
    opening = OPEN_FENCE_RE.match(text)
    if not opening:
        if text.rstrip() == "---":
            return None, text, False
        return None, text, True
    closing = CLOSE_FENCE_RE.search(text, opening.end())
    if not closing:
        return None, text, False
    return text[opening.end() : closing.start()], text[closing.end() :], True


def extract_frontmatter(
    text: str, path: Path | None = None
) -> tuple[dict[str, Any], str, list[Diagnostic]]:
    """Extract and validate YAML front matter from content.

    Args:
        text: Raw file content.
        path: Source path, used for diagnostics only.

    Returns:
        Tuple of (front matter dict, remaining content, diagnostics).
    """
    block, body, terminated = split_front_matter(text)
    if not terminated:
        return (
            {},
            body,
            [
                Diagnostic.warning(
                    DiagnosticCode.MALFORMED_FRONT_MATTER,
                    "Front matter fence is never closed",
                    path,
                )
            ],
        )
    if block is None:
        return {}, body, []
    try:
        data = yaml.load(block, Loader=FrontMatterLoader)
    except yaml.YAMLError as exc:
        return (
            {},
            body,
            [
                Diagnostic.warning(
                    DiagnosticCode.MALFORMED_FRONT_MATTER,
                    f"Front matter is not valid YAML: {_yaml_problem(exc)}",
                    path,
                )
            ],
        )
    if data is None:
        return {}, body, []
    if not isinstance(data, dict):
        return (
            {},
            body,
            [
                Diagnostic.warning(
                    DiagnosticCode.MALFORMED_FRONT_MATTER,
                    f"Front matter must be a mapping, got {type(data).__name__}",
                    path,
                )
            ],
        )

    front_matter: dict[str, Any] = {}
    diagnostics: list[Diagnostic] = []
    for key, value in data.items():
        name = str(key)
        parser = FIELD_PARSERS.get(name)
        if parser is None:
            front_matter[name] = value
            continue
        try:
            front_matter[name] = parser(value)
        except FieldError as exc:
            diagnostics.append(
                Diagnostic.warning(
                    DiagnosticCode.MALFORMED_FRONT_MATTER,
                    f"Ignoring field '{name}': {exc}",
                    path,
                )
            )
    return front_matter, body, diagnostics


def _yaml_problem(exc: yaml.YAMLError) -> str:
    mark = getattr(exc, "problem_mark", None)
    problem = getattr(exc, "problem", None) or str(exc)
    if mark is not None:
        # +1 for the opening fence line
        return f"{problem} (line {mark.line + 2})"
    return problem


def decode_source(raw: bytes, path: Path | None = None) -> tuple[str, list[Diagnostic]]:
    """Decode file bytes as UTF-8, dropping a byte order mark.

    Undecodable bytes are replaced and reported instead of failing the file.
    """
    try:
        return raw.decode("utf-8-sig"), []
    except UnicodeDecodeError as exc:
        return (
            raw.decode("utf-8-sig", errors="replace"),
            [
                Diagnostic.warning(
                    DiagnosticCode.INVALID_ENCODING,
                    f"File is not valid UTF-8 (byte {exc.start}); bad bytes replaced",
                    path,
                )
            ],
        )


def parse_document(raw: bytes, path: Path | None = None) -> ParsedDocument:
    """Split raw file bytes into front matter and body.

    Args:
        raw: File content.
        path: Source path, used for diagnostics only.

    Returns:
        ParsedDocument; malformed front matter yields an empty or partial
        mapping plus diagnostics rather than an exception.
    """
    text, diagnostics = decode_source(raw, path)
    front_matter, body, problems = extract_frontmatter(text, path)
    diagnostics.extend(problems)
    return ParsedDocument(
        front_matter=MappingProxyType(front_matter) if front_matter else EMPTY_FRONT_MATTER,
        body=body,
        diagnostics=tuple(diagnostics),
    )


def extract_title(front_matter: Mapping[str, Any], body: str, path: Path) -> str:
    """Return the document title.

    Uses the ``title`` field, then the first level-1 Markdown heading,
    then a title derived from the filename.
    """
    title = front_matter.get("title")
    if title:
        return title
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            return stripped.lstrip("# ").strip()
    return titleize(path.name)
