"""Content model and per-document processing for Inkwell.

This module handles discovery and loading of content files and the
per-document stage of the pipeline: parsing front matter, resolving identity
and computing the document's taxonomy contribution. Everything here works on
one document at a time and is safe to run in parallel.

Key classes:
- SourceFile: Immutable raw input read at scan time.
- Document: The central entity, enriched stage by stage.
- FileContentLoader: Discovers and reads content files in a directory.
- DefaultDocumentBuilder: Runs parse, identity and taxonomy for one file.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .diagnostics import Diagnostic, Severity
from .extractors import extract_title, parse_document
from .identity import IdentityResolver
from .utils import has_extension, is_internal_path, normalize_term

if TYPE_CHECKING:
    from .layouts import LayoutRef

DEFAULT_EXTENSIONS = (".md", ".markdown", ".html")


@dataclass(frozen=True)
class SourceFile:
    """Raw content file as read at scan time.

    Attributes:
        path: Path of the file, relative to the content directory when loaded
            through FileContentLoader.
        content: Raw bytes.
        mtime: Modification time (timezone-aware, UTC).
    """

    path: Path
    content: bytes
    mtime: datetime


@dataclass(frozen=True)
class Document:
    """A content document and everything resolved about it.

    Attributes:
        source_path: Path of the source file.
        front_matter: Read-only parsed front matter; unknown keys preserved.
        body: Text after the front matter block.
        title: Title from front matter, first heading or filename.
        slug: URL-friendly identifier.
        permalink: Canonical URL path.
        publish_date: Timezone-aware publish date.
        categories: Category display names, unique and in declaration order.
        tags: Tag display names, unique and in declaration order.
        layout: Resolved layout, set during the reduce phase.
        draft: Whether the document is a draft.
        diagnostics: Problems attached to this document, in detection order.
    """

    source_path: Path
    front_matter: Mapping[str, Any]
    body: str
    title: str
    slug: str
    permalink: str
    publish_date: datetime
    categories: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    layout: LayoutRef | None = None
    draft: bool = False
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    @property
    def declared_layout(self) -> str | None:
        return self.front_matter.get("layout")

    @property
    def has_errors(self) -> bool:
        return any(
            d.severity in (Severity.ERROR, Severity.FATAL) for d in self.diagnostics
        )

    def with_diagnostics(self, *diagnostics: Diagnostic) -> Document:
        return replace(self, diagnostics=self.diagnostics + tuple(diagnostics))

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_path": self.source_path.as_posix(),
            "title": self.title,
            "slug": self.slug,
            "permalink": self.permalink,
            "publish_date": self.publish_date.isoformat(),
            "categories": list(self.categories),
            "tags": list(self.tags),
            "layout": self.layout.to_dict() if self.layout else None,
            "draft": self.draft,
            "front_matter": _plain(self.front_matter),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"Document({self.source_path.as_posix()!r}, permalink={self.permalink!r})"


def _plain(value: Any) -> Any:
    """Copy front matter into JSON-ready data with string mapping keys."""
    if isinstance(value, Mapping):
        return {_plain_key(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_plain(v) for v in value]
        return sorted(items, key=str) if isinstance(value, (set, frozenset)) else items
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _plain_key(key: Any) -> str:
    if hasattr(key, "isoformat"):
        return key.isoformat()
    return str(key)


def unique_terms(terms: Iterable[str]) -> tuple[str, ...]:
    """Normalize terms and drop blanks and case/whitespace duplicates.

    Examples:
        >>> unique_terms(["Swift", " swift ", "", "Cocoa"])
        ('Swift', 'Cocoa')
    """
    seen: set[str] = set()
    result: list[str] = []
    for term in terms:
        key, display = normalize_term(term)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(display)
    return tuple(result)


class FileContentLoader:
    """Loads content files from a directory.

    Files and folders whose name starts with ``_`` are skipped, except that
    ``_``-prefixed files are returned as drafts when requested.

    Attributes:
        content_dir: Directory containing content files.
        extensions: File extensions treated as content.
    """

    def __init__(self, content_dir: Path, extensions: tuple[str, ...] = DEFAULT_EXTENSIONS):
        self.content_dir = content_dir
        self.extensions = tuple(extensions)

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """List content files in scan order (sorted by relative path).

        Args:
            include_drafts: Whether to include ``_``-prefixed draft files.

        Returns:
            List of paths to content files.
        """
        files: list[Path] = []
        if not self.content_dir.is_dir():
            return files
        for path in self.content_dir.rglob("*"):
            if path.is_dir():
                continue
            rel = path.relative_to(self.content_dir)
            # Skip internal directories (starting with _)
            if is_internal_path(rel.parent):
                continue
            if rel.name.startswith("_") and not include_drafts:
                continue
            if has_extension(path, self.extensions):
                files.append(path)
        return sorted(files, key=lambda p: p.relative_to(self.content_dir).as_posix())

    def load(self, path: Path) -> SourceFile:
        """Read one content file.

        Raises:
            OSError: If the file cannot be read.
        """
        content = path.read_bytes()
        mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        return SourceFile(path.relative_to(self.content_dir), content, mtime)


class DefaultDocumentBuilder:
    """Builds Document objects from source files.

    Runs the parser, the identity resolver and the taxonomy contribution for
    one file. Holds no mutable state, so one instance can serve a whole worker
    pool.

    Attributes:
        identity_resolver: Resolver for slug, date and permalink.
    """

    def __init__(self, identity_resolver: IdentityResolver | None = None):
        self.identity_resolver = identity_resolver or IdentityResolver()

    def build(self, source: SourceFile) -> Document:
        """Build a Document from a source file.

        Args:
            source: The file to process.

        Returns:
            Document with parse and identity diagnostics attached.
        """
        parsed = parse_document(source.content, source.path)
        front_matter = parsed.front_matter
        identity = self.identity_resolver.resolve(source.path, front_matter, source.mtime)
        draft = source.path.name.startswith("_") or front_matter.get("published") is False
        return Document(
            source_path=source.path,
            front_matter=front_matter,
            body=parsed.body,
            title=extract_title(front_matter, parsed.body, source.path),
            slug=identity.slug,
            permalink=identity.permalink,
            publish_date=identity.publish_date,
            categories=unique_terms(front_matter.get("categories") or ()),
            tags=unique_terms(front_matter.get("tags") or ()),
            draft=draft,
            diagnostics=parsed.diagnostics + identity.diagnostics,
        )
