"""Protocol definitions for Inkwell.

This module defines the interfaces (protocols) the pipeline depends on, so
that collaborators such as the template store can be swapped for fakes in
tests or for other backends.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Document, SourceFile


@runtime_checkable
class TemplateRegistry(Protocol):
    """Read-only view of the available layouts.

    The registry only answers questions about layout identity and
    inheritance; rendering a template body is the renderer's business.
    """

    @abstractmethod
    def names(self) -> Iterable[str]:
        """Return the names of all known layouts."""
        ...

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check if a layout with the given name exists.

        Args:
            name: Layout name, e.g. ``post`` or ``posts/feature``.

        Returns:
            True if the registry holds the layout.
        """
        ...

    @abstractmethod
    def parent_of(self, name: str) -> str | None:
        """Return the layout the given layout extends.

        Args:
            name: Layout name known to the registry.

        Returns:
            Parent layout name, or None for a root layout.
        """
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Protocol for loading content files.

    This separates file discovery from content processing.
    """

    @abstractmethod
    def iter_files(self, include_drafts: bool = False) -> list:
        """Return the paths of all content files, in scan order."""
        ...

    @abstractmethod
    def load(self, path) -> SourceFile:
        """Read one content file into a SourceFile."""
        ...


@runtime_checkable
class DocumentBuilder(Protocol):
    """Protocol for the per-document stage of the pipeline."""

    @abstractmethod
    def build(self, source: SourceFile) -> Document:
        """Parse a source file and resolve its identity.

        Args:
            source: The file to process.

        Returns:
            Document with any diagnostics attached.
        """
        ...
