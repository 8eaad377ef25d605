"""Layout resolution for Inkwell.

Maps the layout a document declares to a LayoutRef: the layout's name plus
its full inheritance chain, most specific first. Chains are resolved eagerly
against the template registry; a cycle anywhere in the registry is a fatal
configuration error, while a layout that does not exist only produces a
warning and falls back to the default layout.

Key classes:
- LayoutRef: Resolved layout identity and inheritance chain.
- LayoutResolver: Resolves and validates layouts against a TemplateRegistry.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from .diagnostics import Diagnostic, DiagnosticCode, LayoutCycleError
from .protocols import TemplateRegistry

log = structlog.get_logger(__name__)

LAYOUT_SUFFIXES = (".html.jinja", ".jinja", ".html")


def layout_name(filename: str) -> str:
    """Strip a template suffix from a layout file name.

    Examples:
        >>> layout_name("post.html.jinja")
        'post'

        >>> layout_name("posts/feature.html")
        'posts/feature'
    """
    for suffix in LAYOUT_SUFFIXES:
        if filename.endswith(suffix):
            return filename[: -len(suffix)]
    return filename


@dataclass(frozen=True)
class LayoutRef:
    """A resolved layout.

    Attributes:
        name: Layout the document renders through.
        chain: ``name`` followed by its ancestors, most general last.
        found: False when neither the requested nor the default layout exists.
        requested: Layout the document asked for when a fallback was substituted.
    """

    name: str
    chain: tuple[str, ...]
    found: bool = True
    requested: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "chain": list(self.chain),
            "found": self.found,
            "requested": self.requested,
        }


class LayoutResolver:
    """Resolves declared layouts against a template registry.

    Attributes:
        registry: Read-only template registry.
        default_layout: Layout used when a document declares none, or declares
            one the registry does not hold.
    """

    def __init__(self, registry: TemplateRegistry, default_layout: str = "default"):
        self.registry = registry
        self.default_layout = default_layout
        self._chains: dict[str, tuple[tuple[str, ...], str | None]] = {}

    def validate(self) -> list[Diagnostic]:
        """Resolve every layout in the registry.

        Returns:
            Run-level MissingLayout warnings for layouts extending a parent
            that does not exist.

        Raises:
            LayoutCycleError: If any inheritance chain loops.
        """
        diagnostics: list[Diagnostic] = []
        for name in sorted(self.registry.names()):
            chain, missing_parent = self.chain_for(name)
            if missing_parent is not None:
                diagnostics.append(
                    Diagnostic.warning(
                        DiagnosticCode.MISSING_LAYOUT,
                        f"Layout '{chain[-1]}' extends unknown layout '{missing_parent}'",
                    )
                )
        return diagnostics

    def chain_for(self, name: str) -> tuple[tuple[str, ...], str | None]:
        """Return the inheritance chain of an existing layout.

        Args:
            name: Layout name known to the registry.

        Returns:
            Tuple of (chain, missing parent). The chain stops before a parent
            the registry does not hold, which is reported as missing.

        Raises:
            LayoutCycleError: If the chain loops back on itself.
        """
        cached = self._chains.get(name)
        if cached is not None:
            return cached
        chain: list[str] = []
        missing: str | None = None
        current: str | None = name
        while current:
            if current in chain:
                cycle = chain[chain.index(current) :] + [current]
                log.error("layout.cycle", chain=cycle)
                raise LayoutCycleError(cycle)
            if not self.registry.exists(current):
                missing = current
                break
            chain.append(current)
            parent = self.registry.parent_of(current)
            current = layout_name(parent) if parent else None
        result = (tuple(chain), missing)
        self._chains[name] = result
        return result

    def resolve(
        self, declared: str | None, path: Path | None = None
    ) -> tuple[LayoutRef, list[Diagnostic]]:
        """Resolve the layout a document declares.

        Args:
            declared: Value of the document's ``layout`` field, if any.
            path: Source path, used for diagnostics only.

        Returns:
            Tuple of (LayoutRef, diagnostics). A layout missing from the
            registry yields a MissingLayout warning and the default layout.
        """
        requested = layout_name(declared.strip()) if declared and declared.strip() else None
        name = requested or self.default_layout
        if self.registry.exists(name):
            return LayoutRef(name, self.chain_for(name)[0]), []

        if requested is None or requested == self.default_layout:
            message = f"Default layout '{self.default_layout}' not found"
        else:
            message = f"Layout '{requested}' not found; using '{self.default_layout}'"
        diagnostics = [Diagnostic.warning(DiagnosticCode.MISSING_LAYOUT, message, path)]

        if requested is not None and self.registry.exists(self.default_layout):
            chain = self.chain_for(self.default_layout)[0]
            return LayoutRef(self.default_layout, chain, requested=requested), diagnostics
        return (
            LayoutRef(
                self.default_layout,
                (self.default_layout,),
                found=False,
                requested=requested if requested != self.default_layout else None,
            ),
            diagnostics,
        )
