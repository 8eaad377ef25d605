"""Template registries for Inkwell.

A template registry tells the layout resolver which layouts exist and which
layout each one extends. Rendering is left to the external renderer; the
registry only reads enough of each template to find its parent.

Key classes:
- JinjaLayoutRegistry: Layouts on disk, discovered through a Jinja2 loader.
- MappingLayoutRegistry: Layouts declared in memory (configuration, tests).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path

import yaml
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, nodes, select_autoescape
from jinja2.exceptions import TemplateSyntaxError

from .diagnostics import LayoutRegistryError
from .extractors import FrontMatterLoader, split_front_matter
from .layouts import LAYOUT_SUFFIXES, layout_name


class MappingLayoutRegistry:
    """Registry backed by a mapping of layout name to parent name.

    Example:
        >>> registry = MappingLayoutRegistry({"default": None, "post": "default"})
        >>> registry.parent_of("post")
        'default'
    """

    def __init__(self, layouts: Mapping[str, str | None]):
        self._layouts = dict(layouts)

    def names(self) -> Iterable[str]:
        return list(self._layouts)

    def exists(self, name: str) -> bool:
        return name in self._layouts

    def parent_of(self, name: str) -> str | None:
        return self._layouts.get(name)


class JinjaLayoutRegistry:
    """Registry of layout templates in a directory.

    Layout names are file paths relative to the directory with the template
    suffix removed (``_layouts/posts/feature.html.jinja`` is
    ``posts/feature``). When several files share a name, the first suffix in
    LAYOUT_SUFFIXES wins.

    A layout's parent is taken from its front matter ``layout`` key (Jekyll
    style) or, for ``.jinja`` templates, from a literal ``{% extends %}`` tag.

    Attributes:
        layouts_dir: Directory holding the layout templates.
        env: Jinja2 environment used to list and parse templates.
    """

    def __init__(self, layouts_dir: Path):
        """Scan the layouts directory.

        Args:
            layouts_dir: Directory holding layout templates. A missing
                directory yields an empty registry.

        Raises:
            LayoutRegistryError: If a template cannot be read or parsed.
        """
        self.layouts_dir = layouts_dir
        self.env = Environment(
            loader=FileSystemLoader(str(layouts_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self._parents: dict[str, str | None] = {}
        self._files: dict[str, str] = {}
        if layouts_dir.is_dir():
            self._scan()

    def _scan(self) -> None:
        try:
            templates = self.env.list_templates(
                filter_func=lambda name: name.endswith(LAYOUT_SUFFIXES)
            )
        except OSError as exc:
            raise LayoutRegistryError(
                f"Cannot list layouts: {exc}", self.layouts_dir
            ) from exc
        for filename in sorted(templates, key=_suffix_rank):
            name = layout_name(filename)
            if name in self._files:
                continue
            self._files[name] = filename
            self._parents[name] = self._read_parent(filename)

    def _read_parent(self, filename: str) -> str | None:
        path = self.layouts_dir / filename
        try:
            source, _, _ = self.env.loader.get_source(self.env, filename)
        except (OSError, UnicodeDecodeError, TemplateNotFound) as exc:
            raise LayoutRegistryError(f"Cannot read layout: {exc}", path) from exc

        block, body, terminated = split_front_matter(source)
        if not terminated:
            raise LayoutRegistryError("Front matter fence is never closed", path)
        if block is not None:
            try:
                meta = yaml.load(block, Loader=FrontMatterLoader) or {}
            except yaml.YAMLError as exc:
                raise LayoutRegistryError(f"Invalid front matter: {exc}", path) from exc
            if isinstance(meta, dict) and meta.get("layout"):
                return layout_name(str(meta["layout"]))
        # Plain .html layouts may hold Liquid markup that Jinja cannot parse
        if not filename.endswith(".jinja"):
            return None

        try:
            tree = self.env.parse(body, name=filename)
        except TemplateSyntaxError as exc:
            raise LayoutRegistryError(
                f"Template syntax error on line {exc.lineno}: {exc.message}", path
            ) from exc
        extends = tree.find(nodes.Extends)
        if extends is not None and isinstance(extends.template, nodes.Const):
            return layout_name(str(extends.template.value))
        return None

    def names(self) -> Iterable[str]:
        return list(self._parents)

    def exists(self, name: str) -> bool:
        return name in self._parents

    def parent_of(self, name: str) -> str | None:
        return self._parents.get(name)

    def filename_of(self, name: str) -> str | None:
        """Return the template file backing a layout, for the renderer."""
        return self._files.get(name)


def _suffix_rank(filename: str) -> tuple[str, int]:
    for rank, suffix in enumerate(LAYOUT_SUFFIXES):
        if filename.endswith(suffix):
            return layout_name(filename), rank
    return filename, len(LAYOUT_SUFFIXES)
