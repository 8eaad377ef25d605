"""Publishing pipeline for Inkwell.

This module contains the orchestration that turns a set of source files into
an immutable SiteModel. Per-document work (parse, identity, taxonomy
contribution) runs in a bounded worker pool; a single-writer reduce phase then
enforces permalink uniqueness, resolves layouts, merges taxonomy variants and
orders the result.

Key functions and classes:
- load_config: Loads site configuration from inkwell.yaml.
- PublishingPipeline: Runs the pipeline over SourceFiles.
- SiteModel: The pipeline's immutable output.
- build_site: Scan a project directory and run the pipeline.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import timedelta, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
import yaml

from .collections import CategoryIndex, DocumentCollection, TaxonomyIndexer, sort_documents
from .content import (
    DEFAULT_EXTENSIONS,
    DefaultDocumentBuilder,
    Document,
    FileContentLoader,
    SourceFile,
)
from .diagnostics import ConfigError, Diagnostic, DiagnosticCode, Severity
from .identity import DEFAULT_PERMALINK, IdentityResolver
from .layouts import LayoutResolver
from .protocols import DocumentBuilder, TemplateRegistry
from .templates import JinjaLayoutRegistry

log = structlog.get_logger(__name__)

CONFIG_FILENAME = "inkwell.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "content_dir": "_posts",
    "layouts_dir": "_layouts",
    "permalink": DEFAULT_PERMALINK,
    "default_layout": "default",
    "timezone": "UTC",
    "date_tolerance_hours": 24,
    "workers": 4,
    "include_drafts": False,
    "extensions": list(DEFAULT_EXTENSIONS),
}


@dataclass(frozen=True)
class SiteConfig:
    """Validated site configuration.

    Attributes:
        content_dir: Directory of content files, relative to the project root.
        layouts_dir: Directory of layout templates, relative to the project root.
        permalink: Permalink pattern or Jekyll style name.
        default_layout: Layout used when a document declares none or an unknown one.
        timezone: Site timezone applied to naive dates.
        date_tolerance: Accepted gap between explicit and filename dates.
        workers: Size of the per-document worker pool.
        include_drafts: Whether drafts belong to the render set.
        extensions: File extensions treated as content.
    """

    content_dir: str = DEFAULT_CONFIG["content_dir"]
    layouts_dir: str = DEFAULT_CONFIG["layouts_dir"]
    permalink: str = DEFAULT_PERMALINK
    default_layout: str = DEFAULT_CONFIG["default_layout"]
    timezone: tzinfo = ZoneInfo("UTC")
    date_tolerance: timedelta = timedelta(hours=24)
    workers: int = DEFAULT_CONFIG["workers"]
    include_drafts: bool = False
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> SiteConfig:
        """Build a config from raw values, applying defaults.

        Raises:
            ConfigError: If a value has the wrong type or is out of range.
        """
        values = {**DEFAULT_CONFIG, **mapping}
        try:
            zone = ZoneInfo(str(values["timezone"]))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone {values['timezone']!r}") from exc
        try:
            tolerance = float(values["date_tolerance_hours"])
            workers = int(values["workers"])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric setting: {exc}") from exc
        if tolerance < 0:
            raise ConfigError("date_tolerance_hours must not be negative")
        if workers < 1:
            raise ConfigError("workers must be at least 1")
        if not isinstance(values["include_drafts"], bool):
            raise ConfigError("include_drafts must be true or false")
        extensions = values["extensions"]
        if isinstance(extensions, str) or not isinstance(extensions, (list, tuple)):
            raise ConfigError("extensions must be a list")
        for key in ("content_dir", "layouts_dir", "permalink", "default_layout"):
            if not isinstance(values[key], str) or not values[key]:
                raise ConfigError(f"{key} must be a non-empty string")
        return cls(
            content_dir=values["content_dir"],
            layouts_dir=values["layouts_dir"],
            permalink=values["permalink"],
            default_layout=values["default_layout"],
            timezone=zone,
            date_tolerance=timedelta(hours=tolerance),
            workers=workers,
            include_drafts=values["include_drafts"],
            extensions=tuple(str(ext) for ext in extensions),
        )

    def identity_resolver(self) -> IdentityResolver:
        return IdentityResolver(self.permalink, self.timezone, self.date_tolerance)


def load_config(project_root: Path) -> SiteConfig:
    """Load site configuration from inkwell.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        SiteConfig with defaults applied for missing keys.

    Raises:
        ConfigError: If the file is not valid YAML or holds invalid values.
    """
    config_path = project_root / CONFIG_FILENAME
    loaded: Any = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except (yaml.YAMLError, ValueError) as exc:
            raise ConfigError(f"Invalid YAML: {exc}", config_path) from exc
        if not isinstance(loaded, dict):
            raise ConfigError("Configuration must be a mapping", config_path)
    return SiteConfig.from_mapping(loaded)


class CancellationToken:
    """Signal used to stop a pipeline run between documents."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class SiteModel:
    """Immutable result of a pipeline run, consumed by the renderer.

    Attributes:
        documents: Render set, newest first, ties broken by slug.
        categories: Category index over the render set.
        tags: Tag index over the render set.
        failed: Documents excluded by per-document errors, in scan order.
        drafts: Unpublished documents left out of the render set, in scan order.
        diagnostics: Run-level diagnostics.
        cancelled: True when the run stopped early; the model is partial.
    """

    documents: DocumentCollection
    categories: CategoryIndex
    tags: CategoryIndex
    failed: tuple[Document, ...] = ()
    drafts: tuple[Document, ...] = ()
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)
    cancelled: bool = False

    def report(self) -> list[Diagnostic]:
        """Flat diagnostics report.

        Document diagnostics come first, ordered by source path, followed by
        run-level diagnostics.
        """
        everything = [*self.documents, *self.failed, *self.drafts]
        everything.sort(key=lambda d: d.source_path.as_posix())
        entries = [diag for doc in everything for diag in doc.diagnostics]
        entries.extend(self.diagnostics)
        return entries

    def count(self, severity: Severity) -> int:
        return sum(1 for d in self.report() if d.severity == severity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cancelled": self.cancelled,
            "documents": [d.to_dict() for d in self.documents],
            "categories": self.categories.to_dict(),
            "tags": self.tags.to_dict(),
            "failed": [d.to_dict() for d in self.failed],
            "drafts": [d.to_dict() for d in self.drafts],
            "diagnostics": [d.to_dict() for d in self.report()],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False, default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


class PublishingPipeline:
    """Runs parse, identity, taxonomy and layout resolution over a batch.

    Attributes:
        config: Site configuration.
        registry: Read-only template registry.
        builder: Per-document stage, shared by all workers.
    """

    def __init__(
        self,
        config: SiteConfig,
        registry: TemplateRegistry,
        builder: DocumentBuilder | None = None,
    ):
        self.config = config
        self.registry = registry
        self.builder = builder or DefaultDocumentBuilder(config.identity_resolver())

    def run(
        self,
        sources: Iterable[SourceFile],
        cancel_token: CancellationToken | None = None,
        scan_diagnostics: Sequence[Diagnostic] = (),
    ) -> SiteModel:
        """Run the pipeline.

        Args:
            sources: Files to process; order does not matter.
            cancel_token: Optional token checked before each document.
            scan_diagnostics: Run-level diagnostics from scanning, carried
                into the model.

        Returns:
            SiteModel.

        Raises:
            LayoutCycleError: If the layout registry contains a cycle.
        """
        layouts = LayoutResolver(self.registry, self.config.default_layout)
        run_diagnostics = list(scan_diagnostics)
        run_diagnostics.extend(layouts.validate())

        ordered = sorted(sources, key=lambda s: s.path.as_posix())
        log.info("pipeline.start", sources=len(ordered), workers=self.config.workers)
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = [
                executor.submit(self._process, source, cancel_token) for source in ordered
            ]
            results = [future.result() for future in futures]
        built = [doc for doc in results if doc is not None]

        cancelled = bool(cancel_token and cancel_token.cancelled)
        if cancelled:
            log.warning("pipeline.cancelled", processed=len(built), total=len(ordered))
            run_diagnostics.append(
                Diagnostic.info(
                    DiagnosticCode.CANCELLED,
                    f"Run cancelled after {len(built)} of {len(ordered)} documents",
                )
            )

        model = self.reduce(built, layouts, run_diagnostics, cancelled)
        log.info(
            "pipeline.done",
            documents=len(model.documents),
            failed=len(model.failed),
            drafts=len(model.drafts),
        )
        return model

    def _process(
        self, source: SourceFile, cancel_token: CancellationToken | None
    ) -> Document | None:
        if cancel_token is not None and cancel_token.cancelled:
            return None
        document = self.builder.build(source)
        log.debug("document.parsed", path=source.path.as_posix(), permalink=document.permalink)
        return document

    def reduce(
        self,
        documents: Sequence[Document],
        layouts: LayoutResolver,
        run_diagnostics: Sequence[Diagnostic] = (),
        cancelled: bool = False,
    ) -> SiteModel:
        """Assemble the site model from per-document results.

        Args:
            documents: Built documents in scan order.
            layouts: Layout resolver bound to the registry.
            run_diagnostics: Run-level diagnostics collected so far.
            cancelled: Whether the run was cancelled.

        Returns:
            SiteModel.
        """
        drafts: list[Document] = []
        failed: list[Document] = []
        kept: list[Document] = []
        owners: dict[str, Path] = {}

        for document in documents:
            if document.draft and not self.config.include_drafts:
                drafts.append(document)
                continue
            key = document.permalink.rstrip("/") or "/"
            owner = owners.get(key)
            if owner is not None:
                document = document.with_diagnostics(
                    Diagnostic.error(
                        DiagnosticCode.DUPLICATE_PERMALINK,
                        f"Permalink {document.permalink} is already used by "
                        f"{owner.as_posix()}",
                        document.source_path,
                    )
                )
            else:
                owners[key] = document.source_path
            if document.has_errors:
                log.warning("document.failed", path=document.source_path.as_posix())
                failed.append(document)
                continue
            ref, problems = layouts.resolve(document.declared_layout, document.source_path)
            kept.append(
                replace(document, layout=ref, diagnostics=document.diagnostics + tuple(problems))
            )

        category_indexer = TaxonomyIndexer("categories")
        tag_indexer = TaxonomyIndexer("tags")
        kept = tag_indexer.canonicalize(category_indexer.canonicalize(kept))

        return SiteModel(
            documents=DocumentCollection(sort_documents(kept)),
            categories=category_indexer.build_index(kept),
            tags=tag_indexer.build_index(kept),
            failed=tuple(failed),
            drafts=tuple(drafts),
            diagnostics=tuple(run_diagnostics),
            cancelled=cancelled,
        )


def load_sources(
    loader: FileContentLoader, paths: Iterable[Path]
) -> tuple[list[SourceFile], list[Diagnostic]]:
    """Read source files, turning unreadable files into diagnostics."""
    sources: list[SourceFile] = []
    diagnostics: list[Diagnostic] = []
    for path in paths:
        try:
            sources.append(loader.load(path))
        except OSError as exc:
            rel = path.relative_to(loader.content_dir)
            log.warning("source.unreadable", path=rel.as_posix(), error=str(exc))
            diagnostics.append(
                Diagnostic.warning(
                    DiagnosticCode.UNREADABLE_SOURCE, f"Cannot read file: {exc}", rel
                )
            )
    return sources, diagnostics


def build_site(
    project_root: Path,
    include_drafts: bool | None = None,
    cancel_token: CancellationToken | None = None,
    registry: TemplateRegistry | None = None,
) -> SiteModel:
    """Scan a project and run the pipeline.

    Args:
        project_root: Root directory of the project.
        include_drafts: Override the configured draft handling.
        cancel_token: Optional cancellation signal.
        registry: Template registry; defaults to the layouts directory.

    Returns:
        SiteModel.

    Raises:
        PipelineError: On configuration problems, an unreadable layout
            registry or a layout cycle.
    """
    config = load_config(project_root)
    if include_drafts is not None:
        config = replace(config, include_drafts=include_drafts)
    loader = FileContentLoader(project_root / config.content_dir, config.extensions)
    paths = loader.iter_files(include_drafts=config.include_drafts)
    sources, scan_diagnostics = load_sources(loader, paths)
    if registry is None:
        registry = JinjaLayoutRegistry(project_root / config.layouts_dir)
    pipeline = PublishingPipeline(config, registry)
    return pipeline.run(sources, cancel_token=cancel_token, scan_diagnostics=scan_diagnostics)
