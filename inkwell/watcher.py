"""File watching for Inkwell.

Re-runs the pipeline whenever content, layouts or the configuration change.

Key classes:
- ContentWatcher: Observes the project and triggers rebuilds.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from pathlib import Path

import structlog
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import CONFIG_FILENAME, SiteModel, build_site, load_config

log = structlog.get_logger(__name__)


class ContentWatcher:
    """Watches a project and rebuilds the site model on change.

    Attributes:
        project_root: Root directory of the project.
        on_build: Called with each new SiteModel.
        on_error: Called with the exception when a rebuild fails.
    """

    def __init__(
        self,
        project_root: Path,
        on_build: Callable[[SiteModel], None],
        on_error: Callable[[Exception], None] | None = None,
        include_drafts: bool | None = None,
        debounce_seconds: float = 0.3,
    ):
        self.project_root = project_root
        self.on_build = on_build
        self.on_error = on_error
        self.include_drafts = include_drafts
        self._debounce_seconds = debounce_seconds
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._lock = threading.Lock()
        self._observer: Observer | None = None

    def watched_dirs(self) -> list[Path]:
        config = load_config(self.project_root)
        return [
            path
            for path in (
                self.project_root / config.content_dir,
                self.project_root / config.layouts_dir,
            )
            if path.is_dir()
        ]

    def start(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        for folder in self.watched_dirs():
            observer.schedule(handler, str(folder), recursive=True)
        # Watch root for inkwell.yaml
        observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def rebuild(self, force: bool = False) -> SiteModel | None:
        """Run the pipeline unless nothing changed since the last run.

        Args:
            force: Rebuild even when the file signature is unchanged.

        Returns:
            The new SiteModel, or None if the rebuild was skipped or failed.
        """
        if not self._lock.acquire(blocking=False):
            return None
        try:
            now = time.monotonic()
            if not force and (now - self._last_rebuild_at) < self._debounce_seconds:
                return None
            try:
                signature = self._compute_signature()
                if not force and signature == self._last_signature:
                    return None
                self._last_signature = signature
                log.info("watch.rebuild")
                model = build_site(self.project_root, include_drafts=self.include_drafts)
            except Exception as exc:
                if self.on_error is None:
                    raise
                self.on_error(exc)
                return None
            finally:
                self._last_rebuild_at = time.monotonic()
            self.on_build(model)
            return model
        finally:
            self._lock.release()

    def _compute_signature(self) -> tuple:
        entries: list[tuple] = []
        config_path = self.project_root / CONFIG_FILENAME
        candidates = [config_path] if config_path.exists() else []
        for folder in self.watched_dirs():
            candidates.extend(sorted(p for p in folder.rglob("*") if p.is_file()))
        for path in candidates:
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root)
            entries.append((rel.as_posix(), stat.st_mtime_ns, stat.st_size))
        return tuple(entries)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: ContentWatcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        if path.parent == self.watcher.project_root and path.name != CONFIG_FILENAME:
            return
        self.watcher.rebuild()
