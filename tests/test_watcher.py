from pathlib import Path

from inkwell.watcher import ContentWatcher, _ChangeHandler


def write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def create_project(root: Path) -> Path:
    write(root / "_layouts" / "default.html", "{{ content }}")
    write(root / "_posts" / "2020-09-01-example.md", "---\ntitle: Example\n---\nBody\n")
    return root


def test_rebuild_skips_when_nothing_changed(tmp_path):
    root = create_project(tmp_path)
    models = []
    watcher = ContentWatcher(root, models.append, debounce_seconds=0)

    assert watcher.rebuild(force=True) is not None
    assert watcher.rebuild() is None
    assert len(models) == 1

    write(root / "_posts" / "2020-09-02-new.md", "---\ntitle: New\n---\nBody\n")
    model = watcher.rebuild()
    assert model is not None
    assert [d.slug for d in model.documents] == ["new", "example"]
    assert len(models) == 2


def test_rebuild_reports_errors(tmp_path):
    root = create_project(tmp_path)
    errors = []
    watcher = ContentWatcher(root, lambda model: None, errors.append, debounce_seconds=0)
    write(root / "inkwell.yaml", "workers: 0\n")
    assert watcher.rebuild(force=True) is None
    assert len(errors) == 1


class _Event:
    def __init__(self, path, is_directory=False):
        self.src_path = str(path)
        self.is_directory = is_directory


def test_change_handler_filters_events(tmp_path):
    root = create_project(tmp_path)
    triggered = []

    class FakeWatcher:
        project_root = root

        def rebuild(self):
            triggered.append(True)

    handler = _ChangeHandler(FakeWatcher())
    handler.on_any_event(_Event(root / "_posts", is_directory=True))
    handler.on_any_event(_Event(root / "README.md"))
    assert triggered == []
    handler.on_any_event(_Event(root / "inkwell.yaml"))
    handler.on_any_event(_Event(root / "_posts" / "2020-09-01-example.md"))
    assert len(triggered) == 2
