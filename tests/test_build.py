from datetime import datetime, timezone
from pathlib import Path

import pytest

from inkwell.build import (
    CancellationToken,
    PublishingPipeline,
    SiteConfig,
    build_site,
    load_config,
)
from inkwell.content import DefaultDocumentBuilder, SourceFile
from inkwell.diagnostics import ConfigError, DiagnosticCode, LayoutCycleError, Severity
from inkwell.templates import MappingLayoutRegistry

MTIME = datetime(2024, 6, 1, tzinfo=timezone.utc)

EXAMPLE = """---
layout: post
title: "Structuring Swift code"
date: 2020-09-01
categories: [Swift, Cocoa]
---

Body.
"""

LAYOUTS = MappingLayoutRegistry({"default": None, "post": "default"})


def source(name: str, text: str) -> SourceFile:
    return SourceFile(Path(name), text.encode("utf-8"), MTIME)


def post(title: str, date: str = "", categories: str = "", extra: str = "") -> str:
    lines = ["---", "layout: post", f"title: {title}"]
    if date:
        lines.append(f"date: {date}")
    if categories:
        lines.append(f"categories: [{categories}]")
    if extra:
        lines.append(extra)
    lines.extend(["---", "", f"{title} body.", ""])
    return "\n".join(lines)


def run(*sources, config=None, registry=LAYOUTS, **kwargs):
    pipeline = PublishingPipeline(config or SiteConfig(), registry)
    return pipeline.run(list(sources), **kwargs)


def write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def create_site(tmp_path: Path) -> Path:
    write(tmp_path / "_layouts" / "default.html", "<html>{{ content }}</html>")
    write(tmp_path / "_layouts" / "post.html", "---\nlayout: default\n---\n{{ content }}")
    posts = tmp_path / "_posts"
    write(posts / "2020-09-01-example.md", EXAMPLE)
    write(posts / "2020-10-12-second.md", post("Second", categories="swift, Testing"))
    write(posts / "2021-01-01-broken.md", "---\ntitle: never closed\n\nbody\n")
    write(posts / "_2021-02-02-draft.md", post("Draft"))
    write(posts / "_drafts" / "2021-03-03-hidden.md", post("Hidden"))
    write(posts / "notes.txt", "not content")
    return tmp_path


def test_example_scenario():
    model = run(source("2020-09-01-example.md", EXAMPLE))
    [doc] = model.documents
    assert doc.slug == "example"
    assert doc.permalink == "/2020/09/01/example"
    assert doc.title == "Structuring Swift code"
    assert doc.layout.chain == ("post", "default")
    assert list(model.categories) == ["Swift", "Cocoa"]
    assert list(model.categories["Swift"]) == [doc]
    assert list(model.categories["Cocoa"]) == [doc]
    assert model.report() == []


def test_documents_ordered_by_date_then_slug():
    model = run(
        source("2020-01-01-b.md", post("B")),
        source("2020-01-01-a.md", post("A")),
        source("2021-01-01-c.md", post("C")),
    )
    assert [d.slug for d in model.documents] == ["c", "a", "b"]


def test_pipeline_is_idempotent(tmp_path):
    site = create_site(tmp_path)
    first = build_site(site)
    second = build_site(site)
    assert first.to_json() == second.to_json()
    assert first.documents == second.documents


def test_worker_count_does_not_change_output():
    sources = [
        source(f"2020-01-{day:02d}-post-{day}.md", post(f"P{day}", categories="A, b, B"))
        for day in range(1, 21)
    ]
    single = run(*sources, config=SiteConfig(workers=1))
    many = run(*reversed(sources), config=SiteConfig(workers=8))
    assert single.to_json() == many.to_json()


def test_categories_merge_case_and_whitespace_variants():
    model = run(
        source("2020-01-01-a.md", post("A", categories="Swift")),
        source("2020-01-02-b.md", post("B", categories="'  swift '")),
        source("2020-01-03-c.md", post("C", categories="SWIFT, Swift")),
    )
    assert list(model.categories) == ["Swift"]
    assert [d.slug for d in model.categories["Swift"]] == ["c", "b", "a"]
    assert all(d.categories == ("Swift",) for d in model.documents)


def test_duplicate_permalink_excludes_later_document():
    model = run(
        source("2020-01-01-a.md", post("First")),
        source("2020-01-01-b.md", post("Second", extra="slug: a")),
    )
    assert [d.title for d in model.documents] == ["First"]
    [failed] = model.failed
    assert failed.title == "Second"
    [diagnostic] = failed.diagnostics
    assert diagnostic.code is DiagnosticCode.DUPLICATE_PERMALINK
    assert diagnostic.severity is Severity.ERROR
    assert "2020-01-01-a.md" in diagnostic.message


def test_failed_documents_stay_out_of_indexes():
    model = run(
        source("2020-01-01-a.md", post("First")),
        source("2020-01-01-b.md", post("Second", categories="Only", extra="slug: a")),
    )
    assert "Only" not in model.categories


def test_unterminated_front_matter_does_not_abort_run():
    model = run(
        source("2020-01-01-broken.md", "---\ntitle: oops\nno closing fence\n"),
        source("2020-01-02-fine.md", post("Fine")),
    )
    assert len(model.documents) == 2
    broken = next(d for d in model.documents if d.slug == "broken")
    codes = [d.code for d in broken.diagnostics]
    assert DiagnosticCode.MALFORMED_FRONT_MATTER in codes
    assert any(d.document_path == Path("2020-01-01-broken.md") for d in model.report())


def test_missing_layout_substitutes_default():
    model = run(source("2020-01-01-a.md", "---\nlayout: gallery\n---\nbody"))
    [doc] = model.documents
    assert doc.layout.name == "default"
    assert doc.layout.requested == "gallery"
    assert [d.code for d in doc.diagnostics] == [DiagnosticCode.MISSING_LAYOUT]


def test_layout_cycle_is_fatal():
    registry = MappingLayoutRegistry({"a": "b", "b": "a", "default": None})
    with pytest.raises(LayoutCycleError) as excinfo:
        run(source("2020-01-01-a.md", post("A")), registry=registry)
    assert excinfo.value.chain == ("a", "b", "a")


def test_date_ambiguity_is_a_warning():
    model = run(source("2020-01-01-a.md", post("A", date="2020-03-01")))
    [doc] = model.documents
    assert doc.publish_date == datetime(2020, 3, 1, tzinfo=timezone.utc)
    assert doc.diagnostics[0].code is DiagnosticCode.DATE_AMBIGUOUS
    assert model.count(Severity.WARNING) == 1


def test_unpublished_documents_are_drafts():
    sources = [
        source("2020-01-01-a.md", post("A", extra="published: false")),
        source("2020-01-02-b.md", post("B")),
    ]
    model = run(*sources)
    assert [d.slug for d in model.documents] == ["b"]
    assert [d.slug for d in model.drafts] == ["a"]

    with_drafts = run(*sources, config=SiteConfig(include_drafts=True))
    assert len(with_drafts.documents) == 2


def test_cancelled_run_returns_partial_model():
    token = CancellationToken()
    token.cancel()
    model = run(source("2020-01-01-a.md", post("A")), cancel_token=token)
    assert model.cancelled
    assert len(model.documents) == 0
    assert model.diagnostics[-1].code is DiagnosticCode.CANCELLED
    assert model.diagnostics[-1].severity is Severity.INFO


def test_cancel_midway_keeps_finished_documents():
    token = CancellationToken()
    pipeline = PublishingPipeline(SiteConfig(workers=1), LAYOUTS)
    original = pipeline.builder.build

    def build_then_cancel(src):
        document = original(src)
        token.cancel()
        return document

    pipeline.builder.build = build_then_cancel
    model = pipeline.run(
        [source("2020-01-01-a.md", post("A")), source("2020-01-02-b.md", post("B"))],
        cancel_token=token,
    )
    assert model.cancelled
    assert [d.slug for d in model.documents] == ["a"]


def test_build_site_scans_project(tmp_path):
    site = create_site(tmp_path)
    model = build_site(site)
    assert [d.slug for d in model.documents] == ["broken", "second", "example"]
    assert list(model.categories) == ["Swift", "Cocoa", "Testing"]
    assert [d.slug for d in model.categories["Swift"]] == ["second", "example"]
    broken = model.documents[0]
    assert broken.layout.name == "default"
    assert broken.diagnostics[0].code is DiagnosticCode.MALFORMED_FRONT_MATTER

    with_drafts = build_site(site, include_drafts=True)
    assert "draft" in [d.slug for d in with_drafts.documents]
    assert "hidden" not in [d.slug for d in with_drafts.documents]


def test_build_site_layout_cycle_on_disk(tmp_path):
    site = create_site(tmp_path)
    write(site / "_layouts" / "default.html", "---\nlayout: post\n---\n")
    with pytest.raises(LayoutCycleError):
        build_site(site)


def test_load_config_defaults_and_overrides(tmp_path):
    assert load_config(tmp_path) == SiteConfig()
    write(
        tmp_path / "inkwell.yaml",
        "permalink: /blog/:slug/\ntimezone: Europe/Vienna\nworkers: 2\ndate_tolerance_hours: 6\n",
    )
    config = load_config(tmp_path)
    assert config.permalink == "/blog/:slug/"
    assert str(config.timezone) == "Europe/Vienna"
    assert config.workers == 2
    assert config.date_tolerance.total_seconds() == 6 * 3600


@pytest.mark.parametrize(
    "text",
    [
        "timezone: Mars/Olympus\n",
        "workers: 0\n",
        "workers: many\n",
        "extensions: .md\n",
        "include_drafts: 'false'\n",
        "launched: 2020-02-30\n",
        "- just\n- a list\n",
        "permalink: [unclosed\n",
    ],
)
def test_invalid_config_raises(tmp_path, text):
    write(tmp_path / "inkwell.yaml", text)
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_configured_permalink_pattern(tmp_path):
    site = create_site(tmp_path)
    write(site / "inkwell.yaml", "permalink: /blog/:year/:slug/\n")
    model = build_site(site)
    assert "/blog/2020/example/" in [d.permalink for d in model.documents]


def test_unreadable_source_is_reported(tmp_path, monkeypatch):
    site = create_site(tmp_path)
    original = Path.read_bytes

    def flaky_read(self):
        if self.name == "2020-10-12-second.md":
            raise PermissionError("denied")
        return original(self)

    monkeypatch.setattr(Path, "read_bytes", flaky_read)
    model = build_site(site)
    assert "second" not in [d.slug for d in model.documents]
    assert model.diagnostics[0].code is DiagnosticCode.UNREADABLE_SOURCE


def test_report_serializes_to_json(tmp_path):
    import json

    model = build_site(create_site(tmp_path))
    payload = json.loads(model.to_json())
    assert payload["categories"]["Swift"] == ["/2020/10/12/second", "/2020/09/01/example"]
    assert {
        "severity": "warning",
        "document_path": "2021-01-01-broken.md",
        "code": "MalformedFrontMatter",
        "message": "Front matter fence is never closed",
    } in payload["diagnostics"]


def test_impossible_date_fails_only_that_field():
    model = run(
        source("2020-02-01-leap.md", post("Leap", date="2020-02-30")),
        source("2020-09-01-example.md", EXAMPLE),
    )
    assert [d.slug for d in model.documents] == ["example", "leap"]
    leap = model.documents[1]
    assert leap.publish_date.date().isoformat() == "2020-02-01"
    [diagnostic] = leap.diagnostics
    assert diagnostic.code is DiagnosticCode.MALFORMED_FRONT_MATTER
    assert not model.failed


def test_report_serializes_opaque_front_matter():
    import json

    text = post("Launch", extra="events:\n  2020-01-01: launch\n  2021: anniversary")
    model = run(source("2020-09-01-launch.md", text))
    [document] = json.loads(model.to_json())["documents"]
    assert document["front_matter"]["events"] == {"2020-01-01": "launch", "2021": "anniversary"}


def test_pipeline_accepts_any_document_builder():
    built = []

    class RecordingBuilder:
        def __init__(self, inner):
            self.inner = inner

        def build(self, source_file):
            built.append(source_file.path.name)
            return self.inner.build(source_file)

    config = SiteConfig()
    builder = RecordingBuilder(DefaultDocumentBuilder(config.identity_resolver()))
    pipeline = PublishingPipeline(config, LAYOUTS, builder)
    model = pipeline.run([source("2020-09-01-example.md", EXAMPLE)])
    assert built == ["2020-09-01-example.md"]
    assert [d.slug for d in model.documents] == ["example"]
