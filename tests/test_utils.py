from datetime import date
from pathlib import Path

from inkwell import utils


def test_slugify_and_titleize():
    assert utils.slugify("Structuring Swift code") == "structuring-swift-code"
    assert utils.slugify("contact[form]") == "contact-form"
    assert utils.slugify("mixed--Case__slug") == "mixed-case-slug"
    assert utils.slugify("!!!") == "index"
    assert utils.titleize("2024-01-02-post-title.md") == "Post Title"
    assert utils.titleize("_draft-notes.md") == "Draft Notes"
    assert utils.titleize("mixed-case-slug.md") == "Mixed Case Slug"


def test_slug_from_filename_drops_date_and_extension():
    assert utils.slug_from_filename("2020-09-01-example.md") == "example"
    assert utils.slug_from_filename("2020-09-01-Hello, World!.markdown") == "hello-world"
    assert utils.slug_from_filename("_2020-09-01-draft.md") == "draft"
    assert utils.slug_from_filename("about.md") == "about"
    # not a real date, so the prefix is part of the name
    assert utils.slug_from_filename("2024-13-32-post.md") == "2024-13-32-post"


def test_split_date_prefix():
    assert utils.split_date_prefix("2024-01-15-cool") == (date(2024, 1, 15), "cool")
    assert utils.split_date_prefix("invalid") == (None, "invalid")
    assert utils.split_date_prefix("2024-02-30-post") == (None, "2024-02-30-post")


def test_normalize_term():
    assert utils.normalize_term("  Swift ") == ("swift", "Swift")
    assert utils.normalize_term("Cocoa\t Touch") == ("cocoa touch", "Cocoa Touch")
    assert utils.normalize_term("   ") == ("", "")
    assert utils.normalize_term("STRASSE")[0] == utils.normalize_term("straße")[0]


def test_path_helpers():
    assert utils.is_internal_path(Path("_posts/_drafts/a.md"))
    assert not utils.is_internal_path(Path("posts/a.md"))
    assert utils.has_extension(Path("a.MD"), (".md",))
    assert utils.has_extension(Path("a.markdown"), (".md", ".markdown"))
    assert not utils.has_extension(Path("a.txt"), (".md",))
