from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import replace

from .content import Document
from .utils import normalize_term


def sort_documents(documents: Iterable[Document]) -> list[Document]:
    """Order documents by publish date (newest first), then slug ascending.

    Source path breaks any remaining tie so the order never depends on input
    order.
    """
    by_slug = sorted(documents, key=lambda d: (d.slug, d.source_path.as_posix()))
    # sorted() is stable with reverse=True, so slug order survives within a date
    return sorted(by_slug, key=lambda d: d.publish_date, reverse=True)


class DocumentCollection(Sequence[Document]):
    """Lightweight read-only helper for working with lists of Documents."""

    def __init__(self, documents: Iterable[Document]):
        self._documents = tuple(documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        return self._documents[item]

    def __eq__(self, other) -> bool:
        if isinstance(other, DocumentCollection):
            return self._documents == other._documents
        return NotImplemented

    __hash__ = None

    def in_category(self, name: str) -> DocumentCollection:
        key, _ = normalize_term(name)
        return DocumentCollection(
            d for d in self._documents if key in {normalize_term(c)[0] for c in d.categories}
        )

    def with_tag(self, name: str) -> DocumentCollection:
        key, _ = normalize_term(name)
        return DocumentCollection(
            d for d in self._documents if key in {normalize_term(t)[0] for t in d.tags}
        )

    def sorted(self) -> DocumentCollection:
        """Sort by publish date (newest first), ties broken by slug."""
        return DocumentCollection(sort_documents(self._documents))

    def latest(self, count: int = 5) -> DocumentCollection:
        return DocumentCollection(self.sorted()[:count])

    def permalinks(self) -> list[str]:
        return [d.permalink for d in self._documents]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({len(self._documents)} documents)"


class CategoryIndex(Mapping[str, DocumentCollection]):
    """Mapping of canonical term to the documents filed under it.

    Lookups are case and whitespace insensitive: ``index["swift "]`` finds the
    ``Swift`` bucket.
    """

    def __init__(self, mapping: Mapping[str, Iterable[Document]]):
        self._mapping = {k: DocumentCollection(v) for k, v in mapping.items()}
        self._keys = {normalize_term(k)[0]: k for k in self._mapping}

    def __getitem__(self, key: str) -> DocumentCollection:
        if key in self._mapping:
            return self._mapping[key]
        return self._mapping[self._keys[normalize_term(key)[0]]]

    def __contains__(self, key) -> bool:
        return isinstance(key, str) and normalize_term(key)[0] in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def to_dict(self) -> dict[str, list[str]]:
        return {name: docs.permalinks() for name, docs in self._mapping.items()}

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"CategoryIndex({len(self._mapping)} terms)"


class TaxonomyIndexer:
    """Merges category or tag variants and builds the index for one taxonomy.

    Attributes:
        attribute: Document attribute holding the terms (``categories`` or ``tags``).
    """

    def __init__(self, attribute: str = "categories"):
        self.attribute = attribute

    def canonical_names(self, documents: Iterable[Document]) -> dict[str, str]:
        """Map each normalized key to the first display form seen in scan order."""
        canonical: dict[str, str] = {}
        for document in documents:
            for term in getattr(document, self.attribute):
                key, display = normalize_term(term)
                canonical.setdefault(key, display)
        return canonical

    def canonicalize(self, documents: Sequence[Document]) -> list[Document]:
        """Rewrite every document's terms to their canonical display form.

        Args:
            documents: Documents in scan order.

        Returns:
            New Document instances, same order.
        """
        canonical = self.canonical_names(documents)
        result: list[Document] = []
        for document in documents:
            terms = tuple(
                canonical[normalize_term(t)[0]] for t in getattr(document, self.attribute)
            )
            result.append(replace(document, **{self.attribute: terms}))
        return result

    def build_index(self, documents: Sequence[Document]) -> CategoryIndex:
        """Build the index from canonicalized documents.

        Buckets appear in first-seen order; each bucket lists its documents
        once, newest first, ties broken by slug.
        """
        buckets: dict[str, list[Document]] = {}
        for document in documents:
            for term in getattr(document, self.attribute):
                bucket = buckets.setdefault(term, [])
                if not any(d is document for d in bucket):
                    bucket.append(document)
        return CategoryIndex({term: sort_documents(docs) for term, docs in buckets.items()})

