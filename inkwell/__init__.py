"""Inkwell content pipeline.

This package ingests front-matter-bearing content files (Jekyll style posts),
derives slugs, publish dates and permalinks, indexes documents by category and
tag, and resolves layouts through their inheritance chain. The result is an
immutable SiteModel plus a diagnostics report that an external renderer
consumes.

The main entry points are the CLI module and `inkwell.build.build_site`.

Architecture:
- Parsing, identity and taxonomy contribution run per document in a worker pool.
- A single-writer reduce phase assembles the ordered site model and indexes.
- The template registry is passed in explicitly (see `protocols.TemplateRegistry`).
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
