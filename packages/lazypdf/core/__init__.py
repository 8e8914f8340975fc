"""Core reader: value model, cross-reference resolution, object store."""

from __future__ import annotations

from .config import DEFAULT_MAX_REFERENCE_HOPS, ReaderOptions
from .document import Document, open_document
from .store import ObjectStore
from .xref import XrefTable, load_xref, locate_startxref

__all__ = [
    "DEFAULT_MAX_REFERENCE_HOPS",
    "Document",
    "ObjectStore",
    "ReaderOptions",
    "XrefTable",
    "load_xref",
    "locate_startxref",
    "open_document",
]
