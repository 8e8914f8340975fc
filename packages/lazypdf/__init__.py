"""Lazy, random-access reader for the PDF object graph."""

from __future__ import annotations

from .core.config import DEFAULT_MAX_REFERENCE_HOPS, ReaderOptions
from .core.document import Document, open_document
from .core.exceptions import (
    CircularXrefChain,
    FilterDecodeError,
    FilterError,
    InvalidCatalog,
    InvalidContainerNesting,
    InvalidFilterParams,
    InvalidPageTree,
    InvalidTrailer,
    LazyPDFError,
    LoadError,
    MalformedObjectStream,
    MalformedXref,
    ObjectFreed,
    ObjectIdentityMismatch,
    ObjectNotFound,
    PDFSyntaxError,
    RecoveredWithErrors,
    ReferenceChainTooDeep,
    UnexpectedValueType,
    UnsupportedFilter,
)
from .core.model import (
    Name,
    ObjectId,
    Reference,
    Stream,
    Trailer,
    as_array,
    as_bool,
    as_bytes,
    as_dictionary,
    as_int,
    as_name,
    as_number,
    as_reference,
    as_stream,
)
from .filters import FilterPipeline, FilterRegistry, default_registry, register_filter

__version__ = "0.1.0"

__all__ = [
    "CircularXrefChain",
    "DEFAULT_MAX_REFERENCE_HOPS",
    "Document",
    "FilterDecodeError",
    "FilterError",
    "FilterPipeline",
    "FilterRegistry",
    "InvalidCatalog",
    "InvalidContainerNesting",
    "InvalidFilterParams",
    "InvalidPageTree",
    "InvalidTrailer",
    "LazyPDFError",
    "LoadError",
    "MalformedObjectStream",
    "MalformedXref",
    "Name",
    "ObjectFreed",
    "ObjectId",
    "ObjectIdentityMismatch",
    "ObjectNotFound",
    "PDFSyntaxError",
    "ReaderOptions",
    "RecoveredWithErrors",
    "Reference",
    "ReferenceChainTooDeep",
    "Stream",
    "Trailer",
    "UnexpectedValueType",
    "UnsupportedFilter",
    "as_array",
    "as_bool",
    "as_bytes",
    "as_dictionary",
    "as_int",
    "as_name",
    "as_number",
    "as_reference",
    "as_stream",
    "default_registry",
    "open_document",
    "register_filter",
]
