"""Document assembler: open a PDF and expose its top-level structures."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, BinaryIO, Union

from ..filters.pipeline import FilterPipeline
from .config import ReaderOptions
from .exceptions import (
    InvalidCatalog,
    InvalidPageTree,
    LazyPDFError,
    LoadError,
)
from .model import (
    K_ENCRYPT,
    K_INFO,
    K_ROOT,
    Name,
    ObjectId,
    Trailer,
    Value,
    as_dictionary,
    type_name,
)
from .store import ObjectStore
from .utils import get_logger, resolve_path
from .xref import XrefTable, load_xref

__all__ = ["Document", "DocumentSource", "open_document"]

LOGGER = get_logger("lazypdf.document")

DocumentSource = Union[bytes, bytearray, memoryview, str, Path, BinaryIO]

_HEADER = re.compile(rb"%PDF-(\d+\.\d+)")


def _version_key(version: str) -> tuple[int, ...] | None:
    try:
        return tuple(int(part) for part in version.split("."))
    except ValueError:
        return None


class Document:
    """A parsed PDF: merged cross-reference data plus a lazy object store."""

    def __init__(
        self,
        data: bytes,
        xref: XrefTable,
        store: ObjectStore,
        *,
        options: ReaderOptions,
        header_version: str | None = None,
    ) -> None:
        self.data = data
        self.xref = xref
        self.store = store
        self.options = options
        self.header_version = header_version
        self.catalog_error: InvalidCatalog | None = None

    def __repr__(self) -> str:
        return (
            f"Document(version={self.header_version!r}, objects={len(self.xref)}, "
            f"recovered={self.recovered})"
        )

    # -- Trailer -------------------------------------------------------------

    def trailer(self) -> dict[Name, Any]:
        return self.xref.trailer

    def trailer_info(self) -> Trailer:
        return Trailer.from_dictionary(self.xref.trailer)

    @property
    def recovered(self) -> bool:
        return self.xref.recovered

    @property
    def is_encrypted(self) -> bool:
        return K_ENCRYPT in self.xref.trailer

    # -- Top-level structures ------------------------------------------------

    def catalog(self, validate: bool = True) -> Value:
        """Return the document catalog reached through the trailer's ``/Root``.

        With ``validate`` the value must be a dictionary whose ``/Type`` is
        ``/Catalog``; anything else raises :class:`InvalidCatalog`.
        """

        root = self.xref.trailer.get(K_ROOT)
        if root is None:
            raise InvalidCatalog("Trailer has no /Root entry")
        try:
            value = self.store.resolve_to_depth_limit(root)
        except LazyPDFError as exc:
            raise InvalidCatalog(f"Cannot resolve /Root {root}: {exc}") from exc
        if not validate:
            return value
        if not isinstance(value, dict):
            raise InvalidCatalog(f"/Root resolves to a {type_name(value)}, not a dictionary")
        kind = value.get("/Type")
        if kind != "/Catalog":
            raise InvalidCatalog(f"/Root has /Type {kind!r}, expected /Catalog")
        return value

    def pages_root(self) -> dict[Name, Any]:
        catalog = self.catalog()
        pages = catalog.get("/Pages")
        if pages is None:
            raise InvalidPageTree("Catalog has no /Pages entry")
        try:
            node = self.store.resolve_to_depth_limit(pages)
            kids = self.store.resolve_to_depth_limit(node.get("/Kids")) if isinstance(node, dict) else None
            count = self.store.resolve_to_depth_limit(node.get("/Count")) if isinstance(node, dict) else None
        except LazyPDFError as exc:
            raise InvalidPageTree(f"Cannot resolve the page tree root: {exc}") from exc

        if not isinstance(node, dict):
            raise InvalidPageTree(f"/Pages resolves to a {type_name(node)}, not a dictionary")
        if node.get("/Type") != "/Pages":
            raise InvalidPageTree(f"Page tree root has /Type {node.get('/Type')!r}, expected /Pages")
        if not isinstance(kids, list):
            raise InvalidPageTree(f"Page tree /Kids is a {type_name(kids)}, not an array")
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidPageTree(f"Page tree /Count is a {type_name(count)}, not an integer")
        if count < len(kids):
            raise InvalidPageTree(f"Page tree /Count {count} is smaller than its {len(kids)} kids")
        return node

    def info(self) -> dict[Name, Any] | None:
        value = self.xref.trailer.get(K_INFO)
        if value is None:
            return None
        return as_dictionary(self.store.resolve_to_depth_limit(value))

    @property
    def version(self) -> str | None:
        """Effective version: the catalog ``/Version`` if newer than the header."""

        header = self.header_version
        try:
            catalog = self.catalog()
        except InvalidCatalog:
            return header
        override = catalog.get("/Version")
        if not isinstance(override, Name):
            return header
        candidate = _version_key(override.bare)
        if candidate is None:
            LOGGER.debug("Ignoring unparsable catalog /Version %s", override)
            return header
        if header is None or candidate > (_version_key(header) or ()):
            return override.bare
        return header

    # -- Object access -------------------------------------------------------

    def get(self, object_id: Any) -> Value:
        return self.store.resolve(object_id)

    def dereference(self, value: Value) -> Value:
        return self.store.dereference(value)

    def resolve_chain(self, value: Value, max_hops: int | None = None) -> Value:
        return self.store.resolve_to_depth_limit(value, max_hops)

    def decode_stream(self, value: Value) -> bytes:
        return self.store.decode_stream(value)

    def object_ids(self) -> list[ObjectId]:
        return list(self.xref.in_use_ids())

    def __contains__(self, object_id: object) -> bool:
        return object_id in self.store


def _read_source(source: DocumentSource) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        return resolve_path(source).read_bytes()
    read = getattr(source, "read", None)
    if callable(read):
        data = read()
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("File objects must be opened in binary mode")
        return bytes(data)
    raise TypeError(f"Unsupported document source: {type(source).__name__}")


def _find_header(data: bytes, window: int) -> str | None:
    match = _HEADER.search(data, 0, window)
    if match is None:
        LOGGER.warning("No %%PDF- header in the first %d bytes", window)
        return None
    if match.start():
        LOGGER.debug("Header found at byte %d", match.start())
    return match.group(1).decode("ascii")


def open_document(source: DocumentSource, options: ReaderOptions | None = None) -> Document:
    """Open ``source`` and build its cross-reference table and object store.

    Cross-reference failures fall back to the recovery scan unless
    ``options.recover`` is false.  An unusable catalog is recorded on
    :attr:`Document.catalog_error` unless ``options.strict_catalog`` is set.
    """

    options = options if options is not None else ReaderOptions()
    data = _read_source(source)
    if not data:
        raise LoadError("Document source is empty")

    header_version = _find_header(data, options.header_search_window)
    pipeline = FilterPipeline(options.filter_registry())
    xref = load_xref(data, pipeline, recover=options.recover)
    store = ObjectStore(
        data,
        xref,
        pipeline=pipeline,
        max_reference_hops=options.max_reference_hops,
    )
    document = Document(data, xref, store, options=options, header_version=header_version)

    if document.is_encrypted:
        LOGGER.warning("Document is encrypted; stream data is returned without decryption")

    try:
        document.catalog()
    except InvalidCatalog as exc:
        if options.strict_catalog:
            raise
        document.catalog_error = exc
        LOGGER.warning("Catalog validation failed: %s", exc)

    LOGGER.info(
        "Opened PDF %s with %d xref entries across %d section(s)%s",
        header_version or "(no header)",
        len(xref),
        len(xref.sections),
        " after recovery" if xref.recovered else "",
    )
    return document
