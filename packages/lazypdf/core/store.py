"""Lazy, memoised object resolution over a merged cross-reference table."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_MAX_REFERENCE_HOPS
from .exceptions import (
    InvalidContainerNesting,
    MalformedObjectStream,
    ObjectIdentityMismatch,
    ReferenceChainTooDeep,
)
from .lexer import ObjectParser
from .model import (
    ObjectId,
    Reference,
    Stream,
    Value,
    as_stream,
    normalize_decode_params,
    normalize_filter_names,
    type_name,
)
from .utils import get_logger
from .xref import CompressedEntry, InUseEntry, XrefTable, parse_object_stream_header

__all__ = ["ObjectStore", "as_object_id"]

LOGGER = get_logger("lazypdf.store")


def as_object_id(value: Any) -> ObjectId:
    """Accept an ``ObjectId``, a ``(number, generation)`` pair or a ``Reference``."""

    if isinstance(value, ObjectId):
        return value
    if isinstance(value, Reference):
        return value.object_id
    if isinstance(value, tuple) and len(value) == 2:
        number, generation = value
        if isinstance(number, int) and isinstance(generation, int):
            return ObjectId(number, generation)
    if isinstance(value, int) and not isinstance(value, bool):
        return ObjectId(value, 0)
    raise TypeError(f"Cannot interpret {value!r} as an object identifier")


@dataclass(slots=True)
class _ContainerIndex:
    first: int
    members: list[tuple[int, int]]
    data: bytes


class ObjectStore:
    """Resolve objects on demand and cache them by identifier.

    The store borrows the document's byte buffer; it never copies or owns
    it.  A single re-entrant lock guards the value cache, the object-stream
    header cache and the decoded-bytes cache of streams, so concurrent
    callers never parse the same object twice.
    """

    def __init__(
        self,
        data: bytes,
        xref: XrefTable,
        *,
        pipeline: Any,
        max_reference_hops: int = DEFAULT_MAX_REFERENCE_HOPS,
    ) -> None:
        self.data = data
        self.xref = xref
        self.pipeline = pipeline
        self.max_reference_hops = max_reference_hops
        self._lock = threading.RLock()
        self._cache: dict[ObjectId, Value] = {}
        self._containers: dict[ObjectId, _ContainerIndex] = {}
        self._pending: set[ObjectId] = set()
        self._parser = ObjectParser(data, resolve_length=self.resolve)

    # -- Resolution ----------------------------------------------------------

    def resolve(self, object_id: Any) -> Value:
        """Return the value stored under ``object_id``, parsing it on first use."""

        object_id = as_object_id(object_id)
        with self._lock:
            try:
                return self._cache[object_id]
            except KeyError:
                pass
            if object_id in self._pending:
                # e.g. a stream whose indirect /Length points back at itself
                raise ReferenceChainTooDeep(object_id, self.max_reference_hops, cycle=True)

            entry = self.xref.lookup(object_id)
            self._pending.add(object_id)
            try:
                if isinstance(entry, InUseEntry):
                    value = self._load_direct(object_id, entry)
                else:
                    value = self._load_compressed(object_id, entry)
            finally:
                self._pending.discard(object_id)
            self._cache[object_id] = value
            LOGGER.debug("Resolved object %s (%s)", object_id, type_name(value))
            return value

    def dereference(self, value: Value) -> Value:
        """Follow exactly one reference; other values are returned unchanged."""

        if isinstance(value, Reference):
            return self.resolve(value.object_id)
        return value

    def resolve_to_depth_limit(self, value: Value, max_hops: int | None = None) -> Value:
        """Follow a chain of references until a direct value is reached.

        Raises :class:`ReferenceChainTooDeep` when the chain revisits an
        identifier or needs more than ``max_hops`` dereferences.
        """

        limit = self.max_reference_hops if max_hops is None else max_hops
        start = value
        seen: set[ObjectId] = set()
        hops = 0
        while isinstance(value, Reference):
            if value.object_id in seen:
                raise ReferenceChainTooDeep(start, limit, cycle=True)
            if hops >= limit:
                raise ReferenceChainTooDeep(start, limit)
            seen.add(value.object_id)
            value = self.resolve(value.object_id)
            hops += 1
        return value

    def _load_direct(self, object_id: ObjectId, entry: InUseEntry) -> Value:
        found, value, _ = self._parser.parse_indirect(entry.offset)
        if found != object_id:
            raise ObjectIdentityMismatch(object_id, found, offset=entry.offset)
        return value

    def _load_compressed(self, object_id: ObjectId, entry: CompressedEntry) -> Value:
        container_id = entry.container_id
        if isinstance(self.xref.entry(container_id.number), CompressedEntry):
            raise InvalidContainerNesting(object_id, container_id)

        index = self._container_index(container_id)
        if entry.index >= len(index.members):
            raise MalformedObjectStream(
                container_id,
                f"member index {entry.index} is beyond /N {len(index.members)}",
            )
        number, relative = index.members[entry.index]
        if number != object_id.number:
            raise ObjectIdentityMismatch(object_id, ObjectId(number, 0))

        value, _ = self._parser.parse_value(index.first + relative, index.data)
        if isinstance(value, Stream):
            raise MalformedObjectStream(container_id, f"member {object_id} is a stream")
        return value

    def _container_index(self, container_id: ObjectId) -> _ContainerIndex:
        cached = self._containers.get(container_id)
        if cached is not None:
            return cached
        container = self.resolve(container_id)
        if not isinstance(container, Stream):
            raise MalformedObjectStream(container_id, f"container is a {type_name(container)}, not a stream")
        decoded = self.decode_stream(container)
        members = parse_object_stream_header(container_id, container, decoded)
        # The tokenizer needs one byte of lookahead after the last member.
        index = _ContainerIndex(first=container["/First"], members=members, data=decoded + b" ")
        self._containers[container_id] = index
        LOGGER.debug("Indexed object stream %s with %d members", container_id, len(members))
        return index

    # -- Streams -------------------------------------------------------------

    def decode_stream(self, value: Value) -> bytes:
        """Return the decoded bytes of a stream, running the pipeline once."""

        stream = as_stream(self.resolve_to_depth_limit(value))
        with self._lock:
            if stream.is_decoded:
                return stream.decoded  # type: ignore[return-value]
            filters = self._filters(stream)
            decoded = self.pipeline.decode(stream.raw, filters, object_id=stream.object_id)
            return stream.cache_decoded(decoded)

    def _filters(self, stream: Stream) -> list[tuple[str, dict]]:
        names_value = self.resolve_to_depth_limit(stream.get("/Filter"))
        if isinstance(names_value, list):
            names_value = [self.resolve_to_depth_limit(item) for item in names_value]
        names = normalize_filter_names(names_value)

        params_value = self.resolve_to_depth_limit(stream.get("/DecodeParms"))
        if isinstance(params_value, list):
            params_value = [self.resolve_to_depth_limit(item) for item in params_value]
        params = normalize_decode_params(params_value, len(names))
        return list(zip(names, params))

    # -- Introspection -------------------------------------------------------

    def __contains__(self, object_id: object) -> bool:
        try:
            return as_object_id(object_id) in self.xref
        except TypeError:
            return False

    def cached_ids(self) -> list[ObjectId]:
        with self._lock:
            return sorted(self._cache)
