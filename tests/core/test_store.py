from __future__ import annotations

import threading
import zlib

import pytest

from lazypdf.core.exceptions import (
    FilterDecodeError,
    InvalidContainerNesting,
    MalformedObjectStream,
    ObjectFreed,
    ObjectIdentityMismatch,
    PDFSyntaxError,
    ReferenceChainTooDeep,
    UnexpectedValueType,
)
from lazypdf.core.model import ObjectId, Reference, Stream
from lazypdf.core.store import ObjectStore, as_object_id
from lazypdf.core.xref import load_xref
from lazypdf.filters import FilterPipeline


def _store(data: bytes, **kwargs) -> ObjectStore:
    pipeline = FilterPipeline()
    return ObjectStore(data, load_xref(data, pipeline), pipeline=pipeline, **kwargs)


def test_as_object_id_accepts_common_spellings() -> None:
    assert as_object_id(ObjectId(3, 1)) == ObjectId(3, 1)
    assert as_object_id((3, 1)) == ObjectId(3, 1)
    assert as_object_id(Reference.to(3, 1)) == ObjectId(3, 1)
    assert as_object_id(3) == ObjectId(3, 0)
    with pytest.raises(TypeError):
        as_object_id("3 0 R")


def test_resolution_is_memoised(simple_document) -> None:
    store = _store(simple_document)

    first = store.resolve(ObjectId(2, 0))
    second = store.resolve((2, 0))

    assert first is second
    assert first["/Count"] == 1
    assert store.cached_ids() == [ObjectId(2, 0)]


def test_every_object_resolves_to_its_own_header(simple_document) -> None:
    store = _store(simple_document)
    for object_id in store.xref.in_use_ids():
        value = store.resolve(object_id)
        assert store.resolve(object_id) == value
    assert len(store.cached_ids()) == 4


def test_dereference_follows_one_hop(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog /Next 2 0 R >>")
    builder.add_object(2, "3 0 R")
    builder.add_object(3, "(end)")
    builder.write_xref_table("/Root 1 0 R")
    store = _store(builder.data)

    catalog = store.resolve(ObjectId(1, 0))
    one_hop = store.dereference(catalog["/Next"])

    assert one_hop == Reference.to(3)
    assert store.dereference(42) == 42
    assert store.resolve_to_depth_limit(catalog["/Next"]) == b"end"


def test_reference_cycle_is_rejected(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object(5, "6 0 R")
    builder.add_object(6, "5 0 R")
    builder.write_xref_table("/Root 1 0 R")
    store = _store(builder.data, max_reference_hops=32)

    with pytest.raises(ReferenceChainTooDeep) as excinfo:
        store.resolve_to_depth_limit(Reference.to(5))
    assert excinfo.value.cycle


def test_long_reference_chain_exceeds_hop_limit(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    for number in range(10, 20):
        builder.add_object(number, f"{number + 1} 0 R")
    builder.add_object(20, "(bottom)")
    builder.write_xref_table("/Root 1 0 R")
    store = _store(builder.data)

    assert store.resolve_to_depth_limit(Reference.to(10)) == b"bottom"
    with pytest.raises(ReferenceChainTooDeep) as excinfo:
        store.resolve_to_depth_limit(Reference.to(10), max_hops=5)
    assert not excinfo.value.cycle
    assert excinfo.value.max_hops == 5


def test_identity_mismatch(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object(2, "(two)")
    builder.write_xref_table("/Root 1 0 R", entries={3: (builder.offsets[2], 0)})
    store = _store(builder.data)

    with pytest.raises(ObjectIdentityMismatch) as excinfo:
        store.resolve(ObjectId(3, 0))
    assert excinfo.value.found == ObjectId(2, 0)
    assert excinfo.value.offset == builder.offsets[2]


def test_failed_resolution_is_not_cached(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object(2, "(two)")
    builder.write_xref_table("/Root 1 0 R", free=[3])
    store = _store(builder.data)

    for _ in range(2):
        with pytest.raises(ObjectFreed):
            store.resolve(ObjectId(3, 0))
    assert ObjectId(3, 0) not in store.cached_ids()
    assert store.resolve(ObjectId(2, 0)) == b"two"


def test_object_stream_members(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    compressed = builder.add_object_stream(2, {3: "<< /Kind /Member >>", 4: "(packed)", 5: "7"})
    builder.write_xref_stream(6, "/Root 1 0 R", compressed=compressed)
    store = _store(builder.data)

    assert store.resolve(ObjectId(3, 0)) == {"/Kind": "/Member"}
    assert store.resolve(ObjectId(4, 0)) == b"packed"
    assert store.resolve(ObjectId(5, 0)) == 7
    container = store.resolve(ObjectId(2, 0))
    assert isinstance(container, Stream)
    assert container.is_decoded


def test_uncompressed_object_stream(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    compressed = builder.add_object_stream(2, {3: "[1 2 3]"}, compress=False)
    builder.write_xref_stream(4, "/Root 1 0 R", compressed=compressed)

    assert _store(builder.data).resolve(ObjectId(3, 0)) == [1, 2, 3]


def test_nested_container_is_rejected(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object_stream(10, {20: "(inner)"})
    builder.write_xref_stream(30, "/Root 1 0 R", compressed={20: (10, 0), 10: (11, 0)})
    store = _store(builder.data)

    with pytest.raises(InvalidContainerNesting) as excinfo:
        store.resolve(ObjectId(20, 0))
    assert excinfo.value.container == ObjectId(10, 0)


def test_member_number_mismatch_and_bad_index(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object_stream(2, {3: "(three)"})
    builder.write_xref_stream(5, "/Root 1 0 R", compressed={3: (2, 0), 4: (2, 0), 6: (2, 9)})
    store = _store(builder.data)

    with pytest.raises(ObjectIdentityMismatch):
        store.resolve(ObjectId(4, 0))
    with pytest.raises(MalformedObjectStream):
        store.resolve(ObjectId(6, 0))
    assert store.resolve(ObjectId(3, 0)) == b"three"


def test_container_must_be_an_object_stream(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_stream(2, b"3 0 (x)", "/Type /XObject")
    builder.write_xref_stream(4, "/Root 1 0 R", compressed={3: (2, 0)})
    store = _store(builder.data)

    with pytest.raises(MalformedObjectStream):
        store.resolve(ObjectId(3, 0))


def test_decode_stream_caches_and_resolves_indirect_entries(builder) -> None:
    payload = b"BT /F1 12 Tf (Hello) Tj ET"
    compressed = zlib.compress(payload)
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object(
        2,
        b"<< /Length 3 0 R /Filter 4 0 R >>\nstream\n" + compressed + b"\nendstream",
    )
    builder.add_object(3, str(len(compressed)))
    builder.add_object(4, "[/FlateDecode]")
    builder.write_xref_table("/Root 1 0 R")
    store = _store(builder.data)

    first = store.decode_stream(Reference.to(2))
    second = store.decode_stream(store.resolve(ObjectId(2, 0)))

    assert first == payload
    assert first is second
    assert store.resolve(ObjectId(2, 0)).raw == compressed


def test_decode_stream_errors(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_stream(2, b"not deflate data", "/Filter /FlateDecode")
    builder.write_xref_table("/Root 1 0 R")
    store = _store(builder.data)

    with pytest.raises(FilterDecodeError) as excinfo:
        store.decode_stream(Reference.to(2))
    assert excinfo.value.stage == 0
    assert excinfo.value.object_id == ObjectId(2, 0)
    with pytest.raises(UnexpectedValueType):
        store.decode_stream(Reference.to(1))


def test_concurrent_resolution_parses_once(simple_document) -> None:
    store = _store(simple_document)
    results = []

    def worker() -> None:
        results.append(store.resolve(ObjectId(1, 0)))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 8
    assert all(result is results[0] for result in results)


def test_contains(simple_document) -> None:
    store = _store(simple_document)
    assert (1, 0) in store
    assert Reference.to(2) in store
    assert (99, 0) not in store
    assert "nonsense" not in store


def test_stream_with_wrong_length_reads_up_to_endstream(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object(2, b"<< /Length 3 >>\nstream\nhello world payload\nendstream")
    builder.add_object(3, "(after)")
    builder.write_xref_table("/Root 1 0 R")
    store = _store(builder.data)

    stream = store.resolve(ObjectId(2, 0))

    assert isinstance(stream, Stream)
    assert stream.raw == b"hello world payload"
    assert store.decode_stream(stream) == b"hello world payload"
    assert store.resolve(ObjectId(3, 0)) == b"after"


def test_stream_without_endstream_is_a_syntax_error(builder) -> None:
    builder.add_object(1, "<< /Type /Catalog >>")
    builder.add_object(2, "(two)")
    builder.add_object(3, b"<< /Length 3 >>\nstream\nhello world payload\nendobj")
    builder.write_xref_table("/Root 1 0 R")
    store = _store(builder.data)

    with pytest.raises(PDFSyntaxError) as excinfo:
        store.resolve(ObjectId(3, 0))
    assert excinfo.value.offset == builder.offsets[3]
    assert ObjectId(3, 0) not in store.cached_ids()
    assert store.resolve(ObjectId(2, 0)) == b"two"
