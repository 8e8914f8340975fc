"""Cross-reference resolution.

The resolver walks the ``/Prev`` chain backwards from ``startxref``,
parsing classic tables and cross-reference streams, then replays the
sections oldest first so that newer revisions override older entries.
When the strict path fails, :meth:`XrefResolver.recover` rebuilds a
best-effort table by scanning the file for ``N G obj`` markers.
"""

from __future__ import annotations

import re
import warnings
from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from .exceptions import (
    CircularXrefChain,
    FilterError,
    LazyPDFError,
    LoadError,
    MalformedObjectStream,
    MalformedXref,
    ObjectFreed,
    ObjectNotFound,
    PDFSyntaxError,
    RecoveredWithErrors,
    UnexpectedValueType,
)
from .lexer import ObjectParser
from .model import (
    K_PREV,
    K_ROOT,
    K_SIZE,
    K_XREF_STM,
    Name,
    ObjectId,
    Reference,
    Stream,
    Trailer,
    as_int,
)
from .utils import decode_be_integer, get_logger, read_int, skip_whitespace

__all__ = [
    "CompressedEntry",
    "FreeEntry",
    "InUseEntry",
    "XrefEntry",
    "XrefResolver",
    "XrefSection",
    "XrefTable",
    "load_xref",
    "locate_startxref",
]

LOGGER = get_logger("lazypdf.xref")

STARTXREF = b"startxref"
XREF_KEYWORD = b"xref"
TRAILER_KEYWORD = b"trailer"
RECORD_LENGTH = 20
MAX_OBJECT_NUMBER = 2**31 - 1

# Keys describing the xref stream itself rather than the document.
XREF_STREAM_KEYS = frozenset(
    Name(key)
    for key in (
        "/Type",
        "/W",
        "/Index",
        "/Filter",
        "/DecodeParms",
        "/Length",
        "/DL",
        "/F",
        "/FFilter",
        "/FDecodeParms",
    )
)

_OBJECT_HEADER = re.compile(rb"(\d+)[\x00\t\n\r\f ]+(\d+)[\x00\t\n\r\f ]*obj")
_SCAN_OBJECT = re.compile(
    rb"(?<![^\x00\t\n\r\f ])(\d{1,10})[\x00\t\n\r\f ]+(\d{1,5})[\x00\t\n\r\f ]+obj(?![A-Za-z])"
)
_SCAN_TRAILER = re.compile(rb"(?<![A-Za-z])trailer(?![A-Za-z])")
_RECORD_EOL = (b" \r", b" \n", b"\r\n")
_RECOVERY_MARKERS = (b"/XRef", b"/ObjStm", b"/Catalog")
_RECOVERY_WINDOW = 2048


# -- Entries and sections ----------------------------------------------------


@dataclass(frozen=True, slots=True)
class InUseEntry:
    """Object stored uncompressed at ``offset`` in the file."""

    offset: int
    generation: int = 0


@dataclass(frozen=True, slots=True)
class CompressedEntry:
    """Object stored at ``index`` inside object stream ``container``."""

    container: int
    index: int

    @property
    def generation(self) -> int:
        return 0

    @property
    def container_id(self) -> ObjectId:
        return ObjectId(self.container, 0)


@dataclass(frozen=True, slots=True)
class FreeEntry:
    """Free object number; ``generation`` is the next one to use."""

    next_free: int = 0
    generation: int = 0


XrefEntry = Union[InUseEntry, CompressedEntry, FreeEntry]


@dataclass(slots=True)
class XrefSection:
    """One cross-reference section together with its trailer."""

    offset: int
    kind: str
    entries: dict[int, XrefEntry] = field(default_factory=dict)
    trailer: dict[Name, Any] = field(default_factory=dict)
    stream_id: ObjectId | None = None

    @property
    def prev(self) -> int | None:
        value = self.trailer.get(K_PREV)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise MalformedXref(f"Invalid /Prev value {value!r}", offset=self.offset)
        return value


@dataclass(slots=True)
class XrefTable:
    """Merged view over every cross-reference section of a document."""

    entries: dict[int, XrefEntry]
    trailer: dict[Name, Any]
    sections: list[XrefSection] = field(default_factory=list)
    startxref: int | None = None
    recovered: bool = False
    errors: list[BaseException] = field(default_factory=list)

    @classmethod
    def from_sections(
        cls,
        sections: list[XrefSection],
        *,
        startxref: int | None = None,
    ) -> "XrefTable":
        """Replay ``sections`` (oldest first) into one table."""

        entries: dict[int, XrefEntry] = {}
        trailer: dict[Name, Any] = {}
        for section in sections:
            entries.update(section.entries)
            trailer.update(section.trailer)
        trailer.pop(K_PREV, None)
        trailer.pop(K_XREF_STM, None)
        return cls(entries=entries, trailer=trailer, sections=list(sections), startxref=startxref)

    def entry(self, number: int) -> XrefEntry | None:
        return self.entries.get(number)

    def lookup(self, object_id: ObjectId) -> InUseEntry | CompressedEntry:
        """Return the location of ``object_id``.

        Raises :class:`ObjectFreed` when the newest revision frees the
        number and :class:`ObjectNotFound` when it was never defined (or is
        defined with another generation).
        """

        entry = self.entries.get(object_id.number)
        if entry is None:
            raise ObjectNotFound(object_id)
        if isinstance(entry, FreeEntry):
            raise ObjectFreed(object_id)
        if entry.generation != object_id.generation:
            raise ObjectNotFound(
                object_id, f"the cross-reference table only knows generation {entry.generation}"
            )
        return entry

    def in_use_ids(self) -> Iterator[ObjectId]:
        for number in sorted(self.entries):
            entry = self.entries[number]
            if not isinstance(entry, FreeEntry):
                yield ObjectId(number, entry.generation)

    def __contains__(self, object_id: object) -> bool:
        if not isinstance(object_id, tuple) or len(object_id) != 2:
            return False
        entry = self.entries.get(object_id[0])
        return (
            entry is not None
            and not isinstance(entry, FreeEntry)
            and entry.generation == object_id[1]
        )

    def __len__(self) -> int:
        return len(self.entries)


# -- Locating the newest section ---------------------------------------------


def locate_startxref(data: bytes) -> int:
    """Return the offset announced by the last ``startxref`` keyword."""

    index = data.rfind(STARTXREF)
    if index == -1:
        raise MalformedXref("Unable to locate startxref marker")
    try:
        offset, _ = read_int(data, index + len(STARTXREF))
    except ValueError as exc:
        raise MalformedXref("startxref offset not found", offset=index) from exc
    if offset < 0 or offset >= len(data):
        raise MalformedXref(f"startxref offset {offset} lies outside the file", offset=index)
    return offset


# -- Resolver ----------------------------------------------------------------


class XrefResolver:
    """Parse and merge the cross-reference sections of one document."""

    def __init__(self, data: bytes, pipeline: Any, parser: ObjectParser | None = None) -> None:
        self.data = data
        self.pipeline = pipeline
        self.parser = parser if parser is not None else ObjectParser(data)

    # -- Strict path ---------------------------------------------------------

    def resolve(self, startxref: int) -> XrefTable:
        """Follow the ``/Prev`` chain from ``startxref`` and merge it."""

        sections: list[XrefSection] = []
        visited: list[int] = []
        next_offset: int | None = startxref
        while next_offset is not None:
            if next_offset in visited:
                raise CircularXrefChain(next_offset, visited)
            visited.append(next_offset)
            section = self.read_section(next_offset)
            LOGGER.debug(
                "Read %s xref section at byte %d with %d entries",
                section.kind,
                section.offset,
                len(section.entries),
            )
            sections.append(section)
            next_offset = section.prev

        sections.reverse()
        table = XrefTable.from_sections(sections, startxref=startxref)
        LOGGER.debug("Merged %d xref sections into %d entries", len(sections), len(table))
        return table

    def read_section(self, offset: int) -> XrefSection:
        data = self.data
        if offset < 0 or offset >= len(data):
            raise MalformedXref("Section offset lies outside the file", offset=offset)
        start = skip_whitespace(data, offset)
        if data.startswith(XREF_KEYWORD, start):
            return self._read_table(offset, start + len(XREF_KEYWORD))
        if _OBJECT_HEADER.match(data, start):
            return self._read_stream(offset)
        raise MalformedXref("Offset points to neither an xref table nor an xref stream", offset=offset)

    def _read_table(self, offset: int, index: int) -> XrefSection:
        data = self.data
        entries: dict[int, XrefEntry] = {}
        while True:
            index = skip_whitespace(data, index)
            if index >= len(data):
                raise MalformedXref("Unexpected end of file inside xref table", offset=offset)
            if data.startswith(TRAILER_KEYWORD, index):
                break
            try:
                first, index = read_int(data, index)
                count, index = read_int(data, index)
            except ValueError as exc:
                raise MalformedXref(f"Invalid xref subsection header: {exc}", offset=offset) from exc
            if first < 0 or count < 0:
                raise MalformedXref(f"Negative xref subsection header {first} {count}", offset=offset)
            if first + count - 1 > MAX_OBJECT_NUMBER:
                raise MalformedXref(
                    f"Subsection {first}+{count} exceeds the largest object number", offset=offset
                )
            index = skip_whitespace(data, index)
            remaining = len(data) - index
            if count * RECORD_LENGTH > remaining:
                raise MalformedXref(
                    f"Subsection {first} declares {count} records but only {remaining} bytes remain",
                    offset=offset,
                )
            for number in range(first, first + count):
                entries[number] = _parse_record(data[index : index + RECORD_LENGTH], index)
                index += RECORD_LENGTH

        trailer_start = index + len(TRAILER_KEYWORD)
        try:
            trailer, _ = self.parser.parse_value(trailer_start)
        except PDFSyntaxError as exc:
            raise MalformedXref(f"Unreadable trailer dictionary: {exc}", offset=offset) from exc
        if not isinstance(trailer, dict):
            raise MalformedXref("Trailer is not a dictionary", offset=offset)

        section = XrefSection(offset=offset, kind="table", entries=entries, trailer=trailer)
        hybrid_offset = trailer.get(K_XREF_STM)
        if hybrid_offset is not None:
            self._fold_hybrid(section, hybrid_offset)
        return section

    def _fold_hybrid(self, section: XrefSection, hybrid_offset: Any) -> None:
        try:
            stream_offset = as_int(hybrid_offset)
        except UnexpectedValueType as exc:
            raise MalformedXref(f"Invalid /XRefStm value: {exc}", offset=section.offset) from exc
        if stream_offset < 0 or stream_offset >= len(self.data):
            raise MalformedXref(f"/XRefStm offset {stream_offset} lies outside the file", offset=section.offset)
        hybrid = self._read_stream(stream_offset)
        folded = 0
        for number, entry in hybrid.entries.items():
            current = section.entries.get(number)
            if current is None or isinstance(current, FreeEntry):
                section.entries[number] = entry
                folded += 1
        LOGGER.debug("Folded %d entries from hybrid xref stream at byte %d", folded, stream_offset)

    def _read_stream(self, offset: int) -> XrefSection:
        try:
            object_id, value, _ = self.parser.parse_indirect(offset)
        except PDFSyntaxError as exc:
            raise MalformedXref(f"Unreadable xref stream object: {exc}", offset=offset) from exc
        if not isinstance(value, Stream):
            raise MalformedXref(f"Object {object_id} is not a stream", offset=offset)
        if value.type != "/XRef":
            raise MalformedXref(f"Object {object_id} has /Type {value.type}, expected /XRef", offset=offset)

        try:
            filters = list(zip(value.filter_names(), value.decode_params()))
            decoded = self.pipeline.decode(value.raw, filters, object_id=object_id)
        except (FilterError, UnexpectedValueType) as exc:
            raise MalformedXref(f"Cannot decode xref stream {object_id}: {exc}", offset=offset) from exc
        value.cache_decoded(decoded)

        widths = self._widths(value, offset)
        entries = self._read_stream_entries(value, decoded, widths, offset)
        trailer = {key: item for key, item in value.dictionary.items() if key not in XREF_STREAM_KEYS}
        return XrefSection(
            offset=offset,
            kind="stream",
            entries=entries,
            trailer=trailer,
            stream_id=object_id,
        )

    @staticmethod
    def _widths(stream: Stream, offset: int) -> tuple[int, int, int]:
        widths = stream.get("/W")
        if not isinstance(widths, list) or len(widths) != 3:
            raise MalformedXref(f"/W must be an array of three integers, got {widths!r}", offset=offset)
        for width in widths:
            if isinstance(width, bool) or not isinstance(width, int) or width < 0:
                raise MalformedXref(f"Invalid /W field width {width!r}", offset=offset)
        if sum(widths) == 0:
            raise MalformedXref("/W declares zero-length entries", offset=offset)
        return widths[0], widths[1], widths[2]

    @staticmethod
    def _subsections(stream: Stream, offset: int) -> list[tuple[int, int]]:
        size = stream.get("/Size")
        if isinstance(size, bool) or not isinstance(size, int) or size < 0:
            raise MalformedXref(f"Invalid /Size {size!r} in xref stream", offset=offset)
        index = stream.get("/Index")
        if index is None:
            return [(0, size)]
        if not isinstance(index, list) or len(index) % 2:
            raise MalformedXref(f"/Index must hold pairs of integers, got {index!r}", offset=offset)
        pairs: list[tuple[int, int]] = []
        for position in range(0, len(index), 2):
            first, count = index[position], index[position + 1]
            for item in (first, count):
                if isinstance(item, bool) or not isinstance(item, int) or item < 0:
                    raise MalformedXref(f"Invalid /Index entry {item!r}", offset=offset)
            if first + count - 1 > MAX_OBJECT_NUMBER:
                raise MalformedXref(f"/Index subsection {first}+{count} overflows", offset=offset)
            pairs.append((first, count))
        return pairs

    def _read_stream_entries(
        self,
        stream: Stream,
        decoded: bytes,
        widths: tuple[int, int, int],
        offset: int,
    ) -> dict[int, XrefEntry]:
        w_type, w_second, w_third = widths
        entry_width = w_type + w_second + w_third
        subsections = self._subsections(stream, offset)
        total = sum(count for _, count in subsections)
        if total * entry_width > len(decoded):
            raise MalformedXref(
                f"Xref stream holds {len(decoded)} bytes, {total} entries of {entry_width} bytes expected",
                offset=offset,
            )

        entries: dict[int, XrefEntry] = {}
        position = 0
        for first, count in subsections:
            for number in range(first, first + count):
                record = decoded[position : position + entry_width]
                position += entry_width
                # A zero width selects the field's default: type 1, other fields 0.
                kind = decode_be_integer(record[:w_type]) if w_type else 1
                second = decode_be_integer(record[w_type : w_type + w_second])
                third = decode_be_integer(record[w_type + w_second :])
                if kind == 0:
                    entries[number] = FreeEntry(next_free=second, generation=third)
                elif kind == 1:
                    entries[number] = InUseEntry(offset=second, generation=third)
                elif kind == 2:
                    entries[number] = CompressedEntry(container=second, index=third)
                else:
                    LOGGER.debug("Skipping xref stream entry %d with unknown type %d", number, kind)
        return entries

    # -- Recovery ------------------------------------------------------------

    def recover(self, errors: list[BaseException] | None = None) -> XrefTable:
        """Rebuild a best-effort table by scanning for object markers.

        The last definition of an object number in file order wins.  Trailer
        keys come from every ``trailer`` dictionary and every ``/Type /XRef``
        stream, oldest first.  Members of ``/Type /ObjStm`` containers are
        re-linked as compressed entries unless a later direct definition
        exists.
        """

        data = self.data
        errors = list(errors or [])
        direct: dict[int, InUseEntry] = {}
        for match in _SCAN_OBJECT.finditer(data):
            number, generation = int(match.group(1)), int(match.group(2))
            if number > MAX_OBJECT_NUMBER:
                continue
            direct[number] = InUseEntry(offset=match.start(), generation=generation)

        trailers: list[tuple[int, dict[Name, Any]]] = []
        for match in _SCAN_TRAILER.finditer(data):
            try:
                trailer, _ = self.parser.parse_value(match.end())
            except PDFSyntaxError as exc:
                errors.append(exc)
                continue
            if isinstance(trailer, dict):
                trailers.append((match.start(), trailer))

        catalogs: list[tuple[int, ObjectId]] = []
        containers: list[tuple[int, ObjectId, Stream]] = []
        entries: dict[int, XrefEntry] = dict(direct)
        for entry in sorted(direct.values(), key=lambda item: item.offset):
            if not self._may_be_structural(entry.offset):
                continue
            try:
                object_id, value, _ = self.parser.parse_indirect(entry.offset)
            except PDFSyntaxError as exc:
                errors.append(exc)
                continue
            if isinstance(value, Stream) and value.type == "/XRef":
                trailer = {key: item for key, item in value.dictionary.items() if key not in XREF_STREAM_KEYS}
                trailers.append((entry.offset, trailer))
            elif isinstance(value, Stream) and value.type == "/ObjStm":
                containers.append((entry.offset, object_id, value))
            elif isinstance(value, dict) and value.get("/Type") == "/Catalog":
                catalogs.append((entry.offset, object_id))

        for container_offset, container_id, container in containers:
            self._relink_container(entries, container_offset, container_id, container, errors)

        if not entries and not trailers:
            raise LoadError("Recovery scan found neither objects nor a trailer")

        trailers.sort(key=lambda item: item[0])
        merged: dict[Name, Any] = {}
        for _, trailer in trailers:
            merged.update(trailer)
        merged.pop(K_PREV, None)
        merged.pop(K_XREF_STM, None)

        root = merged.get(K_ROOT)
        root_known = isinstance(root, Reference) and root.object_id in _visible(entries)
        if not root_known and catalogs:
            _, catalog_id = catalogs[-1]
            LOGGER.warning("Recovered /Root from catalog object %s", catalog_id)
            merged[K_ROOT] = Reference(catalog_id)
        if K_SIZE not in merged:
            merged[K_SIZE] = max(entries, default=-1) + 1

        section = XrefSection(offset=-1, kind="recovered", entries=entries, trailer=dict(merged))
        table = XrefTable(
            entries=dict(entries),
            trailer=merged,
            sections=[section],
            startxref=None,
            recovered=True,
            errors=errors,
        )
        LOGGER.warning(
            "Recovered %d objects and %d trailer dictionaries after %d error(s)",
            len(entries),
            len(trailers),
            len(errors),
        )
        return table

    def _may_be_structural(self, offset: int) -> bool:
        window = self.data[offset : offset + _RECOVERY_WINDOW]
        end = len(window)
        for keyword in (b"endobj", b"stream"):
            position = window.find(keyword)
            if position != -1:
                end = min(end, position)
        head = window[:end]
        return any(marker in head for marker in _RECOVERY_MARKERS)

    def _relink_container(
        self,
        entries: dict[int, XrefEntry],
        container_offset: int,
        container_id: ObjectId,
        container: Stream,
        errors: list[BaseException],
    ) -> None:
        try:
            filters = list(zip(container.filter_names(), container.decode_params()))
            decoded = self.pipeline.decode(container.raw, filters, object_id=container_id)
            members = parse_object_stream_header(container_id, container, decoded)
        except LazyPDFError as exc:
            errors.append(exc)
            return
        container.cache_decoded(decoded)
        for index, (number, _) in enumerate(members):
            current = entries.get(number)
            if isinstance(current, InUseEntry) and current.offset > container_offset:
                continue
            entries[number] = CompressedEntry(container=container_id.number, index=index)


def _visible(entries: dict[int, XrefEntry]) -> set[ObjectId]:
    return {
        ObjectId(number, entry.generation)
        for number, entry in entries.items()
        if not isinstance(entry, FreeEntry)
    }


def _parse_record(record: bytes, position: int) -> XrefEntry:
    """Parse one fixed 20-byte ``oooooooooo ggggg n\\r\\n`` record."""

    if (
        len(record) != RECORD_LENGTH
        or not record[0:10].isdigit()
        or record[10:11] != b" "
        or not record[11:16].isdigit()
        or record[16:17] != b" "
        or record[17:18] not in (b"n", b"f")
        or record[18:20] not in _RECORD_EOL
    ):
        raise MalformedXref(f"Malformed xref record {record!r}", offset=position)
    first = int(record[0:10])
    generation = int(record[11:16])
    if record[17:18] == b"n":
        return InUseEntry(offset=first, generation=generation)
    return FreeEntry(next_free=first, generation=generation)


def parse_object_stream_header(
    container_id: ObjectId, container: Stream, decoded: bytes
) -> list[tuple[int, int]]:
    """Return the ``(object number, relative offset)`` pairs of an object stream."""

    if container.type != "/ObjStm":
        raise MalformedObjectStream(container_id, f"/Type is {container.type}, expected /ObjStm")
    count = container.get("/N")
    first = container.get("/First")
    for key, item in (("/N", count), ("/First", first)):
        if isinstance(item, bool) or not isinstance(item, int) or item < 0:
            raise MalformedObjectStream(container_id, f"invalid {key} {item!r}")
    if first > len(decoded):
        raise MalformedObjectStream(container_id, f"/First {first} lies beyond {len(decoded)} decoded bytes")

    members: list[tuple[int, int]] = []
    index = 0
    for _ in range(count):
        try:
            number, index = read_int(decoded, index)
            relative, index = read_int(decoded, index)
        except ValueError as exc:
            raise MalformedObjectStream(container_id, f"truncated header: {exc}") from exc
        if index > first or number < 0 or relative < 0:
            raise MalformedObjectStream(container_id, "header overlaps the object data")
        members.append((number, relative))
    return members


def load_xref(data: bytes, pipeline: Any, *, recover: bool = True) -> XrefTable:
    """Build the merged cross-reference table, recovering when allowed."""

    resolver = XrefResolver(data, pipeline)
    try:
        startxref = locate_startxref(data)
        table = resolver.resolve(startxref)
        Trailer.from_dictionary(table.trailer)
        return table
    except MalformedXref as exc:
        if not recover:
            raise
        LOGGER.warning("Cross-reference data unusable (%s); scanning the file instead", exc)
        table = resolver.recover([exc])
        warnings.warn(RecoveredWithErrors(table.errors), stacklevel=3)
        return table
