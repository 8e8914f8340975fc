"""Adapter around the external tokenizer.

Object syntax is read with pypdf's object reader
(:func:`pypdf.generic.read_object`); this module is the only place that
touches it.  Parsed pypdf objects are converted into the value model of
:mod:`lazypdf.core.model`, and every tokenizer failure is re-raised as
:class:`~lazypdf.core.exceptions.PDFSyntaxError` with the byte offset where
parsing started.
"""

from __future__ import annotations

import re
from io import BytesIO
from typing import Any, Callable

from pypdf.errors import PyPdfError
from pypdf.generic import (
    ArrayObject,
    BooleanObject,
    ByteStringObject,
    DictionaryObject,
    FloatObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
    StreamObject,
    TextStringObject,
    read_object,
)

from .exceptions import LazyPDFError, PDFSyntaxError
from .model import Name, ObjectId, Reference, Stream, Value
from .utils import get_logger, skip_whitespace

__all__ = ["ObjectParser", "LengthResolver", "to_value"]

LOGGER = get_logger("lazypdf.lexer")

LengthResolver = Callable[[ObjectId], Any]

_OBJECT_HEADER = re.compile(rb"[\x00\t\n\r\f ]*(\d+)[\x00\t\n\r\f ]+(\d+)[\x00\t\n\r\f ]*obj")
_ENDOBJ = b"endobj"
_TOKENIZER_ERRORS = (
    PyPdfError,
    ValueError,
    TypeError,
    KeyError,
    IndexError,
    AssertionError,
    AttributeError,
    RecursionError,
)


class _ReaderBridge:
    """Stand-in for the reader object pypdf's tokenizer expects.

    pypdf consults it for ``strict``, to resolve an indirect ``/Length``
    while reading stream data, and for its ``xref`` offsets when a wrong
    ``/Length`` forces a search for ``endstream``.  The offsets map has one
    empty generation, so that search runs to the end of the buffer.
    """

    strict = False

    def __init__(self, resolve_length: LengthResolver | None) -> None:
        self._resolve_length = resolve_length
        self.xref: dict[int, dict[int, int]] = {0: {}}

    def get_object(self, indirect: IndirectObject) -> Any:
        if self._resolve_length is None:
            return None
        object_id = ObjectId(int(indirect.idnum), int(indirect.generation))
        try:
            value = self._resolve_length(object_id)
        except LazyPDFError as exc:
            LOGGER.warning("Cannot resolve stream /Length %s: %s", object_id, exc)
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        LOGGER.warning("Stream /Length %s is not an integer: %r", object_id, value)
        return None


def to_value(obj: Any, object_id: ObjectId | None = None) -> Value:
    """Convert a pypdf object into the lazypdf value model."""

    if obj is None or isinstance(obj, NullObject):
        return None
    if isinstance(obj, BooleanObject):
        return bool(obj.value)
    if isinstance(obj, IndirectObject):
        return Reference(ObjectId(int(obj.idnum), int(obj.generation)))
    if isinstance(obj, NameObject):
        return Name(str(obj))
    if isinstance(obj, FloatObject):
        return float(obj)
    if isinstance(obj, NumberObject):
        return int(obj)
    if isinstance(obj, TextStringObject):
        return bytes(obj.get_original_bytes())
    if isinstance(obj, ByteStringObject):
        return bytes(obj)
    if isinstance(obj, StreamObject):
        dictionary = {Name(str(key)): to_value(value) for key, value in obj.items()}
        raw = bytes(getattr(obj, "_data", b"") or b"")
        # pypdf drops /Length once the data is read; keep the dictionary complete.
        dictionary.setdefault(Name("/Length"), len(raw))
        return Stream(dictionary=dictionary, raw=raw, object_id=object_id)
    if isinstance(obj, DictionaryObject):
        return {Name(str(key)): to_value(value) for key, value in obj.items()}
    if isinstance(obj, ArrayObject):
        return [to_value(item) for item in obj]
    raise PDFSyntaxError(f"Unsupported token type {type(obj).__name__}")


class ObjectParser:
    """Parse single objects out of a byte buffer on demand."""

    def __init__(self, data: bytes, *, resolve_length: LengthResolver | None = None) -> None:
        self.data = data
        self._bridge = _ReaderBridge(resolve_length)

    def parse_indirect(self, offset: int) -> tuple[ObjectId, Value, int]:
        """Parse ``N G obj <value> endobj`` starting at ``offset``."""

        data = self.data
        if offset < 0 or offset >= len(data):
            raise PDFSyntaxError("Object offset outside of the file", offset=offset)
        header = _OBJECT_HEADER.match(data, offset)
        if header is None:
            raise PDFSyntaxError("Expected an 'N G obj' header", offset=offset)
        object_id = ObjectId(int(header.group(1)), int(header.group(2)))

        body = skip_whitespace(data, header.end(), comments=True)
        if data.startswith(_ENDOBJ, body):
            return object_id, None, body + len(_ENDOBJ)

        value, end = self._read(data, body, object_id=object_id, origin=offset)
        end = skip_whitespace(data, end, comments=True)
        if data.startswith(_ENDOBJ, end):
            end += len(_ENDOBJ)
        else:
            LOGGER.debug("Object %s at byte %d is not closed by 'endobj'", object_id, offset)
        return object_id, value, end

    def parse_value(self, offset: int, data: bytes | None = None) -> tuple[Value, int]:
        """Parse one bare object (no ``obj`` header) starting at ``offset``."""

        buffer = self.data if data is None else data
        start = skip_whitespace(buffer, offset, comments=True)
        if start >= len(buffer):
            raise PDFSyntaxError("Unexpected end of data while reading an object", offset=offset)
        return self._read(buffer, start, origin=offset)

    def _read(
        self,
        buffer: bytes,
        start: int,
        *,
        object_id: ObjectId | None = None,
        origin: int,
    ) -> tuple[Value, int]:
        stream = BytesIO(buffer)
        stream.seek(start)
        try:
            parsed = read_object(stream, self._bridge)  # type: ignore[arg-type]
        except _TOKENIZER_ERRORS as exc:
            raise PDFSyntaxError(f"{type(exc).__name__}: {exc}", offset=origin) from exc
        return to_value(parsed, object_id), stream.tell()
