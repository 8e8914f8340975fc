"""Value model shared by the lazypdf reader.

PDF values map onto Python types:

==============  ==========================================
PDF type        Python representation
==============  ==========================================
null            ``None``
boolean         ``bool``
integer         ``int``
real            ``float``
string          ``bytes``
name            :class:`Name` (``str`` with the leading ``/``)
array           ``list``
dictionary      ``dict`` keyed by :class:`Name`
reference       :class:`Reference`
stream          :class:`Stream`
==============  ==========================================

The ``as_*`` accessors are total: they either return the value with the
requested shape or raise :class:`~lazypdf.core.exceptions.UnexpectedValueType`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple, Union

from .exceptions import InvalidTrailer, UnexpectedValueType

__all__ = [
    "ObjectId",
    "Name",
    "Reference",
    "Stream",
    "Trailer",
    "Value",
    "as_array",
    "as_bool",
    "as_bytes",
    "as_dictionary",
    "as_int",
    "as_name",
    "as_number",
    "as_reference",
    "as_stream",
    "type_name",
]


class ObjectId(NamedTuple):
    """Object identifier: ``number`` plus ``generation``."""

    number: int
    generation: int = 0

    def __str__(self) -> str:
        return f"{self.number} {self.generation} R"


class Name(str):
    """PDF name object, stored with its leading slash (``Name("/Type")``)."""

    __slots__ = ()

    def __new__(cls, value: str) -> "Name":
        if not value.startswith("/"):
            value = "/" + value
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"Name({str.__repr__(self)})"

    @property
    def bare(self) -> str:
        return self[1:]


@dataclass(frozen=True, slots=True)
class Reference:
    """Indirect reference to another object of the document."""

    object_id: ObjectId

    @classmethod
    def to(cls, number: int, generation: int = 0) -> "Reference":
        return cls(ObjectId(number, generation))

    @property
    def number(self) -> int:
        return self.object_id.number

    @property
    def generation(self) -> int:
        return self.object_id.generation

    def __str__(self) -> str:
        return str(self.object_id)


@dataclass(slots=True, eq=False)
class Stream:
    """Stream object: a dictionary plus the raw (still encoded) bytes."""

    dictionary: dict[Name, Any]
    raw: bytes
    object_id: ObjectId | None = None
    _decoded: bytes | None = field(default=None, repr=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Stream):
            return NotImplemented
        return self.dictionary == other.dictionary and self.raw == other.raw

    __hash__ = None  # type: ignore[assignment]

    def get(self, key: str, default: Any = None) -> Any:
        return self.dictionary.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.dictionary[key]

    def __contains__(self, key: object) -> bool:
        return key in self.dictionary

    @property
    def type(self) -> Name | None:
        value = self.dictionary.get("/Type")
        return value if isinstance(value, Name) else None

    @property
    def is_decoded(self) -> bool:
        return self._decoded is not None

    @property
    def decoded(self) -> bytes | None:
        """Decoded bytes if the filter pipeline already ran, else ``None``."""

        return self._decoded

    def cache_decoded(self, data: bytes) -> bytes:
        if self._decoded is None:
            self._decoded = data
        return self._decoded

    def filter_names(self) -> list[Name]:
        """Return ``/Filter`` normalised to a list of names.

        Only direct values are handled here; the object store resolves
        indirect ``/Filter`` entries before calling this.
        """

        return normalize_filter_names(self.dictionary.get("/Filter"))

    def decode_params(self) -> list[dict[Name, Any]]:
        """Return ``/DecodeParms`` aligned with :meth:`filter_names`."""

        return normalize_decode_params(
            self.dictionary.get("/DecodeParms"), len(self.filter_names())
        )


Value = Union[None, bool, int, float, bytes, Name, list, dict, Reference, Stream]


# -- Filter entry normalisation ----------------------------------------------


def normalize_filter_names(value: Any) -> list[Name]:
    if value is None:
        return []
    if isinstance(value, Name):
        return [value]
    if isinstance(value, list):
        return [as_name(item) for item in value]
    raise UnexpectedValueType("/Filter name or array of names", value)


def normalize_decode_params(value: Any, count: int) -> list[dict[Name, Any]]:
    if value is None:
        return [{} for _ in range(count)]
    if isinstance(value, dict):
        params = [value]
    elif isinstance(value, list):
        params = []
        for item in value:
            if item is None:
                params.append({})
            else:
                params.append(as_dictionary(item))
    else:
        raise UnexpectedValueType("/DecodeParms dictionary or array", value)
    # Missing trailing entries mean "defaults" for the remaining filters.
    while len(params) < count:
        params.append({})
    return params[:count]


# -- Accessors ---------------------------------------------------------------


def type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "real"
    if isinstance(value, bytes):
        return "string"
    if isinstance(value, Name):
        return "name"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "dictionary"
    if isinstance(value, Reference):
        return "reference"
    if isinstance(value, Stream):
        return "stream"
    return type(value).__name__


def as_dictionary(value: Any) -> dict[Name, Any]:
    if isinstance(value, dict):
        return value
    raise UnexpectedValueType("dictionary", value)


def as_stream(value: Any) -> Stream:
    if isinstance(value, Stream):
        return value
    raise UnexpectedValueType("stream", value)


def as_array(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    raise UnexpectedValueType("array", value)


def as_name(value: Any) -> Name:
    if isinstance(value, Name):
        return value
    raise UnexpectedValueType("name", value)


def as_int(value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise UnexpectedValueType("integer", value)


def as_number(value: Any) -> int | float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    raise UnexpectedValueType("number", value)


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise UnexpectedValueType("boolean", value)


def as_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    raise UnexpectedValueType("string", value)


def as_reference(value: Any) -> Reference:
    if isinstance(value, Reference):
        return value
    raise UnexpectedValueType("reference", value)


# -- Trailer view ------------------------------------------------------------

K_SIZE = Name("/Size")
K_PREV = Name("/Prev")
K_ROOT = Name("/Root")
K_ENCRYPT = Name("/Encrypt")
K_INFO = Name("/Info")
K_ID = Name("/ID")
K_XREF_STM = Name("/XRefStm")


@dataclass(slots=True)
class Trailer:
    """Typed view over a (merged) trailer dictionary."""

    size: int
    root: Reference
    prev: int | None = None
    encrypt: Reference | dict[Name, Any] | None = None
    info: Reference | None = None
    id: tuple[bytes, bytes] | None = None
    xref_stm: int | None = None

    @classmethod
    def from_dictionary(cls, dictionary: dict[Name, Any]) -> "Trailer":
        try:
            root = as_reference(dictionary[K_ROOT])
        except KeyError as exc:
            raise InvalidTrailer("Trailer has no /Root entry") from exc
        except UnexpectedValueType as exc:
            raise InvalidTrailer(f"Trailer /Root is not a reference: {exc}") from exc

        size_value = dictionary.get(K_SIZE)
        if size_value is None:
            raise InvalidTrailer("Trailer has no /Size entry")
        try:
            size = as_int(size_value)
        except UnexpectedValueType as exc:
            raise InvalidTrailer(f"Trailer /Size is not an integer: {exc}") from exc

        prev = dictionary.get(K_PREV)
        xref_stm = dictionary.get(K_XREF_STM)
        info = dictionary.get(K_INFO)
        encrypt = dictionary.get(K_ENCRYPT)

        id_pair: tuple[bytes, bytes] | None = None
        id_value = dictionary.get(K_ID)
        if isinstance(id_value, list) and len(id_value) == 2:
            first, second = id_value
            if isinstance(first, bytes) and isinstance(second, bytes):
                id_pair = (first, second)

        return cls(
            size=size,
            root=root,
            prev=prev if isinstance(prev, int) and not isinstance(prev, bool) else None,
            encrypt=encrypt if isinstance(encrypt, (Reference, dict)) else None,
            info=info if isinstance(info, Reference) else None,
            id=id_pair,
            xref_stm=xref_stm if isinstance(xref_stm, int) and not isinstance(xref_stm, bool) else None,
        )
