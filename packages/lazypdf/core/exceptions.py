"""Custom exceptions raised by :mod:`lazypdf`.

Every hard failure derives from :class:`LazyPDFError`.  Errors carry the
context needed to diagnose a bad input (object id, byte offset, filter
stage) as attributes as well as in their message.
:class:`RecoveredWithErrors` is the one warning-class result: it is emitted
through :mod:`warnings` when a document could only be loaded through the
recovery scan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

if TYPE_CHECKING:  # pragma: no cover
    from .model import ObjectId


class LazyPDFError(Exception):
    """Base exception for all errors raised by :mod:`lazypdf`."""


class PDFSyntaxError(LazyPDFError):
    """Raised when the tokenizer cannot read an object at a byte offset."""

    def __init__(self, message: str, *, offset: int | None = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)


class UnexpectedValueType(LazyPDFError, TypeError):
    """Raised by the ``as_*`` accessors when a value has the wrong shape."""

    def __init__(self, expected: str, value: Any) -> None:
        self.expected = expected
        self.value = value
        super().__init__(f"Expected {expected}, got {type(value).__name__}: {value!r:.80}")


# -- Cross-reference errors --------------------------------------------------


class MalformedXref(LazyPDFError):
    """Raised when a cross-reference section cannot be parsed strictly."""

    def __init__(self, message: str, *, offset: int | None = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (xref at byte {offset})"
        super().__init__(message)


class InvalidTrailer(MalformedXref):
    """Raised when the trailer lacks a required key or has a mistyped one."""


class CircularXrefChain(MalformedXref):
    """Raised when following ``/Prev`` links revisits an offset."""

    def __init__(self, offset: int, chain: Iterable[int] = ()) -> None:
        self.chain = list(chain)
        super().__init__(
            f"Cross-reference chain loops back to an already visited section; chain={self.chain}",
            offset=offset,
        )


class LoadError(LazyPDFError):
    """Raised when a document cannot be opened even through recovery."""


# -- Object store errors -----------------------------------------------------


class ObjectNotFound(LazyPDFError, KeyError):
    """Raised when an object id was never defined by any revision."""

    def __init__(self, object_id: "ObjectId", detail: str | None = None) -> None:
        self.object_id = object_id
        message = f"Object {object_id} not found"
        if detail:
            message = f"{message}: {detail}"
        LazyPDFError.__init__(self, message)

    def __str__(self) -> str:
        return str(self.args[0])


class ObjectFreed(LazyPDFError, KeyError):
    """Raised when the newest revision marks an object id as free."""

    def __init__(self, object_id: "ObjectId") -> None:
        self.object_id = object_id
        LazyPDFError.__init__(self, f"Object {object_id} is marked free in the cross-reference table")

    def __str__(self) -> str:
        return str(self.args[0])


class ObjectIdentityMismatch(LazyPDFError):
    """Raised when the object found at a location is not the requested one."""

    def __init__(
        self,
        expected: "ObjectId",
        found: "ObjectId",
        *,
        offset: int | None = None,
    ) -> None:
        self.object_id = expected
        self.found = found
        self.offset = offset
        where = f" at byte {offset}" if offset is not None else ""
        super().__init__(f"Expected object {expected}{where} but found {found}")


class InvalidContainerNesting(LazyPDFError):
    """Raised when an object stream is itself stored inside an object stream."""

    def __init__(self, object_id: "ObjectId", container: "ObjectId") -> None:
        self.object_id = object_id
        self.container = container
        super().__init__(
            f"Object {object_id} lives in container {container}, "
            "which is itself compressed inside another object stream"
        )


class MalformedObjectStream(LazyPDFError):
    """Raised when an object stream's dictionary or header is unusable."""

    def __init__(self, container: "ObjectId", message: str) -> None:
        self.container = container
        super().__init__(f"Object stream {container}: {message}")


class ReferenceChainTooDeep(LazyPDFError):
    """Raised when a chain of references exceeds the hop limit or loops."""

    def __init__(self, start: Any, max_hops: int, *, cycle: bool = False) -> None:
        self.start = start
        self.max_hops = max_hops
        self.cycle = cycle
        reason = "loops back on itself" if cycle else f"is longer than {max_hops} hops"
        super().__init__(f"Reference chain starting at {start} {reason}")


# -- Filter errors -----------------------------------------------------------


class FilterError(LazyPDFError):
    """Base class for errors raised by the filter pipeline."""

    def __init__(
        self,
        message: str,
        *,
        filter_name: str,
        stage: int | None = None,
        object_id: "ObjectId | None" = None,
    ) -> None:
        self.filter_name = filter_name
        self.stage = stage
        self.object_id = object_id
        self.detail = message
        super().__init__(self._format())

    def _format(self) -> str:
        parts = [f"{self.filter_name}"]
        if self.stage is not None:
            parts.append(f"stage {self.stage}")
        if self.object_id is not None:
            parts.append(f"object {self.object_id}")
        return f"{self.detail} [{', '.join(parts)}]"

    def located(self, *, stage: int, object_id: "ObjectId | None" = None) -> "FilterError":
        """Attach pipeline context to an error raised by a single filter."""

        self.stage = stage
        if object_id is not None:
            self.object_id = object_id
        self.args = (self._format(),)
        return self


class UnsupportedFilter(FilterError):
    """Raised for filter names the registry does not provide."""

    def __init__(self, filter_name: str, **kwargs: Any) -> None:
        super().__init__("Unsupported filter", filter_name=filter_name, **kwargs)


class InvalidFilterParams(FilterError):
    """Raised when a decode parameter lies outside the filter's domain."""

    def __init__(self, filter_name: str, key: str, value: Any, **kwargs: Any) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid decode parameter {key}={value!r}", filter_name=filter_name, **kwargs)


class FilterDecodeError(FilterError):
    """Raised when a filter stage fails on corrupt or truncated data."""


# -- Document errors ---------------------------------------------------------


class InvalidCatalog(LazyPDFError):
    """Raised when the trailer root does not resolve to a document catalog."""


class InvalidPageTree(InvalidCatalog):
    """Raised when the catalog's ``/Pages`` entry is not a page tree root."""


# -- Warnings ----------------------------------------------------------------


class RecoveredWithErrors(UserWarning):
    """Warning emitted when the cross-reference data had to be rebuilt."""

    def __init__(self, errors: Iterable[BaseException | str]) -> None:
        self.errors = list(errors)
        summary = "; ".join(str(error) for error in self.errors) or "no details"
        super().__init__(f"Document loaded through recovery scan: {summary}")


__all__ = [
    "CircularXrefChain",
    "FilterDecodeError",
    "FilterError",
    "InvalidCatalog",
    "InvalidContainerNesting",
    "InvalidFilterParams",
    "InvalidPageTree",
    "InvalidTrailer",
    "LazyPDFError",
    "LoadError",
    "MalformedObjectStream",
    "MalformedXref",
    "ObjectFreed",
    "ObjectIdentityMismatch",
    "ObjectNotFound",
    "PDFSyntaxError",
    "RecoveredWithErrors",
    "ReferenceChainTooDeep",
    "UnexpectedValueType",
    "UnsupportedFilter",
]
