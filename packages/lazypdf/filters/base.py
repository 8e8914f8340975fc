"""Base class shared by all stream filters."""

from __future__ import annotations

from typing import Any, Collection, Mapping

from ..core.exceptions import FilterDecodeError, InvalidFilterParams
from ..core.model import Name


class BaseFilter:
    """A pure byte-to-byte decoding stage.

    Subclasses set :attr:`name`, validate their decode parameters in
    :meth:`configure` and implement :meth:`decode`.  Instances are cheap and
    created per decode call, so they may keep the validated parameters as
    attributes.
    """

    name: str = ""

    def __init__(self, params: Mapping[str, Any] | None = None) -> None:
        self.params: Mapping[str, Any] = params or {}
        self.configure()

    def configure(self) -> None:
        """Validate :attr:`params`; raise :class:`InvalidFilterParams` on bad values."""

    def decode(self, data: bytes) -> bytes:  # pragma: no cover - implemented by subclasses
        raise NotImplementedError

    # -- Parameter helpers ---------------------------------------------------

    def int_param(
        self,
        key: str,
        default: int,
        *,
        allowed: Collection[int] | None = None,
        minimum: int | None = None,
    ) -> int:
        value = self.params.get(key, default)
        if value is None:
            return default
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidFilterParams(self.name, key, value)
        if allowed is not None and value not in allowed:
            raise InvalidFilterParams(self.name, key, value)
        if minimum is not None and value < minimum:
            raise InvalidFilterParams(self.name, key, value)
        return value

    def name_param(self, key: str, default: str | None = None) -> Name | None:
        value = self.params.get(key)
        if value is None:
            return Name(default) if default is not None else None
        if not isinstance(value, Name):
            raise InvalidFilterParams(self.name, key, value)
        return value

    def fail(self, message: str) -> FilterDecodeError:
        return FilterDecodeError(message, filter_name=self.name)


__all__ = ["BaseFilter"]
