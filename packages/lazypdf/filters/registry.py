"""Filter registry.

A :class:`FilterRegistry` maps filter names to :class:`BaseFilter`
subclasses.  Pipelines receive their registry explicitly, so documents
opened with different capability sets can coexist in one process.  The
:func:`register_filter` decorator only fills :data:`BUILTIN_FILTERS`, the
catalogue that :func:`default_registry` copies from.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from ..core.exceptions import UnsupportedFilter
from ..core.model import Name
from .base import BaseFilter


class FilterRegistry:
    """Registry storing the filters available to a pipeline."""

    def __init__(self) -> None:
        self._filters: Dict[Name, type[BaseFilter]] = {}

    def register(
        self,
        name: str,
        filter_class: type[BaseFilter],
        *,
        aliases: Iterable[str] = (),
    ) -> None:
        keys = [Name(name), *(Name(alias) for alias in aliases)]
        for key in keys:
            if key in self._filters:
                raise ValueError(f"Filter '{key}' is already registered")
        for key in keys:
            self._filters[key] = filter_class

    def unregister(self, name: str) -> None:
        self._filters.pop(Name(name), None)

    def create(self, name: str, params: Mapping[str, Any] | None = None) -> BaseFilter:
        filter_class = self.get(name)
        if filter_class is None:
            raise UnsupportedFilter(str(name))
        return filter_class(params)

    def get(self, name: str) -> type[BaseFilter] | None:
        return self._filters.get(Name(name))

    def names(self) -> Iterable[Name]:
        return sorted(self._filters.keys())

    def copy(self) -> "FilterRegistry":
        clone = FilterRegistry()
        clone._filters = dict(self._filters)
        return clone

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and Name(name) in self._filters

    def __len__(self) -> int:
        return len(self._filters)


BUILTIN_FILTERS = FilterRegistry()


def register_filter(name: str, *aliases: str):
    def decorator(cls: type[BaseFilter]) -> type[BaseFilter]:
        cls.name = Name(name)
        BUILTIN_FILTERS.register(name, cls, aliases=aliases)
        return cls

    return decorator


def load_builtin_filters() -> None:
    from . import asciicodecs, crypt, flate, lzw, runlength  # noqa: F401  # register built-in filters


def default_registry() -> FilterRegistry:
    """Return a fresh registry holding every built-in filter."""

    load_builtin_filters()
    return BUILTIN_FILTERS.copy()


__all__ = [
    "BUILTIN_FILTERS",
    "FilterRegistry",
    "default_registry",
    "load_builtin_filters",
    "register_filter",
]
