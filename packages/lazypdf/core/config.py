"""Reader configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from ..filters.registry import FilterRegistry

__all__ = ["DEFAULT_MAX_REFERENCE_HOPS", "ReaderOptions"]

DEFAULT_MAX_REFERENCE_HOPS = 32


@dataclass(slots=True)
class ReaderOptions:
    """Options controlling how a document is opened and resolved."""

    max_reference_hops: int = DEFAULT_MAX_REFERENCE_HOPS
    recover: bool = True
    strict_catalog: bool = False
    registry: "FilterRegistry | None" = None
    header_search_window: int = 1024

    def __post_init__(self) -> None:
        if self.max_reference_hops < 1:
            raise ValueError("max_reference_hops must be at least 1")
        if self.header_search_window < 8:
            raise ValueError("header_search_window must be at least 8 bytes")

    def filter_registry(self) -> "FilterRegistry":
        """Return the configured registry, building the default one if unset."""

        if self.registry is None:
            from ..filters.registry import default_registry

            self.registry = default_registry()
        return self.registry
