"""Stream filters and the pipeline that chains them."""

from __future__ import annotations

from .base import BaseFilter
from .pipeline import FilterPipeline, FilterStage
from .registry import (
    BUILTIN_FILTERS,
    FilterRegistry,
    default_registry,
    load_builtin_filters,
    register_filter,
)

load_builtin_filters()

__all__ = [
    "BUILTIN_FILTERS",
    "BaseFilter",
    "FilterPipeline",
    "FilterRegistry",
    "FilterStage",
    "default_registry",
    "load_builtin_filters",
    "register_filter",
]
