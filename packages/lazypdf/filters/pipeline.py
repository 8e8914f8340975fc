"""Filter pipeline decoding stream payloads stage by stage."""

from __future__ import annotations

import zlib
from typing import Any, Mapping, Sequence

from ..core.exceptions import FilterDecodeError, FilterError
from ..core.model import ObjectId
from ..core.utils import get_logger
from .registry import FilterRegistry, default_registry

LOGGER = get_logger("lazypdf.filters")

FilterStage = tuple[str, Mapping[str, Any]]


class FilterPipeline:
    """Apply an ordered list of ``(name, params)`` filters to raw bytes."""

    def __init__(self, registry: FilterRegistry | None = None) -> None:
        self.registry = registry if registry is not None else default_registry()

    def decode(
        self,
        raw: bytes,
        filters: Sequence[FilterStage],
        *,
        object_id: ObjectId | None = None,
    ) -> bytes:
        """Decode ``raw`` through ``filters`` from left to right.

        An empty filter list is the identity.  Errors raised by a stage are
        reported with the stage index and filter name so that a corrupt
        payload can be told apart from malformed document syntax.
        """

        data = bytes(raw)
        for stage, (name, params) in enumerate(filters):
            try:
                decoder = self.registry.create(name, params)
                data = decoder.decode(data)
            except FilterError as exc:
                raise exc.located(stage=stage, object_id=object_id)
            except (zlib.error, ValueError, IndexError, OverflowError) as exc:
                raise FilterDecodeError(
                    f"{type(exc).__name__}: {exc}",
                    filter_name=str(name),
                    stage=stage,
                    object_id=object_id,
                ) from exc
            LOGGER.debug(
                "Stage %d (%s) decoded %d bytes%s",
                stage,
                name,
                len(data),
                f" for object {object_id}" if object_id is not None else "",
            )
        return data


__all__ = ["FilterPipeline", "FilterStage"]
