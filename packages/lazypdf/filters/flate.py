"""``/FlateDecode``: zlib/deflate with optional predictor."""

from __future__ import annotations

import zlib

from .base import BaseFilter
from .predictors import PredictorParams, apply_predictor
from .registry import register_filter


@register_filter("/FlateDecode", "/Fl")
class FlateDecode(BaseFilter):
    def configure(self) -> None:
        self.predictor = PredictorParams.from_filter(self)

    def decode(self, data: bytes) -> bytes:
        decompressor = zlib.decompressobj()
        try:
            inflated = decompressor.decompress(data) + decompressor.flush()
        except zlib.error as exc:
            raise self.fail(f"Corrupt deflate data: {exc}") from exc
        if not decompressor.eof:
            raise self.fail("Deflate data ends before the end of the compressed stream")
        return apply_predictor(inflated, self.predictor, self.name)
