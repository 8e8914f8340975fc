"""``/LZWDecode``: variable-width LZW as used by PDF and TIFF."""

from __future__ import annotations

from .base import BaseFilter
from .predictors import PredictorParams, apply_predictor
from .registry import register_filter

CLEAR_TABLE = 256
END_OF_DATA = 257
MAX_CODE_WIDTH = 12
MAX_TABLE_SIZE = 1 << MAX_CODE_WIDTH


@register_filter("/LZWDecode", "/LZW")
class LZWDecode(BaseFilter):
    def configure(self) -> None:
        self.early_change = self.int_param("/EarlyChange", 1, allowed=(0, 1))
        self.predictor = PredictorParams.from_filter(self)

    def decode(self, data: bytes) -> bytes:
        return apply_predictor(self._expand(data), self.predictor, self.name)

    def _expand(self, data: bytes) -> bytes:
        output = bytearray()
        table = [bytes((value,)) for value in range(256)] + [b"", b""]
        code_width = 9
        previous: bytes | None = None
        buffer = 0
        buffered_bits = 0

        for byte in data:
            buffer = (buffer << 8) | byte
            buffered_bits += 8
            while buffered_bits >= code_width:
                buffered_bits -= code_width
                code = (buffer >> buffered_bits) & ((1 << code_width) - 1)
                buffer &= (1 << buffered_bits) - 1

                if code == CLEAR_TABLE:
                    del table[258:]
                    code_width = 9
                    previous = None
                    continue
                if code == END_OF_DATA:
                    return bytes(output)

                if previous is None:
                    if code > 255:
                        raise self.fail(f"LZW code {code} before any literal")
                    entry = table[code]
                elif code < len(table):
                    entry = table[code]
                    if len(table) < MAX_TABLE_SIZE:
                        table.append(previous + entry[:1])
                elif code == len(table):
                    entry = previous + previous[:1]
                    table.append(entry)
                else:
                    raise self.fail(f"Invalid LZW code {code} (table size {len(table)})")

                output += entry
                previous = entry
                if len(table) + self.early_change >= (1 << code_width) and code_width < MAX_CODE_WIDTH:
                    code_width += 1
        # A missing end-of-data code is tolerated; the bit stream simply ran out.
        return bytes(output)
