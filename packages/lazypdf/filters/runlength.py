"""``/RunLengthDecode``: PackBits-style byte runs."""

from __future__ import annotations

from .base import BaseFilter
from .registry import register_filter

END_OF_DATA = 128


@register_filter("/RunLengthDecode", "/RL")
class RunLengthDecode(BaseFilter):
    def decode(self, data: bytes) -> bytes:
        output = bytearray()
        index = 0
        length = len(data)
        while index < length:
            run = data[index]
            index += 1
            if run == END_OF_DATA:
                break
            if run < END_OF_DATA:
                count = run + 1
                if index + count > length:
                    raise self.fail(f"Literal run of {count} bytes truncated at offset {index}")
                output += data[index : index + count]
                index += count
            else:
                if index >= length:
                    raise self.fail(f"Repeat run missing its byte at offset {index}")
                output += bytes((data[index],)) * (257 - run)
                index += 1
        return bytes(output)
