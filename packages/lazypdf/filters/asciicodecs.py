"""``/ASCIIHexDecode`` and ``/ASCII85Decode``."""

from __future__ import annotations

import base64
import binascii
import re

from .base import BaseFilter
from .registry import register_filter

_WHITESPACE = re.compile(rb"[\x00\t\n\r\f ]+")


@register_filter("/ASCIIHexDecode", "/AHx")
class ASCIIHexDecode(BaseFilter):
    def decode(self, data: bytes) -> bytes:
        end = data.find(b">")
        if end != -1:
            data = data[:end]
        digits = _WHITESPACE.sub(b"", data)
        if len(digits) % 2:
            digits += b"0"
        try:
            return binascii.unhexlify(digits)
        except (binascii.Error, ValueError) as exc:
            raise self.fail(f"Invalid hexadecimal data: {exc}") from exc


@register_filter("/ASCII85Decode", "/A85")
class ASCII85Decode(BaseFilter):
    def decode(self, data: bytes) -> bytes:
        digits = _WHITESPACE.sub(b"", data)
        if digits.startswith(b"<~"):
            digits = digits[2:]
        end = digits.find(b"~>")
        if end != -1:
            digits = digits[:end]
        elif digits.endswith(b"~"):
            digits = digits[:-1]
        try:
            return base64.a85decode(digits)
        except ValueError as exc:
            raise self.fail(f"Invalid ASCII base-85 data: {exc}") from exc
