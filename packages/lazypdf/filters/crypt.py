"""``/Crypt`` filter, limited to the identity crypt filter."""

from __future__ import annotations

from ..core.exceptions import UnsupportedFilter
from .base import BaseFilter
from .registry import register_filter


@register_filter("/Crypt")
class Crypt(BaseFilter):
    def configure(self) -> None:
        crypt_filter = self.name_param("/Name", "/Identity")
        if crypt_filter != "/Identity":
            # Decryption is out of scope; only the pass-through form is decodable.
            raise UnsupportedFilter(f"{self.name} {crypt_filter}")

    def decode(self, data: bytes) -> bytes:
        return data
