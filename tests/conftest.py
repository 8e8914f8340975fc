from __future__ import annotations

from pathlib import Path
from typing import Callable, Iterable
import sys
import zlib

import pytest
from pypdf import PdfWriter

PROJECT_ROOT = Path(__file__).resolve().parents[1]
PACKAGES_ROOT = PROJECT_ROOT / "packages"
if str(PACKAGES_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGES_ROOT))


def _runs(numbers: Iterable[int]) -> list[tuple[int, int]]:
    """Group sorted object numbers into ``(first, count)`` subsections."""

    runs: list[tuple[int, int]] = []
    for number in sorted(numbers):
        if runs and runs[-1][0] + runs[-1][1] == number:
            runs[-1] = (runs[-1][0], runs[-1][1] + 1)
        else:
            runs.append((number, 1))
    return runs


class PdfBuilder:
    """Assemble small synthetic PDFs byte by byte.

    Objects added since the last cross-reference section are listed in the
    next one, so calling ``write_xref_*`` repeatedly produces incremental
    revisions chained through ``/Prev``.
    """

    def __init__(self, version: str = "1.7") -> None:
        self.buffer = bytearray(f"%PDF-{version}\n".encode("ascii") + b"%\xe2\xe3\xcf\xd3\n")
        self.pending: dict[int, tuple[int, int]] = {}
        self.offsets: dict[int, int] = {}
        self.last_xref: int | None = None
        self.max_number = 0

    @property
    def data(self) -> bytes:
        return bytes(self.buffer)

    def add_raw(self, data: bytes) -> int:
        offset = len(self.buffer)
        self.buffer += data
        return offset

    def add_object(self, number: int, body: bytes | str, generation: int = 0) -> int:
        if isinstance(body, str):
            body = body.encode("latin-1")
        offset = self.add_raw(f"{number} {generation} obj\n".encode("ascii") + body + b"\nendobj\n")
        self.pending[number] = (offset, generation)
        self.offsets[number] = offset
        self.max_number = max(self.max_number, number)
        return offset

    def add_stream(
        self,
        number: int,
        data: bytes,
        dictionary: str = "",
        *,
        generation: int = 0,
    ) -> int:
        body = f"<< {dictionary} /Length {len(data)} >>\nstream\n".encode("latin-1")
        return self.add_object(number, body + data + b"\nendstream", generation)

    def add_object_stream(
        self,
        number: int,
        members: dict[int, str],
        *,
        compress: bool = True,
    ) -> dict[int, tuple[int, int]]:
        """Store ``members`` in an object stream; return their compressed locations."""

        header_parts: list[str] = []
        body = b""
        for member, text in members.items():
            header_parts.append(f"{member} {len(body)}")
            body += text.encode("latin-1") + b"\n"
            self.max_number = max(self.max_number, member)
        header = (" ".join(header_parts) + "\n").encode("ascii")
        payload = header + body
        dictionary = f"/Type /ObjStm /N {len(members)} /First {len(header)}"
        if compress:
            payload = zlib.compress(payload)
            dictionary += " /Filter /FlateDecode"
        self.add_stream(number, payload, dictionary)
        return {member: (number, index) for index, member in enumerate(members)}

    # -- Classic tables ------------------------------------------------------

    def write_xref_table(
        self,
        trailer: str = "",
        *,
        free: Iterable[int] = (),
        entries: dict[int, tuple[int, int]] | None = None,
        xref_stm: int | None = None,
        self_loop: bool = False,
    ) -> int:
        records: dict[int, bytes] = {}
        if self.last_xref is None:
            records[0] = b"0000000000 65535 f \n"
        for number, (offset, generation) in {**self.pending, **(entries or {})}.items():
            records[number] = f"{offset:010d} {generation:05d} n \n".encode("ascii")
        for number in free:
            records[number] = b"0000000000 00001 f \n"
            self.max_number = max(self.max_number, number)

        offset = len(self.buffer)
        section = bytearray(b"xref\n")
        for first, count in _runs(records):
            section += f"{first} {count}\n".encode("ascii")
            for number in range(first, first + count):
                section += records[number]

        keys = f"/Size {self.max_number + 1}"
        if self_loop:
            keys += f" /Prev {offset}"
        elif self.last_xref is not None:
            keys += f" /Prev {self.last_xref}"
        if xref_stm is not None:
            keys += f" /XRefStm {xref_stm}"
        section += f"trailer\n<< {keys} {trailer} >>\n".encode("latin-1")
        self.buffer += section
        self._finish(offset)
        return offset

    # -- Cross-reference streams ---------------------------------------------

    def xref_stream_object(
        self,
        number: int,
        trailer: str = "",
        *,
        compressed: dict[int, tuple[int, int]] | None = None,
        free: Iterable[int] = (),
        widths: tuple[int, int, int] = (1, 4, 2),
        head: bool = True,
        include_pending: bool = True,
        prev: bool = True,
    ) -> int:
        """Append a ``/Type /XRef`` stream object without a ``startxref``."""

        rows: dict[int, tuple[int, int, int]] = {}
        if head and self.last_xref is None:
            rows[0] = (0, 0, 65535)
        if include_pending:
            for member, (offset, generation) in self.pending.items():
                rows[member] = (1, offset, generation)
        for member, (container, index) in (compressed or {}).items():
            rows[member] = (2, container, index)
            self.max_number = max(self.max_number, member)
        for member in free:
            rows[member] = (0, 0, 1)
            self.max_number = max(self.max_number, member)

        offset = len(self.buffer)
        rows[number] = (1, offset, 0)
        self.max_number = max(self.max_number, number)

        payload = bytearray()
        runs = _runs(rows)
        for first, count in runs:
            for member in range(first, first + count):
                for width, value in zip(widths, rows[member]):
                    if width:
                        payload += value.to_bytes(width, "big")
        index = " ".join(f"{first} {count}" for first, count in runs)
        keys = (
            f"/Type /XRef /Size {self.max_number + 1} /W [{widths[0]} {widths[1]} {widths[2]}] "
            f"/Index [{index}] /Filter /FlateDecode"
        )
        if prev and self.last_xref is not None:
            keys += f" /Prev {self.last_xref}"
        self.add_stream(number, zlib.compress(bytes(payload)), f"{keys} {trailer}")
        if not include_pending:
            # Only the stream object itself is new; keep it for the table.
            return offset
        self.pending.clear()
        return offset

    def write_xref_stream(self, number: int, trailer: str = "", **kwargs) -> int:
        offset = self.xref_stream_object(number, trailer, **kwargs)
        self._finish(offset)
        return offset

    def _finish(self, offset: int) -> None:
        self.buffer += f"startxref\n{offset}\n%%EOF\n".encode("ascii")
        self.last_xref = offset
        self.pending.clear()


@pytest.fixture()
def builder() -> PdfBuilder:
    return PdfBuilder()


@pytest.fixture()
def builder_factory() -> Callable[..., PdfBuilder]:
    return PdfBuilder


@pytest.fixture()
def simple_document(builder: PdfBuilder) -> bytes:
    builder.add_object(1, "<< /Type /Catalog /Pages 2 0 R >>")
    builder.add_object(2, "<< /Type /Pages /Kids [3 0 R] /Count 1 >>")
    builder.add_object(3, "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 200 200] >>")
    builder.add_object(4, "<< /Title (Synthetic) /Producer (lazypdf-tests) >>")
    builder.write_xref_table("/Root 1 0 R /Info 4 0 R")
    return builder.data


@pytest.fixture()
def sample_pdf(tmp_path: Path) -> Path:
    pdf_path = tmp_path / "sample.pdf"
    writer = PdfWriter()
    for _ in range(5):
        writer.add_blank_page(width=200, height=200)
    writer.add_metadata({"/Producer": "lazypdf-tests", "/Title": "Sample"})
    with pdf_path.open("wb") as stream:
        writer.write(stream)
    return pdf_path


@pytest.fixture()
def pdf_factory(tmp_path: Path) -> Callable[[str, str | None], Path]:
    def _create(filename: str, title: str | None = None) -> Path:
        path = tmp_path / filename
        writer = PdfWriter()
        writer.add_blank_page(width=72, height=72)
        if title is not None:
            writer.add_metadata({"/Title": title})
        with path.open("wb") as handle:
            writer.write(handle)
        return path

    return _create
