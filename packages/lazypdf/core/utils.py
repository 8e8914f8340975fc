"""Utilities shared by the lazypdf core modules."""

from __future__ import annotations

import logging
from pathlib import Path

_WHITESPACE = b"\x00\t\n\r\f "


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


def resolve_path(path: str | Path | None) -> Path:
    if path is None:
        raise ValueError("Path must not be None")
    resolved = Path(path).expanduser().resolve()
    return resolved


def skip_whitespace(buffer: bytes, index: int, *, comments: bool = False) -> int:
    """Advance ``index`` past PDF whitespace (and ``%`` comments if asked)."""

    length = len(buffer)
    while index < length:
        byte = buffer[index]
        if byte in _WHITESPACE:
            index += 1
        elif comments and byte == 0x25:  # '%'
            while index < length and buffer[index] not in b"\r\n":
                index += 1
        else:
            break
    return index


def read_int(buffer: bytes, index: int) -> tuple[int, int]:
    index = skip_whitespace(buffer, index)
    start = index
    while index < len(buffer) and buffer[index] in b"+-0123456789":
        index += 1
    if start == index:
        raise ValueError(f"Expected integer at offset {start}")
    return int(buffer[start:index]), index


def decode_be_integer(buffer: bytes) -> int:
    """Decode a big-endian unsigned integer; an empty buffer yields 0."""

    value = 0
    for byte in buffer:
        value = (value << 8) | byte
    return value


__all__ = [
    "decode_be_integer",
    "get_logger",
    "read_int",
    "resolve_path",
    "skip_whitespace",
]
