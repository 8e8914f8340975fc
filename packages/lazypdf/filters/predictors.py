"""TIFF and PNG predictors applied after Flate/LZW decompression."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.exceptions import FilterDecodeError, InvalidFilterParams
from .base import BaseFilter

PNG_PREDICTORS = frozenset(range(10, 16))
VALID_PREDICTORS = frozenset({1, 2}) | PNG_PREDICTORS
VALID_BITS = frozenset({1, 2, 4, 8, 16})


@dataclass(slots=True)
class PredictorParams:
    predictor: int = 1
    colors: int = 1
    bits_per_component: int = 8
    columns: int = 1

    @classmethod
    def from_filter(cls, stage: BaseFilter) -> "PredictorParams":
        params = cls(
            predictor=stage.int_param("/Predictor", 1, allowed=VALID_PREDICTORS),
            colors=stage.int_param("/Colors", 1, minimum=1),
            bits_per_component=stage.int_param("/BitsPerComponent", 8, allowed=VALID_BITS),
            columns=stage.int_param("/Columns", 1, minimum=1),
        )
        if params.predictor == 2 and params.bits_per_component not in (8, 16):
            raise InvalidFilterParams(stage.name, "/BitsPerComponent", params.bits_per_component)
        return params

    @property
    def bytes_per_pixel(self) -> int:
        return max(1, (self.colors * self.bits_per_component + 7) // 8)

    @property
    def row_length(self) -> int:
        return (self.colors * self.bits_per_component * self.columns + 7) // 8


def apply_predictor(data: bytes, params: PredictorParams, filter_name: str) -> bytes:
    if params.predictor == 1:
        return data
    if params.predictor == 2:
        return _undo_tiff(data, params, filter_name)
    return _undo_png(data, params, filter_name)


def _undo_tiff(data: bytes, params: PredictorParams, filter_name: str) -> bytes:
    row_length = params.row_length
    if len(data) % row_length:
        raise FilterDecodeError(
            f"TIFF predictor data length {len(data)} is not a multiple of the row length {row_length}",
            filter_name=filter_name,
        )
    output = bytearray(data)
    component_bytes = params.bits_per_component // 8
    step = params.colors * component_bytes
    for row_start in range(0, len(output), row_length):
        if component_bytes == 1:
            for index in range(row_start + step, row_start + row_length):
                output[index] = (output[index] + output[index - step]) & 0xFF
        else:
            for index in range(row_start + step, row_start + row_length, 2):
                previous = (output[index - step] << 8) | output[index - step + 1]
                current = (output[index] << 8) | output[index + 1]
                value = (current + previous) & 0xFFFF
                output[index] = value >> 8
                output[index + 1] = value & 0xFF
    return bytes(output)


def _paeth(left: int, up: int, up_left: int) -> int:
    estimate = left + up - up_left
    distance_left = abs(estimate - left)
    distance_up = abs(estimate - up)
    distance_up_left = abs(estimate - up_left)
    if distance_left <= distance_up and distance_left <= distance_up_left:
        return left
    if distance_up <= distance_up_left:
        return up
    return up_left


def _undo_png(data: bytes, params: PredictorParams, filter_name: str) -> bytes:
    row_length = params.row_length
    stride = row_length + 1
    if len(data) % stride:
        raise FilterDecodeError(
            f"PNG predictor data truncated: {len(data)} bytes is not a whole number of "
            f"{stride}-byte rows",
            filter_name=filter_name,
        )

    bpp = params.bytes_per_pixel
    output = bytearray()
    previous = bytearray(row_length)
    for row_index, row_start in enumerate(range(0, len(data), stride)):
        tag = data[row_start]
        row = bytearray(data[row_start + 1 : row_start + stride])
        if tag == 0:
            pass
        elif tag == 1:
            for i in range(bpp, row_length):
                row[i] = (row[i] + row[i - bpp]) & 0xFF
        elif tag == 2:
            for i in range(row_length):
                row[i] = (row[i] + previous[i]) & 0xFF
        elif tag == 3:
            for i in range(row_length):
                left = row[i - bpp] if i >= bpp else 0
                row[i] = (row[i] + ((left + previous[i]) >> 1)) & 0xFF
        elif tag == 4:
            for i in range(row_length):
                left = row[i - bpp] if i >= bpp else 0
                up_left = previous[i - bpp] if i >= bpp else 0
                row[i] = (row[i] + _paeth(left, previous[i], up_left)) & 0xFF
        else:
            raise FilterDecodeError(
                f"Invalid PNG predictor tag {tag} in row {row_index}",
                filter_name=filter_name,
            )
        output += row
        previous = row
    return bytes(output)


__all__ = ["PredictorParams", "apply_predictor"]
