"""
Helpers for compressed per-point / per-instance attributes:
quantized positions, oct-encoded normals and RGB565 colors.
"""

import math
from typing import List, Sequence, Tuple

Vec3 = Tuple[float, float, float]

QUANTIZED_RANGE = 65535.0


def dequantize_positions(
    quantized: Sequence[Tuple[int, int, int]],
    volume_offset: Sequence[float],
    volume_scale: Sequence[float],
) -> List[Vec3]:
    """POSITION = POSITION_QUANTIZED * QUANTIZED_VOLUME_SCALE / 65535 + QUANTIZED_VOLUME_OFFSET"""
    ox, oy, oz = volume_offset
    sx, sy, sz = (s / QUANTIZED_RANGE for s in volume_scale)
    return [(x * sx + ox, y * sy + oy, z * sz + oz) for x, y, z in quantized]


def _sign_not_zero(value: float) -> float:
    return -1.0 if value < 0.0 else 1.0


def oct_decode(x: int, y: int, range_max: int = 255) -> Vec3:
    """Decode an oct-encoded unit vector stored as two unsigned integers in [0, range_max]."""
    fx = x / range_max * 2.0 - 1.0
    fy = y / range_max * 2.0 - 1.0
    fz = 1.0 - abs(fx) - abs(fy)
    if fz < 0.0:
        fx, fy = (
            (1.0 - abs(fy)) * _sign_not_zero(fx),
            (1.0 - abs(fx)) * _sign_not_zero(fy),
        )
    length = math.sqrt(fx * fx + fy * fy + fz * fz)
    return (fx / length, fy / length, fz / length)


def rgb565_to_rgb(value: int) -> Tuple[int, int, int]:
    """Unpack 5/6/5 bit RGB into 8-bit channels."""
    red = (value >> 11) & 0x1F
    green = (value >> 5) & 0x3F
    blue = value & 0x1F
    return (
        round(red * 255 / 31),
        round(green * 255 / 63),
        round(blue * 255 / 31),
    )
