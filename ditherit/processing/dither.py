from __future__ import annotations

from typing import Any, Dict, Mapping, Sequence

from .bayer import build_threshold_matrix
from .buffer import PixelBuffer, pixel_count
from .palette import IndexedColor, index_palette, nearest_color
from .pixelate import check_block_size, pixelate


def ordered_dither_bytes(
    data: bytearray,
    width: int,
    palette: Sequence[Sequence[int]],
    bayer_size: int,
) -> bytearray:
    """Bayer-dither ``data`` in place and return it.

    Each channel is pulled halfway towards the pixel's threshold before the
    nearest palette colour is chosen. R, G and B share one threshold. Alpha
    and any trailing partial pixel are left as they are.
    """

    matrix = build_threshold_matrix(bayer_size)
    indexed = index_palette(palette)
    cache: Dict[int, IndexedColor] = {}

    for pixel in range(pixel_count(data)):
        x = pixel % width
        y = pixel // width
        threshold = matrix[x % bayer_size][y % bayer_size]
        offset = pixel * 4

        r = (data[offset] + threshold) // 2
        g = (data[offset + 1] + threshold) // 2
        b = (data[offset + 2] + threshold) // 2

        key = (r << 16) | (g << 8) | b
        closest = cache.get(key)
        if closest is None:
            closest = nearest_color(indexed, r, g, b)
            cache[key] = closest

        data[offset] = closest[1]
        data[offset + 1] = closest[2]
        data[offset + 2] = closest[3]

    return data


def ordered_dither(
    buffer: PixelBuffer,
    palette: Sequence[Sequence[int]],
    bayer_size: int,
    block_size: float = 1,
) -> PixelBuffer:
    check_block_size(block_size)
    out = PixelBuffer(
        buffer.width,
        buffer.height,
        ordered_dither_bytes(bytearray(buffer.data), buffer.width, palette, bayer_size),
    )
    if block_size > 1:
        out = pixelate(out, out.width, out.height, block_size)
    return out


def ordered_dither_job(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Worker-process entry point. Takes and returns plain picklable values."""

    pixels = ordered_dither_bytes(
        bytearray(payload["pixels"]),
        payload["width"],
        payload["palette"],
        payload["bayer_size"],
    )
    return {"pixels": bytes(pixels), "width": payload["width"], "height": payload["height"]}
