from __future__ import annotations

import math

from PIL import Image

from ..errors import InvalidBlockSize
from .buffer import PixelBuffer


def check_block_size(block_size: float) -> float:
    if isinstance(block_size, bool) or not isinstance(block_size, (int, float)):
        raise InvalidBlockSize(f"Block size must be a number, got {block_size!r}")
    if not math.isfinite(block_size) or block_size <= 0:
        raise InvalidBlockSize(f"Block size must be a positive finite number, got {block_size!r}")
    return block_size


def resize_nearest(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
    if (width, height) == buffer.size:
        return buffer.copy()
    resized = buffer.to_image().resize((width, height), Image.Resampling.NEAREST)
    return PixelBuffer.from_image(resized)


def pixelate(buffer: PixelBuffer, width: int, height: int, block_size: float) -> PixelBuffer:
    """Flatten every ``block_size`` square of the raster to a single colour.

    The raster is shrunk with nearest-neighbour sampling (no averaging, so the
    dither pattern keeps its hard edges) and blown back up to ``width x height``
    the same way.
    """

    check_block_size(block_size)
    if block_size == 1:
        return buffer.copy()

    small_width = max(1, int(width / block_size))
    small_height = max(1, int(height / block_size))
    small = buffer.to_image().resize((small_width, small_height), Image.Resampling.NEAREST)
    return PixelBuffer.from_image(small.resize((width, height), Image.Resampling.NEAREST))
