from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from PIL import Image

from ..errors import QuantizerFailure
from .buffer import PixelBuffer, pixel_count
from .palette import Palette, index_palette, nearest_color, normalize_palette

LOGGER = logging.getLogger(__name__)

Kernel = Tuple[Tuple[int, int, float], ...]

# (dx, dy, weight) offsets relative to the pixel being quantized, for a
# left-to-right scan. ``dx`` is mirrored on right-to-left serpentine rows.
DIFFUSION_KERNELS: Dict[str, Kernel] = {
    "FloydSteinberg": (
        (1, 0, 7 / 16), (-1, 1, 3 / 16), (0, 1, 5 / 16), (1, 1, 1 / 16),
    ),
    "Atkinson": (
        (1, 0, 1 / 8), (2, 0, 1 / 8), (-1, 1, 1 / 8), (0, 1, 1 / 8), (1, 1, 1 / 8), (0, 2, 1 / 8),
    ),
    "JarvisJudiceNinke": (
        (1, 0, 7 / 48), (2, 0, 5 / 48),
        (-2, 1, 3 / 48), (-1, 1, 5 / 48), (0, 1, 7 / 48), (1, 1, 5 / 48), (2, 1, 3 / 48),
        (-2, 2, 1 / 48), (-1, 2, 3 / 48), (0, 2, 5 / 48), (1, 2, 3 / 48), (2, 2, 1 / 48),
    ),
    "Stucki": (
        (1, 0, 8 / 42), (2, 0, 4 / 42),
        (-2, 1, 2 / 42), (-1, 1, 4 / 42), (0, 1, 8 / 42), (1, 1, 4 / 42), (2, 1, 2 / 42),
        (-2, 2, 1 / 42), (-1, 2, 2 / 42), (0, 2, 4 / 42), (1, 2, 2 / 42), (2, 2, 1 / 42),
    ),
    "Burkes": (
        (1, 0, 8 / 32), (2, 0, 4 / 32),
        (-2, 1, 2 / 32), (-1, 1, 4 / 32), (0, 1, 8 / 32), (1, 1, 4 / 32), (2, 1, 2 / 32),
    ),
    "Sierra3": (
        (1, 0, 5 / 32), (2, 0, 3 / 32),
        (-2, 1, 2 / 32), (-1, 1, 4 / 32), (0, 1, 5 / 32), (1, 1, 4 / 32), (2, 1, 2 / 32),
        (-1, 2, 2 / 32), (0, 2, 3 / 32), (1, 2, 2 / 32),
    ),
    "Sierra2": (
        (1, 0, 4 / 16), (2, 0, 3 / 16),
        (-2, 1, 1 / 16), (-1, 1, 2 / 16), (0, 1, 3 / 16), (1, 1, 2 / 16), (2, 1, 1 / 16),
    ),
    "Sierra24A": (
        (1, 0, 2 / 4), (-1, 1, 1 / 4), (0, 1, 1 / 4),
    ),
    "Fan": (
        (1, 0, 7 / 16), (-2, 1, 1 / 16), (-1, 1, 3 / 16), (0, 1, 5 / 16),
    ),
    "ShiauFan": (
        (1, 0, 4 / 8), (-2, 1, 1 / 8), (-1, 1, 1 / 8), (0, 1, 2 / 8),
    ),
    "ShiauFan2": (
        (1, 0, 8 / 16), (-3, 1, 1 / 16), (-2, 1, 1 / 16), (-1, 1, 2 / 16), (0, 1, 4 / 16),
    ),
}


def get_kernel(name: str) -> Kernel:
    try:
        return DIFFUSION_KERNELS[name]
    except KeyError as exc:
        raise QuantizerFailure(
            f"Unknown diffusion kernel {name!r}; expected one of {sorted(DIFFUSION_KERNELS)}"
        ) from exc


class Quantizer(Protocol):
    """Statistical palette builder and error-diffusion reducer.

    ``sample`` is the expensive step. ``reduce`` may be called any number of
    times afterwards with different kernels.
    """

    def sample(self, image: Image.Image) -> None: ...

    def derive_palette(self, count: int) -> Palette: ...

    def reduce(self, buffer: PixelBuffer, kernel: str, serpentine: bool) -> bytes: ...


class HistogramQuantizer:
    """Default :class:`Quantizer` built on Pillow's median-cut quantizer.

    A fixed palette passed to the constructor is used as-is; otherwise the
    palette is derived from the sampled histogram the first time it is
    needed. Nearest-colour lookups are cached for the lifetime of the
    instance, which is what makes re-reducing with another kernel cheap.
    """

    def __init__(self, palette: Sequence[Sequence[int]] = (), colors: int = 8) -> None:
        if colors <= 0:
            raise QuantizerFailure(f"Colour count must be positive, got {colors}")
        self.colors = colors
        self._fixed = normalize_palette(palette)
        self._palette: Palette = self._fixed
        self._histogram: Counter = Counter()
        self._sample: Optional[Image.Image] = None
        self._lookup: Dict[int, Tuple[int, int, int]] = {}

    @property
    def histogram(self) -> Counter:
        return self._histogram

    def sample(self, image: Image.Image) -> None:
        rgba = image.convert("RGBA")
        width, height = rgba.size
        for count, (r, g, b, a) in rgba.getcolors(maxcolors=width * height) or ():
            if a:
                self._histogram[(r, g, b)] += count
        opaque = [pixel[:3] for pixel in rgba.getdata() if pixel[3]]
        if opaque:
            # Median-cut only sees opaque pixels, laid out as a single row.
            self._sample = Image.new("RGB", (len(opaque), 1))
            self._sample.putdata(opaque)
        LOGGER.debug(
            "Sampled %dx%d image, %d distinct colours", width, height, len(self._histogram)
        )

    def derive_palette(self, count: int) -> Palette:
        if self._fixed:
            return self._fixed
        if self._sample is None or not self._histogram:
            raise QuantizerFailure("derive_palette() called before sample()")

        if len(self._histogram) <= count:
            ranked = [color for color, _ in self._histogram.most_common()]
        else:
            reduced = self._sample.quantize(colors=count, method=Image.Quantize.MEDIANCUT)
            flat = reduced.getpalette() or []
            used = sorted(reduced.getcolors() or (), reverse=True)
            ranked = [tuple(flat[index * 3:index * 3 + 3]) for _, index in used]

        palette: List[Tuple[int, int, int]] = []
        for color in ranked:
            if color not in palette:
                palette.append(color)
        self._palette = tuple(palette[:count])
        self._lookup.clear()
        return self._palette

    def _nearest(self, indexed, r: int, g: int, b: int) -> Tuple[int, int, int]:
        key = (r << 16) | (g << 8) | b
        color = self._lookup.get(key)
        if color is None:
            _, R, G, B = nearest_color(indexed, r, g, b)
            color = (R, G, B)
            self._lookup[key] = color
        return color

    def reduce(self, buffer: PixelBuffer, kernel: str, serpentine: bool) -> bytes:
        weights = get_kernel(kernel)
        palette = self._palette or self.derive_palette(self.colors)
        indexed = index_palette(palette)

        width, height = buffer.width, buffer.height
        data = buffer.data
        out = bytearray(data)
        work: List[float] = [float(value) for value in data]

        for y in range(height):
            reverse = serpentine and y % 2 == 1
            columns = range(width - 1, -1, -1) if reverse else range(width)
            for x in columns:
                offset = (y * width + x) * 4
                if data[offset + 3] == 0:
                    continue

                r = min(255, max(0, int(round(work[offset]))))
                g = min(255, max(0, int(round(work[offset + 1]))))
                b = min(255, max(0, int(round(work[offset + 2]))))
                R, G, B = self._nearest(indexed, r, g, b)
                out[offset] = R
                out[offset + 1] = G
                out[offset + 2] = B

                error_r = r - R
                error_g = g - G
                error_b = b - B
                if not (error_r or error_g or error_b):
                    continue

                for dx, dy, weight in weights:
                    nx = x - dx if reverse else x + dx
                    ny = y + dy
                    if nx < 0 or nx >= width or ny >= height:
                        continue
                    target = (ny * width + nx) * 4
                    work[target] += error_r * weight
                    work[target + 1] += error_g * weight
                    work[target + 2] += error_b * weight

        return bytes(out[: pixel_count(out) * 4])
