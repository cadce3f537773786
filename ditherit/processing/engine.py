from __future__ import annotations

import io
import logging
import threading
from concurrent.futures import Executor, ProcessPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Tuple

from PIL import Image

from ..config import SETTINGS, DitherSettings
from ..errors import (
    DitherError,
    InvalidBlockSize,
    InvalidOptions,
    OffloadFailure,
    OffloadTimeout,
    QuantizerFailure,
)
from .bayer import build_threshold_matrix
from .buffer import PixelBuffer
from .dither import ordered_dither, ordered_dither_job
from .palette import Palette, index_palette, palette_fingerprint, parse_palette
from .pixelate import check_block_size, pixelate, resize_nearest
from .quantizer import DIFFUSION_KERNELS, HistogramQuantizer, Quantizer

LOGGER = logging.getLogger(__name__)

MODES = ("diffusion", "bayer")

QuantizerFactory = Callable[..., Quantizer]
ExecutorFactory = Callable[[], Executor]


def _default_executor() -> Executor:
    return ProcessPoolExecutor(max_workers=1)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DitherOptions:
    mode: str = "diffusion"
    kernel: str = "FloydSteinberg"
    serpentine: bool = False
    palette: Palette = ()
    pixeliness: int = 1
    pixel_scale: float = 1.0
    bayer_size: int = 4
    colors: int = 8

    def validate(self) -> "DitherOptions":
        if self.mode not in MODES:
            raise InvalidOptions(f"Unknown dither mode {self.mode!r}; expected one of {MODES}")
        if self.mode == "diffusion" and self.kernel not in DIFFUSION_KERNELS:
            raise InvalidOptions(f"Unknown diffusion kernel {self.kernel!r}")
        if self.mode == "bayer":
            build_threshold_matrix(self.bayer_size)
        check_block_size(self.pixeliness)
        if self.pixeliness < 1:
            raise InvalidBlockSize(f"Pixeliness must be at least 1, got {self.pixeliness}")
        if not self.pixel_scale >= 1:
            raise InvalidOptions(f"Pixel scale must be at least 1, got {self.pixel_scale}")
        if self.colors < 1:
            raise InvalidOptions(f"Colour count must be at least 1, got {self.colors}")
        return self

    @classmethod
    def from_mapping(
        cls, values: Mapping[str, Any], settings: DitherSettings = SETTINGS
    ) -> "DitherOptions":
        """Build options from request-style values, falling back to ``settings``."""

        try:
            return cls(
                mode=str(values.get("mode") or settings.default_mode).lower(),
                kernel=str(values.get("kernel") or settings.default_kernel),
                serpentine=_parse_bool(values.get("serpentine", False)),
                palette=parse_palette(values.get("palette")),
                pixeliness=int(values.get("pixeliness") or 1),
                pixel_scale=float(values.get("pixel_scale") or 1),
                bayer_size=int(values.get("bayer_size") or settings.default_bayer_size),
                colors=int(values.get("colors") or settings.default_colors),
            ).validate()
        except (TypeError, ValueError) as exc:
            if isinstance(exc, DitherError):
                raise
            raise InvalidOptions(str(exc)) from exc


@dataclass(frozen=True)
class DitherResult:
    width: int
    height: int
    data: bytes = field(repr=False)
    mime_type: str = "image/png"


def encode_png(buffer: PixelBuffer) -> bytes:
    out = io.BytesIO()
    buffer.to_image().save(out, "PNG", optimize=True)
    return out.getvalue()


def target_size(source: Tuple[int, int], width: Optional[int] = None) -> Tuple[int, int]:
    """Output size for ``width``, keeping the source aspect ratio."""

    src_width, src_height = source
    final_width = int(width) if width else src_width
    if final_width <= 0:
        raise InvalidOptions(f"Output width must be positive, got {width}")
    final_height = max(1, round(src_height / src_width * final_width))
    return final_width, final_height


class DitherEngine:
    """Turns a full-colour image into a reduced-palette one.

    One engine owns one quantizer cache slot and at most one worker process.
    Calls on the same engine are serialized; use several engines to dither
    in parallel.
    """

    def __init__(
        self,
        quantizer_factory: QuantizerFactory = HistogramQuantizer,
        *,
        offload: Optional[bool] = None,
        offload_timeout: Optional[float] = None,
        executor_factory: ExecutorFactory = _default_executor,
    ) -> None:
        self._quantizer_factory = quantizer_factory
        self._offload = SETTINGS.offload_enabled if offload is None else offload
        self._offload_timeout = SETTINGS.offload_timeout if offload_timeout is None else offload_timeout
        self._executor_factory = executor_factory
        self._executor: Optional[Executor] = None
        self._lock = threading.RLock()
        self._processing = False
        self._cached_quantizer: Optional[Quantizer] = None
        self._cached_key: Optional[str] = None

    @property
    def is_processing(self) -> bool:
        return self._processing

    def __enter__(self) -> "DitherEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._discard_executor()

    def invalidate_quantizer_cache(self) -> None:
        with self._lock:
            self._cached_quantizer = None
            self._cached_key = None

    def analyze_palette(self, image: Image.Image, colors: int = 8) -> Palette:
        """Sample ``image`` with a fresh quantizer and return ``colors`` representative colours."""

        try:
            quantizer = self._quantizer_factory(colors=colors)
            quantizer.sample(image)
            palette = tuple(quantizer.derive_palette(colors))
        except DitherError:
            raise
        except Exception as exc:
            raise QuantizerFailure(f"Palette analysis failed: {exc}") from exc
        if not palette:
            raise QuantizerFailure("Palette analysis produced no colours")
        return palette

    def dither(
        self,
        image: Image.Image,
        options: DitherOptions,
        width: Optional[int] = None,
        *,
        source_key: Optional[str] = None,
    ) -> DitherResult:
        """Dither ``image`` and return it PNG-encoded at the requested width.

        ``source_key`` identifies the source image; when it changes between
        calls the cached quantizer state is dropped before reuse.
        """

        options.validate()
        with self._lock:
            self._processing = True
            try:
                return self._dither(image, options, width, source_key)
            finally:
                self._processing = False

    def _dither(
        self,
        image: Image.Image,
        options: DitherOptions,
        width: Optional[int],
        source_key: Optional[str],
    ) -> DitherResult:
        final_width, final_height = target_size(image.size, width)

        scale = options.pixel_scale
        if scale > 1:
            work_width = max(1, round(final_width / scale))
            work_height = max(1, round(final_height / scale))
        else:
            work_width, work_height = final_width, final_height

        LOGGER.debug(
            "Dithering %sx%s -> %sx%s (work %sx%s, mode=%s)",
            image.width, image.height, final_width, final_height,
            work_width, work_height, options.mode,
        )

        def prepare() -> PixelBuffer:
            return self._prepare_buffer(image, work_width, work_height)

        if options.mode == "bayer":
            palette = options.palette or self.analyze_palette(image, options.colors)
            dithered = self._bayer(prepare, palette, options.bayer_size)
        else:
            dithered = self._diffuse(image, prepare(), options, source_key)

        if scale > 1:
            dithered = resize_nearest(dithered, final_width, final_height)

        if options.pixeliness > 1:
            dithered = pixelate(dithered, final_width, final_height, options.pixeliness)

        return DitherResult(final_width, final_height, encode_png(dithered))

    @staticmethod
    def _prepare_buffer(image: Image.Image, width: int, height: int) -> PixelBuffer:
        rgba = image.convert("RGBA")
        if rgba.size != (width, height):
            rgba = rgba.resize((width, height), Image.Resampling.BILINEAR)
        return PixelBuffer.from_image(rgba)

    # -- ordered dithering -------------------------------------------------

    def _bayer(
        self,
        prepare: Callable[[], PixelBuffer],
        palette: Palette,
        bayer_size: int,
    ) -> PixelBuffer:
        index_palette(palette)
        if self._offload:
            try:
                return self._offload_ordered(prepare(), palette, bayer_size)
            except (OffloadTimeout, OffloadFailure) as exc:
                LOGGER.warning("Ordered dither offload failed (%s); dithering in-process", exc)
        # The offloaded buffer is gone, so start again from the source image.
        return ordered_dither(prepare(), palette, bayer_size)

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = self._executor_factory()
        return self._executor

    def _discard_executor(self) -> None:
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def _offload_ordered(self, buffer: PixelBuffer, palette: Palette, bayer_size: int) -> PixelBuffer:
        width, height = buffer.width, buffer.height
        payload = {
            "pixels": bytes(buffer.data),
            "width": width,
            "height": height,
            "palette": [tuple(color) for color in palette],
            "bayer_size": bayer_size,
        }
        # Ownership of the pixels moves to the worker.
        del buffer

        try:
            future = self._get_executor().submit(ordered_dither_job, payload)
        except Exception as exc:
            self._discard_executor()
            raise OffloadFailure(f"could not start worker: {exc}") from exc

        try:
            result = future.result(timeout=self._offload_timeout)
        except FuturesTimeoutError as exc:
            future.cancel()
            self._discard_executor()
            raise OffloadTimeout(f"worker did not answer within {self._offload_timeout}s") from exc
        except Exception as exc:
            self._discard_executor()
            raise OffloadFailure(str(exc) or type(exc).__name__) from exc

        try:
            return PixelBuffer(result["width"], result["height"], bytearray(result["pixels"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise OffloadFailure(f"malformed worker result: {exc}") from exc

    # -- error diffusion ---------------------------------------------------

    @staticmethod
    def _quantizer_key(options: DitherOptions, source_key: Optional[str]) -> str:
        key = palette_fingerprint(options.palette) or f"auto:{options.colors}"
        if source_key is not None:
            key = f"{source_key}#{key}"
        return key

    def _quantizer_for(self, image: Image.Image, options: DitherOptions, key: str) -> Quantizer:
        if self._cached_quantizer is not None and self._cached_key == key:
            LOGGER.debug("Reusing quantizer for %s", key)
            return self._cached_quantizer

        self.invalidate_quantizer_cache()
        LOGGER.debug("Sampling new quantizer for %s", key)
        try:
            quantizer = self._quantizer_factory(palette=options.palette, colors=options.colors)
            quantizer.sample(image)
        except DitherError:
            raise
        except Exception as exc:
            raise QuantizerFailure(f"Quantizer sampling failed: {exc}") from exc

        self._cached_quantizer = quantizer
        self._cached_key = key
        return quantizer

    def _diffuse(
        self,
        image: Image.Image,
        buffer: PixelBuffer,
        options: DitherOptions,
        source_key: Optional[str],
    ) -> PixelBuffer:
        quantizer = self._quantizer_for(image, options, self._quantizer_key(options, source_key))
        try:
            reduced = quantizer.reduce(buffer, options.kernel, options.serpentine)
            return PixelBuffer(buffer.width, buffer.height, bytearray(reduced))
        except DitherError:
            raise
        except Exception as exc:
            raise QuantizerFailure(f"Quantizer reduce failed: {exc}") from exc
