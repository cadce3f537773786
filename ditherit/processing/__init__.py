"""Quantization and dithering engine."""

from .bayer import BAYER_SIZES, build_rank_matrix, build_threshold_matrix
from .buffer import PixelBuffer
from .dither import ordered_dither, ordered_dither_bytes
from .engine import DitherEngine, DitherOptions, DitherResult, encode_png, target_size
from .palette import (
    index_palette,
    nearest_color,
    palette_fingerprint,
    parse_hex_color,
    parse_palette,
    preset_palette,
    to_hex,
)
from .pixelate import pixelate, resize_nearest
from .quantizer import DIFFUSION_KERNELS, HistogramQuantizer, Quantizer

__all__ = [
    "BAYER_SIZES",
    "build_rank_matrix",
    "build_threshold_matrix",
    "PixelBuffer",
    "ordered_dither",
    "ordered_dither_bytes",
    "DitherEngine",
    "DitherOptions",
    "DitherResult",
    "encode_png",
    "target_size",
    "index_palette",
    "nearest_color",
    "palette_fingerprint",
    "parse_hex_color",
    "parse_palette",
    "preset_palette",
    "to_hex",
    "pixelate",
    "resize_nearest",
    "DIFFUSION_KERNELS",
    "HistogramQuantizer",
    "Quantizer",
]
