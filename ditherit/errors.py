"""Error types raised by the dithering engine."""

from __future__ import annotations


class DitherError(RuntimeError):
    """Base class for every failure raised by :mod:`ditherit`."""


class InvalidSize(DitherError, ValueError):
    """Raised for a Bayer matrix size outside of 2, 4, 8 and 16."""


class InvalidPalette(DitherError, ValueError):
    """Raised when a palette is empty or holds an out-of-range colour."""


class InvalidBlockSize(DitherError, ValueError):
    """Raised for a pixelation block size that is not a positive number."""


class OffloadTimeout(DitherError):
    """The worker process did not answer in time. Recovered by the engine."""


class OffloadFailure(DitherError):
    """The worker process raised or died. Recovered by the engine."""


class QuantizerFailure(DitherError):
    """The error-diffusion quantizer failed. Always surfaced to the caller."""


class InvalidOptions(DitherError, ValueError):
    """Raised for an unknown mode or kernel, or an unusable scale or colour count."""
