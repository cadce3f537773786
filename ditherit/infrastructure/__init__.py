"""Infrastructure helpers for fetching, caching and responses."""

from .cache import IMAGE_CACHE, ImageCache
from .network import FETCHER, SourceFetcher, decode_image
from .responses import send_png

__all__ = [
    "IMAGE_CACHE",
    "ImageCache",
    "FETCHER",
    "SourceFetcher",
    "decode_image",
    "send_png",
]
