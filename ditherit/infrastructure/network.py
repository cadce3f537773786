from __future__ import annotations

import io
import logging
import time
from typing import Callable
from urllib.parse import urlsplit

import requests
from PIL import Image, UnidentifiedImageError

from ..config import SETTINGS
from .cache import IMAGE_CACHE, ImageCache

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[], requests.Session]


def _validate_source_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ValueError(f"Invalid source_url: {url}")
    return url


def decode_image(data: bytes) -> Image.Image:
    """Decode ``data`` into an RGBA image, raising ``ValueError`` if it is not one."""

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError(f"Not a decodable image: {exc}") from exc
    except Image.DecompressionBombError as exc:
        raise ValueError(f"Image is too large to decode: {exc}") from exc
    return img.convert("RGBA")


class SourceFetcher:
    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        cache: ImageCache | None = None,
    ) -> None:
        self._session_factory = session_factory or requests.Session
        self._session = self._create_session()
        self._cache = IMAGE_CACHE if cache is None else cache

    def _create_session(self) -> requests.Session:
        session = self._session_factory()
        session.headers.update({"User-Agent": "ditherit/1.0"})
        return session

    def fetch_source(self, source_url: str) -> Image.Image:
        target_url = _validate_source_url(source_url)
        cached = self._cache.get(target_url)
        if cached is not None:
            return cached

        last_exception: Exception | None = None
        for attempt in range(1, SETTINGS.retries + 2):
            try:
                response = self._session.get(target_url, timeout=SETTINGS.source_timeout)
                response.raise_for_status()
                if len(response.content) > SETTINGS.max_upload_bytes:
                    raise ValueError(
                        f"Source image is larger than {SETTINGS.max_upload_bytes} bytes"
                    )
                image = decode_image(response.content)
                self._cache.put(target_url, image)
                return image
            except ValueError:
                raise
            except requests.RequestException as exc:
                LOGGER.warning("Fetching %s failed (attempt %d): %s", target_url, attempt, exc)
                last_exception = exc
                time.sleep(0.4 * attempt)
        raise RuntimeError(last_exception)


FETCHER = SourceFetcher()
