from __future__ import annotations

import time
from typing import Dict, Optional, Tuple

from PIL import Image

from ..config import SETTINGS


CacheEntry = Tuple[float, Image.Image]


class ImageCache:
    """Decoded source images keyed by URL, so re-dithers skip the download."""

    def __init__(self, ttl: Optional[float] = None, limit: int = 16) -> None:
        self._entries: Dict[str, CacheEntry] = {}
        self._ttl = SETTINGS.cache_ttl if ttl is None else ttl
        self._limit = limit

    def get(self, key: str) -> Optional[Image.Image]:
        entry = self._entries.get(key)
        if not entry:
            return None
        timestamp, image = entry
        if time.time() - timestamp > self._ttl:
            self._entries.pop(key, None)
            return None
        return image

    def put(self, key: str, image: Image.Image) -> None:
        if key not in self._entries and len(self._entries) >= self._limit:
            oldest = min(self._entries.items(), key=lambda item: item[1][0])[0]
            self._entries.pop(oldest, None)
        self._entries[key] = (time.time(), image)

    def evict(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


IMAGE_CACHE = ImageCache()
