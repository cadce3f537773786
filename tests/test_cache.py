import time

from PIL import Image

from ditherit.infrastructure.cache import ImageCache


def test_image_cache_eviction_limit():
    cache = ImageCache(ttl=60)
    img = Image.new("RGBA", (1, 1))

    # Fill the cache beyond the limit to trigger eviction logic.
    for idx in range(20):
        cache.put(f"key-{idx}", img)

    assert len(cache) == 16

    # Ensure the oldest entries are evicted first
    assert cache.get("key-0") is None
    assert cache.get("key-3") is None
    assert cache.get("key-4") is img


def test_image_cache_expires_entries(monkeypatch):
    cache = ImageCache(ttl=5)
    img = Image.new("RGBA", (1, 1))
    now = time.time()

    monkeypatch.setattr(time, "time", lambda: now)
    cache.put("http://example.com/a.png", img)
    assert cache.get("http://example.com/a.png") is img

    monkeypatch.setattr(time, "time", lambda: now + 6)
    assert cache.get("http://example.com/a.png") is None
    assert len(cache) == 0


def test_image_cache_evict():
    cache = ImageCache(ttl=60)
    cache.put("a", Image.new("RGBA", (1, 1)))

    cache.evict("a")
    cache.evict("missing")

    assert cache.get("a") is None


def test_replacing_a_key_does_not_evict_others():
    cache = ImageCache(ttl=60, limit=2)
    cache.put("a", Image.new("RGBA", (1, 1)))
    cache.put("b", Image.new("RGBA", (1, 1)))

    cache.put("b", Image.new("RGBA", (2, 2)))

    assert cache.get("a") is not None
    assert cache.get("b").size == (2, 2)
