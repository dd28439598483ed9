import asyncio
import os
import time

import pytest

from conftest import FakeBackend
from kratolib_promo.providers.base import BackendError
from kratolib_promo.storage import DisplayUrlResolver, UrlCache, is_storage_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.parametrize(
    "ref,expected",
    [
        ("s3://bucket/covers/a.png", True),
        ("covers/a.png", True),
        ("https://cdn.test/a.png", False),
        ("http://cdn.test/a.png", False),
        ("/uploads/a.png", False),
        ("", False),
        (None, False),
    ],
)
def test_is_storage_key(ref, expected):
    assert is_storage_key(ref) is expected


def test_url_cache_expires_entries():
    clock = FakeClock()
    cache = UrlCache(ttl_seconds=60, clock=clock)
    cache.put("covers/a.png", "https://signed/a")
    clock.now += 59
    assert cache.get("covers/a.png") == "https://signed/a"
    clock.now += 1
    assert cache.get("covers/a.png") is None
    assert len(cache) == 0


def test_resolver_signs_storage_keys_once():
    backend = FakeBackend()
    resolver = DisplayUrlResolver(backend, UrlCache(ttl_seconds=60))
    first = asyncio.run(resolver.display_url("s3://covers/a.png"))
    second = asyncio.run(resolver.display_url("s3://covers/a.png"))
    assert first == second == "https://cdn.test/covers/a.png?sig=1"
    assert backend.signed == ["covers/a.png"]


def test_resolver_passes_urls_through():
    backend = FakeBackend()
    resolver = DisplayUrlResolver(backend, UrlCache(ttl_seconds=60))
    assert asyncio.run(resolver.display_url("https://cdn.test/a.png")) == "https://cdn.test/a.png"
    assert asyncio.run(resolver.display_url("/uploads/a.png")) == "/uploads/a.png"
    assert asyncio.run(resolver.display_url(None)) == ""
    assert backend.signed == []


def test_resolver_degrades_to_raw_reference_on_error():
    backend = FakeBackend()
    backend.fail["get_signed_url"] = BackendError("Access denied", status_code=403)
    cache = UrlCache(ttl_seconds=60)
    resolver = DisplayUrlResolver(backend, cache)
    assert asyncio.run(resolver.display_url("covers/a.png")) == "covers/a.png"
    assert len(cache) == 0


def test_display_urls_resolves_unique_refs():
    backend = FakeBackend()
    resolver = DisplayUrlResolver(backend, UrlCache(ttl_seconds=60))
    out = asyncio.run(resolver.display_urls(["covers/a.png", "", None, "covers/a.png", "https://x.test/b.png"]))
    assert out == {
        "covers/a.png": "https://cdn.test/covers/a.png?sig=1",
        "https://x.test/b.png": "https://x.test/b.png",
    }
    assert backend.signed == ["covers/a.png"]


def test_image_fetcher_caches_on_disk(image_fetcher, image_requests):
    images, failures = asyncio.run(image_fetcher.fetch_many(["https://img.test/a.png", "/uploads/b.png"]))
    assert set(images) == {"https://img.test/a.png", "/uploads/b.png"}
    assert failures == {}
    assert sorted(image_requests) == ["https://assets.test/uploads/b.png", "https://img.test/a.png"]

    asyncio.run(image_fetcher.fetch_many(["https://img.test/a.png"]))
    assert len(image_requests) == 2


def test_image_fetcher_reports_failures(image_fetcher):
    images, failures = asyncio.run(image_fetcher.fetch_many(["https://img.test/missing.png"]))
    assert images == {}
    assert list(failures) == ["https://img.test/missing.png"]


def test_image_cache_is_keyed_on_storage_reference(image_fetcher, image_requests):
    first = "https://cdn.test/covers/a.png?sig=1"
    rotated = "https://cdn.test/covers/a.png?sig=2"
    asyncio.run(image_fetcher.fetch_many([first], cache_keys={first: "covers/a.png"}))
    images, _ = asyncio.run(image_fetcher.fetch_many([rotated], cache_keys={rotated: "covers/a.png"}))
    assert rotated in images
    assert image_requests == [first]
    assert len(list(image_fetcher.cache_dir.iterdir())) == 1


def test_image_cache_prunes_stale_files(image_fetcher):
    asyncio.run(image_fetcher.fetch_many(["https://img.test/old.png", "https://img.test/new.png"]))
    old = image_fetcher._cache_path("https://img.test/old.png")
    stale = time.time() - image_fetcher.max_age_seconds - 10
    os.utime(old, (stale, stale))

    assert image_fetcher.prune() == 1
    assert not old.exists()
    assert image_fetcher._cache_path("https://img.test/new.png").exists()
