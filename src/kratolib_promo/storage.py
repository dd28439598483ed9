from __future__ import annotations

import asyncio
import hashlib
import io
import logging
import time
from pathlib import Path
from urllib.parse import urljoin

import httpx
from PIL import Image, UnidentifiedImageError

from kratolib_promo.config import settings
from kratolib_promo.providers.base import BackendError, PromotionBackend

logger = logging.getLogger(__name__)


def is_storage_key(ref: str | None) -> bool:
    """
    Storage keys are anything that is not already a fetchable URL:
    "s3://bucket/key", "covers/abc.png". Local "/uploads/..." paths are served as-is.
    """
    if not ref:
        return False
    if ref.startswith("s3://"):
        return True
    return not ref.startswith(("http://", "https://", "/uploads/"))


class UrlCache:
    """Signed URLs keyed by storage reference, each with its own expiry."""

    def __init__(self, ttl_seconds: float | None = None, clock=time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.signed_url_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        url, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return url

    def put(self, key: str, url: str) -> None:
        self._entries[key] = (url, self._clock() + self.ttl_seconds)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class DisplayUrlResolver:
    def __init__(self, backend: PromotionBackend, cache: UrlCache) -> None:
        self.backend = backend
        self.cache = cache

    async def display_url(self, ref: str | None) -> str:
        if not ref:
            return ""
        if not is_storage_key(ref):
            return ref
        cached = self.cache.get(ref)
        if cached:
            return cached
        key = ref[len("s3://"):] if ref.startswith("s3://") else ref
        try:
            url = await self.backend.get_signed_url(key)
        except BackendError as exc:
            # Degrade to the raw reference; the image simply fails to load downstream.
            logger.warning("could not sign storage key %r: %s", ref, exc.message)
            return ref
        self.cache.put(ref, url)
        return url

    async def display_urls(self, refs: list[str | None]) -> dict[str, str]:
        wanted = [r for r in dict.fromkeys(refs) if r]
        resolved = await asyncio.gather(*(self.display_url(r) for r in wanted))
        return dict(zip(wanted, resolved))


class ImageFetchError(Exception):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ImageFetcher:
    """
    Downloads images for rasterization. Bytes are cached on disk by the hash of
    a cache key: the storage reference when the caller knows it, else the URL.
    Signed URLs rotate, so keying on them would store the same object again
    after every refresh. Files untouched for `max_age_seconds` are pruned.
    """

    def __init__(
        self,
        root_dir: Path | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        max_age_seconds: float | None = None,
    ) -> None:
        self.root_dir = Path(root_dir or settings.data_dir).resolve()
        self.cache_dir = self.root_dir / "images"
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url if base_url is not None else settings.asset_base_url
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.transport = transport
        self.max_age_seconds = (
            max_age_seconds if max_age_seconds is not None else settings.image_cache_max_age_seconds
        )

    def absolute_url(self, url: str) -> str:
        if url.startswith("/") and self.base_url:
            return urljoin(self.base_url.rstrip("/") + "/", url.lstrip("/"))
        return url

    def _cache_path(self, key: str) -> Path:
        return self.cache_dir / hashlib.sha256(key.encode("utf-8")).hexdigest()

    def prune(self, now: float | None = None) -> int:
        """Delete cached files whose last use is older than max_age_seconds."""
        cutoff = (now if now is not None else time.time()) - self.max_age_seconds
        removed = 0
        for path in self.cache_dir.iterdir():
            if path.is_file() and path.stat().st_mtime <= cutoff:
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info("pruned %d cached images", removed)
        return removed

    async def fetch(self, client: httpx.AsyncClient, url: str, cache_key: str | None = None) -> Image.Image:
        path = self._cache_path(cache_key or url)
        if path.exists():
            content = path.read_bytes()
            path.touch()
        else:
            try:
                resp = await client.get(self.absolute_url(url))
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                raise ImageFetchError(url, str(exc)) from exc
            content = resp.content
            path.write_bytes(content)
        try:
            img = Image.open(io.BytesIO(content))
            img.load()
        except (UnidentifiedImageError, OSError) as exc:
            path.unlink(missing_ok=True)
            raise ImageFetchError(url, "not a decodable image") from exc
        return img

    async def fetch_many(
        self,
        urls: list[str],
        cache_keys: dict[str, str] | None = None,
    ) -> tuple[dict[str, Image.Image], dict[str, str]]:
        """
        Fetch concurrently. `cache_keys` maps a URL to the stable reference it
        was signed from. Returns (images by url, failure reason by url).
        """
        self.prune()
        cache_keys = cache_keys or {}
        wanted = [u for u in dict.fromkeys(urls) if u]
        images: dict[str, Image.Image] = {}
        failures: dict[str, str] = {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
            results = await asyncio.gather(
                *(self.fetch(client, u, cache_keys.get(u)) for u in wanted),
                return_exceptions=True,
            )
        for url, result in zip(wanted, results):
            if isinstance(result, ImageFetchError):
                logger.warning("image fetch failed for %s: %s", url, result.reason)
                failures[url] = result.reason
            elif isinstance(result, BaseException):
                raise result
            else:
                images[url] = result
        return images, failures
