import io

import httpx
import pytest
from PIL import Image

from kratolib_promo.catalog import fallback_templates
from kratolib_promo.models import Promotion, PromotionDraft, Release
from kratolib_promo.providers.base import NotFoundError
from kratolib_promo.storage import ImageFetcher


def png_bytes(size=(64, 64), color=(200, 40, 40, 255)):
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


class FakeBackend:
    """In-memory stand-in for the KratoLib REST backend."""

    def __init__(self, templates=None, releases=None):
        self.templates = list(templates or [])
        self.releases = {r.id: r for r in (releases or [])}
        self.promotions = {}
        self.saved = []
        self.signed = []
        self.fail = {}

    def _maybe_fail(self, op):
        exc = self.fail.get(op)
        if exc is not None:
            raise exc

    async def list_templates(self):
        self._maybe_fail("list_templates")
        return list(self.templates)

    async def seed_templates(self, templates):
        self._maybe_fail("seed_templates")
        self.templates = list(templates)
        return list(templates)

    async def get_release(self, release_id):
        self._maybe_fail("get_release")
        if release_id not in self.releases:
            raise NotFoundError("Release not found", status_code=404)
        return self.releases[release_id]

    async def list_releases(self, user_id=None):
        self._maybe_fail("list_releases")
        return list(self.releases.values())

    async def get_promotion_by_release(self, release_id):
        self._maybe_fail("get_promotion_by_release")
        return self.promotions.get(release_id)

    async def get_public_promotion(self, slug):
        self._maybe_fail("get_public_promotion")
        for promo in self.promotions.values():
            if promo.slug == slug:
                release = self.releases.get(promo.release_id)
                return promo.model_copy(update={"release": release})
        raise NotFoundError("Page not found", status_code=404)

    async def save_promotion(self, draft: PromotionDraft):
        self._maybe_fail("save_promotion")
        self.saved.append(draft)
        promo = Promotion.model_validate({"_id": f"promo-{draft.release_id}", **draft.to_wire()})
        self.promotions[draft.release_id] = promo
        return promo

    async def get_signed_url(self, key):
        self._maybe_fail("get_signed_url")
        self.signed.append(key)
        return f"https://cdn.test/{key}?sig=1"


@pytest.fixture
def templates():
    return fallback_templates()


@pytest.fixture
def classic_story(templates):
    return next(t for t in templates if t.id == "classic_story")


@pytest.fixture
def modern_square(templates):
    return next(t for t in templates if t.id == "modern_square")


@pytest.fixture
def release():
    return Release.model_validate(
        {
            "_id": "rel-1",
            "title": "Midnight Drive",
            "artistName": "Nova Lane",
            "releaseType": "single",
            "status": "Released",
            "coverArt": {"url": "covers/rel-1.png"},
        }
    )


@pytest.fixture
def backend(templates, release):
    return FakeBackend(templates=templates, releases=[release])


@pytest.fixture
def image_requests():
    return []


@pytest.fixture
def image_fetcher(tmp_path, image_requests):
    def handler(request):
        image_requests.append(str(request.url))
        if "missing" in request.url.path:
            return httpx.Response(404)
        return httpx.Response(200, content=png_bytes(), headers={"Content-Type": "image/png"})

    return ImageFetcher(root_dir=tmp_path, base_url="https://assets.test", transport=httpx.MockTransport(handler))
