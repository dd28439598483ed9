from __future__ import annotations

import logging
from dataclasses import dataclass

from kratolib_promo.data.template_seeds import PROMO_TEMPLATE_SEEDS
from kratolib_promo.models import PromoTemplate
from kratolib_promo.providers.base import PromotionBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlatformBadge:
    id: str
    name: str
    logo_url: str
    fallback_text: str
    color: str


PLATFORM_BADGES: list[PlatformBadge] = [
    PlatformBadge(
        id="spotify",
        name="Spotify",
        logo_url="https://storage.googleapis.com/pr-newsroom-wp/1/2018/11/Spotify_Logo_RGB_White.png",
        fallback_text="SP",
        color="#1DB954",
    ),
    PlatformBadge(
        id="apple-music",
        name="Apple Music",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/thumb/2/2a/Apple_Music_logo.svg/2560px-Apple_Music_logo.svg.png",
        fallback_text="AM",
        color="#FC3C44",
    ),
    PlatformBadge(
        id="youtube-music",
        name="YouTube Music",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/thumb/6/6a/Youtube_Music_icon.svg/2048px-Youtube_Music_icon.svg.png",
        fallback_text="YT",
        color="#FF0000",
    ),
    PlatformBadge(
        id="amazon-music",
        name="Amazon Music",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/thumb/8/88/Amazon_Music_logo.svg/2560px-Amazon_Music_logo.svg.png",
        fallback_text="AZ",
        color="#00A8E1",
    ),
    PlatformBadge(
        id="soundcloud",
        name="SoundCloud",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/thumb/a/a2/SoundCloud_logo.svg/2560px-SoundCloud_logo.svg.png",
        fallback_text="SC",
        color="#FF7700",
    ),
    PlatformBadge(
        id="deezer",
        name="Deezer",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/thumb/d/db/Deezer_logo.svg/2560px-Deezer_logo.svg.png",
        fallback_text="DZ",
        color="#FF0092",
    ),
    PlatformBadge(
        id="tidal",
        name="Tidal",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/thumb/1/18/Tidal_logo.svg/2560px-Tidal_logo.svg.png",
        fallback_text="TD",
        color="#000000",
    ),
    PlatformBadge(
        id="jiosaavn",
        name="JioSaavn",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/e/e0/JioSaavn_Logo.png",
        fallback_text="JS",
        color="#2C99C9",
    ),
    PlatformBadge(
        id="wynk",
        name="Wynk Music",
        logo_url="https://upload.wikimedia.org/wikipedia/commons/f/f6/Wynk_Music_Logo.png",
        fallback_text="WK",
        color="#E11B22",
    ),
]


def find_badge(badge_id: str | None) -> PlatformBadge | None:
    if not badge_id:
        return None
    return next((b for b in PLATFORM_BADGES if b.id == badge_id), None)


def fallback_templates() -> list[PromoTemplate]:
    return [PromoTemplate.model_validate(t) for t in PROMO_TEMPLATE_SEEDS]


@dataclass(frozen=True)
class TemplateResolution:
    template: PromoTemplate | None
    requested_id: str | None
    substituted: bool


class TemplateCatalog:
    """
    The set of creative layouts for one page render. Templates are reference
    data: nothing here mutates them.
    """

    def __init__(self, templates: list[PromoTemplate], from_fallback: bool = False) -> None:
        self.templates = list(templates)
        self.from_fallback = from_fallback

    @classmethod
    async def load(cls, backend: PromotionBackend) -> TemplateCatalog:
        """
        Fetch the backend catalog. The built-in set is only used when the backend
        has no templates at all; backend errors propagate to the caller.
        """
        templates = await backend.list_templates()
        if templates:
            return cls(templates)
        logger.info("backend template catalog is empty; using %d built-in templates", len(PROMO_TEMPLATE_SEEDS))
        return cls(fallback_templates(), from_fallback=True)

    def __len__(self) -> int:
        return len(self.templates)

    def __iter__(self):
        return iter(self.templates)

    def get(self, template_id: str | None) -> PromoTemplate | None:
        if not template_id:
            return None
        return next((t for t in self.templates if t.id == template_id), None)

    def by_format(self, fmt: str) -> list[PromoTemplate]:
        fmt = _normalize_format(fmt)
        return [t for t in self.templates if t.format == fmt]

    def has_format(self, template: PromoTemplate | None, fmt: str) -> bool:
        return template is not None and template.format == _normalize_format(fmt)

    def default_for_format(self, fmt: str | None) -> PromoTemplate | None:
        if not self.templates:
            return None
        if fmt:
            matching = self.by_format(fmt)
            if matching:
                return matching[0]
        return self.templates[0]

    def resolve(self, template_id: str | None) -> TemplateResolution:
        found = self.get(template_id)
        if found is not None:
            return TemplateResolution(template=found, requested_id=template_id, substituted=False)
        first = self.templates[0] if self.templates else None
        if template_id and first is not None:
            logger.warning("template %r is not in the catalog; rendering %r instead", template_id, first.id)
        return TemplateResolution(template=first, requested_id=template_id, substituted=bool(template_id))


def _normalize_format(fmt: str) -> str:
    fmt = (fmt or "").strip().lower()
    # Reels share the 9:16 story canvas.
    if fmt == "reel":
        return "story"
    return fmt
