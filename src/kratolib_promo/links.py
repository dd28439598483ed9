from __future__ import annotations

import re
from dataclasses import dataclass

from kratolib_promo.catalog import PLATFORM_BADGES, PlatformBadge
from kratolib_promo.models import StreamingLink

_SLUG_JUNK = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class LinkPlatform:
    id: str
    name: str
    color: str


# Platforms a landing page can link to (a superset of the badges' audience: Instagram has no badge).
LINK_PLATFORMS: list[LinkPlatform] = [
    LinkPlatform("spotify", "Spotify", "#1DB954"),
    LinkPlatform("apple-music", "Apple Music", "#FC3C44"),
    LinkPlatform("youtube-music", "YouTube Music", "#FF0000"),
    LinkPlatform("instagram", "Instagram", "#E1306C"),
    LinkPlatform("amazon-music", "Amazon Music", "#00A8E1"),
    LinkPlatform("jiosaavn", "JioSaavn", "#00B8F4"),
    LinkPlatform("wynk", "Wynk Music", "#E11B22"),
]


class DuplicateLinkError(ValueError):
    pass


class UnknownPlatformError(ValueError):
    pass


def sanitize_slug(value: str) -> str:
    """
    Lowercase, collapse every run of non-alphanumerics into one hyphen, trim hyphens.
    "My Song!! Title" -> "my-song-title".
    """
    return _SLUG_JUNK.sub("-", (value or "").lower()).strip("-")


def add_link(links: list[StreamingLink], platform_id: str) -> list[StreamingLink]:
    platform = next((p for p in LINK_PLATFORMS if p.id == platform_id), None)
    if platform is None:
        raise UnknownPlatformError(f"Unknown platform '{platform_id}'")
    if any(link.platform == platform.name for link in links):
        raise DuplicateLinkError("Platform already added")
    return [*links, StreamingLink(platform=platform.name, url="", is_active=True)]


def remove_link(links: list[StreamingLink], index: int) -> list[StreamingLink]:
    return [link for i, link in enumerate(links) if i != index]


def update_link(
    links: list[StreamingLink],
    index: int,
    url: str | None = None,
    is_active: bool | None = None,
) -> list[StreamingLink]:
    if index < 0 or index >= len(links):
        raise IndexError(f"no streaming link at position {index}")
    updates: dict[str, object] = {}
    if url is not None:
        updates["url"] = url.strip()
    if is_active is not None:
        updates["is_active"] = is_active
    out = list(links)
    out[index] = links[index].model_copy(update=updates)
    return out


def active_links(links: list[StreamingLink]) -> list[StreamingLink]:
    return [link for link in links if link.is_active]


def badge_for_platform(platform: str) -> PlatformBadge | None:
    name = (platform or "").strip().lower()
    if not name:
        return None
    as_id = re.sub(r"\s+", "-", name)
    return next((b for b in PLATFORM_BADGES if b.name.lower() == name or b.id == as_id), None)


def monogram(platform: str) -> str:
    return (platform or "").strip()[:2].upper()
