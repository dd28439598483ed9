from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from kratolib_promo.catalog import PlatformBadge, find_badge
from kratolib_promo.models import (
    BackgroundOverride,
    Canvas,
    ElementOverride,
    PromoElement,
    PromoTemplate,
    Release,
    Size,
)
from kratolib_promo.overrides import DEFAULT_BADGES

# Badge row geometry. These match the published templates pixel for pixel; do not tune.
BADGE_BOX_SIZE = 200
BADGE_GAP = 50
BADGE_ROW_BOTTOM_OFFSET = 300

BACKGROUND_BRIGHTNESS = 0.7
CUSTOM_TEXT_PLACEHOLDER = "OUT NOW"

# Artist and track lines render heavier than other text.
TITLE_SOURCES = ("artist_name", "track_name")
TITLE_WEIGHT = 900


@dataclass(frozen=True)
class BadgeSlot:
    badge_id: str
    x: float
    y: float


def badge_row(selected: list[str], canvas: Canvas) -> list[BadgeSlot]:
    """
    Lay out N badge boxes as one row centered on the canvas midline, 250px
    apart (200px box + 50px gap), at height - 300.
    """
    n = len(selected)
    if n == 0:
        return []
    total_width = n * BADGE_BOX_SIZE + (n - 1) * BADGE_GAP
    start_x = canvas.width / 2 - total_width / 2
    y = canvas.height - BADGE_ROW_BOTTOM_OFFSET
    step = BADGE_BOX_SIZE + BADGE_GAP
    return [BadgeSlot(badge_id=b, x=start_x + i * step, y=y) for i, b in enumerate(selected)]


@dataclass(frozen=True)
class RenderableElement:
    """One item of the render pass. A platform_logo element becomes one of these per badge."""

    element: PromoElement
    key: str
    override_key: str
    default_x: float
    default_y: float
    size: Size | None
    badge_id: str | None = None


def expand_elements(template: PromoTemplate, overrides: dict[str, ElementOverride]) -> list[RenderableElement]:
    out: list[RenderableElement] = []
    for element in template.elements:
        if element.type == "image" and element.source == "platform_logo":
            override = overrides.get(element.id)
            if override is not None and override.selected_badges is not None:
                selected = list(override.selected_badges)
            else:
                selected = list(DEFAULT_BADGES)
            for slot in badge_row(selected, template.canvas):
                out.append(
                    RenderableElement(
                        element=element,
                        key=f"{element.id}-{slot.badge_id}",
                        override_key=element.id,
                        default_x=slot.x,
                        default_y=slot.y,
                        size=Size(width=BADGE_BOX_SIZE, height=BADGE_BOX_SIZE),
                        badge_id=slot.badge_id,
                    )
                )
            continue
        out.append(
            RenderableElement(
                element=element,
                key=element.id,
                override_key=element.id,
                default_x=element.position.x,
                default_y=element.position.y,
                size=element.size,
            )
        )
    return out


@dataclass(frozen=True)
class ResolvedGeometry:
    x: float
    y: float
    width: float | None
    height: float | None
    scale: float


def resolved_element(item: RenderableElement, override: ElementOverride | None) -> ResolvedGeometry:
    """Template default layered under the user's override for the same element."""
    override = override or ElementOverride()
    # Cover art stays where the template put it.
    movable = item.element.source != "cover_art"
    dx = (override.x or 0) if movable else 0
    dy = (override.y or 0) if movable else 0
    width = override.size_width or (item.size.width if item.size else None)
    height = override.size_height or (item.size.height if item.size else None)
    scale = override.scale if override.scale else 1.0
    return ResolvedGeometry(
        x=item.default_x + dx,
        y=item.default_y + dy,
        width=width,
        height=height,
        scale=scale,
    )


def resolve_text(element: PromoElement, override: ElementOverride | None, release: Release | None) -> str:
    if override is not None and override.text:
        return override.text
    if element.source == "artist_name":
        return (release.artist_name if release else "") or "Artist Name"
    if element.source == "track_name":
        return (release.title if release else "") or "Track Title"
    if element.source == "custom_text":
        return CUSTOM_TEXT_PLACEHOLDER
    return ""


@dataclass(frozen=True)
class ResolvedUrls:
    """Display URLs, already signed. Empty string means not (yet) available."""

    cover: str = ""
    template_background: str = ""
    background_override: str = ""


def resolve_background_url(
    background_override: BackgroundOverride | None,
    release: Release | None,
    urls: ResolvedUrls,
) -> str:
    """Override > template background > cover art."""
    override_ref = background_override.image_url if background_override else None
    if override_ref:
        raw_cover = release.cover_art.url if release else ""
        if override_ref == raw_cover and urls.cover:
            return urls.cover
        if urls.background_override:
            return urls.background_override
    return urls.template_background or urls.cover


@dataclass(frozen=True)
class BackgroundLayer:
    image_url: str
    position_x: float
    position_y: float
    scale: float
    blur: float
    brightness: float = BACKGROUND_BRIGHTNESS


@dataclass(frozen=True)
class PlacedElement:
    key: str
    override_key: str
    kind: str  # cover | badge | text
    x: float
    y: float
    width: float | None
    height: float | None
    scale: float
    radius: float = 0
    text: str = ""
    font: str | None = None
    font_size: float = 16
    color: str = "#ffffff"
    align: str = "center"
    weight: int = 700
    image_url: str = ""
    badge: PlatformBadge | None = None
    draggable: bool = False
    animation: dict[str, Any] | None = None


@dataclass(frozen=True)
class Composition:
    template_id: str
    template_name: str
    format: str
    canvas_width: int
    canvas_height: int
    scale: float
    interactive: bool
    background: BackgroundLayer
    elements: list[PlacedElement] = field(default_factory=list)

    @property
    def display_width(self) -> int:
        return round(self.canvas_width * self.scale)

    @property
    def display_height(self) -> int:
        return round(self.canvas_height * self.scale)

    def image_urls(self) -> list[str]:
        urls = [self.background.image_url]
        for el in self.elements:
            if el.kind == "cover":
                urls.append(el.image_url)
            elif el.kind == "badge" and el.badge is not None:
                urls.append(el.badge.logo_url)
        return [u for u in dict.fromkeys(urls) if u]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["display_width"] = self.display_width
        data["display_height"] = self.display_height
        return data


def fit_scale(canvas_width: int, container_width: float) -> float:
    if canvas_width <= 0 or container_width <= 0:
        return 1.0
    return container_width / canvas_width


def compose(
    template: PromoTemplate,
    release: Release | None,
    element_overrides: dict[str, ElementOverride],
    background_override: BackgroundOverride | None,
    urls: ResolvedUrls,
    scale: float = 1.0,
    interactive: bool = False,
) -> Composition:
    """
    Merge template, overrides and release data into a positioned layout.
    All coordinates are template pixels; `scale` only tells the surface how
    to shrink the finished composition.
    """
    bg = background_override or BackgroundOverride()
    background = BackgroundLayer(
        image_url=resolve_background_url(background_override, release, urls),
        position_x=bg.position.x,
        position_y=bg.position.y,
        scale=bg.scale,
        blur=bg.blur,
    )

    placed: list[PlacedElement] = []
    for item in expand_elements(template, element_overrides):
        element = item.element
        override = element_overrides.get(item.override_key)
        geo = resolved_element(item, override)
        animation = None
        if interactive and element.animation is not None and element.animation.mp4 is not None:
            animation = element.animation.mp4.model_dump()
        common = {
            "key": item.key,
            "override_key": item.override_key,
            "x": geo.x,
            "y": geo.y,
            "width": geo.width,
            "height": geo.height,
            "scale": geo.scale,
            "animation": animation,
        }

        if item.badge_id is not None:
            placed.append(
                PlacedElement(
                    kind="badge",
                    badge=find_badge(item.badge_id),
                    draggable=interactive,
                    **common,
                )
            )
        elif element.type == "image" and element.source == "cover_art":
            placed.append(
                PlacedElement(
                    kind="cover",
                    radius=element.radius or 0,
                    image_url=urls.cover,
                    draggable=False,
                    **common,
                )
            )
        elif element.type == "text":
            style = element.style
            placed.append(
                PlacedElement(
                    kind="text",
                    text=resolve_text(element, override, release),
                    font=style.font if style else None,
                    font_size=(style.size if style and style.size else 16),
                    color=(style.color if style and style.color else "#ffffff"),
                    align=(style.align if style and style.align else "center"),
                    weight=TITLE_WEIGHT if element.source in TITLE_SOURCES else 700,
                    draggable=interactive,
                    **common,
                )
            )

    return Composition(
        template_id=template.id,
        template_name=template.name,
        format=template.format,
        canvas_width=template.canvas.width,
        canvas_height=template.canvas.height,
        scale=scale,
        interactive=interactive,
        background=background,
        elements=placed,
    )
