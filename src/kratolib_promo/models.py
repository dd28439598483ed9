from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

TemplateFormat = Literal["story", "post"]
ElementType = Literal["image", "text"]
ElementSource = Literal["cover_art", "artist_name", "track_name", "platform_logo", "custom_text"]


class WireModel(BaseModel):
    """
    Base for everything exchanged with the backend: camelCase on the wire,
    snake_case in Python, unknown keys ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Point(WireModel):
    x: float = 0
    y: float = 0


class Size(WireModel):
    width: float
    height: float


class Canvas(WireModel):
    width: int
    height: int


class TemplateBackground(WireModel):
    image: str = ""
    video: str | None = None


class TextStyle(WireModel):
    font: str | None = None
    size: float | None = None
    color: str | None = None
    align: Literal["left", "center", "right"] | None = None


class AnimationTiming(WireModel):
    type: Literal["fade_in", "slide_up", "zoom_in"]
    start: float = 0
    duration: float = 0


class ElementAnimation(WireModel):
    mp4: AnimationTiming | None = None


class SizeOption(WireModel):
    label: str
    width: float
    height: float


class PromoElement(WireModel):
    id: str
    type: ElementType
    source: ElementSource
    position: Point = Field(default_factory=Point)
    size: Size | None = None
    radius: float | None = None
    style: TextStyle | None = None
    animation: ElementAnimation | None = None
    allowed: list[str] | None = None
    size_options: list[SizeOption] | None = Field(default=None, alias="sizeOptions")


class PromoTemplate(WireModel):
    id: str
    name: str
    format: TemplateFormat
    canvas: Canvas
    background: TemplateBackground = Field(default_factory=TemplateBackground)
    elements: list[PromoElement] = Field(default_factory=list)

    def element(self, element_id: str) -> PromoElement | None:
        return next((e for e in self.elements if e.id == element_id), None)

    def logo_element(self) -> PromoElement | None:
        return next((e for e in self.elements if e.source == "platform_logo"), None)


class ElementOverride(WireModel):
    text: str | None = None
    x: float | None = None
    y: float | None = None
    scale: float | None = None
    size_width: float | None = Field(default=None, alias="sizeWidth")
    size_height: float | None = Field(default=None, alias="sizeHeight")
    selected_badges: list[str] | None = Field(default=None, alias="selectedBadges")

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class BackgroundPosition(WireModel):
    x: float = 50
    y: float = 50


class BackgroundOverride(WireModel):
    image_url: str | None = Field(default=None, alias="imageUrl")
    position: BackgroundPosition = Field(default_factory=BackgroundPosition)
    scale: float = 1.1
    blur: float = 0


class Customization(WireModel):
    template_id: str | None = Field(default=None, alias="templateId")
    element_overrides: dict[str, ElementOverride] = Field(default_factory=dict, alias="elementOverrides")
    background_override: BackgroundOverride | None = Field(default=None, alias="backgroundOverride")

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy(cls, data: Any) -> Any:
        # Documents saved by the first editor: {text, lastTemplateId, selectedBadges}.
        if not isinstance(data, dict):
            return data
        if not any(k in data for k in ("lastTemplateId", "text", "selectedBadges")):
            return data
        data = dict(data)
        overrides = dict(data.get("elementOverrides") or {})
        legacy_text = data.pop("text", None)
        legacy_badges = data.pop("selectedBadges", None)
        legacy_template = data.pop("lastTemplateId", None)
        if legacy_text:
            header = dict(overrides.get("header") or {})
            header.setdefault("text", legacy_text)
            overrides["header"] = header
        if legacy_badges is not None:
            logo = dict(overrides.get("logo") or {})
            logo.setdefault("selectedBadges", legacy_badges)
            overrides["logo"] = logo
        data["elementOverrides"] = overrides
        if not data.get("templateId") and legacy_template:
            data["templateId"] = legacy_template
        return data


class CoverArt(WireModel):
    url: str = ""


class Release(WireModel):
    id: str = Field(alias="_id")
    title: str = ""
    artist_name: str = Field(default="", alias="artistName")
    release_type: str | None = Field(default=None, alias="releaseType")
    status: str | None = None
    cover_art: CoverArt = Field(default_factory=CoverArt, alias="coverArt")


class StreamingLink(WireModel):
    platform: str
    url: str = ""
    is_active: bool = Field(default=True, alias="isActive")


class Promotion(WireModel):
    id: str | None = Field(default=None, alias="_id")
    release_id: str | None = Field(default=None, alias="releaseId")
    release: Release | None = None
    slug: str
    streaming_links: list[StreamingLink] = Field(default_factory=list, alias="streamingLinks")
    customization: Customization = Field(default_factory=Customization)
    is_published: bool = Field(default=False, alias="isPublished")

    @model_validator(mode="before")
    @classmethod
    def _split_populated_release(cls, data: Any) -> Any:
        # The public endpoint populates releaseId with the whole release document.
        if isinstance(data, dict) and isinstance(data.get("releaseId"), dict):
            data = dict(data)
            release = data["releaseId"]
            data["release"] = release
            data["releaseId"] = release.get("_id")
        if isinstance(data, dict) and data.get("customization") is None:
            data = dict(data)
            data["customization"] = {}
        return data


class PromotionDraft(WireModel):
    """Body of POST /promotions (create-or-update)."""

    release_id: str = Field(alias="releaseId")
    slug: str
    streaming_links: list[StreamingLink] = Field(default_factory=list, alias="streamingLinks")
    customization: Customization
