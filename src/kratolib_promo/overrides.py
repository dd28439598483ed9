from __future__ import annotations

from typing import Any

from kratolib_promo.catalog import find_badge
from kratolib_promo.models import BackgroundOverride, Customization, ElementOverride

LOGO_KEY = "logo"
MAX_BADGES = 4
DEFAULT_BADGES = ("spotify", "apple-music", "youtube-music")

# Content survives a template switch; geometry belongs to the old template.
CONTENT_FIELDS = ("text", "selected_badges")


class OverrideError(ValueError):
    pass


class BadgeLimitError(OverrideError):
    pass


class BadgeNotAllowedError(OverrideError):
    pass


class OverrideState:
    """
    Working edit state for one creative: sparse per-element overrides plus the
    background override. Nothing here talks to the backend.
    """

    def __init__(
        self,
        element_overrides: dict[str, ElementOverride] | None = None,
        background_override: BackgroundOverride | None = None,
    ) -> None:
        self.element_overrides: dict[str, ElementOverride] = dict(element_overrides or {})
        self.background_override = background_override or BackgroundOverride()

    @classmethod
    def from_customization(cls, customization: Customization | None) -> OverrideState:
        if customization is None:
            return cls()
        return cls(
            element_overrides={k: v.model_copy(deep=True) for k, v in customization.element_overrides.items()},
            background_override=(
                customization.background_override.model_copy(deep=True)
                if customization.background_override
                else None
            ),
        )

    def to_customization(self, template_id: str | None) -> Customization:
        return Customization(
            template_id=template_id,
            element_overrides={k: v.model_copy(deep=True) for k, v in self.element_overrides.items() if not v.is_empty()},
            background_override=self.background_override.model_copy(deep=True),
        )

    def override_for(self, element_id: str) -> ElementOverride:
        return self.element_overrides.get(element_id) or ElementOverride()

    def set_element_override(self, element_id: str, **fields: Any) -> ElementOverride:
        """Merge fields into the element's override; fields passed as None are left untouched."""
        updates = {k: v for k, v in fields.items() if v is not None}
        unknown = set(updates) - set(ElementOverride.model_fields)
        if unknown:
            raise OverrideError(f"unknown override fields: {', '.join(sorted(unknown))}")
        current = self.element_overrides.get(element_id) or ElementOverride()
        merged = current.model_copy(update=updates)
        self.element_overrides[element_id] = merged
        return merged

    def clear_element_fields(self, element_id: str, *fields: str) -> None:
        """Drop fields back to the template default; an override left empty is removed."""
        current = self.element_overrides.get(element_id)
        if current is None:
            return
        unknown = set(fields) - set(ElementOverride.model_fields)
        if unknown:
            raise OverrideError(f"unknown override fields: {', '.join(sorted(unknown))}")
        cleared = current.model_copy(update={f: None for f in fields})
        if cleared.is_empty():
            del self.element_overrides[element_id]
        else:
            self.element_overrides[element_id] = cleared

    def reset_layout(self) -> None:
        self.element_overrides.clear()

    def switch_template(self) -> None:
        pruned: dict[str, ElementOverride] = {}
        for element_id, override in self.element_overrides.items():
            kept = ElementOverride(**{f: getattr(override, f) for f in CONTENT_FIELDS})
            if not kept.is_empty():
                pruned[element_id] = kept
        self.element_overrides = pruned

    def selected_badges(self) -> list[str]:
        override = self.element_overrides.get(LOGO_KEY)
        if override is None or override.selected_badges is None:
            return list(DEFAULT_BADGES)
        return list(override.selected_badges)

    def toggle_badge(self, badge_id: str, allowed: list[str] | None = None) -> list[str]:
        current = self.selected_badges()
        if badge_id in current:
            selection = [b for b in current if b != badge_id]
        else:
            if find_badge(badge_id) is None:
                raise BadgeNotAllowedError(f"Unknown badge '{badge_id}'")
            if allowed is not None and badge_id not in allowed:
                raise BadgeNotAllowedError(f"Badge '{badge_id}' is not available on this template")
            if len(current) >= MAX_BADGES:
                raise BadgeLimitError(f"Maximum {MAX_BADGES} badges allowed")
            selection = current + [badge_id]
        self.set_element_override(LOGO_KEY, selected_badges=selection)
        return selection

    def set_background(self, **fields: Any) -> BackgroundOverride:
        updates = {k: v for k, v in fields.items() if v is not None}
        position = updates.pop("position", None)
        bg = self.background_override.model_copy(update=updates)
        if position is not None:
            bg = bg.model_copy(update={"position": bg.position.model_copy(update=position)})
        self.background_override = bg
        return bg

    def clear_background_image(self) -> None:
        self.background_override = self.background_override.model_copy(update={"image_url": None})
