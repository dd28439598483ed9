import pytest

from kratolib_promo.models import BackgroundOverride, Customization, ElementOverride
from kratolib_promo.overrides import (
    DEFAULT_BADGES,
    BadgeLimitError,
    BadgeNotAllowedError,
    OverrideError,
    OverrideState,
)


def test_set_element_override_merges_instead_of_replacing():
    state = OverrideState()
    state.set_element_override("header", text="OUT NOW")
    state.set_element_override("header", x=50)
    state.set_element_override("header", y=None, scale=1.2)
    assert state.element_overrides["header"] == ElementOverride(text="OUT NOW", x=50, scale=1.2)


def test_set_element_override_rejects_unknown_fields():
    with pytest.raises(OverrideError):
        OverrideState().set_element_override("header", colour="#fff")


def test_switch_template_keeps_content_and_drops_geometry():
    state = OverrideState({"header": ElementOverride(text="OUT NOW", x=50)})
    state.switch_template()
    assert state.to_customization("t2").to_wire()["elementOverrides"] == {"header": {"text": "OUT NOW"}}


def test_switch_template_keeps_badge_selection_and_drops_empty_entries():
    state = OverrideState(
        {
            "logo": ElementOverride(selected_badges=["tidal"], scale=2),
            "cover": ElementOverride(size_width=300, size_height=300),
        }
    )
    state.switch_template()
    assert set(state.element_overrides) == {"logo"}
    assert state.selected_badges() == ["tidal"]
    assert state.element_overrides["logo"].scale is None


def test_reset_layout_clears_element_overrides_but_not_background():
    state = OverrideState({"header": ElementOverride(text="Hi")}, BackgroundOverride(blur=4))
    state.reset_layout()
    assert state.element_overrides == {}
    assert state.background_override.blur == 4


def test_selected_badges_default():
    assert OverrideState().selected_badges() == list(DEFAULT_BADGES)


def test_toggle_badge_adds_and_removes():
    state = OverrideState()
    assert state.toggle_badge("apple-music") == ["spotify", "youtube-music"]
    assert state.toggle_badge("tidal") == ["spotify", "youtube-music", "tidal"]
    assert state.element_overrides["logo"].selected_badges == ["spotify", "youtube-music", "tidal"]


def test_toggle_badge_caps_selection_at_four():
    state = OverrideState()
    state.toggle_badge("deezer")
    with pytest.raises(BadgeLimitError, match="Maximum 4 badges allowed"):
        state.toggle_badge("tidal")
    assert state.selected_badges() == ["spotify", "apple-music", "youtube-music", "deezer"]


def test_toggle_badge_removal_allowed_at_cap():
    state = OverrideState({"logo": ElementOverride(selected_badges=["spotify", "deezer", "tidal", "wynk"])})
    assert state.toggle_badge("deezer") == ["spotify", "tidal", "wynk"]


def test_toggle_badge_respects_allowed_list_and_catalog():
    state = OverrideState()
    with pytest.raises(BadgeNotAllowedError):
        state.toggle_badge("tidal", allowed=["spotify", "deezer"])
    with pytest.raises(BadgeNotAllowedError):
        state.toggle_badge("napster")
    assert state.toggle_badge("deezer", allowed=["spotify", "deezer"])[-1] == "deezer"


def test_set_background_merges_position():
    state = OverrideState()
    state.set_background(position={"x": 10})
    state.set_background(blur=3, scale=None)
    bg = state.background_override
    assert (bg.position.x, bg.position.y) == (10, 50)
    assert bg.blur == 3
    assert bg.scale == 1.1


def test_clear_background_image_keeps_other_settings():
    state = OverrideState(background_override=BackgroundOverride(image_url="uploads/x.png", blur=2))
    state.clear_background_image()
    assert state.background_override.image_url is None
    assert state.background_override.blur == 2


def test_customization_round_trip_is_a_copy():
    saved = Customization.model_validate(
        {"templateId": "classic_story", "elementOverrides": {"header": {"text": "Hi", "x": 4}}}
    )
    state = OverrideState.from_customization(saved)
    state.set_element_override("header", x=99)
    assert saved.element_overrides["header"].x == 4

    out = state.to_customization("modern_square").to_wire()
    assert out["templateId"] == "modern_square"
    assert out["elementOverrides"] == {"header": {"text": "Hi", "x": 99}}
    assert out["backgroundOverride"] == {"position": {"x": 50, "y": 50}, "scale": 1.1, "blur": 0}


def test_clear_element_fields_keeps_the_rest():
    state = OverrideState({"header": ElementOverride(text="Hi", scale=1.5)})
    state.clear_element_fields("header", "text")
    assert state.element_overrides["header"] == ElementOverride(scale=1.5)

    state.clear_element_fields("header", "scale")
    assert "header" not in state.element_overrides
    state.clear_element_fields("missing", "text")
