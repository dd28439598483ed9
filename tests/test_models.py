from kratolib_promo.models import Customization, Promotion, PromoTemplate


def test_legacy_customization_is_upgraded():
    c = Customization.model_validate(
        {"text": "OUT NOW", "lastTemplateId": "modern_square", "selectedBadges": ["spotify", "tidal"]}
    )
    assert c.template_id == "modern_square"
    assert c.element_overrides["header"].text == "OUT NOW"
    assert c.element_overrides["logo"].selected_badges == ["spotify", "tidal"]


def test_legacy_fields_do_not_clobber_current_ones():
    c = Customization.model_validate(
        {
            "templateId": "classic_story",
            "lastTemplateId": "modern_square",
            "text": "OLD",
            "elementOverrides": {"header": {"text": "NEW"}},
        }
    )
    assert c.template_id == "classic_story"
    assert c.element_overrides["header"].text == "NEW"


def test_promotion_with_populated_release():
    promo = Promotion.model_validate(
        {
            "_id": "p1",
            "slug": "midnight-drive",
            "releaseId": {"_id": "rel-1", "title": "Midnight Drive", "artistName": "Nova Lane"},
            "customization": None,
            "streamingLinks": [{"platform": "Spotify", "url": "https://open.spotify.com/x"}],
        }
    )
    assert promo.release_id == "rel-1"
    assert promo.release.artist_name == "Nova Lane"
    assert promo.customization.template_id is None
    assert promo.streaming_links[0].is_active


def test_promotion_with_plain_release_id():
    promo = Promotion.model_validate({"slug": "x", "releaseId": "rel-9", "unknownField": 1})
    assert promo.release_id == "rel-9"
    assert promo.release is None


def test_template_wire_round_trip_keeps_camel_case(classic_story):
    wire = classic_story.to_wire()
    logo = next(e for e in wire["elements"] if e["id"] == "logo")
    assert [o["label"] for o in logo["sizeOptions"]] == ["small", "medium", "large"]
    assert PromoTemplate.model_validate(wire) == classic_story
    assert classic_story.logo_element().id == "logo"
    assert classic_story.element("nope") is None
