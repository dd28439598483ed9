from kratolib_promo.catalog import TemplateCatalog
from kratolib_promo.models import Promotion
from kratolib_promo.sessions import EditorSession, EditorSessionStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def saved_promotion(template_id, overrides=None):
    return Promotion.model_validate(
        {
            "_id": "p1",
            "releaseId": "rel-1",
            "slug": "nova",
            "customization": {"templateId": template_id, "elementOverrides": overrides or {}},
        }
    )


def test_store_drops_idle_sessions(templates, release):
    clock = FakeClock()
    store = EditorSessionStore(ttl_seconds=600, clock=clock)
    store.put("alice", EditorSession.start(release, TemplateCatalog(templates), None))
    clock.now = 599
    assert store.get("alice", "rel-1") is not None

    clock.now = 1198
    assert store.get("alice", "rel-1") is not None

    clock.now = 1800
    assert store.get("alice", "rel-1") is None
    assert len(store) == 0


def test_store_sweep_only_removes_expired(templates, release):
    clock = FakeClock()
    store = EditorSessionStore(ttl_seconds=60, clock=clock)
    catalog = TemplateCatalog(templates)
    store.put("alice", EditorSession.start(release, catalog, None))
    clock.now = 50
    store.put("bob", EditorSession.start(release, catalog, None))
    clock.now = 70
    assert store.sweep() == 1
    assert store.get("alice", "rel-1") is None
    assert store.get("bob", "rel-1") is not None


def test_store_owner_key_hides_token():
    key = EditorSessionStore.owner_key("secret-token")
    assert "secret" not in key
    assert len(key) == 16
    assert EditorSessionStore.owner_key(None) == "anonymous"


def test_start_uses_saved_template(templates, release):
    session = EditorSession.start(release, TemplateCatalog(templates), saved_promotion("story_floating_card"))
    assert session.template.id == "story_floating_card"
    assert session.missing_template_id is None
    assert session.slug == "nova"


def test_start_keeps_saved_template_of_requested_format(templates, release):
    promo = saved_promotion("story_floating_card", {"header": {"x": 30}})
    session = EditorSession.start(release, TemplateCatalog(templates), promo, fmt="reel")
    assert session.template.id == "story_floating_card"
    assert session.overrides.element_overrides["header"].x == 30


def test_start_with_other_format_prunes_geometry(templates, release):
    promo = saved_promotion("story_floating_card", {"header": {"text": "Hi", "x": 30}})
    session = EditorSession.start(release, TemplateCatalog(templates), promo, fmt="post")
    assert session.template.id == "modern_square"
    assert session.overrides.element_overrides["header"].text == "Hi"
    assert session.overrides.element_overrides["header"].x is None


def test_start_flags_missing_template_with_or_without_format(templates, release):
    catalog = TemplateCatalog(templates)
    promo = saved_promotion("retired_template", {"header": {"x": 30}})
    for fmt, expected in ((None, "classic_story"), ("story", "classic_story"), ("post", "modern_square")):
        session = EditorSession.start(release, catalog, promo, fmt=fmt)
        assert session.missing_template_id == "retired_template"
        assert session.template.id == expected
        assert session.overrides.element_overrides["header"].x == 30


def test_start_without_templates(release):
    session = EditorSession.start(release, TemplateCatalog([]), saved_promotion("retired_template"))
    assert session.template is None
    assert session.missing_template_id is None
