import pytest

from kratolib_promo.links import (
    DuplicateLinkError,
    UnknownPlatformError,
    active_links,
    add_link,
    badge_for_platform,
    monogram,
    remove_link,
    sanitize_slug,
    update_link,
)
from kratolib_promo.models import StreamingLink


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("My Song!! Title", "my-song-title"),
        ("  --Hello   World--  ", "hello-world"),
        ("Café del Mar", "caf-del-mar"),
        ("!!!", ""),
    ],
)
def test_sanitize_slug(raw, expected):
    assert sanitize_slug(raw) == expected


def test_add_link_appends_active_empty_link():
    links = add_link([], "spotify")
    assert links == [StreamingLink(platform="Spotify", url="", is_active=True)]


def test_add_link_rejects_duplicate_platform():
    links = add_link([], "apple-music")
    with pytest.raises(DuplicateLinkError, match="Platform already added"):
        add_link(links, "apple-music")


def test_add_link_rejects_unknown_platform():
    with pytest.raises(UnknownPlatformError):
        add_link([], "myspace")


def test_update_and_remove_link():
    links = add_link(add_link([], "spotify"), "instagram")
    links = update_link(links, 1, url="  https://instagram.com/nova  ", is_active=False)
    assert links[1].url == "https://instagram.com/nova"
    assert not links[1].is_active
    assert [link.platform for link in active_links(links)] == ["Spotify"]

    links = remove_link(links, 0)
    assert [link.platform for link in links] == ["Instagram"]


def test_update_link_out_of_range():
    with pytest.raises(IndexError):
        update_link([], 0, url="x")


def test_badge_for_platform_matches_name_or_id():
    assert badge_for_platform("Spotify").id == "spotify"
    assert badge_for_platform("apple music").id == "apple-music"
    assert badge_for_platform("YouTube-Music").id == "youtube-music"
    assert badge_for_platform("Instagram") is None
    assert badge_for_platform("") is None


def test_monogram_uses_first_two_letters():
    assert monogram("Instagram") == "IN"
    assert monogram(" x") == "X"
