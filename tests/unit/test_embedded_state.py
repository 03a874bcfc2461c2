import json

from live_event_scrapers.extraction.embedded_state import (
    extract_cached_listings,
    extract_embedded_state,
    find_first_structural_match,
)
from live_event_scrapers.models import TIER_EMBEDDED_STATE

APOLLO_CACHE = {
    "Event:101": {
        "__typename": "Event",
        "id": "101",
        "title": "Warehouse Night",
        "date": "2025-11-27T00:00:00.000",
        "startTime": "2025-11-27T22:00:00.000",
        "endTime": "2025-11-28T04:00:00.000",
        "contentUrl": "/events/101",
        "venue": {"__ref": "Venue:9"},
        "artists": [{"__ref": "Artist:1"}, {"__ref": "Artist:2"}],
        "images": [{"__ref": "Image:5"}],
        "promoters": [{"__ref": "Promoter:3"}],
        "content": "DJ One b2b DJ Two all night",
        "cost": "$20",
        "genres": [{"__ref": "Genre:7"}],
    },
    "Event:102": {
        "__typename": "Event",
        "id": "102",
        "title": "Second Night",
        "date": "2025-11-28T00:00:00.000",
        "contentUrl": "/events/102",
        "venue": {"__ref": "Venue:404"},
    },
    "Venue:9": {"name": "Warehouse"},
    "Artist:1": {"name": "DJ One"},
    "Artist:2": {"name": "DJ Two"},
    "Image:5": {"filename": "https://img.example/flyer.jpg"},
    "Promoter:3": {"name": "Good Promoter"},
    "Genre:7": {"name": "Techno"},
}


def next_data_page(payload) -> str:
    return (
        '<html><head><script id="__NEXT_DATA__" type="application/json">'
        f"{json.dumps(payload)}</script></head><body></body></html>"
    )


def test_primary_event_from_cache(make_snapshot):
    page = next_data_page({"props": {"apolloState": APOLLO_CACHE}})
    partial = extract_embedded_state(make_snapshot(page, url="https://ra.co/events/101"))

    assert partial.tier == TIER_EMBEDDED_STATE
    values = partial.values
    assert values["title"] == "Warehouse Night"
    assert values["date"] == "2025-11-27"
    assert values["venue_name"] == "Warehouse"
    assert values["artists"] == ["DJ One", "DJ Two"]
    assert values["image_url"] == "https://img.example/flyer.jpg"
    assert values["promoters"] == ["Good Promoter"]
    assert values["organizer"] == "Good Promoter"
    assert values["lineup"] == "DJ One b2b DJ Two all night"
    assert values["cost"] == "$20"
    assert values["genres"] == ["Techno"]


def test_identity_hint_selects_event_and_unknown_venue_is_absent(make_snapshot):
    page = next_data_page({"props": {"pageProps": {"apolloState": APOLLO_CACHE}}})
    values = extract_embedded_state(make_snapshot(page), identity_hint="ra:102").values

    assert values["title"] == "Second Night"
    assert "venue_name" not in values


def test_entity_shaped_fallback(make_snapshot):
    payload = {"props": {"pageProps": {"event": {
        "name": "Loft Party",
        "venue": {"name": "The Loft"},
        "description": "A long night of records.",
        "lineup": [{"name": "Selector A"}, {"name": "Selector B"}],
        "ageRestriction": "21+",
        "genres": ["House", "Disco"],
    }}}}
    values = extract_embedded_state(make_snapshot(next_data_page(payload))).values

    assert values["description"] == "A long night of records."
    assert values["artists"] == ["Selector A", "Selector B"]
    assert values["age_restriction"] == "21+"
    assert values["genres"] == ["House", "Disco"]


def test_cached_event_is_not_mixed_with_other_entities(make_snapshot):
    payload = {"props": {
        "apolloState": APOLLO_CACHE,
        "pageProps": {"related": [{
            "name": "Someone Else's Night",
            "venue": {"name": "Elsewhere"},
            "description": "Not the event on this page.",
            "ageRestriction": "18+",
        }]},
    }}
    values = extract_embedded_state(make_snapshot(next_data_page(payload), url="https://ra.co/events/101")).values

    assert values["title"] == "Warehouse Night"
    assert "description" not in values
    assert "age_restriction" not in values


def test_structural_search_is_depth_bounded():
    tree = {"a": {"a": {"a": {"a": {"a": {"a": {"name": "Deep", "venue": "V"}}}}}}}
    assert find_first_structural_match(tree, max_depth=5) is None
    assert find_first_structural_match(tree, max_depth=6)["name"] == "Deep"


def test_missing_or_broken_payload(make_snapshot):
    assert extract_embedded_state(make_snapshot("<html><body>nothing</body></html>")) is None
    broken = '<script id="__NEXT_DATA__" type="application/json">{oops</script>'
    assert extract_embedded_state(make_snapshot(broken)) is None


def test_cached_listings(make_snapshot):
    page = next_data_page({"props": {"apolloState": APOLLO_CACHE}})
    records = extract_cached_listings(make_snapshot(page, url="https://ra.co/events/us/newyorkcity"), "ra", "https://ra.co")

    assert [r.identity for r in records] == ["ra:101", "ra:102"]
    first = records[0]
    assert first.detail_url == "https://ra.co/events/101"
    assert first.venue == "Warehouse"
    assert first.date == "2025-11-27"
    assert first.price == "$20"
    assert first.source_tier == TIER_EMBEDDED_STATE
    assert records[1].venue is None
