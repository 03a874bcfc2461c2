from live_event_scrapers.extraction.references import (
    UNKNOWN,
    entries_with_prefix,
    reference_key,
    resolve_entity,
    resolve_reference,
    resolve_value,
)

CACHE = {
    "Event:1": {
        "title": "Night",
        "venue": {"__ref": "Venue:9"},
        "artists": [{"__ref": "Artist:1"}, {"ref": "Artist:2"}],
        "images": [{"__ref": "Image:5"}],
        "area": {"__ref": "Area:404"},
    },
    "Venue:9": {"name": "Warehouse", "capacity": 800},
    "Artist:1": {"name": "DJ One"},
    "Artist:2": {"name": "DJ Two"},
    "Image:5": {"filename": "https://img.example/flyer.jpg"},
    "Promoter:3": {"id": "3"},
}


def test_resolves_one_level_reference():
    assert resolve_entity(CACHE, "Event:1")["venue"] == "Warehouse"


def test_resolves_references_inside_lists():
    entity = resolve_entity(CACHE, "Event:1")
    assert entity["artists"] == ["DJ One", "DJ Two"]
    assert entity["images"] == ["https://img.example/flyer.jpg"]


def test_missing_target_resolves_to_unknown():
    assert resolve_entity(CACHE, "Event:1")["area"] is UNKNOWN
    assert resolve_reference(CACHE, "Venue:77") is UNKNOWN


def test_missing_relevant_field_resolves_to_unknown():
    assert resolve_reference(CACHE, "Promoter:3") is UNKNOWN


def test_resolution_does_not_touch_the_cache():
    resolve_entity(CACHE, "Event:1")
    assert CACHE["Event:1"]["venue"] == {"__ref": "Venue:9"}


def test_depth_bound_leaves_deeper_references_unresolved():
    value = {"outer": {"inner": {"__ref": "Venue:9"}}}
    assert resolve_value(CACHE, value, max_depth=1) == value
    assert resolve_value(CACHE, value, max_depth=2) == {"outer": {"inner": "Warehouse"}}


def test_only_single_key_dicts_are_placeholders():
    assert reference_key({"__ref": "Venue:9"}) == "Venue:9"
    assert reference_key({"__ref": "Venue:9", "name": "x"}) is None
    assert reference_key("Venue:9") is None


def test_absent_entity_is_empty():
    assert resolve_entity(CACHE, "Event:2") == {}


def test_entries_with_prefix():
    assert list(entries_with_prefix(CACHE, "Artist")) == ["Artist:1", "Artist:2"]
