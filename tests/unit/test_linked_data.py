import pytest

from live_event_scrapers.extraction.linked_data import extract_linked_data, iter_event_nodes
from live_event_scrapers.models import TIER_LINKED_DATA

EVENT_PAGE = """<html><head>
<script type="application/ld+json">
{"@context": "https://schema.org", "@type": "MusicEvent",
 "name": "Warehouse Sessions", "description": "All night long.",
 "startDate": "2025-12-06T22:00:00", "endDate": "2025-12-07T05:00:00",
 "image": ["https://img.example/a.jpg", "https://img.example/b.jpg"],
 "location": {"@type": "Place", "name": "Nowadays",
   "address": {"@type": "PostalAddress", "streetAddress": "56-06 Cooper Ave",
     "addressLocality": "Ridgewood", "addressRegion": "NY", "postalCode": "11385", "addressCountry": "US"},
   "geo": {"latitude": "40.70", "longitude": -73.91}},
 "organizer": {"name": "Nowadays Presents"},
 "performer": [{"name": "DJ One"}, {"name": "DJ Two"}],
 "offers": [{"name": "GA", "price": "25.00", "priceCurrency": "USD",
   "availability": "https://schema.org/InStock", "url": "https://tickets.example/ga"}]}
</script>
</head><body><h1>Other Title</h1></body></html>"""

GRAPH_PAGE = """<html><head>
<script type="application/ld+json">{not json at all</script>
<script type="application/ld+json">
{"@graph": [{"@type": "Organization", "name": "Promoter Co"},
            {"@type": ["Event", "Thing"], "name": "Graph Event", "location": "Good Room"}]}
</script>
</head><body></body></html>"""


def test_maps_event_block(make_snapshot):
    partial = extract_linked_data(make_snapshot(EVENT_PAGE))

    assert partial.tier == TIER_LINKED_DATA
    values = partial.values
    assert values["title"] == "Warehouse Sessions"
    assert values["description"] == "All night long."
    assert values["start_time"] == "2025-12-06T22:00:00"
    assert values["end_time"] == "2025-12-07T05:00:00"
    assert values["image_url"] == "https://img.example/a.jpg"
    assert values["venue_name"] == "Nowadays"
    assert values["venue_address"] == "56-06 Cooper Ave, Ridgewood, NY, 11385, US"
    assert values["geo"] == {"latitude": 40.70, "longitude": -73.91}
    assert values["organizer"] == "Nowadays Presents"
    assert values["artists"] == ["DJ One", "DJ Two"]
    assert values["ticket_offers"][0]["price"] == "25.00"
    assert values["ticket_offers"][0]["currency"] == "USD"


def test_graph_container_and_malformed_block(make_snapshot):
    partial = extract_linked_data(make_snapshot(GRAPH_PAGE))

    assert partial.values["title"] == "Graph Event"
    assert partial.values["venue_name"] == "Good Room"


def test_page_without_events_yields_nothing(make_snapshot):
    page = '<script type="application/ld+json">{"@type": "Organization", "name": "X"}</script>'
    assert extract_linked_data(make_snapshot(page)) is None


def test_earlier_block_wins_over_later_block(make_snapshot):
    page = (
        '<script type="application/ld+json">{"@type": "Event", "name": "First"}</script>'
        '<script type="application/ld+json">{"@type": "Event", "name": "Second", "description": "Filled"}</script>'
    )
    values = extract_linked_data(make_snapshot(page)).values
    assert values["title"] == "First"
    assert values["description"] == "Filled"


@pytest.mark.parametrize("payload, expected", [
    ({"@type": "Event", "name": "a"}, 1),
    ([{"@type": "Event"}, {"@type": "MusicEvent"}, {"@type": "Place"}], 2),
    ({"@graph": [{"@type": "MusicEvent"}]}, 1),
    ("just a string", 0),
])
def test_iter_event_nodes_shapes(payload, expected):
    assert len(list(iter_event_nodes(payload))) == expected
