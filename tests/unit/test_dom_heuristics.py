import pytest

from live_event_scrapers.extraction.dom_heuristics import (
    AGE_PATTERNS,
    CardContext,
    _age_from_match,
    extract_dom_heuristics,
    extract_listing_cards,
    is_plausible_title,
    regex_probe,
)
from live_event_scrapers.models import TIER_DOM_HEURISTIC

DETAIL_PAGE = """<html><body>
<h1>Warehouse Sessions</h1>
<div class="event-description">Join us for an all-night journey through deep techno and house with our resident selectors.</div>
<div class="venue-name">Nowadays</div>
<p>Doors open 10:00 PM. This is a 21+ event.</p>
<a href="/genre/techno">Techno</a>
<a href="/genre/house">House</a>
<a href="https://instagram.com/old">IG</a>
<a href="https://www.instagram.com/nowadays">IG again</a>
<a href="https://facebook.com/nowadays">FB</a>
<div class="ticket-row">General Admission $25.00</div>
<script>var hidden = "Concert";</script>
</body></html>"""

LISTING_PAGE = """<html><body>
<div class="grid">
  <a href="/en/events/warehouse-sessions">
    <img src="/img/flyer.jpg">
    <div><span>Sat, Dec 6</span><span>10:00 PM</span></div>
    <div>Warehouse Sessions w/ DJ One</div>
    <div>Nowadays Brooklyn</div>
    <div><span>Techno</span><span>From $25</span></div>
  </a>
  <a href="/en/events/disco-night">
    <img srcset="/img/disco.jpg 1x, /img/disco@2x.jpg 2x">
    <h3>Disco Night Fever</h3>
    <p class="venue">Good Room</p>
    <time datetime="2025-12-07">Sun 7 Dec</time>
    <span class="price">$15</span>
  </a>
  <a href="/en/events/no-title"><span>8:00 PM</span></a>
  <a href="/en/events/search?q=techno">Search all events</a>
</div>
</body></html>"""


@pytest.mark.parametrize("text", [
    "8:00 PM",
    "Sat, Dec 6",
    "Dec 6 - late",
    "$25",
    "From $12",
    "Sold out",
    "Free",
    "Techno",
    "Short",
    "",
    None,
])
def test_title_filter_rejects(text):
    assert not is_plausible_title(text)


@pytest.mark.parametrize("text", [
    "Warehouse Sessions w/ DJ One",
    "Sunday Service",
    "May Day Rave",
    "Marathon Night",
])
def test_title_filter_accepts(text):
    assert is_plausible_title(text)


def test_detail_page_probes(make_snapshot):
    partial = extract_dom_heuristics(make_snapshot(DETAIL_PAGE, url="https://shotgun.live/en/events/warehouse-sessions"))

    assert partial.tier == TIER_DOM_HEURISTIC
    values = partial.values
    assert values["title"] == "Warehouse Sessions"
    assert values["description"].startswith("Join us for an all-night journey")
    assert values["venue_name"] == "Nowadays"
    assert values["age_restriction"] == "21+"
    assert values["door_time"] == "10:00 PM"
    assert values["genres"] == ["Techno", "House"]
    assert values["social_links"] == {
        "instagram": "https://www.instagram.com/nowadays",
        "facebook": "https://facebook.com/nowadays",
    }
    assert values["ticket_offers"] == [{"name": "General Admission $25.00", "price": "$25.00"}]
    assert "event_type" not in values


def test_short_description_is_ignored(make_snapshot):
    page = '<html><body><div class="description">Too short.</div></body></html>'
    partial = extract_dom_heuristics(make_snapshot(page))
    assert partial is None or "description" not in partial.values


@pytest.mark.parametrize("text, expected", [
    ("This is a 18+ event", "18+"),
    ("Entry 18+ only", "18+"),
    ("Age restriction: 21+", "21+"),
    ("Guests 18 and over welcome", "18+"),
    ("All ages show", "All ages"),
])
def test_age_restriction_phrasings(make_snapshot, text, expected):
    probe = regex_probe(AGE_PATTERNS, transform=_age_from_match)
    assert probe(make_snapshot(f"<html><body><p>{text}</p></body></html>")) == expected


def test_listing_cards(make_snapshot):
    ctx = CardContext(
        base_url="https://shotgun.live",
        known_venues=["Nowadays", "Good Room"],
        localities=["Brooklyn", "Manhattan"],
    )
    snapshot = make_snapshot(LISTING_PAGE, url="https://shotgun.live/en/cities/new-york")
    records = extract_listing_cards(snapshot, "shotgun", ['a[href*="/events/"]'], ctx, ["/search"])

    assert len(records) == 2
    first, second = records
    assert first.identity == "https://shotgun.live/en/events/warehouse-sessions"
    assert first.title == "Warehouse Sessions w/ DJ One"
    assert first.venue == "Nowadays"
    assert first.date == "Sat, Dec 6"
    assert first.time == "10:00 PM"
    assert first.price == "From $25"
    assert first.genres == ["Techno"]
    assert first.image_url == "https://shotgun.live/img/flyer.jpg"

    assert second.title == "Disco Night Fever"
    assert second.venue == "Good Room"
    assert second.date == "2025-12-07"
    assert second.price == "$15"
    assert second.genres == ["Disco"]
    assert second.image_url == "https://shotgun.live/img/disco.jpg"
    assert second.time is None


def test_capitalised_phrase_venue_fallback(make_snapshot):
    ctx = CardContext(base_url="https://shotgun.live", localities=["Brooklyn"])
    page = '<a href="/en/events/x"><div>Late Night Records Party</div><p>Market Hotel Brooklyn 11:00 PM</p></a>'
    records = extract_listing_cards(make_snapshot(page), "shotgun", ["a"], ctx)

    assert records[0].venue is not None
    assert "Market Hotel" in records[0].venue


def test_metadata_only_cards_are_skipped(make_snapshot):
    ctx = CardContext(base_url="https://shotgun.live")
    page = """<html><body>
    <a href="/en/events/x"><span>Sat, Dec 6</span><span>8:00 PM</span></a>
    <a href="/en/events/y"><span>Sold out</span><span>From $12</span></a>
    <a href="/en/events/z">Rooftop Sunset Session<span>Sat, Dec 6</span></a>
    </body></html>"""
    records = extract_listing_cards(make_snapshot(page), "shotgun", ['a[href*="/events/"]'], ctx)

    assert [record.title for record in records] == ["Rooftop Sunset Session"]
    assert records[0].date == "Sat, Dec 6"
