import json
from unittest.mock import MagicMock

import pytest

from live_event_scrapers.config import DetailRunSettings, FileOutputSettings
from live_event_scrapers.exceptions import PageLoadError
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.models import ListingRecord
from live_event_scrapers.scrapers.detail_scraper import DetailScraper

GOOD_URL = "https://shotgun.live/en/events/warehouse-sessions"
SLOW_URL = "https://shotgun.live/en/events/slow-night"

GOOD_PAGE = """<html><head>
<script type="application/ld+json">
{"@type": "MusicEvent", "name": "Warehouse Sessions", "location": {"name": "Nowadays"},
 "description": "Techno until sunrise."}
</script></head><body><a href="/genre/techno">Techno</a></body></html>"""


def fetch(url):
    if url == SLOW_URL:
        raise PageLoadError(url, "timed out after 60000 ms", timed_out=True)
    return PageSnapshot(url=url, html=GOOD_PAGE)


@pytest.fixture
def session():
    mock_session = MagicMock()
    mock_session.fetch_snapshot.side_effect = fetch
    return mock_session


@pytest.fixture
def listings():
    return [
        ListingRecord(identity=GOOD_URL, title="Warehouse Sessions w/ DJ One", venue="Nowadays Brooklyn", detail_url=GOOD_URL),
        ListingRecord(identity=SLOW_URL, title="Slow Night", detail_url=SLOW_URL),
        ListingRecord(identity="shotgun:card-7", title="Mystery Party"),
    ]


def make_scraper(session, tmp_path, sleep, **detail_kwargs):
    return DetailScraper(
        session,
        "shotgun",
        detail_settings=DetailRunSettings(cooldown_sec=1.5, **detail_kwargs),
        output_settings=FileOutputSettings(enable_page_snapshots=True),
        base_dir=tmp_path,
        sleep=sleep,
    )


def read_jsonl(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_run_emits_one_line_per_entity(session, listings, tmp_path):
    sleep = MagicMock()
    results = make_scraper(session, tmp_path, sleep).run(listings)

    lines = read_jsonl(tmp_path / "shotgun" / "shotgun_enriched.jsonl")
    assert [line["identity"] for line in lines] == [GOOD_URL, SLOW_URL, "shotgun:card-7"]
    assert len(results) == 3

    enriched = lines[0]
    assert enriched["venue"] == "Nowadays"
    assert enriched["field_sources"]["venue"] == "linked_data"
    assert enriched["detail"]["description"] == "Techno until sunrise."
    assert enriched["enrichment_error"] is None


def test_page_load_failure_yields_listing_only_record(session, listings, tmp_path):
    results = make_scraper(session, tmp_path, MagicMock()).run(listings)

    failed = results[1]
    assert failed.detail is None
    assert "timed out" in failed.enrichment_error
    assert failed.title == "Slow Night"
    assert results[2].enrichment_error == "no detail URL"


def test_fetches_are_sequential_with_cooldown(session, listings, tmp_path):
    sleep = MagicMock()
    make_scraper(session, tmp_path, sleep).run(listings)

    assert [c.args[0] for c in session.fetch_snapshot.call_args_list] == [GOOD_URL, SLOW_URL]
    assert sleep.call_count == 2
    sleep.assert_called_with(1.5)


def test_snapshot_written_for_loaded_pages(session, listings, tmp_path):
    results = make_scraper(session, tmp_path, MagicMock()).run(listings)

    snapshot_files = list((tmp_path / "shotgun" / "snapshots").glob("*.html"))
    assert len(snapshot_files) == 1
    assert results[0].snapshot_path == str(snapshot_files[0])
    assert "Warehouse Sessions" in snapshot_files[0].read_text(encoding="utf-8")


def test_max_entities_limits_the_worklist(session, listings, tmp_path):
    results = make_scraper(session, tmp_path, MagicMock(), max_entities=1).run(listings)
    assert len(results) == 1
    assert session.fetch_snapshot.call_count == 1
