import pytest

from live_event_scrapers.extraction.snapshot import PageSnapshot


@pytest.fixture
def make_snapshot():
    def _make(html, url="https://example.test/events/1"):
        return PageSnapshot(url=url, html=html)
    return _make
