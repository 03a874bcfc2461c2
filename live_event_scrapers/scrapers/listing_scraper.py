import logging
from pathlib import Path
from typing import List, Optional

from live_event_scrapers.config import FileOutputSettings, ListingRunSettings, settings
from live_event_scrapers.dedup import deduplicate_listings
from live_event_scrapers.exceptions import PageLoadError
from live_event_scrapers.extraction.dom_heuristics import extract_listing_cards
from live_event_scrapers.extraction.embedded_state import extract_cached_listings
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.load_more import LoadMoreController, LoadState
from live_event_scrapers.models import ListingRecord
from live_event_scrapers.sites import SiteProfile
from live_event_scrapers.utils import listings_path, save_listings_json, save_to_csv_file

logger = logging.getLogger(__name__)


class ListingScraper:
    """Collects the listing records of one site's browse page through an open BrowserSession."""

    def __init__(
        self,
        session,
        profile: SiteProfile,
        run_settings: Optional[ListingRunSettings] = None,
        output_settings: Optional[FileOutputSettings] = None,
    ):
        self.session = session
        self.profile = profile
        self.run_settings = run_settings or settings.listing
        self.output_settings = output_settings or settings.file_outputs
        self.load_state: Optional[LoadState] = None

    def load_all(self) -> None:
        if not self.profile.use_load_more:
            return
        controller = LoadMoreController(
            self.session.load_more_driver(),
            target_date=self.run_settings.target_date,
            max_clicks=self.run_settings.max_load_more_clicks,
            settle_sec=self.run_settings.load_more_settle_sec,
            heading_selector=self.run_settings.date_heading_selector,
        )
        self.load_state = controller.run()

    def extract(self, snapshot: PageSnapshot) -> List[ListingRecord]:
        """Embedded-state records first (more trusted), then card records; merged by detail URL."""
        records: List[ListingRecord] = []
        if self.profile.use_embedded_state:
            records.extend(extract_cached_listings(snapshot, self.profile.name, self.profile.base_url))
        records.extend(extract_listing_cards(
            snapshot,
            self.profile.name,
            self.profile.card_selectors,
            self.profile.card_context(),
            self.profile.excluded_link_parts,
        ))
        return deduplicate_listings(records)

    def crawl(self) -> List[ListingRecord]:
        url = self.profile.listing_url(self.run_settings)
        try:
            self.session.open(url)
            self.load_all()
            snapshot = self.session.snapshot()
        except PageLoadError as e:
            logger.error(f"Listing page for '{self.profile.name}' could not be loaded: {e.reason}")
            return []
        records = self.extract(snapshot)
        logger.info(f"Collected {len(records)} unique listing records from {url}")
        return records

    def save(self, records: List[ListingRecord], base_dir: Optional[Path] = None) -> Optional[Path]:
        if not records:
            logger.warning(f"No listing records for '{self.profile.name}'; existing output left untouched.")
            return None
        base = base_dir or self.output_settings.base_output_directory
        path = save_listings_json(records, listings_path(self.profile.name, base))
        if self.output_settings.enable_csv_output:
            save_to_csv_file(
                [record.model_dump(mode="json") for record in records],
                path.with_suffix(".csv"),
            )
        return path

    def run(self, base_dir: Optional[Path] = None) -> List[ListingRecord]:
        records = self.crawl()
        self.save(records, base_dir)
        return records
