import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

from live_event_scrapers.config import DetailRunSettings, FileOutputSettings, settings
from live_event_scrapers.exceptions import PageLoadError
from live_event_scrapers.extraction.pipeline import extract_detail
from live_event_scrapers.extraction.reconciler import enrich_listing
from live_event_scrapers.models import EnrichedRecord, ListingRecord
from live_event_scrapers.utils import append_jsonl, enriched_path, save_snapshot_html, snapshots_dir

logger = logging.getLogger(__name__)


class DetailScraper:
    """
    Visits the detail page of every listing record, strictly one after the
    other, and appends one enriched record per entity to the site's JSONL
    output as soon as it is produced. A page that fails to load yields a
    listing-only record carrying the error; the run goes on.
    """

    def __init__(
        self,
        session,
        site: str,
        detail_settings: Optional[DetailRunSettings] = None,
        output_settings: Optional[FileOutputSettings] = None,
        base_dir: Optional[Path] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.site = site
        self.detail_settings = detail_settings or settings.detail
        self.output_settings = output_settings or settings.file_outputs
        self.base_dir = base_dir or self.output_settings.base_output_directory
        self.sleep = sleep

        self.output_path = enriched_path(site, self.base_dir)
        self.snapshot_dir = snapshots_dir(site, self.base_dir)

    def enrich_one(self, listing: ListingRecord) -> EnrichedRecord:
        if not listing.detail_url:
            logger.info(f"[{listing.identity}] no detail URL; emitting listing-only record.")
            return enrich_listing(listing, None, enrichment_error="no detail URL")

        try:
            snapshot = self.session.fetch_snapshot(listing.detail_url)
        except PageLoadError as e:
            logger.error(f"[{listing.identity}] detail page load failed: {e.reason}")
            return enrich_listing(listing, None, enrichment_error=str(e))

        snapshot_path = None
        if self.output_settings.enable_page_snapshots:
            try:
                snapshot_path = str(save_snapshot_html(snapshot, listing.identity, self.snapshot_dir))
            except OSError as e:
                logger.error(f"[{listing.identity}] could not save page snapshot: {e}")

        try:
            detail = extract_detail(snapshot, identity_hint=listing.identity)
        except Exception as e:
            logger.error(f"[{listing.identity}] extraction failed: {e}", exc_info=True)
            return enrich_listing(listing, None, snapshot_path=snapshot_path, enrichment_error=f"extraction failed: {e}")

        logger.info(f"[{listing.identity}] extracted {len(detail.raw_evidence)} fields")
        return enrich_listing(listing, detail, snapshot_path=snapshot_path)

    def run(self, listings: List[ListingRecord]) -> List[EnrichedRecord]:
        worklist = listings
        if self.detail_settings.max_entities:
            worklist = listings[:self.detail_settings.max_entities]
        logger.info(f"Enriching {len(worklist)} of {len(listings)} listing records for '{self.site}'")

        results: List[EnrichedRecord] = []
        for index, listing in enumerate(worklist):
            if index > 0 and self.detail_settings.cooldown_sec:
                self.sleep(self.detail_settings.cooldown_sec)
            logger.info(f"[{index + 1}/{len(worklist)}] {listing.title or listing.identity}")
            record = self.enrich_one(listing)
            append_jsonl(record, self.output_path)
            results.append(record)

        failures = sum(1 for r in results if r.enrichment_error)
        logger.info(
            f"Detail run for '{self.site}' finished: {len(results) - failures} enriched, "
            f"{failures} listing-only. Output: {self.output_path}"
        )
        return results
