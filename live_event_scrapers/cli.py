import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from live_event_scrapers.browser import BrowserSession
from live_event_scrapers.config import settings
from live_event_scrapers.exceptions import ScraperError, WorklistMissingError
from live_event_scrapers.models import EnrichedRecord, ListingRecord
from live_event_scrapers.scrapers.detail_scraper import DetailScraper
from live_event_scrapers.scrapers.listing_scraper import ListingScraper
from live_event_scrapers.sentry_setup import init_sentry
from live_event_scrapers.sites import get_site_profile
from live_event_scrapers.utils import listings_path, load_listings_json, setup_logger

logger = logging.getLogger(__name__)


def run_listing(args: argparse.Namespace) -> List[ListingRecord]:
    profile = get_site_profile(args.site)
    overrides = {
        "site": args.site,
        "city": args.city,
        "category": args.category,
        "area": args.area,
        "start_date": args.start_date,
        "end_date": args.end_date,
        "target_date": args.target_date,
        "max_load_more_clicks": args.max_clicks,
    }
    run_settings = settings.listing.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    with BrowserSession(headless=args.headless) as session:
        scraper = ListingScraper(session, profile, run_settings=run_settings)
        return scraper.run(base_dir=args.output_dir)


def run_details(args: argparse.Namespace) -> List[EnrichedRecord]:
    base_dir = args.output_dir or settings.file_outputs.base_output_directory
    # Read before launching the browser so a missing worklist fails fast.
    listings = load_listings_json(listings_path(args.site, base_dir))

    overrides = {"max_entities": args.max_entities, "cooldown_sec": args.cooldown}
    detail_settings = settings.detail.model_copy(update={k: v for k, v in overrides.items() if v is not None})

    with BrowserSession(headless=args.headless) as session:
        scraper = DetailScraper(session, args.site, detail_settings=detail_settings, base_dir=base_dir)
        return scraper.run(listings)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="live-event-scrapers",
        description="Scrape live-event listings and enrich them from their detail pages.",
    )
    parser.add_argument("--output-dir", type=Path, default=None, help="Overrides FILE_OUTPUT_BASE_OUTPUT_DIRECTORY.")
    parser.add_argument("--no-headless", action="store_false", dest="headless", default=None, help="Show the browser window.")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL (DEBUG, INFO, ...).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    listing = subparsers.add_parser("listing", help="Collect listing records from a site's browse page.")
    listing.add_argument("--site", default=settings.listing.site, help="Site profile name from sites.yaml.")
    listing.add_argument("--city", help="City identifier used in the listing URL.")
    listing.add_argument("--category", help="Category identifier used in the listing URL.")
    listing.add_argument("--area", help="Area slug used in the listing URL.")
    listing.add_argument("--start-date", type=date.fromisoformat, help="Window start (YYYY-MM-DD).")
    listing.add_argument("--end-date", type=date.fromisoformat, help="Window end (YYYY-MM-DD).")
    listing.add_argument("--target-date", type=date.fromisoformat, help="Stop loading more once this date is visible.")
    listing.add_argument("--max-clicks", type=int, help="Cap on 'load more' clicks.")
    listing.set_defaults(handler=run_listing)

    details = subparsers.add_parser("details", help="Enrich saved listing records from their detail pages.")
    details.add_argument("--site", default=settings.listing.site, help="Site profile name from sites.yaml.")
    details.add_argument("--max-entities", type=int, help="Only enrich the first N listing records.")
    details.add_argument("--cooldown", type=float, help="Seconds to wait between detail pages.")
    details.set_defaults(handler=run_details)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level_name = (args.log_level or settings.log_level).upper()
    run_logger = setup_logger("live_event_scrapers", f"{args.site}_{args.command}_run", getattr(logging, level_name, logging.INFO))
    init_sentry(site=args.site, command=args.command)

    try:
        results = args.handler(args)
        run_logger.info(f"'{args.command}' run for '{args.site}' produced {len(results)} records.")
    except WorklistMissingError as e:
        run_logger.error(f"{e}. Run the 'listing' command for '{args.site}' first.")
        return 1
    except ScraperError as e:
        run_logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        run_logger.info("Scraping interrupted by user.")
        return 1
    except Exception as e:
        run_logger.critical(f"Unhandled error during '{args.command}' run: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    exit_code = main()
    logging.shutdown()
    sys.exit(exit_code)
