import logging
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from live_event_scrapers.config import ListingRunSettings
from live_event_scrapers.exceptions import ScraperError
from live_event_scrapers.extraction.dom_heuristics import CardContext, DEFAULT_GENRE_KEYWORDS

logger = logging.getLogger(__name__)

DEFAULT_SITES_PATH = Path(__file__).resolve().parent / "sites.yaml"


class SiteProfile(BaseModel):
    """Everything site-specific a listing run needs, loaded from sites.yaml."""
    name: str
    base_url: str
    listing_url_template: str
    defaults: Dict[str, str] = Field(default_factory=dict)
    date_window_days: int = Field(7, ge=1)
    use_load_more: bool = True
    use_embedded_state: bool = False
    card_selectors: List[str] = Field(default_factory=list)
    excluded_link_parts: List[str] = Field(default_factory=list)
    known_venues: List[str] = Field(default_factory=list)
    localities: List[str] = Field(default_factory=list)
    genre_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_GENRE_KEYWORDS))

    def card_context(self) -> CardContext:
        return CardContext(
            base_url=self.base_url,
            known_venues=self.known_venues,
            localities=self.localities,
            genre_keywords=self.genre_keywords,
        )

    def listing_url(self, run_settings: ListingRunSettings, today: Optional[date] = None) -> str:
        """Fills the URL template from the run settings, then the profile defaults."""
        start = run_settings.start_date or today or date.today()
        end = run_settings.end_date or start + timedelta(days=self.date_window_days)
        values = dict(self.defaults)
        values.update({
            k: v for k, v in {
                "city": run_settings.city,
                "category": run_settings.category,
                "area": run_settings.area,
            }.items() if v
        })
        values["start_date"] = start.isoformat()
        values["end_date"] = end.isoformat()
        try:
            return self.listing_url_template.format(**values)
        except KeyError as e:
            raise ScraperError(f"Site '{self.name}' needs a value for {e} to build its listing URL") from e


def load_site_profiles(path: Path = DEFAULT_SITES_PATH) -> Dict[str, SiteProfile]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.error(f"Site profile file not found: {path}")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing site profile file {path}: {e}", exc_info=True)
        return {}

    if not config_data:
        logger.error(f"Site profile file is empty: {path}")
        return {}

    profiles: Dict[str, SiteProfile] = {}
    for name, raw_profile in config_data.items():
        try:
            profiles[name] = SiteProfile(name=name, **(raw_profile or {}))
        except (ValidationError, TypeError) as e:
            logger.error(f"Invalid site profile '{name}' in {path}: {e}")
    logger.debug(f"Loaded site profiles: {', '.join(profiles)}")
    return profiles


def get_site_profile(name: str, path: Path = DEFAULT_SITES_PATH) -> SiteProfile:
    profiles = load_site_profiles(path)
    if name not in profiles:
        raise ScraperError(f"Unknown site '{name}'. Known sites: {', '.join(sorted(profiles)) or 'none'}")
    return profiles[name]
