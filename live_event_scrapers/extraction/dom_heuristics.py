"""
Lowest-trust extraction strategy: CSS selector chains and regular expressions
applied to the rendered DOM.

Every field has an ordered tuple of probes. A probe is a small function of the
page (or of a listing card) returning a value or None; the first non-empty
result wins. Collection fields run all their probes and keep every result.
"""
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, NavigableString, Tag

from live_event_scrapers.data_quality.cleaning import (
    clean_and_normalize_text,
    dedupe_preserving_order,
    is_empty_value,
)
from live_event_scrapers.extraction import patterns
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.models import ListingRecord, PartialRecord, TIER_DOM_HEURISTIC

logger = logging.getLogger(__name__)

STRATEGY_NAME = "dom_heuristic"

Probe = Callable[[PageSnapshot], Any]
CardProbe = Callable[[Tag, "CardContext"], Any]

MIN_TITLE_LENGTH = 6
MIN_DESCRIPTION_LENGTH = 50
MAX_GENRE_LENGTH = 30

DEFAULT_GENRE_KEYWORDS = (
    "House", "Techno", "Jazz", "Disco", "Electronic", "Hip Hop", "R&B",
    "Afro House", "Deep House", "Dance", "Reggaeton",
)
STATUS_WORDS = ("sold out", "free", "from")
EVENT_TYPE_KEYWORDS = ("Concert", "Festival", "Club Night", "Party", "Live Music", "DJ Set")
SOCIAL_PLATFORMS = (
    ("facebook", ("facebook.com",)),
    ("instagram", ("instagram.com",)),
    ("twitter", ("twitter.com", "x.com")),
    ("spotify", ("spotify.com",)),
    ("soundcloud", ("soundcloud.com",)),
)

_TITLE_REJECTS = (
    re.compile(r"^\d{1,2}:\d{2}"),
    re.compile(rf"^{patterns.WEEKDAY_ALT}(?:,|\s+(?:{patterns.MONTH_WORD}\b|\d{{1,2}}\b))", re.IGNORECASE),
    re.compile(rf"^{patterns.MONTH_ALT}\s*\d{{1,2}}\b", re.IGNORECASE),
    re.compile(r"^(?:from\s+)?[$€£]\s?\d", re.IGNORECASE),
)

AGE_PATTERNS = (
    re.compile(r"This is (?:a|an) (\d+)\+ event", re.IGNORECASE),
    re.compile(r"\b(\d+)\+ only", re.IGNORECASE),
    re.compile(r"Age (?:restriction|limit)[:\s]+(\d+)\+?", re.IGNORECASE),
    re.compile(r"\bAges?\s+(\d+)\s+(?:and\s+)?(?:up|over|older)", re.IGNORECASE),
    re.compile(r"\b(\d+)\s+and\s+(?:up|over|older)", re.IGNORECASE),
    re.compile(r"\b(\d{2})\+(?=\s|$|[.,)])"),
    re.compile(r"\bAll ages\b", re.IGNORECASE),
)
DOOR_TIME_PATTERN = re.compile(r"Doors?(?:\s+open)?:?\s*(\d{1,2}:\d{2}\s*(?:AM|PM)?)", re.IGNORECASE)
START_TIME_PATTERN = re.compile(r"Start(?:s|\s+time)?(?:\s+at)?:?\s*(\d{1,2}:\d{2}\s*(?:AM|PM)?)", re.IGNORECASE)


# --- Text helpers ---

def direct_text(element: Tag) -> str:
    """Text of the element's own text nodes, children excluded."""
    parts = [str(child).strip() for child in element.children if isinstance(child, NavigableString)]
    return " ".join(part for part in parts if part).strip()


def element_text(element: Optional[Tag]) -> Optional[str]:
    if element is None:
        return None
    return clean_and_normalize_text(element.get_text(" ", strip=True))


def _genre_names(genre_keywords: Iterable[str]) -> Tuple[str, ...]:
    return tuple(g.lower() for g in genre_keywords)


def is_plausible_title(text: Optional[str], genre_keywords: Sequence[str] = DEFAULT_GENRE_KEYWORDS) -> bool:
    """
    Negative filter for listing-card titles. Card containers share markup with
    their metadata, so time, date, month, price, status and bare genre strings
    must not be taken for a title.
    """
    candidate = clean_and_normalize_text(text)
    if not candidate or len(candidate) < MIN_TITLE_LENGTH:
        return False
    if any(pattern.search(candidate) for pattern in _TITLE_REJECTS):
        return False
    lowered = candidate.lower()
    if lowered in STATUS_WORDS:
        return False
    if lowered in _genre_names(genre_keywords):
        return False
    return True


# --- Page-level probe factories ---

def css_text_probe(selectors: Sequence[str], min_length: int = 1, max_length: Optional[int] = None) -> Probe:
    def probe(snapshot: PageSnapshot) -> Optional[str]:
        for selector in selectors:
            for element in snapshot.soup.select(selector):
                text = element_text(element)
                if not text or len(text) < min_length:
                    continue
                if max_length is not None and len(text) > max_length:
                    continue
                return text
        return None
    return probe


def css_image_probe(selectors: Sequence[str], must_contain: Optional[str] = None) -> Probe:
    def probe(snapshot: PageSnapshot) -> Optional[str]:
        for selector in selectors:
            for img in snapshot.soup.select(selector):
                src = image_source(img)
                if src and (must_contain is None or must_contain in src):
                    return urljoin(snapshot.url, src)
        return None
    return probe


def regex_probe(pattern_list: Sequence[re.Pattern], group: int = 0, transform: Optional[Callable[[re.Match], str]] = None) -> Probe:
    def probe(snapshot: PageSnapshot) -> Optional[str]:
        text = snapshot.visible_text()
        for pattern in pattern_list:
            match = pattern.search(text)
            if match:
                if transform is not None:
                    return transform(match)
                return match.group(group if match.lastindex else 0).strip()
        return None
    return probe


def _age_from_match(match: re.Match) -> str:
    if match.lastindex:
        return f"{match.group(1)}+"
    return match.group(0).strip()


def _door_time_from_element(snapshot: PageSnapshot) -> Optional[str]:
    for element in snapshot.soup.select('[class*="door"], [class*="Door"]'):
        text = element_text(element)
        if text and patterns.TIME_OF_DAY.search(text):
            return text
    return None


def _event_type_keyword(snapshot: PageSnapshot) -> Optional[str]:
    text = snapshot.visible_text()
    for keyword in EVENT_TYPE_KEYWORDS:
        if keyword in text:
            return keyword
    return None


def _collection_texts(snapshot: PageSnapshot, selectors: Sequence[str], max_length: int) -> List[str]:
    """Texts of matching elements; a container's link/list children are read individually."""
    found: List[str] = []
    for selector in selectors:
        for element in snapshot.soup.select(selector):
            items = element.find_all(["a", "li"]) if element.name not in ("a", "li") else []
            texts = [element_text(item) for item in items] if items else [element_text(element)]
            for text in texts:
                if text and len(text) > 1 and len(text) < max_length:
                    found.append(text)
    return dedupe_preserving_order(found)


def genres_probe(snapshot: PageSnapshot) -> List[str]:
    return _collection_texts(snapshot, GENRE_SELECTORS, MAX_GENRE_LENGTH)


def artists_probe(snapshot: PageSnapshot) -> List[str]:
    return _collection_texts(snapshot, ARTIST_SELECTORS, 100)


def social_links_probe(snapshot: PageSnapshot) -> Dict[str, str]:
    """One URL per platform; a later link for the same platform replaces an earlier one."""
    links: Dict[str, str] = {}
    for anchor in snapshot.soup.find_all("a", href=True):
        href = urljoin(snapshot.url, anchor["href"])
        for platform, domains in SOCIAL_PLATFORMS:
            if any(domain in href for domain in domains):
                links[platform] = href
    return links


def ticket_offers_probe(snapshot: PageSnapshot) -> List[Dict[str, Any]]:
    offers: List[Dict[str, Any]] = []
    seen = set()
    for element in snapshot.soup.select(TICKET_SELECTORS):
        text = element_text(element)
        if not text or not (3 < len(text) < 100) or text in seen:
            continue
        price_match = patterns.PRICE_IN_TEXT.search(text)
        if price_match:
            seen.add(text)
            offers.append({"name": text, "price": price_match.group(0)})
    return offers


DESCRIPTION_SELECTORS = (
    '[class*="description"]', '[class*="Description"]', '[class*="about"]', '[class*="About"]',
    '[data-testid*="description"]', '[data-testid*="about"]', 'article p', 'section p',
)
LINEUP_SELECTORS = (
    '[class*="lineup"]', '[class*="Lineup"]', '[class*="Artists"]', '[class*="performer"]', '[data-testid*="lineup"]',
)
VENUE_SELECTORS = (
    '[class*="venue"]', '[class*="Venue"]', '[class*="location"]', 'a[href*="/venues/"]', 'a[href*="/venue/"]',
)
ADDRESS_SELECTORS = ('[class*="address"]', '[class*="Address"]', '[itemtype*="PostalAddress"]', 'address')
ORGANIZER_SELECTORS = (
    '[class*="promoter"]', '[class*="Promoter"]', '[class*="organizer"]', '[class*="Organizer"]',
    'a[href*="/organizers/"]', 'a[href*="/promoters/"]',
)
IMAGE_SELECTORS = (
    'img[class*="event"]', 'img[class*="Event"]', 'img[class*="poster"]', 'img[class*="flyer"]',
    'img[alt*="event"]', 'main img', 'article img',
)
GENRE_SELECTORS = (
    'a[href*="/genre/"]', '[class*="genre"]', '[class*="Genre"]', '[class*="tag"]', '[class*="Tag"]', '[class*="category"]',
)
ARTIST_SELECTORS = ('a[href*="/artists/"]', 'a[href*="/artist/"]', '[class*="artist"] a', '[data-testid*="artist"]')
TICKET_SELECTORS = '[class*="ticket"], [class*="Ticket"], button[class*="buy"]'

SCALAR_PROBES: Dict[str, Tuple[Probe, ...]] = {
    "title": (css_text_probe(("h1",)),),
    "description": (css_text_probe(DESCRIPTION_SELECTORS, min_length=MIN_DESCRIPTION_LENGTH),),
    "lineup": (css_text_probe(LINEUP_SELECTORS),),
    "venue_name": (css_text_probe(VENUE_SELECTORS, max_length=120),),
    "venue_address": (css_text_probe(ADDRESS_SELECTORS),),
    "organizer": (css_text_probe(ORGANIZER_SELECTORS, max_length=120),),
    "image_url": (css_image_probe(IMAGE_SELECTORS),),
    "age_restriction": (regex_probe(AGE_PATTERNS, transform=_age_from_match),),
    "door_time": (regex_probe((DOOR_TIME_PATTERN,), group=1), _door_time_from_element),
    "start_time": (regex_probe((START_TIME_PATTERN,), group=1),),
    "event_type": (_event_type_keyword,),
    "ticket_offers": (ticket_offers_probe,),
}
COLLECTION_PROBES: Dict[str, Tuple[Probe, ...]] = {
    "genres": (genres_probe,),
    "artists": (artists_probe,),
}
MAPPING_PROBES: Dict[str, Tuple[Probe, ...]] = {
    "social_links": (social_links_probe,),
}


def run_probes(snapshot: PageSnapshot, probes: Sequence[Probe], field_name: str) -> Any:
    """First non-empty probe result. A failing probe only loses its own attempt."""
    for probe in probes:
        try:
            value = probe(snapshot)
        except Exception as e:
            logger.debug(f"Probe for '{field_name}' failed on {snapshot.url}: {e}")
            continue
        if not is_empty_value(value):
            return value
    return None


def extract_dom_heuristics(snapshot: PageSnapshot) -> Optional[PartialRecord]:
    """Tier 3 strategy for detail pages. Always runs so it can fill what richer sources miss."""
    values: Dict[str, Any] = {}
    for field_name, probes in SCALAR_PROBES.items():
        value = run_probes(snapshot, probes, field_name)
        if value is not None:
            values[field_name] = value

    for field_name, probes in COLLECTION_PROBES.items():
        collected: List[str] = []
        for probe in probes:
            try:
                collected.extend(probe(snapshot) or [])
            except Exception as e:
                logger.debug(f"Probe for '{field_name}' failed on {snapshot.url}: {e}")
        if collected:
            values[field_name] = dedupe_preserving_order(collected)

    for field_name, probes in MAPPING_PROBES.items():
        mapping: Dict[str, str] = {}
        for probe in probes:
            try:
                mapping.update(probe(snapshot) or {})
            except Exception as e:
                logger.debug(f"Probe for '{field_name}' failed on {snapshot.url}: {e}")
        if mapping:
            values[field_name] = mapping

    if not values:
        return None
    return PartialRecord(strategy=STRATEGY_NAME, tier=TIER_DOM_HEURISTIC, values=values)


# --- Listing cards ---

class CardContext:
    """Per-site knobs the card probes need."""

    def __init__(
        self,
        base_url: str,
        known_venues: Sequence[str] = (),
        localities: Sequence[str] = (),
        genre_keywords: Sequence[str] = DEFAULT_GENRE_KEYWORDS,
    ):
        self.base_url = base_url
        self.genre_keywords = tuple(genre_keywords)
        self.localities = tuple(localities)
        self.known_venue_pattern = (
            re.compile("(" + "|".join(re.escape(v) for v in known_venues) + ")", re.IGNORECASE)
            if known_venues else None
        )
        stop_words = [re.escape(locality) for locality in self.localities] + [r"\d{1,2}:\d{2}", patterns.WEEKDAY_ALT]
        self.generic_venue_pattern = re.compile(
            r"([A-Z][a-zA-Z\s&'-]{2,40}?)(?=\s*(?:" + "|".join(stop_words) + "))"
        )
        self.locality_pattern = (
            re.compile(r"(" + "|".join(re.escape(locality) for locality in self.localities) + r"),?\s*(?:New York|NY)?", re.IGNORECASE)
            if self.localities else None
        )


def image_source(img: Tag) -> Optional[str]:
    src = img.get("src")
    if src and not src.startswith("data:"):
        return src
    srcset = img.get("srcset")
    if srcset:
        first = srcset.split(",")[0].strip().split(" ")[0]
        if first:
            return first
    return img.get("data-src")


def card_link(card: Tag) -> Optional[str]:
    if card.name == "a" and card.get("href"):
        return card["href"]
    anchor = card.find("a", href=True)
    return anchor["href"] if anchor else None


def card_text(card: Tag) -> str:
    return clean_and_normalize_text(card.get_text(" ", strip=True)) or ""


def _title_from_direct_text(card: Tag, ctx: CardContext) -> Optional[str]:
    for element in card.find_all(["h1", "h2", "h3", "h4", "div", "span", "p"]):
        text = clean_and_normalize_text(direct_text(element))
        if is_plausible_title(text, ctx.genre_keywords):
            return text
    return None


def _title_from_title_classes(card: Tag, ctx: CardContext) -> Optional[str]:
    for element in card.select('[class*="title"], [class*="Title"], [class*="name"], [class*="Name"]'):
        text = element_text(element)
        if is_plausible_title(text, ctx.genre_keywords):
            return text
    return None


def _title_from_text_lines(card: Tag, ctx: CardContext) -> Optional[str]:
    for line in card.get_text("\n").split("\n"):
        text = clean_and_normalize_text(line)
        if is_plausible_title(text, ctx.genre_keywords):
            return text
    return None


def _venue_from_classes(card: Tag, ctx: CardContext) -> Optional[str]:
    for element in card.select('[class*="venue"], [class*="Venue"], [class*="location"], [class*="Location"]'):
        text = element_text(element)
        if text:
            return text
    return None


def _venue_from_known_names(card: Tag, ctx: CardContext) -> Optional[str]:
    # Site/city specific list; one low-trust probe among several.
    if ctx.known_venue_pattern is None:
        return None
    match = ctx.known_venue_pattern.search(card_text(card))
    return match.group(1).strip() if match else None


def _venue_from_capitalised_phrase(card: Tag, ctx: CardContext) -> Optional[str]:
    match = ctx.generic_venue_pattern.search(card_text(card))
    if not match:
        return None
    venue = match.group(1).strip()
    return venue if 2 < len(venue) < 50 else None


def _venue_from_locality(card: Tag, ctx: CardContext) -> Optional[str]:
    if ctx.locality_pattern is None:
        return None
    match = ctx.locality_pattern.search(card_text(card))
    return match.group(0).strip().rstrip(",") if match else None


def _date_from_time_element(card: Tag, ctx: CardContext) -> Optional[str]:
    element = card.select_one("time, [datetime]")
    if element is None:
        return None
    return element.get("datetime") or element_text(element)


def _date_from_classes(card: Tag, ctx: CardContext) -> Optional[str]:
    return element_text(card.select_one('[class*="date"], [class*="Date"]'))


def _date_from_text(card: Tag, ctx: CardContext) -> Optional[str]:
    return patterns.first_match(patterns.CARD_DATE_PATTERNS, card_text(card))


def _time_from_text(card: Tag, ctx: CardContext) -> Optional[str]:
    return patterns.first_match((patterns.TIME_OF_DAY,), card_text(card))


def _price_from_classes(card: Tag, ctx: CardContext) -> Optional[str]:
    return element_text(card.select_one('[class*="price"], [class*="Price"], [class*="cost"]'))


def _price_from_text(card: Tag, ctx: CardContext) -> Optional[str]:
    return patterns.first_match(patterns.PRICE_PATTERNS, card_text(card))


def _image_from_card(card: Tag, ctx: CardContext) -> Optional[str]:
    img = card.find("img")
    src = image_source(img) if img is not None else None
    return urljoin(ctx.base_url, src) if src else None


CARD_PROBES: Dict[str, Tuple[CardProbe, ...]] = {
    "title": (_title_from_title_classes, _title_from_direct_text, _title_from_text_lines),
    "venue": (_venue_from_classes, _venue_from_known_names, _venue_from_capitalised_phrase, _venue_from_locality),
    "date": (_date_from_time_element, _date_from_classes, _date_from_text),
    "time": (_time_from_text,),
    "price": (_price_from_classes, _price_from_text),
    "image_url": (_image_from_card,),
}


def _run_card_probes(card: Tag, ctx: CardContext, field_name: str) -> Optional[str]:
    for probe in CARD_PROBES[field_name]:
        try:
            value = probe(card, ctx)
        except Exception as e:
            logger.debug(f"Card probe {probe.__name__} for '{field_name}' failed: {e}")
            continue
        if not is_empty_value(value):
            return value
    return None


def card_genres(card: Tag, ctx: CardContext) -> List[str]:
    text = card_text(card)
    return [genre for genre in ctx.genre_keywords if re.search(rf"\b{re.escape(genre)}\b", text)]


def parse_listing_card(card: Tag, ctx: CardContext, site: str, index: int) -> Optional[ListingRecord]:
    """One listing record from one card element, or None when no title can be recovered."""
    href = card_link(card)
    detail_url = urljoin(ctx.base_url, href) if href else None

    fields = {name: _run_card_probes(card, ctx, name) for name in CARD_PROBES}
    if not fields["title"]:
        logger.debug(f"Card #{index} on {site}: no title found. Skipping card.")
        return None

    venue = fields["venue"]
    if venue and venue == fields["title"]:
        venue = None

    try:
        genres = card_genres(card, ctx)
    except Exception as e:
        logger.debug(f"Card #{index} genre scan failed: {e}")
        genres = []

    return ListingRecord(
        identity=detail_url or f"{site}:card-{index}",
        title=fields["title"],
        venue=venue,
        date=fields["date"],
        time=fields["time"],
        price=fields["price"],
        genres=genres,
        image_url=fields["image_url"],
        detail_url=detail_url,
        source_site=site,
        source_tier=TIER_DOM_HEURISTIC,
    )


def find_listing_cards(soup: BeautifulSoup, card_selectors: Sequence[str], excluded_link_parts: Sequence[str] = ()) -> List[Tag]:
    """Cards matched by the first selector that finds any, minus navigation links."""
    for selector in card_selectors:
        cards = soup.select(selector)
        if not cards:
            continue
        kept = []
        for card in cards:
            href = card_link(card) or ""
            if any(part in href for part in excluded_link_parts):
                continue
            kept.append(card)
        logger.info(f"Found {len(kept)} listing cards with selector: {selector}")
        return kept
    logger.warning("No listing cards found with any selectors.")
    return []


def extract_listing_cards(
    snapshot: PageSnapshot,
    site: str,
    card_selectors: Sequence[str],
    ctx: CardContext,
    excluded_link_parts: Sequence[str] = (),
) -> List[ListingRecord]:
    records: List[ListingRecord] = []
    for index, card in enumerate(find_listing_cards(snapshot.soup, card_selectors, excluded_link_parts)):
        try:
            record = parse_listing_card(card, ctx, site, index)
        except Exception as e:
            logger.error(f"Error parsing listing card #{index} on {snapshot.url}: {e}", exc_info=True)
            continue
        if record:
            records.append(record)
    logger.info(f"Parsed {len(records)} listing records from {snapshot.url}")
    return records
