import json
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from live_event_scrapers.data_quality.cleaning import (
    clean_and_normalize_text,
    dedupe_preserving_order,
    is_empty_value,
    normalize_listing_date,
)
from live_event_scrapers.extraction.references import (
    DEFAULT_MAX_DEPTH,
    UNKNOWN,
    entries_with_prefix,
    resolve_entity,
)
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.models import ListingRecord, PartialRecord, TIER_EMBEDDED_STATE

logger = logging.getLogger(__name__)

STRATEGY_NAME = "embedded_state"
EVENT_TYPE_PREFIX = "Event:"

# Locations of the normalized cache inside the page-props payload, tried in order.
CACHE_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("props", "apolloState"),
    ("props", "pageProps", "apolloState"),
    ("props", "pageProps", "__APOLLO_STATE__"),
    ("apolloState",),
)


def load_embedded_payload(snapshot: PageSnapshot) -> Optional[Dict[str, Any]]:
    raw = snapshot.embedded_json_text()
    if not raw or not raw.strip():
        return None
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.debug(f"Embedded page-props payload on {snapshot.url} is not valid JSON: {e}")
        return None
    return payload if isinstance(payload, dict) else None


def find_normalized_cache(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for path in CACHE_PATHS:
        node: Any = payload
        for part in path:
            node = node.get(part) if isinstance(node, dict) else None
        if isinstance(node, dict) and node:
            return node
    return None


def has_name_and_venue(node: Dict[str, Any]) -> bool:
    return bool(node.get("name")) and bool(node.get("venue"))


def iter_depth_bounded(tree: Any, max_depth: int, _depth: int = 0) -> Iterator[Dict[str, Any]]:
    """Pre-order walk over the dicts of a JSON-like tree, never deeper than max_depth."""
    if _depth > max_depth:
        return
    if isinstance(tree, dict):
        yield tree
        children = tree.values()
    elif isinstance(tree, list):
        children = tree
    else:
        return
    for child in children:
        yield from iter_depth_bounded(child, max_depth, _depth + 1)


def find_first_structural_match(
    tree: Any,
    predicate: Callable[[Dict[str, Any]], bool] = has_name_and_venue,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Optional[Dict[str, Any]]:
    for node in iter_depth_bounded(tree, max_depth):
        if predicate(node):
            return node
    return None


def _known(value: Any) -> Any:
    return None if value is UNKNOWN else value


def _as_text(value: Any) -> Optional[str]:
    value = _known(value)
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return None
    return clean_and_normalize_text(str(value))


def _names(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    names = []
    for item in values:
        item = _known(item)
        if isinstance(item, dict):
            item = item.get("name")
        text = _as_text(item)
        if text:
            names.append(text)
    return dedupe_preserving_order(names)


def _first_image(images: Any) -> Optional[str]:
    if not isinstance(images, list) or not images:
        return None
    first = _known(images[0])
    if isinstance(first, dict):
        return _as_text(first.get("filename") or first.get("url"))
    return _as_text(first)


def select_primary_event(
    events: Dict[str, Dict[str, Any]],
    identity_hint: Optional[str] = None,
    url_hint: Optional[str] = None,
) -> Optional[str]:
    """
    Picks the cache key of the event a detail page is about: the one whose id
    or content URL matches the hints, otherwise the first event in the cache.
    """
    if not events:
        return None
    hint_id = identity_hint.rsplit(":", 1)[-1] if identity_hint else None
    hint_path = urlparse(url_hint).path.rstrip("/") if url_hint else None
    for key, entry in events.items():
        if hint_id and str(entry.get("id", key.split(":", 1)[-1])) == hint_id:
            return key
        content_url = entry.get("contentUrl")
        if hint_path and isinstance(content_url, str) and content_url.rstrip("/") == hint_path:
            return key
    return next(iter(events))


def map_cached_event(cache: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Field values of one cached event with venue, artists, images and promoters inlined."""
    entity = resolve_entity(cache, key)
    promoters = _names(entity.get("promoters"))
    values = {
        "title": _as_text(entity.get("title")),
        "date": normalize_listing_date(_as_text(entity.get("date"))),
        "start_time": _as_text(entity.get("startTime")),
        "end_time": _as_text(entity.get("endTime")),
        "venue_name": _as_text(entity.get("venue")),
        "artists": _names(entity.get("artists")),
        "image_url": _as_text(entity.get("flyerFront")) or _first_image(entity.get("images")),
        "promoters": promoters,
        "organizer": promoters[0] if promoters else None,
        "lineup": _as_text(entity.get("content")),
        "cost": _as_text(entity.get("cost")),
        "genres": _names(entity.get("genres")),
    }
    return {k: v for k, v in values.items() if not is_empty_value(v)}


def map_entity_like(node: Dict[str, Any]) -> Dict[str, Any]:
    """Field values of an entity-shaped object found by the recursive fallback."""
    lineup = node.get("lineup")
    artists = node.get("artists")
    values = {
        "description": _as_text(node.get("description") or node.get("about")),
        "lineup": _as_text(lineup) if isinstance(lineup, str) else None,
        "artists": _names(lineup if isinstance(lineup, list) else artists),
        "event_type": _as_text(node.get("eventType") or node.get("category")),
        "age_restriction": _as_text(node.get("ageRestriction") or node.get("age_limit")),
        "door_time": _as_text(node.get("doorTime")),
        "image_url": _first_image(node.get("images")),
        "genres": _names(node.get("genres")),
    }
    return {k: v for k, v in values.items() if not is_empty_value(v)}


def extract_embedded_state(
    snapshot: PageSnapshot,
    identity_hint: Optional[str] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Optional[PartialRecord]:
    """
    Tier 2 strategy. The normalized cache is read first. The depth-bounded
    search for an entity-shaped object only runs when the cache yields no
    primary event, since on cached pages it can land on a different event.
    """
    payload = load_embedded_payload(snapshot)
    if payload is None:
        return None

    values: Dict[str, Any] = {}
    cache = find_normalized_cache(payload)
    if cache:
        events = entries_with_prefix(cache, EVENT_TYPE_PREFIX)
        primary_key = select_primary_event(events, identity_hint, snapshot.url)
        if primary_key:
            try:
                values.update(map_cached_event(cache, primary_key))
            except Exception as e:
                logger.debug(f"Cached event '{primary_key}' on {snapshot.url} could not be mapped: {e}")

    if values:
        return PartialRecord(strategy=STRATEGY_NAME, tier=TIER_EMBEDDED_STATE, values=values)

    match = find_first_structural_match(payload.get("props", payload), has_name_and_venue, max_depth)
    if match is not None:
        try:
            values = map_entity_like(match)
        except Exception as e:
            logger.debug(f"Entity-shaped object on {snapshot.url} could not be mapped: {e}")

    if not values:
        return None
    return PartialRecord(strategy=STRATEGY_NAME, tier=TIER_EMBEDDED_STATE, values=values)


def extract_cached_listings(snapshot: PageSnapshot, site: str, base_url: str) -> List[ListingRecord]:
    """Listing records for every cached event on a listing page, in cache order."""
    payload = load_embedded_payload(snapshot)
    cache = find_normalized_cache(payload) if payload else None
    if not cache:
        return []

    records: List[ListingRecord] = []
    for key, entry in entries_with_prefix(cache, EVENT_TYPE_PREFIX).items():
        try:
            values = map_cached_event(cache, key)
            content_url = entry.get("contentUrl")
            detail_url = urljoin(base_url, content_url) if isinstance(content_url, str) and content_url else None
            event_id = entry.get("id") or key.split(":", 1)[-1]
            records.append(ListingRecord(
                identity=f"{site}:{event_id}",
                title=values.get("title"),
                venue=values.get("venue_name"),
                date=values.get("date"),
                time=values.get("start_time"),
                price=values.get("cost"),
                genres=values.get("genres", []),
                artists=values.get("artists", []),
                image_url=values.get("image_url"),
                detail_url=detail_url,
                source_site=site,
                source_tier=TIER_EMBEDDED_STATE,
            ))
        except Exception as e:
            logger.warning(f"Skipping cached event '{key}' on {snapshot.url}: {e}")
    logger.info(f"Recovered {len(records)} listing records from embedded state on {snapshot.url}")
    return records
