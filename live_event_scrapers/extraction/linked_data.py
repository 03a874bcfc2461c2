import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from live_event_scrapers.data_quality.cleaning import clean_and_normalize_text, is_empty_value
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.models import PartialRecord, TIER_LINKED_DATA

logger = logging.getLogger(__name__)

STRATEGY_NAME = "linked_data"
EVENT_TYPES = ("Event", "MusicEvent")


def _is_event_node(node: Any) -> bool:
    if not isinstance(node, dict):
        return False
    node_type = node.get("@type")
    if isinstance(node_type, list):
        return any(t in EVENT_TYPES for t in node_type)
    return node_type in EVENT_TYPES


def iter_event_nodes(payload: Any) -> Iterator[Dict[str, Any]]:
    """Yields event objects from a parsed block: a single object, a list, or an @graph container."""
    if isinstance(payload, list):
        for item in payload:
            yield from iter_event_nodes(item)
    elif isinstance(payload, dict):
        if _is_event_node(payload):
            yield payload
        graph = payload.get("@graph")
        if isinstance(graph, list):
            for item in graph:
                if _is_event_node(item):
                    yield item


def parse_linked_data_blocks(snapshot: PageSnapshot) -> List[Dict[str, Any]]:
    """Every event node on the page, in document order. Malformed blocks are skipped."""
    events: List[Dict[str, Any]] = []
    for index, raw_block in enumerate(snapshot.linked_data_texts()):
        if not raw_block or not raw_block.strip():
            continue
        try:
            payload = json.loads(raw_block)
        except (json.JSONDecodeError, TypeError) as e:
            logger.debug(f"Skipping malformed linked-data block #{index} on {snapshot.url}: {e}")
            continue
        events.extend(iter_event_nodes(payload))
    return events


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _name_or_text(value: Any) -> Optional[str]:
    value = _first(value)
    if isinstance(value, dict):
        return value.get("name")
    if isinstance(value, str):
        return value
    return None


def _image_url(value: Any) -> Optional[str]:
    value = _first(value)
    if isinstance(value, dict):
        return value.get("url") or value.get("contentUrl")
    return value if isinstance(value, str) else None


def _flatten_address(address: Any) -> Optional[str]:
    if isinstance(address, str):
        return clean_and_normalize_text(address)
    if isinstance(address, dict):
        parts = [
            address.get("streetAddress"), address.get("addressLocality"),
            address.get("addressRegion"), address.get("postalCode"),
        ]
        country = address.get("addressCountry")
        parts.append(country.get("name") if isinstance(country, dict) else country)
        joined = ", ".join(str(p).strip() for p in parts if p not in (None, ""))
        return joined or None
    return None


def _location(node: Dict[str, Any]) -> Dict[str, Any]:
    location = _first(node.get("location"))
    return location if isinstance(location, dict) else {}


def _geo(location: Dict[str, Any]) -> Optional[Dict[str, float]]:
    geo = location.get("geo")
    if not isinstance(geo, dict):
        return None
    try:
        latitude = float(geo["latitude"])
        longitude = float(geo["longitude"])
    except (KeyError, TypeError, ValueError):
        logger.debug(f"Unusable geo coordinates in linked data: {geo}")
        return None
    return {"latitude": latitude, "longitude": longitude}


def _ticket_offers(offers: Any) -> List[Dict[str, Any]]:
    if isinstance(offers, dict):
        offers = [offers]
    if not isinstance(offers, list):
        return []
    result = []
    for offer in offers:
        if not isinstance(offer, dict):
            continue
        result.append({
            "name": offer.get("name"),
            "price": offer.get("price", offer.get("lowPrice")),
            "currency": offer.get("priceCurrency"),
            "availability": offer.get("availability"),
            "url": offer.get("url"),
            "valid_from": offer.get("validFrom"),
            "valid_through": offer.get("validThrough"),
        })
    return result


def _performers(performers: Any) -> List[str]:
    if isinstance(performers, (dict, str)):
        performers = [performers]
    if not isinstance(performers, list):
        return []
    names = []
    for performer in performers:
        name = _name_or_text(performer)
        if name and name.strip():
            names.append(name.strip())
    return names


# Each mapper reads one output field from an event node. A mapper that raises
# leaves only its own field empty.
_FIELD_MAPPERS = {
    "title": lambda node: node.get("name"),
    "description": lambda node: node.get("description"),
    "image_url": lambda node: _image_url(node.get("image")),
    "start_time": lambda node: node.get("startDate"),
    "end_time": lambda node: node.get("endDate"),
    "door_time": lambda node: node.get("doorTime"),
    "venue_name": lambda node: _name_or_text(node.get("location")),
    "venue_address": lambda node: _flatten_address(_location(node).get("address")),
    "geo": lambda node: _geo(_location(node)),
    "organizer": lambda node: _name_or_text(node.get("organizer")),
    "artists": lambda node: _performers(node.get("performer")),
    "ticket_offers": lambda node: _ticket_offers(node.get("offers")),
}


def map_event_node(node: Dict[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field_name, mapper in _FIELD_MAPPERS.items():
        try:
            value = mapper(node)
        except Exception as e:
            logger.debug(f"Linked-data field '{field_name}' could not be mapped: {e}")
            continue
        if not is_empty_value(value):
            values[field_name] = value
    return values


def extract_linked_data(snapshot: PageSnapshot) -> Optional[PartialRecord]:
    """
    Tier 1 strategy. Maps the event blocks on the page; when several blocks
    describe the event, earlier blocks win and later ones only fill gaps.
    """
    values: Dict[str, Any] = {}
    for node in parse_linked_data_blocks(snapshot):
        for field_name, value in map_event_node(node).items():
            values.setdefault(field_name, value)

    if not values:
        logger.debug(f"No linked-data event found on {snapshot.url}")
        return None
    return PartialRecord(strategy=STRATEGY_NAME, tier=TIER_LINKED_DATA, values=values)
