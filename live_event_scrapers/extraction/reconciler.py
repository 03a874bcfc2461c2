"""
Merging of per-strategy partial records into one detail record, and of a
detail record into the listing record it was fetched for.

Precedence is by trust tier (1 = linked data, 2 = embedded state, 3 = DOM
heuristics). For a scalar field the most trusted non-empty value wins;
collections are unioned in tier order; social links are unioned by platform
with the more trusted tier winning a conflict. Every populated field is
attributed to the strategy that supplied it in ``raw_evidence``.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from live_event_scrapers.data_quality.cleaning import (
    dedupe_preserving_order,
    is_empty_value,
)
from live_event_scrapers.extraction import dom_heuristics, embedded_state, linked_data
from live_event_scrapers.models import (
    COLLECTION_FIELDS,
    MAPPING_FIELDS,
    DetailRecord,
    EnrichedRecord,
    GeoPoint,
    ListingRecord,
    PartialRecord,
    TicketOffer,
    TIER_DOM_HEURISTIC,
    TIER_EMBEDDED_STATE,
    TIER_LINKED_DATA,
)

logger = logging.getLogger(__name__)

STRATEGY_TIERS: Dict[str, int] = {
    linked_data.STRATEGY_NAME: TIER_LINKED_DATA,
    embedded_state.STRATEGY_NAME: TIER_EMBEDDED_STATE,
    dom_heuristics.STRATEGY_NAME: TIER_DOM_HEURISTIC,
}

# Listing field -> detail field carrying the same attribute.
OVERLAPPING_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("title", "title"),
    ("venue", "venue_name"),
    ("date", "date"),
    ("time", "start_time"),
    ("price", "cost"),
    ("image_url", "image_url"),
)
UNIONED_LISTING_FIELDS = ("genres", "artists")

_STRUCTURED_FIELDS = ("geo", "ticket_offers", "raw_evidence") + COLLECTION_FIELDS + MAPPING_FIELDS
_TEXT_FIELDS = tuple(name for name in DetailRecord.model_fields if name not in _STRUCTURED_FIELDS)


def tier_of(strategy: Optional[str]) -> int:
    return STRATEGY_TIERS.get(strategy or "", TIER_DOM_HEURISTIC)


def _text_value(value: Any) -> Optional[str]:
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str) or is_empty_value(value):
        return None
    # Strategies clean their own text; values are carried over verbatim.
    return value


def _geo_value(value: Any) -> Optional[GeoPoint]:
    if isinstance(value, GeoPoint):
        return value
    if not isinstance(value, dict):
        return None
    try:
        point = GeoPoint(**value)
    except ValidationError as e:
        logger.debug(f"Discarding invalid geo point {value}: {e}")
        return None
    return point if point.latitude is not None and point.longitude is not None else None


def _ticket_offers_value(value: Any) -> Optional[List[TicketOffer]]:
    if not isinstance(value, list):
        return None
    offers = []
    for raw_offer in value:
        try:
            offers.append(raw_offer if isinstance(raw_offer, TicketOffer) else TicketOffer(**raw_offer))
        except (ValidationError, TypeError) as e:
            logger.debug(f"Discarding unusable ticket offer {raw_offer}: {e}")
    return offers or None


def _scalar_value(field_name: str, value: Any) -> Any:
    if field_name == "geo":
        return _geo_value(value)
    if field_name == "ticket_offers":
        return _ticket_offers_value(value)
    return _text_value(value)


def _collection_items(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    items = [_text_value(item) for item in value]
    return [item for item in items if item]


def order_by_tier(partials: Iterable[Optional[PartialRecord]]) -> List[PartialRecord]:
    """Drops absent results and sorts by tier; equal tiers keep their input order."""
    present = [p for p in partials if p is not None and not p.is_empty()]
    return sorted(present, key=lambda p: p.tier)


def reconcile(partials: Iterable[Optional[PartialRecord]]) -> DetailRecord:
    """
    Merges the partial records of one page into a DetailRecord.

    The result depends only on the partial records and their order within a
    tier, so reconciling the same input twice serializes identically.
    """
    ordered = order_by_tier(partials)
    merged: Dict[str, Any] = {}
    evidence: Dict[str, str] = {}

    for field_name in _TEXT_FIELDS + ("geo", "ticket_offers"):
        for partial in ordered:
            value = _scalar_value(field_name, partial.values.get(field_name))
            if not is_empty_value(value):
                merged[field_name] = value
                evidence[field_name] = partial.strategy
                break

    for field_name in COLLECTION_FIELDS:
        collected: List[str] = []
        for partial in ordered:
            items = _collection_items(partial.values.get(field_name))
            if items and field_name not in evidence:
                evidence[field_name] = partial.strategy
            collected.extend(items)
        if collected:
            merged[field_name] = dedupe_preserving_order(collected)

    for field_name in MAPPING_FIELDS:
        mapping: Dict[str, str] = {}
        for partial in ordered:
            value = partial.values.get(field_name)
            if not isinstance(value, dict):
                continue
            for platform, url in value.items():
                if url and platform not in mapping:
                    mapping[platform] = url
                    evidence.setdefault(field_name, partial.strategy)
        if mapping:
            merged[field_name] = mapping

    merged["raw_evidence"] = evidence
    return DetailRecord(**merged)


def enrich_listing(
    listing: ListingRecord,
    detail: Optional[DetailRecord],
    snapshot_path: Optional[str] = None,
    enrichment_error: Optional[str] = None,
) -> EnrichedRecord:
    """
    Combines a listing record with its detail record into a new EnrichedRecord.

    An empty listing field is always filled from the detail record. A
    non-empty one is replaced only when the detail evidence for it comes
    from a strictly more trusted tier than the listing pass. Genres and
    artists are unioned, listing values first.
    """
    fields = listing.model_dump()
    field_sources: Dict[str, str] = {}

    if detail is not None:
        for listing_field, detail_field in OVERLAPPING_FIELDS:
            detail_value = getattr(detail, detail_field)
            if is_empty_value(detail_value):
                continue
            strategy = detail.raw_evidence.get(detail_field)
            current = fields.get(listing_field)
            if is_empty_value(current) or tier_of(strategy) < listing.source_tier:
                if current != detail_value:
                    fields[listing_field] = detail_value
                    field_sources[listing_field] = strategy or "unknown"

        for field_name in UNIONED_LISTING_FIELDS:
            current = list(fields.get(field_name) or [])
            combined = dedupe_preserving_order(current + list(getattr(detail, field_name)))
            if len(combined) > len(current):
                fields[field_name] = combined
                field_sources[field_name] = detail.raw_evidence.get(field_name, "unknown")

    return EnrichedRecord(
        **fields,
        detail=detail,
        field_sources=field_sources,
        snapshot_path=snapshot_path,
        enrichment_error=enrichment_error,
    )
