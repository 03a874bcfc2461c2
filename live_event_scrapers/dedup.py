import logging
from typing import Dict, Iterable, List

from live_event_scrapers.data_quality.cleaning import dedupe_preserving_order, is_empty_value
from live_event_scrapers.models import ListingRecord

logger = logging.getLogger(__name__)

FILLABLE_FIELDS = ("title", "venue", "date", "time", "price", "image_url")
UNIONED_FIELDS = ("genres", "artists")


def merge_sighting(first: ListingRecord, later: ListingRecord) -> ListingRecord:
    """
    A new record equal to ``first`` with its empty fields filled from ``later``
    and its genres/artists extended. ``first`` is returned unchanged when the
    later sighting adds nothing.
    """
    update = {}
    for field_name in FILLABLE_FIELDS:
        if is_empty_value(getattr(first, field_name)) and not is_empty_value(getattr(later, field_name)):
            update[field_name] = getattr(later, field_name)
    for field_name in UNIONED_FIELDS:
        current = getattr(first, field_name)
        combined = dedupe_preserving_order(list(current) + list(getattr(later, field_name)))
        if len(combined) > len(current):
            update[field_name] = combined
    if not update:
        return first
    return first.model_copy(update=update)


def deduplicate_listings(records: Iterable[ListingRecord]) -> List[ListingRecord]:
    """
    One record per detail URL, at the position of its first sighting.
    Records without a detail URL are never merged with anything.
    """
    result: List[ListingRecord] = []
    position_by_url: Dict[str, int] = {}
    duplicates = 0

    for record in records:
        if not record.detail_url:
            result.append(record)
            continue
        position = position_by_url.get(record.detail_url)
        if position is None:
            position_by_url[record.detail_url] = len(result)
            result.append(record)
            continue
        duplicates += 1
        result[position] = merge_sighting(result[position], record)

    if duplicates:
        logger.info(f"Merged {duplicates} duplicate sightings; {len(result)} unique listing records remain.")
    return result
