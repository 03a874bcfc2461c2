import logging
from typing import Callable, List, Optional

from live_event_scrapers.extraction.dom_heuristics import extract_dom_heuristics
from live_event_scrapers.extraction.embedded_state import extract_embedded_state
from live_event_scrapers.extraction.linked_data import extract_linked_data
from live_event_scrapers.extraction.reconciler import reconcile
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.models import DetailRecord, PartialRecord

logger = logging.getLogger(__name__)


def run_extractors(snapshot: PageSnapshot, identity_hint: Optional[str] = None) -> List[PartialRecord]:
    """Runs every strategy against the page, most trusted first. A failing strategy yields nothing."""
    extractors: List[Callable[[PageSnapshot], Optional[PartialRecord]]] = [
        extract_linked_data,
        lambda snap: extract_embedded_state(snap, identity_hint=identity_hint),
        extract_dom_heuristics,
    ]
    partials: List[PartialRecord] = []
    for extractor in extractors:
        try:
            partial = extractor(snapshot)
        except Exception as e:
            logger.warning(f"Extractor failed on {snapshot.url}: {e}", exc_info=True)
            continue
        if partial is not None:
            logger.debug(f"{partial.strategy} recovered {len(partial.values)} fields from {snapshot.url}")
            partials.append(partial)
    return partials


def extract_detail(snapshot: PageSnapshot, identity_hint: Optional[str] = None) -> DetailRecord:
    return reconcile(run_extractors(snapshot, identity_hint))
