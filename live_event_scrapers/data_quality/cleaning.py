import html
import re
from typing import Any, Iterable, List, Optional

from dateutil import parser as dateutil_parser

_ISO_DATE_PREFIX = re.compile(r'^\d{4}-\d{2}-\d{2}')


def normalize_whitespace(text: Optional[str]) -> Optional[str]:
    """
    Strips leading/trailing whitespace and collapses internal runs of
    whitespace into a single space. Returns None for None or blank input.
    """
    if text is None:
        return None

    text = re.sub(r'\s+', ' ', text.strip())
    return text if text else None


def clean_html_entities(text: Optional[str]) -> Optional[str]:
    """Converts HTML character entities (&amp;, &nbsp;, ...) to Unicode characters."""
    if text is None:
        return None
    return html.unescape(text)


def clean_and_normalize_text(text: Optional[str]) -> Optional[str]:
    """HTML entity decoding followed by whitespace normalization."""
    if text is None:
        return None
    return normalize_whitespace(clean_html_entities(text))


def is_empty_value(value: Any) -> bool:
    """True for None, blank strings and empty containers."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def dedupe_preserving_order(items: Optional[Iterable[str]]) -> List[str]:
    """Exact-match de-duplication that keeps the first occurrence of each string."""
    seen = set()
    result: List[str] = []
    for item in items or []:
        if item is None or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


def normalize_listing_date(raw_date: Optional[str]) -> Optional[str]:
    """
    Reduces ISO timestamps ("2025-11-27T00:00:00.000") to an ISO date.
    Free-text dates such as "Sat, Dec 6" are kept as written.
    """
    cleaned = normalize_whitespace(raw_date)
    if not cleaned or not _ISO_DATE_PREFIX.match(cleaned):
        return cleaned
    try:
        return dateutil_parser.isoparse(cleaned).date().isoformat()
    except (ValueError, OverflowError):
        return cleaned
