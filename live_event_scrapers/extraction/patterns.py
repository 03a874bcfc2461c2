import re
from typing import Optional, Tuple

MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
MONTH_WORD = r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?|Aug(?:ust)?|Sep(?:t(?:ember)?)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)"
MONTH_ALT = rf"{MONTH_WORD}\b\.?"
WEEKDAY_ALT = r"(?:Mon(?:day)?|Tue(?:s(?:day)?)?|Wed(?:nesday)?|Thu(?:r(?:s(?:day)?)?)?|Fri(?:day)?|Sat(?:urday)?|Sun(?:day)?)\b\.?"

TIME_OF_DAY = re.compile(r"\b\d{1,2}:\d{2}\s*(?:AM|PM)?", re.IGNORECASE)

# "Sat, Dec 6" / "Saturday December 6"
WEEKDAY_MONTH_DAY = re.compile(rf"\b{WEEKDAY_ALT},?\s+{MONTH_ALT}\s+\d{{1,2}}\b", re.IGNORECASE)
# "Mon 1 Dec" / "Mon, 1 December"
WEEKDAY_DAY_MONTH = re.compile(rf"\b{WEEKDAY_ALT},?\s+\d{{1,2}}\s+{MONTH_ALT}", re.IGNORECASE)
# "Dec 6-7"
MONTH_DAY_RANGE = re.compile(rf"\b{MONTH_ALT}\s*\d{{1,2}}\s*[–-]\s*\d{{1,2}}\b", re.IGNORECASE)
DAY_MONTH = re.compile(rf"\b\d{{1,2}}\s+{MONTH_ALT}", re.IGNORECASE)
MONTH_DAY = re.compile(rf"\b{MONTH_ALT}\s+\d{{1,2}}\b", re.IGNORECASE)
MONTH_NAME = re.compile(rf"\b{MONTH_ALT}", re.IGNORECASE)

CARD_DATE_PATTERNS = (WEEKDAY_MONTH_DAY, WEEKDAY_DAY_MONTH, MONTH_DAY_RANGE, DAY_MONTH)
WEEKDAY_DATE_PATTERNS = (WEEKDAY_MONTH_DAY, WEEKDAY_DAY_MONTH)

PRICE_PATTERNS = (
    re.compile(r"From\s+[$€£]\s?\d+(?:[.,]\d{1,2})?", re.IGNORECASE),
    re.compile(r"[$€£]\s?\d+(?:[.,]\d{1,2})?"),
    re.compile(r"\bSold out\b", re.IGNORECASE),
    re.compile(r"\bFree\b", re.IGNORECASE),
)
PRICE_IN_TEXT = re.compile(r"[$€£]\s?[\d.,]+|\b\d+\.\d{2}\b")

_MONTH_DAY_CAPTURE = re.compile(rf"\b(?P<month>{MONTH_WORD})\b\.?\s+(?P<day>\d{{1,2}})\b", re.IGNORECASE)
_DAY_MONTH_CAPTURE = re.compile(rf"\b(?P<day>\d{{1,2}})\s+(?P<month>{MONTH_WORD})\b", re.IGNORECASE)


def month_day(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """(month, day) of the first "Dec 6" or "6 Dec" style date in text."""
    if not text:
        return None
    for pattern in (_MONTH_DAY_CAPTURE, _DAY_MONTH_CAPTURE):
        match = pattern.search(text)
        if match:
            day = int(match.group("day"))
            if 1 <= day <= 31:
                return MONTHS.index(match.group("month")[:3].lower()) + 1, day
    return None


def first_match(patterns, text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return None
