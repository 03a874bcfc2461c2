"""
Incremental-load controller for listing pages that reveal more entries each
time a "load more" control is clicked.

The controller is a small state machine::

    LOADING -> CHECK -> LOADING | DONE

LOADING looks for the control and clicks it, CHECK reads the latest date
marker on the page and decides whether the target date has been reached.
The page itself is reached through a ``LoadMoreDriver`` so the same loop runs
against Playwright or a synthetic page.
"""
import enum
import logging
import re
from datetime import date
from typing import Any, List, Optional, Protocol, Tuple

from pydantic import BaseModel

from live_event_scrapers.extraction import patterns

logger = logging.getLogger(__name__)

LOAD_MORE_PHRASES = ("view more", "load more", "show more", "see more")
DEFAULT_MAX_CLICKS = 20


class LoadPhase(str, enum.Enum):
    LOADING = "loading"
    CHECK = "check"
    DONE = "done"


class StopReason(str, enum.Enum):
    EXHAUSTED = "exhausted"
    TARGET_REACHED = "target_reached"
    CLICK_CAP = "click_cap"
    LOADER_ERROR = "loader_error"


class LoadState(BaseModel):
    clicks_performed: int = 0
    last_observed_date_marker: Optional[str] = None
    done: bool = False
    phase: LoadPhase = LoadPhase.LOADING
    stop_reason: Optional[StopReason] = None

    def finish(self, reason: StopReason) -> None:
        self.phase = LoadPhase.DONE
        self.done = True
        self.stop_reason = reason


class LoadMoreDriver(Protocol):
    def find_load_more(self) -> Optional[Any]:
        ...

    def click(self, control: Any) -> None:
        ...

    def settle(self, seconds: float) -> None:
        ...

    def section_headings(self, selector: str) -> List[str]:
        ...

    def body_text(self) -> str:
        ...


class PlaywrightLoadMoreDriver:
    """LoadMoreDriver over a Playwright sync ``Page``."""

    def __init__(self, page, click_timeout_ms: int = 10000):
        self.page = page
        self.click_timeout_ms = click_timeout_ms
        self._phrase_pattern = re.compile("|".join(re.escape(p) for p in LOAD_MORE_PHRASES), re.IGNORECASE)

    def find_load_more(self):
        candidates = self.page.locator("button, a").filter(has_text=self._phrase_pattern)
        if candidates.count() == 0:
            return None
        return candidates.first

    def click(self, control) -> None:
        control.scroll_into_view_if_needed(timeout=self.click_timeout_ms)
        control.click(timeout=self.click_timeout_ms)

    def settle(self, seconds: float) -> None:
        self.page.wait_for_timeout(int(seconds * 1000))

    def section_headings(self, selector: str) -> List[str]:
        return self.page.locator(selector).all_inner_texts()

    def body_text(self) -> str:
        return self.page.inner_text("body")


def latest_date_marker(headings: List[str], body_text: str) -> Optional[str]:
    """
    The last section heading that names a month; failing that, the last
    weekday-prefixed date in the body text.
    """
    for heading in reversed(headings):
        if heading and patterns.MONTH_NAME.search(heading):
            return heading.strip()

    last_match: Optional[Tuple[int, str]] = None
    for pattern in patterns.WEEKDAY_DATE_PATTERNS:
        for match in pattern.finditer(body_text or ""):
            if last_match is None or match.start() > last_match[0]:
                last_match = (match.start(), match.group(0).strip())
    return last_match[1] if last_match else None


def marker_reaches_target(marker: Optional[str], target_date: date) -> bool:
    """Month/day comparison only; the marker carries no year."""
    observed = patterns.month_day(marker)
    if observed is None:
        return False
    return observed >= (target_date.month, target_date.day)


class LoadMoreController:
    def __init__(
        self,
        driver: LoadMoreDriver,
        target_date: Optional[date] = None,
        max_clicks: int = DEFAULT_MAX_CLICKS,
        settle_sec: float = 3.0,
        heading_selector: str = "h2",
    ):
        self.driver = driver
        self.target_date = target_date
        self.max_clicks = max_clicks
        self.settle_sec = settle_sec
        self.heading_selector = heading_selector

    def run(self) -> LoadState:
        state = LoadState()
        logger.info(
            f"Loading more entries (target date: {self.target_date or 'none'}, max clicks: {self.max_clicks})"
        )
        while not state.done:
            if state.phase is LoadPhase.LOADING:
                self._load(state)
            elif state.phase is LoadPhase.CHECK:
                self._check(state)
        logger.info(
            f"Load-more finished after {state.clicks_performed} clicks: {state.stop_reason.value} "
            f"(last date marker: {state.last_observed_date_marker!r})"
        )
        return state

    def _load(self, state: LoadState) -> None:
        try:
            control = self.driver.find_load_more()
            if control is None:
                logger.info("No 'load more' control left on the page.")
                state.finish(StopReason.EXHAUSTED)
                return
            self.driver.click(control)
            state.clicks_performed += 1
            self.driver.settle(self.settle_sec)
        except Exception as e:
            logger.warning(f"Load-more interaction failed after {state.clicks_performed} clicks: {e}")
            state.finish(StopReason.LOADER_ERROR)
            return

        logger.debug(f"Clicked 'load more' ({state.clicks_performed}/{self.max_clicks})")
        state.phase = LoadPhase.CHECK

    def _check(self, state: LoadState) -> None:
        try:
            marker = latest_date_marker(
                self.driver.section_headings(self.heading_selector),
                self.driver.body_text(),
            )
        except Exception as e:
            logger.debug(f"Could not read date markers: {e}")
            marker = None

        if marker:
            state.last_observed_date_marker = marker
        if self.target_date and marker_reaches_target(state.last_observed_date_marker, self.target_date):
            logger.info(f"Reached target date {self.target_date} at marker '{state.last_observed_date_marker}'")
            state.finish(StopReason.TARGET_REACHED)
            return
        if state.clicks_performed >= self.max_clicks:
            logger.warning(
                f"Stopped loading after {state.clicks_performed} clicks without reaching "
                f"target {self.target_date or '(none)'}; the listing may be incomplete."
            )
            state.finish(StopReason.CLICK_CAP)
            return
        state.phase = LoadPhase.LOADING
