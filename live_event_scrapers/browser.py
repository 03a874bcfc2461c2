import logging
from typing import Optional

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright_stealth import stealth_sync

from live_event_scrapers.config import GlobalScraperSettings, settings
from live_event_scrapers.exceptions import PageLoadError
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.load_more import PlaywrightLoadMoreDriver

logger = logging.getLogger(__name__)

LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-blink-features=AutomationControlled"]


class BrowserSession:
    """
    One headless browser and one page, owned for the duration of a ``with``
    block and released on every exit path.
    """

    def __init__(self, scraper_settings: Optional[GlobalScraperSettings] = None, headless: Optional[bool] = None):
        self.settings = scraper_settings or settings.scraper_globals
        self.headless = self.settings.default_headless_browser if headless is None else headless

        self.playwright_instance: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def __enter__(self):
        logger.info("Starting Playwright...")
        self.playwright_instance = sync_playwright().start()
        try:
            self.browser = self.playwright_instance.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
            self.context = self.browser.new_context(
                user_agent=self.settings.default_user_agent,
                viewport={"width": self.settings.viewport_width, "height": self.settings.viewport_height},
                extra_http_headers=self.settings.extra_http_headers,
            )
            self.page = self.context.new_page()
            stealth_sync(self.page)
            logger.info(f"Playwright browser launched (headless: {self.headless}).")
        except Exception as e:
            logger.critical(f"Browser launch failed: {e}", exc_info=True)
            self._close()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._close()

    def _close(self) -> None:
        logger.info("Closing Playwright resources...")
        if self.page and not self.page.is_closed():
            try:
                self.page.close()
            except Exception as e:
                logger.error(f"Page close error: {e}", exc_info=True)
        if self.context:
            try:
                self.context.close()
            except Exception as e:
                logger.error(f"Browser context close error: {e}", exc_info=True)
        if self.browser and self.browser.is_connected():
            try:
                self.browser.close()
            except Exception as e:
                logger.error(f"Browser close error: {e}", exc_info=True)
        if self.playwright_instance:
            try:
                self.playwright_instance.stop()
            except Exception as e:
                logger.error(f"Playwright stop error: {e}", exc_info=True)
        self.page = self.context = self.browser = self.playwright_instance = None
        logger.info("Playwright resources cleaned.")

    def _require_page(self) -> Page:
        if self.page is None:
            raise RuntimeError("BrowserSession is not open; use it as a context manager.")
        return self.page

    def open(self, url: str) -> None:
        """Navigates to url and waits the settle delay. Load failures raise PageLoadError."""
        page = self._require_page()
        logger.info(f"Navigating to: {url}")
        try:
            response = page.goto(url, wait_until=self.settings.wait_until, timeout=self.settings.page_load_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise PageLoadError(url, f"timed out after {self.settings.page_load_timeout_ms} ms", timed_out=True) from e
        except PlaywrightError as e:
            raise PageLoadError(url, str(e)) from e

        if response is not None and response.status >= 400:
            logger.warning(f"{url} answered with HTTP {response.status}")
        page.wait_for_timeout(int(self.settings.page_settle_sec * 1000))

    def snapshot(self) -> PageSnapshot:
        page = self._require_page()
        try:
            return PageSnapshot(url=page.url, html=page.content())
        except PlaywrightError as e:
            raise PageLoadError(page.url, f"could not read page content: {e}") from e

    def fetch_snapshot(self, url: str) -> PageSnapshot:
        self.open(url)
        return self.snapshot()

    def load_more_driver(self) -> PlaywrightLoadMoreDriver:
        return PlaywrightLoadMoreDriver(self._require_page())
