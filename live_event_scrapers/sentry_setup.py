import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from live_event_scrapers import __version__
from live_event_scrapers.config import settings

logger = logging.getLogger(__name__)


def init_sentry(site: Optional[str] = None, command: Optional[str] = None) -> bool:
    """
    Initializes the Sentry SDK when SENTRY_DSN is set. ERROR log records
    become Sentry events; INFO and above are kept as breadcrumbs. The site
    and command of the current run are attached as tags.
    """
    sentry_settings = settings.sentry
    if not sentry_settings.dsn:
        logger.info("Sentry DSN not found in settings. Sentry SDK will not be initialized.")
        return False

    environment = sentry_settings.environment or settings.environment
    try:
        sentry_sdk.init(
            dsn=str(sentry_settings.dsn),
            environment=environment,
            release=f"live-event-scrapers@{__version__}",
            traces_sample_rate=sentry_settings.traces_sample_rate,
            integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry SDK: {e}", exc_info=True)
        return False

    if site:
        sentry_sdk.set_tag("site", site)
    if command:
        sentry_sdk.set_tag("command", command)
    logger.info(f"Sentry SDK initialized for environment '{environment}'.")
    return True
