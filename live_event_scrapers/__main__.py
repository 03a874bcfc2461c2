import logging
import sys

from live_event_scrapers.cli import main

exit_code = main()
logging.shutdown()
sys.exit(exit_code)
