import csv
import json
import logging
import re
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from live_event_scrapers.config import settings
from live_event_scrapers.exceptions import WorklistMissingError
from live_event_scrapers.extraction.snapshot import PageSnapshot
from live_event_scrapers.models import ListingRecord

# --- Logger Setup ---
_loggers: Dict[str, logging.Logger] = {}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


def setup_logger(logger_name: str, log_file_prefix: str, level: int = logging.INFO) -> logging.Logger:
    """Configures and returns a logger that outputs to console and a timestamped file."""
    if logger_name in _loggers:
        return _loggers[logger_name]

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if settings.file_outputs.enable_file_logging:
        log_dir = settings.file_outputs.log_output_directory
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file_path = log_dir / f"{log_file_prefix}_{timestamp}.log"
            fh = logging.FileHandler(log_file_path, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError as e:
            logger.error(f"Failed to create file handler for logger {logger_name} at {log_dir}: {e}", exc_info=True)

    _loggers[logger_name] = logger
    logger.info(f"Logger '{logger_name}' initialized.")
    return logger


logger = logging.getLogger(__name__)


# --- Output locations ---

def site_output_dir(site: str, base_dir: Optional[Path] = None) -> Path:
    return Path(base_dir or settings.file_outputs.base_output_directory) / site


def listings_path(site: str, base_dir: Optional[Path] = None) -> Path:
    return site_output_dir(site, base_dir) / f"{site}_listings.json"


def enriched_path(site: str, base_dir: Optional[Path] = None) -> Path:
    return site_output_dir(site, base_dir) / f"{site}_enriched.jsonl"


def snapshots_dir(site: str, base_dir: Optional[Path] = None) -> Path:
    return site_output_dir(site, base_dir) / "snapshots"


_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(identity: str, max_length: int = 150) -> str:
    """Filesystem-safe stem derived from a record identity (often a URL)."""
    stem = re.sub(r"^https?://", "", identity or "")
    stem = _UNSAFE_FILENAME_CHARS.sub("_", stem).strip("._")
    return stem[:max_length] or "unnamed"


def _serialize_item(item: Any) -> Any:
    """Helper to serialize complex types within data for file outputs."""
    if isinstance(item, (datetime, date, time)):
        return item.isoformat()
    if isinstance(item, Path):
        return str(item)
    if isinstance(item, (list, dict, tuple)):
        try:
            return json.dumps(item, default=_serialize_item, ensure_ascii=False)
        except TypeError:
            return str(item)
    return item


# --- Listing worklist ---

def save_listings_json(records: List[ListingRecord], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [record.model_dump(mode="json") for record in records]
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=4, ensure_ascii=False)
    logger.info(f"Saved {len(records)} listing records to {path}")
    return path


def load_listings_json(path: Path) -> List[ListingRecord]:
    """Reads a listing worklist. Anything other than a readable JSON array raises WorklistMissingError."""
    if not path.is_file():
        raise WorklistMissingError(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise WorklistMissingError(path, f"unreadable: {e}") from e
    if not isinstance(payload, list):
        raise WorklistMissingError(path, "expected a JSON array of listing records")

    records: List[ListingRecord] = []
    for index, raw in enumerate(payload):
        try:
            records.append(ListingRecord.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping invalid listing record #{index} in {path}: {e.error_count()} validation errors")
    logger.info(f"Loaded {len(records)} listing records from {path}")
    return records


# --- Per-entity sinks ---

def append_jsonl(record: BaseModel, path: Path) -> None:
    """Appends one record as a JSON line and flushes it to disk immediately."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'a', encoding='utf-8') as f:
        f.write(record.model_dump_json() + "\n")
        f.flush()


def save_snapshot_html(snapshot: PageSnapshot, identity: str, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    filepath = directory / f"{safe_filename(identity)}.html"
    filepath.write_text(snapshot.html or "", encoding="utf-8")
    logger.debug(f"Saved page snapshot for {identity} to {filepath}")
    return filepath


def save_to_csv_file(rows: Iterable[Dict[str, Any]], path: Path) -> Optional[Path]:
    processed_list = []
    all_headers = set()
    for item in rows:
        processed_item = {k: _serialize_item(v) for k, v in item.items()}
        all_headers.update(processed_item.keys())
        processed_list.append(processed_item)

    if not processed_list:
        logger.info(f"No rows to save to CSV at {path}.")
        return None

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=sorted(all_headers), extrasaction='ignore')
        writer.writeheader()
        writer.writerows(processed_list)
    logger.info(f"Data successfully saved to CSV file: {path}")
    return path
