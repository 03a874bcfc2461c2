from datetime import date
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field, AliasChoices, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalScraperSettings(BaseSettings):
    """Browser and page-load settings shared by every site."""
    default_user_agent: str = Field(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_USER_AGENT', 'DEFAULT_USER_AGENT')
    )
    viewport_width: int = 1920
    viewport_height: int = 1080
    default_headless_browser: bool = Field(True, validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_HEADLESS_BROWSER', 'DEFAULT_HEADLESS_BROWSER'))
    page_load_timeout_ms: int = Field(60000, validation_alias=AliasChoices('SCRAPER_GLOBAL_PAGE_LOAD_TIMEOUT_MS', 'PAGE_LOAD_TIMEOUT_MS'))
    page_settle_sec: float = Field(3.0, description="Pause after navigation so client-rendered content can appear.")
    wait_until: str = Field("networkidle", description="Playwright load state awaited by page.goto.")
    extra_http_headers: Dict[str, str] = Field(default_factory=lambda: {
        "Accept-Language": "en-US,en;q=0.9",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    })

    model_config = SettingsConfigDict(
        env_prefix='SCRAPER_GLOBAL_',
        extra='ignore',
        populate_by_name=True
    )


class ListingRunSettings(BaseSettings):
    """Scope and load-more behaviour of a listing run."""
    site: str = Field("shotgun", description="Key of the site profile in sites.yaml.")
    city: Optional[str] = Field(None, description="City identifier as used in the site's URLs.")
    category: Optional[str] = Field(None, description="Category/genre scope identifier.")
    area: Optional[str] = Field(None, description="Area slug for area-scoped sites.")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_date: Optional[date] = Field(None, description="Stop clicking 'load more' once this month/day is visible.")
    max_load_more_clicks: int = Field(20, ge=1)
    load_more_settle_sec: float = Field(3.0, ge=0.0)
    date_heading_selector: str = "h2"

    model_config = SettingsConfigDict(
        env_prefix='LISTING_',
        extra='ignore',
        populate_by_name=True
    )


class DetailRunSettings(BaseSettings):
    """Settings for the detail-page enrichment run."""
    cooldown_sec: float = Field(2.0, ge=0.0, description="Pause between consecutive detail-page fetches.")
    max_entities: Optional[int] = Field(None, ge=1, description="Only enrich the first N listing records.")

    model_config = SettingsConfigDict(
        env_prefix='DETAIL_',
        extra='ignore',
        populate_by_name=True
    )


class FileOutputSettings(BaseSettings):
    """Settings for controlling file-based outputs."""
    base_output_directory: Path = Field(Path("output_data"), validation_alias=AliasChoices('FILE_OUTPUT_BASE_OUTPUT_DIRECTORY', 'BASE_OUTPUT_DIRECTORY'))
    log_output_directory: Path = Field(Path("scraper_logs"), validation_alias=AliasChoices('FILE_OUTPUT_LOG_OUTPUT_DIRECTORY', 'LOG_OUTPUT_DIRECTORY'))
    enable_csv_output: bool = Field(False, validation_alias=AliasChoices('FILE_OUTPUT_ENABLE_CSV_OUTPUT', 'ENABLE_CSV_OUTPUT'))
    enable_page_snapshots: bool = Field(True, validation_alias=AliasChoices('FILE_OUTPUT_ENABLE_PAGE_SNAPSHOTS', 'ENABLE_PAGE_SNAPSHOTS'))
    enable_file_logging: bool = True

    model_config = SettingsConfigDict(
        env_prefix='FILE_OUTPUT_',
        extra='ignore',
        populate_by_name=True
    )


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""
    dsn: Optional[HttpUrl] = Field(None, validation_alias=AliasChoices('SENTRY_DSN'))
    environment: Optional[str] = Field(None, description="Overrides main app environment for Sentry if needed.")
    traces_sample_rate: float = Field(0.0, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(
        env_prefix='SENTRY_',
        extra='ignore',
        populate_by_name=True
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field("development", validation_alias=AliasChoices('APP_ENV', 'ENVIRONMENT'))
    log_level: str = Field("INFO", validation_alias=AliasChoices('APP_LOG_LEVEL', 'LOG_LEVEL'))

    scraper_globals: GlobalScraperSettings = GlobalScraperSettings()
    listing: ListingRunSettings = ListingRunSettings()
    detail: DetailRunSettings = DetailRunSettings()
    file_outputs: FileOutputSettings = FileOutputSettings()
    sentry: SentrySettings = SentrySettings()

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_nested_delimiter='__',
        extra='ignore',
        populate_by_name=True
    )


settings = Settings()


def ensure_directories_exist(app_settings: Optional[Settings] = None) -> None:
    current = app_settings or settings
    for directory in (current.file_outputs.base_output_directory, current.file_outputs.log_output_directory):
        if directory and not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
