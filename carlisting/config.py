"""Centralised settings for the carlisting backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

DEFAULT_BASE_URL = "https://www.bytbil.com"


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("CARLISTING_WORKSPACE", Path.home() / ".carlisting_data")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite database file."""
        return self.workspace_dir / "listings.db"

    @property
    def media_dir(self) -> Path:
        """Directory that downloaded listing images are written to."""
        return self.workspace_dir / "media"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Source site
    # ------------------------------------------------------------------
    base_url: str = field(
        default_factory=lambda: os.environ.get("SOURCE_BASE_URL", DEFAULT_BASE_URL)
    )
    store_path: str = field(
        default_factory=lambda: os.environ.get(
            "SOURCE_STORE_PATH", "/handlare/ekenbil-ab-9951"
        )
    )
    selector_item_links: str = field(
        default_factory=lambda: os.environ.get(
            "SELECTOR_ITEM_LINKS",
            "ul.result-list li .uk-width-1-1 .car-list-header a",
        )
    )
    selector_pagination: str = field(
        default_factory=lambda: os.environ.get(
            "SELECTOR_PAGINATION", "div.pagination-container a.pagination-page"
        )
    )

    # ------------------------------------------------------------------
    # Scraper
    # ------------------------------------------------------------------
    retry_count: int = field(
        default_factory=lambda: int(os.environ.get("RETRY_COUNT", "2"))
    )
    retry_delay: float = field(
        default_factory=lambda: float(os.environ.get("RETRY_DELAY", "1"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "30.0"))
    )
    batch_size: int = field(
        default_factory=lambda: int(os.environ.get("BATCH_SIZE", "5"))
    )

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------
    download_images: bool = field(
        default_factory=lambda: _env_bool("DOWNLOAD_IMAGES", "true")
    )
    listing_status_term: str = field(
        default_factory=lambda: os.environ.get("LISTING_STATUS_TERM", "Begagnad")
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    debug_mode: bool = field(
        default_factory=lambda: _env_bool("DEBUG_MODE", "false")
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )
    log_file: Path | None = field(
        default_factory=lambda: (
            Path(os.environ["LOG_FILE"]) if os.environ.get("LOG_FILE") else None
        )
    )

    @property
    def store_url(self) -> str:
        """Listing root URL: the dealer page on the source site."""
        return self.base_url.rstrip("/") + self.store_path

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level

    def ensure_workspace(self) -> None:
        """Create the workspace (and media) directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)
        self.media_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton. Import it everywhere:
#   from carlisting.config import settings
settings = Settings()
