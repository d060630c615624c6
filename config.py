from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_APP_DIR = Path.home() / ".book_catalog"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _env_path(name: str, default: Path) -> Path:
    value = os.getenv(name)
    return Path(value).expanduser() if value else default


def _env_str(name: str, default: str) -> str:
    return os.getenv(name) or default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: expected a whole number, using %s", name, value, default)
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring %s=%r: expected a number, using %s", name, value, default)
        return default


@dataclass
class Settings:
    # Storage
    app_dir: Path = field(default_factory=lambda: _env_path("BOOK_CATALOG_HOME", DEFAULT_APP_DIR))
    db_path: Optional[Path] = None
    contacts_path: Optional[Path] = None

    # Derived views
    older_than_years: int = field(default_factory=lambda: _env_int("BOOK_CATALOG_OLDER_THAN", 10))
    contact_suffix: str = field(default_factory=lambda: _env_str("BOOK_CATALOG_CONTACT_SUFFIX", "ко"))

    # External services
    geocoder_url: str = field(
        default_factory=lambda: _env_str("GEOCODER_URL", "https://nominatim.openstreetmap.org/search")
    )
    router_url: str = field(
        default_factory=lambda: _env_str("ROUTER_URL", "https://router.project-osrm.org/route/v1")
    )
    tile_url: str = field(
        default_factory=lambda: _env_str("TILE_URL", "https://tile.openstreetmap.org/{z}/{x}/{y}.png")
    )
    http_timeout: float = field(default_factory=lambda: _env_float("HTTP_TIMEOUT", 15.0))
    user_agent: str = field(
        default_factory=lambda: _env_str("USER_AGENT", "book-catalog/0.1 (personal catalog)")
    )

    log_level: str = field(default_factory=lambda: _env_str("LOG_LEVEL", "INFO"))

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _env_path("BOOK_CATALOG_DB", self.app_dir / "books.sqlite3")
        if self.contacts_path is None:
            self.contacts_path = _env_path("BOOK_CATALOG_CONTACTS", self.app_dir / "contacts.vcf")

    @property
    def tiles_dir(self) -> Path:
        return self.app_dir / "tiles"

    @property
    def request_headers(self) -> dict:
        # Nominatim and the OSM tile servers reject requests without a User-Agent.
        return {"User-Agent": self.user_agent}

    def ensure_dirs(self) -> None:
        self.app_dir.mkdir(parents=True, exist_ok=True)
        self.tiles_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for the desktop app, server and CLI."""
    name = (level or get_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)
