"""Constants and paths for the cinema listings enrichment pipeline."""

import os
import re
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class ConfigError(RuntimeError):
    """A required credential or connection setting is missing."""


# ── Paths ────────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
LISTINGS_PATH = DATA_DIR / "listings.json"
LETTERBOXD_CACHE_PATH = DATA_DIR / "letterboxd-cache.json"

# ── TMDB ─────────────────────────────────────────────────────────────────────
TMDB_API_KEY = os.getenv("TMDB_API_KEY", "")
TMDB_BASE_URL = "https://api.themoviedb.org/3"
TMDB_LANGUAGE = "en-GB"
TMDB_REGION = "GB"
DIRECTOR_CHECK_LIMIT = 20  # candidates whose credits are fetched for director matching
TMDB_REQUEST_DELAY = 0.05  # ~20 req/sec, well under TMDB's 40/sec limit

# ── Letterboxd ───────────────────────────────────────────────────────────────
LETTERBOXD_BASE_URL = "https://letterboxd.com"
LETTERBOXD_SEARCH_LIMIT = 5  # search results fetched and verified per film

# ── OMDb ─────────────────────────────────────────────────────────────────────
OMDB_API_KEY = os.getenv("OMDB_API_KEY", "")
OMDB_BASE_URL = "https://www.omdbapi.com/"

# ── Database ─────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv("DATABASE_URL", "")
DEFAULT_CHUNK_SIZE = 100

# ── Politeness ───────────────────────────────────────────────────────────────
REQUEST_DELAY = (0.8, 1.3)  # seconds, randomized between outbound requests
CHUNK_DELAY = 1.0


def sanitize_table_name(name: str | None, fallback: str = "listings") -> str:
    """Only allow plain identifiers so the name is safe to interpolate."""
    if not name:
        return fallback
    return name if re.fullmatch(r"[A-Za-z0-9_]+", name) else fallback


LISTINGS_TABLE = sanitize_table_name(os.getenv("LISTINGS_TABLE"))


def require_setting(name: str) -> str:
    """Return a required environment setting or abort the run.

    Raises:
        ConfigError: if the setting is unset or blank.
    """
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(
            f"{name} is not set. Set it as an environment variable "
            f"or add {name}=... to a .env file."
        )
    return value
