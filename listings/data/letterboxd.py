"""Resolve Letterboxd film pages for TMDB movies and scrape their ratings."""

from __future__ import annotations

import json
import math
import random
import re
import time
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote, urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from listings.config import LETTERBOXD_BASE_URL, LETTERBOXD_SEARCH_LIMIT, REQUEST_DELAY
from listings.data.titles import extract_year_hint, normalize_title

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
                  "AppleWebKit/537.36 (KHTML, like Gecko) "
                  "Chrome/124.0.0.0 Safari/537.36",
    "Accept-Language": "en-GB,en;q=0.9",
}

VERIFIED = "verified"
UNVERIFIED = "unverified"

MIN_RATING = 0.0
MAX_RATING = 5.0


@dataclass(frozen=True)
class Resolution:
    """A Letterboxd URL for a TMDB movie and how much it can be trusted.

    ``unverified`` means the page was the first search hit but never showed
    a link back to the TMDB id.
    """

    url: str
    confidence: str = VERIFIED

    @property
    def verified(self) -> bool:
        return self.confidence == VERIFIED


class UrlCache:
    """tmdb_id -> Letterboxd URL resolutions, persisted as one JSON file.

    Entries look like ``{"url": ..., "updatedAt": ..., "verified": bool}``.
    The file is read once and rewritten whole on ``save()``.
    """

    def __init__(self, path: Path | None = None, entries: dict | None = None):
        self.path = path
        self.entries: dict[str, dict] = dict(entries or {})
        self.dirty = False

    @classmethod
    def load(cls, path: Path) -> "UrlCache":
        """Load the cache from disk; a missing or corrupt file starts empty."""
        if not path.exists():
            return cls(path)
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"  Letterboxd cache at {path} unreadable ({e}); starting empty")
            return cls(path)
        return cls(path, data if isinstance(data, dict) else {})

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, tmdb_id) -> bool:
        return self.get(tmdb_id) is not None

    def get(self, tmdb_id) -> Resolution | None:
        entry = self.entries.get(str(tmdb_id))
        if not isinstance(entry, dict) or not entry.get("url"):
            return None
        # entries written before the flag existed are not trusted
        confidence = VERIFIED if entry.get("verified") else UNVERIFIED
        return Resolution(entry["url"], confidence)

    def put(self, tmdb_id, resolution: Resolution) -> None:
        self.entries[str(tmdb_id)] = {
            "url": resolution.url,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
            "verified": resolution.verified,
        }
        self.dirty = True

    def save(self) -> None:
        """Rewrite the cache file."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self.entries, f, indent=2)
        self.dirty = False


def _pause() -> None:
    time.sleep(random.uniform(*REQUEST_DELAY))


def fetch_page(url: str) -> str | None:
    """GET a Letterboxd page; None on network error or non-200."""
    try:
        resp = requests.get(url, headers=HEADERS, timeout=15)
    except requests.RequestException as e:
        print(f"  Letterboxd: GET {url} failed: {e}")
        return None
    if resp.status_code != 200:
        print(f"  Letterboxd: GET {url} failed: HTTP {resp.status_code}")
        return None
    return resp.text


def film_url(slug: str) -> str:
    return f"{LETTERBOXD_BASE_URL}/film/{slug}/"


def slugify(text: str) -> str:
    """Convert a movie title to a Letterboxd-style slug."""
    if not text:
        return ""
    s = unicodedata.normalize("NFKD", text)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.replace("&", " and ").replace("+", " plus ")
    # Remove apostrophes/quotes
    s = re.sub(r"[\"'`’‘]", "", s)
    # Replace non-alphanumeric with hyphens
    s = re.sub(r"[^a-zA-Z0-9]+", "-", s)
    return s.strip("-").lower()


def slug_candidates(title: str, year: int | None = None) -> list[str]:
    """Slugs worth trying for a title, most likely first.

    Letterboxd suffixes the year when a title is taken ("the-color-purple"
    vs "the-color-purple-2023"), and is inconsistent about "&".
    """
    slugs: list[str] = []

    def push(slug: str) -> None:
        if slug and slug not in slugs:
            slugs.append(slug)

    base = slugify(title)
    push(base)
    if year and base:
        push(f"{base}-{year}")
    if "&" in title:
        for variant in (title.replace("&", " "), re.sub(r"\b(?:and)\b|&", " ", title, flags=re.IGNORECASE)):
            slug = slugify(variant)
            push(slug)
            if year and slug:
                push(f"{slug}-{year}")
    return slugs


def page_has_tmdb_id(html: str, tmdb_id) -> bool:
    """Does a film page link back to this TMDB movie?"""
    tid = re.escape(str(tmdb_id))
    return bool(
        re.search(rf"themoviedb\.org/movie/{tid}(?:[^\d]|$)", html)
        or re.search(rf"data-tmdb-id=[\"']{tid}[\"']", html)
    )


def search_letterboxd(query: str, limit: int = 10) -> list[str]:
    """Film page URLs from Letterboxd's search, in result order."""
    html = fetch_page(f"{LETTERBOXD_BASE_URL}/search/films/{quote(query, safe='')}/")
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    urls: list[str] = []
    for a in soup.find_all("a", href=True):
        path = urlparse(a["href"]).path
        m = re.match(r"^/film/([^/]+)/?", path)
        if not m:
            continue
        url = urljoin(LETTERBOXD_BASE_URL, f"/film/{m.group(1)}/")
        if url not in urls:
            urls.append(url)
        if len(urls) >= limit:
            break
    return urls


def _verified(url: str, tmdb_id) -> bool:
    html = fetch_page(url)
    _pause()
    return bool(html) and page_has_tmdb_id(html, tmdb_id)


def _remember(cache: UrlCache, tmdb_id, resolution: Resolution) -> Resolution:
    cache.put(tmdb_id, resolution)
    return resolution


def resolve_letterboxd_url(
    cache: UrlCache,
    tmdb_id,
    title: str,
    release_date: str | None = None,
    website_year: int | None = None,
) -> Resolution | None:
    """Resolve the Letterboxd film URL for a TMDB movie.

    Order: cache, slug guesses verified against the TMDB id, search results
    verified the same way, then the first search result unverified. Every
    resolution is written to ``cache`` (not saved) before returning.
    """
    cached = cache.get(tmdb_id)
    if cached:
        return cached

    norm_title = normalize_title(title)
    year = extract_year_hint(title, release_date, website_year)

    for slug in slug_candidates(norm_title, year):
        url = film_url(slug)
        if _verified(url, tmdb_id):
            return _remember(cache, tmdb_id, Resolution(url, VERIFIED))

    query = " ".join(str(p) for p in (norm_title, year) if p)
    if not query:
        return None
    results = search_letterboxd(query)
    _pause()
    for url in results[:LETTERBOXD_SEARCH_LIMIT]:
        if _verified(url, tmdb_id):
            return _remember(cache, tmdb_id, Resolution(url, VERIFIED))

    if results:
        return _remember(cache, tmdb_id, Resolution(results[0], UNVERIFIED))
    return None


def _in_range(value) -> float | None:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    if math.isfinite(n) and MIN_RATING <= n <= MAX_RATING:
        return n
    return None


def parse_ld_rating(html: str) -> float | None:
    """aggregateRating.ratingValue from the page's JSON-LD, if in range."""
    soup = BeautifulSoup(html, "html.parser")
    for script in soup.find_all("script", type="application/ld+json"):
        text = (script.string or script.get_text() or "").strip()
        # Letterboxd wraps JSON-LD in CDATA comments
        text = re.sub(r"^\s*/\*\s*<!\[CDATA\[\s*\*/", "", text)
        text = re.sub(r"/\*\s*\]\]>\s*\*/\s*$", "", text).strip()
        if not text.startswith(("{", "[")):
            start, end = text.find("{"), text.rfind("}")
            if start == -1 or end <= start:
                continue
            text = text[start:end + 1]
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            continue
        for obj in data if isinstance(data, list) else [data]:
            agg = obj.get("aggregateRating") if isinstance(obj, dict) else None
            if isinstance(agg, dict) and "ratingValue" in agg:
                rating = _in_range(agg["ratingValue"])
                if rating is not None:
                    return rating
    return None


def parse_meta_rating(html: str) -> float | None:
    """Rating from the ``twitter:data2`` meta tag ("3.91 out of 5")."""
    soup = BeautifulSoup(html, "html.parser")
    meta = soup.find("meta", attrs={"name": "twitter:data2"})
    if not meta:
        return None
    m = re.match(r"^\s*([0-9]+(?:\.[0-9]+)?)\s*out\s*of\s*5\b", meta.get("content", ""), re.IGNORECASE)
    return _in_range(m.group(1)) if m else None


def fetch_letterboxd_rating(url: str | None) -> float | None:
    """Fetch the Letterboxd community average rating from a film page.

    Returns rating (0.0-5.0) or None if not found. Never raises.
    """
    if not url or "/search/" in url:
        return None  # search fallback URL, can't scrape

    html = fetch_page(url)
    if not html:
        return None
    rating = parse_ld_rating(html)
    if rating is None:
        rating = parse_meta_rating(html)
    return rating
