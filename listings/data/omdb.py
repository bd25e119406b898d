"""OMDb lookups for Rotten Tomatoes scores."""

from __future__ import annotations

import re
import time

import requests

from listings.config import OMDB_API_KEY, OMDB_BASE_URL, TMDB_REQUEST_DELAY
from listings.data.records import ScreeningRecord
from listings.data.titles import normalize_title


def fetch_rotten_tomatoes(
    imdb_id: str | None = None,
    title: str | None = None,
    api_key: str = OMDB_API_KEY,
) -> int | None:
    """Rotten Tomatoes percentage for a film, by IMDb id or else by title.

    Returns None when OMDb has no score or the request fails.
    """
    params = {"apikey": api_key, "tomatoes": "true"}
    if imdb_id:
        params["i"] = imdb_id
    elif title:
        params["t"] = title
    else:
        return None

    try:
        resp = requests.get(OMDB_BASE_URL, params=params, timeout=15)
        if resp.status_code != 200:
            return None
        data = resp.json()
    except (requests.RequestException, ValueError):
        return None

    for rating in data.get("Ratings") or []:
        if rating.get("Source") != "Rotten Tomatoes":
            continue
        m = re.fullmatch(r"\s*(\d{1,3})%\s*", str(rating.get("Value", "")))
        if m and int(m.group(1)) <= 100:
            return int(m.group(1))
    return None


def enrich_with_omdb(records: list[ScreeningRecord], api_key: str | None = None) -> int:
    """Fill rotten_tomatoes_pct in place, one OMDb request per distinct film.

    Skipped entirely when no OMDb key is configured. Returns the number of
    listings that gained a score.
    """
    api_key = OMDB_API_KEY if api_key is None else api_key
    if not api_key:
        print("No OMDB_API_KEY set; skipping OMDb enrichment")
        return 0

    scores: dict[tuple, int | None] = {}
    filled = 0
    for record in records:
        if record.rotten_tomatoes_pct is not None:
            continue
        title = normalize_title(record.film_title)
        key = ("imdb", record.imdb_id) if record.imdb_id else ("title", title.casefold())
        if key not in scores:
            scores[key] = fetch_rotten_tomatoes(record.imdb_id, title, api_key=api_key)
            time.sleep(TMDB_REQUEST_DELAY)
        if scores[key] is not None:
            record.rotten_tomatoes_pct = scores[key]
            filled += 1

    print(f"Rotten Tomatoes scores for {filled} listing(s) ({len(scores)} OMDb lookups)")
    return filled
