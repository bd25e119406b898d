"""TMDB API client for resolving cinema listings to canonical movies."""

from __future__ import annotations

import time

import requests

from listings.config import (
    DIRECTOR_CHECK_LIMIT,
    TMDB_API_KEY,
    TMDB_BASE_URL,
    TMDB_LANGUAGE,
    TMDB_REQUEST_DELAY,
)
from listings.data.disambiguate import normalize_person, select_candidate
from listings.data.records import CanonicalCandidate, ResolvedIdentity, ScreeningRecord
from listings.data.titles import normalize_for_compare, normalize_title


def _tmdb_get(endpoint: str, params: dict | None = None) -> dict:
    """Make a GET request to TMDB API."""
    url = f"{TMDB_BASE_URL}{endpoint}"
    default_params = {"api_key": TMDB_API_KEY}
    if params:
        default_params.update(params)
    resp = requests.get(url, params=default_params, timeout=30)
    resp.raise_for_status()
    return resp.json()


def _search(title: str, year: int | None) -> list[CanonicalCandidate]:
    params = {"query": title, "include_adult": "false", "language": TMDB_LANGUAGE}
    if year:
        params["year"] = str(year)
    data = _tmdb_get("/search/movie", params)
    return [CanonicalCandidate.from_tmdb(r) for r in data.get("results", []) if r.get("id")]


def search_movie(title: str, year: int | None = None) -> list[CanonicalCandidate]:
    """Search TMDB for a movie by title and optional year.

    Venue years are often wrong (re-release dates, festival years), so an
    empty year-filtered search is retried without the filter. Results keep
    TMDB's relevance order. Returns an empty list on HTTP failure.
    """
    try:
        results = _search(title, year)
        if not results and year:
            # Retry without year filter
            results = _search(title, None)
    except (requests.RequestException, ValueError) as e:
        print(f"  TMDB: search failed for '{title}' ({year}): {e}")
        return []
    return results


def get_movie_details(tmdb_id: int, cache: dict | None = None) -> dict | None:
    """Fetch full movie details (credits, external ids) from TMDB.

    ``cache`` memoises responses for the current run, failures included.
    """
    if cache is not None and tmdb_id in cache:
        return cache[tmdb_id]

    try:
        details = _tmdb_get(f"/movie/{tmdb_id}", {"append_to_response": "credits,external_ids"})
    except (requests.RequestException, ValueError) as e:
        print(f"  TMDB: details failed for {tmdb_id}: {e}")
        details = None
    time.sleep(TMDB_REQUEST_DELAY)

    if cache is not None:
        cache[tmdb_id] = details
    return details


def get_directors(details: dict | None) -> list[str]:
    """Extract director(s) from credits."""
    if not details:
        return []
    return [
        crew["name"]
        for crew in details.get("credits", {}).get("crew", [])
        if crew.get("job") == "Director" and crew.get("name")
    ]


def credited_directors(
    candidates: list[CanonicalCandidate], cache: dict | None = None
) -> dict[int, list[str]]:
    """Credited directors for the top candidates, keyed by tmdb_id."""
    return {
        c.tmdb_id: get_directors(get_movie_details(c.tmdb_id, cache))
        for c in candidates[:DIRECTOR_CHECK_LIMIT]
    }


def resolve_identity(record: ScreeningRecord, cache: dict | None = None) -> ResolvedIdentity | None:
    """Search and disambiguate a single listing against TMDB.

    Returns None when nothing matches or when the venue's director rules
    out every candidate.
    """
    query = normalize_title(record.film_title)
    if not query:
        return None
    year = record.year_hint

    candidates = search_movie(query, year)
    if not candidates:
        print(f"  TMDB: No match for '{query}' ({year})")
        return None

    credited = credited_directors(candidates, cache) if record.director else None
    chosen = select_candidate(candidates, query, year, record.director, credited)
    if chosen is None:
        print(f"  TMDB: no candidate for '{query}' matches director '{record.director}'")
        return None

    details = get_movie_details(chosen.tmdb_id, cache)
    if not details:
        return None
    return ResolvedIdentity.from_details(details, get_directors(details))


def _lookup_key(record: ScreeningRecord) -> tuple:
    return (
        normalize_for_compare(normalize_title(record.film_title)),
        record.year_hint,
        normalize_person(record.director) if record.director else None,
    )


def enrich_records(records: list[ScreeningRecord], force: bool = False) -> int:
    """Resolve TMDB identities for a list of listings in place.

    Listings of the same film (same cleaned title, year hint and director)
    are looked up once. Records that already carry a tmdb_id are skipped
    unless ``force`` is set.

    Returns:
        Number of records bound to an identity in this run.
    """
    details_cache: dict[int, dict | None] = {}
    lookups: dict[tuple, ResolvedIdentity | None] = {}
    todo = [r for r in records if force or not r.resolved]
    total = len(todo)
    resolved = 0

    for i, record in enumerate(todo, 1):
        key = _lookup_key(record)
        if key not in lookups:
            lookups[key] = resolve_identity(record, details_cache)
            time.sleep(TMDB_REQUEST_DELAY)
        identity = lookups[key]

        if identity is None:
            print(f"  [{i}/{total}] unresolved: '{record.film_title}' ({record.cinema})")
            continue

        record.apply_identity(identity)
        resolved += 1
        if i % 50 == 0:
            print(f"  Enriching {i}/{total}...")

    if total:
        print(f"Resolved {resolved}/{total} listings ({resolved / total * 100:.1f}% match rate)")
    else:
        print("No listings need TMDB enrichment.")
    return resolved
