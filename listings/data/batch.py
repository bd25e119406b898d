"""Chunked Letterboxd rating enrichment over the listings table.

Requests go out one at a time with a randomized pause between them;
Letterboxd has no API and blocks scrapers that hurry. Each chunk's ratings
are committed in one transaction and the URL cache is flushed before the
next chunk starts, so an interrupted run loses at most one chunk of work
and a rerun skips everything already rated.
"""

from __future__ import annotations

import random
import time

import pandas as pd
from sqlalchemy import Table
from sqlalchemy.engine import Engine

from listings.config import CHUNK_DELAY, DEFAULT_CHUNK_SIZE, REQUEST_DELAY
from listings.data.letterboxd import (
    Resolution,
    UrlCache,
    fetch_letterboxd_rating,
    resolve_letterboxd_url,
)
from listings.data.propagate import propagate_ratings, unresolved_siblings
from listings.data.records import ScreeningRecord, coerce_date
from listings.deploy.db_writer import listings_table, load_group_members, load_rating_work, write_ratings


def _pause() -> None:
    time.sleep(random.uniform(*REQUEST_DELAY))


def _optional(val):
    return None if val is None or pd.isna(val) else val


def _sibling_rows(members: pd.DataFrame) -> dict[int, list[str]]:
    records = []
    for _, row in members.iterrows():
        tmdb_id = _optional(row["tmdb_id"])
        website_year = _optional(row["website_year"])
        records.append(ScreeningRecord(
            id=str(row["id"]),
            film_title=row["film_title"] or "",
            director=_optional(row["director"]),
            release_date=coerce_date(_optional(row["release_date"])),
            website_year=int(website_year) if website_year is not None else None,
            tmdb_id=int(tmdb_id) if tmdb_id is not None else None,
        ))
    return unresolved_siblings(records)


def rate_film(
    cache: UrlCache,
    tmdb_id: int,
    title: str,
    release_date: str | None = None,
    website_year: int | None = None,
) -> tuple[Resolution | None, float | None]:
    """Resolve a film's Letterboxd page and read its rating.

    The page is only fetched when a URL was resolved.
    """
    resolution = resolve_letterboxd_url(cache, tmdb_id, title, release_date, website_year)
    if resolution is None:
        return None, None
    return resolution, fetch_letterboxd_rating(resolution.url)


def _report(seq: int, total: int, tmdb_id: int, resolution: Resolution | None, rating: float | None) -> None:
    prefix = f"  [{seq}/{total}] tmdb={tmdb_id}"
    if resolution is None:
        print(f"{prefix} no URL")
    elif rating is None:
        print(f"{prefix} no rating url={resolution.url} ({resolution.confidence})")
    else:
        print(f"{prefix} rating={rating:.2f} url={resolution.url} ({resolution.confidence})")


def enrich_ratings(
    engine: Engine,
    cache: UrlCache,
    table: Table | None = None,
    force: bool = False,
    limit: int | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cinema: str | None = None,
) -> dict:
    """Fill letterboxd_rating for listings in the database.

    Args:
        engine: Listings database.
        cache: Letterboxd URL cache; flushed after every chunk.
        table: Listings table (defaults to the configured one).
        force: Re-rate listings that already have a rating.
        limit: Cap on distinct tmdb_ids processed.
        chunk_size: tmdb_ids per committed chunk.
        cinema: Only listings from this cinema.

    Returns:
        Summary counts: entries, rated, rows_updated, no_url, no_rating,
        unverified.
    """
    table = table if table is not None else listings_table()
    chunk_size = max(1, int(chunk_size))
    summary = {"entries": 0, "rated": 0, "rows_updated": 0, "no_url": 0, "no_rating": 0, "unverified": 0}

    work = load_rating_work(engine, table, force=force, cinema=cinema)
    # each film is resolved and rated once, whichever listing is seen first
    work = work.drop_duplicates(subset="tmdb_id", keep="first")
    if limit and limit > 0:
        work = work.head(limit)

    total = len(work)
    summary["entries"] = total
    if total == 0:
        print(f"Nothing to enrich (force={force}).")
        return summary

    # unresolved listings that share a film's (director, year) get its rating too
    siblings = _sibling_rows(load_group_members(engine, table))

    seq = 0
    for start in range(0, total, chunk_size):
        chunk = work.iloc[start:start + chunk_size]
        updates: dict[int, float] = {}

        for _, row in chunk.iterrows():
            seq += 1
            tmdb_id = int(row["tmdb_id"])
            website_year = _optional(row.get("website_year"))
            resolution, rating = rate_film(
                cache,
                tmdb_id,
                row.get("film_title") or "",
                coerce_date(_optional(row.get("release_date"))),
                int(website_year) if website_year is not None else None,
            )
            _report(seq, total, tmdb_id, resolution, rating)

            if resolution is None:
                summary["no_url"] += 1
            elif rating is None:
                summary["no_rating"] += 1
            else:
                updates[tmdb_id] = rating
            if resolution is not None and not resolution.verified:
                summary["unverified"] += 1
            _pause()

        if updates:
            changed = write_ratings(
                engine, table, updates, {t: siblings[t] for t in updates if t in siblings}
            )
            summary["rated"] += len(updates)
            summary["rows_updated"] += changed
            print(f"Chunk updated: {changed} rows across {len(updates)} tmdb_id(s). "
                  f"Progress: {start + len(chunk)}/{total}")
        else:
            print(f"No ratings found in this chunk. Progress: {start + len(chunk)}/{total}")
        cache.save()

        if start + chunk_size < total:
            time.sleep(CHUNK_DELAY)

    print(f"Rated {summary['rated']}/{total} films ({summary['rows_updated']} rows); "
          f"{summary['no_url']} without URL, {summary['no_rating']} without rating, "
          f"{summary['unverified']} unverified URL(s)")
    return summary


def enrich_ratings_in_memory(
    records: list[ScreeningRecord],
    cache: UrlCache,
    force: bool = False,
) -> int:
    """Rate resolved listings held in memory, then share ratings across siblings.

    Returns the number of listings that gained a rating.
    """
    samples: dict[int, ScreeningRecord] = {}
    for r in records:
        if r.resolved and (force or r.letterboxd_rating is None):
            samples.setdefault(r.tmdb_id, r)

    total = len(samples)
    before = sum(1 for r in records if r.letterboxd_rating is not None)
    for seq, (tmdb_id, sample) in enumerate(samples.items(), 1):
        resolution, rating = rate_film(cache, tmdb_id, sample.film_title, sample.release_date, sample.website_year)
        _report(seq, total, tmdb_id, resolution, rating)
        if rating is not None:
            for r in records:
                if r.tmdb_id == tmdb_id:
                    r.letterboxd_rating = rating
        _pause()

    propagate_ratings(records)
    cache.save()
    return sum(1 for r in records if r.letterboxd_rating is not None) - before
