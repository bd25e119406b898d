"""Shared fixtures: a fake TMDB API, Letterboxd page builder, SQLite listings table."""

from __future__ import annotations

import re
import time
from datetime import datetime

import pytest
import requests
from sqlalchemy import create_engine

from listings.data import tmdb
from listings.deploy.db_writer import listings_table


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Politeness delays are real sleeps; tests skip them."""
    monkeypatch.setattr(time, "sleep", lambda *_: None)


class FakeTMDb:
    """Stands in for ``tmdb._tmdb_get`` with canned search and detail responses."""

    def __init__(self):
        self.searches: dict[tuple[str, int | None], list[dict]] = {}
        self.details: dict[int, dict] = {}
        self.calls: list[tuple[str, dict]] = []

    def add_movie(
        self,
        tmdb_id: int,
        title: str,
        release_date: str = "",
        directors: tuple[str, ...] = (),
        popularity: float = 1.0,
        vote_count: int = 10,
        overview: str = "",
        genres: tuple[str, ...] = (),
        imdb_id: str | None = None,
        original_title: str | None = None,
    ) -> dict:
        self.details[tmdb_id] = {
            "id": tmdb_id,
            "title": title,
            "release_date": release_date,
            "overview": overview,
            "genres": [{"id": i, "name": g} for i, g in enumerate(genres)],
            "credits": {"crew": [{"job": "Director", "name": d} for d in directors]},
            "external_ids": {"imdb_id": imdb_id},
        }
        return {
            "id": tmdb_id,
            "title": title,
            "original_title": original_title or title,
            "release_date": release_date,
            "popularity": popularity,
            "vote_count": vote_count,
        }

    def add_search(self, query: str, results: list[dict], year: int | None = None) -> None:
        self.searches[(query.casefold(), year)] = results

    def searched(self) -> list[tuple[str, int | None]]:
        return [
            (params["query"], int(params["year"]) if params.get("year") else None)
            for endpoint, params in self.calls
            if endpoint == "/search/movie"
        ]

    def __call__(self, endpoint: str, params: dict | None = None) -> dict:
        params = dict(params or {})
        self.calls.append((endpoint, params))
        if endpoint == "/search/movie":
            year = int(params["year"]) if params.get("year") else None
            return {"results": self.searches.get((params["query"].casefold(), year), [])}
        m = re.fullmatch(r"/movie/(\d+)", endpoint)
        if m and int(m.group(1)) in self.details:
            return self.details[int(m.group(1))]
        raise requests.HTTPError(f"404 Client Error: Not Found for {endpoint}")


@pytest.fixture
def fake_tmdb(monkeypatch) -> FakeTMDb:
    fake = FakeTMDb()
    monkeypatch.setattr(tmdb, "_tmdb_get", fake)
    return fake


def _film_page(
    tmdb_id: int | None = None,
    ld_rating=None,
    meta_rating: str | None = None,
    cdata: bool = True,
) -> str:
    parts = ["<html><head>"]
    if meta_rating is not None:
        parts.append(f'<meta name="twitter:data2" content="{meta_rating}" />')
    parts.append("</head><body>")
    if tmdb_id is not None:
        parts.append(
            f'<a href="https://www.themoviedb.org/movie/{tmdb_id}/" '
            f'data-track-action="TMDb">TMDb</a>'
        )
    if ld_rating is not None:
        payload = '{"@type": "Movie", "aggregateRating": {"@type": "AggregateRating", "ratingValue": %s}}' % ld_rating
        if cdata:
            payload = f"/* <![CDATA[ */\n{payload}\n/* ]]> */"
        parts.append(f'<script type="application/ld+json">{payload}</script>')
    parts.append("</body></html>")
    return "".join(parts)


@pytest.fixture
def film_page():
    """Builds a minimal Letterboxd film page."""
    return _film_page


@pytest.fixture
def listings_db():
    """In-memory SQLite listings table; yields (engine, table, insert)."""
    engine = create_engine("sqlite://")
    table = listings_table("listings")
    table.metadata.create_all(engine)

    def insert(*rows: dict) -> None:
        defaults = {"cinema": "bfi", "screening_start": datetime(2025, 1, 1, 18, 0)}
        with engine.begin() as conn:
            # rows name different columns, so no executemany
            for row in rows:
                conn.execute(table.insert().values(**{**defaults, **row}))

    yield engine, table, insert
    engine.dispose()
