"""Screening records and the canonical movie shapes they are resolved against."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path

from listings.data.titles import extract_year_hint

# camelCase JSON key -> dataclass attribute
_FIELD_MAP = {
    "id": "id",
    "filmTitle": "film_title",
    "cinema": "cinema",
    "screeningStart": "screening_start",
    "director": "director",
    "websiteYear": "website_year",
    "releaseDate": "release_date",
    "tmdbId": "tmdb_id",
    "synopsis": "synopsis",
    "genres": "genres",
    "imdbId": "imdb_id",
    "letterboxdRating": "letterboxd_rating",
    "rottenTomatoesPct": "rotten_tomatoes_pct",
}


def _coerce_int(val) -> int | None:
    if val is None or val == "":
        return None
    try:
        return int(float(val))
    except (TypeError, ValueError):
        return None


def _coerce_float(val) -> float | None:
    if val is None or val == "":
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def coerce_date(val) -> str | None:
    """Reduce a date-ish value to an ISO ``YYYY-MM-DD`` string."""
    if val is None or val == "":
        return None
    if isinstance(val, (date, datetime)):
        return val.isoformat()[:10]
    text = str(val).strip()
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return None


def _coerce_genres(val) -> list[str]:
    if isinstance(val, (list, tuple)):
        return [str(g) for g in val if g]
    if isinstance(val, str):
        return [g.strip() for g in val.replace("|", ",").split(",") if g.strip()]
    return []


def _year_of(release_date: str | None) -> int | None:
    if release_date and release_date[:4].isdigit():
        return int(release_date[:4])
    return None


@dataclass
class ScreeningRecord:
    """A single showtime scraped from a cinema site.

    Scraped fields are never rewritten here except ``director``, which is
    canonicalized when an identity is applied. Enrichment fields start
    empty and are filled by the pipeline.
    """

    id: str
    film_title: str
    cinema: str = ""
    screening_start: str = ""
    director: str | None = None
    website_year: int | None = None
    release_date: str | None = None
    # enrichment
    tmdb_id: int | None = None
    synopsis: str | None = None
    genres: list[str] = field(default_factory=list)
    imdb_id: str | None = None
    letterboxd_rating: float | None = None
    rotten_tomatoes_pct: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ScreeningRecord":
        """Build a record from a scraper's camelCase dict, ignoring unknown keys."""
        kwargs = {attr: data[key] for key, attr in _FIELD_MAP.items() if key in data}
        director = str(kwargs.get("director") or "").strip()
        return cls(
            id=str(kwargs.get("id", "")),
            film_title=str(kwargs.get("film_title") or ""),
            cinema=str(kwargs.get("cinema") or ""),
            screening_start=str(kwargs.get("screening_start") or ""),
            director=director or None,
            website_year=_coerce_int(kwargs.get("website_year")),
            release_date=coerce_date(kwargs.get("release_date")),
            tmdb_id=_coerce_int(kwargs.get("tmdb_id")),
            synopsis=kwargs.get("synopsis") or None,
            genres=_coerce_genres(kwargs.get("genres")),
            imdb_id=kwargs.get("imdb_id") or None,
            letterboxd_rating=_coerce_float(kwargs.get("letterboxd_rating")),
            rotten_tomatoes_pct=_coerce_int(kwargs.get("rotten_tomatoes_pct")),
        )

    def to_dict(self) -> dict:
        """Serialize back to the camelCase shape, dropping empty fields."""
        out = {}
        for key, attr in _FIELD_MAP.items():
            val = getattr(self, attr)
            if val is None or val == [] or val == "":
                continue
            out[key] = val
        return out

    @property
    def resolved(self) -> bool:
        return self.tmdb_id is not None

    @property
    def year_hint(self) -> int | None:
        return extract_year_hint(self.film_title, self.release_date, self.website_year)

    def apply_identity(self, identity: "ResolvedIdentity") -> None:
        """Bind this record to a canonical movie.

        Descriptive fields are only filled when missing; the director is
        always replaced by the canonical credit.
        """
        self.tmdb_id = identity.tmdb_id
        if not self.release_date and identity.release_date:
            self.release_date = identity.release_date
        if not self.synopsis and identity.synopsis:
            self.synopsis = identity.synopsis
        if not self.genres and identity.genres:
            self.genres = list(identity.genres)
        if not self.imdb_id and identity.imdb_id:
            self.imdb_id = identity.imdb_id
        if identity.director:
            self.director = identity.director


@dataclass(frozen=True)
class CanonicalCandidate:
    """One TMDB search result."""

    tmdb_id: int
    title: str
    original_title: str = ""
    release_date: str | None = None
    popularity: float = 0.0
    vote_count: int = 0

    @classmethod
    def from_tmdb(cls, result: dict) -> "CanonicalCandidate":
        return cls(
            tmdb_id=int(result["id"]),
            title=result.get("title") or "",
            original_title=result.get("original_title") or "",
            release_date=result.get("release_date") or None,
            popularity=float(result.get("popularity") or 0.0),
            vote_count=int(result.get("vote_count") or 0),
        )

    @property
    def year(self) -> int | None:
        return _year_of(self.release_date)

    @property
    def score(self) -> float:
        # vote count dominates; popularity is a tiebreaker
        return 2 * self.vote_count + self.popularity


@dataclass(frozen=True)
class ResolvedIdentity:
    """The accepted binding of a record to a TMDB movie."""

    tmdb_id: int
    release_date: str | None
    synopsis: str | None
    genres: tuple[str, ...]
    director: str | None
    imdb_id: str | None = None

    @classmethod
    def from_details(cls, details: dict, directors: list[str]) -> "ResolvedIdentity":
        return cls(
            tmdb_id=int(details["id"]),
            release_date=coerce_date(details.get("release_date")),
            synopsis=details.get("overview") or None,
            genres=tuple(g["name"] for g in details.get("genres", []) if g.get("name")),
            director=", ".join(directors) if directors else None,
            imdb_id=(details.get("external_ids") or {}).get("imdb_id") or details.get("imdb_id") or None,
        )


def record_year(record: ScreeningRecord) -> int | None:
    """Release year when known, otherwise the year hinted by the listing."""
    return _year_of(record.release_date) or record.year_hint


def load_records(path: Path) -> list[ScreeningRecord]:
    """Load scraped listings from a JSON array file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} is not a JSON array")
    return [ScreeningRecord.from_dict(item) for item in data if isinstance(item, dict)]


def save_records(records: list[ScreeningRecord], path: Path) -> None:
    """Write listings back to disk."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([r.to_dict() for r in records], f, indent=2, ensure_ascii=False)
