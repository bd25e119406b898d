"""Tests for screening records and their JSON round trip."""

import json
from datetime import date

import pytest

from listings.data.records import (
    CanonicalCandidate,
    ResolvedIdentity,
    ScreeningRecord,
    coerce_date,
    load_records,
    record_year,
    save_records,
)


def test_from_dict_coerces_and_ignores_unknown_keys():
    record = ScreeningRecord.from_dict({
        "id": 17,
        "filmTitle": "Killer of Sheep",
        "cinema": "bfi",
        "director": "  Charles Burnett ",
        "websiteYear": "1977",
        "releaseDate": "1978-11-14T00:00:00Z",
        "genres": "Drama | Crime",
        "bookingUrl": "https://example.com/book",
    })
    assert record.id == "17"
    assert record.director == "Charles Burnett"
    assert record.website_year == 1977
    assert record.release_date == "1978-11-14"
    assert record.genres == ["Drama", "Crime"]
    assert not record.resolved
    assert "bookingUrl" not in record.to_dict()


def test_blank_values_become_none():
    record = ScreeningRecord.from_dict({"id": "1", "filmTitle": "Jaws", "director": " ", "websiteYear": "n/a",
                                        "tmdbId": "", "letterboxdRating": "x"})
    assert record.director is None
    assert record.website_year is None
    assert record.tmdb_id is None
    assert record.letterboxd_rating is None
    assert record.to_dict() == {"id": "1", "filmTitle": "Jaws"}


def test_coerce_date():
    assert coerce_date(date(1975, 6, 20)) == "1975-06-20"
    assert coerce_date("1975-06-20") == "1975-06-20"
    assert coerce_date("June 1975") is None
    assert coerce_date("") is None


def test_apply_identity_fills_gaps_and_canonicalizes_director():
    record = ScreeningRecord(id="1", film_title="Modern Times", director="Charlie Chaplin", synopsis="Venue blurb.")
    record.apply_identity(ResolvedIdentity(3082, "1936-02-05", "The Tramp.", ("Comedy",), "Charles Chaplin",
                                           "tt0027977"))
    assert record.tmdb_id == 3082
    assert record.synopsis == "Venue blurb."
    assert record.genres == ["Comedy"]
    assert record.director == "Charles Chaplin"
    assert record.imdb_id == "tt0027977"
    assert record_year(record) == 1936


def test_identity_from_details():
    details = {
        "id": 578,
        "release_date": "1975-06-20",
        "overview": "A shark.",
        "genres": [{"id": 1, "name": "Thriller"}, {"id": 2, "name": ""}],
        "external_ids": {"imdb_id": "tt0073195"},
    }
    identity = ResolvedIdentity.from_details(details, ["Steven Spielberg"])
    assert identity == ResolvedIdentity(578, "1975-06-20", "A shark.", ("Thriller",), "Steven Spielberg", "tt0073195")
    assert ResolvedIdentity.from_details({"id": 1}, []).director is None


def test_candidate_score_and_year():
    candidate = CanonicalCandidate.from_tmdb({"id": 578, "title": "Jaws", "release_date": "1975-06-20",
                                              "popularity": 30.5, "vote_count": 100})
    assert candidate.year == 1975
    assert candidate.score == 230.5
    assert CanonicalCandidate.from_tmdb({"id": 1, "title": "Untitled"}).year is None


def test_load_and_save(tmp_path):
    path = tmp_path / "listings.json"
    path.write_text(json.dumps([
        {"id": "a", "filmTitle": "Amélie", "cinema": "pcc", "screeningStart": "2025-01-01T18:00:00Z"},
        "not a record",
    ]))

    records = load_records(path)
    assert [r.film_title for r in records] == ["Amélie"]
    records[0].tmdb_id = 194
    save_records(records, path)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved == [{"id": "a", "filmTitle": "Amélie", "cinema": "pcc",
                      "screeningStart": "2025-01-01T18:00:00Z", "tmdbId": 194}]


def test_load_rejects_non_array(tmp_path):
    path = tmp_path / "listings.json"
    path.write_text(json.dumps({"id": "a"}))
    with pytest.raises(ValueError):
        load_records(path)
