"""Tests for OMDb Rotten Tomatoes lookups."""

import requests

from listings.config import OMDB_BASE_URL
from listings.data.omdb import enrich_with_omdb, fetch_rotten_tomatoes
from listings.data.records import ScreeningRecord


def omdb_body(tomatoes=None):
    ratings = [{"Source": "Internet Movie Database", "Value": "8.1/10"}]
    if tomatoes is not None:
        ratings.append({"Source": "Rotten Tomatoes", "Value": tomatoes})
    return {"Response": "True", "Ratings": ratings}


def test_score_by_imdb_id(requests_mock):
    requests_mock.get(OMDB_BASE_URL, json=omdb_body("97%"))

    assert fetch_rotten_tomatoes("tt0073195", api_key="k") == 97
    assert requests_mock.last_request.qs["i"] == ["tt0073195"]
    assert requests_mock.last_request.qs["apikey"] == ["k"]


def test_score_by_title_when_no_imdb_id(requests_mock):
    requests_mock.get(OMDB_BASE_URL, json=omdb_body("88%"))

    assert fetch_rotten_tomatoes(title="Killer of Sheep", api_key="k") == 88
    assert requests_mock.last_request.qs["t"] == ["killer of sheep"]


def test_missing_or_bad_scores_are_none(requests_mock):
    requests_mock.get(OMDB_BASE_URL, json=omdb_body())
    assert fetch_rotten_tomatoes("tt1", api_key="k") is None

    requests_mock.get(OMDB_BASE_URL, json=omdb_body("N/A"))
    assert fetch_rotten_tomatoes("tt1", api_key="k") is None

    requests_mock.get(OMDB_BASE_URL, status_code=401)
    assert fetch_rotten_tomatoes("tt1", api_key="k") is None

    requests_mock.get(OMDB_BASE_URL, exc=requests.ConnectionError)
    assert fetch_rotten_tomatoes("tt1", api_key="k") is None

    assert fetch_rotten_tomatoes(api_key="k") is None


def test_enrich_looks_up_each_film_once(requests_mock):
    requests_mock.get(OMDB_BASE_URL, json=omdb_body("97%"))
    records = [
        ScreeningRecord(id="a", film_title="Jaws", imdb_id="tt0073195"),
        ScreeningRecord(id="b", film_title="Jaws (4K Restoration)", imdb_id="tt0073195"),
        ScreeningRecord(id="c", film_title="Possession Uncut"),
        ScreeningRecord(id="d", film_title="Possession"),
        ScreeningRecord(id="e", film_title="Alien", rotten_tomatoes_pct=93),
    ]

    assert enrich_with_omdb(records, api_key="k") == 4

    assert requests_mock.call_count == 2
    assert [r.rotten_tomatoes_pct for r in records] == [97, 97, 97, 97, 93]


def test_enrich_without_key_does_nothing(requests_mock):
    records = [ScreeningRecord(id="a", film_title="Jaws")]
    assert enrich_with_omdb(records, api_key="") == 0
    assert requests_mock.call_count == 0
    assert records[0].rotten_tomatoes_pct is None
