"""Tests for identity and rating propagation between sibling listings."""

import copy

from listings.data.propagate import group_key, propagate_identities, propagate_ratings, unresolved_siblings
from listings.data.records import ResolvedIdentity, ScreeningRecord

CHAPLIN = ResolvedIdentity(
    tmdb_id=3082,
    release_date="1936-02-05",
    synopsis="The Tramp struggles to survive in the modern world.",
    genres=("Comedy", "Drama"),
    director="Charles Chaplin",
    imdb_id="tt0027977",
)


def resolved(record_id, identity=CHAPLIN, **kwargs):
    record = ScreeningRecord(id=record_id, film_title="Modern Times", **kwargs)
    record.apply_identity(identity)
    return record


def test_group_key_folds_aliases_and_needs_both_parts():
    a = ScreeningRecord(id="1", film_title="Modern Times", director="Charlie Chaplin", website_year=1936)
    b = ScreeningRecord(id="2", film_title="Modern Times", director="Charles Chaplin", release_date="1936-02-05")
    assert group_key(a) == group_key(b) == ("charles chaplin", 1936)
    assert group_key(ScreeningRecord(id="3", film_title="Modern Times", website_year=1936)) is None
    assert group_key(ScreeningRecord(id="4", film_title="Modern Times", director="Charles Chaplin")) is None


def test_unresolved_sibling_adopts_identity():
    source = resolved("a")
    target = ScreeningRecord(id="b", film_title="Modern Times (35mm)", director="Charlie Chaplin", website_year=1936)

    assert propagate_identities([source, target]) == 1

    assert target.tmdb_id == 3082
    assert target.genres == ["Comedy", "Drama"]
    assert target.synopsis == CHAPLIN.synopsis
    assert target.imdb_id == "tt0027977"
    assert target.release_date == "1936-02-05"
    # the canonical credit replaces the venue's spelling
    assert target.director == "Charles Chaplin"


def test_existing_target_fields_are_kept():
    source = resolved("a")
    target = ScreeningRecord(id="b", film_title="Modern Times", director="Charles Chaplin",
                             website_year=1936, synopsis="Venue blurb.")
    propagate_identities([source, target])
    assert target.synopsis == "Venue blurb."
    assert target.tmdb_id == 3082


def test_propagation_is_idempotent():
    records = [
        resolved("a"),
        ScreeningRecord(id="b", film_title="Modern Times (35mm)", director="Charlie Chaplin", website_year=1936),
        ScreeningRecord(id="c", film_title="Something Else", director="Agnès Varda", website_year=1962),
    ]
    propagate_identities(records)
    after_once = copy.deepcopy(records)

    assert propagate_identities(records) == 0
    assert records == after_once


def test_conflicting_group_is_left_alone():
    other = ResolvedIdentity(999, "1936-06-01", "Another film.", ("Drama",), "Charles Chaplin")
    records = [
        resolved("a"),
        resolved("b", identity=other),
        ScreeningRecord(id="c", film_title="Modern Times", director="Charlie Chaplin", website_year=1936),
    ]
    before = copy.deepcopy(records[2])

    assert propagate_identities(records) == 0
    assert records[2] == before


def test_ratings_follow_tmdb_id_and_groups():
    rated = resolved("a")
    rated.letterboxd_rating = 4.4
    same_id = resolved("b")
    sibling = ScreeningRecord(id="c", film_title="Modern Times", director="Charles Chaplin", website_year=1936)
    sibling.tmdb_id = 3082
    stranger = ScreeningRecord(id="d", film_title="Cléo from 5 to 7", director="Agnès Varda", website_year=1962)

    assert propagate_ratings([rated, same_id, sibling, stranger]) == 2
    assert same_id.letterboxd_rating == sibling.letterboxd_rating == 4.4
    assert stranger.letterboxd_rating is None


def test_rating_reaches_unresolved_sibling_of_unambiguous_group():
    rated = resolved("a")
    rated.letterboxd_rating = 4.4
    unresolved = ScreeningRecord(id="b", film_title="Modern Times", director="Charlie Chaplin", website_year=1936)

    assert propagate_ratings([rated, unresolved]) == 1
    assert unresolved.letterboxd_rating == 4.4
    assert unresolved.tmdb_id is None


def test_unresolved_siblings_by_film():
    records = [
        resolved("a"),
        ScreeningRecord(id="b", film_title="Modern Tiems", director="Charlie Chaplin", website_year=1936),
        ScreeningRecord(id="c", film_title="Limelight", director="Charles Chaplin", website_year=1952),
    ]
    assert unresolved_siblings(records) == {3082: ["b"]}
    assert unresolved_siblings(records[:1]) == {}
