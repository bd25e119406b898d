"""Share resolved identities and ratings between listings of the same film.

Cinemas list the same film under different spellings, and some spellings
never resolve on their own. Listings that agree on director and year are
treated as one film, but only when the resolved listings among them agree on
a single tmdb_id. A group with conflicting ids is left alone.
"""

from __future__ import annotations

from collections import defaultdict

from listings.data.disambiguate import normalize_person, split_directors
from listings.data.records import ResolvedIdentity, ScreeningRecord, record_year


def group_key(record: ScreeningRecord) -> tuple[str, int] | None:
    """(normalized director(s), year), or None if either is unknown."""
    names = sorted({normalize_person(n) for n in split_directors(record.director)} - {""})
    year = record_year(record)
    if not names or year is None:
        return None
    return ", ".join(names), year


def _groups(records: list[ScreeningRecord]) -> dict[tuple[str, int], list[ScreeningRecord]]:
    groups: dict[tuple[str, int], list[ScreeningRecord]] = defaultdict(list)
    for record in records:
        key = group_key(record)
        if key is not None:
            groups[key].append(record)
    return groups


def _shared_tmdb_id(members: list[ScreeningRecord]) -> int | None:
    ids = {m.tmdb_id for m in members if m.resolved}
    return ids.pop() if len(ids) == 1 else None


def _merged_identity(tmdb_id: int, members: list[ScreeningRecord]) -> ResolvedIdentity:
    """Identity assembled from the first non-empty value of each field."""
    sources = [m for m in members if m.tmdb_id == tmdb_id]

    def first(attr):
        return next((getattr(s, attr) for s in sources if getattr(s, attr)), None)

    return ResolvedIdentity(
        tmdb_id=tmdb_id,
        release_date=first("release_date"),
        synopsis=first("synopsis"),
        genres=tuple(first("genres") or ()),
        director=first("director"),
        imdb_id=first("imdb_id"),
    )


def propagate_identities(records: list[ScreeningRecord]) -> int:
    """Fill unresolved listings from resolved siblings in place.

    Returns the number of listings that gained a tmdb_id. Running it again
    over the same records changes nothing.
    """
    filled = 0
    for key, members in _groups(records).items():
        tmdb_id = _shared_tmdb_id(members)
        if tmdb_id is None:
            continue
        pending = [m for m in members if not m.resolved]
        if not pending:
            continue
        identity = _merged_identity(tmdb_id, members)
        for member in pending:
            member.apply_identity(identity)
            filled += 1
        print(f"  Propagated tmdb={tmdb_id} to {len(pending)} listing(s) for {key[0]} ({key[1]})")
    return filled


def unresolved_siblings(records: list[ScreeningRecord]) -> dict[int, list[str]]:
    """Ids of unresolved listings per tmdb_id, via unambiguous groups."""
    siblings: dict[int, list[str]] = defaultdict(list)
    for members in _groups(records).values():
        tmdb_id = _shared_tmdb_id(members)
        if tmdb_id is None:
            continue
        siblings[tmdb_id].extend(m.id for m in members if not m.resolved)
    return {tmdb_id: ids for tmdb_id, ids in siblings.items() if ids}


def propagate_ratings(records: list[ScreeningRecord]) -> int:
    """Copy Letterboxd ratings to every listing of the same film.

    First by tmdb_id, then across unambiguous (director, year) groups.
    Returns the number of listings that gained a rating.
    """
    by_id: dict[int, float] = {}
    for r in records:
        if r.resolved and r.letterboxd_rating is not None:
            by_id.setdefault(r.tmdb_id, r.letterboxd_rating)

    filled = 0
    for r in records:
        if r.letterboxd_rating is None and r.tmdb_id in by_id:
            r.letterboxd_rating = by_id[r.tmdb_id]
            filled += 1

    for members in _groups(records).values():
        tmdb_id = _shared_tmdb_id(members)
        if tmdb_id is None or tmdb_id not in by_id:
            continue
        for m in members:
            if m.letterboxd_rating is None:
                m.letterboxd_rating = by_id[tmdb_id]
                filled += 1
    return filled
