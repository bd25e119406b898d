"""Pick the right TMDB movie out of a title search.

Venue titles are short and famous films get remade, re-released and
parodied, so the first search hit is wrong surprisingly often. Selection
leans on the director a venue lists when there is one; without it, a year
hint, exact title matches and vote counts decide.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

from listings.data.records import CanonicalCandidate
from listings.data.titles import normalize_for_compare, significant_words

# Names venues and TMDB credit differently. Keys and values are already
# normalized with normalize_for_compare().
DIRECTOR_ALIASES: dict[str, str] = {
    "charlie chaplin": "charles chaplin",
}


def normalize_person(name: str | None) -> str:
    """Comparable form of a person's name, with known aliases folded."""
    key = normalize_for_compare(name)
    return DIRECTOR_ALIASES.get(key, key)


def split_directors(text: str | None) -> list[str]:
    """Split "Joel Coen, Ethan Coen" / "Powell & Pressburger" into names."""
    if not text:
        return []
    parts = re.split(r"\s*(?:,|;|/|&|\band\b)\s*", str(text))
    return [p.strip() for p in parts if p and p.strip()]


def directors_match(supplied: str | None, credited: Sequence[str] | None) -> bool:
    """True if any supplied director matches any credited one.

    Case and diacritic insensitive; a name whose words are all part of the
    other counts ("Chaplin" matches "Charles Chaplin", "Ray" does not match
    "Bill Murray").
    """
    wanted = [set(normalize_person(p).split()) for p in split_directors(supplied)]
    names = [set(normalize_person(c).split()) for c in credited or []]
    for w in wanted:
        if not w:
            continue
        for n in names:
            if n and (w <= n or n <= w):
                return True
    return False


def _best_by_score(candidates: Sequence[CanonicalCandidate]) -> CanonicalCandidate | None:
    # max() keeps the earliest of equal scores, i.e. TMDB's relevance order
    return max(candidates, key=lambda c: c.score) if candidates else None


def _normalized_title_matches(
    candidates: Sequence[CanonicalCandidate], query: str
) -> list[CanonicalCandidate]:
    target = normalize_for_compare(query)
    return [
        c for c in candidates
        if target and target in (normalize_for_compare(c.title), normalize_for_compare(c.original_title))
    ]


def _pick_among_director_matches(
    matching: Sequence[CanonicalCandidate], query: str
) -> CanonicalCandidate | None:
    exact = _normalized_title_matches(matching, query)
    return exact[0] if exact else _best_by_score(matching)


def _select_without_director(
    candidates: Sequence[CanonicalCandidate], query: str, year_hint: int | None
) -> CanonicalCandidate | None:
    if year_hint:
        same_year = [c for c in candidates if c.year == year_hint]
        if same_year:
            return same_year[0]

    q = query.casefold().strip()
    exact = [
        c for c in candidates
        if q and q in (c.title.casefold().strip(), c.original_title.casefold().strip())
    ]
    if exact:
        return _best_by_score(exact)

    normalized = _normalized_title_matches(candidates, query)
    if normalized:
        return _best_by_score(normalized)

    words = significant_words(query)
    overlapping = [
        c for c in candidates
        if words & (significant_words(c.title) | significant_words(c.original_title))
    ]
    return _best_by_score(overlapping or list(candidates))


def select_candidate(
    candidates: Sequence[CanonicalCandidate],
    query: str,
    year_hint: int | None = None,
    director: str | None = None,
    credited: Mapping[int, Sequence[str]] | None = None,
) -> CanonicalCandidate | None:
    """Choose the candidate a listing refers to, or None if it can't be trusted.

    Args:
        candidates: Search results in TMDB relevance order.
        query: The normalized listing title that was searched.
        year_hint: Year suggested by the listing. Never a reason to reject.
        director: Director named by the venue, if any.
        credited: Candidate tmdb_id -> credited directors, fetched by the
            caller for the top candidates when ``director`` is set.

    Returns:
        The chosen candidate. When ``director`` is set, the result always has
        credited directors matching it; otherwise None.
    """
    if not candidates:
        return None
    credited = credited or {}

    def matches(c: CanonicalCandidate) -> bool:
        return directors_match(director, credited.get(c.tmdb_id, ()))

    if director:
        matching = [c for c in candidates if matches(c)]
        if matching:
            return _pick_among_director_matches(matching, query)

    chosen = _select_without_director(candidates, query, year_hint)

    if director and chosen is not None and not matches(chosen):
        restricted = [c for c in candidates if matches(c)]
        if not restricted:
            return None
        chosen = _pick_among_director_matches(restricted, query)
    return chosen
