"""Clean cinema-listing titles into something a catalogue search understands.

Venue sites decorate titles with screening formats, event names, certificates
and anniversary blurbs ("Preview: Sinners", "Jaws (4K Restoration)",
"Paris, Texas + Q&A"). The rules below strip those decorations one at a time,
in order, so each can be tested and reordered on its own.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import date

_SEP = r"[:\-–—]"
_CERTIFICATES = r"(?:U|PG|12A?|15|18|R|NR|PG-?13|NC-17)"
_QA = r"(?:q\s*&\s*a|q\s*and\s*a|qa)"
_YEAR = r"((?:19|20)\d{2})"

FIRST_FILM_YEAR = 1895


@dataclass(frozen=True)
class TitleRule:
    """A single named regex rewrite."""

    name: str
    pattern: re.Pattern
    replacement: str = ""

    def apply(self, title: str) -> str:
        return self.pattern.sub(self.replacement, title)


def _rule(name: str, pattern: str, replacement: str = "", flags: int = re.IGNORECASE) -> TitleRule:
    return TitleRule(name, re.compile(pattern, flags), replacement)


TITLE_RULES: tuple[TitleRule, ...] = (
    # "Cult Classic Collective presents: Possession" -> "Possession"
    _rule("presents", r"^.*?\bpresents:\s*"),
    _rule(
        "screening_prefix",
        rf"^\s*(?:preview|relaxed\s+screening|members'?\s*screening|"
        rf"parent\s*(?:and|&)?\s*baby(?:\s+screening)?|family\s+film\s+club)\s*{_SEP}\s*",
    ),
    _rule("generic_screening_prefix", rf"^\s*[^:]{{0,80}}\bscreening\s*{_SEP}\s*"),
    _rule("brackets", r"\s*[\[(][^\])]*[\])]", " "),
    _rule(
        "marketing_suffix",
        rf"\s*{_SEP}\s*(?:\d+\w*\s+anniversary(?:\s+edition)?|\d+\s*k\s+restoration|restored|"
        rf"director'?s\s+cut|theatrical\s+cut|remastered|preview|{_QA}|uncut(?:\s+version)?)\s*$",
    ),
    _rule(
        "venue_suffix",
        rf"\s*{_SEP}\s*(?:classics\s+presented.*|presented\s+by.*|halloween\s+at.*|"
        rf"studio\s+screening.*|double\s+bill.*|film\s+festival.*|"
        rf"(?:in|on)\s+(?:35|70)\s*mm.*)\s*$",
    ),
    # certificates are upper-case on every venue site we read
    _rule("certificate", rf"\s+{_CERTIFICATES}\*?\s*$", flags=0),
    _rule("plus_qa", rf"\s*\+\s*(?:post[- ]?screening\s+)?{_QA}\b.*$"),
    _rule("with_qa", rf"\s*(?:[-:])?\s*\bwith\s+.*?\b{_QA}\s*$"),
    _rule("restoration_tail", r"\s*\b\d+\s*k\s+restoration\s*$"),
    _rule("format_tail", r"\s*\b(?:in|on)\s+(?:35|70)\s*mm\s*$"),
    _rule("uncut_tail", r"\s+uncut\s*$"),
    _rule("year_suffix", rf"\s*[-–—]\s*{_YEAR}\s*$"),
    _rule("dangling_separator", rf"[\s:\-–—+]+$"),
    _rule("whitespace", r"\s{2,}", " "),
)


def apply_rules(title: str, rules: tuple[TitleRule, ...] = TITLE_RULES) -> str:
    """Apply each rule once, in order."""
    for rule in rules:
        title = rule.apply(title)
    return title.strip()


def normalize_title(title: str | None) -> str:
    """Strip promotional and venue decoration from a listing title.

    Total and idempotent: never raises, and normalizing an already
    normalized title returns it unchanged. Falls back to the stripped raw
    title if the rules would erase it entirely.
    """
    if not title:
        return ""
    raw = unicodedata.normalize("NFC", str(title)).strip()
    current = raw
    # rules expose new trailing decorations ("Film 15 (35mm)"), so passes
    # repeat until the title stops changing; every rewrite shortens it
    while True:
        cleaned = apply_rules(current)
        if cleaned == current:
            break
        current = cleaned
    return current or re.sub(r"\s{2,}", " ", raw)


def _annotation_year(title: str) -> int | None:
    for pattern in (
        rf"[\[(]\s*{_YEAR}\s*[\])]\s*$",
        rf"[-–—]\s*{_YEAR}\s*$",
        rf"[\[(]\s*{_YEAR}\s*[\])]",
    ):
        m = re.search(pattern, title)
        if m:
            return int(m.group(1))
    return None


def _plausible_year(year: int | None) -> int | None:
    if year is None:
        return None
    return year if FIRST_FILM_YEAR <= year <= date.today().year + 1 else None


def extract_year_hint(
    title: str | None,
    release_date: str | None = None,
    website_year: int | None = None,
) -> int | None:
    """Best guess at a film's year from its listing.

    Order: trailing bracketed year, trailing "- YYYY", any bracketed year,
    then the supplied release date, then the year stated by the website.
    """
    year = _annotation_year(str(title or ""))
    if year:
        return year
    if release_date and re.match(r"^\d{4}", str(release_date)):
        year = _plausible_year(int(str(release_date)[:4]))
        if year:
            return year
    if isinstance(website_year, int) and not isinstance(website_year, bool):
        return _plausible_year(website_year)
    return None


def normalize_for_compare(text: str | None) -> str:
    """Casefold, strip diacritics and punctuation for loose equality checks."""
    if not text:
        return ""
    s = unicodedata.normalize("NFKD", str(text))
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.casefold().replace("&", " and ")
    s = re.sub(r"['’`]", "", s)
    s = re.sub(r"[^\w]+", " ", s)
    return s.strip()


def significant_words(text: str | None, min_length: int = 3) -> set[str]:
    return {w for w in normalize_for_compare(text).split() if len(w) >= min_length}
