"""Resolve scraped listings to TMDB movies and share identities between them.

Usage:
    python -m listings.scripts.enrich_listings [--path FILE] [--force] [--omdb] [--ratings] [--write-db]

Reads data/listings.json (as written by the cinema scrapers), enriches it in
place and writes it back.
"""

import argparse
from pathlib import Path

from listings.config import LETTERBOXD_CACHE_PATH, LISTINGS_PATH, LISTINGS_TABLE, ConfigError, require_setting
from listings.data.batch import enrich_ratings_in_memory
from listings.data.letterboxd import UrlCache
from listings.data.omdb import enrich_with_omdb
from listings.data.propagate import propagate_identities
from listings.data.records import load_records, save_records
from listings.data.tmdb import enrich_records
from listings.deploy.db_writer import get_engine, listings_table, write_identities


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--path", type=Path, default=LISTINGS_PATH, help="listings JSON file")
    parser.add_argument("--force", action="store_true", help="re-resolve listings that already have a tmdb_id")
    parser.add_argument("--omdb", action="store_true", help="also fetch Rotten Tomatoes scores from OMDb")
    parser.add_argument("--ratings", action="store_true", help="also fetch Letterboxd ratings")
    parser.add_argument("--write-db", action="store_true", help="write resolved identities to the database")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    require_setting("TMDB_API_KEY")
    database_url = require_setting("DATABASE_URL") if args.write_db else None

    records = load_records(args.path)
    print(f"Loaded {len(records)} listings from {args.path}")

    print("\nResolving TMDB identities...")
    enrich_records(records, force=args.force)
    filled = propagate_identities(records)
    print(f"Propagated identities to {filled} listing(s)")
    unresolved = sum(1 for r in records if not r.resolved)
    print(f"{len(records) - unresolved}/{len(records)} listings resolved ({unresolved} unresolved)")

    if args.omdb:
        print("\nFetching Rotten Tomatoes scores...")
        enrich_with_omdb(records)

    if args.ratings:
        print("\nFetching Letterboxd ratings...")
        cache = UrlCache.load(LETTERBOXD_CACHE_PATH)
        gained = enrich_ratings_in_memory(records, cache, force=args.force)
        print(f"{gained} listing(s) gained a Letterboxd rating")

    save_records(records, args.path)
    print(f"Saved {len(records)} listings to {args.path}")

    if database_url:
        engine = get_engine(database_url)
        try:
            write_identities(engine, listings_table(LISTINGS_TABLE), records)
        finally:
            engine.dispose()


def cli() -> None:
    try:
        main()
    except ConfigError as e:
        raise SystemExit(f"[enrich_listings] {e}")


if __name__ == "__main__":
    cli()
