"""Fill Letterboxd community ratings for listings in the database.

Usage:
    python -m listings.scripts.enrich_ratings [--force] [--limit N] [--chunk N] [--cinema NAME]

By default only listings without a rating are processed; rerunning after an
interruption picks up where the last committed chunk left off.
"""

import argparse

from listings.config import DEFAULT_CHUNK_SIZE, LETTERBOXD_CACHE_PATH, LISTINGS_TABLE, ConfigError, require_setting
from listings.data.batch import enrich_ratings
from listings.data.letterboxd import UrlCache
from listings.deploy.db_writer import get_engine, listings_table


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--force", action="store_true", help="re-rate listings that already have a rating")
    parser.add_argument("--limit", type=int, default=None, help="process at most N films")
    parser.add_argument("--chunk", type=int, default=DEFAULT_CHUNK_SIZE, help="films per committed chunk")
    parser.add_argument("--cinema", default=None, help="only listings from this cinema")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> dict:
    args = parse_args(argv)
    database_url = require_setting("DATABASE_URL")

    engine = get_engine(database_url)
    cache = UrlCache.load(LETTERBOXD_CACHE_PATH)
    print(f"Loaded {len(cache)} cached Letterboxd URLs from {LETTERBOXD_CACHE_PATH}")

    try:
        summary = enrich_ratings(
            engine,
            cache,
            table=listings_table(LISTINGS_TABLE),
            force=args.force,
            limit=args.limit,
            chunk_size=args.chunk,
            cinema=args.cinema,
        )
    finally:
        engine.dispose()

    print("\nRating enrichment complete!")
    return summary


def cli() -> None:
    try:
        main()
    except ConfigError as e:
        raise SystemExit(f"[enrich_ratings] {e}")


if __name__ == "__main__":
    cli()
