"""Read enrichment work from, and write results to, the listings table."""

from __future__ import annotations

from datetime import date

import pandas as pd
from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    select,
    update,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Engine

from listings.config import LISTINGS_TABLE
from listings.data.records import ScreeningRecord


def listings_table(name: str = LISTINGS_TABLE, metadata: MetaData | None = None) -> Table:
    """The listings columns this pipeline reads and writes.

    The table itself is created and migrated by the seeding tooling.
    """
    return Table(
        name,
        metadata or MetaData(),
        Column("id", Text, primary_key=True),
        Column("film_title", Text, nullable=False),
        Column("cinema", Text, nullable=False),
        Column("screening_start", DateTime(timezone=True)),
        Column("release_date", Date),
        Column("website_year", Integer),
        Column("director", Text),
        Column("synopsis", Text),
        Column("genres", JSON().with_variant(postgresql.ARRAY(Text), "postgresql")),
        Column("tmdb_id", Integer, index=True),
        Column("imdb_id", Text),
        Column("rotten_tomatoes_pct", Integer),
        Column("letterboxd_rating", Float),
    )


def get_engine(database_url: str) -> Engine:
    """Create an engine, defaulting bare postgres URLs to the psycopg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if database_url.startswith(prefix):
            database_url = "postgresql+psycopg://" + database_url[len(prefix):]
            break
    return create_engine(database_url, pool_pre_ping=True)


def load_rating_work(
    engine: Engine,
    table: Table,
    force: bool = False,
    cinema: str | None = None,
) -> pd.DataFrame:
    """Listings with a tmdb_id that still need a Letterboxd rating.

    With ``force``, every listing with a tmdb_id is returned. Rows come back
    in screening order so progress is reproducible between runs.
    """
    stmt = select(
        table.c.id,
        table.c.film_title,
        table.c.cinema,
        table.c.tmdb_id,
        table.c.release_date,
        table.c.website_year,
        table.c.letterboxd_rating,
    ).where(table.c.tmdb_id.is_not(None))
    if not force:
        stmt = stmt.where(table.c.letterboxd_rating.is_(None))
    if cinema:
        stmt = stmt.where(table.c.cinema == cinema)
    stmt = stmt.order_by(table.c.screening_start, table.c.id)

    with engine.connect() as conn:
        return pd.read_sql(stmt, conn)


def load_group_members(engine: Engine, table: Table) -> pd.DataFrame:
    """Listings that name a director, for (director, year) sibling grouping."""
    stmt = select(
        table.c.id,
        table.c.film_title,
        table.c.tmdb_id,
        table.c.director,
        table.c.release_date,
        table.c.website_year,
    ).where(table.c.director.is_not(None))

    with engine.connect() as conn:
        return pd.read_sql(stmt, conn)


def write_ratings(
    engine: Engine,
    table: Table,
    updates: dict[int, float],
    siblings: dict[int, list[str]] | None = None,
) -> int:
    """Set letterboxd_rating on every row of each tmdb_id, in one transaction.

    ``siblings`` maps a tmdb_id to listing ids that never resolved but share
    its (director, year) group; those rows get the same rating.
    Returns the number of rows changed. Rolls back and re-raises on failure.
    """
    if not updates:
        return 0

    siblings = siblings or {}
    changed = 0
    with engine.begin() as conn:
        for tmdb_id, rating in updates.items():
            result = conn.execute(
                update(table)
                .where(table.c.tmdb_id == int(tmdb_id))
                .values(letterboxd_rating=float(rating))
            )
            changed += result.rowcount or 0

            ids = siblings.get(tmdb_id)
            if ids:
                result = conn.execute(
                    update(table)
                    .where(table.c.id.in_(ids), table.c.tmdb_id.is_(None))
                    .values(letterboxd_rating=float(rating))
                )
                changed += result.rowcount or 0
    return changed


def write_identities(engine: Engine, table: Table, records: list[ScreeningRecord]) -> int:
    """Persist resolved identity fields for each listing, by listing id.

    Only resolved records are written; rows that don't exist are skipped.
    """
    changed = 0
    with engine.begin() as conn:
        for record in records:
            if not record.resolved:
                continue
            values = {
                "tmdb_id": record.tmdb_id,
                "imdb_id": record.imdb_id,
                "director": record.director,
                "synopsis": record.synopsis,
                "genres": list(record.genres) or None,
                "release_date": date.fromisoformat(record.release_date) if record.release_date else None,
            }
            if record.rotten_tomatoes_pct is not None:
                values["rotten_tomatoes_pct"] = record.rotten_tomatoes_pct
            if record.letterboxd_rating is not None:
                values["letterboxd_rating"] = record.letterboxd_rating
            result = conn.execute(update(table).where(table.c.id == record.id).values(**values))
            changed += result.rowcount or 0

    print(f"Wrote identities for {changed} listing rows to {table.name}")
    return changed
