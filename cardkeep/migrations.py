"""
Versioned schema migrations for the collection store.

Each step is additive and idempotent: it creates tables or adds columns
only when inspection shows they are missing, so running a step against a
database that already has its changes is a no-op. CollectionStore.open()
applies every step newer than the version recorded in schema_version, in
order, one transaction per step.
"""
import logging
from typing import Callable, NamedTuple

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

from cardkeep.models import Base

log = logging.getLogger(__name__)


class Migration(NamedTuple):
    version: int
    description: str
    apply: Callable[[Connection], None]


# ── Helpers ───────────────────────────────────────────────────────────────────

def column_names(conn: Connection, table: str) -> set[str]:
    return {c["name"] for c in inspect(conn).get_columns(table)}


def add_column_if_missing(conn: Connection, table: str, column: str, ddl: str) -> bool:
    """ALTER TABLE … ADD COLUMN unless the column is already there."""
    if column in column_names(conn, table):
        return False
    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
    log.info("Added column %s.%s", table, column)
    return True


# ── Steps ─────────────────────────────────────────────────────────────────────

def _create_base_tables(conn: Connection) -> None:
    # checkfirst: pre-existing tables from an older install are left alone
    Base.metadata.create_all(conn, checkfirst=True)


def _add_price_history(conn: Connection) -> None:
    add_column_if_missing(conn, "cards", "price_usd_6mo_ago", "VARCHAR(20)")
    add_column_if_missing(conn, "cards", "price_usd_12mo_ago", "VARCHAR(20)")
    add_column_if_missing(conn, "cards", "price_last_updated", "DATETIME")


def _add_ownership_flags(conn: Connection) -> None:
    add_column_if_missing(conn, "cards", "quantity", "INTEGER NOT NULL DEFAULT 1")
    add_column_if_missing(conn, "cards", "is_favorite", "BOOLEAN NOT NULL DEFAULT 0")
    add_column_if_missing(conn, "cards", "fuzzy_match", "BOOLEAN NOT NULL DEFAULT 0")


def _add_card_faces_and_colors(conn: Connection) -> None:
    add_column_if_missing(conn, "cards", "card_faces", "TEXT")
    add_column_if_missing(conn, "cards", "colors", "VARCHAR(20)")
    add_column_if_missing(conn, "cards", "color_identity", "VARCHAR(20)")


def _add_deck_format(conn: Connection) -> None:
    add_column_if_missing(conn, "decks", "format", "VARCHAR(30)")


MIGRATIONS: list[Migration] = [
    Migration(1, "create base tables", _create_base_tables),
    Migration(2, "card price history columns", _add_price_history),
    Migration(3, "card quantity and favorite flags", _add_ownership_flags),
    Migration(4, "card faces and colour columns", _add_card_faces_and_colors),
    Migration(5, "deck format tag", _add_deck_format),
]

SCHEMA_VERSION = MIGRATIONS[-1].version


# ── Runner ────────────────────────────────────────────────────────────────────

def current_version(conn: Connection) -> int:
    conn.execute(text("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)"))
    row = conn.execute(text("SELECT MAX(version) FROM schema_version")).first()
    return (row[0] or 0) if row else 0


def apply_migrations(engine: Engine, migrations: list[Migration] = None) -> int:
    """Bring the schema up to date and return the resulting version."""
    migrations = sorted(migrations or MIGRATIONS, key=lambda m: m.version)

    with engine.begin() as conn:
        version = current_version(conn)

    for step in migrations:
        if step.version <= version:
            continue
        log.info("Running migration %d: %s", step.version, step.description)
        with engine.begin() as conn:
            step.apply(conn)
            conn.execute(text("DELETE FROM schema_version"))
            conn.execute(
                text("INSERT INTO schema_version (version) VALUES (:v)"), {"v": step.version}
            )
        version = step.version

    return version
