"""
Versioned schema migrations

Each step runs once; applied versions are recorded in schema_migrations.
Column additions check the live schema first so a database created by an
older build (columns present, no version rows) upgrades cleanly.
"""
from dataclasses import dataclass
from typing import Callable, List
from sqlalchemy import (
    Column, DateTime, Integer, MetaData, String, Table, inspect, text,
)
from sqlalchemy.engine import Connection, Engine
import logging

from app.core.clock import utcnow

logger = logging.getLogger(__name__)

_metadata = MetaData()

schema_migrations = Table(
    "schema_migrations",
    _metadata,
    Column("version", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("applied_at", DateTime, nullable=False),
)


@dataclass
class Migration:
    version: int
    name: str
    apply: Callable[[Connection], None]


def _add_columns(conn: Connection, table: str, columns: List[tuple]):
    existing = {c["name"] for c in inspect(conn).get_columns(table)}
    for name, ddl_type in columns:
        if name in existing:
            logger.debug(f"Column {table}.{name} already present")
            continue
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl_type}"))
        logger.info(f"Added column {table}.{name}")


# ========== Steps ==========

def _create_customers(conn: Connection):
    if inspect(conn).has_table("customers"):
        return
    conn.execute(text("""
        CREATE TABLE customers (
            id VARCHAR(100) PRIMARY KEY,
            email VARCHAR(255) UNIQUE,
            name VARCHAR(255),
            picture TEXT,
            google_access_token TEXT,
            google_refresh_token TEXT,
            scopes TEXT,
            token_expiry TIMESTAMP,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
    """))


def _add_quickbooks_columns(conn: Connection):
    _add_columns(conn, "customers", [
        ("qb_access_token", "TEXT"),
        ("qb_refresh_token", "TEXT"),
        ("qb_company_id", "VARCHAR(100)"),
        ("qb_token_expiry", "TIMESTAMP"),
        ("qb_base_url", "VARCHAR(255)"),
    ])


def _add_tiktok_columns(conn: Connection):
    _add_columns(conn, "customers", [
        ("tiktok_access_token", "TEXT"),
        ("tiktok_refresh_token", "TEXT"),
        ("tiktok_token_expiry", "TIMESTAMP"),
        ("tiktok_user_id", "VARCHAR(100)"),
    ])


def _create_customer_spreadsheets(conn: Connection):
    if inspect(conn).has_table("customer_spreadsheets"):
        return
    # Created from the ORM definition so the id column autoincrements per dialect
    from app.models import CustomerSpreadsheet
    CustomerSpreadsheet.__table__.create(bind=conn)


MIGRATIONS: List[Migration] = [
    Migration(1, "create_customers", _create_customers),
    Migration(2, "add_quickbooks_columns", _add_quickbooks_columns),
    Migration(3, "add_tiktok_columns", _add_tiktok_columns),
    Migration(4, "create_customer_spreadsheets", _create_customer_spreadsheets),
]


def applied_versions(engine: Engine) -> set:
    with engine.connect() as conn:
        if not inspect(conn).has_table("schema_migrations"):
            return set()
        return {row[0] for row in conn.execute(schema_migrations.select())}


def run_migrations(engine: Engine, migrations: List[Migration] = None) -> List[int]:
    """
    Apply pending migrations in version order.
    Returns the versions applied by this call.
    """
    migrations = sorted(migrations or MIGRATIONS, key=lambda m: m.version)
    _metadata.create_all(bind=engine, tables=[schema_migrations])

    done = applied_versions(engine)
    applied = []
    for migration in migrations:
        if migration.version in done:
            continue
        with engine.begin() as conn:
            migration.apply(conn)
            conn.execute(schema_migrations.insert().values(
                version=migration.version,
                name=migration.name,
                applied_at=utcnow(),
            ))
        logger.info(f"Applied migration {migration.version}: {migration.name}")
        applied.append(migration.version)

    if not applied:
        logger.debug("Schema up to date")
    return applied
