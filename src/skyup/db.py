"""
Engine, sessions and schema files for the SkyUp backend.

Schema lives in ``schema/NNN_name.sql`` at the repository root. Each file is
applied once, in name order, and recorded in ``schema_migrations`` so a
restart only runs files added since the last start.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from skyup.config import settings
from skyup.utils import isoformat_utc, utc_now

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parents[2] / "schema"

_MIGRATIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename TEXT PRIMARY KEY,
    applied_at TEXT NOT NULL
)
"""


class DB:
    """Process-wide engine and session factory, set by ``init_db``."""

    engine: Optional[Engine] = None
    SessionLocal: Optional[sessionmaker] = None


def build_engine(database_url: str) -> Engine:
    kwargs = {"pool_pre_ping": True}
    if database_url.lower().startswith("sqlite"):
        # Sessions are used from the threadpool FastAPI runs sync routes in.
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_engine(database_url, **kwargs)


def split_statements(sql: str) -> list[str]:
    """Split a schema file on ``;``, dropping comment-only chunks and explicit transactions."""
    statements = []
    for chunk in sql.split(";"):
        lines = [line for line in chunk.splitlines() if not line.strip().startswith("--")]
        statement = "\n".join(lines).strip()
        if not statement or statement.upper() in ("BEGIN", "COMMIT"):
            continue
        statements.append(statement)
    return statements


def apply_schema(engine: Engine, schema_dir: Path = SCHEMA_DIR) -> list[str]:
    """Apply schema files not yet recorded; returns the names applied."""
    if not schema_dir.is_dir():
        raise RuntimeError(f"Schema directory missing: {schema_dir}")

    files = sorted(schema_dir.glob("*.sql"))
    if not files:
        logger.warning("No schema files in %s", schema_dir)
        return []

    applied = []
    with engine.begin() as conn:
        conn.exec_driver_sql(_MIGRATIONS_DDL)
        done = {row[0] for row in conn.execute(text("SELECT filename FROM schema_migrations"))}
        for path in files:
            if path.name in done:
                continue
            for statement in split_statements(path.read_text(encoding="utf-8")):
                conn.exec_driver_sql(statement)
            conn.execute(
                text("INSERT INTO schema_migrations (filename, applied_at) VALUES (:filename, :applied_at)"),
                {"filename": path.name, "applied_at": isoformat_utc(utc_now())},
            )
            applied.append(path.name)

    if applied:
        logger.info("Applied schema files: %s", ", ".join(applied))
    return applied


def init_db() -> None:
    DB.engine = build_engine(settings.database_url)
    DB.SessionLocal = sessionmaker(bind=DB.engine)

    if settings.auto_migrate_on_startup:
        try:
            apply_schema(DB.engine)
        except SQLAlchemyError as exc:
            raise RuntimeError("Failed to apply schema migrations") from exc


def dispose_db() -> None:
    if DB.engine is not None:
        DB.engine.dispose()
    DB.engine = None
    DB.SessionLocal = None


def get_db_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""
    if DB.SessionLocal is None:
        raise RuntimeError("Database not initialized")
    db = DB.SessionLocal()
    try:
        yield db
    finally:
        db.close()
