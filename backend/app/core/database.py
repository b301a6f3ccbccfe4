"""
database.py — Engine, Sessions & Declarative Base

Purpose:
- Own the single declarative `Base` every ORM model registers on, so
  relationships resolve and `create_all()` sees one metadata.
- Build the synchronous SQLAlchemy engine and `SessionLocal` factory from
  DATABASE_URL (Postgres through psycopg v3 in production, SQLite in tests).
- Hand one session per HTTP request to the routers through `get_db()`.

Sessions are created with autoflush=False: services flush explicitly before
querying rows they have just modified, and commit at the end of each public
operation.

Schema:
- `init_db()` creates missing tables; there are no migrations.

This module does NOT:
- Declare tables (see app/models/*).
- Run valuation or scheduling queries.
"""

import datetime
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings

Base = declarative_base()

# -----------------------------------------------------------------------------
# Engine & session factory
# -----------------------------------------------------------------------------


def normalize_db_url(db_url: str) -> str:
    """
    Use the psycopg (v3) driver for plain postgresql:// URLs.
    """
    if db_url.startswith("postgresql://") and "+" not in db_url.split("://")[0]:
        return db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


_url = (settings.DATABASE_URL or "").strip()

# Empty DATABASE_URL: the app still imports; get_db() and init_db() raise
engine: Optional[Engine] = create_engine(normalize_db_url(_url), pool_pre_ping=True) if _url else None
SessionLocal: Optional[sessionmaker] = (
    sessionmaker(bind=engine, autocommit=False, autoflush=False) if engine is not None else None
)


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Create every table registered on `Base` that does not exist yet.
    """
    import app.models  # noqa: F401  (registers the tables)

    target = bind or engine
    if target is None:
        raise RuntimeError("DATABASE_URL is not set; cannot create tables")
    Base.metadata.create_all(bind=target)

# -----------------------------------------------------------------------------
# Request dependency
# -----------------------------------------------------------------------------


def get_db() -> Iterator[Session]:
    """
    Session for one request, closed once the response is sent.

        @router.get("/{company_id}/valuation")
        def get_valuation_preview(company_id: int, db: Session = Depends(get_db)):
            ...

    Raises:
        RuntimeError: DATABASE_URL is empty
    """
    if SessionLocal is None:
        raise RuntimeError("DATABASE_URL is not set; no database session available")

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp used for every created_at / updated_at column."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
