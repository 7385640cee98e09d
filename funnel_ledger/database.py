"""
database.py — SQLAlchemy 2.0 engine and session factory for the durable store.

This module owns ALL database connection infrastructure.
Nothing else in the codebase creates engines or sessions directly.

Usage:
    from funnel_ledger.database import create_db_engine, make_session_factory
    engine = create_db_engine("sqlite:///funnel_analytics.db")
    SessionLocal = make_session_factory(engine)
    with SessionLocal() as session: ...
"""
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from funnel_ledger.config import settings


# ---------------------------------------------------------------------------
# Declarative base — ALL ORM models inherit from this
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base.
    All ORM models in funnel_ledger/models/ inherit from Base.
    """
    pass


# ---------------------------------------------------------------------------
# Engine factory — one engine per store
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """
    Build an engine for the given URL (defaults to settings.database_url).
    No connection is opened until the first query.
    """
    return create_engine(
        url or settings.database_url,
        echo=settings.debug,      # Logs SQL statements in debug mode (no payloads in WHERE clauses)
        pool_pre_ping=True,       # Detect and discard stale connections before each use
    )


# ---------------------------------------------------------------------------
# Session factory — produces Session instances
# ---------------------------------------------------------------------------
def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,   # Keep objects usable after commit without re-querying
    )


def init_db(engine: Engine) -> None:
    """Create any missing tables. Safe to call repeatedly."""
    # Imported for its side effect: registers the tables on Base.metadata
    import funnel_ledger.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
