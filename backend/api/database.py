"""
SQLAlchemy engine and sessions for the record store.
A SQLite file next to this module by default; DATABASE_URL selects Postgres or in-memory SQLite.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from backend import config

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def resolve_database_url(raw: str | None) -> str:
    """Normalize a configured URL; hosted Postgres still hands out the legacy postgres:// scheme."""
    if not raw:
        return "sqlite:///" + os.path.join(os.path.dirname(os.path.abspath(__file__)), "mafia.db")
    if raw.startswith("postgres://"):
        return "postgresql://" + raw[len("postgres://"):]
    return raw


def build_engine(url: str):
    kwargs = {}
    if url.startswith("sqlite"):
        # Sessions are used from FastAPI's threadpool
        kwargs["connect_args"] = {"check_same_thread": False}
    if url in IN_MEMORY_URLS:
        # One shared connection, or each session would see its own empty database
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


DATABASE_URL = resolve_database_url(config.DATABASE_URL)
engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Per-request session, closed when the response is done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create the users and games tables if missing."""
    from . import models  # noqa: F401  (registers tables on Base)
    Base.metadata.create_all(bind=engine)


def drop_db():
    """Drop every table; used to reset between tests."""
    from . import models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
