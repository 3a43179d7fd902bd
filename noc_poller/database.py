"""
Database setup using SQLAlchemy.

We provide:
- build_engine(): an Engine bound to the store URL from config
- make_session_factory(): a sessionmaker for poller/API sessions
- a Base class to declare ORM models
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from noc_poller.config import Settings, get_settings

# Base class for all ORM models
Base = declarative_base()


def build_engine(settings: Optional[Settings] = None, **kwargs) -> Engine:
    """Create the Engine for the record store (SQLite, Postgres, ...)."""
    settings = settings or get_settings()
    return create_engine(
        settings.store_url,
        future=True,
        echo=False,  # set True if you want to see SQL in the logs
        pool_pre_ping=True,
        **kwargs,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Each unit of work (one store call, one API request) gets its own session."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        future=True,
    )


def create_tables(engine: Engine) -> None:
    """Create tables if they do not exist yet (no-op otherwise)."""
    # models must be imported so their tables are registered on Base.metadata
    from noc_poller import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
