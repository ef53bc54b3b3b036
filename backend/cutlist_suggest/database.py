"""Database engine, session factory, and table initialization.

Nothing here runs at import time: callers build one engine/session per
process or per test and pass the session to the repositories explicitly.
"""

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


def build_engine(database_url: str, echo: bool = False):
    """Create a SQLAlchemy engine.

    For file-backed SQLite the parent directory is created, and
    check_same_thread is disabled so a session can be handed between threads.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if database_url.startswith("sqlite:///"):
            db_path = database_url[len("sqlite:///"):]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, echo=echo, connect_args=connect_args)


def build_session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def init_db(engine) -> None:
    """Create all tables that don't exist yet."""
    # Import models so they register with Base.metadata
    import cutlist_suggest.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
