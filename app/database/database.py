"""
Central SQLAlchemy setup.

*   Reads DATABASE_URL from the environment (SQLite file by default).
*   Creates an Engine with pooling + disconnect handling.
*   Exposes `SessionLocal()` factory and `Base` declarative metadata.
*   Provides the `db_session()` context manager + `init_db()` helper.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///./venture_agents.db"
SQLITE_TIMEOUT_SECONDS = 5

DATABASE_URL: str = os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def make_engine(url: str, **kwargs) -> Engine:
    """
    Build an engine for ``url``. SQLite gets a lock timeout and is allowed to
    cross threads (the read-through chain queries from a worker thread);
    server databases get a sized pool with recycling.
    """
    options = dict(
        pool_pre_ping=True,
        echo=os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true",
        future=True,
    )
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False, "timeout": SQLITE_TIMEOUT_SECONDS}
    else:
        options.update(pool_size=10, max_overflow=20, pool_recycle=1800)
    options.update(kwargs)
    return create_engine(url, **options)


ENGINE = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    bind=ENGINE,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)

Base = declarative_base()


@contextmanager
def db_session(factory=None) -> Generator[Session, None, None]:
    """
    Context-manager version::

        with db_session() as db:
            db.query(...)

    Commits on success, rolls back on error, always closes.
    """
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Engine | None = None) -> None:
    """
    Create all tables that are imported into metadata.
    Call once at startup (or run Alembic migrations instead).
    """
    import app.database.models  # noqa: F401 – ensure models are imported

    Base.metadata.create_all(bind=engine or ENGINE)
