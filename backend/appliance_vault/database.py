"""
Engine and session wiring for Appliance Vault.

One engine is built from settings.DATABASE_URL at import time. Requests get
their own session through the get_db dependency.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from appliance_vault.config import settings

logger = logging.getLogger(__name__)


def sqlite_connect_args(database_url: str) -> Dict[str, Any]:
    """
    Connection arguments for the given URL.

    For a file-backed SQLite database the parent directory is created first.
    Sessions cross the request threadpool, so SQLite's same-thread check is off.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return {}
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return {"check_same_thread": False}


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    connect_args=sqlite_connect_args(settings.DATABASE_URL),
)

Base = declarative_base()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Create the users, accounts, appliances and receipts tables if missing."""
    from appliance_vault.models import user, appliance  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")


def get_db() -> Iterator[Session]:
    """Per-request session dependency; always closed after the response."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
