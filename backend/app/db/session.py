# File: backend/app/db/session.py
# Version: v0.2.0
"""
SQLAlchemy engine and session factory.

- Uses SQLite by default (URL from settings.DB_URL)
- Provides `get_db()` FastAPI dependency to manage session lifecycle.
- Creates the parent directory when using SQLite file URLs.
- `init_db()` creates missing tables (dev/test); production schemas are
  managed by Alembic (backend/alembic).

Synchronous on purpose: a run writes a single row.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from backend.app.core.config import settings
from backend.app.db.base import Base

logger = logging.getLogger(__name__)

DB_URL = settings.DB_URL
if DB_URL.startswith("sqlite:///"):
    db_path = DB_URL.replace("sqlite:///", "", 1)
    db_dir = Path(db_path).resolve().parent
    db_dir.mkdir(parents=True, exist_ok=True)

_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, future=True, connect_args=_connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def init_db() -> None:
    """Create all tables known to the model modules (no-op for existing ones)."""
    from backend.app.api.v1.assembly import models as _assembly_models  # noqa: F401
    from backend.app.api.v1.primers import models as _primer_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and guarantee closing it after use."""
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
