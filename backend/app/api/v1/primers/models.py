# File: backend/app/api/v1/primers/models.py
# Version: v0.4.0
"""
SQLAlchemy model for primer design runs.

- Uses the project's shared Base (backend.app.db.base.Base) so Alembic sees the table.
- Cross-dialect JSON columns (SQLite in dev, PostgreSQL in prod).
- The ranked pairs and diagnostics are stored as one JSON document per run.
"""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from backend.app.db.base import Base


class PrimerRun(Base):
    __tablename__ = "primer_runs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sequence_digest = Column(String, nullable=False, index=True)
    target_start = Column(Integer, nullable=False)
    target_end = Column(Integer, nullable=False)
    parameters_json = Column(JSON, nullable=False)
    status = Column(String, nullable=False, default="completed")
    result_json = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
