# File: backend/app/api/v1/assembly/models.py
# Version: v0.1.0
"""
SQLAlchemy model for Golden Gate optimizer runs (table `assembly_runs`).
"""

from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from backend.app.db.base import Base


class AssemblyRun(Base):
    __tablename__ = "assembly_runs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sequence_digest = Column(String, nullable=False, index=True)
    sequence_length = Column(Integer, nullable=False)
    fragment_count = Column(Integer, nullable=False)
    enzyme = Column(String, nullable=False)
    algorithm = Column(String, nullable=False)
    fidelity = Column(Float, nullable=True)
    partial = Column(Boolean, nullable=False, default=False)
    parameters_json = Column(JSON, nullable=False)
    result_json = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="completed")
