# File: backend/app/services/run_store.py
# Version: v0.2.0
"""
Run persistence helpers (service layer).

These functions encapsulate the DB logic so routers don't need to import
SQLAlchemy query details.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.api.v1.assembly.models import AssemblyRun
from backend.app.api.v1.primers.models import PrimerRun


def record_primer_run(
    db: Session,
    *,
    digest: str,
    start: int,
    end: int,
    parameters: dict,
    result: Optional[dict],
    status: str = "completed",
    error: Optional[str] = None,
) -> PrimerRun:
    run = PrimerRun(
        sequence_digest=digest,
        target_start=start,
        target_end=end,
        parameters_json=parameters,
        result_json=result,
        status=status,
        error=error,
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def record_assembly_run(
    db: Session,
    *,
    digest: str,
    sequence_length: int,
    fragment_count: int,
    parameters: dict,
    result: dict,
) -> AssemblyRun:
    run = AssemblyRun(
        sequence_digest=digest,
        sequence_length=sequence_length,
        fragment_count=fragment_count,
        enzyme=result.get("enzyme", ""),
        algorithm=result.get("algorithm", ""),
        fidelity=result.get("fidelity"),
        partial=bool(result.get("partial")),
        parameters_json=parameters,
        result_json=result,
        status="partial" if result.get("partial") else "completed",
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def list_primer_runs(db: Session, *, limit: int = 100, offset: int = 0) -> tuple[int, list[PrimerRun]]:
    total = db.execute(select(func.count()).select_from(PrimerRun)).scalar_one()
    stmt = select(PrimerRun).order_by(PrimerRun.created_at.desc()).limit(limit).offset(offset)
    return total, list(db.execute(stmt).scalars())


def list_assembly_runs(db: Session, *, limit: int = 100, offset: int = 0) -> tuple[int, list[AssemblyRun]]:
    total = db.execute(select(func.count()).select_from(AssemblyRun)).scalar_one()
    stmt = select(AssemblyRun).order_by(AssemblyRun.created_at.desc()).limit(limit).offset(offset)
    return total, list(db.execute(stmt).scalars())


def get_primer_run(db: Session, run_id: str) -> PrimerRun | None:
    return db.get(PrimerRun, run_id)


def get_assembly_run(db: Session, run_id: str) -> AssemblyRun | None:
    return db.get(AssemblyRun, run_id)
