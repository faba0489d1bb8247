# File: backend/app/api/v1/primers/router.py
# Version: v0.3.0
"""
Primer endpoints:
- GET /parameters         ← returns current primer design parameters
- PUT /parameters         ← validates & persists new parameters
- POST /design            ← ranked primer pairs for a window (persisted as a run)
- POST /score             ← score an existing forward/reverse pair
- GET /runs
- GET /runs/{run_id}
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.app.config.config_primers import ensure_current_exists, save_current_params
from backend.app.core.errors import InvalidInput
from backend.app.core.primer.parameters import PrimerDesignParameters
from backend.app.core.primer.schemas import (
    PrimerDesignRequest,
    PrimerDesignResponse,
    PrimerRunRecord,
    PrimerScoreRequest,
    PrimerScoreResponse,
)
from backend.app.services import run_store
from backend.app.services.primer_service import digest_sequence, run_design, run_score

from .deps import db_session
from .models import PrimerRun

router = APIRouter(prefix="/api/v1/primers", tags=["primers"])


def _record(run: PrimerRun, with_result: bool) -> PrimerRunRecord:
    out = PrimerRunRecord(
        id=run.id,
        createdAt=run.created_at.isoformat() if run.created_at else "",
        targetStart=run.target_start,
        targetEnd=run.target_end,
        sequenceDigest=run.sequence_digest,
        status=run.status,
    )
    if with_result and run.result_json:
        out.result = PrimerDesignResponse.model_validate({**run.result_json, "runId": run.id})
    return out


@router.get("/parameters", response_model=PrimerDesignParameters)
def get_parameters():
    """
    Return the current editable primer design parameters.
    If not initialized, create primers_param.json from defaults and return it.
    """
    _, params = ensure_current_exists()
    return params


@router.put("/parameters", response_model=PrimerDesignParameters)
def update_parameters(payload: PrimerDesignParameters):
    """Validate and persist new primer design parameters into primers_param.json."""
    save_current_params(payload)
    return payload


@router.post("/design", response_model=PrimerDesignResponse)
def design(payload: PrimerDesignRequest, db: Session = Depends(db_session)):
    """
    Design primers on the window [start, end) (0-based, end exclusive).
    If `parameters` is omitted, the stored parameters are used.
    """
    seq = "".join(payload.sequence.split()).upper()
    end = payload.end if payload.end is not None else len(seq)
    try:
        response, params, template = run_design(payload)
    except InvalidInput as exc:
        run_store.record_primer_run(
            db, digest=digest_sequence(seq), start=payload.start, end=end,
            parameters=(payload.parameters.model_dump() if payload.parameters else {}),
            result=None, status="failed", error=str(exc),
        )
        raise
    run = run_store.record_primer_run(
        db, digest=digest_sequence(template), start=payload.start, end=end,
        parameters=params.model_dump(), result=response.model_dump(exclude={"runId"}),
    )
    response.runId = run.id
    return response


@router.post("/score", response_model=PrimerScoreResponse)
def score(payload: PrimerScoreRequest):
    """Score a primer pair (template optional: enables off-target, amplicon and equilibrium terms)."""
    return run_score(payload)


@router.get("/runs", response_model=List[PrimerRunRecord])
def list_runs(limit: int = 100, offset: int = 0, db: Session = Depends(db_session)):
    """List recent primer design runs (lightweight view)."""
    _, runs = run_store.list_primer_runs(db, limit=limit, offset=offset)
    return [_record(r, with_result=False) for r in runs]


@router.get("/runs/{run_id}", response_model=PrimerRunRecord)
def get_run(run_id: str, db: Session = Depends(db_session)):
    """Return a full run, including result if present."""
    run = run_store.get_primer_run(db, run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found.")
    return _record(run, with_result=True)
