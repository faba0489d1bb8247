# File: backend/app/api/v1/assembly/router.py
# Version: v0.1.0
"""
Golden Gate assembly endpoints:
- GET /parameters         ← current optimizer parameters
- PUT /parameters         ← validates & persists new parameters
- POST /optimize          ← junction positions + overhang set (persisted as a run)
- POST /fidelity          ← fidelity report and failure prediction of a supplied set
- GET /enzymes            ← supported enzymes, standard fusion sites, published sets
- GET /runs
- GET /runs/{run_id}

An infeasible request is not an error: /optimize answers 200 with
`partial: true` and a `warning`.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from backend.app.config.config_assembly import (
    AssemblyParameters,
    ensure_current_assembly_exists,
    save_current_assembly_params,
)
from backend.app.schemas.assembly import AssemblyRunRecord, FidelityRequest, OptimizeRequest
from backend.app.services import run_store
from backend.app.services.overhang_service import effective_options, enzyme_catalog, run_fidelity, run_optimize
from backend.app.services.primer_service import digest_sequence

from ..primers.deps import db_session
from .models import AssemblyRun

router = APIRouter(prefix="/api/v1/assembly", tags=["assembly"])


def _record(run: AssemblyRun, with_result: bool) -> AssemblyRunRecord:
    return AssemblyRunRecord(
        id=run.id,
        createdAt=run.created_at.isoformat() if run.created_at else "",
        sequenceDigest=run.sequence_digest,
        sequenceLength=run.sequence_length,
        fragmentCount=run.fragment_count,
        enzyme=run.enzyme,
        algorithm=run.algorithm,
        fidelity=run.fidelity,
        partial=bool(run.partial),
        status=run.status,
        result=run.result_json if with_result else None,
    )


@router.get("/parameters", response_model=AssemblyParameters, response_model_by_alias=True)
def get_parameters():
    _, params = ensure_current_assembly_exists()
    return params


@router.put("/parameters", response_model=AssemblyParameters, response_model_by_alias=True)
def update_parameters(payload: AssemblyParameters):
    save_current_assembly_params(payload)
    return payload


@router.post("/optimize")
def optimize(payload: OptimizeRequest, db: Session = Depends(db_session)) -> dict:
    """Pick junction positions and overhangs; the response mirrors OverhangSet.as_dict() plus runId."""
    opts = effective_options(
        payload.parameters,
        enzyme=payload.enzyme,
        algorithm=payload.algorithm,
        constraints=payload.constraints.model_dump() if payload.constraints else None,
        max_iterations=payload.maxIterations,
        time_budget_s=payload.timeBudgetS,
        seed=payload.seed,
    )
    seq = "".join(payload.sequence.split()).upper()
    result = run_optimize(seq, payload.fragmentCount, opts).as_dict()
    run = run_store.record_assembly_run(
        db, digest=digest_sequence(seq), sequence_length=len(seq), fragment_count=payload.fragmentCount,
        parameters=opts.model_dump(by_alias=True), result=result,
    )
    return {"runId": run.id, **result}


@router.post("/fidelity")
def fidelity(payload: FidelityRequest) -> dict:
    return run_fidelity(payload.overhangs, payload.enzyme).as_dict()


@router.get("/enzymes")
def enzymes() -> dict:
    return enzyme_catalog()


@router.get("/runs", response_model=List[AssemblyRunRecord])
def list_runs(limit: int = 100, offset: int = 0, db: Session = Depends(db_session)):
    _, runs = run_store.list_assembly_runs(db, limit=limit, offset=offset)
    return [_record(r, with_result=False) for r in runs]


@router.get("/runs/{run_id}", response_model=AssemblyRunRecord)
def get_run(run_id: str, db: Session = Depends(db_session)):
    run = run_store.get_assembly_run(db, run_id)
    if not run:
        raise HTTPException(status_code=404, detail="Run not found.")
    return _record(run, with_result=True)
