# File: backend/app/schemas/assembly.py
# Version: v0.1.0
"""
Pydantic schemas for the Golden Gate assembly endpoints.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, conint

from backend.app.config.config_assembly import AssemblyParameters
from backend.app.core.assembly.candidates import JunctionConstraints
from backend.app.core.assembly.optimizer import Algorithm


class OptimizeRequest(BaseModel):
    """Optimize junction positions/overhangs for `fragmentCount` fragments."""
    sequence: str = Field(..., description="Full construct sequence (whitespace tolerated).")
    fragmentCount: conint(ge=2) = Field(..., description="Number of fragments (junctions = fragmentCount - 1).")
    enzyme: Optional[str] = Field(None, description="BsaI, BsmBI, Esp3I, BbsI or SapI (default: stored parameters).")
    algorithm: Optional[Algorithm] = None
    constraints: Optional[JunctionConstraints] = None
    maxIterations: Optional[conint(ge=1)] = None
    timeBudgetS: Optional[float] = Field(None, gt=0)
    seed: Optional[int] = None
    parameters: Optional[AssemblyParameters] = None


class FidelityRequest(BaseModel):
    overhangs: List[str] = Field(..., min_length=1)
    enzyme: Optional[str] = None


class AssemblyRunRecord(BaseModel):
    id: str
    createdAt: str
    sequenceDigest: str
    sequenceLength: int
    fragmentCount: int
    enzyme: str
    algorithm: str
    fidelity: Optional[float] = None
    partial: bool
    status: str
    result: Optional[Dict[str, Any]] = None
