# File: backend/app/core/primer/schemas.py
# Version: v0.3.0
"""
DTOs for requests and responses used by Primer endpoints and services.

Update v0.3.0:
- Coordinates are 0-based with an exclusive `end` (matches the designer).
- Responses carry ranked pairs with the full scoring breakdown.
- `PrimerScoreRequest` scores an existing pair without designing.
- `PrimerDesignRequest.parameters` stays optional; if omitted the stored
  parameters (backend/app/config/primers_param.json) are used.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, conint

from backend.app.core.thermo.tm import Concentrations
from .parameters import PrimerDesignParameters


class PrimerDesignRequest(BaseModel):
    """Request to design primers within a target window of the given sequence."""
    sequence: str = Field(..., description="Full template sequence (raw, whitespace tolerated).")
    start: conint(ge=0) = Field(0, description="0-based forward anchor.")
    end: Optional[conint(ge=1)] = Field(None, description="0-based exclusive reverse anchor (default: sequence end).")
    parameters: Optional[PrimerDesignParameters] = None
    concentrations: Optional[Concentrations] = None


class PrimerSeqInfo(BaseModel):
    """Basic primer properties."""
    sequence: str
    tm: float
    gc: float
    position: int
    length: int


class PrimerPairOut(BaseModel):
    forward: PrimerSeqInfo
    reverse: PrimerSeqInfo
    productSize: int
    composite: int
    tier: Optional[str] = None
    score: Optional[Dict[str, Any]] = None


class PrimerDesignResponse(BaseModel):
    """Result of primer design run."""
    runId: Optional[str] = None
    pairs: List[PrimerPairOut] = Field(default_factory=list)
    diagnostics: Dict[str, Any] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)


class PrimerScoreRequest(BaseModel):
    forward: str = Field(..., description="Forward primer 5'->3'")
    reverse: str = Field(..., description="Reverse primer 5'->3'")
    template: Optional[str] = Field(None, description="Template; enables off-target, amplicon and equilibrium terms")
    preset: str = "amplification"
    weights: Optional[Dict[str, float]] = None
    parameterSet: Optional[str] = None
    tmMethod: str = "nn"
    annealingTemperature: float = 55.0
    includeEquilibrium: bool = True
    concentrations: Optional[Concentrations] = None


class PrimerScoreResponse(BaseModel):
    composite: int
    tier: str
    scores: Dict[str, float]
    forward: Dict[str, Any]
    reverse: Optional[Dict[str, Any]] = None
    pair: Dict[str, Any] = Field(default_factory=dict)
    breakdown: Dict[str, Dict[str, float]] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
    preset: str


class PrimerRunRecord(BaseModel):
    """For GET /runs and GET /runs/{run_id}."""
    id: str
    createdAt: str
    targetStart: int
    targetEnd: int
    sequenceDigest: str
    status: str
    result: Optional[PrimerDesignResponse] = None
