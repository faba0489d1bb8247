# File: backend/app/schemas/secondary_structure.py
# Version: v0.2.0
"""
Pydantic schemas for the analysis endpoints: stems, fold, Tm, equilibrium.
"""
from __future__ import annotations

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, constr

from backend.app.core.structure.equilibrium import EquilibriumOptions
from backend.app.core.thermo.tm import Concentrations


class SecondaryStructureRequest(BaseModel):
    """Request payload for secondary structure analysis."""
    sequence: constr(strip_whitespace=True, min_length=1) = Field(
        ...,
        description="DNA sequence to analyze (A/C/G/T; case-insensitive).",
        examples=["GGGAAACCCTTTTGGGTTTCCC"],
    )
    min_stem_len: int = Field(4, ge=1, description="Minimal length (bp) for a stem region (after merging) to keep.")
    merge_max_gap: int = Field(2, ge=0, description="Merge adjacent stem regions if the unpaired gap is <= this value.")
    temperature: float = Field(37.0, description="Folding temperature (°C).")


class FeatureRegion(BaseModel):
    """Region to visualize on the sequence viewer."""
    kind: Literal["stems"] = "stems"
    start: int = Field(..., ge=0, description="0-based inclusive index.")
    end: int = Field(..., ge=0, description="0-based exclusive index; must be >= start.")


class SecondaryStructureResponse(BaseModel):
    """Response containing merged stem regions suitable for visualization."""
    length: int = Field(..., ge=0, description="Length of the input sequence.")
    regions: List[FeatureRegion] = Field(default_factory=list)


class FoldRequest(BaseModel):
    sequence: constr(strip_whitespace=True, min_length=1)
    partner: Optional[str] = Field(None, description="Second strand: dimer fold when given, hairpin otherwise.")
    temperature: float = 37.0
    parameterSet: Optional[str] = None


class FoldResponse(BaseModel):
    kind: str
    dg: float
    pairs: List[Tuple[int, int]]
    dotBracket: Optional[str] = None
    temperature: float


class TmRequest(BaseModel):
    sequence: constr(strip_whitespace=True, min_length=1)
    method: Literal["nn", "primer3", "biopython"] = "nn"
    parameterSet: Optional[str] = None
    concentrations: Optional[Concentrations] = None


class TmResponse(BaseModel):
    sequence: str
    tm: float
    method: str
    parameterSet: str


class EquilibriumRequest(BaseModel):
    forward: str
    reverse: str
    template: Optional[str] = None
    parameterSet: Optional[str] = None
    options: Optional[EquilibriumOptions] = None


class EquilibriumResponse(BaseModel):
    efficiency: float
    quality: str
    bottleneck: str
    iterations: int
    temperature: float
    fractions: Dict[str, Dict[str, float]]
