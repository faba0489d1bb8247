# File: backend/app/core/primer/parameters.py
# Version: v2.0.0
"""
Pydantic model for primer design parameters (camelCase keys, as stored in
backend/app/config/primers_param.json).

Hard filters: length, Tm window, GC window, homopolymer run, |ΔTm| of the
pair. Everything else is ranked softly by the scoring engine.

Usage:
    from backend.app.core.primer.parameters import PrimerDesignParameters
"""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field, conint, confloat, model_validator

from backend.app.core.primer import constants as C


class PrimerDesignParameters(BaseModel):
    # Lengths
    primerLengthMin: conint(ge=6) = Field(C.DEFAULT_MIN_LEN, description="Minimum primer length")
    primerLengthMax: conint(gt=6) = Field(C.DEFAULT_MAX_LEN, description="Maximum primer length")
    forwardLength: Optional[conint(ge=6)] = Field(None, description="Fixed forward length (overrides min/max)")
    reverseLength: Optional[conint(ge=6)] = Field(None, description="Fixed reverse length (overrides min/max)")

    # Temperatures (range, or target ± tolerance)
    primerTmMin: confloat(ge=0) = Field(C.DEFAULT_TM_MIN, description="Minimum acceptable primer Tm (°C)")
    primerTmMax: confloat(ge=0) = Field(C.DEFAULT_TM_MAX, description="Maximum acceptable primer Tm (°C)")
    targetTm: Optional[confloat(ge=0)] = Field(None, description="If set, the Tm window becomes targetTm ± tmTolerance")
    tmTolerance: confloat(gt=0) = Field(C.DEFAULT_TM_TOLERANCE, description="Half-width of the Tm window around targetTm")

    # GC content (%)
    primerGCMin: confloat(ge=0, le=100) = Field(C.DEFAULT_GC_MIN, description="Minimum GC percentage")
    primerGCMax: confloat(ge=0, le=100) = Field(C.DEFAULT_GC_MAX, description="Maximum GC percentage")

    # Structure/sequence constraints
    primerHomopolymerMax: conint(ge=1) = Field(C.DEFAULT_HOMOPOLYMER_MAX, description="Max run of identical bases")

    # Pairing constraint
    primerTmDifferenceMax: confloat(ge=0) = Field(C.DEFAULT_TM_DIFF_MAX, description="Max |Tm_f - Tm_r| (°C)")

    # Placement
    templateExact: bool = Field(True, description="If true, forward starts at 'start' and reverse ends at 'end'")
    searchWindow: conint(ge=0) = Field(C.DEFAULT_SEARCH_WINDOW, description="Non-exact mode: start/end slack (nt)")
    productSizeMin: conint(ge=1) = Field(C.DEFAULT_PRODUCT_MIN, description="Non-exact mode: minimum product size")

    # Ranking
    preset: str = Field("amplification", description="Scoring preset")
    weights: Optional[Dict[str, float]] = Field(None, description="Explicit composite weights")
    tmMethod: str = Field("nn", description="nn | primer3 | biopython")
    parameterSet: str = Field(C.DEFAULT_PARAMETER_SET, description="Nearest-neighbor parameter set")
    maxPairs: conint(ge=1, le=50) = Field(C.DEFAULT_MAX_PAIRS, description="Number of ranked pairs returned")
    shortlist: conint(ge=1) = Field(C.DEFAULT_SHORTLIST, description="Pairs fully scored after cheap pre-ranking")

    def tm_window(self) -> tuple[float, float]:
        if self.targetTm is not None:
            return self.targetTm - self.tmTolerance, self.targetTm + self.tmTolerance
        return self.primerTmMin, self.primerTmMax

    def length_range(self, side: str) -> tuple[int, int]:
        fixed = self.forwardLength if side == "F" else self.reverseLength
        if fixed is not None:
            return fixed, fixed
        return self.primerLengthMin, self.primerLengthMax

    @model_validator(mode="after")
    def _bounds(self) -> "PrimerDesignParameters":
        if self.primerLengthMax < self.primerLengthMin:
            raise ValueError("primerLengthMax must be >= primerLengthMin")
        if self.primerTmMax < self.primerTmMin:
            raise ValueError("primerTmMax must be >= primerTmMin")
        if self.primerGCMax < self.primerGCMin:
            raise ValueError("primerGCMax must be >= primerGCMin")
        return self
