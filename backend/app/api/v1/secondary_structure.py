# File: backend/app/api/v1/secondary_structure.py
# Version: v0.2.0
"""
API router for DNA structure and thermodynamics analysis.

POST /api/v1/analysis/stems        stem regions of the MFE hairpin as [start, end) intervals
POST /api/v1/analysis/fold         MFE hairpin (one strand) or dimer (two strands)
POST /api/v1/analysis/tm           melting temperature
POST /api/v1/analysis/equilibrium  coupled primer-pair equilibrium

No authentication is enforced here.
"""

from fastapi import APIRouter

from ...core.thermo.parameters import get_parameter_set
from ...core.config import settings
from ...schemas.secondary_structure import (
    EquilibriumRequest,
    EquilibriumResponse,
    FeatureRegion,
    FoldRequest,
    FoldResponse,
    SecondaryStructureRequest,
    SecondaryStructureResponse,
    TmRequest,
    TmResponse,
)
from ...services.secondary_structure_service import analyze_equilibrium, analyze_fold, analyze_stems, analyze_tm

router = APIRouter(prefix="/v1/analysis", tags=["analysis"])


@router.post("/stems", response_model=SecondaryStructureResponse)
def analyze_stems_endpoint(payload: SecondaryStructureRequest) -> SecondaryStructureResponse:
    """
    Fold the sequence and return merged stem regions for visualization
    ([start, end) 0-based, the "FeatureRegion" shape used by overlays).
    """
    seq = payload.sequence.upper()
    intervals = analyze_stems(
        sequence=seq,
        min_stem_len=payload.min_stem_len,
        merge_max_gap=payload.merge_max_gap,
        temperature=payload.temperature,
    )
    regions = [FeatureRegion(start=s, end=e) for (s, e) in intervals]
    return SecondaryStructureResponse(length=len(seq), regions=regions)


@router.post("/fold", response_model=FoldResponse)
def fold_endpoint(payload: FoldRequest) -> FoldResponse:
    res = analyze_fold(payload.sequence, payload.partner, payload.temperature, payload.parameterSet)
    return FoldResponse(
        kind=res.kind,
        dg=round(res.dg, 2),
        pairs=list(res.pairs),
        dotBracket=res.dot_bracket() if res.kind == "hairpin" else None,
        temperature=res.temperature_c,
    )


@router.post("/tm", response_model=TmResponse)
def tm_endpoint(payload: TmRequest) -> TmResponse:
    name = get_parameter_set(payload.parameterSet or settings.DEFAULT_PARAMETER_SET).name
    tm = analyze_tm(payload.sequence, payload.concentrations, name, payload.method)
    return TmResponse(sequence=payload.sequence.upper(), tm=round(tm, 2), method=payload.method, parameterSet=name)


@router.post("/equilibrium", response_model=EquilibriumResponse)
def equilibrium_endpoint(payload: EquilibriumRequest) -> EquilibriumResponse:
    state = analyze_equilibrium(payload.forward, payload.reverse, payload.template, payload.options, payload.parameterSet)
    return EquilibriumResponse(
        efficiency=round(state.efficiency, 6),
        quality=state.quality,
        bottleneck=state.bottleneck,
        iterations=state.iterations,
        temperature=state.temperature_c,
        fractions={n: dict(p.fractions) for n, p in state.primers.items()},
    )
