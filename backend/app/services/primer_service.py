# File: backend/app/services/primer_service.py
# Version: v0.1.0
"""
Primer design and pair scoring (service layer).

Routers call these functions; they resolve stored parameters, run the core
engine and shape the response DTOs. Persistence lives in run_store.
"""
from __future__ import annotations

import hashlib
import logging
from typing import Tuple

from backend.app.config.config_primers import load_current_params
from backend.app.core.config import settings
from backend.app.core.primer.designer import design_primers
from backend.app.core.primer.parameters import PrimerDesignParameters
from backend.app.core.primer.schemas import (
    PrimerDesignRequest,
    PrimerDesignResponse,
    PrimerPairOut,
    PrimerScoreRequest,
    PrimerScoreResponse,
    PrimerSeqInfo,
)
from backend.app.core.scoring.scorer import ScoringOptions, score_primer_pair
from backend.app.core.thermo.sequence import normalize_sequence

logger = logging.getLogger(__name__)


def digest_sequence(seq: str) -> str:
    return hashlib.sha256(seq.encode("utf-8")).hexdigest()


def run_design(payload: PrimerDesignRequest) -> Tuple[PrimerDesignResponse, PrimerDesignParameters, str]:
    """Design primers; returns (response, effective parameters, normalized template)."""
    params = payload.parameters or load_current_params()
    template = normalize_sequence(payload.sequence, min_length=params.primerLengthMin, label="template")
    pairs, diag = design_primers(template, payload.start, payload.end, params, payload.concentrations)
    out = []
    warnings = []
    for pair in pairs:
        d = pair.as_dict()
        out.append(PrimerPairOut(
            forward=PrimerSeqInfo(**d["forward"]),
            reverse=PrimerSeqInfo(**d["reverse"]),
            productSize=d["productSize"],
            composite=d["composite"],
            tier=d["tier"],
            score=d["score"],
        ))
    if pairs and pairs[0].result is not None:
        warnings = list(pairs[0].result.warnings)
    logger.info("Primer design: len=%d window=[%d,%s) pairs=%d", len(template), payload.start, payload.end, len(out))
    return PrimerDesignResponse(pairs=out, diagnostics=diag.as_dict(), warnings=warnings), params, template


def run_score(payload: PrimerScoreRequest) -> PrimerScoreResponse:
    opts = ScoringOptions(
        preset=payload.preset,
        weights=payload.weights,
        parameter_set=payload.parameterSet or settings.DEFAULT_PARAMETER_SET,
        tm_method=payload.tmMethod,
        annealing_temperature=payload.annealingTemperature,
        include_equilibrium=payload.includeEquilibrium,
        **({"concentrations": payload.concentrations} if payload.concentrations else {}),
    )
    result = score_primer_pair(payload.forward, payload.reverse, payload.template, opts)
    return PrimerScoreResponse(**result.as_dict())
