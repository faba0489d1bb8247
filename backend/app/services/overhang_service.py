# File: backend/app/services/overhang_service.py
# Version: v0.1.0
"""
Golden Gate service layer: optimizer runs, fidelity of a supplied set and
the enzyme catalog. Fidelity matrices come from settings.FIDELITY_DATA_DIR
(modeled when no measured file is present).
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from backend.app.config.config_assembly import AssemblyParameters, load_current_assembly_params
from backend.app.core.assembly.enzymes import ENZYMES, HIGH_FIDELITY_SETS, STANDARD_FUSION_SITES, get_enzyme
from backend.app.core.assembly.failure_prediction import FailurePrediction, predict_failure_modes
from backend.app.core.assembly.fidelity import FidelityMatrix, load_matrix
from backend.app.core.assembly.optimizer import OptimizerOptions, OverhangSet, optimize_junctions
from backend.app.core.config import settings

logger = logging.getLogger(__name__)


def matrix_for(enzyme: Optional[str]) -> FidelityMatrix:
    return load_matrix(get_enzyme(enzyme or settings.DEFAULT_ENZYME), settings.FIDELITY_DATA_DIR)


def effective_options(parameters: Optional[AssemblyParameters], **overrides) -> OptimizerOptions:
    """Stored parameters (or the request's), with per-request overrides and settings.MAX_WORKERS."""
    base = parameters or load_current_assembly_params()
    if not base.workers and settings.MAX_WORKERS:
        overrides.setdefault("workers", settings.MAX_WORKERS)
    return base.to_options(**overrides)


def run_optimize(sequence: str, fragment_count: int, options: OptimizerOptions) -> OverhangSet:
    matrix = matrix_for(options.enzyme)
    result = optimize_junctions(sequence, fragment_count, matrix, options)
    logger.info(
        "Optimize run: fragments=%d algorithm=%s fidelity=%.4f partial=%s",
        fragment_count, result.algorithm, result.fidelity, result.partial,
    )
    return result


def run_fidelity(overhangs: Sequence[str], enzyme: Optional[str] = None) -> FailurePrediction:
    return predict_failure_modes(overhangs, matrix_for(enzyme))


def enzyme_catalog() -> dict:
    return {
        "default": settings.DEFAULT_ENZYME,
        "enzymes": [e.as_dict() for e in ENZYMES.values()],
        "standardSites": [{"code": s.code, "sequence": s.seq, "description": s.description}
                          for s in STANDARD_FUSION_SITES.values()],
        "highFidelitySets": {k: list(v) for k, v in HIGH_FIDELITY_SETS.items()},
    }
