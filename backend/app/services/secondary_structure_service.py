# File: backend/app/services/secondary_structure_service.py
# Version: v0.2.0
"""
Secondary structure analysis service on top of the in-house nearest-neighbor
folder (backend/app/core/structure/fold.py).

Functions:
- analyze_stems: MFE hairpin fold -> paired runs -> gap merge -> length filter
- analyze_fold: MFE structure (hairpin or dimer) with pairs and dot-bracket
- analyze_tm: melting temperature with the chosen method and parameter set
- analyze_equilibrium: coupled pair equilibrium on a template

All indices are 0-based, [start, end) half-open intervals.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.structure.equilibrium import EquilibriumOptions, EquilibriumState, pair_equilibrium
from backend.app.core.structure.fold import FoldResult, fold, stems
from backend.app.core.thermo.parameters import get_parameter_set
from backend.app.core.thermo.tm import Concentrations, melting_temperature

logger = logging.getLogger(__name__)


def analyze_stems(
    sequence: str,
    min_stem_len: int,
    merge_max_gap: int,
    temperature: float = 37.0,
) -> List[Tuple[int, int]]:
    """
    Stem intervals of the MFE hairpin fold, merged across gaps of at most
    `merge_max_gap` and kept when at least `min_stem_len` long.
    """
    if not sequence:
        return []
    res = fold(sequence, temperature=temperature, parameter_set=get_parameter_set(settings.DEFAULT_PARAMETER_SET))
    out = stems(res, merge_max_gap=merge_max_gap, min_stem_len=min_stem_len)
    logger.debug("stems: len=%d dg=%.2f regions=%d", len(sequence), res.dg, len(out))
    return out


def analyze_fold(
    seq_a: str,
    seq_b: Optional[str] = None,
    temperature: float = 37.0,
    parameter_set: Optional[str] = None,
) -> FoldResult:
    ps = get_parameter_set(parameter_set or settings.DEFAULT_PARAMETER_SET)
    return fold(seq_a, seq_b, temperature=temperature, parameter_set=ps)


def analyze_tm(
    sequence: str,
    concentrations: Optional[Concentrations] = None,
    parameter_set: Optional[str] = None,
    method: str = "nn",
) -> float:
    ps = get_parameter_set(parameter_set or settings.DEFAULT_PARAMETER_SET)
    return melting_temperature(sequence, concentrations, ps, method)


def analyze_equilibrium(
    forward: str,
    reverse: str,
    template: Optional[str] = None,
    options: Optional[EquilibriumOptions] = None,
    parameter_set: Optional[str] = None,
) -> EquilibriumState:
    ps = get_parameter_set(parameter_set or settings.DEFAULT_PARAMETER_SET)
    return pair_equilibrium(forward, reverse, template, options, ps)
