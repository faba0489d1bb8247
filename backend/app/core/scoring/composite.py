# File: backend/app/core/scoring/composite.py
# Version: v0.1.1
"""
Weighted composite score, quality tiers and analysis presets.

composite_score normalizes over the weights of the sub-scores that are
actually present, so features that could not be computed (e.g. off-target
without a template) drop out instead of counting as perfect.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from backend.app.core.errors import InvalidInput, InvalidScore
from backend.app.core.scoring.transforms import Band

DEFAULT_WEIGHTS: Mapping[str, float] = MappingProxyType({
    # dominant
    "offTarget": 0.25,
    "terminal3DG": 0.20,
    "gQuadruplexRev": 0.15,
    # important
    "gQuadruplexFwd": 0.05,
    "tmRev": 0.05,
    "hairpinRev": 0.05,
    "heterodimer": 0.06,
    "gcRev": 0.04,
    "selfDimerFwd": 0.04,
    "selfDimerRev": 0.04,
    "threePrimeCompFwd": 0.04,
    "threePrimeCompRev": 0.04,
    # minor
    "gcFwd": 0.02,
    "gcClampFwd": 0.03,
    "gcClampRev": 0.03,
    "tmDiff": 0.03,
    "tmFwd": 0.02,
    "hairpinFwd": 0.02,
    "homopolymerFwd": 0.02,
    "homopolymerRev": 0.02,
    "ampliconLength": 0.02,
    "ampliconStructure": 0.02,
    "lengthFwd": 0.01,
    "lengthRev": 0.01,
    "terminalBaseFwd": 0.01,
    "terminalBaseRev": 0.01,
    "lengthDiff": 0.01,
    "distanceToROI": 0.01,
})

# Range-based weights for assembly primers: quality factors over specificity.
ASSEMBLY_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "tmFwd": 0.08, "tmRev": 0.08,
    "gcFwd": 0.04, "gcRev": 0.04,
    "lengthFwd": 0.03, "lengthRev": 0.03,
    "terminal3DG": 0.18,
    "gcClampFwd": 0.08, "gcClampRev": 0.08,
    "threePrimeCompFwd": 0.06, "threePrimeCompRev": 0.06,
    "hairpinFwd": 0.06, "hairpinRev": 0.06,
    "selfDimerFwd": 0.03, "selfDimerRev": 0.03,
    "heterodimer": 0.10,
    "homopolymerFwd": 0.03, "homopolymerRev": 0.03,
    "offTarget": 0.05,
    "tmDiff": 0.05,
    "gQuadruplexFwd": 0.04, "gQuadruplexRev": 0.04,
})

TIERS = ((90, "excellent"), (75, "good"), (60, "acceptable"), (40, "marginal"))
TIER_ORDER = ("excellent", "good", "acceptable", "marginal", "poor")


def classify_quality(score: int) -> str:
    for cutoff, tier in TIERS:
        if score >= cutoff:
            return tier
    return "poor"


@dataclass(slots=True)
class CompositeResult:
    score: int
    raw: float
    tier: str
    breakdown: Dict[str, Dict[str, float]] = field(default_factory=dict)
    total_weight: float = 0.0


def check_finite(name: str, value: float) -> float:
    if value is None or not math.isfinite(value):
        raise InvalidScore(name, value)
    return value


def composite_score(scores: Mapping[str, Optional[float]], weights: Optional[Mapping[str, float]] = None) -> CompositeResult:
    """
    Weighted mean of present sub-scores, mapped to an integer 0..100 and a tier.

    None entries are treated as absent. Any non-finite score raises InvalidScore.
    """
    w = DEFAULT_WEIGHTS if weights is None else weights
    total = 0.0
    wsum = 0.0
    breakdown: Dict[str, Dict[str, float]] = {}
    for key, value in scores.items():
        if value is None:
            continue
        check_finite(key, value)
        weight = float(w.get(key, 0.0))
        if weight <= 0:
            continue
        total += value * weight
        wsum += weight
        breakdown[key] = {"score": round(value, 3), "weight": weight, "contribution": round(value * weight, 3)}
    if wsum <= 0:
        raise InvalidInput("no weighted sub-score overlaps the given weights")
    raw = total / wsum
    check_finite("composite", raw)
    score = int(round(100.0 * raw))
    return CompositeResult(score=score, raw=round(raw, 3), tier=classify_quality(score),
                           breakdown=breakdown, total_weight=round(wsum, 3))


@dataclass(frozen=True, slots=True)
class AnalysisPreset:
    name: str
    description: str
    tm_band: Band
    gc_band: Band
    length_band: Band
    hairpin_threshold: float = -3.0
    homodimer_threshold: float = -6.0
    heterodimer_threshold: float = -6.0
    weights: Mapping[str, float] = field(default_factory=lambda: DEFAULT_WEIGHTS)


def _with(base: Mapping[str, float], **overrides: float) -> Mapping[str, float]:
    out = dict(base)
    out.update(overrides)
    return MappingProxyType(out)


# Acceptable margins follow the default transforms: Tm +/-5 °C, GC +/-10 %, length -3/+6 nt.
PRESETS: Mapping[str, AnalysisPreset] = MappingProxyType({
    "amplification": AnalysisPreset(
        "Amplification (PCR)", "Standard PCR amplification primers",
        Band(55, 60, 50, 65, 0.5), Band(40, 60, 30, 70, 0.15), Band(18, 24, 15, 30, 0.3),
    ),
    "sequencing": AnalysisPreset(
        "Sanger Sequencing", "Primers for Sanger sequencing",
        Band(55, 60, 50, 65, 0.5), Band(40, 60, 30, 70, 0.15), Band(18, 24, 15, 30, 0.3),
        hairpin_threshold=-2.5, homodimer_threshold=-5.0, heterodimer_threshold=-5.0,
        weights=_with(DEFAULT_WEIGHTS, offTarget=0.30),
    ),
    "assembly": AnalysisPreset(
        "Gibson/NEBuilder Assembly", "Assembly primers with overlap regions",
        Band(48, 65, 43, 70, 0.5), Band(40, 60, 30, 70, 0.15), Band(18, 30, 15, 36, 0.3),
        weights=_with(DEFAULT_WEIGHTS, heterodimer=0.15),
    ),
    "goldengate": AnalysisPreset(
        "Golden Gate Assembly", "Annealing regions of Type IIS primers",
        Band(50, 60, 45, 65, 0.5), Band(40, 60, 30, 70, 0.15), Band(18, 25, 15, 31, 0.3),
        weights=_with(DEFAULT_WEIGHTS, heterodimer=0.15),
    ),
    "mutagenesis": AnalysisPreset(
        "Site-Directed Mutagenesis", "QuikChange-style mutagenesis primers",
        Band(50, 72, 45, 77, 0.5), Band(40, 60, 30, 70, 0.15), Band(25, 45, 22, 51, 0.3),
        weights=_with(DEFAULT_WEIGHTS, terminal3DG=0.25, heterodimer=0.15),
    ),
})

WEIGHT_PRESETS: Mapping[str, Mapping[str, float]] = MappingProxyType({
    "default": DEFAULT_WEIGHTS,
    "assembly": ASSEMBLY_WEIGHTS,
})


def get_preset(name: Optional[str]) -> AnalysisPreset:
    key = (name or "amplification").strip().lower()
    if key not in PRESETS:
        raise InvalidInput(f"unknown analysis preset '{name}' (available: {', '.join(PRESETS)})")
    return PRESETS[key]


def resolve_weights(
    weights: Optional[Mapping[str, float]] = None,
    weight_preset: Optional[str] = None,
    preset: Optional[str] = None,
) -> Mapping[str, float]:
    """Explicit weights win, then a named weight preset, then the analysis preset's weights."""
    if weights:
        bad = [k for k, v in weights.items() if not math.isfinite(v) or v < 0]
        if bad:
            raise InvalidInput(f"weights must be finite and >= 0: {', '.join(sorted(bad))}")
        return weights
    if weight_preset:
        key = weight_preset.strip().lower()
        if key not in WEIGHT_PRESETS:
            raise InvalidInput(f"unknown weight preset '{weight_preset}' (available: {', '.join(WEIGHT_PRESETS)})")
        return WEIGHT_PRESETS[key]
    return get_preset(preset).weights
