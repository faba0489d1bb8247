# File: backend/app/core/assembly/failure_prediction.py
# Version: v0.1.0
"""
Failure-mode prediction for a chosen overhang set.

Modes checked: cross-ligation, self-ligation, G:T wobble mis-ligation, low
ligation efficiency and (when supplied) internal recognition sites.

Expected success rate uses an additive penalty per severity class with
diminishing increments, capped at 95 %:

    rate = clamp(fidelity * (1 - penalty), 0.01, 1)
    colonies_to_screen = ceil(3 / rate)

The constants are empirical; they live in PenaltyModel so callers can tune them.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from backend.app.core.assembly.fidelity import (
    FidelityMatrix,
    FidelityReport,
    calculate_fidelity,
    cross_ligation_pairs,
    find_gt_risks,
    overhang_efficiency,
)
from backend.app.core.thermo.sequence import is_palindrome, reverse_complement

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

CROSS_LIGATION_FLAG = 0.01
CROSS_LIGATION_MEDIUM = 0.05
CROSS_LIGATION_HIGH = 0.10
LOW_EFFICIENCY = 0.70
VERY_LOW_EFFICIENCY = 0.50

SUCCESS_TIERS = ((0.90, "excellent"), (0.70, "good"), (0.50, "moderate"), (0.20, "low"))


@dataclass(frozen=True, slots=True)
class PenaltyModel:
    """(first occurrence, each further occurrence, max further occurrences) per severity."""
    critical: Tuple[float, float, int] = (0.70, 0.10, 3)
    high: Tuple[float, float, int] = (0.25, 0.10, 3)
    medium: Tuple[float, float, int] = (0.10, 0.03, 4)
    low: Tuple[float, float, int] = (0.03, 0.01, 4)
    cap: float = 0.95
    floor_rate: float = 0.01
    screening_target: float = 3.0

    def penalty(self, counts: Dict[str, int]) -> float:
        total = 0.0
        for sev in ("critical", "high", "medium", "low"):
            n = counts.get(sev, 0)
            if n > 0:
                first, step, max_extra = getattr(self, sev)
                total += first + min(n - 1, max_extra) * step
        return min(self.cap, total)


DEFAULT_PENALTY_MODEL = PenaltyModel()


@dataclass(slots=True)
class FailureMode:
    mode: str
    severity: str
    description: str
    details: List[dict] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"mode": self.mode, "severity": self.severity, "description": self.description, "details": self.details}


@dataclass(slots=True)
class SuccessEstimate:
    rate: float
    tier: str
    colonies_to_screen: int
    penalty: float
    counts: Dict[str, int]

    def as_dict(self) -> dict:
        return {"rate": round(self.rate, 4), "tier": self.tier, "coloniesToScreen": self.colonies_to_screen,
                "penalty": round(self.penalty, 4), "counts": self.counts}


@dataclass(slots=True)
class FailurePrediction:
    overhangs: List[str]
    overall_risk: str
    modes: List[FailureMode]
    success: SuccessEstimate
    fidelity: FidelityReport

    def as_dict(self) -> dict:
        return {
            "overhangs": self.overhangs,
            "overallRisk": self.overall_risk,
            "modes": [m.as_dict() for m in self.modes],
            "expectedSuccess": self.success.as_dict(),
            "fidelity": self.fidelity.as_dict(),
        }


def _cross_severity(ratio: float) -> str:
    if ratio >= CROSS_LIGATION_HIGH:
        return "high"
    if ratio >= CROSS_LIGATION_MEDIUM:
        return "medium"
    return "low"


def predict_cross_ligation(overhangs: Sequence[str], matrix: FidelityMatrix) -> Optional[FailureMode]:
    pairs = cross_ligation_pairs(overhangs, matrix, min_ratio=CROSS_LIGATION_FLAG)
    if not pairs:
        return None
    details = []
    for p in pairs:
        d = p.as_dict()
        d["severity"] = _cross_severity(p.ratio)
        details.append(d)
    sev = "high" if any(d["severity"] == "high" for d in details) else "medium"
    worst = pairs[0]
    return FailureMode(
        "CROSS_LIGATION", sev,
        f"{len(pairs)} non-intended pairing(s); worst {worst.source}/{worst.target} at {100.0 * worst.ratio:.1f}% of correct ligation",
        details,
    )


def predict_self_ligation(overhangs: Sequence[str]) -> Optional[FailureMode]:
    details = []
    for oh in dict.fromkeys(o.upper() for o in overhangs):
        if is_palindrome(oh):
            details.append({"overhang": oh, "reason": "palindromic overhang can self-ligate", "severity": "high"})
            continue
        rc = reverse_complement(oh)
        if sum(1 for x, y in zip(oh, rc) if x != y) == 1:
            details.append({"overhang": oh, "reason": "near-palindromic overhang", "severity": "medium"})
    if not details:
        return None
    sev = "high" if any(d["severity"] == "high" for d in details) else "medium"
    return FailureMode("SELF_LIGATION", sev, "fragments may circularize or concatemerize", details)


def predict_gt_mismatch(overhangs: Sequence[str]) -> Optional[FailureMode]:
    risks = find_gt_risks(overhangs)
    if not risks:
        return None
    sev = "high" if any(r.risk == "critical" for r in risks) else "medium"
    return FailureMode("G_T_MISMATCH", sev, f"{len(risks)} overhang pair(s) can mis-ligate via G:T wobble",
                       [r.as_dict() for r in risks])


def predict_low_efficiency(overhangs: Sequence[str]) -> Optional[FailureMode]:
    details = []
    for oh in overhangs:
        eff = overhang_efficiency(oh)
        if eff.efficiency < LOW_EFFICIENCY:
            d = eff.as_dict()
            d["severity"] = "high" if eff.efficiency < VERY_LOW_EFFICIENCY else "medium"
            details.append(d)
    if not details:
        return None
    sev = "high" if any(d["severity"] == "high" for d in details) else "medium"
    return FailureMode("LOW_EFFICIENCY", sev, f"{len(details)} overhang(s) ligate slowly", details)


def expected_success(fidelity: float, modes: Sequence[FailureMode], model: PenaltyModel = DEFAULT_PENALTY_MODEL) -> SuccessEstimate:
    counts = {s: 0 for s in ("critical", "high", "medium", "low")}
    for m in modes:
        counts[m.severity] = counts.get(m.severity, 0) + 1
    penalty = model.penalty(counts)
    rate = max(model.floor_rate, min(1.0, fidelity * (1.0 - penalty)))
    tier = "very_low"
    for cutoff, name in SUCCESS_TIERS:
        if rate >= cutoff:
            tier = name
            break
    return SuccessEstimate(rate, tier, math.ceil(model.screening_target / rate), penalty, counts)


def predict_failure_modes(
    overhangs: Sequence[str],
    matrix: FidelityMatrix,
    *,
    internal_sites: Optional[Sequence[Tuple[int, str]]] = None,
    model: PenaltyModel = DEFAULT_PENALTY_MODEL,
) -> FailurePrediction:
    report = calculate_fidelity(overhangs, matrix)
    modes: List[FailureMode] = []
    for check in (
        predict_cross_ligation(report.overhangs, matrix),
        predict_self_ligation(report.overhangs),
        predict_gt_mismatch(report.overhangs),
        predict_low_efficiency(report.overhangs),
    ):
        if check is not None:
            modes.append(check)
    if internal_sites:
        modes.append(FailureMode(
            "INTERNAL_SITE", "critical", f"{len(internal_sites)} internal recognition site(s) will be cut",
            [{"position": p, "strand": s} for p, s in internal_sites],
        ))
    modes.sort(key=lambda m: SEVERITY_ORDER[m.severity])

    if any(m.severity == "critical" for m in modes):
        overall = "critical"
    elif any(m.severity == "high" for m in modes):
        overall = "high"
    elif modes:
        overall = "medium"
    else:
        overall = "minimal"

    success = expected_success(report.final_fidelity, modes, model)
    logger.info("Failure prediction: %d overhangs, risk=%s, modes=%s, success=%.3f (%s)",
                len(report.overhangs), overall, [m.mode for m in modes], success.rate, success.tier)
    return FailurePrediction(report.overhangs, overall, modes, success, report)
