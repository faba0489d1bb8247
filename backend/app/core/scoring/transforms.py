# File: backend/app/core/scoring/transforms.py
# Version: v0.1.0
"""
Feature transforms: physical quantities -> [0, 1] sub-scores.

No hard cutoffs. Range features (Tm, GC, length, amplicon length) use a
piecewise-logistic curve:
    1.0 inside the optimal band,
    linear 1.0 -> 0.7 across the acceptable band,
    0.7 / (1 + exp(steepness * excess)) beyond it.
Threshold features (hairpin/dimer dG) are flat above the threshold and decay
exponentially below it.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional

from backend.app.core.thermo.sequence import gc_percent, longest_homopolymer

G4_MOTIF = re.compile(r"G{3,}[ACGT]{1,7}G{3,}[ACGT]{1,7}G{3,}[ACGT]{1,7}G{3,}")
GGG_RUN = re.compile(r"GGG+")


@dataclass(frozen=True, slots=True)
class Band:
    """Optimal and acceptable ranges for a piecewise-logistic feature."""
    optimal_low: float
    optimal_high: float
    acceptable_low: float
    acceptable_high: float
    steepness: float = 0.5

    def __post_init__(self):
        if not (self.acceptable_low <= self.optimal_low <= self.optimal_high <= self.acceptable_high):
            raise ValueError(f"inconsistent band {self}")


TM_BAND = Band(55.0, 60.0, 50.0, 65.0, 0.5)
GC_BAND = Band(40.0, 60.0, 30.0, 70.0, 0.15)
LENGTH_BAND = Band(18.0, 24.0, 15.0, 30.0, 0.3)
AMPLICON_BAND = Band(400.0, 800.0, 200.0, 1200.0, 0.005)
ROI_BAND = Band(100.0, 500.0, 50.0, 700.0, 0.01)


def piecewise_logistic(value: float, band: Band, floor: float = 0.0) -> float:
    if band.optimal_low <= value <= band.optimal_high:
        return 1.0
    if value < band.optimal_low:
        if value >= band.acceptable_low:
            span = band.optimal_low - band.acceptable_low
            return 0.7 + 0.3 * ((value - band.acceptable_low) / span if span else 1.0)
        excess = band.acceptable_low - value
    else:
        if value <= band.acceptable_high:
            span = band.acceptable_high - band.optimal_high
            return 0.7 + 0.3 * ((band.acceptable_high - value) / span if span else 1.0)
        excess = value - band.acceptable_high
    return max(floor, 0.7 / (1.0 + math.exp(band.steepness * excess)))


def band_around(optimal_low: float, optimal_high: float, margin: float, steepness: float) -> Band:
    """Acceptable band = optimal band widened by `margin` on both sides."""
    return Band(optimal_low, optimal_high, optimal_low - margin, optimal_high + margin, steepness)


def score_tm(tm: float, band: Band = TM_BAND) -> float:
    return piecewise_logistic(tm, band)


def score_gc(gc_pct: float, band: Band = GC_BAND) -> float:
    return piecewise_logistic(gc_pct, band)


def score_length(length: int, band: Band = LENGTH_BAND) -> float:
    return piecewise_logistic(float(length), band)


def score_terminal_dg(dg: float, optimal_low: float = -11.0, optimal_high: float = -6.0,
                      loose_decay: float = 0.3, tight_decay: float = 0.15) -> float:
    """3' terminal dG: too loose decays faster than too tight."""
    if optimal_low <= dg <= optimal_high:
        return 1.0
    if dg > optimal_high:
        return math.exp(-loose_decay * (dg - optimal_high))
    return math.exp(-tight_decay * (optimal_low - dg))


def score_tm_diff(tm_a: float, tm_b: float, free_zone: float = 3.0, mild_zone: float = 5.0,
                  moderate_zone: float = 8.0, steep_decay: float = 0.2) -> float:
    diff = abs(tm_a - tm_b)
    if diff <= free_zone:
        return 1.0
    if diff <= mild_zone:
        return 0.9 - 0.1 * (diff - free_zone) / (mild_zone - free_zone)
    if diff <= moderate_zone:
        return 0.7 - 0.2 * (diff - mild_zone) / (moderate_zone - mild_zone)
    return 0.5 * math.exp(-steep_decay * (diff - moderate_zone))


def score_structure_dg(dg: float, threshold: float, steepness: float) -> float:
    if dg >= threshold:
        return 1.0
    return math.exp(-steepness * (threshold - dg))


def score_hairpin(dg: float, threshold: float = -3.0, steepness: float = 0.8) -> float:
    return score_structure_dg(dg, threshold, steepness)


def score_homodimer(dg: float, threshold: float = -6.0, steepness: float = 0.5) -> float:
    return score_structure_dg(dg, threshold, steepness)


def score_heterodimer(dg: float, threshold: float = -6.0, steepness: float = 0.5) -> float:
    return score_structure_dg(dg, threshold, steepness)


def _gc_count(s: str) -> int:
    return sum(1 for b in s if b in "GC")


def score_gc_clamp(seq: str) -> float:
    """One G/C in the last two bases is ideal; two is slightly sticky; none is weak."""
    n = _gc_count(seq[-2:])
    if n == 1:
        return 1.0
    if n == 2:
        return 0.85
    return 0.5


def score_three_prime_composition(seq: str, terminal_dg: Optional[float] = None) -> float:
    """Weighted blend: GC clamp 0.40, terminal dG 0.35, 3' patterns 0.25."""
    last5 = seq[-5:]
    clamp = score_gc_clamp(seq)

    dg_score = 1.0
    if terminal_dg is not None:
        if terminal_dg > -6.0:
            dg_score = max(0.2, 1.0 - (terminal_dg + 6.0) * 0.12)
        elif terminal_dg < -11.0:
            dg_score = max(0.5, 1.0 - (-11.0 - terminal_dg) * 0.05)

    pattern = 1.0
    if re.search(r"[AT]{4,}", last5):
        pattern -= 0.40
    if seq[-1] not in "GC":
        pattern -= 0.15
    if _gc_count(last5) <= 1:
        pattern -= 0.15
    if "AAA" in last5 or "TTT" in last5:
        pattern -= 0.10
    pattern = max(0.0, pattern)

    total = 0.40 * clamp + 0.35 * dg_score + 0.25 * pattern
    return max(0.0, min(1.0, round(total, 3)))


def score_homopolymer(seq: str, max_run: int = 3, penalty_per_base: float = 0.15) -> float:
    run = longest_homopolymer(seq)
    if run <= max_run:
        return 1.0
    return max(0.3, 1.0 - (run - max_run) * penalty_per_base)


@dataclass(frozen=True, slots=True)
class G4Analysis:
    score: float
    has_motif: bool
    has_gggg: bool
    ggg_runs: int
    severity: str


def analyze_g_quadruplex(seq: str) -> G4Analysis:
    motif = bool(G4_MOTIF.search(seq))
    gggg = "GGGG" in seq
    runs = len(GGG_RUN.findall(seq))
    if motif:
        return G4Analysis(0.0, True, gggg, runs, "critical")
    if gggg:
        return G4Analysis(0.2, False, True, runs, "warning")
    if runs >= 2:
        return G4Analysis(0.6, False, False, runs, "caution")
    return G4Analysis(1.0, False, False, runs, "ok")


def score_g_quadruplex(seq: str) -> float:
    return analyze_g_quadruplex(seq).score


def score_terminal_base(seq: str) -> float:
    # 3'-terminal G/C extends best; terminal T tolerates mismatches and misprimes most
    return {"G": 1.0, "C": 1.0, "A": 0.8}.get(seq[-1], 0.6)


def score_length_diff(len_a: int, len_b: int, free: int = 3, decay: float = 0.15) -> float:
    diff = abs(len_a - len_b)
    if diff <= free:
        return 1.0
    return math.exp(-decay * (diff - free))


def score_amplicon_length(length: int, band: Band = AMPLICON_BAND) -> float:
    return piecewise_logistic(float(length), band)


def score_distance_to_roi(distance: int, band: Band = ROI_BAND) -> float:
    if distance < 0:
        return 0.0
    return piecewise_logistic(float(distance), band)


def score_amplicon_structure(seq: str, gc_threshold: float = 70.0, window: int = 20, homopolymer_threshold: int = 5) -> float:
    """Penalize GC-rich windows, long homopolymers and high overall GC in an amplicon."""
    if len(seq) < window:
        return 1.0
    score = 1.0
    rich = 0
    for i in range(len(seq) - window + 1):
        if gc_percent(seq[i:i + window]) >= gc_threshold:
            rich += 1
    if rich:
        score -= min(0.4, rich * 0.1)
    run = longest_homopolymer(seq)
    if run >= homopolymer_threshold:
        score -= min(0.3, (run - homopolymer_threshold + 1) * 0.1)
    overall = gc_percent(seq)
    if overall > 65.0:
        score -= min(0.2, (overall - 65.0) * 0.01)
    return max(0.0, min(1.0, score))
