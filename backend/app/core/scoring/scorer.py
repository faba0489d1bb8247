# File: backend/app/core/scoring/scorer.py
# Version: v0.1.0
"""
Primer and primer-pair scoring.

score(primer, template=None)            -> PrimerScore (single primer, *Fwd keys)
score_primer_pair(fwd, rev, template)   -> PrimerScore (pair keys, tmDiff, heterodimer, ...)

Physical features are computed once (Tm, GC, terminal dG, hairpin/dimer dG,
off-target classification), then mapped through the transforms and combined
by composite_score. Without a template the template-dependent keys
(offTarget, amplicon*) are simply absent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from backend.app.core.scoring import transforms as tf
from backend.app.core.scoring.composite import AnalysisPreset, composite_score, get_preset, resolve_weights
from backend.app.core.scoring.offtarget import (
    ANTISENSE,
    SENSE,
    OffTargetClassification,
    OffTargetThresholds,
    classify_off_targets,
    enhanced_off_target_score,
    find_type_e,
    find_type_f,
)
from backend.app.core.structure.equilibrium import EquilibriumOptions, efficiency_to_score, pair_equilibrium
from backend.app.core.thermo.parameters import DEFAULT_PARAMETER_SET, ParameterSet, get_parameter_set
from backend.app.core.thermo.sequence import gc_percent, longest_homopolymer, normalize_sequence
from backend.app.core.thermo.tm import Concentrations, melting_temperature, terminal_free_energy

logger = logging.getLogger(__name__)

MIN_PRIMER_LENGTH = 6
CRITICAL_HOMOPOLYMER = 6


class ScoringOptions(BaseModel):
    preset: str = Field("amplification", description="Analysis preset (amplification, sequencing, assembly, goldengate, mutagenesis)")
    weights: Optional[Dict[str, float]] = Field(None, description="Explicit weights; override the preset")
    weight_preset: Optional[str] = Field(None, description="'default' or 'assembly'")
    parameter_set: str = DEFAULT_PARAMETER_SET
    tm_method: str = "nn"
    concentrations: Concentrations = Field(default_factory=Concentrations)
    annealing_temperature: float = 55.0
    include_equilibrium: bool = True
    equilibrium: EquilibriumOptions = Field(default_factory=EquilibriumOptions)


@dataclass(slots=True)
class PrimerFeatures:
    sequence: str
    length: int
    tm: float
    gc: float
    terminal_dg: float
    hairpin_dg: float
    homodimer_dg: float
    longest_homopolymer: int
    g4_severity: str
    off_target: Optional[OffTargetClassification] = None

    def as_dict(self) -> Dict[str, Any]:
        out = {
            "sequence": self.sequence,
            "length": self.length,
            "tm": round(self.tm, 2),
            "gc": round(self.gc, 2),
            "terminalDG": round(self.terminal_dg, 2),
            "hairpinDG": round(self.hairpin_dg, 2),
            "homodimerDG": round(self.homodimer_dg, 2),
            "longestHomopolymer": self.longest_homopolymer,
            "gQuadruplex": self.g4_severity,
        }
        if self.off_target is not None:
            out["offTargetStatus"] = self.off_target.status
            out["offTargetCounts"] = self.off_target.counts
            out["offTargetSummary"] = self.off_target.summary()
        return out


@dataclass(slots=True)
class PrimerScore:
    scores: Dict[str, float]
    composite: int
    tier: str
    forward: PrimerFeatures
    reverse: Optional[PrimerFeatures] = None
    pair: Dict[str, Any] = field(default_factory=dict)
    breakdown: Dict[str, Dict[str, float]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    preset: str = "amplification"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "scores": {k: round(v, 4) for k, v in self.scores.items()},
            "composite": self.composite,
            "tier": self.tier,
            "forward": self.forward.as_dict(),
            "reverse": self.reverse.as_dict() if self.reverse else None,
            "pair": self.pair,
            "breakdown": self.breakdown,
            "warnings": list(self.warnings),
            "preset": self.preset,
        }


def _features(seq: str, template: Optional[str], opts: ScoringOptions, ps: ParameterSet,
              th: OffTargetThresholds) -> PrimerFeatures:
    hp, hd, e_sites = find_type_e(seq, th, ps)
    off = None
    if template:
        off = classify_off_targets(seq, template, th, ps)
        off.sites.extend(e_sites)
    return PrimerFeatures(
        sequence=seq,
        length=len(seq),
        tm=melting_temperature(seq, opts.concentrations, ps, opts.tm_method),
        gc=gc_percent(seq),
        terminal_dg=terminal_free_energy(seq, parameter_set=ps).dg,
        hairpin_dg=hp,
        homodimer_dg=hd,
        longest_homopolymer=longest_homopolymer(seq),
        g4_severity=tf.analyze_g_quadruplex(seq).severity,
        off_target=off,
    )


def _primer_scores(f: PrimerFeatures, preset: AnalysisPreset) -> Dict[str, float]:
    return {
        "tm": tf.score_tm(f.tm, preset.tm_band),
        "gc": tf.score_gc(f.gc, preset.gc_band),
        "length": tf.score_length(f.length, preset.length_band),
        "terminal3DG": tf.score_terminal_dg(f.terminal_dg),
        "gcClamp": tf.score_gc_clamp(f.sequence),
        "homopolymer": tf.score_homopolymer(f.sequence),
        "hairpin": tf.score_hairpin(f.hairpin_dg, preset.hairpin_threshold),
        "selfDimer": tf.score_homodimer(f.homodimer_dg, preset.homodimer_threshold),
        "gQuadruplex": tf.score_g_quadruplex(f.sequence),
        "threePrimeComp": tf.score_three_prime_composition(f.sequence, f.terminal_dg),
        "terminalBase": tf.score_terminal_base(f.sequence),
    }


def _warnings(label: str, f: PrimerFeatures, s: Mapping[str, float], preset: AnalysisPreset) -> List[str]:
    out = []
    if f.g4_severity == "critical":
        out.append(f"{label}: G-quadruplex motif detected - primer will likely fail")
    elif f.g4_severity == "warning":
        out.append(f"{label}: GGGG run detected - may cause polymerase pausing")
    if s["terminal3DG"] < 0.5:
        out.append(f"{label}: weak 3' terminal binding")
    if f.length > preset.length_band.optimal_high + 15:
        out.append(f"CRITICAL {label}: primer extremely long ({f.length}bp)")
    if f.longest_homopolymer >= CRITICAL_HOMOPOLYMER:
        out.append(f"CRITICAL {label}: severe homopolymer run ({f.longest_homopolymer} identical bases)")
    if f.off_target is not None and f.off_target.intended_strand is None:
        out.append(f"{label}: no binding site found on the template")
    return out


def _prepare(opts: Optional[ScoringOptions], template: Optional[str]):
    o = opts or ScoringOptions()
    ps = get_parameter_set(o.parameter_set)
    preset = get_preset(o.preset)
    th = OffTargetThresholds(
        temperature=o.annealing_temperature,
        hairpin_threshold=preset.hairpin_threshold,
        homodimer_threshold=preset.homodimer_threshold,
        heterodimer_threshold=preset.heterodimer_threshold,
    )
    tmpl = normalize_sequence(template, label="template") if template else None
    return o, ps, preset, th, tmpl


def score(primer: str, template: Optional[str] = None, options: Optional[ScoringOptions] = None) -> PrimerScore:
    """Score a single primer; off-target terms only when a template is supplied."""
    opts, ps, preset, th, tmpl = _prepare(options, template)
    seq = normalize_sequence(primer, min_length=MIN_PRIMER_LENGTH, label="primer")
    f = _features(seq, tmpl, opts, ps, th)
    s = _primer_scores(f, preset)
    scores = {f"{k}Fwd": v for k, v in s.items() if k != "terminal3DG"}
    scores["terminal3DG"] = s["terminal3DG"]
    if f.off_target is not None:
        scores["offTarget"] = enhanced_off_target_score(f.off_target)
    result = composite_score(scores, resolve_weights(opts.weights, opts.weight_preset, opts.preset))
    return PrimerScore(
        scores=scores, composite=result.score, tier=result.tier, forward=f,
        breakdown=result.breakdown, warnings=_warnings("Forward", f, s, preset), preset=opts.preset,
    )


def _amplicon(fwd: PrimerFeatures, rev: PrimerFeatures, template: str) -> Optional[str]:
    """Top-strand amplicon when fwd sits on + and rev on -, in converging order."""
    if fwd.off_target is None or rev.off_target is None:
        return None
    fs, fp = fwd.off_target.intended_strand, fwd.off_target.intended_position
    rs, rp = rev.off_target.intended_strand, rev.off_target.intended_position
    if fp is None or rp is None:
        return None
    if fs == SENSE and rs == ANTISENSE and rp + rev.length > fp:
        return template[fp:rp + rev.length]
    if fs == ANTISENSE and rs == SENSE and fp + fwd.length > rp:
        return template[rp:fp + fwd.length]
    return None


def score_primer_pair(
    fwd: str,
    rev: str,
    template: Optional[str] = None,
    options: Optional[ScoringOptions] = None,
) -> PrimerScore:
    """
    Score a forward/reverse pair.

    Pair terms: tmDiff, heterodimer, lengthDiff; with a template also
    offTarget (worst primer, types A-F), amplicon length/structure and the
    equilibrium efficiency (reported, not weighted).
    """
    opts, ps, preset, th, tmpl = _prepare(options, template)
    f_seq = normalize_sequence(fwd, min_length=MIN_PRIMER_LENGTH, label="forward primer")
    r_seq = normalize_sequence(rev, min_length=MIN_PRIMER_LENGTH, label="reverse primer")
    f = _features(f_seq, tmpl, opts, ps, th)
    r = _features(r_seq, tmpl, opts, ps, th)
    fs = _primer_scores(f, preset)
    rs = _primer_scores(r, preset)
    het_dg, f_sites = find_type_f(f_seq, r_seq, th, ps)

    scores: Dict[str, float] = {}
    for key in fs:
        if key == "terminal3DG":
            continue
        scores[f"{key}Fwd"] = fs[key]
        scores[f"{key}Rev"] = rs[key]
    scores["terminal3DG"] = min(fs["terminal3DG"], rs["terminal3DG"])
    scores["tmDiff"] = tf.score_tm_diff(f.tm, r.tm)
    scores["heterodimer"] = tf.score_heterodimer(het_dg, preset.heterodimer_threshold)
    scores["lengthDiff"] = tf.score_length_diff(f.length, r.length)

    pair: Dict[str, Any] = {
        "tmDiff": round(abs(f.tm - r.tm), 2),
        "heterodimerDG": round(het_dg, 2),
    }
    warnings = _warnings("Forward", f, fs, preset) + _warnings("Reverse", r, rs, preset)
    if pair["tmDiff"] > 5:
        prefix = "CRITICAL " if pair["tmDiff"] > 8 else ""
        warnings.append(f"{prefix}Tm difference: {pair['tmDiff']:.1f}°C (>5°C may cause unequal amplification)")

    if tmpl:
        r.off_target.sites.extend(f_sites)
        scores["offTarget"] = min(enhanced_off_target_score(f.off_target), enhanced_off_target_score(r.off_target))
        amplicon = _amplicon(f, r, tmpl)
        if amplicon:
            scores["ampliconLength"] = tf.score_amplicon_length(len(amplicon))
            scores["ampliconStructure"] = tf.score_amplicon_structure(amplicon)
            pair["ampliconLength"] = len(amplicon)
        if opts.include_equilibrium:
            eq_opts = opts.equilibrium.model_copy(update={"temperature": opts.annealing_temperature})
            state = pair_equilibrium(
                f_seq, r_seq, tmpl, eq_opts, ps,
                off_target_dgs={"fwd": f.off_target.binding_dgs(), "rev": r.off_target.binding_dgs()},
            )
            pair["equilibrium"] = {
                "efficiency": round(state.efficiency, 4),
                "score": round(efficiency_to_score(state.efficiency), 1),
                "quality": state.quality,
                "bottleneck": state.bottleneck,
                "fractions": {n: {k: round(v, 6) for k, v in p.fractions.items()} for n, p in state.primers.items()},
            }

    result = composite_score(scores, resolve_weights(opts.weights, opts.weight_preset, opts.preset))
    logger.debug("scored pair %s / %s -> %d (%s)", f_seq, r_seq, result.score, result.tier)
    return PrimerScore(
        scores=scores, composite=result.score, tier=result.tier, forward=f, reverse=r, pair=pair,
        breakdown=result.breakdown, warnings=warnings, preset=opts.preset,
    )

