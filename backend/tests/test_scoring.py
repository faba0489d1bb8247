# File: backend/tests/test_scoring.py
# Version: v0.1.1
"""
Scoring engine: transforms, composite normalization, pair determinism.
"""
from __future__ import annotations

import math

import pytest

from backend.app.core.errors import InvalidInput, InvalidScore
from backend.app.core.scoring import transforms as tf
from backend.app.core.scoring.composite import DEFAULT_WEIGHTS, PRESETS, AnalysisPreset, classify_quality, composite_score
from backend.app.core.scoring.scorer import ScoringOptions, score, score_primer_pair

FWD = "ATGCATGCATGCATGCATGC"
TEMPLATE = "ATGCATGCATGCATGCATGC" + "GATTACAGGCT" * 8 + "TCGAGCTCAAGCTTGCCTAG"
REV = "CTAGGCAAGCTTGAGCTCGA"


def test_piecewise_logistic_flat_inside_optimum():
    assert tf.score_tm(57.0) == pytest.approx(1.0)
    assert tf.score_tm(57.0) > tf.score_tm(64.0) > tf.score_tm(75.0) >= 0.0


def test_gc_score_decays_outside_band():
    assert tf.score_gc(50.0) == pytest.approx(1.0)
    assert tf.score_gc(85.0) < tf.score_gc(65.0)


def test_composite_ignores_absent_scores():
    full = composite_score({"tmFwd": 1.0, "offTarget": None}, {"tmFwd": 1.0, "offTarget": 1.0})
    assert full.score == 100
    assert "offTarget" not in full.breakdown


def test_composite_rejects_non_finite():
    with pytest.raises(InvalidScore):
        composite_score({"tmFwd": math.nan}, {"tmFwd": 1.0})


def test_composite_needs_overlapping_weights():
    with pytest.raises(InvalidInput):
        composite_score({"tmFwd": 1.0}, {"gcFwd": 1.0})


def test_quality_tiers():
    assert classify_quality(95) == "excellent"
    assert classify_quality(80) == "good"
    assert classify_quality(10) == "poor"


def test_single_primer_without_template_has_no_offtarget():
    res = score(FWD)
    assert "offTarget" not in res.scores
    assert 0 <= res.composite <= 100


def test_pair_scoring_is_deterministic():
    a = score_primer_pair(FWD, REV, TEMPLATE)
    b = score_primer_pair(FWD, REV, TEMPLATE)
    assert a.composite == b.composite
    assert a.scores == b.scores
    assert 0 <= a.composite <= 100


def test_pair_with_template_reports_offtarget_and_equilibrium():
    res = score_primer_pair(FWD, REV, TEMPLATE)
    assert "offTarget" in res.scores
    assert "equilibrium" in res.pair
    assert 0.0 <= res.pair["equilibrium"]["efficiency"] <= 1.0


def test_explicit_weights_override_preset():
    opts = ScoringOptions(weights={"tmFwd": 1.0, "tmRev": 1.0})
    res = score_primer_pair(FWD, REV, None, opts)
    assert set(res.breakdown) == {"tmFwd", "tmRev"}


def test_unknown_preset_rejected():
    with pytest.raises(InvalidInput):
        score_primer_pair(FWD, REV, None, ScoringOptions(preset="crispr"))


def test_preset_without_weights_uses_default_weights():
    preset = AnalysisPreset(
        "Custom", "Preset without explicit weights",
        tf.Band(55, 60, 50, 65, 0.5), tf.Band(40, 60, 30, 70, 0.15), tf.Band(18, 24, 15, 30, 0.3),
    )
    assert preset.weights == DEFAULT_WEIGHTS
    assert PRESETS["amplification"].weights == DEFAULT_WEIGHTS
    assert PRESETS["sequencing"].weights["offTarget"] == pytest.approx(0.30)
