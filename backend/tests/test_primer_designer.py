# File: backend/tests/test_primer_designer.py
# Version: v0.1.0
"""Anchored and sliding primer design on small templates."""
from __future__ import annotations

import pytest

from backend.app.core.errors import InvalidInput
from backend.app.core.primer.designer import design_primers
from backend.app.core.primer.parameters import PrimerDesignParameters

TEMPLATE = "ATGC" * 9


def test_anchored_design_scores_the_pair():
    params = PrimerDesignParameters(forwardLength=20, targetTm=60.0, shortlist=2, maxPairs=2)
    pairs, diag = design_primers(TEMPLATE, start=0, params=params)
    assert pairs
    best = pairs[0]
    assert best.forward.seq == "ATGCATGCATGCATGCATGC"
    assert best.forward.pos == 0
    assert 55.0 <= best.forward.tm <= 65.0
    assert best.reverse.pos + best.reverse.length == len(TEMPLATE)
    assert best.product_size == len(TEMPLATE)
    assert 0 <= best.composite <= 100
    assert best.result is not None and best.result.tier
    assert diag.as_dict()["message"] == "OK"
    assert [p.composite for p in pairs] == sorted((p.composite for p in pairs), reverse=True)


def test_impossible_filters_explain_the_failure():
    params = PrimerDesignParameters(primerGCMin=80.0, primerGCMax=100.0, shortlist=2)
    with pytest.raises(InvalidInput) as exc:
        design_primers(TEMPLATE, start=0, params=params)
    assert str(exc.value).startswith("No valid primer pair at the requested boundaries.")
    assert "GC" in str(exc.value)


def test_invalid_coordinates():
    with pytest.raises(InvalidInput):
        design_primers(TEMPLATE, start=30, end=10)
    with pytest.raises(InvalidInput):
        design_primers(TEMPLATE, start=0, end=len(TEMPLATE) + 5)


def test_sliding_mode_respects_window_and_product(rng):
    template = "".join(rng.choice("ACGT") for _ in range(300))
    params = PrimerDesignParameters(
        templateExact=False, searchWindow=10, productSizeMin=200,
        primerTmMin=50.0, primerTmMax=70.0, primerTmDifferenceMax=10.0,
        shortlist=3, maxPairs=2,
    )
    pairs, diag = design_primers(template, start=0, end=300, params=params)
    assert 1 <= len(pairs) <= 2
    assert diag.pairs_scored == 3 or diag.pairs_scored == diag.pair_scores_checked
    for pair in pairs:
        assert 0 <= pair.forward.pos <= 10
        assert 290 <= pair.reverse.pos + pair.reverse.length <= 300
        assert pair.product_size >= 200
