# File: backend/tests/test_fidelity.py
# Version: v0.1.0
"""
Ligation fidelity: matrices, set fidelity, efficiency penalties, G:T risks.
"""
from __future__ import annotations

import json

import pytest

from backend.app.core.assembly.enzymes import STANDARD_FUSION_SITES, get_enzyme
from backend.app.core.assembly.fidelity import (
    FidelityMatrix,
    calculate_fidelity,
    cross_ligation_pairs,
    find_gt_risks,
    load_matrix,
    modeled_matrix,
    overhang_efficiency,
    set_fidelity,
)
from backend.app.core.errors import InvalidInput
from backend.app.core.thermo.sequence import reverse_complement

SET4 = ["GGAG", "AATG", "TTCG", "GCTT"]


def _explicit(overhangs, cross: float) -> FidelityMatrix:
    strands = set(overhangs) | {reverse_complement(o) for o in overhangs}
    data = {}
    for a in strands:
        data[a] = {b: (1000.0 if b == reverse_complement(a) else cross) for b in strands}
    return FidelityMatrix.from_mapping("BsaI", data)


def test_near_exclusive_pairing_gives_high_set_fidelity():
    assert set_fidelity(SET4, _explicit(SET4, cross=1.0)) > 0.95


def test_set_fidelity_is_one_only_without_cross_ligation():
    assert set_fidelity(SET4, _explicit(SET4, cross=0.0)) == pytest.approx(1.0)
    assert set_fidelity(SET4, _explicit(SET4, cross=5.0)) < 1.0


def test_set_fidelity_never_increases_when_adding_overhangs():
    m = modeled_matrix(4)
    prev = 1.0
    for i in range(1, len(SET4) + 1):
        f = set_fidelity(SET4[:i], m)
        assert 0.0 <= f <= prev + 1e-12
        prev = f


def test_modeled_matrix_prefers_watson_crick():
    m = modeled_matrix(4)
    assert m.source == "modeled"
    assert m.correct_frequency("GGAG") > m.frequency("GGAG", "CTCA")
    # G:T wobble tolerated more than a plain mismatch at the same position
    assert m.frequency("GGAG", "CTTC") > m.frequency("GGAG", "CTAC")


def test_cross_ligation_pairs_sorted_worst_first():
    m = modeled_matrix(4)
    pairs = cross_ligation_pairs(["GGAG", "GGAA", "AATG"], m)
    assert pairs
    ratios = [p.ratio for p in pairs]
    assert ratios == sorted(ratios, reverse=True)


def test_efficiency_penalties():
    assert overhang_efficiency("GGAG").efficiency > overhang_efficiency("GGGG").efficiency
    tnna = overhang_efficiency("TACA")
    assert any(name == "TNNA" for name, _ in tnna.penalties)
    assert overhang_efficiency("GCGC").tier in ("optimal", "acceptable", "poor")


def test_gt_risk_detected_for_wobble_neighbors():
    risks = find_gt_risks(["GGAG", "GGGG"])
    assert risks
    assert all(r.risk in ("critical", "high", "medium") for r in risks)


def test_calculate_fidelity_warns_on_reverse_complements():
    report = calculate_fidelity(["GGAG", "CTCC", "AATG"], modeled_matrix(4))
    assert any("reverse complement" in w for w in report.warnings)
    assert report.final_fidelity <= report.assembly_fidelity


def test_standard_sites_scored_with_modeled_matrix():
    ohs = [s.seq for s in STANDARD_FUSION_SITES.values()][:5]
    report = calculate_fidelity(ohs, load_matrix("BsaI"))
    assert 0.0 < report.assembly_fidelity <= 1.0
    assert len(report.junctions) == 5


def test_measured_matrix_loaded_from_json(tmp_path):
    labels = ["GGAG", "CTCC", "AATG", "CATT"]
    matrix = [[0, 900, 0, 3], [900, 0, 2, 0], [0, 2, 0, 800], [3, 0, 800, 0]]
    (tmp_path / "BsaI-HFv2.json").write_text(json.dumps({"overhangs": labels, "matrix": matrix}))
    m = load_matrix(get_enzyme("BsaI"), tmp_path)
    assert m.source.startswith("file:")
    assert m.frequency("GGAG", "CTCC") == 900.0
    assert set_fidelity(["GGAG", "AATG"], m) < 1.0


def test_invalid_overhangs_rejected():
    with pytest.raises(InvalidInput):
        set_fidelity(["GGA"], modeled_matrix(4))
    with pytest.raises(InvalidInput):
        FidelityMatrix.from_mapping("BsaI", {"GGAG": {"CTCC": -1.0}})
