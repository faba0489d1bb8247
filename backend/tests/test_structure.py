# File: backend/tests/test_structure.py
# Version: v0.1.0
"""
Folding and equilibrium: symmetry, pair validity, fraction conservation.
"""
from __future__ import annotations

import pytest

from backend.app.core.errors import DidNotConverge
from backend.app.core.structure.equilibrium import EquilibriumOptions, equilibrium, pair_equilibrium
from backend.app.core.structure.fold import fold, stems
from backend.app.core.thermo.sequence import reverse_complement

HAIRPIN = "GCGCGCAAAAGCGCGC"
FWD = "ATGCATGCATGCATGCATGC"
TEMPLATE = "ATGCATGCATGCATGCATGC" + "GATTACAGATTACAGATTACAGGCT" * 4 + "TCGAGCTCAAGCTTGCCTAGGCTA"


def _non_crossing(pairs):
    for a, b in pairs:
        for c, d in pairs:
            if (a, b) == (c, d):
                continue
            if a < c < b < d:
                return False
    return True


def test_hairpin_pairs_valid_and_stable():
    res = fold(HAIRPIN)
    assert res.kind == "hairpin"
    assert res.dg < 0
    positions = [p for pair in res.pairs for p in pair]
    assert len(positions) == len(set(positions))
    assert all(i < j for i, j in res.pairs)
    assert _non_crossing(res.pairs)
    assert len(res.dot_bracket()) == len(HAIRPIN)


def test_unstructured_sequence_has_zero_dg():
    res = fold("AAAAAAAAAAAA")
    assert res.dg == 0.0
    assert res.pairs == []


def test_fold_idempotent():
    assert fold(HAIRPIN).dg == fold(HAIRPIN).dg


def test_dimer_energy_symmetric():
    a = "ACGTTGCAAGGCTTAC"
    b = reverse_complement(a)
    assert fold(a, b).dg == pytest.approx(fold(b, a).dg, abs=1e-9)
    c = "GGATCCTTAGCA"
    assert fold(a, c).dg == pytest.approx(fold(c, a).dg, abs=1e-9)


def test_dimer_pairs_monotone():
    a = "ACGTTGCAAGGCTTAC"
    res = fold(a, reverse_complement(a))
    assert res.dg < 0
    # strand A runs 5'->3' while its partner index runs the other way
    for (i1, j1), (i2, j2) in zip(res.pairs, res.pairs[1:]):
        assert i2 > i1 and j2 < j1


def test_stems_intervals():
    res = fold(HAIRPIN)
    regions = stems(res, merge_max_gap=0, min_stem_len=2)
    assert regions
    for s, e in regions:
        assert 0 <= s < e <= len(HAIRPIN)


def test_pair_fractions_sum_to_one():
    rev = reverse_complement(TEMPLATE[-20:])
    state = pair_equilibrium(FWD, rev, TEMPLATE)
    for p in state.primers.values():
        assert p.total_fraction == pytest.approx(1.0, abs=1e-6)
        assert all(v >= 0 for v in p.fractions.values())
    assert 0.0 <= state.efficiency <= 1.0
    assert state.bottleneck in ("fwd", "rev")


def test_single_primer_equilibrium_without_partners():
    state = equilibrium(FWD, on_target_site=FWD)
    assert state.primers["primer"].total_fraction == pytest.approx(1.0, abs=1e-6)


def test_iteration_bound_raises():
    opts = EquilibriumOptions(max_iterations=1)
    with pytest.raises(DidNotConverge):
        pair_equilibrium(FWD, reverse_complement(TEMPLATE[-20:]), TEMPLATE, opts)
