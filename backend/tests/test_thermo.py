# File: backend/tests/test_thermo.py
# Version: v0.1.0
"""
Thermodynamics core: parameter sets, Tm ordering, duplex energies.
"""
from __future__ import annotations

import dataclasses
from types import MappingProxyType

import pytest

from backend.app.core.errors import InvalidInput, ParameterTableIncomplete
from backend.app.core.thermo.parameters import available_parameter_sets, get_parameter_set
from backend.app.core.thermo.sequence import gc_percent, longest_homopolymer, normalize_sequence, reverse_complement
from backend.app.core.thermo.tm import Concentrations, duplex_free_energy, melting_temperature


def test_sequence_helpers():
    assert normalize_sequence(" atg c\n") == "ATGC"
    assert reverse_complement("ATGC") == "GCAT"
    assert gc_percent("ATGC") == pytest.approx(50.0)
    assert longest_homopolymer("ATTTTGC") == 4
    with pytest.raises(InvalidInput):
        normalize_sequence("ATGX")
    with pytest.raises(InvalidInput):
        normalize_sequence("AT", min_length=6)


def test_tm_increases_with_gc_at_fixed_length():
    at_rich = "ATATTAATATTAATATTAAT"
    mixed = "ATGCATGCATGCATGCATGC"
    gc_rich = "GCGGCCGCGGCCGCGGCCGC"
    tms = [melting_temperature(s) for s in (at_rich, mixed, gc_rich)]
    assert tms[0] < tms[1] < tms[2]


def test_tm_non_decreasing_with_length_at_fixed_gc():
    tms = [melting_temperature("ATGC" * k) for k in range(3, 9)]
    assert all(b >= a for a, b in zip(tms, tms[1:]))


def test_parameter_sets_registered_and_distinct():
    assert set(available_parameter_sets()) >= {"santalucia2004", "santalucia1998"}
    seq = "ATGCATGCATGCATGCATGC"
    t04 = melting_temperature(seq, parameter_set=get_parameter_set("santalucia2004"))
    t98 = melting_temperature(seq, parameter_set=get_parameter_set("santalucia1998"))
    assert 40.0 < t04 < 80.0 and 40.0 < t98 < 80.0
    with pytest.raises(InvalidInput):
        get_parameter_set("turner1999")


def test_incomplete_table_is_fatal():
    ps = get_parameter_set()
    broken = dataclasses.replace(ps, nn=MappingProxyType({k: v for k, v in ps.nn.items() if k != "AA/TT"}))
    with pytest.raises(ParameterTableIncomplete):
        broken.validate()


def test_scenario_primer_tm_in_band():
    tm = melting_temperature("ATGCATGCATGCATGCATGC", Concentrations())
    assert 55.0 <= tm <= 65.0


def test_duplex_free_energy_more_negative_when_longer():
    assert duplex_free_energy("ATGCATGCATGCATGCATGCATGC").dg < duplex_free_energy("ATGCATGCATGC").dg


def test_unknown_tm_method():
    with pytest.raises(InvalidInput):
        melting_temperature("ATGCATGCATGC", method="wallace")
