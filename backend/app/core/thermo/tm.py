# File: backend/app/core/thermo/tm.py
# Version: v0.1.0
"""
Melting temperature and duplex free energy (nearest-neighbor model).

Implements:
- duplex_energy / duplex_free_energy: sum of NN stacks + initiation terms,
  optionally against an explicit (mismatched) complement strand
- terminal_free_energy: 3'-anchored sub-duplex dG (default last 5 nt, 37 °C)
- melting_temperature: Tm in °C with salt correction, three backends:
    * "nn"        in-house NN sum (default, honours the ParameterSet)
    * "primer3"   primer3.calc_tm
    * "biopython" Bio.SeqUtils.MeltingTemp.Tm_NN

Units
-----
dH kcal/mol, dS cal/(mol*K), temperatures in °C at the API surface and Kelvin
internally. Ion concentrations are mM, strand concentrations nM (Biopython
conventions).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import primer3
from Bio.SeqUtils import MeltingTemp as mt
from pydantic import BaseModel, Field, confloat

from backend.app.core.errors import InvalidInput
from backend.app.core.thermo.parameters import ParameterSet, get_parameter_set
from backend.app.core.thermo.sequence import COMPLEMENT, is_palindrome, normalize_sequence

logger = logging.getLogger(__name__)

R_CAL = 1.987  # cal/(mol*K)
KELVIN = 273.15
MIN_DUPLEX_LENGTH = 6
TERMINAL_WINDOW = 5
TERMINAL_TEMPERATURE_C = 37.0

TM_METHODS = ("nn", "primer3", "biopython")


class Concentrations(BaseModel):
    """Reaction conditions for Tm calculation (Biopython units)."""
    na_mM: confloat(ge=0) = Field(50.0, description="Na+ (mM)")
    k_mM: confloat(ge=0) = Field(0.0, description="K+ (mM)")
    tris_mM: confloat(ge=0) = Field(0.0, description="Tris buffer (mM)")
    mg_mM: confloat(ge=0) = Field(0.0, description="Mg2+ (mM)")
    dntps_mM: confloat(ge=0) = Field(0.0, description="dNTPs (mM)")
    dnac1_nM: confloat(gt=0) = Field(250.0, description="Concentration of the higher-concentrated strand (nM)")
    dnac2_nM: confloat(ge=0) = Field(250.0, description="Concentration of the lower-concentrated strand (nM)")
    saltcorr: int = Field(5, ge=0, le=7, description="Biopython salt-correction method (0 = none)")

    def model_post_init(self, __context) -> None:
        if self.saltcorr >= 5 and (self.na_mM + self.k_mM + self.tris_mM + self.mg_mM) <= 0:
            raise ValueError("salt correction methods 5-7 need a non-zero ion concentration")

    @property
    def monovalent_mM(self) -> float:
        return self.na_mM + self.k_mM + self.tris_mM / 2.0


@dataclass(slots=True)
class DuplexEnergy:
    dh: float           # kcal/mol
    ds: float           # cal/(mol*K)
    dg: float           # kcal/mol at `temperature_c`
    temperature_c: float


def _end_init(base: str, ps: ParameterSet) -> Tuple[float, float]:
    return ps.stack("init_A/T") if base in "AT" else ps.stack("init_G/C")


def _aligned_complement(seq: str, complement: Optional[str]) -> str:
    """Bottom strand written 3'->5' under `seq`; defaults to the perfect complement."""
    if complement is None:
        return "".join(COMPLEMENT[b] for b in seq)
    comp = normalize_sequence(complement, label="complement")
    if len(comp) != len(seq):
        raise InvalidInput(f"complement length {len(comp)} != sequence length {len(seq)}")
    return comp


def nn_sum(seq: str, ps: ParameterSet, complement: Optional[str] = None) -> Tuple[float, float]:
    """
    (dH, dS) of `seq` hybridized to `complement` (3'->5', aligned).

    Unpaired terminal positions are trimmed. A step with two adjacent
    mismatches has no nearest-neighbor term and contributes nothing.
    """
    top = seq
    bottom = _aligned_complement(seq, complement)
    paired = [COMPLEMENT[a] == b for a, b in zip(top, bottom)]
    if not any(paired):
        return 0.0, 0.0
    lo = paired.index(True)
    hi = len(paired) - 1 - paired[::-1].index(True)
    top, bottom, paired = top[lo:hi + 1], bottom[lo:hi + 1], paired[lo:hi + 1]

    dh, ds = ps.stack("init")
    for base in (top[0], top[-1]):
        h, s = _end_init(base, ps)
        dh += h
        ds += s
    for i in range(len(top) - 1):
        key = f"{top[i]}{top[i + 1]}/{bottom[i]}{bottom[i + 1]}"
        if paired[i] and paired[i + 1]:
            h, s = ps.stack(key)
        elif paired[i] or paired[i + 1]:
            h, s = ps.mismatch(key)
        else:
            continue
        dh += h
        ds += s
    if complement is None and is_palindrome(top):
        h, s = ps.stack("sym")
        dh += h
        ds += s
    return dh, ds


def duplex_energy(
    seq: str,
    temperature: float = TERMINAL_TEMPERATURE_C,
    parameter_set: Optional[ParameterSet] = None,
    complement: Optional[str] = None,
    *,
    min_length: int = MIN_DUPLEX_LENGTH,
) -> DuplexEnergy:
    s = normalize_sequence(seq, min_length=min_length)
    ps = parameter_set or get_parameter_set()
    dh, ds = nn_sum(s, ps, complement)
    return DuplexEnergy(dh=dh, ds=ds, dg=ParameterSet.delta_g(dh, ds, temperature + KELVIN), temperature_c=temperature)


def duplex_free_energy(
    seq: str,
    temperature: float = TERMINAL_TEMPERATURE_C,
    parameter_set: Optional[ParameterSet] = None,
    complement: Optional[str] = None,
) -> DuplexEnergy:
    """
    Energy of `seq` paired with its complement (or an explicit 3'->5' strand).

    Raises InvalidInput for sequences shorter than 6 nt or with unknown bases.
    """
    return duplex_energy(seq, temperature, parameter_set, complement)


def terminal_free_energy(
    seq: str,
    window_length: int = TERMINAL_WINDOW,
    parameter_set: Optional[ParameterSet] = None,
    temperature: float = TERMINAL_TEMPERATURE_C,
) -> DuplexEnergy:
    """dG of the 3'-anchored sub-duplex (last `window_length` bases), NN stacks only."""
    s = normalize_sequence(seq, min_length=2)
    if window_length < 2:
        raise InvalidInput("window_length must be >= 2")
    ps = parameter_set or get_parameter_set()
    tail = s[-window_length:]
    dh = ds = 0.0
    for i in range(len(tail) - 1):
        h, sv = ps.stack(f"{tail[i]}{tail[i + 1]}/{COMPLEMENT[tail[i]]}{COMPLEMENT[tail[i + 1]]}")
        dh += h
        ds += sv
    return DuplexEnergy(dh=dh, ds=ds, dg=ParameterSet.delta_g(dh, ds, temperature + KELVIN), temperature_c=temperature)


def classify_terminal_dg(dg: float) -> str:
    if dg > -6.0:
        return "loose"
    if dg > -9.0:
        return "ideal"
    if dg > -11.0:
        return "strong"
    return "sticky"


def _strand_term(seq: str, conc: Concentrations) -> float:
    if is_palindrome(seq):
        k = conc.dnac1_nM * 1e-9
    else:
        k = (conc.dnac1_nM - conc.dnac2_nM / 2.0) * 1e-9
    if k <= 0:
        raise InvalidInput("dnac1 must exceed dnac2/2 for a non-self-complementary duplex")
    return R_CAL * math.log(k)


def _salt_correction(seq: str, conc: Concentrations) -> float:
    if conc.saltcorr == 0:
        return 0.0
    return mt.salt_correction(
        Na=conc.na_mM, K=conc.k_mM, Tris=conc.tris_mM, Mg=conc.mg_mM,
        dNTPs=conc.dntps_mM, method=conc.saltcorr, seq=seq,
    )


def tm_from_energy(seq: str, dh: float, ds: float, conc: Concentrations) -> float:
    """Apply salt correction and the strand-concentration term (Biopython semantics)."""
    corr = _salt_correction(seq, conc)
    if conc.saltcorr == 5:
        ds += corr
    denom = ds + _strand_term(seq, conc)
    if denom >= 0:
        raise InvalidInput(f"non-physical duplex entropy for {seq}")
    tm = (1000.0 * dh) / denom - KELVIN
    if conc.saltcorr in (1, 2, 3, 4):
        tm += corr
    elif conc.saltcorr in (6, 7):
        tm = 1.0 / (1.0 / (tm + KELVIN) + corr) - KELVIN
    return tm


def melting_temperature(
    seq: str,
    concentrations: Optional[Concentrations] = None,
    parameter_set: Optional[ParameterSet] = None,
    method: str = "nn",
) -> float:
    """
    Tm (°C) of `seq` against its perfect complement.

    `method` picks the backend; "nn" is the reference and the only one that
    honours a custom ParameterSet.
    """
    s = normalize_sequence(seq, min_length=MIN_DUPLEX_LENGTH)
    conc = concentrations or Concentrations()
    meth = (method or "nn").lower()
    if meth == "nn":
        ps = parameter_set or get_parameter_set()
        dh, ds = nn_sum(s, ps)
        return tm_from_energy(s, dh, ds, conc)
    if meth == "primer3":
        return float(primer3.calc_tm(
            s,
            mv_conc=conc.monovalent_mM,
            dv_conc=conc.mg_mM,
            dntp_conc=conc.dntps_mM,
            dna_conc=conc.dnac1_nM,
        ))
    if meth == "biopython":
        table = mt.DNA_NN3 if parameter_set is not None and parameter_set.name == "santalucia1998" else mt.DNA_NN4
        return float(mt.Tm_NN(
            s, nn_table=table,
            Na=conc.na_mM, K=conc.k_mM, Tris=conc.tris_mM, Mg=conc.mg_mM, dNTPs=conc.dntps_mM,
            dnac1=conc.dnac1_nM, dnac2=conc.dnac2_nM, saltcorr=conc.saltcorr,
            selfcomp=is_palindrome(s),
        ))
    raise InvalidInput(f"unknown tm method '{method}' (expected one of {', '.join(TM_METHODS)})")
