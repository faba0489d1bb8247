# File: backend/app/core/assembly/enzymes.py
# Version: v0.2.0
"""
Type IIS enzymes used for Golden Gate assembly, standard fusion sites and
restriction-site checks around candidate junctions.

Each enzyme cuts `spacer` nt downstream of its recognition site and leaves a
5' overhang of `overhang_length` nt. `data_key` names the ligation-fidelity
dataset measured for that enzyme (see fidelity.FidelityMatrix.load).
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from backend.app.core.errors import InvalidInput
from backend.app.core.thermo.sequence import reverse_complement


@dataclass(frozen=True, slots=True)
class Enzyme:
    name: str
    full_name: str
    recognition: str
    spacer: int
    overhang_length: int
    data_key: str
    supplier: str = "NEB"

    @property
    def recognition_rc(self) -> str:
        return reverse_complement(self.recognition)

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "fullName": self.full_name,
            "recognition": self.recognition,
            "spacer": self.spacer,
            "overhangLength": self.overhang_length,
            "dataKey": self.data_key,
            "supplier": self.supplier,
        }


ENZYMES: Mapping[str, Enzyme] = MappingProxyType({
    "BsaI": Enzyme("BsaI", "BsaI-HFv2", "GGTCTC", 1, 4, "BsaI-HFv2"),
    "BsmBI": Enzyme("BsmBI", "BsmBI-v2", "CGTCTC", 1, 4, "BsmBI-v2"),
    "Esp3I": Enzyme("Esp3I", "Esp3I", "CGTCTC", 1, 4, "Esp3I"),
    "BbsI": Enzyme("BbsI", "BbsI-HF", "GAAGAC", 2, 4, "BbsI-HF"),
    "SapI": Enzyme("SapI", "SapI", "GCTCTTC", 1, 3, "SapI"),
})

# full names and data keys resolve to the same entry
_ALIASES = {e.full_name.lower(): k for k, e in ENZYMES.items()}
_ALIASES.update({k.lower(): k for k in ENZYMES})


@dataclass(frozen=True, slots=True)
class FusionSite:
    code: str
    seq: str
    description: str


# MoClo / CIDAR Level 0 fusion sites (Weber et al. 2011)
STANDARD_FUSION_SITES: Mapping[str, FusionSite] = MappingProxyType({
    "A": FusionSite("A", "GGAG", "Upstream of promoter"),
    "B": FusionSite("B", "TACT", "Promoter/5'UTR junction"),
    "C": FusionSite("C", "AATG", "RBS/CDS start (includes ATG)"),
    "D": FusionSite("D", "AGGT", "CDS end/terminator"),
    "E": FusionSite("E", "GCTT", "Downstream of terminator"),
    "F": FusionSite("F", "CGCT", "Extended site F"),
    "G": FusionSite("G", "TGCC", "Extended site G"),
    "H": FusionSite("H", "ACTA", "Extended site H"),
})

# Published sets with near-zero cross-ligation (Potapov et al. 2018)
HIGH_FIDELITY_SETS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "5-part": ("TGAC", "GCAT", "GATG", "ATTG", "TCCT", "GGAA"),
    "moclo-core": ("GGAG", "TACT", "AATG", "GCTT"),
    "neb-level1-8": ("GGAG", "TACT", "CCAT", "AATG", "AGGT", "TTCG", "GCTT", "GGTA", "CGCT"),
})


def get_enzyme(name: Optional[str]) -> Enzyme:
    key = _ALIASES.get((name or "BsaI").strip().lower())
    if key is None:
        raise InvalidInput(f"unknown enzyme '{name}' (available: {', '.join(ENZYMES)})")
    return ENZYMES[key]


def find_recognition_sites(seq: str, enzyme: Enzyme) -> List[Tuple[int, str]]:
    """All (position, strand) hits of the recognition site; strand '-' for the reverse complement."""
    hits: List[Tuple[int, str]] = []
    site, site_rc = enzyme.recognition, enzyme.recognition_rc
    for strand, motif in (("+", site), ("-", site_rc)):
        start = seq.find(motif)
        while start != -1:
            hits.append((start, strand))
            start = seq.find(motif, start + 1)
        if site == site_rc:
            break
    return sorted(hits)


def junction_creates_site(sequence: str, position: int, enzyme: Enzyme) -> bool:
    """
    True if cloning a junction at `position` can produce a recognition site
    that the template did not have.

    Both engineered fragment ends are checked: the downstream fragment starts
    with site + spacer + overhang + template, the upstream fragment ends with
    the mirror image. Spacer bases are free in primer design, so every choice
    is tried; any recognition hit beyond the intended one is new.
    """
    flank = len(enzyme.recognition) + enzyme.spacer + enzyme.overhang_length
    right = sequence[position: position + enzyme.overhang_length + flank]
    left = sequence[max(0, position - flank): position + enzyme.overhang_length]
    native = len(find_recognition_sites(right, enzyme)) + len(find_recognition_sites(left, enzyme))

    for bases in itertools.product("ACGT", repeat=enzyme.spacer):
        spacer = "".join(bases)
        downstream = enzyme.recognition + spacer + right
        upstream = left + reverse_complement(spacer) + enzyme.recognition_rc
        engineered = len(find_recognition_sites(downstream, enzyme)) + len(find_recognition_sites(upstream, enzyme))
        if engineered - 2 > native:
            return True
    return False
