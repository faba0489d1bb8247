# File: backend/app/core/thermo/parameters.py
# Version: v0.1.0
"""
Explicit, immutable nearest-neighbor parameter sets.

A `ParameterSet` is passed into every thermodynamics call; there is no
process-wide "active set". Sets are built from the raw tables in
`nn_tables.py`, expanded by rotation symmetry, and validated once.

Usage:
    from backend.app.core.thermo.parameters import get_parameter_set
    ps = get_parameter_set("santalucia2004")
    dh, ds = ps.stack("AC/TG")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from itertools import product
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from backend.app.core.errors import InvalidInput, ParameterTableIncomplete
from backend.app.core.thermo import nn_tables as nt
from backend.app.core.thermo.sequence import COMPLEMENT

logger = logging.getLogger(__name__)

Energy = Tuple[float, float]

BASES = "ACGT"
MAX_LOOP = 30
INIT_KEYS = ("init", "init_A/T", "init_G/C", "sym")


def rotate_key(key: str) -> str:
    """'XY/ZW' viewed from the other strand reads 'WZ/YX'."""
    top, bottom = key.split("/")
    return bottom[::-1] + "/" + top[::-1]


def _with_rotations(table: Mapping[str, Energy]) -> Dict[str, Energy]:
    out: Dict[str, Energy] = {}
    for key, val in table.items():
        if "/" not in key or key.startswith("init"):
            out[key] = val
            continue
        out[key] = val
        out.setdefault(rotate_key(key), val)
    return out


def _wc_stack_keys():
    for x, y in product(BASES, repeat=2):
        yield f"{x}{y}/{COMPLEMENT[x]}{COMPLEMENT[y]}"


def _wc_first_mismatch_keys():
    """All 'XY/ZW' keys with X:Z Watson-Crick and Y:W mismatched."""
    for x, y, w in product(BASES, repeat=3):
        if COMPLEMENT[y] == w:
            continue
        yield f"{x}{y}/{COMPLEMENT[x]}{w}"


@dataclass(frozen=True, slots=True)
class ParameterSet:
    """
    Immutable container for one named DNA nearest-neighbor parameter set.

    Energies are (dH [kcal/mol], dS [cal/(K*mol)]). Stack-like tables are keyed
    "XY/ZW" and contain both rotations of every entry.
    """
    name: str
    nn: Mapping[str, Energy]
    internal_mm: Mapping[str, Energy]
    terminal_mm: Mapping[str, Energy]
    hairpin_loops: Mapping[int, Energy]
    bulge_loops: Mapping[int, Energy]
    internal_loops: Mapping[int, Energy]
    tri_tetra_loops: Mapping[str, Energy] = field(default_factory=lambda: MappingProxyType({}))
    multibranch: Tuple[float, float, float, float] = nt.MULTIBRANCH

    @staticmethod
    def delta_g(dh: float, ds: float, temp_kelvin: float) -> float:
        """dG = dH - T*dS, with dS converted from cal to kcal."""
        return dh - temp_kelvin * ds / 1000.0

    def validate(self) -> "ParameterSet":
        """Raise ParameterTableIncomplete on the first missing key."""
        for key in INIT_KEYS:
            if key not in self.nn:
                raise ParameterTableIncomplete("nn", key, self.name)
        for key in _wc_stack_keys():
            if key not in self.nn:
                raise ParameterTableIncomplete("nn", key, self.name)
        for key in _wc_first_mismatch_keys():
            if key not in self.internal_mm:
                raise ParameterTableIncomplete("internal_mm", key, self.name)
            if rotate_key(key) not in self.internal_mm:
                raise ParameterTableIncomplete("internal_mm", rotate_key(key), self.name)
            if key not in self.terminal_mm:
                raise ParameterTableIncomplete("terminal_mm", key, self.name)
        for table_name, table, first in (
            ("hairpin_loops", self.hairpin_loops, 3),
            ("bulge_loops", self.bulge_loops, 1),
            ("internal_loops", self.internal_loops, 3),
        ):
            for size in range(first, MAX_LOOP + 1):
                if size not in table:
                    raise ParameterTableIncomplete(table_name, str(size), self.name)
        return self

    # --- lookups ---------------------------------------------------------------------------

    def stack(self, key: str) -> Energy:
        try:
            return self.nn[key]
        except KeyError:
            raise ParameterTableIncomplete("nn", key, self.name) from None

    def mismatch(self, key: str) -> Energy:
        try:
            return self.internal_mm[key]
        except KeyError:
            raise ParameterTableIncomplete("internal_mm", key, self.name) from None

    def terminal_mismatch(self, key: str) -> Energy:
        try:
            return self.terminal_mm[key]
        except KeyError:
            raise ParameterTableIncomplete("terminal_mm", key, self.name) from None

    def loop(self, kind: str, size: int) -> Energy:
        table = {"hairpin": self.hairpin_loops, "bulge": self.bulge_loops, "internal": self.internal_loops}[kind]
        try:
            return table[size]
        except KeyError:
            raise ParameterTableIncomplete(f"{kind}_loops", str(size), self.name) from None


def build_parameter_set(name: str, nn: Mapping[str, Energy]) -> ParameterSet:
    """Expand rotations, freeze the tables and validate."""
    ps = ParameterSet(
        name=name,
        nn=MappingProxyType(_with_rotations(nn)),
        internal_mm=MappingProxyType(_with_rotations(nt.INTERNAL_MM)),
        terminal_mm=MappingProxyType(_with_rotations(nt.TERMINAL_MM)),
        hairpin_loops=MappingProxyType(dict(nt.HAIRPIN_LOOPS)),
        bulge_loops=MappingProxyType(dict(nt.BULGE_LOOPS)),
        internal_loops=MappingProxyType(dict(nt.INTERNAL_LOOPS)),
        tri_tetra_loops=MappingProxyType(dict(nt.TRI_TETRA_LOOPS)),
        multibranch=nt.MULTIBRANCH,
    )
    return ps.validate()


_REGISTRY: Dict[str, Mapping[str, Energy]] = {
    "santalucia2004": nt.NN_2004,
    "santalucia1998": nt.NN_1998,
}

DEFAULT_PARAMETER_SET = "santalucia2004"


def available_parameter_sets() -> Tuple[str, ...]:
    return tuple(sorted(_REGISTRY))


@lru_cache(maxsize=None)
def get_parameter_set(name: str = DEFAULT_PARAMETER_SET) -> ParameterSet:
    """Return the validated parameter set registered under `name`."""
    key = (name or DEFAULT_PARAMETER_SET).strip().lower()
    if key not in _REGISTRY:
        raise InvalidInput(f"unknown parameter set '{name}' (available: {', '.join(available_parameter_sets())})")
    ps = build_parameter_set(key, _REGISTRY[key])
    logger.debug("Loaded parameter set %s: %d stacks, %d mismatches", key, len(ps.nn), len(ps.internal_mm))
    return ps
