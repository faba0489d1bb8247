# File: backend/app/core/structure/fold.py
# Version: v0.1.0
"""
Minimum-free-energy folding for short DNA oligos (hairpins and dimers).

Model
-----
Zuker-style dynamic programming over nearest-neighbor energies:
- V[i][j]  best energy of span i..j given that i and j pair
- WM[i][j] best energy of span i..j inside a multiloop
- W[i][j]  best energy of span i..j in the exterior loop (0 when unstructured)

Hairpins, bulges and internal loops use the loop tables of the ParameterSet;
loops longer than 30 nt are extrapolated (Jacobson-Stockmayer). Multiloops
use the linear model a + b*unpaired + c*branches. Pseudoknots are excluded
by construction. Minimum hairpin loop is 3 nt.

Dimers use a 2-D table over (i in A, j in B) of intermolecular helices with
bulges/internal loops, intermolecular initiation and end terms. The end terms
are written so that fold(a, b) and fold(b, a) score identical structures.

The tables are owned by a single call (no cache shared across calls).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from backend.app.core.errors import ParameterTableIncomplete
from backend.app.core.thermo.parameters import ParameterSet, get_parameter_set
from backend.app.core.thermo.sequence import is_complement, normalize_sequence

logger = logging.getLogger(__name__)

INF = float("inf")
MIN_HAIRPIN_LOOP = 3
MAX_LOOP = 30
R_KCAL = 1.9872e-3
DEFAULT_TEMPERATURE_C = 37.0


@dataclass(slots=True)
class FoldResult:
    """
    MFE structure.

    For hairpins `pairs` holds (i, j) with i < j on the same strand. For dimers
    (i, j) means base i of strand A pairs with base j of strand B.
    """
    kind: str                                # "hairpin" | "dimer"
    dg: float                                # kcal/mol, <= 0
    pairs: List[Tuple[int, int]] = field(default_factory=list)
    length_a: int = 0
    length_b: int = 0
    temperature_c: float = DEFAULT_TEMPERATURE_C

    @property
    def structured(self) -> bool:
        return bool(self.pairs)

    def dot_bracket(self) -> str:
        if self.kind != "hairpin":
            raise ValueError("dot-bracket notation is only defined for single-strand folds")
        chars = ["."] * self.length_a
        for i, j in self.pairs:
            chars[i] = "("
            chars[j] = ")"
        return "".join(chars)

    def paired_flags(self) -> List[bool]:
        flags = [False] * self.length_a
        for i, j in self.pairs:
            flags[i] = True
            if self.kind == "hairpin":
                flags[j] = True
        return flags


class _Energetics:
    """Loop-energy functions over a (top, bottom) strand pair at one temperature."""

    def __init__(self, top: str, bottom: str, ps: ParameterSet, temperature_c: float):
        self.top = top
        self.bottom = bottom
        self.ps = ps
        self.temp_k = temperature_c + 273.15
        t = self.temp_k
        self.nn = {k: dh - t * ds / 1000.0 for k, (dh, ds) in ps.nn.items()}
        self.mm = {k: dh - t * ds / 1000.0 for k, (dh, ds) in ps.internal_mm.items()}
        self.tmm = {k: dh - t * ds / 1000.0 for k, (dh, ds) in ps.terminal_mm.items()}
        self.loops: Dict[str, Dict[int, float]] = {
            kind: {n: dh - t * ds / 1000.0 for n, (dh, ds) in table.items()}
            for kind, table in (
                ("hairpin", ps.hairpin_loops),
                ("bulge", ps.bulge_loops),
                ("internal", ps.internal_loops),
            )
        }
        self.special = {k: dh - t * ds / 1000.0 for k, (dh, ds) in ps.tri_tetra_loops.items()}
        a, b, c, _d = ps.multibranch
        self.ml_a, self.ml_b, self.ml_c = a, b, c

    def _lookup(self, table: Dict[str, float], name: str, key: str) -> float:
        try:
            return table[key]
        except KeyError:
            raise ParameterTableIncomplete(name, key, self.ps.name) from None

    def loop_dg(self, kind: str, size: int) -> float:
        table = self.loops[kind]
        if size <= MAX_LOOP:
            if size not in table:
                raise ParameterTableIncomplete(f"{kind}_loops", str(size), self.ps.name)
            return table[size]
        return table[MAX_LOOP] + 2.44 * R_KCAL * self.temp_k * math.log(size / MAX_LOOP)

    def step(self, i: int, i1: int, j: int, j1: int) -> float:
        """Stack top[i]top[i1] / bottom[j]bottom[j1], tolerating one mismatch."""
        top, bot = self.top, self.bottom
        key = f"{top[i]}{top[i1]}/{bot[j]}{bot[j1]}"
        wc1 = is_complement(top[i], bot[j])
        wc2 = is_complement(top[i1], bot[j1])
        if wc1 and wc2:
            return self._lookup(self.nn, "nn", key)
        if wc1 or wc2:
            return self._lookup(self.mm, "internal_mm", key)
        return 0.0

    def terminal(self, x5: str, x3: str, y3: str, y5: str) -> float:
        """Terminal mismatch with closing pair x5:y3 and unpaired x3 / y5; complementary neighbours add 0."""
        if is_complement(x3, y5):
            return 0.0
        return self._lookup(self.tmm, "terminal_mm", f"{x5}{x3}/{y3}{y5}")

    def end_penalty(self, i: int, j: int) -> float:
        key = "init_A/T" if self.top[i] in "AT" else "init_G/C"
        return self.nn[key]

    def hairpin(self, i: int, j: int) -> float:
        s = self.top
        n = j - i - 1
        if n < MIN_HAIRPIN_LOOP:
            return INF
        dg = 0.0
        if n in (3, 4):
            dg += self.special.get(s[i:j + 1], 0.0)
        dg += self.loop_dg("hairpin", n)
        if n > 3:
            dg += self.terminal(s[i], s[i + 1], s[j], s[j - 1])
        if n == 3 and s[i] in "AT":
            dg += 0.5
        return dg

    def interior(self, i: int, j: int, i1: int, j1: int) -> float:
        """Stack, bulge or internal loop closed by (i, j) outside and (i1, j1) inside."""
        top, bot = self.top, self.bottom
        left = i1 - i - 1
        right = j - j1 - 1
        if left == 0 and right == 0:
            return self.step(i, i1, j, j1)
        if left == 0 or right == 0:
            size = left + right
            dg = self.loop_dg("bulge", size)
            if size == 1:
                dg += self.step(i, i1, j, j1)
            if top[i] in "AT" or top[i1] in "AT":
                dg += 0.5
            return dg
        if left == 1 and right == 1:
            return self.step(i, i + 1, j, j - 1) + self.step(i1 - 1, i1, j1 + 1, j1)
        dg = self.loop_dg("internal", left + right)
        dg += 0.3 * abs(left - right)
        dg += self.terminal(top[i], top[i + 1], bot[j], bot[j - 1])
        dg += self.terminal(bot[j1], bot[j1 + 1], top[i1], top[i1 - 1])
        return dg


# ---------------------------------------------------------------------------------------------
# Hairpin (single strand)
# ---------------------------------------------------------------------------------------------

def _fold_single(seq: str, en: _Energetics) -> FoldResult:
    n = len(seq)
    V = [[INF] * n for _ in range(n)]
    WM = [[INF] * n for _ in range(n)]
    W = [[0.0] * n for _ in range(n)]
    v_tb: List[List[Optional[tuple]]] = [[None] * n for _ in range(n)]
    wm_tb: List[List[Optional[tuple]]] = [[None] * n for _ in range(n)]
    w_tb: List[List[Optional[tuple]]] = [[None] * n for _ in range(n)]
    a, b, c = en.ml_a, en.ml_b, en.ml_c

    for d in range(MIN_HAIRPIN_LOOP + 1, n):
        for i in range(0, n - d):
            j = i + d
            # V
            if is_complement(seq[i], seq[j]):
                best = en.hairpin(i, j)
                tb: tuple = ("H",)
                for i1 in range(i + 1, j - MIN_HAIRPIN_LOOP - 1):
                    left = i1 - i - 1
                    if left > MAX_LOOP:
                        break
                    for j1 in range(j - 1, i1 + MIN_HAIRPIN_LOOP, -1):
                        if left + (j - j1 - 1) > MAX_LOOP:
                            break
                        inner = V[i1][j1]
                        if inner == INF:
                            continue
                        e = en.interior(i, j, i1, j1) + inner
                        if e < best:
                            best, tb = e, ("I", i1, j1)
                for k in range(i + 2, j - 1):
                    e = WM[i + 1][k] + WM[k + 1][j - 1]
                    if e == INF:
                        continue
                    e += a + c
                    if e < best:
                        best, tb = e, ("M", k)
                V[i][j] = best
                v_tb[i][j] = tb
            # WM
            best = V[i][j] + c if V[i][j] < INF else INF
            tb = ("P",)
            if WM[i + 1][j] + b < best:
                best, tb = WM[i + 1][j] + b, ("L",)
            if WM[i][j - 1] + b < best:
                best, tb = WM[i][j - 1] + b, ("R",)
            for k in range(i + 1, j):
                e = WM[i][k] + WM[k + 1][j]
                if e < best:
                    best, tb = e, ("S", k)
            WM[i][j] = best
            wm_tb[i][j] = tb if best < INF else None
            # W
            best = 0.0
            tb = None
            if W[i + 1][j] < best:
                best, tb = W[i + 1][j], ("L",)
            if W[i][j - 1] < best:
                best, tb = W[i][j - 1], ("R",)
            if V[i][j] < best:
                best, tb = V[i][j], ("P",)
            for k in range(i + 1, j):
                e = W[i][k] + W[k + 1][j]
                if e < best:
                    best, tb = e, ("S", k)
            W[i][j] = best
            w_tb[i][j] = tb

    pairs: List[Tuple[int, int]] = []
    if n > MIN_HAIRPIN_LOOP + 1:
        stack: List[Tuple[str, int, int]] = [("W", 0, n - 1)]
        while stack:
            table, i, j = stack.pop()
            if i >= j:
                continue
            if table == "W":
                tb = w_tb[i][j]
                if tb is None:
                    continue
                if tb[0] == "L":
                    stack.append(("W", i + 1, j))
                elif tb[0] == "R":
                    stack.append(("W", i, j - 1))
                elif tb[0] == "P":
                    stack.append(("V", i, j))
                else:
                    stack.append(("W", i, tb[1]))
                    stack.append(("W", tb[1] + 1, j))
            elif table == "WM":
                tb = wm_tb[i][j]
                if tb is None:
                    continue
                if tb[0] == "P":
                    stack.append(("V", i, j))
                elif tb[0] == "L":
                    stack.append(("WM", i + 1, j))
                elif tb[0] == "R":
                    stack.append(("WM", i, j - 1))
                else:
                    stack.append(("WM", i, tb[1]))
                    stack.append(("WM", tb[1] + 1, j))
            else:
                pairs.append((i, j))
                tb = v_tb[i][j]
                if tb[0] == "I":
                    stack.append(("V", tb[1], tb[2]))
                elif tb[0] == "M":
                    stack.append(("WM", i + 1, tb[1]))
                    stack.append(("WM", tb[1] + 1, j - 1))
    pairs.sort()
    dg = W[0][n - 1] if n > 0 else 0.0
    if dg >= 0.0 or not pairs:
        return FoldResult(kind="hairpin", dg=0.0, pairs=[], length_a=n)
    return FoldResult(kind="hairpin", dg=dg, pairs=pairs, length_a=n)


# ---------------------------------------------------------------------------------------------
# Dimer (two strands)
# ---------------------------------------------------------------------------------------------

def _fold_dimer(a: str, b: str, en: _Energetics) -> FoldResult:
    m, n = len(a), len(b)
    D = [[INF] * n for _ in range(m)]
    tb: List[List[Optional[tuple]]] = [[None] * n for _ in range(m)]

    for i in range(m - 1, -1, -1):
        for j in range(0, n):
            if not is_complement(a[i], b[j]):
                continue
            # helix ends here
            best = en.end_penalty(i, j)
            if i + 1 < m and j - 1 >= 0:
                best += en.terminal(a[i], a[i + 1], b[j], b[j - 1])
            choice: tuple = ("E",)
            for i1 in range(i + 1, m):
                left = i1 - i - 1
                if left > MAX_LOOP:
                    break
                for j1 in range(j - 1, -1, -1):
                    if left + (j - j1 - 1) > MAX_LOOP:
                        break
                    inner = D[i1][j1]
                    if inner == INF:
                        continue
                    e = en.interior(i, j, i1, j1) + inner
                    if e < best:
                        best, choice = e, ("I", i1, j1)
            D[i][j] = best
            tb[i][j] = choice

    init = en.nn["init"]
    best_total = 0.0
    start: Optional[Tuple[int, int]] = None
    for i in range(m):
        for j in range(n):
            if D[i][j] == INF:
                continue
            total = init + en.end_penalty(i, j) + D[i][j]
            if i - 1 >= 0 and j + 1 < n:
                total += en.terminal(b[j], b[j + 1], a[i], a[i - 1])
            if total < best_total:
                best_total, start = total, (i, j)

    if start is None:
        return FoldResult(kind="dimer", dg=0.0, pairs=[], length_a=m, length_b=n)
    pairs: List[Tuple[int, int]] = []
    i, j = start
    while True:
        pairs.append((i, j))
        choice = tb[i][j]
        if choice is None or choice[0] == "E":
            break
        i, j = choice[1], choice[2]
    return FoldResult(kind="dimer", dg=best_total, pairs=pairs, length_a=m, length_b=n)


# ---------------------------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------------------------

def fold(
    seq_a: str,
    seq_b: Optional[str] = None,
    *,
    temperature: float = DEFAULT_TEMPERATURE_C,
    parameter_set: Optional[ParameterSet] = None,
) -> FoldResult:
    """
    MFE structure of one strand (hairpin) or of two strands (dimer).

    Returns dg = 0.0 with no pairs when nothing is more stable than the
    unfolded state.
    """
    ps = parameter_set or get_parameter_set()
    a = normalize_sequence(seq_a, label="sequence A")
    if seq_b is None:
        res = _fold_single(a, _Energetics(a, a, ps, temperature))
    else:
        b = normalize_sequence(seq_b, label="sequence B")
        res = _fold_dimer(a, b, _Energetics(a, b, ps, temperature))
    res.temperature_c = temperature
    logger.debug("fold(%s%s) -> dg=%.2f, %d pairs", a, f", {seq_b}" if seq_b else "", res.dg, len(res.pairs))
    return res


def hairpin_dg(seq: str, temperature: float = DEFAULT_TEMPERATURE_C, parameter_set: Optional[ParameterSet] = None) -> float:
    return fold(seq, temperature=temperature, parameter_set=parameter_set).dg


def dimer_dg(seq_a: str, seq_b: str, temperature: float = DEFAULT_TEMPERATURE_C, parameter_set: Optional[ParameterSet] = None) -> float:
    return fold(seq_a, seq_b, temperature=temperature, parameter_set=parameter_set).dg


def stems(result: FoldResult, merge_max_gap: int = 0, min_stem_len: int = 1) -> List[Tuple[int, int]]:
    """
    Paired runs of a hairpin fold as [start, end) intervals, merging runs whose
    unpaired gap is <= merge_max_gap and dropping runs shorter than min_stem_len.
    """
    flags = result.paired_flags()
    runs: List[Tuple[int, int]] = []
    i = 0
    while i < len(flags):
        if flags[i]:
            k = i
            while k < len(flags) and flags[k]:
                k += 1
            runs.append((i, k))
            i = k
        else:
            i += 1
    merged: List[Tuple[int, int]] = []
    for s, e in runs:
        if merged and s - merged[-1][1] <= merge_max_gap:
            merged[-1] = (merged[-1][0], e)
        else:
            merged.append((s, e))
    return [(s, e) for s, e in merged if e - s >= min_stem_len]
