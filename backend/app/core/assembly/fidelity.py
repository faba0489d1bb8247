# File: backend/app/core/assembly/fidelity.py
# Version: v0.1.0
"""
Ligation fidelity of overhang sets.

Matrix convention: M[a][b] is the ligation frequency of overhang `a` with
overhang `b`, both read 5'->3'. The intended partner of `a` is rc(a).

Per-junction fidelity counts every strand actually present in the reaction
(each chosen overhang and its reverse complement):

    fidelity(a) = M[a][rc(a)] / sum(M[a][p] for p in present)

Set fidelity is the product over junctions.

Measured matrices (Pryor et al. 2020 / Potapov et al. 2018) are read from
JSON when available; otherwise a deterministic model (Watson-Crick pairing,
G:T wobble tolerance, position-weighted mismatch penalties) is generated and
flagged source="modeled".
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from backend.app.core.assembly.enzymes import Enzyme, get_enzyme
from backend.app.core.errors import InvalidInput
from backend.app.core.thermo.sequence import is_palindrome, reverse_complement

logger = logging.getLogger(__name__)

WC = {"A": "T", "T": "A", "G": "C", "C": "G"}

GT_MISMATCH_FACTOR = 0.20
GT_RISK_MATCH_THRESHOLD = 3
_WOBBLE_SUBSTITUTIONS = frozenset({("G", "A"), ("A", "G"), ("T", "C"), ("C", "T")})

# Modeled matrix: mismatches at the overhang edges are tolerated more than internal ones.
EDGE_MISMATCH_FACTOR = 0.02
INTERNAL_MISMATCH_FACTOR = 0.002
BASE_FREQUENCY_AT = 300.0
BASE_FREQUENCY_GC_STEP = 120.0

EFFICIENCY_OPTIMAL = 0.90
EFFICIENCY_ACCEPTABLE = 0.70

_HOMOPOLYMER_RUN = re.compile(r"(.)\1{2,}")


def _gc(oh: str) -> int:
    return sum(1 for b in oh if b in "GC")


def _near_palindrome(oh: str) -> bool:
    rc = reverse_complement(oh)
    return sum(1 for x, y in zip(oh, rc) if x != y) == 1


# (name, factor, test); compounded multiplicatively
PATTERN_PENALTIES: Tuple[Tuple[str, float, object], ...] = (
    ("TNNA", 0.70, lambda oh: len(oh) == 4 and oh[0] == "T" and oh[-1] == "A"),
    ("HIGH_GC", 0.85, lambda oh: _gc(oh) == len(oh)),
    ("LOW_GC", 0.80, lambda oh: _gc(oh) == 0),
    ("HOMOPOLYMER", 0.65, lambda oh: bool(_HOMOPOLYMER_RUN.search(oh))),
    ("NEAR_PALINDROME", 0.75, _near_palindrome),
)

# Measured poor performers (Pryor et al.)
SPECIFIC_PENALTIES: Mapping[str, float] = {
    "TAAA": 0.65, "TTTA": 0.65,
    "AAAA": 0.55, "TTTT": 0.55,
    "CCCC": 0.50, "GGGG": 0.45,
    "ATAT": 0.50, "TATA": 0.50,
    "GCGC": 0.45, "CGCG": 0.45,
    "ACGT": 0.40, "CATG": 0.35, "GATC": 0.30,
}

# Pattern penalties keep this share of their effect on top of a specific penalty.
SPECIFIC_PATTERN_SHARE = 0.3


# ---------------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------------

@dataclass
class FidelityMatrix:
    """Nested ligation-frequency table for one enzyme/condition."""
    enzyme: str
    overhang_length: int
    data: Dict[str, Dict[str, float]]
    source: str = "modeled"
    condition: str = ""

    @property
    def overhangs(self) -> List[str]:
        return sorted(self.data)

    def frequency(self, a: str, b: str) -> float:
        return float(self.data.get(a, {}).get(b, 0.0))

    def correct_frequency(self, a: str) -> float:
        return self.frequency(a, reverse_complement(a))

    def row_total(self, a: str) -> float:
        return float(sum(self.data.get(a, {}).values()))

    def submatrix(self, overhangs: Sequence[str]) -> Dict[str, object]:
        """Rows = overhangs, columns = their partners; used for heatmaps."""
        cols = [reverse_complement(o) for o in overhangs]
        return {
            "overhangs": list(overhangs),
            "partners": cols,
            "matrix": [[self.frequency(a, c) for c in cols] for a in overhangs],
            "source": self.source,
        }

    @classmethod
    def from_mapping(cls, enzyme: str, data: Mapping[str, Mapping[str, float]], *,
                     source: str = "explicit", condition: str = "") -> "FidelityMatrix":
        nested = {str(a).upper(): {str(b).upper(): float(v) for b, v in row.items()} for a, row in data.items()}
        lengths = {len(k) for k in nested}
        if len(lengths) != 1:
            raise InvalidInput("fidelity matrix overhangs must share one length")
        for a, row in nested.items():
            for b, v in row.items():
                if v < 0:
                    raise InvalidInput(f"negative ligation frequency for {a}/{b}")
        return cls(enzyme=enzyme, overhang_length=lengths.pop(), data=nested, source=source, condition=condition)

    @classmethod
    def from_payload(cls, enzyme: str, payload: Mapping[str, object], *, source: str) -> "FidelityMatrix":
        """Accepts {"overhangs": [...], "matrix": [[...]]} or a nested {a: {b: freq}} dict."""
        condition = str(payload.get("condition") or "")
        if "overhangs" in payload and "matrix" in payload:
            labels = [str(o).upper() for o in payload["overhangs"]]  # type: ignore[union-attr]
            rows = payload["matrix"]
            if len(rows) != len(labels) or any(len(r) != len(labels) for r in rows):  # type: ignore[arg-type]
                raise InvalidInput("fidelity matrix must be square and match its overhang list")
            data = {a: {b: float(v) for b, v in zip(labels, row) if v} for a, row in zip(labels, rows)}  # type: ignore[arg-type]
            return cls.from_mapping(enzyme, data, source=source, condition=condition)
        nested = payload.get("matrix", payload)
        if not isinstance(nested, Mapping):
            raise InvalidInput("unrecognized fidelity matrix layout")
        return cls.from_mapping(enzyme, nested, source=source, condition=condition)  # type: ignore[arg-type]


def _pair_factor(x: str, y: str, edge: bool, gt_factor: float) -> float:
    if WC[x] == y:
        return 1.0
    if (x, y) in (("G", "T"), ("T", "G")):
        return gt_factor
    return EDGE_MISMATCH_FACTOR if edge else INTERNAL_MISMATCH_FACTOR


def modeled_frequency(a: str, b: str, gt_factor: float = GT_MISMATCH_FACTOR) -> float:
    """Model ligation frequency of a with b: antiparallel pairing of a[i] with b[-1-i]."""
    k = len(a)
    f = 1.0
    for i in range(k):
        f *= _pair_factor(a[i], b[k - 1 - i], i in (0, k - 1), gt_factor)
    base_a = BASE_FREQUENCY_AT + BASE_FREQUENCY_GC_STEP * _gc(a)
    base_b = BASE_FREQUENCY_AT + BASE_FREQUENCY_GC_STEP * _gc(b)
    return round((base_a * base_b) ** 0.5 * f, 6)


@lru_cache(maxsize=8)
def modeled_matrix(overhang_length: int = 4, enzyme: str = "BsaI", gt_factor: float = GT_MISMATCH_FACTOR) -> FidelityMatrix:
    if not 2 <= overhang_length <= 4:
        raise InvalidInput("modeled matrices support 2-4 nt overhangs")
    labels = ["".join(p) for p in itertools.product("ACGT", repeat=overhang_length)]
    data = {a: {b: modeled_frequency(a, b, gt_factor) for b in labels} for a in labels}
    logger.info("Fidelity: generated modeled %d-nt matrix for %s (%d overhangs)", overhang_length, enzyme, len(labels))
    return FidelityMatrix(enzyme=enzyme, overhang_length=overhang_length, data=data, source="modeled")


def _matrix_file(data_dir: Path, enzyme: Enzyme) -> Optional[Path]:
    for stem in (enzyme.data_key, enzyme.name):
        for cand in (data_dir / f"{stem}.json", data_dir / f"{stem.lower()}.json"):
            if cand.is_file():
                return cand
    return None


@lru_cache(maxsize=16)
def _load_cached(enzyme_name: str, data_dir: str) -> FidelityMatrix:
    enzyme = get_enzyme(enzyme_name)
    path = _matrix_file(Path(data_dir), enzyme) if data_dir else None
    if path is None:
        logger.info("Fidelity: no measured data for %s under %r; using modeled matrix", enzyme.name, data_dir)
        return modeled_matrix(enzyme.overhang_length, enzyme.name)
    payload = json.loads(path.read_text(encoding="utf-8"))
    matrix = FidelityMatrix.from_payload(enzyme.name, payload, source=f"file:{path.name}")
    if matrix.overhang_length != enzyme.overhang_length:
        raise InvalidInput(f"{path.name}: {matrix.overhang_length}-nt overhangs do not match {enzyme.name}")
    logger.info("Fidelity: loaded %s (%d overhangs) for %s", path.name, len(matrix.data), enzyme.name)
    return matrix


def load_matrix(enzyme: Union[str, Enzyme] = "BsaI", data_dir: Optional[Union[str, Path]] = None) -> FidelityMatrix:
    """Measured matrix for the enzyme if a JSON file exists in data_dir, else the modeled one."""
    name = enzyme.name if isinstance(enzyme, Enzyme) else get_enzyme(enzyme).name
    return _load_cached(name, str(data_dir) if data_dir else "")


# ---------------------------------------------------------------------------
# Fidelity
# ---------------------------------------------------------------------------

def normalize_overhangs(overhangs: Iterable[str], length: Optional[int] = None) -> List[str]:
    out: List[str] = []
    for oh in overhangs:
        s = (oh or "").strip().upper()
        if not s or any(b not in WC for b in s):
            raise InvalidInput(f"invalid overhang '{oh}'")
        if length is not None and len(s) != length:
            raise InvalidInput(f"overhang '{s}' must be {length} nt")
        out.append(s)
    return out


def present_strands(overhangs: Sequence[str]) -> List[str]:
    """Every single-stranded end in the reaction: the overhangs and their reverse complements."""
    seen: Dict[str, None] = {}
    for oh in overhangs:
        seen.setdefault(oh, None)
        seen.setdefault(reverse_complement(oh), None)
    return list(seen)


@dataclass(slots=True)
class JunctionFidelity:
    overhang: str
    partner: str
    fidelity: float
    correct: float
    total: float
    efficiency: float = 1.0

    def as_dict(self) -> dict:
        return {
            "overhang": self.overhang, "partner": self.partner,
            "fidelity": round(self.fidelity, 4), "correctFrequency": self.correct,
            "totalFrequency": round(self.total, 4), "efficiency": round(self.efficiency, 3),
        }


def junction_fidelity(overhang: str, overhangs: Sequence[str], matrix: FidelityMatrix) -> JunctionFidelity:
    partner = reverse_complement(overhang)
    correct = matrix.frequency(overhang, partner)
    total = sum(matrix.frequency(overhang, p) for p in present_strands(overhangs))
    fid = correct / total if total > 0 else 0.0
    return JunctionFidelity(overhang, partner, fid, correct, total)


def set_fidelity(overhangs: Sequence[str], matrix: FidelityMatrix) -> float:
    """Product of per-junction fidelities, in [0, 1]."""
    ohs = normalize_overhangs(overhangs, matrix.overhang_length)
    if not ohs:
        return 0.0
    f = 1.0
    for oh in ohs:
        f *= junction_fidelity(oh, ohs, matrix).fidelity
        if f == 0.0:
            break
    return max(0.0, min(1.0, f))


def overhang_fidelity(overhang: str, matrix: FidelityMatrix) -> float:
    """Specificity of one overhang against every overhang in the matrix."""
    oh = normalize_overhangs([overhang], matrix.overhang_length)[0]
    total = matrix.row_total(oh)
    return matrix.correct_frequency(oh) / total if total > 0 else 0.0


@dataclass(slots=True)
class CrossLigation:
    source: str
    target: str
    frequency: float
    correct: float

    @property
    def ratio(self) -> float:
        return self.frequency / self.correct if self.correct > 0 else 0.0

    def as_dict(self) -> dict:
        return {"source": self.source, "target": self.target, "frequency": self.frequency,
                "correctFrequency": self.correct, "ratio": round(self.ratio, 4)}


def cross_ligation_pairs(overhangs: Sequence[str], matrix: FidelityMatrix, min_ratio: float = 0.0) -> List[CrossLigation]:
    """Non-intended partners with ligation frequency above min_ratio of the correct one."""
    ohs = normalize_overhangs(overhangs, matrix.overhang_length)
    strands = present_strands(ohs)
    out: List[CrossLigation] = []
    for oh in dict.fromkeys(ohs):
        partner = reverse_complement(oh)
        correct = matrix.frequency(oh, partner)
        for p in strands:
            if p == partner:
                continue
            freq = matrix.frequency(oh, p)
            if freq <= 0:
                continue
            item = CrossLigation(oh, p, freq, correct)
            if item.ratio >= min_ratio:
                out.append(item)
    out.sort(key=lambda c: (-c.ratio, c.source, c.target))
    return out


# ---------------------------------------------------------------------------
# Efficiency and G:T wobble
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class OverhangEfficiency:
    overhang: str
    efficiency: float
    penalties: List[Tuple[str, float]] = field(default_factory=list)

    @property
    def tier(self) -> str:
        if self.efficiency >= EFFICIENCY_OPTIMAL:
            return "optimal"
        if self.efficiency >= EFFICIENCY_ACCEPTABLE:
            return "acceptable"
        return "poor"

    def as_dict(self) -> dict:
        return {"overhang": self.overhang, "efficiency": round(self.efficiency, 4), "tier": self.tier,
                "penalties": [{"name": n, "factor": round(f, 4)} for n, f in self.penalties]}


def overhang_efficiency(overhang: str) -> OverhangEfficiency:
    oh = overhang.upper()
    factor = 1.0
    penalties: List[Tuple[str, float]] = []
    specific = SPECIFIC_PENALTIES.get(oh)
    if specific is not None:
        factor *= specific
        penalties.append((oh, specific))
    for name, base, test in PATTERN_PENALTIES:
        if not test(oh):  # type: ignore[operator]
            continue
        pf = 1.0 - (1.0 - base) * SPECIFIC_PATTERN_SHARE if specific is not None else base
        factor *= pf
        penalties.append((name, pf))
    return OverhangEfficiency(oh, factor, penalties)


def set_efficiency(overhangs: Sequence[str]) -> Tuple[float, float]:
    """(average, combined product) efficiency of a set."""
    if not overhangs:
        return 0.0, 0.0
    effs = [overhang_efficiency(o).efficiency for o in overhangs]
    combined = 1.0
    for e in effs:
        combined *= e
    return sum(effs) / len(effs), combined


@dataclass(slots=True)
class GTRisk:
    overhang1: str
    overhang2: str
    wobble_positions: List[int]
    match_count: int
    risk: str
    expected_misligation: float

    def as_dict(self) -> dict:
        return {
            "overhang1": self.overhang1, "overhang2": self.overhang2,
            "partner": reverse_complement(self.overhang2), "wobblePositions": self.wobble_positions,
            "matchCount": self.match_count, "risk": self.risk,
            "expectedMisligation": round(self.expected_misligation, 4),
        }


def find_gt_risks(overhangs: Sequence[str], gt_factor: float = GT_MISMATCH_FACTOR,
                  match_threshold: int = GT_RISK_MATCH_THRESHOLD) -> List[GTRisk]:
    """Pairs where oh1 can pair with rc(oh2) through at least one G:T wobble."""
    risks: List[GTRisk] = []
    ohs = [o.upper() for o in overhangs]
    for i in range(len(ohs)):
        for j in range(i + 1, len(ohs)):
            a, b = ohs[i], ohs[j]
            wobbles: List[int] = []
            matches = 0
            # a[k] faces complement(b[k]) on rc(b): equal bases pair, G/A and T/C give a G:T wobble
            for k, (x, y) in enumerate(zip(a, b)):
                if x == y:
                    matches += 1
                elif (x, y) in _WOBBLE_SUBSTITUTIONS:
                    wobbles.append(k)
                    matches += 1
            if matches < match_threshold or not wobbles:
                continue
            position_risk = (sum(p + 1 for p in wobbles) / len(wobbles)) / len(a)
            if matches == len(a):
                risk = "critical"
            elif position_risk > 0.5:
                risk = "high"
            else:
                risk = "medium"
            risks.append(GTRisk(a, b, wobbles, matches, risk, gt_factor ** len(wobbles)))
    return risks


@dataclass(slots=True)
class FidelityReport:
    enzyme: str
    overhangs: List[str]
    junctions: List[JunctionFidelity]
    assembly_fidelity: float
    average_efficiency: float
    combined_efficiency: float
    final_fidelity: float
    gt_risks: List[GTRisk]
    source: str
    warnings: List[str] = field(default_factory=list)

    @property
    def lowest(self) -> Optional[JunctionFidelity]:
        return min(self.junctions, key=lambda j: j.fidelity) if self.junctions else None

    def as_dict(self) -> dict:
        low = self.lowest
        return {
            "enzyme": self.enzyme,
            "overhangs": self.overhangs,
            "junctions": [j.as_dict() for j in self.junctions],
            "assemblyFidelity": round(self.assembly_fidelity, 4),
            "averageEfficiency": round(self.average_efficiency, 4),
            "combinedEfficiency": round(self.combined_efficiency, 4),
            "finalFidelity": round(self.final_fidelity, 4),
            "lowestJunction": low.as_dict() if low else None,
            "gtRisks": [r.as_dict() for r in self.gt_risks],
            "source": self.source,
            "warnings": self.warnings,
        }


def calculate_fidelity(overhangs: Sequence[str], matrix: FidelityMatrix, *, include_efficiency: bool = True) -> FidelityReport:
    """
    Full fidelity analysis: per-junction fidelity, set fidelity, efficiency
    and G:T risks. final_fidelity = assembly_fidelity * average efficiency.

    G:T wobble events are already part of measured and modeled matrices, so
    they are reported here but not applied a second time.
    """
    ohs = normalize_overhangs(overhangs, matrix.overhang_length)
    if not ohs:
        raise InvalidInput("at least one overhang is required")
    warnings: List[str] = []
    dupes = sorted({o for o in ohs if ohs.count(o) > 1})
    if dupes:
        warnings.append(f"duplicate overhangs: {', '.join(dupes)}")
    for o in dict.fromkeys(ohs):
        if is_palindrome(o):
            warnings.append(f"palindromic overhang {o} can self-ligate")
        if reverse_complement(o) in ohs and not is_palindrome(o):
            warnings.append(f"overhang {o} and its reverse complement are both present")

    junctions: List[JunctionFidelity] = []
    assembly = 1.0
    for oh in ohs:
        jf = junction_fidelity(oh, ohs, matrix)
        jf.efficiency = overhang_efficiency(oh).efficiency
        if jf.correct == 0:
            warnings.append(f"no ligation data for overhang {oh}")
        elif jf.fidelity < 0.95:
            warnings.append(f"junction {oh} has {100.0 * jf.fidelity:.1f}% fidelity")
        junctions.append(jf)
        assembly *= jf.fidelity
    avg_eff, comb_eff = set_efficiency(ohs)
    final = assembly * avg_eff if include_efficiency else assembly
    return FidelityReport(
        enzyme=matrix.enzyme,
        overhangs=ohs,
        junctions=junctions,
        assembly_fidelity=max(0.0, min(1.0, assembly)),
        average_efficiency=avg_eff,
        combined_efficiency=comb_eff,
        final_fidelity=max(0.0, min(1.0, final)),
        gt_risks=find_gt_risks(ohs),
        source=matrix.source,
        warnings=warnings,
    )
