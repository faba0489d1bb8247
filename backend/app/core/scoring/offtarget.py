# File: backend/app/core/scoring/offtarget.py
# Version: v0.2.0
"""
Off-target site detection and classification on the supplied template.

A primer "matches" a strand where its own sequence (or a near copy) occurs;
it then anneals to the opposite strand at that spot. The intended site is
the exact 3'-anchored match; its strand is the sense strand.

Types (ordered by severity):
  A  exact / near-exact full-length match elsewhere          high
  B  antisense 3'-anchored match (opposite strand)           high
  C  partial 3' homology (8/10/12 nt anchor)                 medium
  D  internal homology away from the 3' end                  low
  E  self-structure (hairpin / homodimer)                    medium/high
  F  primer-primer heterodimer                               medium/high

Approach:
- Ungapped sliding comparison on both strands (no alignment, no indexing).
- Near-exact matches must keep the last 3 bases exact and bind tighter than
  `stability_threshold` at `temperature`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from backend.app.core.structure.fold import dimer_dg, hairpin_dg
from backend.app.core.thermo.parameters import ParameterSet, get_parameter_set
from backend.app.core.thermo.sequence import COMPLEMENT, reverse_complement
from backend.app.core.thermo.tm import duplex_energy

logger = logging.getLogger(__name__)

HIGH, MEDIUM, LOW = "high", "medium", "low"
SENSE, ANTISENSE = "+", "-"

INTENDED_ANCHOR = 15


@dataclass(frozen=True, slots=True)
class OffTargetThresholds:
    anchor_lengths: Tuple[int, ...] = (8, 10, 12)
    antisense_anchor_length: int = 10
    max_mismatches: int = 2
    terminal_exact: int = 3
    stability_threshold: float = -11.0
    partial_relax: float = 3.0
    min_internal_length: int = 10
    max_internal_length: int = 12
    internal_exclude_3p: int = 5
    temperature: float = 55.0
    hairpin_threshold: float = -3.0
    homodimer_threshold: float = -6.0
    heterodimer_threshold: float = -6.0


DEFAULT_THRESHOLDS = OffTargetThresholds()


@dataclass(slots=True)
class OffTargetSite:
    type: str
    subtype: str
    risk: str
    description: str
    strand: Optional[str] = None
    position: Optional[int] = None   # top-strand coordinate of the site start
    site: Optional[str] = None       # matched sequence in primer orientation
    mismatches: Optional[int] = None
    anchor_length: Optional[int] = None
    dg: Optional[float] = None


@dataclass(slots=True)
class OffTargetClassification:
    sites: List[OffTargetSite] = field(default_factory=list)
    intended_strand: Optional[str] = None
    intended_position: Optional[int] = None

    def by_type(self, t: str) -> List[OffTargetSite]:
        return [s for s in self.sites if s.type == t]

    @property
    def counts(self) -> Dict[str, int]:
        out = {t: 0 for t in "ABCDEF"}
        out.update({HIGH: 0, MEDIUM: 0, LOW: 0})
        for s in self.sites:
            out[s.type] += 1
            out[s.risk] += 1
        out["total"] = len(self.sites)
        return out

    @property
    def status(self) -> str:
        c = self.counts
        if c[HIGH]:
            return "critical"
        if c[MEDIUM]:
            return "warning"
        return "pass"

    def binding_dgs(self) -> List[float]:
        """dG of template-bound off-target sites (types A-C) for the equilibrium model."""
        return [s.dg for s in self.sites if s.type in "ABC" and s.dg is not None]

    def summary(self) -> str:
        c = self.counts
        parts = []
        labels = (("A", "exact/near-exact match", HIGH), ("B", "antisense binding site", HIGH),
                  ("C", "partial 3' homology site", MEDIUM), ("D", "internal homology site", LOW),
                  ("E", "self-structure", None), ("F", "heterodimer", None))
        for t, label, risk in labels:
            if c[t]:
                tag = f" ({risk.upper()} RISK)" if risk else ""
                parts.append(f"{c[t]} {label}{'s' if c[t] > 1 else ''}{tag}")
        return "; ".join(parts) if parts else "No significant off-target sites detected"


def _occurrences(text: str, pattern: str) -> Iterator[int]:
    pos = text.find(pattern)
    while pos != -1:
        yield pos
        pos = text.find(pattern, pos + 1)


def _mismatches(a: str, b: str) -> int:
    return sum(1 for x, y in zip(a, b) if x != y)


def _site_dg(primer: str, site: str, ps: ParameterSet, temperature: float) -> float:
    bottom = "".join(COMPLEMENT[b] for b in site)
    return duplex_energy(primer, temperature, ps, complement=bottom, min_length=1).dg


def _strands(template: str) -> Dict[str, str]:
    return {SENSE: template, ANTISENSE: reverse_complement(template)}


def _to_top(strand: str, pos: int, length: int, n: int) -> int:
    return pos if strand == SENSE else n - pos - length


def locate_intended_site(primer: str, template: str) -> Tuple[Optional[str], Optional[int]]:
    """(strand, top-strand start) of the intended binding site, from the 3' anchor."""
    anchor = primer[-min(INTENDED_ANCHOR, len(primer)):]
    n = len(template)
    for strand, text in _strands(template).items():
        pos = text.find(anchor)
        if pos != -1:
            start = pos + len(anchor) - len(primer)
            return strand, _to_top(strand, start, len(primer), n)
    return None, None


def _near_intended(strand: str, top_pos: int, cls: OffTargetClassification, tolerance: int) -> bool:
    if cls.intended_position is None or strand != cls.intended_strand:
        return False
    return abs(top_pos - cls.intended_position) < tolerance


def find_type_a(primer: str, template: str, cls: OffTargetClassification, th: OffTargetThresholds,
                ps: ParameterSet) -> List[OffTargetSite]:
    sites: List[OffTargetSite] = []
    n, L = len(template), len(primer)
    tail = primer[-th.terminal_exact:]
    for strand, text in _strands(template).items():
        for start in range(0, len(text) - L + 1):
            window = text[start:start + L]
            if window[-th.terminal_exact:] != tail:
                continue
            mm = _mismatches(primer, window)
            if mm > th.max_mismatches:
                continue
            top = _to_top(strand, start, L, n)
            if _near_intended(strand, top, cls, 5):
                continue
            dg = _site_dg(primer, window, ps, th.temperature)
            if mm == 0:
                sites.append(OffTargetSite("A", "exact", HIGH, "Exact match - alternative amplification site",
                                           strand, top, window, 0, None, round(dg, 2)))
            elif dg < th.stability_threshold:
                sites.append(OffTargetSite("A", "near_exact", HIGH,
                                           f"Near-exact match ({mm} mismatches) - potential mispriming",
                                           strand, top, window, mm, None, round(dg, 2)))
    return sites


def find_type_b(primer: str, template: str, cls: OffTargetClassification, th: OffTargetThresholds,
                ps: ParameterSet) -> List[OffTargetSite]:
    """3'-anchored matches on the strand opposite to the intended one."""
    if cls.intended_strand is None:
        return []
    opposite = ANTISENSE if cls.intended_strand == SENSE else SENSE
    text = _strands(template)[opposite]
    n, k = len(template), min(th.antisense_anchor_length, len(primer))
    anchor = primer[-k:]
    sites: List[OffTargetSite] = []
    for pos in _occurrences(text, anchor):
        end = pos + k
        start = max(0, end - len(primer))
        window = text[start:end]
        dg = _site_dg(primer[-len(window):], window, ps, th.temperature)
        if dg < th.stability_threshold:
            top = _to_top(opposite, start, len(window), n)
            sites.append(OffTargetSite("B", "antisense", HIGH, "Antisense binding - primer primes the opposite strand",
                                       opposite, top, window, _mismatches(primer[-len(window):], window), k, round(dg, 2)))
    return sites


def find_type_c(primer: str, template: str, cls: OffTargetClassification, th: OffTargetThresholds,
                ps: ParameterSet, taken: List[OffTargetSite]) -> List[OffTargetSite]:
    n = len(template)
    found: Dict[Tuple[str, int], OffTargetSite] = {}
    strand = cls.intended_strand or SENSE
    text = _strands(template)[strand]
    for k in th.anchor_lengths:
        if k > len(primer):
            continue
        anchor = primer[-k:]
        dg = _site_dg(anchor, anchor, ps, th.temperature)
        if dg >= th.stability_threshold + th.partial_relax:
            continue
        for pos in _occurrences(text, anchor):
            end_top = _to_top(strand, pos + k - len(primer), len(primer), n)
            if _near_intended(strand, end_top, cls, len(primer)):
                continue
            if any(s.strand == strand and s.position is not None and abs(s.position - end_top) < 5 for s in taken):
                continue
            key = (strand, pos + k)
            site = found.get(key)
            if site is not None and (site.anchor_length or 0) >= k:
                continue
            found[key] = OffTargetSite("C", "partial_3prime", MEDIUM,
                                       f"Partial 3' homology ({k}bp) - potential mispriming",
                                       strand, _to_top(strand, pos, k, n), anchor, 0, k, round(dg, 2))
    return list(found.values())


def find_type_d(primer: str, template: str, cls: OffTargetClassification, th: OffTargetThresholds) -> List[OffTargetSite]:
    internal = primer[:-th.internal_exclude_3p] if len(primer) > th.internal_exclude_3p else ""
    n = len(template)
    sites: List[OffTargetSite] = []
    covered: Dict[str, List[Tuple[int, int]]] = {SENSE: [], ANTISENSE: []}
    for length in range(min(th.max_internal_length, len(internal)), th.min_internal_length - 1, -1):
        for start in range(0, len(internal) - length + 1):
            region = internal[start:start + length]
            for strand, text in _strands(template).items():
                for pos in _occurrences(text, region):
                    primer_top = _to_top(strand, pos - start, len(primer), n)
                    if _near_intended(strand, primer_top, cls, len(primer)):
                        continue
                    if any(a <= pos < b for a, b in covered[strand]):
                        continue
                    covered[strand].append((pos, pos + length))
                    sites.append(OffTargetSite("D", "internal", LOW, "Internal homology - usually tolerable",
                                               strand, _to_top(strand, pos, length, n), region, 0, length))
    return sites


def find_type_e(primer: str, th: OffTargetThresholds = DEFAULT_THRESHOLDS,
                parameter_set: Optional[ParameterSet] = None) -> Tuple[float, float, List[OffTargetSite]]:
    """(hairpin dG, homodimer dG, sites) for self-structure."""
    ps = parameter_set or get_parameter_set()
    hp = hairpin_dg(primer, th.temperature, ps)
    hd = dimer_dg(primer, primer, th.temperature, ps)
    sites = []
    if hp < th.hairpin_threshold:
        sites.append(OffTargetSite("E", "hairpin", HIGH if hp < th.hairpin_threshold - 3 else MEDIUM,
                                   f"Stable hairpin (dG={hp:.1f} kcal/mol) - competes with target binding", dg=round(hp, 2)))
    if hd < th.homodimer_threshold:
        sites.append(OffTargetSite("E", "homodimer", HIGH if hd < th.homodimer_threshold - 4 else MEDIUM,
                                   f"Stable homodimer (dG={hd:.1f} kcal/mol) - primer self-dimer", dg=round(hd, 2)))
    return hp, hd, sites


def find_type_f(fwd: str, rev: str, th: OffTargetThresholds = DEFAULT_THRESHOLDS,
                parameter_set: Optional[ParameterSet] = None) -> Tuple[float, List[OffTargetSite]]:
    ps = parameter_set or get_parameter_set()
    het = dimer_dg(fwd, rev, th.temperature, ps)
    sites = []
    if het < th.heterodimer_threshold:
        sites.append(OffTargetSite("F", "heterodimer", HIGH if het < th.heterodimer_threshold - 4 else MEDIUM,
                                   f"Stable heterodimer (dG={het:.1f} kcal/mol) - fwd-rev dimer", dg=round(het, 2)))
    return het, sites


def classify_off_targets(
    primer: str,
    template: str,
    thresholds: OffTargetThresholds = DEFAULT_THRESHOLDS,
    parameter_set: Optional[ParameterSet] = None,
) -> OffTargetClassification:
    """Types A-D of `primer` against both strands of `template` (both already normalized)."""
    ps = parameter_set or get_parameter_set()
    strand, pos = locate_intended_site(primer, template)
    cls = OffTargetClassification(intended_strand=strand, intended_position=pos)
    a = find_type_a(primer, template, cls, thresholds, ps)
    b = [s for s in find_type_b(primer, template, cls, thresholds, ps)
         if not any(x.strand == s.strand and abs(x.position - s.position) < 5 for x in a)]
    c = find_type_c(primer, template, cls, thresholds, ps, a + b)
    d = find_type_d(primer, template, cls, thresholds)
    cls.sites = a + b + c + d
    logger.debug("off-target %s: A=%d B=%d C=%d D=%d", primer, len(a), len(b), len(c), len(d))
    return cls


def off_target_score(cls: OffTargetClassification) -> float:
    """High-risk sites dominate: 1 -> 0.3, 2 -> 0.1, 3+ -> 0; else -0.15/medium, -0.02/low."""
    high = sum(1 for s in cls.sites if s.risk == HIGH and s.type in "ABCD")
    medium = sum(1 for s in cls.sites if s.risk == MEDIUM and s.type in "ABCD")
    low = sum(1 for s in cls.sites if s.risk == LOW and s.type in "ABCD")
    if high >= 3:
        return 0.0
    if high == 2:
        return 0.1
    if high == 1:
        return 0.3
    return max(0.0, min(1.0, 1.0 - 0.15 * medium - 0.02 * low))


def enhanced_off_target_score(cls: OffTargetClassification) -> float:
    """off_target_score with additional penalties for type E/F sites carried in `cls`."""
    score = off_target_score(cls)
    for s in cls.sites:
        if s.type == "E":
            score -= 0.25 if s.risk == HIGH else 0.10
        elif s.type == "F":
            score -= 0.30 if s.risk == HIGH else 0.15
    return max(0.0, min(1.0, score))
