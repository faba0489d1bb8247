# File: backend/app/core/primer/designer.py
# Version: v2.0.0
"""
Primer search & pairing (honors JSON parameters; exact anchoring supported).

What this file does
-------------------
- Consumes `PrimerDesignParameters` (Pydantic) from `parameters.py`.
- If `templateExact` is True, designs primers **anchored** to the window:
  - Forward primer starts exactly at `start`
  - Reverse primer ends exactly at `end`
  - Product size = `end - start` exactly
- If `templateExact` is False, forward starts may slide right and reverse
  ends may slide left by up to `searchWindow` nt, keeping the product at
  least `productSizeMin` long.
- Hard filters per primer: length, Tm window (nearest-neighbor Tm), GC%
  window, max homopolymer run. Pairs must satisfy |Tm_f - Tm_r| ≤
  primerTmDifferenceMax.
- Surviving pairs are pre-ranked cheaply (Tm centering, ΔTm, GC margins),
  the best `shortlist` are scored with the full engine
  (score_primer_pair against the template) and the top `maxPairs`
  returned, best composite first.
- Produces rich diagnostics on failure.

Coordinates
-----------
- `start` and `end` are 0-based, with `end` exclusive.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from backend.app.core.errors import InvalidInput
from backend.app.core.primer.parameters import PrimerDesignParameters as ParamModel
from backend.app.core.scoring.scorer import PrimerScore, ScoringOptions, score_primer_pair
from backend.app.core.thermo.parameters import get_parameter_set
from backend.app.core.thermo.sequence import gc_percent, longest_homopolymer, normalize_sequence, reverse_complement
from backend.app.core.thermo.tm import Concentrations, melting_temperature

logger = logging.getLogger(__name__)


# --- Diagnostics / DTOs --------------------------------------------------------------------------

@dataclass
class CandidateRow:
    side: str                # 'F' or 'R'
    pos: int                 # +strand index (F: start; R: slice start on +strand)
    length: int
    seq: str
    tm: float
    gc: float
    rejected: bool
    reason: str


@dataclass
class DesignDiagnostics:
    forward_candidates: List[CandidateRow] = field(default_factory=list)
    reverse_candidates: List[CandidateRow] = field(default_factory=list)
    pair_scores_checked: int = 0
    pairs_scored: int = 0
    message: str = ""

    def as_dict(self) -> dict:
        return {
            "forwardTested": len(self.forward_candidates),
            "forwardOk": sum(1 for r in self.forward_candidates if not r.rejected),
            "reverseTested": len(self.reverse_candidates),
            "reverseOk": sum(1 for r in self.reverse_candidates if not r.rejected),
            "pairsChecked": self.pair_scores_checked,
            "pairsScored": self.pairs_scored,
            "message": self.message,
        }


@dataclass
class Primer:
    seq: str
    tm: float
    gc: float
    pos: int
    length: int

    def as_dict(self) -> dict:
        return {"sequence": self.seq, "tm": round(self.tm, 2), "gc": round(self.gc, 2),
                "position": self.pos, "length": self.length}


@dataclass
class PrimerPair:
    forward: Primer
    reverse: Primer
    product_size: int
    score: float                      # cheap pre-rank, lower is better
    result: Optional[PrimerScore] = None

    @property
    def composite(self) -> int:
        return self.result.composite if self.result else 0

    def as_dict(self) -> dict:
        return {
            "forward": self.forward.as_dict(),
            "reverse": self.reverse.as_dict(),
            "productSize": self.product_size,
            "composite": self.composite,
            "tier": self.result.tier if self.result else None,
            "score": self.result.as_dict() if self.result else None,
        }


# --- Validation helpers --------------------------------------------------------------------------

def _candidate_ok(seq: str, p: ParamModel, tm_func) -> Tuple[bool, float, float, str]:
    """Validate single-primer constraints against ParamModel."""
    tm = tm_func(seq)
    lo, hi = p.tm_window()
    if not (lo <= tm <= hi):
        return False, tm, 0.0, f"Tm {tm:.1f} not in [{lo:.1f},{hi:.1f}]"

    gc = gc_percent(seq)
    if not (p.primerGCMin <= gc <= p.primerGCMax):
        return False, tm, gc, f"GC {gc:.1f}% not in [{p.primerGCMin:.1f},{p.primerGCMax:.1f}]"

    if longest_homopolymer(seq) > p.primerHomopolymerMax:
        return False, tm, gc, f"homopolymer > {p.primerHomopolymerMax}"
    return True, tm, gc, ""


def _prerank(f: Primer, r: Primer, p: ParamModel) -> float:
    """Lower is better; balance Tm centering, ΔTm and GC margins."""
    lo, hi = p.tm_window()
    d1 = abs((f.tm + r.tm) / 2.0 - (lo + hi) / 2.0)
    d2 = abs(f.tm - r.tm)
    g1 = min(abs(f.gc - p.primerGCMin), abs(p.primerGCMax - f.gc))
    g2 = min(abs(r.gc - p.primerGCMin), abs(p.primerGCMax - r.gc))
    return d1 + 2.0 * d2 - 0.02 * (g1 + g2)


def _top_reasons(rows: List[CandidateRow]) -> List[Tuple[str, int]]:
    counts: Dict[str, int] = {}
    for r in rows:
        if r.rejected and r.reason:
            # collapse numbers so reasons group
            key = r.reason.split(" not in ")[0].split(" ")[0] if " not in " in r.reason else r.reason
            counts[key] = counts.get(key, 0) + 1
    return sorted(counts.items(), key=lambda x: x[1], reverse=True)[:5]


# --- Public API ----------------------------------------------------------------------------------

def design_primers(
    sequence: str,
    start: int = 0,
    end: Optional[int] = None,
    params: Optional[ParamModel] = None,
    concentrations: Optional[Concentrations] = None,
) -> Tuple[List[PrimerPair], DesignDiagnostics]:
    """
    Design and rank primer pairs for sequence[start:end].

    Raises InvalidInput for bad coordinates, and also (with a
    human-readable explanation) when no pair satisfies the hard filters.
    """
    p = params or ParamModel()
    s = normalize_sequence(sequence, min_length=p.primerLengthMin, label="template")
    stop = len(s) if end is None else end
    if start < 0 or stop <= start or stop > len(s):
        raise InvalidInput(f"Invalid coordinates: start={start}, end={stop}, len={len(s)} (0-based, end-exclusive)")

    ps = get_parameter_set(p.parameterSet)
    conc = concentrations or Concentrations()

    def tmf(seq: str) -> float:
        return melting_temperature(seq, conc, ps, p.tmMethod)

    diag = DesignDiagnostics()
    slack = 0 if p.templateExact else p.searchWindow
    f_lmin, f_lmax = p.length_range("F")
    r_lmin, r_lmax = p.length_range("R")
    if start + f_lmin > len(s) or stop - r_lmin < 0:
        raise InvalidInput("Not enough sequence to place anchored primers with the requested length bounds.")

    forward_ok: List[Primer] = []
    reverse_ok: List[Primer] = []

    # Forward candidates starting at start .. start+slack
    for fpos in range(start, min(stop, start + slack + 1)):
        for Lf in range(f_lmin, f_lmax + 1):
            if fpos + Lf > len(s):
                break
            fseq = s[fpos: fpos + Lf]
            ok, tm, gc, reason = _candidate_ok(fseq, p, tmf)
            diag.forward_candidates.append(CandidateRow("F", fpos, Lf, fseq, tm, gc, not ok, reason))
            if ok:
                forward_ok.append(Primer(fseq, tm, gc, fpos, Lf))

    # Reverse candidates ending at stop-slack .. stop
    for rend in range(stop, max(start, stop - slack - 1), -1):
        for Lr in range(r_lmin, r_lmax + 1):
            if rend - Lr < 0:
                break
            rseq = reverse_complement(s[rend - Lr: rend])
            ok, tm, gc, reason = _candidate_ok(rseq, p, tmf)
            diag.reverse_candidates.append(CandidateRow("R", rend - Lr, Lr, rseq, tm, gc, not ok, reason))
            if ok:
                reverse_ok.append(Primer(rseq, tm, gc, rend - Lr, Lr))

    pairs: List[PrimerPair] = []
    checked = 0
    min_product = 1 if p.templateExact else p.productSizeMin
    for f in forward_ok:
        for r in reverse_ok:
            product = r.pos + r.length - f.pos
            if product < max(min_product, f.length):
                continue
            if abs(f.tm - r.tm) > p.primerTmDifferenceMax:
                continue
            checked += 1
            pairs.append(PrimerPair(f, r, product, _prerank(f, r, p)))
    diag.pair_scores_checked = checked

    if not pairs:
        diag.message = "No valid primer pair"
        f_reasons = _top_reasons(diag.forward_candidates)
        r_reasons = _top_reasons(diag.reverse_candidates)
        hints = [
            "No valid primer pair at the requested boundaries.",
            f"- Forward@{start}: tested {len(diag.forward_candidates)}, ok={len(forward_ok)}",
            f"- Reverse@end={stop}: tested {len(diag.reverse_candidates)}, ok={len(reverse_ok)}",
            "- Top forward rejection reasons: " + (", ".join(f"{k} x{v}" for k, v in f_reasons) or "n/a"),
            "- Top reverse rejection reasons: " + (", ".join(f"{k} x{v}" for k, v in r_reasons) or "n/a"),
            "Try widening primerTmMin/primerTmMax (or tmTolerance), primerGCMin/primerGCMax, ",
            "increasing primerLengthMin..primerLengthMax, or relaxing primerTmDifferenceMax.",
        ]
        logger.info("Design failed: fwd_ok=%d rev_ok=%d pairs=0", len(forward_ok), len(reverse_ok))
        raise InvalidInput("\n".join(hints))

    pairs.sort(key=lambda x: (x.score, x.forward.pos, x.forward.length, x.reverse.pos, x.reverse.length))
    shortlist = pairs[: max(p.shortlist, p.maxPairs)]

    scoring = ScoringOptions(
        preset=p.preset, weights=p.weights, parameter_set=p.parameterSet,
        tm_method=p.tmMethod, concentrations=conc,
    )
    for pair in shortlist:
        pair.result = score_primer_pair(pair.forward.seq, pair.reverse.seq, s, scoring)
    diag.pairs_scored = len(shortlist)

    # best composite first; pre-rank breaks ties so equal scores stay deterministic
    shortlist.sort(key=lambda x: (-x.composite, x.score))
    diag.message = "OK"
    logger.info(
        "Design: fwd_ok=%d rev_ok=%d pairs=%d scored=%d best=%d (%s)",
        len(forward_ok), len(reverse_ok), checked, len(shortlist),
        shortlist[0].composite, shortlist[0].result.tier if shortlist[0].result else "-",
    )
    return shortlist[: p.maxPairs], diag
