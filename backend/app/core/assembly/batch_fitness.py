# File: backend/app/core/assembly/batch_fitness.py
# Version: v0.2.0
"""
Batch & parallel fitness evaluation of overhang sets.

Goals:
- Make search strategies fast and simple to call.
- Use a bounded thread pool for large batches (Monte Carlo proposals,
  local-search neighborhoods).
- Keep deterministic behavior: results always come back in input order,
  whatever the worker count.

Set fitness (composite in [0, 1]):
    0.40 * set fidelity + 0.20 * combined efficiency
  + 0.25 * mean local primer quality + 0.15 * position quality
An infeasible set (duplicate/conflicting overhangs, palindromes, fragment
sizes out of bounds) has composite -1.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from backend.app.core.assembly.candidates import CandidatePool, JunctionCandidate, JunctionConstraints
from backend.app.core.assembly.fidelity import FidelityMatrix, set_fidelity
from backend.app.core.thermo.sequence import is_palindrome, reverse_complement

INFEASIBLE = -1.0

DEFAULT_SET_WEIGHTS: Mapping[str, float] = {
    "fidelity": 0.40,
    "efficiency": 0.20,
    "quality": 0.25,
    "position": 0.15,
}


@dataclass(slots=True)
class BatchOptions:
    """Controls parallelism and chunking."""
    workers: int = 0           # 0/None → auto = min(32, os.cpu_count() or 1)
    chunk_size: int = 16       # sets per task


def _auto_workers(workers: Optional[int]) -> int:
    if workers and workers > 0:
        return workers
    return max(1, min(32, os.cpu_count() or 1))


def _chunks(seq: Sequence, n: int) -> Iterable[Sequence]:
    if n <= 0:
        n = len(seq)
    for i in range(0, len(seq), n):
        yield seq[i: i + n]


@dataclass(frozen=True, slots=True)
class SetEvaluation:
    overhangs: Tuple[str, ...]
    positions: Tuple[int, ...]
    fidelity: float
    efficiency: float
    quality: float
    position: float
    composite: float
    violation: str = ""

    @property
    def feasible(self) -> bool:
        return not self.violation

    def as_dict(self) -> dict:
        return {
            "overhangs": list(self.overhangs), "positions": list(self.positions),
            "fidelity": round(self.fidelity, 4), "efficiency": round(self.efficiency, 4),
            "quality": round(self.quality, 4), "position": round(self.position, 4),
            "composite": round(self.composite, 4), "feasible": self.feasible,
        }


def overhangs_compatible(overhangs: Sequence[str]) -> str:
    """Empty string when the set is valid, else the first violation."""
    seen: set = set()
    for oh in overhangs:
        if is_palindrome(oh):
            return f"palindromic overhang {oh}"
        if oh in seen:
            return f"duplicate overhang {oh}"
        if reverse_complement(oh) in seen:
            return f"overhang {oh} conflicts with its reverse complement"
        seen.add(oh)
    return ""


def fragment_violation(positions: Sequence[int], length: int, constraints: JunctionConstraints) -> str:
    bounds = [0, *positions, length]
    for i in range(len(bounds) - 1):
        size = bounds[i + 1] - bounds[i]
        if size < constraints.min_fragment_size:
            return f"fragment {i + 1} is {size} nt (< {constraints.min_fragment_size})"
        if size > constraints.max_fragment_size:
            return f"fragment {i + 1} is {size} nt (> {constraints.max_fragment_size})"
    return ""


class SetScorer:
    """Scores complete (or partial) junction selections against one candidate pool."""

    def __init__(self, pool: CandidatePool, matrix: FidelityMatrix, constraints: JunctionConstraints,
                 weights: Optional[Mapping[str, float]] = None):
        self.pool = pool
        self.matrix = matrix
        self.constraints = constraints
        self.weights = dict(weights or DEFAULT_SET_WEIGHTS)
        self._spans = [max(1, t.end - t.start) for t in pool.targets]

    def evaluate(self, selection: Sequence[JunctionCandidate]) -> SetEvaluation:
        ohs = tuple(c.overhang for c in selection)
        pos = tuple(c.position for c in selection)
        violation = overhangs_compatible(ohs)
        if not violation and list(pos) != sorted(pos):
            violation = "junction positions out of order"
        if not violation and len(selection) == self.pool.num_junctions:
            violation = fragment_violation(pos, self.pool.sequence_length, self.constraints)
        if violation or not selection:
            return SetEvaluation(ohs, pos, 0.0, 0.0, 0.0, 0.0, INFEASIBLE, violation or "empty selection")

        fid = set_fidelity(ohs, self.matrix)
        eff = 1.0
        for c in selection:
            eff *= c.efficiency
        qual = sum(c.quality for c in selection) / len(selection)
        posq = sum(max(0.0, 1.0 - abs(c.deviation) / self._spans[c.junction_index]) for c in selection) / len(selection)
        w = self.weights
        composite = w["fidelity"] * fid + w["efficiency"] * eff + w["quality"] * qual + w["position"] * posq
        return SetEvaluation(ohs, pos, fid, eff, qual, posq, composite)

    def upper_bound(self, partial: Sequence[JunctionCandidate], partial_fidelity: float) -> float:
        """
        Admissible bound on any completion of `partial`.

        Set fidelity never increases when overhangs are added, so the partial
        fidelity bounds the final one; the other terms take the best remaining
        candidate per junction.
        """
        m = self.pool.num_junctions
        depth = len(partial)
        eff = 1.0
        qual = 0.0
        posq = 0.0
        for c in partial:
            eff *= c.efficiency
            qual += c.quality
            posq += max(0.0, 1.0 - abs(c.deviation) / self._spans[c.junction_index])
        for j in range(depth, m):
            cands = self.pool.candidates[j]
            if not cands:
                return INFEASIBLE
            eff *= max(c.efficiency for c in cands)
            qual += max(c.quality for c in cands)
            posq += max(max(0.0, 1.0 - abs(c.deviation) / self._spans[j]) for c in cands)
        w = self.weights
        return w["fidelity"] * partial_fidelity + w["efficiency"] * eff + w["quality"] * qual / m + w["position"] * posq / m


def evaluate_sets(
    scorer: SetScorer,
    selections: Sequence[Sequence[JunctionCandidate]],
    *,
    options: Optional[BatchOptions] = None,
) -> List[SetEvaluation]:
    """
    Evaluate many selections, optionally in parallel. Output order matches input order.
    """
    opts = options or BatchOptions()
    workers = _auto_workers(opts.workers)

    def eval_chunk(chunk: Sequence[Sequence[JunctionCandidate]]) -> List[SetEvaluation]:
        return [scorer.evaluate(s) for s in chunk]

    if workers == 1 or len(selections) <= opts.chunk_size:
        return eval_chunk(selections)

    results: List[SetEvaluation] = []
    # Contiguous slices keep the original ordering without extra bookkeeping
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futs = [ex.submit(eval_chunk, chunk) for chunk in _chunks(selections, opts.chunk_size)]
        for f in futs:
            results.extend(f.result())
    return results
