# File: backend/app/core/assembly/optimizer.py
# Version: v0.1.1
"""
Golden Gate junction optimizer.

optimize_junctions(sequence, fragment_count, matrix, options) -> OverhangSet

Flow:
  1) candidate pool per junction (candidates.build_candidates),
  2) strategy = requested one, or select_strategy() for "auto",
  3) on InfeasibleError fall back to greedy,
  4) if greedy fails too, a relaxed best-effort set is returned with
     partial=True and a `warning` (fragment-size bounds dropped, junctions
     without any candidate skipped); overhang validity is never relaxed,
  5) fidelity report + failure-mode prediction on the final set.

Raises InvalidInput (no partial result) for:
  - an invalid sequence, fewer than 2 fragments or an unknown enzyme,
  - a matrix whose overhang length does not match the enzyme,
  - a sequence too short for the end-distance constraint (no junction
    window exists at all, see candidates.generate_targets).
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from backend.app.core.assembly.batch_fitness import DEFAULT_SET_WEIGHTS, BatchOptions, SetEvaluation, SetScorer
from backend.app.core.assembly.candidates import CandidatePool, JunctionCandidate, JunctionConstraints, build_candidates
from backend.app.core.assembly.enzymes import find_recognition_sites, get_enzyme
from backend.app.core.assembly.failure_prediction import FailurePrediction, predict_failure_modes
from backend.app.core.assembly.fidelity import FidelityMatrix, load_matrix
from backend.app.core.assembly.search import (
    SearchBudget,
    SearchOutcome,
    SearchProblem,
    SearchStrategy,
    greedy,
    parse_strategy,
    run_strategy,
    select_strategy,
)
from backend.app.core.errors import InfeasibleError, InvalidInput
from backend.app.core.thermo.sequence import normalize_sequence, reverse_complement

logger = logging.getLogger(__name__)

Algorithm = Literal["auto", "greedy", "branchAndBound", "monteCarlo", "hybrid"]


class SetWeights(BaseModel):
    fidelity: float = Field(DEFAULT_SET_WEIGHTS["fidelity"], ge=0)
    efficiency: float = Field(DEFAULT_SET_WEIGHTS["efficiency"], ge=0)
    quality: float = Field(DEFAULT_SET_WEIGHTS["quality"], ge=0)
    position: float = Field(DEFAULT_SET_WEIGHTS["position"], ge=0)


class OptimizerOptions(BaseModel):
    """Explicit optimizer configuration; camelCase aliases match the API payloads."""
    model_config = ConfigDict(populate_by_name=True)

    algorithm: Algorithm = "auto"
    enzyme: str = "BsaI"
    constraints: JunctionConstraints = Field(default_factory=JunctionConstraints)
    max_iterations: int = Field(2000, ge=1, alias="maxIterations")
    time_budget_s: float = Field(30.0, gt=0, alias="timeBudgetS")
    seed: int = 7
    workers: int = Field(0, ge=0)
    weights: SetWeights = Field(default_factory=SetWeights)


@dataclass(slots=True)
class Fragment:
    index: int
    start: int
    end: int
    left_overhang: Optional[str]
    right_overhang: Optional[str]

    @property
    def length(self) -> int:
        return self.end - self.start

    def as_dict(self) -> dict:
        return {"index": self.index, "start": self.start, "end": self.end, "length": self.length,
                "leftOverhang": self.left_overhang, "rightOverhang": self.right_overhang}


@dataclass(slots=True)
class OverhangSet:
    enzyme: str
    overhangs: List[str]
    junctions: List[JunctionCandidate]
    fragments: List[Fragment]
    evaluation: Optional[SetEvaluation]
    requested_algorithm: str
    algorithm: str
    iterations: int
    partial: bool
    warning: Optional[str]
    failure: Optional[FailurePrediction]
    candidate_counts: List[int] = field(default_factory=list)
    matrix_source: str = "modeled"
    notes: List[str] = field(default_factory=list)

    @property
    def fidelity(self) -> float:
        return self.failure.fidelity.assembly_fidelity if self.failure else 0.0

    def as_dict(self) -> dict:
        return {
            "enzyme": self.enzyme,
            "overhangs": self.overhangs,
            "junctions": [j.as_dict() for j in self.junctions],
            "fragments": [f.as_dict() for f in self.fragments],
            "evaluation": self.evaluation.as_dict() if self.evaluation else None,
            "requestedAlgorithm": self.requested_algorithm,
            "algorithm": self.algorithm,
            "iterations": self.iterations,
            "partial": self.partial,
            "warning": self.warning,
            "fidelity": round(self.fidelity, 4),
            "failurePrediction": self.failure.as_dict() if self.failure else None,
            "candidateCounts": self.candidate_counts,
            "matrixSource": self.matrix_source,
            "notes": self.notes,
        }


def _fragments(length: int, junctions: List[JunctionCandidate]) -> List[Fragment]:
    out: List[Fragment] = []
    start = 0
    left: Optional[str] = None
    for i, j in enumerate(junctions):
        out.append(Fragment(i, start, j.position, left, j.overhang))
        start, left = j.position, j.overhang
    out.append(Fragment(len(junctions), start, length, left, None))
    return out


def _best_effort(pool: CandidatePool) -> List[JunctionCandidate]:
    """Relaxed pick: best-scoring valid overhang per junction, skipping junctions that have none."""
    chosen: List[JunctionCandidate] = []
    used: set = set()
    for cands in pool.candidates:
        for cand in cands:
            if cand.overhang in used or reverse_complement(cand.overhang) in used:
                continue
            if chosen and cand.position <= chosen[-1].position:
                continue
            chosen.append(cand)
            used.add(cand.overhang)
            break
    return chosen


def optimize_junctions(
    sequence: str,
    fragment_count: int,
    matrix: Optional[FidelityMatrix] = None,
    options: Optional[OptimizerOptions] = None,
) -> OverhangSet:
    opts = options or OptimizerOptions()
    seq = normalize_sequence(sequence, min_length=20, label="sequence")
    if fragment_count < 2:
        raise InvalidInput("fragment count must be at least 2")
    enzyme = get_enzyme(opts.enzyme)
    mat = matrix or load_matrix(enzyme)
    if mat.overhang_length != enzyme.overhang_length:
        raise InvalidInput(f"matrix has {mat.overhang_length}-nt overhangs but {enzyme.name} leaves {enzyme.overhang_length}")

    notes: List[str] = []
    internal = find_recognition_sites(seq, enzyme)
    if internal:
        notes.append(f"{len(internal)} internal {enzyme.name} site(s) found; domesticate before assembly")

    pool = build_candidates(seq, fragment_count, mat, enzyme, opts.constraints)
    m = pool.num_junctions
    requested = parse_strategy(opts.algorithm)
    strategy = requested or select_strategy(m)
    budget = SearchBudget(max_iterations=opts.max_iterations, time_budget_s=opts.time_budget_s)
    problem = SearchProblem(
        scorer=SetScorer(pool, mat, opts.constraints, opts.weights.model_dump()),
        batch=BatchOptions(workers=opts.workers),
    )
    rng = random.Random(opts.seed)
    logger.info(
        "Optimize: len=%d fragments=%d junctions=%d enzyme=%s algorithm=%s→%s iterations=%d seed=%d",
        len(seq), fragment_count, m, enzyme.name, opts.algorithm, strategy.value, opts.max_iterations, opts.seed,
    )

    outcome: Optional[SearchOutcome] = None
    warning: Optional[str] = None
    try:
        outcome = run_strategy(strategy, problem, budget, rng)
    except InfeasibleError as exc:
        logger.warning("Optimize: %s failed (%s)", strategy.value, exc)
        if strategy is not SearchStrategy.GREEDY:
            try:
                outcome = greedy(problem, budget, rng)
                warning = f"{strategy.value} found no feasible set; greedy fallback used"
            except InfeasibleError as exc2:
                warning = f"no overhang set satisfies all constraints: {exc2}"
        else:
            warning = f"no overhang set satisfies all constraints: {exc}"

    if outcome is not None:
        junctions = outcome.selection
        evaluation: Optional[SetEvaluation] = outcome.evaluation
        used = outcome.strategy.value
        iterations = outcome.iterations
        partial = outcome.partial
        if partial:
            warning = warning or "search budget exhausted; best set found so far returned"
    else:
        junctions = _best_effort(pool)
        evaluation = problem.scorer.evaluate(junctions) if junctions else None
        used = "bestEffort"
        iterations = 0
        partial = True
        logger.warning("Optimize: returning best-effort set with %d/%d junctions", len(junctions), m)

    overhangs = [j.overhang for j in junctions]
    failure = predict_failure_modes(overhangs, mat, internal_sites=internal) if overhangs else None
    return OverhangSet(
        enzyme=enzyme.name,
        overhangs=overhangs,
        junctions=junctions,
        fragments=_fragments(len(seq), junctions),
        evaluation=evaluation,
        requested_algorithm=opts.algorithm,
        algorithm=used,
        iterations=iterations,
        partial=partial,
        warning=warning,
        failure=failure,
        candidate_counts=pool.counts(),
        matrix_source=mat.source,
        notes=notes,
    )
