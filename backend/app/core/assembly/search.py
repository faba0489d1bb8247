# File: backend/app/core/assembly/search.py
# Version: v0.1.1
"""
Overhang-set search strategies.

Every strategy has the same shape:

    strategy(problem, budget, rng) -> SearchOutcome   (or raises InfeasibleError)

- GREEDY: junction by junction, the compatible candidate that keeps the
  partial set best. Deterministic; also the fallback for the others.
- BRANCH_AND_BOUND: exhaustive DFS over the per-junction shortlists with
  pruning on an admissible upper bound (exact optimum for small problems).
- MONTE_CARLO: simulated annealing seeded from greedy; proposals are
  evaluated in batches through batch_fitness.
- HYBRID: greedy seed + iterated local search (steepest single-swap ascent
  with seeded perturbation kicks).

`select_strategy` implements the auto policy: <=5 junctions branch-and-bound,
<=10 hybrid, otherwise Monte Carlo.

All randomness comes from the `random.Random` passed in. A run cut short by
the clock returns the best set found so far with partial=True; so does a
branch-and-bound run that hits `max_nodes`, since its optimum is then
unproven. The Monte Carlo and hybrid iteration caps are normal stops.
"""

from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from backend.app.core.assembly.batch_fitness import (
    INFEASIBLE,
    BatchOptions,
    SetEvaluation,
    SetScorer,
    evaluate_sets,
    overhangs_compatible,
)
from backend.app.core.assembly.candidates import JunctionCandidate
from backend.app.core.assembly.fidelity import set_fidelity
from backend.app.core.errors import InfeasibleError, InvalidInput
from backend.app.core.thermo.sequence import reverse_complement

logger = logging.getLogger(__name__)


class SearchStrategy(str, Enum):
    GREEDY = "greedy"
    BRANCH_AND_BOUND = "branchAndBound"
    MONTE_CARLO = "monteCarlo"
    HYBRID = "hybrid"


AUTO = "auto"
BRANCH_AND_BOUND_MAX_JUNCTIONS = 5
HYBRID_MAX_JUNCTIONS = 10


def select_strategy(num_junctions: int) -> SearchStrategy:
    if num_junctions <= BRANCH_AND_BOUND_MAX_JUNCTIONS:
        return SearchStrategy.BRANCH_AND_BOUND
    if num_junctions <= HYBRID_MAX_JUNCTIONS:
        return SearchStrategy.HYBRID
    return SearchStrategy.MONTE_CARLO


def parse_strategy(name: Optional[str]) -> Optional[SearchStrategy]:
    """None means auto."""
    key = (name or AUTO).strip()
    if key.lower() == AUTO:
        return None
    for s in SearchStrategy:
        if key.lower() in (s.value.lower(), s.name.lower(), s.name.lower().replace("_", "")):
            return s
    raise InvalidInput(f"unknown algorithm '{name}' (available: auto, {', '.join(s.value for s in SearchStrategy)})")


@dataclass(slots=True)
class SearchBudget:
    """Iteration/time budget and annealing knobs."""
    max_iterations: int = 2000
    time_budget_s: float = 30.0
    max_nodes: int = 200_000
    mc_temperature: float = 0.05
    mc_cooling: float = 0.995
    mc_batch: int = 8
    ls_kick: int = 2

    def __post_init__(self):
        if self.max_iterations < 1 or self.max_nodes < 1:
            raise InvalidInput("iteration budgets must be positive")
        if self.time_budget_s <= 0:
            raise InvalidInput("time budget must be positive")


@dataclass(slots=True)
class SearchProblem:
    scorer: SetScorer
    batch: BatchOptions = field(default_factory=BatchOptions)

    @property
    def candidates(self) -> List[List[JunctionCandidate]]:
        return self.scorer.pool.candidates

    @property
    def num_junctions(self) -> int:
        return self.scorer.pool.num_junctions


@dataclass(slots=True)
class SearchOutcome:
    strategy: SearchStrategy
    selection: List[JunctionCandidate]
    evaluation: SetEvaluation
    iterations: int = 0
    partial: bool = False
    nodes_explored: int = 0
    progress: List[float] = field(default_factory=list)

    @property
    def overhangs(self) -> List[str]:
        return [c.overhang for c in self.selection]


class _Clock:
    def __init__(self, budget_s: float):
        self.t0 = time.monotonic()
        self.budget_s = budget_s

    def expired(self) -> bool:
        return time.monotonic() - self.t0 > self.budget_s

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.t0


def _require_candidates(problem: SearchProblem) -> None:
    if problem.num_junctions == 0:
        raise InfeasibleError("no junctions to place")
    empty = problem.scorer.pool.empty_junctions()
    if empty:
        j = empty[0]
        raise InfeasibleError(
            f"junction {j} has no valid overhang candidates",
            reasons=problem.scorer.pool.reasons[j], junction_index=j,
        )


def _fits_after(prev_pos: int, cand: JunctionCandidate, problem: SearchProblem) -> bool:
    c = problem.scorer.constraints
    gap = cand.position - prev_pos
    return c.min_fragment_size <= gap <= c.max_fragment_size


def _fits_end(cand: JunctionCandidate, problem: SearchProblem) -> bool:
    c = problem.scorer.constraints
    tail = problem.scorer.pool.sequence_length - cand.position
    return c.min_fragment_size <= tail <= c.max_fragment_size


def _compatible(cand: JunctionCandidate, chosen: Sequence[JunctionCandidate], problem: SearchProblem) -> bool:
    used = {c.overhang for c in chosen}
    if cand.overhang in used or reverse_complement(cand.overhang) in used:
        return False
    prev = chosen[-1].position if chosen else 0
    if not _fits_after(prev, cand, problem):
        return False
    if len(chosen) + 1 == problem.num_junctions and not _fits_end(cand, problem):
        return False
    return True


# ---------------------------------------------------------------------------
# Greedy
# ---------------------------------------------------------------------------

def greedy(problem: SearchProblem, budget: Optional[SearchBudget] = None, rng: Optional[random.Random] = None) -> SearchOutcome:
    """Deterministic; rng is unused and accepted for interface uniformity."""
    _require_candidates(problem)
    matrix = problem.scorer.matrix
    chosen: List[JunctionCandidate] = []
    iterations = 0
    for j, cands in enumerate(problem.candidates):
        best: Optional[JunctionCandidate] = None
        best_key = -math.inf
        for cand in cands:
            if not _compatible(cand, chosen, problem):
                continue
            iterations += 1
            fid = set_fidelity([c.overhang for c in chosen] + [cand.overhang], matrix)
            key = fid * cand.score
            if key > best_key:
                best, best_key = cand, key
        if best is None:
            raise InfeasibleError(f"greedy: no compatible candidate at junction {j}", junction_index=j,
                                  reasons={"conflicts": len(cands)})
        chosen.append(best)
    evaluation = problem.scorer.evaluate(chosen)
    if not evaluation.feasible:
        raise InfeasibleError(f"greedy: {evaluation.violation}")
    logger.info("Greedy: %d junctions, composite=%.4f fidelity=%.4f", len(chosen), evaluation.composite, evaluation.fidelity)
    return SearchOutcome(SearchStrategy.GREEDY, chosen, evaluation, iterations=iterations)


# ---------------------------------------------------------------------------
# Branch and bound
# ---------------------------------------------------------------------------

def branch_and_bound(problem: SearchProblem, budget: Optional[SearchBudget] = None, rng: Optional[random.Random] = None) -> SearchOutcome:
    _require_candidates(problem)
    b = budget or SearchBudget()
    clock = _Clock(b.time_budget_s)
    scorer = problem.scorer
    m = problem.num_junctions

    best_sel: List[JunctionCandidate] = []
    best_eval: Optional[SetEvaluation] = None
    nodes = 0
    stopped = False

    # seed the incumbent with greedy when it succeeds: tightens pruning from the start
    try:
        seed = greedy(problem)
        best_sel, best_eval = list(seed.selection), seed.evaluation
    except InfeasibleError:
        pass

    def branch(chosen: List[JunctionCandidate]) -> None:
        nonlocal best_sel, best_eval, nodes, stopped
        if stopped:
            return
        nodes += 1
        if nodes >= b.max_nodes or (nodes % 256 == 0 and clock.expired()):
            stopped = True
            return
        depth = len(chosen)
        if depth == m:
            ev = scorer.evaluate(chosen)
            if ev.feasible and (best_eval is None or ev.composite > best_eval.composite):
                best_sel, best_eval = list(chosen), ev
            return
        for cand in problem.candidates[depth]:
            if not _compatible(cand, chosen, problem):
                continue
            trial = chosen + [cand]
            fid = set_fidelity([c.overhang for c in trial], scorer.matrix)
            bound = scorer.upper_bound(trial, fid)
            if best_eval is not None and bound <= best_eval.composite:
                continue
            branch(trial)
            if stopped:
                return

    branch([])
    if best_eval is None:
        raise InfeasibleError("branch-and-bound: no feasible overhang set", reasons={"nodes": nodes})
    logger.info(
        "B&B: nodes=%d%s composite=%.4f fidelity=%.4f elapsed=%.2fs",
        nodes, " (budget exhausted)" if stopped else "", best_eval.composite, best_eval.fidelity, clock.elapsed,
    )
    return SearchOutcome(SearchStrategy.BRANCH_AND_BOUND, best_sel, best_eval, iterations=nodes,
                         partial=stopped, nodes_explored=nodes)


# ---------------------------------------------------------------------------
# Monte Carlo (simulated annealing)
# ---------------------------------------------------------------------------

def _random_feasible(problem: SearchProblem, rng: random.Random, tries: int = 200) -> Optional[List[JunctionCandidate]]:
    for _ in range(tries):
        chosen: List[JunctionCandidate] = []
        for cands in problem.candidates:
            options = [c for c in cands if _compatible(c, chosen, problem)]
            if not options:
                break
            chosen.append(rng.choice(options))
        if len(chosen) == problem.num_junctions:
            return chosen
    return None


def _propose(current: List[JunctionCandidate], problem: SearchProblem, rng: random.Random) -> Optional[List[JunctionCandidate]]:
    j = rng.randrange(problem.num_junctions)
    alternatives = [c for c in problem.candidates[j] if c.position != current[j].position]
    if not alternatives:
        return None
    trial = list(current)
    trial[j] = rng.choice(alternatives)
    if overhangs_compatible([c.overhang for c in trial]):
        return None
    return trial


def monte_carlo(problem: SearchProblem, budget: Optional[SearchBudget] = None, rng: Optional[random.Random] = None) -> SearchOutcome:
    _require_candidates(problem)
    b = budget or SearchBudget()
    r = rng or random.Random(0)
    clock = _Clock(b.time_budget_s)
    scorer = problem.scorer

    try:
        current = list(greedy(problem).selection)
    except InfeasibleError:
        start = _random_feasible(problem, r)
        if start is None:
            raise
        current = start
    cur_eval = scorer.evaluate(current)
    best, best_eval = list(current), cur_eval
    temp = b.mc_temperature
    iterations = 0
    accepted = 0
    progress: List[float] = [best_eval.composite]
    heartbeat = max(1, b.max_iterations // 10)
    next_beat = heartbeat
    timed_out = False

    while iterations < b.max_iterations:
        if clock.expired():
            timed_out = True
            break
        # RNG is consumed here, in the calling thread, so results do not depend on worker count
        n = min(b.mc_batch, b.max_iterations - iterations)
        proposals = [p for p in (_propose(current, problem, r) for _ in range(n)) if p is not None]
        iterations += n
        draws = [r.random() for _ in proposals]
        if proposals:
            evals = evaluate_sets(scorer, proposals, options=problem.batch)
            for trial, ev, u in zip(proposals, evals, draws):
                if ev.composite == INFEASIBLE:
                    continue
                delta = ev.composite - cur_eval.composite
                if delta >= 0 or u < math.exp(delta / max(temp, 1e-9)):
                    current, cur_eval = trial, ev
                    accepted += 1
                    if ev.composite > best_eval.composite:
                        best, best_eval = list(trial), ev
                    break
        temp *= b.mc_cooling ** n
        progress.append(best_eval.composite)
        if iterations >= next_beat:
            logger.info(
                "MC%05d: best=%.4f current=%.4f fidelity=%.4f T=%.5f accepted=%d",
                iterations, best_eval.composite, cur_eval.composite, best_eval.fidelity, temp, accepted,
            )
            next_beat += heartbeat

    if not best_eval.feasible:
        raise InfeasibleError(f"monte carlo: {best_eval.violation}")
    logger.info(
        "MC run summary: iterations=%d%s, accepted=%d, best=%.4f fidelity=%.4f elapsed=%.2fs",
        iterations, " (time budget exhausted)" if timed_out else "", accepted,
        best_eval.composite, best_eval.fidelity, clock.elapsed,
    )
    return SearchOutcome(SearchStrategy.MONTE_CARLO, best, best_eval, iterations=iterations,
                         partial=timed_out, progress=progress)


# ---------------------------------------------------------------------------
# Hybrid (greedy seed + iterated local search)
# ---------------------------------------------------------------------------

def _neighbors(current: List[JunctionCandidate], problem: SearchProblem) -> List[List[JunctionCandidate]]:
    out: List[List[JunctionCandidate]] = []
    for j, cands in enumerate(problem.candidates):
        for cand in cands:
            if cand.position == current[j].position:
                continue
            trial = list(current)
            trial[j] = cand
            out.append(trial)
    return out


def hybrid(problem: SearchProblem, budget: Optional[SearchBudget] = None, rng: Optional[random.Random] = None) -> SearchOutcome:
    _require_candidates(problem)
    b = budget or SearchBudget()
    r = rng or random.Random(0)
    clock = _Clock(b.time_budget_s)
    scorer = problem.scorer

    seed = greedy(problem)
    if all(len(c) <= 1 for c in problem.candidates):
        return SearchOutcome(SearchStrategy.HYBRID, seed.selection, seed.evaluation, iterations=seed.iterations)
    current = list(seed.selection)
    cur_eval = seed.evaluation
    best, best_eval = list(current), cur_eval
    iterations = 0
    kicks = 0
    progress: List[float] = [best_eval.composite]
    exhausted = False

    while True:
        # steepest ascent to a local optimum
        improved = True
        while improved:
            improved = False
            if clock.expired():
                exhausted = True
                break
            neigh = _neighbors(current, problem)
            room = b.max_iterations - iterations
            if room <= 0:
                exhausted = True
                break
            neigh = neigh[:room]
            iterations += len(neigh)
            evals = evaluate_sets(scorer, neigh, options=problem.batch)
            top = max(range(len(evals)), key=lambda i: evals[i].composite, default=None)
            if top is not None and evals[top].composite > cur_eval.composite + 1e-12:
                current, cur_eval = neigh[top], evals[top]
                improved = True
        if cur_eval.composite > best_eval.composite:
            best, best_eval = list(current), cur_eval
        progress.append(best_eval.composite)
        if exhausted or iterations >= b.max_iterations:
            break
        # kick: re-draw a few junctions from the best set and climb again
        kicks += 1
        current = list(best)
        for j in r.sample(range(problem.num_junctions), min(b.ls_kick, problem.num_junctions)):
            current[j] = r.choice(problem.candidates[j])
        cur_eval = scorer.evaluate(current)
        if cur_eval.composite == INFEASIBLE:
            current, cur_eval = list(best), best_eval
        logger.info("Hybrid kick %d: iterations=%d best=%.4f", kicks, iterations, best_eval.composite)

    logger.info(
        "Hybrid run summary: iterations=%d kicks=%d best=%.4f fidelity=%.4f elapsed=%.2fs",
        iterations, kicks, best_eval.composite, best_eval.fidelity, clock.elapsed,
    )
    # the iteration cap is the normal stop; only the clock marks a result partial
    return SearchOutcome(SearchStrategy.HYBRID, best, best_eval, iterations=iterations,
                         partial=exhausted and clock.expired(), progress=progress)


STRATEGIES: Dict[SearchStrategy, Callable[..., SearchOutcome]] = {
    SearchStrategy.GREEDY: greedy,
    SearchStrategy.BRANCH_AND_BOUND: branch_and_bound,
    SearchStrategy.MONTE_CARLO: monte_carlo,
    SearchStrategy.HYBRID: hybrid,
}


def run_strategy(strategy: SearchStrategy, problem: SearchProblem, budget: SearchBudget, rng: random.Random) -> SearchOutcome:
    return STRATEGIES[strategy](problem, budget, rng)
