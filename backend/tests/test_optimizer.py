# File: backend/tests/test_optimizer.py
# Version: v0.1.1
"""
Golden Gate junction optimizer: strategy selection, validity of returned sets,
budgets, determinism and the best-effort path.
"""
from __future__ import annotations

import random

import pytest

from backend.app.core.assembly.batch_fitness import BatchOptions, SetScorer, evaluate_sets
from backend.app.core.assembly.candidates import JunctionConstraints, build_candidates
from backend.app.core.assembly.enzymes import find_recognition_sites, get_enzyme, junction_creates_site
from backend.app.core.assembly.fidelity import modeled_matrix
from backend.app.core.assembly.optimizer import OptimizerOptions, optimize_junctions
from backend.app.core.assembly.search import (
    SearchBudget,
    SearchProblem,
    SearchStrategy,
    branch_and_bound,
    parse_strategy,
    select_strategy,
)
from backend.app.core.errors import InvalidInput
from backend.app.core.thermo.sequence import is_palindrome, reverse_complement


def random_construct(length: int, seed: int) -> str:
    """Random ACGT sequence without BsaI sites on either strand."""
    r = random.Random(seed)
    seq = "".join(r.choice("ACGT") for _ in range(length))
    enzyme = get_enzyme("BsaI")
    while find_recognition_sites(seq, enzyme):
        pos, _ = find_recognition_sites(seq, enzyme)[0]
        seq = seq[:pos + 2] + ("A" if seq[pos + 2] != "A" else "C") + seq[pos + 3:]
    return seq


def _assert_valid_set(overhangs):
    assert len(set(overhangs)) == len(overhangs)
    for oh in overhangs:
        assert not is_palindrome(oh)
        assert reverse_complement(oh) not in overhangs
        assert "AAAA" not in oh


def test_auto_selection_thresholds():
    assert select_strategy(3) is SearchStrategy.BRANCH_AND_BOUND
    assert select_strategy(5) is SearchStrategy.BRANCH_AND_BOUND
    assert select_strategy(8) is SearchStrategy.HYBRID
    assert select_strategy(15) is SearchStrategy.MONTE_CARLO
    assert parse_strategy("auto") is None
    assert parse_strategy("monteCarlo") is SearchStrategy.MONTE_CARLO
    with pytest.raises(InvalidInput):
        parse_strategy("genetic")


def test_homopolymer_overhang_never_selected():
    seq = random_construct(900, seed=11)
    # plant AAAA runs right at the ideal cut positions
    seq = seq[:296] + "AAAAAAAA" + seq[304:596] + "AAAAAAAA" + seq[604:]
    opts = OptimizerOptions(
        constraints=JunctionConstraints(min_fragment_size=100, search_radius=30),
        max_iterations=200,
    )
    result = optimize_junctions(seq, 3, options=opts)
    assert result.algorithm == "branchAndBound"
    assert len(result.overhangs) == 2
    _assert_valid_set(result.overhangs)
    assert all("AAA" not in oh for oh in result.overhangs)


def test_fifteen_junctions_use_monte_carlo_within_budget():
    seq = random_construct(2000, seed=3)
    opts = OptimizerOptions(
        algorithm="auto",
        constraints=JunctionConstraints(min_fragment_size=40, min_distance_from_ends=20, search_radius=20),
        max_iterations=120,
        time_budget_s=60.0,
        seed=5,
    )
    result = optimize_junctions(seq, 16, options=opts)
    assert result.requested_algorithm == "auto"
    assert result.algorithm == "monteCarlo"
    assert result.iterations <= 120
    assert len(result.overhangs) == 15
    _assert_valid_set(result.overhangs)
    assert 0.0 <= result.fidelity <= 1.0


def test_monte_carlo_is_reproducible_for_a_seed():
    seq = random_construct(1500, seed=9)
    opts = OptimizerOptions(
        algorithm="monteCarlo",
        constraints=JunctionConstraints(min_fragment_size=60, search_radius=25),
        max_iterations=80,
        seed=42,
    )
    a = optimize_junctions(seq, 8, options=opts)
    b = optimize_junctions(seq, 8, options=opts.model_copy(update={"workers": 3}))
    assert a.overhangs == b.overhangs
    assert [j.position for j in a.junctions] == [j.position for j in b.junctions]


@pytest.mark.parametrize("algorithm", ["greedy", "branchAndBound", "hybrid"])
def test_each_strategy_returns_valid_fragments(algorithm):
    seq = random_construct(1200, seed=21)
    opts = OptimizerOptions(
        algorithm=algorithm,
        constraints=JunctionConstraints(min_fragment_size=150, search_radius=30),
        max_iterations=100,
    )
    result = optimize_junctions(seq, 4, options=opts)
    assert result.algorithm == algorithm
    _assert_valid_set(result.overhangs)
    sizes = [f.length for f in result.fragments]
    assert sum(sizes) == len(seq)
    assert min(sizes) >= 150
    assert result.failure is not None
    assert 0.01 <= result.failure.success.rate <= 1.0


def test_branch_and_bound_not_worse_than_greedy():
    seq = random_construct(1000, seed=31)
    base = dict(constraints=JunctionConstraints(min_fragment_size=120, search_radius=25), max_iterations=100)
    greedy = optimize_junctions(seq, 4, options=OptimizerOptions(algorithm="greedy", **base))
    exact = optimize_junctions(seq, 4, options=OptimizerOptions(algorithm="branchAndBound", **base))
    assert exact.evaluation.composite >= greedy.evaluation.composite - 1e-9


def test_infeasible_request_returns_flagged_partial_result():
    seq = random_construct(600, seed=5)
    constraints = JunctionConstraints(min_fragment_size=50, search_radius=20, forbidden_regions=[(350, 460)])
    result = optimize_junctions(seq, 3, options=OptimizerOptions(constraints=constraints))
    assert result.partial is True
    assert result.warning
    assert result.algorithm == "bestEffort"
    assert len(result.overhangs) < 2
    _assert_valid_set(result.overhangs)


def test_batch_evaluation_matches_sequential():
    seq = random_construct(800, seed=13)
    enzyme = get_enzyme("BsaI")
    matrix = modeled_matrix(4)
    constraints = JunctionConstraints(min_fragment_size=100, search_radius=20)
    pool = build_candidates(seq, 3, matrix, enzyme, constraints)
    scorer = SetScorer(pool, matrix, constraints)
    selections = [[a, b] for a in pool.candidates[0][:4] for b in pool.candidates[1][:4]]
    seq_evals = evaluate_sets(scorer, selections, options=BatchOptions(workers=1))
    par_evals = evaluate_sets(scorer, selections, options=BatchOptions(workers=4, chunk_size=3))
    assert [e.composite for e in seq_evals] == [e.composite for e in par_evals]


def test_fragment_count_validation():
    with pytest.raises(InvalidInput):
        optimize_junctions(random_construct(400, seed=1), 1)


def _site_prone_construct() -> str:
    """200 nt without BsaI sites; a spacer G at position 100 would complete GGTCTC."""
    filler = "ATTGCA" * 20
    return filler[:96] + "ATCA" + "GTCTCA" + filler[:94]


def test_junction_site_creation_detection():
    seq = _site_prone_construct()
    bsai = get_enzyme("BsaI")
    assert find_recognition_sites(seq, bsai) == []
    assert junction_creates_site(seq, 100, bsai)
    assert not junction_creates_site(seq, 60, bsai)


@pytest.mark.parametrize("avoid, expected", [(True, []), (False, ["GTCT"])])
def test_site_creating_candidate_follows_constraint(avoid, expected):
    seq = _site_prone_construct()
    constraints = JunctionConstraints(
        min_fragment_size=50, min_distance_from_ends=20, search_radius=0, avoid_site_creation=avoid,
    )
    pool = build_candidates(seq, 2, modeled_matrix(4), get_enzyme("BsaI"), constraints)
    assert pool.targets[0].ideal == 100
    assert [c.overhang for c in pool.candidates[0]] == expected
    assert pool.reasons[0]["site_creation"] == (1 if avoid else 0)


def test_junctions_keep_distance_from_ends():
    seq = random_construct(1000, seed=17)
    constraints = JunctionConstraints(min_fragment_size=60, min_distance_from_ends=150, search_radius=200)
    opts = OptimizerOptions(algorithm="greedy", constraints=constraints, max_iterations=100)
    result = optimize_junctions(seq, 3, options=opts)
    assert len(result.junctions) == 2
    for junction in result.junctions:
        assert 150 <= junction.position <= len(seq) - 150


def test_sequence_shorter_than_end_distance_is_invalid():
    constraints = JunctionConstraints(min_fragment_size=10, min_distance_from_ends=200)
    with pytest.raises(InvalidInput):
        optimize_junctions(random_construct(300, seed=4), 2, options=OptimizerOptions(constraints=constraints))


def test_branch_and_bound_node_cap_marks_partial():
    seq = random_construct(1000, seed=31)
    matrix = modeled_matrix(4)
    constraints = JunctionConstraints(min_fragment_size=120, search_radius=25)
    pool = build_candidates(seq, 4, matrix, get_enzyme("BsaI"), constraints)
    problem = SearchProblem(scorer=SetScorer(pool, matrix, constraints))

    capped = branch_and_bound(problem, SearchBudget(max_nodes=3))
    assert capped.partial is True
    assert capped.evaluation.feasible

    full = branch_and_bound(problem, SearchBudget())
    assert full.partial is False
    assert full.evaluation.composite >= capped.evaluation.composite - 1e-9
