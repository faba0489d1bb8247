# File: backend/app/core/assembly/candidates.py
# Version: v0.1.0
"""
Junction candidate generation for Golden Gate overhang selection.

For N fragments there are N-1 junctions. Each junction gets an evenly spaced
ideal position and a search window of +/- search_radius around it. Every
position in the window is a candidate cut: the overhang is the k-mer that
starts there.

Hard filters (counted per reason, like the overlap scan of the GA selector):
  • palindromic overhang (self-ligates),
  • homopolymer run of 3+ inside the overhang,
  • overhang explicitly excluded by the caller,
  • position inside a forbidden region or too close to a sequence end,
  • first/last fragment shorter than min_fragment_size,
  • new recognition site created by the engineered ends (optional).

Survivors get a soft score (efficiency, self-fidelity, local primer
quality, distance to the ideal position) and the best
`max_candidates_per_region` are kept per junction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.core.assembly.enzymes import Enzyme, junction_creates_site
from backend.app.core.assembly.fidelity import FidelityMatrix, overhang_efficiency, overhang_fidelity
from backend.app.core.errors import InvalidInput
from backend.app.core.scoring.transforms import score_gc, score_gc_clamp, score_homopolymer
from backend.app.core.thermo.sequence import gc_percent, is_palindrome, longest_homopolymer, reverse_complement

logger = logging.getLogger(__name__)

# Soft-score weights for a single candidate
CANDIDATE_WEIGHTS = {"efficiency": 0.35, "fidelity": 0.30, "quality": 0.20, "position": 0.15}
PRIMER_WINDOW = 20


class JunctionConstraints(BaseModel):
    """Hard constraints on junction placement."""
    model_config = ConfigDict(populate_by_name=True)

    min_fragment_size: int = Field(200, ge=1, alias="minFragmentSize")
    max_fragment_size: int = Field(5000, ge=1, alias="maxFragmentSize")
    min_distance_from_ends: int = Field(50, ge=0, alias="minDistanceFromEnds")
    search_radius: int = Field(50, ge=0, alias="searchRadius")
    forbidden_regions: List[Tuple[int, int]] = Field(default_factory=list, alias="forbiddenRegions")
    excluded_overhangs: List[str] = Field(default_factory=list, alias="excludedOverhangs")
    avoid_site_creation: bool = Field(True, alias="avoidSiteCreation")
    max_candidates_per_region: int = Field(10, ge=1, alias="maxCandidatesPerRegion")

    @field_validator("forbidden_regions")
    @classmethod
    def _regions_ordered(cls, v: List[Tuple[int, int]]) -> List[Tuple[int, int]]:
        for start, end in v:
            if start < 0 or end < start:
                raise ValueError(f"invalid forbidden region ({start}, {end})")
        return v

    @field_validator("excluded_overhangs")
    @classmethod
    def _upper(cls, v: List[str]) -> List[str]:
        return [s.strip().upper() for s in v if s and s.strip()]

    @field_validator("max_fragment_size")
    @classmethod
    def _max_ge_min(cls, v: int, info) -> int:
        lo = info.data.get("min_fragment_size")
        if lo is not None and v < lo:
            raise ValueError("maxFragmentSize must be >= minFragmentSize")
        return v


@dataclass(frozen=True, slots=True)
class TargetRegion:
    index: int
    ideal: int
    start: int
    end: int  # inclusive


@dataclass(frozen=True, slots=True)
class JunctionCandidate:
    junction_index: int
    position: int
    overhang: str
    score: float
    efficiency: float
    fidelity: float
    quality: float
    deviation: int

    def as_dict(self) -> dict:
        return {
            "junction": self.junction_index, "position": self.position, "overhang": self.overhang,
            "score": round(self.score, 4), "efficiency": round(self.efficiency, 4),
            "fidelity": round(self.fidelity, 4), "quality": round(self.quality, 4),
            "deviation": self.deviation,
        }


@dataclass(slots=True)
class CandidatePool:
    sequence_length: int
    overhang_length: int
    targets: List[TargetRegion]
    candidates: List[List[JunctionCandidate]]
    reasons: List[Dict[str, int]] = field(default_factory=list)

    @property
    def num_junctions(self) -> int:
        return len(self.targets)

    def empty_junctions(self) -> List[int]:
        return [i for i, c in enumerate(self.candidates) if not c]

    def counts(self) -> List[int]:
        return [len(c) for c in self.candidates]


def generate_targets(length: int, fragment_count: int, constraints: JunctionConstraints, overhang_length: int) -> List[TargetRegion]:
    """Evenly spaced ideal cut positions with their clipped search windows."""
    if fragment_count < 2:
        raise InvalidInput("fragment count must be at least 2")
    lo = constraints.min_distance_from_ends
    hi = length - constraints.min_distance_from_ends - overhang_length
    if hi < lo:
        raise InvalidInput(f"sequence of {length} nt is too short for the end-distance constraint")
    targets: List[TargetRegion] = []
    for j in range(fragment_count - 1):
        ideal = round(length * (j + 1) / fragment_count)
        start = max(lo, ideal - constraints.search_radius)
        end = min(hi, ideal + constraints.search_radius)
        targets.append(TargetRegion(j, ideal, start, end))
    return targets


def _in_forbidden(pos: int, k: int, regions: Sequence[Tuple[int, int]]) -> bool:
    return any(pos < end and pos + k > start for start, end in regions)


def local_primer_quality(sequence: str, position: int, k: int) -> float:
    """Rough quality of the two primers that would anneal on either side of the cut."""
    right = sequence[position: position + PRIMER_WINDOW]
    left = reverse_complement(sequence[max(0, position + k - PRIMER_WINDOW): position + k])
    vals = []
    for primer in (left, right):
        if len(primer) < 4:
            continue
        vals.append(0.5 * score_gc(gc_percent(primer)) + 0.25 * score_homopolymer(primer) + 0.25 * score_gc_clamp(primer))
    return sum(vals) / len(vals) if vals else 0.5


def build_candidates(
    sequence: str,
    fragment_count: int,
    matrix: FidelityMatrix,
    enzyme: Enzyme,
    constraints: Optional[JunctionConstraints] = None,
) -> CandidatePool:
    c = constraints or JunctionConstraints()
    k = enzyme.overhang_length
    n = len(sequence)
    targets = generate_targets(n, fragment_count, c, k)
    excluded = set(c.excluded_overhangs)
    fidelity_cache: Dict[str, float] = {}

    pool: List[List[JunctionCandidate]] = []
    all_reasons: List[Dict[str, int]] = []
    for t in targets:
        reasons = {
            "palindrome": 0, "homopolymer": 0, "excluded": 0, "forbidden": 0,
            "fragment_size": 0, "site_creation": 0,
        }
        scored: List[JunctionCandidate] = []
        span = max(1, c.search_radius)
        for pos in range(t.start, t.end + 1):
            oh = sequence[pos: pos + k]
            if is_palindrome(oh):
                reasons["palindrome"] += 1; continue
            if longest_homopolymer(oh) >= 3:
                reasons["homopolymer"] += 1; continue
            if oh in excluded or reverse_complement(oh) in excluded:
                reasons["excluded"] += 1; continue
            if _in_forbidden(pos, k, c.forbidden_regions):
                reasons["forbidden"] += 1; continue
            if pos < c.min_fragment_size or n - pos < c.min_fragment_size:
                reasons["fragment_size"] += 1; continue
            if c.avoid_site_creation and junction_creates_site(sequence, pos, enzyme):
                reasons["site_creation"] += 1; continue

            eff = overhang_efficiency(oh).efficiency
            if oh not in fidelity_cache:
                fidelity_cache[oh] = overhang_fidelity(oh, matrix)
            fid = fidelity_cache[oh]
            qual = local_primer_quality(sequence, pos, k)
            dev = pos - t.ideal
            closeness = max(0.0, 1.0 - abs(dev) / span)
            w = CANDIDATE_WEIGHTS
            score = w["efficiency"] * eff + w["fidelity"] * fid + w["quality"] * qual + w["position"] * closeness
            scored.append(JunctionCandidate(t.index, pos, oh, score, eff, fid, qual, dev))

        # best first; ties broken by distance to the ideal position, then position
        scored.sort(key=lambda x: (-x.score, abs(x.deviation), x.position))
        kept: List[JunctionCandidate] = []
        seen: set = set()
        for cand in scored:
            if cand.overhang in seen:
                continue
            seen.add(cand.overhang)
            kept.append(cand)
            if len(kept) >= c.max_candidates_per_region:
                break
        if not kept:
            logger.warning("Junction %d @%d: no candidates (%s)", t.index, t.ideal,
                           ", ".join(f"{r}:{v}" for r, v in reasons.items() if v))
        else:
            logger.debug("Junction %d @%d: %d/%d candidates kept (best %s @%d score=%.3f)",
                         t.index, t.ideal, len(kept), len(scored), kept[0].overhang, kept[0].position, kept[0].score)
        pool.append(kept)
        all_reasons.append(reasons)

    logger.info("Candidates: %d junctions, per-junction counts=%s", len(targets), [len(p) for p in pool])
    return CandidatePool(n, k, targets, pool, all_reasons)
