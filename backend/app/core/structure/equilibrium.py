# File: backend/app/core/structure/equilibrium.py
# Version: v0.1.0
"""
Multi-species binding equilibrium for primer pairs.

Each primer partitions between: free, hairpin, homodimer, heterodimer (with
every partner), on-target duplex and off-target duplexes. Association
constants come from K = exp(-dG / RT); template sites are depleted by
binding (mass action), so the system is solved iteratively:

    P0 = f*(1 + Kh) + 2*Khomo*f^2 + f*sum_q(Khet*f_q) + sum_s(T0*Ks*f / (1 + Ks*f))

Gauss-Seidel over primers, each update taking the numerically stable root
f = 2*P0 / (b + sqrt(b^2 + 4*a*P0)). The solver either converges within
`max_iterations` or raises DidNotConverge.

Equilibrium efficiency = min over primers of the on-target occupancy
(fraction of the intended template site bound by its primer).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, confloat, conint

from backend.app.core.errors import DidNotConverge, InvalidInput
from backend.app.core.structure.fold import fold
from backend.app.core.thermo.parameters import ParameterSet, get_parameter_set
from backend.app.core.thermo.sequence import COMPLEMENT, normalize_sequence, reverse_complement
from backend.app.core.thermo.tm import duplex_energy

logger = logging.getLogger(__name__)

R_KCAL = 1.987e-3  # kcal/(mol*K)
MAX_EXPONENT = 700.0
MIN_TARGET_ANCHOR = 12

DEFAULT_PRIMER_CONC = 0.5e-6   # M
DEFAULT_TEMPLATE_CONC = 1e-9   # M

SPECIES = ("free", "hairpin", "homodimer", "heterodimer", "target", "off_target")


class EquilibriumOptions(BaseModel):
    temperature: float = Field(55.0, description="Annealing temperature (°C)")
    primer_conc: confloat(ge=0) = Field(DEFAULT_PRIMER_CONC, description="Total concentration of each primer (M)")
    template_conc: confloat(ge=0) = Field(DEFAULT_TEMPLATE_CONC, description="Concentration of each template site (M)")
    max_iterations: conint(ge=1) = 500
    tolerance: confloat(gt=0) = 1e-12
    damping: confloat(gt=0, le=1) = 0.5
    include_off_target: bool = True


@dataclass(slots=True)
class PrimerSpecies:
    """dG inputs for one primer (kcal/mol; None = species absent)."""
    name: str
    sequence: str
    total: float
    hairpin_dg: Optional[float] = None
    homodimer_dg: Optional[float] = None
    target_dg: Optional[float] = None
    off_target_dgs: List[float] = field(default_factory=list)


@dataclass(slots=True)
class PrimerEquilibrium:
    name: str
    fractions: Dict[str, float]
    target_occupancy: float
    free_conc: float

    @property
    def total_fraction(self) -> float:
        return sum(self.fractions.values())


@dataclass(slots=True)
class EquilibriumState:
    primers: Dict[str, PrimerEquilibrium]
    constants: Dict[str, float]
    iterations: int
    efficiency: float
    bottleneck: str
    quality: str
    temperature_c: float

    def losses(self, name: str) -> Dict[str, float]:
        fr = self.primers[name].fractions
        return {k: v for k, v in fr.items() if k not in ("free", "target")}


def classify_efficiency(efficiency: float) -> str:
    if efficiency >= 0.95:
        return "excellent"
    if efficiency >= 0.85:
        return "good"
    if efficiency >= 0.70:
        return "acceptable"
    if efficiency >= 0.50:
        return "marginal"
    return "poor"


def efficiency_to_score(efficiency: float, optimal: float = 0.95, acceptable: float = 0.70, steepness: float = 10.0) -> float:
    """Map efficiency to 0..100: flat at optimal, linear 70..100 above `acceptable`, logistic below."""
    if efficiency >= optimal:
        return 100.0
    if efficiency >= acceptable:
        return 70.0 + 30.0 * (efficiency - acceptable) / (optimal - acceptable)
    return 70.0 / (1.0 + math.exp(steepness * (acceptable - efficiency)))


def association_constant(dg: Optional[float], temperature_c: float) -> float:
    """K = exp(-dG/RT); 0 for an absent species."""
    if dg is None:
        return 0.0
    x = -dg / (R_KCAL * (temperature_c + 273.15))
    return math.exp(min(x, MAX_EXPONENT))


def _root(p0: float, a: float, b: float) -> float:
    """Positive root of a*f^2 + b*f - p0 = 0 without cancellation."""
    return 2.0 * p0 / (b + math.sqrt(b * b + 4.0 * a * p0))


def solve_equilibrium(
    species: Sequence[PrimerSpecies],
    heterodimer_dgs: Optional[Mapping[Tuple[str, str], float]] = None,
    options: Optional[EquilibriumOptions] = None,
) -> EquilibriumState:
    """
    Solve the coupled mass-action system for all primers in `species`.

    heterodimer_dgs is keyed by (name_a, name_b); order does not matter.
    """
    opts = options or EquilibriumOptions()
    if not species:
        raise InvalidInput("at least one primer is required")
    names = [sp.name for sp in species]
    if len(set(names)) != len(names):
        raise InvalidInput("primer names must be unique")
    for sp in species:
        if not (sp.total > 0):
            raise InvalidInput(f"total concentration of {sp.name} must be > 0")
    t0 = opts.template_conc
    if not (t0 > 0):
        raise InvalidInput("template concentration must be > 0")

    temp = opts.temperature
    kh = {sp.name: association_constant(sp.hairpin_dg, temp) for sp in species}
    khomo = {sp.name: association_constant(sp.homodimer_dg, temp) for sp in species}
    ktarget = {sp.name: association_constant(sp.target_dg, temp) for sp in species}
    koff = {
        sp.name: [association_constant(dg, temp) for dg in sp.off_target_dgs] if opts.include_off_target else []
        for sp in species
    }
    khet: Dict[str, Dict[str, float]] = {n: {} for n in names}
    for (a, b), dg in (heterodimer_dgs or {}).items():
        if a in khet and b in khet and a != b:
            k = association_constant(dg, temp)
            khet[a][b] = k
            khet[b][a] = k

    def site_terms(name: str, f: float) -> Tuple[float, float, float]:
        """(sum T0*K/(1+K*f), target bound conc, off-target bound conc)."""
        s = 0.0
        kt = ktarget[name]
        target_bound = 0.0
        if kt > 0:
            s += t0 * kt / (1.0 + kt * f)
            target_bound = t0 * kt * f / (1.0 + kt * f)
        off_bound = 0.0
        for k in koff[name]:
            s += t0 * k / (1.0 + k * f)
            off_bound += t0 * k * f / (1.0 + k * f)
        return s, target_bound, off_bound

    totals = {sp.name: sp.total for sp in species}
    free = {n: totals[n] for n in names}
    iterations = 0
    converged = False
    delta = float("inf")
    while iterations < opts.max_iterations:
        iterations += 1
        delta = 0.0
        for n in names:
            p0 = totals[n]
            sites, _, _ = site_terms(n, free[n])
            het = sum(k * free[q] for q, k in khet[n].items())
            b = 1.0 + kh[n] + het + sites
            f_new = _root(p0, 2.0 * khomo[n], b)
            f_new = free[n] + opts.damping * (f_new - free[n])
            delta = max(delta, abs(f_new - free[n]) / p0)
            free[n] = f_new
        if delta < opts.tolerance:
            converged = True
            break
    if not converged:
        raise DidNotConverge(iterations, delta)

    primers: Dict[str, PrimerEquilibrium] = {}
    worst_residual = 0.0
    for n in names:
        f = free[n]
        p0 = totals[n]
        _, target_bound, off_bound = site_terms(n, f)
        fractions = {
            "free": f / p0,
            "hairpin": kh[n] * f / p0,
            "homodimer": 2.0 * khomo[n] * f * f / p0,
            "heterodimer": f * sum(k * free[q] for q, k in khet[n].items()) / p0,
            "target": target_bound / p0,
            "off_target": off_bound / p0,
        }
        worst_residual = max(worst_residual, abs(sum(fractions.values()) - 1.0))
        occupancy = target_bound / t0
        primers[n] = PrimerEquilibrium(name=n, fractions=fractions, target_occupancy=occupancy, free_conc=f)
    if worst_residual > 1e-6:
        raise DidNotConverge(iterations, worst_residual)

    bottleneck = min(names, key=lambda n: primers[n].target_occupancy)
    efficiency = primers[bottleneck].target_occupancy
    constants = {}
    for n in names:
        constants[f"{n}.hairpin"] = kh[n]
        constants[f"{n}.homodimer"] = khomo[n]
        constants[f"{n}.target"] = ktarget[n]
        for idx, k in enumerate(koff[n]):
            constants[f"{n}.off_target[{idx}]"] = k
    logger.debug("equilibrium converged in %d iterations: efficiency=%.4f (bottleneck=%s)", iterations, efficiency, bottleneck)
    return EquilibriumState(
        primers=primers,
        constants=constants,
        iterations=iterations,
        efficiency=efficiency,
        bottleneck=bottleneck,
        quality=classify_efficiency(efficiency),
        temperature_c=temp,
    )


# ---------------------------------------------------------------------------------------------
# Species free energies from sequences
# ---------------------------------------------------------------------------------------------

def _structure_dg(a: str, b: Optional[str], temperature: float, ps: ParameterSet) -> Optional[float]:
    res = fold(a, b, temperature=temperature, parameter_set=ps)
    return res.dg if res.pairs else None


def site_duplex_dg(primer: str, site: str, temperature: float, ps: ParameterSet) -> float:
    """dG of `primer` on a template site written in primer orientation (same length)."""
    if len(site) != len(primer):
        raise InvalidInput("binding site must be as long as the primer")
    bottom = "".join(COMPLEMENT[b] for b in site)
    return duplex_energy(primer, temperature, ps, complement=bottom, min_length=1).dg


def locate_target_site(primer: str, template: str) -> Optional[str]:
    """
    Template segment (primer orientation) the primer anneals to: the primer's
    longest 3' suffix (>= 12 nt) found on either strand, padded with the
    primer's own 5' tail so that tailed primers still get a site.
    """
    fwd_strand = template
    rev_strand = reverse_complement(template)
    for k in range(len(primer), MIN_TARGET_ANCHOR - 1, -1):
        suffix = primer[-k:]
        if suffix in fwd_strand or suffix in rev_strand:
            return suffix
    return None


def equilibrium(
    primer: str,
    partners: Sequence[str] = (),
    on_target_site: Optional[str] = None,
    off_target_sites: Sequence[str] = (),
    options: Optional[EquilibriumOptions] = None,
    parameter_set: Optional[ParameterSet] = None,
) -> EquilibriumState:
    """
    Equilibrium of one primer with its partners in solution.

    Sites are written in primer orientation (the sense sequence the primer
    matches). Partners share the primer's total concentration and only their
    on-target state is left out (they have no site here).
    """
    opts = options or EquilibriumOptions()
    ps = parameter_set or get_parameter_set()
    temp = opts.temperature
    p = normalize_sequence(primer, min_length=6, label="primer")
    target_dg = None
    if on_target_site:
        site = normalize_sequence(on_target_site, label="on-target site")
        if len(site) == len(p):
            target_dg = site_duplex_dg(p, site, temp, ps)
        else:
            target_dg = duplex_energy(site, temp, ps, min_length=1).dg
    offs = []
    for s in off_target_sites:
        site = normalize_sequence(s, label="off-target site")
        offs.append(site_duplex_dg(p, site, temp, ps) if len(site) == len(p) else duplex_energy(site, temp, ps, min_length=1).dg)

    species = [PrimerSpecies(
        name="primer", sequence=p, total=opts.primer_conc,
        hairpin_dg=_structure_dg(p, None, temp, ps),
        homodimer_dg=_structure_dg(p, p, temp, ps),
        target_dg=target_dg, off_target_dgs=offs,
    )]
    het: Dict[Tuple[str, str], float] = {}
    for idx, partner in enumerate(partners):
        q = normalize_sequence(partner, min_length=6, label="partner")
        name = f"partner{idx + 1}"
        species.append(PrimerSpecies(
            name=name, sequence=q, total=opts.primer_conc,
            hairpin_dg=_structure_dg(q, None, temp, ps),
            homodimer_dg=_structure_dg(q, q, temp, ps),
        ))
        dg = _structure_dg(p, q, temp, ps)
        if dg is not None:
            het[("primer", name)] = dg
    state = solve_equilibrium(species, het, opts)
    # partners carry no site; efficiency refers to the primer only
    state.efficiency = state.primers["primer"].target_occupancy
    state.bottleneck = "primer"
    state.quality = classify_efficiency(state.efficiency)
    return state


def pair_equilibrium(
    fwd: str,
    rev: str,
    template: Optional[str] = None,
    options: Optional[EquilibriumOptions] = None,
    parameter_set: Optional[ParameterSet] = None,
    off_target_dgs: Optional[Mapping[str, Sequence[float]]] = None,
) -> EquilibriumState:
    """
    Coupled equilibrium of a forward/reverse pair on one template.

    `off_target_dgs` maps "fwd"/"rev" to precomputed off-target site dGs
    (see scoring.offtarget); without a template no target species exists.
    """
    opts = options or EquilibriumOptions()
    ps = parameter_set or get_parameter_set()
    temp = opts.temperature
    f = normalize_sequence(fwd, min_length=6, label="forward primer")
    r = normalize_sequence(rev, min_length=6, label="reverse primer")
    tmpl = normalize_sequence(template, label="template") if template else None

    species = []
    for name, seq in (("fwd", f), ("rev", r)):
        target_dg = None
        if tmpl:
            site = locate_target_site(seq, tmpl)
            if site is not None:
                target_dg = duplex_energy(site, temp, ps, min_length=1).dg
        species.append(PrimerSpecies(
            name=name, sequence=seq, total=opts.primer_conc,
            hairpin_dg=_structure_dg(seq, None, temp, ps),
            homodimer_dg=_structure_dg(seq, seq, temp, ps),
            target_dg=target_dg,
            off_target_dgs=list((off_target_dgs or {}).get(name, [])),
        ))
    het = {}
    dg = _structure_dg(f, r, temp, ps)
    if dg is not None:
        het[("fwd", "rev")] = dg
    return solve_equilibrium(species, het, opts)
