# File: backend/app/core/errors.py
# Version: v0.1.0
"""
Error taxonomy shared by the thermodynamics, scoring and assembly layers.

- InvalidInput: malformed sequence or out-of-range option (recoverable, HTTP 400).
- ParameterTableIncomplete: a thermodynamic table is missing a key (fatal).
- DidNotConverge: the equilibrium solver ran out of iterations.
- InvalidScore: a sub-score or composite came out non-finite (fatal).
- InfeasibleError: no overhang set satisfies the hard constraints. The optimizer
  catches it and returns a flagged best-effort result instead.
"""

from __future__ import annotations

from typing import Dict, Optional


class InvalidInput(ValueError):
    """Raised for malformed sequences and out-of-range numeric options."""


class ParameterTableIncomplete(RuntimeError):
    """Raised when a nearest-neighbor table lacks a required key."""

    def __init__(self, table: str, key: str, parameter_set: str = ""):
        self.table = table
        self.key = key
        self.parameter_set = parameter_set
        where = f" in parameter set '{parameter_set}'" if parameter_set else ""
        super().__init__(f"missing key '{key}' in table {table}{where}")


class DidNotConverge(RuntimeError):
    """Raised when an iterative solver exceeds its iteration bound."""

    def __init__(self, iterations: int, residual: float):
        self.iterations = iterations
        self.residual = residual
        super().__init__(f"no convergence after {iterations} iterations (residual={residual:.3e})")


class InvalidScore(RuntimeError):
    """Raised when a score is NaN/inf; never folded into a composite."""

    def __init__(self, name: str, value: float):
        self.name = name
        self.value = value
        super().__init__(f"sub-score '{name}' is not finite: {value!r}")


class InfeasibleError(RuntimeError):
    """Raised by a search strategy when no set satisfies the hard constraints."""

    def __init__(self, message: str, reasons: Optional[Dict[str, int]] = None, junction_index: Optional[int] = None):
        self.junction_index = junction_index
        self.reasons = dict(sorted((reasons or {}).items(), key=lambda kv: kv[1], reverse=True))
        self.message = message
        super().__init__(f"{message} ({self.formatted_reasons()})" if self.reasons else message)

    def formatted_reasons(self) -> str:
        if not self.reasons:
            return "no reason counters recorded"
        return ", ".join(f"{k}:{v}" for k, v in self.reasons.items())
