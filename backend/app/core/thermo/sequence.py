# File: backend/app/core/thermo/sequence.py
# Version: v0.1.0
"""
Sequence normalization and small composition helpers.

Every public entry point of the engine funnels raw strings through
`normalize_sequence` so downstream code can assume uppercase ACGT.
"""

from __future__ import annotations

from backend.app.core.errors import InvalidInput

DNA_BASES = frozenset("ACGT")
IUPAC_BASES = frozenset("ACGTRYSWKMBDHVN")

COMPLEMENT = {"A": "T", "T": "A", "G": "C", "C": "G", "N": "N"}

_RC_TABLE = str.maketrans("ACGTRYSWKMBDHVNacgtryswkmbdhvn", "TGCAYRSWMKVHDBNtgcayrswmkvhdbn")


def normalize_sequence(seq: str, *, min_length: int = 1, allow_ambiguous: bool = False, label: str = "sequence") -> str:
    """
    Strip whitespace, uppercase and validate a DNA string.

    Raises InvalidInput when the result is shorter than `min_length` or
    contains symbols outside ACGT (or IUPAC when `allow_ambiguous`).
    """
    if seq is None:
        raise InvalidInput(f"{label} is required")
    s = "".join(str(seq).split()).upper()
    if len(s) < max(1, min_length):
        raise InvalidInput(f"{label} must be at least {max(1, min_length)} nt (got {len(s)})")
    alphabet = IUPAC_BASES if allow_ambiguous else DNA_BASES
    bad = sorted(set(s) - alphabet)
    if bad:
        raise InvalidInput(f"{label} contains invalid bases: {''.join(bad)}")
    return s


def reverse_complement(seq: str) -> str:
    """Reverse-complement (IUPAC aware)."""
    return seq.translate(_RC_TABLE)[::-1]


def complement(base: str) -> str:
    return COMPLEMENT.get(base, "N")


def is_complement(a: str, b: str) -> bool:
    return COMPLEMENT.get(a) == b and a != "N"


def gc_percent(seq: str) -> float:
    if not seq:
        return 0.0
    s = seq.upper()
    return 100.0 * (s.count("G") + s.count("C")) / len(s)


def longest_homopolymer(seq: str) -> int:
    if not seq:
        return 0
    best = run = 1
    for prev, ch in zip(seq, seq[1:]):
        run = run + 1 if ch == prev else 1
        if run > best:
            best = run
    return best


def is_palindrome(seq: str) -> bool:
    """True when the sequence equals its own reverse complement."""
    return bool(seq) and seq == reverse_complement(seq)
