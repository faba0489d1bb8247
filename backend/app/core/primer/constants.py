# File: backend/app/core/primer/constants.py
# Version: v0.2.0
"""
Constants and defaults for the Primer subsystem.

Shared by parameters.py, the JSON defaults in backend/app/config and the
designer.
"""

from __future__ import annotations

DEFAULT_MIN_LEN = 18
DEFAULT_MAX_LEN = 28

DEFAULT_TM_MIN = 55.0
DEFAULT_TM_MAX = 65.0
DEFAULT_TM_TOLERANCE = 5.0
DEFAULT_TM_DIFF_MAX = 5.0

DEFAULT_GC_MIN = 30.0
DEFAULT_GC_MAX = 70.0

DEFAULT_HOMOPOLYMER_MAX = 4

DEFAULT_SEARCH_WINDOW = 30
DEFAULT_PRODUCT_MIN = 50

DEFAULT_PARAMETER_SET = "santalucia2004"

DEFAULT_MAX_PAIRS = 5
DEFAULT_SHORTLIST = 20
