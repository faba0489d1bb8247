# File: backend/app/core/thermo/nn_tables.py
# Version: v0.1.0
"""
Raw DNA nearest-neighbor data (dH kcal/mol, dS cal/mol/K).

Key conventions
---------------
Stack keys read "XY/ZW": top strand 5'-XY-3' paired with bottom strand 3'-ZW-5'.
Only one orientation of each stack is listed here; `parameters.ParameterSet`
expands the 180-degree rotation ("XY/ZW" == "WZ/YX") when it is built.

Sources
-------
- Watson-Crick stacks and initiation: SantaLucia & Hicks (2004), SantaLucia (1998).
- Internal single mismatches: Allawi & SantaLucia (1997-1998), Peyret et al. (1999).
- Terminal mismatches: Bommarito et al. (2000).
- Loop tables, tri/tetraloop bonuses: SantaLucia & Hicks (2004). Loop entries are
  purely entropic (dH = 0), converted from the published dG37 values.
"""

from __future__ import annotations

from typing import Dict, Tuple

Energy = Tuple[float, float]

# --- Watson-Crick stacks ---------------------------------------------------------------------

NN_2004: Dict[str, Energy] = {
    "init": (0.2, -5.7),
    "init_A/T": (2.2, 6.9),
    "init_G/C": (0.0, 0.0),
    "sym": (0.0, -1.4),
    "AA/TT": (-7.6, -21.3),
    "AT/TA": (-7.2, -20.4),
    "TA/AT": (-7.2, -20.4),
    "CA/GT": (-8.5, -22.7),
    "GT/CA": (-8.4, -22.4),
    "CT/GA": (-7.8, -21.0),
    "GA/CT": (-8.2, -22.2),
    "CG/GC": (-10.6, -27.2),
    "GC/CG": (-9.8, -24.4),
    "GG/CC": (-8.0, -19.0),
}

NN_1998: Dict[str, Energy] = {
    "init": (0.0, 0.0),
    "init_A/T": (2.3, 4.1),
    "init_G/C": (0.1, -2.8),
    "sym": (0.0, -1.4),
    "AA/TT": (-7.9, -22.2),
    "AT/TA": (-7.2, -20.4),
    "TA/AT": (-7.2, -21.3),
    "CA/GT": (-8.5, -22.7),
    "GT/CA": (-8.4, -22.4),
    "CT/GA": (-7.8, -21.0),
    "GA/CT": (-8.2, -22.2),
    "CG/GC": (-10.6, -27.2),
    "GC/CG": (-9.8, -24.4),
    "GG/CC": (-8.0, -19.9),
}

# --- Single internal mismatches (Watson-Crick pair first) ------------------------------------

INTERNAL_MM: Dict[str, Energy] = {
    # G.T
    "AG/TT": (1.0, 0.9), "CG/GT": (-4.1, -11.7), "GG/CT": (3.3, 10.4), "TG/AT": (-0.1, -1.7),
    "AT/TG": (-2.5, -8.3), "CT/GG": (-2.8, -8.0), "GT/CG": (-4.4, -12.3), "TT/AG": (-1.3, -5.3),
    # G.A
    "AA/TG": (-0.6, -2.3), "CA/GG": (-0.7, -2.3), "GA/CG": (-0.6, -1.0), "TA/AG": (0.7, 0.7),
    "AG/TA": (-0.7, -2.3), "CG/GA": (-4.0, -13.2), "GG/CA": (0.5, 3.2), "TG/AA": (3.0, 7.4),
    # C.T
    "AC/TT": (0.7, 0.2), "CC/GT": (-0.8, -4.5), "GC/CT": (2.3, 5.4), "TC/AT": (1.2, 0.7),
    "AT/TC": (-1.2, -6.2), "CT/GC": (-1.5, -6.1), "GT/CC": (5.2, 13.5), "TT/AC": (1.0, 0.7),
    # A.C
    "AA/TC": (2.3, 4.6), "CA/GC": (1.9, 3.7), "GA/CC": (5.2, 14.2), "TA/AC": (3.4, 8.0),
    "AC/TA": (5.3, 14.6), "CC/GA": (0.6, -0.6), "GC/CA": (-0.7, -3.8), "TC/AA": (7.6, 20.2),
    # A.A
    "AA/TA": (1.2, 1.7), "CA/GA": (-0.9, -4.2), "GA/CA": (-2.9, -9.8), "TA/AA": (4.7, 12.9),
    # C.C
    "AC/TC": (0.0, -4.4), "CC/GC": (-1.5, -7.2), "GC/CC": (3.6, 8.9), "TC/AC": (6.1, 16.4),
    # G.G
    "AG/TG": (-3.1, -9.5), "CG/GG": (-4.9, -15.3), "GG/CG": (-6.0, -15.8), "TG/AG": (1.6, 3.6),
    # T.T
    "AT/TT": (-2.7, -10.8), "CT/GT": (-5.0, -15.8), "GT/CT": (-2.2, -8.4), "TT/AT": (0.2, -1.5),
}

# --- Terminal mismatches (closing pair first, mismatch toward the loop / free end) ------------

TERMINAL_MM: Dict[str, Energy] = {
    "AA/TA": (-3.1, -7.8), "TA/AA": (-2.5, -6.3), "CA/GA": (-4.3, -10.7), "GA/CA": (-8.0, -22.5),
    "AC/TC": (-0.1, 0.5), "TC/AC": (-0.7, -1.3), "CC/GC": (-2.1, -5.1), "GC/CC": (-3.9, -10.6),
    "AG/TG": (-1.1, -2.1), "TG/AG": (-1.1, -2.7), "CG/GG": (-3.8, -9.5), "GG/CG": (-0.7, -19.2),
    "AT/TT": (-2.4, -6.5), "TT/AT": (-3.2, -8.9), "CT/GT": (-6.1, -16.9), "GT/CT": (-7.4, -21.2),
    "AA/TC": (-1.6, -4.0), "AC/TA": (-1.8, -3.8), "CA/GC": (-2.6, -5.9), "CC/GA": (-2.7, -6.0),
    "GA/CC": (-5.0, -13.8), "GC/CA": (-3.2, -7.1), "TA/AC": (-2.3, -5.9), "TC/AA": (-2.7, -7.0),
    "AC/TT": (-0.9, -1.7), "AT/TC": (-2.3, -6.3), "CC/GT": (-3.2, -8.0), "CT/GC": (-3.9, -10.6),
    "GC/CT": (-4.9, -13.5), "GT/CC": (-3.0, -7.8), "TC/AT": (-2.5, -6.3), "TT/AC": (-0.7, -1.2),
    "AA/TG": (-1.9, -4.4), "AG/TA": (-2.5, -5.9), "CA/GG": (-3.9, -9.6), "CG/GA": (-6.0, -15.5),
    "GA/CG": (-4.3, -11.1), "GG/CA": (-4.6, -11.4), "TA/AG": (-2.0, -4.7), "TG/AA": (-2.4, -5.8),
    "AG/TT": (-3.2, -8.7), "AT/TG": (-3.5, -9.4), "CG/GT": (-3.8, -9.0), "CT/GG": (-6.6, -18.7),
    "GG/CT": (-5.7, -15.9), "GT/CG": (-5.9, -16.1), "TG/AT": (-3.9, -10.5), "TT/AG": (-3.6, -9.8),
}

# --- Loop tables (size -> (dH, dS)) -----------------------------------------------------------

HAIRPIN_LOOPS: Dict[int, Energy] = {
    3: (0.0, -11.3), 4: (0.0, -11.3), 5: (0.0, -10.6), 6: (0.0, -12.9), 7: (0.0, -13.5),
    8: (0.0, -13.9), 9: (0.0, -14.5), 10: (0.0, -14.8), 11: (0.0, -15.5), 12: (0.0, -16.1),
    13: (0.0, -16.1), 14: (0.0, -16.4), 15: (0.0, -16.8), 16: (0.0, -17.1), 17: (0.0, -17.4),
    18: (0.0, -17.7), 19: (0.0, -18.1), 20: (0.0, -18.4), 21: (0.0, -18.7), 22: (0.0, -18.7),
    23: (0.0, -19.0), 24: (0.0, -19.3), 25: (0.0, -19.7), 26: (0.0, -19.7), 27: (0.0, -19.7),
    28: (0.0, -20.0), 29: (0.0, -20.0), 30: (0.0, -20.3),
}

BULGE_LOOPS: Dict[int, Energy] = {
    1: (0.0, -12.9), 2: (0.0, -9.4), 3: (0.0, -10.0), 4: (0.0, -10.3), 5: (0.0, -10.6),
    6: (0.0, -11.3), 7: (0.0, -11.6), 8: (0.0, -11.9), 9: (0.0, -12.3), 10: (0.0, -12.6),
    11: (0.0, -12.9), 12: (0.0, -13.2), 13: (0.0, -13.5), 14: (0.0, -13.9), 15: (0.0, -14.2),
    16: (0.0, -14.5), 17: (0.0, -14.8), 18: (0.0, -14.8), 19: (0.0, -15.2), 20: (0.0, -15.5),
    21: (0.0, -15.8), 22: (0.0, -16.1), 23: (0.0, -16.4), 24: (0.0, -16.8), 25: (0.0, -16.8),
    26: (0.0, -17.1), 27: (0.0, -17.4), 28: (0.0, -17.7), 29: (0.0, -18.1), 30: (0.0, -18.4),
}

INTERNAL_LOOPS: Dict[int, Energy] = {
    3: (0.0, -10.3), 4: (0.0, -11.6), 5: (0.0, -12.9), 6: (0.0, -14.2),
    7: (0.0, -14.8), 8: (0.0, -15.5), 9: (0.0, -15.8), 10: (0.0, -15.8), 11: (0.0, -16.1),
    12: (0.0, -16.8), 13: (0.0, -16.4), 14: (0.0, -17.4), 15: (0.0, -17.7), 16: (0.0, -18.1),
    17: (0.0, -18.4), 18: (0.0, -18.7), 19: (0.0, -18.7), 20: (0.0, -19.0), 21: (0.0, -19.0),
    22: (0.0, -19.3), 23: (0.0, -19.7), 24: (0.0, -20.0), 25: (0.0, -20.3), 26: (0.0, -20.3),
    27: (0.0, -20.6), 28: (0.0, -21.0), 29: (0.0, -21.0), 30: (0.0, -21.3),
}

# Closing pair + loop bases; triloops are 5-mers, tetraloops 6-mers.
TRI_TETRA_LOOPS: Dict[str, Energy] = {
    "AGAAT": (-1.5, 0.0), "AGCAT": (-1.5, 0.0), "AGGAT": (-1.5, 0.0), "AGTAT": (-1.5, 0.0),
    "CGAAG": (-2.0, 0.0), "CGCAG": (-2.0, 0.0), "CGGAG": (-2.0, 0.0), "CGTAG": (-2.0, 0.0),
    "GGAAC": (-2.0, 0.0), "GGCAC": (-2.0, 0.0), "GGGAC": (-2.0, 0.0), "GGTAC": (-2.0, 0.0),
    "TGAAA": (-1.5, 0.0), "TGCAA": (-1.5, 0.0), "TGGAA": (-1.5, 0.0), "TGTAA": (-1.5, 0.0),
    "AAAAAT": (0.5, 0.6), "AAAACT": (0.7, -1.6), "AAACAT": (1.0, -1.6), "ACTTGT": (0.0, -4.2),
    "AGAAAT": (-1.1, -1.6), "AGAGAT": (-1.1, -1.6), "AGATAT": (-1.5, -1.6), "AGCAAT": (-1.6, -1.6),
    "AGCGAT": (-1.1, -1.6), "AGCTTT": (0.2, -1.6), "AGGAAT": (-1.1, -1.6), "AGGGAT": (-1.1, -1.6),
    "AGGGGT": (0.5, -0.6), "AGTAAT": (-1.6, -1.6), "AGTGAT": (-1.1, -1.6), "AGTTCT": (0.8, -1.6),
    "ATTCGT": (-0.2, -1.6), "ATTTGT": (0.0, -1.6), "ATTTTT": (-0.5, -1.6), "CAAAAG": (0.5, 1.3),
    "CAAACG": (0.7, 0.0), "CAACAG": (1.0, 0.0), "CAACCG": (0.0, 0.0), "CCTTGG": (0.0, -2.6),
    "CGAAAG": (-1.1, -3.2), "CGAGAG": (-1.1, -3.2), "CGATAG": (-1.5, -3.2), "CGCAAG": (-1.6, -3.2),
    "CGCGAG": (-1.1, -3.2), "CGCTTG": (0.2, -3.2), "CGGAAG": (-1.1, -3.2), "CGGGAG": (-1.0, -3.2),
    "CGGGGG": (0.5, -2.2), "CGTAAG": (-1.6, -3.2), "CGTGAG": (-1.1, -3.2), "CGTTCG": (0.8, -3.2),
    "CTTCGG": (-0.2, -3.2), "CTTTGG": (0.0, -3.2), "CTTTTG": (-0.5, -3.2), "GAAAAC": (0.5, 3.2),
    "GAAACC": (0.7, 0.0), "GAACAC": (1.0, 0.0), "GCCAGC": (0.0, -2.4), "GGAAAC": (-1.1, -3.2),
    "GGAGAC": (-1.1, -3.2), "GGATAC": (-1.6, -3.2), "GGCAAC": (-1.6, -3.2), "GGCGAC": (-1.1, -3.2),
    "GGGAAC": (-1.1, -3.2), "GGGGAC": (-1.1, -3.2), "GGTAAC": (-1.6, -3.2), "GGTGAC": (-1.1, -3.2),
    "GTTCGC": (-0.2, -3.2), "TAAAAA": (0.5, -0.3), "TAAACA": (0.7, -1.6), "TAACAA": (1.0, -1.6),
    "TCTTGA": (0.0, -4.2), "TGAAAA": (-1.1, -1.6), "TGAGAA": (-1.1, -1.6), "TGATAA": (-1.6, -1.6),
    "TGCAAA": (-1.6, -1.6), "TGCGAA": (-1.1, -1.6), "TGGAAA": (-1.1, -1.6), "TGGGAA": (-1.1, -1.6),
    "TGTAAA": (-1.6, -1.6), "TGTGAA": (-1.1, -1.6), "TTTCGA": (-0.2, -1.6), "TTTTGA": (0.0, -1.6),
}

# Linear multiloop: a (closing), b (per unpaired base), c (per branch), d (reserved, unused).
MULTIBRANCH: Tuple[float, float, float, float] = (2.6, 0.2, 0.2, 2.0)

