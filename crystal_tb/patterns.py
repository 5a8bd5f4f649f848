"""
Patterns Module

Regular expressions and token helpers shared by the section readers.
"""

import re
from typing import List, Optional

# ==============================
# Regular Expression Patterns
# ==============================

float_pattern = re.compile(
    r'^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eEdD][-+]?\d+)?$'
)
matrix_header_pattern = re.compile(
    r'^\s*(OVERLAP|FOCK) MATRIX(?:\s*\((REAL|IMAG) PART\))?\s*-\s*CELL N\.\s*'
    r'(\d+)\(\s*(-?\d+)\s*(-?\d+)\s*(-?\d+)\s*\)'
)
shell_header_pattern = re.compile(
    r'^\s*(?:\d+\s*-\s*)?(\d+)\s+([A-Z]+)\s*$'
)
# Spin channel markers must open the line: the Mulliken header
# "ALPHA+BETA ELECTRONS" mentions both words but selects no channel.
beta_marker_pattern = re.compile(r'^\s*BETA\s+ELECTRONS\b')
alpha_marker_pattern = re.compile(r'^\s*ALPHA\s+ELECTRONS\b')
integer_after_pattern = re.compile(r'^\s*(-?\d+)\b')

# ==============================
# Section Markers
# ==============================

LATTICE_MARKER = "DIRECT LATTICE VECTOR COMPONENTS"
NATOMS_MARKER = "N. OF ATOMS PER CELL"
NSHELLS_MARKER = "NUMBER OF SHELLS"
NORBITALS_MARKER = "NUMBER OF AO"
ELECTRONS_MARKER = "N. OF ELECTRONS PER CELL"
CORE_ELECTRONS_MARKER = "CORE ELECTRONS PER CELL"
BASIS_MARKER = "LOCAL ATOMIC FUNCTIONS BASIS SET"
MAGNETIC_MARKER = "UNRESTRICTED OPEN SHELL"
SOC_MARKER = "SPIN-ORBIT COUPLING"


def to_float(token: str) -> Optional[float]:
    """Convert a Fortran-style number (D exponents allowed), or None."""
    if not float_pattern.match(token):
        return None
    return float(token.replace('D', 'E').replace('d', 'e'))


def numeric_tokens(line: str) -> Optional[List[float]]:
    """Return every token of the line as a float, or None if any is not numeric."""
    values = []
    for token in line.split():
        value = to_float(token)
        if value is None:
            return None
        values.append(value)
    return values


def integer_after(line: str, marker: str) -> Optional[int]:
    """Integer immediately following ``marker`` in ``line``."""
    tail = line[line.find(marker) + len(marker):]
    match = integer_after_pattern.match(tail)
    if match is None:
        return None
    return int(match.group(1))
