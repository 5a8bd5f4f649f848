"""
Basis Set Module

This module reads the 'LOCAL ATOMIC FUNCTIONS BASIS SET' section of a
CRYSTAL output file. For every chemical species the shells are read with
their Gaussian expansion coefficients, and the number of atomic orbitals
contributed by the species is derived from the cumulative AO index printed
in the shell headers.

Section layout::

    *******************************************************************
      ATOM   X(AU)   Y(AU)   Z(AU)  N. TYPE  EXPONENT  S COEF  P COEF  D/F/G COEF
    *******************************************************************
      1 B     0.000   0.000   0.000
                                    1 S
                                          2.788E+03  2.150E-03  0.000E+00  0.000E+00
                                2-   5 SP
                                          ...
      2 B     1.446   2.504   0.000

Only the first atom of each species carries shells; later atoms of the same
species print the coordinate line alone.
"""

import numpy as np
from typing import Dict, List, Tuple
from dataclasses import dataclass, field

from .cursor import LineCursor
from .exceptions import CrystalParseError, LineFormatError
from .patterns import numeric_tokens, shell_header_pattern
from .structure import SpeciesTable


@dataclass(frozen=True)
class GaussianTerm:
    """One primitive of a contracted shell."""
    exponent: float
    s_coefficient: float
    p_coefficient: float
    d_coefficient: float


@dataclass(frozen=True)
class Shell:
    """
    Contracted shell of one species.

    Attributes
    ----------
    shell_type : str
        Angular label as printed (S, SP, P, D, ...)
    orbital_index : int
        Cumulative AO index of the last orbital of this shell
    terms : tuple of GaussianTerm
        Gaussian expansion, in file order (may be empty)
    """
    shell_type: str
    orbital_index: int
    terms: Tuple[GaussianTerm, ...] = ()


@dataclass
class BasisResult:
    """Shells and orbital counts, both indexed by species code."""
    shells: Dict[int, Tuple[Shell, ...]] = field(default_factory=dict)
    orbitals_per_species: List[int] = field(default_factory=list)


def _read_coefficients(cursor: LineCursor) -> Tuple[GaussianTerm, ...]:
    """Consume 4-field coefficient rows, leaving the first other row unread."""
    terms = []
    while True:
        cursor.mark()
        line = cursor.readline()
        values = numeric_tokens(line) if line is not None else None
        if values is None or len(values) != 4:
            cursor.rewind()
            return tuple(terms)
        terms.append(GaussianTerm(*values))


def _read_shell(cursor: LineCursor) -> Shell:
    line = cursor.require_line("shell header")
    match = shell_header_pattern.match(line)
    if match is None:
        raise LineFormatError("shell header 'N TYPE' or 'A- B TYPE'", line, cursor.line_number)
    return Shell(
        shell_type=match.group(2),
        orbital_index=int(match.group(1)),
        terms=_read_coefficients(cursor),
    )


def parse_basis(
    cursor: LineCursor,
    natoms: int,
    species: SpeciesTable,
    shells_per_species: List[int],
    motif_codes: np.ndarray
) -> BasisResult:
    """
    Read the basis set section.

    Parameters
    ----------
    cursor : LineCursor
        Positioned right after the basis set marker line
    natoms : int
        Number of atom lines in the section
    species : SpeciesTable
        Species table filled by the motif reader
    shells_per_species : list of int
        Declared shells per species code
    motif_codes : ndarray of shape (natoms,)
        Species code of every atom, in motif order

    Returns
    -------
    BasisResult
        Shells and number of orbitals per species code
    """
    result = BasisResult(orbitals_per_species=[0] * len(species))

    for _ in range(3):
        cursor.require_line("basis set header")

    for atom_index in range(natoms):
        line = cursor.require_line("basis set atom line")
        tokens = line.split()
        if len(tokens) < 2 or not tokens[0].isdigit():
            raise LineFormatError("atom line 'serial label ...'", line, cursor.line_number)
        label = tokens[1]
        if label not in species:
            raise CrystalParseError(
                f"species {label!r} in basis set is not in the atom table",
                cursor.line_number,
            )
        code = species.code(label)
        if code in result.shells:
            continue

        shells = tuple(_read_shell(cursor) for _ in range(shells_per_species[code]))
        offset = sum(
            result.orbitals_per_species[int(c)] for c in motif_codes[:atom_index]
        )
        last_index = shells[-1].orbital_index if shells else offset
        result.orbitals_per_species[code] = last_index - offset
        result.shells[code] = shells

    return result
