"""
Structure Module

This module contains the readers for the crystal structure sections of a
CRYSTAL output file: the direct lattice (and the effective dimension of the
system) and the atomic motif with its chemical species.
"""

import numpy as np
from typing import Dict, List, Sequence, Tuple
from dataclasses import dataclass

from .cursor import LineCursor
from .exceptions import CrystalParseError, LineFormatError
from .patterns import numeric_tokens, to_float

# CRYSTAL always prints three direct lattice vectors. Non-periodic
# directions are filled with a 500 Angstrom placeholder vector.
DEFAULT_LATTICE_THRESHOLD = 100.0


# ==============================
# Lattice
# ==============================

@dataclass
class LatticeInfo:
    """
    Direct lattice vectors that survived the norm threshold.

    Attributes
    ----------
    vectors : ndarray of shape (dimension, 3)
        Bravais vectors in Angstrom, in file order
    """
    vectors: np.ndarray

    @property
    def dimension(self) -> int:
        return self.vectors.shape[0]

    def displacement(self, coefficients: Sequence[int]) -> np.ndarray:
        """
        Real-space position of the cell with the given integer coefficients.

        Only the first ``dimension`` coefficients are used.
        """
        cell = np.zeros(3)
        for i in range(self.dimension):
            cell += coefficients[i] * self.vectors[i]
        return cell


def parse_lattice(
    cursor: LineCursor,
    threshold: float = DEFAULT_LATTICE_THRESHOLD
) -> LatticeInfo:
    """
    Read the three direct lattice vectors following the section header.

    Parameters
    ----------
    cursor : LineCursor
        Positioned right after the 'DIRECT LATTICE VECTOR COMPONENTS' line
    threshold : float
        Vectors with a norm above this value (Angstrom) are placeholder
        vectors for non-periodic directions and are dropped

    Returns
    -------
    LatticeInfo
        Surviving vectors; their count is the dimension of the system
    """
    vectors = []
    for _ in range(3):
        line = cursor.require_line("direct lattice vectors")
        components = numeric_tokens(line)
        if components is None or len(components) != 3:
            raise LineFormatError("3 numeric vector components", line, cursor.line_number)
        vectors.append(components)

    kept = [v for v in vectors if np.linalg.norm(v) <= threshold]
    if not kept:
        raise CrystalParseError(
            f"no lattice vector has a norm below the threshold ({threshold})",
            cursor.line_number,
        )
    return LatticeInfo(vectors=np.array(kept, dtype=float))


# ==============================
# Species and Motif
# ==============================

class SpeciesTable:
    """Bijection between chemical species labels and dense integer codes."""

    def __init__(self):
        self._codes: Dict[str, int] = {}
        self._labels: List[str] = []

    def add(self, label: str) -> int:
        """Return the code of ``label``, assigning the next one if unseen."""
        if label not in self._codes:
            self._codes[label] = len(self._labels)
            self._labels.append(label)
        return self._codes[label]

    def code(self, label: str) -> int:
        return self._codes[label]

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(self._labels)

    def __contains__(self, label: str) -> bool:
        return label in self._codes

    def __len__(self) -> int:
        return len(self._labels)

    def __repr__(self) -> str:
        return f"SpeciesTable({self._labels!r})"


def parse_motif(
    cursor: LineCursor,
    natoms: int,
    species: SpeciesTable,
    center: bool = False
) -> Tuple[np.ndarray, List[int]]:
    """
    Read the atom table: one asterisk line, then ``natoms`` rows of
    ``serial atomic_number label nshells x y z``.

    Species codes are assigned in first-seen order into ``species``. The
    declared shell count of each species is taken from its first atom.

    Returns
    -------
    motif : ndarray of shape (natoms, 4)
        Rows (x, y, z, species code)
    shells_per_species : list of int
        Declared number of shells, indexed by species code
    """
    motif = np.zeros((natoms, 4))
    shells_per_species: List[int] = []

    cursor.require_line("atom table header")
    for i in range(natoms):
        line = cursor.require_line("atom table")
        tokens = line.split()
        if len(tokens) < 7:
            raise LineFormatError(
                "7 fields (serial, atom, species, shells, x, y, z)",
                line, cursor.line_number,
            )
        label = tokens[2]
        coordinates = [to_float(t) for t in tokens[4:7]]
        if (not tokens[0].isdigit() or not tokens[3].isdigit()
                or any(c is None for c in coordinates)):
            raise LineFormatError(
                "integer serial and shell count with 3 numeric coordinates",
                line, cursor.line_number,
            )

        if label not in species:
            species.add(label)
            shells_per_species.append(int(tokens[3]))
        motif[i, :3] = coordinates
        motif[i, 3] = species.code(label)

    if center:
        motif[:, :3] -= motif[0, :3]

    return motif, shells_per_species
