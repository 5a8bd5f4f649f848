"""
Parser State Module

Mutable record of everything accumulated during one pass over a CRYSTAL
output file. Flags found mid-file (spin-orbit, unrestricted, beta channel)
change how later matrix sections are stored.
"""

import numpy as np
from typing import List, Optional
from dataclasses import dataclass, field

from .basis import BasisResult
from .store import CellMatrixStack
from .structure import LatticeInfo, SpeciesTable


@dataclass
class ParserState:
    store: CellMatrixStack
    soc: bool = False
    unrestricted: bool = False
    reading_beta: bool = False

    natoms: Optional[int] = None
    nshells: Optional[int] = None
    norbitals: Optional[int] = None
    total_electrons: Optional[int] = None
    core_electrons: Optional[int] = None

    lattice: Optional[LatticeInfo] = None
    species: SpeciesTable = field(default_factory=SpeciesTable)
    motif: Optional[np.ndarray] = None
    shells_per_species: List[int] = field(default_factory=list)
    basis: Optional[BasisResult] = None

    # Cells read but not retained
    discarded_cells: int = 0

    @property
    def fock_channel(self) -> str:
        if self.unrestricted:
            return 'beta' if self.reading_beta else 'alpha'
        return 'fock'
