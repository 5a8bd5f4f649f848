"""
Assembler Module

This module turns the accumulated parser state into the immutable
SystemInfo record, applying the spin corrections that depend on the flags
found during the pass.
"""

import warnings
import numpy as np
from types import MappingProxyType
from typing import List, Mapping, Tuple
from dataclasses import dataclass, field

from .basis import Shell
from .exceptions import CellAlignmentError, MissingSectionError, UnsupportedModeError
from .state import ParserState

SPIN_UP_BLOCK = np.array([[1, 0], [0, 0]])
SPIN_DOWN_BLOCK = np.array([[0, 0], [0, 1]])


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class SystemInfo:
    """
    Tight-binding description of the system read from a CRYSTAL output file.

    Attributes
    ----------
    ndim : int
        Number of periodic directions
    bravais_lattice : ndarray of shape (ndim, 3)
        Bravais vectors (Angstrom)
    motif : ndarray of shape (natoms, 4)
        Atom positions and species code (x, y, z, code)
    species : tuple of str
        Species labels, indexed by code
    norbitals : ndarray of int
        Orbitals per species (doubled for spinful calculations)
    filling : float
        Number of occupied states per unit cell
    bravais_vectors : ndarray of shape (ncells, 3)
        Displacement of every retained cell (Angstrom)
    hamiltonian : ndarray of shape (ncells, n, n)
        Fock matrix of every retained cell
    overlap : ndarray of shape (ncells, n, n)
        Overlap matrix of every retained cell
    basis : mapping
        Read-only map of species label -> tuple of Shell
    """
    ndim: int
    bravais_lattice: np.ndarray
    motif: np.ndarray
    species: Tuple[str, ...]
    norbitals: np.ndarray
    filling: float
    bravais_vectors: np.ndarray
    hamiltonian: np.ndarray
    overlap: np.ndarray
    basis: Mapping[str, Tuple[Shell, ...]] = field(default_factory=lambda: MappingProxyType({}))
    total_electrons: int = 0
    core_electrons: int = 0
    soc: bool = False
    unrestricted: bool = False

    @property
    def ncells(self) -> int:
        return self.bravais_vectors.shape[0]

    @property
    def orbitals_per_atom(self) -> np.ndarray:
        return self.norbitals[self.motif[:, 3].astype(int)]

    @property
    def basis_dimension(self) -> int:
        return int(self.orbitals_per_atom.sum())


def _stack(matrices: List[np.ndarray], size: int) -> np.ndarray:
    if not matrices:
        return np.zeros((0, size, size), dtype=np.complex128)
    return np.array(matrices, dtype=np.complex128)


def _spin_polarized(alpha: List[np.ndarray], beta: List[np.ndarray],
                    overlap: List[np.ndarray]) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    if len(alpha) != len(beta):
        raise CellAlignmentError(f"{len(alpha)} alpha matrices but {len(beta)} beta matrices")
    if alpha and len(alpha) != len(overlap):
        raise CellAlignmentError(f"{len(alpha)} spin matrices for {len(overlap)} overlap matrices")

    hamiltonian = [np.kron(a, SPIN_UP_BLOCK) + np.kron(b, SPIN_DOWN_BLOCK)
                   for a, b in zip(alpha, beta)]
    new_overlap = [np.kron(s, np.eye(2)) for s in overlap]
    return hamiltonian, new_overlap


def assemble_system_info(state: ParserState) -> SystemInfo:
    """
    Build the SystemInfo record at the end of a parse pass.

    Parameters
    ----------
    state : ParserState
        State accumulated by the section readers

    Returns
    -------
    SystemInfo
        Immutable record; arrays are read-only
    """
    missing = [name for name, value in (
        ('direct lattice', state.lattice),
        ('atom table', state.motif),
        ('basis set', state.basis),
        ('number of electrons', state.total_electrons),
    ) if value is None]
    if missing:
        raise MissingSectionError(f"sections not found in output: {', '.join(missing)}")
    if state.soc and state.unrestricted:
        raise UnsupportedModeError("spin-orbit and unrestricted flags are both set")

    store = state.store
    store.validate()

    filling = state.total_electrons / 2.
    norbitals = np.array(state.basis.orbitals_per_species, dtype=int)
    size = state.norbitals or int(norbitals[state.motif[:, 3].astype(int)].sum())
    hamiltonian = store.fock['fock']
    overlap = store.overlap
    hamiltonian_size = size

    if state.soc:
        # Spin-orbit Hamiltonians are not assembled; overlap is kept as read
        filling *= 2
        norbitals *= 2
        hamiltonian = []
        hamiltonian_size = 2 * size
    elif state.unrestricted:
        filling *= 2
        norbitals *= 2
        hamiltonian, overlap = _spin_polarized(store.fock['alpha'], store.fock['beta'], overlap)
        size *= 2
        hamiltonian_size = size

    if len(store) and not hamiltonian:
        warnings.warn("no Fock matrices were stored; the Hamiltonian stack is empty")

    displacements = np.array(store.displacements).reshape(-1, 3)
    labels = state.species.labels

    return SystemInfo(
        ndim=state.lattice.dimension,
        bravais_lattice=_frozen(state.lattice.vectors),
        motif=_frozen(state.motif),
        species=labels,
        norbitals=_frozen(norbitals),
        filling=filling,
        bravais_vectors=_frozen(displacements),
        hamiltonian=_frozen(_stack(hamiltonian, hamiltonian_size)),
        overlap=_frozen(_stack(overlap, size)),
        basis=MappingProxyType(
            {labels[code]: shells for code, shells in state.basis.shells.items()}
        ),
        total_electrons=state.total_electrons,
        core_electrons=state.core_electrons or 0,
        soc=state.soc,
        unrestricted=state.unrestricted,
    )
