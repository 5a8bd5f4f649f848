"""
Bloch Sum Module

This module contains functions for transforming the real-space matrix
stacks of a SystemInfo record to reciprocal space using the phase factor
e^(i k·R), and for solving the generalized eigenvalue problem
H(k) C(k) = S(k) C(k) E(k).
"""

import numpy as np
from scipy.linalg import eigh
from typing import Tuple

from .assembler import SystemInfo


def bloch_sum(
    k_point: np.ndarray,
    bravais_vectors: np.ndarray,
    stack: np.ndarray
) -> np.ndarray:
    """
    Compute M(k) = Σ_R e^(i k·R) M(R).

    Parameters
    ----------
    k_point : ndarray of shape (3,)
        k-point in Cartesian coordinates (1/Angstrom)
    bravais_vectors : ndarray of shape (ncells, 3)
        Cartesian displacement R of every cell (Angstrom)
    stack : ndarray of shape (ncells, n, n)
        Real-space matrices, aligned with ``bravais_vectors``

    Returns
    -------
    ndarray of shape (n, n)
    """
    if len(bravais_vectors) != len(stack):
        raise ValueError(
            f"{len(bravais_vectors)} cell vectors for {len(stack)} matrices"
        )
    phases = np.exp(1j * np.dot(bravais_vectors, np.asarray(k_point, dtype=float)))
    return np.tensordot(phases, stack, axes=1)


def hamiltonian_k(system: SystemInfo, k_point: np.ndarray) -> np.ndarray:
    """Bloch Hamiltonian H(k) of the system."""
    if system.hamiltonian.shape[0] == 0:
        raise ValueError("system has no Hamiltonian matrices")
    return bloch_sum(k_point, system.bravais_vectors, system.hamiltonian)


def overlap_k(system: SystemInfo, k_point: np.ndarray) -> np.ndarray:
    """Bloch overlap S(k) of the system."""
    return bloch_sum(k_point, system.bravais_vectors, system.overlap)


def solve_bands(system: SystemInfo, k_point: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Solve H(k) C = S(k) C E at one k-point.

    Uses scipy.linalg.eigh, so H(k) and S(k) are assumed Hermitian, which
    holds when every retained cell R comes with its partner -R.

    Returns
    -------
    eigenvalues : ndarray of shape (n,)
        Ascending band energies (units of the Fock matrices, Hartree)
    eigenvectors : ndarray of shape (n, n)
        Columns normalized such that C† S C = I
    """
    H_k = hamiltonian_k(system, k_point)
    S_k = overlap_k(system, k_point)
    return eigh(H_k, S_k)
