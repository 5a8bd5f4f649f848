"""
Utility Functions Module

This module contains helper functions for reporting on a parsed SystemInfo
record and checking the consistency of its matrix stacks.
"""

import numpy as np
from typing import Optional

from .assembler import SystemInfo


# ==============================
# Verification & Diagnostics
# ==============================

def find_origin_cell(system: SystemInfo, tolerance: float = 1e-8) -> Optional[int]:
    """Stack position of the cell with zero displacement, or None."""
    norms = np.linalg.norm(system.bravais_vectors, axis=1)
    positions = np.flatnonzero(norms < tolerance)
    if positions.size == 0:
        return None
    return int(positions[0])


def check_stack_consistency(system: SystemInfo) -> bool:
    """Check that the matrix stacks are square, equally sized and aligned with the cells."""
    ncells = system.ncells

    if system.overlap.shape[0] != ncells:
        print(f"Warning: {system.overlap.shape[0]} overlap matrices for {ncells} cells")
        return False
    if system.hamiltonian.shape[0] not in (0, ncells):
        print(f"Warning: {system.hamiltonian.shape[0]} Hamiltonian matrices for {ncells} cells")
        return False

    for name, stack in (('H', system.hamiltonian), ('S', system.overlap)):
        if stack.shape[0] and stack.shape[1] != stack.shape[2]:
            print(f"Warning: {name} matrices are not square: {stack.shape[1:]}")
            return False

    if system.hamiltonian.shape[0] and system.hamiltonian.shape[1:] != system.overlap.shape[1:]:
        print(f"Warning: Inconsistent matrix sizes: H {system.hamiltonian.shape[1:]}, "
              f"S {system.overlap.shape[1:]}")
        return False

    return True


def verify_onsite_hermiticity(system: SystemInfo, tolerance: float = 1e-10) -> bool:
    """
    Verify that the on-site (R = 0) Hamiltonian and overlap are Hermitian.

    Returns True if the checks pass or there is no origin cell.
    """
    origin = find_origin_cell(system)
    if origin is None:
        print("WARNING: no cell with zero displacement retained")
        return True

    all_passed = True
    for name, stack in (('H', system.hamiltonian), ('S', system.overlap)):
        if stack.shape[0] == 0:
            continue
        M = stack[origin]
        diff = np.max(np.abs(M - M.conj().T))
        if diff > tolerance:
            print(f"FAIL: On-site {name}(0) is not Hermitian. Max Diff: {diff:.2e}")
            all_passed = False

    return all_passed


# ==============================
# Reporting
# ==============================

def print_system_summary(system: SystemInfo) -> None:
    """Print a summary of the parsed system."""
    print("\n" + "=" * 70)
    print("System Summary")
    print("=" * 70)
    print(f"Dimension: {system.ndim}")

    print("\nBravais lattice (Angstrom):")
    for i, vector in enumerate(system.bravais_lattice):
        print(f"  a{i + 1} = [{vector[0]:10.5f}, {vector[1]:10.5f}, {vector[2]:10.5f}]")

    print("\nMotif:")
    for x, y, z, code in system.motif:
        print(f"  {system.species[int(code)]:>4s}  {x:10.5f} {y:10.5f} {z:10.5f}")

    print("\nOrbitals per species:")
    for label, count in zip(system.species, system.norbitals):
        print(f"  {label}: {count}")

    print(f"\nFilling: {system.filling}")
    print(f"Basis dimension: {system.basis_dimension}")

    print(f"\nUnit cells ({system.ncells}):")
    for R in system.bravais_vectors:
        print(f"  R = [{R[0]:10.5f}, {R[1]:10.5f}, {R[2]:10.5f}]")

    if system.hamiltonian.shape[0]:
        dim = system.hamiltonian.shape[1]
        print(f"\nHamiltonian Dimension: {dim} × {dim}")
    print("=" * 70)
