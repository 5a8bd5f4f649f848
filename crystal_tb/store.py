"""
Cell Matrix Store Module

This module contains the CellMatrixStack class, which accumulates the
overlap and Fock matrices of every retained unit cell while the output file
is parsed. Position i of every stack refers to the same cell.
"""

import numpy as np
from typing import Dict, List

from .exceptions import CellAlignmentError

FOCK_CHANNELS = ('fock', 'alpha', 'beta')


class CellMatrixStack:
    """
    Ordered per-cell matrices aligned with their displacement vectors.

    Attributes
    ----------
    ncells : int
        Highest cell serial index retained
    cell_indices : list of int
        Serial index of every retained cell, in file order
    displacements : list of ndarray
        Cartesian displacement vector (Angstrom) of every retained cell
    overlap : list of ndarray
        Overlap matrix of every retained cell
    fock : dict
        Maps channel ('fock', 'alpha', 'beta') -> list of Fock matrices
    """

    def __init__(self, ncells: int):
        self.ncells = ncells
        self.cell_indices: List[int] = []
        self.displacements: List[np.ndarray] = []
        self.overlap: List[np.ndarray] = []
        self.fock: Dict[str, List[np.ndarray]] = {c: [] for c in FOCK_CHANNELS}

    def retains(self, cell_index: int) -> bool:
        return cell_index <= self.ncells

    def add_overlap(self, cell_index: int, displacement: np.ndarray, matrix: np.ndarray) -> None:
        if cell_index in self.cell_indices:
            raise CellAlignmentError(f"overlap matrix for cell {cell_index} given twice")
        self.cell_indices.append(cell_index)
        self.displacements.append(displacement)
        self.overlap.append(matrix)

    def add_fock(self, cell_index: int, matrix: np.ndarray, channel: str = 'fock') -> None:
        """Append a Fock matrix; its cell must match the overlap at the same position."""
        stack = self.fock[channel]
        position = len(stack)
        if position >= len(self.cell_indices) or self.cell_indices[position] != cell_index:
            expected = (self.cell_indices[position]
                        if position < len(self.cell_indices) else None)
            raise CellAlignmentError(
                f"{channel} matrix for cell {cell_index} at stack position {position}, "
                f"overlap stack has cell {expected} there"
            )
        stack.append(matrix)

    def add_fock_imaginary(self, cell_index: int, matrix: np.ndarray, channel: str = 'fock') -> None:
        """Add ``matrix`` as the imaginary part of an already stored Fock matrix."""
        stack = self.fock[channel]
        position = self.cell_indices.index(cell_index) if cell_index in self.cell_indices else None
        if position is None or position >= len(stack):
            raise CellAlignmentError(
                f"imaginary {channel} part for cell {cell_index} has no real part"
            )
        stack[position] = stack[position] + 1j * matrix.real

    def validate(self) -> None:
        """Check that every non-empty Fock stack covers every overlap cell."""
        for channel, stack in self.fock.items():
            if stack and len(stack) != len(self.overlap):
                raise CellAlignmentError(
                    f"{len(stack)} {channel} matrices for {len(self.overlap)} overlap matrices"
                )

    def __len__(self) -> int:
        return len(self.cell_indices)
