"""
Dense Matrix Module

This module reconstructs one N x N matrix (overlap or Fock) from the
column-blocked dump CRYSTAL writes after each matrix header::

                 1              2              3

       1   1.0000E+00     2.0000E-01     0.0000E+00
       2   2.0000E-01     1.0000E+00     1.0000E-01
       3   0.0000E+00     1.0000E-01     1.0000E+00

Wide matrices are split into several such blocks, each announcing its own
1-based column indices after a blank line.

CRYSTAL usually prints only the lower triangle (row i lists columns 1..i).
A complete lower triangle is mirrored into the upper one: symmetric for
overlap and real Fock parts, antisymmetric for imaginary Fock parts.
"""

import warnings
import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional

from .cursor import LineCursor
from .exceptions import IncompleteMatrixError, LineFormatError, TruncatedInputError
from .patterns import to_float


@dataclass
class MatrixFill:
    """
    Tracks which entries of an N x N matrix have been written.

    The matrix is complete once the final (N-1, N-1) entry is written.
    """
    size: int
    mask: np.ndarray = field(init=False)

    def __post_init__(self):
        self.mask = np.zeros((self.size, self.size), dtype=bool)

    def record(self, row: int, col: int) -> None:
        self.mask[row, col] = True

    @property
    def rows_filled(self) -> int:
        return int(np.count_nonzero(self.mask.any(axis=1)))

    @property
    def cols_filled(self) -> int:
        return int(np.count_nonzero(self.mask.any(axis=0)))

    @property
    def filled_count(self) -> int:
        return int(np.count_nonzero(self.mask))

    @property
    def missing_count(self) -> int:
        return self.size * self.size - self.filled_count

    @property
    def complete(self) -> bool:
        return bool(self.mask[self.size - 1, self.size - 1])

    @property
    def lower_triangle(self) -> bool:
        """True if exactly the entries on and below the diagonal were written."""
        return bool(np.array_equal(self.mask, np.tri(self.size, dtype=bool)))


def _parse_columns(line: str, size: int, line_number: int) -> List[int]:
    tokens = line.split()
    if not all(t.isdigit() for t in tokens):
        raise LineFormatError("a list of 1-based column indices", line, line_number)
    columns = [int(t) - 1 for t in tokens]
    if any(c < 0 or c >= size for c in columns):
        raise LineFormatError(f"column indices between 1 and {size}", line, line_number)
    return columns


def read_dense_matrix(
    cursor: LineCursor,
    size: int,
    allow_partial: bool = False,
    antisymmetric: bool = False
) -> np.ndarray:
    """
    Read one column-blocked matrix dump.

    Parameters
    ----------
    cursor : LineCursor
        Positioned right after the matrix header line
    size : int
        Number of atomic orbitals N
    allow_partial : bool
        If True, entries never written are left at zero with a warning
        instead of raising IncompleteMatrixError
    antisymmetric : bool
        Mirror a lower-triangle dump with a sign flip, as for the imaginary
        part of a Hermitian matrix

    Returns
    -------
    matrix : ndarray of shape (size, size), complex
        Parsed coefficients (zero imaginary part)

    Notes
    -----
    Reading stops right after the line that writes entry (N, N); any
    following text is left in the cursor. A dump holding exactly the lower
    triangle is complete; its upper triangle is filled by transposition.
    """
    matrix = np.zeros((size, size), dtype=np.complex128)
    fill = MatrixFill(size)
    columns: Optional[List[int]] = None
    expect_columns = True
    rows_in_block = 0

    while True:
        line = cursor.readline()
        if line is None:
            raise TruncatedInputError(
                f"end of file before matrix entry ({size}, {size}) was read",
                cursor.line_number,
            )

        if not line.strip():
            if rows_in_block:
                expect_columns = True
                rows_in_block = 0
            continue

        if expect_columns:
            columns = _parse_columns(line, size, cursor.line_number)
            expect_columns = False
            continue

        tokens = line.split()
        if not tokens[0].isdigit() or not 1 <= int(tokens[0]) <= size:
            raise LineFormatError(f"row index between 1 and {size}", line, cursor.line_number)
        row = int(tokens[0]) - 1
        values = [to_float(t) for t in tokens[1:]]
        if any(v is None for v in values) or len(values) > len(columns):
            raise LineFormatError(
                f"row index followed by at most {len(columns)} coefficients",
                line, cursor.line_number,
            )

        for col, value in zip(columns, values):
            matrix[row, col] = value
            fill.record(row, col)
        rows_in_block += 1

        if fill.complete:
            break

    if fill.missing_count and fill.lower_triangle:
        upper = np.triu_indices(size, k=1)
        sign = -1.0 if antisymmetric else 1.0
        matrix[upper] = sign * matrix.T[upper]
    elif fill.missing_count:
        message = (
            f"matrix reached entry ({size}, {size}) with {fill.missing_count} "
            f"of {size * size} entries unwritten"
        )
        if not allow_partial:
            raise IncompleteMatrixError(message, cursor.line_number)
        warnings.warn(message)

    return matrix
