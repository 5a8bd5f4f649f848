"""
crystal-tb Package

Reads the output of periodic CRYSTAL LCAO/DFT calculations and builds the
tight-binding description (lattice, motif, basis, and the Hamiltonian and
overlap matrices of each unit cell) used by exciton calculations.

Main Components
---------------
CrystalOutputParser : class
    Single-pass parser of CRYSTAL output files
SystemInfo : class
    Immutable record produced by the parser

Parser Functions
----------------
parse_crystal_output : function
    Parse a CRYSTAL output file into a SystemInfo record

Example
-------
>>> from crystal_tb import parse_crystal_output
>>> from crystal_tb.bloch import solve_bands
>>>
>>> system = parse_crystal_output('hBN.outp', ncells=7)
>>> energies, _ = solve_bands(system, [0.0, 0.0, 0.0])
"""

__version__ = "0.3.0"

# Parser
from .parser import CrystalOutputParser, parse_crystal_output
from .assembler import SystemInfo, assemble_system_info

# Section readers
from .cursor import LineCursor
from .structure import (
    DEFAULT_LATTICE_THRESHOLD,
    LatticeInfo,
    SpeciesTable,
    parse_lattice,
    parse_motif,
)
from .basis import GaussianTerm, Shell, parse_basis
from .matrix import MatrixFill, read_dense_matrix
from .store import CellMatrixStack

# Bloch sums
from .bloch import bloch_sum, hamiltonian_k, overlap_k, solve_bands

# Utility functions
from .utils import (
    check_stack_consistency,
    find_origin_cell,
    print_system_summary,
    verify_onsite_hermiticity,
)

# Exceptions
from .exceptions import (
    CellAlignmentError,
    CrystalParseError,
    CursorError,
    IncompleteMatrixError,
    LineFormatError,
    MissingSectionError,
    SectionOrderError,
    TruncatedInputError,
    UnsupportedModeError,
)

# Public API
__all__ = [
    # Parser
    'CrystalOutputParser',
    'parse_crystal_output',
    'SystemInfo',
    'assemble_system_info',

    # Section readers
    'LineCursor',
    'DEFAULT_LATTICE_THRESHOLD',
    'LatticeInfo',
    'SpeciesTable',
    'parse_lattice',
    'parse_motif',
    'GaussianTerm',
    'Shell',
    'parse_basis',
    'MatrixFill',
    'read_dense_matrix',
    'CellMatrixStack',

    # Bloch sums
    'bloch_sum',
    'hamiltonian_k',
    'overlap_k',
    'solve_bands',

    # Utils
    'check_stack_consistency',
    'find_origin_cell',
    'print_system_summary',
    'verify_onsite_hermiticity',

    # Exceptions
    'CellAlignmentError',
    'CrystalParseError',
    'CursorError',
    'IncompleteMatrixError',
    'LineFormatError',
    'MissingSectionError',
    'SectionOrderError',
    'TruncatedInputError',
    'UnsupportedModeError',
]
