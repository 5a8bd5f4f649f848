"""
Parser Module for CRYSTAL Output Files

This module contains the CrystalOutputParser class, which makes a single
pass over a CRYSTAL output file, dispatching each line to the reader of the
section it opens, and assembles the result into a SystemInfo record.

Sections are recognised by marker substrings. Spin markers are checked on
every line; of the remaining sections only the first match in scan order
runs for a given line.
"""

import io
import os
from functools import partial
from typing import Callable, List, Optional, TextIO, Tuple, Union

from .assembler import SystemInfo, assemble_system_info
from .basis import parse_basis
from .cursor import LineCursor
from .exceptions import (
    CrystalParseError,
    LineFormatError,
    SectionOrderError,
    UnsupportedModeError,
)
from .matrix import read_dense_matrix
from .patterns import (
    BASIS_MARKER,
    CORE_ELECTRONS_MARKER,
    ELECTRONS_MARKER,
    LATTICE_MARKER,
    MAGNETIC_MARKER,
    NATOMS_MARKER,
    NORBITALS_MARKER,
    NSHELLS_MARKER,
    SOC_MARKER,
    alpha_marker_pattern,
    beta_marker_pattern,
    integer_after,
    matrix_header_pattern,
)
from .state import ParserState
from .store import CellMatrixStack
from .structure import DEFAULT_LATTICE_THRESHOLD, parse_lattice, parse_motif

Source = Union[str, os.PathLike, TextIO]

# Scalar header fields: marker -> ParserState attribute
SCALAR_FIELDS = (
    (NATOMS_MARKER, 'natoms'),
    (NSHELLS_MARKER, 'nshells'),
    (NORBITALS_MARKER, 'norbitals'),
    (ELECTRONS_MARKER, 'total_electrons'),
    (CORE_ELECTRONS_MARKER, 'core_electrons'),
)


def _contains(marker: str, line: str) -> bool:
    return marker in line


def _is_atom_table_header(line: str) -> bool:
    return 'ATOM' in line and 'SHELL' in line


def _is_matrix_header(line: str) -> bool:
    return matrix_header_pattern.match(line) is not None


class CrystalOutputParser:
    """
    Single-pass reader of CRYSTAL output files.

    Parameters
    ----------
    ncells : int
        Highest cell serial index whose matrices are kept. Matrices of later
        cells are still read and then dropped.
    threshold : float
        Norm (Angstrom) above which a direct lattice vector is treated as a
        placeholder for a non-periodic direction
    soc_marker : str
        Substring flagging a spin-orbit calculation
    magnetic_marker : str
        Substring flagging an unrestricted (spin-polarized) calculation
    allow_partial : bool
        Accept matrices with unwritten entries (zero-filled, with a warning)
    center_motif : bool
        Shift the motif so that the first atom sits at the origin
    verbose : bool
        Print a report of each section as it is read

    Examples
    --------
    >>> parser = CrystalOutputParser(ncells=7)
    >>> system = parser.parse('hBN.outp')
    >>> system.hamiltonian.shape
    (7, 26, 26)
    """

    def __init__(
        self,
        ncells: int = 1,
        threshold: float = DEFAULT_LATTICE_THRESHOLD,
        soc_marker: str = SOC_MARKER,
        magnetic_marker: str = MAGNETIC_MARKER,
        allow_partial: bool = False,
        center_motif: bool = False,
        verbose: bool = False
    ):
        if ncells < 1:
            raise ValueError(f"ncells must be at least 1, got {ncells}")
        self.ncells = ncells
        self.threshold = threshold
        self.soc_marker = soc_marker
        self.magnetic_marker = magnetic_marker
        self.allow_partial = allow_partial
        self.center_motif = center_motif
        self.verbose = verbose

        self._cursor: Optional[LineCursor] = None
        self._state: Optional[ParserState] = None
        self._sections = self._build_sections()

    # ==============================
    # Entry points
    # ==============================

    def parse(self, source: Source) -> SystemInfo:
        """
        Parse a CRYSTAL output file.

        Parameters
        ----------
        source : str, path-like or text stream
            File name or an open text stream

        Returns
        -------
        SystemInfo
            Assembled tight-binding record
        """
        if isinstance(source, (str, os.PathLike)):
            with open(source, 'r') as f:
                return self._parse_stream(f)
        return self._parse_stream(source)

    def parse_text(self, text: str) -> SystemInfo:
        """Parse the content of an output file held in memory."""
        return self._parse_stream(io.StringIO(text))

    def _parse_stream(self, stream: TextIO) -> SystemInfo:
        self._cursor = LineCursor(stream)
        self._state = ParserState(store=CellMatrixStack(self.ncells))
        try:
            for line in self._cursor:
                self._dispatch(line)
            system = assemble_system_info(self._state)
            if self.verbose:
                self._report(system)
            return system
        finally:
            self._cursor = None
            self._state = None

    # ==============================
    # Section Locator
    # ==============================

    def _build_sections(self) -> List[Tuple[Callable[[str], bool], Callable[[str], None]]]:
        sections = [(partial(_contains, LATTICE_MARKER), self._read_lattice)]
        for marker, attribute in SCALAR_FIELDS:
            sections.append(
                (partial(_contains, marker), partial(self._read_scalar, marker=marker, attribute=attribute))
            )
        sections += [
            (_is_atom_table_header, self._read_atoms),
            (partial(_contains, BASIS_MARKER), self._read_basis),
            (_is_matrix_header, self._read_matrix),
        ]
        return sections

    def _dispatch(self, line: str) -> None:
        self._update_flags(line)
        for matches, read in self._sections:
            if matches(line):
                read(line)
                return

    def _update_flags(self, line: str) -> None:
        state = self._state
        if self.soc_marker in line:
            state.soc = True
        if self.magnetic_marker in line:
            state.unrestricted = True
        if beta_marker_pattern.match(line):
            state.reading_beta = True
        elif alpha_marker_pattern.match(line):
            state.reading_beta = False

    # ==============================
    # Section readers
    # ==============================

    def _read_scalar(self, line: str, marker: str, attribute: str) -> None:
        value = integer_after(line, marker)
        if value is None:
            raise LineFormatError(f"an integer after {marker!r}", line, self._cursor.line_number)
        setattr(self._state, attribute, value)

    def _read_lattice(self, line: str) -> None:
        self._state.lattice = parse_lattice(self._cursor, self.threshold)
        if self.verbose:
            print(f"  Lattice: {self._state.lattice.dimension}D")

    def _read_atoms(self, line: str) -> None:
        state = self._state
        if state.motif is not None:
            # Mulliken population headers also mention ATOM and SHELL
            return
        if state.natoms is None:
            raise SectionOrderError(
                "atom table found before the number of atoms per cell",
                self._cursor.line_number,
            )
        state.motif, state.shells_per_species = parse_motif(
            self._cursor, state.natoms, state.species, center=self.center_motif
        )
        if self.verbose:
            print(f"  Motif: {state.natoms} atoms, species {', '.join(state.species.labels)}")

    def _read_basis(self, line: str) -> None:
        state = self._state
        if state.motif is None:
            raise SectionOrderError(
                "basis set found before the atom table", self._cursor.line_number
            )
        state.basis = parse_basis(
            self._cursor, state.natoms, state.species,
            state.shells_per_species, state.motif[:, 3].astype(int),
        )

        total = int(sum(state.basis.orbitals_per_species[int(c)] for c in state.motif[:, 3]))
        if state.norbitals is not None and total != state.norbitals:
            raise CrystalParseError(
                f"basis set describes {total} orbitals, header declares {state.norbitals}",
                self._cursor.line_number,
            )
        if self.verbose:
            print(f"  Basis: orbitals per species {state.basis.orbitals_per_species}")

    def _read_matrix(self, line: str) -> None:
        state = self._state
        header_line = self._cursor.line_number
        match = matrix_header_pattern.match(line)
        kind, part = match.group(1), match.group(2) or 'REAL'
        cell_index = int(match.group(3))
        coefficients = [int(match.group(i)) for i in range(4, 7)]

        if state.norbitals is None:
            raise SectionOrderError(
                f"{kind.lower()} matrix found before the number of atomic orbitals",
                header_line,
            )
        if kind == 'OVERLAP' and state.lattice is None:
            raise SectionOrderError("overlap matrix found before the direct lattice", header_line)
        if kind == 'FOCK' and state.soc and not state.unrestricted:
            raise UnsupportedModeError(
                "Fock matrices of spin-orbit calculations are not supported", header_line
            )

        matrix = read_dense_matrix(
            self._cursor, state.norbitals, self.allow_partial, antisymmetric=(part == 'IMAG')
        )
        store = state.store
        if not store.retains(cell_index):
            state.discarded_cells += 1
            return

        if kind == 'OVERLAP':
            store.add_overlap(cell_index, state.lattice.displacement(coefficients), matrix)
        elif part == 'IMAG':
            store.add_fock_imaginary(cell_index, matrix, state.fock_channel)
        else:
            store.add_fock(cell_index, matrix, state.fock_channel)

    # ==============================
    # Reporting
    # ==============================

    def _report(self, system: SystemInfo) -> None:
        print("\n" + "=" * 70)
        print("CRYSTAL Output Parsed")
        print("=" * 70)
        print(f"Dimension: {system.ndim}")
        print(f"Atoms per cell: {system.motif.shape[0]}")
        print(f"Orbitals per species: {system.norbitals.tolist()}")
        print(f"Filling: {system.filling}")
        print(f"Cells retained: {system.ncells} (discarded: {self._state.discarded_cells})")
        if system.unrestricted:
            print("Mode: unrestricted (spin-polarized)")
        elif system.soc:
            print("Mode: spin-orbit coupling")
        print("=" * 70)


def parse_crystal_output(source: Source, ncells: int = 1, **kwargs) -> SystemInfo:
    """
    Parse a CRYSTAL output file into a SystemInfo record.

    Keyword arguments are forwarded to CrystalOutputParser.

    Examples
    --------
    >>> system = parse_crystal_output('hBN.outp', ncells=7)
    >>> system.ndim
    2
    """
    return CrystalOutputParser(ncells=ncells, **kwargs).parse(source)
