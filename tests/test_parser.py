"""
Integration tests for parser module

Tests the complete pass over synthetic CRYSTAL output files: section
dispatch, cell filtering, spin modes and ordering errors.
"""

import sys
import os
import io
import re
import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from crystal_tb import CrystalOutputParser, parse_crystal_output
from crystal_tb.exceptions import (
    CellAlignmentError,
    CrystalParseError,
    LineFormatError,
    SectionOrderError,
    TruncatedInputError,
    UnsupportedModeError,
)
from crystal_samples import (
    BN_ATOMS,
    BN_BASIS,
    FOCK_2X2,
    HEXAGONAL_LATTICE,
    SINGLE_SHELL,
    atoms_section,
    basis_section,
    header_section,
    lattice_section,
    matrix_section,
    minimal_output,
    spin_polarized_output,
)


def text_stream(text):
    return io.StringIO(text)


def test_minimal_end_to_end():
    """One atom, one shell, identity overlap and a 2x2 Fock matrix for cell 1."""
    print("\nTest: Minimal end-to-end parse")
    print("-" * 50)

    system = CrystalOutputParser(ncells=1).parse_text(minimal_output(electrons=4))

    assert system.ndim == 2
    np.testing.assert_allclose(system.bravais_lattice, HEXAGONAL_LATTICE[:2])
    assert system.filling == 2.0
    assert system.hamiltonian.shape == (1, 2, 2)
    np.testing.assert_allclose(system.hamiltonian[0], FOCK_2X2)
    np.testing.assert_allclose(system.overlap[0], np.eye(2))
    np.testing.assert_allclose(system.bravais_vectors, [[0.0, 0.0, 0.0]])
    np.testing.assert_array_equal(system.motif, [[0.0, 0.0, 0.0, 0.0]])
    np.testing.assert_array_equal(system.norbitals, [2])
    assert system.species == ('C',)
    assert not system.unrestricted and not system.soc
    print("  PASSED")


def test_cell_limit_keeps_first_cells_in_order():
    """Cells beyond the limit are read and dropped."""
    text = minimal_output(ncells_in_file=5)

    system = CrystalOutputParser(ncells=3).parse_text(text)

    assert system.ncells == 3
    assert system.hamiltonian.shape[0] == system.overlap.shape[0] == 3
    for i in range(3):
        np.testing.assert_allclose(system.overlap[i], np.eye(2) * (i + 1))
        np.testing.assert_allclose(system.hamiltonian[i], FOCK_2X2 * (i + 1))
        np.testing.assert_allclose(system.bravais_vectors[i], np.array(HEXAGONAL_LATTICE[0]) * i)


def test_stack_lengths_match_displacements():
    for ncells in (1, 2, 4):
        system = parse_crystal_output(text_stream(minimal_output(ncells_in_file=4)), ncells=ncells)
        assert len(system.bravais_vectors) == len(system.overlap) == len(system.hamiltonian) == ncells


def test_parse_from_path(tmp_path):
    path = tmp_path / "minimal.outp"
    path.write_text(minimal_output())

    system = parse_crystal_output(str(path))
    np.testing.assert_allclose(system.hamiltonian[0], FOCK_2X2)

    system = parse_crystal_output(path)
    assert system.ncells == 1


def test_boron_nitride_file():
    """Three atoms with a repeated species and a 9x9 matrix split in blocks."""
    rng = np.random.default_rng(3)
    S = np.round(np.eye(9) + 0.01 * rng.normal(size=(9, 9)), 6)
    F = np.round(rng.normal(size=(9, 9)), 6)
    text = (
        lattice_section() + "\n"
        + header_section(natoms=3, nshells=5, norbitals=9, electrons=18, core=6) + "\n"
        + atoms_section(BN_ATOMS) + "\n"
        + basis_section(BN_BASIS) + "\n"
        + matrix_section('OVERLAP', 1, (0, 0, 0), S, block_width=4)
        + matrix_section('OVERLAP', 2, (1, -1, 0), S, block_width=4)
        + matrix_section('FOCK', 1, (0, 0, 0), F, block_width=4)
        + matrix_section('FOCK', 2, (1, -1, 0), F.T, block_width=4)
    )

    system = parse_crystal_output(text_stream(text), ncells=2)

    assert system.species == ('B', 'N')
    np.testing.assert_array_equal(system.norbitals, [4, 1])
    np.testing.assert_array_equal(system.motif[:, 3], [0, 1, 0])
    assert system.basis_dimension == 9
    assert system.filling == 9.0
    assert system.core_electrons == 6
    assert [s.shell_type for s in system.basis['B']] == ['S', 'P']
    np.testing.assert_allclose(system.hamiltonian[1].real, F.T, rtol=1e-6)
    a1, a2 = np.array(HEXAGONAL_LATTICE[0]), np.array(HEXAGONAL_LATTICE[1])
    np.testing.assert_allclose(system.bravais_vectors[1], a1 - a2)


def test_unrestricted_file():
    """Alpha and beta Fock matrices are combined into the spin Hamiltonian."""
    A = np.array([[1.0, 2.0], [3.0, 4.0]])
    B = np.array([[5.0, 6.0], [7.0, 8.0]])
    O = np.array([[1.0, 0.25], [0.25, 1.0]])

    system = parse_crystal_output(text_stream(spin_polarized_output(A, B, O, electrons=2)))

    assert system.unrestricted
    assert system.filling == 2.0
    np.testing.assert_array_equal(system.norbitals, [4])
    np.testing.assert_allclose(
        system.hamiltonian[0], np.kron(A, [[1, 0], [0, 0]]) + np.kron(B, [[0, 0], [0, 1]])
    )
    np.testing.assert_allclose(system.overlap[0], np.kron(O, np.eye(2)))


def test_imaginary_fock_part():
    text = minimal_output().replace(" END\n", "\n") + matrix_section(
        'FOCK', 1, (0, 0, 0), np.array([[0.0, 0.5], [-0.5, 0.0]]), part='IMAG'
    )

    system = parse_crystal_output(text_stream(text))

    np.testing.assert_allclose(system.hamiltonian[0], FOCK_2X2 + 1j * np.array([[0, 0.5], [-0.5, 0]]))


def test_spin_orbit_fock_matrices_are_rejected():
    text = minimal_output(flags=" SPIN-ORBIT COUPLING\n")
    with pytest.raises(UnsupportedModeError) as excinfo:
        parse_crystal_output(text_stream(text))
    assert excinfo.value.line_number is not None


def test_custom_spin_orbit_marker():
    text = minimal_output(flags=" SOC RUN\n")
    assert not parse_crystal_output(text_stream(text)).soc
    with pytest.raises(UnsupportedModeError):
        parse_crystal_output(text_stream(text), soc_marker="SOC RUN")


def test_atom_table_before_atom_count():
    text = lattice_section() + atoms_section([(6, 'C', 1, (0.0, 0.0, 0.0))])
    with pytest.raises(SectionOrderError, match="number of atoms"):
        parse_crystal_output(text_stream(text))


def test_matrix_before_orbital_count():
    text = lattice_section() + matrix_section('OVERLAP', 1, (0, 0, 0), np.eye(2))
    with pytest.raises(SectionOrderError, match="number of atomic orbitals"):
        parse_crystal_output(text_stream(text))


def test_fock_without_overlap():
    text = minimal_output()
    start = text.index(" OVERLAP MATRIX")
    end = text.index(" FOCK MATRIX")
    with pytest.raises(CellAlignmentError):
        parse_crystal_output(text_stream(text[:start] + text[end:]))


def test_orbital_count_mismatch():
    text = re.sub(r"NUMBER OF AO\s+2", "NUMBER OF AO    3", minimal_output())
    with pytest.raises(CrystalParseError, match="header declares 3"):
        parse_crystal_output(text_stream(text))


def test_bad_scalar_field():
    text = lattice_section() + " N. OF ATOMS PER CELL     many\n"
    with pytest.raises(LineFormatError) as excinfo:
        parse_crystal_output(text_stream(text))
    assert excinfo.value.line_number == 5


def test_truncated_matrix_section():
    lines = minimal_output().splitlines()
    header = next(i for i, line in enumerate(lines) if line.startswith(" FOCK MATRIX"))
    text = "\n".join(lines[:header + 5]) + "\n"
    with pytest.raises(TruncatedInputError):
        parse_crystal_output(text_stream(text))


def test_invalid_cell_limit():
    with pytest.raises(ValueError):
        CrystalOutputParser(ncells=0)


def test_verbose_report(capsys):
    CrystalOutputParser(verbose=True).parse_text(minimal_output())
    out = capsys.readouterr().out
    assert "CRYSTAL Output Parsed" in out
    assert "Lattice: 2D" in out


def test_mulliken_table_after_matrices():
    """Population analysis headers mention ATOM and SHELL but are not the atom table."""
    text = minimal_output() + (
        " ALPHA+BETA ELECTRONS\n"
        " MULLIKEN POPULATION ANALYSIS - NO. OF ELECTRONS   4.000000\n\n"
        " ATOM    Z CHARGE  SHELL POPULATION\n"
        "  1 2\n"
        "    1 C    6  4.000  2.000  2.000\n"
    )

    system = parse_crystal_output(text_stream(text))

    np.testing.assert_array_equal(system.motif, [[0.0, 0.0, 0.0, 0.0]])
    np.testing.assert_allclose(system.hamiltonian[0], FOCK_2X2)


def test_lower_triangle_file_with_real_and_imaginary_parts():
    """Matrices printed as lower triangles are completed to Hermitian matrices."""
    print("\nTest: Lower-triangle REAL/IMAG file")
    print("-" * 50)

    S = np.array([[1.0, 0.2], [0.2, 1.0]])
    F = np.array([[-5.0, 0.5], [0.5, -4.0]])
    G = np.array([[0.0, -0.3], [0.3, 0.0]])
    text = (
        lattice_section() + "\n"
        + header_section(natoms=1, nshells=1, norbitals=2, electrons=4) + "\n"
        + atoms_section([(6, 'C', 1, (0.0, 0.0, 0.0))]) + "\n"
        + basis_section([('C', SINGLE_SHELL)]) + "\n"
        + matrix_section('OVERLAP', 1, (0, 0, 0), S, lower=True)
        + matrix_section('FOCK', 1, (0, 0, 0), F, part='REAL', lower=True)
        + matrix_section('FOCK', 1, (0, 0, 0), G, part='IMAG', lower=True)
    )

    system = parse_crystal_output(text_stream(text))

    np.testing.assert_allclose(system.overlap[0], S)
    np.testing.assert_allclose(system.hamiltonian[0], F + 1j * G)
    H = system.hamiltonian[0]
    np.testing.assert_allclose(H, H.conj().T)
    print("  PASSED")


def test_alpha_plus_beta_header_keeps_spin_channel():
    """Only lines opening with BETA ELECTRONS select the beta channel."""
    A = np.array([[1.0, 2.0], [3.0, 4.0]])
    B = np.array([[5.0, 6.0], [7.0, 8.0]])
    O = np.eye(2)
    text = spin_polarized_output(A, B, O).replace(
        " ALPHA ELECTRONS\n", " ALPHA ELECTRONS\n ALPHA+BETA ELECTRONS\n"
    )

    system = parse_crystal_output(text_stream(text))

    np.testing.assert_allclose(
        system.hamiltonian[0], np.kron(A, [[1, 0], [0, 0]]) + np.kron(B, [[0, 0], [0, 1]])
    )
