"""
System Snapshot Module

This module contains the immutable data model produced by the CRYSTAL
output parser: lattice, motif, atomic basis and the real-space overlap
and Fock matrices indexed by lattice translation.
"""

import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass, field

HARTREE_TO_EV = 27.2114


def _read_only(array: np.ndarray, dtype=None) -> np.ndarray:
    """Return a contiguous copy of ``array`` that cannot be written to."""
    frozen = np.array(array, dtype=dtype, copy=True, order='C')
    frozen.setflags(write=False)
    return frozen


# ==============================
# Report Metadata
# ==============================

@dataclass(frozen=True)
class CalculationParameters:
    """
    Optional metadata found while scanning a CRYSTAL report.

    Attributes
    ----------
    fermi_energy : float or None
        Fermi energy in eV (converted from Hartree)
    fermi_energy_hartree : float or None
        Fermi energy in Hartree (raw value from file)
    k_grid : tuple of 3 ints or None
        Monkhorst-Pack shrinking factors
    total_energy : float or None
        Total energy in Hartree
    """
    fermi_energy: Optional[float] = None
    fermi_energy_hartree: Optional[float] = None
    k_grid: Optional[Tuple[int, int, int]] = None
    total_energy: Optional[float] = None


# ==============================
# Basis Description
# ==============================

@dataclass(frozen=True)
class Shell:
    """A contracted shell: type tag plus (exponent, s, p, d/f coef) primitives."""
    shell_type: str
    primitives: np.ndarray

    def __post_init__(self):
        primitives = np.asarray(self.primitives, dtype=np.float64).reshape(-1, 4)
        object.__setattr__(self, 'primitives', _read_only(primitives))

    @property
    def num_primitives(self) -> int:
        return self.primitives.shape[0]


@dataclass(frozen=True)
class Species:
    """
    Chemical species of the motif, defined by its first occurrence.

    Attributes
    ----------
    label : str
        Species label as printed in the atom listing (e.g. 'B', 'N')
    atomic_number : int
        Atomic number column of the listing
    num_shells : int
        Number of basis shells on one atom of this species
    num_orbitals : int
        Number of atomic orbitals on one atom of this species
    shells : tuple of Shell
        Basis shells in file order (empty if no basis section was found)
    """
    label: str
    atomic_number: int
    num_shells: int
    num_orbitals: int = 0
    shells: Tuple[Shell, ...] = ()


# ==============================
# Snapshot
# ==============================

@dataclass(frozen=True)
class SystemSnapshot:
    """
    Immutable real-space model parsed from a CRYSTAL report.

    Block arrays are stored as contiguous, read-only cubes of shape
    ``(num_cells, basis_dim, basis_dim)``. The overlap and Hamiltonian cubes
    are parallel: slice ``i`` of both belongs to ``cells[i]``, whose
    Cartesian translation is ``bravais_vectors[i]``.

    Attributes
    ----------
    ndim : int
        Number of periodic directions (1, 2 or 3)
    bravais_lattice : ndarray of shape (ndim, 3)
        Retained direct lattice vectors (rows), in Angstrom
    lattice_axes : tuple of int
        Which of the three printed lattice vectors were retained
    motif : ndarray of shape (num_atoms, 4)
        Rows (x, y, z, species_index); atom 0 sits at the origin
    species : tuple of Species
        Species in first-seen order
    orbitals_per_atom : tuple of int
        Orbital count of each atom of the motif
    basis_dim : int
        Number of atomic orbitals (size of every matrix)
    cells : ndarray of shape (num_cells, 3)
        Integer lattice coordinates of each retained cell
    bravais_vectors : ndarray of shape (num_cells, 3)
        Cartesian translation of each retained cell
    overlap_matrices : ndarray of shape (num_cells, basis_dim, basis_dim)
        Real-space overlap blocks S(R)
    hamiltonian_matrices : ndarray of shape (num_cells, basis_dim, basis_dim)
        Real-space Fock blocks H(R)
    num_shells : int or None
        Total number of shells reported
    valence_electrons, core_electrons : int or None
        Electron counts per cell
    filling : int or None
        Number of doubly-occupied orbitals
    parameters : CalculationParameters
        Extra report metadata
    """
    ndim: int
    bravais_lattice: np.ndarray
    lattice_axes: Tuple[int, ...]
    motif: np.ndarray
    species: Tuple[Species, ...]
    orbitals_per_atom: Tuple[int, ...]
    basis_dim: int
    cells: np.ndarray
    bravais_vectors: np.ndarray
    overlap_matrices: np.ndarray
    hamiltonian_matrices: np.ndarray
    num_shells: Optional[int] = None
    valence_electrons: Optional[int] = None
    core_electrons: Optional[int] = None
    filling: Optional[int] = None
    parameters: CalculationParameters = field(default_factory=CalculationParameters)

    def __post_init__(self):
        object.__setattr__(self, 'bravais_lattice', _read_only(self.bravais_lattice, np.float64))
        object.__setattr__(self, 'motif', _read_only(self.motif, np.float64))
        object.__setattr__(self, 'cells', _read_only(self.cells, np.int64).reshape(-1, 3))
        object.__setattr__(self, 'bravais_vectors', _read_only(self.bravais_vectors, np.float64).reshape(-1, 3))
        object.__setattr__(self, 'overlap_matrices', _read_only(self.overlap_matrices, np.complex128))
        object.__setattr__(self, 'hamiltonian_matrices', _read_only(self.hamiltonian_matrices, np.complex128))

        if self.overlap_matrices.shape != self.hamiltonian_matrices.shape:
            raise ValueError(
                f"Overlap blocks {self.overlap_matrices.shape} and Hamiltonian blocks "
                f"{self.hamiltonian_matrices.shape} are not parallel"
            )
        expected = (len(self.cells), self.basis_dim, self.basis_dim)
        if self.hamiltonian_matrices.shape != expected:
            raise ValueError(
                f"Real-space blocks have shape {self.hamiltonian_matrices.shape}, expected {expected}"
            )

    @property
    def num_atoms(self) -> int:
        return self.motif.shape[0]

    @property
    def num_species(self) -> int:
        return len(self.species)

    @property
    def num_cells(self) -> int:
        return self.cells.shape[0]

    @property
    def positions(self) -> np.ndarray:
        return self.motif[:, :3]

    @property
    def species_indices(self) -> np.ndarray:
        return self.motif[:, 3].astype(int)

    @property
    def orbitals_per_species(self) -> Tuple[int, ...]:
        return tuple(s.num_orbitals for s in self.species)

    def cell_index(self, cell: Tuple[int, int, int]) -> Optional[int]:
        """Position of an integer cell in the block cubes, or None if not retained."""
        matches = np.flatnonzero(np.all(self.cells == np.asarray(cell), axis=1))
        return int(matches[0]) if len(matches) else None
