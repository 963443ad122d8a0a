"""
Bloch Solver Module

This module contains the BlochSolver class, which turns a parsed
SystemSnapshot into band energies, eigenstates and spin expectation values
at arbitrary wavevectors.
"""

import numpy as np
from typing import Callable, Optional, Sequence, Tuple, Union

from .bands import BandSample, BandStructure, estimate_fermi_energy, print_band_summary
from .fourier import bloch_sum
from .kpoints import (
    as_kpoint,
    fractional_to_cartesian,
    generate_kpath,
    generate_kpoint_grid,
    parse_path,
    reciprocal_lattice,
)
from .snapshot import SystemSnapshot
from .solver import (
    orthogonalize_hamiltonian,
    solve_all_kpoints_parallel,
    solve_all_kpoints_sequential,
    solve_kpoint,
)
from .spin import expected_spin_x, expected_spin_y, expected_spin_z
from .utils import check_matrix_consistency, print_calculation_info, print_snapshot_summary

PathSpec = Union[str, Sequence[str], Sequence[Sequence[float]], np.ndarray]


class BlochSolver:
    """
    Bloch Hamiltonian assembly and diagonalization for a CRYSTAL system.

    The pipeline at each wavevector is linear:
    1. Fourier sum of the real-space blocks into H(k) and S(k)
    2. Löwdin orthogonalization, H' = S^(-1/2) H S^(-1/2)
    3. Hermitian diagonalization of H'

    The snapshot is only ever read, so one solver can serve any number of
    concurrent queries.

    Attributes
    ----------
    snapshot : SystemSnapshot
        Real-space model (read-only)
    reciprocal_lattice : ndarray of shape (ndim, 3)
        Reciprocal lattice vectors
    overlap_tolerance : float
        Smallest accepted eigenvalue of S(k)
    verbose : bool
        Print progress information

    Examples
    --------
    >>> snapshot = parse_crystal_file('hBN.outp', cell_cutoff=25)
    >>> solver = BlochSolver(snapshot)
    >>> energies, eigenvectors = solver.solve_bands([0.0, 0.0])
    >>> bands = solver.solve_path('G-K-M-G', num_points=100)
    """

    def __init__(
        self,
        snapshot: SystemSnapshot,
        overlap_tolerance: float = 1e-10,
        verbose: bool = False
    ):
        if not check_matrix_consistency(snapshot):
            raise ValueError("Inconsistent real-space blocks in snapshot")

        self._snapshot = snapshot
        self._filling = snapshot.filling
        self.overlap_tolerance = overlap_tolerance
        self.verbose = verbose
        self.reciprocal_lattice = reciprocal_lattice(snapshot.bravais_lattice)

        if verbose:
            print_snapshot_summary(snapshot)

    # ==============================
    # Read-only accessors
    # ==============================

    @property
    def snapshot(self) -> SystemSnapshot:
        return self._snapshot

    @property
    def ndim(self) -> int:
        return self._snapshot.ndim

    @property
    def bravais_lattice(self) -> np.ndarray:
        return self._snapshot.bravais_lattice

    @property
    def motif(self) -> np.ndarray:
        return self._snapshot.motif

    @property
    def basis_dim(self) -> int:
        return self._snapshot.basis_dim

    @property
    def orbitals_per_species(self) -> Tuple[int, ...]:
        return self._snapshot.orbitals_per_species

    @property
    def bravais_vectors(self) -> np.ndarray:
        return self._snapshot.bravais_vectors

    @property
    def hamiltonian_matrices(self) -> np.ndarray:
        return self._snapshot.hamiltonian_matrices

    @property
    def overlap_matrices(self) -> np.ndarray:
        return self._snapshot.overlap_matrices

    @property
    def filling(self) -> Optional[int]:
        return self._filling

    @property
    def fermi_level(self) -> int:
        """Index of the highest occupied band."""
        if self._filling is None:
            raise ValueError("Filling is unknown; call set_filling() first")
        return self._filling - 1

    def set_filling(self, filling: int) -> None:
        """Override the number of occupied bands derived from the electron count."""
        if int(filling) != filling or not 0 < filling <= self.basis_dim:
            raise ValueError(f"Filling must be an integer in 1..{self.basis_dim}, got {filling}")
        self._filling = int(filling)

    # ==============================
    # Bloch matrices
    # ==============================

    def hamiltonian(self, k: Sequence[float], triangular: bool = False) -> np.ndarray:
        """
        Bloch Hamiltonian H(k) = Σ_R H(R) e^(i k·R).

        With ``triangular`` only the lower triangle is summed and the upper
        one is completed by conjugate symmetry.
        """
        return bloch_sum(
            as_kpoint(k), self._snapshot.hamiltonian_matrices,
            self._snapshot.bravais_vectors, triangular
        )

    def overlap(self, k: Sequence[float], triangular: bool = False) -> np.ndarray:
        """Overlap matrix S(k) = Σ_R S(R) e^(i k·R)."""
        return bloch_sum(
            as_kpoint(k), self._snapshot.overlap_matrices,
            self._snapshot.bravais_vectors, triangular
        )

    def orthogonalize(
        self,
        k: Sequence[float],
        H: np.ndarray,
        triangular: bool = False
    ) -> np.ndarray:
        """
        Overwrite H with S(k)^(-1/2) H S(k)^(-1/2).

        Raises
        ------
        SingularOverlapError
            If S(k) is not positive definite
        TypeError
            If H is not a complex array
        """
        k = as_kpoint(k)
        S = self.overlap(k, triangular)
        return orthogonalize_hamiltonian(H, S, self.overlap_tolerance, k)

    # ==============================
    # Band structure
    # ==============================

    def solve_bands(
        self,
        k: Sequence[float],
        triangular: bool = False
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Band energies and eigenvectors at one wavevector.

        Parameters
        ----------
        k : sequence of 1 to 3 floats
            Cartesian wavevector (missing components are zero)
        triangular : bool, optional
            Sum only the lower triangles of the blocks (default: False)

        Returns
        -------
        energies : ndarray of shape (basis_dim,)
            Eigenvalues in ascending order
        eigenvectors : ndarray of shape (basis_dim, basis_dim)
            Matching eigenvectors (columns) in the orthogonalized basis
        """
        _, sample = solve_kpoint(
            0, as_kpoint(k), self._snapshot, triangular, self.overlap_tolerance
        )
        return sample.energies, sample.eigenvectors

    def resolve_path(
        self,
        path: PathSpec,
        num_points: int = 50
    ) -> Tuple[np.ndarray, list, list, Optional[np.ndarray]]:
        """
        Turn a path specification into Cartesian k-points.

        A string such as ``"G-X-M-G"`` or a list of labels is interpolated
        with ``num_points`` per segment; any other sequence is taken as an
        explicit list of wavevectors.

        Returns
        -------
        kpoints, labels, tick_indices, distances
        """
        is_labels = isinstance(path, str) or (
            len(path) > 0 and all(isinstance(item, str) for item in path)
        )
        if is_labels:
            labels = parse_path(path)
            kpoints, distances, ticks = generate_kpath(labels, self.reciprocal_lattice, num_points)
            return kpoints, labels, ticks, distances

        kpoints = np.array([as_kpoint(k) for k in path])
        if kpoints.size == 0:
            raise ValueError("Empty k-point list")
        return kpoints, [], [], None

    def solve_path(
        self,
        path: PathSpec,
        num_points: int = 50,
        triangular: bool = False,
        parallel: bool = False,
        num_processes: Optional[int] = None,
        sink: Optional[Callable[[BandSample], None]] = None,
        cancel_event=None
    ) -> BandStructure:
        """
        Solve the bands along a high-symmetry path or an explicit k list.

        Parameters
        ----------
        path : str, sequence of str, or sequence of k-vectors
            ``"G-X-M-G"``, ``['G', 'K', 'M']`` or ``[[0, 0], [0.1, 0], ...]``
        num_points : int, optional
            Points per path segment when labels are given (default: 50)
        triangular : bool, optional
            Sum only the lower triangles of the blocks
        parallel : bool, optional
            Distribute k-points over a process pool (default: False)
        num_processes : int, optional
            Pool size (default: all CPUs)
        sink : callable, optional
            Called with every BandSample, in k-point order, once the scan
            is complete (e.g. a writer owned by the caller)
        cancel_event : threading.Event-like, optional
            When set, the scan is abandoned with ScanCancelled

        Returns
        -------
        BandStructure
            Samples in k-point order
        """
        kpoints, labels, ticks, distances = self.resolve_path(path, num_points)
        samples = self._solve_kpoints(kpoints, triangular, parallel, num_processes, cancel_event)

        if sink is not None:
            for sample in samples:
                sink(sample)

        bands = BandStructure(samples, labels=labels, tick_indices=ticks, distances=distances)

        if self.verbose:
            print_band_summary(bands, self._filling)

        return bands

    def solve_grid(
        self,
        k_grid: Tuple[int, int, int],
        triangular: bool = False,
        parallel: bool = False,
        num_processes: Optional[int] = None,
        cancel_event=None
    ) -> BandStructure:
        """Solve the bands on a Monkhorst-Pack grid (1 along non-periodic axes)."""
        if any(n != 1 for n in k_grid[self.ndim:]):
            raise ValueError(f"k_grid {k_grid} samples non-periodic directions of a {self.ndim}D system")

        kpoints = fractional_to_cartesian(generate_kpoint_grid(k_grid), self.reciprocal_lattice)
        samples = self._solve_kpoints(kpoints, triangular, parallel, num_processes, cancel_event)
        return BandStructure(samples)

    def fermi_energy(self, k_grid: Tuple[int, int, int] = (8, 8, 8)) -> float:
        """Estimate the Fermi energy from the filling on a k-point grid."""
        grid = tuple(n if axis < self.ndim else 1 for axis, n in enumerate(k_grid))
        return estimate_fermi_energy(self.solve_grid(grid), self.fermi_level + 1)

    def _solve_kpoints(self, kpoints, triangular, parallel, num_processes, cancel_event):
        if self.verbose:
            print_calculation_info(len(kpoints), self.basis_dim, self._snapshot.num_cells, parallel)

        if parallel and len(kpoints) > 1:
            samples = solve_all_kpoints_parallel(
                kpoints, self._snapshot, triangular, self.overlap_tolerance,
                num_processes, cancel_event
            )
        else:
            samples = solve_all_kpoints_sequential(
                kpoints, self._snapshot, triangular, self.overlap_tolerance, cancel_event
            )

        if self.verbose:
            print(f"✓ Eigenvalue problems solved at {len(samples)} k-points")

        return samples

    # ==============================
    # Spin expectation values
    # ==============================

    def expected_spin_x(self, eigenvector: np.ndarray) -> float:
        """<ψ|σ_x ⊗ I|ψ> for a basis ordered as (spin-up half, spin-down half)."""
        return expected_spin_x(eigenvector, self.basis_dim)

    def expected_spin_y(self, eigenvector: np.ndarray) -> float:
        """<ψ|σ_y ⊗ I|ψ> for a basis ordered as (spin-up half, spin-down half)."""
        return expected_spin_y(eigenvector, self.basis_dim)

    def expected_spin_z(self, eigenvector: np.ndarray) -> float:
        """<ψ|σ_z ⊗ I|ψ> for a basis ordered as (spin-up half, spin-down half)."""
        return expected_spin_z(eigenvector, self.basis_dim)
