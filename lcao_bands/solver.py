"""
Eigenvalue Solver Module

This module contains functions for solving the generalized eigenvalue
problem H(k) C(k) = S(k) C(k) E(k) at each k-point by symmetric (Löwdin)
orthogonalization followed by a standard Hermitian diagonalization.
"""

import numpy as np
from scipy.linalg import eigh
from typing import List, Optional, Sequence, Tuple

from .bands import BandSample
from .fourier import bloch_sum
from .snapshot import SystemSnapshot


class SingularOverlapError(np.linalg.LinAlgError):
    """Raised when S(k) is not positive definite, so S^(-1/2) is undefined."""

    def __init__(self, message: str, k_point=None, min_eigenvalue: Optional[float] = None):
        super().__init__(message)
        self.k_point = k_point
        self.min_eigenvalue = min_eigenvalue


class ScanCancelled(RuntimeError):
    """Raised when a band scan is abandoned through its cancel event."""


def inverse_sqrt_overlap(
    S_k: np.ndarray,
    tolerance: float = 1e-10,
    k_point: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Compute S^(-1/2) of a Hermitian overlap matrix by eigendecomposition.

    Parameters
    ----------
    S_k : ndarray of shape (N, N)
        Overlap matrix at a k-point
    tolerance : float, optional
        Smallest eigenvalue accepted (default: 1e-10)
    k_point : ndarray, optional
        Reported in the error message

    Returns
    -------
    ndarray of shape (N, N)
        Hermitian inverse square root of S_k

    Raises
    ------
    SingularOverlapError
        If an eigenvalue of S_k is not finite or not above ``tolerance``
    """
    eigenvalues, eigenvectors = eigh(S_k)

    if not np.all(np.isfinite(eigenvalues)) or eigenvalues[0] <= tolerance:
        raise SingularOverlapError(
            f"Overlap matrix is singular or not positive definite at k={k_point}: "
            f"smallest eigenvalue {eigenvalues[0]:.3e} (tolerance {tolerance:.1e})",
            k_point=k_point,
            min_eigenvalue=float(eigenvalues[0]),
        )

    return (eigenvectors * eigenvalues**-0.5) @ eigenvectors.conj().T


def orthogonalize_hamiltonian(
    H_k: np.ndarray,
    S_k: np.ndarray,
    tolerance: float = 1e-10,
    k_point: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Transform H_k in place to S^(-1/2) H S^(-1/2).

    The generalized problem H ψ = E S ψ becomes the standard Hermitian
    problem H' ψ' = E ψ' with ψ' = S^(1/2) ψ.

    The product is complex whenever S is, so H_k must be a complex array.

    Returns
    -------
    H_k : ndarray
        The same array, overwritten

    Raises
    ------
    TypeError
        If H_k is not a complex array
    """
    if not np.iscomplexobj(H_k):
        raise TypeError(
            f"H_k must be a complex array to be overwritten in place, got dtype {H_k.dtype}"
        )

    X = inverse_sqrt_overlap(S_k, tolerance, k_point)
    H_k[...] = X @ H_k @ X
    return H_k


def solve_standard_eigenvalue_problem(H_k: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Diagonalize a Hermitian matrix.

    scipy.linalg.eigh sorts eigenvalues in ascending order and returns
    orthonormal eigenvectors as columns.
    """
    return eigh(H_k)


def solve_kpoint(
    k_idx: int,
    k_point: np.ndarray,
    snapshot: SystemSnapshot,
    triangular: bool = False,
    overlap_tolerance: float = 1e-10
) -> Tuple[int, BandSample]:
    """
    Build H(k) and S(k), orthogonalize and diagonalize at one k-point.

    This function only reads ``snapshot`` and is designed to be easily
    parallelizable.

    Parameters
    ----------
    k_idx : int
        Index of the k-point (for sorting in parallel execution)
    k_point : ndarray of shape (3,)
        Cartesian k-point
    snapshot : SystemSnapshot
        Real-space model
    triangular : bool, optional
        Sum only the lower triangles of the blocks (default: False)
    overlap_tolerance : float, optional
        Smallest accepted eigenvalue of S(k)

    Returns
    -------
    k_idx : int
        k-point index
    sample : BandSample
        Ascending energies and eigenvectors in the orthogonalized basis
    """
    H_k = bloch_sum(k_point, snapshot.hamiltonian_matrices, snapshot.bravais_vectors, triangular)
    S_k = bloch_sum(k_point, snapshot.overlap_matrices, snapshot.bravais_vectors, triangular)

    orthogonalize_hamiltonian(H_k, S_k, overlap_tolerance, k_point)
    eigenvalues, eigenvectors = solve_standard_eigenvalue_problem(H_k)

    return k_idx, BandSample(np.array(k_point), eigenvalues, eigenvectors)


def _solve_indexed_kpoint(
    indexed_kpoint: Tuple[int, np.ndarray],
    snapshot: SystemSnapshot,
    triangular: bool,
    overlap_tolerance: float
) -> Tuple[int, BandSample]:
    k_idx, k_point = indexed_kpoint
    return solve_kpoint(k_idx, k_point, snapshot, triangular, overlap_tolerance)


def solve_all_kpoints_sequential(
    k_points: Sequence[np.ndarray],
    snapshot: SystemSnapshot,
    triangular: bool = False,
    overlap_tolerance: float = 1e-10,
    cancel_event=None
) -> List[BandSample]:
    """
    Solve the eigenvalue problems at all k-points sequentially.

    Parameters
    ----------
    k_points : sequence of ndarrays of shape (3,)
        Cartesian k-points
    snapshot : SystemSnapshot
        Real-space model
    triangular : bool, optional
        Sum only the lower triangles of the blocks
    overlap_tolerance : float, optional
        Smallest accepted eigenvalue of S(k)
    cancel_event : threading.Event-like, optional
        Checked between k-points; when set the scan stops

    Returns
    -------
    samples : list of BandSample
        One sample per k-point, in input order

    Raises
    ------
    ScanCancelled
        If ``cancel_event`` is set before the scan completes
    """
    samples = []

    for k_idx, k_point in enumerate(k_points):
        if cancel_event is not None and cancel_event.is_set():
            raise ScanCancelled(f"Band scan cancelled after {k_idx} of {len(k_points)} k-points")
        _, sample = solve_kpoint(k_idx, k_point, snapshot, triangular, overlap_tolerance)
        samples.append(sample)

    return samples


def scan_chunksize(num_kpoints: int, num_processes: int) -> int:
    """
    Number of k-points handed to a worker at a time.

    Every task pickles the whole snapshot, so points are batched into
    about four chunks per process.
    """
    return max(1, num_kpoints // (4 * max(1, num_processes)))


def solve_all_kpoints_parallel(
    k_points: Sequence[np.ndarray],
    snapshot: SystemSnapshot,
    triangular: bool = False,
    overlap_tolerance: float = 1e-10,
    num_processes: Optional[int] = None,
    cancel_event=None
) -> List[BandSample]:
    """
    Solve the eigenvalue problems at all k-points in parallel.

    Each worker receives its own copy of the snapshot; results are put
    back in k-point order regardless of completion order.

    Parameters
    ----------
    k_points : sequence of ndarrays of shape (3,)
        Cartesian k-points
    snapshot : SystemSnapshot
        Real-space model
    triangular : bool, optional
        Sum only the lower triangles of the blocks
    overlap_tolerance : float, optional
        Smallest accepted eigenvalue of S(k)
    num_processes : int, optional
        Number of parallel processes (default: use all CPUs)
    cancel_event : threading.Event-like, optional
        Checked as results arrive; when set, outstanding work is abandoned

    Returns
    -------
    samples : list of BandSample
        One sample per k-point, in input order
    """
    import multiprocessing as mp
    from functools import partial

    if num_processes is None:
        num_processes = min(mp.cpu_count(), len(k_points))

    # Create partial function with fixed parameters
    solve_func = partial(
        _solve_indexed_kpoint,
        snapshot=snapshot,
        triangular=triangular,
        overlap_tolerance=overlap_tolerance
    )

    chunksize = scan_chunksize(len(k_points), num_processes)

    results = []
    with mp.Pool(processes=num_processes) as pool:
        for result in pool.imap_unordered(solve_func, enumerate(k_points), chunksize=chunksize):
            if cancel_event is not None and cancel_event.is_set():
                raise ScanCancelled(
                    f"Band scan cancelled after {len(results)} of {len(k_points)} k-points"
                )
            results.append(result)

    # Sort results by k_idx
    results.sort(key=lambda x: x[0])

    return [sample for _, sample in results]
