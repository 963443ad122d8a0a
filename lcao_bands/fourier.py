"""
Fourier Transform Module

This module contains functions for Fourier transforming real-space
matrices to k-space using the Bloch phase factor e^(i k·R), with k and R
both Cartesian.
"""

import numpy as np


def compute_phase_factors(
    k_points: np.ndarray,
    bravais_vectors: np.ndarray
) -> np.ndarray:
    """
    Compute the phase factors e^(i k·R) for all k-points and cells.

    Parameters
    ----------
    k_points : ndarray of shape (num_kpoints, 3) or (3,)
        Cartesian k-points
    bravais_vectors : ndarray of shape (num_cells, 3)
        Cartesian translations of the cells

    Returns
    -------
    phase_factors : ndarray of shape (num_kpoints, num_cells)
        Pre-computed phase factors (a 1D array for a single k-point)
    """
    k_points = np.asarray(k_points, dtype=np.float64)
    return np.exp(1j * (k_points @ np.asarray(bravais_vectors, dtype=np.float64).T))


def complete_hermitian(lower: np.ndarray) -> np.ndarray:
    """
    Build a Hermitian matrix from its lower triangle.

    The strict upper triangle of ``lower`` is ignored and replaced by the
    conjugate of the strict lower triangle; the diagonal keeps its real part.
    """
    strict = np.tril(lower, -1)
    return strict + strict.conj().T + np.diag(lower.diagonal().real)


def bloch_sum(
    k_point: np.ndarray,
    blocks: np.ndarray,
    bravais_vectors: np.ndarray,
    triangular: bool = False
) -> np.ndarray:
    """
    Fourier transform real-space blocks M(R) to k-space.

    Computes:
        M(k) = Σ_R e^(i k·R) M(R)

    Parameters
    ----------
    k_point : ndarray of shape (3,)
        Cartesian k-point
    blocks : ndarray of shape (num_cells, N, N)
        Real-space matrices, one per cell
    bravais_vectors : ndarray of shape (num_cells, 3)
        Cartesian translation of each cell
    triangular : bool, optional
        If True, only the lower triangle is summed and the upper triangle
        is filled by conjugate symmetry (default: False)

    Returns
    -------
    M_k : ndarray of shape (N, N)
        Complex matrix in k-space

    Examples
    --------
    >>> H_k = bloch_sum(np.zeros(3), H_blocks, R_vectors)
    >>> np.allclose(H_k, H_blocks.sum(axis=0))
    True
    """
    phases = compute_phase_factors(k_point, bravais_vectors)

    if not triangular:
        return np.tensordot(phases, blocks, axes=(0, 0))

    num_orbitals = blocks.shape[1]
    rows, cols = np.tril_indices(num_orbitals)
    M_k = np.zeros((num_orbitals, num_orbitals), dtype=np.complex128)
    M_k[rows, cols] = phases @ blocks[:, rows, cols]

    return complete_hermitian(M_k)
