"""
K-Point Module

This module contains functions for building wavevectors: the reciprocal
lattice of a 1D/2D/3D Bravais lattice, Monkhorst-Pack grids and
high-symmetry paths. All k-points handed to the solver are Cartesian, in
inverse Angstrom, so that the Bloch phase is exp(i k·R).
"""

import numpy as np
from typing import List, Sequence, Tuple, Union

# Fractional coordinates in the reciprocal basis (b1, b2, b3)
HIGH_SYMMETRY_POINTS = {
    'G': (0.0, 0.0, 0.0),
    'X': (0.5, 0.0, 0.0),
    'Y': (0.0, 0.5, 0.0),
    'Z': (0.0, 0.0, 0.5),
    'M': (0.5, 0.5, 0.0),
    'R': (0.5, 0.5, 0.5),
    'K': (1.0 / 3.0, 1.0 / 3.0, 0.0),
    "K'": (-1.0 / 3.0, -1.0 / 3.0, 0.0),
}

LABEL_ALIASES = {
    'Γ': 'G',
    'GAMMA': 'G',
}


def as_kpoint(k_point: Sequence[float]) -> np.ndarray:
    """
    Convert a wavevector with 1 to 3 components into a Cartesian 3-vector.

    Missing trailing components are set to zero, so ``[kx, ky]`` is accepted
    for 2D systems.
    """
    k = np.asarray(k_point, dtype=np.float64).ravel()
    if k.size == 0 or k.size > 3:
        raise ValueError(f"A k-point needs 1 to 3 components, got {k.size}")
    if k.size < 3:
        k = np.concatenate([k, np.zeros(3 - k.size)])
    return k


def reciprocal_lattice(bravais_lattice: np.ndarray) -> np.ndarray:
    """
    Compute reciprocal lattice vectors satisfying a_i · b_j = 2π δ_ij.

    Parameters
    ----------
    bravais_lattice : ndarray of shape (ndim, 3)
        Direct lattice vectors (rows), ndim = 1, 2 or 3

    Returns
    -------
    reciprocal : ndarray of shape (ndim, 3)
        Reciprocal lattice vectors (rows), lying in the span of the
        direct vectors

    Examples
    --------
    >>> reciprocal_lattice(np.eye(3) * 2.0)[0]
    array([3.14159265, 0.        , 0.        ])
    """
    A = np.atleast_2d(np.asarray(bravais_lattice, dtype=np.float64))
    if A.shape[1] != 3 or not 1 <= A.shape[0] <= 3:
        raise ValueError(f"Bravais lattice must have shape (ndim, 3), got {A.shape}")
    if np.linalg.matrix_rank(A) != A.shape[0]:
        raise ValueError("Bravais lattice vectors are linearly dependent")
    return 2 * np.pi * np.linalg.pinv(A).T


def fractional_to_cartesian(
    kpoints: np.ndarray,
    reciprocal: np.ndarray
) -> np.ndarray:
    """
    Convert fractional k-points (in units of b1, b2, b3) to Cartesian.

    Components beyond the dimensionality of ``reciprocal`` must be zero.
    """
    kpoints = np.atleast_2d(np.asarray(kpoints, dtype=np.float64))
    ndim = reciprocal.shape[0]
    if np.any(np.abs(kpoints[:, ndim:]) > 1e-12):
        raise ValueError(
            f"k-point has components along non-periodic directions of a {ndim}D lattice"
        )
    return kpoints[:, :ndim] @ reciprocal


def generate_kpoint_grid(k_grid: Tuple[int, int, int]) -> np.ndarray:
    """
    Generate a Monkhorst-Pack k-point grid in fractional coordinates.

    The k-points are uniformly distributed in the first Brillouin zone
    using fractional coordinates: k = (i/nk1, j/nk2, k/nk3).

    Parameters
    ----------
    k_grid : tuple of 3 ints
        Dimensions of the k-point grid (nk1, nk2, nk3); use 1 along
        non-periodic directions

    Returns
    -------
    kpoints : ndarray of shape (num_kpoints, 3)
        Array of k-points in fractional coordinates

    Examples
    --------
    >>> k_grid = (2, 2, 1)
    >>> kpoints = generate_kpoint_grid(k_grid)
    >>> print(kpoints.shape)
    (4, 3)
    >>> print(kpoints[0])
    [0. 0. 0.]
    """
    nk1, nk2, nk3 = k_grid
    if min(k_grid) < 1:
        raise ValueError(f"Grid dimensions must be positive, got {k_grid}")

    kpoints = []
    for i in range(nk1):
        for j in range(nk2):
            for k in range(nk3):
                kpoints.append([i / nk1, j / nk2, k / nk3])

    return np.array(kpoints)


def parse_path(path: Union[str, Sequence[str]]) -> List[str]:
    """
    Split a high-symmetry path such as ``"G-X-M-G"`` into labels.

    Labels are case-insensitive; ``Γ`` and ``GAMMA`` stand for ``G``.
    """
    if isinstance(path, str):
        tokens = [token.strip() for token in path.replace(',', '-').split('-')]
    else:
        tokens = [str(token).strip() for token in path]

    labels = []
    for token in tokens:
        if not token:
            continue
        label = LABEL_ALIASES.get(token.upper(), token.upper())
        if label not in HIGH_SYMMETRY_POINTS:
            raise ValueError(
                f"Unknown high-symmetry label {token!r}; known labels: "
                f"{', '.join(HIGH_SYMMETRY_POINTS)}"
            )
        labels.append(label)

    if len(labels) < 2:
        raise ValueError(f"A path needs at least two labels, got {labels}")
    return labels


def generate_kpath(
    labels: Sequence[str],
    reciprocal: np.ndarray,
    num_points: int = 50
) -> Tuple[np.ndarray, np.ndarray, List[int]]:
    """
    Interpolate a straight-line path through high-symmetry points.

    Parameters
    ----------
    labels : sequence of str
        High-symmetry labels (see HIGH_SYMMETRY_POINTS)
    reciprocal : ndarray of shape (ndim, 3)
        Reciprocal lattice vectors
    num_points : int, optional
        Points per segment, the segment end excluded (default: 50)

    Returns
    -------
    kpoints : ndarray of shape (num_kpoints, 3)
        Cartesian k-points along the path
    distances : ndarray of shape (num_kpoints,)
        Cumulative path length, for plotting
    tick_indices : list of int
        Index of each high-symmetry point in ``kpoints``
    """
    if num_points < 1:
        raise ValueError(f"num_points must be positive, got {num_points}")

    corners = fractional_to_cartesian(
        np.array([HIGH_SYMMETRY_POINTS[label] for label in labels]), reciprocal
    )

    segments = []
    tick_indices = [0]
    for start, end in zip(corners[:-1], corners[1:]):
        t = np.arange(num_points)[:, None] / num_points
        segments.append(start + t * (end - start))
        tick_indices.append(tick_indices[-1] + num_points)
    segments.append(corners[-1:])

    kpoints = np.vstack(segments)
    steps = np.linalg.norm(np.diff(kpoints, axis=0), axis=1)
    distances = np.concatenate([[0.0], np.cumsum(steps)])

    return kpoints, distances, tick_indices
