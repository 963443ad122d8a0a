"""
Verification Module

This module contains functions for verifying the numerical accuracy
and physical consistency of the parsed real-space matrices and of the
k-space quantities derived from them.
"""

import numpy as np
import warnings
from typing import List, Tuple

from .snapshot import SystemSnapshot

# ==============================
# Basic Utility
# ==============================

def is_hermitian(matrix: np.ndarray, tol: float = 1e-10) -> bool:
    """Check if a matrix is Hermitian."""
    return np.allclose(matrix, matrix.conj().T, atol=tol)


# ==============================
# Real-Space Verification
# ==============================

def verify_real_space_symmetry(
    snapshot: SystemSnapshot,
    tolerance: float = 1e-10,
    verbose: bool = True
) -> bool:
    """
    Verify that the real-space blocks satisfy the symmetries of a Hermitian
    Bloch Hamiltonian:
    1. H(0) and S(0) are Hermitian.
    2. H(R) = H(-R)†
    3. S(R) = S(-R)†

    Cells whose partner -R lies beyond the cell cutoff are reported and
    skipped.

    Returns True if all checks pass.
    """
    if verbose:
        print("\n" + "-" * 60)
        print("VERIFYING REAL-SPACE MATRIX SYMMETRIES")
        print("-" * 60)

    all_passed = True
    max_error_H = 0.0
    max_error_S = 0.0
    unpaired = []

    index = {tuple(int(n) for n in cell): i for i, cell in enumerate(snapshot.cells)}
    checked = set()

    for R, i in index.items():
        if R in checked:
            continue

        minus_R = tuple(-n for n in R)
        if minus_R not in index:
            unpaired.append(R)
            continue
        j = index[minus_R]

        H_R, H_mR = snapshot.hamiltonian_matrices[i], snapshot.hamiltonian_matrices[j]
        S_R, S_mR = snapshot.overlap_matrices[i], snapshot.overlap_matrices[j]

        diff_H = np.max(np.abs(H_R - H_mR.conj().T))
        diff_S = np.max(np.abs(S_R - S_mR.conj().T))
        max_error_H = max(max_error_H, diff_H)
        max_error_S = max(max_error_S, diff_S)

        if diff_H > tolerance or diff_S > tolerance:
            if verbose:
                print(f"FAIL: Pair {R}/{minus_R} symmetry violation. "
                      f"H Diff: {diff_H:.2e}, S Diff: {diff_S:.2e}")
            all_passed = False

        checked.add(R)
        checked.add(minus_R)

    if verbose:
        print(f"  Max Real-Space H(R) Symmetry Error: {max_error_H:.2e}")
        print(f"  Max Real-Space S(R) Symmetry Error: {max_error_S:.2e}")

    if unpaired:
        warnings.warn(f"{len(unpaired)} cells have no -R partner within the cutoff: {unpaired}")
    if max_error_H > tolerance:
        warnings.warn(f"Real-space H(R) symmetry violated (Max Err: {max_error_H:.2e})")
    if max_error_S > tolerance:
        warnings.warn(f"Real-space S(R) symmetry violated (Max Err: {max_error_S:.2e})")

    return all_passed


# ==============================
# K-Space Verification
# ==============================

def verify_hermiticity(
    H_k_list: List[np.ndarray],
    S_k_list: List[np.ndarray],
    tol: float = 1e-10,
    verbose: bool = True
) -> Tuple[float, float]:
    """Verify that H(k) and S(k) are Hermitian for all k-points."""
    if verbose:
        print("\nVerifying Hermiticity of H(k) and S(k)...")

    max_H_deviation = 0.0
    max_S_deviation = 0.0

    for H_k, S_k in zip(H_k_list, S_k_list):
        max_H_deviation = max(max_H_deviation, np.max(np.abs(H_k - H_k.conj().T)))
        max_S_deviation = max(max_S_deviation, np.max(np.abs(S_k - S_k.conj().T)))

    if verbose:
        print(f"  Max H(k) Hermiticity deviation: {max_H_deviation:.2e}")
        print(f"  Max S(k) Hermiticity deviation: {max_S_deviation:.2e}")

    if max_H_deviation > tol:
        warnings.warn(f"H(k) is not Hermitian within tolerance {tol}")
    if max_S_deviation > tol:
        warnings.warn(f"S(k) is not Hermitian within tolerance {tol}")

    return max_H_deviation, max_S_deviation


def verify_orthonormality(
    eigenvectors_list: List[np.ndarray],
    num_check: int = 5,
    tol: float = 1e-8,
    verbose: bool = True
) -> float:
    """Verify that eigenvectors in the orthogonalized basis satisfy C†(k) C(k) ≈ I."""
    if verbose:
        print(f"\nVerifying orthonormality at {num_check} k-points...")

    num_kpoints = len(eigenvectors_list)
    # Ensure we don't try to check more points than exist
    actual_checks = min(num_check, num_kpoints)
    check_indices = np.linspace(0, num_kpoints - 1, actual_checks, dtype=int)

    max_deviation = 0.0

    for k_idx in check_indices:
        C_k = eigenvectors_list[k_idx]
        identity = np.eye(C_k.shape[1])
        deviation = np.max(np.abs(C_k.conj().T @ C_k - identity))
        max_deviation = max(max_deviation, deviation)

        if verbose:
            print(f"  k-point {k_idx}: max deviation from identity = {deviation:.2e}")

        if deviation > tol:
            warnings.warn(f"Orthonormality check failed at k-point {k_idx}")

    return max_deviation


def verify_eigenvalue_sorting(
    eigenvalues_list: List[np.ndarray],
    verbose: bool = True
) -> bool:
    """Verify that eigenvalues are sorted in ascending order at each k-point."""
    if verbose:
        print("\nVerifying eigenvalue sorting...")

    all_sorted = True

    for k_idx, eigenvalues in enumerate(eigenvalues_list):
        if not np.all(eigenvalues[:-1] <= eigenvalues[1:]):
            all_sorted = False
            if verbose:
                print(f"  Warning: Eigenvalues at k-point {k_idx} are not sorted")

    if verbose and all_sorted:
        print("  ✓ All eigenvalues are properly sorted")

    return all_sorted


def verify_energy_range(
    eigenvalues_list: List[np.ndarray],
    verbose: bool = True
) -> Tuple[float, float]:
    """Check the energy range of computed eigenvalues."""
    if not eigenvalues_list:
        return 0.0, 0.0

    all_eigenvalues = np.concatenate(eigenvalues_list)
    E_min = np.min(all_eigenvalues.real)
    E_max = np.max(all_eigenvalues.real)

    if verbose:
        print("\nEnergy range:")
        print(f"  Minimum eigenvalue: {E_min:.6f}")
        print(f"  Maximum eigenvalue: {E_max:.6f}")
        print(f"  Energy span: {E_max - E_min:.6f}")

    return E_min, E_max


def run_all_verifications(
    eigenvalues_list: List[np.ndarray],
    eigenvectors_list: List[np.ndarray],
    H_k_list: List[np.ndarray],
    S_k_list: List[np.ndarray],
    verbose: bool = True
) -> dict:
    """Run all k-space verification checks and return results."""
    results = {}

    # Hermiticity check
    max_H_dev, max_S_dev = verify_hermiticity(H_k_list, S_k_list, verbose=verbose)
    results['hermiticity'] = {'H_deviation': max_H_dev, 'S_deviation': max_S_dev}

    # Orthonormality check
    max_ortho_dev = verify_orthonormality(eigenvectors_list, verbose=verbose)
    results['orthonormality'] = {'max_deviation': max_ortho_dev}

    # Eigenvalue sorting check
    sorting_ok = verify_eigenvalue_sorting(eigenvalues_list, verbose=verbose)
    results['eigenvalue_sorting'] = {'sorted': sorting_ok}

    # Energy range
    E_min, E_max = verify_energy_range(eigenvalues_list, verbose=verbose)
    results['energy_range'] = {'E_min': E_min, 'E_max': E_max}

    return results
