"""
Unit tests for fourier module

Tests Bloch sums of real-space blocks into k-space.
"""

import sys
import os
import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lcao_bands.fourier import bloch_sum, complete_hermitian, compute_phase_factors


def create_chain_blocks(num_orbitals=4, seed=7):
    """Hermitian-consistent H(R), S(R) for cells 0, +a1, -a1."""
    rng = np.random.default_rng(seed)
    a1 = np.array([2.0, 0.0, 0.0])

    H_R0 = np.diag([1.0, 2.0, 3.0, 4.0])[:num_orbitals, :num_orbitals] + 0j
    S_R0 = np.eye(num_orbitals) + 0j

    H_R1 = 0.1 * (rng.standard_normal((num_orbitals, num_orbitals)) +
                  1j * rng.standard_normal((num_orbitals, num_orbitals)))
    S_R1 = 0.05 * (rng.standard_normal((num_orbitals, num_orbitals)) +
                   1j * rng.standard_normal((num_orbitals, num_orbitals)))

    H_blocks = np.stack([H_R0, H_R1, H_R1.conj().T])
    S_blocks = np.stack([S_R0, S_R1, S_R1.conj().T])
    bravais_vectors = np.stack([np.zeros(3), a1, -a1])

    return H_blocks, S_blocks, bravais_vectors


def test_bloch_sum_hermiticity():
    """Test that the Bloch sum preserves Hermiticity."""
    print("\nTest 1: Bloch Sum Hermiticity")
    print("-" * 50)

    H_blocks, S_blocks, bravais_vectors = create_chain_blocks()

    test_kpoints = [
        np.array([0.0, 0.0, 0.0]),          # Gamma point
        np.array([np.pi / 2.0, 0.0, 0.0]),  # Zone boundary
        np.array([0.37, 0.1, 0.0]),         # Random point
    ]

    max_hermiticity_error = 0.0

    for k_point in test_kpoints:
        H_k = bloch_sum(k_point, H_blocks, bravais_vectors)
        S_k = bloch_sum(k_point, S_blocks, bravais_vectors)

        H_error = np.max(np.abs(H_k - H_k.conj().T))
        S_error = np.max(np.abs(S_k - S_k.conj().T))

        max_hermiticity_error = max(max_hermiticity_error, H_error, S_error)

        assert H_error < 1e-14, f"H(k) not Hermitian at k={k_point}: error={H_error}"
        assert S_error < 1e-14, f"S(k) not Hermitian at k={k_point}: error={S_error}"

    print(f"  Tested {len(test_kpoints)} k-points")
    print(f"  Maximum Hermiticity error: {max_hermiticity_error:.2e}")
    print("  PASSED")


def test_bloch_sum_gamma():
    """Test that H(Gamma) is the plain sum of all blocks."""
    print("\nTest 2: Bloch Sum at Gamma Point")
    print("-" * 50)

    H_blocks, S_blocks, bravais_vectors = create_chain_blocks()

    H_k = bloch_sum(np.zeros(3), H_blocks, bravais_vectors)
    S_k = bloch_sum(np.zeros(3), S_blocks, bravais_vectors)

    H_error = np.max(np.abs(H_k - H_blocks.sum(axis=0)))
    S_error = np.max(np.abs(S_k - S_blocks.sum(axis=0)))

    assert H_error < 1e-14, f"H(Gamma) incorrect: error={H_error}"
    assert S_error < 1e-14, f"S(Gamma) incorrect: error={S_error}"

    print(f"  H(Gamma) max error: {H_error:.2e}")
    print(f"  S(Gamma) max error: {S_error:.2e}")
    print("  PASSED")


def test_triangular_matches_full():
    """Test that lower-triangle summation gives the same Hermitian H(k)."""
    print("\nTest 3: Triangular vs Full Summation")
    print("-" * 50)

    H_blocks, _, bravais_vectors = create_chain_blocks()

    max_diff = 0.0
    for kx in np.linspace(-np.pi / 2.0, np.pi / 2.0, 7):
        k_point = np.array([kx, 0.0, 0.0])
        H_full = bloch_sum(k_point, H_blocks, bravais_vectors, triangular=False)
        H_tri = bloch_sum(k_point, H_blocks, bravais_vectors, triangular=True)

        assert np.allclose(H_tri, H_tri.conj().T, atol=1e-14)
        max_diff = max(max_diff, np.max(np.abs(H_full - H_tri)))

    assert max_diff < 1e-12, f"Triangular sum differs from full sum: {max_diff}"

    print(f"  Max difference: {max_diff:.2e}")
    print("  PASSED")


def test_triangular_ignores_upper_triangle():
    """Only the lower triangle of each block contributes in triangular mode."""
    print("\nTest 4: Triangular Mode Ignores Upper Triangle")
    print("-" * 50)

    blocks = np.array([[[1.0, 99.0], [0.5, -1.0]]], dtype=complex)
    H_k = bloch_sum(np.zeros(3), blocks, np.zeros((1, 3)), triangular=True)

    assert np.allclose(H_k, [[1.0, 0.5], [0.5, -1.0]])

    print("  PASSED")


def test_phase_factor_computation():
    """Test phase factors e^(i k·R) with Cartesian k and R."""
    print("\nTest 5: Phase Factor Computation")
    print("-" * 50)

    k_points = np.array([[0.0, 0.0, 0.0], [np.pi / 2.0, 0.0, 0.0]])
    bravais_vectors = np.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0], [-2.0, 0.0, 0.0]])

    phases = compute_phase_factors(k_points, bravais_vectors)

    assert phases.shape == (2, 3)
    assert np.allclose(phases[0], 1.0)
    assert np.allclose(phases[1], [1.0, -1.0, -1.0])
    assert np.allclose(np.abs(phases), 1.0)

    single = compute_phase_factors(k_points[1], bravais_vectors)
    assert single.shape == (3,)

    print(f"  Phase factors shape: {phases.shape}")
    print("  PASSED")


def test_complete_hermitian():
    """Test completion of a matrix from its lower triangle."""
    print("\nTest 6: Hermitian Completion")
    print("-" * 50)

    lower = np.array([
        [2.0 + 0.3j, 0.0, 0.0],
        [1.0 - 1.0j, 3.0, 0.0],
        [0.5j, 0.25, -1.0],
    ])

    full = complete_hermitian(lower)

    assert np.allclose(full, full.conj().T)
    assert np.allclose(np.tril(full, -1), np.tril(lower, -1))
    assert np.allclose(full.diagonal(), [2.0, 3.0, -1.0])

    print("  PASSED")


def run_all_tests():
    """Run all Fourier transform tests."""
    print("\n" + "=" * 70)
    print("FOURIER MODULE TESTS")
    print("=" * 70)

    tests = [
        test_bloch_sum_hermiticity,
        test_bloch_sum_gamma,
        test_triangular_matches_full,
        test_triangular_ignores_upper_triangle,
        test_phase_factor_computation,
        test_complete_hermitian,
    ]

    passed = 0
    failed = 0

    for test_func in tests:
        try:
            test_func()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("\n" + "=" * 70)
    print(f"FOURIER TESTS: {passed} passed, {failed} failed")
    print("=" * 70)

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
