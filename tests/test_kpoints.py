"""
Unit tests for kpoints module

Tests reciprocal lattices, k-point grids and high-symmetry paths.
"""

import sys
import os
import numpy as np
import pytest

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lcao_bands.kpoints import (
    HIGH_SYMMETRY_POINTS,
    as_kpoint,
    fractional_to_cartesian,
    generate_kpath,
    generate_kpoint_grid,
    parse_path,
    reciprocal_lattice,
)


def test_kpoint_grid_generation():
    """Test k-point grid generation."""
    print("\nTest 1: K-Point Grid Generation")
    print("-" * 50)

    # Test case: 2x2x2 grid
    k_grid = (2, 2, 2)
    kpoints = generate_kpoint_grid(k_grid)

    # Should have 8 k-points
    assert kpoints.shape == (8, 3), f"Expected (8, 3), got {kpoints.shape}"

    # Check that all k-points are within [0, 1)
    assert np.all(kpoints >= 0) and np.all(kpoints < 1), \
        "K-points outside [0, 1) range"

    # Test case: slab grid, one point along the vacuum direction
    kpoints = generate_kpoint_grid((4, 4, 1))

    assert kpoints.shape == (16, 3), f"Expected (16, 3), got {kpoints.shape}"
    assert np.all(kpoints[:, 2] == 0.0)

    unique_x = np.unique(kpoints[:, 0])
    assert np.allclose(np.diff(unique_x), 0.25)

    with pytest.raises(ValueError):
        generate_kpoint_grid((0, 2, 2))

    print(f"  Generated {len(kpoints)} k-points for (4, 4, 1) grid")
    print("  PASSED")


def test_reciprocal_lattice_duality():
    """Test a_i · b_j = 2π δ_ij in one, two and three dimensions."""
    print("\nTest 2: Reciprocal Lattice Duality")
    print("-" * 50)

    lattices = [
        np.array([[3.0, 0.0, 0.0]]),
        np.array([[2.5, 0.0, 0.0], [-1.25, 2.16506351, 0.0]]),
        np.array([[0.0, 2.0, 2.0], [2.0, 0.0, 2.0], [2.0, 2.0, 0.0]]),
    ]

    for A in lattices:
        B = reciprocal_lattice(A)
        assert B.shape == A.shape
        assert np.allclose(A @ B.T, 2 * np.pi * np.eye(A.shape[0]))
        print(f"  {A.shape[0]}D lattice: OK")

    # Reciprocal vectors of a slab stay in the plane
    B = reciprocal_lattice(lattices[1])
    assert np.allclose(B[:, 2], 0.0)

    print("  PASSED")


def test_reciprocal_lattice_degenerate():
    """Linearly dependent lattice vectors are rejected."""
    print("\nTest 3: Degenerate Lattice")
    print("-" * 50)

    with pytest.raises(ValueError, match="linearly dependent"):
        reciprocal_lattice(np.array([[1.0, 0.0, 0.0], [2.0, 0.0, 0.0]]))

    print("  PASSED")


def test_as_kpoint_padding():
    """Short wavevectors are padded with zeros."""
    print("\nTest 4: K-Point Padding")
    print("-" * 50)

    assert np.allclose(as_kpoint([0.5]), [0.5, 0.0, 0.0])
    assert np.allclose(as_kpoint((0.1, 0.2)), [0.1, 0.2, 0.0])
    assert np.allclose(as_kpoint(np.ones(3)), [1.0, 1.0, 1.0])

    with pytest.raises(ValueError):
        as_kpoint([])
    with pytest.raises(ValueError):
        as_kpoint([0.0, 0.0, 0.0, 0.0])

    print("  PASSED")


def test_fractional_to_cartesian():
    """Fractional coordinates along non-periodic directions must vanish."""
    print("\nTest 5: Fractional to Cartesian")
    print("-" * 50)

    B = reciprocal_lattice(np.array([[2.0, 0.0, 0.0], [0.0, 4.0, 0.0]]))
    k_cart = fractional_to_cartesian(np.array([[0.5, 0.5, 0.0]]), B)

    assert np.allclose(k_cart, [[np.pi / 2.0, np.pi / 4.0, 0.0]])

    with pytest.raises(ValueError, match="non-periodic"):
        fractional_to_cartesian(np.array([[0.0, 0.0, 0.5]]), B)

    print("  PASSED")


def test_parse_path():
    """Test path strings and label aliases."""
    print("\nTest 6: Path Parsing")
    print("-" * 50)

    assert parse_path("G-X-M-G") == ['G', 'X', 'M', 'G']
    assert parse_path("Γ-k-m") == ['G', 'K', 'M']
    assert parse_path(['gamma', 'X']) == ['G', 'X']
    assert all(label in HIGH_SYMMETRY_POINTS for label in parse_path("G-K'-M"))

    with pytest.raises(ValueError, match="Unknown"):
        parse_path("G-Q")
    with pytest.raises(ValueError, match="at least two"):
        parse_path("G")

    print("  PASSED")


def test_generate_kpath():
    """Test path interpolation, ticks and cumulative distances."""
    print("\nTest 7: K-Path Generation")
    print("-" * 50)

    B = reciprocal_lattice(np.array([[2.0, 0.0, 0.0], [0.0, 2.0, 0.0]]))
    kpoints, distances, ticks = generate_kpath(['G', 'X', 'M', 'G'], B, num_points=10)

    assert kpoints.shape == (31, 3)
    assert ticks == [0, 10, 20, 30]
    assert np.allclose(kpoints[0], 0.0)
    assert np.allclose(kpoints[10], [np.pi / 2.0, 0.0, 0.0])
    assert np.allclose(kpoints[20], [np.pi / 2.0, np.pi / 2.0, 0.0])
    assert np.allclose(kpoints[30], 0.0)

    assert distances[0] == 0.0
    assert np.all(np.diff(distances) > 0)
    expected_length = np.pi / 2.0 + np.pi / 2.0 + np.sqrt(2) * np.pi / 2.0
    assert np.isclose(distances[-1], expected_length)

    with pytest.raises(ValueError):
        generate_kpath(['G', 'X'], B, num_points=0)

    print(f"  Path of {len(kpoints)} points, length {distances[-1]:.4f}")
    print("  PASSED")


def run_all_tests():
    """Run all k-point tests."""
    print("\n" + "=" * 70)
    print("KPOINTS MODULE TESTS")
    print("=" * 70)

    tests = [
        test_kpoint_grid_generation,
        test_reciprocal_lattice_duality,
        test_reciprocal_lattice_degenerate,
        test_as_kpoint_padding,
        test_fractional_to_cartesian,
        test_parse_path,
        test_generate_kpath,
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
    print(f"KPOINTS TESTS: {passed} passed, {failed} failed")
    print("=" * 70)

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
