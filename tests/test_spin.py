"""
Tests for Spin Expectation Values

Tests cover:
- Pauli expectation values for pure spin states
- Spin direction on the Bloch sphere and bounds for arbitrary states
- Basis ordering errors
"""

import sys
import os

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lcao_bands.spin import (
    SpinOrderingError,
    expected_spin_x,
    expected_spin_y,
    expected_spin_z,
    split_spin_halves,
)


# ==============================================================================
# Test Fixtures
# ==============================================================================

def spinor(theta: float, phi: float, num_orbitals: int = 3, orbital: int = 1) -> np.ndarray:
    """Spin pointing along (theta, phi), localized on one spatial orbital."""
    psi = np.zeros(2 * num_orbitals, dtype=complex)
    psi[orbital] = np.cos(theta / 2)
    psi[num_orbitals + orbital] = np.exp(1j * phi) * np.sin(theta / 2)
    return psi


# ==============================================================================
# Tests for Pure States
# ==============================================================================

class TestPureStates:
    """Spinors aligned with the coordinate axes."""

    def test_spin_up(self):
        psi = spinor(0.0, 0.0)
        assert np.isclose(expected_spin_z(psi), 1.0)
        assert np.isclose(expected_spin_x(psi), 0.0)
        assert np.isclose(expected_spin_y(psi), 0.0)

    def test_spin_down(self):
        psi = spinor(np.pi, 0.0)
        assert np.isclose(expected_spin_z(psi), -1.0)

    def test_spin_along_x(self):
        psi = spinor(np.pi / 2, 0.0)
        assert np.isclose(expected_spin_x(psi), 1.0)
        assert np.isclose(expected_spin_z(psi), 0.0)

    def test_spin_along_minus_y(self):
        psi = spinor(np.pi / 2, -np.pi / 2)
        assert np.isclose(expected_spin_y(psi), -1.0)
        assert np.isclose(expected_spin_x(psi), 0.0)

    def test_results_are_real_floats(self):
        psi = spinor(0.3, 1.1)
        for value in (expected_spin_x(psi), expected_spin_y(psi), expected_spin_z(psi)):
            assert isinstance(value, float)


# ==============================================================================
# Tests for General States
# ==============================================================================

class TestGeneralStates:
    """Arbitrary spin directions and spread-out states."""

    @pytest.mark.parametrize("theta,phi", [(0.4, 0.0), (1.2, 2.5), (2.9, -1.0)])
    def test_bloch_sphere_direction(self, theta, phi):
        psi = spinor(theta, phi)
        expected = [np.sin(theta) * np.cos(phi), np.sin(theta) * np.sin(phi), np.cos(theta)]
        measured = [expected_spin_x(psi), expected_spin_y(psi), expected_spin_z(psi)]
        assert np.allclose(measured, expected)

    def test_norm_bounds(self):
        """For any normalized state every component lies in [-1, 1]."""
        rng = np.random.default_rng(11)
        for _ in range(20):
            psi = rng.standard_normal(8) + 1j * rng.standard_normal(8)
            psi /= np.linalg.norm(psi)
            for f in (expected_spin_x, expected_spin_y, expected_spin_z):
                assert -1.0 - 1e-12 <= f(psi) <= 1.0 + 1e-12

    def test_column_vector_accepted(self):
        psi = spinor(0.0, 0.0)[:, None]
        assert np.isclose(expected_spin_z(psi), 1.0)


# ==============================================================================
# Tests for Ordering Errors
# ==============================================================================

class TestOrderingErrors:
    """Eigenvectors that cannot be split into two halves."""

    def test_odd_length(self):
        with pytest.raises(SpinOrderingError, match="odd"):
            expected_spin_z(np.ones(5))

    def test_size_mismatch(self):
        with pytest.raises(SpinOrderingError, match="basis dimension"):
            expected_spin_x(np.ones(4), basis_dim=6)

    def test_matrix_rejected(self):
        with pytest.raises(SpinOrderingError):
            split_spin_halves(np.eye(4))

    def test_is_value_error(self):
        assert issubclass(SpinOrderingError, ValueError)

    def test_halves(self):
        up, down = split_spin_halves(np.arange(6))
        assert list(up) == [0, 1, 2]
        assert list(down) == [3, 4, 5]


if __name__ == "__main__":
    pytest.main([__file__, "-v", "--tb=short"])
