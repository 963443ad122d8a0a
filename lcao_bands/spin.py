"""
Spin Expectation Values

Expectation values <ψ|σ_i ⊗ I|ψ> for states expanded in a basis ordered as
two contiguous halves of equal size: all spin-up orbitals first, then all
spin-down orbitals in the same order.
"""

import numpy as np
from typing import Optional, Tuple


class SpinOrderingError(ValueError):
    """Raised when an eigenvector cannot be split into spin-up/spin-down halves."""


def split_spin_halves(
    eigenvector: np.ndarray,
    basis_dim: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """Return the (spin-up, spin-down) halves of ``eigenvector``."""
    psi = np.asarray(eigenvector)
    if psi.ndim == 2 and 1 in psi.shape:
        psi = psi.ravel()
    if psi.ndim != 1:
        raise SpinOrderingError(f"Expected a single eigenvector, got shape {psi.shape}")
    if basis_dim is not None and psi.size != basis_dim:
        raise SpinOrderingError(
            f"Eigenvector has {psi.size} components, basis dimension is {basis_dim}"
        )
    if psi.size % 2:
        raise SpinOrderingError(
            f"Eigenvector has an odd number of components ({psi.size}); "
            "expected spin-up and spin-down halves of equal size"
        )
    half = psi.size // 2
    return psi[:half], psi[half:]


def expected_spin_z(eigenvector: np.ndarray, basis_dim: Optional[int] = None) -> float:
    up, down = split_spin_halves(eigenvector, basis_dim)
    return float(np.vdot(up, up).real - np.vdot(down, down).real)


def expected_spin_x(eigenvector: np.ndarray, basis_dim: Optional[int] = None) -> float:
    up, down = split_spin_halves(eigenvector, basis_dim)
    return float(2 * np.vdot(up, down).real)


def expected_spin_y(eigenvector: np.ndarray, basis_dim: Optional[int] = None) -> float:
    # <σ_y> = -i up*·down + i down*·up = 2 Im(up*·down)
    up, down = split_spin_halves(eigenvector, basis_dim)
    return float(2 * np.vdot(up, down).imag)
