"""
Band Structure Module

This module holds the results of band calculations and the analysis done
on them: Fermi energy from the filling and band gaps.
"""

import numpy as np
from typing import List, Optional, Tuple
from dataclasses import dataclass, field
import warnings


@dataclass(frozen=True)
class BandSample:
    """Result of one diagonalization at a single k-point."""
    k_point: np.ndarray             # Cartesian wavevector
    energies: np.ndarray            # Ascending eigenvalues
    eigenvectors: np.ndarray        # Columns match energies


@dataclass
class BandStructure:
    """
    Band energies and eigenstates over an ordered list of k-points.

    Attributes
    ----------
    samples : list of BandSample
        One sample per k-point, in the order the k-points were given
    labels : list of str
        High-symmetry labels of the path (empty for explicit k lists)
    tick_indices : list of int
        Index of each labelled point in ``samples``
    distances : ndarray or None
        Cumulative path length of each k-point
    """
    samples: List[BandSample]
    labels: List[str] = field(default_factory=list)
    tick_indices: List[int] = field(default_factory=list)
    distances: Optional[np.ndarray] = None

    @property
    def kpoints(self) -> np.ndarray:
        return np.array([sample.k_point for sample in self.samples])

    @property
    def energies(self) -> np.ndarray:
        """Band energies, shape (num_kpoints, num_bands)."""
        return np.array([sample.energies for sample in self.samples])

    @property
    def num_kpoints(self) -> int:
        return len(self.samples)

    @property
    def num_bands(self) -> int:
        return len(self.samples[0].energies) if self.samples else 0

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self):
        return iter(self.samples)


def estimate_fermi_energy(
    band_structure: BandStructure,
    filling: int
) -> float:
    """
    Estimate the Fermi energy as the midpoint between the highest occupied
    and the lowest unoccupied band over all sampled k-points.

    Parameters
    ----------
    band_structure : BandStructure
        Bands sampled on a grid or path
    filling : int
        Number of occupied bands (band ``filling - 1`` is the top one)

    Returns
    -------
    float
        Estimated Fermi energy in the units of the eigenvalues
    """
    energies = band_structure.energies
    num_bands = energies.shape[1]

    if filling <= 0 or filling > num_bands:
        raise ValueError(f"Filling {filling} outside 1..{num_bands}")

    if filling == num_bands:
        warnings.warn("All bands are occupied, using the top of the highest band")
        return float(energies.max())

    e_homo = energies[:, filling - 1].max()
    e_lumo = energies[:, filling].min()
    return float((e_homo + e_lumo) / 2)


def compute_band_gap(
    band_structure: BandStructure,
    filling: int
) -> Tuple[float, bool, int, int]:
    """
    Compute the band gap between band ``filling - 1`` and band ``filling``.

    Returns
    -------
    gap : float
        LUMO minimum minus HOMO maximum (negative for overlapping bands)
    is_direct : bool
        True if both extrema sit at the same k-point
    k_homo, k_lumo : int
        Indices of the valence-band maximum and conduction-band minimum
    """
    energies = band_structure.energies
    num_bands = energies.shape[1]

    if filling <= 0 or filling >= num_bands:
        raise ValueError(f"A gap needs 1 <= filling < {num_bands}, got {filling}")

    k_homo = int(np.argmax(energies[:, filling - 1]))
    k_lumo = int(np.argmin(energies[:, filling]))
    gap = energies[k_lumo, filling] - energies[k_homo, filling - 1]

    direct_gaps = energies[:, filling] - energies[:, filling - 1]
    is_direct = bool(np.isclose(direct_gaps.min(), gap))

    return float(gap), is_direct, k_homo, k_lumo


def print_band_summary(
    band_structure: BandStructure,
    filling: Optional[int] = None
) -> None:
    """Print energy range, Fermi energy and gap of a band structure."""
    energies = band_structure.energies

    print("\n" + "=" * 70)
    print("Band Structure Summary")
    print("=" * 70)
    print(f"Number of k-points: {band_structure.num_kpoints}")
    print(f"Number of bands: {band_structure.num_bands}")
    if band_structure.labels:
        print(f"Path: {'-'.join(band_structure.labels)}")
    print(f"Energy range: [{energies.min():.6f}, {energies.max():.6f}]")

    if filling is not None and 0 < filling < band_structure.num_bands:
        e_fermi = estimate_fermi_energy(band_structure, filling)
        gap, is_direct, k_homo, k_lumo = compute_band_gap(band_structure, filling)
        print(f"Filling: {filling}")
        print(f"Estimated Fermi energy: {e_fermi:.6f}")
        if gap > 0:
            kind = "direct" if is_direct else "indirect"
            print(f"Band gap: {gap:.6f} ({kind}, k {k_homo} -> {k_lumo})")
        else:
            print("Band gap: none (metallic)")

    print("=" * 70)
