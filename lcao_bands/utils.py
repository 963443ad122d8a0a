"""
Utility Functions Module

This module contains helper functions for consistency checking and
printed summaries of parsed systems and band calculations.
"""

from .snapshot import SystemSnapshot

# ==============================
# Consistency Checks
# ==============================

def check_matrix_consistency(snapshot: SystemSnapshot) -> bool:
    """Check that the overlap and Hamiltonian cubes are square, equal-sized and parallel."""
    H = snapshot.hamiltonian_matrices
    S = snapshot.overlap_matrices

    if H.ndim != 3 or H.shape[1] != H.shape[2]:
        print(f"Warning: Hamiltonian blocks are not square: {H.shape}")
        return False

    if S.shape != H.shape:
        print(f"Warning: Inconsistent block shapes: H {H.shape}, S {S.shape}")
        return False

    if H.shape[0] != snapshot.num_cells or snapshot.bravais_vectors.shape[0] != snapshot.num_cells:
        print("Warning: Number of blocks does not match number of cells")
        return False

    if H.shape[1] != snapshot.basis_dim:
        print(f"Warning: Block size {H.shape[1]} differs from basis dimension {snapshot.basis_dim}")
        return False

    return True


# ==============================
# Reporting
# ==============================

def print_snapshot_summary(snapshot: SystemSnapshot) -> None:
    """Print a summary of the parsed real-space model."""
    print("\n" + "=" * 70)
    print("CRYSTAL System Summary")
    print("=" * 70)
    print(f"Dimensionality: {snapshot.ndim}")
    print("Bravais lattice (Angstrom):")
    for vector in snapshot.bravais_lattice:
        print(f"  {vector[0]:12.6f} {vector[1]:12.6f} {vector[2]:12.6f}")

    print(f"\nNumber of atoms: {snapshot.num_atoms}")
    print(f"Number of species: {snapshot.num_species}")
    for species in snapshot.species:
        print(f"  {species.label:>3s} (Z={species.atomic_number}): "
              f"{species.num_shells} shells, {species.num_orbitals} orbitals")
    print("Motif (Angstrom, species):")
    for x, y, z, index in snapshot.motif:
        print(f"  {x:12.6f} {y:12.6f} {z:12.6f}  {snapshot.species[int(index)].label}")

    print(f"\nBasis dimension: {snapshot.basis_dim} × {snapshot.basis_dim}")
    if snapshot.filling is not None:
        print(f"Filling: {snapshot.filling} "
              f"({snapshot.valence_electrons} valence + {snapshot.core_electrons or 0} core electrons)")

    print(f"\nNumber of cells: {snapshot.num_cells}")
    for cell, R in zip(snapshot.cells, snapshot.bravais_vectors):
        print(f"  {tuple(int(n) for n in cell)}: R = ({R[0]:.4f}, {R[1]:.4f}, {R[2]:.4f})")
    print("=" * 70)


def print_calculation_info(
    num_kpoints: int,
    basis_dim: int,
    num_cells: int,
    parallel: bool = False
) -> None:
    """Print information about a band calculation and its memory footprint."""
    print("\n" + "=" * 70)
    print("Calculation Information")
    print("=" * 70)
    print(f"Number of k-points: {num_kpoints}")
    print(f"Basis dimension: {basis_dim}")
    print(f"Number of cells: {num_cells}")
    print(f"Mode: {'Parallel' if parallel else 'Sequential'}")

    # Memory estimate
    bytes_per_complex = 16
    blocks_mb = 2 * num_cells * basis_dim**2 * bytes_per_complex / 1e6
    eigenvalues_mb = num_kpoints * basis_dim * 8 / 1e6
    eigenvectors_mb = num_kpoints * basis_dim**2 * bytes_per_complex / 1e6
    total_mb = blocks_mb + eigenvalues_mb + eigenvectors_mb

    print(f"\nEstimated memory usage:")
    print(f"  Real-space blocks: {blocks_mb:.1f} MB")
    print(f"  Eigenvalues:       {eigenvalues_mb:.1f} MB")
    print(f"  Eigenvectors:      {eigenvectors_mb:.1f} MB")
    print(f"  Total:             {total_mb:.1f} MB")
    print("=" * 70)
