"""
Basic Usage Example for LCAO-Bands Package

This example parses a CRYSTAL output file given on the command line and
computes its band structure along a high-symmetry path:

    python examples/basic_usage.py hBN.outp G-K-M-G 25
"""

import sys
import os

# Add parent directory to path for development
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lcao_bands import BlochSolver, parse_crystal_file, verify_real_space_symmetry


def write_bands(filename, bands):
    """Write k-point distance and band energies, one k-point per line."""
    with open(filename, 'w') as f:
        for distance, sample in zip(bands.distances, bands):
            energies = ' '.join(f"{e:14.8f}" for e in sample.energies)
            f.write(f"{distance:12.6f} {energies}\n")


def main():
    """Main execution function."""
    if len(sys.argv) < 2:
        print(f"Usage: {sys.argv[0]} CRYSTAL_OUTPUT [PATH] [CELL_CUTOFF]")
        sys.exit(1)

    filename = sys.argv[1]
    path = sys.argv[2] if len(sys.argv) > 2 else 'G-X-M-G'
    cell_cutoff = int(sys.argv[3]) if len(sys.argv) > 3 else 25

    print("=" * 70)
    print("BASIC USAGE EXAMPLE - LCAO-BANDS PACKAGE")
    print("=" * 70)

    # Parse the report
    print(f"\nStep 1: Parsing {filename} (cells 1..{cell_cutoff})...")
    snapshot = parse_crystal_file(filename, cell_cutoff=cell_cutoff, verbose=True)

    # Check H(-R) = H(R)† for the retained cells
    print("\nStep 2: Checking real-space symmetry...")
    verify_real_space_symmetry(snapshot)

    # Solve the bands
    print(f"\nStep 3: Solving bands along {path}...")
    solver = BlochSolver(snapshot, verbose=True)
    bands = solver.solve_path(path, num_points=50, parallel=True)

    output = os.path.splitext(os.path.basename(filename))[0] + '_bands.dat'
    write_bands(output, bands)

    print("\n" + "=" * 70)
    print("EXAMPLE COMPLETED SUCCESSFULLY!")
    print("=" * 70)
    print(f"  • {output} - band energies along {path}")
    print("=" * 70)


if __name__ == "__main__":
    main()
