"""
LCAO Band Structure Package

A Python package for building Bloch Hamiltonians and band structures from
the real-space overlap and Fock matrices printed by CRYSTAL (periodic
Hartree-Fock/DFT with localized Gaussian orbitals).

Main Components
---------------
BlochSolver : class
    Bloch Hamiltonian assembly, Löwdin orthogonalization and diagonalization
SystemSnapshot : class
    Immutable real-space model produced by the parser

Parser Functions
----------------
parse_crystal_output : function
    Parse a CRYSTAL report from text, an open file or a list of lines
parse_crystal_file : function
    Parse a CRYSTAL report from a file name

Example
-------
>>> from lcao_bands import parse_crystal_file, BlochSolver
>>>
>>> # Parse CRYSTAL output, keeping cells 1..25
>>> snapshot = parse_crystal_file('hBN.outp', cell_cutoff=25)
>>>
>>> # Bands at Gamma and along a path
>>> solver = BlochSolver(snapshot)
>>> energies, eigenvectors = solver.solve_bands([0.0, 0.0])
>>> bands = solver.solve_path('G-K-M-G', num_points=100, parallel=True)
>>> bands.energies.shape
(301, 36)
"""

__version__ = "1.0.0"

# Main solver class
from .engine import BlochSolver

# Data model
from .snapshot import (
    CalculationParameters,
    Shell,
    Species,
    SystemSnapshot,
    HARTREE_TO_EV,
)

# Parser functions
from .parser import (
    ParseError,
    parse_crystal_output,
    parse_crystal_file,
)

# Band structure results
from .bands import (
    BandSample,
    BandStructure,
    estimate_fermi_energy,
    compute_band_gap,
    print_band_summary,
)

# K-point functions
from .kpoints import (
    HIGH_SYMMETRY_POINTS,
    as_kpoint,
    reciprocal_lattice,
    generate_kpoint_grid,
    generate_kpath,
    parse_path,
)

# Fourier transform functions
from .fourier import (
    bloch_sum,
    complete_hermitian,
    compute_phase_factors,
)

# Solver functions
from .solver import (
    SingularOverlapError,
    ScanCancelled,
    inverse_sqrt_overlap,
    orthogonalize_hamiltonian,
    solve_kpoint,
    solve_all_kpoints_sequential,
    solve_all_kpoints_parallel,
)

# Spin expectation values
from .spin import (
    SpinOrderingError,
    expected_spin_x,
    expected_spin_y,
    expected_spin_z,
)

# Verification functions
from .verification import (
    verify_real_space_symmetry,
    verify_hermiticity,
    verify_orthonormality,
    verify_eigenvalue_sorting,
    verify_energy_range,
    run_all_verifications,
)

# Utility functions
from .utils import (
    check_matrix_consistency,
    print_snapshot_summary,
    print_calculation_info,
)

# Public API
__all__ = [
    # Main class
    'BlochSolver',

    # Data model
    'CalculationParameters',
    'Shell',
    'Species',
    'SystemSnapshot',
    'HARTREE_TO_EV',

    # Parser
    'ParseError',
    'parse_crystal_output',
    'parse_crystal_file',

    # Bands
    'BandSample',
    'BandStructure',
    'estimate_fermi_energy',
    'compute_band_gap',
    'print_band_summary',

    # K-points
    'HIGH_SYMMETRY_POINTS',
    'as_kpoint',
    'reciprocal_lattice',
    'generate_kpoint_grid',
    'generate_kpath',
    'parse_path',

    # Fourier
    'bloch_sum',
    'complete_hermitian',
    'compute_phase_factors',

    # Solver
    'SingularOverlapError',
    'ScanCancelled',
    'inverse_sqrt_overlap',
    'orthogonalize_hamiltonian',
    'solve_kpoint',
    'solve_all_kpoints_sequential',
    'solve_all_kpoints_parallel',

    # Spin
    'SpinOrderingError',
    'expected_spin_x',
    'expected_spin_y',
    'expected_spin_z',

    # Verification
    'verify_real_space_symmetry',
    'verify_hermiticity',
    'verify_orthonormality',
    'verify_eigenvalue_sorting',
    'verify_energy_range',
    'run_all_verifications',

    # Utils
    'check_matrix_consistency',
    'print_snapshot_summary',
    'print_calculation_info',
]
