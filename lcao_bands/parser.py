"""
Parser Module for CRYSTAL Output Files

This module reads a CRYSTAL/LCAO report in a single forward scan and builds
an immutable SystemSnapshot: lattice, motif, atomic basis, and the
real-space overlap and Fock matrices of every cell up to a cutoff.

Section handlers receive and return an explicit ParserContext, so the only
ordering coupling between sections is the one the report format imposes
(e.g. the atom count must precede the atom listing).
"""

import numpy as np
import re
import warnings
from typing import Iterable, List, Optional, Set, Tuple, Union
from dataclasses import dataclass, field

from .snapshot import (
    HARTREE_TO_EV,
    CalculationParameters,
    Shell,
    Species,
    SystemSnapshot,
)
from .utils import print_snapshot_summary

# ==============================
# Section Markers
# ==============================

LATTICE_MARKER = 'DIRECT LATTICE VECTOR COMPONENTS'
ATOM_COUNT_MARKER = 'N. OF ATOMS PER CELL'
SHELL_COUNT_MARKER = 'NUMBER OF SHELLS'
ORBITAL_COUNT_MARKER = 'NUMBER OF AO'
ELECTRON_COUNT_MARKER = 'N. OF ELECTRONS PER CELL'
CORE_ELECTRON_MARKER = 'CORE ELECTRONS PER CELL'
BASIS_MARKER = 'LOCAL ATOMIC FUNCTIONS BASIS SET'
MATRIX_CELL_MARKER = 'CELL N.'

# ==============================
# Regular Expression Patterns
# ==============================

matrix_header_pattern = re.compile(
    r'^\s*(OVERLAP|FOCK) MATRIX(?:\s+\((REAL|IMAG) PART\))?\s+-\s+CELL N\.\s*(\d+)'
    r'\(\s*(-?\d+)\s*(-?\d+)\s*(-?\d+)\s*\)'
)
shell_header_pattern = re.compile(r'^\s*(\d+)\s*(?:-\s*(\d+))?\s+([A-Za-z]+)\s*$')
separator_pattern = re.compile(r'^\s*\*+\s*$')
float_pattern = re.compile(
    r'[-+]?\d*\.\d+(?:[eEdD][-+]?\d+)?|[-+]?\d+(?:[eEdD][-+]?\d+)?'
)
fermi_energy_pattern = re.compile(r'FERMI ENERGY\s+([-+]?\d*\.?\d+[EeDd]?[+-]?\d*)')
shrink_pattern = re.compile(r'SHRINK\. FACT\.\(MONKH\.\)\s+(\d+)\s+(\d+)\s+(\d+)')
total_energy_pattern = re.compile(r'TOTAL ENERGY\s+([-+]?\d*\.?\d+[EeDd]?[+-]?\d*)')


class ParseError(ValueError):
    """Raised when a required report section is absent, malformed or out of order."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


# ==============================
# Line Reader
# ==============================

class LineReader:
    """Forward-only line iterator with one-line push-back and line numbers."""

    def __init__(self, stream: Union[str, Iterable[str]]):
        if isinstance(stream, str):
            stream = stream.splitlines()
        self._lines = iter(stream)
        self._pushed: List[str] = []
        self.line_number = 0

    def __iter__(self):
        return self

    def __next__(self) -> str:
        if self._pushed:
            line = self._pushed.pop()
        else:
            line = next(self._lines)
        self.line_number += 1
        return line.rstrip('\r\n')

    def read(self, what: str) -> str:
        """Next line, or ParseError if the stream ends while reading ``what``."""
        try:
            return next(self)
        except StopIteration:
            raise ParseError(f"Unexpected end of file while reading {what}", self.line_number)

    def peek(self) -> Optional[str]:
        try:
            line = next(self)
        except StopIteration:
            return None
        self.push_back(line)
        return line

    def push_back(self, line: str) -> None:
        self._pushed.append(line)
        self.line_number -= 1


# ==============================
# Parser Context
# ==============================

@dataclass
class SpeciesRecord:
    """Mutable species entry, finalized into a Species once parsing ends."""
    label: str
    atomic_number: int
    num_shells: int
    num_orbitals: int = 0
    shells: List[Shell] = field(default_factory=list)
    described: bool = False


@dataclass
class ParserContext:
    """
    State accumulated by the section handlers.

    Each handler takes the context and returns it; nothing else carries
    state between sections.
    """
    cell_cutoff: int
    norm_threshold: float
    lattice: Optional[np.ndarray] = None
    lattice_axes: Tuple[int, ...] = ()
    num_atoms: Optional[int] = None
    num_shells: Optional[int] = None
    num_ao: Optional[int] = None
    valence_electrons: Optional[int] = None
    core_electrons: Optional[int] = None
    motif: Optional[np.ndarray] = None
    species: List[SpeciesRecord] = field(default_factory=list)
    atom_species: List[int] = field(default_factory=list)
    orbitals_per_atom: List[int] = field(default_factory=list)
    basis_parsed: bool = False
    overlap_cells: List[Tuple[int, int, int]] = field(default_factory=list)
    overlap_translations: List[np.ndarray] = field(default_factory=list)
    overlap_blocks: List[np.ndarray] = field(default_factory=list)
    fock_cells: List[Tuple[int, int, int]] = field(default_factory=list)
    fock_translations: List[np.ndarray] = field(default_factory=list)
    fock_blocks: List[np.ndarray] = field(default_factory=list)
    fock_real_cells: Set[Tuple[int, int, int]] = field(default_factory=set)
    skipped_blocks: int = 0
    fermi_energy_hartree: Optional[float] = None
    k_grid: Optional[Tuple[int, int, int]] = None
    total_energy: Optional[float] = None

    @property
    def ndim(self) -> int:
        return len(self.lattice_axes)

    @property
    def bravais_lattice(self) -> np.ndarray:
        return self.lattice[list(self.lattice_axes)]


# ==============================
# Field Helpers
# ==============================

def _to_float(token: str) -> float:
    return float(token.replace('D', 'E').replace('d', 'e'))


def _parse_floats(tokens: List[str], what: str, line_number: int) -> List[float]:
    try:
        return [_to_float(token) for token in tokens]
    except ValueError:
        raise ParseError(f"Non-numeric field in {what}: {' '.join(tokens)!r}", line_number)


def _is_numeric_row(tokens: List[str], count: int) -> bool:
    if len(tokens) != count:
        return False
    try:
        [_to_float(token) for token in tokens]
    except ValueError:
        return False
    return True


def _value_after(line: str, marker: str, line_number: int, cast=int):
    """Read the first token following ``marker`` on ``line``."""
    tail = line[line.index(marker) + len(marker):].split()
    if not tail:
        raise ParseError(f"Missing value after '{marker}'", line_number)
    try:
        value = _to_float(tail[0])
    except ValueError:
        raise ParseError(f"Invalid value after '{marker}': {tail[0]!r}", line_number)
    if cast is int:
        if value != int(value):
            raise ParseError(f"Expected an integer after '{marker}', got {tail[0]!r}", line_number)
        return int(value)
    return cast(value)


# ==============================
# Section Handlers
# ==============================

def parse_lattice_vectors(reader: LineReader, ctx: ParserContext) -> ParserContext:
    """
    Read the three direct lattice vectors and drop non-periodic ones.

    Vectors whose norm exceeds ``ctx.norm_threshold`` are padding directions
    (vacuum in slabs, wires and molecules); the number retained is the
    dimensionality of the system.
    """
    vectors = []
    for _ in range(3):
        line = reader.read('direct lattice vectors')
        tokens = line.split()
        if len(tokens) != 3:
            raise ParseError(f"Lattice vector line must hold 3 components: {line!r}", reader.line_number)
        vectors.append(_parse_floats(tokens, 'lattice vector', reader.line_number))

    lattice = np.array(vectors)
    norms = np.linalg.norm(lattice, axis=1)
    axes = tuple(int(i) for i in np.flatnonzero(norms <= ctx.norm_threshold))
    if not axes:
        raise ParseError(
            f"All lattice vectors exceed the norm threshold {ctx.norm_threshold}",
            reader.line_number,
        )

    ctx.lattice = lattice
    ctx.lattice_axes = axes
    return ctx


def parse_atoms(reader: LineReader, ctx: ParserContext) -> ParserContext:
    """
    Read the atom listing: ``index atomic_number label n_shells x y z ...``.

    Species are deduplicated by label in first-seen order and keep the shell
    count of their first atom. The motif is shifted so that the first atom
    sits at the origin.
    """
    if ctx.num_atoms is None:
        raise ParseError(
            f"Atom listing found before '{ATOM_COUNT_MARKER}'", reader.line_number
        )

    line = reader.read('atom listing')
    while separator_pattern.match(line) or not line.strip():
        line = reader.read('atom listing')
    reader.push_back(line)

    species_index = {}
    species: List[SpeciesRecord] = []
    atom_species = []
    motif = np.zeros((ctx.num_atoms, 4))

    for atom in range(ctx.num_atoms):
        line = reader.read('atom listing')
        tokens = line.split()
        if len(tokens) < 7:
            raise ParseError(f"Atom row must hold at least 7 fields: {line!r}", reader.line_number)
        try:
            atomic_number = int(tokens[1])
            num_shells = int(tokens[3])
        except ValueError:
            raise ParseError(f"Invalid atom row: {line!r}", reader.line_number)
        x, y, z = _parse_floats(tokens[4:7], 'atom coordinates', reader.line_number)
        label = tokens[2]

        if label not in species_index:
            species_index[label] = len(species)
            species.append(SpeciesRecord(label, atomic_number, num_shells))

        atom_species.append(species_index[label])
        motif[atom] = [x, y, z, species_index[label]]

    motif[:, :3] -= motif[0, :3]

    ctx.motif = motif
    ctx.species = species
    ctx.atom_species = atom_species
    return ctx


def _read_primitives(reader: LineReader) -> np.ndarray:
    primitives = []
    for line in reader:
        tokens = line.split()
        if not _is_numeric_row(tokens, 4):
            reader.push_back(line)
            break
        primitives.append([_to_float(token) for token in tokens])
    return np.array(primitives, dtype=np.float64).reshape(-1, 4)


def parse_atomic_basis(reader: LineReader, ctx: ParserContext) -> ParserContext:
    """
    Read the LOCAL ATOMIC FUNCTIONS BASIS SET section.

    Every atom starts with a position line; its shells follow as a header
    ``first[- last] TYPE`` and a run of primitive rows, each exactly four
    numbers (exponent, s, p and d/f coefficients). Atoms of a species that
    was already described may print no shells at all.
    """
    if ctx.motif is None:
        raise ParseError("Atomic basis found before the atom listing", reader.line_number)

    line = reader.read('atomic basis')
    while separator_pattern.match(line) or not line.strip() or 'EXPONENT' in line:
        line = reader.read('atomic basis')
    reader.push_back(line)

    total_orbitals = 0
    orbitals_per_atom = []

    for atom in range(ctx.num_atoms):
        line = reader.read('atomic basis')
        tokens = line.split()
        if len(tokens) != 5 or not _is_numeric_row(tokens[2:], 3):
            raise ParseError(f"Expected the position line of atom {atom + 1}: {line!r}", reader.line_number)

        record = ctx.species[ctx.atom_species[atom]]
        shells = []
        last_orbital = total_orbitals

        while len(shells) < record.num_shells:
            line = reader.peek()
            match = shell_header_pattern.match(line) if line is not None else None
            if match is None:
                break
            next(reader)
            last_orbital = int(match.group(2) or match.group(1))
            shells.append(Shell(match.group(3).upper(), _read_primitives(reader)))

        if shells:
            if len(shells) != record.num_shells:
                raise ParseError(
                    f"Atom {atom + 1} ({record.label}) lists {len(shells)} shells, "
                    f"expected {record.num_shells}",
                    reader.line_number,
                )
            num_orbitals = last_orbital - total_orbitals
            if not record.described:
                record.shells = shells
                record.num_orbitals = num_orbitals
                record.described = True
        elif record.described or record.num_shells == 0:
            num_orbitals = record.num_orbitals
        else:
            raise ParseError(
                f"No basis shells found for the first {record.label} atom", reader.line_number
            )

        total_orbitals += num_orbitals
        orbitals_per_atom.append(num_orbitals)

    ctx.orbitals_per_atom = orbitals_per_atom
    ctx.basis_parsed = True
    return ctx


def parse_matrix_body(reader: LineReader, basis_dim: int) -> np.ndarray:
    """
    Read one paged matrix body into a dense ``basis_dim x basis_dim`` array.

    A page starts at a blank line, followed by the line of 1-based column
    indices it covers (optionally followed by another blank line). Each row
    then holds its 1-based row index and the values of the first listed
    columns; triangular output prints fewer values than columns. The body
    ends once row ``basis_dim`` has been read on the page that lists the
    final column.
    """
    matrix = np.zeros((basis_dim, basis_dim), dtype=np.float64)
    columns = None

    while True:
        line = reader.read('matrix body')

        if not line.strip():
            header = reader.read('matrix column header')
            try:
                columns = np.array([int(token) for token in header.split()], dtype=int)
            except ValueError:
                raise ParseError(f"Invalid matrix column header: {header!r}", reader.line_number)
            if columns.size == 0 or columns.min() < 1 or columns.max() > basis_dim:
                raise ParseError(
                    f"Matrix columns {header.strip()!r} outside 1..{basis_dim}", reader.line_number
                )
            line = reader.read('matrix body')
            if not line.strip():
                continue

        if columns is None:
            raise ParseError(f"Matrix row found before a column header: {line!r}", reader.line_number)

        tokens = line.split()
        try:
            row = int(tokens[0])
        except ValueError:
            raise ParseError(f"Invalid matrix row: {line!r}", reader.line_number)
        values = [_to_float(v) for v in float_pattern.findall(line[line.index(tokens[0]) + len(tokens[0]):])]

        if not 1 <= row <= basis_dim:
            raise ParseError(f"Matrix row index {row} outside 1..{basis_dim}", reader.line_number)
        if len(values) > len(columns):
            raise ParseError(
                f"Matrix row {row} has {len(values)} values for {len(columns)} columns",
                reader.line_number,
            )

        matrix[row - 1, columns[:len(values)] - 1] = values

        if row - 1 == basis_dim - 1 and columns[-1] == basis_dim:
            return matrix


def parse_matrix_block(
    reader: LineReader,
    ctx: ParserContext,
    header: re.Match,
) -> ParserContext:
    """
    Handle an OVERLAP or FOCK matrix block for one lattice cell.

    Blocks whose cell index exceeds ``ctx.cell_cutoff`` are read and
    discarded so that the scan stays aligned.
    """
    kind, part, cell_index = header.group(1), header.group(2), int(header.group(3))
    cell = tuple(int(header.group(j)) for j in range(4, 7))

    if ctx.lattice is None:
        raise ParseError(f"{kind} matrix found before the lattice vectors", reader.line_number)
    if ctx.num_ao is None:
        raise ParseError(f"{kind} matrix found before '{ORBITAL_COUNT_MARKER}'", reader.line_number)

    body = parse_matrix_body(reader, ctx.num_ao)

    if cell_index > ctx.cell_cutoff:
        ctx.skipped_blocks += 1
        return ctx

    coefficients = np.array(cell, dtype=np.float64)[list(ctx.lattice_axes)]
    translation = coefficients @ ctx.bravais_lattice

    if kind == 'OVERLAP':
        ctx.overlap_cells.append(cell)
        ctx.overlap_translations.append(translation)
        ctx.overlap_blocks.append(body.astype(np.complex128))
    elif part == 'IMAG':
        for i in reversed(range(len(ctx.fock_cells))):
            if ctx.fock_cells[i] == cell:
                ctx.fock_blocks[i] = ctx.fock_blocks[i] + 1j * body
                break
        else:
            ctx.fock_cells.append(cell)
            ctx.fock_translations.append(translation)
            ctx.fock_blocks.append(1j * body)
    elif cell in ctx.fock_real_cells:
        raise ParseError(
            f"Second real FOCK matrix for cell {cell}: spin-polarized reports with "
            "separate alpha and beta Fock matrices are not supported",
            reader.line_number,
        )
    elif cell in ctx.fock_cells:
        i = ctx.fock_cells.index(cell)
        ctx.fock_blocks[i] = ctx.fock_blocks[i] + body
        ctx.fock_real_cells.add(cell)
    else:
        ctx.fock_cells.append(cell)
        ctx.fock_translations.append(translation)
        ctx.fock_blocks.append(body.astype(np.complex128))
        ctx.fock_real_cells.add(cell)

    return ctx


def parse_metadata(line: str, ctx: ParserContext) -> ParserContext:
    """Pick up Fermi energy, shrinking factors and total energy (first occurrence)."""
    if 'FERMI ENERGY' in line and ctx.fermi_energy_hartree is None:
        match = fermi_energy_pattern.search(line)
        if match:
            ctx.fermi_energy_hartree = _to_float(match.group(1))

    if 'SHRINK. FACT.(MONKH.)' in line and ctx.k_grid is None:
        match = shrink_pattern.search(line)
        if match:
            ctx.k_grid = (int(match.group(1)), int(match.group(2)), int(match.group(3)))

    if 'TOTAL ENERGY' in line and ctx.total_energy is None:
        match = total_energy_pattern.search(line)
        if match:
            ctx.total_energy = _to_float(match.group(1))

    return ctx


# ==============================
# Snapshot Assembly
# ==============================

def _compute_filling(ctx: ParserContext) -> Optional[int]:
    if ctx.valence_electrons is None:
        return None
    total = ctx.valence_electrons + (ctx.core_electrons or 0)
    if total % 2:
        warnings.warn(
            f"Odd number of electrons ({total}); filling truncated to {total // 2} "
            "doubly-occupied orbitals"
        )
    return int(total // 2)


def build_snapshot(ctx: ParserContext) -> SystemSnapshot:
    """Check that all required sections were found and freeze the result."""
    if ctx.lattice is None:
        raise ParseError(f"Missing section '{LATTICE_MARKER}'")
    if ctx.num_atoms is None:
        raise ParseError(f"Missing section '{ATOM_COUNT_MARKER}'")
    if ctx.motif is None:
        raise ParseError("Missing atom listing")
    if ctx.num_ao is None:
        raise ParseError(f"Missing section '{ORBITAL_COUNT_MARKER}'")
    if not ctx.overlap_blocks:
        raise ParseError("No overlap matrix within the cell cutoff")
    if not ctx.fock_blocks:
        raise ParseError("No Fock matrix within the cell cutoff")
    if ctx.overlap_cells != ctx.fock_cells:
        raise ParseError(
            f"Overlap cells {ctx.overlap_cells} and Fock cells {ctx.fock_cells} are not parallel"
        )

    if ctx.basis_parsed:
        if sum(ctx.orbitals_per_atom) != ctx.num_ao:
            raise ParseError(
                f"Atomic basis holds {sum(ctx.orbitals_per_atom)} orbitals, "
                f"'{ORBITAL_COUNT_MARKER}' reports {ctx.num_ao}"
            )
    else:
        warnings.warn(f"No '{BASIS_MARKER}' section found; orbital counts per species unknown")

    species = tuple(
        Species(
            label=record.label,
            atomic_number=record.atomic_number,
            num_shells=record.num_shells,
            num_orbitals=record.num_orbitals,
            shells=tuple(record.shells),
        )
        for record in ctx.species
    )

    fermi_hartree = ctx.fermi_energy_hartree
    parameters = CalculationParameters(
        fermi_energy=fermi_hartree * HARTREE_TO_EV if fermi_hartree is not None else None,
        fermi_energy_hartree=fermi_hartree,
        k_grid=ctx.k_grid,
        total_energy=ctx.total_energy,
    )

    return SystemSnapshot(
        ndim=ctx.ndim,
        bravais_lattice=ctx.bravais_lattice,
        lattice_axes=ctx.lattice_axes,
        motif=ctx.motif,
        species=species,
        orbitals_per_atom=tuple(ctx.orbitals_per_atom),
        basis_dim=ctx.num_ao,
        cells=np.array(ctx.fock_cells, dtype=np.int64),
        bravais_vectors=np.array(ctx.fock_translations),
        overlap_matrices=np.stack(ctx.overlap_blocks),
        hamiltonian_matrices=np.stack(ctx.fock_blocks),
        num_shells=ctx.num_shells,
        valence_electrons=ctx.valence_electrons,
        core_electrons=ctx.core_electrons,
        filling=_compute_filling(ctx),
        parameters=parameters,
    )


# ==============================
# Main Entry Points
# ==============================

def parse_crystal_output(
    stream: Union[str, Iterable[str]],
    cell_cutoff: int,
    norm_threshold: float = 100.0,
    verbose: bool = False,
) -> SystemSnapshot:
    """
    Parse a CRYSTAL report into a SystemSnapshot.

    Parameters
    ----------
    stream : str or iterable of str
        Report text, an open file, or a list of lines
    cell_cutoff : int
        Largest cell index (``CELL N.``) whose matrices are retained.
        Larger cells are skipped; this truncation is an approximation
        chosen by the caller, not an error.
    norm_threshold : float, optional
        Lattice vectors longer than this (Angstrom) are treated as
        non-periodic directions (default: 100.0)
    verbose : bool, optional
        Print a summary of the parsed system (default: False)

    Returns
    -------
    SystemSnapshot
        Immutable real-space model

    Raises
    ------
    ParseError
        If a required section is absent, malformed or out of order.
        No partial snapshot is ever returned.

    Examples
    --------
    >>> with open('hBN.outp', 'r') as f:
    ...     snapshot = parse_crystal_output(f, cell_cutoff=25)
    >>> snapshot.ndim, snapshot.basis_dim
    (2, 36)
    """
    if cell_cutoff < 1:
        raise ValueError(f"cell_cutoff must be a positive integer, got {cell_cutoff}")

    reader = LineReader(stream)
    ctx = ParserContext(cell_cutoff=cell_cutoff, norm_threshold=norm_threshold)

    for line in reader:
        if LATTICE_MARKER in line:
            ctx = parse_lattice_vectors(reader, ctx)
        elif ATOM_COUNT_MARKER in line:
            ctx.num_atoms = _value_after(line, ATOM_COUNT_MARKER, reader.line_number)
        elif SHELL_COUNT_MARKER in line:
            ctx.num_shells = _value_after(line, SHELL_COUNT_MARKER, reader.line_number)
        elif ORBITAL_COUNT_MARKER in line:
            ctx.num_ao = _value_after(line, ORBITAL_COUNT_MARKER, reader.line_number)
        elif ELECTRON_COUNT_MARKER in line:
            ctx.valence_electrons = _value_after(line, ELECTRON_COUNT_MARKER, reader.line_number)
        elif CORE_ELECTRON_MARKER in line:
            ctx.core_electrons = _value_after(line, CORE_ELECTRON_MARKER, reader.line_number)
        elif 'ATOM' in line and 'SHELL' in line:
            ctx = parse_atoms(reader, ctx)
        elif BASIS_MARKER in line:
            ctx = parse_atomic_basis(reader, ctx)
        elif MATRIX_CELL_MARKER in line and ('OVERLAP MATRIX' in line or 'FOCK MATRIX' in line):
            header = matrix_header_pattern.match(line)
            if header is None:
                raise ParseError(f"Malformed matrix header: {line.strip()!r}", reader.line_number)
            ctx = parse_matrix_block(reader, ctx, header)
        else:
            ctx = parse_metadata(line, ctx)

    snapshot = build_snapshot(ctx)

    if verbose:
        print_snapshot_summary(snapshot)
        if ctx.skipped_blocks:
            print(f"Skipped {ctx.skipped_blocks} matrix blocks beyond cell {cell_cutoff}")

    return snapshot


def parse_crystal_file(
    filename: str,
    cell_cutoff: int,
    norm_threshold: float = 100.0,
    verbose: bool = False,
) -> SystemSnapshot:
    """Open ``filename`` and parse it with :func:`parse_crystal_output`."""
    with open(filename, 'r') as f:
        return parse_crystal_output(f, cell_cutoff, norm_threshold, verbose)
