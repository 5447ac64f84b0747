# spatial_index.py
"""
Uniform-grid spatial index over a toroidal world.

The world is split into grid_width x grid_height cells, each at least
`cell_size` wide. With cell_size >= the largest interaction cutoff,
every in-range neighbor of a particle lies in its own cell or one of
the eight around it, which turns the O(n^2) pair scan into O(n * k)
with k the local density.

Buckets are stored in a compact CSR layout, which Numba can iterate
without Python objects:

    cell_particles[cell_start[c]:cell_start[c + 1]]  -> indices in cell c

The index only holds particle indices. It is rebuilt from scratch each
step and never owns particle data.
"""
import logging
import math
import numpy as np
from numba import jit
from typing import Iterator, Optional, Tuple

from config import WorldBounds
from errors import DegenerateConfiguration

# --- Data Contracts ---
#
# class SpatialIndex:
#   - __init__(self, cell_size: float, bounds: WorldBounds)
#     - Raises DegenerateConfiguration if cell_size <= 0.
#   - rebuild(self, positions, cell_size=None, bounds=None) -> None
#     - O(n). Replaces (never mutates) the CSR arrays, so candidate
#       sequences created before a rebuild keep reading the old grid.
#   - neighbors_within(self, position, radius) -> NeighborCandidates
#     - Superset of the particles within `radius`; callers must check
#       the exact distance. Each index appears at most once.


@jit(nopython=True)
def _cell_coords(x, y, grid_width, grid_height, cell_width, cell_height, world_width, world_height):
    """Cell of a position, wrapping it first and clamping float round-up."""
    x = x % world_width
    y = y % world_height
    cell_x = int(x / cell_width)
    cell_y = int(y / cell_height)
    if cell_x >= grid_width:
        cell_x = grid_width - 1
    if cell_y >= grid_height:
        cell_y = grid_height - 1
    return cell_x, cell_y


@jit(nopython=True)
def _build_grid_numba(positions, grid_width, grid_height, cell_width, cell_height, world_width, world_height):
    """
    Numba-jitted counting sort of particle indices into grid cells.

    Returns (cell_start, cell_particles). Within a cell, indices keep
    ascending order, so the force sum order is fixed for a given state.
    """
    particle_count = positions.shape[0]
    cell_count = grid_width * grid_height
    cell_of = np.empty(particle_count, dtype=np.int64)
    cell_start = np.zeros(cell_count + 1, dtype=np.int64)

    for i in range(particle_count):
        cell_x, cell_y = _cell_coords(
            positions[i, 0], positions[i, 1], grid_width, grid_height,
            cell_width, cell_height, world_width, world_height
        )
        cell = cell_x + cell_y * grid_width
        cell_of[i] = cell
        cell_start[cell + 1] += 1

    for c in range(cell_count):
        cell_start[c + 1] += cell_start[c]

    fill = cell_start[:-1].copy()
    cell_particles = np.empty(particle_count, dtype=np.int64)
    for i in range(particle_count):
        cell = cell_of[i]
        cell_particles[fill[cell]] = i
        fill[cell] += 1
    return cell_start, cell_particles


@jit(nopython=True)
def _ring_span(center, rings, size, k):
    """
    k-th coordinate of the wrapped window [center - rings, center + rings].

    When the window covers the whole axis it degrades to 0..size-1 so no
    cell is visited twice on small grids.
    """
    if 2 * rings + 1 >= size:
        return k
    return (center - rings + k) % size


@jit(nopython=True)
def _span_length(rings, size):
    if 2 * rings + 1 >= size:
        return size
    return 2 * rings + 1


def grid_dimensions(cell_size: float, bounds: WorldBounds) -> Tuple[int, int]:
    """Cells per axis, chosen so each actual cell is at least cell_size wide."""
    return (
        max(1, int(math.floor(bounds.width / cell_size))),
        max(1, int(math.floor(bounds.height / cell_size))),
    )


class NeighborCandidates:
    """
    A finite, restartable sequence of candidate indices around a point.

    Iterating twice yields the same indices; each iteration walks the
    grid arrays captured at creation time.
    """
    def __init__(self, cell_start, cell_particles, cells):
        self._cell_start = cell_start
        self._cell_particles = cell_particles
        self._cells = cells

    def __iter__(self) -> Iterator[int]:
        for cell in self._cells:
            start = self._cell_start[cell]
            end = self._cell_start[cell + 1]
            for i in self._cell_particles[start:end]:
                yield int(i)

    def __len__(self) -> int:
        return sum(int(self._cell_start[c + 1] - self._cell_start[c]) for c in self._cells)


class SpatialIndex:
    """
    Uniform grid of particle indices, rebuilt once per step.
    """
    def __init__(self, cell_size: float, bounds: WorldBounds):
        self._configure(cell_size, bounds)
        self.cell_start = np.zeros(self.grid_width * self.grid_height + 1, dtype=np.int64)
        self.cell_particles = np.zeros(0, dtype=np.int64)

    def _configure(self, cell_size: float, bounds: WorldBounds) -> None:
        if not math.isfinite(cell_size) or cell_size <= 0:
            raise DegenerateConfiguration(f"cell_size must be positive, got {cell_size}.")
        self.cell_size = float(cell_size)
        self.bounds = bounds
        self.grid_width, self.grid_height = grid_dimensions(self.cell_size, bounds)
        # Actual cell extents; >= cell_size unless the world is smaller than one cell.
        self.cell_width = bounds.width / self.grid_width
        self.cell_height = bounds.height / self.grid_height
        logging.debug(
            f"Spatial grid configured: {self.grid_width}x{self.grid_height} cells "
            f"of {self.cell_width:.2f}x{self.cell_height:.2f}."
        )

    @property
    def grid_shape(self) -> Tuple[int, int]:
        return self.grid_width, self.grid_height

    def __len__(self) -> int:
        return self.cell_particles.shape[0]

    def rebuild(self, positions: np.ndarray, cell_size: Optional[float] = None,
                bounds: Optional[WorldBounds] = None) -> None:
        """
        Re-buckets every particle from its current (wrapped) position.
        """
        if cell_size is not None or bounds is not None:
            self._configure(
                self.cell_size if cell_size is None else cell_size,
                self.bounds if bounds is None else bounds,
            )
        positions = np.ascontiguousarray(positions, dtype=np.float64).reshape(-1, 2)
        self.cell_start, self.cell_particles = _build_grid_numba(
            positions, self.grid_width, self.grid_height,
            self.cell_width, self.cell_height,
            self.bounds.width, self.bounds.height
        )

    def cell_of(self, position) -> Tuple[int, int]:
        x, y = float(position[0]), float(position[1])
        return _cell_coords(
            x, y, self.grid_width, self.grid_height,
            self.cell_width, self.cell_height,
            self.bounds.width, self.bounds.height
        )

    def rings_for(self, radius: float) -> Tuple[int, int]:
        """Rings of cells, per axis, needed to cover `radius`."""
        return (
            max(0, int(math.ceil(radius / self.cell_width))),
            max(0, int(math.ceil(radius / self.cell_height))),
        )

    def neighbors_within(self, position, radius: float) -> NeighborCandidates:
        """
        Candidate indices for particles within `radius` of `position`.

        Wrap-around cells at the world edges are included.
        """
        radius = float(radius)
        if not math.isfinite(radius) or radius < 0:
            raise ValueError(f"radius must be a finite non-negative number, got {radius}.")
        cell_x, cell_y = self.cell_of(position)
        rings_x, rings_y = self.rings_for(radius)
        cells = [
            _ring_span(cell_x, rings_x, self.grid_width, kx)
            + _ring_span(cell_y, rings_y, self.grid_height, ky) * self.grid_width
            for ky in range(_span_length(rings_y, self.grid_height))
            for kx in range(_span_length(rings_x, self.grid_width))
        ]
        return NeighborCandidates(self.cell_start, self.cell_particles, cells)
