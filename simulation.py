# simulation.py
"""
Handles the core simulation logic and physics calculations.

This module defines SimulationWorld, which owns the particle population
and the rule set in force, advances the system one time step at a time
and exposes the commands front ends use to add particles, regenerate
rules and restart.

A step has two phases separated by a write barrier:

    1. read  - rebuild the spatial grid, then compute every particle's
               net force from the unchanged positions and types
    2. write - integrate all velocities and positions at once

No particle's update is visible to another particle within the same
step.
"""
import logging
import math
import numpy as np
from enum import Enum
from typing import Optional, Sequence, Union

from numba import jit

from config import SimulationConfig
from errors import (
    DegenerateConfiguration, InvalidPosition, InvalidType, InvalidTypeTable,
    SimulationBusy
)
from force_model import _force_curve, _fallback_direction
from integrator import integrate
from particle import ParticleSystem, ParticleSnapshot, stratified_types
from spatial_index import SpatialIndex, _cell_coords, _ring_span, _span_length
from type_table import TypeTable, attraction_summary, normalize_seed

# --- Data Contracts ---
#
# class SimulationWorld:
#   - __init__(self, config: SimulationConfig, type_table: TypeTable = None):
#     - Inputs:
#       - config: validated options (see config.py).
#       - type_table: optional rule set; generated from the config seed
#         when omitted.
#     - Side Effects: populates config.particle_count particles.
#
#   - step(self, dt=None) -> None / advance(self, dt=None) -> None
#     - Side Effects: mutates positions and velocities.
#     - Invariants: particle count and types are unchanged; positions
#       stay inside [0, width) x [0, height).
#
#   - Commands (add_particle, add_particles, add_particle_at,
#     add_particles_at, regenerate_behaviors, regenerate_distances,
#     restart, replace_type_table, set_attraction):
#     - Validate first; on error nothing is mutated.
#     - Raise SimulationBusy if called while a step is running.


class WorldState(Enum):
    RUNNING = "running"
    RESETTING = "resetting"


@jit(nopython=True)
def _calculate_forces_numba(
    positions, types, cell_start, cell_particles,
    grid_width, grid_height, cell_width, cell_height, rings_x, rings_y,
    attraction, min_distance, max_distance, repulsion_strength,
    world_width, world_height
):
    """
    Numba-jitted net force on every particle.

    Each particle is evaluated independently and only receives the force
    its neighbors exert on it, so asymmetric rules (A chases B, B flees
    A) are kept.
    """
    particle_count = positions.shape[0]
    total_force = np.zeros_like(positions)
    half_width = world_width / 2
    half_height = world_height / 2
    span_x = _span_length(rings_x, grid_width)
    span_y = _span_length(rings_y, grid_height)

    for i in range(particle_count):
        pos_x = positions[i, 0]
        pos_y = positions[i, 1]
        type_i = types[i]
        cell_x, cell_y = _cell_coords(
            pos_x, pos_y, grid_width, grid_height,
            cell_width, cell_height, world_width, world_height
        )
        force_x = 0.0
        force_y = 0.0

        for ky in range(span_y):
            ny = _ring_span(cell_y, rings_y, grid_height, ky)
            for kx in range(span_x):
                nx = _ring_span(cell_x, rings_x, grid_width, kx)
                cell_idx = nx + ny * grid_width
                for k in range(cell_start[cell_idx], cell_start[cell_idx + 1]):
                    j = cell_particles[k]
                    if i == j:
                        continue

                    delta_x = positions[j, 0] - pos_x
                    delta_y = positions[j, 1] - pos_y

                    # --- Toroidal distance correction ---
                    if delta_x > half_width: delta_x -= world_width
                    elif delta_x < -half_width: delta_x += world_width
                    if delta_y > half_height: delta_y -= world_height
                    elif delta_y < -half_height: delta_y += world_height

                    type_j = types[j]
                    radius_max = max_distance[type_i, type_j]
                    distance_sq = delta_x * delta_x + delta_y * delta_y
                    if distance_sq >= radius_max * radius_max and distance_sq > 0.0:
                        continue

                    distance = math.sqrt(distance_sq)
                    magnitude = _force_curve(
                        distance, min_distance[type_i, type_j], radius_max,
                        attraction[type_i, type_j], repulsion_strength
                    )
                    # Direction is FROM i TO j
                    if distance > 0.0:
                        dir_x = delta_x / distance
                        dir_y = delta_y / distance
                    else:
                        dir_x, dir_y = _fallback_direction(i, j)
                    force_x += dir_x * magnitude
                    force_y += dir_y * magnitude

        total_force[i, 0] = force_x
        total_force[i, 1] = force_y
    return total_force


class SimulationWorld:
    """
    Owns the population and the rule set, and runs the simulation loop.
    """
    def __init__(self, config: SimulationConfig, type_table: Optional[TypeTable] = None):
        self.config = config.validate()
        self.bounds = config.bounds
        self.time_scale = config.time_scale
        # All randomness flows from a single master seed.
        self.rng = np.random.default_rng(normalize_seed(config.seed))
        self.state = WorldState.RUNNING
        self.step_count = 0
        self._stepping = False

        table = type_table if type_table is not None else self._initial_type_table()
        self._check_table(table)
        self.type_table = table

        self.particles = ParticleSystem()
        self.index = SpatialIndex(config.effective_cell_size, self.bounds)
        self._populate(self.particles, config.particle_count)

        logging.info(
            f"SimulationWorld initialized with {self.particles.particle_count} "
            f"particles of {self.n_types} types in a "
            f"{self.bounds.width:.0f}x{self.bounds.height:.0f} world."
        )
        logging.info(
            f"Spatial grid enabled for performance: "
            f"{self.index.grid_width}x{self.index.grid_height} grid, "
            f"cell size {self.index.cell_size:.2f}."
        )
        logging.debug(f"Attraction matrix: {attraction_summary(self.type_table)}")

    # --- Construction helpers ---

    def _initial_type_table(self) -> TypeTable:
        cfg = self.config
        table = TypeTable.random(
            cfg.particle_types, self._next_seed(),
            cfg.attraction_range, cfg.min_distance_range, cfg.max_distance_range
        )
        if cfg.interaction_matrix is None and cfg.min_distance_matrix is None \
                and cfg.max_distance_matrix is None:
            return table
        return TypeTable.from_lists(
            table.attraction if cfg.interaction_matrix is None else cfg.interaction_matrix,
            table.min_distance if cfg.min_distance_matrix is None else cfg.min_distance_matrix,
            table.max_distance if cfg.max_distance_matrix is None else cfg.max_distance_matrix,
        )

    def _check_table(self, table: TypeTable) -> None:
        if table.n_types != self.config.particle_types:
            msg = (
                f"Configuration error: type table has {table.n_types} types "
                f"but particle_types is {self.config.particle_types}."
            )
            logging.critical(msg)
            raise InvalidTypeTable(msg)
        if table.max_cutoff > self.bounds.shortest_extent / 2.0:
            msg = (
                f"Type table cutoff {table.max_cutoff:.2f} exceeds half of the "
                f"smallest world extent ({self.bounds.shortest_extent:.2f})."
            )
            logging.error(msg)
            raise InvalidTypeTable(msg)

    def _next_seed(self) -> int:
        return int(self.rng.integers(0, np.iinfo(np.int64).max))

    def _ensure_idle(self) -> None:
        if self._stepping:
            raise SimulationBusy("Commands cannot run while a step is in progress.")

    def _random_positions(self, count: int) -> np.ndarray:
        positions = self.rng.uniform(
            low=[0, 0],
            high=[self.bounds.width, self.bounds.height],
            size=(count, 2)
        )
        return self.bounds.wrap(positions)

    def _populate(self, particles: ParticleSystem, count: int, weights=None) -> None:
        if weights is None:
            weights = self.config.initial_type_distribution
        types = stratified_types(count, weights, self.n_types, self.rng)
        particles.append(self._random_positions(count), types)

    def _validated_position(self, position) -> np.ndarray:
        try:
            point = np.array(position, dtype=np.float64).reshape(2)
        except (TypeError, ValueError):
            point = None
        if point is None or not np.all(np.isfinite(point)):
            msg = f"Position {position!r} is not a finite 2D coordinate."
            logging.error(msg)
            raise InvalidPosition(msg)
        return self.bounds.wrap(point.reshape(1, 2))

    def _validated_count(self, count) -> int:
        try:
            valid = int(count) == count and count >= 0
        except (TypeError, ValueError):
            valid = False
        if not valid:
            msg = f"Particle count must be a non-negative integer, got {count!r}."
            logging.error(msg)
            raise DegenerateConfiguration(msg)
        return int(count)

    def _validated_type(self, type_id) -> int:
        if not self.type_table.is_valid_type(type_id):
            msg = f"Type id {type_id!r} is outside [0, {self.n_types})."
            logging.error(msg)
            raise InvalidType(msg)
        return int(type_id)

    def _type_weights(self, type_distribution) -> Optional[np.ndarray]:
        if type_distribution is None:
            return self.config.initial_type_distribution
        if isinstance(type_distribution, (int, np.integer)):
            weights = np.zeros(self.n_types)
            weights[self._validated_type(type_distribution)] = 1.0
            return weights
        weights = np.asarray(type_distribution, dtype=np.float64)
        if (weights.shape != (self.n_types,) or not np.all(np.isfinite(weights))
                or np.any(weights < 0) or weights.sum() <= 0):
            msg = (
                f"type_distribution must hold {self.n_types} non-negative "
                f"weights with a positive sum, got {type_distribution!r}."
            )
            logging.error(msg)
            raise DegenerateConfiguration(msg)
        return weights

    # --- Read interface ---

    @property
    def n_types(self) -> int:
        return self.type_table.n_types

    @property
    def particle_count(self) -> int:
        return self.particles.particle_count

    def snapshot(self) -> ParticleSnapshot:
        """Read-only copy of the population for drawing."""
        return self.particles.snapshot(self.step_count, self.type_table.version)

    # --- Tick interface ---

    def net_forces(self, table: Optional[TypeTable] = None) -> np.ndarray:
        """
        Rebuilds the grid and returns the net force on every particle,
        without integrating.
        """
        table = self.type_table if table is None else table
        positions = self.particles.positions
        self.index.rebuild(positions)
        rings_x, rings_y = self.index.rings_for(table.max_cutoff)
        return _calculate_forces_numba(
            positions, self.particles.types,
            self.index.cell_start, self.index.cell_particles,
            self.index.grid_width, self.index.grid_height,
            self.index.cell_width, self.index.cell_height,
            rings_x, rings_y,
            table.attraction, table.min_distance, table.max_distance,
            self.config.repulsion_strength,
            self.bounds.width, self.bounds.height
        )

    def step(self, dt: Optional[float] = None) -> None:
        """
        Executes one time step of the simulation.
        """
        self._ensure_idle()
        dt = self.config.delta_time if dt is None else float(dt)
        if not math.isfinite(dt) or dt < 0:
            raise DegenerateConfiguration(f"dt must be a non-negative number, got {dt}.")
        if self.particles.particle_count == 0:
            return

        self._stepping = True
        try:
            # The rule set is pinned for the whole step.
            table = self.type_table
            # 1. Read phase: grid rebuild and forces from unchanged state
            total_force = self.net_forces(table)
            # 2. Write phase: integrate everyone at once
            integrate(
                self.particles.positions, self.particles.velocities, total_force,
                dt, self.config.friction, self.bounds,
                self.config.max_velocity, self.config.velocity_damping_threshold
            )
            self.step_count += 1
        finally:
            self._stepping = False

    def advance(self, dt: Optional[float] = None) -> None:
        """Front-end tick: one step of dt (default delta_time) times time_scale."""
        dt = self.config.delta_time if dt is None else float(dt)
        self.step(dt * self.time_scale)

    # --- Commands ---

    def add_particle(self, position, type_id: int) -> None:
        self._ensure_idle()
        type_id = self._validated_type(type_id)
        point = self._validated_position(position)
        self.particles.append(point, np.array([type_id], dtype=np.int32))
        logging.debug(f"Added particle of type {type_id} at ({point[0, 0]:.1f}, {point[0, 1]:.1f}).")

    def add_particles(self, n: int, type_distribution: Union[None, int, Sequence[float]] = None) -> None:
        """
        Adds `n` particles at uniformly random positions.

        Args:
            n (int): How many particles to add.
            type_distribution: None for the configured distribution, a
                single type id, or one non-negative weight per type.
        """
        self._ensure_idle()
        count = self._validated_count(n)
        weights = self._type_weights(type_distribution)
        self._populate(self.particles, count, weights)
        logging.info(f"Added {count} particles. Population is now {self.particles.particle_count}.")

    def add_particle_at(self, position) -> None:
        """Adds one particle of a random type at `position`."""
        self._ensure_idle()
        point = self._validated_position(position)
        type_id = int(self.rng.integers(0, self.n_types))
        self.particles.append(point, np.array([type_id], dtype=np.int32))
        logging.debug(f"Added particle of type {type_id} at ({point[0, 0]:.1f}, {point[0, 1]:.1f}).")

    def add_particles_at(self, position, count: int) -> None:
        """Scatters `count` random-type particles within spawn_radius of `position`."""
        self._ensure_idle()
        center = self._validated_position(position)
        count = self._validated_count(count)
        angle = self.rng.uniform(0.0, 2.0 * np.pi, size=count)
        radius = self.config.spawn_radius * np.sqrt(self.rng.random(size=count))
        positions = center + np.column_stack([radius * np.cos(angle), radius * np.sin(angle)])
        types = self.rng.integers(0, self.n_types, size=count, dtype=np.int32)
        self.particles.append(self.bounds.wrap(positions), types)
        logging.info(
            f"Added {count} particles around ({center[0, 0]:.1f}, {center[0, 1]:.1f}). "
            f"Population is now {self.particles.particle_count}."
        )

    def regenerate_behaviors(self, seed: Optional[int] = None) -> None:
        """Replaces the attraction matrix. Particles are left untouched."""
        self._ensure_idle()
        seed = self._next_seed() if seed is None else seed
        self.type_table = self.type_table.randomize_attraction(seed, self.config.attraction_range)
        logging.info(f"Attraction matrix regenerated (table version {self.type_table.version}).")
        logging.debug(f"Attraction matrix: {attraction_summary(self.type_table)}")

    def regenerate_distances(self, seed: Optional[int] = None) -> None:
        """Replaces the repulsion cores and cutoffs. Particles are left untouched."""
        self._ensure_idle()
        seed = self._next_seed() if seed is None else seed
        self.type_table = self.type_table.randomize_distances(
            seed, self.config.min_distance_range, self.config.max_distance_range
        )
        logging.info(
            f"Attraction distances regenerated (table version {self.type_table.version}, "
            f"max cutoff {self.type_table.max_cutoff:.2f})."
        )

    def restart(self, seed: Optional[int] = None, regenerate_rules: bool = False) -> None:
        """
        Clears the population and repopulates it with particle_count
        particles at rest.

        The rule set is kept unless `regenerate_rules` is set. An explicit
        seed also reseeds the master generator, so later commands are
        reproducible from it.
        """
        self._ensure_idle()
        self.state = WorldState.RESETTING
        try:
            if seed is not None:
                self.rng = np.random.default_rng(normalize_seed(seed))
            table = self.type_table
            if regenerate_rules:
                cfg = self.config
                table = TypeTable.random(
                    cfg.particle_types, self._next_seed(),
                    cfg.attraction_range, cfg.min_distance_range, cfg.max_distance_range
                )
                table = TypeTable(table.attraction, table.min_distance, table.max_distance,
                                  self.type_table.version + 1)
            particles = ParticleSystem()
            self._populate(particles, self.config.particle_count)

            self.type_table = table
            self.particles = particles
            self.step_count = 0
        finally:
            self.state = WorldState.RUNNING
        logging.info(
            f"Simulation restarted with {self.particles.particle_count} particles"
            f"{' and a new rule set' if regenerate_rules else ''}."
        )

    def replace_type_table(self, table: TypeTable) -> None:
        """Swaps in an externally built rule set after checking it fits this world."""
        self._ensure_idle()
        self._check_table(table)
        self.type_table = TypeTable(
            table.attraction, table.min_distance, table.max_distance,
            self.type_table.version + 1
        )
        logging.info(f"Type table replaced (table version {self.type_table.version}).")

    def set_attraction(self, self_type: int, other_type: int, value: float) -> None:
        """Edits one attraction coefficient, e.g. from a matrix editor."""
        self._ensure_idle()
        self_type = self._validated_type(self_type)
        other_type = self._validated_type(other_type)
        old_value = self.type_table.attraction[self_type, other_type]
        self.type_table = self.type_table.with_attraction_value(self_type, other_type, value)
        logging.info(
            f"Interaction matrix updated at ({self_type}, {other_type}). "
            f"Old: {old_value:.2f}, New: {float(value):.2f}"
        )
