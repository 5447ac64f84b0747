# config.py
"""
Typed configuration for the simulation core.

This module turns the "simulation_parameters" section of `config.json`
into a validated SimulationConfig, and defines the WorldBounds value
object shared by the spatial index, the integrator and the world.
"""
import logging
import math
from dataclasses import dataclass, field, fields
from typing import Dict, Any, List, Optional, Tuple

import numpy as np

from constants import (
    DEFAULT_SEED, DEFAULT_PARTICLE_TYPES, DEFAULT_PARTICLE_COUNT,
    DEFAULT_WORLD_WIDTH, DEFAULT_WORLD_HEIGHT, DEFAULT_DELTA_TIME,
    DEFAULT_FRICTION, DEFAULT_MAX_VELOCITY, DEFAULT_REPULSION_STRENGTH,
    DEFAULT_SPAWN_RADIUS, ATTRACTION_RANGE, MIN_DISTANCE_RANGE,
    MAX_DISTANCE_RANGE
)
from errors import DegenerateConfiguration

# --- Data Contracts ---
#
# class WorldBounds:
#   - width, height: float, both > 0.
#   - wrap(positions) -> np.ndarray: positions folded into
#     [0, width) x [0, height). Never returns a coordinate equal to the
#     upper edge.
#
# class SimulationConfig:
#   - from_params(params: Dict[str, Any]) -> SimulationConfig
#     - Inputs: the "simulation_parameters" dictionary from config.json.
#       Unknown keys are logged and ignored.
#   - validate() -> SimulationConfig
#     - Raises DegenerateConfiguration on bounds <= 0, cell size <= 0,
#       particle_types == 0, inverted ranges, or a cutoff larger than
#       half of the smaller world extent.


@dataclass(frozen=True)
class WorldBounds:
    """A fixed rectangular, toroidal domain."""
    width: float
    height: float

    def __post_init__(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise DegenerateConfiguration(
                    f"World {name} must be a positive finite number, got {value}."
                )

    @property
    def shortest_extent(self) -> float:
        return min(self.width, self.height)

    def wrap(self, positions: np.ndarray) -> np.ndarray:
        """
        Folds positions into the domain, in place, and returns them.

        `x % width` can round up to exactly `width` for tiny negative x,
        so that case is mapped back to 0.
        """
        positions[..., 0] %= self.width
        positions[..., 1] %= self.height
        positions[..., 0][positions[..., 0] >= self.width] = 0.0
        positions[..., 1][positions[..., 1] >= self.height] = 0.0
        return positions

    def contains(self, positions: np.ndarray) -> bool:
        positions = np.asarray(positions, dtype=np.float64)
        return bool(
            np.all(positions[..., 0] >= 0.0) and np.all(positions[..., 0] < self.width)
            and np.all(positions[..., 1] >= 0.0) and np.all(positions[..., 1] < self.height)
        )


def _as_range(value, name: str) -> Tuple[float, float]:
    try:
        low, high = (float(v) for v in value)
    except (TypeError, ValueError):
        raise DegenerateConfiguration(f"{name} must be a [low, high] pair, got {value!r}.")
    if not (math.isfinite(low) and math.isfinite(high)) or low > high:
        raise DegenerateConfiguration(f"{name} must satisfy low <= high, got [{low}, {high}].")
    return low, high


@dataclass
class SimulationConfig:
    """
    All recognized simulation options.

    `cell_size` of None derives the spatial index cell size from the
    largest cutoff any rule set can produce (the top of
    `max_distance_range`, or the largest explicit max distance).
    """
    seed: int = DEFAULT_SEED
    particle_types: int = DEFAULT_PARTICLE_TYPES
    particle_count: int = DEFAULT_PARTICLE_COUNT
    world_width: float = DEFAULT_WORLD_WIDTH
    world_height: float = DEFAULT_WORLD_HEIGHT
    delta_time: float = DEFAULT_DELTA_TIME
    time_scale: float = 1.0
    friction: float = DEFAULT_FRICTION
    max_velocity: Optional[float] = DEFAULT_MAX_VELOCITY
    velocity_damping_threshold: float = 0.0
    repulsion_strength: float = DEFAULT_REPULSION_STRENGTH
    spawn_radius: float = DEFAULT_SPAWN_RADIUS
    attraction_range: Tuple[float, float] = ATTRACTION_RANGE
    min_distance_range: Tuple[float, float] = MIN_DISTANCE_RANGE
    max_distance_range: Tuple[float, float] = MAX_DISTANCE_RANGE
    cell_size: Optional[float] = None
    interaction_matrix: Optional[List[List[float]]] = None
    min_distance_matrix: Optional[List[List[float]]] = None
    max_distance_matrix: Optional[List[List[float]]] = None
    initial_type_distribution: Optional[List[float]] = field(default=None)

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "SimulationConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            logging.warning(f"Ignoring unknown simulation parameters: {', '.join(unknown)}")
        return cls(**{k: v for k, v in params.items() if k in known}).validate()

    @property
    def bounds(self) -> WorldBounds:
        return WorldBounds(float(self.world_width), float(self.world_height))

    @property
    def max_cutoff(self) -> float:
        """Largest interaction cutoff any rule set of this config can use."""
        cutoff = float(self.max_distance_range[1])
        if self.max_distance_matrix is not None:
            cutoff = max(cutoff, float(np.max(np.asarray(self.max_distance_matrix, dtype=np.float64))))
        return cutoff

    @property
    def effective_cell_size(self) -> float:
        return float(self.cell_size) if self.cell_size is not None else self.max_cutoff

    def validate(self) -> "SimulationConfig":
        """
        Checks every option, normalizing types in place.

        Raises:
            DegenerateConfiguration: if the options cannot form a world.
        """
        try:
            self._validate()
        except DegenerateConfiguration as e:
            logging.critical(f"Configuration error: {e}")
            raise
        return self

    def _validate(self) -> None:
        self.seed = int(self.seed)
        self.particle_types = int(self.particle_types)
        if self.particle_types <= 0:
            raise DegenerateConfiguration(
                f"particle_types must be at least 1, got {self.particle_types}."
            )
        self.particle_count = int(self.particle_count)
        if self.particle_count < 0:
            raise DegenerateConfiguration(
                f"particle_count cannot be negative, got {self.particle_count}."
            )

        bounds = self.bounds  # raises on non-positive extents
        self.world_width, self.world_height = bounds.width, bounds.height

        for name in ("delta_time", "time_scale", "friction", "repulsion_strength",
                     "spawn_radius", "velocity_damping_threshold"):
            value = float(getattr(self, name))
            if not math.isfinite(value) or value < 0:
                raise DegenerateConfiguration(f"{name} must be a non-negative number, got {value}.")
            setattr(self, name, value)
        if self.friction > 1.0:
            raise DegenerateConfiguration(f"friction must lie in [0, 1], got {self.friction}.")
        if self.max_velocity is not None:
            self.max_velocity = float(self.max_velocity)
            if not self.max_velocity > 0:
                raise DegenerateConfiguration(
                    f"max_velocity must be positive or null, got {self.max_velocity}."
                )

        self.attraction_range = _as_range(self.attraction_range, "attraction_range")
        self.min_distance_range = _as_range(self.min_distance_range, "min_distance_range")
        self.max_distance_range = _as_range(self.max_distance_range, "max_distance_range")
        if self.min_distance_range[0] < 0:
            raise DegenerateConfiguration("min_distance_range cannot start below 0.")
        if self.min_distance_range[1] > self.max_distance_range[1]:
            raise DegenerateConfiguration(
                f"min_distance_range {self.min_distance_range} reaches above "
                f"max_distance_range {self.max_distance_range}."
            )
        if self.max_distance_range[1] <= 0:
            raise DegenerateConfiguration("max_distance_range must reach above 0.")

        if self.cell_size is not None:
            self.cell_size = float(self.cell_size)
            if not math.isfinite(self.cell_size) or self.cell_size <= 0:
                raise DegenerateConfiguration(f"cell_size must be positive, got {self.cell_size}.")
            if self.cell_size < self.max_cutoff:
                raise DegenerateConfiguration(
                    f"cell_size {self.cell_size} is smaller than the largest "
                    f"interaction cutoff {self.max_cutoff}."
                )
        if self.max_cutoff > bounds.shortest_extent / 2.0:
            raise DegenerateConfiguration(
                f"Interaction cutoff {self.max_cutoff} exceeds half of the "
                f"smallest world extent ({bounds.shortest_extent})."
            )

        if self.initial_type_distribution is not None:
            weights = np.asarray(self.initial_type_distribution, dtype=np.float64)
            if (weights.shape != (self.particle_types,) or not np.all(np.isfinite(weights))
                    or np.any(weights < 0) or weights.sum() <= 0):
                raise DegenerateConfiguration(
                    f"initial_type_distribution must hold {self.particle_types} "
                    f"non-negative weights with a positive sum."
                )
            self.initial_type_distribution = [float(w) for w in weights]
