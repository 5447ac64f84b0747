# particle.py
"""
Manages the state of all particles in the simulation.

This module defines the ParticleSystem class, which stores particle
data (position, velocity, type) in NumPy arrays, plus the Particle
record for single-particle access and the read-only ParticleSnapshot
handed to front ends.
"""
import logging
import numpy as np
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

# --- Data Contracts ---
#
# class ParticleSystem:
#   - __init__(self, capacity: int = 0)
#     - Side Effects: creates empty state arrays.
#     - Invariants:
#       - self.positions is a NumPy array of shape (N, 2) of dtype float64.
#       - self.velocities is a NumPy array of shape (N, 2) of dtype float64.
#       - self.types is a NumPy array of shape (N,) of dtype int32.
#   - append(positions, types) -> None
#     - New particles start with zero velocity. Callers validate types
#       and wrap positions beforehand.
#   - clear() -> None
#   - snapshot() -> ParticleSnapshot
#     - Copies; never aliases the live arrays.


@dataclass
class Particle:
    """A single particle, detached from the population arrays."""
    position: np.ndarray
    velocity: np.ndarray
    type: int

    def __post_init__(self):
        self.position = np.array(self.position, dtype=np.float64).reshape(2)
        self.velocity = np.array(self.velocity, dtype=np.float64).reshape(2)
        self.type = int(self.type)


@dataclass(frozen=True)
class ParticleSnapshot:
    """
    A read-only copy of the population, taken between steps.
    """
    positions: np.ndarray
    velocities: np.ndarray
    types: np.ndarray
    step: int = 0
    table_version: int = 0

    def __len__(self) -> int:
        return self.types.shape[0]

    def __iter__(self) -> Iterator[Tuple[Tuple[float, float], int]]:
        for (x, y), t in zip(self.positions, self.types):
            yield (float(x), float(y)), int(t)

    def type_counts(self, n_types: int) -> np.ndarray:
        return np.bincount(self.types, minlength=n_types)


class ParticleSystem:
    """
    A container for all particles, managing their state via NumPy arrays.
    """
    def __init__(self):
        self.positions = np.zeros((0, 2), dtype=np.float64)
        self.velocities = np.zeros((0, 2), dtype=np.float64)
        self.types = np.zeros(0, dtype=np.int32)

    @property
    def particle_count(self) -> int:
        return self.types.shape[0]

    def __len__(self) -> int:
        return self.particle_count

    def append(self, positions: np.ndarray, types: np.ndarray) -> None:
        """
        Appends particles with zero initial velocity.

        Args:
            positions (np.ndarray): Shape (K, 2), already inside the world.
            types (np.ndarray): Shape (K,), already validated.
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        types = np.asarray(types, dtype=np.int32).reshape(-1)
        if positions.shape[0] != types.shape[0]:
            raise ValueError(
                f"Got {positions.shape[0]} positions for {types.shape[0]} types."
            )
        self.positions = np.concatenate([self.positions, positions])
        self.velocities = np.concatenate([self.velocities, np.zeros_like(positions)])
        self.types = np.concatenate([self.types, types])
        logging.debug(
            f"Appended {types.shape[0]} particles. "
            f"Positions shape: {self.positions.shape}, "
            f"Velocities shape: {self.velocities.shape}, "
            f"Types shape: {self.types.shape}"
        )

    def clear(self) -> None:
        self.positions = np.zeros((0, 2), dtype=np.float64)
        self.velocities = np.zeros((0, 2), dtype=np.float64)
        self.types = np.zeros(0, dtype=np.int32)

    def particle(self, index: int) -> Particle:
        return Particle(self.positions[index], self.velocities[index], self.types[index])

    def snapshot(self, step: int = 0, table_version: int = 0) -> ParticleSnapshot:
        positions = self.positions.copy()
        velocities = self.velocities.copy()
        types = self.types.copy()
        for array in (positions, velocities, types):
            array.setflags(write=False)
        return ParticleSnapshot(positions, velocities, types, step, table_version)


def stratified_types(count: int, weights: Optional[np.ndarray], n_types: int,
                     rng: np.random.Generator) -> np.ndarray:
    """
    Assigns `count` types whose per-type totals follow `weights`.

    Each type receives floor(count * share) particles, the remainder goes
    to the largest fractional parts, and the result is shuffled. Every
    per-type count is therefore within 1 of count * share.
    """
    if weights is None:
        shares = np.full(n_types, 1.0 / n_types)
    else:
        shares = np.asarray(weights, dtype=np.float64)
        shares = shares / shares.sum()
    exact = shares * count
    counts = np.floor(exact).astype(np.int64)
    remainder = count - int(counts.sum())
    if remainder > 0:
        # Stable ordering keeps ties deterministic.
        order = np.argsort(-(exact - counts), kind="stable")
        counts[order[:remainder]] += 1
    types = np.repeat(np.arange(n_types, dtype=np.int32), counts)
    rng.shuffle(types)
    return types
