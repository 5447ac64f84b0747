# force_model.py
"""
Pairwise force law between two typed particles.

The force is a signed scalar along the separation direction: positive
pulls a particle toward its neighbor, negative pushes it away. The
curve has three regions, split by the per-pair repulsion core
(r_min) and cutoff (r_max):

    d < r_min          -repulsion * (1 - d / r_min)
                       universal repulsion, capped at -repulsion for d == 0
    d == 0             -repulsion, whatever r_min and r_max are
    r_min <= d < r_max attraction[i][j] * triangle(d)
                       zero at r_min, peak at (r_min + r_max) / 2,
                       zero again at r_max
    0 < d, d >= r_max  exactly 0.0

Both breakpoints are continuous (every region evaluates to 0 there), so
particles crossing a boundary never feel a jump.
"""
import math
import numpy as np
from numba import jit

from config import WorldBounds
from constants import COINCIDENT_DIRECTION, DEFAULT_REPULSION_STRENGTH
from type_table import TypeTable

# --- Data Contracts ---
#
# pairwise_force(distance, self_type, other_type, type_table,
#                repulsion_strength) -> float
#   - Inputs: distance >= 0; type ids valid for type_table.
#   - Outputs: signed magnitude, positive = toward the other particle.
#   - Invariants: finite for every distance >= 0 (no division by zero
#     at d == 0 or when r_min == r_max), exactly 0.0 beyond r_max
#     except for coincident particles.
#
# separation(a, b, bounds) -> np.ndarray
#   - Minimum-image displacement from a to b on the torus.


@jit(nopython=True)
def _force_curve(distance, r_min, r_max, strength, repulsion_strength):
    """
    Numba-jitted force curve shared by the Python API and the step kernel.
    """
    if distance == 0.0:
        # Coincident particles always repel, even without a repulsion core.
        return -repulsion_strength
    if distance < r_min:
        # Repulsion is universal and symmetrical
        return -repulsion_strength * (1.0 - distance / r_min)
    if distance >= r_max:
        return 0.0
    # r_min <= distance < r_max, so both halves have a positive width here.
    ideal_dist = (r_min + r_max) / 2.0
    if distance < ideal_dist:
        return strength * (distance - r_min) / (ideal_dist - r_min)
    return strength * (1.0 - (distance - ideal_dist) / (r_max - ideal_dist))


@jit(nopython=True)
def _fallback_direction(i, j):
    """
    Direction used when two particles sit on the same point.

    The lower index looks along +x and the higher one along -x, so the
    repulsion pushes the pair apart instead of dragging both one way.
    """
    if i < j:
        return COINCIDENT_DIRECTION[0], COINCIDENT_DIRECTION[1]
    return -COINCIDENT_DIRECTION[0], -COINCIDENT_DIRECTION[1]


def pairwise_force(
    distance: float,
    self_type: int,
    other_type: int,
    type_table: TypeTable,
    repulsion_strength: float = DEFAULT_REPULSION_STRENGTH,
) -> float:
    """
    Force felt by a particle of `self_type` from one of `other_type`.

    Args:
        distance (float): Separation, >= 0.
        self_type (int): Type of the particle receiving the force.
        other_type (int): Type of the neighbor exerting it.
        type_table (TypeTable): Rule set in force.
        repulsion_strength (float): Magnitude of the capped core repulsion.

    Returns:
        float: Signed magnitude along the direction toward the neighbor.
    """
    distance = float(distance)
    if not math.isfinite(distance) or distance < 0:
        raise ValueError(f"distance must be a finite non-negative number, got {distance}.")
    return float(_force_curve(
        distance,
        type_table.min_distance_between(self_type, other_type),
        type_table.max_distance_between(self_type, other_type),
        type_table.attraction_between(self_type, other_type),
        float(repulsion_strength),
    ))


def separation(a, b, bounds: WorldBounds) -> np.ndarray:
    """Shortest displacement from a to b, taking wrap-around into account."""
    delta = np.asarray(b, dtype=np.float64) - np.asarray(a, dtype=np.float64)
    half_width = bounds.width / 2
    half_height = bounds.height / 2
    if delta[0] > half_width: delta[0] -= bounds.width
    elif delta[0] < -half_width: delta[0] += bounds.width
    if delta[1] > half_height: delta[1] -= bounds.height
    elif delta[1] < -half_height: delta[1] += bounds.height
    return delta


def force_vector(i: int, j: int, positions, types, type_table: TypeTable,
                 bounds: WorldBounds, repulsion_strength: float = DEFAULT_REPULSION_STRENGTH) -> np.ndarray:
    """
    Force vector on particle i from particle j.

    A readable reference for the step kernel; the kernel is what the
    world actually runs.
    """
    if i == j:
        return np.zeros(2)
    delta = separation(positions[i], positions[j], bounds)
    distance = math.sqrt(delta[0] * delta[0] + delta[1] * delta[1])
    if distance > 0:
        direction = delta / distance
    else:
        direction = np.array(_fallback_direction(i, j), dtype=np.float64)
    return direction * pairwise_force(distance, int(types[i]), int(types[j]), type_table, repulsion_strength)
