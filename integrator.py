# integrator.py
"""
Advances particle velocities and positions from accumulated forces.

The update per particle is, in order:

    1. velocity += net_force * dt
    2. velocity *= (1 - damping)            friction bleeds energy
    3. speed capped at max_velocity          (optional)
    4. velocities below the stiction
       threshold zeroed                      (optional)
    5. position += velocity * dt
    6. position wrapped into the torus

`integrate` runs the whole population at once; `step` runs the same
arithmetic for one Particle, so both produce identical bits for
identical inputs.
"""
import numpy as np
from typing import Optional

from config import WorldBounds
from particle import Particle

# --- Data Contracts ---
#
# integrate(positions, velocities, forces, dt, damping, bounds,
#           max_velocity=None, velocity_damping_threshold=0.0) -> None
#   - Inputs: (N, 2) float64 arrays; forces is read only.
#   - Side Effects: mutates positions and velocities in place.
#   - Invariants: afterwards every position lies in
#     [0, width) x [0, height).
#
# step(particle, net_force, dt, damping, bounds, ...) -> Particle
#   - Mutates and returns the given Particle.


def integrate(
    positions: np.ndarray,
    velocities: np.ndarray,
    forces: np.ndarray,
    dt: float,
    damping: float,
    bounds: WorldBounds,
    max_velocity: Optional[float] = None,
    velocity_damping_threshold: float = 0.0,
) -> None:
    """
    Applies one explicit Euler update to the whole population.
    """
    # 1. Update velocities with forces, scaled by delta_time for stability
    velocities += forces * dt

    # 2. Apply friction
    velocities *= (1.0 - damping)

    speed = None
    # 3. Apply velocity cap
    if max_velocity is not None:
        speed = np.linalg.norm(velocities, axis=1)
        # For particles moving too fast, scale the velocity back to max_velocity
        over_speed_mask = speed > max_velocity
        velocities[over_speed_mask] = (
            velocities[over_speed_mask] / speed[over_speed_mask, np.newaxis]
        ) * max_velocity
        speed[over_speed_mask] = max_velocity

    # 4. Zero out very low velocities to stop jitter in settled clusters
    if velocity_damping_threshold > 0:
        if speed is None:
            speed = np.linalg.norm(velocities, axis=1)
        velocities[speed < velocity_damping_threshold] = 0.0

    # 5. Update positions with velocities, scaled by delta_time
    positions += velocities * dt

    # 6. Handle boundary conditions (toroidal wrap-around)
    bounds.wrap(positions)


def step(
    particle: Particle,
    net_force,
    dt: float,
    damping: float,
    bounds: WorldBounds,
    max_velocity: Optional[float] = None,
    velocity_damping_threshold: float = 0.0,
) -> Particle:
    """
    Advances a single particle in place and returns it.
    """
    positions = particle.position.reshape(1, 2).copy()
    velocities = particle.velocity.reshape(1, 2).copy()
    forces = np.asarray(net_force, dtype=np.float64).reshape(1, 2)
    integrate(positions, velocities, forces, dt, damping, bounds,
              max_velocity, velocity_damping_threshold)
    particle.position[:] = positions[0]
    particle.velocity[:] = velocities[0]
    return particle
