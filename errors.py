# errors.py
"""
Error kinds raised by the simulation core.

Every error is raised at configuration or command time, before any
state is mutated. Numerical edge cases inside a step (coincident
particles, zero-length vectors) are handled by the force model and are
never surfaced as errors.
"""


class ParticleLifeError(ValueError):
    """Base class for all rejected configurations and commands."""


class InvalidTypeTable(ParticleLifeError):
    """An attraction matrix or distance table violates its invariants."""


class InvalidType(ParticleLifeError):
    """A particle type id is outside [0, n_types)."""


class DegenerateConfiguration(ParticleLifeError):
    """World bounds, cell size, type count or ranges cannot form a world."""


class InvalidPosition(ParticleLifeError):
    """A spawn position is not a finite 2D coordinate."""


class SimulationBusy(RuntimeError):
    """A command was issued while a step was still in progress."""
