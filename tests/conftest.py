"""
Pytest configuration and shared fixtures.
"""

import numpy as np
import pytest

from config import SimulationConfig, WorldBounds
from type_table import TypeTable


@pytest.fixture
def small_config():
    """An empty 200x100 world with three types and short cutoffs."""
    return SimulationConfig(
        seed=7,
        particle_types=3,
        particle_count=0,
        world_width=200.0,
        world_height=100.0,
        min_distance_range=(2.0, 5.0),
        max_distance_range=(20.0, 30.0),
        max_velocity=None,
    ).validate()


@pytest.fixture
def populated_config():
    """A 300-particle world dense enough for neighbors to interact."""
    return SimulationConfig(
        seed=11,
        particle_types=4,
        particle_count=300,
        world_width=240.0,
        world_height=160.0,
        min_distance_range=(3.0, 8.0),
        max_distance_range=(20.0, 35.0),
    ).validate()


@pytest.fixture
def bounds():
    return WorldBounds(200.0, 100.0)


@pytest.fixture
def two_type_table():
    """Two types, r_min = 10 and r_max = 30 for every pair, asymmetric attraction."""
    return TypeTable(
        attraction=[[1.0, -0.5], [0.25, 0.0]],
        min_distance=[[10.0, 10.0], [10.0, 10.0]],
        max_distance=[[30.0, 30.0], [30.0, 30.0]],
    )


@pytest.fixture
def rng():
    """Reproducible random number generator."""
    return np.random.default_rng(seed=42)
