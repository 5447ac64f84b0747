"""Tests for SimulationConfig and WorldBounds."""

import numpy as np
import pytest

from config import SimulationConfig, WorldBounds
from errors import DegenerateConfiguration


class TestSimulationConfig:

    def test_defaults_are_valid(self):
        config = SimulationConfig().validate()
        assert config.particle_types == 3
        assert config.bounds == WorldBounds(1200.0, 700.0)
        assert config.effective_cell_size == 80.0

    def test_from_params_normalizes_types(self):
        config = SimulationConfig.from_params({
            "seed": "5",
            "world_width": 300,
            "world_height": 200,
            "max_distance_range": [20, 40],
        })
        assert config.seed == 5
        assert isinstance(config.world_width, float)
        assert config.max_distance_range == (20.0, 40.0)

    def test_unknown_keys_are_logged_and_ignored(self, caplog):
        config = SimulationConfig.from_params({"particle_count": 10, "gravity": 9.8})
        assert config.particle_count == 10
        assert "gravity" in caplog.text

    def test_explicit_cell_size(self):
        config = SimulationConfig(cell_size=100.0).validate()
        assert config.effective_cell_size == 100.0

    def test_explicit_max_matrix_raises_cutoff(self):
        config = SimulationConfig(
            particle_types=2, max_distance_matrix=[[30.0, 90.0], [30.0, 30.0]]
        ).validate()
        assert config.max_cutoff == 90.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"world_width": 0.0},
            {"world_height": -5.0},
            {"world_width": float("inf")},
            {"particle_types": 0},
            {"particle_count": -1},
            {"delta_time": -0.1},
            {"friction": 1.5},
            {"max_velocity": 0.0},
            {"cell_size": 0.0},
            {"cell_size": 40.0},
            {"min_distance_range": (10.0, 90.0)},
            {"min_distance_range": (-1.0, 5.0)},
            {"max_distance_range": (80.0, 30.0)},
            {"max_distance_range": "wide"},
            {"world_height": 120.0},
            {"initial_type_distribution": [1.0, 1.0]},
            {"initial_type_distribution": [0.0, 0.0, 0.0]},
            {"initial_type_distribution": [1.0, -1.0, 1.0]},
        ],
    )
    def test_degenerate_options_rejected(self, overrides, caplog):
        with pytest.raises(DegenerateConfiguration):
            SimulationConfig(**overrides).validate()
        assert "Configuration error" in caplog.text

    def test_null_max_velocity_disables_cap(self):
        assert SimulationConfig(max_velocity=None).validate().max_velocity is None


class TestWorldBounds:

    def test_wrap_folds_into_domain(self, bounds):
        positions = np.array([[-1.0, 50.0], [200.0, 100.0], [450.0, -250.0], [10.0, 20.0]])
        bounds.wrap(positions)
        assert positions.tolist() == [[199.0, 50.0], [0.0, 0.0], [50.0, 50.0], [10.0, 20.0]]

    def test_wrap_never_returns_upper_edge(self, bounds):
        positions = np.array([[-1e-18, -1e-18]])
        bounds.wrap(positions)
        assert bounds.contains(positions)

    def test_contains(self, bounds):
        assert bounds.contains(np.array([[0.0, 0.0], [199.9, 99.9]]))
        assert not bounds.contains(np.array([[200.0, 0.0]]))
        assert not bounds.contains(np.array([[0.0, -0.1]]))

    def test_non_positive_extent_rejected(self):
        with pytest.raises(DegenerateConfiguration):
            WorldBounds(0.0, 10.0)
