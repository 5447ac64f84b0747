"""Unit tests for the uniform-grid spatial index."""

import numpy as np
import pytest

from config import WorldBounds
from errors import DegenerateConfiguration
from force_model import separation
from spatial_index import SpatialIndex, grid_dimensions


def _bucket_contents(index):
    return [
        list(index.cell_particles[index.cell_start[c]:index.cell_start[c + 1]])
        for c in range(index.grid_width * index.grid_height)
    ]


class TestGridLayout:

    def test_dimensions_keep_cells_at_least_cell_size(self, bounds):
        index = SpatialIndex(30.0, bounds)
        assert index.grid_shape == (6, 3)
        assert index.cell_width >= 30.0
        assert index.cell_height >= 30.0

    def test_world_smaller_than_one_cell(self):
        assert grid_dimensions(50.0, WorldBounds(20.0, 20.0)) == (1, 1)

    @pytest.mark.parametrize("cell_size", [0.0, -1.0, float("nan")])
    def test_bad_cell_size_is_degenerate(self, bounds, cell_size):
        with pytest.raises(DegenerateConfiguration):
            SpatialIndex(cell_size, bounds)

    def test_rebuild_assigns_each_particle_once(self, bounds, rng):
        positions = rng.uniform([0, 0], [200, 100], size=(500, 2))
        index = SpatialIndex(30.0, bounds)
        index.rebuild(positions)
        flat = [i for bucket in _bucket_contents(index) for i in bucket]
        assert sorted(flat) == list(range(500))
        assert len(index) == 500

    def test_particles_land_in_their_cell(self, bounds):
        positions = np.array([[5.0, 5.0], [199.0, 99.0], [100.0, 50.0]])
        index = SpatialIndex(30.0, bounds)
        index.rebuild(positions)
        buckets = _bucket_contents(index)
        assert buckets[0] == [0]
        assert buckets[5 + 2 * 6] == [1]
        assert 2 in buckets[index.cell_of((100.0, 50.0))[0] + index.cell_of((100.0, 50.0))[1] * 6]

    def test_rebuild_clears_prior_state(self, bounds):
        index = SpatialIndex(30.0, bounds)
        index.rebuild(np.array([[5.0, 5.0], [6.0, 6.0]]))
        index.rebuild(np.array([[150.0, 80.0]]))
        assert len(index) == 1
        assert list(index.neighbors_within((5.0, 5.0), 1.0)) == []

    def test_cell_of_wraps_edges(self, bounds):
        index = SpatialIndex(30.0, bounds)
        assert index.cell_of((200.0, 100.0)) == (0, 0)
        assert index.cell_of((-1.0, 50.0)) == (5, 1)
        cx, cy = index.cell_of((-1e-18, -1e-18))
        assert 0 <= cx < 6 and 0 <= cy < 3

    def test_rebuild_can_reconfigure(self, bounds):
        index = SpatialIndex(30.0, bounds)
        index.rebuild(np.zeros((0, 2)), cell_size=50.0)
        assert index.grid_shape == (4, 2)


class TestNeighborQueries:

    def test_candidates_cover_every_true_neighbor(self, bounds, rng):
        positions = rng.uniform([0, 0], [200, 100], size=(400, 2))
        index = SpatialIndex(30.0, bounds)
        index.rebuild(positions)
        for i in range(0, 400, 7):
            candidates = list(index.neighbors_within(positions[i], 30.0))
            assert len(candidates) == len(set(candidates))
            for j in range(400):
                d = np.linalg.norm(separation(positions[i], positions[j], bounds))
                if d <= 30.0:
                    assert j in candidates

    def test_wrap_around_neighbor_found(self, bounds):
        positions = np.array([[1.0, 50.0], [199.0, 50.0], [1.0, 99.5], [100.0, 50.0]])
        index = SpatialIndex(30.0, bounds)
        index.rebuild(positions)
        candidates = set(index.neighbors_within((1.0, 50.0), 30.0))
        assert {0, 1} <= candidates
        assert 3 not in candidates
        assert 0 in set(index.neighbors_within((1.0, 0.5), 30.0))
        assert 2 in set(index.neighbors_within((1.0, 0.5), 30.0))

    def test_small_grid_never_repeats_cells(self):
        bounds = WorldBounds(50.0, 50.0)
        positions = np.array([[5.0, 5.0], [30.0, 30.0], [45.0, 10.0]])
        index = SpatialIndex(20.0, bounds)
        index.rebuild(positions)
        assert index.grid_shape == (2, 2)
        candidates = list(index.neighbors_within((5.0, 5.0), 20.0))
        assert sorted(candidates) == [0, 1, 2]

    def test_larger_radius_uses_more_rings(self, bounds):
        positions = np.array([[10.0, 10.0], [100.0, 10.0]])
        index = SpatialIndex(30.0, bounds)
        index.rebuild(positions)
        assert 1 not in set(index.neighbors_within((10.0, 10.0), 30.0))
        assert 1 in set(index.neighbors_within((10.0, 10.0), 95.0))

    def test_sequence_is_restartable(self, bounds, rng):
        positions = rng.uniform([0, 0], [200, 100], size=(100, 2))
        index = SpatialIndex(30.0, bounds)
        index.rebuild(positions)
        candidates = index.neighbors_within((100.0, 50.0), 30.0)
        first = list(candidates)
        assert list(candidates) == first
        assert len(candidates) == len(first)

    def test_sequence_survives_rebuild(self, bounds):
        index = SpatialIndex(30.0, bounds)
        index.rebuild(np.array([[10.0, 10.0]]))
        candidates = index.neighbors_within((10.0, 10.0), 30.0)
        index.rebuild(np.zeros((0, 2)))
        assert list(candidates) == [0]

    def test_negative_radius_rejected(self, bounds):
        index = SpatialIndex(30.0, bounds)
        with pytest.raises(ValueError):
            index.neighbors_within((10.0, 10.0), -1.0)
