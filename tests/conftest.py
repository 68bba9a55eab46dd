"""Shared fixtures: small graphs and hand-shaped terrains."""

import numpy as np
import pytest

from py_mapgen.core.constants import TERRAIN_LAND, TERRAIN_OCEAN
from py_mapgen.core.point_sampler import Distribution, sample_points
from py_mapgen.core.voronoi_graph import generate_voronoi_graph


def _make_graph(count=400, width=200.0, height=200.0, seed="test",
                distribution=Distribution.JITTERED):
    points = sample_points(count, width, height, distribution=distribution, seed=seed)
    return generate_voronoi_graph(points, width, height)


def _island_elevations(graph, radius=70.0, peak=1200.0):
    """A cone-shaped island in the middle of the domain, ocean elsewhere."""
    cx, cy = graph.width / 2, graph.height / 2
    dist = np.hypot(graph.points[:, 0] - cx, graph.points[:, 1] - cy)
    return np.where(dist < radius, 10.0 + peak * (1 - dist / radius), -500.0).astype(np.float32)


def _terrain_of(elevations):
    return np.where(elevations >= 0, TERRAIN_LAND, TERRAIN_OCEAN).astype(np.uint8)


@pytest.fixture(scope="session")
def make_graph():
    return _make_graph


@pytest.fixture(scope="session")
def island_elevations():
    return _island_elevations


@pytest.fixture(scope="session")
def terrain_of():
    return _terrain_of


@pytest.fixture(scope="module")
def small_graph():
    return _make_graph()


@pytest.fixture(scope="module")
def island(small_graph):
    elevations = _island_elevations(small_graph)
    return small_graph, elevations, _terrain_of(elevations)
