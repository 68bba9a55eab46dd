"""Tests for the precipitation model."""

import numpy as np
import pytest

from py_mapgen.core.climate import Climate, ClimateOptions


class TestClimate:
    """Orographic precipitation."""

    @pytest.fixture
    def ridge(self, small_graph):
        """A north-south ridge along x = 100 with land on both sides."""
        graph = small_graph
        dist = np.abs(graph.points[:, 0] - 100.0)
        elevations = np.maximum(2500.0 - dist * 40.0, 50.0).astype(np.float32)
        return graph, elevations

    def test_range_is_normalized(self, ridge):
        graph, elevations = ridge
        precip = Climate(graph, elevations).calculate_precipitation()

        assert precip.shape == (graph.n_cells,)
        assert precip.min() == pytest.approx(0.0)
        assert precip.max() == pytest.approx(1.0)

    def test_windward_wetter_than_lee(self, ridge):
        graph, elevations = ridge
        # Wind from the west blows toward +x
        options = ClimateOptions(wind_direction=270, smoothing_passes=0)
        climate = Climate(graph, elevations, options)
        raw = climate.raw_precipitation()

        x = graph.points[:, 0]
        windward = (x > 60) & (x < 95)
        lee = (x > 105) & (x < 140)
        assert raw[windward].mean() > raw[lee].mean()

    def test_west_wind_blows_east(self, ridge):
        graph, elevations = ridge
        wx, wy = Climate(graph, elevations, ClimateOptions(wind_direction=270)).wind_vector()
        assert wx == pytest.approx(1.0, abs=1e-9)
        assert wy == pytest.approx(0.0, abs=1e-9)

    def test_north_wind_blows_down_the_screen(self, ridge):
        graph, elevations = ridge
        wx, wy = Climate(graph, elevations, ClimateOptions(wind_direction=0)).wind_vector()
        assert wx == pytest.approx(0.0, abs=1e-9)
        assert wy == pytest.approx(1.0, abs=1e-9)

    def test_ocean_gets_flat_value(self, island):
        graph, elevations, terrain = island
        options = ClimateOptions(smoothing_passes=0)
        raw = Climate(graph, elevations, options).raw_precipitation()
        ocean = raw[terrain == 0]
        assert np.allclose(ocean, options.base_precipitation * options.ocean_factor)

    def test_uniform_field_maps_to_zero(self, small_graph):
        flat = np.full(small_graph.n_cells, -100.0, dtype=np.float32)
        precip = Climate(small_graph, flat).calculate_precipitation()
        assert np.all(precip == 0.0)

    def test_smoothing_reduces_variance(self, ridge):
        graph, elevations = ridge
        climate = Climate(graph, elevations, ClimateOptions(smoothing_passes=0))
        raw = climate.raw_precipitation()
        assert climate.smooth(raw, 3).std() < raw.std()
