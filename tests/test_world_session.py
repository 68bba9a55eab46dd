"""Tests for the generation session and world export."""

import dataclasses

import numpy as np
import pytest

from py_mapgen.config import settings
from py_mapgen.core.constants import TERRAIN_LAND
from py_mapgen.core.export import export_world, summarize_world
from py_mapgen.core.heightmap_generator import HeightmapConfig
from py_mapgen.core.hydrology import HydrologyOptions
from py_mapgen.core.kingdoms import KingdomOptions
from py_mapgen.core.world import GenerationSession


def new_session():
    return GenerationSession(width=200.0, height=200.0, seed="session")


@pytest.fixture(scope="module")
def full_world():
    session = new_session()
    session.generate_world(
        count=500,
        hydrology=HydrologyOptions(number_of_rivers=5, min_river_length=3),
        kingdoms=KingdomOptions(num_kingdoms=3, cells_per_kingdom_cap=20),
    )
    return session


class TestPreconditions:
    """Stages refuse to run without their inputs."""

    def test_nothing_runs_on_an_empty_session(self):
        session = new_session()
        before = session.state

        assert session.generate_elevation() is None
        assert session.compute_drainage() is None
        assert session.generate_precipitation() is None
        assert session.generate_kingdoms() is None
        assert session.coastlines() is None
        assert session.kingdom_borders(0) is None
        assert session.state is before

    def test_drainage_needs_elevation(self):
        session = new_session()
        session.generate_points(100)
        assert session.compute_drainage() is None
        assert session.state.hydrology is None

    @pytest.mark.parametrize("count", [0, -5, settings.max_cells + 1])
    def test_count_out_of_range(self, count):
        with pytest.raises(ValueError):
            new_session().generate_points(count)


class TestStages:
    """Layer publication and invalidation."""

    def test_points_reset_everything(self, full_world):
        session = new_session()
        session.state = full_world.state
        state = session.generate_points(120)

        assert state.n_cells == 120
        assert state.elevations is None
        assert state.hydrology is None
        assert state.cell_kingdom is None
        assert state.seed == "session"

    def test_new_elevation_clears_downstream_layers(self):
        session = new_session()
        session.generate_points(200)
        session.generate_elevation()
        session.compute_drainage()
        session.generate_precipitation()
        session.generate_kingdoms(KingdomOptions(num_kingdoms=2))

        state = session.generate_elevation(HeightmapConfig(seed="other"))

        assert state.has_elevation
        assert state.hydrology is None
        assert state.precipitation is None
        assert state.cell_kingdom is None
        assert state.kingdoms == () and state.cities == () and state.roads == ()

    def test_precipitation_keeps_hydrology(self):
        session = new_session()
        session.generate_points(200)
        session.generate_elevation()
        session.compute_drainage()
        session.generate_kingdoms(KingdomOptions(num_kingdoms=2))

        state = session.generate_precipitation()

        assert state.has_drainage
        assert state.has_precipitation
        assert not state.has_kingdoms

    def test_old_snapshots_are_untouched(self):
        session = new_session()
        points_only = session.generate_points(150)
        session.generate_elevation()

        assert points_only.elevations is None
        assert session.state is not points_only
        with pytest.raises(dataclasses.FrozenInstanceError):
            session.state.elevations = None

    def test_kingdoms_without_drainage(self):
        session = new_session()
        session.generate_points(300)
        session.generate_elevation()
        state = session.generate_kingdoms(KingdomOptions(num_kingdoms=2))

        assert state.has_kingdoms
        assert state.rivers == []
        land = state.terrain == TERRAIN_LAND
        assert np.all(state.cell_kingdom[land] >= 0)


class TestFullWorld:
    """Every stage in order."""

    def test_all_layers_present(self, full_world):
        state = full_world.state
        assert state.has_points and state.has_elevation
        assert state.has_drainage and state.has_precipitation and state.has_kingdoms
        assert len(state.capitals) == len(state.kingdoms)

    def test_deterministic(self, full_world):
        again = new_session()
        again.generate_world(
            count=500,
            hydrology=HydrologyOptions(number_of_rivers=5, min_river_length=3),
            kingdoms=KingdomOptions(num_kingdoms=3, cells_per_kingdom_cap=20),
        )
        a, b = full_world.state, again.state

        np.testing.assert_array_equal(a.elevations, b.elevations)
        np.testing.assert_array_equal(a.precipitation, b.precipitation)
        np.testing.assert_array_equal(a.cell_kingdom, b.cell_kingdom)
        assert [r.cells for r in a.rivers] == [r.cells for r in b.rivers]
        assert [c.cell for c in a.cities] == [c.cell for c in b.cities]
        assert [k.name for k in a.kingdoms] == [k.name for k in b.kingdoms]

    def test_helpers(self, full_world):
        state = full_world.state
        for kingdom in state.kingdoms:
            assert full_world.kingdom(kingdom.id) is kingdom
            assert all(c.kingdom_id == kingdom.id for c in full_world.cities_of(kingdom.id))
            assert all(r.kingdom_id == kingdom.id for r in full_world.roads_of(kingdom.id))
        assert full_world.kingdom(len(state.kingdoms)) is None

    def test_boundaries_are_cached(self, full_world):
        first = full_world.coastlines()
        assert full_world.coastlines() is first
        if full_world.state.kingdoms:
            borders = full_world.kingdom_borders(0)
            assert borders
            assert full_world.kingdom_borders(0) is borders
        assert full_world.kingdom_borders(999) == []


class TestExport:
    """Snapshots of the state."""

    def test_points_only_export(self):
        session = new_session()
        session.generate_points(60)
        export = export_world(session.state)

        assert export.cell_count == 60
        assert len(export.cells) == 60
        assert export.sea_level_threshold is None
        assert all(cell.elevation is None for cell in export.cells)
        assert export.cells[5].id == 5

    def test_export_with_elevation(self, full_world):
        state = full_world.state
        export = export_world(state)

        assert export.elevation.unit == "meters"
        assert export.sea_level_threshold == pytest.approx(state.sea_level)
        for cell in export.cells:
            assert cell.is_land == (cell.elevation >= 0)
            assert cell.is_ocean != cell.is_land
            assert len(cell.polygon) >= 3
        assert export.cells[7].neighbors == list(state.graph.cell_neighbors[7])

    def test_empty_state_export(self):
        export = export_world(new_session().state)
        assert export.cell_count == 0
        assert export.cells == []

    def test_summary_counts(self, full_world):
        state = full_world.state
        summary = summarize_world(state)

        assert summary.seed == "session"
        assert summary.cell_count == 500
        assert summary.land_cells + summary.ocean_cells == 500
        assert summary.rivers == len(state.rivers)
        assert summary.kingdoms == len(state.kingdoms)
        assert summary.cities == len(state.capitals) + len(state.cities)
        assert 0.0 <= summary.mean_precipitation <= 1.0

    def test_summary_of_empty_state(self):
        summary = summarize_world(new_session().state)
        assert summary.cell_count == 0
        assert summary.land_cells is None
        assert summary.kingdoms is None

    def test_export_serializes(self, full_world):
        payload = export_world(full_world.state).model_dump_json()
        assert '"cell_count":500' in payload
