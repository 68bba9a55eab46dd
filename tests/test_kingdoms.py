"""Tests for the political partition."""

from collections import deque
from types import SimpleNamespace

import numpy as np
import pytest

from py_mapgen.core.constants import NO_KINGDOM, TERRAIN_LAND, TERRAIN_OCEAN
from py_mapgen.core.errors import InvariantViolationError
from py_mapgen.core.features import find_landmasses
import py_mapgen.core.kingdoms as kingdoms_module
from py_mapgen.core.kingdoms import Kingdom, KingdomGenerator, KingdomOptions, verify_partition
from py_mapgen.core.name_generator import NameGenerator


def is_connected(graph, cells):
    cells = set(cells)
    start = next(iter(cells))
    seen = {start}
    queue = deque([start])
    while queue:
        cell = queue.popleft()
        for neighbor in graph.cell_neighbors[cell]:
            if neighbor in cells and neighbor not in seen:
                seen.add(neighbor)
                queue.append(neighbor)
    return seen == cells


@pytest.fixture(scope="module")
def partition(island):
    graph, elevations, terrain = island
    options = KingdomOptions(num_kingdoms=4, cells_per_kingdom_cap=20)
    generator = KingdomGenerator(graph, elevations, terrain, options=options,
                                 name_generator=NameGenerator("realms"))
    cell_kingdom, kingdoms = generator.generate()
    return generator, cell_kingdom, kingdoms


class TestLandmasses:
    """Connected land components."""

    def test_single_island(self, island):
        graph, _, terrain = island
        landmasses, ids = find_landmasses(graph, terrain)

        assert len(landmasses) == 1
        assert landmasses[0].size == int((terrain == TERRAIN_LAND).sum())
        assert np.all(ids[terrain == TERRAIN_OCEAN] == -1)

    def test_sorted_largest_first(self, island):
        graph, elevations, _ = island
        elevations = elevations.copy()
        corner = graph.find_cell(15.0, 15.0)
        elevations[corner] = 100.0
        terrain = np.where(elevations >= 0, TERRAIN_LAND, TERRAIN_OCEAN)

        landmasses, ids = find_landmasses(graph, terrain)

        assert [lm.size for lm in landmasses] == sorted((lm.size for lm in landmasses), reverse=True)
        assert ids[corner] == landmasses[-1].id


class TestPartition:
    """Flood fill, coverage and cleanup."""

    def test_kingdom_count(self, partition):
        _, _, kingdoms = partition
        assert len(kingdoms) == 4
        assert [k.id for k in kingdoms] == list(range(4))

    def test_covers_all_land_and_no_ocean(self, island, partition):
        _, _, terrain = island
        _, cell_kingdom, kingdoms = partition

        assert np.all(cell_kingdom[terrain == TERRAIN_LAND] != NO_KINGDOM)
        assert np.all(cell_kingdom[terrain == TERRAIN_OCEAN] == NO_KINGDOM)
        verify_partition(cell_kingdom, terrain, kingdoms)

    def test_seeds_keep_their_kingdom(self, partition):
        _, cell_kingdom, kingdoms = partition
        for kingdom in kingdoms:
            assert cell_kingdom[kingdom.seed_cell] == kingdom.id

    def test_kingdoms_are_contiguous(self, island, partition):
        graph, _, _ = island
        _, _, kingdoms = partition
        for kingdom in kingdoms:
            assert is_connected(graph, kingdom.cells)

    def test_adjacent_kingdoms_differ_in_color(self, partition):
        generator, _, kingdoms = partition
        adjacency = generator.kingdom_adjacency()
        by_id = {k.id: k for k in kingdoms}
        for kingdom_id, neighbors in adjacency.items():
            for other in neighbors:
                assert by_id[kingdom_id].color_index != by_id[other].color_index

    def test_kingdoms_are_named(self, partition):
        _, _, kingdoms = partition
        names = [k.name for k in kingdoms]
        assert all(names)
        assert len(set(names)) == len(names)

    def test_deterministic(self, island, partition):
        graph, elevations, terrain = island
        _, cell_kingdom, _ = partition
        options = KingdomOptions(num_kingdoms=4, cells_per_kingdom_cap=20)
        again, _ = KingdomGenerator(graph, elevations, terrain, options=options).generate()
        np.testing.assert_array_equal(cell_kingdom, again)


class TestColoring:
    """Greedy palette assignment on hand-built adjacency."""

    PALETTE = ["red", "green", "blue", "gold"]

    @pytest.fixture
    def color(self, island, monkeypatch):
        graph, elevations, terrain = island
        monkeypatch.setattr(kingdoms_module, "POLITICAL_COLORS", self.PALETTE)

        def run(adjacency):
            generator = KingdomGenerator(graph, elevations, terrain)
            generator.kingdoms = [Kingdom(id=k, seed_cell=0, capital_cell=0, landmass_id=0)
                                  for k in sorted(adjacency)]
            monkeypatch.setattr(generator, "kingdom_adjacency", lambda: adjacency)
            generator.assign_colors()
            return [k.color_index for k in generator.kingdoms], generator.kingdoms

        return run

    def test_neighbors_skip_palette_neighbors(self, color):
        indices, kingdoms = color({0: {1}, 1: {0}})
        assert indices == [0, 2]
        assert [k.color for k in kingdoms] == ["red", "blue"]

    def test_falls_back_to_distinct_colors(self, color):
        triangle = {0: {1, 2}, 1: {0, 2}, 2: {0, 1}}
        indices, _ = color(triangle)
        assert indices == [0, 2, 1]

    def test_exhausted_palette_wraps_by_id(self, color):
        clique = {k: {n for n in range(5) if n != k} for k in range(5)}
        indices, _ = color(clique)
        assert indices[:4] == [0, 2, 1, 3]
        assert indices[4] == 4 % len(self.PALETTE)


class TestAllocation:
    """Kingdom count per landmass."""

    def test_cap_limits_small_kingdoms(self, island):
        graph, elevations, terrain = island
        options = KingdomOptions(num_kingdoms=50, cells_per_kingdom_cap=100)
        generator = KingdomGenerator(graph, elevations, terrain, options=options)
        generator.landmasses, generator.landmass_ids = find_landmasses(graph, terrain)

        assert generator.allocate_kingdoms() == {0: 1}

    def test_share_of_target(self, island):
        graph, elevations, terrain = island
        options = KingdomOptions(num_kingdoms=3, cells_per_kingdom_cap=10)
        generator = KingdomGenerator(graph, elevations, terrain, options=options)
        generator.landmasses, generator.landmass_ids = find_landmasses(graph, terrain)

        assert generator.allocate_kingdoms() == {0: 3}


class TestEdgeCases:
    """Islands, tiny worlds and empty worlds."""

    def test_small_island_is_annexed(self, island):
        graph, elevations, _ = island
        elevations = elevations.copy()
        islet = graph.find_cell(15.0, 15.0)
        elevations[islet] = 100.0
        terrain = np.where(elevations >= 0, TERRAIN_LAND, TERRAIN_OCEAN).astype(np.uint8)

        options = KingdomOptions(num_kingdoms=3, cells_per_kingdom_cap=20)
        cell_kingdom, kingdoms = KingdomGenerator(graph, elevations, terrain,
                                                  options=options).generate()

        assert len(kingdoms) == 3
        assert cell_kingdom[islet] != NO_KINGDOM
        assert all(k.landmass_id == 0 for k in kingdoms)

    def test_single_land_cell_world(self, small_graph):
        elevations = np.full(small_graph.n_cells, -500.0, dtype=np.float32)
        lonely = small_graph.find_cell(100.0, 100.0)
        elevations[lonely] = 50.0
        terrain = np.where(elevations >= 0, TERRAIN_LAND, TERRAIN_OCEAN).astype(np.uint8)

        cell_kingdom, kingdoms = KingdomGenerator(small_graph, elevations, terrain).generate()

        assert len(kingdoms) == 1
        assert kingdoms[0].cells == [lonely]
        assert cell_kingdom[lonely] == 0

    def test_all_ocean_world(self, small_graph):
        elevations = np.full(small_graph.n_cells, -500.0, dtype=np.float32)
        terrain = np.zeros(small_graph.n_cells, dtype=np.uint8)

        cell_kingdom, kingdoms = KingdomGenerator(small_graph, elevations, terrain).generate()

        assert kingdoms == []
        assert np.all(cell_kingdom == NO_KINGDOM)


class TestBorderCosts:
    """Crossing costs between land cells."""

    def test_river_edges_cost_more(self, small_graph):
        elevations = np.full(small_graph.n_cells, 50.0, dtype=np.float32)
        terrain = np.ones(small_graph.n_cells, dtype=np.uint8)
        a = 0
        b = small_graph.cell_neighbors[0][0]
        river = SimpleNamespace(cells=[a, b])

        generator = KingdomGenerator(small_graph, elevations, terrain, rivers=[river])
        generator.border_costs = generator.calculate_border_costs()

        assert generator.edge_cost(a, b) == pytest.approx(10.0)
        assert generator.edge_cost(b, a) == pytest.approx(10.0)
        other = next(n for n in small_graph.cell_neighbors[a] if n != b)
        assert generator.edge_cost(a, other) == pytest.approx(1.0)

    def test_steep_and_high_edges_cost_more(self, small_graph):
        elevations = np.full(small_graph.n_cells, 50.0, dtype=np.float32)
        terrain = np.ones(small_graph.n_cells, dtype=np.uint8)
        b = small_graph.cell_neighbors[0][0]
        elevations[0] = 1050.0

        generator = KingdomGenerator(small_graph, elevations, terrain)
        generator.border_costs = generator.calculate_border_costs()

        assert generator.edge_cost(0, b) == pytest.approx(3.0 + 1000.0 * 0.01)


class TestVerifyPartition:
    """Invariant check on the partition."""

    def test_unclaimed_land_raises(self, island, partition):
        _, _, terrain = island
        _, cell_kingdom, kingdoms = partition
        broken = cell_kingdom.copy()
        land_cell = int(np.nonzero(terrain == TERRAIN_LAND)[0][0])
        broken[land_cell] = NO_KINGDOM

        with pytest.raises(InvariantViolationError):
            verify_partition(broken, terrain, kingdoms)

    def test_claimed_ocean_raises(self, island, partition):
        _, _, terrain = island
        _, cell_kingdom, kingdoms = partition
        broken = cell_kingdom.copy()
        broken[int(np.nonzero(terrain == TERRAIN_OCEAN)[0][0])] = 0

        with pytest.raises(InvariantViolationError):
            verify_partition(broken, terrain, kingdoms)
