"""
Hydrology system for drainage and river generation.

This module implements, in order:
- Inland sea elimination
- Depression filling (priority flood)
- Drainage directions and flow accumulation
- River source selection and tracing
- Optional lake basin formation
"""

import heapq
import math
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import numpy as np
import structlog

from .constants import ELEVATION, NO_DRAINAGE, NO_LAKE, TERRAIN_LAND, TERRAIN_OCEAN
from .errors import InvariantViolationError
from .heightmap_generator import classify_terrain
from ..utils.random import derive_prng

logger = structlog.get_logger()


@dataclass
class HydrologyOptions:
    """Hydrology calculation options."""
    fill_inland_seas: bool = True
    number_of_rivers: int = 30
    source_fraction: float = 0.15  # sources come from the highest 15% of land
    min_river_length: int = 5  # cells, including the ocean mouth cell
    max_river_length: int = 3000
    fill_epsilon: float = 0.1  # meters added per step of the priority flood
    edge_margin: float = 10.0  # ocean within this distance of the edge is open sea
    inland_fill_range: Tuple[float, float] = (50.0, 150.0)  # meters for filled inland seas
    iteration_factor: int = 4  # loop caps are n_cells * iteration_factor

    # Lakes
    enable_lakes: bool = False
    min_lake_depth: float = 30.0
    max_lake_size: int = 100
    max_lake_rise: float = 200.0
    max_island_cells: int = 2
    max_island_ratio: float = 0.1


@dataclass
class River:
    """Represents a river with its properties."""
    id: int
    cells: List[int]  # source first, ocean cell last when it reaches the sea
    flow: float  # drainage area at the last land cell
    length: float  # map units along the path
    source_cell: int
    mouth_cell: int
    name: str = ""


@dataclass
class Lake:
    """Represents a lake with its properties."""
    id: int
    cells: List[int]
    surface_elevation: float  # spill elevation
    lowest_elevation: float
    depth: float
    outlet_cell: int
    name: str = ""


@dataclass
class HydrologyResult:
    """Output of a full hydrology run."""
    elevations: np.ndarray  # after inland seas were filled
    terrain: np.ndarray
    filled_heights: np.ndarray
    drainage: np.ndarray  # int32, -1 for sinks
    flow_accumulation: np.ndarray
    rivers: List[River] = field(default_factory=list)
    lakes: List[Lake] = field(default_factory=list)
    lake_ids: Optional[np.ndarray] = None


def verify_drainage(drainage: np.ndarray, filled_heights: np.ndarray) -> None:
    """
    Check that drainage pointers strictly descend in filled elevation.

    Strict descent along every pointer rules out cycles.

    Raises:
        InvariantViolationError: On an out-of-range pointer, a self loop or a
            pointer that does not descend
    """
    n_cells = len(drainage)
    sources = np.nonzero(drainage != NO_DRAINAGE)[0]
    if len(sources) == 0:
        return

    targets = drainage[sources]
    if np.any((targets < 0) | (targets >= n_cells)):
        raise InvariantViolationError("Drainage pointer out of range")

    rising = filled_heights[targets] >= filled_heights[sources]
    if np.any(rising):
        bad = int(sources[np.argmax(rising)])
        raise InvariantViolationError(
            f"Drainage from cell {bad} to {int(drainage[bad])} does not descend"
        )


class Hydrology:
    """Handles water flow simulation and river generation."""

    def __init__(self, graph, elevations: np.ndarray, seed=None,
                 options: Optional[HydrologyOptions] = None, name_generator=None):
        """
        Initialize hydrology system.

        Args:
            graph: VoronoiGraph
            elevations: Elevations in meters (copied, never modified in place)
            seed: World seed for the stage PRNG
            options: Hydrology calculation options
            name_generator: Optional NameGenerator used to name rivers and lakes
        """
        self.graph = graph
        self.options = options or HydrologyOptions()
        self.prng = derive_prng(seed, "hydrology")
        self.name_generator = name_generator
        self.n_cells = graph.n_cells

        self.elevations = np.asarray(elevations, dtype=np.float32).copy()
        self.terrain = classify_terrain(self.elevations)

        self.filled_heights = None
        self.drainage = None
        self.flow_accumulation = None
        self.rivers: List[River] = []
        self.lakes: List[Lake] = []
        self.lake_ids = np.full(self.n_cells, NO_LAKE, dtype=np.int32)

    def is_ocean(self, cell: int) -> bool:
        return self.elevations[cell] < ELEVATION["SEA_LEVEL"]

    def fill_inland_seas(self) -> int:
        """
        Convert ocean cells not connected to the map edge into low land.

        Returns:
            Number of cells converted
        """
        graph = self.graph
        margin = self.options.edge_margin
        ocean = self.elevations < ELEVATION["SEA_LEVEL"]
        connected = np.zeros(self.n_cells, dtype=bool)
        queue = deque()

        for i in np.nonzero(ocean)[0]:
            x, y = graph.points[i]
            if (graph.cell_border_flags[i] or x < margin or x > graph.width - margin
                    or y < margin or y > graph.height - margin):
                connected[i] = True
                queue.append(int(i))

        while queue:
            cell = queue.popleft()
            for neighbor in graph.cell_neighbors[cell]:
                if ocean[neighbor] and not connected[neighbor]:
                    connected[neighbor] = True
                    queue.append(neighbor)

        low, high = self.options.inland_fill_range
        inland = np.nonzero(ocean & ~connected)[0]
        for cell in inland:
            self.elevations[cell] = self.prng.uniform(low, high)
            self.terrain[cell] = TERRAIN_LAND

        if len(inland):
            logger.info("Filled inland seas", cells_filled=len(inland))
        return len(inland)

    def fill_depressions(self) -> np.ndarray:
        """
        Priority-flood depression filling.

        Every ocean cell seeds the heap at its true elevation. Each newly
        reached neighbor is raised to at least the popped filled height plus
        epsilon, so filled heights strictly rise away from the sea and no
        land cell is a local minimum. Worlds without ocean are seeded from
        their border cells.

        Returns:
            Filled heights (float64, so epsilon steps survive at any elevation)
        """
        graph = self.graph
        eps = self.options.fill_epsilon
        filled = self.elevations.astype(np.float64)
        queued = np.zeros(self.n_cells, dtype=bool)
        heap = []

        seeds = np.nonzero(self.terrain == TERRAIN_OCEAN)[0]
        if len(seeds) == 0:
            seeds = np.nonzero(graph.cell_border_flags)[0]
        for cell in seeds:
            heap.append((filled[cell], int(cell)))
            queued[cell] = True
        heapq.heapify(heap)

        raised = 0
        max_iterations = self.n_cells * self.options.iteration_factor
        iterations = 0
        while heap:
            iterations += 1
            if iterations > max_iterations:
                logger.warning("Depression filling hit iteration cap", cap=max_iterations)
                break

            current_height, cell = heapq.heappop(heap)
            for neighbor in graph.cell_neighbors[cell]:
                if queued[neighbor]:
                    continue
                queued[neighbor] = True
                if filled[neighbor] <= current_height:
                    filled[neighbor] = current_height + eps
                    raised += 1
                heapq.heappush(heap, (filled[neighbor], neighbor))

        logger.info("Filling depressions", cells_filled=raised)
        self.filled_heights = filled
        return self.filled_heights

    def calculate_drainage(self) -> np.ndarray:
        """
        Point each land cell at its lowest-filled neighbor.

        Ocean cells are sinks. A cell with no strictly lower neighbor is also
        a sink; after priority flooding this only happens on seed cells.

        Returns:
            int32 drainage array, -1 for sinks
        """
        graph = self.graph
        filled = self.filled_heights
        drainage = np.full(self.n_cells, NO_DRAINAGE, dtype=np.int32)

        for cell in range(self.n_cells):
            if self.terrain[cell] == TERRAIN_OCEAN:
                continue
            best = NO_DRAINAGE
            best_height = filled[cell]
            for neighbor in graph.cell_neighbors[cell]:
                if filled[neighbor] < best_height:
                    best_height = filled[neighbor]
                    best = neighbor
            drainage[cell] = best

        self.drainage = drainage
        return drainage

    def accumulate_flow(self) -> np.ndarray:
        """
        Drainage area: number of cells (self included) draining through each cell.

        Cells are processed from highest to lowest filled elevation so every
        upstream contribution arrives before a cell passes its total on.
        """
        flow = np.ones(self.n_cells, dtype=np.float32)
        order = np.argsort(-self.filled_heights, kind="stable")
        for cell in order:
            target = self.drainage[cell]
            if target != NO_DRAINAGE:
                flow[target] += flow[cell]
        self.flow_accumulation = flow
        return flow

    def select_sources(self, count: Optional[int] = None) -> List[int]:
        """
        Pick river sources from the highest land cells with a minimum spacing.

        Args:
            count: Number of sources wanted, defaults to options.number_of_rivers

        Returns:
            Source cell indices
        """
        count = self.options.number_of_rivers if count is None else count
        land = np.nonzero(self.terrain == TERRAIN_LAND)[0]
        if count <= 0 or len(land) == 0:
            return []

        ranked = land[np.argsort(-self.filled_heights[land], kind="stable")]
        upper = [int(c) for c in ranked[: int(len(ranked) * self.options.source_fraction)]]
        if not upper:
            return []
        self.prng.shuffle(upper)

        min_dist_sq = (self.graph.width / math.sqrt(count * 6)) ** 2
        points = self.graph.points
        sources = []
        for cell in upper:
            if len(sources) >= count:
                break
            x, y = points[cell]
            too_close = any(
                (x - points[s, 0]) ** 2 + (y - points[s, 1]) ** 2 < min_dist_sq
                for s in sources
            )
            if not too_close:
                sources.append(cell)

        logger.info("Selected river sources", selected=len(sources), requested=count)
        return sources

    def trace_river(self, source: int) -> List[int]:
        """
        Follow the lowest unvisited filled neighbor until the sea.

        The path ends with the first ocean cell it reaches, or where no
        unvisited neighbor remains. A source that is already ocean yields a
        single-cell path.

        Args:
            source: Starting cell

        Returns:
            Ordered list of cells
        """
        path = []
        visited: Set[int] = set()
        current = source
        filled = self.filled_heights

        while len(path) < self.options.max_river_length:
            path.append(current)
            if self.is_ocean(current):
                break
            visited.add(current)

            best = -1
            best_height = math.inf
            for neighbor in self.graph.cell_neighbors[current]:
                if neighbor in visited:
                    continue
                if filled[neighbor] < best_height:
                    best_height = filled[neighbor]
                    best = neighbor

            if best < 0:
                break
            current = best

        return path

    def _river_length(self, cells: List[int]) -> float:
        if len(cells) < 2:
            return 0.0
        pts = self.graph.points[cells]
        return float(np.hypot(*np.diff(pts, axis=0).T).sum())

    def generate_rivers(self) -> List[River]:
        """Trace rivers from the selected sources, dropping short ones."""
        rivers = []
        for source in self.select_sources():
            cells = self.trace_river(source)
            if len(cells) < self.options.min_river_length:
                continue

            last_land = next((c for c in reversed(cells) if not self.is_ocean(c)), cells[0])
            rivers.append(River(
                id=len(rivers),
                cells=cells,
                flow=float(self.flow_accumulation[last_land]),
                length=self._river_length(cells),
                source_cell=cells[0],
                mouth_cell=cells[-1],
            ))

        if self.name_generator is not None and rivers:
            for river, name in zip(rivers, self.name_generator.generate_names(len(rivers), "river")):
                river.name = name

        self.rivers = rivers
        logger.info("Rivers generated", rivers=len(rivers))
        return rivers

    def _local_minima(self) -> List[int]:
        minima = []
        for cell in np.nonzero(self.terrain == TERRAIN_LAND)[0]:
            h = self.elevations[cell]
            neighbors = self.graph.cell_neighbors[cell]
            if neighbors and all(self.elevations[n] >= h for n in neighbors):
                minima.append(int(cell))
        minima.sort(key=lambda c: (self.elevations[c], c))
        return minima

    def create_lake(self, start: int, processed: Set[int]) -> Optional[Lake]:
        """
        Grow a basin from a depression by absorbing its lowest rim cell.

        Args:
            start: Local depression cell
            processed: Cells already claimed by earlier basins; updated

        Returns:
            Lake on success, None when the basin touches the sea, is too
            shallow, holds too many islands or has no valid outlet
        """
        graph = self.graph
        opts = self.options
        heights = self.elevations
        start_elevation = float(heights[start])

        basin = {start}
        rim = {}
        heap = []
        for neighbor in graph.cell_neighbors[start]:
            if self.is_ocean(neighbor):
                processed.add(start)
                return None
            rim[neighbor] = float(heights[neighbor])
            heapq.heappush(heap, (rim[neighbor], neighbor))

        while heap and len(basin) < opts.max_lake_size:
            rim_height, rim_cell = heapq.heappop(heap)
            if rim_cell in basin:
                continue
            if rim_height > start_elevation + opts.max_lake_rise:
                heapq.heappush(heap, (rim_height, rim_cell))
                break

            del rim[rim_cell]
            basin.add(rim_cell)
            for neighbor in graph.cell_neighbors[rim_cell]:
                if neighbor in basin or neighbor in rim:
                    continue
                if self.is_ocean(neighbor):
                    processed.update(basin)
                    return None
                rim[neighbor] = float(heights[neighbor])
                heapq.heappush(heap, (rim[neighbor], neighbor))

        processed.update(basin)
        if not rim:
            return None

        spill_cell = min(rim, key=lambda c: (rim[c], c))
        spill_elevation = rim[spill_cell]
        lowest = float(min(heights[c] for c in basin))
        depth = spill_elevation - lowest
        if depth < opts.min_lake_depth:
            return None

        lake_cells = sorted((c for c in basin if heights[c] < spill_elevation),
                            key=lambda c: (heights[c], c))[: opts.max_lake_size]
        if not lake_cells:
            return None
        lake_set = set(lake_cells)

        for cell in lake_cells:
            if any(self.is_ocean(n) for n in graph.cell_neighbors[cell]):
                return None

        islands = set()
        for cell in lake_cells:
            for neighbor in graph.cell_neighbors[cell]:
                if neighbor in lake_set or neighbor in islands:
                    continue
                if all(nn in lake_set or self.is_ocean(nn) for nn in graph.cell_neighbors[neighbor]):
                    islands.add(neighbor)
        if len(islands) > opts.max_island_cells or (
                islands and len(islands) / len(lake_cells) > opts.max_island_ratio):
            return None

        # The outlet must drain strictly downhill away from the lake
        filled = self.filled_heights
        outflow = -1
        outflow_height = filled[spill_cell]
        for neighbor in graph.cell_neighbors[spill_cell]:
            if neighbor in lake_set:
                continue
            if filled[neighbor] < outflow_height:
                outflow_height = filled[neighbor]
                outflow = neighbor
        if outflow < 0:
            return None

        lake_id = len(self.lakes)
        for cell in lake_cells:
            self.drainage[cell] = NO_DRAINAGE
            self.lake_ids[cell] = lake_id
        self.drainage[spill_cell] = outflow

        lake = Lake(id=lake_id, cells=lake_cells, surface_elevation=spill_elevation,
                    lowest_elevation=lowest, depth=depth, outlet_cell=spill_cell)
        self.lakes.append(lake)
        return lake

    def generate_lakes(self) -> List[Lake]:
        """Attempt a lake at every land depression, lowest first."""
        processed: Set[int] = set()
        for cell in self._local_minima():
            if cell in processed or self.lake_ids[cell] != NO_LAKE:
                continue
            self.create_lake(cell, processed)

        if self.name_generator is not None and self.lakes:
            for lake, name in zip(self.lakes, self.name_generator.generate_names(len(self.lakes), "lake")):
                lake.name = name

        logger.info("Lakes generated", lakes=len(self.lakes))
        return self.lakes

    def run(self) -> HydrologyResult:
        """
        Run the full hydrology pipeline.

        Returns:
            HydrologyResult with every computed layer
        """
        logger.info("Starting hydrology", cells=self.n_cells,
                    lakes_enabled=self.options.enable_lakes)

        if self.options.fill_inland_seas:
            self.fill_inland_seas()
        self.fill_depressions()
        self.calculate_drainage()
        self.accumulate_flow()
        self.generate_rivers()
        if self.options.enable_lakes and self.generate_lakes():
            self.accumulate_flow()

        verify_drainage(self.drainage, self.filled_heights)

        return HydrologyResult(
            elevations=self.elevations,
            terrain=self.terrain,
            filled_heights=self.filled_heights,
            drainage=self.drainage,
            flow_accumulation=self.flow_accumulation,
            rivers=self.rivers,
            lakes=self.lakes,
            lake_ids=self.lake_ids,
        )
