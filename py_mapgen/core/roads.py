"""
Road network planning.

Roads are A* paths over the cell graph. Step costs favor flat ground, river
valleys and cells that already carry a road, so routes converge into trunks.
Water is impassable and rivers are crossed only at a premium.
"""

import heapq
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

import numpy as np
import structlog
from pydantic import BaseModel, ConfigDict, Field

from .constants import TERRAIN_LAND

logger = structlog.get_logger()


@dataclass
class RoadOptions:
    """Road planning options."""
    road_reuse_factor: float = 0.3
    near_river_factor: float = 0.7
    river_crossing_factor: float = 5.0
    elevation_penalty: float = 2.0  # extra cost per elevation_step of climb
    elevation_step: float = 500.0
    # (exclusive lower bound in meters, multiplier) checked top down
    mountain_multipliers: Tuple[Tuple[float, float], ...] = (
        (2500.0, 3.0),
        (2000.0, 2.0),
        (1500.0, 1.5),
    )
    max_iterations_per_cell: int = 4
    cross_link_distance: float = 120.0
    density: int = 5  # 0-10, cross-links start at 6


class RoadType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"


class Road(BaseModel):
    """A road between two settlements."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: int = Field(description="Road identifier")
    cells: List[int] = Field(description="Cell path, from_cell first")
    kingdom_id: int = Field(description="Kingdom that built the road")
    from_cell: int = Field(description="Settlement cell the road starts at")
    to_cell: int = Field(description="Settlement cell the road ends at")
    type: RoadType = Field(default=RoadType.MINOR, description="Road class")


class RoadPlanner:
    """Connects each kingdom's settlements with roads."""

    def __init__(self, graph, elevations: np.ndarray, terrain: np.ndarray, rivers=None,
                 options: Optional[RoadOptions] = None):
        """
        Initialize the planner.

        Args:
            graph: VoronoiGraph
            elevations: Elevations in meters
            terrain: Terrain classes (1 = land)
            rivers: Traced rivers
            options: RoadOptions
        """
        self.graph = graph
        self.elevations = np.asarray(elevations, dtype=np.float32)
        self.terrain = np.asarray(terrain)
        self.options = options or RoadOptions()

        self.river_cells: Set[int] = set()
        for river in rivers or []:
            self.river_cells.update(c for c in river.cells if self.terrain[c] == TERRAIN_LAND)
        self.near_river_cells: Set[int] = set()
        for cell in self.river_cells:
            for neighbor in graph.cell_neighbors[cell]:
                if neighbor not in self.river_cells and self.terrain[neighbor] == TERRAIN_LAND:
                    self.near_river_cells.add(neighbor)

        self.road_cells: Set[int] = set()
        self.roads: List[Road] = []

    def _point_distance(self, a: int, b: int) -> float:
        ax, ay = self.graph.points[a]
        bx, by = self.graph.points[b]
        return math.hypot(float(ax - bx), float(ay - by))

    def step_cost(self, from_cell: int, to_cell: int) -> float:
        """Cost of moving between adjacent cells; infinite into water."""
        if self.terrain[to_cell] != TERRAIN_LAND:
            return math.inf

        opts = self.options
        to_height = float(self.elevations[to_cell])
        climb = abs(to_height - float(self.elevations[from_cell]))
        cost = self._point_distance(from_cell, to_cell)
        cost *= 1.0 + climb / opts.elevation_step * opts.elevation_penalty

        for lower, multiplier in opts.mountain_multipliers:
            if to_height > lower:
                cost *= multiplier
                break

        if to_cell in self.near_river_cells:
            cost *= opts.near_river_factor
        if to_cell in self.road_cells:
            cost *= opts.road_reuse_factor
        if to_cell in self.river_cells:
            cost *= opts.river_crossing_factor
        return cost

    def find_path(self, start: int, goal: int) -> Optional[List[int]]:
        """
        A* search between two cells.

        Args:
            start: Origin cell
            goal: Destination cell

        Returns:
            Cell path from start to goal inclusive, or None when no land route
            exists within the iteration cap
        """
        if start == goal:
            return [start]

        gx, gy = self.graph.points[goal]
        # Cheapest possible step per unit distance keeps the estimate admissible
        scale = (min(1.0, self.options.road_reuse_factor)
                 * min(1.0, self.options.near_river_factor))

        def heuristic(cell: int) -> float:
            x, y = self.graph.points[cell]
            return scale * math.hypot(float(x - gx), float(y - gy))

        g_score: Dict[int, float] = {start: 0.0}
        came_from: Dict[int, int] = {}
        closed = np.zeros(self.graph.n_cells, dtype=bool)
        heap = [(heuristic(start), start)]

        max_iterations = self.graph.n_cells * self.options.max_iterations_per_cell
        iterations = 0
        while heap and iterations < max_iterations:
            iterations += 1
            _, current = heapq.heappop(heap)
            if closed[current]:
                continue
            if current == goal:
                path = [current]
                while current in came_from:
                    current = came_from[current]
                    path.append(current)
                path.reverse()
                return path
            closed[current] = True

            for neighbor in self.graph.cell_neighbors[current]:
                if closed[neighbor]:
                    continue
                cost = self.step_cost(current, neighbor)
                if cost == math.inf:
                    continue
                tentative = g_score[current] + cost
                if tentative < g_score.get(neighbor, math.inf):
                    g_score[neighbor] = tentative
                    came_from[neighbor] = current
                    heapq.heappush(heap, (tentative + heuristic(neighbor), neighbor))

        return None

    def _add_road(self, path: List[int], kingdom_id: int, road_type: RoadType) -> Road:
        road = Road(id=len(self.roads), cells=path, kingdom_id=kingdom_id,
                    from_cell=path[0], to_cell=path[-1], type=road_type)
        self.roads.append(road)
        self.road_cells.update(path)
        return road

    def connect_kingdom(self, kingdom_id: int, capital_cell: int,
                        city_cells: Iterable[int]) -> List[Road]:
        """
        Build a road tree from a capital out to its cities.

        Cities are joined nearest-to-capital first. Each one links to the
        closest settlement already on the network; if that fails the capital
        is tried, then every other connected settlement by distance.

        Returns:
            Roads added for this kingdom
        """
        ordered = sorted(city_cells, key=lambda c: (self._point_distance(c, capital_cell), c))
        connected = [capital_cell]
        added = []

        for i, city in enumerate(ordered):
            by_distance = sorted(connected, key=lambda c: (self._point_distance(c, city), c))
            targets = [by_distance[0]]
            if capital_cell not in targets:
                targets.append(capital_cell)
            targets.extend(c for c in by_distance[1:] if c not in targets)

            for target in targets:
                path = self.find_path(target, city)
                if path is None or len(path) < 2:
                    continue
                major = target == capital_cell or i < 2
                added.append(self._add_road(path, kingdom_id,
                                            RoadType.MAJOR if major else RoadType.MINOR))
                connected.append(city)
                break
            else:
                logger.debug("City left unconnected", kingdom=kingdom_id, cell=city)

        return added

    def add_cross_links(self, kingdom_id: int, settlement_cells: List[int]) -> List[Road]:
        """Extra minor roads between close settlements on dense maps."""
        opts = self.options
        budget = opts.density - 5
        if budget <= 0:
            return []

        linked = {
            frozenset((road.from_cell, road.to_cell))
            for road in self.roads if road.kingdom_id == kingdom_id
        }
        pairs = []
        for i, a in enumerate(settlement_cells):
            for b in settlement_cells[i + 1:]:
                dist = self._point_distance(a, b)
                if dist <= opts.cross_link_distance and frozenset((a, b)) not in linked:
                    pairs.append((dist, a, b))
        pairs.sort()

        added = []
        for _, a, b in pairs:
            if len(added) >= budget:
                break
            path = self.find_path(a, b)
            if path is not None and len(path) >= 2:
                added.append(self._add_road(path, kingdom_id, RoadType.MINOR))
        return added

    def generate(self, capitals, cities) -> List[Road]:
        """
        Plan roads for every kingdom.

        Args:
            capitals: Capital City models, one per kingdom
            cities: Non-capital City models

        Returns:
            All roads, in construction order
        """
        self.roads = []
        self.road_cells = set()
        logger.info("Planning roads", kingdoms=len(capitals), cities=len(cities))

        for capital in capitals:
            members = [c.cell for c in cities if c.kingdom_id == capital.kingdom_id]
            if not members:
                continue
            self.connect_kingdom(capital.kingdom_id, capital.cell, members)
            self.add_cross_links(capital.kingdom_id, [capital.cell] + members)

        major = sum(1 for r in self.roads if r.type == RoadType.MAJOR)
        logger.info("Roads planned", roads=len(self.roads), major=major)
        return self.roads
