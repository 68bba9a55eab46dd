"""
Political partition of land into kingdoms.

Process:
1. find_landmasses() - Connected land components
2. allocate_kingdoms() - Kingdom count per landmass by land share
3. calculate_border_costs() - Edge crossing costs (rivers and ridges are expensive)
4. select_seeds() / flood_fill() - Capital seeds and multi-source Dijkstra growth
5. annex_small_landmasses() - Islands join the nearest mainland kingdom
6. ensure_coverage() - Leftover land by neighbor majority or nearest claim
7. smooth_borders() - Majority smoothing with seeds as fixed points
8. remove_exclaves() - Disconnected fragments join a neighbor
9. assign_colors() - Greedy coloring of the kingdom adjacency graph
"""

import heapq
import math
from collections import Counter, deque
from typing import Dict, List, Optional, Set, Tuple

import numpy as np
import structlog
from pydantic import BaseModel, ConfigDict, Field
from sklearn.neighbors import KDTree

from .constants import NO_KINGDOM, POLITICAL_COLORS, TERRAIN_LAND
from .errors import InvariantViolationError
from .features import Landmass, find_landmasses
from .name_generator import NameCategory, NameGenerator

logger = structlog.get_logger()

# (lower bound in meters, score); first matching band wins
SEED_ELEVATION_BANDS = [
    (2500.0, -20.0),
    (1500.0, 0.0),
    (100.0, 20.0),
    (0.0, 10.0),
]


class KingdomOptions(BaseModel):
    """Political partition parameters."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    num_kingdoms: int = Field(default=12, ge=1, description="Target number of kingdoms")
    min_landmass_fraction: float = Field(
        default=0.01, ge=0.0, le=1.0,
        description="Share of total land a landmass needs to host kingdoms",
    )
    min_landmass_cells: int = Field(
        default=10, ge=1, description="Absolute cell floor for hosting kingdoms"
    )
    cells_per_kingdom_cap: int = Field(
        default=100, ge=1, description="At most one kingdom per this many cells"
    )
    smoothing_iterations: int = Field(default=3, ge=0, description="Border smoothing passes")
    smoothing_majority: float = Field(
        default=2.0 / 3.0, gt=0.0, le=1.0,
        description="Neighbor share needed to flip a cell",
    )
    exclave_passes: int = Field(default=10, ge=1, description="Cap on exclave removal passes")
    river_border_cost: float = Field(default=10.0, description="Cost of crossing a river")
    elevation_diff_threshold: float = Field(
        default=100.0, description="Height step in meters that starts costing extra"
    )
    mountain_elevation: float = Field(
        default=800.0, description="Mean edge elevation treated as mountains"
    )
    seed_attempts: int = Field(default=3, ge=1, description="Capital spacing retries")


class Kingdom(BaseModel):
    """Data structure for a kingdom."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: int = Field(description="Kingdom identifier, index into the kingdom list")
    name: str = Field(default="", description="Kingdom name")
    seed_cell: int = Field(description="Flood fill origin, fixed during smoothing")
    capital_cell: int = Field(description="Cell of the capital city")
    landmass_id: int = Field(description="Landmass the seed lies on")
    cells: List[int] = Field(default_factory=list, description="Member cells, ascending")
    centroid: Tuple[float, float] = Field(default=(0.0, 0.0), description="Mean member position")
    color_index: int = Field(default=0, description="Index into POLITICAL_COLORS")
    color: str = Field(default=POLITICAL_COLORS[0], description="Display color")
    population: int = Field(default=0, description="Total population, set by settlement siting")

    @property
    def size(self) -> int:
        return len(self.cells)


def verify_partition(cell_kingdom: np.ndarray, terrain: np.ndarray,
                     kingdoms: List[Kingdom]) -> None:
    """
    Check that kingdoms partition the land exactly.

    Raises:
        InvariantViolationError: If a land cell is unclaimed, an ocean cell is
            claimed, or member lists overlap or disagree with ``cell_kingdom``
    """
    land = terrain == TERRAIN_LAND
    unclaimed = np.nonzero(land & (cell_kingdom == NO_KINGDOM))[0]
    if len(unclaimed):
        raise InvariantViolationError(f"{len(unclaimed)} land cells have no kingdom")
    if np.any(~land & (cell_kingdom != NO_KINGDOM)):
        raise InvariantViolationError("Ocean cell assigned to a kingdom")

    seen = np.zeros(len(cell_kingdom), dtype=bool)
    for kingdom in kingdoms:
        members = np.asarray(kingdom.cells, dtype=np.int64)
        if np.any(seen[members]):
            raise InvariantViolationError(f"Kingdom {kingdom.id} shares cells with another")
        if np.any(cell_kingdom[members] != kingdom.id):
            raise InvariantViolationError(f"Kingdom {kingdom.id} member list is stale")
        seen[members] = True

    if not np.array_equal(seen, land):
        raise InvariantViolationError("Kingdom members do not cover the land exactly")


class KingdomGenerator:
    """Partitions land cells into kingdoms."""

    def __init__(
        self,
        graph,
        elevations: np.ndarray,
        terrain: np.ndarray,
        rivers=None,
        options: Optional[KingdomOptions] = None,
        name_generator: Optional[NameGenerator] = None,
    ) -> None:
        """
        Initialize the partitioner.

        Args:
            graph: VoronoiGraph
            elevations: Elevations in meters
            terrain: Terrain classes (1 = land)
            rivers: Traced rivers; their edges become expensive borders
            options: KingdomOptions
            name_generator: Source of kingdom names
        """
        self.graph = graph
        self.elevations = np.asarray(elevations, dtype=np.float32)
        self.terrain = np.asarray(terrain)
        self.rivers = rivers or []
        self.options = options or KingdomOptions()
        self.name_generator = name_generator

        self.cell_kingdom = np.full(graph.n_cells, NO_KINGDOM, dtype=np.int32)
        self.landmasses: List[Landmass] = []
        self.landmass_ids = np.full(graph.n_cells, -1, dtype=np.int32)
        self.seeds: List[int] = []
        self.border_costs: Dict[Tuple[int, int], float] = {}
        self.kingdoms: List[Kingdom] = []

    def generate(self) -> Tuple[np.ndarray, List[Kingdom]]:
        """
        Run the full partition.

        Returns:
            Tuple of (per-cell kingdom id array, kingdom list)
        """
        self.landmasses, self.landmass_ids = find_landmasses(self.graph, self.terrain)
        land_total = sum(lm.size for lm in self.landmasses)
        logger.info("Generating kingdoms", landmasses=len(self.landmasses),
                    land_cells=land_total, target=self.options.num_kingdoms)
        if land_total == 0:
            self.kingdoms = []
            return self.cell_kingdom, self.kingdoms

        self.border_costs = self.calculate_border_costs()

        allocation = self.allocate_kingdoms()
        if not allocation:
            # Nothing is large enough; the largest landmass hosts one kingdom
            allocation = {self.landmasses[0].id: 1}

        for landmass_id, count in allocation.items():
            landmass = self.landmasses[landmass_id]
            first = len(self.seeds)
            self.seeds.extend(self.select_seeds(landmass, count))
            self.flood_fill(landmass, range(first, len(self.seeds)))

        self.annex_small_landmasses()
        self.ensure_coverage()
        self.smooth_borders()
        self.remove_exclaves()
        self.ensure_coverage()

        self.kingdoms = self.build_kingdoms()
        self.assign_colors()
        verify_partition(self.cell_kingdom, self.terrain, self.kingdoms)

        logger.info("Kingdoms generated", kingdoms=len(self.kingdoms))
        return self.cell_kingdom, self.kingdoms

    def allocate_kingdoms(self) -> Dict[int, int]:
        """Kingdom count per significant landmass, keyed by landmass id."""
        opts = self.options
        land_total = sum(lm.size for lm in self.landmasses)
        threshold = max(opts.min_landmass_cells, land_total * opts.min_landmass_fraction)

        allocation = {}
        for landmass in self.landmasses:
            if landmass.size < threshold:
                continue
            share = landmass.size / land_total
            count = min(round(share * opts.num_kingdoms), landmass.size // opts.cells_per_kingdom_cap)
            allocation[landmass.id] = max(1, count)
        return allocation

    def calculate_border_costs(self) -> Dict[Tuple[int, int], float]:
        """
        Crossing cost for every edge between adjacent land cells.

        Keys are ``(low, high)`` cell pairs.
        """
        opts = self.options
        river_edges: Set[Tuple[int, int]] = set()
        for river in self.rivers:
            for a, b in zip(river.cells[:-1], river.cells[1:]):
                river_edges.add((min(a, b), max(a, b)))

        costs = {}
        for cell in np.nonzero(self.terrain == TERRAIN_LAND)[0]:
            cell = int(cell)
            for neighbor in self.graph.cell_neighbors[cell]:
                if neighbor <= cell or self.terrain[neighbor] != TERRAIN_LAND:
                    continue
                edge = (cell, neighbor)
                cost = opts.river_border_cost if edge in river_edges else 1.0

                h1 = float(self.elevations[cell])
                h2 = float(self.elevations[neighbor])
                diff = abs(h1 - h2)
                if diff > opts.elevation_diff_threshold:
                    cost = max(cost, 3.0 + diff * 0.01)
                if (h1 + h2) / 2 > opts.mountain_elevation:
                    cost = max(cost, 2.0)
                costs[edge] = cost
        return costs

    def edge_cost(self, a: int, b: int) -> float:
        return self.border_costs.get((min(a, b), max(a, b)), 1.0)

    def _seed_score(self, landmass: Landmass) -> np.ndarray:
        cells = np.asarray(landmass.cells)
        positions = self.graph.points[cells]
        center = positions.mean(axis=0)
        dist = np.hypot(positions[:, 0] - center[0], positions[:, 1] - center[1])
        max_dist = float(dist.max()) or 1.0
        scores = 40.0 * (1.0 - dist / max_dist)

        for i, cell in enumerate(cells):
            elevation = float(self.elevations[cell])
            for lower, band_score in SEED_ELEVATION_BANDS:
                if elevation >= lower:
                    scores[i] += band_score
                    break
            neighbors = self.graph.cell_neighbors[cell]
            if neighbors:
                land = sum(1 for n in neighbors if self.terrain[n] == TERRAIN_LAND)
                scores[i] += 20.0 * land / len(neighbors)
        return scores

    def select_seeds(self, landmass: Landmass, count: int) -> List[int]:
        """
        Pick capital seed cells on one landmass.

        Cells are taken greedily by suitability while keeping a minimum
        separation. The separation shrinks on each retry; any seeds still
        missing after the last retry are filled in by score alone.

        Args:
            landmass: Landmass to seed
            count: Number of seeds wanted

        Returns:
            Seed cells, at most ``landmass.size`` of them
        """
        count = min(count, landmass.size)
        cells = np.asarray(landmass.cells)
        scores = self._seed_score(landmass)
        ranked = [int(cells[i]) for i in np.lexsort((cells, -scores))]

        min_dist = math.sqrt(landmass.size / count) * self.graph.spacing * 0.5
        chosen: List[int] = []
        for _ in range(self.options.seed_attempts):
            for cell in ranked:
                if len(chosen) >= count:
                    break
                if cell in chosen:
                    continue
                x, y = self.graph.points[cell]
                if chosen:
                    placed = self.graph.points[chosen]
                    if np.min(np.hypot(placed[:, 0] - x, placed[:, 1] - y)) < min_dist:
                        continue
                chosen.append(cell)
            if len(chosen) >= count:
                break
            min_dist /= 1.2

        for cell in ranked:
            if len(chosen) >= count:
                break
            if cell not in chosen:
                chosen.append(cell)

        logger.debug("Seeds selected", landmass=landmass.id, seeds=len(chosen),
                     min_distance=round(min_dist, 2))
        return chosen

    def flood_fill(self, landmass: Landmass, kingdom_ids) -> None:
        """
        Grow kingdoms from their seeds with a multi-source Dijkstra.

        A cell belongs to whichever kingdom pops it first, so each cell goes to
        the seed with the cheapest crossing path.
        """
        heap = []
        for kingdom_id in kingdom_ids:
            heapq.heappush(heap, (0.0, self.seeds[kingdom_id], kingdom_id))

        max_iterations = landmass.size * 20
        iterations = 0
        while heap and iterations < max_iterations:
            iterations += 1
            cost, cell, kingdom_id = heapq.heappop(heap)
            if self.cell_kingdom[cell] != NO_KINGDOM:
                continue
            self.cell_kingdom[cell] = kingdom_id

            for neighbor in self.graph.cell_neighbors[cell]:
                if (self.terrain[neighbor] == TERRAIN_LAND
                        and self.cell_kingdom[neighbor] == NO_KINGDOM):
                    heapq.heappush(heap, (cost + self.edge_cost(cell, neighbor),
                                          neighbor, kingdom_id))

        if heap and iterations >= max_iterations:
            logger.warning("Flood fill hit iteration cap", landmass=landmass.id)

    def annex_small_landmasses(self) -> None:
        """Give every unclaimed landmass to the nearest seed on another landmass."""
        if not self.seeds:
            return

        seed_points = self.graph.points[self.seeds]
        tree = KDTree(seed_points)
        annexed = 0
        for landmass in self.landmasses:
            cells = np.asarray(landmass.cells)
            if np.any(self.cell_kingdom[cells] != NO_KINGDOM):
                continue
            centroid = self.graph.points[cells].mean(axis=0)
            _, order = tree.query([centroid], k=len(self.seeds))
            target = None
            for kingdom_id in order[0]:
                if self.landmass_ids[self.seeds[kingdom_id]] != landmass.id:
                    target = int(kingdom_id)
                    break
            if target is None:
                continue
            self.cell_kingdom[cells] = target
            annexed += 1

        if annexed:
            logger.info("Annexed small landmasses", count=annexed)

    def ensure_coverage(self) -> None:
        """
        Claim any land cell the flood fill missed.

        Raises:
            InvariantViolationError: If land remains unclaimed
        """
        land = self.terrain == TERRAIN_LAND
        for _ in range(3):
            unclaimed = np.nonzero(land & (self.cell_kingdom == NO_KINGDOM))[0]
            if len(unclaimed) == 0:
                return
            changed = False
            for cell in unclaimed:
                votes = Counter(
                    int(self.cell_kingdom[n]) for n in self.graph.cell_neighbors[cell]
                    if self.cell_kingdom[n] != NO_KINGDOM
                )
                if votes:
                    self.cell_kingdom[cell] = votes.most_common(1)[0][0]
                    changed = True
            if not changed:
                break

        unclaimed = np.nonzero(land & (self.cell_kingdom == NO_KINGDOM))[0]
        if len(unclaimed) == 0:
            return

        claimed = np.nonzero(self.cell_kingdom != NO_KINGDOM)[0]
        if len(claimed) == 0:
            raise InvariantViolationError("No claimed cells to extend coverage from")
        tree = KDTree(self.graph.points[claimed])
        _, nearest = tree.query(self.graph.points[unclaimed], k=1)
        self.cell_kingdom[unclaimed] = self.cell_kingdom[claimed[nearest[:, 0]]]
        logger.debug("Coverage fallback", cells=len(unclaimed))

        if np.any(land & (self.cell_kingdom == NO_KINGDOM)):
            raise InvariantViolationError("Land cells left unclaimed after fallback")

    def smooth_borders(self) -> None:
        """Flip cells that a strong majority of their land neighbors disagree with."""
        seed_set = set(self.seeds)
        land_cells = np.nonzero(self.terrain == TERRAIN_LAND)[0]

        for iteration in range(self.options.smoothing_iterations):
            current = self.cell_kingdom.copy()
            changes = 0
            for cell in land_cells:
                if cell in seed_set:
                    continue
                owners = [int(current[n]) for n in self.graph.cell_neighbors[cell]
                          if self.terrain[n] == TERRAIN_LAND]
                if not owners:
                    continue
                dominant, votes = Counter(owners).most_common(1)[0]
                if dominant != current[cell] and votes >= self.options.smoothing_majority * len(owners):
                    self.cell_kingdom[cell] = dominant
                    changes += 1
            logger.debug("Border smoothing pass", iteration=iteration, changes=changes)
            if changes == 0:
                break

    def _components(self, kingdom_id: int) -> List[List[int]]:
        """Connected components of one kingdom's cells."""
        members = np.nonzero(self.cell_kingdom == kingdom_id)[0]
        visited = np.zeros(self.graph.n_cells, dtype=bool)
        components = []
        for start in members:
            if visited[start]:
                continue
            visited[start] = True
            queue = deque([int(start)])
            component = []
            while queue:
                cell = queue.popleft()
                component.append(cell)
                for neighbor in self.graph.cell_neighbors[cell]:
                    if not visited[neighbor] and self.cell_kingdom[neighbor] == kingdom_id:
                        visited[neighbor] = True
                        queue.append(neighbor)
            components.append(component)
        return components

    def _exclave_cells(self, kingdom_id: int) -> List[int]:
        seed = self.seeds[kingdom_id]
        seed_landmass = int(self.landmass_ids[seed])
        main_by_landmass: Dict[int, List[int]] = {}
        for component in self._components(kingdom_id):
            landmass_id = int(self.landmass_ids[component[0]])
            if landmass_id == seed_landmass:
                if seed in component:
                    main_by_landmass[landmass_id] = component
                continue
            current = main_by_landmass.get(landmass_id)
            if current is None or len(component) > len(current):
                main_by_landmass[landmass_id] = component

        main = set()
        for component in main_by_landmass.values():
            main.update(component)
        return [int(c) for c in np.nonzero(self.cell_kingdom == kingdom_id)[0] if c not in main]

    def remove_exclaves(self) -> None:
        """Reassign cells cut off from their kingdom's main body."""
        for iteration in range(self.options.exclave_passes):
            reassigned = 0
            for kingdom_id in range(len(self.seeds)):
                exclave = self._exclave_cells(kingdom_id)
                if not exclave:
                    continue

                foreign_claimed = np.nonzero(
                    (self.cell_kingdom != NO_KINGDOM) & (self.cell_kingdom != kingdom_id)
                )[0]
                tree = KDTree(self.graph.points[foreign_claimed]) if len(foreign_claimed) else None

                # Peel from the outside in so inner cells follow their neighbors
                pending = exclave
                while pending:
                    remaining = []
                    for cell in pending:
                        votes = Counter(
                            int(self.cell_kingdom[n]) for n in self.graph.cell_neighbors[cell]
                            if self.cell_kingdom[n] not in (NO_KINGDOM, kingdom_id)
                        )
                        if votes:
                            self.cell_kingdom[cell] = votes.most_common(1)[0][0]
                            reassigned += 1
                        else:
                            remaining.append(cell)
                    if len(remaining) == len(pending):
                        break
                    pending = remaining

                if pending and tree is not None:
                    _, nearest = tree.query(self.graph.points[pending], k=1)
                    self.cell_kingdom[pending] = self.cell_kingdom[foreign_claimed[nearest[:, 0]]]
                    reassigned += len(pending)

            logger.debug("Exclave pass", iteration=iteration, reassigned=reassigned)
            if reassigned == 0:
                return
        logger.warning("Exclave removal stopped at pass cap", passes=self.options.exclave_passes)

    def build_kingdoms(self) -> List[Kingdom]:
        names = []
        if self.name_generator is not None:
            self.name_generator.reset()
            names = self.name_generator.generate_names(len(self.seeds), NameCategory.KINGDOM)

        kingdoms = []
        for kingdom_id, seed in enumerate(self.seeds):
            cells = np.nonzero(self.cell_kingdom == kingdom_id)[0]
            centroid = self.graph.points[cells].mean(axis=0) if len(cells) else self.graph.points[seed]
            kingdoms.append(Kingdom(
                id=kingdom_id,
                name=names[kingdom_id] if names else f"Kingdom {kingdom_id + 1}",
                seed_cell=seed,
                capital_cell=seed,
                landmass_id=int(self.landmass_ids[seed]),
                cells=[int(c) for c in cells],
                centroid=(float(centroid[0]), float(centroid[1])),
            ))
        return kingdoms

    def kingdom_adjacency(self) -> Dict[int, Set[int]]:
        adjacency: Dict[int, Set[int]] = {k.id: set() for k in self.kingdoms}
        for cell in np.nonzero(self.cell_kingdom != NO_KINGDOM)[0]:
            own = int(self.cell_kingdom[cell])
            for neighbor in self.graph.cell_neighbors[cell]:
                other = int(self.cell_kingdom[neighbor])
                if other != NO_KINGDOM and other != own:
                    adjacency[own].add(other)
        return adjacency

    def assign_colors(self) -> None:
        """Greedy coloring, most-constrained kingdoms first."""
        palette_size = len(POLITICAL_COLORS)
        adjacency = self.kingdom_adjacency()
        order = sorted(adjacency, key=lambda k: (-len(adjacency[k]), k))
        colors: Dict[int, int] = {}

        for kingdom_id in order:
            neighbor_colors = {colors[n] for n in adjacency[kingdom_id] if n in colors}
            avoid = set(neighbor_colors)
            for color in neighbor_colors:
                avoid.add((color - 1) % palette_size)
                avoid.add((color + 1) % palette_size)

            choice = next((c for c in range(palette_size) if c not in avoid), None)
            if choice is None:
                choice = next((c for c in range(palette_size) if c not in neighbor_colors), None)
            if choice is None:
                choice = kingdom_id % palette_size
            colors[kingdom_id] = choice

        for kingdom in self.kingdoms:
            kingdom.color_index = colors[kingdom.id]
            kingdom.color = POLITICAL_COLORS[kingdom.color_index]
