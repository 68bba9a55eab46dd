"""
Settlement siting: capitals, cities and population.

Process:
1. place_capitals() - One capital per kingdom by weighted site score
2. place_cities() - Secondary settlements with spacing and type caps
3. assign_population() - Split a world population across kingdoms and towns
"""

from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

import numpy as np
import structlog
from pydantic import BaseModel, ConfigDict, Field

from .constants import TERRAIN_LAND
from .features import coastal_cells
from .name_generator import NameCategory, NameGenerator
from ..utils.random import derive_prng

logger = structlog.get_logger()

# (exclusive lower bound in meters, score) checked top down
CAPITAL_ELEVATION_SCORES = [
    (3000.0, -100.0),
    (2000.0, -50.0),
    (1500.0, -20.0),
    (500.0, 30.0),
    (100.0, 20.0),
]
CAPITAL_LOWLAND_SCORE = 5.0

CITY_ELEVATION_SCORES = [
    (1200.0, 5.0),
    (500.0, 20.0),
    (100.0, 15.0),
]
CITY_LOWLAND_SCORE = 10.0


def _band_score(elevation: float, bands, default: float) -> float:
    for lower, score in bands:
        if elevation > lower:
            return score
    return default


class CityType(str, Enum):
    """Settlement classes."""

    CAPITAL = "capital"
    PORT = "port"
    TOWN = "town"
    FORTRESS = "fortress"


class SettlementOptions(BaseModel):
    """Settlement siting options."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    road_density: int = Field(default=5, ge=0, le=10, description="Cities and roads density 0-10")
    min_capital_distance: float = Field(
        default=80.0, description="Minimum distance between capitals"
    )
    city_capital_clearance: float = Field(
        default=40.0, description="Cities keep this far from their capital"
    )
    max_city_elevation: float = Field(default=3500.0, description="No cities above this height")
    max_cities_per_kingdom: int = Field(default=20, ge=0, description="City count ceiling")
    cells_per_city: int = Field(default=40, ge=1, description="Kingdom cells per base city")
    max_ports_per_kingdom: int = Field(default=4, ge=0, description="Port cap per kingdom")
    max_fortresses_per_kingdom: int = Field(
        default=3, ge=0, description="Fortress cap per kingdom"
    )
    fortress_elevation: float = Field(
        default=1500.0, description="Cities above this height become fortresses"
    )
    city_jitter: float = Field(default=25.0, description="Random score added to city sites")

    # Population parameters
    population_per_cell: Tuple[float, float] = Field(
        default=(50.0, 200.0), description="People per land cell range"
    )
    capital_share: Tuple[float, float] = Field(
        default=(0.15, 0.25), description="Kingdom population share of the capital"
    )
    cities_share: Tuple[float, float] = Field(
        default=(0.30, 0.40), description="Kingdom population share of all cities"
    )


class City(BaseModel):
    """Data structure for a settlement."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: int = Field(description="Settlement identifier")
    cell: int = Field(description="Cell ID where settlement is located")
    x: float = Field(description="X coordinate")
    y: float = Field(description="Y coordinate")
    kingdom_id: int = Field(description="Owning kingdom")
    type: CityType = Field(default=CityType.TOWN, description="Settlement type")
    name: str = Field(default="", description="Settlement name")
    population: int = Field(default=0, description="Settlement population")

    @property
    def is_capital(self) -> bool:
        return self.type == CityType.CAPITAL


class SettlementPlanner:
    """Places capitals and cities inside existing kingdoms."""

    def __init__(
        self,
        graph,
        elevations: np.ndarray,
        terrain: np.ndarray,
        cell_kingdom: np.ndarray,
        kingdoms,
        rivers=None,
        seed=None,
        options: Optional[SettlementOptions] = None,
        name_generator: Optional[NameGenerator] = None,
    ) -> None:
        """
        Initialize the planner.

        Args:
            graph: VoronoiGraph
            elevations: Elevations in meters
            terrain: Terrain classes (1 = land)
            cell_kingdom: Per-cell kingdom id
            kingdoms: Kingdom models; capital_cell and population are updated
            rivers: Traced rivers
            seed: World seed
            options: SettlementOptions
            name_generator: Source of city names
        """
        self.graph = graph
        self.elevations = np.asarray(elevations, dtype=np.float32)
        self.terrain = np.asarray(terrain)
        self.cell_kingdom = cell_kingdom
        self.kingdoms = kingdoms
        self.options = options or SettlementOptions()
        self.name_generator = name_generator
        self.prng = derive_prng(seed, "settlements")

        self.river_cells: Set[int] = set()
        for river in rivers or []:
            self.river_cells.update(c for c in river.cells if self.terrain[c] == TERRAIN_LAND)
        self.near_river_cells: Set[int] = set()
        for cell in self.river_cells:
            for neighbor in graph.cell_neighbors[cell]:
                if neighbor not in self.river_cells and self.terrain[neighbor] == TERRAIN_LAND:
                    self.near_river_cells.add(neighbor)
        self.coastal = coastal_cells(graph, self.terrain)

        self.capitals: List[City] = []
        self.cities: List[City] = []

    def generate(self) -> Tuple[List[City], List[City]]:
        """
        Site every settlement and distribute population.

        Returns:
            Tuple of (capitals indexed by kingdom, other cities)
        """
        logger.info("Placing settlements", kingdoms=len(self.kingdoms),
                    road_density=self.options.road_density)
        self.capitals = self.place_capitals()
        self.cities = self.place_cities()
        self.assign_population()
        logger.info("Settlements placed", capitals=len(self.capitals), cities=len(self.cities))
        return self.capitals, self.cities

    def _distance(self, a: int, b: int) -> float:
        ax, ay = self.graph.points[a]
        bx, by = self.graph.points[b]
        return float(np.hypot(ax - bx, ay - by))

    def capital_score(self, cell: int, centroid, max_dist: float,
                      placed: List[int]) -> Optional[float]:
        """Site score for a capital, or None when the cell is ruled out."""
        if cell in self.river_cells:
            return None
        x, y = self.graph.points[cell]
        min_to_capital = min((self._distance(cell, c) for c in placed), default=None)
        if min_to_capital is not None and min_to_capital < self.options.min_capital_distance:
            return None

        score = _band_score(float(self.elevations[cell]), CAPITAL_ELEVATION_SCORES,
                            CAPITAL_LOWLAND_SCORE)
        dist = float(np.hypot(x - centroid[0], y - centroid[1]))
        score += (1.0 - dist / max_dist) * 40.0
        if cell in self.near_river_cells:
            score += 30.0
        if self.coastal[cell]:
            score -= 10.0
        if min_to_capital is not None:
            score += min(30.0, min_to_capital / 5.0)
        return score

    def place_capitals(self) -> List[City]:
        """
        Choose one capital cell per kingdom.

        Kingdoms are processed in id order so earlier capitals push later ones
        apart. A kingdom with no admissible cell gets the member closest to its
        centroid.

        Returns:
            Capital cities, one per kingdom
        """
        placed: List[int] = []
        for kingdom in self.kingdoms:
            cells = kingdom.cells
            centroid = kingdom.centroid
            positions = self.graph.points[cells]
            dists = np.hypot(positions[:, 0] - centroid[0], positions[:, 1] - centroid[1])
            max_dist = float(dists.max()) or 1.0

            best_cell, best_score = -1, -np.inf
            for cell in cells:
                score = self.capital_score(cell, centroid, max_dist, placed)
                if score is not None and score > best_score:
                    best_cell, best_score = cell, score

            if best_cell < 0:
                best_cell = int(cells[int(np.argmin(dists))])
                logger.debug("Capital fallback to centroid", kingdom=kingdom.id)

            placed.append(best_cell)
            kingdom.capital_cell = best_cell

        names = self._names(len(placed))
        capitals = []
        for kingdom, cell, name in zip(self.kingdoms, placed, names):
            x, y = self.graph.points[cell]
            capitals.append(City(id=kingdom.id, cell=cell, x=float(x), y=float(y),
                                 kingdom_id=kingdom.id, type=CityType.CAPITAL, name=name))
        return capitals

    def city_count(self, kingdom_cells: int) -> int:
        """Cities wanted in a kingdom of the given size."""
        density = self.options.road_density
        if density == 0:
            return 0
        base = kingdom_cells // self.options.cells_per_city
        count = int(np.floor(base * (0.5 + density / 5.0)))
        return min(self.options.max_cities_per_kingdom, max(1, count))

    def borders_foreign(self, cell: int, kingdom_id: int) -> bool:
        return any(
            self.cell_kingdom[n] >= 0 and self.cell_kingdom[n] != kingdom_id
            for n in self.graph.cell_neighbors[cell]
        )

    def _city_candidates(self, kingdom, capital_cell: int) -> List[Tuple[float, int]]:
        opts = self.options
        candidates = []
        for cell in kingdom.cells:
            elevation = float(self.elevations[cell])
            if elevation > opts.max_city_elevation or cell in self.river_cells:
                continue
            if self._distance(cell, capital_cell) < opts.city_capital_clearance:
                continue

            score = 0.0
            if self.coastal[cell]:
                score += 30.0
            elif cell in self.near_river_cells:
                score += 40.0
            score += _band_score(elevation, CITY_ELEVATION_SCORES, CITY_LOWLAND_SCORE)
            score += self.prng.random() * opts.city_jitter
            candidates.append((score, cell))

        candidates.sort(key=lambda item: -item[0])
        return candidates

    def place_cities(self) -> List[City]:
        """
        Choose secondary settlements for every kingdom.

        Returns:
            Cities in kingdom order, best sites first within a kingdom
        """
        opts = self.options
        min_spacing = max(25.0, 50.0 - opts.road_density * 2.0)
        sites: List[Tuple[int, int, CityType]] = []

        for kingdom, capital in zip(self.kingdoms, self.capitals):
            wanted = self.city_count(kingdom.size)
            if wanted == 0:
                continue

            chosen: List[int] = []
            ports = fortresses = 0
            for _, cell in self._city_candidates(kingdom, capital.cell):
                if len(chosen) >= wanted:
                    break
                if any(self._distance(cell, other) < min_spacing for other in chosen):
                    continue
                chosen.append(cell)

                city_type = CityType.TOWN
                if self.coastal[cell] and ports < opts.max_ports_per_kingdom:
                    city_type = CityType.PORT
                    ports += 1
                elif ((self.elevations[cell] > opts.fortress_elevation
                       or self.borders_foreign(cell, kingdom.id))
                      and fortresses < opts.max_fortresses_per_kingdom):
                    city_type = CityType.FORTRESS
                    fortresses += 1
                sites.append((kingdom.id, cell, city_type))

        names = self._names(len(sites))
        cities = []
        for idx, ((kingdom_id, cell, city_type), name) in enumerate(zip(sites, names)):
            x, y = self.graph.points[cell]
            cities.append(City(id=len(self.capitals) + idx, cell=cell, x=float(x), y=float(y),
                               kingdom_id=kingdom_id, type=city_type, name=name))
        return cities

    def _names(self, count: int) -> List[str]:
        if self.name_generator is None:
            return [f"City {i + 1}" for i in range(count)]
        return self.name_generator.generate_names(count, NameCategory.CITY)

    def assign_population(self) -> Dict[int, int]:
        """
        Distribute population over kingdoms, capitals and cities.

        Kingdoms get a share proportional to their size with +/-20% variation;
        capitals take 15-25% of their kingdom and cities split 30-40%, weighted
        by rank with a coastal bonus. The rest is rural.

        Returns:
            Population per kingdom id
        """
        opts = self.options
        land_cells = int(np.count_nonzero(self.terrain == TERRAIN_LAND))
        per_cell = self.prng.uniform(*opts.population_per_cell)
        total = round(land_cells * per_cell)

        kingdom_cells = sum(k.size for k in self.kingdoms)
        raw = {}
        for kingdom in self.kingdoms:
            variation = self.prng.uniform(0.8, 1.2)
            raw[kingdom.id] = round(total * kingdom.size / max(1, kingdom_cells) * variation)
        norm = total / max(1, sum(raw.values()))
        populations = {k: round(p * norm) for k, p in raw.items()}

        for kingdom, capital in zip(self.kingdoms, self.capitals):
            kingdom_pop = populations[kingdom.id]
            kingdom.population = kingdom_pop
            capital.population = round(kingdom_pop * self.prng.uniform(*opts.capital_share))

            members = [c for c in self.cities if c.kingdom_id == kingdom.id]
            if not members:
                continue
            cities_pop = round(kingdom_pop * self.prng.uniform(*opts.cities_share))
            weights = []
            for rank, city in enumerate(members):
                position_bonus = 1.0 + (len(members) - rank) / len(members)
                coastal_bonus = 1.3 if self.coastal[city.cell] else 1.0
                weights.append(position_bonus * coastal_bonus * self.prng.uniform(0.7, 1.3))
            weight_total = max(0.001, sum(weights))
            for city, weight in zip(members, weights):
                city.population = round(cities_pop * weight / weight_total)

        return populations
