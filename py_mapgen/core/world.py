"""
World state and the generation session that owns it.

A WorldState is an immutable snapshot of every computed layer. Each session
entry point builds a new snapshot from the current one and swaps it in with a
single assignment, clearing every layer downstream of the stage that ran.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

import numpy as np
import structlog

from ..config import settings
from .boundaries import coastlines, kingdom_borders
from .climate import Climate, ClimateOptions
from .heightmap_generator import HeightmapConfig, HeightmapGenerator
from .hydrology import Hydrology, HydrologyOptions, HydrologyResult
from .kingdoms import Kingdom, KingdomGenerator, KingdomOptions
from .name_generator import NameGenerator
from .point_sampler import Distribution, sample_points
from .roads import Road, RoadOptions, RoadPlanner
from .settlements import City, SettlementOptions, SettlementPlanner
from .voronoi_graph import VoronoiGraph, generate_voronoi_graph

logger = structlog.get_logger()

POLITICAL_FIELDS = dict(cell_kingdom=None, kingdoms=(), capitals=(), cities=(), roads=())


@dataclass(frozen=True)
class WorldState:
    """Immutable snapshot of a generated world; unset layers are None or empty."""

    width: float
    height: float
    seed: object
    distribution: Distribution = Distribution.JITTERED

    graph: Optional[VoronoiGraph] = None

    elevations: Optional[np.ndarray] = None
    terrain: Optional[np.ndarray] = None
    sea_level: Optional[float] = None

    hydrology: Optional[HydrologyResult] = None
    precipitation: Optional[np.ndarray] = None

    cell_kingdom: Optional[np.ndarray] = None
    kingdoms: tuple = ()
    capitals: tuple = ()
    cities: tuple = ()
    roads: tuple = ()

    # Boundary loops keyed by ("coast",) or ("kingdom", id)
    boundary_cache: Dict[tuple, List[np.ndarray]] = field(default_factory=dict, compare=False,
                                                          repr=False)

    @property
    def n_cells(self) -> int:
        return self.graph.n_cells if self.graph is not None else 0

    @property
    def has_points(self) -> bool:
        return self.graph is not None

    @property
    def has_elevation(self) -> bool:
        return self.elevations is not None

    @property
    def has_drainage(self) -> bool:
        return self.hydrology is not None

    @property
    def has_precipitation(self) -> bool:
        return self.precipitation is not None

    @property
    def has_kingdoms(self) -> bool:
        return self.cell_kingdom is not None

    @property
    def rivers(self) -> list:
        return self.hydrology.rivers if self.hydrology is not None else []

    @property
    def lakes(self) -> list:
        return self.hydrology.lakes if self.hydrology is not None else []


class GenerationSession:
    """Owns the current WorldState and runs pipeline stages against it."""

    def __init__(self, width: Optional[float] = None, height: Optional[float] = None,
                 seed=None):
        self.state = WorldState(
            width=width if width is not None else settings.default_width,
            height=height if height is not None else settings.default_height,
            seed=seed if seed is not None else settings.default_seed,
        )

    def _publish(self, state: WorldState) -> WorldState:
        self.state = state
        return state

    def _missing(self, operation: str, requirement: str) -> None:
        logger.warning("Missing precondition", operation=operation, requires=requirement)

    def generate_points(self, count: Optional[int] = None, seed=None,
                        distribution: Distribution = Distribution.JITTERED,
                        width: Optional[float] = None, height: Optional[float] = None,
                        relax_iterations: int = 3) -> WorldState:
        """
        Sample points and build the cell graph, discarding every other layer.

        Args:
            count: Number of cells
            seed: World seed; keeps the current one when omitted
            distribution: Point sampling policy
            width, height: Domain size; keeps the current one when omitted
            relax_iterations: Lloyd passes for the relaxed distribution

        Returns:
            The new WorldState

        Raises:
            ValueError: If count is outside 1..settings.max_cells
        """
        count = count if count is not None else settings.default_cells
        if not 1 <= count <= settings.max_cells:
            raise ValueError(f"count must be in 1..{settings.max_cells}, got {count}")

        current = self.state
        seed = seed if seed is not None else current.seed
        width = width if width is not None else current.width
        height = height if height is not None else current.height
        distribution = Distribution(distribution)

        points = sample_points(count, width, height, distribution=distribution, seed=seed,
                               relax_iterations=relax_iterations)
        graph = generate_voronoi_graph(points, width, height)
        return self._publish(WorldState(width=width, height=height, seed=seed,
                                        distribution=distribution, graph=graph))

    def generate_elevation(self, config: Optional[HeightmapConfig] = None) -> Optional[WorldState]:
        """
        Synthesize elevations; clears hydrology, climate and political layers.

        Returns:
            The new WorldState, or None when no cell graph exists
        """
        current = self.state
        if not current.has_points:
            self._missing("generate_elevation", "points")
            return None

        config = config or HeightmapConfig(seed=current.seed)
        heightmap = HeightmapGenerator(config, current.graph).generate()
        return self._publish(replace(
            current,
            elevations=heightmap.elevations,
            terrain=heightmap.terrain,
            sea_level=heightmap.sea_level,
            hydrology=None,
            precipitation=None,
            boundary_cache={},
            **POLITICAL_FIELDS,
        ))

    def compute_drainage(self, options: Optional[HydrologyOptions] = None) -> Optional[WorldState]:
        """
        Run the hydrology engine; clears climate and political layers.

        Filled inland seas are written back into the elevation layer.

        Returns:
            The new WorldState, or None without elevations
        """
        current = self.state
        if not current.has_elevation:
            self._missing("compute_drainage", "elevation")
            return None

        names = NameGenerator(f"{current.seed}-water")
        result = Hydrology(current.graph, current.elevations, seed=current.seed,
                           options=options, name_generator=names).run()
        return self._publish(replace(
            current,
            elevations=result.elevations,
            terrain=result.terrain,
            hydrology=result,
            precipitation=None,
            boundary_cache={},
            **POLITICAL_FIELDS,
        ))

    def generate_precipitation(self, options: Optional[ClimateOptions] = None) -> Optional[WorldState]:
        """
        Run the climate model; clears political layers.

        Returns:
            The new WorldState, or None without elevations
        """
        current = self.state
        if not current.has_elevation:
            self._missing("generate_precipitation", "elevation")
            return None

        precipitation = Climate(current.graph, current.elevations, options).calculate_precipitation()
        return self._publish(replace(
            current,
            precipitation=precipitation,
            boundary_cache={},
            **POLITICAL_FIELDS,
        ))

    def generate_kingdoms(
        self,
        options: Optional[KingdomOptions] = None,
        settlement_options: Optional[SettlementOptions] = None,
        road_options: Optional[RoadOptions] = None,
    ) -> Optional[WorldState]:
        """
        Partition land into kingdoms, then site settlements and plan roads.

        Rivers from a previous drainage run raise border costs along their
        course; without one, borders follow terrain alone.

        Returns:
            The new WorldState, or None without elevations
        """
        current = self.state
        if not current.has_elevation:
            self._missing("generate_kingdoms", "elevation")
            return None

        settlement_options = settlement_options or SettlementOptions()
        road_options = road_options or RoadOptions(density=settlement_options.road_density)
        names = NameGenerator(f"{current.seed}-realms")
        rivers = current.rivers

        cell_kingdom, kingdoms = KingdomGenerator(
            current.graph, current.elevations, current.terrain, rivers=rivers,
            options=options, name_generator=names,
        ).generate()
        capitals, cities = SettlementPlanner(
            current.graph, current.elevations, current.terrain, cell_kingdom, kingdoms,
            rivers=rivers, seed=current.seed, options=settlement_options, name_generator=names,
        ).generate()
        roads = RoadPlanner(current.graph, current.elevations, current.terrain,
                            rivers=rivers, options=road_options).generate(capitals, cities)

        return self._publish(replace(
            current,
            cell_kingdom=cell_kingdom,
            kingdoms=tuple(kingdoms),
            capitals=tuple(capitals),
            cities=tuple(cities),
            roads=tuple(roads),
            boundary_cache={},
        ))

    def generate_world(
        self,
        count: Optional[int] = None,
        seed=None,
        distribution: Distribution = Distribution.JITTERED,
        heightmap: Optional[HeightmapConfig] = None,
        hydrology: Optional[HydrologyOptions] = None,
        climate: Optional[ClimateOptions] = None,
        kingdoms: Optional[KingdomOptions] = None,
        settlements: Optional[SettlementOptions] = None,
    ) -> WorldState:
        """Run every stage in order and return the final state."""
        self.generate_points(count, seed=seed, distribution=distribution)
        if heightmap is None:
            heightmap = HeightmapConfig(seed=self.state.seed)
        self.generate_elevation(heightmap)
        self.compute_drainage(hydrology)
        self.generate_precipitation(climate)
        self.generate_kingdoms(kingdoms, settlements)
        return self.state

    def coastlines(self) -> Optional[List[np.ndarray]]:
        """Smoothed coastline loops, cached on the current state."""
        state = self.state
        if not state.has_elevation:
            self._missing("coastlines", "elevation")
            return None
        key = ("coast",)
        if key not in state.boundary_cache:
            state.boundary_cache[key] = coastlines(state.graph, state.terrain)
        return state.boundary_cache[key]

    def kingdom_borders(self, kingdom_id: int) -> Optional[List[np.ndarray]]:
        """Smoothed border loops of one kingdom, cached on the current state."""
        state = self.state
        if not state.has_kingdoms:
            self._missing("kingdom_borders", "kingdoms")
            return None
        if not 0 <= kingdom_id < len(state.kingdoms):
            return []
        key = ("kingdom", kingdom_id)
        if key not in state.boundary_cache:
            state.boundary_cache[key] = kingdom_borders(state.graph, state.cell_kingdom, kingdom_id)
        return state.boundary_cache[key]

    def kingdom(self, kingdom_id: int) -> Optional[Kingdom]:
        kingdoms = self.state.kingdoms
        return kingdoms[kingdom_id] if 0 <= kingdom_id < len(kingdoms) else None

    def cities_of(self, kingdom_id: int) -> List[City]:
        return [c for c in self.state.cities if c.kingdom_id == kingdom_id]

    def roads_of(self, kingdom_id: int) -> List[Road]:
        return [r for r in self.state.roads if r.kingdom_id == kingdom_id]
