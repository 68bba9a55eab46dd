"""
Heightmap generation module.

Maps each cell to a signed elevation in meters: a noise sample is remapped
to [0, 1], shaped by an optional island falloff, then split at the sea-level
fraction into an ocean range [-4000, 0) and a land range [0, 6000].
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np
import structlog

from .constants import ELEVATION, TERRAIN_LAND, TERRAIN_OCEAN
from .noise import NoiseField, NoiseStyle
from .voronoi_graph import VoronoiGraph

logger = structlog.get_logger()

# Ocean cells sit strictly below sea level, even at the split point
OCEAN_CEILING = -0.01


class Falloff(str, Enum):
    """Island falloff shapes."""

    NONE = "none"
    RADIAL = "radial"
    SQUARE = "square"


@dataclass
class HeightmapConfig:
    """Configuration for heightmap generation."""

    seed: object = 42
    style: NoiseStyle = NoiseStyle.FBM
    frequency: float = 3.0
    octaves: int = 6
    sea_level: float = 0.4  # fraction of the [0, 1] noise range under water
    falloff: Falloff = Falloff.RADIAL
    falloff_strength: float = 0.7
    smoothing: int = 0  # neighbor smoothing passes
    smoothing_strength: float = 0.6

    def __post_init__(self):
        self.style = NoiseStyle(self.style)
        self.falloff = Falloff(self.falloff)
        if not 0.0 <= self.sea_level <= 1.0:
            raise ValueError(f"sea_level must be within [0, 1], got {self.sea_level}")


@dataclass
class Heightmap:
    """Elevation layer: meters per cell plus the derived land/ocean class."""

    elevations: np.ndarray  # float32, meters
    terrain: np.ndarray  # uint8, 1 = land
    sea_level: float


def smoothstep(edge0: float, edge1: float, x: float) -> float:
    t = min(max((x - edge0) / (edge1 - edge0), 0.0), 1.0)
    return t * t * (3 - 2 * t)


def classify_terrain(elevations: np.ndarray) -> np.ndarray:
    return np.where(elevations >= ELEVATION["SEA_LEVEL"], TERRAIN_LAND, TERRAIN_OCEAN).astype(np.uint8)


def normalized_to_elevation(h: float, sea_level: float) -> float:
    """
    Split a [0, 1] height at the sea-level fraction into meters.

    Args:
        h: Normalized height
        sea_level: Split fraction

    Returns:
        Elevation in meters; negative values are ocean
    """
    if sea_level > 0 and h <= sea_level:
        t = h / sea_level
        return min(ELEVATION["MIN"] * (1 - t), OCEAN_CEILING)
    if sea_level >= 1.0:
        return OCEAN_CEILING
    t = (h - sea_level) / (1 - sea_level)
    return ELEVATION["MAX"] * max(t, 0.0)


def smooth_heights(graph: VoronoiGraph, elevations: np.ndarray,
                   iterations: int = 2, strength: float = 0.5) -> np.ndarray:
    """
    Inverse-distance weighted neighbor smoothing.

    Args:
        graph: Cell graph
        elevations: Elevations in meters
        iterations: Number of passes
        strength: Blend factor toward the neighbor average, clamped to [0, 1]

    Returns:
        New smoothed elevation array
    """
    strength = min(max(strength, 0.0), 1.0)
    heights = elevations.astype(np.float32).copy()
    points = graph.points

    for _ in range(iterations):
        new_heights = heights.copy()
        for i in range(graph.n_cells):
            neighbors = graph.cell_neighbors[i]
            if not neighbors:
                continue
            dist = np.hypot(points[neighbors, 0] - points[i, 0], points[neighbors, 1] - points[i, 1])
            weights = 1.0 / (dist + 1.0)
            neighbor_avg = float(np.dot(heights[neighbors], weights) / weights.sum())
            new_heights[i] = heights[i] * (1 - strength) + neighbor_avg * strength
        heights = new_heights

    return heights


class HeightmapGenerator:
    """Generates the elevation layer for a cell graph."""

    def __init__(self, config: HeightmapConfig, graph: VoronoiGraph):
        """
        Initialize the heightmap generator.

        Args:
            config: Heightmap configuration
            graph: Voronoi graph structure with cells and connectivity
        """
        self.config = config
        self.graph = graph
        self.noise = NoiseField(config.seed)

    def _falloff(self, x: float, y: float) -> float:
        cx = self.graph.width / 2
        cy = self.graph.height / 2
        dx = (x - cx) / cx
        dy = (y - cy) / cy

        if self.config.falloff is Falloff.RADIAL:
            return smoothstep(0.3, 1.0, np.sqrt(dx * dx + dy * dy))
        return smoothstep(0.4, 1.0, max(abs(dx), abs(dy)))

    def normalized_heights(self) -> np.ndarray:
        """Noise remapped to [0, 1] with falloff applied, one value per cell."""
        config = self.config
        apply_falloff = config.falloff is not Falloff.NONE and config.falloff_strength > 0
        heights = np.empty(self.graph.n_cells, dtype=np.float64)

        for i, (x, y) in enumerate(self.graph.points):
            h = self.noise.sample(x / self.graph.width, y / self.graph.height,
                                  config.style, config.frequency, config.octaves)
            h = (h + 1) / 2
            if apply_falloff:
                h *= 1 - self._falloff(x, y) * config.falloff_strength
            heights[i] = min(max(h, 0.0), 1.0)

        return heights

    def generate(self) -> Heightmap:
        """
        Generate elevations in meters for every cell.

        Returns:
            Heightmap with float32 elevations and uint8 terrain classes
        """
        config = self.config
        normalized = self.normalized_heights()
        elevations = np.array(
            [normalized_to_elevation(h, config.sea_level) for h in normalized],
            dtype=np.float32,
        )

        if config.smoothing > 0:
            elevations = smooth_heights(self.graph, elevations,
                                        config.smoothing, config.smoothing_strength)

        terrain = classify_terrain(elevations)
        logger.info("Heightmap generated", style=config.style.value,
                    land_cells=int(terrain.sum()),
                    ocean_cells=int(len(terrain) - terrain.sum()),
                    sea_level=config.sea_level)

        return Heightmap(elevations=elevations, terrain=terrain, sea_level=config.sea_level)
