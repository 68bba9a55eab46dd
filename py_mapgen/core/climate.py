"""
Climate calculation system for precipitation.

This module implements:
- Upwind/downwind neighbor classification against a prevailing wind
- Orographic lift on windward slopes and rain shadows on lee slopes
- Neighbor smoothing and normalization to [0, 1]
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import structlog

from .constants import ELEVATION

logger = structlog.get_logger()


@dataclass
class ClimateOptions:
    """Precipitation model options."""

    # Wind blows FROM this bearing: 0 = north, 90 = east, 270 = west
    wind_direction: float = 270.0
    wind_strength: float = 0.8  # 0-1

    base_precipitation: float = 0.5
    orographic_strength: float = 2.0
    ocean_factor: float = 1.1

    # Neighbors closer than this along the wind axis count as neither side
    neighbor_threshold: float = 5.0
    slope_threshold: float = 0.05
    max_lift: float = 1.5
    max_shadow: float = 1.0
    lift_factor: float = 0.5
    shadow_factor: float = 0.4

    # Windward peaks above this elevation catch extra moisture
    high_peak_elevation: float = 2000.0
    high_peak_bonus: float = 0.05

    precipitation_range: Tuple[float, float] = (0.05, 1.0)
    smoothing_passes: int = 3


class Climate:
    """Handles orographic precipitation."""

    def __init__(self, graph, elevations: np.ndarray, options: Optional[ClimateOptions] = None):
        """
        Initialize climate system.

        Args:
            graph: VoronoiGraph
            elevations: Elevations in meters
            options: Climate calculation options
        """
        self.graph = graph
        self.elevations = np.asarray(elevations, dtype=np.float32)
        self.options = options or ClimateOptions()
        self.precipitation = None

    def wind_vector(self) -> Tuple[float, float]:
        """Unit vector the wind blows toward, in screen coordinates (+y down)."""
        rad = math.radians(self.options.wind_direction)
        return -math.sin(rad), math.cos(rad)

    def wind_slope(self, cell: int) -> float:
        """
        Terrain rise from the upwind neighbors to this cell, per 1000 m.

        Returns:
            Positive on windward slopes, negative on lee slopes, 0 without
            upwind neighbors
        """
        points = self.graph.points
        wind_x, wind_y = self.wind_vector()
        threshold = self.options.neighbor_threshold
        x, y = points[cell]

        upwind_total = 0.0
        upwind_count = 0
        for neighbor in self.graph.cell_neighbors[cell]:
            dot = (points[neighbor, 0] - x) * wind_x + (points[neighbor, 1] - y) * wind_y
            if dot < -threshold:
                upwind_total += float(self.elevations[neighbor])
                upwind_count += 1

        if upwind_count == 0:
            return 0.0
        return (float(self.elevations[cell]) - upwind_total / upwind_count) / 1000.0

    def raw_precipitation(self) -> np.ndarray:
        """Per-cell precipitation before smoothing and normalization."""
        opts = self.options
        base = opts.base_precipitation
        low, high = opts.precipitation_range
        precip = np.empty(self.graph.n_cells, dtype=np.float32)

        for cell in range(self.graph.n_cells):
            elevation = float(self.elevations[cell])
            if elevation < ELEVATION["SEA_LEVEL"]:
                value = base * opts.ocean_factor
            else:
                slope = self.wind_slope(cell)
                if slope > opts.slope_threshold:
                    lift = min(opts.max_lift, slope * opts.orographic_strength)
                    value = base + lift * opts.wind_strength * opts.lift_factor
                elif slope < -opts.slope_threshold:
                    shadow = min(opts.max_shadow, abs(slope) * opts.orographic_strength)
                    value = base - shadow * opts.wind_strength * opts.shadow_factor
                else:
                    value = base

                if slope > 0 and elevation > opts.high_peak_elevation:
                    value += opts.high_peak_bonus * (elevation / ELEVATION["MAX"])

            precip[cell] = min(max(value, low), high)

        return precip

    def smooth(self, precip: np.ndarray, passes: int) -> np.ndarray:
        """Unweighted mean of each cell and its neighbors, repeated."""
        for _ in range(passes):
            new_precip = precip.copy()
            for cell in range(self.graph.n_cells):
                neighbors = self.graph.cell_neighbors[cell]
                new_precip[cell] = (precip[cell] + precip[neighbors].sum()) / (len(neighbors) + 1)
            precip = new_precip
        return precip

    def calculate_precipitation(self) -> np.ndarray:
        """
        Compute normalized precipitation for every cell.

        Returns:
            float32 array stretched to fill [0, 1]; a uniform field maps to 0
        """
        logger.info("Calculating precipitation",
                    wind_direction=self.options.wind_direction,
                    wind_strength=self.options.wind_strength)

        precip = self.smooth(self.raw_precipitation(), self.options.smoothing_passes)

        min_p = float(precip.min())
        value_range = float(precip.max()) - min_p
        if value_range < 1e-6:
            # Rounding in the smoothing passes can leave a flat field a few ulps wide
            self.precipitation = np.zeros_like(precip, dtype=np.float32)
        else:
            self.precipitation = ((precip - min_p) / value_range).astype(np.float32)

        logger.info("Precipitation calculated",
                    mean=round(float(self.precipitation.mean()), 3))
        return self.precipitation
