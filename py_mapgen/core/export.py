"""Serializable snapshots of a WorldState."""

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from .constants import ELEVATION, TERRAIN_LAND


class ElevationMetadata(BaseModel):
    """Units and range of exported elevations."""

    unit: str = Field(default="meters", description="Elevation unit")
    sea_level: float = Field(default=ELEVATION["SEA_LEVEL"], description="Land starts here")
    max: float = Field(default=ELEVATION["MAX"], description="Highest possible elevation")
    min: float = Field(default=ELEVATION["MIN"], description="Deepest possible elevation")


class CellExport(BaseModel):
    """One exported cell."""

    id: int = Field(description="Cell index")
    center: Tuple[float, float] = Field(description="Seed point")
    polygon: List[Tuple[float, float]] = Field(description="Counter-clockwise vertices")
    neighbors: List[int] = Field(description="Adjacent cell ids")
    elevation: Optional[float] = Field(default=None, description="Meters, if computed")
    is_land: Optional[bool] = Field(default=None, description="Land flag, if computed")
    is_ocean: Optional[bool] = Field(default=None, description="Ocean flag, if computed")


class MapExport(BaseModel):
    """Full cell-level snapshot plus global metadata."""

    width: float = Field(description="Domain width")
    height: float = Field(description="Domain height")
    cell_count: int = Field(description="Number of cells")
    elevation: ElevationMetadata = Field(default_factory=ElevationMetadata)
    sea_level_threshold: Optional[float] = Field(
        default=None, description="Noise fraction used to split land and ocean"
    )
    cells: List[CellExport] = Field(default_factory=list)


class WorldSummary(BaseModel):
    """Counts describing the current world."""

    seed: str
    width: float
    height: float
    cell_count: int = 0
    land_cells: Optional[int] = None
    ocean_cells: Optional[int] = None
    rivers: Optional[int] = None
    lakes: Optional[int] = None
    mean_precipitation: Optional[float] = None
    kingdoms: Optional[int] = None
    cities: Optional[int] = None
    roads: Optional[int] = None


def export_world(state) -> MapExport:
    """
    Snapshot a WorldState's cells.

    Elevation fields are filled only when the elevation layer exists.
    """
    if state.graph is None:
        return MapExport(width=state.width, height=state.height, cell_count=0)

    graph = state.graph
    has_elevation = state.elevations is not None
    cells = []
    for i in range(graph.n_cells):
        cell = CellExport(
            id=i,
            center=(float(graph.points[i, 0]), float(graph.points[i, 1])),
            polygon=[(float(x), float(y)) for x, y in graph.cell_polygons[i]],
            neighbors=list(graph.cell_neighbors[i]),
        )
        if has_elevation:
            land = bool(state.terrain[i] == TERRAIN_LAND)
            cell.elevation = float(state.elevations[i])
            cell.is_land = land
            cell.is_ocean = not land
        cells.append(cell)

    return MapExport(
        width=state.width,
        height=state.height,
        cell_count=graph.n_cells,
        sea_level_threshold=state.sea_level,
        cells=cells,
    )


def summarize_world(state) -> WorldSummary:
    """Layer counts for the current state; unset layers stay None."""
    summary = WorldSummary(seed=str(state.seed), width=state.width, height=state.height,
                           cell_count=state.n_cells)
    if state.elevations is not None:
        land = int((state.terrain == TERRAIN_LAND).sum())
        summary.land_cells = land
        summary.ocean_cells = state.n_cells - land
    if state.hydrology is not None:
        summary.rivers = len(state.hydrology.rivers)
        summary.lakes = len(state.hydrology.lakes)
    if state.precipitation is not None:
        summary.mean_precipitation = round(float(state.precipitation.mean()), 4)
    if state.cell_kingdom is not None:
        summary.kingdoms = len(state.kingdoms)
        summary.cities = len(state.capitals) + len(state.cities)
        summary.roads = len(state.roads)
    return summary
