"""
Geographic features detection.

This module handles:
- Landmass identification (connected land components)
- Coastline cell detection
"""

from collections import deque
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .constants import TERRAIN_LAND


@dataclass
class Landmass:
    """A maximal connected component of land cells."""

    id: int
    cells: List[int]
    touches_border: bool = False

    @property
    def size(self) -> int:
        return len(self.cells)


def find_landmasses(graph, terrain: np.ndarray) -> Tuple[List[Landmass], np.ndarray]:
    """
    Label connected land components with breadth-first search.

    Args:
        graph: VoronoiGraph
        terrain: Terrain classes (1 = land)

    Returns:
        Tuple of (landmasses sorted by size descending, per-cell landmass id
        array with -1 for ocean). Ids are assigned after sorting, so
        landmass 0 is always the largest.
    """
    n_cells = graph.n_cells
    visited = np.zeros(n_cells, dtype=bool)
    components = []

    for start in range(n_cells):
        if visited[start] or terrain[start] != TERRAIN_LAND:
            continue

        cells = []
        queue = deque([start])
        visited[start] = True
        while queue:
            cell = queue.popleft()
            cells.append(cell)
            for neighbor in graph.cell_neighbors[cell]:
                if not visited[neighbor] and terrain[neighbor] == TERRAIN_LAND:
                    visited[neighbor] = True
                    queue.append(neighbor)
        components.append(cells)

    components.sort(key=lambda cells: (-len(cells), cells[0]))

    landmass_ids = np.full(n_cells, -1, dtype=np.int32)
    landmasses = []
    for idx, cells in enumerate(components):
        landmass_ids[cells] = idx
        touches = bool(np.any(graph.cell_border_flags[cells]))
        landmasses.append(Landmass(id=idx, cells=sorted(cells), touches_border=touches))

    return landmasses, landmass_ids


def coastal_cells(graph, terrain: np.ndarray) -> np.ndarray:
    """Boolean mask of land cells with at least one ocean neighbor."""
    mask = np.zeros(graph.n_cells, dtype=bool)
    for cell in range(graph.n_cells):
        if terrain[cell] != TERRAIN_LAND:
            continue
        mask[cell] = any(terrain[n] != TERRAIN_LAND for n in graph.cell_neighbors[cell])
    return mask
