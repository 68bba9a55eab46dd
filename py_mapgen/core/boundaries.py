"""
Boundary extraction for arbitrary cell sets.

The outline of a set of cells is made of the polygon edges that only one
member polygon owns. Those edges are chained into closed loops and rounded
with Chaikin corner cutting. Coastlines and kingdom borders are the same
operation on different cell sets.
"""

import math
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Tuple

import numpy as np
import structlog

from .constants import TERRAIN_LAND

logger = structlog.get_logger()

VertexKey = Tuple[int, int]


def _key(point, quantum: float) -> VertexKey:
    return (int(round(point[0] / quantum)), int(round(point[1] / quantum)))


def chaikin_smooth(loop: np.ndarray, passes: int = 1) -> np.ndarray:
    """
    Corner-cut a closed polyline.

    Each edge is replaced by the points at 1/4 and 3/4 of its length.

    Args:
        loop: (k, 2) vertices of a closed loop, first vertex not repeated
        passes: Number of cutting passes

    Returns:
        Smoothed loop with ``k * 2**passes`` vertices
    """
    loop = np.asarray(loop, dtype=np.float64)
    for _ in range(passes):
        nxt = np.roll(loop, -1, axis=0)
        q = 0.75 * loop + 0.25 * nxt
        r = 0.25 * loop + 0.75 * nxt
        loop = np.empty((len(loop) * 2, 2))
        loop[0::2] = q
        loop[1::2] = r
    return loop


def boundary_edges(graph, cells: Iterable[int], quantum: float = 0.1) -> List[Tuple[VertexKey, VertexKey]]:
    """
    Directed outline edges of a cell set.

    An edge is on the outline when exactly one polygon in the set has it,
    which covers both edges facing non-members and edges on the domain
    rectangle. Directions follow the counter-clockwise polygons, so the set
    lies to the left of every edge.
    """
    directed = []
    for cell in sorted(set(int(c) for c in cells)):
        polygon = graph.cell_polygons[cell]
        if len(polygon) < 3:
            continue
        keys = [_key(p, quantum) for p in polygon]
        for a, b in zip(keys, keys[1:] + keys[:1]):
            if a != b:
                directed.append((a, b))

    counts = Counter((min(a, b), max(a, b)) for a, b in directed)
    return [(a, b) for a, b in directed if counts[(min(a, b), max(a, b))] == 1]


def _turn(incoming: Tuple[int, int], outgoing: Tuple[int, int]) -> float:
    # Signed angle from incoming to outgoing; negative turns right
    cross = incoming[0] * outgoing[1] - incoming[1] * outgoing[0]
    dot = incoming[0] * outgoing[0] + incoming[1] * outgoing[1]
    return math.atan2(cross, dot)


def chain_loops(edges: List[Tuple[VertexKey, VertexKey]]) -> List[List[VertexKey]]:
    """
    Chain directed edges into closed loops.

    Starts are taken in sorted vertex order. Where several unused edges leave
    a vertex, the sharpest right turn is followed, which keeps loops that
    touch at a single vertex apart.
    """
    outgoing: Dict[VertexKey, List[VertexKey]] = defaultdict(list)
    for a, b in edges:
        outgoing[a].append(b)
    for targets in outgoing.values():
        targets.sort()

    loops = []
    for start in sorted(outgoing):
        while outgoing[start]:
            loop = [start]
            current = outgoing[start].pop(0)
            prev = start
            for _ in range(len(edges)):
                if current == start:
                    break
                loop.append(current)
                options = outgoing.get(current)
                if not options:
                    break
                incoming = (current[0] - prev[0], current[1] - prev[1])
                nxt = min(options, key=lambda v: (
                    _turn(incoming, (v[0] - current[0], v[1] - current[1])), v))
                options.remove(nxt)
                prev, current = current, nxt
            loops.append(loop)
    return loops


def extract_boundary(graph, cells: Iterable[int], quantum: float = 0.1,
                     smoothing_passes: int = 2) -> List[np.ndarray]:
    """
    Outline loops of a cell set.

    Args:
        graph: VoronoiGraph
        cells: Member cell ids
        quantum: Grid size used to match shared vertices
        smoothing_passes: Chaikin passes applied to each loop

    Returns:
        List of (k, 2) closed loops; identical input gives identical output
    """
    loops = []
    for keys in chain_loops(boundary_edges(graph, cells, quantum)):
        if len(set(keys)) < 3:
            continue
        loop = np.asarray(keys, dtype=np.float64) * quantum
        loops.append(chaikin_smooth(loop, smoothing_passes))
    return loops


def coastlines(graph, terrain: np.ndarray, **kwargs) -> List[np.ndarray]:
    """Outline loops of all land."""
    land = np.nonzero(np.asarray(terrain) == TERRAIN_LAND)[0]
    loops = extract_boundary(graph, land, **kwargs)
    logger.debug("Coastlines extracted", loops=len(loops))
    return loops


def kingdom_borders(graph, cell_kingdom: np.ndarray, kingdom_id: int, **kwargs) -> List[np.ndarray]:
    """Outline loops of one kingdom."""
    members = np.nonzero(np.asarray(cell_kingdom) == kingdom_id)[0]
    return extract_boundary(graph, members, **kwargs)
