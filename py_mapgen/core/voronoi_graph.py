"""Voronoi graph generation: the planar subdivision behind every cell."""

import numpy as np
from scipy.spatial import Voronoi, cKDTree
from shapely.geometry import Polygon, box
from shapely.geometry.polygon import orient
from typing import List, Optional
from dataclasses import dataclass, field
import structlog

logger = structlog.get_logger()


@dataclass
class VoronoiGraph:
    """Cell graph over a rectangular domain.

    Cell ``i`` is the Voronoi region of ``points[i]`` clipped to
    ``[0, width] x [0, height]``. Polygons are counter-clockwise and do not
    repeat their first vertex.
    """
    width: float
    height: float
    spacing: float

    points: np.ndarray
    boundary_points: np.ndarray

    cell_neighbors: List[List[int]]  # sorted neighbor ids per cell
    cell_border_flags: np.ndarray    # 1 if the cell touches the domain edge
    cell_polygons: List[np.ndarray]  # (k, 2) ordered vertices per cell

    _tree: Optional[cKDTree] = field(default=None, repr=False)

    @property
    def n_cells(self) -> int:
        return len(self.points)

    def neighbors(self, cell: int) -> List[int]:
        return self.cell_neighbors[cell]

    def polygon(self, cell: int) -> np.ndarray:
        return self.cell_polygons[cell]

    def find_cell(self, x: float, y: float) -> int:
        """
        Locate the cell containing a coordinate.

        Args:
            x, y: Coordinates to locate

        Returns:
            Owning cell index, or -1 if the point lies outside the domain
        """
        if not (0 <= x <= self.width and 0 <= y <= self.height):
            return -1
        if self._tree is None:
            self._tree = cKDTree(self.points)
        _, idx = self._tree.query([x, y])
        return int(idx)


def get_boundary_points(points: np.ndarray, width: float, height: float) -> np.ndarray:
    """
    Mirror the seed points across the four domain edges.

    The bisector between a site and its reflection is the edge itself, so
    with the reflections present every real cell ends exactly on the domain
    boundary and the real cells together cover the whole rectangle.

    Args:
        points: (N, 2) seed positions inside the domain
        width: Domain width
        height: Domain height

    Returns:
        Array of reflected point coordinates, all outside the domain
    """
    points = np.asarray(points, dtype=np.float64)
    x, y = points[:, 0], points[:, 1]
    eps = 1e-9

    mirrored = []
    # A site on the edge would coincide with its own reflection
    for keep, mx, my in (
        (x > eps, -x, y),
        (x < width - eps, 2.0 * width - x, y),
        (y > eps, x, -y),
        (y < height - eps, x, 2.0 * height - y),
    ):
        mirrored.append(np.column_stack([mx[keep], my[keep]]))

    return np.vstack(mirrored)


def build_cell_connectivity(vor: Voronoi, n_grid_points: int) -> List[List[int]]:
    """
    Build cell adjacency from scipy Voronoi ridges.

    Args:
        vor: scipy Voronoi diagram of grid plus boundary points
        n_grid_points: Number of grid points (boundary points follow them)

    Returns:
        Sorted neighbor ids per cell
    """
    cell_neighbors = [set() for _ in range(n_grid_points)]

    for p1, p2 in vor.ridge_points:
        if p1 < n_grid_points and p2 < n_grid_points:
            cell_neighbors[p1].add(int(p2))
            cell_neighbors[p2].add(int(p1))

    return [sorted(n) for n in cell_neighbors]


def compute_border_flags(polygons: List[np.ndarray], width: float, height: float,
                         eps: float = 1e-6) -> np.ndarray:
    """Flag cells whose clipped polygon reaches the domain edge."""
    border_flags = np.zeros(len(polygons), dtype=np.uint8)
    for i, poly in enumerate(polygons):
        if len(poly) and (poly[:, 0].min() <= eps or poly[:, 1].min() <= eps
                          or poly[:, 0].max() >= width - eps
                          or poly[:, 1].max() >= height - eps):
            border_flags[i] = 1
    return border_flags


def clipped_cell_polygons(vor: Voronoi, n_grid_points: int,
                          width: float, height: float) -> List[np.ndarray]:
    """
    Build ordered cell polygons clipped to the domain rectangle.

    Args:
        vor: scipy Voronoi diagram
        n_grid_points: Number of grid points
        width: Domain width
        height: Domain height

    Returns:
        List of (k, 2) counter-clockwise vertex arrays, one per cell
    """
    domain = box(0.0, 0.0, width, height)
    polygons = []

    for i in range(n_grid_points):
        region = vor.regions[vor.point_region[i]]
        finite = [v for v in region if v != -1]
        if len(finite) < 3:
            polygons.append(np.empty((0, 2)))
            continue

        verts = vor.vertices[finite]
        # Voronoi cells are convex around their site, so an angular sort orders them
        site = vor.points[i]
        angles = np.arctan2(verts[:, 1] - site[1], verts[:, 0] - site[0])
        verts = verts[np.argsort(angles)]

        clipped = Polygon(verts).intersection(domain)
        if clipped.is_empty or clipped.geom_type != "Polygon":
            polygons.append(np.empty((0, 2)))
            continue

        coords = np.asarray(orient(clipped, 1.0).exterior.coords)[:-1]
        polygons.append(coords)

    return polygons


def compute_polygon_centroid(vertices: np.ndarray) -> np.ndarray:
    """Compute the area-weighted centroid of a polygon (shoelace formula).

    Args:
        vertices: Array of [x, y] vertex coordinates

    Returns:
        [x, y] centroid coordinates
    """
    if len(vertices) < 3:
        return np.mean(vertices, axis=0)

    x = vertices[:, 0]
    y = vertices[:, 1]
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)
    cross = x * y_next - x_next * y

    area = cross.sum() * 0.5
    if abs(area) < 1e-10:
        return np.mean(vertices, axis=0)

    cx = ((x + x_next) * cross).sum() / (6.0 * area)
    cy = ((y + y_next) * cross).sum() / (6.0 * area)
    return np.array([cx, cy])


def generate_voronoi_graph(points: np.ndarray, width: float, height: float) -> VoronoiGraph:
    """
    Build the complete cell graph for a set of seed points.

    Args:
        points: (N, 2) seed positions inside the domain
        width: Domain width
        height: Domain height

    Returns:
        VoronoiGraph with neighbors, border flags and clipped polygons
    """
    points = np.asarray(points, dtype=np.float64)
    n_points = len(points)
    spacing = float(np.sqrt((width * height) / max(n_points, 1)))

    logger.info("Generating Voronoi graph", width=width, height=height,
                cells=n_points, spacing=round(spacing, 2))

    boundary_points = get_boundary_points(points, width, height)
    vor = Voronoi(np.vstack([points, boundary_points]))

    cell_neighbors = build_cell_connectivity(vor, n_points)
    polygons = clipped_cell_polygons(vor, n_points, width, height)
    border_flags = compute_border_flags(polygons, width, height)

    logger.info("Voronoi graph built", vertices=len(vor.vertices),
                ridges=len(vor.ridge_points), border_cells=int(border_flags.sum()))

    return VoronoiGraph(
        width=width,
        height=height,
        spacing=spacing,
        points=points,
        boundary_points=boundary_points,
        cell_neighbors=cell_neighbors,
        cell_border_flags=border_flags,
        cell_polygons=polygons,
    )
