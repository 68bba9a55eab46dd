"""
Seed point sampling.

Four distributions are available:
- RANDOM: uniform random
- JITTERED: stratified grid with each point perturbed inside its grid cell
- POISSON: dart throwing with a minimum distance (active-list algorithm)
- RELAXED: jittered grid followed by Lloyd relaxation

Every sampler returns exactly ``count`` points inside the domain inset by
``margin`` and is deterministic for a fixed seed.
"""

import functools
import math
from enum import Enum

import numpy as np
import structlog
from scipy.spatial import Voronoi

from .alea_prng import AleaPRNG
from .voronoi_graph import (
    clipped_cell_polygons,
    compute_polygon_centroid,
    get_boundary_points,
)

logger = structlog.get_logger()

JITTER = 0.4
POISSON_ATTEMPTS = 30
POISSON_DENSITY = 0.8


class Distribution(str, Enum):
    """Point distribution policies."""

    RANDOM = "random"
    JITTERED = "jittered"
    POISSON = "poisson"
    RELAXED = "relaxed"


def random_points(count: int, margin: float, w: float, h: float, prng: AleaPRNG) -> np.ndarray:
    points = np.empty((count, 2), dtype=np.float64)
    for i in range(count):
        points[i, 0] = margin + prng.random() * w
        points[i, 1] = margin + prng.random() * h
    return points


def jittered_points(count: int, margin: float, w: float, h: float, prng: AleaPRNG) -> np.ndarray:
    """
    Stratified grid: a near-square grid of cells, one point per cell.

    Args:
        count: Number of points
        margin: Inset from the domain edge
        w: Usable width
        h: Usable height
        prng: Random source

    Returns:
        (count, 2) array of points
    """
    cols = math.ceil(math.sqrt(count * (w / h)))
    rows = math.ceil(count / cols)
    cell_w = w / cols
    cell_h = h / rows

    points = np.empty((count, 2), dtype=np.float64)
    idx = 0
    for row in range(rows):
        for col in range(cols):
            if idx >= count:
                return points
            base_x = margin + (col + 0.5) * cell_w
            base_y = margin + (row + 0.5) * cell_h
            points[idx, 0] = base_x + (prng.random() - 0.5) * cell_w * JITTER * 2
            points[idx, 1] = base_y + (prng.random() - 0.5) * cell_h * JITTER * 2
            idx += 1
    return points


def poisson_points(count: int, margin: float, w: float, h: float, prng: AleaPRNG) -> np.ndarray:
    """
    Poisson-disk sampling over a background grid of cell size min_dist/sqrt(2).

    Active points are retired after POISSON_ATTEMPTS failed candidates. When
    the domain saturates before ``count`` points are placed, the remainder is
    filled with uniform random points.
    """
    min_dist = math.sqrt((w * h) / count) * POISSON_DENSITY
    cell_size = min_dist / math.sqrt(2)
    grid_w = max(1, math.ceil(w / cell_size))
    grid_h = max(1, math.ceil(h / cell_size))
    grid = np.full((grid_h, grid_w), -1, dtype=np.int64)

    def grid_index(x, y):
        gx = min(int((x - margin) / cell_size), grid_w - 1)
        gy = min(int((y - margin) / cell_size), grid_h - 1)
        return gx, gy

    points = np.empty((count, 2), dtype=np.float64)
    points[0] = (margin + prng.random() * w, margin + prng.random() * h)
    gx, gy = grid_index(*points[0])
    grid[gy, gx] = 0
    active = [0]
    placed = 1

    while active and placed < count:
        slot = prng.randint(0, len(active) - 1)
        px, py = points[active[slot]]

        found = False
        for _ in range(POISSON_ATTEMPTS):
            angle = prng.random() * math.pi * 2
            dist = min_dist + prng.random() * min_dist
            nx = px + math.cos(angle) * dist
            ny = py + math.sin(angle) * dist

            if nx < margin or nx > margin + w or ny < margin or ny > margin + h:
                continue

            ngx, ngy = grid_index(nx, ny)
            valid = True
            for cy in range(max(0, ngy - 2), min(grid_h, ngy + 3)):
                for cx in range(max(0, ngx - 2), min(grid_w, ngx + 3)):
                    other = grid[cy, cx]
                    if other >= 0 and math.hypot(nx - points[other, 0], ny - points[other, 1]) < min_dist:
                        valid = False
                        break
                if not valid:
                    break

            if valid:
                points[placed] = (nx, ny)
                grid[ngy, ngx] = placed
                active.append(placed)
                placed += 1
                found = True
                break

        if not found:
            active.pop(slot)

    if placed < count:
        logger.info("Poisson sampling saturated, padding with random points",
                    placed=placed, requested=count)
    while placed < count:
        points[placed] = (margin + prng.random() * w, margin + prng.random() * h)
        placed += 1

    return points


def relax_points(points: np.ndarray, width: float, height: float,
                 margin: float = 1.0, n_iterations: int = 3) -> np.ndarray:
    """Apply Lloyd's relaxation to improve point distribution.

    Moves each point to the centroid of its clipped Voronoi cell, then
    re-triangulates for the next iteration.

    Args:
        points: Points to relax
        width: Domain width
        height: Domain height
        margin: Inset the relaxed points are clamped to
        n_iterations: Number of relaxation iterations

    Returns:
        Relaxed point coordinates
    """
    points = points.copy()
    n_points = len(points)

    for iteration in range(n_iterations):
        boundary_points = get_boundary_points(points, width, height)
        vor = Voronoi(np.vstack([points, boundary_points]))
        polygons = clipped_cell_polygons(vor, n_points, width, height)

        for i, poly in enumerate(polygons):
            if len(poly) < 3:
                continue
            centroid = compute_polygon_centroid(poly)
            points[i, 0] = np.clip(centroid[0], margin, width - margin)
            points[i, 1] = np.clip(centroid[1], margin, height - margin)

        logger.debug("Relaxation iteration complete", iteration=iteration + 1)

    return points


def _relaxed_points(count, margin, w, h, prng, relax_iterations=3):
    points = jittered_points(count, margin, w, h, prng)
    return relax_points(points, w + margin * 2, h + margin * 2, margin, relax_iterations)


SAMPLERS = {
    Distribution.RANDOM: random_points,
    Distribution.JITTERED: jittered_points,
    Distribution.POISSON: poisson_points,
    Distribution.RELAXED: _relaxed_points,
}


def sample_points(count: int, width: float, height: float,
                  distribution: Distribution = Distribution.JITTERED,
                  seed=42, margin: float = 1.0,
                  relax_iterations: int = 3) -> np.ndarray:
    """
    Sample seed points for the cell graph.

    Args:
        count: Number of points, at least 1
        width: Domain width
        height: Domain height
        distribution: Sampling policy
        seed: Random seed
        margin: Inset from the domain edge
        relax_iterations: Lloyd iterations for RELAXED

    Returns:
        (count, 2) float64 array
    """
    if count < 1:
        raise ValueError(f"count must be positive, got {count}")
    distribution = Distribution(distribution)

    prng = AleaPRNG(seed)
    w = width - margin * 2
    h = height - margin * 2

    sampler = SAMPLERS[distribution]
    if distribution is Distribution.RELAXED:
        sampler = functools.partial(sampler, relax_iterations=relax_iterations)
    points = sampler(count, margin, w, h, prng)

    logger.info("Points sampled", count=count, distribution=distribution.value, seed=seed)
    return points
