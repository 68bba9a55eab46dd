"""FastAPI main application."""

from typing import List, Optional, Tuple

import structlog
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .. import __version__
from ..config import settings
from ..core.climate import ClimateOptions
from ..core.export import MapExport, WorldSummary, export_world, summarize_world
from ..core.heightmap_generator import Falloff, HeightmapConfig
from ..core.hydrology import HydrologyOptions
from ..core.kingdoms import KingdomOptions
from ..core.noise import NoiseStyle
from ..core.point_sampler import Distribution
from ..core.settlements import SettlementOptions
from ..core.world import GenerationSession
from ..utils.logging import configure_logging

configure_logging()
logger = structlog.get_logger()

app = FastAPI(
    title="Procedural Map Generator API",
    description="Terrain, hydrology, climate and political geography from seed points",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# The single world this process serves; stages run one at a time
session = GenerationSession()


# Request/Response models
class PointsRequest(BaseModel):
    """Request to sample points and rebuild the cell graph."""

    count: int = Field(settings.default_cells, ge=1, le=settings.max_cells,
                       description="Number of cells")
    seed: Optional[str] = Field(None, description="World seed, keeps the current one if omitted")
    distribution: Distribution = Field(Distribution.JITTERED, description="Sampling policy")
    width: Optional[float] = Field(None, ge=10, le=20000, description="Map width")
    height: Optional[float] = Field(None, ge=10, le=20000, description="Map height")


class ElevationRequest(BaseModel):
    """Request to synthesize elevations."""

    style: NoiseStyle = Field(NoiseStyle.FBM, description="Noise algorithm")
    frequency: float = Field(3.0, gt=0, le=64, description="Base noise frequency")
    octaves: int = Field(6, ge=1, le=12, description="Octaves for fractal styles")
    sea_level: float = Field(0.4, ge=0.0, le=1.0, description="Fraction of noise range under water")
    falloff: Falloff = Field(Falloff.RADIAL, description="Island falloff shape")
    falloff_strength: float = Field(0.7, ge=0.0, le=1.0, description="Falloff weight")
    smoothing: int = Field(0, ge=0, le=20, description="Neighbor smoothing passes")
    smoothing_strength: float = Field(0.6, ge=0.0, le=1.0, description="Smoothing blend")


class DrainageRequest(BaseModel):
    """Request to compute drainage and rivers."""

    number_of_rivers: int = Field(30, ge=0, le=1000, description="Maximum river count")
    enable_lakes: bool = Field(False, description="Form lakes in closed basins")


class PrecipitationRequest(BaseModel):
    """Request to compute precipitation."""

    wind_direction: float = Field(270.0, ge=0.0, le=360.0, description="Bearing wind blows from")
    wind_strength: float = Field(0.8, ge=0.0, le=1.0, description="Wind strength")


class KingdomsRequest(BaseModel):
    """Request to partition land into kingdoms."""

    num_kingdoms: int = Field(12, ge=1, le=200, description="Target number of kingdoms")
    road_density: int = Field(5, ge=0, le=10, description="Cities and roads density")


class CoastlineResponse(BaseModel):
    """Smoothed coastline loops."""

    loops: List[List[Tuple[float, float]]]


def _published(state, stage: str) -> WorldSummary:
    if state is None:
        raise HTTPException(status_code=409, detail=f"Cannot run {stage} before its inputs exist")
    return summarize_world(state)


# API endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Procedural Map Generator API",
        "version": __version__,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "cells": session.state.n_cells}


@app.post("/world/points", response_model=WorldSummary)
async def generate_points(request: Optional[PointsRequest] = None):
    """Sample new points; every derived layer is discarded."""
    request = request or PointsRequest()
    logger.info("Points requested", request=request.model_dump())
    state = session.generate_points(request.count, seed=request.seed,
                                    distribution=request.distribution,
                                    width=request.width, height=request.height)
    return summarize_world(state)


@app.post("/world/elevation", response_model=WorldSummary)
async def generate_elevation(request: Optional[ElevationRequest] = None):
    """Synthesize elevations for the current cells."""
    request = request or ElevationRequest()
    config = HeightmapConfig(seed=session.state.seed, **request.model_dump())
    return _published(session.generate_elevation(config), "elevation")


@app.post("/world/drainage", response_model=WorldSummary)
async def compute_drainage(request: Optional[DrainageRequest] = None):
    """Fill depressions, route drainage and trace rivers."""
    request = request or DrainageRequest()
    options = HydrologyOptions(number_of_rivers=request.number_of_rivers,
                               enable_lakes=request.enable_lakes)
    return _published(session.compute_drainage(options), "drainage")


@app.post("/world/precipitation", response_model=WorldSummary)
async def generate_precipitation(request: Optional[PrecipitationRequest] = None):
    """Compute orographic precipitation."""
    request = request or PrecipitationRequest()
    options = ClimateOptions(wind_direction=request.wind_direction,
                             wind_strength=request.wind_strength)
    return _published(session.generate_precipitation(options), "precipitation")


@app.post("/world/kingdoms", response_model=WorldSummary)
async def generate_kingdoms(request: Optional[KingdomsRequest] = None):
    """Partition land, site settlements and plan roads."""
    request = request or KingdomsRequest()
    state = session.generate_kingdoms(
        KingdomOptions(num_kingdoms=request.num_kingdoms),
        SettlementOptions(road_density=request.road_density),
    )
    return _published(state, "kingdoms")


@app.get("/world/summary", response_model=WorldSummary)
async def world_summary():
    """Counts for every computed layer."""
    return summarize_world(session.state)


@app.get("/world/export", response_model=MapExport)
async def world_export():
    """Cell-level snapshot of the current world."""
    if not session.state.has_points:
        raise HTTPException(status_code=409, detail="No cells generated yet")
    return export_world(session.state)


@app.get("/world/coastlines", response_model=CoastlineResponse)
async def world_coastlines():
    """Smoothed coastline loops."""
    loops = session.coastlines()
    if loops is None:
        raise HTTPException(status_code=409, detail="Elevation has not been generated")
    return CoastlineResponse(loops=[[(float(x), float(y)) for x, y in loop] for loop in loops])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
