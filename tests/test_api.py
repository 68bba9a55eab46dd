"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

import py_mapgen.api.main as api_main
from py_mapgen.config import settings
from py_mapgen.core.world import GenerationSession


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(api_main, "session",
                        GenerationSession(width=200.0, height=200.0, seed="api"))
    return TestClient(api_main.app)


@pytest.fixture
def seeded(client):
    response = client.post("/world/points", json={"count": 250})
    assert response.status_code == 200
    return client


class TestBasics:
    """Service endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert "version" in data

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "cells": 0}


class TestPreconditions:
    """Stages out of order are conflicts."""

    @pytest.mark.parametrize("path", [
        "/world/elevation", "/world/drainage", "/world/precipitation", "/world/kingdoms",
    ])
    def test_stage_before_points(self, client, path):
        assert client.post(path).status_code == 409

    def test_export_before_points(self, client):
        assert client.get("/world/export").status_code == 409

    def test_coastlines_before_elevation(self, seeded):
        assert seeded.get("/world/coastlines").status_code == 409

    def test_drainage_before_elevation(self, seeded):
        assert seeded.post("/world/drainage").status_code == 409


class TestValidation:
    """Bad parameters are rejected."""

    @pytest.mark.parametrize("body", [
        {"count": 0},
        {"count": settings.max_cells + 1},
        {"count": 100, "distribution": "hexagonal"},
        {"count": 100, "width": 1},
    ])
    def test_bad_points_request(self, client, body):
        assert client.post("/world/points", json=body).status_code == 422

    def test_bad_sea_level(self, seeded):
        response = seeded.post("/world/elevation", json={"sea_level": 1.5})
        assert response.status_code == 422

    def test_bad_road_density(self, seeded):
        seeded.post("/world/elevation")
        response = seeded.post("/world/kingdoms", json={"road_density": 11})
        assert response.status_code == 422


class TestWorkflow:
    """Full pipeline over HTTP."""

    def test_points(self, client):
        response = client.post("/world/points",
                               json={"count": 180, "seed": "http", "distribution": "poisson"})
        assert response.status_code == 200
        data = response.json()
        assert data["cell_count"] == 180
        assert data["seed"] == "http"
        assert data["land_cells"] is None

    def test_full_flow(self, seeded):
        elevation = seeded.post("/world/elevation", json={"style": "ridged", "sea_level": 0.3})
        assert elevation.status_code == 200
        assert elevation.json()["land_cells"] + elevation.json()["ocean_cells"] == 250

        drainage = seeded.post("/world/drainage", json={"number_of_rivers": 5})
        assert drainage.status_code == 200
        assert drainage.json()["rivers"] <= 5

        precipitation = seeded.post("/world/precipitation", json={"wind_direction": 90})
        assert precipitation.status_code == 200
        assert 0.0 <= precipitation.json()["mean_precipitation"] <= 1.0

        kingdoms = seeded.post("/world/kingdoms", json={"num_kingdoms": 2, "road_density": 3})
        assert kingdoms.status_code == 200
        assert kingdoms.json()["kingdoms"] is not None

        summary = seeded.get("/world/summary").json()
        assert summary == kingdoms.json()

    def test_new_points_discard_layers(self, seeded):
        seeded.post("/world/elevation")
        summary = seeded.post("/world/points", json={"count": 120}).json()
        assert summary["cell_count"] == 120
        assert summary["land_cells"] is None

    def test_export(self, seeded):
        seeded.post("/world/elevation")
        response = seeded.get("/world/export")
        assert response.status_code == 200
        data = response.json()
        assert data["cell_count"] == 250
        assert len(data["cells"]) == 250
        assert data["elevation"]["unit"] == "meters"
        cell = data["cells"][0]
        assert set(cell) >= {"id", "center", "polygon", "neighbors", "elevation", "is_land"}

    def test_coastlines(self, seeded):
        seeded.post("/world/elevation", json={"sea_level": 0.5})
        response = seeded.get("/world/coastlines")
        assert response.status_code == 200
        for loop in response.json()["loops"]:
            assert len(loop) >= 3
            assert all(len(point) == 2 for point in loop)
