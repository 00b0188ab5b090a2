"""Tests for the /health endpoint."""

import pytest
from unittest.mock import AsyncMock
from fastapi import FastAPI
from fastapi.testclient import TestClient

from comms_orchestrator.api.routes.health import router


def _make_app(postgres_client=None) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.state.postgres = postgres_client or AsyncMock()
    return app


class TestHealthRoute:
    def test_health_ok(self):
        mock_postgres = AsyncMock()
        mock_postgres.verify_connectivity = AsyncMock(return_value=True)
        client = TestClient(_make_app(mock_postgres))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health_postgres_down(self):
        mock_postgres = AsyncMock()
        mock_postgres.verify_connectivity = AsyncMock(return_value=False)
        client = TestClient(_make_app(mock_postgres))
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"
