"""Tests for the /sweeps endpoints."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi import FastAPI
from fastapi.testclient import TestClient

from comms_orchestrator.api.auth import verify_worker_token
from comms_orchestrator.api.routes.sweeps import router
from comms_orchestrator.errors import BatchError, DatabaseQueryError, PartialSuccessResult


async def _noop_auth():
    pass


def _make_app(scheduler=None, reminders=None) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[verify_worker_token] = _noop_auth
    app.state.scheduler = scheduler or MagicMock()
    app.state.reminders = reminders or MagicMock()
    return app


class TestBatchSweep:
    def test_reports_partial_success(self):
        result = PartialSuccessResult()
        result.add_success(item_id="b-1")
        result.add_failure(BatchError("Summary update failed"), item_id="b-2")
        scheduler = MagicMock()
        scheduler.sweep = AsyncMock(return_value=result)
        client = TestClient(_make_app(scheduler=scheduler))

        response = client.post("/sweeps/batches")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["succeeded_ids"] == ["b-1"]
        assert data["failed_ids"] == ["b-2"]

    def test_sweep_error(self):
        scheduler = MagicMock()
        scheduler.sweep = AsyncMock(side_effect=DatabaseQueryError("timeout"))
        client = TestClient(_make_app(scheduler=scheduler))

        response = client.post("/sweeps/batches")

        assert response.json() == {"success": False, "error": "timeout"}


class TestReminderSweep:
    def test_runs_reminders(self):
        result = PartialSuccessResult()
        result.add_success(item_id="p-1")
        result.add_skipped("p-2")
        reminders = MagicMock()
        reminders.run = AsyncMock(return_value=result)
        client = TestClient(_make_app(reminders=reminders))

        response = client.post("/sweeps/reminders")

        assert response.status_code == 200
        assert response.json()["skipped_ids"] == ["p-2"]
        reminders.run.assert_awaited_once()


class TestSweepAuth:
    def test_requires_token(self):
        app = FastAPI()
        app.include_router(router)
        client = TestClient(app)
        response = client.post("/sweeps/batches")
        assert response.status_code in (401, 422)
