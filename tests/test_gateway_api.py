"""Tests for the tool gateway REST and JSON-RPC routes."""

import pytest
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient

from tool_gateway.app import app
from tool_gateway.context import AuthResult
from tool_gateway.errors import AuthenticationError
from tool_gateway.service import ToolGateway
from tool_gateway.tools import build_registry


class _HeaderAuthenticator:
    async def authenticate(self, authorization):
        if authorization != "Bearer good-key":
            raise AuthenticationError("Invalid API key")
        return AuthResult(
            key_id="key-1",
            tenant_id="company-1",
            company_id="company-1",
            enabled_tools=["identify_project", "crm_read"],
        )


@pytest.fixture
def client(repository, action_service, project):
    settings = MagicMock(SERVER_NAME="comms-tools", SERVER_VERSION="0.1.0")
    app.state.gateway = ToolGateway(build_registry(repository, action_service), _HeaderAuthenticator())
    with patch("tool_gateway.app.get_settings", return_value=settings):
        yield TestClient(app)


AUTH = {"Authorization": "Bearer good-key"}


class TestRestRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "ok", "service": "comms-tools", "version": "0.1.0"}

    def test_tools_requires_key(self, client):
        response = client.get("/tools", headers={"Authorization": "Bearer bad"})
        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "Invalid API key"}

    def test_tools_catalog(self, client):
        response = client.get("/tools", headers=AUTH)
        data = response.json()
        assert data["count"] == 2
        assert [t["name"] for t in data["tools"]] == ["identify_project", "crm_read"]
        assert "parameters" in data["tools"][0]

    def test_execute(self, client):
        response = client.post(
            "/execute",
            headers=AUTH,
            json={"tool": "identify_project", "args": {"query": "oak"}},
        )
        assert response.status_code == 200
        assert response.json()["result"]["projects"][0]["address"] == "12 Oak Street"

    def test_execute_not_enabled(self, client):
        response = client.post("/execute", headers=AUTH, json={"tool": "escalation", "args": {}})
        assert response.status_code == 403

    def test_execute_non_object_body(self, client):
        response = client.post("/execute", headers=AUTH, json=["identify_project"])
        assert response.status_code == 400

    def test_execute_unauthenticated_before_body(self, client):
        response = client.post("/execute", content=b"not json")
        assert response.status_code == 401
        assert response.json() == {"ok": False, "error": "Invalid API key"}


class TestJsonRpcRoute:
    def test_initialize_without_key(self, client):
        response = client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "initialize"})
        assert response.json()["result"]["serverInfo"]["name"] == "comms-tools"

    def test_tools_list_requires_key(self, client):
        response = client.post("/", json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        assert response.status_code == 401

    def test_tools_call(self, client):
        response = client.post(
            "/",
            headers=AUTH,
            json={
                "jsonrpc": "2.0",
                "id": 3,
                "method": "tools/call",
                "params": {"name": "crm_read", "arguments": {"resource_type": "project", "project_id": "project-1"}},
            },
        )
        assert response.json()["id"] == 3
        assert response.json()["result"]["isError"] is False

    def test_invalid_json(self, client):
        response = client.post("/", content=b"{oops", headers={"content-type": "application/json"})
        assert response.json()["error"]["code"] == -32603
