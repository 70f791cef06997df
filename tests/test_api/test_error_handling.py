"""Test standardized error handling across the API."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from omnisync.api.exceptions import setup_exception_handlers, status_for
from omnisync.utils.errors import (
    CircuitOpenError,
    ConfigError,
    ConnectionError,
    InvalidInputError,
    OmnisyncError,
    RequestTimeoutError,
    SchemaViolationError,
    UpstreamStatusError,
)


class TestStatusMapping:
    """Test error code to HTTP status mapping."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (CircuitOpenError(), 503),
            (RequestTimeoutError("slow"), 504),
            (InvalidInputError("bad"), 400),
            (SchemaViolationError("bad shape"), 400),
            (ConnectionError("down"), 503),
            (UpstreamStatusError(status_code=500), 502),
            (ConfigError("missing"), 500),
            (OmnisyncError("unknown"), 500),
        ],
    )
    def test_status_for(self, error, expected):
        assert status_for(error) == expected


@pytest.fixture
def client():
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/invalid")
    async def invalid():
        raise InvalidInputError("Tenant ID is not a UUID", argument="tenant_id", trace_id="abcd1234")

    @app.get("/circuit")
    async def circuit():
        raise CircuitOpenError(apparatus="RequestBridge", operation="chat")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret internals")

    @app.get("/items")
    async def items(limit: int):
        return {"limit": limit}

    return TestClient(app, raise_server_exceptions=False)


class TestHandlers:
    """Test error response bodies."""

    def test_omnisync_error_body(self, client):
        response = client.get("/invalid")

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "INVALID_INPUT"
        assert data["error"]["message"] == "Tenant ID is not a UUID"
        assert data["error"]["field"] == "tenant_id"
        assert data["trace_id"] == "abcd1234"

    def test_circuit_open(self, client):
        response = client.get("/circuit")
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "CIRCUIT_OPEN"

    def test_unexpected_error_hidden(self, client):
        response = client.get("/crash")

        assert response.status_code == 500
        data = response.json()
        assert data["error"]["code"] == "INTERNAL_ERROR"
        assert "secret" not in data["error"]["message"]
        assert len(data["trace_id"]) == 8

    def test_request_validation(self, client):
        response = client.get("/items", params={"limit": "many"})

        assert response.status_code == 422
        data = response.json()
        assert data["error"]["code"] == "VALIDATION_ERROR"
        assert data["error"]["field"] == "query.limit"
