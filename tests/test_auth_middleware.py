import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

import notebooklm_pipeline.server as server
from notebooklm_pipeline.server import APIKeyAuthMiddleware, _state_response
from notebooklm_pipeline.state import PipelineState


# Dummy endpoints standing in for the MCP routes
async def status_endpoint(request):
    return JSONResponse({"pipeline_status": "idle"})


async def health(request):
    return JSONResponse({"status": "healthy"})


@pytest.fixture
def make_client(monkeypatch):
    def factory(api_key):
        # The middleware reads the module-level key on every request
        monkeypatch.setattr(server, "_api_key", api_key)
        app = Starlette(
            routes=[Route("/mcp", status_endpoint), Route("/health", health)],
            middleware=[Middleware(APIKeyAuthMiddleware)],
        )
        return TestClient(app)
    return factory


def test_no_api_key_configured(make_client):
    """If no API key is set, everything is open."""
    client = make_client(None)

    assert client.get("/mcp").status_code == 200
    assert client.get("/health").status_code == 200


def test_correct_bearer_token(make_client):
    client = make_client("secret_key")

    response = client.get("/mcp", headers={"Authorization": "Bearer secret_key"})

    assert response.status_code == 200
    assert response.json() == {"pipeline_status": "idle"}


def test_missing_header(make_client):
    client = make_client("secret_key")

    response = client.get("/mcp")

    assert response.status_code == 401
    assert "error" in response.json()


def test_wrong_key(make_client):
    client = make_client("secret_key")

    response = client.get("/mcp", headers={"Authorization": "Bearer wrong_key"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid API key"


def test_non_bearer_scheme(make_client):
    client = make_client("secret_key")

    response = client.get("/mcp", headers={"Authorization": "Basic secret_key"})

    assert response.status_code == 401


def test_health_check_exempt(make_client):
    """Load balancers probe /health without credentials."""
    client = make_client("secret_key")

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_state_response_shape():
    state = PipelineState(status="running", step="wait_source", notebook_id="nb_1")

    response = _state_response(state)

    assert response["status"] == "success"
    assert response["pipeline_status"] == "running"
    assert response["step"] == "wait_source"
    assert response["notebook_id"] == "nb_1"
    assert response["tasks"] == []
