import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock
import httpx # For RequestError / Response

from services.api_gateway.app.main import app as api_gateway_app
from core.models import GatewayResponse
from core.config import settings # For checking downstream URLs

AUTH = {"Authorization": "Bearer token-abc"}
PROJECTS_URL = f"{settings.PROJECT_STORE_URL}/api/projects"


def downstream(status_code: int, method: str = "GET", url: str = PROJECTS_URL, **kwargs) -> httpx.Response:
    """A real httpx.Response so raise_for_status behaves like production."""
    return httpx.Response(status_code, request=httpx.Request(method, url), **kwargs)


@pytest.fixture
def client():
    with TestClient(api_gateway_app) as test_client:
        yield test_client


@pytest.fixture
def mock_app_http_client(client):
    # lifespan has already created a real client; swap it for a mock
    original_http_client = getattr(api_gateway_app.state, 'http_client', None)
    mock_client_instance = AsyncMock(spec=httpx.AsyncClient)
    api_gateway_app.state.http_client = mock_client_instance

    yield mock_client_instance

    api_gateway_app.state.http_client = original_http_client


# --- Test Health and Root Endpoints ---
def test_health_check(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    json_response = response.json()
    assert json_response["status"] == "success"
    assert "API Gateway is running (HTTP Client: initialized)" in json_response["message"]

def test_read_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200
    assert "Welcome to the Cloud Projects API Gateway" in response.json()["message"]


# --- Save ---
def test_route_save_project_success(client: TestClient, mock_app_http_client: AsyncMock):
    stored = {"id": "p1", "name": "Q1 Plan", "storage_path": "u1/p1.json", "thumbnail_path": None}
    mock_app_http_client.request.return_value = downstream(201, "POST", json=stored)

    payload = {"name": "Q1 Plan", "data": {"flows": "a[1]b"}}
    response = client.post("/projects", json=payload, headers=AUTH)

    assert response.status_code == 200
    assert response.json() == GatewayResponse(status="success", data=stored, message="Project saved").model_dump()
    args, kwargs = mock_app_http_client.request.call_args
    assert args == ("POST", PROJECTS_URL)
    assert kwargs["json"] == {"name": "Q1 Plan", "data": {"flows": "a[1]b"}, "thumbnail": None}
    assert kwargs["headers"] == AUTH


def test_route_update_project_targets_id(client: TestClient, mock_app_http_client: AsyncMock):
    mock_app_http_client.request.return_value = downstream(200, "PUT", json={"id": "p1", "name": "v2"})

    response = client.put("/projects/p1", json={"name": "v2", "data": {}}, headers=AUTH)

    assert response.status_code == 200
    args, _ = mock_app_http_client.request.call_args
    assert args == ("PUT", f"{PROJECTS_URL}/p1")


# --- List / Load ---
def test_route_list_projects_unwraps_projects(client: TestClient, mock_app_http_client: AsyncMock):
    projects = [{"id": "p2", "name": "Newer"}, {"id": "p1", "name": "Older"}]
    mock_app_http_client.request.return_value = downstream(200, json={"projects": projects})

    response = client.get("/projects", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["data"] == projects


def test_route_list_projects_without_auth_header(client: TestClient, mock_app_http_client: AsyncMock):
    mock_app_http_client.request.return_value = downstream(401, json={"error": "NotAuthenticated", "message": "Please sign in."})

    response = client.get("/projects")

    assert response.status_code == 401
    assert response.json()["detail"] == "Please sign in."
    _, kwargs = mock_app_http_client.request.call_args
    assert kwargs["headers"] == {}


def test_route_load_project(client: TestClient, mock_app_http_client: AsyncMock):
    mock_app_http_client.request.return_value = downstream(200, json={"flows": "a[1]b"})

    response = client.get("/projects/p1", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["data"] == {"flows": "a[1]b"}


def test_route_load_project_not_found(client: TestClient, mock_app_http_client: AsyncMock):
    mock_app_http_client.request.return_value = downstream(404, json={"error": "NotFound", "message": "Project not found."})

    response = client.get("/projects/missing", headers=AUTH)

    assert response.status_code == 404
    assert response.json()["detail"] == "Project not found."


# --- Thumbnail ---
def test_route_thumbnail_passes_bytes_through(client: TestClient, mock_app_http_client: AsyncMock):
    png = b"\x89PNG\r\n\x1a\nthumb"
    mock_app_http_client.request.return_value = downstream(200, content=png, headers={"content-type": "image/png"})

    response = client.get("/projects/p1/thumbnail", headers=AUTH)

    assert response.status_code == 200
    assert response.content == png
    assert response.headers["content-type"] == "image/png"


# --- Delete ---
def test_route_delete_project(client: TestClient, mock_app_http_client: AsyncMock):
    mock_app_http_client.request.return_value = downstream(200, "DELETE", json={"status": "success"})

    response = client.delete("/projects/p1", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["status"] == "success"
    args, _ = mock_app_http_client.request.call_args
    assert args == ("DELETE", f"{PROJECTS_URL}/p1")


def test_route_delete_project_downstream_failure(client: TestClient, mock_app_http_client: AsyncMock):
    mock_app_http_client.request.return_value = downstream(
        502, "DELETE", json={"error": "MetadataDeleteFailed", "message": "Deleting project metadata failed"})

    response = client.delete("/projects/p1", headers=AUTH)

    assert response.status_code == 502
    assert "Deleting project metadata failed" in response.json()["detail"]


# --- Connectivity ---
def test_route_projects_connection_error(client: TestClient, mock_app_http_client: AsyncMock):
    mock_app_http_client.request.side_effect = httpx.ConnectError("Mocked connection error", request=httpx.Request("GET", PROJECTS_URL))

    response = client.get("/projects", headers=AUTH)

    assert response.status_code == 503
    assert "Project Store service unavailable" in response.json()["detail"]


def test_route_projects_without_http_client(client: TestClient):
    original = api_gateway_app.state.http_client
    api_gateway_app.state.http_client = None
    try:
        response = client.get("/projects", headers=AUTH)
    finally:
        api_gateway_app.state.http_client = original
    assert response.status_code == 503
