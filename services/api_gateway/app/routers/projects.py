# services/api_gateway/app/routers/projects.py
from fastapi import APIRouter, HTTPException, Body, Request, Depends, Header, Response
from core.models import GatewayResponse, SaveProjectRequest
from core.config import settings
import httpx
import logging
from typing import Optional

# Use logger configured in core.config, get child logger
logger = logging.getLogger("CPS_Core").getChild("APIGateway").getChild("ProjectRouter")

router = APIRouter()


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Dependency function to get the HTTP client from app state."""
    client = getattr(request.app.state, 'http_client', None)
    if not client:
        logger.error("HTTP client dependency not met: Client not available in application state.")
        raise HTTPException(status_code=503, detail="Gateway internal error: HTTP client not ready")
    return client


def _auth_headers(authorization: Optional[str]) -> dict:
    return {"Authorization": authorization} if authorization else {}


async def _forward(http_client: httpx.AsyncClient, method: str, path: str,
                   authorization: Optional[str], json: Optional[dict] = None) -> httpx.Response:
    """Calls the Project Store and maps its failures onto gateway HTTP errors."""
    downstream_url = f"{settings.PROJECT_STORE_URL}/api/projects{path}"
    try:
        response = await http_client.request(method, downstream_url, json=json, headers=_auth_headers(authorization))
        response.raise_for_status()
        logger.info(f"Project Store {method} {path or '/'} successful (Status: {response.status_code})")
        return response
    except httpx.HTTPStatusError as e:
        error_detail = f"Project Store Error ({e.response.status_code})"
        try: downstream_error = e.response.json().get('message') or e.response.json().get('detail', e.response.text)
        except Exception: downstream_error = e.response.text
        logger.error(f"{error_detail} calling {downstream_url}: {downstream_error}", exc_info=False)
        raise HTTPException(status_code=e.response.status_code, detail=downstream_error or error_detail)
    except httpx.RequestError as e:
        logger.error(f"Could not connect to Project Store at {downstream_url}: {e}")
        raise HTTPException(status_code=503, detail="Project Store service unavailable.")
    except Exception as e:
        logger.error(f"Gateway error during project routing: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal Gateway Error")


@router.post("", response_model=GatewayResponse)
async def route_save_project(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    payload: SaveProjectRequest = Body(...),
    authorization: Optional[str] = Header(None),
):
    """Route new-project saves to the Project Store Service."""
    logger.info(f"Routing save request: name='{payload.name}', thumbnail={payload.thumbnail is not None}")
    response = await _forward(http_client, "POST", "", authorization, json=payload.model_dump())
    return GatewayResponse(status="success", data=response.json(), message="Project saved")


@router.put("/{project_id}", response_model=GatewayResponse)
async def route_update_project(
    project_id: str,
    http_client: httpx.AsyncClient = Depends(get_http_client),
    payload: SaveProjectRequest = Body(...),
    authorization: Optional[str] = Header(None),
):
    logger.info(f"Routing update request for project_id: {project_id}")
    response = await _forward(http_client, "PUT", f"/{project_id}", authorization, json=payload.model_dump())
    return GatewayResponse(status="success", data=response.json(), message="Project saved")


@router.get("", response_model=GatewayResponse)
async def route_list_projects(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    authorization: Optional[str] = Header(None),
):
    response = await _forward(http_client, "GET", "", authorization)
    return GatewayResponse(status="success", data=response.json().get("projects", []))


@router.get("/{project_id}", response_model=GatewayResponse)
async def route_load_project(
    project_id: str,
    http_client: httpx.AsyncClient = Depends(get_http_client),
    authorization: Optional[str] = Header(None),
):
    logger.info(f"Routing load request for project_id: {project_id}")
    response = await _forward(http_client, "GET", f"/{project_id}", authorization)
    return GatewayResponse(status="success", data=response.json())


@router.get("/{project_id}/thumbnail")
async def route_project_thumbnail(
    project_id: str,
    http_client: httpx.AsyncClient = Depends(get_http_client),
    authorization: Optional[str] = Header(None),
):
    """Passes the PNG bytes through untouched."""
    response = await _forward(http_client, "GET", f"/{project_id}/thumbnail", authorization)
    return Response(content=response.content, media_type=response.headers.get("content-type", "image/png"))


@router.delete("/{project_id}", response_model=GatewayResponse)
async def route_delete_project(
    project_id: str,
    http_client: httpx.AsyncClient = Depends(get_http_client),
    authorization: Optional[str] = Header(None),
):
    logger.info(f"Routing delete request for project_id: {project_id}")
    await _forward(http_client, "DELETE", f"/{project_id}", authorization)
    return GatewayResponse(status="success", message=f"Project {project_id} deleted")
