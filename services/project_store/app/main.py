# services/project_store/app/main.py
from fastapi import FastAPI, Depends, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Any, Optional

from core.config import logger as core_logger
from core.exceptions import ProjectStoreError
from core.identity import BearerTokenSessionProvider, IdentityResolver
from core.models import GatewayResponse, ProjectListResponse, ProjectRecord, SaveProjectRequest
from core.storage import BlobStoreClient, PNG_CONTENT_TYPE
from core.supabase_client import get_supabase_client, reset_supabase_client
from core.utils import decode_thumbnail
from .crud import MetadataStoreClient
from .logic import ProjectStore

logger = core_logger.getChild("ProjectStore")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Creates the backend client once and keeps it in app.state."""
    try:
        app.state.supabase = await get_supabase_client()
        logger.info("Project Store started. Supabase client initialized.")
    except Exception as e:
        # Keep serving; requests fail with 503 until configuration is fixed
        logger.error(f"Failed to initialize Supabase client during startup: {e}", exc_info=False)
        app.state.supabase = None
    yield
    app.state.supabase = None
    reset_supabase_client()
    logger.info("Project Store shut down.")


app = FastAPI(
    title="Project Store Service",
    description="Saves, lists, loads and deletes cloud projects (metadata row + document/thumbnail blobs).",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ProjectStoreError)
async def project_store_exception_handler(request: Request, exc: ProjectStoreError) -> JSONResponse:
    logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": exc.message, "details": exc.details},
        headers={"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None,
    )


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_project_store(request: Request, authorization: Optional[str] = Header(None)) -> ProjectStore:
    """Dependency: a ProjectStore bound to the caller's bearer token."""
    client = getattr(request.app.state, "supabase", None)
    if client is None:
        logger.error("Project store dependency not met: Supabase client not available.")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage backend not ready")
    identity = IdentityResolver(BearerTokenSessionProvider(client, _bearer_token(authorization)))
    return ProjectStore(identity, BlobStoreClient(client), MetadataStoreClient(client))


@app.get("/health", tags=["Meta"])
async def health_check(request: Request):
    backend = "initialized" if getattr(request.app.state, "supabase", None) else "not_initialized"
    return {"status": "ok", "dependencies": {"supabase": backend}}


@app.post("/api/projects", response_model=ProjectRecord, status_code=status.HTTP_201_CREATED, tags=["Projects"])
async def create_project(payload: SaveProjectRequest, store: ProjectStore = Depends(get_project_store)):
    thumbnail = decode_thumbnail(payload.thumbnail)
    return await store.save(payload.name, payload.data, thumbnail)


@app.put("/api/projects/{project_id}", response_model=ProjectRecord, tags=["Projects"])
async def update_project(project_id: str, payload: SaveProjectRequest, store: ProjectStore = Depends(get_project_store)):
    thumbnail = decode_thumbnail(payload.thumbnail)
    return await store.update(project_id, payload.name, payload.data, thumbnail)


@app.get("/api/projects", response_model=ProjectListResponse, tags=["Projects"])
async def list_projects(store: ProjectStore = Depends(get_project_store)):
    return ProjectListResponse(projects=await store.list())


@app.get("/api/projects/{project_id}", tags=["Projects"])
async def load_project(project_id: str, store: ProjectStore = Depends(get_project_store)) -> Any:
    return await store.load(project_id)


@app.get("/api/projects/{project_id}/thumbnail", tags=["Projects"])
async def get_project_thumbnail(project_id: str, store: ProjectStore = Depends(get_project_store)):
    image = await store.load_thumbnail_by_id(project_id)
    if image is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No thumbnail for this project")
    return Response(content=image, media_type=PNG_CONTENT_TYPE)


@app.delete("/api/projects/{project_id}", response_model=GatewayResponse, tags=["Projects"])
async def delete_project(project_id: str, store: ProjectStore = Depends(get_project_store)):
    await store.delete(project_id)
    return GatewayResponse(status="success", message=f"Project {project_id} deleted")
