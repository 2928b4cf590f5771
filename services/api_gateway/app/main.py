# services/api_gateway/app/main.py
from fastapi import FastAPI, Request
from core.config import settings
from core.models import GatewayResponse
import httpx
import logging
from contextlib import asynccontextmanager

# Use logger configured in core.config
logger = logging.getLogger("CPS_Core").getChild("APIGateway")


# --- Service Client ---
# Using a single client instance managed by lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Initialize the client and store it in app.state
    logger.info("API Gateway lifespan startup: Initializing HTTPX Client.")
    try:
        app.state.http_client = httpx.AsyncClient(timeout=settings.GATEWAY_TIMEOUT)
        logger.info("HTTPX Client initialized and stored in app.state.")
    except Exception as e:
        logger.error(f"Failed to initialize HTTPX client during startup: {e}", exc_info=True)
        # Requests fail with 503 until the client exists
        app.state.http_client = None

    yield # Application runs here

    # Shutdown: Close the client if it exists
    logger.info("API Gateway lifespan shutdown: Cleaning up resources.")
    if getattr(app.state, 'http_client', None):
        await app.state.http_client.aclose()
        app.state.http_client = None
        logger.info("HTTPX Client closed.")
    else:
        logger.warning("HTTPX Client was not available in app.state during shutdown.")

# --- FastAPI App ---
app = FastAPI(
    title="Cloud Projects API Gateway",
    description="Entry point for saving, listing, loading and deleting cloud projects",
    version="1.0.0",
    lifespan=lifespan # Manage client lifecycle via lifespan
)

# --- Health Check ---
@app.get("/health", response_model=GatewayResponse, tags=["Meta"])
async def health_check(request: Request):
    client_status = "initialized" if getattr(request.app.state, 'http_client', None) else "NOT initialized"
    return GatewayResponse(status="success", message=f"API Gateway is running (HTTP Client: {client_status})")

# --- Routing ---
# Import routers AFTER app is defined
from .routers import projects

app.include_router(projects.router, prefix="/projects", tags=["Projects"])

@app.get("/", response_model=GatewayResponse, tags=["Meta"])
async def read_root():
    return GatewayResponse(status="success", message="Welcome to the Cloud Projects API Gateway")
