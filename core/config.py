# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging
from typing import List

# Load variables from .env file located in the project root directory
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    load_dotenv() # Fallback

class Settings(BaseSettings):
    """Loads configuration settings from environment variables and .env file."""

    # --- Supabase Configuration ---
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_KEY: str | None = None # SERVICE_ROLE key

    # --- Project Store Configuration ---
    PROJECTS_TABLE: str = "projects"
    PROJECT_STORAGE_BUCKET: str = "user_projects"
    APP_NAMESPACE: str = "sankeymatic" # Scopes listing to this tool's projects
    DEFAULT_PROJECT_NAME: str = "Untitled Project"
    # Top-level keys that identify a bare document (vs. a {"data": ...} envelope)
    DOCUMENT_MARKERS: List[str] = ["flows", "settings"]

    # --- Service URLs ---
    API_GATEWAY_URL: str = "http://localhost:8000"
    PROJECT_STORE_URL: str = os.getenv("PROJECT_STORE_URL", "http://localhost:8001")
    GATEWAY_TIMEOUT: float = float(os.getenv("GATEWAY_TIMEOUT", 60.0))

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instantiate settings once for import
settings = Settings()

# --- Logging Setup ---
log_level_str = os.getenv("LOG_LEVEL", "INFO").upper(); log_level = getattr(logging, log_level_str, logging.INFO)
logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - [%(levelname)s] - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
logger = logging.getLogger("CPS_Core")
logging.getLogger("httpx").setLevel(logging.WARNING); logging.getLogger("supabase").setLevel(logging.WARNING)
logging.getLogger("watchfiles").setLevel(logging.WARNING)

# --- Configuration Validation Checks ---
logger.info(f"Core Settings loaded. Log Level: {log_level_str}")
if not settings.SUPABASE_URL: logger.warning("Supabase URL missing.")
if not settings.SUPABASE_SERVICE_KEY: logger.warning("Supabase Service Key missing.")
if not settings.PROJECT_STORAGE_BUCKET: logger.warning("PROJECT_STORAGE_BUCKET missing, storage calls will fail.")
else: logger.info(f"Using Supabase Storage Bucket: {settings.PROJECT_STORAGE_BUCKET}")
logger.info(f"Project Store Config: Table={settings.PROJECTS_TABLE}, Namespace={settings.APP_NAMESPACE}")
