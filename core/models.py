# core/models.py
from pydantic import BaseModel, Field
from typing import List, Optional, Any
import datetime

# --- Core Data Models ---

class ProjectRecord(BaseModel):
    """Metadata row for a saved project. Field aliases are the table's column names."""
    id: str = Field(..., description="Unique project ID, generated client-side on first save")
    owner_id: Optional[str] = Field(None, alias="user_id", description="User who created the project; never changed after creation")
    name: str = Field(..., description="Display name")
    app_namespace: Optional[str] = Field(None, alias="app_name", description="Tool that owns this project; scopes listing")
    document_path: Optional[str] = Field(None, alias="storage_path", description="Path of the document blob in the bucket")
    thumbnail_path: Optional[str] = Field(None, description="Path of the preview PNG, null when no thumbnail is known to exist")
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    class Config:
        populate_by_name = True
        from_attributes = True

    def to_row(self) -> dict:
        """Serializes to a JSON-safe dict keyed by column name."""
        return self.model_dump(mode="json", by_alias=True)


class ProjectSummary(BaseModel):
    """Lightweight project info for list views."""
    id: str
    name: str
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
    thumbnail_path: Optional[str] = None

    class Config:
        from_attributes = True


class Session(BaseModel):
    """What the auth collaborator hands back for a signed-in user."""
    user_id: str
    access_token: str


class Identity(BaseModel):
    user_id: str
    credential: str


class ThumbnailResult(BaseModel):
    """Outcome of one per-record thumbnail fetch."""
    project_id: str
    image: Optional[bytes] = None
    error: Optional[str] = None


# --- Service Request/Response Models ---

class SaveProjectRequest(BaseModel):
    """Body for creating or updating a project."""
    name: Optional[str] = Field(None, description="Display name; blank falls back to the default project name")
    data: Any = Field(..., description="The diagram document, stored as-is")
    thumbnail: Optional[str] = Field(None, description="Base64 PNG, optionally as a data: URL")


class ProjectListResponse(BaseModel):
    projects: List[ProjectSummary] = Field(default_factory=list)


# --- API Gateway Request/Response Models ---

class GatewayResponse(BaseModel):
    """Standard response wrapper for the API Gateway."""
    status: str = Field(description="'success' or 'error'")
    data: Any | None = Field(default=None, description="The primary data payload (depends on the endpoint)")
    message: Optional[str] = Field(default=None, description="Optional status message or error details")
