"""Health check endpoints."""

import shutil
from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel

from mvp_deploy import __version__
from mvp_deploy.config import settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str
    environment: str
    real_deployments: bool
    timestamp: datetime


class ReadinessResponse(BaseModel):
    """Whether the configured deployment target can be reached."""

    ready: bool
    project_id: str
    region: str
    gcloud_available: bool | None = None
    record_store: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness of the API process."""
    return HealthResponse(
        version=__version__,
        environment=settings.app_env,
        real_deployments=settings.gcp_deploy_real,
        timestamp=datetime.utcnow(),
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check() -> ReadinessResponse:
    """Real deployments need the gcloud CLI on the path."""
    gcloud_available = None
    if settings.gcp_deploy_real:
        gcloud_available = shutil.which(settings.gcloud_binary) is not None

    return ReadinessResponse(
        ready=gcloud_available is not False,
        project_id=settings.gcp_project_id,
        region=settings.gcp_region,
        gcloud_available=gcloud_available,
        record_store="http" if settings.record_store_url else "memory",
    )
