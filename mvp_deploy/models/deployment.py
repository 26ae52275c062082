"""Deployment data models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_OWNER_ID = "user"

# Artifact ids become directory names and URL path segments
ARTIFACT_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"


class Stage(str, Enum):
    """Ordered pipeline stages, each with a fixed progress percentage."""

    INITIALIZING = "initializing"
    PACKAGING = "packaging"
    BUILDING = "building"
    PUSHING = "pushing"
    DEPLOYING = "deploying"
    FINALIZING = "finalizing"
    LIVE = "live"

    @property
    def progress(self) -> int:
        return _STAGE_PROGRESS[self][0]

    @property
    def message(self) -> str:
        return _STAGE_PROGRESS[self][1]

    @property
    def next_stage(self) -> "Stage | None":
        stages = list(Stage)
        index = stages.index(self)
        return stages[index + 1] if index + 1 < len(stages) else None


_STAGE_PROGRESS: dict[Stage, tuple[int, str]] = {
    Stage.INITIALIZING: (10, "Preparing your MVP for deployment..."),
    Stage.PACKAGING: (25, "Packaging project files..."),
    Stage.BUILDING: (45, "Building container image..."),
    Stage.PUSHING: (65, "Pushing to Artifact Registry..."),
    Stage.DEPLOYING: (80, "Deploying to Cloud Run..."),
    Stage.FINALIZING: (95, "Finalizing deployment..."),
    Stage.LIVE: (100, "Your MVP is live!"),
}


class DeploymentStatus(str, Enum):
    """Terminal outcome of one deployment attempt."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class DeploymentRequest(BaseModel):
    """Input to a deployment attempt."""

    artifact_id: str = Field(..., min_length=1, pattern=ARTIFACT_ID_PATTERN)
    display_name: str = Field(..., min_length=1)
    owner_id: str = DEFAULT_OWNER_ID

    # Opaque product description handed to packaging
    description: str = ""
    features: list[str] = Field(default_factory=list)

    @field_validator("artifact_id", "display_name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("owner_id", mode="before")
    @classmethod
    def default_owner(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_OWNER_ID
        return v


class ProgressEvent(BaseModel):
    """Progress notification delivered to the caller's observer."""

    stage: Stage
    progress: int = Field(..., ge=0, le=100)
    message: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class DeploymentResult(BaseModel):
    """Terminal result of a deployment attempt."""

    status: DeploymentStatus
    message: str

    deployment_id: str | None = None

    # Populated on success
    url: str | None = None
    service_name: str | None = None

    # Populated on failure
    error: str | None = None
    logs: list[str] = Field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.status == DeploymentStatus.SUCCESS

    @classmethod
    def success(
        cls, url: str, deployment_id: str, service_name: str
    ) -> "DeploymentResult":
        return cls(
            status=DeploymentStatus.SUCCESS,
            url=url,
            deployment_id=deployment_id,
            service_name=service_name,
            message=f"Your MVP is live at {url}",
        )

    @classmethod
    def failure(
        cls,
        error: str,
        logs: list[str] | None = None,
        deployment_id: str | None = None,
    ) -> "DeploymentResult":
        return cls(
            status=DeploymentStatus.FAILURE,
            error=error,
            deployment_id=deployment_id,
            logs=list(logs or []),
            message=f"Deployment failed: {error}",
        )


class DeploymentRecord(BaseModel):
    """Outcome persisted against the artifact's record."""

    url: str
    status: str = "completed"
    deployment_id: str
    deployed_at: datetime = Field(default_factory=datetime.utcnow)


class RecordUpdateResult(BaseModel):
    """Result of a record store update."""

    success: bool
    error: str | None = None


class RollbackResult(BaseModel):
    """Result of shifting traffic back to an earlier revision."""

    success: bool
    message: str


class DeploymentStatusReport(BaseModel):
    """Read-only view of a deployment's host resource."""

    deployment_id: str
    service_name: str
    status: str
    health: str
    instance_count: int
    last_updated: datetime = Field(default_factory=datetime.utcnow)


class DeploymentLogEntry(BaseModel):
    """One recorded pipeline event."""

    timestamp: datetime = Field(default_factory=datetime.utcnow)
    level: str = "INFO"
    actor_id: str
    event_type: str
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
