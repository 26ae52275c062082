"""Payload models exchanged with the build and hosting collaborators."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BuildStatus(str, Enum):
    """Cloud Build status values."""

    QUEUED = "QUEUED"
    WORKING = "WORKING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (BuildStatus.SUCCESS, BuildStatus.FAILURE, BuildStatus.CANCELLED)

    @classmethod
    def from_cloud_build(cls, value: str | None) -> "BuildStatus":
        """Map a raw Cloud Build status onto the five pipeline statuses.

        Missing or unrecognised values are treated as still running.
        """
        if not value:
            return cls.WORKING
        value = value.upper()
        if value in cls.__members__:
            return cls[value]
        return _CLOUD_BUILD_STATUSES.get(value, cls.WORKING)


_CLOUD_BUILD_STATUSES = {
    "PENDING": BuildStatus.QUEUED,
    "STATUS_UNKNOWN": BuildStatus.WORKING,
    "TIMEOUT": BuildStatus.FAILURE,
    "INTERNAL_ERROR": BuildStatus.FAILURE,
    "EXPIRED": BuildStatus.FAILURE,
}


class PackageManifest(BaseModel):
    """What the packaging step produced."""

    files: list[str] = Field(default_factory=list)
    size_description: str = ""
    directory: str | None = None


class BuildHandle(BaseModel):
    """Reference to a triggered image build."""

    build_id: str
    status: BuildStatus = BuildStatus.QUEUED
    image_reference: str
    config: dict[str, Any] = Field(default_factory=dict)


class BuildOutcome(BaseModel):
    """Final state of an awaited build."""

    status: BuildStatus
    image_reference: str
    logs: list[str] = Field(default_factory=list)


class HostDeployment(BaseModel):
    """A service revision the container host is now serving."""

    url: str
    service_name: str
    region: str
    revision: str | None = None


class ServiceStatus(BaseModel):
    """Container host's current view of a service."""

    status: str = "LIVE"
    health: str = "healthy"
    instance_count: int = 0
    last_updated: datetime = Field(default_factory=datetime.utcnow)
    revision: str | None = None
