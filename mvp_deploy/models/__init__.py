"""Data models for mvp-deploy."""

from mvp_deploy.models.build import (
    BuildHandle,
    BuildOutcome,
    BuildStatus,
    HostDeployment,
    PackageManifest,
    ServiceStatus,
)
from mvp_deploy.models.deployment import (
    DEFAULT_OWNER_ID,
    DeploymentLogEntry,
    DeploymentRecord,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatus,
    DeploymentStatusReport,
    ProgressEvent,
    RecordUpdateResult,
    RollbackResult,
    Stage,
)
from mvp_deploy.models.generation import ContainerBundle, GeneratedFile

__all__ = [
    # Deployment models
    "DEFAULT_OWNER_ID",
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentStatus",
    "DeploymentRecord",
    "DeploymentStatusReport",
    "DeploymentLogEntry",
    "ProgressEvent",
    "RecordUpdateResult",
    "RollbackResult",
    "Stage",
    # Container bundle
    "ContainerBundle",
    "GeneratedFile",
    # Collaborator payloads
    "BuildHandle",
    "BuildOutcome",
    "BuildStatus",
    "HostDeployment",
    "PackageManifest",
    "ServiceStatus",
]
