"""Core functionality for mvp-deploy."""

from mvp_deploy.core.exceptions import (
    BuildTriggerError,
    CommandError,
    DeploymentNotFoundError,
    HostDeploymentError,
    MvpDeployError,
    PackagingError,
    StageError,
    ValidationError,
)
from mvp_deploy.core.naming import make_deployment_id, make_service_name, slugify

__all__ = [
    "MvpDeployError",
    "ValidationError",
    "DeploymentNotFoundError",
    "StageError",
    "PackagingError",
    "BuildTriggerError",
    "HostDeploymentError",
    "CommandError",
    "make_deployment_id",
    "make_service_name",
    "slugify",
]
