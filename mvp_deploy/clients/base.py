"""Collaborator interfaces the deployment pipeline drives."""

from abc import ABC, abstractmethod

from mvp_deploy.core.progress import ProgressChannel
from mvp_deploy.models.build import (
    BuildHandle,
    BuildOutcome,
    HostDeployment,
    PackageManifest,
    ServiceStatus,
)
from mvp_deploy.models.deployment import DeploymentRequest


class Packager(ABC):
    """Bundles a product description into a deployable unit."""

    @abstractmethod
    async def package(self, request: DeploymentRequest) -> PackageManifest:
        pass


class BuildService(ABC):
    """Builds and pushes container images."""

    @abstractmethod
    async def trigger_build(
        self,
        request: DeploymentRequest,
        deployment_id: str,
        service_name: str,
    ) -> BuildHandle:
        """Start an image build for ``service_name``."""
        pass

    @abstractmethod
    async def await_build(
        self, handle: BuildHandle, progress: ProgressChannel
    ) -> BuildOutcome:
        """Wait for a build to finish.

        Intermediate progress is published on ``progress``; values must stay
        inside ``progress.sub_window()``.
        """
        pass


class ContainerHost(ABC):
    """Runs container images as publicly reachable services."""

    @abstractmethod
    async def deploy(
        self, image_reference: str, service_name: str, deployment_id: str
    ) -> HostDeployment:
        pass

    @abstractmethod
    async def shift_traffic(self, service_name: str, revision: str, percent: int) -> bool:
        """Route ``percent`` of traffic to ``revision``. Returns success."""
        pass

    @abstractmethod
    async def get_service_status(self, service_name: str) -> ServiceStatus:
        pass


def scale_progress(window: tuple[int, int], fraction: float) -> int:
    """Map ``fraction`` (0..1) into the open interval ``window``."""
    low, high = window
    span = high - low
    value = low + round(span * fraction)
    return max(low + 1, min(high - 1, value))
