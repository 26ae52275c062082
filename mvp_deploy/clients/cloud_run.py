"""Container host collaborators backed by Google Cloud Run."""

import asyncio
import secrets
import string
from datetime import datetime
from typing import Any

from mvp_deploy.clients.base import ContainerHost
from mvp_deploy.clients.gcloud import GcloudRunner
from mvp_deploy.config import CloudConfig
from mvp_deploy.core.exceptions import CommandError, HostDeploymentError
from mvp_deploy.core.naming import slugify
from mvp_deploy.generators.container import CONTAINER_PORT
from mvp_deploy.models.build import HostDeployment, ServiceStatus
from mvp_deploy.utils.logging import get_logger

# Cloud Run service settings
SERVICE_MEMORY = "512Mi"
SERVICE_CPU = "1"
MIN_INSTANCES = 0
MAX_INSTANCES = 10

SIMULATED_DEPLOY_SECONDS = 3.0


def _parse_timestamp(value: str | None) -> datetime:
    if not value:
        return datetime.utcnow()
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.utcnow()


def _ready_condition(service: dict[str, Any]) -> dict[str, Any]:
    for condition in service.get("status", {}).get("conditions", []):
        if condition.get("type") == "Ready":
            return condition
    return {}


class CloudRunHost(ContainerHost):
    """Deploys images with ``gcloud run``."""

    def __init__(self, config: CloudConfig, runner: GcloudRunner | None = None):
        self.config = config
        self.runner = runner or GcloudRunner(
            binary=config.gcloud_binary,
            project_id=config.project_id,
        )
        self.logger = get_logger("client.cloud_run")

    async def deploy(
        self, image_reference: str, service_name: str, deployment_id: str
    ) -> HostDeployment:
        try:
            service = await self.runner.run_json(
                [
                    "run",
                    "deploy",
                    service_name,
                    f"--image={image_reference}",
                    f"--region={self.config.region}",
                    "--platform=managed",
                    "--allow-unauthenticated",
                    f"--port={CONTAINER_PORT}",
                    f"--memory={SERVICE_MEMORY}",
                    f"--cpu={SERVICE_CPU}",
                    f"--min-instances={MIN_INSTANCES}",
                    f"--max-instances={MAX_INSTANCES}",
                    f"--labels=deployment-id={slugify(deployment_id)[:63]}",
                ]
            )
        except CommandError as e:
            raise HostDeploymentError(e.message, stage="deploying", logs=e.output_lines)

        status = service.get("status", {}) if isinstance(service, dict) else {}
        url = status.get("url")
        if not url:
            raise HostDeploymentError(
                f"no URL reported for service {service_name}", stage="deploying"
            )

        self.logger.info(
            "cloud_run.deployed",
            service_name=service_name,
            url=url,
            revision=status.get("latestReadyRevisionName"),
        )

        return HostDeployment(
            url=url,
            service_name=service_name,
            region=self.config.region,
            revision=status.get("latestReadyRevisionName"),
        )

    async def shift_traffic(self, service_name: str, revision: str, percent: int) -> bool:
        try:
            await self.runner.run_json(
                [
                    "run",
                    "services",
                    "update-traffic",
                    service_name,
                    f"--to-revisions={revision}={percent}",
                    f"--region={self.config.region}",
                ]
            )
        except CommandError as e:
            self.logger.error(
                "cloud_run.traffic_update_failed",
                service_name=service_name,
                revision=revision,
                error=e.message,
            )
            return False
        return True

    async def get_service_status(self, service_name: str) -> ServiceStatus:
        service = await self.runner.run_json(
            [
                "run",
                "services",
                "describe",
                service_name,
                f"--region={self.config.region}",
            ]
        )

        ready = _ready_condition(service)
        is_ready = ready.get("status") == "True"
        annotations = (
            service.get("spec", {})
            .get("template", {})
            .get("metadata", {})
            .get("annotations", {})
        )
        min_scale = annotations.get("autoscaling.knative.dev/minScale")

        return ServiceStatus(
            status="LIVE" if is_ready else "NOT_READY",
            health="healthy" if is_ready else "unhealthy",
            instance_count=int(min_scale) if min_scale else int(is_ready),
            last_updated=_parse_timestamp(ready.get("lastTransitionTime")),
            revision=service.get("status", {}).get("latestReadyRevisionName"),
        )


class SimulatedCloudRunHost(ContainerHost):
    """In-memory stand-in for Cloud Run with a fixed deploy delay."""

    def __init__(self, config: CloudConfig):
        self.config = config
        self.logger = get_logger("client.simulated_run")
        self._services: dict[str, dict[str, Any]] = {}

    @staticmethod
    def _suffix(length: int = 7) -> str:
        alphabet = string.ascii_lowercase + string.digits
        return "".join(secrets.choice(alphabet) for _ in range(length))

    async def deploy(
        self, image_reference: str, service_name: str, deployment_id: str
    ) -> HostDeployment:
        await asyncio.sleep(SIMULATED_DEPLOY_SECONDS * self.config.simulated_delay_scale)

        service = self._services.setdefault(
            service_name,
            {"url": f"https://{service_name}-{self._suffix()}.a.run.app", "revisions": []},
        )
        revision = f"{service_name}-{len(service['revisions']) + 1:05d}-{self._suffix(3)}"
        service["revisions"].append(revision)
        service["traffic"] = {revision: 100}
        service["last_updated"] = datetime.utcnow()

        self.logger.info(
            "simulated_run.deployed",
            service_name=service_name,
            revision=revision,
            deployment_id=deployment_id,
        )

        return HostDeployment(
            url=service["url"],
            service_name=service_name,
            region=self.config.region,
            revision=revision,
        )

    async def shift_traffic(self, service_name: str, revision: str, percent: int) -> bool:
        service = self._services.setdefault(service_name, {"url": "", "revisions": []})
        service["traffic"] = {revision: percent}
        service["last_updated"] = datetime.utcnow()
        return True

    async def get_service_status(self, service_name: str) -> ServiceStatus:
        service = self._services.get(service_name)
        if not service:
            return ServiceStatus(status="UNKNOWN", health="unknown", instance_count=0)

        traffic = service.get("traffic", {})
        serving = max(traffic, key=traffic.get) if traffic else None
        return ServiceStatus(
            status="LIVE",
            health="healthy",
            instance_count=1,
            last_updated=service.get("last_updated", datetime.utcnow()),
            revision=serving,
        )
