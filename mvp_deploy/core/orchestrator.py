"""Deployment Orchestrator.

Takes a finished MVP description live on Cloud Run:

    INITIALIZING -> PACKAGING -> BUILDING -> PUSHING -> DEPLOYING
        -> FINALIZING -> LIVE

Every expected failure ends the attempt with a FAILURE result instead of an
exception. Writing the outcome back to the record store and appending to
the event log are best-effort and never change the result.
"""

import asyncio
import contextlib
from dataclasses import dataclass
from pathlib import Path
from tempfile import gettempdir
from typing import Any, AsyncIterator

from mvp_deploy.clients.base import BuildService, ContainerHost, Packager
from mvp_deploy.clients.cloud_build import CloudBuildService, SimulatedBuildService
from mvp_deploy.clients.cloud_run import CloudRunHost, SimulatedCloudRunHost
from mvp_deploy.clients.packaging import ContainerBundlePackager
from mvp_deploy.config import CloudConfig, Settings, get_settings
from mvp_deploy.core import event_log as events
from mvp_deploy.core.event_log import EventLog, MemoryEventLog, log_event
from mvp_deploy.core.exceptions import (
    BuildTriggerError,
    DeploymentNotFoundError,
    HostDeploymentError,
    PackagingError,
    StageError,
    ValidationError,
)
from mvp_deploy.core.naming import DeploymentIdFactory, make_service_name
from mvp_deploy.core.progress import ProgressChannel, ProgressObserver
from mvp_deploy.core.records import HttpRecordStore, MemoryRecordStore, RecordStore
from mvp_deploy.models.build import BuildHandle, BuildStatus, HostDeployment
from mvp_deploy.models.deployment import (
    DeploymentLogEntry,
    DeploymentRecord,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatusReport,
    RollbackResult,
    Stage,
)
from mvp_deploy.utils.logging import get_logger


@dataclass
class Attempt:
    """What the orchestrator remembers about one deployment attempt."""

    artifact_id: str
    service_name: str
    state: str = "IN_PROGRESS"
    url: str | None = None


class DeploymentOrchestrator:
    """Drives one deployment attempt at a time per service name.

    All collaborators are injected; ``config`` is the only configuration the
    orchestrator reads.
    """

    def __init__(
        self,
        config: CloudConfig,
        packager: Packager,
        builder: BuildService,
        host: ContainerHost,
        records: RecordStore,
        event_log: EventLog,
        max_attempts: int = 10_000,
    ):
        self.config = config
        self.packager = packager
        self.builder = builder
        self.host = host
        self.records = records
        self.event_log = event_log
        self.max_attempts = max_attempts
        self.logger = get_logger("orchestrator")

        self._ids = DeploymentIdFactory(prefix=config.deployment_id_prefix)
        self._attempts: dict[str, Attempt] = {}
        self._service_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    def service_name_for(self, request: DeploymentRequest) -> str:
        """Host service name a request deploys to."""
        return make_service_name(
            request.display_name,
            request.owner_id,
            self.config.service_name_max_length,
        )

    @contextlib.asynccontextmanager
    async def _serialized(self, service_name: str) -> AsyncIterator[None]:
        """Hold the per-service lock; it is dropped once nobody holds or awaits it."""
        if not self.config.serialize_service_deploys:
            yield
            return

        lock = self._service_locks.setdefault(service_name, asyncio.Lock())
        self._lock_users[service_name] = self._lock_users.get(service_name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[service_name] -= 1
            if not self._lock_users[service_name]:
                del self._lock_users[service_name]
                del self._service_locks[service_name]

    def _remember(self, deployment_id: str, attempt: Attempt) -> None:
        """Index an attempt, evicting the oldest finished ones past ``max_attempts``."""
        self._attempts[deployment_id] = attempt
        excess = len(self._attempts) - self.max_attempts
        if excess <= 0:
            return
        finished = [k for k, a in self._attempts.items() if a.state != "IN_PROGRESS"]
        for key in finished[:excess]:
            del self._attempts[key]

    async def deploy(
        self,
        request: DeploymentRequest,
        on_progress: ProgressObserver,
    ) -> DeploymentResult:
        """Run the full pipeline for ``request``.

        Args:
            request: The product to deploy
            on_progress: Called synchronously with every progress event

        Returns:
            Exactly one terminal result; stage failures are reported in it

        Raises:
            ValidationError: If ``on_progress`` is not callable
        """
        if not callable(on_progress):
            raise ValidationError("on_progress must be callable")

        deployment_id = self._ids.next_id(request.artifact_id)
        service_name = self.service_name_for(request)
        attempt = Attempt(artifact_id=request.artifact_id, service_name=service_name)
        self._remember(deployment_id, attempt)

        result: DeploymentResult | None = None
        try:
            async with self._serialized(service_name):
                result = await self._run(request, deployment_id, service_name, on_progress)
        finally:
            # An attempt that did not produce a result counts as failed
            attempt.state = result.status.value if result else "FAILURE"
            attempt.url = result.url if result else None
        return result

    async def _run(
        self,
        request: DeploymentRequest,
        deployment_id: str,
        service_name: str,
        on_progress: ProgressObserver,
    ) -> DeploymentResult:
        log = self.logger.bind(
            deployment_id=deployment_id,
            artifact_id=request.artifact_id,
            service_name=service_name,
        )
        channel = ProgressChannel(on_progress, deployment_id=deployment_id)
        log.info("deployment.started")

        try:
            channel.enter(Stage.INITIALIZING)

            channel.enter(Stage.PACKAGING)
            manifest = await self._package(request)
            log.info("deployment.packaged", files=len(manifest.files), size=manifest.size_description)

            channel.enter(Stage.BUILDING)
            handle = await self._trigger_build(request, deployment_id, service_name)
            await log_event(
                self.event_log,
                request.artifact_id,
                events.BUILD_STARTED,
                {
                    "deployment_id": deployment_id,
                    "build_id": handle.build_id,
                    "build_config": handle.config,
                    "message": "Build started",
                },
            )

            channel.enter(Stage.PUSHING)
            image_reference = await self._await_build(handle, channel)

            channel.enter(Stage.DEPLOYING)
            deployment = await self._deploy(image_reference, service_name, deployment_id)
            await log_event(
                self.event_log,
                request.artifact_id,
                events.DEPLOYMENT_SUCCESS,
                {
                    "deployment_id": deployment_id,
                    "url": deployment.url,
                    "service_name": service_name,
                    "region": deployment.region,
                    "revision": deployment.revision,
                    "message": "Deployment complete",
                },
            )

            channel.enter(Stage.FINALIZING)
            await self._update_record(request.artifact_id, deployment.url, deployment_id)

            channel.enter(Stage.LIVE)

        except Exception as e:
            error = e.message if isinstance(e, StageError) else str(e)
            logs = list(getattr(e, "logs", None) or [])
            log.error(
                "deployment.failed",
                stage=channel.stage.value if channel.stage else None,
                error=error,
                exc_info=not isinstance(e, StageError),
            )
            await log_event(
                self.event_log,
                request.artifact_id,
                events.DEPLOYMENT_FAILED,
                {
                    "deployment_id": deployment_id,
                    "stage": channel.stage.value if channel.stage else None,
                    "error": error,
                    "message": f"Deployment failed: {error}",
                },
            )
            return DeploymentResult.failure(error, logs, deployment_id)

        log.info("deployment.live", url=deployment.url)
        return DeploymentResult.success(deployment.url, deployment_id, service_name)

    async def _package(self, request: DeploymentRequest):
        try:
            return await self.packager.package(request)
        except StageError:
            raise
        except Exception as e:
            raise PackagingError(str(e), stage=Stage.PACKAGING.value) from e

    async def _trigger_build(
        self, request: DeploymentRequest, deployment_id: str, service_name: str
    ) -> BuildHandle:
        try:
            return await self.builder.trigger_build(request, deployment_id, service_name)
        except StageError:
            raise
        except Exception as e:
            raise BuildTriggerError(str(e), stage=Stage.BUILDING.value) from e

    async def _await_build(self, handle: BuildHandle, channel: ProgressChannel) -> str:
        try:
            outcome = await self.builder.await_build(handle, channel)
        except StageError:
            raise
        except Exception as e:
            raise BuildTriggerError(str(e), stage=Stage.PUSHING.value) from e

        if outcome.status != BuildStatus.SUCCESS:
            raise BuildTriggerError(
                f"build {handle.build_id} finished with status {outcome.status.value}",
                stage=Stage.PUSHING.value,
                logs=outcome.logs,
            )
        return outcome.image_reference

    async def _deploy(
        self, image_reference: str, service_name: str, deployment_id: str
    ) -> HostDeployment:
        try:
            return await self.host.deploy(image_reference, service_name, deployment_id)
        except StageError:
            raise
        except Exception as e:
            raise HostDeploymentError(str(e), stage=Stage.DEPLOYING.value) from e

    async def _update_record(self, artifact_id: str, url: str, deployment_id: str) -> bool:
        """Persist the outcome; failures are logged and otherwise ignored."""
        record = DeploymentRecord(url=url, deployment_id=deployment_id)
        try:
            result = await self.records.update_deployment_record(artifact_id, record)
            error = None if result.success else (result.error or "unknown error")
        except Exception as e:
            error = str(e)

        if error is None:
            return True

        self.logger.warning(
            "deployment.record_update_failed",
            artifact_id=artifact_id,
            deployment_id=deployment_id,
            error=error,
        )
        await log_event(
            self.event_log,
            artifact_id,
            events.RECORD_UPDATE_FAILED,
            {"deployment_id": deployment_id, "error": error, "message": error},
        )
        return False

    async def retry(
        self,
        request: DeploymentRequest,
        previous_deployment_id: str,
        on_progress: ProgressObserver,
    ) -> DeploymentResult:
        """Run a fresh attempt for a product whose earlier attempt failed.

        ``previous_deployment_id`` is only used for log correlation.
        """
        self.logger.info(
            "deployment.retry",
            artifact_id=request.artifact_id,
            previous_deployment_id=previous_deployment_id,
        )
        return await self.deploy(request, on_progress)

    async def rollback(self, service_name: str, previous_revision: str) -> RollbackResult:
        """Send all traffic of ``service_name`` back to ``previous_revision``."""
        if not service_name or not previous_revision:
            raise ValidationError("service_name and previous_revision are required")

        try:
            shifted = await self.host.shift_traffic(service_name, previous_revision, 100)
        except Exception as e:
            self.logger.error(
                "deployment.rollback_failed",
                service_name=service_name,
                revision=previous_revision,
                error=str(e),
            )
            return RollbackResult(success=False, message=f"Rollback failed: {e}")

        if not shifted:
            return RollbackResult(
                success=False,
                message=f"Rollback failed: traffic for {service_name} was not moved to {previous_revision}",
            )

        await log_event(
            self.event_log,
            service_name,
            events.ROLLBACK,
            {
                "service_name": service_name,
                "revision": previous_revision,
                "message": f"Rolled back to {previous_revision}",
            },
        )
        self.logger.info(
            "deployment.rolled_back",
            service_name=service_name,
            revision=previous_revision,
        )
        return RollbackResult(success=True, message="Rollback successful")

    def _attempt(self, deployment_id: str) -> Attempt:
        attempt = self._attempts.get(deployment_id)
        if attempt is None:
            raise DeploymentNotFoundError(deployment_id)
        return attempt

    async def get_status(self, deployment_id: str) -> DeploymentStatusReport:
        """Current host view of the service a deployment targeted.

        Raises:
            DeploymentNotFoundError: If the id was never issued here or has
                aged out of the attempt index
        """
        attempt = self._attempt(deployment_id)

        try:
            service = await self.host.get_service_status(attempt.service_name)
            status, health = service.status, service.health
            instance_count, last_updated = service.instance_count, service.last_updated
        except Exception as e:
            self.logger.warning(
                "deployment.status_unavailable",
                deployment_id=deployment_id,
                error=str(e),
            )
            status, health, instance_count, last_updated = "UNKNOWN", "unknown", 0, None

        if attempt.state == "IN_PROGRESS":
            status = "DEPLOYING"
        elif attempt.state == "FAILURE":
            status = "FAILED"

        report: dict[str, Any] = {
            "deployment_id": deployment_id,
            "service_name": attempt.service_name,
            "status": status,
            "health": health,
            "instance_count": instance_count,
        }
        if last_updated is not None:
            report["last_updated"] = last_updated
        return DeploymentStatusReport(**report)

    async def get_logs(self, deployment_id: str) -> list[DeploymentLogEntry]:
        """Recorded events for a deployment, oldest first."""
        self._attempt(deployment_id)
        try:
            return await self.event_log.entries_for(deployment_id)
        except Exception as e:
            self.logger.warning(
                "deployment.logs_unavailable",
                deployment_id=deployment_id,
                error=str(e),
            )
            return []


def build_orchestrator(settings: Settings | None = None) -> DeploymentOrchestrator:
    """Wire an orchestrator from application settings.

    Real Cloud Build / Cloud Run clients are used only when
    ``gcp_deploy_real`` is set; otherwise the simulated ones are.
    """
    settings = settings or get_settings()
    config = CloudConfig.from_settings(settings)

    if settings.gcp_deploy_real:
        bundle_root = Path(settings.bundle_directory or Path(gettempdir()) / "mvp-deploy")
        packager = ContainerBundlePackager(config, bundle_directory=bundle_root)
        builder: BuildService = CloudBuildService(config, source_root=bundle_root)
        host: ContainerHost = CloudRunHost(config)
    else:
        packager = ContainerBundlePackager(config, bundle_directory=settings.bundle_directory)
        builder = SimulatedBuildService(config)
        host = SimulatedCloudRunHost(config)

    records: RecordStore
    if settings.record_store_url:
        records = HttpRecordStore(settings.record_store_url, token=settings.record_store_token)
    else:
        records = MemoryRecordStore()

    return DeploymentOrchestrator(
        config=config,
        packager=packager,
        builder=builder,
        host=host,
        records=records,
        event_log=MemoryEventLog(),
    )


# Singleton instance
_orchestrator: DeploymentOrchestrator | None = None


def get_orchestrator() -> DeploymentOrchestrator:
    """Get the orchestrator singleton."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator
