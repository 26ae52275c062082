"""Build service collaborators backed by Google Cloud Build."""

import asyncio
import time
from pathlib import Path

from mvp_deploy.clients.base import BuildService, scale_progress
from mvp_deploy.clients.gcloud import GcloudRunner
from mvp_deploy.config import CloudConfig
from mvp_deploy.core.exceptions import BuildTriggerError, CommandError
from mvp_deploy.core.progress import ProgressChannel
from mvp_deploy.models.build import BuildHandle, BuildOutcome, BuildStatus
from mvp_deploy.models.deployment import DeploymentRequest
from mvp_deploy.utils.logging import get_logger

# (fraction of the sub-progress window, nominal seconds, message)
SIMULATED_BUILD_STEPS: list[tuple[float, float, str]] = [
    (0.25, 2.0, "Building... 25%"),
    (0.50, 2.0, "Building... 50%"),
    (0.75, 1.5, "Building... 75%"),
    (0.90, 1.0, "Build complete!"),
]


def build_steps_config(image_reference: str) -> list[dict[str, object]]:
    """The docker build/push steps submitted for a service image."""
    return [
        {
            "name": "gcr.io/cloud-builders/docker",
            "args": ["build", "-t", image_reference, "-f", "Dockerfile", "."],
        },
        {
            "name": "gcr.io/cloud-builders/docker",
            "args": ["push", image_reference],
        },
    ]


class CloudBuildService(BuildService):
    """Submits the packaged bundle to Cloud Build and polls until it finishes.

    The build source for an artifact is ``source_root / artifact_id``, the
    directory ``ContainerBundlePackager`` writes to.
    """

    def __init__(
        self,
        config: CloudConfig,
        source_root: str | Path,
        runner: GcloudRunner | None = None,
    ):
        self.config = config
        self.source_root = Path(source_root)
        self.runner = runner or GcloudRunner(
            binary=config.gcloud_binary,
            project_id=config.project_id,
        )
        self.logger = get_logger("client.cloud_build")

    async def trigger_build(
        self,
        request: DeploymentRequest,
        deployment_id: str,
        service_name: str,
    ) -> BuildHandle:
        root = self.source_root.resolve()
        source = (root / request.artifact_id).resolve()
        if source == root or not source.is_relative_to(root):
            raise BuildTriggerError(
                f"artifact id {request.artifact_id!r} escapes the build source root",
                stage="building",
            )
        image_reference = self.config.image_reference(service_name)

        try:
            data = await self.runner.run_json(
                [
                    "builds",
                    "submit",
                    str(source),
                    f"--config={source / 'cloudbuild.yaml'}",
                    f"--region={self.config.region}",
                    "--async",
                ]
            )
        except CommandError as e:
            raise BuildTriggerError(e.message, stage="building", logs=e.output_lines)

        build_id = data.get("id") if isinstance(data, dict) else None
        if not build_id:
            raise BuildTriggerError("Cloud Build did not return a build id", stage="building")

        self.logger.info(
            "cloud_build.submitted",
            build_id=build_id,
            deployment_id=deployment_id,
            image=image_reference,
        )

        return BuildHandle(
            build_id=build_id,
            status=BuildStatus.from_cloud_build(data.get("status") or BuildStatus.QUEUED.value),
            image_reference=image_reference,
            config={
                "project_id": self.config.project_id,
                "image_tag": image_reference,
                "build_steps": build_steps_config(image_reference),
                "log_url": data.get("logUrl"),
            },
        )

    async def await_build(
        self, handle: BuildHandle, progress: ProgressChannel
    ) -> BuildOutcome:
        window = progress.sub_window()
        deadline = time.monotonic() + self.config.build_timeout_seconds
        polls = 0
        status = handle.status
        data: dict = {}

        while not status.is_terminal:
            if time.monotonic() > deadline:
                raise BuildTriggerError(
                    f"build {handle.build_id} did not finish within "
                    f"{self.config.build_timeout_seconds} seconds",
                    stage="pushing",
                )

            await asyncio.sleep(self.config.build_poll_interval_seconds)
            try:
                data = await self.runner.run_json(
                    [
                        "builds",
                        "describe",
                        handle.build_id,
                        f"--region={self.config.region}",
                    ]
                )
            except CommandError as e:
                raise BuildTriggerError(e.message, stage="pushing", logs=e.output_lines)

            status = BuildStatus.from_cloud_build(data.get("status"))
            polls += 1
            # Approaches the top of the window without reaching it
            fraction = 0.8 * (1 - 0.5**polls)
            progress.publish(
                scale_progress(window, fraction),
                f"Building... ({status.value.lower()})",
            )

        logs: list[str] = []
        raw_status = data.get("status")
        if raw_status and raw_status != status.value:
            logs.append(f"Cloud Build status: {raw_status}")
        if data.get("logUrl") or handle.config.get("log_url"):
            logs.append(f"Build logs: {data.get('logUrl') or handle.config['log_url']}")
        if data.get("statusDetail"):
            logs.append(str(data["statusDetail"]))

        if status == BuildStatus.SUCCESS:
            progress.publish(scale_progress(window, 0.9), "Build complete!")

        self.logger.info(
            "cloud_build.finished",
            build_id=handle.build_id,
            status=status.value,
            polls=polls,
        )

        return BuildOutcome(
            status=status,
            image_reference=handle.image_reference,
            logs=logs,
        )


class SimulatedBuildService(BuildService):
    """Fixed-delay stand-in for Cloud Build.

    Walks through ``SIMULATED_BUILD_STEPS`` and always succeeds; delays are
    multiplied by ``config.simulated_delay_scale``.
    """

    def __init__(self, config: CloudConfig):
        self.config = config
        self.logger = get_logger("client.simulated_build")

    async def trigger_build(
        self,
        request: DeploymentRequest,
        deployment_id: str,
        service_name: str,
    ) -> BuildHandle:
        image_reference = self.config.image_reference(service_name)
        return BuildHandle(
            build_id=f"build-{deployment_id}",
            status=BuildStatus.QUEUED,
            image_reference=image_reference,
            config={
                "project_id": self.config.project_id,
                "image_tag": image_reference,
                "build_steps": build_steps_config(image_reference),
            },
        )

    async def await_build(
        self, handle: BuildHandle, progress: ProgressChannel
    ) -> BuildOutcome:
        window = progress.sub_window()
        for fraction, seconds, message in SIMULATED_BUILD_STEPS:
            await asyncio.sleep(seconds * self.config.simulated_delay_scale)
            progress.publish(scale_progress(window, fraction), message)

        self.logger.info("simulated_build.finished", build_id=handle.build_id)
        return BuildOutcome(
            status=BuildStatus.SUCCESS,
            image_reference=handle.image_reference,
            logs=["Build started", "Building layers", "Pushing to registry"],
        )
