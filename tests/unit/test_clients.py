"""Unit tests for the Cloud Build and Cloud Run clients."""

from typing import Any

import pytest

from mvp_deploy.clients.cloud_build import CloudBuildService, SimulatedBuildService
from mvp_deploy.clients.cloud_run import CloudRunHost, SimulatedCloudRunHost
from mvp_deploy.clients.gcloud import GcloudRunner
from mvp_deploy.config import CloudConfig
from mvp_deploy.core.exceptions import BuildTriggerError, CommandError, HostDeploymentError
from mvp_deploy.core.progress import ProgressChannel
from mvp_deploy.models.build import BuildHandle, BuildStatus
from mvp_deploy.models.deployment import DeploymentRequest, ProgressEvent, Stage


class ScriptedRunner(GcloudRunner):
    """GcloudRunner that replays canned responses instead of spawning gcloud."""

    def __init__(self, responses: list[Any]):
        super().__init__(binary="gcloud", project_id="demo-project")
        self.responses = list(responses)
        self.commands: list[list[str]] = []

    async def run_json(self, args: list[str], cwd: str | None = None) -> Any:
        self.commands.append(args)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def pushing_channel(seen: list[ProgressEvent]) -> ProgressChannel:
    channel = ProgressChannel(seen.append)
    channel.enter(Stage.PUSHING)
    return channel


class TestGcloudRunner:
    """Tests for GcloudRunner command construction."""

    def test_command_adds_format_and_project(self):
        runner = GcloudRunner(binary="/usr/bin/gcloud", project_id="demo-project")

        cmd = runner._command(["run", "services", "list"])

        assert cmd[0] == "/usr/bin/gcloud"
        assert cmd[1:4] == ["run", "services", "list"]
        assert "--format=json" in cmd
        assert "--project=demo-project" in cmd

    def test_command_error_lines(self):
        error = CommandError("gcloud builds submit", 1, "ERROR: quota\n\nretry later\n")
        assert error.output_lines == ["ERROR: quota", "retry later"]


class TestCloudBuildService:
    """Tests for CloudBuildService."""

    @pytest.fixture
    def config(self) -> CloudConfig:
        return CloudConfig(project_id="demo-project", build_poll_interval_seconds=0)

    @pytest.mark.asyncio
    async def test_trigger_submits_bundle(
        self, config: CloudConfig, deploy_request: DeploymentRequest, tmp_path
    ):
        runner = ScriptedRunner([{"id": "b-123", "status": "QUEUED", "logUrl": "https://logs/b-123"}])
        service = CloudBuildService(config, source_root=tmp_path, runner=runner)

        handle = await service.trigger_build(deploy_request, "artifact-mvp-42-1", "acme")

        assert handle.build_id == "b-123"
        assert handle.status == BuildStatus.QUEUED
        assert handle.image_reference == config.image_reference("acme")
        args = runner.commands[0]
        assert args[:2] == ["builds", "submit"]
        assert str((tmp_path / "mvp-42").resolve()) in args
        assert "--async" in args

    @pytest.mark.asyncio
    async def test_trigger_failure(
        self, config: CloudConfig, deploy_request: DeploymentRequest, tmp_path
    ):
        runner = ScriptedRunner([CommandError("gcloud builds submit", 1, "permission denied")])
        service = CloudBuildService(config, source_root=tmp_path, runner=runner)

        with pytest.raises(BuildTriggerError) as exc_info:
            await service.trigger_build(deploy_request, "artifact-mvp-42-1", "acme")

        assert exc_info.value.message.startswith("Cloud Build trigger failed: ")
        assert exc_info.value.logs == ["permission denied"]

    @pytest.mark.asyncio
    async def test_await_polls_until_terminal(self, config: CloudConfig, tmp_path):
        runner = ScriptedRunner(
            [
                {"status": "WORKING"},
                {"status": "WORKING"},
                {"status": "SUCCESS", "logUrl": "https://logs/b-1"},
            ]
        )
        service = CloudBuildService(config, source_root=tmp_path, runner=runner)
        handle = BuildHandle(build_id="b-1", image_reference="reg/img:latest")
        seen: list[ProgressEvent] = []

        outcome = await service.await_build(handle, pushing_channel(seen))

        assert outcome.status == BuildStatus.SUCCESS
        assert outcome.image_reference == "reg/img:latest"
        assert outcome.logs == ["Build logs: https://logs/b-1"]
        assert len(runner.commands) == 3
        progress = [e.progress for e in seen]
        assert progress == sorted(set(progress))
        assert all(65 <= p < 80 for p in progress)
        assert seen[-1].message == "Build complete!"

    @pytest.mark.asyncio
    async def test_await_reports_failed_build(self, config: CloudConfig, tmp_path):
        runner = ScriptedRunner([{"status": "FAILURE", "statusDetail": "step 0 failed"}])
        service = CloudBuildService(config, source_root=tmp_path, runner=runner)
        handle = BuildHandle(build_id="b-1", image_reference="reg/img:latest")

        outcome = await service.await_build(handle, pushing_channel([]))

        assert outcome.status == BuildStatus.FAILURE
        assert "step 0 failed" in outcome.logs

    @pytest.mark.asyncio
    async def test_await_waits_through_pending(self, config: CloudConfig, tmp_path):
        runner = ScriptedRunner(
            [{"status": "PENDING"}, {"status": "STATUS_UNKNOWN"}, {"status": "SUCCESS"}]
        )
        service = CloudBuildService(config, source_root=tmp_path, runner=runner)
        handle = BuildHandle(build_id="b-1", image_reference="reg/img:latest")

        outcome = await service.await_build(handle, pushing_channel([]))

        assert outcome.status == BuildStatus.SUCCESS
        assert len(runner.commands) == 3

    @pytest.mark.asyncio
    async def test_await_maps_timeout_to_failure(self, config: CloudConfig, tmp_path):
        runner = ScriptedRunner([{"status": "TIMEOUT"}])
        service = CloudBuildService(config, source_root=tmp_path, runner=runner)
        handle = BuildHandle(build_id="b-1", image_reference="reg/img:latest")

        outcome = await service.await_build(handle, pushing_channel([]))

        assert outcome.status == BuildStatus.FAILURE
        assert "Cloud Build status: TIMEOUT" in outcome.logs

    @pytest.mark.asyncio
    async def test_trigger_accepts_pending_build(
        self, config: CloudConfig, deploy_request: DeploymentRequest, tmp_path
    ):
        runner = ScriptedRunner([{"id": "b-9", "status": "PENDING"}])
        service = CloudBuildService(config, source_root=tmp_path, runner=runner)

        handle = await service.trigger_build(deploy_request, "artifact-mvp-42-1", "acme")

        assert handle.status == BuildStatus.QUEUED

    @pytest.mark.asyncio
    async def test_trigger_rejects_source_outside_root(self, config: CloudConfig, tmp_path):
        runner = ScriptedRunner([])
        service = CloudBuildService(config, source_root=tmp_path / "bundles", runner=runner)
        request = DeploymentRequest.model_construct(
            artifact_id="../escaped", display_name="Acme", owner_id="user"
        )

        with pytest.raises(BuildTriggerError, match="escapes the build source root"):
            await service.trigger_build(request, "artifact-x-1", "acme")

        assert runner.commands == []

    @pytest.mark.asyncio
    async def test_await_timeout(self, tmp_path):
        config = CloudConfig(build_poll_interval_seconds=0, build_timeout_seconds=-1)
        service = CloudBuildService(config, source_root=tmp_path, runner=ScriptedRunner([]))
        handle = BuildHandle(build_id="b-1", image_reference="reg/img:latest")

        with pytest.raises(BuildTriggerError, match="did not finish"):
            await service.await_build(handle, pushing_channel([]))


class TestSimulatedBuildService:
    """Tests for SimulatedBuildService."""

    @pytest.mark.asyncio
    async def test_walks_build_steps(
        self, cloud_config: CloudConfig, deploy_request: DeploymentRequest
    ):
        service = SimulatedBuildService(cloud_config)
        seen: list[ProgressEvent] = []

        handle = await service.trigger_build(deploy_request, "artifact-mvp-42-1", "acme")
        outcome = await service.await_build(handle, pushing_channel(seen))

        assert handle.build_id == "build-artifact-mvp-42-1"
        assert outcome.status == BuildStatus.SUCCESS
        assert [e.progress for e in seen] == [65, 69, 73, 76, 79]
        assert seen[-1].message == "Build complete!"


class TestCloudRunHost:
    """Tests for CloudRunHost."""

    @pytest.mark.asyncio
    async def test_deploy(self):
        runner = ScriptedRunner(
            [
                {
                    "status": {
                        "url": "https://acme-abc123-ue.a.run.app",
                        "latestReadyRevisionName": "acme-00002-xyz",
                    }
                }
            ]
        )
        host = CloudRunHost(CloudConfig(region="us-east5"), runner=runner)

        deployment = await host.deploy("reg/img:latest", "acme", "artifact-mvp-42-1")

        assert deployment.url == "https://acme-abc123-ue.a.run.app"
        assert deployment.revision == "acme-00002-xyz"
        assert deployment.region == "us-east5"
        args = runner.commands[0]
        assert args[:3] == ["run", "deploy", "acme"]
        assert "--image=reg/img:latest" in args
        assert "--allow-unauthenticated" in args

    @pytest.mark.asyncio
    async def test_deploy_failure(self):
        runner = ScriptedRunner([CommandError("gcloud run deploy", 1, "image not found")])
        host = CloudRunHost(CloudConfig(), runner=runner)

        with pytest.raises(HostDeploymentError) as exc_info:
            await host.deploy("reg/img:latest", "acme", "artifact-mvp-42-1")

        assert exc_info.value.message.startswith("Cloud Run deployment failed: ")
        assert exc_info.value.logs == ["image not found"]

    @pytest.mark.asyncio
    async def test_deploy_without_url(self):
        host = CloudRunHost(CloudConfig(), runner=ScriptedRunner([{"status": {}}]))

        with pytest.raises(HostDeploymentError, match="no URL"):
            await host.deploy("reg/img:latest", "acme", "artifact-mvp-42-1")

    @pytest.mark.asyncio
    async def test_shift_traffic(self):
        runner = ScriptedRunner([{}])
        host = CloudRunHost(CloudConfig(), runner=runner)

        assert await host.shift_traffic("acme", "rev-3", 100) is True
        assert "--to-revisions=rev-3=100" in runner.commands[0]

    @pytest.mark.asyncio
    async def test_shift_traffic_failure(self):
        runner = ScriptedRunner([CommandError("gcloud run services update-traffic", 1)])
        host = CloudRunHost(CloudConfig(), runner=runner)

        assert await host.shift_traffic("acme", "rev-3", 100) is False

    @pytest.mark.asyncio
    async def test_service_status(self):
        runner = ScriptedRunner(
            [
                {
                    "spec": {
                        "template": {
                            "metadata": {
                                "annotations": {"autoscaling.knative.dev/minScale": "2"}
                            }
                        }
                    },
                    "status": {
                        "latestReadyRevisionName": "acme-00002-xyz",
                        "conditions": [
                            {
                                "type": "Ready",
                                "status": "True",
                                "lastTransitionTime": "2024-05-01T10:00:00Z",
                            }
                        ],
                    },
                }
            ]
        )
        host = CloudRunHost(CloudConfig(), runner=runner)

        status = await host.get_service_status("acme")

        assert status.status == "LIVE"
        assert status.health == "healthy"
        assert status.instance_count == 2
        assert status.revision == "acme-00002-xyz"
        assert status.last_updated.year == 2024

    @pytest.mark.asyncio
    async def test_service_status_not_ready(self):
        runner = ScriptedRunner(
            [{"status": {"conditions": [{"type": "Ready", "status": "False"}]}}]
        )
        host = CloudRunHost(CloudConfig(), runner=runner)

        status = await host.get_service_status("acme")

        assert status.health == "unhealthy"
        assert status.instance_count == 0


class TestSimulatedCloudRunHost:
    """Tests for SimulatedCloudRunHost."""

    @pytest.mark.asyncio
    async def test_redeploy_keeps_url(self, cloud_config: CloudConfig):
        host = SimulatedCloudRunHost(cloud_config)

        first = await host.deploy("img", "acme", "d-1")
        second = await host.deploy("img", "acme", "d-2")

        assert first.url.startswith("https://acme-")
        assert first.url.endswith(".a.run.app")
        assert second.url == first.url
        assert first.revision != second.revision

    @pytest.mark.asyncio
    async def test_status_and_rollback(self, cloud_config: CloudConfig):
        host = SimulatedCloudRunHost(cloud_config)
        first = await host.deploy("img", "acme", "d-1")
        await host.deploy("img", "acme", "d-2")

        assert await host.shift_traffic("acme", first.revision, 100) is True
        status = await host.get_service_status("acme")

        assert status.status == "LIVE"
        assert status.revision == first.revision

    @pytest.mark.asyncio
    async def test_unknown_service(self, cloud_config: CloudConfig):
        host = SimulatedCloudRunHost(cloud_config)

        status = await host.get_service_status("missing")

        assert status.status == "UNKNOWN"
        assert status.instance_count == 0
